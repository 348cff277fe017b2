"""Shared fixtures and utilities for tests."""

import os

# Settings are read at import time, so the environment must be ready first
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret-key-min-32-chars-long-for-security")
os.environ.setdefault("JWT_ALGORITHM", "HS256")
os.environ.setdefault("ACCESS_TOKEN_EXPIRE_MINUTES", "60")
os.environ.setdefault("JSON_LOGS", "false")

import itertools

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from api.services.audit import RequestContext
from core.security import create_access_token
from database.engine import Base, enable_sqlite_foreign_keys, get_db
import database.models  # noqa: F401
from database.models.assignments import AgentAssignment
from database.models.audit import AuditLog
from database.models.candidates import CandidateProfile
from database.models.users import User, UserRole

_email_counter = itertools.count(1)


@pytest.fixture
async def engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(db):
    """Create and commit a user. Returns an async factory."""

    async def _make_user(
        role: UserRole,
        status: str = "active",
        first_name: str = "Test",
        last_name: str | None = None,
    ) -> User:
        n = next(_email_counter)
        user = User(
            email=f"{role.value}{n}@example.com",
            first_name=first_name,
            last_name=last_name or f"{role.value.title()}{n}",
            role=role,
            status=status,
        )
        db.add(user)
        await db.commit()
        return user

    return _make_user


@pytest.fixture
def make_legacy_user(db):
    """Insert a user row bypassing status normalisation (e.g. "Active")."""

    async def _make_legacy_user(role: UserRole, status: str = "Active") -> int:
        n = next(_email_counter)
        result = await db.execute(
            insert(User.__table__)
            .values(
                email=f"legacy-{role.value}{n}@example.com",
                first_name="Legacy",
                last_name=f"User{n}",
                role=role,
                status=status,
            )
            .returning(User.__table__.c.id)
        )
        await db.commit()
        return result.scalar_one()

    return _make_legacy_user


@pytest.fixture
async def admin(make_user):
    return await make_user(UserRole.ADMIN, first_name="Ada")


@pytest.fixture
def ctx(admin):
    return RequestContext(
        actor_id=admin.id,
        ip_address="127.0.0.1",
        user_agent="pytest",
        request_id="test-request",
    )


@pytest.fixture
def auth_headers():
    """Build bearer headers for a user."""

    def _auth_headers(user: User) -> dict[str, str]:
        token = create_access_token(user.id, user.role.value)
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers


@pytest.fixture
async def client(session_factory):
    """HTTP client bound to the app with the test database."""
    from api.main import app

    async def _get_test_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_test_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# ============ Query helpers ============ #
# Each helper reads through a new session so no cached state is reused.
@pytest.fixture
def load_assignment(session_factory):
    async def _load(agent_id: int) -> AgentAssignment | None:
        async with session_factory() as session:
            result = await session.execute(
                select(AgentAssignment).where(AgentAssignment.agent_id == agent_id)
            )
            return result.scalar_one_or_none()

    return _load


@pytest.fixture
def audit_entries(session_factory):
    async def _entries(**filters) -> list[AuditLog]:
        async with session_factory() as session:
            query = select(AuditLog).order_by(AuditLog.id)
            for column, value in filters.items():
                query = query.where(getattr(AuditLog, column) == value)
            result = await session.execute(query)
            return list(result.scalars().all())

    return _entries


@pytest.fixture
def count_profiles(session_factory):
    async def _count(user_id: int) -> int:
        async with session_factory() as session:
            result = await session.execute(
                select(func.count())
                .select_from(CandidateProfile)
                .where(CandidateProfile.user_id == user_id)
            )
            return result.scalar_one()

    return _count
