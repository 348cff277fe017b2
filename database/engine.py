import logging
from datetime import datetime, timezone

from sqlalchemy import BigInteger, Integer, event, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from core.config import settings

logger = logging.getLogger("database_engine")

# BIGINT primary keys only autoincrement as INTEGER on SQLite
BigIntPK = BigInteger().with_variant(Integer, "sqlite")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


db_engine = create_async_engine(settings.database_url, echo=settings.database_echo)


def enable_sqlite_foreign_keys(engine) -> None:
    """SQLite ignores ON DELETE clauses unless foreign keys are switched on."""

    @event.listens_for(engine.sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


if db_engine.dialect.name == "sqlite":
    enable_sqlite_foreign_keys(db_engine)


# Create async session maker to be used throughout the application
AsyncSessionLocal = async_sessionmaker(
    db_engine, class_=AsyncSession, expire_on_commit=False
)


# Base class for declarative models
class Base(DeclarativeBase):
    pass


# Dependency to get DB session
async def get_db():
    async with AsyncSessionLocal() as session:
        yield session


# Function to initialize the database (create tables)
async def init_db():
    # Register every model on Base.metadata before create_all
    import database.models  # noqa: F401

    logger.info(f"Initializing database schema on {db_engine.url.render_as_string(hide_password=True)}")
    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def ping_db() -> bool:
    """Return True when the database answers a trivial query."""
    async with db_engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    return True


# Function to close database connections
async def close_db():
    """Close database engine and connections."""
    await db_engine.dispose()
