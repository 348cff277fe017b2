from sqlalchemy.orm import Mapped, mapped_column, relationship, validates
from sqlalchemy import (
    String,
    DateTime,
    func,
    Enum as SQLEnum,
)
from core.config import settings
from database.engine import Base, BigIntPK, utcnow
from datetime import datetime
from enum import Enum as PyEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from database.models.candidates import CandidateProfile


# ==================== User Role ===================== #
class UserRole(str, PyEnum):
    CANDIDATE = "candidate"  # job seeker
    AGENT = "agent"  # works a roster of HR contacts and candidates
    HR = "hr"  # employer-side contact
    PARTNER = "partner"  # external partner
    ADMIN = "admin"  # platform admin, manages agent assignments


# ==================== User Status ===================== #
class UserStatus(str, PyEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"
    PENDING = "pending"

    @classmethod
    def normalize(cls, value: "str | UserStatus") -> str:
        """Return the canonical stored form ("Active" -> "active")."""
        if isinstance(value, UserStatus):
            return value.value
        normalized = str(value).strip().lower()
        return cls(normalized).value


# Historical spellings of the active status still present in older rows
LEGACY_ACTIVE_STATUSES: tuple[str, ...] = ("Active", "ACTIVE")


def active_status_values(include_legacy: bool = True) -> list[str]:
    """Status column values that count as active."""
    values = [UserStatus.ACTIVE.value]
    if include_legacy:
        values.extend(LEGACY_ACTIVE_STATUSES)
    return values


class User(Base):
    """
    Platform identity. Agents, HR users and candidates share this table and
    are told apart by ``role``.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(20))

    role: Mapped[UserRole] = mapped_column(
        SQLEnum(
            UserRole,
            native_enum=False,
            length=50,
            values_callable=lambda enum: [member.value for member in enum],
        ),
        nullable=False,
        index=True,
    )
    # Plain string so rows written before normalisation ("Active") still load
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=UserStatus.ACTIVE.value, index=True
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
    )

    # Relationships
    candidate_profile: Mapped["CandidateProfile | None"] = relationship(
        "CandidateProfile", back_populates="user", uselist=False, lazy="noload"
    )

    @validates("status")
    def _normalize_status(self, key, value):
        return UserStatus.normalize(value)

    @property
    def is_active(self) -> bool:
        return self.status in active_status_values(
            include_legacy=settings.legacy_status_compat
        )
