from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    Boolean,
    ForeignKey,
    Integer,
    DateTime,
    Text,
    JSON,
    BigInteger,
    func,
    Enum as SQLEnum,
)
from database.engine import Base, BigIntPK, utcnow
from datetime import datetime, timedelta, timezone
from enum import Enum as PyEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from database.models.users import User


def _values(enum) -> list[str]:
    return [member.value for member in enum]


# ============ Candidate Enums ============ #
class ExperienceLevel(str, PyEnum):
    ENTRY = "entry"
    MID = "mid"
    SENIOR = "senior"
    LEAD = "lead"
    EXECUTIVE = "executive"


class ResumeStatus(str, PyEnum):
    NOT_UPLOADED = "not_uploaded"
    UPLOADED = "uploaded"
    PARSED = "parsed"
    VERIFIED = "verified"


class CandidateStatus(str, PyEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    PLACED = "placed"
    UNAVAILABLE = "unavailable"


DEFAULT_SALARY_CURRENCY = "USD"
DEFAULT_PROFILE_COMPLETION = 10


def tomorrow_start(now: datetime | None = None) -> datetime:
    """Midnight UTC of the day after ``now``."""
    now = now or datetime.now(timezone.utc)
    next_day = (now + timedelta(days=1)).astimezone(timezone.utc)
    return next_day.replace(hour=0, minute=0, second=0, microsecond=0)


# ==================== Candidate Profile ===================== #
class CandidateProfile(Base):
    """
    Recruitment data for a candidate user. Assignments reference profiles,
    never candidate user IDs.
    """

    __tablename__ = "candidate_profiles"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True,
    )

    # Profile
    skills: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    summary: Mapped[str | None] = mapped_column(Text)
    location: Mapped[str | None] = mapped_column(String(200))

    # Compensation
    salary_min: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    salary_max: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    salary_currency: Mapped[str] = mapped_column(
        String(3), nullable=False, default=DEFAULT_SALARY_CURRENCY
    )

    # Availability
    available_from: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    remote: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    relocation: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    experience_level: Mapped[ExperienceLevel] = mapped_column(
        SQLEnum(ExperienceLevel, native_enum=False, length=20, values_callable=_values),
        nullable=False,
        default=ExperienceLevel.ENTRY,
    )
    resume_status: Mapped[ResumeStatus] = mapped_column(
        SQLEnum(ResumeStatus, native_enum=False, length=20, values_callable=_values),
        nullable=False,
        default=ResumeStatus.NOT_UPLOADED,
    )
    profile_completion: Mapped[int] = mapped_column(
        Integer, nullable=False, default=DEFAULT_PROFILE_COMPLETION
    )
    status: Mapped[CandidateStatus] = mapped_column(
        SQLEnum(CandidateStatus, native_enum=False, length=20, values_callable=_values),
        nullable=False,
        default=CandidateStatus.ACTIVE,
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
    user: Mapped["User"] = relationship(
        "User", back_populates="candidate_profile", lazy="noload"
    )

    @classmethod
    def with_defaults(cls, user_id: int, now: datetime | None = None) -> "CandidateProfile":
        """Build the placeholder profile created when a candidate is first assigned."""
        return cls(
            user_id=user_id,
            skills=[],
            summary="",
            salary_min=0,
            salary_max=0,
            salary_currency=DEFAULT_SALARY_CURRENCY,
            available_from=tomorrow_start(now),
            remote=False,
            relocation=False,
            experience_level=ExperienceLevel.ENTRY,
            resume_status=ResumeStatus.NOT_UPLOADED,
            profile_completion=DEFAULT_PROFILE_COMPLETION,
            status=CandidateStatus.ACTIVE,
        )
