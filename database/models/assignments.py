from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    ForeignKey,
    Integer,
    BigInteger,
    DateTime,
    Text,
    func,
)
from database.engine import Base, BigIntPK, utcnow
from datetime import datetime
from enum import Enum as PyEnum
from typing import Any, Iterable


# ============ Assignment Enums ============ #
class AssignmentStatus(str, PyEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"


# ==================== Agent Assignment ===================== #
class AgentAssignment(Base):
    """
    The roster owned by one agent: HR users and candidate profiles.

    HR and candidate ownership live in link tables whose resource column is
    unique across all assignments, so a resource belongs to at most one agent.
    ``version`` is bumped on every flush that touches the row; a concurrent
    writer holding a stale copy fails with ``StaleDataError``.
    """

    __tablename__ = "agent_assignments"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    agent_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True,
    )
    assigned_by: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="SET NULL")
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=AssignmentStatus.ACTIVE.value, index=True
    )
    notes: Mapped[str | None] = mapped_column(Text)

    # Timestamps
    assigned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
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

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # Relationships
    hr_links: Mapped[list["AgentAssignmentHR"]] = relationship(
        "AgentAssignmentHR",
        back_populates="assignment",
        cascade="all, delete-orphan",
        order_by="AgentAssignmentHR.id",
        lazy="selectin",
        passive_deletes=True,
    )
    candidate_links: Mapped[list["AgentAssignmentCandidate"]] = relationship(
        "AgentAssignmentCandidate",
        back_populates="assignment",
        cascade="all, delete-orphan",
        order_by="AgentAssignmentCandidate.id",
        lazy="selectin",
        passive_deletes=True,
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def assigned_hrs(self) -> list[int]:
        return [link.hr_user_id for link in self.hr_links]

    @property
    def assigned_candidates(self) -> list[int]:
        return [link.candidate_profile_id for link in self.candidate_links]

    @property
    def hr_count(self) -> int:
        return len(self.hr_links)

    @property
    def candidate_count(self) -> int:
        return len(self.candidate_links)

    @property
    def is_active(self) -> bool:
        return self.status == AssignmentStatus.ACTIVE.value

    def add_hr(self, hr_user_id: int) -> bool:
        """Append an HR user unless already present. Returns True when added."""
        if hr_user_id in self.assigned_hrs:
            return False
        self.hr_links.append(AgentAssignmentHR(hr_user_id=hr_user_id))
        return True

    def remove_hrs(self, hr_user_ids: Iterable[int]) -> list[int]:
        """Drop the given HR users. Returns the IDs that were actually present."""
        targets = set(hr_user_ids)
        removed = [link.hr_user_id for link in self.hr_links if link.hr_user_id in targets]
        if removed:
            self.hr_links = [link for link in self.hr_links if link.hr_user_id not in targets]
        return removed

    def add_candidate(self, candidate_profile_id: int) -> bool:
        """Append a candidate profile unless already present. Returns True when added."""
        if candidate_profile_id in self.assigned_candidates:
            return False
        self.candidate_links.append(
            AgentAssignmentCandidate(candidate_profile_id=candidate_profile_id)
        )
        return True

    def remove_candidates(self, candidate_profile_ids: Iterable[int]) -> list[int]:
        """Drop the given candidate profiles. Returns the IDs that were actually present."""
        targets = set(candidate_profile_ids)
        removed = [
            link.candidate_profile_id
            for link in self.candidate_links
            if link.candidate_profile_id in targets
        ]
        if removed:
            self.candidate_links = [
                link
                for link in self.candidate_links
                if link.candidate_profile_id not in targets
            ]
        return removed

    def activate(self) -> None:
        self.status = AssignmentStatus.ACTIVE.value

    def deactivate(self) -> None:
        self.status = AssignmentStatus.INACTIVE.value

    def touch(self, actor_id: int | None) -> None:
        """Record the actor and force a row UPDATE so the version check runs."""
        self.assigned_by = actor_id
        self.updated_at = utcnow()

    def to_snapshot(self) -> dict[str, Any]:
        """JSON-safe state used for audit before/after images."""
        return {
            "id": self.id,
            "agentId": self.agent_id,
            "assignedHRs": list(self.assigned_hrs),
            "assignedCandidates": list(self.assigned_candidates),
            "assignedBy": self.assigned_by,
            "status": self.status,
            "notes": self.notes,
            "version": self.version,
        }


class AgentAssignmentHR(Base):
    """Ownership of one HR user by one assignment."""

    __tablename__ = "agent_assignment_hrs"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    assignment_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("agent_assignments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Unique across assignments: one owner per HR user
    hr_user_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    assignment: Mapped["AgentAssignment"] = relationship(
        "AgentAssignment", back_populates="hr_links"
    )


class AgentAssignmentCandidate(Base):
    """Ownership of one candidate profile by one assignment."""

    __tablename__ = "agent_assignment_candidates"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    assignment_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("agent_assignments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Unique across assignments: one owner per candidate profile
    candidate_profile_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("candidate_profiles.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    assignment: Mapped["AgentAssignment"] = relationship(
        "AgentAssignment", back_populates="candidate_links"
    )
