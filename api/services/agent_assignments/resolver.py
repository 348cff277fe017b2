"""
Resource resolution for agent assignments.

Agent lookup is terminal: an unknown or inactive agent aborts the request.
HR and candidate lookups are best effort: IDs that do not resolve to an
active user of the expected role are dropped and reported, never raised.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.exceptions import AgentNotFoundError, NoActiveUsersError
from database.models.users import User, UserRole, active_status_values

logger = logging.getLogger(__name__)


@dataclass
class Resolved:
    """IDs split into those that resolved and those that were dropped."""

    valid: list[int] = field(default_factory=list)
    dropped: list[int] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.valid


@dataclass
class FilteredUsersSummary:
    original_hr_count: int
    active_hr_count: int
    original_candidate_count: int
    active_candidate_count: int
    dropped_hr_ids: list[int]
    dropped_candidate_ids: list[int]

    def to_dict(self) -> dict[str, Any]:
        return {
            "originalHRCount": self.original_hr_count,
            "activeHRCount": self.active_hr_count,
            "originalCandidateCount": self.original_candidate_count,
            "activeCandidateCount": self.active_candidate_count,
            "droppedHRIds": self.dropped_hr_ids,
            "droppedCandidateIds": self.dropped_candidate_ids,
        }


def dedupe(ids: Iterable[int]) -> list[int]:
    """Drop repeated IDs, keeping first-seen order."""
    seen: set[int] = set()
    unique = []
    for item in ids:
        if item not in seen:
            seen.add(item)
            unique.append(item)
    return unique


def _active_statuses() -> list[str]:
    return active_status_values(include_legacy=settings.legacy_status_compat)


async def resolve_agent(db: AsyncSession, agent_id: int) -> User:
    """
    Load the agent or fail.

    Raises:
        AgentNotFoundError: No user with this ID is an active agent
    """
    result = await db.execute(
        select(User).where(
            User.id == agent_id,
            User.role == UserRole.AGENT,
            User.status.in_(_active_statuses()),
        )
    )
    agent = result.scalar_one_or_none()
    if agent is None:
        logger.info(f"Agent {agent_id} is not an active agent", extra={"agent_id": agent_id})
        raise AgentNotFoundError(details={"agentId": agent_id})
    return agent


async def resolve_users(db: AsyncSession, ids: Iterable[int], role: UserRole) -> Resolved:
    """
    Keep the IDs that belong to active users with ``role``.

    Args:
        db: Database session
        ids: Requested user IDs, possibly repeated
        role: Role every kept user must have

    Returns:
        Resolved with ``valid`` in request order and ``dropped`` holding the rest
    """
    requested = dedupe(ids)
    if not requested:
        return Resolved()

    result = await db.execute(
        select(User.id).where(
            User.id.in_(requested),
            User.role == role,
            User.status.in_(_active_statuses()),
        )
    )
    found = set(result.scalars().all())

    resolved = Resolved(
        valid=[user_id for user_id in requested if user_id in found],
        dropped=[user_id for user_id in requested if user_id not in found],
    )
    if resolved.dropped:
        logger.info(f"Dropped {len(resolved.dropped)} {role.value} IDs: {resolved.dropped}")
    return resolved


def summarize_filtering(
    requested_hr_ids: list[int],
    requested_candidate_ids: list[int],
    hrs: Resolved,
    candidates: Resolved,
) -> Optional[FilteredUsersSummary]:
    """
    Report what filtering removed; None when every requested ID was kept.

    Repeated IDs are counted once, so a duplicate alone is not reported.
    """
    if not hrs.dropped and not candidates.dropped:
        return None
    return FilteredUsersSummary(
        original_hr_count=len(dedupe(requested_hr_ids)),
        active_hr_count=len(hrs.valid),
        original_candidate_count=len(dedupe(requested_candidate_ids)),
        active_candidate_count=len(candidates.valid),
        dropped_hr_ids=hrs.dropped,
        dropped_candidate_ids=candidates.dropped,
    )


def ensure_assignable(hrs: Resolved, candidates: Resolved) -> None:
    """
    Raises:
        NoActiveUsersError: Nothing is left to assign after filtering
    """
    if hrs.is_empty and candidates.is_empty:
        raise NoActiveUsersError(
            details={
                "droppedHRIds": hrs.dropped,
                "droppedCandidateIds": candidates.dropped,
            }
        )
