"""Lazy creation of candidate profiles for candidate users being assigned."""

from dataclasses import dataclass, field
from typing import Iterable
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import ConcurrentModificationError
from database.models.candidates import CandidateProfile

logger = logging.getLogger(__name__)


@dataclass
class ProvisionResult:
    profile_ids: list[int] = field(default_factory=list)
    # Candidate user IDs whose profile was created by this call
    created_for: list[int] = field(default_factory=list)
    created_profile_ids: list[int] = field(default_factory=list)


async def _profiles_by_user(db: AsyncSession, user_ids: list[int]) -> dict[int, int]:
    result = await db.execute(
        select(CandidateProfile.user_id, CandidateProfile.id).where(
            CandidateProfile.user_id.in_(user_ids)
        )
    )
    return {user_id: profile_id for user_id, profile_id in result.all()}


async def ensure_candidate_profiles(
    db: AsyncSession, user_ids: Iterable[int]
) -> ProvisionResult:
    """
    Map candidate user IDs to profile IDs, creating missing profiles.

    New profiles are committed before returning so they survive a failure in
    any later step.

    Args:
        db: Database session
        user_ids: Resolved candidate user IDs

    Returns:
        ProvisionResult whose ``profile_ids`` follow the order of ``user_ids``

    Raises:
        ConcurrentModificationError: A profile could neither be created nor found
    """
    user_ids = list(user_ids)
    if not user_ids:
        return ProvisionResult()

    existing = await _profiles_by_user(db, user_ids)
    missing = [user_id for user_id in user_ids if user_id not in existing]

    created_for: list[int] = []
    if missing:
        profiles = [CandidateProfile.with_defaults(user_id) for user_id in missing]
        db.add_all(profiles)
        try:
            await db.commit()
        except IntegrityError:
            # Another request created some of these profiles first
            await db.rollback()
            logger.warning(f"Profile creation raced for candidate users {missing}, re-reading")
        else:
            created_for = missing
            logger.info(f"Created default candidate profiles for users {missing}")
        existing = await _profiles_by_user(db, user_ids)

    unresolved = [user_id for user_id in user_ids if user_id not in existing]
    if unresolved:
        raise ConcurrentModificationError(
            "Candidate profiles could not be provisioned. Retry the operation.",
            details={"candidateUserIds": unresolved},
        )

    return ProvisionResult(
        profile_ids=[existing[user_id] for user_id in user_ids],
        created_for=created_for,
        created_profile_ids=[existing[user_id] for user_id in created_for],
    )
