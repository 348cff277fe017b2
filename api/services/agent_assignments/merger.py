"""Idempotent merge of resolved resources into an agent's assignment."""

from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.services.audit import AGENT_ASSIGNMENT_ENTITY, RequestContext, record_audit
from database.models.assignments import (
    AgentAssignment,
    AgentAssignmentCandidate,
    AgentAssignmentHR,
    AssignmentStatus,
)
from database.models.audit import AuditAction

logger = logging.getLogger(__name__)


@dataclass
class MergeOutcome:
    assignment: AgentAssignment
    created: bool
    added_hr_ids: list[int] = field(default_factory=list)
    added_candidate_ids: list[int] = field(default_factory=list)


def union_preserving_order(existing: Iterable[int], incoming: Iterable[int]) -> tuple[list[int], list[int]]:
    """
    Set union that keeps ``existing`` order and appends new IDs in arrival order.

    Returns:
        (merged, added) where ``added`` holds only the IDs that were not present
    """
    merged = list(existing)
    seen = set(merged)
    added = []
    for item in incoming:
        if item not in seen:
            seen.add(item)
            merged.append(item)
            added.append(item)
    return merged, added


async def get_assignment(
    db: AsyncSession, agent_id: int, active_only: bool = False
) -> Optional[AgentAssignment]:
    query = select(AgentAssignment).where(AgentAssignment.agent_id == agent_id)
    if active_only:
        query = query.where(AgentAssignment.status == AssignmentStatus.ACTIVE.value)
    result = await db.execute(query.execution_options(populate_existing=True))
    return result.scalar_one_or_none()


async def merge_into_assignment(
    db: AsyncSession,
    agent_id: int,
    hr_ids: Sequence[int],
    profile_ids: Sequence[int],
    ctx: RequestContext,
    notes: Optional[str] = None,
    created_profile_ids: Sequence[int] = (),
) -> MergeOutcome:
    """
    Create the agent's assignment or union the resources into it.

    ``notes`` is only written when given. The assignment always ends up
    active. Changes are flushed, not committed.

    Args:
        db: Database session
        agent_id: Owning agent
        hr_ids: Resolved HR user IDs
        profile_ids: Candidate profile IDs
        ctx: Caller context, its actor becomes ``assigned_by``
        notes: Replacement notes, or None to keep the current ones
        created_profile_ids: Profiles provisioned for this request, for the audit entry

    Returns:
        MergeOutcome with the flushed assignment
    """
    assignment = await get_assignment(db, agent_id)

    if assignment is None:
        _, added_hrs = union_preserving_order([], hr_ids)
        _, added_candidates = union_preserving_order([], profile_ids)
        # Both collections are set so neither lazy loads after the flush
        assignment = AgentAssignment(
            agent_id=agent_id,
            assigned_by=ctx.actor_id,
            status=AssignmentStatus.ACTIVE.value,
            notes=notes,
            hr_links=[AgentAssignmentHR(hr_user_id=hr_id) for hr_id in added_hrs],
            candidate_links=[
                AgentAssignmentCandidate(candidate_profile_id=profile_id)
                for profile_id in added_candidates
            ],
        )
        db.add(assignment)
        await db.flush()

        action = AuditAction.CREATE
        before = None
        created = True
    else:
        before = assignment.to_snapshot()
        _, added_hrs = union_preserving_order(assignment.assigned_hrs, hr_ids)
        _, added_candidates = union_preserving_order(assignment.assigned_candidates, profile_ids)
        for hr_id in added_hrs:
            assignment.add_hr(hr_id)
        for profile_id in added_candidates:
            assignment.add_candidate(profile_id)
        if notes is not None:
            assignment.notes = notes
        assignment.activate()
        assignment.touch(ctx.actor_id)
        await db.flush()

        action = AuditAction.UPDATE
        created = False

    record_audit(
        db,
        ctx,
        action,
        AGENT_ASSIGNMENT_ENTITY,
        assignment.id,
        before=before,
        after=assignment.to_snapshot(),
        metadata={
            "agentId": agent_id,
            "hrCount": len(hr_ids),
            "candidateCount": len(profile_ids),
            "addedHRs": added_hrs,
            "addedCandidates": added_candidates,
            "createdCandidateProfiles": list(created_profile_ids),
        },
        description=(
            f"{'Created' if created else 'Updated'} assignment for agent {agent_id}"
        ),
    )
    logger.info(
        f"{'Created' if created else 'Merged into'} assignment {assignment.id}: "
        f"+{len(added_hrs)} HRs, +{len(added_candidates)} candidates",
        extra={"agent_id": agent_id, "assignment_id": assignment.id},
    )
    return MergeOutcome(
        assignment=assignment,
        created=created,
        added_hr_ids=added_hrs,
        added_candidate_ids=added_candidates,
    )
