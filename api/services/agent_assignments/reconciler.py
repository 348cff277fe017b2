"""
Ownership reconciliation.

Before resources are given to an agent they are stripped from every other
agent that holds them. Each touched assignment gets an ``update`` audit entry
tagged ``resource_reassignment``.
"""

from dataclasses import dataclass
from typing import Any, Sequence
import logging

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.services.audit import AGENT_ASSIGNMENT_ENTITY, RequestContext, record_audit
from database.models.assignments import (
    AgentAssignment,
    AgentAssignmentCandidate,
    AgentAssignmentHR,
)
from database.models.audit import AuditAction, RiskLevel

logger = logging.getLogger(__name__)

REASSIGNMENT_REASON = "resource_reassignment"


@dataclass
class Reassignment:
    """Resources taken from one agent's assignment."""

    assignment_id: int
    agent_id: int
    removed_hr_ids: list[int]
    removed_candidate_ids: list[int]

    def to_dict(self) -> dict[str, Any]:
        return {
            "assignmentId": self.assignment_id,
            "agentId": self.agent_id,
            "removedHRs": self.removed_hr_ids,
            "removedCandidates": self.removed_candidate_ids,
        }


async def find_overlapping_assignments(
    db: AsyncSession,
    agent_id: int,
    hr_ids: Sequence[int],
    profile_ids: Sequence[int],
) -> list[AgentAssignment]:
    """Assignments of other agents that hold any of the given resources."""
    conditions = []
    if hr_ids:
        conditions.append(
            AgentAssignment.id.in_(
                select(AgentAssignmentHR.assignment_id).where(
                    AgentAssignmentHR.hr_user_id.in_(hr_ids)
                )
            )
        )
    if profile_ids:
        conditions.append(
            AgentAssignment.id.in_(
                select(AgentAssignmentCandidate.assignment_id).where(
                    AgentAssignmentCandidate.candidate_profile_id.in_(profile_ids)
                )
            )
        )
    if not conditions:
        return []

    result = await db.execute(
        select(AgentAssignment)
        .where(AgentAssignment.agent_id != agent_id, or_(*conditions))
        .order_by(AgentAssignment.id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def strip_from_other_agents(
    db: AsyncSession,
    agent_id: int,
    hr_ids: Sequence[int],
    profile_ids: Sequence[int],
    ctx: RequestContext,
) -> list[Reassignment]:
    """
    Remove the given HR users and candidate profiles from every assignment
    not owned by ``agent_id``.

    Changes are flushed, not committed, so the caller decides the transaction
    boundary. The flush also clears the unique link rows before the target
    assignment claims them.

    Args:
        db: Database session
        agent_id: Agent that is about to receive the resources
        hr_ids: Resolved HR user IDs
        profile_ids: Candidate profile IDs
        ctx: Caller context for audit entries

    Returns:
        One Reassignment per assignment that lost resources
    """
    others = await find_overlapping_assignments(db, agent_id, hr_ids, profile_ids)
    if not others:
        return []

    touched = []
    for assignment in others:
        before = assignment.to_snapshot()
        removed_hrs = assignment.remove_hrs(hr_ids)
        removed_candidates = assignment.remove_candidates(profile_ids)
        if not removed_hrs and not removed_candidates:
            continue
        assignment.touch(ctx.actor_id)
        touched.append((assignment, before, removed_hrs, removed_candidates))

    await db.flush()

    reassignments = []
    for assignment, before, removed_hrs, removed_candidates in touched:
        record_audit(
            db,
            ctx,
            AuditAction.UPDATE,
            AGENT_ASSIGNMENT_ENTITY,
            assignment.id,
            before=before,
            after=assignment.to_snapshot(),
            metadata={
                "reason": REASSIGNMENT_REASON,
                "removedHRs": removed_hrs,
                "removedCandidates": removed_candidates,
                "reassignedTo": agent_id,
            },
            description=(
                f"Moved {len(removed_hrs)} HR users and {len(removed_candidates)} "
                f"candidates from agent {assignment.agent_id} to agent {agent_id}"
            ),
            risk_level=RiskLevel.MEDIUM,
        )
        logger.info(
            f"Stripped HRs {removed_hrs} and candidates {removed_candidates} "
            f"from assignment {assignment.id}",
            extra={"agent_id": assignment.agent_id, "assignment_id": assignment.id},
        )
        reassignments.append(
            Reassignment(
                assignment_id=assignment.id,
                agent_id=assignment.agent_id,
                removed_hr_ids=removed_hrs,
                removed_candidate_ids=removed_candidates,
            )
        )
    return reassignments
