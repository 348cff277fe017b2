"""
Agent assignment service functions for API endpoints.

Assign flow: resolve the agent and filter the requested users, provision
missing candidate profiles (committed on their own), then strip the resources
from other agents and merge them into the target assignment in one
transaction together with the audit entries.
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Optional, Sequence
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from api.services.agent_assignments.merger import get_assignment, merge_into_assignment
from api.services.agent_assignments.provisioner import ensure_candidate_profiles
from api.services.agent_assignments.reconciler import Reassignment, strip_from_other_agents
from api.services.agent_assignments.resolver import (
    FilteredUsersSummary,
    dedupe,
    ensure_assignable,
    resolve_agent,
    resolve_users,
    summarize_filtering,
)
from api.services.audit import AGENT_ASSIGNMENT_ENTITY, RequestContext, record_audit
from core.config import settings
from core.exceptions import (
    AssignmentNotFoundError,
    ConcurrentModificationError,
    InvalidAssignmentRequest,
)
from database.models.assignments import AgentAssignment, AssignmentStatus
from database.models.audit import AuditAction, RiskLevel
from database.models.candidates import CandidateProfile
from database.models.users import User, UserRole

logger = logging.getLogger(__name__)

DEFAULT_ASSIGNMENT_NOTES = "No assignment created yet"


@dataclass
class AssignOutcome:
    assignment: AgentAssignment
    created: bool
    filtered_users: Optional[FilteredUsersSummary] = None
    reassignments: list[Reassignment] = field(default_factory=list)
    created_profile_ids: list[int] = field(default_factory=list)


@dataclass
class AgentScope:
    """Resources an agent may work with."""

    hr_ids: list[int] = field(default_factory=list)
    candidate_profile_ids: list[int] = field(default_factory=list)


@asynccontextmanager
async def conflict_guard(db: AsyncSession, agent_id: int):
    """Roll back and report a 409 when a concurrent writer got there first."""
    try:
        yield
    except (StaleDataError, IntegrityError) as exc:
        await db.rollback()
        logger.warning(
            f"Concurrent modification while updating assignments for agent {agent_id}: "
            f"{type(exc).__name__}",
            extra={"agent_id": agent_id},
        )
        raise ConcurrentModificationError(details={"agentId": agent_id}) from exc


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def assignment_to_dict(assignment: AgentAssignment) -> dict[str, Any]:
    """Wire representation with resources as plain IDs."""
    return {
        "id": assignment.id,
        "agentId": assignment.agent_id,
        "assignedHRs": assignment.assigned_hrs,
        "assignedCandidates": assignment.assigned_candidates,
        "assignedBy": assignment.assigned_by,
        "status": assignment.status,
        "notes": assignment.notes,
        "hrCount": assignment.hr_count,
        "candidateCount": assignment.candidate_count,
        "version": assignment.version,
        "assignedAt": _isoformat(assignment.assigned_at),
        "createdAt": _isoformat(assignment.created_at),
        "updatedAt": _isoformat(assignment.updated_at),
    }


def user_to_summary(user: User) -> dict[str, Any]:
    return {
        "id": user.id,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "email": user.email,
        "role": user.role.value,
    }


def candidate_to_summary(profile: CandidateProfile, user: Optional[User]) -> dict[str, Any]:
    return {
        "id": profile.id,
        "userId": profile.user_id,
        "firstName": user.first_name if user else None,
        "lastName": user.last_name if user else None,
        "email": user.email if user else None,
        "experienceLevel": profile.experience_level.value,
        "profileCompletion": profile.profile_completion,
        "status": profile.status.value,
    }


async def expand_assignments(
    db: AsyncSession, assignments: Sequence[AgentAssignment]
) -> list[dict[str, Any]]:
    """
    Replace resource IDs with agent, HR, candidate and assigner details.

    Users and profiles are fetched in two batched queries regardless of how
    many assignments are expanded.
    """
    profile_ids = {pid for a in assignments for pid in a.assigned_candidates}
    profiles: dict[int, CandidateProfile] = {}
    if profile_ids:
        result = await db.execute(
            select(CandidateProfile).where(CandidateProfile.id.in_(profile_ids))
        )
        profiles = {profile.id: profile for profile in result.scalars().all()}

    user_ids: set[int] = {profile.user_id for profile in profiles.values()}
    for assignment in assignments:
        user_ids.add(assignment.agent_id)
        user_ids.update(assignment.assigned_hrs)
        if assignment.assigned_by is not None:
            user_ids.add(assignment.assigned_by)
    users: dict[int, User] = {}
    if user_ids:
        result = await db.execute(select(User).where(User.id.in_(user_ids)))
        users = {user.id: user for user in result.scalars().all()}

    expanded = []
    for assignment in assignments:
        data = assignment_to_dict(assignment)
        agent = users.get(assignment.agent_id)
        assigner = users.get(assignment.assigned_by) if assignment.assigned_by else None
        data["agent"] = user_to_summary(agent) if agent else None
        data["assignedHRs"] = [
            user_to_summary(users[hr_id]) for hr_id in assignment.assigned_hrs if hr_id in users
        ]
        data["assignedCandidates"] = [
            candidate_to_summary(profiles[pid], users.get(profiles[pid].user_id))
            for pid in assignment.assigned_candidates
            if pid in profiles
        ]
        data["assignedBy"] = user_to_summary(assigner) if assigner else None
        expanded.append(data)
    return expanded


async def assign_resources(
    db: AsyncSession,
    agent_id: int,
    hr_ids: Iterable[int],
    candidate_user_ids: Iterable[int],
    ctx: RequestContext,
    notes: Optional[str] = None,
) -> AssignOutcome:
    """
    Give HR users and candidates to an agent, taking them from any other agent.

    Args:
        db: Database session
        agent_id: Target agent
        hr_ids: Requested HR user IDs
        candidate_user_ids: Requested candidate user IDs (not profile IDs)
        ctx: Caller context
        notes: New notes, or None to leave the current notes alone

    Returns:
        AssignOutcome with the committed assignment and a filtering summary
        when any requested ID was dropped

    Raises:
        InvalidAssignmentRequest: Notes are too long
        AgentNotFoundError: The agent is unknown or inactive
        NoActiveUsersError: No requested user survived filtering
        ConcurrentModificationError: A concurrent request changed the same records
    """
    requested_hrs = list(hr_ids)
    requested_candidates = list(candidate_user_ids)
    if notes is not None and len(notes) > settings.assignment_notes_max_length:
        raise InvalidAssignmentRequest(
            f"Notes cannot exceed {settings.assignment_notes_max_length} characters"
        )

    await resolve_agent(db, agent_id)
    hrs = await resolve_users(db, requested_hrs, UserRole.HR)
    candidates = await resolve_users(db, requested_candidates, UserRole.CANDIDATE)
    filtered = summarize_filtering(requested_hrs, requested_candidates, hrs, candidates)
    ensure_assignable(hrs, candidates)

    provisioned = await ensure_candidate_profiles(db, candidates.valid)

    async with conflict_guard(db, agent_id):
        reassignments = await strip_from_other_agents(
            db, agent_id, hrs.valid, provisioned.profile_ids, ctx
        )
        merged = await merge_into_assignment(
            db,
            agent_id,
            hrs.valid,
            provisioned.profile_ids,
            ctx,
            notes=notes,
            created_profile_ids=provisioned.created_profile_ids,
        )
        await db.commit()

    logger.info(
        f"Assigned {len(hrs.valid)} HRs and {len(provisioned.profile_ids)} candidates "
        f"to agent {agent_id} ({len(reassignments)} reassignments)",
        extra={"agent_id": agent_id, "request_id": ctx.request_id},
    )
    return AssignOutcome(
        assignment=merged.assignment,
        created=merged.created,
        filtered_users=filtered,
        reassignments=reassignments,
        created_profile_ids=provisioned.created_profile_ids,
    )


async def list_assignments(db: AsyncSession, ctx: RequestContext) -> list[dict[str, Any]]:
    """Active assignments, most recently assigned first, with details expanded."""
    result = await db.execute(
        select(AgentAssignment)
        .where(AgentAssignment.status == AssignmentStatus.ACTIVE.value)
        .order_by(AgentAssignment.assigned_at.desc(), AgentAssignment.id.desc())
    )
    assignments = list(result.scalars().all())
    expanded = await expand_assignments(db, assignments)

    record_audit(
        db,
        ctx,
        AuditAction.READ,
        AGENT_ASSIGNMENT_ENTITY,
        None,
        metadata={"queryType": "list_all", "resultCount": len(expanded)},
        description=f"Retrieved {len(expanded)} agent assignments",
    )
    await db.commit()
    return expanded


async def get_assignment_for_agent(
    db: AsyncSession, agent_id: int, ctx: RequestContext
) -> dict[str, Any]:
    """
    Raises:
        AssignmentNotFoundError: The agent has no active assignment
    """
    assignment = await get_assignment(db, agent_id, active_only=True)
    if assignment is None:
        raise AssignmentNotFoundError(details={"agentId": agent_id})

    (expanded,) = await expand_assignments(db, [assignment])
    record_audit(
        db,
        ctx,
        AuditAction.READ,
        AGENT_ASSIGNMENT_ENTITY,
        assignment.id,
        description="Retrieved agent assignment details",
    )
    await db.commit()
    return expanded


def default_assignment(agent: User) -> dict[str, Any]:
    """Placeholder returned to an agent who has not been assigned anything."""
    return {
        "id": None,
        "agentId": agent.id,
        "agent": user_to_summary(agent),
        "assignedHRs": [],
        "assignedCandidates": [],
        "assignedBy": None,
        "status": AssignmentStatus.INACTIVE.value,
        "notes": DEFAULT_ASSIGNMENT_NOTES,
        "hrCount": 0,
        "candidateCount": 0,
        "version": None,
        "assignedAt": None,
        "createdAt": None,
        "updatedAt": None,
    }


async def get_my_assignment(
    db: AsyncSession, agent: User, ctx: RequestContext
) -> dict[str, Any]:
    """The calling agent's active assignment, or a default when there is none."""
    assignment = await get_assignment(db, agent.id, active_only=True)
    if assignment is None:
        data = default_assignment(agent)
        record_audit(
            db,
            ctx,
            AuditAction.READ,
            AGENT_ASSIGNMENT_ENTITY,
            None,
            metadata={"agentId": agent.id},
            description="Retrieved default agent assignment (no assignment found)",
        )
    else:
        (data,) = await expand_assignments(db, [assignment])
        record_audit(
            db,
            ctx,
            AuditAction.READ,
            AGENT_ASSIGNMENT_ENTITY,
            assignment.id,
            description="Retrieved current agent assignment details",
        )
    await db.commit()
    return data


async def _profile_ids_for_users(db: AsyncSession, user_ids: list[int]) -> list[int]:
    if not user_ids:
        return []
    result = await db.execute(
        select(CandidateProfile.user_id, CandidateProfile.id).where(
            CandidateProfile.user_id.in_(user_ids)
        )
    )
    by_user = dict(result.all())
    return [by_user[user_id] for user_id in user_ids if user_id in by_user]


async def remove_resources(
    db: AsyncSession,
    agent_id: int,
    hr_ids: Iterable[int],
    candidate_user_ids: Iterable[int],
    ctx: RequestContext,
) -> dict[str, Any]:
    """
    Take HR users and candidates away from an agent.

    IDs the agent does not hold are ignored.

    Returns:
        The re-read assignment with details expanded

    Raises:
        InvalidAssignmentRequest: Both lists are empty
        AssignmentNotFoundError: The agent has no assignment
        ConcurrentModificationError: A concurrent request changed the assignment
    """
    hr_ids = dedupe(hr_ids)
    candidate_user_ids = dedupe(candidate_user_ids)
    if not hr_ids and not candidate_user_ids:
        raise InvalidAssignmentRequest("Provide at least one HR or candidate ID to remove")

    assignment = await get_assignment(db, agent_id)
    if assignment is None:
        raise AssignmentNotFoundError(details={"agentId": agent_id})
    profile_ids = await _profile_ids_for_users(db, candidate_user_ids)

    async with conflict_guard(db, agent_id):
        before = assignment.to_snapshot()
        removed_hrs = assignment.remove_hrs(hr_ids)
        removed_candidates = assignment.remove_candidates(profile_ids)
        if removed_hrs or removed_candidates:
            assignment.touch(ctx.actor_id)
        await db.flush()

        record_audit(
            db,
            ctx,
            AuditAction.UPDATE,
            AGENT_ASSIGNMENT_ENTITY,
            assignment.id,
            before=before,
            after=assignment.to_snapshot(),
            metadata={
                "agentId": agent_id,
                "removedHRCount": len(removed_hrs),
                "removedCandidateCount": len(removed_candidates),
                "removedHRs": removed_hrs,
                "removedCandidates": removed_candidates,
            },
            description=(
                f"Removed {len(removed_hrs)} HR users and {len(removed_candidates)} "
                f"candidates from agent {agent_id}"
            ),
        )
        await db.commit()

    logger.info(
        f"Removed HRs {removed_hrs} and candidates {removed_candidates} from agent {agent_id}",
        extra={"agent_id": agent_id, "assignment_id": assignment.id},
    )
    refreshed = await get_assignment(db, agent_id)
    if refreshed is None:
        raise AssignmentNotFoundError(details={"agentId": agent_id})
    (expanded,) = await expand_assignments(db, [refreshed])
    return expanded


async def delete_assignment(
    db: AsyncSession, agent_id: int, ctx: RequestContext
) -> dict[str, Any]:
    """
    Delete an agent's assignment.

    Returns:
        The pre-deletion snapshot

    Raises:
        AssignmentNotFoundError: The agent has no assignment
    """
    assignment = await get_assignment(db, agent_id)
    if assignment is None:
        raise AssignmentNotFoundError(details={"agentId": agent_id})

    snapshot = assignment.to_snapshot()
    async with conflict_guard(db, agent_id):
        await db.delete(assignment)
        record_audit(
            db,
            ctx,
            AuditAction.DELETE,
            AGENT_ASSIGNMENT_ENTITY,
            snapshot["id"],
            before=snapshot,
            metadata={"agentId": agent_id},
            description=f"Deleted assignment for agent {agent_id}",
            risk_level=RiskLevel.HIGH,
        )
        await db.commit()

    logger.info(
        f"Deleted assignment {snapshot['id']}",
        extra={"agent_id": agent_id, "assignment_id": snapshot["id"]},
    )
    return snapshot


async def get_agent_scope(db: AsyncSession, agent_id: int) -> AgentScope:
    """HR user and candidate profile IDs an agent may work with."""
    assignment = await get_assignment(db, agent_id, active_only=True)
    if assignment is None:
        return AgentScope()
    return AgentScope(
        hr_ids=assignment.assigned_hrs,
        candidate_profile_ids=assignment.assigned_candidates,
    )
