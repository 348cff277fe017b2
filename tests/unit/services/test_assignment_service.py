"""
Tests for the agent assignment service.

Tests:
- Single ownership across agents
- Idempotent assign and reassignment with audit
- Lazy candidate profile provisioning
- Partial filtering and empty-result rejection
- Removal, deletion and read operations
"""

import pytest
from sqlalchemy import select
from sqlalchemy.orm.exc import StaleDataError

from api.services.agent_assignments import (
    assign_resources,
    delete_assignment,
    get_agent_scope,
    get_assignment_for_agent,
    get_my_assignment,
    list_assignments,
    remove_resources,
)
from api.services.agent_assignments.reconciler import REASSIGNMENT_REASON
from api.services.agent_assignments.service import DEFAULT_ASSIGNMENT_NOTES, conflict_guard
from core.exceptions import (
    AgentNotFoundError,
    AssignmentNotFoundError,
    ConcurrentModificationError,
    InvalidAssignmentRequest,
    NoActiveUsersError,
)
from database.models.assignments import AgentAssignment
from database.models.audit import AuditAction, AuditLog
from database.models.candidates import CandidateProfile
from database.models.users import UserRole


@pytest.fixture
def agents(make_user):
    async def _agents(n: int):
        return [await make_user(UserRole.AGENT) for _ in range(n)]

    return _agents


@pytest.fixture
def hrs(make_user):
    async def _hrs(n: int):
        return [await make_user(UserRole.HR) for _ in range(n)]

    return _hrs


@pytest.fixture
def candidates(make_user):
    async def _candidates(n: int):
        return [await make_user(UserRole.CANDIDATE) for _ in range(n)]

    return _candidates


async def _profile_id(db, user_id: int) -> int:
    result = await db.execute(
        select(CandidateProfile.id).where(CandidateProfile.user_id == user_id)
    )
    return result.scalar_one()


class TestAssignResources:
    async def test_creates_assignment(self, db, ctx, agents, hrs, candidates):
        (agent,) = await agents(1)
        h1, h2 = await hrs(2)
        (c1,) = await candidates(1)

        outcome = await assign_resources(db, agent.id, [h1.id, h2.id], [c1.id], ctx, notes="n")

        assert outcome.created is True
        assert outcome.filtered_users is None
        assert outcome.reassignments == []
        assert outcome.assignment.assigned_hrs == [h1.id, h2.id]
        assert outcome.assignment.assigned_candidates == [await _profile_id(db, c1.id)]
        assert outcome.assignment.notes == "n"

    async def test_idempotent(self, db, ctx, agents, hrs, candidates, load_assignment):
        (agent,) = await agents(1)
        h1, h2 = await hrs(2)
        (c1,) = await candidates(1)

        await assign_resources(db, agent.id, [h1.id, h2.id], [c1.id], ctx)
        second = await assign_resources(db, agent.id, [h1.id, h2.id], [c1.id], ctx)

        assert second.created is False
        stored = await load_assignment(agent.id)
        assert stored.assigned_hrs == [h1.id, h2.id]
        assert len(stored.assigned_candidates) == 1

    async def test_reassignment_moves_ownership(
        self, db, ctx, agents, hrs, load_assignment, audit_entries
    ):
        a, b = await agents(2)
        (h,) = await hrs(1)
        first = await assign_resources(db, a.id, [h.id], [], ctx)

        outcome = await assign_resources(db, b.id, [h.id], [], ctx)

        assert h.id not in (await load_assignment(a.id)).assigned_hrs
        assert (await load_assignment(b.id)).assigned_hrs == [h.id]
        assert [r.agent_id for r in outcome.reassignments] == [a.id]
        removal = [
            e
            for e in await audit_entries(entity_id=first.assignment.id, action=AuditAction.UPDATE)
            if e.meta and e.meta.get("reason") == REASSIGNMENT_REASON
        ]
        assert len(removal) == 1
        assert removal[0].meta["removedHRs"] == [h.id]

    async def test_single_ownership_after_many_assigns(self, db, ctx, agents, hrs, candidates):
        a1, a2, a3 = await agents(3)
        h1, h2, h3 = await hrs(3)
        c1, c2 = await candidates(2)

        await assign_resources(db, a1.id, [h1.id, h2.id], [c1.id], ctx)
        await assign_resources(db, a2.id, [h2.id, h3.id], [c1.id, c2.id], ctx)
        await assign_resources(db, a3.id, [h1.id, h3.id], [c2.id], ctx)
        await assign_resources(db, a1.id, [h3.id], [], ctx)

        result = await db.execute(select(AgentAssignment).execution_options(populate_existing=True))
        owners: dict[tuple[str, int], list[int]] = {}
        for assignment in result.scalars().all():
            for hr_id in assignment.assigned_hrs:
                owners.setdefault(("hr", hr_id), []).append(assignment.agent_id)
            for profile_id in assignment.assigned_candidates:
                owners.setdefault(("candidate", profile_id), []).append(assignment.agent_id)
        assert all(len(agent_ids) == 1 for agent_ids in owners.values())
        assert owners[("hr", h3.id)] == [a1.id]
        assert owners[("hr", h1.id)] == [a3.id]

    async def test_lazy_provisioning(self, db, ctx, agents, candidates, count_profiles):
        (agent,) = await agents(1)
        (c,) = await candidates(1)
        assert await count_profiles(c.id) == 0

        outcome = await assign_resources(db, agent.id, [], [c.id], ctx)

        assert await count_profiles(c.id) == 1
        profile_id = await _profile_id(db, c.id)
        assert outcome.assignment.assigned_candidates == [profile_id]
        assert outcome.created_profile_ids == [profile_id]

        await assign_resources(db, agent.id, [], [c.id], ctx)
        assert await count_profiles(c.id) == 1

    async def test_partial_filtering(self, db, ctx, agents, hrs, make_user):
        (agent,) = await agents(1)
        h1, h2 = await hrs(2)
        inactive = await make_user(UserRole.HR, status="inactive")

        outcome = await assign_resources(db, agent.id, [h1.id, h2.id, inactive.id], [], ctx)

        assert outcome.assignment.assigned_hrs == [h1.id, h2.id]
        summary = outcome.filtered_users.to_dict()
        assert summary["originalHRCount"] == 3
        assert summary["activeHRCount"] == 2
        assert summary["droppedHRIds"] == [inactive.id]

    async def test_empty_result_rejected(
        self, db, ctx, agents, make_user, load_assignment, audit_entries
    ):
        (agent,) = await agents(1)
        inactive_hr = await make_user(UserRole.HR, status="inactive")
        not_a_candidate = await make_user(UserRole.HR)

        with pytest.raises(NoActiveUsersError):
            await assign_resources(db, agent.id, [inactive_hr.id, 9999], [not_a_candidate.id], ctx)

        assert await load_assignment(agent.id) is None
        assert await audit_entries() == []

    async def test_unknown_agent_rejected(self, db, ctx, hrs):
        (h,) = await hrs(1)

        with pytest.raises(AgentNotFoundError):
            await assign_resources(db, 9999, [h.id], [], ctx)

    async def test_notes_too_long_rejected(self, db, ctx, agents, hrs):
        (agent,) = await agents(1)
        (h,) = await hrs(1)

        with pytest.raises(InvalidAssignmentRequest):
            await assign_resources(db, agent.id, [h.id], [], ctx, notes="x" * 1001)

    async def test_example_scenario(
        self, db, ctx, agents, hrs, candidates, load_assignment, audit_entries
    ):
        a1, a2 = await agents(2)
        h1, h2, h3 = await hrs(3)
        (c1,) = await candidates(1)
        seeded = await assign_resources(db, a1.id, [h1.id, h2.id], [c1.id], ctx)
        c1_profile = await _profile_id(db, c1.id)
        last_seed_entry = (await audit_entries())[-1].id

        outcome = await assign_resources(db, a2.id, [h2.id, h3.id], [], ctx)

        stored_a1 = await load_assignment(a1.id)
        stored_a2 = await load_assignment(a2.id)
        assert (stored_a1.assigned_hrs, stored_a1.assigned_candidates) == ([h1.id], [c1_profile])
        assert (stored_a2.assigned_hrs, stored_a2.assigned_candidates) == ([h2.id, h3.id], [])

        new_entries = [e for e in await audit_entries() if e.id > last_seed_entry]
        assert len(new_entries) == 2
        a1_entry, a2_entry = new_entries
        assert a1_entry.entity_id == seeded.assignment.id
        assert a1_entry.action == AuditAction.UPDATE
        assert a1_entry.meta["reason"] == REASSIGNMENT_REASON
        assert a2_entry.entity_id == outcome.assignment.id
        assert a2_entry.action == AuditAction.CREATE


class TestRemoveResources:
    async def test_removes_present_ids(self, db, ctx, agents, hrs, candidates):
        (agent,) = await agents(1)
        h1, h2 = await hrs(2)
        (c1,) = await candidates(1)
        await assign_resources(db, agent.id, [h1.id, h2.id], [c1.id], ctx)

        data = await remove_resources(db, agent.id, [h1.id], [c1.id], ctx)

        assert [hr["id"] for hr in data["assignedHRs"]] == [h2.id]
        assert data["assignedCandidates"] == []
        assert data["hrCount"] == 1

    async def test_absent_id_is_noop(self, db, ctx, agents, hrs, audit_entries):
        (agent,) = await agents(1)
        h1, h2 = await hrs(2)
        await assign_resources(db, agent.id, [h1.id], [], ctx)

        data = await remove_resources(db, agent.id, [h2.id], [], ctx)

        assert [hr["id"] for hr in data["assignedHRs"]] == [h1.id]
        entry = (await audit_entries(action=AuditAction.UPDATE))[-1]
        assert entry.meta["removedHRCount"] == 0

    async def test_requires_something_to_remove(self, db, ctx, agents):
        (agent,) = await agents(1)

        with pytest.raises(InvalidAssignmentRequest):
            await remove_resources(db, agent.id, [], [], ctx)

    async def test_missing_assignment(self, db, ctx, agents, hrs):
        (agent,) = await agents(1)
        (h,) = await hrs(1)

        with pytest.raises(AssignmentNotFoundError):
            await remove_resources(db, agent.id, [h.id], [], ctx)

    async def test_records_removal_counts(self, db, ctx, agents, hrs, audit_entries):
        (agent,) = await agents(1)
        h1, h2 = await hrs(2)
        created = await assign_resources(db, agent.id, [h1.id, h2.id], [], ctx)

        await remove_resources(db, agent.id, [h1.id, h2.id], [], ctx)

        entry = (await audit_entries(action=AuditAction.UPDATE, entity_id=created.assignment.id))[-1]
        assert entry.meta["removedHRCount"] == 2
        assert entry.meta["removedHRs"] == [h1.id, h2.id]
        assert entry.before["assignedHRs"] == [h1.id, h2.id]
        assert entry.after["assignedHRs"] == []


class TestDeleteAssignment:
    async def test_deletes_and_audits(self, db, ctx, agents, hrs, load_assignment, audit_entries):
        (agent,) = await agents(1)
        (h,) = await hrs(1)
        created = await assign_resources(db, agent.id, [h.id], [], ctx)

        snapshot = await delete_assignment(db, agent.id, ctx)

        assert snapshot["assignedHRs"] == [h.id]
        assert await load_assignment(agent.id) is None
        (entry,) = await audit_entries(action=AuditAction.DELETE)
        assert entry.entity_id == created.assignment.id
        assert entry.before["assignedHRs"] == [h.id]

    async def test_missing_assignment(self, db, ctx, agents):
        (agent,) = await agents(1)

        with pytest.raises(AssignmentNotFoundError):
            await delete_assignment(db, agent.id, ctx)

    async def test_released_resources_can_be_reassigned(self, db, ctx, agents, hrs):
        a1, a2 = await agents(2)
        (h,) = await hrs(1)
        await assign_resources(db, a1.id, [h.id], [], ctx)
        await delete_assignment(db, a1.id, ctx)

        outcome = await assign_resources(db, a2.id, [h.id], [], ctx)

        assert outcome.reassignments == []
        assert outcome.assignment.assigned_hrs == [h.id]


class TestReadOperations:
    async def test_list_newest_first_with_details(self, db, ctx, agents, hrs, candidates, audit_entries):
        a1, a2 = await agents(2)
        h1, h2 = await hrs(2)
        (c1,) = await candidates(1)
        await assign_resources(db, a1.id, [h1.id], [c1.id], ctx)
        await assign_resources(db, a2.id, [h2.id], [], ctx)

        data = await list_assignments(db, ctx)

        assert [item["agentId"] for item in data] == [a2.id, a1.id]
        older = data[1]
        assert older["agent"]["id"] == a1.id
        assert older["assignedHRs"][0]["email"] == h1.email
        assert older["assignedCandidates"][0]["userId"] == c1.id
        assert older["assignedBy"]["id"] == ctx.actor_id
        (entry,) = await audit_entries(action=AuditAction.READ)
        assert entry.meta == {"queryType": "list_all", "resultCount": 2}

    async def test_get_for_agent(self, db, ctx, agents, hrs):
        (agent,) = await agents(1)
        (h,) = await hrs(1)
        await assign_resources(db, agent.id, [h.id], [], ctx)

        data = await get_assignment_for_agent(db, agent.id, ctx)

        assert data["agentId"] == agent.id
        assert data["assignedHRs"][0]["id"] == h.id

    async def test_get_for_agent_missing(self, db, ctx, agents):
        (agent,) = await agents(1)

        with pytest.raises(AssignmentNotFoundError):
            await get_assignment_for_agent(db, agent.id, ctx)

    async def test_my_assignment_default(self, db, ctx, agents, audit_entries):
        (agent,) = await agents(1)

        data = await get_my_assignment(db, agent, ctx)

        assert data["id"] is None
        assert data["assignedHRs"] == []
        assert data["assignedCandidates"] == []
        assert data["assignedBy"] is None
        assert data["status"] == "inactive"
        assert data["notes"] == DEFAULT_ASSIGNMENT_NOTES
        assert len(await audit_entries(action=AuditAction.READ)) == 1

    async def test_my_assignment_existing(self, db, ctx, agents, hrs):
        (agent,) = await agents(1)
        (h,) = await hrs(1)
        await assign_resources(db, agent.id, [h.id], [], ctx)

        data = await get_my_assignment(db, agent, ctx)

        assert data["status"] == "active"
        assert [hr["id"] for hr in data["assignedHRs"]] == [h.id]

    async def test_agent_scope(self, db, ctx, agents, hrs, candidates):
        a1, a2 = await agents(2)
        (h,) = await hrs(1)
        (c,) = await candidates(1)
        await assign_resources(db, a1.id, [h.id], [c.id], ctx)

        scope = await get_agent_scope(db, a1.id)
        empty = await get_agent_scope(db, a2.id)

        assert scope.hr_ids == [h.id]
        assert scope.candidate_profile_ids == [await _profile_id(db, c.id)]
        assert (empty.hr_ids, empty.candidate_profile_ids) == ([], [])


class TestConflictGuard:
    async def test_stale_data_becomes_conflict(self, db):
        with pytest.raises(ConcurrentModificationError) as exc_info:
            async with conflict_guard(db, 7):
                raise StaleDataError("stale")

        assert exc_info.value.status_code == 409
        assert exc_info.value.details == {"agentId": 7}

    async def test_other_errors_pass_through(self, db):
        with pytest.raises(ValueError):
            async with conflict_guard(db, 7):
                raise ValueError("boom")

    async def test_audit_rolled_back_with_failed_write(self, db, ctx, audit_entries):
        with pytest.raises(ConcurrentModificationError):
            async with conflict_guard(db, 1):
                db.add(
                    AuditLog(
                        actor_id=ctx.actor_id,
                        action=AuditAction.UPDATE,
                        entity_type="agent_assignment",
                    )
                )
                raise StaleDataError("stale")

        assert await audit_entries() == []
