"""
Agent assignment endpoints.

Admins hand HR users and candidates to agents; agents read their own roster.
"""

from fastapi import APIRouter, Depends, Path, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_request_context, require_admin, require_agent
from api.schemas.assignments import (
    AssignAgentResourcesRequest,
    AssignResourcesResponse,
    AssignmentDetail,
    DeletedAssignment,
    RemoveAgentResourcesRequest,
)
from api.schemas.common import ApiResponse
from api.services import agent_assignments
from api.services.agent_assignments.service import assignment_to_dict
from api.services.audit import RequestContext
from database.engine import get_db
from database.models.users import User

router = APIRouter(prefix="/users/agent-assignments", tags=["agent-assignments"])


@router.post(
    "",
    response_model=AssignResourcesResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Assign Resources",
    description=(
        "Assign HR users and candidates to an agent, removing them from any other "
        "agent. Unknown or inactive IDs are dropped and reported in filteredUsers. "
        "Returns 201 when the assignment is created and 200 when it is updated."
    ),
    dependencies=[Depends(require_admin)],
)
async def assign_resources(
    request: AssignAgentResourcesRequest,
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db),
):
    """Create or merge into an agent's assignment."""
    outcome = await agent_assignments.assign_resources(
        db,
        agent_id=request.agent_id,
        hr_ids=request.hr_ids,
        candidate_user_ids=request.candidate_ids,
        ctx=ctx,
        notes=request.notes,
    )

    body = AssignResourcesResponse(
        message=(
            "Agent assignment created successfully"
            if outcome.created
            else "Agent assignment updated successfully"
        ),
        data=assignment_to_dict(outcome.assignment),
        filteredUsers=outcome.filtered_users.to_dict() if outcome.filtered_users else None,
        reassignments=[r.to_dict() for r in outcome.reassignments],
        createdCandidateProfiles=outcome.created_profile_ids,
    )
    content = body.model_dump(mode="json", by_alias=True)
    if outcome.filtered_users is None:
        content.pop("filteredUsers")

    return JSONResponse(
        status_code=status.HTTP_201_CREATED if outcome.created else status.HTTP_200_OK,
        content=content,
    )


@router.get(
    "",
    response_model=ApiResponse[list[AssignmentDetail]],
    summary="List Assignments",
    dependencies=[Depends(require_admin)],
)
async def list_assignments(
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db),
):
    """All active assignments, most recently assigned first."""
    data = await agent_assignments.list_assignments(db, ctx)
    return {"success": True, "data": data}


# Declared before /{agent_id} so "me" is not parsed as an agent ID
@router.get(
    "/me",
    response_model=ApiResponse[AssignmentDetail],
    summary="Get My Assignment",
)
async def get_my_assignment(
    current_user: User = Depends(require_agent),
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db),
):
    """The calling agent's assignment, or an empty default."""
    data = await agent_assignments.get_my_assignment(db, current_user, ctx)
    return {"success": True, "data": data}


@router.get(
    "/{agent_id}",
    response_model=ApiResponse[AssignmentDetail],
    summary="Get Agent Assignment",
    dependencies=[Depends(require_admin)],
)
async def get_agent_assignment(
    agent_id: int = Path(..., gt=0),
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db),
):
    """One agent's active assignment with details expanded."""
    data = await agent_assignments.get_assignment_for_agent(db, agent_id, ctx)
    return {"success": True, "data": data}


@router.patch(
    "/{agent_id}/remove",
    response_model=ApiResponse[AssignmentDetail],
    summary="Remove Resources",
    dependencies=[Depends(require_admin)],
)
async def remove_resources(
    request: RemoveAgentResourcesRequest,
    agent_id: int = Path(..., gt=0),
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db),
):
    """Take HR users and candidates away from an agent."""
    data = await agent_assignments.remove_resources(
        db,
        agent_id=agent_id,
        hr_ids=request.hr_ids,
        candidate_user_ids=request.candidate_ids,
        ctx=ctx,
    )
    return {
        "success": True,
        "message": "Resources removed from agent assignment",
        "data": data,
    }


@router.delete(
    "/{agent_id}",
    response_model=ApiResponse[DeletedAssignment],
    summary="Delete Assignment",
    dependencies=[Depends(require_admin)],
)
async def delete_assignment(
    agent_id: int = Path(..., gt=0),
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db),
):
    """Delete an agent's assignment."""
    snapshot = await agent_assignments.delete_assignment(db, agent_id, ctx)
    return {
        "success": True,
        "message": "Agent assignment deleted successfully",
        "data": snapshot,
    }
