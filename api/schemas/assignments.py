"""Request and response schemas for agent assignments."""

from datetime import datetime
from typing import Optional
from pydantic import Field, PositiveInt, model_validator

from api.schemas.common import CamelModel
from core.config import settings


# ============ Requests ============ #
class AssignAgentResourcesRequest(CamelModel):
    """Body of POST /users/agent-assignments."""

    agent_id: PositiveInt = Field(..., alias="agentId", description="Target agent user ID")
    hr_ids: list[PositiveInt] = Field(default_factory=list, alias="hrIds")
    candidate_ids: list[PositiveInt] = Field(
        default_factory=list,
        alias="candidateIds",
        description="Candidate user IDs; profiles are created when missing",
    )
    notes: Optional[str] = Field(
        None,
        max_length=settings.assignment_notes_max_length,
        description="Replaces the current notes when given",
    )


class RemoveAgentResourcesRequest(CamelModel):
    """Body of PATCH /users/agent-assignments/{agentId}/remove."""

    hr_ids: list[PositiveInt] = Field(default_factory=list, alias="hrIds")
    candidate_ids: list[PositiveInt] = Field(default_factory=list, alias="candidateIds")

    @model_validator(mode="after")
    def require_something_to_remove(self) -> "RemoveAgentResourcesRequest":
        if not self.hr_ids and not self.candidate_ids:
            raise ValueError("Provide at least one HR or candidate ID to remove")
        return self


# ============ Responses ============ #
class UserSummary(CamelModel):
    id: int
    first_name: str = Field(alias="firstName")
    last_name: str = Field(alias="lastName")
    email: str
    role: str


class CandidateSummary(CamelModel):
    id: int = Field(description="Candidate profile ID")
    user_id: int = Field(alias="userId")
    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")
    email: Optional[str] = None
    experience_level: str = Field(alias="experienceLevel")
    profile_completion: int = Field(alias="profileCompletion")
    status: str


class AssignmentBase(CamelModel):
    id: Optional[int] = None
    agent_id: int = Field(alias="agentId")
    status: str
    notes: Optional[str] = None
    hr_count: int = Field(0, alias="hrCount")
    candidate_count: int = Field(0, alias="candidateCount")
    version: Optional[int] = None
    assigned_at: Optional[datetime] = Field(None, alias="assignedAt")
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")


class AssignmentResponse(AssignmentBase):
    """Assignment with resources as IDs."""

    assigned_hrs: list[int] = Field(default_factory=list, alias="assignedHRs")
    assigned_candidates: list[int] = Field(
        default_factory=list, alias="assignedCandidates", description="Candidate profile IDs"
    )
    assigned_by: Optional[int] = Field(None, alias="assignedBy")


class AssignmentDetail(AssignmentBase):
    """Assignment with agent, HR, candidate and assigner details expanded."""

    agent: Optional[UserSummary] = None
    assigned_hrs: list[UserSummary] = Field(default_factory=list, alias="assignedHRs")
    assigned_candidates: list[CandidateSummary] = Field(
        default_factory=list, alias="assignedCandidates"
    )
    assigned_by: Optional[UserSummary] = Field(None, alias="assignedBy")


class FilteredUsers(CamelModel):
    original_hr_count: int = Field(alias="originalHRCount")
    active_hr_count: int = Field(alias="activeHRCount")
    original_candidate_count: int = Field(alias="originalCandidateCount")
    active_candidate_count: int = Field(alias="activeCandidateCount")
    dropped_hr_ids: list[int] = Field(default_factory=list, alias="droppedHRIds")
    dropped_candidate_ids: list[int] = Field(default_factory=list, alias="droppedCandidateIds")


class ReassignmentInfo(CamelModel):
    assignment_id: int = Field(alias="assignmentId")
    agent_id: int = Field(alias="agentId")
    removed_hrs: list[int] = Field(default_factory=list, alias="removedHRs")
    removed_candidates: list[int] = Field(default_factory=list, alias="removedCandidates")


class AssignResourcesResponse(CamelModel):
    success: bool = True
    message: str
    data: AssignmentResponse
    filtered_users: Optional[FilteredUsers] = Field(None, alias="filteredUsers")
    reassignments: list[ReassignmentInfo] = Field(default_factory=list)
    created_candidate_profiles: list[int] = Field(
        default_factory=list, alias="createdCandidateProfiles"
    )


class DeletedAssignment(CamelModel):
    id: int
    agent_id: int = Field(alias="agentId")
    assigned_hrs: list[int] = Field(default_factory=list, alias="assignedHRs")
    assigned_candidates: list[int] = Field(default_factory=list, alias="assignedCandidates")
