"""Import every model so ``Base.metadata`` knows all tables."""

from database.models.users import User, UserRole, UserStatus
from database.models.candidates import CandidateProfile
from database.models.assignments import (
    AgentAssignment,
    AgentAssignmentCandidate,
    AgentAssignmentHR,
    AssignmentStatus,
)
from database.models.audit import AuditAction, AuditLog, BusinessProcess, RiskLevel

__all__ = [
    "User",
    "UserRole",
    "UserStatus",
    "CandidateProfile",
    "AgentAssignment",
    "AgentAssignmentCandidate",
    "AgentAssignmentHR",
    "AssignmentStatus",
    "AuditAction",
    "AuditLog",
    "BusinessProcess",
    "RiskLevel",
]
