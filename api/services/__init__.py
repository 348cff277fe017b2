"""
API Services Layer.

Database operations behind the API endpoints: agent resource assignment and
the audit recorder shared by every write.
"""

from api.services.agent_assignments import (
    AgentScope,
    AssignOutcome,
    assign_resources,
    delete_assignment,
    get_agent_scope,
    get_assignment_for_agent,
    get_my_assignment,
    list_assignments,
    remove_resources,
)

from api.services.audit import (
    RequestContext,
    record_audit,
)

__all__ = [
    # Agent assignments
    "AgentScope",
    "AssignOutcome",
    "assign_resources",
    "delete_assignment",
    "get_agent_scope",
    "get_assignment_for_agent",
    "get_my_assignment",
    "list_assignments",
    "remove_resources",
    # Audit
    "RequestContext",
    "record_audit",
]
