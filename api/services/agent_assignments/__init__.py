"""Agent resource ownership: resolve, provision, reconcile, merge."""

from api.services.agent_assignments.service import (
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

__all__ = [
    "AgentScope",
    "AssignOutcome",
    "assign_resources",
    "delete_assignment",
    "get_agent_scope",
    "get_assignment_for_agent",
    "get_my_assignment",
    "list_assignments",
    "remove_resources",
]
