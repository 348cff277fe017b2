"""
Audit recorder for agent management.

Entries are added to the caller's session and committed together with the
change they describe; nothing here commits on its own.
"""

from dataclasses import dataclass
from typing import Any, Optional
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from database.models.audit import AuditAction, AuditLog, BusinessProcess, RiskLevel

logger = logging.getLogger(__name__)

AGENT_ASSIGNMENT_ENTITY = "agent_assignment"


@dataclass(frozen=True)
class RequestContext:
    """Who is acting and from where. Required on every audit write."""

    actor_id: Optional[int]
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    request_id: Optional[str] = None


def record_audit(
    db: AsyncSession,
    ctx: RequestContext,
    action: AuditAction,
    entity_type: str,
    entity_id: Optional[int],
    before: Optional[dict[str, Any]] = None,
    after: Optional[dict[str, Any]] = None,
    metadata: Optional[dict[str, Any]] = None,
    description: Optional[str] = None,
    risk_level: RiskLevel = RiskLevel.LOW,
    business_process: BusinessProcess = BusinessProcess.AGENT_MANAGEMENT,
) -> AuditLog:
    """
    Stage an audit entry on the session.

    Args:
        db: Session the audited change is being made in
        ctx: Caller context (actor, IP, user agent, request id)
        action: create/read/update/delete
        entity_type: Kind of record the entry is about
        entity_id: ID of that record, when it has one
        before: State before the change
        after: State after the change
        metadata: Free-form details (counts, reasons, removed IDs)
        description: Human-readable summary
        risk_level: Sensitivity of the action

    Returns:
        The pending AuditLog row
    """
    entry = AuditLog(
        actor_id=ctx.actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        before=before,
        after=after,
        meta=metadata,
        description=description,
        business_process=business_process,
        risk_level=risk_level,
        ip_address=ctx.ip_address,
        user_agent=ctx.user_agent,
        request_id=ctx.request_id,
    )
    db.add(entry)
    logger.info(
        f"Audit {action.value} {entity_type}:{entity_id} by {ctx.actor_id}",
        extra={"request_id": ctx.request_id, "actor_id": ctx.actor_id},
    )
    return entry
