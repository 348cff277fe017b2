from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    String,
    ForeignKey,
    BigInteger,
    DateTime,
    func,
    event,
    JSON,
    Text,
    Enum as SQLEnum,
)
from database.engine import Base, BigIntPK, utcnow
from datetime import datetime
from enum import Enum as PyEnum
from typing import Any


def _values(enum) -> list[str]:
    return [member.value for member in enum]


# ============ Audit Enums ============ #
class AuditAction(str, PyEnum):
    """Audit action types."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


class RiskLevel(str, PyEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class BusinessProcess(str, PyEnum):
    AGENT_MANAGEMENT = "agent_management"


class AuditLogImmutableError(Exception):
    """Raised when code tries to change or remove a persisted audit entry."""


# ==================== Models ===================== #
class AuditLog(Base):
    """
    Append-only audit trail. Entries are written in the same transaction as
    the change they describe and are never updated or deleted.
    """

    __tablename__ = "audit_logs"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)

    # Actor
    actor_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="SET NULL"), index=True
    )

    # Action
    action: Mapped[AuditAction] = mapped_column(
        SQLEnum(AuditAction, native_enum=False, length=20, values_callable=_values),
        nullable=False,
        index=True,
    )
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    entity_id: Mapped[int | None] = mapped_column(BigInteger, index=True)

    # Details
    description: Mapped[str | None] = mapped_column(Text)
    before: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    after: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    # "metadata" is reserved on declarative classes
    meta: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON)

    business_process: Mapped[BusinessProcess] = mapped_column(
        SQLEnum(BusinessProcess, native_enum=False, length=50, values_callable=_values),
        nullable=False,
        default=BusinessProcess.AGENT_MANAGEMENT,
    )
    risk_level: Mapped[RiskLevel] = mapped_column(
        SQLEnum(RiskLevel, native_enum=False, length=20, values_callable=_values),
        nullable=False,
        default=RiskLevel.LOW,
    )

    # Request context
    ip_address: Mapped[str | None] = mapped_column(String(45))
    user_agent: Mapped[str | None] = mapped_column(Text)
    request_id: Mapped[str | None] = mapped_column(String(64), index=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
        index=True,
    )


@event.listens_for(AuditLog, "before_update")
def _reject_audit_update(mapper, connection, target):
    raise AuditLogImmutableError(f"Audit log entry {target.id} cannot be modified")


@event.listens_for(AuditLog, "before_delete")
def _reject_audit_delete(mapper, connection, target):
    raise AuditLogImmutableError(f"Audit log entry {target.id} cannot be deleted")
