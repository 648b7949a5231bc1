import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from payroll_admin.database import SessionLocal
from payroll_admin.models.audit_log import AuditLog

logger = logging.getLogger(__name__)

AUDIT_RESULTS = ("success", "failure", "denied")


@dataclass
class AuditEvent:
    user_id: Optional[str]
    organization_id: Optional[str]
    action: str
    resource: str
    result: str
    resource_id: Optional[str] = None
    details: dict[str, Any] = field(default_factory=dict)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    timestamp: Optional[datetime] = None


def log_audit_event(event: AuditEvent) -> bool:
    """
    Append one row to audit_logs in a session of its own.

    Never raises: a failed write is reported to the operator log and the
    caller carries on. Returns whether the row was stored.
    """
    db = SessionLocal()
    try:
        if event.result not in AUDIT_RESULTS:
            raise ValueError(f"Invalid audit result: {event.result}")

        db.add(
            AuditLog(
                user_id=event.user_id,
                organization_id=event.organization_id,
                action=event.action,
                resource=event.resource,
                resource_id=None if event.resource_id is None else str(event.resource_id),
                details=event.details or {},
                ip_address=event.ip_address,
                user_agent=event.user_agent,
                result=event.result,
                timestamp=event.timestamp or datetime.now(timezone.utc),
            )
        )
        db.commit()
        return True
    except Exception:
        db.rollback()
        logger.exception(
            "audit_log_write_failed",
            extra={
                "audit_action": event.action,
                "audit_resource": event.resource,
                "audit_resource_id": event.resource_id,
                "audit_result": event.result,
            },
        )
        return False
    finally:
        db.close()
