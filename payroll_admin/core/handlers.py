import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from payroll_admin.core.authorization import Capability, require_capability
from payroll_admin.core.context import RequestContext
from payroll_admin.core.errors import PayrollError
from payroll_admin.database import SessionLocal
from payroll_admin.schemas.validation import validate_request
from payroll_admin.services.audit_logger import AuditEvent, log_audit_event

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "GET, POST, PUT, PATCH, DELETE, OPTIONS",
}


@dataclass
class MutationOutcome:
    message: str
    resource_key: Optional[str] = None
    resource: Any = None
    resource_id: Optional[str] = None
    action: Optional[str] = None
    details: dict[str, Any] = field(default_factory=dict)


def success_response(outcome: MutationOutcome) -> JSONResponse:
    content: dict[str, Any] = {"success": True, "message": outcome.message}
    if outcome.resource_key is not None:
        content[outcome.resource_key] = outcome.resource
    return JSONResponse(status_code=200, content=content, headers=CORS_HEADERS)


def error_response(exc: PayrollError) -> JSONResponse:
    content: dict[str, Any] = {"success": False, "message": exc.message, "code": exc.code}
    errors = getattr(exc, "errors", None)
    if errors:
        content["errors"] = errors
    return JSONResponse(status_code=exc.status_code, content=content, headers=CORS_HEADERS)


def internal_error_response() -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Internal server error", "code": "INTERNAL_ERROR"},
        headers=CORS_HEADERS,
    )


def _body_resource_id(body: Any) -> Optional[str]:
    if isinstance(body, dict) and body.get("id") is not None:
        return str(body.get("id"))
    return None


def _audit(
    ctx: RequestContext,
    resource: str,
    action: str,
    result: str,
    resource_id: Optional[str],
    details: dict[str, Any],
) -> None:
    log_audit_event(
        AuditEvent(
            user_id=ctx.user_id,
            organization_id=ctx.organization_id,
            action=action,
            resource=resource,
            resource_id=resource_id,
            details=details,
            ip_address=ctx.ip_address,
            user_agent=ctx.user_agent,
            result=result,
            timestamp=ctx.now(),
        )
    )


def run_mutation(
    ctx: RequestContext,
    *,
    resource: str,
    action: str,
    capability: Optional[Capability],
    schema,
    body: Any,
    operation: Callable[[Any, RequestContext, Session], MutationOutcome],
) -> JSONResponse:
    """
    Gate, validate, execute and audit one mutating request.

    Exactly one audit entry is written whatever the outcome.
    """
    resource_id = _body_resource_id(body)
    db: Optional[Session] = None
    try:
        if capability is not None:
            require_capability(ctx.principal, capability)

        payload = validate_request(schema, body)

        db = SessionLocal()
        outcome = operation(payload, ctx, db)
    except PayrollError as exc:
        if db is not None:
            db.rollback()
        details = {"error": exc.message, "code": exc.code, **exc.details}
        _audit(ctx, resource, action, exc.result, resource_id, details)
        logger.info(
            "mutation_rejected",
            extra={"resource": resource, "action": action, "code": exc.code, "user_id": ctx.user_id},
        )
        return error_response(exc)
    except Exception as exc:
        if db is not None:
            db.rollback()
        logger.exception("mutation_failed", extra={"resource": resource, "action": action})
        _audit(ctx, resource, action, "failure", resource_id, {"error": str(exc), "code": "INTERNAL_ERROR"})
        return internal_error_response()
    finally:
        if db is not None:
            db.close()

    _audit(
        ctx,
        resource,
        outcome.action or action,
        "success",
        outcome.resource_id or resource_id,
        outcome.details,
    )
    return success_response(outcome)
