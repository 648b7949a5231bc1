import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from payroll_admin.core.authorization import Capability, require_capability
from payroll_admin.core.context import RequestContext
from payroll_admin.core.errors import IntegrationError
from payroll_admin.deps.auth import require_auth
from payroll_admin.integrations.zoho.api_client import ZohoApiError
from payroll_admin.integrations.zoho.auth import ZohoAuthError
from payroll_admin.integrations.zoho.monitoring import ZohoIntegration, build_integration
from payroll_admin.services.audit_logger import AuditEvent, log_audit_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/integrations/zoho", tags=["Zoho People"])


def _integration(ctx: RequestContext) -> ZohoIntegration:
    require_capability(ctx.principal, Capability.MANAGE_INTEGRATIONS)
    return build_integration(ctx.organization_id)


def _audit_sync(ctx: RequestContext, sync_type: str, result: str, details: dict) -> None:
    log_audit_event(
        AuditEvent(
            user_id=ctx.user_id,
            organization_id=ctx.organization_id,
            action="sync",
            resource=f"zoho_{sync_type}",
            result=result,
            details=details,
            ip_address=ctx.ip_address,
            user_agent=ctx.user_agent,
            timestamp=ctx.now(),
        )
    )


def _run_sync(ctx: RequestContext, sync_type: str, call) -> dict:
    try:
        status = call()
    except (ZohoApiError, ZohoAuthError, ValueError) as exc:
        _audit_sync(ctx, sync_type, "failure", {"error": str(exc)})
        raise IntegrationError(f"Zoho {sync_type} sync failed: {exc}") from exc

    _audit_sync(ctx, sync_type, "success", status.as_dict())
    return {"success": True, "message": f"Zoho {sync_type} sync {status.status}", "sync": status.as_dict()}


@router.get("/auth-url")
def get_auth_url(state: Optional[str] = None, ctx: RequestContext = Depends(require_auth)):
    integration = _integration(ctx)
    return {"success": True, "auth_url": integration.auth.generate_auth_url(state)}


@router.get("/oauth/callback")
def oauth_callback(code: str = Query(..., min_length=1), ctx: RequestContext = Depends(require_auth)):
    integration = _integration(ctx)
    try:
        tokens = integration.auth.exchange_code_for_tokens(code)
    except ZohoAuthError as exc:
        raise IntegrationError(str(exc)) from exc
    return {
        "success": True,
        "message": "Zoho People connected",
        "expires_at": tokens.expires_at.isoformat(),
    }


@router.get("/status")
def get_status(ctx: RequestContext = Depends(require_auth)):
    integration = _integration(ctx)
    return {
        "success": True,
        "auth": integration.auth.get_auth_status(),
        "sync": integration.sync.get_sync_status(),
    }


@router.post("/sync/employees")
def sync_employees(
    department: Optional[str] = None,
    status: Optional[str] = None,
    ctx: RequestContext = Depends(require_auth),
):
    integration = _integration(ctx)
    return _run_sync(
        ctx,
        "employee",
        lambda: integration.sync.sync_employees_from_zoho(department=department, status=status),
    )


@router.post("/sync/attendance")
def sync_attendance(
    start_date: str = Query(..., pattern=r"^\d{4}-\d{2}-\d{2}$"),
    end_date: str = Query(..., pattern=r"^\d{4}-\d{2}-\d{2}$"),
    ctx: RequestContext = Depends(require_auth),
):
    integration = _integration(ctx)
    return _run_sync(ctx, "attendance", lambda: integration.sync.sync_attendance_from_zoho(start_date, end_date))


@router.post("/sync/payroll/{pay_run_id}")
def sync_payroll(pay_run_id: str, ctx: RequestContext = Depends(require_auth)):
    integration = _integration(ctx)
    return _run_sync(ctx, "payroll", lambda: integration.sync.sync_payroll_to_zoho(pay_run_id))


@router.get("/health")
def get_health(refresh: bool = False, ctx: RequestContext = Depends(require_auth)):
    integration = _integration(ctx)
    monitoring = integration.monitoring
    health = monitoring.perform_health_check() if refresh else monitoring.get_current_health()
    return {"success": True, "health": health.as_dict()}
