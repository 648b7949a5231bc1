from typing import Any, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from payroll_admin.core.authorization import Capability, require_capability
from payroll_admin.core.context import RequestContext
from payroll_admin.core.errors import NotFound, PermissionDenied
from payroll_admin.core.handlers import MutationOutcome, run_mutation
from payroll_admin.database import SessionLocal
from payroll_admin.deps.auth import require_auth
from payroll_admin.deps.body import read_json_body
from payroll_admin.schemas.rbac import EffectivePermissionsResponse, GrantCreate, GrantDelete, GrantOut
from payroll_admin.services import rbac_service
from payroll_admin.services.pay_run_service import require_organization

router = APIRouter(prefix="/rbac", tags=["RBAC"])

RESOURCE = "rbac_grant"


def _serialize(grant) -> dict:
    return GrantOut.model_validate(grant).model_dump(mode="json")


def _create(payload: GrantCreate, ctx: RequestContext, db: Session) -> MutationOutcome:
    organization_id = require_organization(ctx)
    grant = rbac_service.create_grant(
        user_id=payload.user_id,
        role_code=payload.role_code,
        permission_key=payload.permission_key,
        scope_type=payload.scope_type,
        scope_id=payload.scope_id or organization_id,
        effect=payload.effect,
        reason=payload.reason,
        valid_until=payload.valid_until,
        created_by=ctx.user_id,
        db=db,
    )
    db.commit()
    return MutationOutcome(
        message="Grant created successfully",
        resource_key="grant",
        resource=_serialize(grant),
        resource_id=grant.id,
        details={
            "permission_key": grant.permission_key,
            "effect": grant.effect,
            "target_user_id": grant.user_id,
            "role_code": grant.role_code,
        },
    )


def _delete(payload: GrantDelete, ctx: RequestContext, db: Session) -> MutationOutcome:
    scope = None if ctx.principal.is_platform_admin else require_organization(ctx)
    grant = rbac_service.delete_grant(payload.id, scope, db=db)
    if grant is None:
        raise NotFound("Grant not found", details={"grant_id": payload.id})
    db.commit()
    return MutationOutcome(
        message="Grant deleted successfully",
        resource_id=grant.id,
        details={"permission_key": grant.permission_key, "effect": grant.effect},
    )


@router.get("/grants")
def list_grants(user_id: Optional[str] = None, ctx: RequestContext = Depends(require_auth)):
    require_capability(ctx.principal, Capability.ASSIGN_ROLES)

    db: Session = SessionLocal()
    try:
        grants = rbac_service.list_grants(ctx.organization_id, user_id=user_id, db=db)
        return {"success": True, "grants": [_serialize(g) for g in grants]}
    finally:
        db.close()


@router.post("/grants")
def create_grant(body: Any = Depends(read_json_body), ctx: RequestContext = Depends(require_auth)):
    return run_mutation(
        ctx,
        resource=RESOURCE,
        action="create",
        capability=Capability.ASSIGN_ROLES,
        schema=GrantCreate,
        body=body,
        operation=_create,
    )


@router.delete("/grants/{grant_id}")
def delete_grant(grant_id: str, ctx: RequestContext = Depends(require_auth)):
    return run_mutation(
        ctx,
        resource=RESOURCE,
        action="delete",
        capability=Capability.ASSIGN_ROLES,
        schema=GrantDelete,
        body={"id": grant_id},
        operation=_delete,
    )


@router.get("/effective-permissions", response_model=EffectivePermissionsResponse)
def get_effective_permissions(user_id: Optional[str] = None, ctx: RequestContext = Depends(require_auth)):
    target = user_id or ctx.user_id
    if target != ctx.user_id and not ctx.principal.has(Capability.ASSIGN_ROLES):
        raise PermissionDenied("Only role administrators can inspect other users' permissions")

    decisions = rbac_service.effective_permissions(target, ctx.organization_id)
    return {
        "success": True,
        "user_id": target,
        "organization_id": ctx.organization_id,
        "permissions": [
            {"permission": d.permission, "allowed": d.allowed, "source": d.source} for d in decisions
        ],
    }
