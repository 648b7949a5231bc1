from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from payroll_admin.core.authorization import Capability
from payroll_admin.core.context import RequestContext
from payroll_admin.core.handlers import CORS_HEADERS, MutationOutcome, run_mutation
from payroll_admin.deps.auth import require_auth
from payroll_admin.deps.body import read_json_body
from payroll_admin.schemas.user import UserDelete, UserOut, UserUpdate
from payroll_admin.services import user_service

router = APIRouter(prefix="/users", tags=["Users"])

RESOURCE = "user"


def _update(payload: UserUpdate, ctx: RequestContext, db: Session) -> MutationOutcome:
    profile, details = user_service.update_user(payload, ctx, db)
    return MutationOutcome(
        message="User updated successfully",
        resource_key="user",
        resource=UserOut.model_validate(profile).model_dump(mode="json"),
        resource_id=profile.id,
        details=details,
    )


def _delete(payload: UserDelete, ctx: RequestContext, db: Session) -> MutationOutcome:
    profile, mode = user_service.delete_user(payload, ctx, db)
    message = "User permanently deleted" if mode == "hard" else "User deactivated successfully"
    return MutationOutcome(
        message=message,
        resource_id=profile.id,
        details={"hard_delete": mode == "hard"},
    )


@router.options("")
def users_preflight():
    return PlainTextResponse("ok", headers=CORS_HEADERS)


@router.api_route("", methods=["PUT", "PATCH"])
def update_user(body: Any = Depends(read_json_body), ctx: RequestContext = Depends(require_auth)):
    return run_mutation(
        ctx,
        resource=RESOURCE,
        action="update",
        capability=Capability.MANAGE_USERS,
        schema=UserUpdate,
        body=body,
        operation=_update,
    )


@router.delete("")
def delete_user(body: Any = Depends(read_json_body), ctx: RequestContext = Depends(require_auth)):
    return run_mutation(
        ctx,
        resource=RESOURCE,
        action="delete",
        capability=Capability.MANAGE_USERS,
        schema=UserDelete,
        body=body,
        operation=_delete,
    )
