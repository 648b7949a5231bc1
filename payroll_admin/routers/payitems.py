from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from payroll_admin.core.authorization import Capability
from payroll_admin.core.context import RequestContext
from payroll_admin.core.handlers import CORS_HEADERS, MutationOutcome, run_mutation
from payroll_admin.deps.auth import require_auth
from payroll_admin.deps.body import read_json_body
from payroll_admin.schemas.pay_item import PayItemCreate, PayItemDelete, PayItemUpdate
from payroll_admin.schemas.pay_run import PayItemOut
from payroll_admin.services import pay_item_service

router = APIRouter(prefix="/payitems", tags=["Pay Items"])

RESOURCE = "pay_item"


def _serialize(item) -> dict:
    return PayItemOut.model_validate(item).model_dump(mode="json")


def _create(payload: PayItemCreate, ctx: RequestContext, db: Session) -> MutationOutcome:
    item = pay_item_service.create_pay_item(payload, ctx, db)
    return MutationOutcome(
        message="Pay item created successfully",
        resource_key="pay_item",
        resource=_serialize(item),
        resource_id=item.id,
        details={"pay_run_id": item.pay_run_id, "employee_id": item.employee_id},
    )


def _update(payload: PayItemUpdate, ctx: RequestContext, db: Session) -> MutationOutcome:
    item = pay_item_service.update_pay_item(payload, ctx, db)
    return MutationOutcome(
        message="Pay item updated successfully",
        resource_key="pay_item",
        resource=_serialize(item),
        resource_id=item.id,
        details={"pay_run_id": item.pay_run_id, "updated_fields": sorted(payload.model_fields_set - {"id"})},
    )


def _delete(payload: PayItemDelete, ctx: RequestContext, db: Session) -> MutationOutcome:
    item = pay_item_service.delete_pay_item(payload, ctx, db)
    return MutationOutcome(
        message="Pay item deleted successfully",
        resource_id=item.id,
        details={"pay_run_id": item.pay_run_id, "employee_id": item.employee_id},
    )


@router.options("")
def payitems_preflight():
    return PlainTextResponse("ok", headers=CORS_HEADERS)


@router.post("")
def create_pay_item(body: Any = Depends(read_json_body), ctx: RequestContext = Depends(require_auth)):
    return run_mutation(
        ctx,
        resource=RESOURCE,
        action="create",
        capability=Capability.PREPARE_PAYROLL,
        schema=PayItemCreate,
        body=body,
        operation=_create,
    )


@router.api_route("", methods=["PUT", "PATCH"])
def update_pay_item(body: Any = Depends(read_json_body), ctx: RequestContext = Depends(require_auth)):
    return run_mutation(
        ctx,
        resource=RESOURCE,
        action="update",
        capability=Capability.PREPARE_PAYROLL,
        schema=PayItemUpdate,
        body=body,
        operation=_update,
    )


@router.delete("")
def delete_pay_item(body: Any = Depends(read_json_body), ctx: RequestContext = Depends(require_auth)):
    return run_mutation(
        ctx,
        resource=RESOURCE,
        action="delete",
        capability=Capability.PREPARE_PAYROLL,
        schema=PayItemDelete,
        body=body,
        operation=_delete,
    )
