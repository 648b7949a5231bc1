from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from payroll_admin.core.authorization import Capability, require_capability
from payroll_admin.core.context import RequestContext
from payroll_admin.core.handlers import CORS_HEADERS, MutationOutcome, run_mutation
from payroll_admin.database import SessionLocal
from payroll_admin.deps.auth import require_auth
from payroll_admin.deps.body import read_json_body
from payroll_admin.schemas.pay_run import (
    PayItemOut,
    PayRunCreate,
    PayRunDelete,
    PayRunDetailResponse,
    PayRunOut,
    PayRunsResponse,
    PayRunUpdate,
)
from payroll_admin.services import pay_run_service

router = APIRouter(prefix="/payruns", tags=["Pay Runs"])

RESOURCE = "pay_run"


def serialize_pay_run(pay_run) -> dict:
    return PayRunOut.model_validate(pay_run).model_dump(mode="json")


def _create(payload: PayRunCreate, ctx: RequestContext, db: Session) -> MutationOutcome:
    pay_run, population = pay_run_service.create_pay_run(payload, ctx, db)
    return MutationOutcome(
        message=pay_run_service.population_message(population),
        resource_key="pay_run",
        resource=serialize_pay_run(pay_run),
        resource_id=pay_run.id,
        details={
            "pay_run_id": pay_run.pay_run_id,
            "pay_group_master_id": pay_run.pay_group_master_id,
            "membership_source": population.source,
            "pay_items_created": population.created,
            "population_failed_step": population.failed_step,
        },
    )


def _update(payload: PayRunUpdate, ctx: RequestContext, db: Session) -> MutationOutcome:
    pay_run, status_changed, details = pay_run_service.update_pay_run(payload, ctx, db)
    return MutationOutcome(
        message="Pay run status updated successfully" if status_changed else "Pay run updated successfully",
        resource_key="pay_run",
        resource=serialize_pay_run(pay_run),
        resource_id=pay_run.id,
        action="status_change" if status_changed else "update",
        details=details,
    )


def _delete(payload: PayRunDelete, ctx: RequestContext, db: Session) -> MutationOutcome:
    pay_run, mode = pay_run_service.delete_pay_run(payload, ctx, db)
    message = "Pay run permanently deleted" if mode == "hard" else "Pay run soft deleted successfully"
    return MutationOutcome(
        message=message,
        resource_id=pay_run.id,
        details={"hard_delete": mode == "hard", "status": pay_run.status},
    )


@router.options("")
def payruns_preflight():
    return PlainTextResponse("ok", headers=CORS_HEADERS)


@router.post("")
def create_pay_run(body: Any = Depends(read_json_body), ctx: RequestContext = Depends(require_auth)):
    return run_mutation(
        ctx,
        resource=RESOURCE,
        action="create",
        capability=Capability.PREPARE_PAYROLL,
        schema=PayRunCreate,
        body=body,
        operation=_create,
    )


@router.api_route("", methods=["PUT", "PATCH"])
def update_pay_run(body: Any = Depends(read_json_body), ctx: RequestContext = Depends(require_auth)):
    return run_mutation(
        ctx,
        resource=RESOURCE,
        action="update",
        capability=Capability.PREPARE_PAYROLL,
        schema=PayRunUpdate,
        body=body,
        operation=_update,
    )


@router.delete("")
def delete_pay_run(body: Any = Depends(read_json_body), ctx: RequestContext = Depends(require_auth)):
    return run_mutation(
        ctx,
        resource=RESOURCE,
        action="delete",
        capability=Capability.PREPARE_PAYROLL,
        schema=PayRunDelete,
        body=body,
        operation=_delete,
    )


@router.get("", response_model=PayRunsResponse)
def list_pay_runs(
    status: Optional[str] = None,
    pay_group_id: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0, le=1_000_000),
    ctx: RequestContext = Depends(require_auth),
):
    require_capability(ctx.principal, Capability.PREPARE_PAYROLL)

    db: Session = SessionLocal()
    try:
        rows = pay_run_service.list_pay_runs(
            db,
            ctx,
            status=status,
            pay_group_id=pay_group_id,
            limit=limit,
            offset=offset,
        )
        return {
            "success": True,
            "limit": int(limit),
            "offset": int(offset),
            "rows": [serialize_pay_run(r) for r in rows],
        }
    finally:
        db.close()


@router.get("/{pay_run_id}", response_model=PayRunDetailResponse)
def get_pay_run(pay_run_id: str, ctx: RequestContext = Depends(require_auth)):
    require_capability(ctx.principal, Capability.PREPARE_PAYROLL)

    db: Session = SessionLocal()
    try:
        pay_run = pay_run_service.load_pay_run(db, pay_run_id, ctx)
        detail = serialize_pay_run(pay_run)
        detail["pay_items"] = [
            PayItemOut.model_validate(i).model_dump(mode="json") for i in pay_run.pay_items
        ]
        return {"success": True, "pay_run": detail}
    finally:
        db.close()
