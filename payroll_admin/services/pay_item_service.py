import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from payroll_admin.core.context import RequestContext
from payroll_admin.core.errors import DuplicatePayItem, NotFound, ProcessedPayrunProtection
from payroll_admin.models.employee import Employee
from payroll_admin.models.pay_item import PayItem
from payroll_admin.models.pay_run import PayRun
from payroll_admin.schemas.pay_item import PayItemCreate, PayItemDelete, PayItemUpdate
from payroll_admin.services import totals_service
from payroll_admin.services.pay_run_state_machine import PayRunStateMachine

logger = logging.getLogger(__name__)

_COMPONENT_FIELDS = ("gross_pay", "tax_deduction", "benefit_deductions", "employer_contributions")


def _money(value) -> Optional[Decimal]:
    if value is None:
        return None
    return totals_service.to_cents(value)


def _tenant_run(db: Session, pay_run_id: str, ctx: RequestContext) -> Optional[PayRun]:
    q = db.query(PayRun).filter(PayRun.id == str(pay_run_id))
    if not ctx.principal.is_platform_admin:
        q = q.filter(PayRun.organization_id == ctx.organization_id)
    return q.one_or_none()


def _ensure_items_mutable(pay_run: PayRun) -> None:
    if PayRunStateMachine.items_locked(pay_run.status):
        raise ProcessedPayrunProtection(
            "Cannot modify pay items of a processed pay run",
            details={"pay_run_id": pay_run.id, "status": pay_run.status},
        )


def _apply_derived(item: PayItem) -> None:
    derived = totals_service.derive_item_amounts(item.gross_pay, item.tax_deduction, item.benefit_deductions)
    item.total_deductions = derived.total_deductions
    item.net_pay = derived.net_pay


def _load_item(db: Session, item_id: str, ctx: RequestContext) -> tuple[PayItem, PayRun]:
    item = db.get(PayItem, str(item_id))
    if item is None:
        raise NotFound("Pay item not found", details={"pay_item_id": str(item_id)})

    # Parent status is read fresh here, never trusted from the caller.
    pay_run = _tenant_run(db, item.pay_run_id, ctx)
    if pay_run is None:
        raise NotFound("Pay item not found", details={"pay_item_id": str(item_id)})
    return item, pay_run


def create_pay_item(payload: PayItemCreate, ctx: RequestContext, db: Session) -> PayItem:
    pay_run = _tenant_run(db, payload.pay_run_id, ctx)
    if pay_run is None:
        raise NotFound("Pay run not found", details={"pay_run_id": payload.pay_run_id})
    _ensure_items_mutable(pay_run)

    employee = (
        db.query(Employee)
        .filter(Employee.id == payload.employee_id)
        .filter(Employee.organization_id == pay_run.organization_id)
        .one_or_none()
    )
    if employee is None:
        raise NotFound("Employee not found", details={"employee_id": payload.employee_id})

    existing = (
        db.query(PayItem.id)
        .filter(PayItem.pay_run_id == pay_run.id, PayItem.employee_id == employee.id)
        .first()
    )
    if existing is not None:
        raise DuplicatePayItem(
            "Pay item already exists for this employee in the pay run",
            details={"pay_run_id": pay_run.id, "employee_id": employee.id},
        )

    now = ctx.now()
    item = PayItem(
        pay_run_id=pay_run.id,
        employee_id=employee.id,
        hours_worked=_money(payload.hours_worked),
        pieces_completed=payload.pieces_completed,
        gross_pay=_money(payload.gross_pay),
        tax_deduction=_money(payload.tax_deduction),
        benefit_deductions=_money(payload.benefit_deductions),
        employer_contributions=_money(payload.employer_contributions) or Decimal("0"),
        status=payload.status,
        notes=payload.notes,
        created_at=now,
        updated_at=now,
    )
    _apply_derived(item)
    db.add(item)

    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        # Lost the race with a concurrent insert for the same employee.
        raise DuplicatePayItem(
            "Pay item already exists for this employee in the pay run",
            details={"pay_run_id": pay_run.id, "employee_id": employee.id},
        ) from exc

    totals_service.refresh_pay_run_totals(pay_run.id)
    return item


def update_pay_item(payload: PayItemUpdate, ctx: RequestContext, db: Session) -> PayItem:
    item, pay_run = _load_item(db, payload.id, ctx)
    _ensure_items_mutable(pay_run)

    fields = payload.model_fields_set - {"id"}
    for name in _COMPONENT_FIELDS:
        if name in fields and getattr(payload, name) is not None:
            setattr(item, name, _money(getattr(payload, name)))
    if "hours_worked" in fields:
        item.hours_worked = _money(payload.hours_worked)
    if "pieces_completed" in fields:
        item.pieces_completed = payload.pieces_completed
    if "status" in fields and payload.status is not None:
        item.status = payload.status
    if "notes" in fields:
        item.notes = payload.notes

    _apply_derived(item)
    item.updated_at = ctx.now()
    db.commit()

    totals_service.refresh_pay_run_totals(pay_run.id)
    return item


def delete_pay_item(payload: PayItemDelete, ctx: RequestContext, db: Session) -> PayItem:
    item, pay_run = _load_item(db, payload.id, ctx)
    _ensure_items_mutable(pay_run)

    db.delete(item)
    db.commit()

    totals_service.refresh_pay_run_totals(pay_run.id)
    return item
