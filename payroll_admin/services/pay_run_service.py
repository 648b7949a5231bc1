import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from payroll_admin.core.authorization import RoleTier
from payroll_admin.core.context import RequestContext
from payroll_admin.core.errors import (
    InvalidStatus,
    MissingPayGroup,
    MissingTenantContext,
    NotFound,
    PermissionDenied,
    ProcessedPayrunProtection,
    ValidationFailed,
)
from payroll_admin.models.pay_group import PayGroupMaster
from payroll_admin.models.pay_item import PayItem
from payroll_admin.models.pay_run import PayRun
from payroll_admin.schemas.pay_run import PayRunCreate, PayRunDelete, PayRunUpdate
from payroll_admin.services import membership
from payroll_admin.services.pay_run_state_machine import PayRunStateMachine, PayRunStatus

logger = logging.getLogger(__name__)

PROJECT_CATEGORIES = {"projects", "project"}

STEP_MEMBERSHIP_LOOKUP = "membership_lookup"
STEP_PAY_ITEM_INSERT = "pay_item_insert"

# Never optional on the row; an explicit null in an update is ignored.
_REQUIRED_COLUMNS = {"pay_run_date", "pay_period_start", "pay_period_end"}

_PLAIN_UPDATE_FIELDS = (
    "pay_run_date",
    "pay_period_start",
    "pay_period_end",
    "category",
    "sub_type",
    "pay_frequency",
    "payroll_type",
    "exchange_rate",
    "days_worked",
)


def generate_pay_run_id(category: Optional[str], now: datetime) -> str:
    prefix = "PRJ" if (category or "").strip().lower() in PROJECT_CATEGORIES else "HOF"
    return f"{prefix}-{now.strftime('%Y%m%d-%H%M%S')}"


@dataclass(frozen=True)
class PopulationResult:
    source: Optional[str]
    created: int
    failed_step: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.failed_step is None


def require_organization(ctx: RequestContext) -> str:
    if not ctx.organization_id:
        raise MissingTenantContext("Organization context is required")
    return ctx.organization_id


def resolve_pay_group_master(
    db: Session,
    *,
    pay_group_master_id: Optional[str],
    pay_group_id: Optional[str],
    organization_id: Optional[str],
    allow_any_org: bool = False,
) -> PayGroupMaster:
    master = None
    if pay_group_master_id:
        master = db.get(PayGroupMaster, str(pay_group_master_id))
    elif pay_group_id:
        master = (
            db.query(PayGroupMaster)
            .filter(PayGroupMaster.source_id == str(pay_group_id))
            .order_by(PayGroupMaster.active.desc(), PayGroupMaster.created_at.asc())
            .first()
        )

    if master is None:
        raise MissingPayGroup(
            "Pay group could not be resolved",
            details={"pay_group_id": pay_group_id, "pay_group_master_id": pay_group_master_id},
        )

    if (
        not allow_any_org
        and master.organization_id is not None
        and master.organization_id != organization_id
    ):
        raise MissingPayGroup(
            "Pay group could not be resolved",
            details={"pay_group_id": pay_group_id, "pay_group_master_id": pay_group_master_id},
        )

    return master


def _seed_item(pay_run: PayRun, employee, now: datetime) -> PayItem:
    return PayItem(
        pay_run_id=pay_run.id,
        employee_id=employee.id,
        hours_worked=Decimal("0") if employee.pay_type == "hourly" else None,
        pieces_completed=0 if employee.pay_type == "piece_rate" else None,
        gross_pay=Decimal("0"),
        tax_deduction=Decimal("0"),
        benefit_deductions=Decimal("0"),
        employer_contributions=Decimal("0"),
        total_deductions=Decimal("0"),
        net_pay=Decimal("0"),
        status="draft",
        created_at=now,
    )


def populate_pay_items(
    db: Session,
    pay_run: PayRun,
    now: datetime,
    strategies=membership.DEFAULT_STRATEGIES,
) -> PopulationResult:
    """
    Seed one zero-valued draft item per active member of the run's pay group.

    Failures are reported in the result and never raised; the run itself is
    already committed by the time this runs.
    """
    try:
        lookup = membership.resolve_members(db, pay_run.pay_group_id, pay_run.organization_id, strategies)
    except Exception as exc:
        db.rollback()
        logger.exception("pay_item_population_failed", extra={"pay_run_id": pay_run.id, "step": STEP_MEMBERSHIP_LOOKUP})
        return PopulationResult(source=None, created=0, failed_step=STEP_MEMBERSHIP_LOOKUP, error=str(exc))

    if not lookup:
        return PopulationResult(source=None, created=0)

    try:
        for employee in lookup.employees:
            db.add(_seed_item(pay_run, employee, now))
        db.commit()
    except Exception as exc:
        db.rollback()
        logger.exception("pay_item_population_failed", extra={"pay_run_id": pay_run.id, "step": STEP_PAY_ITEM_INSERT})
        return PopulationResult(source=lookup.source, created=0, failed_step=STEP_PAY_ITEM_INSERT, error=str(exc))

    logger.info(
        "pay_items_populated",
        extra={"pay_run_id": pay_run.id, "source": lookup.source, "count": len(lookup.employees)},
    )
    return PopulationResult(source=lookup.source, created=len(lookup.employees))


def population_message(result: PopulationResult) -> str:
    if not result.ok:
        return f"Pay run created, but pay item population failed at {result.failed_step}: {result.error}"
    if result.created == 0:
        return "Pay run created successfully. No active employees found in the pay group."
    return f"Pay run created successfully with {result.created} pay items"


def create_pay_run(payload: PayRunCreate, ctx: RequestContext, db: Session) -> tuple[PayRun, PopulationResult]:
    organization_id = require_organization(ctx)
    # Initial status must be reachable from draft.
    initial_status = payload.status or PayRunStatus.DRAFT.value
    PayRunStateMachine.validate_transition(PayRunStatus.DRAFT.value, initial_status)

    master = resolve_pay_group_master(
        db,
        pay_group_master_id=payload.pay_group_master_id,
        pay_group_id=payload.pay_group_id,
        organization_id=organization_id,
        allow_any_org=ctx.principal.is_platform_admin,
    )

    now = ctx.now()
    category = payload.category or master.category
    pay_run = PayRun(
        pay_run_id=generate_pay_run_id(category, now),
        organization_id=organization_id,
        pay_run_date=payload.pay_run_date or now.date(),
        pay_period_start=payload.pay_period_start,
        pay_period_end=payload.pay_period_end,
        status=initial_status,
        category=category,
        sub_type=payload.sub_type,
        pay_frequency=payload.pay_frequency or master.pay_frequency,
        payroll_type=payload.payroll_type,
        pay_group_id=master.source_id,
        pay_group_master_id=master.id,
        exchange_rate=None if payload.exchange_rate is None else Decimal(str(payload.exchange_rate)),
        days_worked=payload.days_worked,
        total_gross_pay=Decimal("0"),
        total_deductions=Decimal("0"),
        total_net_pay=Decimal("0"),
        created_by=ctx.user_id,
        created_at=now,
    )
    db.add(pay_run)
    db.commit()

    result = populate_pay_items(db, pay_run, now)
    return pay_run, result


def load_pay_run(db: Session, pay_run_id: str, ctx: RequestContext, *, for_update: bool = False) -> PayRun:
    q = db.query(PayRun).filter(PayRun.id == str(pay_run_id))
    if not ctx.principal.is_platform_admin:
        q = q.filter(PayRun.organization_id == ctx.organization_id)
    if for_update:
        q = q.with_for_update()
    pay_run = q.one_or_none()
    if pay_run is None:
        raise NotFound("Pay run not found", details={"pay_run_id": str(pay_run_id)})
    return pay_run


def update_pay_run(payload: PayRunUpdate, ctx: RequestContext, db: Session) -> tuple[PayRun, bool, dict]:
    """Returns the run, whether its status changed, and audit details."""
    pay_run = load_pay_run(db, payload.id, ctx, for_update=True)
    fields = payload.model_fields_set - {"id"}
    now = ctx.now()

    from_status = pay_run.status
    status_changed = False
    if "status" in fields and payload.status is not None and payload.status != from_status:
        PayRunStateMachine.validate_transition(from_status, payload.status)
        status_changed = True

    start = payload.pay_period_start if payload.pay_period_start is not None else pay_run.pay_period_start
    end = payload.pay_period_end if payload.pay_period_end is not None else pay_run.pay_period_end
    if start > end:
        raise ValidationFailed(
            [{"field": "pay_period_end", "message": "pay_period_end must be on or after pay_period_start"}]
        )

    if fields & {"pay_group_master_id", "pay_group_id"} and (payload.pay_group_master_id or payload.pay_group_id):
        master = resolve_pay_group_master(
            db,
            pay_group_master_id=payload.pay_group_master_id,
            pay_group_id=payload.pay_group_id,
            organization_id=pay_run.organization_id,
            allow_any_org=ctx.principal.is_platform_admin,
        )
        pay_run.pay_group_master_id = master.id
        pay_run.pay_group_id = master.source_id

    for name in _PLAIN_UPDATE_FIELDS:
        if name not in fields:
            continue
        value = getattr(payload, name)
        if value is None and name in _REQUIRED_COLUMNS:
            continue
        if name == "exchange_rate" and value is not None:
            value = Decimal(str(value))
        setattr(pay_run, name, value)

    if status_changed:
        pay_run.status = payload.status
        if payload.status == PayRunStatus.APPROVED.value and pay_run.approved_at is None:
            pay_run.approved_by = payload.approved_by or ctx.user_id
            pay_run.approved_at = payload.approved_at or now
    else:
        if "approved_by" in fields and payload.approved_by is not None:
            pay_run.approved_by = payload.approved_by
        if "approved_at" in fields and payload.approved_at is not None:
            pay_run.approved_at = payload.approved_at

    pay_run.updated_at = now
    db.commit()

    details: dict = {"updated_fields": sorted(fields)}
    if status_changed:
        details.update({"from_status": from_status, "to_status": pay_run.status})
    return pay_run, status_changed, details


def delete_pay_run(payload: PayRunDelete, ctx: RequestContext, db: Session) -> tuple[PayRun, str]:
    """Returns the run and the delete mode (hard or soft)."""
    pay_run = load_pay_run(db, payload.id, ctx, for_update=True)

    if pay_run.status == PayRunStatus.PROCESSED.value and not payload.hard_delete:
        raise ProcessedPayrunProtection(
            "Cannot delete processed pay runs. Use hard delete if necessary.",
            details={"status": pay_run.status},
        )

    if payload.hard_delete:
        if not ctx.principal.at_least(RoleTier.SUPER_ADMIN):
            raise PermissionDenied(
                "Hard delete requires super_admin role",
                reason="requires_super_admin",
            )
        db.delete(pay_run)
        db.commit()
        logger.info("pay_run_hard_deleted", extra={"pay_run_id": pay_run.id, "user_id": ctx.user_id})
        return pay_run, "hard"

    if not PayRunStateMachine.can_soft_delete(pay_run.status):
        raise InvalidStatus(
            f"Cannot soft delete pay run with status: {pay_run.status}",
            details={"status": pay_run.status},
        )

    pay_run.status = PayRunStatus.DRAFT.value
    pay_run.updated_at = ctx.now()
    db.commit()
    return pay_run, "soft"


def list_pay_runs(
    db: Session,
    ctx: RequestContext,
    *,
    status: Optional[str] = None,
    pay_group_id: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> list[PayRun]:
    q = db.query(PayRun)
    if not ctx.principal.is_platform_admin:
        q = q.filter(PayRun.organization_id == ctx.organization_id)
    if status is not None:
        q = q.filter(PayRun.status == str(status))
    if pay_group_id is not None:
        q = q.filter(PayRun.pay_group_id == str(pay_group_id))
    return (
        q.order_by(PayRun.pay_run_date.desc(), PayRun.created_at.desc(), PayRun.id.asc())
        .limit(int(limit))
        .offset(int(offset))
        .all()
    )
