import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from payroll_admin.database import SessionLocal
from payroll_admin.models.pay_item import PayItem
from payroll_admin.models.pay_run import PayRun

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
ZERO = Decimal("0")


def _dec(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_cents(value) -> Decimal:
    return _dec(value).quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class DerivedAmounts:
    total_deductions: Decimal
    net_pay: Decimal


def derive_item_amounts(gross_pay, tax_deduction, benefit_deductions) -> DerivedAmounts:
    """net_pay = gross_pay - (tax_deduction + benefit_deductions), exact to the cent."""
    # Derive from the same cent values the columns store.
    total_deductions = to_cents(tax_deduction) + to_cents(benefit_deductions)
    net_pay = to_cents(gross_pay) - total_deductions
    return DerivedAmounts(total_deductions=total_deductions, net_pay=net_pay)


@dataclass(frozen=True)
class PayRunTotals:
    total_gross_pay: Decimal
    total_deductions: Decimal
    total_net_pay: Decimal
    item_count: int


def sum_pay_items(items: Iterable[PayItem]) -> PayRunTotals:
    gross = deductions = net = ZERO
    count = 0
    for item in items:
        gross += _dec(item.gross_pay)
        deductions += _dec(item.total_deductions)
        net += _dec(item.net_pay)
        count += 1
    return PayRunTotals(
        total_gross_pay=gross.quantize(CENTS),
        total_deductions=deductions.quantize(CENTS),
        total_net_pay=net.quantize(CENTS),
        item_count=count,
    )


def recalculate_pay_run_totals(pay_run_id: str, *, db: Optional[Session] = None) -> Optional[PayRunTotals]:
    """
    Re-sum every committed item of the run and store the totals on it.

    The parent row is locked first so concurrent recalculations for the same
    run serialize; the later one always sees both item writes.
    If db is provided, this function will NOT commit/close.
    """
    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    try:
        pay_run = (
            db.query(PayRun)
            .filter(PayRun.id == str(pay_run_id))
            .with_for_update()
            .one_or_none()
        )
        if pay_run is None:
            return None

        items = db.query(PayItem).filter(PayItem.pay_run_id == pay_run.id).all()
        totals = sum_pay_items(items)

        pay_run.total_gross_pay = totals.total_gross_pay
        pay_run.total_deductions = totals.total_deductions
        pay_run.total_net_pay = totals.total_net_pay
        pay_run.updated_at = datetime.now(timezone.utc)
        db.flush()

        if owns_db:
            db.commit()

        return totals
    except Exception:
        if owns_db:
            db.rollback()
        raise
    finally:
        if owns_db:
            db.close()


def refresh_pay_run_totals(pay_run_id: str) -> bool:
    """Best-effort recalculation after an item write. Never raises."""
    try:
        recalculate_pay_run_totals(pay_run_id)
        return True
    except Exception:
        logger.exception("pay_run_totals_recalculation_failed", extra={"pay_run_id": str(pay_run_id)})
        return False
