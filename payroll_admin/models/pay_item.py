import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship
from sqlalchemy.schema import UniqueConstraint

from payroll_admin.database import Base

PAY_ITEM_STATUSES = ("draft", "pending", "approved", "paid")


class PayItem(Base):
    __tablename__ = "pay_items"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    pay_run_id = Column(
        String(36),
        ForeignKey("pay_runs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    employee_id = Column(
        String(36),
        ForeignKey("employees.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    hours_worked = Column(Numeric(10, 2), nullable=True)
    pieces_completed = Column(Integer, nullable=True)
    gross_pay = Column(Numeric(14, 2), nullable=False, default=0)
    tax_deduction = Column(Numeric(14, 2), nullable=False, default=0)
    benefit_deductions = Column(Numeric(14, 2), nullable=False, default=0)
    employer_contributions = Column(Numeric(14, 2), nullable=False, default=0)
    total_deductions = Column(Numeric(14, 2), nullable=False, default=0)
    net_pay = Column(Numeric(14, 2), nullable=False, default=0)
    status = Column(String, nullable=False, default="draft")
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True)

    pay_run = relationship("PayRun", back_populates="pay_items")
    employee = relationship("Employee")

    __table_args__ = (
        UniqueConstraint("pay_run_id", "employee_id", name="uq_pay_items_run_employee"),
        CheckConstraint(
            "status in ('draft','pending','approved','paid')",
            name="ck_pay_items_status_valid",
        ),
        CheckConstraint("gross_pay >= 0", name="ck_pay_items_gross_pay_nonnegative"),
        CheckConstraint("tax_deduction >= 0", name="ck_pay_items_tax_deduction_nonnegative"),
        CheckConstraint(
            "benefit_deductions >= 0",
            name="ck_pay_items_benefit_deductions_nonnegative",
        ),
        CheckConstraint(
            "employer_contributions >= 0",
            name="ck_pay_items_employer_contributions_nonnegative",
        ),
        CheckConstraint(
            "hours_worked IS NULL OR hours_worked >= 0",
            name="ck_pay_items_hours_worked_nonnegative",
        ),
        CheckConstraint(
            "pieces_completed IS NULL OR pieces_completed >= 0",
            name="ck_pay_items_pieces_completed_nonnegative",
        ),
    )
