import uuid

from sqlalchemy import CheckConstraint, Column, Date, DateTime, Integer, Numeric, String, func
from sqlalchemy.orm import relationship

from payroll_admin.database import Base

PAY_RUN_STATUSES = ("draft", "pending_approval", "approved", "processed")


class PayRun(Base):
    __tablename__ = "pay_runs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    pay_run_id = Column(String, nullable=False, index=True)
    organization_id = Column(String(36), nullable=False, index=True)
    pay_run_date = Column(Date, nullable=False)
    pay_period_start = Column(Date, nullable=False)
    pay_period_end = Column(Date, nullable=False)
    status = Column(String, nullable=False, default="draft")
    category = Column(String, nullable=True)
    sub_type = Column(String, nullable=True)
    pay_frequency = Column(String, nullable=True)
    payroll_type = Column(String, nullable=True)
    pay_group_id = Column(String(36), nullable=True, index=True)
    pay_group_master_id = Column(String(36), nullable=True, index=True)
    exchange_rate = Column(Numeric(18, 6), nullable=True)
    days_worked = Column(Integer, nullable=True)
    total_gross_pay = Column(Numeric(14, 2), nullable=False, default=0)
    total_deductions = Column(Numeric(14, 2), nullable=False, default=0)
    total_net_pay = Column(Numeric(14, 2), nullable=False, default=0)
    approved_by = Column(String(36), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    created_by = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True)

    pay_items = relationship(
        "PayItem",
        back_populates="pay_run",
        cascade="all, delete-orphan",
        order_by="PayItem.created_at",
    )

    __table_args__ = (
        CheckConstraint(
            "status in ('draft','pending_approval','approved','processed')",
            name="ck_pay_runs_status_valid",
        ),
        CheckConstraint(
            "pay_period_start <= pay_period_end",
            name="ck_pay_runs_period_ordered",
        ),
        CheckConstraint(
            "exchange_rate IS NULL OR exchange_rate >= 0",
            name="ck_pay_runs_exchange_rate_nonnegative",
        ),
        CheckConstraint(
            "days_worked IS NULL OR (days_worked >= 0 AND days_worked <= 31)",
            name="ck_pay_runs_days_worked_range",
        ),
    )
