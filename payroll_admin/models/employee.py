import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, Numeric, String, func

from payroll_admin.database import Base


class Employee(Base):
    __tablename__ = "employees"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    organization_id = Column(String(36), nullable=True, index=True)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=True)
    email = Column(String, nullable=True, index=True)
    phone = Column(String, nullable=True)
    status = Column(String, nullable=False, default="active")
    pay_type = Column(String, nullable=False, default="salary")
    pay_rate = Column(Numeric(14, 2), nullable=True)
    # Oldest assignment style; membership tables supersede it.
    pay_group_id = Column(String(36), nullable=True, index=True)
    country = Column(String, nullable=True)
    currency = Column(String, nullable=True)
    bank_account = Column(String, nullable=True)
    tax_id = Column(String, nullable=True)
    external_id = Column(String, nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("status in ('active','inactive')", name="ck_employees_status_valid"),
        CheckConstraint(
            "pay_type in ('salary','hourly','piece_rate')",
            name="ck_employees_pay_type_valid",
        ),
    )
