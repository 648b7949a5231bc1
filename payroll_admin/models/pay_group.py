import uuid

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, String, func
from sqlalchemy.schema import UniqueConstraint

from payroll_admin.database import Base


class PayGroup(Base):
    __tablename__ = "pay_groups"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    organization_id = Column(String(36), nullable=True, index=True)
    name = Column(String, nullable=False)
    pay_frequency = Column(String, nullable=True)
    country = Column(String, nullable=True)
    currency = Column(String, nullable=True)
    category = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class PayGroupMaster(Base):
    """Unified lookup row pointing at one concrete pay group table row."""

    __tablename__ = "pay_group_master"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    organization_id = Column(String(36), nullable=True, index=True)
    type = Column(String, nullable=False, default="regular")
    source_table = Column(String, nullable=False, default="pay_groups")
    source_id = Column(String(36), nullable=False, index=True)
    code = Column(String, nullable=True)
    name = Column(String, nullable=False)
    country = Column(String, nullable=True)
    currency = Column(String, nullable=True)
    category = Column(String, nullable=True)
    pay_frequency = Column(String, nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint(
            "type",
            "source_table",
            "source_id",
            name="uq_pay_group_master_source",
        ),
    )


class EmployeePayGroup(Base):
    __tablename__ = "employee_pay_groups"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    employee_id = Column(
        String(36),
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    pay_group_id = Column(String(36), nullable=False, index=True)
    assigned_on = Column(Date, nullable=True)
    unassigned_on = Column(Date, nullable=True)


class PaygroupEmployee(Base):
    """Legacy membership join table."""

    __tablename__ = "paygroup_employees"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    employee_id = Column(
        String(36),
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    pay_group_id = Column(String(36), nullable=False, index=True)
    active = Column(Boolean, nullable=False, default=True)
    assigned_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
