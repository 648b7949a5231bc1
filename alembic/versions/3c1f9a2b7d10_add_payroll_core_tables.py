"""add payroll core tables

Revision ID: 3c1f9a2b7d10
Revises:
Create Date: 2026-03-02 10:14:07.318204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3c1f9a2b7d10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "user_profiles",
        sa.Column("id", sa.String(36), primary_key=True, nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("first_name", sa.String(), nullable=True),
        sa.Column("last_name", sa.String(), nullable=True),
        sa.Column("organization_id", sa.String(36), nullable=True),
        sa.Column("role", sa.String(), nullable=False, server_default="employee"),
        sa.Column("is_platform_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("banned_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "role in ('employee','hr_manager','finance','admin','super_admin')",
            name="ck_user_profiles_role_valid",
        ),
    )
    op.create_index("ix_user_profiles_email", "user_profiles", ["email"], unique=False)
    op.create_index("ix_user_profiles_organization_id", "user_profiles", ["organization_id"], unique=False)

    op.create_table(
        "employees",
        sa.Column("id", sa.String(36), primary_key=True, nullable=False),
        sa.Column("organization_id", sa.String(36), nullable=True),
        sa.Column("first_name", sa.String(), nullable=False),
        sa.Column("last_name", sa.String(), nullable=True),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="active"),
        sa.Column("pay_type", sa.String(), nullable=False, server_default="salary"),
        sa.Column("pay_rate", sa.Numeric(14, 2), nullable=True),
        sa.Column("pay_group_id", sa.String(36), nullable=True),
        sa.Column("country", sa.String(), nullable=True),
        sa.Column("currency", sa.String(), nullable=True),
        sa.Column("bank_account", sa.String(), nullable=True),
        sa.Column("tax_id", sa.String(), nullable=True),
        sa.Column("external_id", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("status in ('active','inactive')", name="ck_employees_status_valid"),
        sa.CheckConstraint(
            "pay_type in ('salary','hourly','piece_rate')",
            name="ck_employees_pay_type_valid",
        ),
    )
    op.create_index("ix_employees_organization_id", "employees", ["organization_id"], unique=False)
    op.create_index("ix_employees_email", "employees", ["email"], unique=False)
    op.create_index("ix_employees_pay_group_id", "employees", ["pay_group_id"], unique=False)
    op.create_index("ix_employees_external_id", "employees", ["external_id"], unique=False)

    op.create_table(
        "pay_groups",
        sa.Column("id", sa.String(36), primary_key=True, nullable=False),
        sa.Column("organization_id", sa.String(36), nullable=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("pay_frequency", sa.String(), nullable=True),
        sa.Column("country", sa.String(), nullable=True),
        sa.Column("currency", sa.String(), nullable=True),
        sa.Column("category", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_pay_groups_organization_id", "pay_groups", ["organization_id"], unique=False)

    op.create_table(
        "pay_group_master",
        sa.Column("id", sa.String(36), primary_key=True, nullable=False),
        sa.Column("organization_id", sa.String(36), nullable=True),
        sa.Column("type", sa.String(), nullable=False, server_default="regular"),
        sa.Column("source_table", sa.String(), nullable=False, server_default="pay_groups"),
        sa.Column("source_id", sa.String(36), nullable=False),
        sa.Column("code", sa.String(), nullable=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("country", sa.String(), nullable=True),
        sa.Column("currency", sa.String(), nullable=True),
        sa.Column("category", sa.String(), nullable=True),
        sa.Column("pay_frequency", sa.String(), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("type", "source_table", "source_id", name="uq_pay_group_master_source"),
    )
    op.create_index("ix_pay_group_master_organization_id", "pay_group_master", ["organization_id"], unique=False)
    op.create_index("ix_pay_group_master_source_id", "pay_group_master", ["source_id"], unique=False)

    op.create_table(
        "employee_pay_groups",
        sa.Column("id", sa.String(36), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.String(36), nullable=False),
        sa.Column("pay_group_id", sa.String(36), nullable=False),
        sa.Column("assigned_on", sa.Date(), nullable=True),
        sa.Column("unassigned_on", sa.Date(), nullable=True),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_employee_pay_groups_employee_id", "employee_pay_groups", ["employee_id"], unique=False)
    op.create_index("ix_employee_pay_groups_pay_group_id", "employee_pay_groups", ["pay_group_id"], unique=False)

    op.create_table(
        "paygroup_employees",
        sa.Column("id", sa.String(36), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.String(36), nullable=False),
        sa.Column("pay_group_id", sa.String(36), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_paygroup_employees_employee_id", "paygroup_employees", ["employee_id"], unique=False)
    op.create_index("ix_paygroup_employees_pay_group_id", "paygroup_employees", ["pay_group_id"], unique=False)

    op.create_table(
        "pay_runs",
        sa.Column("id", sa.String(36), primary_key=True, nullable=False),
        sa.Column("pay_run_id", sa.String(), nullable=False),
        sa.Column("organization_id", sa.String(36), nullable=False),
        sa.Column("pay_run_date", sa.Date(), nullable=False),
        sa.Column("pay_period_start", sa.Date(), nullable=False),
        sa.Column("pay_period_end", sa.Date(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="draft"),
        sa.Column("category", sa.String(), nullable=True),
        sa.Column("sub_type", sa.String(), nullable=True),
        sa.Column("pay_frequency", sa.String(), nullable=True),
        sa.Column("payroll_type", sa.String(), nullable=True),
        sa.Column("pay_group_id", sa.String(36), nullable=True),
        sa.Column("pay_group_master_id", sa.String(36), nullable=True),
        sa.Column("exchange_rate", sa.Numeric(18, 6), nullable=True),
        sa.Column("days_worked", sa.Integer(), nullable=True),
        sa.Column("total_gross_pay", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("total_deductions", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("total_net_pay", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("approved_by", sa.String(36), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", sa.String(36), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status in ('draft','pending_approval','approved','processed')",
            name="ck_pay_runs_status_valid",
        ),
        sa.CheckConstraint("pay_period_start <= pay_period_end", name="ck_pay_runs_period_ordered"),
        sa.CheckConstraint(
            "exchange_rate IS NULL OR exchange_rate >= 0",
            name="ck_pay_runs_exchange_rate_nonnegative",
        ),
        sa.CheckConstraint(
            "days_worked IS NULL OR (days_worked >= 0 AND days_worked <= 31)",
            name="ck_pay_runs_days_worked_range",
        ),
    )
    op.create_index("ix_pay_runs_pay_run_id", "pay_runs", ["pay_run_id"], unique=False)
    op.create_index("ix_pay_runs_organization_id", "pay_runs", ["organization_id"], unique=False)
    op.create_index("ix_pay_runs_pay_group_id", "pay_runs", ["pay_group_id"], unique=False)
    op.create_index("ix_pay_runs_pay_group_master_id", "pay_runs", ["pay_group_master_id"], unique=False)

    op.create_table(
        "pay_items",
        sa.Column("id", sa.String(36), primary_key=True, nullable=False),
        sa.Column("pay_run_id", sa.String(36), nullable=False),
        sa.Column("employee_id", sa.String(36), nullable=False),
        sa.Column("hours_worked", sa.Numeric(10, 2), nullable=True),
        sa.Column("pieces_completed", sa.Integer(), nullable=True),
        sa.Column("gross_pay", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("tax_deduction", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("benefit_deductions", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("employer_contributions", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("total_deductions", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("net_pay", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("status", sa.String(), nullable=False, server_default="draft"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["pay_run_id"], ["pay_runs.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="RESTRICT"),
        sa.UniqueConstraint("pay_run_id", "employee_id", name="uq_pay_items_run_employee"),
        sa.CheckConstraint(
            "status in ('draft','pending','approved','paid')",
            name="ck_pay_items_status_valid",
        ),
        sa.CheckConstraint("gross_pay >= 0", name="ck_pay_items_gross_pay_nonnegative"),
        sa.CheckConstraint("tax_deduction >= 0", name="ck_pay_items_tax_deduction_nonnegative"),
        sa.CheckConstraint("benefit_deductions >= 0", name="ck_pay_items_benefit_deductions_nonnegative"),
        sa.CheckConstraint(
            "employer_contributions >= 0",
            name="ck_pay_items_employer_contributions_nonnegative",
        ),
        sa.CheckConstraint(
            "hours_worked IS NULL OR hours_worked >= 0",
            name="ck_pay_items_hours_worked_nonnegative",
        ),
        sa.CheckConstraint(
            "pieces_completed IS NULL OR pieces_completed >= 0",
            name="ck_pay_items_pieces_completed_nonnegative",
        ),
    )
    op.create_index("ix_pay_items_pay_run_id", "pay_items", ["pay_run_id"], unique=False)
    op.create_index("ix_pay_items_employee_id", "pay_items", ["employee_id"], unique=False)

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.BigInteger().with_variant(sa.Integer(), "sqlite"), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("organization_id", sa.String(36), nullable=True),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("resource", sa.String(), nullable=False),
        sa.Column("resource_id", sa.String(), nullable=True),
        sa.Column("details", JSON_TYPE, nullable=False),
        sa.Column("ip_address", sa.String(), nullable=True),
        sa.Column("user_agent", sa.String(), nullable=True),
        sa.Column("result", sa.String(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("result in ('success','failure','denied')", name="ck_audit_logs_result_valid"),
    )
    op.create_index("ix_audit_logs_user_id", "audit_logs", ["user_id"], unique=False)
    op.create_index("ix_audit_logs_organization_id", "audit_logs", ["organization_id"], unique=False)
    op.create_index("ix_audit_logs_resource_action", "audit_logs", ["resource", "action"], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_audit_logs_resource_action", table_name="audit_logs")
    op.drop_index("ix_audit_logs_organization_id", table_name="audit_logs")
    op.drop_index("ix_audit_logs_user_id", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_index("ix_pay_items_employee_id", table_name="pay_items")
    op.drop_index("ix_pay_items_pay_run_id", table_name="pay_items")
    op.drop_table("pay_items")

    op.drop_index("ix_pay_runs_pay_group_master_id", table_name="pay_runs")
    op.drop_index("ix_pay_runs_pay_group_id", table_name="pay_runs")
    op.drop_index("ix_pay_runs_organization_id", table_name="pay_runs")
    op.drop_index("ix_pay_runs_pay_run_id", table_name="pay_runs")
    op.drop_table("pay_runs")

    op.drop_index("ix_paygroup_employees_pay_group_id", table_name="paygroup_employees")
    op.drop_index("ix_paygroup_employees_employee_id", table_name="paygroup_employees")
    op.drop_table("paygroup_employees")

    op.drop_index("ix_employee_pay_groups_pay_group_id", table_name="employee_pay_groups")
    op.drop_index("ix_employee_pay_groups_employee_id", table_name="employee_pay_groups")
    op.drop_table("employee_pay_groups")

    op.drop_index("ix_pay_group_master_source_id", table_name="pay_group_master")
    op.drop_index("ix_pay_group_master_organization_id", table_name="pay_group_master")
    op.drop_table("pay_group_master")

    op.drop_index("ix_pay_groups_organization_id", table_name="pay_groups")
    op.drop_table("pay_groups")

    op.drop_index("ix_employees_external_id", table_name="employees")
    op.drop_index("ix_employees_pay_group_id", table_name="employees")
    op.drop_index("ix_employees_email", table_name="employees")
    op.drop_index("ix_employees_organization_id", table_name="employees")
    op.drop_table("employees")

    op.drop_index("ix_user_profiles_organization_id", table_name="user_profiles")
    op.drop_index("ix_user_profiles_email", table_name="user_profiles")
    op.drop_table("user_profiles")
