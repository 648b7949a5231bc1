"""add integration tables

Revision ID: c57a0e9f4412
Revises: 8e4d21c05b3a
Create Date: 2026-03-09 09:03:26.447781

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = 'c57a0e9f4412'
down_revision: Union[str, Sequence[str], None] = '8e4d21c05b3a'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "integration_tokens",
        sa.Column("integration_name", sa.String(), primary_key=True, nullable=False),
        sa.Column("access_token", sa.Text(), nullable=False),
        sa.Column("refresh_token", sa.Text(), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("token_type", sa.String(), nullable=False, server_default="Bearer"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "sync_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("sync_id", sa.String(), nullable=False, unique=True),
        sa.Column("integration_name", sa.String(), nullable=False, server_default="zoho_people"),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("direction", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("records_processed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("records_failed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("retry_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error_message", sa.Text(), nullable=True),
    )

    op.create_table(
        "integration_health",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("integration_name", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("last_sync", sa.DateTime(timezone=True), nullable=True),
        sa.Column("uptime", sa.Float(), nullable=False, server_default="0"),
        sa.Column("api_response_time", sa.Float(), nullable=False, server_default="0"),
        sa.Column("error_rate", sa.Float(), nullable=False, server_default="0"),
        sa.Column("total_syncs", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("successful_syncs", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("failed_syncs", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("checked_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_integration_health_integration_name", "integration_health", ["integration_name"], unique=False)

    op.create_table(
        "alert_rules",
        sa.Column("id", sa.String(36), primary_key=True, nullable=False),
        sa.Column("integration_name", sa.String(), nullable=False, server_default="zoho_people"),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("condition", sa.String(), nullable=False),
        sa.Column("threshold", sa.Float(), nullable=False, server_default="0"),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("notification_channels", JSON_TYPE, nullable=False),
        sa.Column("escalation_level", sa.Integer(), nullable=False, server_default="1"),
    )

    op.create_table(
        "notification_channels",
        sa.Column("id", sa.String(36), primary_key=True, nullable=False),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("configuration", JSON_TYPE, nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
    )

    op.create_table(
        "integration_alerts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("integration_name", sa.String(), nullable=False, server_default="zoho_people"),
        sa.Column("rule_id", sa.String(36), nullable=False),
        sa.Column("rule_name", sa.String(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("health_status", sa.String(), nullable=False),
        sa.Column("triggered_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_integration_alerts_rule_id", "integration_alerts", ["rule_id"], unique=False)

    op.create_table(
        "attendance_records",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("employee_id", sa.String(36), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("check_in", sa.String(), nullable=True),
        sa.Column("check_out", sa.String(), nullable=True),
        sa.Column("total_hours", sa.Numeric(6, 2), nullable=True),
        sa.Column("overtime_hours", sa.Numeric(6, 2), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("leave_type", sa.String(), nullable=True),
        sa.Column("remarks", sa.Text(), nullable=True),
    )
    op.create_index("ix_attendance_records_employee_id", "attendance_records", ["employee_id"], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_attendance_records_employee_id", table_name="attendance_records")
    op.drop_table("attendance_records")
    op.drop_index("ix_integration_alerts_rule_id", table_name="integration_alerts")
    op.drop_table("integration_alerts")
    op.drop_table("notification_channels")
    op.drop_table("alert_rules")
    op.drop_index("ix_integration_health_integration_name", table_name="integration_health")
    op.drop_table("integration_health")
    op.drop_table("sync_logs")
    op.drop_table("integration_tokens")
