"""add rbac tables

Revision ID: 8e4d21c05b3a
Revises: 3c1f9a2b7d10
Create Date: 2026-03-04 16:42:51.902117

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8e4d21c05b3a'
down_revision: Union[str, Sequence[str], None] = '3c1f9a2b7d10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "rbac_roles",
        sa.Column("code", sa.String(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("tier", sa.String(), nullable=False),
        sa.Column("org_id", sa.String(36), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "rbac_permissions",
        sa.Column("key", sa.String(), primary_key=True, nullable=False),
        sa.Column("category", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "rbac_role_permissions",
        sa.Column("role_code", sa.String(), primary_key=True, nullable=False),
        sa.Column("permission_key", sa.String(), primary_key=True, nullable=False),
        sa.ForeignKeyConstraint(["role_code"], ["rbac_roles.code"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["permission_key"], ["rbac_permissions.key"], ondelete="CASCADE"),
    )

    op.create_table(
        "rbac_assignments",
        sa.Column("id", sa.String(36), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("role_code", sa.String(), nullable=False),
        sa.Column("scope_type", sa.String(), nullable=False),
        sa.Column("scope_id", sa.String(36), nullable=True),
        sa.Column("org_id", sa.String(36), nullable=True),
        sa.Column("assigned_by", sa.String(36), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["role_code"], ["rbac_roles.code"], ondelete="CASCADE"),
        sa.UniqueConstraint("user_id", "role_code", "scope_type", "scope_id", name="uq_rbac_assignments"),
        sa.CheckConstraint(
            "scope_type in ('GLOBAL','ORGANIZATION','COMPANY','PROJECT','SELF')",
            name="ck_rbac_assignments_scope_type_valid",
        ),
    )
    op.create_index("ix_rbac_assignments_user_id", "rbac_assignments", ["user_id"], unique=False)
    op.create_index("ix_rbac_assignments_org_id", "rbac_assignments", ["org_id"], unique=False)

    op.create_table(
        "rbac_grants",
        sa.Column("id", sa.String(36), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(36), nullable=True),
        sa.Column("role_code", sa.String(), nullable=True),
        sa.Column("permission_key", sa.String(), nullable=False),
        sa.Column("scope_type", sa.String(), nullable=False),
        sa.Column("scope_id", sa.String(36), nullable=False),
        sa.Column("effect", sa.String(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(36), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("valid_until", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("effect in ('ALLOW','DENY')", name="ck_rbac_grants_effect_valid"),
        sa.CheckConstraint(
            "scope_type in ('ORGANIZATION','COMPANY','PROJECT')",
            name="ck_rbac_grants_scope_type_valid",
        ),
        sa.CheckConstraint(
            "user_id IS NOT NULL OR role_code IS NOT NULL",
            name="ck_rbac_grants_has_subject",
        ),
    )
    op.create_index("ix_rbac_grants_user_id", "rbac_grants", ["user_id"], unique=False)
    op.create_index("ix_rbac_grants_scope_id", "rbac_grants", ["scope_id"], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_rbac_grants_scope_id", table_name="rbac_grants")
    op.drop_index("ix_rbac_grants_user_id", table_name="rbac_grants")
    op.drop_table("rbac_grants")
    op.drop_index("ix_rbac_assignments_org_id", table_name="rbac_assignments")
    op.drop_index("ix_rbac_assignments_user_id", table_name="rbac_assignments")
    op.drop_table("rbac_assignments")
    op.drop_table("rbac_role_permissions")
    op.drop_table("rbac_permissions")
    op.drop_table("rbac_roles")
