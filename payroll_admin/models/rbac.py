import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, String, Text, func
from sqlalchemy.schema import UniqueConstraint

from payroll_admin.database import Base

SCOPE_TYPES = ("GLOBAL", "ORGANIZATION", "COMPANY", "PROJECT", "SELF")


class RbacRole(Base):
    __tablename__ = "rbac_roles"

    code = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    tier = Column(String, nullable=False)
    org_id = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class RbacPermission(Base):
    __tablename__ = "rbac_permissions"

    key = Column(String, primary_key=True)
    category = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class RbacRolePermission(Base):
    __tablename__ = "rbac_role_permissions"

    role_code = Column(
        String,
        ForeignKey("rbac_roles.code", ondelete="CASCADE"),
        primary_key=True,
    )
    permission_key = Column(
        String,
        ForeignKey("rbac_permissions.key", ondelete="CASCADE"),
        primary_key=True,
    )


class RbacAssignment(Base):
    __tablename__ = "rbac_assignments"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), nullable=False, index=True)
    role_code = Column(String, ForeignKey("rbac_roles.code", ondelete="CASCADE"), nullable=False)
    scope_type = Column(String, nullable=False)
    scope_id = Column(String(36), nullable=True)
    org_id = Column(String(36), nullable=True, index=True)
    assigned_by = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "role_code", "scope_type", "scope_id", name="uq_rbac_assignments"),
        CheckConstraint(
            "scope_type in ('GLOBAL','ORGANIZATION','COMPANY','PROJECT','SELF')",
            name="ck_rbac_assignments_scope_type_valid",
        ),
    )


class RbacGrant(Base):
    __tablename__ = "rbac_grants"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), nullable=True, index=True)
    role_code = Column(String, nullable=True)
    permission_key = Column(String, nullable=False)
    scope_type = Column(String, nullable=False)
    scope_id = Column(String(36), nullable=False, index=True)
    effect = Column(String, nullable=False)
    reason = Column(Text, nullable=True)
    created_by = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    valid_until = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("effect in ('ALLOW','DENY')", name="ck_rbac_grants_effect_valid"),
        CheckConstraint(
            "scope_type in ('ORGANIZATION','COMPANY','PROJECT')",
            name="ck_rbac_grants_scope_type_valid",
        ),
        CheckConstraint(
            "user_id IS NOT NULL OR role_code IS NOT NULL",
            name="ck_rbac_grants_has_subject",
        ),
    )
