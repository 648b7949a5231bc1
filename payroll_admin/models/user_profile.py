import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, String, func

from payroll_admin.database import Base

USER_ROLES = ("employee", "hr_manager", "finance", "admin", "super_admin")


class UserProfile(Base):
    __tablename__ = "user_profiles"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String, nullable=True, index=True)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    organization_id = Column(String(36), nullable=True, index=True)
    role = Column(String, nullable=False, default="employee")
    is_platform_admin = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    banned_until = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint(
            "role in ('employee','hr_manager','finance','admin','super_admin')",
            name="ck_user_profiles_role_valid",
        ),
    )
