from datetime import datetime
from typing import Annotated, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from payroll_admin.schemas.validation import Email, UUIDStr

UserRoleLiteral = Literal["employee", "hr_manager", "finance", "admin", "super_admin"]
Name = Annotated[str, Field(min_length=1, max_length=100)]


class UserUpdate(BaseModel):
    id: UUIDStr
    email: Optional[Email] = None
    first_name: Optional[Name] = None
    last_name: Optional[Name] = None
    role: Optional[UserRoleLiteral] = None
    is_active: Optional[bool] = None


class UserDelete(BaseModel):
    id: UUIDStr
    hard_delete: bool = False


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: Optional[str]
    first_name: Optional[str]
    last_name: Optional[str]
    organization_id: Optional[str]
    role: str
    is_active: bool
    banned_until: Optional[datetime]
    updated_at: Optional[datetime]
