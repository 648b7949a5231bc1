from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from payroll_admin.schemas.validation import UUIDStr


class GrantCreate(BaseModel):
    user_id: Optional[UUIDStr] = None
    role_code: Optional[str] = None
    permission_key: str = Field(min_length=1)
    scope_type: Literal["ORGANIZATION", "COMPANY", "PROJECT"] = "ORGANIZATION"
    scope_id: Optional[UUIDStr] = None
    effect: Literal["ALLOW", "DENY"]
    reason: Optional[str] = Field(default=None, max_length=1000)
    valid_until: Optional[datetime] = None

    @model_validator(mode="after")
    def _check_subject(self):
        if not self.user_id and not self.role_code:
            raise ValueError("Either user_id or role_code must be provided")
        return self


class GrantOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: Optional[str]
    role_code: Optional[str]
    permission_key: str
    scope_type: str
    scope_id: str
    effect: str
    reason: Optional[str]
    created_by: Optional[str]
    created_at: Optional[datetime]
    valid_until: Optional[datetime]


class PermissionDecisionOut(BaseModel):
    permission: str
    allowed: bool
    source: str


class EffectivePermissionsResponse(BaseModel):
    success: bool = True
    user_id: str
    organization_id: Optional[str]
    permissions: list[PermissionDecisionOut]


class GrantDelete(BaseModel):
    id: UUIDStr
