from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Optional

from payroll_admin.core.errors import PermissionDenied


class RoleTier(Enum):
    EMPLOYEE = "employee"
    HR_MANAGER = "hr_manager"
    FINANCE = "finance"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class Capability(Enum):
    PREPARE_PAYROLL = "payroll.prepare"
    APPROVE_PAYROLL = "payroll.approve"
    MANAGE_USERS = "admin.manage_users"
    ASSIGN_ROLES = "admin.assign_roles"
    MANAGE_INTEGRATIONS = "integrations.manage"


RANK = {
    RoleTier.EMPLOYEE: 1,
    RoleTier.HR_MANAGER: 2,
    RoleTier.FINANCE: 3,
    RoleTier.ADMIN: 4,
    RoleTier.SUPER_ADMIN: 5,
}

ROLE_CAPABILITIES: dict[RoleTier, FrozenSet[Capability]] = {
    RoleTier.EMPLOYEE: frozenset(),
    RoleTier.HR_MANAGER: frozenset(),
    RoleTier.FINANCE: frozenset({Capability.PREPARE_PAYROLL, Capability.APPROVE_PAYROLL}),
    RoleTier.ADMIN: frozenset(
        {
            Capability.PREPARE_PAYROLL,
            Capability.APPROVE_PAYROLL,
            Capability.MANAGE_USERS,
            Capability.MANAGE_INTEGRATIONS,
        }
    ),
    RoleTier.SUPER_ADMIN: frozenset(Capability),
}


def parse_role(value: Optional[str]) -> RoleTier:
    try:
        return RoleTier(str(value or "employee").lower())
    except ValueError:
        return RoleTier.EMPLOYEE


def capability_for_key(key: str) -> Optional[Capability]:
    try:
        return Capability(key)
    except ValueError:
        return None


@dataclass(frozen=True)
class Principal:
    user_id: str
    organization_id: Optional[str]
    role: RoleTier
    is_platform_admin: bool = False
    email: Optional[str] = None
    capabilities: FrozenSet[Capability] = field(default_factory=frozenset)

    def has(self, capability: Capability) -> bool:
        return self.is_platform_admin or capability in self.capabilities

    def at_least(self, tier: RoleTier) -> bool:
        return self.is_platform_admin or RANK[self.role] >= RANK[tier]


def require_capability(principal: Principal, capability: Capability) -> None:
    if not principal.has(capability):
        raise PermissionDenied(
            f"Insufficient permissions. '{capability.value}' is required.",
            details={"required": capability.value, "role": principal.role.value},
        )


def require_tier(principal: Principal, tier: RoleTier, message: str) -> None:
    if not principal.at_least(tier):
        raise PermissionDenied(
            message,
            reason="insufficient_role_tier",
            details={"required_tier": tier.value, "role": principal.role.value},
        )
