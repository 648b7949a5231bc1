from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import Request

from payroll_admin.core.authorization import Principal


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def extract_ip_address(request: Request) -> Optional[str]:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first

    for header in ("x-real-ip", "cf-connecting-ip"):
        value = request.headers.get(header)
        if value and value.strip():
            return value.strip()

    if request.client is not None:
        return request.client.host
    return None


def extract_user_agent(request: Request) -> Optional[str]:
    return request.headers.get("user-agent") or None


@dataclass(frozen=True)
class RequestContext:
    """Everything a service call needs to know about who is calling."""

    principal: Principal
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    clock: Callable[[], datetime] = field(default=utc_now)

    @property
    def user_id(self) -> str:
        return self.principal.user_id

    @property
    def organization_id(self) -> Optional[str]:
        return self.principal.organization_id

    def now(self) -> datetime:
        return self.clock()

    @classmethod
    def from_request(cls, request: Request, principal: Principal) -> "RequestContext":
        return cls(
            principal=principal,
            ip_address=extract_ip_address(request),
            user_agent=extract_user_agent(request),
        )
