import logging
from datetime import datetime, timezone

from fastapi import Request

from payroll_admin.core.authorization import (
    ROLE_CAPABILITIES,
    Principal,
    capability_for_key,
    parse_role,
)
from payroll_admin.core.context import RequestContext
from payroll_admin.core.errors import Unauthenticated
from payroll_admin.database import SessionLocal
from payroll_admin.models.user_profile import UserProfile
from payroll_admin.services.auth_service import verify_token
from payroll_admin.services.rbac_service import organization_grant_overrides

logger = logging.getLogger(__name__)


def _parse_bearer_token(request: Request) -> str:
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise Unauthenticated("Missing Authorization header")

    parts = auth_header.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        raise Unauthenticated("Invalid Authorization header")

    return parts[1].strip()


def _is_banned(profile: UserProfile, now: datetime) -> bool:
    if profile.banned_until is None:
        return False
    banned_until = profile.banned_until
    if banned_until.tzinfo is None:
        banned_until = banned_until.replace(tzinfo=timezone.utc)
    return banned_until > now


def resolve_principal(user_id: str) -> Principal:
    now = datetime.now(timezone.utc)
    db = SessionLocal()
    try:
        profile = db.get(UserProfile, str(user_id))
        if profile is None:
            raise Unauthenticated("Unknown user")
        if not profile.is_active or _is_banned(profile, now):
            raise Unauthenticated("User is deactivated")

        role = parse_role(profile.role)
        capabilities = set(ROLE_CAPABILITIES[role])

        allowed, denied = organization_grant_overrides(db, profile.id, profile.organization_id, now)
        for key in allowed:
            capability = capability_for_key(key)
            if capability is not None:
                capabilities.add(capability)
        for key in denied:
            capability = capability_for_key(key)
            if capability is not None:
                capabilities.discard(capability)

        return Principal(
            user_id=profile.id,
            organization_id=profile.organization_id,
            role=role,
            is_platform_admin=bool(profile.is_platform_admin),
            email=profile.email,
            capabilities=frozenset(capabilities),
        )
    finally:
        db.close()


def require_auth(request: Request) -> RequestContext:
    token = _parse_bearer_token(request)

    try:
        claims = verify_token(token)
    except ValueError as exc:
        raise Unauthenticated(str(exc)) from exc

    principal = resolve_principal(str(claims.get("sub")))

    request.state.user_id = principal.user_id
    request.state.organization_id = principal.organization_id

    return RequestContext.from_request(request, principal)
