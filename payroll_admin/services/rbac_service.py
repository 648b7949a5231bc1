from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from payroll_admin.database import SessionLocal
from payroll_admin.models.rbac import (
    RbacAssignment,
    RbacGrant,
    RbacPermission,
    RbacRolePermission,
)
from payroll_admin.models.user_profile import UserProfile

# Assignments stored against this org id apply in every organization.
PLATFORM_ORG_ID = "00000000-0000-0000-0000-000000000000"

EFFECT_ALLOW = "ALLOW"
EFFECT_DENY = "DENY"


@dataclass(frozen=True)
class PermissionDecision:
    permission: str
    allowed: bool
    source: str


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _scope_covers(
    assignment_scope: str,
    assignment_scope_id: Optional[str],
    scope_type: str,
    scope_id: Optional[str],
) -> bool:
    if assignment_scope == "GLOBAL":
        return True
    if assignment_scope == scope_type and (scope_id is None or assignment_scope_id == scope_id):
        return True
    if assignment_scope == "ORGANIZATION" and scope_type in ("COMPANY", "PROJECT"):
        return True
    if assignment_scope == "COMPANY" and scope_type == "PROJECT":
        return True
    return False


def _grant_applies(
    grant: RbacGrant,
    organization_id: Optional[str],
    scope_type: str,
    scope_id: Optional[str],
) -> bool:
    if grant.scope_type == scope_type and (scope_id is None or grant.scope_id == scope_id):
        return True
    # An organization-wide grant reaches every company and project inside it.
    return (
        grant.scope_type == "ORGANIZATION"
        and organization_id is not None
        and grant.scope_id == organization_id
        and scope_type in ("COMPANY", "PROJECT")
    )


def _org_assignments(db: Session, user_id: str, organization_id: Optional[str]) -> list[RbacAssignment]:
    org_ids = [PLATFORM_ORG_ID]
    if organization_id is not None:
        org_ids.append(organization_id)
    return (
        db.query(RbacAssignment)
        .filter(RbacAssignment.user_id == str(user_id))
        .filter(RbacAssignment.org_id.in_(org_ids))
        .all()
    )


def _active_grants(
    db: Session,
    user_id: str,
    role_codes: Iterable[str],
    now: datetime,
    permission_key: Optional[str] = None,
) -> list[RbacGrant]:
    role_codes = list(role_codes)
    subject = RbacGrant.user_id == str(user_id)
    if role_codes:
        subject = or_(subject, RbacGrant.role_code.in_(role_codes))

    q = db.query(RbacGrant).filter(subject)
    if permission_key is not None:
        q = q.filter(RbacGrant.permission_key == str(permission_key))

    return [g for g in q.all() if g.valid_until is None or _utc(g.valid_until) > now]


def _role_permission_keys(db: Session, role_codes: Iterable[str]) -> dict[str, set[str]]:
    role_codes = list(role_codes)
    if not role_codes:
        return {}
    rows = db.query(RbacRolePermission).filter(RbacRolePermission.role_code.in_(role_codes)).all()
    out: dict[str, set[str]] = {}
    for row in rows:
        out.setdefault(row.role_code, set()).add(row.permission_key)
    return out


def evaluate_access(
    user_id: str,
    permission_key: str,
    scope_type: str,
    scope_id: Optional[str] = None,
    *,
    now: Optional[datetime] = None,
    db: Optional[Session] = None,
) -> bool:
    """
    Role assignments give the default answer for a scope; unexpired grants for
    the user or one of the user's roles override it. DENY beats ALLOW.
    """
    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    try:
        now = now or datetime.now(timezone.utc)

        profile = db.get(UserProfile, str(user_id))
        if profile is None:
            return False
        if profile.is_platform_admin:
            return True

        assignments = _org_assignments(db, profile.id, profile.organization_id)
        role_codes = {a.role_code for a in assignments}
        role_perms = _role_permission_keys(db, role_codes)

        allowed = any(
            permission_key in role_perms.get(a.role_code, set())
            and _scope_covers(a.scope_type, a.scope_id, scope_type, scope_id)
            for a in assignments
        )

        grants = [
            g
            for g in _active_grants(db, profile.id, role_codes, now, permission_key)
            if _grant_applies(g, profile.organization_id, scope_type, scope_id)
        ]
        if any(g.effect == EFFECT_DENY for g in grants):
            return False
        if any(g.effect == EFFECT_ALLOW for g in grants):
            return True

        return allowed
    finally:
        if owns_db:
            db.close()


def effective_permissions(
    user_id: str,
    organization_id: Optional[str],
    *,
    now: Optional[datetime] = None,
    db: Optional[Session] = None,
) -> list[PermissionDecision]:
    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    try:
        now = now or datetime.now(timezone.utc)
        keys = sorted(k for (k,) in db.query(RbacPermission.key).all())

        profile = db.get(UserProfile, str(user_id))
        if profile is None:
            return [PermissionDecision(k, False, "none") for k in keys]
        if profile.is_platform_admin:
            return [PermissionDecision(k, True, "platform_admin") for k in keys]

        assignments = _org_assignments(db, profile.id, organization_id)
        role_codes = {a.role_code for a in assignments}
        from_roles: set[str] = set()
        for perms in _role_permission_keys(db, role_codes).values():
            from_roles |= perms

        grant_effects: dict[str, set[str]] = {}
        for g in _active_grants(db, profile.id, role_codes, now):
            if g.scope_type == "ORGANIZATION" and g.scope_id == organization_id:
                grant_effects.setdefault(g.permission_key, set()).add(g.effect)

        decisions = []
        for key in sorted(set(keys) | from_roles | set(grant_effects)):
            effects = grant_effects.get(key, set())
            if EFFECT_DENY in effects:
                decisions.append(PermissionDecision(key, False, "grant"))
            elif EFFECT_ALLOW in effects:
                decisions.append(PermissionDecision(key, True, "grant"))
            elif key in from_roles:
                decisions.append(PermissionDecision(key, True, "role"))
            else:
                decisions.append(PermissionDecision(key, False, "none"))
        return decisions
    finally:
        if owns_db:
            db.close()


def organization_grant_overrides(
    db: Session,
    user_id: str,
    organization_id: Optional[str],
    now: Optional[datetime] = None,
) -> tuple[set[str], set[str]]:
    """Returns (allowed, denied) permission keys granted to the user org-wide."""
    if organization_id is None:
        return set(), set()

    now = now or datetime.now(timezone.utc)
    allowed: set[str] = set()
    denied: set[str] = set()
    for g in _active_grants(db, user_id, (), now):
        if g.scope_type != "ORGANIZATION" or g.scope_id != organization_id:
            continue
        if g.effect == EFFECT_DENY:
            denied.add(g.permission_key)
        else:
            allowed.add(g.permission_key)
    return allowed, denied


def list_grants(
    organization_id: Optional[str],
    *,
    user_id: Optional[str] = None,
    db: Session,
) -> list[RbacGrant]:
    q = db.query(RbacGrant)
    if organization_id is not None:
        q = q.filter(RbacGrant.scope_id == str(organization_id))
    if user_id is not None:
        q = q.filter(RbacGrant.user_id == str(user_id))
    return q.order_by(RbacGrant.created_at.desc(), RbacGrant.id.asc()).all()


def create_grant(
    *,
    user_id: Optional[str],
    role_code: Optional[str],
    permission_key: str,
    scope_type: str,
    scope_id: str,
    effect: str,
    reason: Optional[str],
    valid_until: Optional[datetime],
    created_by: str,
    db: Session,
) -> RbacGrant:
    grant = RbacGrant(
        user_id=user_id,
        role_code=role_code,
        permission_key=permission_key,
        scope_type=scope_type,
        scope_id=scope_id,
        effect=effect,
        reason=reason,
        valid_until=valid_until,
        created_by=created_by,
    )
    db.add(grant)
    db.flush()
    db.refresh(grant)
    return grant


def delete_grant(grant_id: str, organization_id: Optional[str], *, db: Session) -> Optional[RbacGrant]:
    q = db.query(RbacGrant).filter(RbacGrant.id == str(grant_id))
    if organization_id is not None:
        q = q.filter(RbacGrant.scope_id == str(organization_id))
    grant = q.one_or_none()
    if grant is None:
        return None
    db.delete(grant)
    db.flush()
    return grant
