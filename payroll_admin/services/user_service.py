import logging
from datetime import timedelta

from sqlalchemy.orm import Session

from payroll_admin.core.authorization import RoleTier
from payroll_admin.core.context import RequestContext
from payroll_admin.core.errors import NotFound, PermissionDenied, SelfDeleteForbidden
from payroll_admin.models.user_profile import UserProfile
from payroll_admin.schemas.user import UserDelete, UserUpdate

logger = logging.getLogger(__name__)

# Soft-deleted users stay banned for roughly a century.
BAN_DURATION = timedelta(hours=876000)

_PROFILE_FIELDS = ("email", "first_name", "last_name", "is_active")


def _load_profile(db: Session, user_id: str, ctx: RequestContext) -> UserProfile:
    q = db.query(UserProfile).filter(UserProfile.id == str(user_id))
    if not ctx.principal.is_platform_admin:
        q = q.filter(UserProfile.organization_id == ctx.organization_id)
    profile = q.one_or_none()
    if profile is None:
        raise NotFound("User not found", details={"user_id": str(user_id)})
    return profile


def update_user(payload: UserUpdate, ctx: RequestContext, db: Session) -> tuple[UserProfile, dict]:
    profile = _load_profile(db, payload.id, ctx)
    fields = payload.model_fields_set - {"id"}
    details: dict = {"updated_fields": sorted(fields)}

    if "role" in fields and payload.role is not None and payload.role != profile.role:
        if not ctx.principal.at_least(RoleTier.SUPER_ADMIN):
            raise PermissionDenied(
                "Only super admins can change user roles",
                reason="requires_super_admin",
            )
        details.update({"from_role": profile.role, "to_role": payload.role})
        profile.role = payload.role

    for name in _PROFILE_FIELDS:
        if name in fields and getattr(payload, name) is not None:
            setattr(profile, name, getattr(payload, name))

    profile.updated_at = ctx.now()
    db.commit()
    return profile, details


def delete_user(payload: UserDelete, ctx: RequestContext, db: Session) -> tuple[UserProfile, str]:
    if payload.id == ctx.user_id:
        raise SelfDeleteForbidden("You cannot delete your own account")

    profile = _load_profile(db, payload.id, ctx)

    if payload.hard_delete:
        if not ctx.principal.at_least(RoleTier.SUPER_ADMIN):
            raise PermissionDenied(
                "Only super admins can permanently delete users",
                reason="requires_super_admin",
            )
        db.delete(profile)
        db.commit()
        logger.info("user_hard_deleted", extra={"target_user_id": payload.id, "user_id": ctx.user_id})
        return profile, "hard"

    now = ctx.now()
    profile.is_active = False
    profile.banned_until = now + BAN_DURATION
    profile.updated_at = now
    db.commit()
    logger.info("user_banned", extra={"target_user_id": payload.id, "user_id": ctx.user_id})
    return profile, "soft"
