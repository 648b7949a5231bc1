import uuid
from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient

from payroll_admin.database import SessionLocal
from payroll_admin.main import app
from payroll_admin.models.audit_log import AuditLog
from payroll_admin.models.rbac import (
    RbacAssignment,
    RbacGrant,
    RbacPermission,
    RbacRole,
    RbacRolePermission,
)
from payroll_admin.services import rbac_service

client = TestClient(app)

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _seed_roles():
    db = SessionLocal()
    try:
        db.add_all(
            [
                RbacRole(code="PAYROLL_CLERK", name="Payroll Clerk", tier="org"),
                RbacPermission(key="payroll.prepare", category="payroll"),
                RbacPermission(key="payroll.approve", category="payroll"),
                RbacPermission(key="reports.view", category="reports"),
            ]
        )
        db.flush()
        db.add_all(
            [
                RbacRolePermission(role_code="PAYROLL_CLERK", permission_key="payroll.prepare"),
                RbacRolePermission(role_code="PAYROLL_CLERK", permission_key="reports.view"),
            ]
        )
        db.commit()
    finally:
        db.close()


def _add(*rows):
    db = SessionLocal()
    try:
        db.add_all(rows)
        db.commit()
    finally:
        db.close()


def _grant(user_id, permission_key, effect, scope_id, **fields):
    return RbacGrant(
        user_id=user_id,
        permission_key=permission_key,
        scope_type=fields.pop("scope_type", "ORGANIZATION"),
        scope_id=scope_id,
        effect=effect,
        **fields,
    )


def test_scope_hierarchy_from_assignments(seed):
    _seed_roles()
    user = seed.user("employee")
    company_id = str(uuid.uuid4())
    other_company = str(uuid.uuid4())
    _add(
        RbacAssignment(
            user_id=user.id,
            role_code="PAYROLL_CLERK",
            scope_type="COMPANY",
            scope_id=company_id,
            org_id=seed.organization_id,
        )
    )

    assert rbac_service.evaluate_access(user.id, "payroll.prepare", "COMPANY", company_id, now=NOW)
    assert rbac_service.evaluate_access(user.id, "payroll.prepare", "PROJECT", str(uuid.uuid4()), now=NOW)
    assert not rbac_service.evaluate_access(user.id, "payroll.prepare", "COMPANY", other_company, now=NOW)
    assert not rbac_service.evaluate_access(user.id, "payroll.prepare", "ORGANIZATION", seed.organization_id, now=NOW)
    assert not rbac_service.evaluate_access(user.id, "payroll.approve", "COMPANY", company_id, now=NOW)


def test_deny_beats_allow_and_role_default(seed):
    _seed_roles()
    user = seed.user("employee")
    org = seed.organization_id
    _add(
        RbacAssignment(user_id=user.id, role_code="PAYROLL_CLERK", scope_type="ORGANIZATION", scope_id=org, org_id=org),
        _grant(user.id, "payroll.approve", "ALLOW", org),
        _grant(user.id, "reports.view", "DENY", org),
        _grant(user.id, "payroll.prepare", "ALLOW", org),
        _grant(user.id, "payroll.prepare", "DENY", org),
    )

    assert rbac_service.evaluate_access(user.id, "payroll.approve", "ORGANIZATION", org, now=NOW)
    assert not rbac_service.evaluate_access(user.id, "reports.view", "ORGANIZATION", org, now=NOW)
    assert not rbac_service.evaluate_access(user.id, "payroll.prepare", "PROJECT", str(uuid.uuid4()), now=NOW)


def test_role_grants_and_expired_grants(seed):
    _seed_roles()
    user = seed.user("employee")
    org = seed.organization_id
    _add(
        RbacAssignment(user_id=user.id, role_code="PAYROLL_CLERK", scope_type="ORGANIZATION", scope_id=org, org_id=org),
        RbacGrant(
            role_code="PAYROLL_CLERK",
            permission_key="payroll.approve",
            scope_type="ORGANIZATION",
            scope_id=org,
            effect="ALLOW",
        ),
        _grant(user.id, "reports.view", "DENY", org, valid_until=NOW - timedelta(days=1)),
    )

    assert rbac_service.evaluate_access(user.id, "payroll.approve", "ORGANIZATION", org, now=NOW)
    assert rbac_service.evaluate_access(user.id, "reports.view", "ORGANIZATION", org, now=NOW)


def test_unknown_user_is_denied():
    unknown = str(uuid.uuid4())
    assert rbac_service.evaluate_access(unknown, "payroll.prepare", "ORGANIZATION", now=NOW) is False


def test_platform_admin_always_allowed(seed):
    root = seed.user("employee", is_platform_admin=True)
    assert rbac_service.evaluate_access(root.id, "anything.at.all", "PROJECT", str(uuid.uuid4()), now=NOW)


def test_effective_permissions_sources(seed):
    _seed_roles()
    user = seed.user("employee")
    org = seed.organization_id
    _add(
        RbacAssignment(user_id=user.id, role_code="PAYROLL_CLERK", scope_type="ORGANIZATION", scope_id=org, org_id=org),
        _grant(user.id, "reports.view", "DENY", org),
        _grant(user.id, "payroll.approve", "ALLOW", org, valid_until=NOW + timedelta(days=1)),
    )

    decisions = {d.permission: d for d in rbac_service.effective_permissions(user.id, org, now=NOW)}
    assert (decisions["payroll.prepare"].allowed, decisions["payroll.prepare"].source) == (True, "role")
    assert (decisions["payroll.approve"].allowed, decisions["payroll.approve"].source) == (True, "grant")
    assert (decisions["reports.view"].allowed, decisions["reports.view"].source) == (False, "grant")


def test_grant_overlay_changes_request_capabilities(seed):
    clerk = seed.user("employee")
    group, _ = seed.pay_group()
    headers = seed.headers(client, clerk)
    body = {"pay_period_start": "2024-01-01", "pay_period_end": "2024-01-31", "pay_group_id": group.id}

    assert client.post("/payruns", json=body, headers=headers).status_code == 403

    _add(_grant(clerk.id, "payroll.prepare", "ALLOW", seed.organization_id))
    assert client.post("/payruns", json=body, headers=headers).status_code == 200

    admin = seed.user("admin")
    _add(_grant(admin.id, "payroll.prepare", "DENY", seed.organization_id))
    assert client.post("/payruns", json=body, headers=seed.headers(client, admin)).status_code == 403


def test_grants_api_create_list_delete(seed):
    boss = seed.user("super_admin")
    target = seed.user("employee")
    headers = seed.headers(client, boss)

    r = client.post(
        "/rbac/grants",
        json={"user_id": target.id, "permission_key": "payroll.prepare", "effect": "ALLOW", "reason": "month end"},
        headers=headers,
    )
    assert r.status_code == 200, r.text
    grant = r.json()["grant"]
    assert grant["scope_type"] == "ORGANIZATION"
    assert grant["scope_id"] == seed.organization_id
    assert grant["created_by"] == boss.id

    listing = client.get("/rbac/grants", params={"user_id": target.id}, headers=headers)
    assert listing.status_code == 200
    assert [g["id"] for g in listing.json()["grants"]] == [grant["id"]]

    perms = client.get("/rbac/effective-permissions", params={"user_id": target.id}, headers=headers)
    assert perms.status_code == 200
    by_key = {p["permission"]: p for p in perms.json()["permissions"]}
    assert by_key["payroll.prepare"] == {"permission": "payroll.prepare", "allowed": True, "source": "grant"}

    r = client.delete(f"/rbac/grants/{grant['id']}", headers=headers)
    assert r.status_code == 200, r.text
    assert client.delete(f"/rbac/grants/{grant['id']}", headers=headers).status_code == 404

    db = SessionLocal()
    try:
        audits = db.query(AuditLog).filter(AuditLog.resource == "rbac_grant").order_by(AuditLog.id.asc()).all()
    finally:
        db.close()
    assert [(a.action, a.result) for a in audits] == [("create", "success"), ("delete", "success"), ("delete", "failure")]


def test_grant_requires_subject_and_capability(seed):
    boss = seed.user("super_admin")
    r = client.post(
        "/rbac/grants",
        json={"permission_key": "payroll.prepare", "effect": "MAYBE"},
        headers=seed.headers(client, boss),
    )
    assert r.status_code == 400
    assert {e["field"] for e in r.json()["errors"]} == {"effect"}

    admin = seed.user("admin")
    r = client.post(
        "/rbac/grants",
        json={"user_id": admin.id, "permission_key": "payroll.prepare", "effect": "ALLOW"},
        headers=seed.headers(client, admin),
    )
    assert r.status_code == 403


def test_effective_permissions_of_others_needs_capability(seed):
    finance = seed.user("finance")
    other = seed.user("employee")
    headers = seed.headers(client, finance)

    assert client.get("/rbac/effective-permissions", headers=headers).status_code == 200
    r = client.get("/rbac/effective-permissions", params={"user_id": other.id}, headers=headers)
    assert r.status_code == 403
    assert r.json()["code"] == "PERMISSION_DENIED"
