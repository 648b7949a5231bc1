import uuid
from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient

from payroll_admin.database import SessionLocal
from payroll_admin.main import app
from payroll_admin.models.audit_log import AuditLog
from payroll_admin.models.user_profile import UserProfile

client = TestClient(app)


def _profile(user_id):
    db = SessionLocal()
    try:
        return db.get(UserProfile, user_id)
    finally:
        db.close()


def _audits():
    db = SessionLocal()
    try:
        return db.query(AuditLog).filter(AuditLog.resource == "user").order_by(AuditLog.id.asc()).all()
    finally:
        db.close()


def test_admin_updates_profile_fields(seed):
    admin = seed.user("admin")
    target = seed.user("employee")

    r = client.put(
        "/users",
        json={"id": target.id, "first_name": "Jo", "email": "jo@example.com", "is_active": True},
        headers=seed.headers(client, admin),
    )
    assert r.status_code == 200, r.text
    assert r.json()["user"]["first_name"] == "Jo"
    assert _profile(target.id).email == "jo@example.com"
    assert [(a.action, a.result) for a in _audits()] == [("update", "success")]


def test_role_change_requires_super_admin(seed):
    admin = seed.user("admin")
    target = seed.user("employee")

    r = client.patch("/users", json={"id": target.id, "role": "finance"}, headers=seed.headers(client, admin))
    assert r.status_code == 403
    assert _profile(target.id).role == "employee"
    assert _audits()[-1].result == "denied"

    boss = seed.user("super_admin")
    r = client.patch("/users", json={"id": target.id, "role": "finance"}, headers=seed.headers(client, boss))
    assert r.status_code == 200, r.text
    assert _profile(target.id).role == "finance"
    assert _audits()[-1].details["to_role"] == "finance"


def test_invalid_email_and_role_rejected(seed):
    admin = seed.user("admin")
    target = seed.user("employee")

    r = client.put(
        "/users",
        json={"id": target.id, "email": "not-an-email", "role": "overlord"},
        headers=seed.headers(client, admin),
    )
    assert r.status_code == 400
    assert {e["field"] for e in r.json()["errors"]} == {"email", "role"}


def test_user_management_needs_capability(seed):
    finance = seed.user("finance")
    target = seed.user("employee")

    r = client.put("/users", json={"id": target.id, "first_name": "X"}, headers=seed.headers(client, finance))
    assert r.status_code == 403


def test_cannot_delete_self(seed):
    admin = seed.user("admin")

    r = client.request("DELETE", "/users", json={"id": admin.id}, headers=seed.headers(client, admin))
    assert r.status_code == 400
    assert r.json()["code"] == "SELF_DELETE_FORBIDDEN"
    assert _profile(admin.id).is_active is True


def test_soft_delete_bans_user(seed):
    admin = seed.user("admin")
    target = seed.user("finance")
    target_headers = seed.headers(client, target)
    assert client.get("/payruns", headers=target_headers).status_code == 200

    r = client.request("DELETE", "/users", json={"id": target.id}, headers=seed.headers(client, admin))
    assert r.status_code == 200, r.text
    assert r.json()["message"] == "User deactivated successfully"

    profile = _profile(target.id)
    assert profile.is_active is False
    banned_until = profile.banned_until
    if banned_until.tzinfo is None:
        banned_until = banned_until.replace(tzinfo=timezone.utc)
    assert banned_until > datetime.now(timezone.utc) + timedelta(days=365 * 99)

    assert client.get("/payruns", headers=target_headers).status_code == 401


def test_hard_delete_requires_super_admin(seed):
    admin = seed.user("admin")
    target = seed.user("employee")

    r = client.request("DELETE", "/users", json={"id": target.id, "hard_delete": True}, headers=seed.headers(client, admin))
    assert r.status_code == 403
    assert _profile(target.id) is not None

    boss = seed.user("super_admin")
    r = client.request("DELETE", "/users", json={"id": target.id, "hard_delete": True}, headers=seed.headers(client, boss))
    assert r.status_code == 200, r.text
    assert _profile(target.id) is None


def test_users_of_other_organizations_are_not_found(seed):
    admin = seed.user("admin")
    stranger = seed.user("employee", organization_id=str(uuid.uuid4()))

    r = client.request("DELETE", "/users", json={"id": stranger.id}, headers=seed.headers(client, admin))
    assert r.status_code == 404
    assert _profile(stranger.id).is_active is True
