import logging
from datetime import datetime, timezone

from fastapi.testclient import TestClient

from payroll_admin.database import SessionLocal
from payroll_admin.main import app
from payroll_admin.models.audit_log import AuditLog
from payroll_admin.services import audit_logger
from payroll_admin.services.audit_logger import AuditEvent, log_audit_event

client = TestClient(app)


class _BrokenSession:
    def add(self, row):
        pass

    def commit(self):
        raise RuntimeError("audit table locked")

    def rollback(self):
        pass

    def close(self):
        pass


def _rows():
    db = SessionLocal()
    try:
        return db.query(AuditLog).order_by(AuditLog.id.asc()).all()
    finally:
        db.close()


def test_log_audit_event_writes_row():
    ok = log_audit_event(
        AuditEvent(
            user_id="4f1c7f0e-1d7b-4a55-9b7a-8a2f0c9e1d11",
            organization_id=None,
            action="create",
            resource="pay_run",
            result="success",
            resource_id="abc",
            details={"k": "v"},
            timestamp=datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
        )
    )
    assert ok is True

    rows = _rows()
    assert len(rows) == 1
    assert rows[0].details == {"k": "v"}
    assert rows[0].resource_id == "abc"


def test_invalid_result_is_not_stored(caplog):
    with caplog.at_level(logging.ERROR, logger="payroll_admin.services.audit_logger"):
        ok = log_audit_event(AuditEvent(user_id="u", organization_id=None, action="create", resource="x", result="maybe"))
    assert ok is False
    assert _rows() == []
    assert any(r.getMessage() == "audit_log_write_failed" for r in caplog.records)


def test_write_failure_never_propagates(monkeypatch, caplog):
    monkeypatch.setattr(audit_logger, "SessionLocal", _BrokenSession)

    with caplog.at_level(logging.ERROR, logger="payroll_admin.services.audit_logger"):
        ok = log_audit_event(AuditEvent(user_id="u", organization_id=None, action="delete", resource="x", result="denied"))

    assert ok is False
    failure = next(r for r in caplog.records if r.getMessage() == "audit_log_write_failed")
    assert failure.audit_action == "delete"
    assert failure.exc_info is not None


def test_request_succeeds_when_audit_write_fails(seed, monkeypatch):
    admin = seed.user("admin")
    group, _ = seed.pay_group()
    headers = seed.headers(client, admin)
    monkeypatch.setattr(audit_logger, "SessionLocal", _BrokenSession)

    r = client.post(
        "/payruns",
        json={"pay_period_start": "2024-01-01", "pay_period_end": "2024-01-31", "pay_group_id": group.id},
        headers=headers,
    )
    assert r.status_code == 200, r.text
    assert _rows() == []


def test_request_origin_recorded(seed):
    admin = seed.user("admin")
    group, _ = seed.pay_group()
    headers = seed.headers(
        client,
        admin,
        **{"X-Forwarded-For": "203.0.113.7, 10.0.0.1", "X-Real-IP": "10.0.0.2", "User-Agent": "payroll-ui/2.1"},
    )

    r = client.post(
        "/payruns",
        json={"pay_period_start": "2024-01-01", "pay_period_end": "2024-01-31", "pay_group_id": group.id},
        headers=headers,
    )
    assert r.status_code == 200, r.text

    row = _rows()[0]
    assert row.ip_address == "203.0.113.7"
    assert row.user_agent == "payroll-ui/2.1"
    assert row.user_id == admin.id
    assert row.organization_id == seed.organization_id


def test_real_ip_fallback(seed):
    admin = seed.user("super_admin")
    target = seed.user("employee")
    headers = seed.headers(client, admin, **{"X-Real-IP": "198.51.100.9"})

    r = client.put("/users", json={"id": target.id, "last_name": "Ng"}, headers=headers)
    assert r.status_code == 200, r.text
    assert _rows()[0].ip_address == "198.51.100.9"


def test_unexpected_error_is_audited_and_enveloped(seed, monkeypatch):
    from payroll_admin.services import pay_run_service

    admin = seed.user("admin")
    group, _ = seed.pay_group()

    def explode(*args, **kwargs):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(pay_run_service, "resolve_pay_group_master", explode)

    r = client.post(
        "/payruns",
        json={"pay_period_start": "2024-01-01", "pay_period_end": "2024-01-31", "pay_group_id": group.id},
        headers=seed.headers(client, admin),
    )
    assert r.status_code == 500
    assert r.json() == {"success": False, "message": "Internal server error", "code": "INTERNAL_ERROR"}

    rows = _rows()
    assert [(a.action, a.result) for a in rows] == [("create", "failure")]
    assert rows[0].details["code"] == "INTERNAL_ERROR"


def test_malformed_body_is_rejected_and_audited(seed):
    admin = seed.user("admin")
    headers = seed.headers(client, admin, **{"Content-Type": "application/json"})

    r = client.post("/payruns", content=b"{not json", headers=headers)
    assert r.status_code == 400
    assert r.json()["code"] == "VALIDATION_ERROR"
    assert r.json()["errors"] == [{"field": "body", "message": "Request body is not valid JSON"}]

    r = client.put("/payitems", content=b"[1, 2", headers=headers)
    assert r.status_code == 400

    rows = _rows()
    assert [(a.resource, a.action, a.result) for a in rows] == [
        ("pay_run", "create", "failure"),
        ("pay_item", "update", "failure"),
    ]
    assert rows[0].details["code"] == "VALIDATION_ERROR"
