from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from payroll_admin.database import SessionLocal
from payroll_admin.integrations.zoho.api_client import ZohoApiError
from payroll_admin.integrations.zoho.sync_service import ZohoSyncService, map_employee
from payroll_admin.models.employee import Employee
from payroll_admin.models.integration import AttendanceRecord, SyncLog
from payroll_admin.models.pay_item import PayItem
from payroll_admin.models.pay_run import PayRun

NOW = datetime(2024, 3, 1, 8, 30, tzinfo=timezone.utc)


class StubClient:
    def __init__(self, employees=None, attendance=None, fail_with=None):
        self.employees = employees or []
        self.attendance = attendance or []
        self.fail_with = fail_with
        self.pushed = []

    def get_employees(self, department=None, status=None):
        if self.fail_with is not None:
            raise self.fail_with
        return {"employees": self.employees}

    def get_attendance_records(self, start_date=None, end_date=None, employee_id=None):
        return {"records": self.attendance}

    def create_payroll_record(self, payroll_data):
        self.pushed.append(payroll_data)
        return {"ok": True}


def _sync(client, organization_id):
    return ZohoSyncService(client, organization_id, clock=lambda: NOW)


def _logs():
    db = SessionLocal()
    try:
        return db.query(SyncLog).order_by(SyncLog.id.asc()).all()
    finally:
        db.close()


def _employees(organization_id):
    db = SessionLocal()
    try:
        return (
            db.query(Employee)
            .filter(Employee.organization_id == organization_id)
            .order_by(Employee.email.asc())
            .all()
        )
    finally:
        db.close()


def test_map_employee_requires_email():
    with pytest.raises(ValueError):
        map_employee({"firstName": "Nobody"})

    data = map_employee(
        {
            "employeeId": 42,
            "firstName": "Ada",
            "email": " ada@example.com ",
            "employmentStatus": "terminated",
            "basicSalary": 5200.5,
            "panNumber": "ABCDE1234F",
        }
    )
    assert data["email"] == "ada@example.com"
    assert data["external_id"] == "42"
    assert data["status"] == "inactive"
    assert data["pay_rate"] == Decimal("5200.5")
    assert data["tax_id"] == "ABCDE1234F"


def test_employee_sync_upserts_by_email_and_counts_failures(seed):
    existing = seed.employee("Old", email="grace@example.com", pay_rate=Decimal("100"))
    client = StubClient(
        employees=[
            {"employeeId": "Z1", "firstName": "Grace", "lastName": "Hopper", "email": "grace@example.com",
             "employmentStatus": "active", "basicSalary": 9000},
            {"employeeId": "Z2", "firstName": "Alan", "email": "alan@example.com", "employmentStatus": "active"},
            {"employeeId": "Z3", "firstName": "No Mail"},
        ]
    )

    status = _sync(client, seed.organization_id).sync_employees_from_zoho()

    assert (status.status, status.records_processed, status.records_failed) == ("completed", 2, 1)
    assert status.sync_id.startswith("employee_sync_20240301083000_")

    rows = _employees(seed.organization_id)
    assert [e.email for e in rows] == ["alan@example.com", "grace@example.com"]
    grace = next(e for e in rows if e.email == "grace@example.com")
    assert grace.id == existing.id
    assert (grace.first_name, grace.external_id, grace.pay_rate) == ("Grace", "Z1", Decimal("9000"))

    log = _logs()[0]
    assert (log.type, log.direction, log.status) == ("employee", "inbound", "completed")
    assert (log.records_processed, log.records_failed) == (2, 1)
    assert log.completed_at is not None


def test_employee_sync_stays_inside_its_organization(seed):
    other_org = "99999999-8888-4777-8666-555555555555"
    seed.employee("Elsewhere", organization_id=other_org, email="shared@example.com")
    client = StubClient(employees=[{"firstName": "Here", "email": "shared@example.com", "employmentStatus": "active"}])

    _sync(client, seed.organization_id).sync_employees_from_zoho()

    assert [e.first_name for e in _employees(other_org)] == ["Elsewhere"]
    assert [e.first_name for e in _employees(seed.organization_id)] == ["Here"]


def test_fetch_failure_marks_log_failed_and_reraises(seed):
    client = StubClient(fail_with=ZohoApiError("Zoho People API is unreachable"))

    with pytest.raises(ZohoApiError):
        _sync(client, seed.organization_id).sync_employees_from_zoho()

    log = _logs()[0]
    assert log.status == "failed"
    assert log.error_message == "Zoho People API is unreachable"
    assert log.completed_at is not None


def test_attendance_matches_external_id_or_email(seed):
    by_ref = seed.employee("Ref", external_id="Z7")
    by_mail = seed.employee("Mail", email="mail@example.com")
    client = StubClient(
        attendance=[
            {"employeeId": "Z7", "date": "2024-02-01", "checkIn": "09:00", "checkOut": "17:30", "totalHours": 8.5},
            {"employeeId": "mail@example.com", "date": "2024-02-01T00:00:00", "status": "leave", "leaveType": "sick"},
            {"employeeId": "ghost", "date": "2024-02-01"},
        ]
    )

    status = _sync(client, seed.organization_id).sync_attendance_from_zoho("2024-02-01", "2024-02-29")
    assert (status.records_processed, status.records_failed) == (2, 1)
    assert "Employee not found: ghost" in status.errors

    db = SessionLocal()
    try:
        rows = {r.employee_id: r for r in db.query(AttendanceRecord).all()}
    finally:
        db.close()
    assert rows[by_ref.id].total_hours == Decimal("8.50")
    assert rows[by_ref.id].status == "present"
    assert (rows[by_mail.id].status, rows[by_mail.id].leave_type) == ("leave", "sick")
    assert rows[by_mail.id].date == date(2024, 2, 1)


def test_payroll_push_sends_one_record_per_item(seed):
    ada = seed.employee("Ada", external_id="Z1")
    bob = seed.employee("Bob", email="bob@example.com")
    db = SessionLocal()
    try:
        run = PayRun(
            pay_run_id="HOF-20240131-083000",
            organization_id=seed.organization_id,
            pay_run_date=date(2024, 1, 31),
            pay_period_start=date(2024, 1, 1),
            pay_period_end=date(2024, 1, 31),
            status="approved",
        )
        db.add(run)
        db.flush()
        db.add_all(
            [
                PayItem(pay_run_id=run.id, employee_id=ada.id, gross_pay=1000, total_deductions=150, net_pay=850),
                PayItem(pay_run_id=run.id, employee_id=bob.id, gross_pay=500, total_deductions=0, net_pay=500),
            ]
        )
        db.commit()
        run_id = run.id
    finally:
        db.close()

    client = StubClient()
    status = _sync(client, seed.organization_id).sync_payroll_to_zoho(run_id)

    assert (status.direction, status.records_processed, status.records_failed) == ("outbound", 2, 0)
    by_employee = {p["employeeId"]: p for p in client.pushed}
    assert set(by_employee) == {"Z1", "bob@example.com"}
    assert by_employee["Z1"]["payRunId"] == "HOF-20240131-083000"
    assert Decimal(by_employee["Z1"]["netPay"]) == Decimal("850")
    assert by_employee["Z1"]["periodEnd"] == "2024-01-31"


def test_payroll_push_of_foreign_run_fails(seed):
    with pytest.raises(ValueError):
        _sync(StubClient(), seed.organization_id).sync_payroll_to_zoho("00000000-0000-4000-8000-000000000000")
    assert _logs()[0].status == "failed"


def test_sync_status_counts(seed):
    ok = StubClient(employees=[{"firstName": "A", "email": "a@example.com", "employmentStatus": "active"}])
    broken = StubClient(fail_with=ZohoApiError("boom"))
    sync = _sync(ok, seed.organization_id)

    sync.sync_employees_from_zoho()
    with pytest.raises(ZohoApiError):
        _sync(broken, seed.organization_id).sync_employees_from_zoho()

    stats = sync.get_sync_status()
    assert stats["total_syncs"] == 2
    assert stats["successful_syncs"] == 1
    assert stats["failed_syncs"] == 1
    assert stats["last_sync"] is not None
    assert stats["average_response_time"] == 0.0
