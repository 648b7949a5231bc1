import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Optional
from uuid import uuid4

from sqlalchemy.orm import Session

from payroll_admin.database import SessionLocal
from payroll_admin.integrations.zoho.api_client import ZohoPeopleClient
from payroll_admin.integrations.zoho.config import INTEGRATION_NAME
from payroll_admin.models.employee import Employee
from payroll_admin.models.integration import AttendanceRecord, SyncLog
from payroll_admin.models.pay_item import PayItem
from payroll_admin.models.pay_run import PayRun

logger = logging.getLogger(__name__)

SYNC_STATUS_WINDOW = 100


@dataclass
class SyncStatus:
    sync_id: str
    type: str
    direction: str
    status: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    records_processed: int = 0
    records_failed: int = 0
    retry_count: int = 0
    error_message: Optional[str] = None
    errors: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "sync_id": self.sync_id,
            "type": self.type,
            "direction": self.direction,
            "status": self.status,
            "started_at": self.started_at.isoformat(),
            "completed_at": None if self.completed_at is None else self.completed_at.isoformat(),
            "records_processed": self.records_processed,
            "records_failed": self.records_failed,
            "error_message": self.error_message,
        }


def _records(payload: Any, key: str) -> list[dict]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for candidate in (key, "data", "records"):
            value = payload.get(candidate)
            if isinstance(value, list):
                return value
    return []


def map_employee(zoho_employee: dict) -> dict:
    """Zoho People employee record -> employees columns."""
    email = (zoho_employee.get("email") or "").strip()
    if not email:
        raise ValueError("Zoho employee record has no email")

    data = {
        "first_name": zoho_employee.get("firstName") or email,
        "last_name": zoho_employee.get("lastName"),
        "email": email,
        "phone": zoho_employee.get("phoneNumber") or None,
        "status": "active" if zoho_employee.get("employmentStatus") == "active" else "inactive",
        "external_id": None if zoho_employee.get("employeeId") is None else str(zoho_employee["employeeId"]),
    }
    if zoho_employee.get("basicSalary") is not None:
        data["pay_rate"] = Decimal(str(zoho_employee["basicSalary"]))
    if zoho_employee.get("bankAccountNumber"):
        data["bank_account"] = zoho_employee["bankAccountNumber"]
    if zoho_employee.get("panNumber"):
        data["tax_id"] = zoho_employee["panNumber"]
    return data


class ZohoSyncService:
    def __init__(
        self,
        client: ZohoPeopleClient,
        organization_id: Optional[str],
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.client = client
        self.organization_id = organization_id
        self.clock = clock

    # Sync log rows

    def _start(self, sync_type: str, direction: str) -> SyncStatus:
        now = self.clock()
        status = SyncStatus(
            sync_id=f"{sync_type}_sync_{now.strftime('%Y%m%d%H%M%S')}_{uuid4().hex[:8]}",
            type=sync_type,
            direction=direction,
            status="processing",
            started_at=now,
        )
        db = SessionLocal()
        try:
            db.add(
                SyncLog(
                    sync_id=status.sync_id,
                    integration_name=INTEGRATION_NAME,
                    type=sync_type,
                    direction=direction,
                    status=status.status,
                    started_at=now,
                )
            )
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("sync_log_start_failed", extra={"sync_id": status.sync_id})
        finally:
            db.close()
        return status

    def _complete(self, status: SyncStatus) -> None:
        status.completed_at = self.clock()
        db = SessionLocal()
        try:
            row = db.query(SyncLog).filter(SyncLog.sync_id == status.sync_id).one_or_none()
            if row is not None:
                row.status = status.status
                row.completed_at = status.completed_at
                row.records_processed = status.records_processed
                row.records_failed = status.records_failed
                row.error_message = status.error_message
                db.commit()
        except Exception:
            db.rollback()
            logger.exception("sync_log_complete_failed", extra={"sync_id": status.sync_id})
        finally:
            db.close()

        logger.info(
            "zoho_sync_finished",
            extra={
                "sync_id": status.sync_id,
                "sync_type": status.type,
                "sync_status": status.status,
                "processed": status.records_processed,
                "failed": status.records_failed,
            },
        )

    def _run(self, sync_type: str, direction: str, fetch, handle) -> SyncStatus:
        status = self._start(sync_type, direction)
        try:
            records = fetch()
            db = SessionLocal()
            try:
                for record in records:
                    try:
                        handle(db, record)
                        db.commit()
                        status.records_processed += 1
                    except Exception as exc:
                        db.rollback()
                        status.records_failed += 1
                        status.errors.append(str(exc))
                        logger.warning(
                            "zoho_sync_record_failed",
                            extra={"sync_id": status.sync_id, "error": str(exc)},
                        )
            finally:
                db.close()
            status.status = "completed"
        except Exception as exc:
            status.status = "failed"
            status.error_message = str(exc)
            self._complete(status)
            raise

        self._complete(status)
        return status

    # Inbound

    def sync_employees_from_zoho(self, *, department: Optional[str] = None, status: Optional[str] = None) -> SyncStatus:
        def fetch():
            return _records(self.client.get_employees(department=department, status=status), "employees")

        return self._run("employee", "inbound", fetch, self._upsert_employee)

    def _upsert_employee(self, db: Session, zoho_employee: dict) -> Employee:
        data = map_employee(zoho_employee)
        q = db.query(Employee).filter(Employee.email == data["email"])
        if self.organization_id is not None:
            q = q.filter(Employee.organization_id == self.organization_id)
        employee = q.first()

        if employee is None:
            employee = Employee(organization_id=self.organization_id, created_at=self.clock())
            db.add(employee)

        for key, value in data.items():
            setattr(employee, key, value)
        employee.updated_at = self.clock()
        db.flush()
        return employee

    def sync_attendance_from_zoho(self, start_date: str, end_date: str) -> SyncStatus:
        def fetch():
            payload = self.client.get_attendance_records(start_date=start_date, end_date=end_date)
            return _records(payload, "records")

        return self._run("attendance", "inbound", fetch, self._insert_attendance)

    def _insert_attendance(self, db: Session, record: dict) -> AttendanceRecord:
        ref = str(record.get("employeeId") or "")
        q = db.query(Employee).filter((Employee.external_id == ref) | (Employee.email == ref))
        if self.organization_id is not None:
            q = q.filter(Employee.organization_id == self.organization_id)
        employee = q.first()
        if employee is None:
            raise ValueError(f"Employee not found: {ref}")

        row = AttendanceRecord(
            employee_id=employee.id,
            date=date.fromisoformat(str(record["date"])[:10]),
            check_in=record.get("checkIn"),
            check_out=record.get("checkOut"),
            total_hours=None if record.get("totalHours") is None else Decimal(str(record["totalHours"])),
            overtime_hours=None if record.get("overtimeHours") is None else Decimal(str(record["overtimeHours"])),
            status=record.get("status") or "present",
            leave_type=record.get("leaveType"),
            remarks=record.get("remarks"),
        )
        db.add(row)
        db.flush()
        return row

    # Outbound

    def sync_payroll_to_zoho(self, pay_run_id: str) -> SyncStatus:
        def fetch():
            db = SessionLocal()
            try:
                q = db.query(PayRun).filter(PayRun.id == str(pay_run_id))
                if self.organization_id is not None:
                    q = q.filter(PayRun.organization_id == self.organization_id)
                pay_run = q.one_or_none()
                if pay_run is None:
                    raise ValueError(f"Pay run not found: {pay_run_id}")
                return [(pay_run, item, item.employee) for item in pay_run.pay_items]
            finally:
                db.close()

        return self._run("payroll", "outbound", fetch, self._push_pay_item)

    def _push_pay_item(self, db: Session, row) -> None:
        pay_run, item, employee = row
        self.client.create_payroll_record(
            {
                "employeeId": employee.external_id or employee.email,
                "payRunId": pay_run.pay_run_id,
                "periodStart": pay_run.pay_period_start.isoformat(),
                "periodEnd": pay_run.pay_period_end.isoformat(),
                "grossPay": str(item.gross_pay),
                "totalDeductions": str(item.total_deductions),
                "netPay": str(item.net_pay),
            }
        )

    # Monitoring

    def get_sync_status(self) -> dict:
        db = SessionLocal()
        try:
            logs = (
                db.query(SyncLog)
                .filter(SyncLog.integration_name == INTEGRATION_NAME)
                .order_by(SyncLog.started_at.desc(), SyncLog.id.desc())
                .limit(SYNC_STATUS_WINDOW)
                .all()
            )
        finally:
            db.close()

        durations = [
            (_aware(l.completed_at) - _aware(l.started_at)).total_seconds() * 1000.0
            for l in logs
            if l.completed_at is not None
        ]
        return {
            "last_sync": logs[0].started_at.isoformat() if logs else None,
            "total_syncs": len(logs),
            "successful_syncs": sum(1 for l in logs if l.status == "completed"),
            "failed_syncs": sum(1 for l in logs if l.status == "failed"),
            "average_response_time": (sum(durations) / len(durations)) if durations else 0.0,
        }


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
