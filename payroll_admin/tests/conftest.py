import os
_default_test_secret = "test-jwt-secret-for-pytest-only-0000000000000000"
if len(os.environ.get("JWT_SECRET", "")) < 32:
    os.environ["JWT_SECRET"] = _default_test_secret
os.environ.setdefault("ENV", "test")

import subprocess
import uuid
from datetime import date, datetime, timezone
from pathlib import Path

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.engine import make_url

TEST_DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./payroll_admin_test.db")
os.environ["DATABASE_URL"] = TEST_DATABASE_URL

from payroll_admin import database
from payroll_admin import models  # noqa: F401
from payroll_admin.models.employee import Employee
from payroll_admin.models.pay_group import EmployeePayGroup, PayGroup, PayGroupMaster, PaygroupEmployee
from payroll_admin.models.user_profile import UserProfile


def _get_access_token(client, user_id: str) -> str:
    resp = client.post("/auth/token", json={"user_id": user_id})
    assert resp.status_code == 200, f"token request failed: {resp.status_code} {resp.text}"
    data = resp.json()
    assert isinstance(data, dict), f"token response not a JSON object: {data}"
    assert "access_token" in data, f"token response missing access_token: {data}"
    return data["access_token"]


def _ensure_database_exists(database_url: str) -> None:
    url = make_url(database_url)

    if not url.drivername.startswith("postgresql"):
        return

    db_name = url.database
    admin_url = url.set(database="postgres")
    admin_engine = create_engine(admin_url, isolation_level="AUTOCOMMIT")

    try:
        with admin_engine.connect() as conn:
            exists = conn.execute(
                text("SELECT 1 FROM pg_database WHERE datname = :name"),
                {"name": db_name},
            ).scalar()
            if not exists:
                safe_db_name = db_name.replace('"', '""')
                conn.execute(text(f'CREATE DATABASE "{safe_db_name}"'))
    finally:
        admin_engine.dispose()


def _clear_tables() -> None:
    with database.engine.begin() as conn:
        if database.is_postgres():
            rows = conn.execute(
                text(
                    """
                    SELECT tablename
                    FROM pg_tables
                    WHERE schemaname = 'public'
                      AND tablename <> 'alembic_version'
                    """
                )
            ).fetchall()

            table_names = [row[0] for row in rows]
            if table_names:
                quoted = ", ".join([f'"public"."{name}"' for name in table_names])
                conn.execute(text(f"TRUNCATE TABLE {quoted} RESTART IDENTITY CASCADE"))
            return

        for table in reversed(database.Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture(scope="session", autouse=True)
def _prepare_test_database() -> None:
    _ensure_database_exists(TEST_DATABASE_URL)
    database.configure_database()

    if database.is_postgres():
        env = os.environ.copy()
        env["DATABASE_URL"] = TEST_DATABASE_URL

        subprocess.run(
            ["alembic", "upgrade", "head"],
            check=True,
            cwd=Path(__file__).resolve().parents[2],
            env=env,
        )
    else:
        database.Base.metadata.drop_all(bind=database.engine)
        database.Base.metadata.create_all(bind=database.engine)


@pytest.fixture(scope="function", autouse=True)
def _truncate_tables_between_tests():
    _clear_tables()
    yield
    _clear_tables()


_OWN_ORG = object()


class Seed:
    """Direct-to-database fixtures for the API tests."""

    def __init__(self):
        self.organization_id = str(uuid.uuid4())

    def _save(self, row):
        db = database.SessionLocal()
        try:
            db.add(row)
            db.commit()
            db.refresh(row)
            return row
        finally:
            db.close()

    def user(self, role: str = "admin", *, organization_id=_OWN_ORG, **fields) -> UserProfile:
        uid = str(uuid.uuid4())
        return self._save(
            UserProfile(
                id=uid,
                email=fields.pop("email", f"{role}-{uid[:8]}@example.com"),
                organization_id=self.organization_id if organization_id is _OWN_ORG else organization_id,
                role=role,
                **fields,
            )
        )

    def employee(self, first_name: str = "Test", *, organization_id=None, **fields) -> Employee:
        fields.setdefault("created_at", datetime.now(timezone.utc))
        return self._save(
            Employee(
                first_name=first_name,
                organization_id=organization_id or self.organization_id,
                **fields,
            )
        )

    def pay_group(self, name: str = "Head Office", *, category: str = "head_office", organization_id=None):
        org = organization_id or self.organization_id
        group = self._save(PayGroup(name=name, organization_id=org, category=category, pay_frequency="monthly"))
        master = self._save(
            PayGroupMaster(
                organization_id=org,
                type="regular",
                source_table="pay_groups",
                source_id=group.id,
                name=name,
                category=category,
                pay_frequency="monthly",
            )
        )
        return group, master

    def assign(self, employee: Employee, group: PayGroup, *, source: str = "employee_pay_groups"):
        if source == "employee_pay_groups":
            return self._save(
                EmployeePayGroup(employee_id=employee.id, pay_group_id=group.id, assigned_on=date(2024, 1, 1))
            )
        if source == "paygroup_employees":
            return self._save(PaygroupEmployee(employee_id=employee.id, pay_group_id=group.id, active=True))
        raise ValueError(f"unknown membership source: {source}")

    def headers(self, client, user: UserProfile, **extra) -> dict:
        return {"Authorization": f"Bearer {_get_access_token(client, user.id)}", **extra}


@pytest.fixture
def seed() -> Seed:
    return Seed()
