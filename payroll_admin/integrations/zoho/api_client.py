import logging
import time
from typing import Any, Callable, Optional

import requests

from payroll_admin.integrations.zoho.auth import ZohoAuthService
from payroll_admin.integrations.zoho.config import ZohoConfig

logger = logging.getLogger(__name__)

MIN_REQUEST_INTERVAL_SECONDS = 1.0


class ZohoApiError(Exception):
    def __init__(self, message: str, *, status_code: Optional[int] = None, payload: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class ZohoPeopleClient:
    """
    Thin Zoho People REST client.

    Calls are spaced at least one second apart. A 401 triggers one token
    refresh and one retry.
    """

    def __init__(
        self,
        config: ZohoConfig,
        auth: ZohoAuthService,
        session=None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.auth = auth
        self.session = session or requests.Session()
        self.clock = clock
        self.sleep = sleep
        self._last_request_at: Optional[float] = None

    def _build_url(self, path: str) -> str:
        return f"{self.config.api_base_url.rstrip('/')}/{path.lstrip('/')}"

    def _throttle(self) -> None:
        if self._last_request_at is not None:
            elapsed = self.clock() - self._last_request_at
            if elapsed < MIN_REQUEST_INTERVAL_SECONDS:
                self.sleep(MIN_REQUEST_INTERVAL_SECONDS - elapsed)
        self._last_request_at = self.clock()

    def _send(self, method: str, path: str, token: str, params=None, json=None):
        self._throttle()
        try:
            return self.session.request(
                method=method.upper(),
                url=self._build_url(path),
                params=params,
                json=json,
                headers={
                    "Authorization": f"Zoho-oauthtoken {token}",
                    "Accept": "application/json",
                    "Content-Type": "application/json",
                },
                timeout=self.config.timeout,
            )
        except requests.RequestException as exc:
            raise ZohoApiError(f"Zoho request failed: {exc}") from exc

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, Any]] = None,
        json: Optional[dict[str, Any]] = None,
    ) -> Any:
        token = self.auth.get_valid_access_token()
        response = self._send(method, path, token, params=params, json=json)

        if response.status_code == 401:
            logger.info("zoho_request_unauthorized_retrying", extra={"path": path})
            token = self.auth.refresh_access_token().access_token
            response = self._send(method, path, token, params=params, json=json)

        payload: Any = {}
        if response.content:
            try:
                payload = response.json()
            except ValueError:
                payload = {"raw": response.text}

        if response.status_code >= 400:
            raise ZohoApiError(
                f"Zoho request failed with status {response.status_code}",
                status_code=response.status_code,
                payload=payload,
            )
        return payload

    @staticmethod
    def _query(**kwargs) -> dict[str, Any]:
        return {k: v for k, v in kwargs.items() if v not in (None, "")}

    def get_employees(self, *, department=None, status=None, limit=None, offset=None) -> dict:
        return self.request(
            "get",
            "/employees/v1/employees",
            params=self._query(department=department, status=status, limit=limit, offset=offset),
        )

    def get_employee(self, employee_id: str) -> dict:
        return self.request("get", f"/employees/v1/employees/{employee_id}")

    def get_attendance_records(self, *, start_date: str, end_date: str, employee_id=None) -> dict:
        return self.request(
            "get",
            "/attendance/v1/records",
            params=self._query(startDate=start_date, endDate=end_date, employeeId=employee_id),
        )

    def get_leave_requests(self, *, start_date: str, end_date: str, status=None, employee_id=None) -> dict:
        return self.request(
            "get",
            "/leave/v1/requests",
            params=self._query(startDate=start_date, endDate=end_date, status=status, employeeId=employee_id),
        )

    def get_salary_revisions(self, *, employee_id=None, status=None) -> dict:
        return self.request(
            "get",
            "/payroll/v1/salary",
            params=self._query(employeeId=employee_id, status=status),
        )

    def create_payroll_record(self, record: dict[str, Any]) -> dict:
        return self.request("post", "/payroll/v1/records", json=record)

    def test_connection(self) -> bool:
        try:
            self.request("get", "/employees/v1/employees", params={"limit": 1})
            return True
        except Exception:
            logger.exception("zoho_connection_test_failed")
            return False

    def get_api_status(self) -> dict:
        started = time.perf_counter()
        online = self.test_connection()
        response_time_ms = (time.perf_counter() - started) * 1000.0
        return {"online": online, "response_time_ms": round(response_time_ms, 2)}
