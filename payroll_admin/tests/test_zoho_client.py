from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from urllib.parse import parse_qs, urlparse

import pytest
import requests

from payroll_admin.database import SessionLocal
from payroll_admin.integrations.zoho.api_client import ZohoApiError, ZohoPeopleClient
from payroll_admin.integrations.zoho.auth import ZohoAuthError, ZohoAuthService, ZohoTokens
from payroll_admin.integrations.zoho.config import INTEGRATION_NAME, ZohoConfig
from payroll_admin.models.integration import IntegrationToken

CONFIG = ZohoConfig(
    client_id="client-123",
    client_secret="secret-456",
    redirect_uri="https://payroll.example.com/zoho/callback",
    api_base_url="https://people.zoho.test/api",
    accounts_url="https://accounts.zoho.test",
)


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = {} if payload is None else payload
        self.content = b"{}" if payload is not None else b""
        self.text = str(self._payload)

    def json(self):
        return self._payload


class FakeSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def _next(self):
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def request(self, method, url, **kwargs):
        self.calls.append(("request", method, url, kwargs))
        return self._next()

    def post(self, url, **kwargs):
        self.calls.append(("post", "POST", url, kwargs))
        return self._next()


class FakeClock:
    def __init__(self, start=0.0):
        self.now = start
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class StubAuth:
    def __init__(self):
        self.refreshes = 0
        self.token = "tok-1"

    def get_valid_access_token(self):
        return self.token

    def refresh_access_token(self):
        self.refreshes += 1
        self.token = f"tok-{self.refreshes + 1}"
        return SimpleNamespace(access_token=self.token)


def _client(session, clock=None, auth=None):
    clock = clock or FakeClock()
    return ZohoPeopleClient(CONFIG, auth or StubAuth(), session=session, clock=clock, sleep=clock.sleep)


def test_calls_are_spaced_one_second_apart():
    clock = FakeClock()
    session = FakeSession(*(FakeResponse(200, {"employees": []}) for _ in range(3)))
    client = _client(session, clock)

    client.get_employees()
    clock.now = 0.25
    client.get_employees()
    assert clock.sleeps == [pytest.approx(0.75)]

    clock.now += 5
    client.get_employees()
    assert len(clock.sleeps) == 1


def test_unauthorized_refreshes_and_retries_once():
    auth = StubAuth()
    session = FakeSession(FakeResponse(401, {"message": "expired"}), FakeResponse(200, {"id": "E1"}))
    client = _client(session, auth=auth)

    assert client.get_employee("E1") == {"id": "E1"}
    assert auth.refreshes == 1
    headers = [call[3]["headers"]["Authorization"] for call in session.calls]
    assert headers == ["Zoho-oauthtoken tok-1", "Zoho-oauthtoken tok-2"]
    assert session.calls[0][2] == "https://people.zoho.test/api/employees/v1/employees/E1"


def test_second_unauthorized_is_an_error():
    auth = StubAuth()
    session = FakeSession(FakeResponse(401), FakeResponse(401, {"message": "still no"}))
    client = _client(session, auth=auth)

    with pytest.raises(ZohoApiError) as exc_info:
        client.get_employees()
    assert exc_info.value.status_code == 401
    assert auth.refreshes == 1
    assert len(session.calls) == 2


def test_query_params_drop_empty_values():
    session = FakeSession(FakeResponse(200, {"records": []}))
    client = _client(session)

    client.get_attendance_records(start_date="2024-01-01", end_date="2024-01-31")
    assert session.calls[0][3]["params"] == {"startDate": "2024-01-01", "endDate": "2024-01-31"}


def test_transport_failure_is_wrapped():
    session = FakeSession(requests.ConnectionError("connection refused"), requests.ConnectionError("again"))
    client = _client(session)

    with pytest.raises(ZohoApiError):
        client.create_payroll_record({"employeeId": "E1"})
    assert client.test_connection() is False


def test_api_status_reports_online():
    session = FakeSession(FakeResponse(200, {"employees": []}))
    status = _client(session).get_api_status()
    assert status["online"] is True
    assert status["response_time_ms"] >= 0


def _auth_service(session, now):
    return ZohoAuthService(CONFIG, session=session, clock=lambda: now)


def _stored_token():
    db = SessionLocal()
    try:
        return db.get(IntegrationToken, INTEGRATION_NAME)
    finally:
        db.close()


def test_auth_url_carries_offline_consent():
    url = urlparse(_auth_service(FakeSession(), datetime.now(timezone.utc)).generate_auth_url(state="xyz"))
    query = parse_qs(url.query)
    assert url.netloc == "accounts.zoho.test"
    assert url.path == "/oauth/v2/auth"
    assert query["client_id"] == ["client-123"]
    assert query["access_type"] == ["offline"]
    assert query["prompt"] == ["consent"]
    assert query["state"] == ["xyz"]


def test_code_exchange_stores_tokens_and_refresh_keeps_refresh_token():
    now = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)
    session = FakeSession(
        FakeResponse(200, {"access_token": "a1", "refresh_token": "r1", "expires_in": 3600}),
        FakeResponse(200, {"access_token": "a2", "expires_in": 3600}),
    )
    auth = _auth_service(session, now)

    tokens = auth.exchange_code_for_tokens("code-1")
    assert tokens.expires_at == now + timedelta(hours=1)
    assert session.calls[0][3]["data"]["grant_type"] == "authorization_code"
    assert _stored_token().access_token == "a1"

    refreshed = auth.refresh_access_token()
    assert refreshed.access_token == "a2"
    assert refreshed.refresh_token == "r1"
    assert session.calls[1][3]["data"]["refresh_token"] == "r1"

    stored = _stored_token()
    assert (stored.access_token, stored.refresh_token) == ("a2", "r1")


def test_valid_token_refreshes_inside_five_minute_margin():
    now = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)
    session = FakeSession(FakeResponse(200, {"access_token": "fresh", "expires_in": 3600}))
    auth = _auth_service(session, now)
    auth._store_tokens(ZohoTokens(access_token="stale", refresh_token="r1", expires_at=now + timedelta(minutes=4)))

    assert auth.get_valid_access_token() == "fresh"
    assert len(session.calls) == 1


def test_valid_token_reused_when_not_expiring():
    now = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)
    session = FakeSession()
    auth = _auth_service(session, now)
    auth._store_tokens(ZohoTokens(access_token="good", refresh_token="r1", expires_at=now + timedelta(minutes=30)))

    assert auth.get_valid_access_token() == "good"
    assert auth.get_auth_status()["needs_refresh"] is False
    assert session.calls == []


def test_missing_tokens_and_revoke():
    now = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)
    auth = _auth_service(FakeSession(FakeResponse(200, {})), now)

    assert auth.is_authenticated() is False
    with pytest.raises(ZohoAuthError):
        auth.get_valid_access_token()

    auth._store_tokens(ZohoTokens(access_token="a", refresh_token="r", expires_at=now + timedelta(hours=1)))
    auth.revoke_tokens()
    assert _stored_token() is None
    assert auth.is_authenticated() is False


def test_token_error_status_raises():
    auth = _auth_service(FakeSession(FakeResponse(400, {"error": "invalid_code"})), datetime.now(timezone.utc))
    with pytest.raises(ZohoAuthError) as exc_info:
        auth.exchange_code_for_tokens("bad")
    assert exc_info.value.status_code == 400
