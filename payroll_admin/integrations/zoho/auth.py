import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from urllib.parse import urlencode

import requests

from payroll_admin.database import SessionLocal
from payroll_admin.integrations.zoho.config import INTEGRATION_NAME, ZohoConfig
from payroll_admin.models.integration import IntegrationToken

logger = logging.getLogger(__name__)

REFRESH_MARGIN = timedelta(minutes=5)


class ZohoAuthError(Exception):
    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class ZohoTokens:
    access_token: str
    refresh_token: Optional[str]
    expires_at: datetime
    token_type: str = "Bearer"


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ZohoAuthService:
    """OAuth2 handling for Zoho People. Tokens live in integration_tokens."""

    def __init__(
        self,
        config: ZohoConfig,
        session=None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.config = config
        self.session = session or requests.Session()
        self.clock = clock
        self._tokens: Optional[ZohoTokens] = None

    def generate_auth_url(self, state: Optional[str] = None) -> str:
        params = {
            "client_id": self.config.client_id,
            "redirect_uri": self.config.redirect_uri,
            "scope": self.config.scope,
            "response_type": "code",
            "access_type": "offline",
            "prompt": "consent",
        }
        if state:
            params["state"] = state
        return f"{self.config.accounts_url}/oauth/v2/auth?{urlencode(params)}"

    def _token_request(self, data: dict) -> dict:
        url = f"{self.config.accounts_url}/oauth/v2/token"
        try:
            response = self.session.post(url, data=data, timeout=self.config.timeout)
        except requests.RequestException as exc:
            raise ZohoAuthError(f"Zoho token request failed: {exc}") from exc

        if response.status_code >= 400:
            raise ZohoAuthError(
                f"Zoho token request failed with status {response.status_code}",
                status_code=response.status_code,
            )

        payload = response.json()
        if not isinstance(payload, dict) or not payload.get("access_token"):
            raise ZohoAuthError("Zoho token response did not include an access token")
        return payload

    def exchange_code_for_tokens(self, code: str) -> ZohoTokens:
        payload = self._token_request(
            {
                "grant_type": "authorization_code",
                "client_id": self.config.client_id,
                "client_secret": self.config.client_secret,
                "redirect_uri": self.config.redirect_uri,
                "code": code,
            }
        )
        tokens = ZohoTokens(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token"),
            expires_at=self.clock() + timedelta(seconds=int(payload.get("expires_in") or 3600)),
        )
        self._store_tokens(tokens)
        self._tokens = tokens
        return tokens

    def refresh_access_token(self) -> ZohoTokens:
        current = self._tokens or self._load_tokens()
        if current is None or not current.refresh_token:
            raise ZohoAuthError("No refresh token available")

        payload = self._token_request(
            {
                "grant_type": "refresh_token",
                "client_id": self.config.client_id,
                "client_secret": self.config.client_secret,
                "refresh_token": current.refresh_token,
            }
        )
        # Zoho does not rotate refresh tokens.
        tokens = ZohoTokens(
            access_token=payload["access_token"],
            refresh_token=current.refresh_token,
            expires_at=self.clock() + timedelta(seconds=int(payload.get("expires_in") or 3600)),
        )
        self._store_tokens(tokens)
        self._tokens = tokens
        logger.info("zoho_access_token_refreshed")
        return tokens

    def needs_refresh(self, tokens: ZohoTokens) -> bool:
        return self.clock() >= _utc(tokens.expires_at) - REFRESH_MARGIN

    def get_valid_access_token(self) -> str:
        tokens = self._tokens or self._load_tokens()
        if tokens is None:
            raise ZohoAuthError("No authentication tokens found. Please re-authenticate.")
        self._tokens = tokens

        if self.needs_refresh(tokens):
            tokens = self.refresh_access_token()

        return tokens.access_token

    def revoke_tokens(self) -> None:
        tokens = self._tokens or self._load_tokens()
        if tokens is not None and tokens.refresh_token:
            try:
                self.session.post(
                    f"{self.config.accounts_url}/oauth/v2/token/revoke",
                    data={"token": tokens.refresh_token},
                    timeout=self.config.timeout,
                )
            except requests.RequestException:
                logger.exception("zoho_token_revoke_failed")

        db = SessionLocal()
        try:
            db.query(IntegrationToken).filter(IntegrationToken.integration_name == INTEGRATION_NAME).delete()
            db.commit()
        finally:
            db.close()
        self._tokens = None

    def get_auth_status(self) -> dict:
        tokens = self._tokens or self._load_tokens()
        if tokens is None:
            return {"authenticated": False, "needs_refresh": False, "expires_at": None}
        self._tokens = tokens
        return {
            "authenticated": True,
            "needs_refresh": self.needs_refresh(tokens),
            "expires_at": _utc(tokens.expires_at).isoformat(),
        }

    def is_authenticated(self) -> bool:
        return self.get_auth_status()["authenticated"]

    def _store_tokens(self, tokens: ZohoTokens) -> None:
        db = SessionLocal()
        try:
            row = db.get(IntegrationToken, INTEGRATION_NAME)
            if row is None:
                row = IntegrationToken(integration_name=INTEGRATION_NAME)
                db.add(row)
            row.access_token = tokens.access_token
            row.refresh_token = tokens.refresh_token
            row.expires_at = tokens.expires_at
            row.token_type = tokens.token_type
            row.updated_at = self.clock()
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _load_tokens(self) -> Optional[ZohoTokens]:
        db = SessionLocal()
        try:
            row = db.get(IntegrationToken, INTEGRATION_NAME)
            if row is None:
                return None
            return ZohoTokens(
                access_token=row.access_token,
                refresh_token=row.refresh_token,
                expires_at=_utc(row.expires_at),
                token_type=row.token_type or "Bearer",
            )
        finally:
            db.close()
