import os
from dataclasses import dataclass

INTEGRATION_NAME = "zoho_people"

DEFAULT_SCOPE = "ZohoPeople.employee.ALL,ZohoPeople.attendance.ALL,ZohoPeople.leave.ALL"


@dataclass(frozen=True)
class ZohoConfig:
    client_id: str
    client_secret: str
    redirect_uri: str
    scope: str = DEFAULT_SCOPE
    api_base_url: str = "https://people.zoho.com/people/api"
    accounts_url: str = "https://accounts.zoho.com"
    environment: str = "production"
    timeout: int = 30

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret and self.redirect_uri)

    @classmethod
    def from_env(cls) -> "ZohoConfig":
        environment = os.getenv("ZOHO_ENVIRONMENT", "production").lower()
        if environment not in {"sandbox", "production"}:
            raise ValueError("ZOHO_ENVIRONMENT must be 'sandbox' or 'production'")

        return cls(
            client_id=os.getenv("ZOHO_CLIENT_ID", ""),
            client_secret=os.getenv("ZOHO_CLIENT_SECRET", ""),
            redirect_uri=os.getenv("ZOHO_REDIRECT_URI", ""),
            scope=os.getenv("ZOHO_SCOPE", DEFAULT_SCOPE),
            api_base_url=os.getenv("ZOHO_API_BASE_URL", "https://people.zoho.com/people/api").rstrip("/"),
            accounts_url=os.getenv("ZOHO_ACCOUNTS_URL", "https://accounts.zoho.com").rstrip("/"),
            environment=environment,
            timeout=int(os.getenv("ZOHO_HTTP_TIMEOUT_SECONDS", "30")),
        )
