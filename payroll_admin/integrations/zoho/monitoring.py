import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

import requests

from payroll_admin.database import SessionLocal
from payroll_admin.integrations.zoho.api_client import ZohoPeopleClient
from payroll_admin.integrations.zoho.auth import ZohoAuthService
from payroll_admin.integrations.zoho.config import INTEGRATION_NAME, ZohoConfig
from payroll_admin.integrations.zoho.sync_service import ZohoSyncService
from payroll_admin.models.integration import (
    AlertRule,
    IntegrationAlert,
    IntegrationHealthCheck,
    NotificationChannel,
)

logger = logging.getLogger(__name__)

HEALTHY = "healthy"
WARNING = "warning"
CRITICAL = "critical"

SLOW_RESPONSE_MS = 5000
CRITICAL_ERROR_RATE = 50
WARNING_ERROR_RATE = 20
UPTIME_WINDOW = 100

SLACK_HOOKS_BASE = "https://hooks.slack.com/services/"


@dataclass
class IntegrationHealth:
    status: str
    last_sync: Optional[str]
    uptime: float
    api_response_time: float
    error_rate: float
    total_syncs: int
    successful_syncs: int
    failed_syncs: int

    def as_dict(self) -> dict:
        return asdict(self)


def determine_health_status(api_status: dict, auth_status: dict, sync_stats: dict) -> str:
    if not api_status.get("online") or not auth_status.get("authenticated"):
        return CRITICAL
    if sync_stats["error_rate"] > CRITICAL_ERROR_RATE:
        return CRITICAL

    if api_status.get("response_time_ms", 0) > SLOW_RESPONSE_MS:
        return WARNING
    if sync_stats["error_rate"] > WARNING_ERROR_RATE:
        return WARNING
    if sync_stats["failed_syncs"] > 0 and sync_stats["total_syncs"] > 10:
        return WARNING

    return HEALTHY


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ZohoMonitoringService:
    def __init__(
        self,
        client: ZohoPeopleClient,
        auth: ZohoAuthService,
        sync_service: ZohoSyncService,
        session=None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.client = client
        self.auth = auth
        self.sync_service = sync_service
        self.session = session or requests.Session()
        self.clock = clock

    def sync_statistics(self) -> dict:
        stats = self.sync_service.get_sync_status()
        total = stats["total_syncs"]
        stats["error_rate"] = (stats["failed_syncs"] / total * 100.0) if total else 0.0
        return stats

    def calculate_uptime(self) -> float:
        """Share of recent health checks that were not critical, as a percentage."""
        db = SessionLocal()
        try:
            statuses = [
                s
                for (s,) in db.query(IntegrationHealthCheck.status)
                .filter(IntegrationHealthCheck.integration_name == INTEGRATION_NAME)
                .order_by(IntegrationHealthCheck.checked_at.desc(), IntegrationHealthCheck.id.desc())
                .limit(UPTIME_WINDOW)
                .all()
            ]
        finally:
            db.close()
        if not statuses:
            return 100.0
        return round(sum(1 for s in statuses if s != CRITICAL) / len(statuses) * 100.0, 2)

    def perform_health_check(self) -> IntegrationHealth:
        try:
            api_status = self.client.get_api_status()
            auth_status = self.auth.get_auth_status()
            sync_stats = self.sync_statistics()

            health = IntegrationHealth(
                status=determine_health_status(api_status, auth_status, sync_stats),
                last_sync=sync_stats["last_sync"],
                uptime=self.calculate_uptime(),
                api_response_time=float(api_status.get("response_time_ms", 0)),
                error_rate=float(sync_stats["error_rate"]),
                total_syncs=int(sync_stats["total_syncs"]),
                successful_syncs=int(sync_stats["successful_syncs"]),
                failed_syncs=int(sync_stats["failed_syncs"]),
            )
        except Exception:
            logger.exception("zoho_health_check_failed")
            health = IntegrationHealth(
                status=CRITICAL,
                last_sync=None,
                uptime=0.0,
                api_response_time=0.0,
                error_rate=100.0,
                total_syncs=0,
                successful_syncs=0,
                failed_syncs=1,
            )
            self.store_health(health)
            return health

        self.store_health(health)
        self.check_alert_conditions(health)
        return health

    def store_health(self, health: IntegrationHealth) -> None:
        db = SessionLocal()
        try:
            db.add(
                IntegrationHealthCheck(
                    integration_name=INTEGRATION_NAME,
                    status=health.status,
                    last_sync=None if health.last_sync is None else datetime.fromisoformat(health.last_sync),
                    uptime=health.uptime,
                    api_response_time=health.api_response_time,
                    error_rate=health.error_rate,
                    total_syncs=health.total_syncs,
                    successful_syncs=health.successful_syncs,
                    failed_syncs=health.failed_syncs,
                    checked_at=self.clock(),
                )
            )
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("zoho_health_store_failed")
        finally:
            db.close()

    def get_current_health(self) -> IntegrationHealth:
        db = SessionLocal()
        try:
            row = (
                db.query(IntegrationHealthCheck)
                .filter(IntegrationHealthCheck.integration_name == INTEGRATION_NAME)
                .order_by(IntegrationHealthCheck.checked_at.desc(), IntegrationHealthCheck.id.desc())
                .first()
            )
        finally:
            db.close()

        if row is None:
            return self.perform_health_check()

        return IntegrationHealth(
            status=row.status,
            last_sync=None if row.last_sync is None else row.last_sync.isoformat(),
            uptime=row.uptime,
            api_response_time=row.api_response_time,
            error_rate=row.error_rate,
            total_syncs=row.total_syncs,
            successful_syncs=row.successful_syncs,
            failed_syncs=row.failed_syncs,
        )

    def rule_triggered(self, rule: AlertRule, health: IntegrationHealth) -> bool:
        if rule.condition == "error_rate_high":
            return health.error_rate > rule.threshold
        if rule.condition == "api_response_slow":
            return health.api_response_time > rule.threshold
        if rule.condition == "sync_failed":
            return health.failed_syncs > rule.threshold
        if rule.condition == "status_critical":
            return health.status == CRITICAL
        if rule.condition == "no_recent_sync":
            if health.last_sync is None:
                return True
            hours = (self.clock() - _aware(datetime.fromisoformat(health.last_sync))).total_seconds() / 3600.0
            return hours > rule.threshold
        logger.warning("unknown_alert_condition", extra={"condition": rule.condition, "rule_id": rule.id})
        return False

    def check_alert_conditions(self, health: IntegrationHealth) -> list[str]:
        """Returns the ids of the rules that fired."""
        db = SessionLocal()
        try:
            rules = (
                db.query(AlertRule)
                .filter(AlertRule.integration_name == INTEGRATION_NAME)
                .filter(AlertRule.enabled.is_(True))
                .all()
            )
            channels = {c.id: c for c in db.query(NotificationChannel).filter(NotificationChannel.enabled.is_(True))}
        finally:
            db.close()

        fired = []
        for rule in rules:
            if self.rule_triggered(rule, health):
                self.trigger_alert(rule, health, channels)
                fired.append(rule.id)
        return fired

    def generate_alert_message(self, rule: AlertRule, health: IntegrationHealth) -> str:
        return (
            "Zoho People Integration Alert\n\n"
            f"Rule: {rule.name}\n"
            f"Status: {health.status.upper()}\n"
            f"Error Rate: {health.error_rate:.2f}%\n"
            f"API Response Time: {health.api_response_time:.0f}ms\n"
            f"Failed Syncs: {health.failed_syncs}\n"
            f"Last Sync: {health.last_sync or 'Never'}\n"
            f"Time: {self.clock().isoformat()}"
        )

    def trigger_alert(self, rule: AlertRule, health: IntegrationHealth, channels: dict) -> None:
        message = self.generate_alert_message(rule, health)
        for channel_id in rule.notification_channels or []:
            channel = channels.get(channel_id)
            if channel is not None:
                self.send_notification(channel, message)

        db = SessionLocal()
        try:
            db.add(
                IntegrationAlert(
                    integration_name=INTEGRATION_NAME,
                    rule_id=rule.id,
                    rule_name=rule.name,
                    message=message,
                    health_status=health.status,
                    triggered_at=self.clock(),
                )
            )
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("zoho_alert_log_failed", extra={"rule_id": rule.id})
        finally:
            db.close()

    def send_notification(self, channel: NotificationChannel, message: str) -> None:
        config = channel.configuration or {}
        try:
            if channel.type == "webhook":
                self.session.post(
                    config["url"],
                    json={
                        "message": message,
                        "timestamp": self.clock().isoformat(),
                        "integration": INTEGRATION_NAME,
                    },
                    headers={"Content-Type": "application/json", **(config.get("headers") or {})},
                    timeout=10,
                )
            elif channel.type == "slack":
                self.session.post(
                    SLACK_HOOKS_BASE + str(config["webhook_url"]),
                    json={"text": message, "channel": config.get("channel") or "#alerts"},
                    timeout=10,
                )
            elif channel.type == "email":
                logger.info("alert_email_notification", extra={"to": config.get("email"), "alert": message})
            elif channel.type == "sms":
                logger.info("alert_sms_notification", extra={"to": config.get("phone"), "alert": message})
            else:
                logger.warning("unknown_notification_channel", extra={"channel_type": channel.type})
        except (requests.RequestException, KeyError):
            logger.exception("alert_notification_failed", extra={"channel_id": channel.id, "channel_type": channel.type})


@dataclass
class ZohoIntegration:
    auth: ZohoAuthService
    client: ZohoPeopleClient
    sync: ZohoSyncService
    monitoring: ZohoMonitoringService


def build_integration(organization_id: Optional[str] = None, config=None, session=None) -> ZohoIntegration:
    config = config or ZohoConfig.from_env()
    session = session or requests.Session()
    auth = ZohoAuthService(config, session=session)
    client = ZohoPeopleClient(config, auth, session=session)
    sync = ZohoSyncService(client, organization_id)
    return ZohoIntegration(
        auth=auth,
        client=client,
        sync=sync,
        monitoring=ZohoMonitoringService(client, auth, sync, session=session),
    )
