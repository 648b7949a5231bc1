import asyncio
import logging
import os
from typing import Optional

from sqlalchemy.exc import DBAPIError, OperationalError

from payroll_admin import database
from payroll_admin.integrations.zoho.monitoring import build_integration

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 900


def _env_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    try:
        return int(v)
    except ValueError:
        return default


def zoho_monitor_enabled() -> bool:
    # Never under pytest; health checks would hit the network.
    if os.getenv("PYTEST_CURRENT_TEST"):
        return False
    v = os.getenv("ZOHO_MONITOR_ENABLED")
    if v is None:
        return False
    return v.strip() not in {"", "0", "false", "False", "no", "NO"}


async def zoho_monitor_loop(*, interval_seconds: float = DEFAULT_INTERVAL_SECONDS) -> None:
    logger.info("Zoho monitor started", extra={"interval_seconds": float(interval_seconds)})
    integration = build_integration()

    while True:
        try:
            health = await asyncio.to_thread(integration.monitoring.perform_health_check)
            logger.info(
                "Zoho health check completed",
                extra={"component": "zoho_monitor", "health_status": health.status},
            )

        except asyncio.CancelledError:
            logger.info("Zoho monitor cancelled; shutting down")
            raise

        except (OperationalError, DBAPIError):
            logger.exception(
                "Zoho monitor tick failed",
                extra={"component": "zoho_monitor", "reason": "dbapi_error"},
            )
            if database.engine is not None:
                database.engine.dispose()

        except Exception:
            # Keep the server up; the next tick retries.
            logger.exception(
                "Zoho monitor tick failed",
                extra={"component": "zoho_monitor", "reason": "unexpected"},
            )

        await asyncio.sleep(interval_seconds)


def start_zoho_monitor_task() -> Optional[asyncio.Task]:
    if not zoho_monitor_enabled():
        logger.info("Zoho monitor disabled")
        return None

    interval = _env_int("ZOHO_MONITOR_INTERVAL_SECONDS", DEFAULT_INTERVAL_SECONDS)
    return asyncio.create_task(zoho_monitor_loop(interval_seconds=max(1, interval)))
