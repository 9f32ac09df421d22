"""fleetmon entry point - runs one monitoring pass and exits."""

import asyncio
import logging
import sys

from fleetmon.config import Settings, settings
from fleetmon.db.base import close_db, get_session, init_db
from fleetmon.db.store import FleetStore
from fleetmon.errors import FleetLoadError
from fleetmon.integrations import (
    ProvisionerClient,
    TcpReachabilityProber,
    WebhookNotificationSender,
)
from fleetmon.monitor.runner import MonitoringReport, run_all_monitoring

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("fleetmon")


async def run_once(config: Settings = settings) -> MonitoringReport:
    """Open the database, run a single monitoring pass and close it again."""
    logger.info(f"Environment: {config.env.value}")

    await init_db()
    logger.info("Database initialized")

    try:
        async with get_session() as session:
            return await run_all_monitoring(
                config,
                FleetStore(session),
                provisioner=ProvisionerClient(config),
                sender=WebhookNotificationSender(config),
                prober=TcpReachabilityProber(
                    timeout_seconds=config.reachability_probe_timeout_seconds
                ),
            )
    finally:
        await close_db()
        logger.info("Database connections closed")


def main() -> None:
    try:
        report = asyncio.run(run_once())
    except FleetLoadError as e:
        logger.critical(f"Monitoring run aborted: {e}")
        sys.exit(1)

    if report.errors:
        logger.warning(f"Monitoring run {report.trace_id} finished with {len(report.errors)} errors")
    else:
        logger.info(f"Monitoring run {report.trace_id} finished cleanly")


if __name__ == "__main__":
    main()
