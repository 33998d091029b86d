"""Dedicated APScheduler worker process that drains the sync outbox."""
from __future__ import annotations

import logging
import signal
import threading

from apscheduler.schedulers.background import BackgroundScheduler

from fitplan.core.config import settings
from fitplan.core.logging import configure_logging
from fitplan.observability.client import shutdown_opik
from fitplan.services.factory import get_sync_service

logger = logging.getLogger(__name__)


def main() -> None:
    configure_logging(log_level=settings.log_level)
    logger.info("Scheduler worker starting (enabled=%s)", settings.scheduler_enabled)

    scheduler = BackgroundScheduler(timezone=settings.scheduler_timezone)

    if settings.scheduler_enabled:
        register_jobs(scheduler)
        scheduler.start()
        if settings.jobs_run_on_startup:
            logger.info("Running outbox flush once on startup")
            run_sync_job()
    else:
        logger.warning("Scheduler disabled via config; worker will idle")

    stop_event = threading.Event()

    def shutdown(signum, frame):  # pragma: no cover - signal handler
        logger.info("Scheduler worker shutting down (signal=%s)", signum)
        if scheduler.running:
            scheduler.shutdown(wait=False)
        shutdown_opik()
        stop_event.set()

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    try:
        stop_event.wait()
    except KeyboardInterrupt:  # pragma: no cover - manual stop
        shutdown(signal.SIGINT, None)


def register_jobs(scheduler: BackgroundScheduler) -> None:
    scheduler.add_job(
        run_sync_job,
        trigger="interval",
        minutes=settings.sync_interval_minutes,
        id="outbox_sync_job",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    logger.info(
        "Registered outbox sync job (every %s min, batch limit %s)",
        settings.sync_interval_minutes,
        settings.sync_batch_limit,
    )


def run_sync_job() -> None:
    try:
        result = get_sync_service().sync_pending_changes(settings.sync_batch_limit)
        logger.info(
            "Outbox sync job complete: synced=%s, failed=%s, dropped=%s, complete=%s",
            result.success_count,
            result.failure_count,
            result.dropped_count,
            result.is_complete,
        )
    except Exception:  # pragma: no cover - keep the scheduler alive
        logger.exception("Outbox sync job failed")


if __name__ == "__main__":  # pragma: no cover - manual launch
    main()
