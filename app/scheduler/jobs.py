"""
app/scheduler/jobs.py

APScheduler-based periodic maintenance for report jobs.

Schedule
--------
  report_sweep: every ``REPORT_SWEEP_INTERVAL_MINUTES`` (default 5)

The sweep only looks at jobs this process is not running. Of those, it fails
``generating`` jobs older than ``REPORT_STALE_AFTER_MINUTES`` (a previous
process died mid-run) and re-dispatches ``pending`` jobs of the same age that
were never picked up.

Lifecycle
----------
Call ``build_scheduler()`` once to get a configured ``AsyncIOScheduler``.
It must be started from inside the running event loop (the FastAPI
``lifespan`` in main.py does this) and shut down on app exit.
"""

from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from app.config import ReportSettings
from app.services.report_service import ReportService

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Job: Stale report sweep
# ---------------------------------------------------------------------------


async def run_report_sweep(report_service: ReportService) -> None:
    logger.info("Scheduler: report_sweep starting")
    try:
        counts = await report_service.sweep_stale()
    except Exception as exc:  # noqa: BLE001
        logger.warning("Scheduler: report_sweep failed: %s", exc)
        return
    logger.info(
        "Scheduler: report_sweep complete failed=%d redispatched=%d",
        counts["failed"],
        counts["redispatched"],
    )


# ---------------------------------------------------------------------------
# Scheduler factory
# ---------------------------------------------------------------------------


def build_scheduler(report_service: ReportService, settings: ReportSettings) -> AsyncIOScheduler:
    """
    Build and register all periodic jobs.

    Returns a configured but *not yet started* ``AsyncIOScheduler``.
    """
    scheduler = AsyncIOScheduler(timezone="UTC")

    scheduler.add_job(
        run_report_sweep,
        trigger="interval",
        minutes=settings.sweep_interval_minutes,
        args=[report_service],
        id="report_sweep",
        name="Stale report job sweep",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=300,
    )

    return scheduler
