"""
app/scheduler/jobs.py

APScheduler-based scheduler for periodic portal catalog refreshes.

Schedule
--------
One cron job per enabled portal that declares ``schedule_cron`` in the
portal config (standard five-field crontab, UTC). Jobs never overlap for
the same portal (``max_instances=1``) and missed runs collapse into one
(``coalesce=True``).

Lifecycle
----------
Call ``build_scheduler(pool, settings)`` once to get a configured
``BackgroundScheduler``. Start it on app boot; shut it down before the
session pool on app shutdown. The scheduler is wired into FastAPI via the
``lifespan`` context in main.py.
"""

from __future__ import annotations

import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from app.ingestion.browser import SessionPool
from app.ingestion.config import IngestionSettings, load_portal_configs
from app.ingestion.errors import RunAborted
from app.services.ingestion_service import PortalIngestionService

logger = logging.getLogger(__name__)


def run_portal_refresh(pool: SessionPool, settings: IngestionSettings, portal: str) -> None:
    """
    Refresh one portal. Failures are logged; the scheduler keeps running.
    """
    logger.info("Scheduler: portal_refresh starting portal=%r", portal)
    try:
        summary = PortalIngestionService(pool=pool, settings=settings).refresh(portal)
    except RunAborted as exc:
        logger.warning("Scheduler: portal_refresh aborted portal=%r: %s", portal, exc)
        return
    except Exception as exc:  # noqa: BLE001
        logger.warning("Scheduler: portal_refresh failed portal=%r: %s", portal, exc)
        return

    logger.info(
        "Scheduler: portal_refresh complete portal=%r status=%s succeeded=%d/%d upserted=%d",
        portal,
        summary.status,
        summary.succeeded,
        summary.attempted,
        summary.records_upserted,
    )


def build_scheduler(pool: SessionPool, settings: IngestionSettings) -> BackgroundScheduler:
    """
    Build and register one refresh job per scheduled portal.

    Returns a configured but *not yet started* ``BackgroundScheduler``.
    Portals with an invalid cron expression are skipped with a WARNING log.
    """
    scheduler = BackgroundScheduler(timezone="UTC")

    for portal in load_portal_configs(config_path=settings.config_path):
        if not portal.enabled or not portal.schedule_cron:
            continue
        try:
            trigger = CronTrigger.from_crontab(portal.schedule_cron, timezone="UTC")
        except ValueError as exc:
            logger.warning(
                "Scheduler: skipping portal=%r, invalid cron %r: %s",
                portal.name,
                portal.schedule_cron,
                exc,
            )
            continue
        scheduler.add_job(
            run_portal_refresh,
            trigger=trigger,
            args=(pool, settings, portal.name),
            id=f"portal_refresh:{portal.name}",
            name=f"Catalog refresh for {portal.name}",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=3600,
        )

    return scheduler
