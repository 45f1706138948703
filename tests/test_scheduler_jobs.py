"""
tests/test_scheduler_jobs.py

Scheduled refresh registration and failure containment.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
from apscheduler.triggers.cron import CronTrigger

from app.ingestion.browser import SessionPool
from app.ingestion.errors import PoolExhausted, RunAborted
from app.scheduler import jobs
from fakes import FakeDriverFactory, make_settings


@pytest.fixture()
def pool():
    pool = SessionPool(driver_factory=FakeDriverFactory(), max_sessions=1)
    yield pool
    pool.shutdown()


def _config(tmp_path: Path) -> str:
    base = {"catalog": "data_plans", "entry_url": "https://vtpass.test/"}
    portals = [
        {**base, "name": "nightly", "schedule_cron": "0 3 * * *"},
        {**base, "name": "weekly", "schedule_cron": "30 3 * * 1"},
        {**base, "name": "broken", "schedule_cron": "every night"},
        {**base, "name": "paused", "schedule_cron": "0 4 * * *", "enabled": False},
        {**base, "name": "manual"},
    ]
    path = tmp_path / "portals.json"
    path.write_text(json.dumps({"portals": portals}), encoding="utf-8")
    return str(path)


def test_one_job_per_scheduled_portal(tmp_path: Path, pool: SessionPool, caplog) -> None:
    settings = make_settings(config_path=_config(tmp_path))

    with caplog.at_level(logging.WARNING, logger="app.scheduler.jobs"):
        scheduler = jobs.build_scheduler(pool, settings)

    job_ids = sorted(job.id for job in scheduler.get_jobs())
    assert job_ids == ["portal_refresh:nightly", "portal_refresh:weekly"]
    assert "broken" in caplog.text

    nightly = scheduler.get_job("portal_refresh:nightly")
    assert isinstance(nightly.trigger, CronTrigger)
    assert nightly.args == (pool, settings, "nightly")
    assert nightly.max_instances == 1
    assert nightly.coalesce is True


def test_refresh_failures_are_logged_not_raised(
    monkeypatch: pytest.MonkeyPatch,
    pool: SessionPool,
    caplog,
) -> None:
    class AbortingService:
        def __init__(self, **_: object) -> None:
            pass

        def refresh(self, portal: str):
            raise RunAborted(portal, PoolExhausted("pool busy"))

    monkeypatch.setattr(jobs, "PortalIngestionService", AbortingService)

    with caplog.at_level(logging.WARNING, logger="app.scheduler.jobs"):
        jobs.run_portal_refresh(pool, make_settings(), "vtpass_data")

    assert "aborted" in caplog.text


def test_unknown_portal_is_logged(tmp_path: Path, pool: SessionPool, caplog) -> None:
    settings = make_settings(config_path=_config(tmp_path))

    with caplog.at_level(logging.WARNING, logger="app.scheduler.jobs"):
        jobs.run_portal_refresh(pool, settings, "retired_portal")

    assert "retired_portal" in caplog.text
    assert "failed" in caplog.text
