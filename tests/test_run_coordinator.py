"""
tests/test_run_coordinator.py

Run Coordinator behaviour against fake portal pages.

Coverage
--------
- End-to-end: "500MB - ₦150" + "Select Plan" -> one priced entry
- Partial-failure isolation (1 of 4 sub-targets raises during extraction)
- Missing entry point -> skipped, not failed
- Persistence failure recorded against its sub-target only
- Crash mid-run -> session destroyed, replacement used for the rest
- Chromedriver gone mid-run -> transport errors still free the slot
- Bounded content wait: timeout still extracts, empty list is a success
- Cancellation between sub-targets releases the session
- Nothing to do or cancelled up front -> no browser launched
- Pool exhaustion and unreachable entry page abort the run
- Parallel mode across sessions
- School directory task (amount not applicable)
"""

from __future__ import annotations

import threading
from decimal import Decimal
from typing import Any

import pytest
from selenium.common.exceptions import WebDriverException
from urllib3.exceptions import MaxRetryError

from app.domain.catalog import CatalogEntryInput
from app.domain.ingestion import SubTargetState
from app.ingestion.browser import SessionPool
from app.ingestion.config.models import PortalConfig, SubTargetConfig
from app.ingestion.coordinator import RunCoordinator
from app.ingestion.errors import RunAborted
from app.ingestion.extraction import RecordExtractor
from app.ingestion.registry import ScraperTaskRegistry
from fakes import (
    DATA_ENTRY_URL,
    FakeDriverFactory,
    MemoryCatalogStorage,
    data_page,
    data_portal,
    data_site,
    make_settings,
    school_portal,
    school_site,
)

PLANS = {
    "mtn": [("mtn-500mb", "500MB - ₦150"), ("mtn-1gb", "1GB - ₦300")],
    "airtel": [("airtel-1gb", "1GB - ₦350")],
    "glo": [("glo-2gb", "2GB - ₦500")],
    "9mobile": [("9mobile-1gb", "1GB - ₦400")],
}


class BrokenPageExtractor(RecordExtractor):
    """
    Raises during extraction on any page carrying ``data-broken``.
    """

    def __init__(self, *, crash_driver: bool = False, kill_driver: bool = False, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.crash_driver = crash_driver
        self.kill_driver = kill_driver

    def extract_records(self, page: Any, container_selectors: Any, *, require_amount: bool = True):
        if "data-broken" in page.page_source:
            if self.kill_driver:
                page.kill_chromedriver()
                raise MaxRetryError(None, "/session/1/element", reason=ConnectionRefusedError(111, "Connection refused"))
            if self.crash_driver:
                page.crash()
                raise WebDriverException("chrome not reachable")
            raise RuntimeError("plan list markup changed")
        return super().extract_records(page, container_selectors, require_amount=require_amount)


class CancellingStorage(MemoryCatalogStorage):
    def __init__(self, cancel_event: threading.Event) -> None:
        super().__init__()
        self._cancel_event = cancel_event

    def upsert(self, rows: Any) -> int:
        written = super().upsert(rows)
        self._cancel_event.set()
        return written


def _coordinator(
    portal: PortalConfig,
    pages: dict[str, str],
    *,
    storage: MemoryCatalogStorage | None = None,
    max_sessions: int = 2,
    max_parallel: int = 1,
    acquire_timeout: float = 1.0,
    extractor: RecordExtractor | None = None,
    **settings_overrides: Any,
) -> tuple[RunCoordinator, SessionPool, FakeDriverFactory, MemoryCatalogStorage]:
    factory = FakeDriverFactory(pages)
    pool = SessionPool(driver_factory=factory, max_sessions=max_sessions)
    settings = make_settings(max_sessions=max_sessions, **settings_overrides)
    task = ScraperTaskRegistry().create_task(config=portal, settings=settings)
    if extractor is not None:
        task.extractor = extractor
    store = storage if storage is not None else MemoryCatalogStorage()
    coordinator = RunCoordinator(
        pool=pool,
        task=task,
        storage=store,
        acquire_timeout=acquire_timeout,
        max_parallel=max_parallel,
    )
    return coordinator, pool, factory, store


def test_end_to_end_single_network_pricing() -> None:
    pages = data_site({"mtn": [("mtn-500mb", "500MB - ₦150")]})
    coordinator, pool, _, storage = _coordinator(data_portal("mtn"), pages)

    summary = coordinator.run_all()

    assert summary.status == "success"
    assert summary.records_extracted == 1
    assert summary.records_upserted == 1
    [entry] = storage.entries.values()
    assert isinstance(entry, CatalogEntryInput)
    assert (entry.catalog, entry.domain, entry.natural_key) == ("data_plans", "mtn", "mtn-500mb")
    assert entry.cost_price == Decimal("150.00")
    assert entry.retail_price == Decimal("210.00")
    assert entry.reseller_price == Decimal("180.00")
    assert pool.stats()["checked_out"] == 0
    pool.shutdown()


def test_partial_failure_is_isolated() -> None:
    pages = data_site(PLANS, extra={"airtel": "<div data-broken></div>"})
    coordinator, pool, factory, storage = _coordinator(
        data_portal(),
        pages,
        extractor=BrokenPageExtractor(),
    )

    summary = coordinator.run_all()

    assert summary.attempted == 4
    assert summary.succeeded == 3
    assert summary.failed == 1
    assert summary.status == "partial_success"
    assert [error.sub_target for error in summary.errors] == ["airtel"]
    assert "plan list markup changed" in summary.errors[0].error
    assert {key[1] for key in storage.entries} == {"mtn", "glo", "9mobile"}
    # The entry page is reopened once after the failure; one browser served the run.
    assert factory.drivers[0].visited.count(DATA_ENTRY_URL) == 2
    assert factory.launches == 1
    pool.shutdown()


def test_missing_entry_point_is_skipped_not_failed() -> None:
    pages = data_site(PLANS)
    portal = data_portal("mtn", "smile", "glo")
    coordinator, pool, _, storage = _coordinator(portal, pages)

    summary = coordinator.run_all()

    assert summary.skipped == ["smile"]
    assert summary.failed == 0
    assert summary.succeeded == 2
    assert {key[1] for key in storage.entries} == {"mtn", "glo"}
    states = {outcome.name: outcome.state for outcome in summary.outcomes}
    assert states["smile"] is SubTargetState.SKIPPED
    pool.shutdown()


def test_alias_locates_renamed_network() -> None:
    pages = data_site(PLANS)
    portal = data_portal(SubTargetConfig("9mobile", ("etisalat",)))
    coordinator, pool, _, storage = _coordinator(portal, pages)

    summary = coordinator.run_all()

    assert summary.status == "success"
    assert [key[2] for key in storage.entries] == ["9mobile-1gb"]
    pool.shutdown()


def test_persistence_failure_counts_as_sub_target_failure() -> None:
    pages = data_site(PLANS)
    storage = MemoryCatalogStorage(fail_domains=["glo"])
    coordinator, pool, _, _ = _coordinator(
        data_portal("mtn", "glo", "airtel"),
        pages,
        storage=storage,
    )

    summary = coordinator.run_all()

    assert summary.succeeded == 2
    assert [error.sub_target for error in summary.errors] == ["glo"]
    outcome = {item.name: item for item in summary.outcomes}["glo"]
    assert outcome.records_extracted == 1
    assert outcome.records_upserted == 0
    pool.shutdown()


def test_crashed_session_is_replaced_mid_run() -> None:
    pages = data_site(PLANS, extra={"airtel": "<div data-broken></div>"})
    coordinator, pool, factory, storage = _coordinator(
        data_portal(),
        pages,
        extractor=BrokenPageExtractor(crash_driver=True),
    )

    summary = coordinator.run_all()

    assert summary.succeeded == 3
    assert summary.failed == 1
    assert factory.launches == 2
    assert factory.drivers[0].quit_calls == 1
    assert pool.stats() == {
        "total": 1,
        "idle": 1,
        "checked_out": 0,
        "launching": 0,
        "waiting": 0,
        "max_sessions": 2,
    }
    assert {key[1] for key in storage.entries} == {"mtn", "glo", "9mobile"}
    pool.shutdown()


def test_dead_chromedriver_frees_its_slot_mid_run() -> None:
    pages = data_site(PLANS, extra={"airtel": "<div data-broken></div>"})
    coordinator, pool, factory, storage = _coordinator(
        data_portal(),
        pages,
        max_sessions=1,
        extractor=BrokenPageExtractor(kill_driver=True),
    )

    summary = coordinator.run_all()

    assert summary.succeeded == 3
    assert summary.failed == 1
    assert "Max retries exceeded" in summary.outcomes[1].error
    assert factory.launches == 2
    assert factory.drivers[0].quit_calls == 1
    assert pool.stats()["total"] == 1
    assert pool.stats()["checked_out"] == 0
    assert {key[1] for key in storage.entries} == {"mtn", "glo", "9mobile"}
    pool.shutdown()


def test_content_wait_timeout_still_extracts() -> None:
    # Plans are rendered up front and clicking the network changes nothing.
    pages = {DATA_ENTRY_URL: data_page(PLANS["mtn"])}
    coordinator, pool, _, storage = _coordinator(
        data_portal("mtn"),
        pages,
        content_wait_timeout_seconds=0.05,
    )

    summary = coordinator.run_all()

    assert summary.status == "success"
    assert len(storage.entries) == 2
    pool.shutdown()


def test_empty_plan_list_is_success_with_zero_upserts() -> None:
    pages = data_site({"mtn": []})
    coordinator, pool, _, storage = _coordinator(
        data_portal("mtn"),
        pages,
        content_wait_timeout_seconds=0.05,
    )

    summary = coordinator.run_all()

    assert summary.status == "success"
    assert summary.records_upserted == 0
    assert storage.calls == 0
    pool.shutdown()


def test_cancellation_between_sub_targets_releases_session() -> None:
    cancel_event = threading.Event()
    storage = CancellingStorage(cancel_event)
    coordinator, pool, _, _ = _coordinator(data_portal(), data_site(PLANS), storage=storage)

    summary = coordinator.run_all(cancel_event=cancel_event)

    assert summary.cancelled is True
    assert summary.status == "cancelled"
    assert [outcome.name for outcome in summary.outcomes] == ["mtn"]
    assert pool.stats()["checked_out"] == 0
    assert pool.stats()["idle"] == 1
    pool.shutdown()


def test_no_sub_targets_launches_no_browser() -> None:
    coordinator, pool, factory, _ = _coordinator(data_portal(sub_targets=()), data_site(PLANS))

    summary = coordinator.run_all()

    assert summary.attempted == 0
    assert summary.cancelled is False
    assert factory.launches == 0
    pool.shutdown()


def test_cancelled_before_start_launches_no_browser() -> None:
    cancel_event = threading.Event()
    cancel_event.set()
    coordinator, pool, factory, storage = _coordinator(data_portal(), data_site(PLANS))

    summary = coordinator.run_all(cancel_event=cancel_event)

    assert summary.status == "cancelled"
    assert summary.outcomes == []
    assert factory.launches == 0
    assert storage.calls == 0
    assert pool.stats()["total"] == 0
    pool.shutdown()


def test_sub_target_filter_and_unknown_names() -> None:
    coordinator, pool, _, _ = _coordinator(data_portal(), data_site(PLANS))

    summary = coordinator.run_all(["GLO", "etisalat"])
    assert [outcome.name for outcome in summary.outcomes] == ["glo", "9mobile"]

    with pytest.raises(ValueError):
        coordinator.run_all(["ntel"])
    pool.shutdown()


def test_pool_exhaustion_aborts_run() -> None:
    coordinator, pool, _, _ = _coordinator(
        data_portal(),
        data_site(PLANS),
        max_sessions=1,
        acquire_timeout=0.05,
    )
    held = pool.acquire(timeout=1)

    with pytest.raises(RunAborted) as exc_info:
        coordinator.run_all()

    assert exc_info.value.pool_related
    assert exc_info.value.summary is not None
    assert exc_info.value.summary.status == "aborted"
    assert exc_info.value.summary.attempted == 0
    pool.release(held)
    pool.shutdown()


def test_unreachable_entry_page_aborts_and_releases() -> None:
    portal = data_portal(entry_url="https://offline.test/")
    coordinator, pool, factory, _ = _coordinator(portal, data_site(PLANS))

    with pytest.raises(RunAborted) as exc_info:
        coordinator.run_all()

    assert not exc_info.value.pool_related
    assert isinstance(exc_info.value.cause, WebDriverException)
    assert pool.stats()["checked_out"] == 0
    assert factory.drivers[0].quit_calls == 0
    pool.shutdown()


def test_parallel_mode_uses_separate_sessions() -> None:
    pages = data_site(PLANS, extra={"airtel": "<div data-broken></div>"})
    coordinator, pool, factory, storage = _coordinator(
        data_portal(),
        pages,
        max_sessions=2,
        max_parallel=2,
        extractor=BrokenPageExtractor(),
    )

    summary = coordinator.run_all()

    assert [outcome.name for outcome in summary.outcomes] == ["mtn", "airtel", "glo", "9mobile"]
    assert summary.succeeded == 3
    assert summary.failed == 1
    assert factory.launches <= 2
    assert {key[1] for key in storage.entries} == {"mtn", "glo", "9mobile"}
    assert pool.stats()["checked_out"] == 0
    pool.shutdown()


def test_school_directory_entries_carry_no_price() -> None:
    pages = school_site(
        {
            "lagos": [("LA001", "Kings College"), ("LA002", "Queens College")],
            "fct": [("FC001", "Government Secondary School Garki")],
        }
    )
    coordinator, pool, _, storage = _coordinator(school_portal(), pages)

    summary = coordinator.run_all()

    assert summary.status == "success"
    assert summary.records_upserted == 3
    assert {key[1] for key in storage.entries} == {"Lagos", "FCT"}
    for entry in storage.entries.values():
        assert entry.catalog == "nbais_schools"
        assert entry.cost_price == entry.retail_price == entry.reseller_price == Decimal("0.00")
    assert storage.entries[("nbais_schools", "Lagos", "LA001")].display_name == "Kings College"
    pool.shutdown()
