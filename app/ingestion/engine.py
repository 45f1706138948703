"""
Portal ingestion engine.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from datetime import datetime, timezone

from app.domain.ingestion import RunSummary
from app.ingestion.browser.pool import SessionPool
from app.ingestion.config import load_portal_configs
from app.ingestion.config.models import IngestionSettings, PortalConfig
from app.ingestion.coordinator import RunCoordinator
from app.ingestion.errors import RunAborted
from app.ingestion.logging_utils import log_event
from app.ingestion.registry import ScraperTaskRegistry
from app.ingestion.storage import CatalogStorage

logger = logging.getLogger(__name__)


class PortalIngestionEngine:
    """
    Resolves portal configs into scraper tasks and runs them through a
    Run Coordinator on the shared session pool.
    """

    def __init__(
        self,
        *,
        settings: IngestionSettings,
        storage: CatalogStorage,
        pool: SessionPool,
        registry: ScraperTaskRegistry | None = None,
        portals: Sequence[PortalConfig] | None = None,
    ) -> None:
        self._settings = settings
        self._storage = storage
        self._pool = pool
        self._registry = registry or ScraperTaskRegistry()
        self._portals = list(portals) if portals is not None else None

    def portal_configs(self) -> list[PortalConfig]:
        if self._portals is not None:
            return list(self._portals)
        return load_portal_configs(config_path=self._settings.config_path)

    def get_portal(self, portal: str) -> PortalConfig:
        normalized = portal.strip().lower()
        for config in self.portal_configs():
            if config.name == normalized:
                return config
        raise LookupError(f"Unknown portal '{portal}'.")

    def coordinator_for(self, config: PortalConfig) -> RunCoordinator:
        task = self._registry.create_task(config=config, settings=self._settings)
        return RunCoordinator(
            pool=self._pool,
            task=task,
            storage=self._storage,
            acquire_timeout=self._settings.acquire_timeout_seconds,
            max_parallel=self._settings.max_parallel_sub_targets,
        )

    def run(
        self,
        portal: str,
        *,
        sub_targets: Sequence[str] | None = None,
        cancel_event: threading.Event | None = None,
    ) -> RunSummary:
        """
        Refresh one portal's catalog. Raises LookupError for unknown portals,
        ValueError for disabled portals or bad sub-targets and RunAborted
        when the run cannot proceed.
        """

        config = self.get_portal(portal)
        if not config.enabled:
            raise ValueError(f"Portal '{config.name}' is disabled.")
        log_event(
            logger,
            logging.INFO,
            "run_started",
            portal=config.name,
            catalog=config.catalog,
            sub_targets=list(sub_targets) if sub_targets else "all",
        )
        return self.coordinator_for(config).run_all(sub_targets, cancel_event=cancel_event)

    def run_all(self, *, cancel_event: threading.Event | None = None) -> list[RunSummary]:
        summaries: list[RunSummary] = []
        for config in self.portal_configs():
            if not config.enabled:
                continue
            if cancel_event is not None and cancel_event.is_set():
                break
            try:
                summaries.append(self.run(config.name, cancel_event=cancel_event))
            except RunAborted as exc:
                summaries.append(exc.summary or self._failed_summary(config, exc))
            except Exception as exc:
                log_event(
                    logger,
                    logging.ERROR,
                    "portal_run_failed",
                    portal=config.name,
                    error=str(exc),
                )
                summaries.append(self._failed_summary(config, exc))
        return summaries

    @staticmethod
    def _failed_summary(config: PortalConfig, exc: Exception) -> RunSummary:
        now = datetime.now(timezone.utc)
        return RunSummary(
            portal=config.name,
            catalog=config.catalog,
            started_at=now,
            finished_at=now,
            error=str(exc) or type(exc).__name__,
        )
