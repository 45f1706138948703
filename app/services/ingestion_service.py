"""
app/services/ingestion_service.py

Service orchestration for portal catalog refreshes.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Sequence

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.domain.ingestion import RunSummary
from app.ingestion.browser import SessionPool
from app.ingestion.config import IngestionSettings, PortalConfig, get_ingestion_settings
from app.ingestion.engine import PortalIngestionEngine
from app.ingestion.registry import ScraperTaskRegistry
from app.ingestion.storage import SQLAlchemyCatalogStorage
from db.session import SessionLocal


class PortalIngestionService:
    """
    Runs portal refreshes against the process-wide session pool.
    """

    def __init__(
        self,
        *,
        pool: SessionPool,
        settings: IngestionSettings | None = None,
        session_factory: Callable[[], Session] = SessionLocal,
        registry: ScraperTaskRegistry | None = None,
    ) -> None:
        self._settings = settings or get_ingestion_settings()
        storage = SQLAlchemyCatalogStorage(
            session_factory=session_factory,
            batch_size=self._settings.storage_batch_size,
        )
        self._engine = PortalIngestionEngine(
            settings=self._settings,
            storage=storage,
            pool=pool,
            registry=registry,
        )

    def portals(self) -> list[PortalConfig]:
        return self._engine.portal_configs()

    def refresh(
        self,
        portal: str,
        *,
        sub_targets: Sequence[str] | None = None,
        cancel_event: threading.Event | None = None,
    ) -> RunSummary:
        return self._engine.run(portal, sub_targets=sub_targets, cancel_event=cancel_event)

    def refresh_all(self, *, cancel_event: threading.Event | None = None) -> list[RunSummary]:
        return self._engine.run_all(cancel_event=cancel_event)


def get_session_pool(request: Request) -> SessionPool:
    """
    Resolve the session pool created by the application lifespan.
    """

    return request.app.state.session_pool


def get_portal_ingestion_service(
    pool: SessionPool = Depends(get_session_pool),
) -> PortalIngestionService:
    return PortalIngestionService(pool=pool)
