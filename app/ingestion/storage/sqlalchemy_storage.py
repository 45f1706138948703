"""
SQLAlchemy-backed catalog storage.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.catalog import CatalogEntryInput
from app.ingestion.errors import PersistenceFailure
from app.ingestion.logging_utils import log_event
from app.ingestion.storage.base import CatalogStorage
from app.repositories.catalog_repository import CatalogRepository

logger = logging.getLogger(__name__)


class SQLAlchemyCatalogStorage(CatalogStorage):
    """
    Upserts through the repository, one short transaction per call.

    A fresh Session is opened per call so concurrent Run Coordinators
    never share one.
    """

    def __init__(self, *, session_factory: Callable[[], Session], batch_size: int = 500) -> None:
        self._session_factory = session_factory
        self._batch_size = max(1, batch_size)

    def upsert(self, rows: Sequence[CatalogEntryInput]) -> int:
        if not rows:
            return 0

        session = self._session_factory()
        try:
            written = CatalogRepository(session).upsert_entries(
                rows,
                batch_size=self._batch_size,
            )
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            log_event(
                logger,
                logging.ERROR,
                "catalog_upsert_failed",
                rows=len(rows),
                error=str(exc),
            )
            raise PersistenceFailure(f"catalog upsert of {len(rows)} rows failed: {exc}") from exc
        finally:
            session.close()

        log_event(logger, logging.INFO, "catalog_upserted", rows=written)
        return written
