"""
app/repositories/catalog_repository.py

Persistence layer for CatalogEntry rows.

All methods are transaction-safe. The caller controls commit/rollback;
this repository never commits on its own.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from app.domain.catalog import CatalogEntryInput
from db.models.catalog_entry import CATALOG_CONFLICT_COLUMNS, CatalogEntry

_DEFAULT_BATCH_SIZE = 500

# Columns overwritten when a natural key already exists. A scraped entry is
# active again; nothing here ever sets is_active to false.
_UPSERT_UPDATE_COLUMNS = (
    "display_name",
    "is_active",
    "cost_price",
    "retail_price",
    "reseller_price",
    "attributes",
    "last_refreshed_at",
)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class CatalogRepository:
    """
    Repository for upserting and reading catalog entries.

    Upsert semantics: a row whose ``(catalog, domain, natural_key)`` already
    exists is updated in place by one ``INSERT .. ON CONFLICT DO UPDATE``
    statement, so concurrent writers never race through a read-then-write.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def upsert_entries(
        self,
        rows: Sequence[CatalogEntryInput],
        *,
        batch_size: int = _DEFAULT_BATCH_SIZE,
    ) -> int:
        """
        Upsert catalog rows in batches.

        Rows sharing a natural key within one call are deduplicated before
        hitting the database; the last occurrence wins.

        Returns
        -------
        int
            Total number of rows written (inserted + updated).
        """
        if not rows:
            return 0

        deduped = _deduplicate(rows)
        size = max(1, batch_size)
        written = 0
        now = _now_utc()

        for start in range(0, len(deduped), size):
            chunk = deduped[start : start + size]
            payloads = [
                {
                    "id": uuid.uuid4(),
                    "catalog": row.catalog,
                    "domain": row.domain,
                    "natural_key": row.natural_key,
                    "display_name": row.display_name,
                    "cost_price": row.cost_price,
                    "retail_price": row.retail_price,
                    "reseller_price": row.reseller_price,
                    "is_active": True,
                    "attributes": row.attributes,
                    "last_refreshed_at": row.refreshed_at,
                    "updated_at": now,
                }
                for row in chunk
            ]
            insert = self._insert_construct()
            stmt = insert(CatalogEntry).values(payloads)
            stmt = stmt.on_conflict_do_update(
                index_elements=list(CATALOG_CONFLICT_COLUMNS),
                set_={
                    **{column: stmt.excluded[column] for column in _UPSERT_UPDATE_COLUMNS},
                    "updated_at": now,
                },
            )
            self._session.execute(stmt)
            written += len(chunk)

        return written

    def set_active(
        self,
        *,
        catalog: str,
        domain: str,
        natural_key: str,
        is_active: bool,
    ) -> CatalogEntry | None:
        """
        Explicit administrative (de)activation of one entry.
        """
        stmt = (
            update(CatalogEntry)
            .where(
                CatalogEntry.catalog == catalog,
                CatalogEntry.domain == domain,
                CatalogEntry.natural_key == natural_key,
            )
            .values(is_active=is_active, updated_at=_now_utc())
        )
        result = self._session.execute(stmt)
        if result.rowcount == 0:
            return None
        return self.get_entry(catalog=catalog, domain=domain, natural_key=natural_key)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_entry(self, *, catalog: str, domain: str, natural_key: str) -> CatalogEntry | None:
        stmt = select(CatalogEntry).where(
            CatalogEntry.catalog == catalog,
            CatalogEntry.domain == domain,
            CatalogEntry.natural_key == natural_key,
        ).execution_options(populate_existing=True)
        return self._session.scalars(stmt).one_or_none()

    def list_entries(
        self,
        *,
        catalog: str,
        domain: str | None = None,
        active_only: bool = True,
        stale_before: datetime | None = None,
        limit: int | None = None,
    ) -> list[CatalogEntry]:
        """
        Entries of one catalog, optionally narrowed to a domain, to active
        rows, or to rows not refreshed since ``stale_before``.
        """
        stmt = (
            select(CatalogEntry)
            .where(CatalogEntry.catalog == catalog)
            .execution_options(populate_existing=True)
        )
        if domain is not None:
            stmt = stmt.where(CatalogEntry.domain == domain)
        if active_only:
            stmt = stmt.where(CatalogEntry.is_active.is_(True))
        if stale_before is not None:
            stmt = stmt.where(CatalogEntry.last_refreshed_at < stale_before)
        stmt = stmt.order_by(CatalogEntry.domain, CatalogEntry.cost_price, CatalogEntry.display_name)
        if limit is not None:
            stmt = stmt.limit(max(1, limit))
        return list(self._session.scalars(stmt).all())

    def count_entries(self, *, catalog: str, domain: str | None = None) -> int:
        stmt = select(func.count()).select_from(CatalogEntry).where(CatalogEntry.catalog == catalog)
        if domain is not None:
            stmt = stmt.where(CatalogEntry.domain == domain)
        return int(self._session.scalar(stmt) or 0)

    def _insert_construct(self) -> Any:
        # SQLite backs the test suite; production is PostgreSQL.
        if self._session.get_bind().dialect.name == "sqlite":
            return sqlite.insert
        return postgresql.insert


def _deduplicate(rows: Sequence[CatalogEntryInput]) -> list[CatalogEntryInput]:
    """
    Remove rows with duplicate natural keys; last occurrence wins.
    """
    seen: dict[tuple[str, str, str], CatalogEntryInput] = {}
    for row in rows:
        seen[(row.catalog, row.domain, row.natural_key)] = row
    return list(seen.values())
