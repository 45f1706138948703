"""
db/models/catalog_entry.py

Normalized, priced catalog rows sourced from portal ingestion runs.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Index,
    String,
    UniqueConstraint,
    Uuid,
    func,
    true,
)
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, PortableJSON, TimestampMixin

CATALOG_UPSERT_CONSTRAINT = "uq_catalog_entries_catalog_domain_key"
CATALOG_CONFLICT_COLUMNS = ("catalog", "domain", "natural_key")


class CatalogEntry(TimestampMixin, Base):
    """
    One cataloged item, e.g. an MTN data plan or an NBAIS school.

    ``(catalog, domain, natural_key)`` is the upsert conflict target: every
    ingestion run updates the existing row in place and advances
    ``last_refreshed_at``. Rows are never deleted by ingestion; staleness is
    read from ``last_refreshed_at`` and ``is_active`` is only flipped by an
    explicit administrative action.
    """

    __tablename__ = "catalog_entries"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    catalog: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="Catalog family, e.g. data_plans or nbais_schools",
    )
    domain: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Domain discriminator within the catalog: network, state, portal",
    )
    natural_key: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
        comment="Portal-side identifier (option value, plan id, school value)",
    )
    display_name: Mapped[str] = mapped_column(String(500), nullable=False)
    cost_price: Mapped[Decimal] = mapped_column(nullable=False)
    retail_price: Mapped[Decimal] = mapped_column(nullable=False)
    reseller_price: Mapped[Decimal] = mapped_column(nullable=False)
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=true(),
    )
    attributes: Mapped[dict[str, Any] | None] = mapped_column(
        PortableJSON,
        nullable=True,
        comment="Source-specific extras: raw text, source url",
    )
    last_refreshed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        UniqueConstraint(*CATALOG_CONFLICT_COLUMNS, name=CATALOG_UPSERT_CONSTRAINT),
        CheckConstraint("cost_price >= 0", name="ck_catalog_entries_cost_non_negative"),
        CheckConstraint("retail_price >= cost_price", name="ck_catalog_entries_retail_gte_cost"),
        CheckConstraint(
            "reseller_price >= cost_price",
            name="ck_catalog_entries_reseller_gte_cost",
        ),
        Index("ix_catalog_entries_catalog_domain_active", "catalog", "domain", "is_active"),
        Index("ix_catalog_entries_last_refreshed_at", "last_refreshed_at"),
    )
