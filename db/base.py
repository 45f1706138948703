"""
db/base.py

Declarative base and shared mixins for all SQLAlchemy models.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, DateTime, Numeric, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests).
PortableJSON = JSON().with_variant(JSONB(), "postgresql")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """
    Project-wide declarative base.
    All models must inherit from this class.

    Money columns default to Numeric(12, 2).
    """

    type_annotation_map: dict[type, Any] = {
        Decimal: Numeric(12, 2),
    }


class TimestampMixin:
    """
    Mixin that adds created_at and updated_at to any model.

    updated_at is refreshed by ORM updates via onupdate. Core upserts do not
    run Python-side onupdate hooks, so they must set it explicitly.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=utc_now,
    )
