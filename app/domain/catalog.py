"""
app/domain/catalog.py

Domain models for catalog persistence.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any


@dataclass(frozen=True)
class CatalogEntryInput:
    """
    Typed, priced catalog row prepared for upsert.
    """

    catalog: str
    domain: str
    natural_key: str
    display_name: str
    cost_price: Decimal
    retail_price: Decimal
    reseller_price: Decimal
    refreshed_at: datetime
    attributes: dict[str, Any] | None = None

    def __post_init__(self) -> None:
        if self.cost_price < 0:
            raise ValueError(f"cost_price must be >= 0, got {self.cost_price}")
        if self.retail_price < self.cost_price or self.reseller_price < self.cost_price:
            raise ValueError(
                f"derived prices must be >= cost_price for key={self.natural_key!r}"
            )
