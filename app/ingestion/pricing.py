"""
Derived price tiers from a scraped cost.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_CEILING, Decimal

from app.ingestion.config.models import MarkupConfig

_WHOLE = Decimal("1")
_CENTS = Decimal("0.01")


@dataclass(frozen=True)
class PriceTiers:
    cost: Decimal
    retail: Decimal
    reseller: Decimal


def apply_markup(cost: Decimal, multiplier: Decimal) -> Decimal:
    """
    ceil(cost * multiplier), floored at cost so a multiplier below 1 can
    never price an item under what it costs.
    """

    if cost < 0:
        raise ValueError(f"cost must be >= 0, got {cost}")
    if multiplier <= 0:
        raise ValueError(f"markup multiplier must be positive, got {multiplier}")
    marked_up = (cost * multiplier).to_integral_value(rounding=ROUND_CEILING)
    return max(cost, marked_up).quantize(_CENTS)


class PricingPolicy:
    """
    Applies injectable retail and reseller multipliers.
    """

    def __init__(self, markup: MarkupConfig) -> None:
        self._markup = markup

    @property
    def markup(self) -> MarkupConfig:
        return self._markup

    def tiers(self, cost: Decimal) -> PriceTiers:
        cost = cost.quantize(_CENTS)
        return PriceTiers(
            cost=cost,
            retail=apply_markup(cost, self._markup.retail),
            reseller=apply_markup(cost, self._markup.reseller),
        )
