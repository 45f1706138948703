"""
Normalization layer: extraction records to priced catalog rows.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timezone
from decimal import Decimal

from app.domain.catalog import CatalogEntryInput
from app.ingestion.logging_utils import log_event
from app.ingestion.pricing import PriceTiers, PricingPolicy
from app.ingestion.types import AmountState, ExtractionRecord

logger = logging.getLogger(__name__)

_ZERO = Decimal("0.00")


class CatalogNormalizer:
    """
    Convert extraction records into catalog upsert inputs.
    """

    def __init__(self, pricing: PricingPolicy) -> None:
        self._pricing = pricing

    def normalize(
        self,
        *,
        catalog: str,
        domain: str,
        records: Sequence[ExtractionRecord],
        source_url: str | None = None,
        scraped_at: datetime | None = None,
    ) -> list[CatalogEntryInput]:
        refreshed_at = scraped_at or datetime.now(timezone.utc)
        if refreshed_at.tzinfo is None:
            refreshed_at = refreshed_at.replace(tzinfo=timezone.utc)

        entries: list[CatalogEntryInput] = []
        for record in records:
            if record.amount_state is AmountState.PARSED and record.amount is not None:
                tiers = self._pricing.tiers(record.amount)
            elif record.amount_state is AmountState.NOT_APPLICABLE:
                tiers = PriceTiers(cost=_ZERO, retail=_ZERO, reseller=_ZERO)
            else:
                log_event(
                    logger,
                    logging.WARNING,
                    "unparsed_record_dropped",
                    catalog=catalog,
                    domain=domain,
                    dedup_key=record.dedup_key,
                )
                continue

            entries.append(
                CatalogEntryInput(
                    catalog=catalog,
                    domain=domain,
                    natural_key=record.dedup_key,
                    display_name=(record.label or record.raw_text)[:500],
                    cost_price=tiers.cost,
                    retail_price=tiers.retail,
                    reseller_price=tiers.reseller,
                    refreshed_at=refreshed_at,
                    attributes={
                        "raw_text": record.raw_text,
                        "source_id": record.source_id,
                        "source_url": source_url,
                    },
                )
            )
        return entries
