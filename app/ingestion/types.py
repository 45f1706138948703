"""
Shared ingestion runtime data models.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum


class AmountState(str, Enum):
    """
    Parse state of a scraped amount. Consumers branch on this, never on
    the truthiness of ``amount``.
    """

    PARSED = "parsed"
    UNPARSED = "unparsed"
    NOT_APPLICABLE = "not_applicable"


@dataclass(frozen=True)
class ExtractionRecord:
    """
    One element scraped from a live page, before normalization.
    """

    raw_text: str
    source_id: str
    dedup_key: str
    amount_state: AmountState
    amount: Decimal | None = None
    label: str | None = None

    def __post_init__(self) -> None:
        if (self.amount_state is AmountState.PARSED) != (self.amount is not None):
            raise ValueError(
                f"amount={self.amount!r} inconsistent with state={self.amount_state.value}"
            )

    @classmethod
    def parsed(
        cls,
        *,
        raw_text: str,
        source_id: str,
        dedup_key: str,
        amount: Decimal,
        label: str | None = None,
    ) -> "ExtractionRecord":
        return cls(
            raw_text=raw_text,
            source_id=source_id,
            dedup_key=dedup_key,
            amount_state=AmountState.PARSED,
            amount=amount,
            label=label,
        )

    @classmethod
    def unpriced(
        cls,
        *,
        raw_text: str,
        source_id: str,
        dedup_key: str,
        label: str | None = None,
    ) -> "ExtractionRecord":
        return cls(
            raw_text=raw_text,
            source_id=source_id,
            dedup_key=dedup_key,
            amount_state=AmountState.NOT_APPLICABLE,
            label=label,
        )


DEFAULT_MATCH_ATTRIBUTES = (
    "alt",
    "title",
    "aria-label",
    "class",
    "id",
    "value",
    "data-network",
    "name",
)


@dataclass(frozen=True)
class TargetDescriptor:
    """
    What the strategy chain is looking for: the sub-target token plus
    aliases and the selector groups to search.
    """

    name: str
    tokens: tuple[str, ...]
    entry_selectors: tuple[str, ...] = ()
    text_selectors: tuple[str, ...] = ()
    fallback_templates: tuple[str, ...] = ()
    attributes: tuple[str, ...] = DEFAULT_MATCH_ATTRIBUTES
