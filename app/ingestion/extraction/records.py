"""
BeautifulSoup-based record extraction from a live page snapshot.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from decimal import Decimal
from typing import Any

from bs4 import BeautifulSoup, Tag
from soupsieve import SelectorSyntaxError

from app.ingestion.extraction.amounts import parse_amount, strip_amount
from app.ingestion.logging_utils import log_event
from app.ingestion.types import ExtractionRecord

logger = logging.getLogger(__name__)

SOURCE_ID_ATTRIBUTES = ("value", "data-plan-id", "data-variation-code", "data-value", "id")
AMOUNT_ATTRIBUTES = ("data-amount", "data-price", "data-cost")
DEFAULT_PLACEHOLDER_TOKENS = ("select", "choose")


class RecordExtractor:
    """
    Turns container nodes (dropdown options, list items, data-attributed
    nodes) into ExtractionRecords.

    The page is parsed once from ``page_source`` instead of one WebDriver
    round-trip per option.
    """

    def __init__(
        self,
        *,
        placeholder_tokens: Sequence[str] = DEFAULT_PLACEHOLDER_TOKENS,
        max_records: int = 5000,
    ) -> None:
        self._placeholder_tokens = tuple(token.casefold() for token in placeholder_tokens)
        self._max_records = max(1, max_records)

    def extract_records(
        self,
        page: Any,
        container_selectors: Sequence[str],
        *,
        require_amount: bool = True,
    ) -> list[ExtractionRecord]:
        """
        Extract deduplicated records; the last node with a given key wins.

        Placeholder entries are skipped. With ``require_amount`` a node whose
        text yields no amount is dropped; otherwise records are tagged as
        carrying no amount.
        """

        soup = BeautifulSoup(page.page_source, "html.parser")
        records: dict[str, ExtractionRecord] = {}
        dropped = 0

        for node in self._select_nodes(soup, container_selectors):
            raw_text = self._clean_text(node.get_text(" ", strip=True))
            if not raw_text or self._is_placeholder(node, raw_text):
                continue

            source_id = self._source_id(node)
            dedup_key = source_id or raw_text
            if require_amount:
                amount = self._amount_from_attributes(node)
                if amount is None:
                    amount = parse_amount(raw_text)
                if amount is None:
                    dropped += 1
                    continue
                record = ExtractionRecord.parsed(
                    raw_text=raw_text,
                    source_id=source_id or raw_text,
                    dedup_key=dedup_key,
                    amount=amount,
                    label=strip_amount(raw_text),
                )
            else:
                record = ExtractionRecord.unpriced(
                    raw_text=raw_text,
                    source_id=source_id or raw_text,
                    dedup_key=dedup_key,
                    label=raw_text,
                )
            records[dedup_key] = record

        if dropped:
            log_event(logger, logging.DEBUG, "unparseable_records_dropped", count=dropped)
        extracted = list(records.values())
        if len(extracted) > self._max_records:
            log_event(
                logger,
                logging.WARNING,
                "records_truncated",
                kept=self._max_records,
                dropped=len(extracted) - self._max_records,
            )
        return extracted[: self._max_records]

    def signature(self, page: Any, container_selectors: Sequence[str]) -> tuple[str, ...]:
        """
        Cheap fingerprint of the container contents, used to detect that a
        dynamic list has been repopulated.
        """

        soup = BeautifulSoup(page.page_source, "html.parser")
        texts: list[str] = []
        for node in self._select_nodes(soup, container_selectors):
            raw_text = self._clean_text(node.get_text(" ", strip=True))
            if raw_text and not self._is_placeholder(node, raw_text):
                texts.append(f"{self._source_id(node) or ''}|{raw_text}")
        return tuple(texts)

    @staticmethod
    def _select_nodes(soup: BeautifulSoup, selectors: Sequence[str]) -> list[Tag]:
        found: list[Tag] = []
        seen: set[int] = set()
        for selector in selectors:
            try:
                matches = soup.select(selector)
            except SelectorSyntaxError as exc:
                log_event(logger, logging.DEBUG, "selector_unusable", selector=selector, error=str(exc))
                continue
            for node in matches:
                if id(node) in seen:
                    continue
                seen.add(id(node))
                found.append(node)
        return found

    def _is_placeholder(self, node: Tag, text: str) -> bool:
        if node.name == "option" and node.get("value") is not None and not str(node.get("value")).strip():
            return True
        lowered = text.casefold()
        return any(token in lowered for token in self._placeholder_tokens)

    @staticmethod
    def _source_id(node: Tag) -> str | None:
        for attribute in SOURCE_ID_ATTRIBUTES:
            value = node.get(attribute)
            if isinstance(value, list):
                value = " ".join(value)
            if value and str(value).strip():
                return str(value).strip()
        return None

    @staticmethod
    def _amount_from_attributes(node: Tag) -> Decimal | None:
        for attribute in AMOUNT_ATTRIBUTES:
            value = node.get(attribute)
            if isinstance(value, str):
                amount = parse_amount(value.strip())
                if amount is not None:
                    return amount
        return None

    @staticmethod
    def _clean_text(value: str) -> str:
        return re.sub(r"\s+", " ", value).strip()
