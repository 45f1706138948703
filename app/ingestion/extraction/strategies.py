"""
Extraction strategy chain: ordered heuristics for locating the control that
opens one sub-target on a live page.

Portal markup drifts without notice, so no single selector is trusted. Each
strategy returns a candidate element or None; the chain returns the first
hit and None when every strategy misses, which callers treat as a skip.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from typing import Any

from selenium.common.exceptions import (
    InvalidSelectorException,
    NoSuchElementException,
    StaleElementReferenceException,
    WebDriverException,
)
from selenium.webdriver.common.by import By

from app.ingestion.logging_utils import log_event
from app.ingestion.types import TargetDescriptor

logger = logging.getLogger(__name__)

_WORD_SPLIT = re.compile(r"[^0-9a-z]+")

EXACT_MATCH = 2
WORD_MATCH = 1
NO_MATCH = 0


def _words(value: str) -> list[str]:
    return [word for word in _WORD_SPLIT.split(value.casefold()) if word]


def match_score(value: str | None, token: str) -> int:
    """
    Score ``value`` against ``token``: exact (ignoring case and punctuation),
    contained as a whole-word sequence, or no match.

    Whole-word matching keeps "glo" from matching a "global-nav" class.
    """

    if not value:
        return NO_MATCH
    value_words = _words(value)
    token_words = _words(token)
    if not value_words or not token_words:
        return NO_MATCH
    if value_words == token_words:
        return EXACT_MATCH
    width = len(token_words)
    for start in range(len(value_words) - width + 1):
        if value_words[start : start + width] == token_words:
            return WORD_MATCH
    return NO_MATCH


def find_elements(page: Any, selector: str) -> list[Any]:
    """
    CSS lookup that treats an invalid or missing selector as "no elements".
    """

    try:
        return list(page.find_elements(By.CSS_SELECTOR, selector))
    except (InvalidSelectorException, NoSuchElementException) as exc:
        log_event(logger, logging.DEBUG, "selector_unusable", selector=selector, error=str(exc))
        return []


def is_interactable(element: Any) -> bool:
    try:
        if (element.tag_name or "").lower() == "option":
            return True
        return bool(element.is_displayed())
    except (StaleElementReferenceException, WebDriverException):
        return False


def _safe_attribute(element: Any, name: str) -> str | None:
    try:
        return element.get_attribute(name)
    except (StaleElementReferenceException, WebDriverException):
        return None


def _safe_text(element: Any) -> str | None:
    try:
        return element.text
    except (StaleElementReferenceException, WebDriverException):
        return None


class LocateStrategy(ABC):
    """
    One heuristic for finding a sub-target's entry control.
    """

    name: str = "strategy"

    @abstractmethod
    def find(self, page: Any, descriptor: TargetDescriptor) -> Any | None:
        """
        Return a matching element or None.
        """


class _ScoredStrategy(LocateStrategy):
    """
    Scans candidates and keeps the best score; an exact match ends the scan.
    """

    def find(self, page: Any, descriptor: TargetDescriptor) -> Any | None:
        best: Any | None = None
        best_score = NO_MATCH
        for selector in self.selectors(descriptor):
            for element in find_elements(page, selector):
                if not is_interactable(element):
                    continue
                score = self.score(element, descriptor)
                if score == EXACT_MATCH:
                    return element
                if score > best_score:
                    best, best_score = element, score
        return best

    @abstractmethod
    def selectors(self, descriptor: TargetDescriptor) -> Sequence[str]:
        """
        Candidate selectors for this strategy.
        """

    @abstractmethod
    def score(self, element: Any, descriptor: TargetDescriptor) -> int:
        """
        Best match score of ``element`` against the descriptor tokens.
        """


class AttributeMatchStrategy(_ScoredStrategy):
    """
    Structural candidates whose alt/title/class/value/... names the token.
    """

    name = "attribute_match"

    def selectors(self, descriptor: TargetDescriptor) -> Sequence[str]:
        return descriptor.entry_selectors

    def score(self, element: Any, descriptor: TargetDescriptor) -> int:
        best = NO_MATCH
        for attribute in descriptor.attributes:
            value = _safe_attribute(element, attribute)
            for token in descriptor.tokens:
                best = max(best, match_score(value, token))
                if best == EXACT_MATCH:
                    return best
        return best


class VisibleTextStrategy(_ScoredStrategy):
    """
    Free-text scan over interactive elements.
    """

    name = "visible_text"

    def selectors(self, descriptor: TargetDescriptor) -> Sequence[str]:
        return descriptor.text_selectors

    def score(self, element: Any, descriptor: TargetDescriptor) -> int:
        text = _safe_text(element)
        return max((match_score(text, token) for token in descriptor.tokens), default=NO_MATCH)


class FallbackContainerStrategy(LocateStrategy):
    """
    Descriptor-specific selector templates with ``{token}`` substituted.
    """

    name = "fallback_container"

    def find(self, page: Any, descriptor: TargetDescriptor) -> Any | None:
        for template in descriptor.fallback_templates:
            for token in descriptor.tokens:
                selector = template.replace("{token}", _css_escape(token))
                for element in find_elements(page, selector):
                    if is_interactable(element):
                        return element
        return None


def _css_escape(token: str) -> str:
    return token.replace("\\", "\\\\").replace("'", "\\'").replace('"', '\\"')


class StrategyChain:
    """
    Ordered list of locate strategies, tried until one returns an element.
    """

    def __init__(self, strategies: Iterable[LocateStrategy] | None = None) -> None:
        self._strategies = list(strategies) if strategies is not None else default_strategies()
        if not self._strategies:
            raise ValueError("StrategyChain needs at least one strategy.")

    @property
    def strategies(self) -> list[LocateStrategy]:
        return list(self._strategies)

    def locate(self, page: Any, descriptor: TargetDescriptor) -> Any | None:
        for strategy in self._strategies:
            element = strategy.find(page, descriptor)
            if element is not None:
                log_event(
                    logger,
                    logging.DEBUG,
                    "entry_located",
                    sub_target=descriptor.name,
                    strategy=strategy.name,
                )
                return element
            log_event(
                logger,
                logging.DEBUG,
                "strategy_missed",
                sub_target=descriptor.name,
                strategy=strategy.name,
            )
        log_event(logger, logging.INFO, "entry_not_found", sub_target=descriptor.name)
        return None


def default_strategies() -> list[LocateStrategy]:
    return [AttributeMatchStrategy(), VisibleTextStrategy(), FallbackContainerStrategy()]
