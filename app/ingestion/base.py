"""
Base scraper task abstraction for portal ingestion.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from typing import Any

from selenium.common.exceptions import (
    ElementClickInterceptedException,
    ElementNotInteractableException,
    TimeoutException,
)
from selenium.webdriver.support.ui import WebDriverWait

from app.domain.catalog import CatalogEntryInput
from app.ingestion.browser.session import AutomationSession
from app.ingestion.config.models import IngestionSettings, PortalConfig, SubTargetConfig
from app.ingestion.extraction.records import RecordExtractor
from app.ingestion.extraction.strategies import StrategyChain, find_elements
from app.ingestion.logging_utils import log_event
from app.ingestion.normalization import CatalogNormalizer
from app.ingestion.types import DEFAULT_MATCH_ATTRIBUTES, ExtractionRecord, TargetDescriptor

logger = logging.getLogger(__name__)


class ScraperTask(ABC):
    """
    Portal-specific unit of work driven by the Run Coordinator.

    A task never acquires or releases sessions itself; it is handed a
    borrowed session and performs one step at a time so the coordinator can
    track per-sub-target progress.
    """

    def __init__(
        self,
        *,
        config: PortalConfig,
        settings: IngestionSettings,
        chain: StrategyChain,
        extractor: RecordExtractor,
        normalizer: CatalogNormalizer,
    ) -> None:
        self.config = config
        self.settings = settings
        self.chain = chain
        self.extractor = extractor
        self.normalizer = normalizer

    @property
    def portal(self) -> str:
        return self.config.name

    def open_entry(self, session: AutomationSession) -> None:
        """
        Navigate to the portal entry page and wait until it is usable.

        Raises WebDriverException/TimeoutException when the portal is unreachable.
        """

        page = session.page
        page.set_page_load_timeout(self.settings.navigation_timeout_seconds)
        page.get(self.config.entry_url)
        if self.config.ready_selector:
            selector = self.config.ready_selector
            self._wait(
                page,
                lambda driver: bool(find_elements(driver, selector)),
                timeout=self.settings.navigation_timeout_seconds,
            )
        log_event(
            logger,
            logging.INFO,
            "entry_page_opened",
            portal=self.portal,
            session_id=session.id,
            url=self.config.entry_url,
        )

    def descriptor_for(self, sub_target: SubTargetConfig) -> TargetDescriptor:
        selectors = self.config.selectors
        return TargetDescriptor(
            name=sub_target.name,
            tokens=sub_target.tokens,
            entry_selectors=selectors.entry,
            text_selectors=selectors.text,
            fallback_templates=selectors.fallback,
            attributes=self.descriptor_attributes(),
        )

    def descriptor_attributes(self) -> tuple[str, ...]:
        return DEFAULT_MATCH_ATTRIBUTES

    def locate(self, page: Any, sub_target: SubTargetConfig) -> Any | None:
        return self.chain.locate(page, self.descriptor_for(sub_target))

    def load(self, page: Any, sub_target: SubTargetConfig, element: Any) -> bool:
        """
        Activate the located control and wait for the dynamic content.

        Returns False when the bounded wait timed out; extraction still runs
        on whatever the page shows.
        """

        before = self.extractor.signature(page, self.config.selectors.containers)
        self.activate(page, element)
        return self.wait_for_content(page, sub_target, before)

    @abstractmethod
    def activate(self, page: Any, element: Any) -> None:
        """
        Interact with the located control (click, select).
        """

    def wait_for_content(
        self,
        page: Any,
        sub_target: SubTargetConfig,
        before: Sequence[str],
    ) -> bool:
        containers = self.config.selectors.containers
        previous = tuple(before)

        def _repopulated(driver: Any) -> bool:
            current = self.extractor.signature(driver, containers)
            return bool(current) and current != previous

        try:
            self._wait(page, _repopulated, timeout=self.settings.content_wait_timeout_seconds)
            return True
        except TimeoutException:
            log_event(
                logger,
                logging.WARNING,
                "content_wait_timed_out",
                portal=self.portal,
                sub_target=sub_target.name,
                timeout_seconds=self.settings.content_wait_timeout_seconds,
            )
            return False

    def extract(self, page: Any) -> list[ExtractionRecord]:
        return self.extractor.extract_records(
            page,
            self.config.selectors.containers,
            require_amount=self.config.requires_amount,
        )

    def normalize(
        self,
        sub_target: SubTargetConfig,
        records: Sequence[ExtractionRecord],
    ) -> list[CatalogEntryInput]:
        return self.normalizer.normalize(
            catalog=self.config.catalog,
            domain=self.domain_for(sub_target),
            records=records,
            source_url=self.config.entry_url,
            scraped_at=datetime.now(timezone.utc),
        )

    def domain_for(self, sub_target: SubTargetConfig) -> str:
        return sub_target.name

    def click(self, page: Any, element: Any) -> None:
        """
        Native click, falling back to a script click when an overlay or
        off-screen layout intercepts it.
        """

        try:
            element.click()
        except (ElementClickInterceptedException, ElementNotInteractableException):
            page.execute_script("arguments[0].click();", element)

    def _wait(self, page: Any, condition: Callable[[Any], bool], *, timeout: float) -> None:
        WebDriverWait(
            page,
            timeout,
            poll_frequency=self.settings.wait_poll_seconds,
        ).until(condition)
