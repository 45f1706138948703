"""
Automation sessions: one headless browser process plus its active tab.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from selenium import webdriver
from selenium.common.exceptions import WebDriverException
from selenium.webdriver.chrome.options import Options
from urllib3.exceptions import HTTPError as TransportError

from app.ingestion.config.models import IngestionSettings
from app.ingestion.logging_utils import log_event

logger = logging.getLogger(__name__)

# Flags the production container needs for Chrome to start without a sandbox
# or a GPU and with a small /dev/shm.
CONTAINER_CHROME_ARGS = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-software-rasterizer",
    "--no-zygote",
    "--disable-background-networking",
    "--disable-default-apps",
    "--disable-extensions",
    "--disable-sync",
    "--disable-translate",
    "--mute-audio",
    "--no-first-run",
    "--window-size=1280,800",
)

BLANK_PAGE = "about:blank"

# A dead chromedriver surfaces as urllib3 or socket errors, not WebDriverException.
DRIVER_FAILURES = (WebDriverException, TransportError, OSError)

DriverFactory = Callable[[], Any]


class SessionHealth(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    DEAD = "dead"


@dataclass
class AutomationSession:
    """
    A pooled browser. ``driver`` is the Selenium WebDriver, which also acts
    as the session's single active page.

    ``checked_out`` is owned by the pool and only mutated under its lock.
    """

    driver: Any
    max_age_seconds: float
    max_uses: int
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    health: SessionHealth = SessionHealth.HEALTHY
    checked_out: bool = False
    uses: int = 0
    created_at: float = field(default_factory=time.monotonic)
    last_used_at: float = field(default_factory=time.monotonic)

    @property
    def page(self) -> Any:
        return self.driver

    @property
    def age_seconds(self) -> float:
        return time.monotonic() - self.created_at

    def is_expired(self) -> bool:
        return self.age_seconds > self.max_age_seconds or self.uses >= self.max_uses

    def mark_checked_out(self) -> None:
        self.checked_out = True
        self.uses += 1
        self.last_used_at = time.monotonic()

    def mark_idle(self) -> None:
        self.checked_out = False
        self.last_used_at = time.monotonic()

    def is_responsive(self) -> bool:
        """
        Cheap check that the browser process still answers, without
        navigating away from the current page.
        """

        if self.health is SessionHealth.DEAD:
            return False
        try:
            self.driver.current_url
        except DRIVER_FAILURES:
            self.health = SessionHealth.DEAD
            return False
        return True

    def probe(self, *, timeout_seconds: float) -> SessionHealth:
        """
        Reset the tab to a blank page as a liveness check.

        A driver that raises is dead. A session past its age or use limit
        is degraded so the pool retires it instead of reusing it.
        """

        if self.health is SessionHealth.DEAD:
            return self.health
        try:
            self.driver.set_page_load_timeout(timeout_seconds)
            self.driver.get(BLANK_PAGE)
        except DRIVER_FAILURES as exc:
            log_event(
                logger,
                logging.WARNING,
                "session_probe_failed",
                session_id=self.id,
                error=str(exc),
            )
            self.health = SessionHealth.DEAD
            return self.health

        if self.is_expired():
            self.health = SessionHealth.DEGRADED
        return self.health

    def close(self) -> None:
        try:
            self.driver.quit()
        except DRIVER_FAILURES as exc:
            log_event(
                logger,
                logging.WARNING,
                "session_close_failed",
                session_id=self.id,
                error=str(exc),
            )
        self.health = SessionHealth.DEAD


class ChromeSessionFactory:
    """
    Launches headless Chrome drivers configured from ingestion settings.
    """

    def __init__(self, settings: IngestionSettings) -> None:
        self._settings = settings

    def build_options(self) -> Options:
        options = Options()
        if self._settings.headless:
            options.add_argument("--headless=new")
        for argument in (*CONTAINER_CHROME_ARGS, *self._settings.extra_browser_args):
            options.add_argument(argument)
        if self._settings.browser_binary:
            options.binary_location = self._settings.browser_binary
        options.page_load_strategy = "normal"
        return options

    def __call__(self) -> Any:
        driver = webdriver.Chrome(options=self.build_options())
        driver.set_page_load_timeout(self._settings.navigation_timeout_seconds)
        return driver
