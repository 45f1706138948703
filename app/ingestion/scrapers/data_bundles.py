"""
Data-bundle catalog task: one sub-target per mobile network.
"""

from __future__ import annotations

from typing import Any

from app.ingestion.base import ScraperTask
from app.ingestion.config.models import SubTargetConfig


class DataBundleScraperTask(ScraperTask):
    """
    Clicks a network icon/button and extracts the priced plan list it loads.
    """

    def descriptor_attributes(self) -> tuple[str, ...]:
        return ("alt", "title", "aria-label", "data-network", "class", "id", "value", "name")

    def activate(self, page: Any, element: Any) -> None:
        self.click(page, element)

    def domain_for(self, sub_target: SubTargetConfig) -> str:
        return sub_target.name.strip().lower()
