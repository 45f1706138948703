"""
School directory task: one sub-target per state.
"""

from __future__ import annotations

from typing import Any

from app.ingestion.base import ScraperTask
from app.ingestion.config.models import SubTargetConfig


class SchoolDirectoryScraperTask(ScraperTask):
    """
    Selects a state in the state dropdown and extracts the repopulated
    school dropdown. Schools carry no amount.
    """

    def descriptor_attributes(self) -> tuple[str, ...]:
        return ("value", "label", "title", "aria-label", "id")

    def activate(self, page: Any, element: Any) -> None:
        # Clicking an <option> selects it and fires the dropdown's change event.
        if element.is_selected():
            page.execute_script(
                "arguments[0].parentElement.dispatchEvent(new Event('change', {bubbles: true}));",
                element,
            )
            return
        self.click(page, element)

    def domain_for(self, sub_target: SubTargetConfig) -> str:
        return sub_target.name.strip()
