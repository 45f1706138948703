"""
Ingestion configuration models.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class SubTargetConfig:
    """
    One unit of a portal run, e.g. a network or a state.
    """

    name: str
    aliases: tuple[str, ...] = ()

    @property
    def tokens(self) -> tuple[str, ...]:
        return (self.name, *self.aliases)


@dataclass(frozen=True)
class MarkupConfig:
    """
    Multipliers applied to the scraped cost to derive price tiers.
    """

    retail: Decimal
    reseller: Decimal

    def __post_init__(self) -> None:
        for tier, multiplier in (("retail", self.retail), ("reseller", self.reseller)):
            if multiplier <= 0:
                raise ValueError(f"{tier} markup multiplier must be positive, got {multiplier}")


@dataclass(frozen=True)
class PortalSelectors:
    """
    Selector groups consumed by the extraction strategy chain.

    ``entry`` candidates are matched on attributes, ``text`` candidates on
    visible text, ``fallback`` entries are templates formatted with the
    sub-target token, and ``containers`` hold the records to extract.
    """

    entry: tuple[str, ...] = ()
    text: tuple[str, ...] = ()
    fallback: tuple[str, ...] = ()
    containers: tuple[str, ...] = ()


@dataclass(frozen=True)
class PortalConfig:
    """
    One portal ingestion target.
    """

    name: str
    catalog: str
    task_type: str
    entry_url: str
    sub_targets: tuple[SubTargetConfig, ...]
    selectors: PortalSelectors
    ready_selector: str | None = None
    markup: MarkupConfig | None = None
    requires_amount: bool = True
    enabled: bool = True
    schedule_cron: str | None = None
    task_class: str | None = None
    placeholder_tokens: tuple[str, ...] = ("select", "choose")


@dataclass(frozen=True)
class IngestionSettings:
    """
    Runtime settings for portal ingestion.
    """

    config_path: str
    max_sessions: int
    acquire_timeout_seconds: float
    navigation_timeout_seconds: float
    content_wait_timeout_seconds: float
    wait_poll_seconds: float
    probe_timeout_seconds: float
    max_session_age_seconds: float
    max_session_uses: int
    headless: bool
    browser_binary: str | None
    default_markup: MarkupConfig
    storage_batch_size: int
    max_parallel_sub_targets: int
    scheduler_enabled: bool = True
    extra_browser_args: tuple[str, ...] = field(default_factory=tuple)

    def markup_for(self, portal: PortalConfig) -> MarkupConfig:
        return portal.markup or self.default_markup
