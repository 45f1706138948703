"""
Scraper task registry and factory.
"""

from __future__ import annotations

import importlib
from collections.abc import Mapping

from app.ingestion.base import ScraperTask
from app.ingestion.config.models import IngestionSettings, PortalConfig
from app.ingestion.extraction import RecordExtractor, StrategyChain
from app.ingestion.normalization import CatalogNormalizer
from app.ingestion.pricing import PricingPolicy
from app.ingestion.scrapers import DataBundleScraperTask, SchoolDirectoryScraperTask


class ScraperTaskRegistry:
    """
    Task registry supporting built-ins and dynamic import paths.
    """

    def __init__(self, registrations: Mapping[str, type[ScraperTask]] | None = None) -> None:
        builtins: dict[str, type[ScraperTask]] = {
            "data_bundles": DataBundleScraperTask,
            "school_directory": SchoolDirectoryScraperTask,
        }
        if registrations:
            builtins.update(registrations)
        self._registrations = builtins

    def register(self, *, task_type: str, task_class: type[ScraperTask]) -> None:
        self._registrations[task_type.strip().lower()] = task_class

    @property
    def task_types(self) -> list[str]:
        return sorted(self._registrations)

    def create_task(
        self,
        *,
        config: PortalConfig,
        settings: IngestionSettings,
        chain: StrategyChain | None = None,
    ) -> ScraperTask:
        task_class = self._resolve_task_class(config)
        return task_class(
            config=config,
            settings=settings,
            chain=chain or StrategyChain(),
            extractor=RecordExtractor(placeholder_tokens=config.placeholder_tokens),
            normalizer=CatalogNormalizer(PricingPolicy(settings.markup_for(config))),
        )

    def _resolve_task_class(self, config: PortalConfig) -> type[ScraperTask]:
        if config.task_class:
            return self._load_dynamic_class(config.task_class)

        resolved = self._registrations.get(config.task_type)
        if resolved is None:
            allowed = ", ".join(self.task_types)
            raise ValueError(
                f"Unknown task_type='{config.task_type}' for portal='{config.name}'. "
                f"Allowed types: {allowed}."
            )
        return resolved

    @staticmethod
    def _load_dynamic_class(path: str) -> type[ScraperTask]:
        if ":" not in path:
            raise ValueError(f"Invalid task_class '{path}'. Use 'module.path:ClassName'.")

        module_path, class_name = path.split(":", 1)
        module = importlib.import_module(module_path)
        loaded = getattr(module, class_name, None)
        if loaded is None:
            raise ValueError(f"Unable to resolve task class '{path}'.")
        if not isinstance(loaded, type) or not issubclass(loaded, ScraperTask):
            raise ValueError(f"Class '{path}' must inherit from ScraperTask.")
        return loaded
