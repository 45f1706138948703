"""
Config helpers for portal ingestion.
"""

from app.ingestion.config.loader import get_ingestion_settings, load_portal_configs
from app.ingestion.config.models import (
    IngestionSettings,
    MarkupConfig,
    PortalConfig,
    PortalSelectors,
    SubTargetConfig,
)

__all__ = [
    "IngestionSettings",
    "MarkupConfig",
    "PortalConfig",
    "PortalSelectors",
    "SubTargetConfig",
    "get_ingestion_settings",
    "load_portal_configs",
]
