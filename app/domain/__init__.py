"""
app/domain package marker.
"""

from app.domain.catalog import CatalogEntryInput
from app.domain.ingestion import (
    RunSummary,
    SubTargetError,
    SubTargetOutcome,
    SubTargetProgress,
    SubTargetState,
)

__all__ = [
    "CatalogEntryInput",
    "RunSummary",
    "SubTargetError",
    "SubTargetOutcome",
    "SubTargetProgress",
    "SubTargetState",
]
