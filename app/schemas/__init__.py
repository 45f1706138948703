"""
app/schemas package marker.
"""

from app.schemas.ingestion import (
    CatalogActivationRequest,
    CatalogEntryResponse,
    PoolStatsResponse,
    RunSummaryResponse,
    SubTargetErrorResponse,
    SubTargetOutcomeResponse,
)

__all__ = [
    "CatalogActivationRequest",
    "CatalogEntryResponse",
    "PoolStatsResponse",
    "RunSummaryResponse",
    "SubTargetErrorResponse",
    "SubTargetOutcomeResponse",
]
