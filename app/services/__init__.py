"""
app/services package marker.
"""

from app.services.ingestion_service import (
    PortalIngestionService,
    get_portal_ingestion_service,
    get_session_pool,
)

__all__ = [
    "PortalIngestionService",
    "get_portal_ingestion_service",
    "get_session_pool",
]
