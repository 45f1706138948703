"""
app/api/routers package marker.
"""

from app.api.routers.catalog import router as catalog_router
from app.api.routers.ingestion import router as ingestion_router

__all__ = [
    "catalog_router",
    "ingestion_router",
]
