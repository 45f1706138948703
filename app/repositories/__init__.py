"""
app/repositories package marker.
"""

from app.repositories.catalog_repository import CatalogRepository

__all__ = ["CatalogRepository"]
