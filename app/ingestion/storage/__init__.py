"""
Storage layer exports.
"""

from app.ingestion.storage.base import CatalogStorage
from app.ingestion.storage.sqlalchemy_storage import SQLAlchemyCatalogStorage

__all__ = ["CatalogStorage", "SQLAlchemyCatalogStorage"]
