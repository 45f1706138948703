"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.catalog_entry import CatalogEntry

__all__ = ["CatalogEntry"]
