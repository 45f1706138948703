"""
Normalization layer exports.
"""

from app.ingestion.normalization.catalog_normalizer import CatalogNormalizer

__all__ = ["CatalogNormalizer"]
