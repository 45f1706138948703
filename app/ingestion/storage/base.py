"""
Storage layer interfaces for normalized catalog entries.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from app.domain.catalog import CatalogEntryInput


class CatalogStorage(ABC):
    """
    Storage abstraction for catalog upserts.
    """

    @abstractmethod
    def upsert(self, rows: Sequence[CatalogEntryInput]) -> int:
        """
        Persist rows keyed by natural key and return the number written.

        Raises PersistenceFailure when the write was rolled back.
        """
