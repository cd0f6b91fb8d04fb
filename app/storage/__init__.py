"""Storage backends for catalog records and favorites."""

from __future__ import annotations

from .base import CatalogStore, FavoriteEntries
from .memory import MemoryCatalogStore, MemoryFavoriteEntries
from .sql import SqlCatalogStore, SqlFavoriteEntries

__all__ = [
    "CatalogStore",
    "FavoriteEntries",
    "MemoryCatalogStore",
    "MemoryFavoriteEntries",
    "SqlCatalogStore",
    "SqlFavoriteEntries",
]
