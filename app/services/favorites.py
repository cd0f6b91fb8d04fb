"""Favorites ledger resolving saved ids against the catalog store."""

from __future__ import annotations

import logging

from ..models import FavoriteEntry, MediaKind, MediaRecord
from ..storage import CatalogStore, FavoriteEntries

logger = logging.getLogger(__name__)


class FavoritesLedger:
    """Append/remove/list over media ids; never creates or deletes media records."""

    def __init__(self, entries: FavoriteEntries, store: CatalogStore):
        self._entries = entries
        self._store = store

    async def add(self, media_id: int, kind: MediaKind) -> FavoriteEntry:
        return await self._entries.add(media_id, kind)

    async def remove(self, favorite_id: int) -> bool:
        return await self._entries.remove(favorite_id)

    async def list(self) -> list[MediaRecord]:
        """Return favorited records in the order they were added.

        Entries pointing at records that are no longer stored are skipped.
        """

        records: list[MediaRecord] = []
        for entry in await self._entries.all():
            record = await self._store.get_by_id(entry.media_id)
            if record is None:
                logger.debug(
                    "Favorite %s references missing media %s", entry.id, entry.media_id
                )
                continue
            records.append(record)
        return records
