"""Process-local storage backed by insertion-ordered dictionaries."""

from __future__ import annotations

import asyncio
import logging

from ..errors import DuplicateMediaError
from ..models import FavoriteEntry, MediaCandidate, MediaKind, MediaRecord
from .base import filter_search, page_bounds

logger = logging.getLogger(__name__)


class MemoryCatalogStore:
    """Arena-style table of media records indexed by local id and external key.

    Records are kept in insertion order, which is the order listings paginate
    over. The id counter and the external index are only touched while holding
    ``_lock`` so concurrent creates never share an id or a key.
    """

    def __init__(self) -> None:
        self._records: dict[int, MediaRecord] = {}
        self._external_index: dict[tuple[int, str], int] = {}
        self._next_id = 1
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._records)

    async def list_page(
        self, page: int, page_size: int, kind: MediaKind | None = None
    ) -> list[MediaRecord]:
        offset, limit = page_bounds(page, page_size)
        records = [
            record
            for record in self._records.values()
            if kind is None or record.kind == kind
        ]
        return records[offset : offset + limit]

    async def get_by_id(self, local_id: int) -> MediaRecord | None:
        return self._records.get(local_id)

    async def get_by_external(
        self, external_id: int, kind: MediaKind
    ) -> MediaRecord | None:
        local_id = self._external_index.get((external_id, kind))
        if local_id is None:
            return None
        return self._records.get(local_id)

    async def search(
        self, term: str, kind: MediaKind | None = None
    ) -> list[MediaRecord]:
        return filter_search(list(self._records.values()), term, kind)

    async def create(self, candidate: MediaCandidate) -> MediaRecord:
        async with self._lock:
            if candidate.key in self._external_index:
                raise DuplicateMediaError(candidate.external_id, candidate.kind)
            local_id = self._next_id
            self._next_id += 1
            record = MediaRecord.from_candidate(candidate, local_id)
            self._records[local_id] = record
            self._external_index[candidate.key] = local_id
        logger.debug(
            "Stored %s %s as local id %s", record.kind, record.external_id, local_id
        )
        return record

    async def remove(self, local_id: int) -> bool:
        async with self._lock:
            record = self._records.pop(local_id, None)
            if record is None:
                return False
            self._external_index.pop(record.key, None)
        return True


class MemoryFavoriteEntries:
    """Favorites kept in process memory, ordered by creation."""

    def __init__(self) -> None:
        self._entries: dict[int, FavoriteEntry] = {}
        self._next_id = 1
        self._lock = asyncio.Lock()

    async def add(self, media_id: int, kind: MediaKind) -> FavoriteEntry:
        async with self._lock:
            entry = FavoriteEntry(id=self._next_id, media_id=media_id, kind=kind)
            self._next_id += 1
            self._entries[entry.id] = entry
        return entry

    async def remove(self, favorite_id: int) -> bool:
        async with self._lock:
            return self._entries.pop(favorite_id, None) is not None

    async def all(self) -> list[FavoriteEntry]:
        return list(self._entries.values())
