"""Storage interfaces shared by the catalog backends."""

from __future__ import annotations

from typing import Iterable, Protocol, Sequence

from ..models import FavoriteEntry, MediaCandidate, MediaKind, MediaRecord


class CatalogStore(Protocol):
    """Keyed storage of normalized media records."""

    async def list_page(
        self, page: int, page_size: int, kind: MediaKind | None = None
    ) -> list[MediaRecord]:
        ...

    async def get_by_id(self, local_id: int) -> MediaRecord | None:
        ...

    async def get_by_external(
        self, external_id: int, kind: MediaKind
    ) -> MediaRecord | None:
        ...

    async def search(
        self, term: str, kind: MediaKind | None = None
    ) -> list[MediaRecord]:
        ...

    async def create(self, candidate: MediaCandidate) -> MediaRecord:
        ...

    async def remove(self, local_id: int) -> bool:
        ...


class FavoriteEntries(Protocol):
    """Append/remove/list storage for favorite entries."""

    async def add(self, media_id: int, kind: MediaKind) -> FavoriteEntry:
        ...

    async def remove(self, favorite_id: int) -> bool:
        ...

    async def all(self) -> list[FavoriteEntry]:
        ...


def page_bounds(page: int, page_size: int) -> tuple[int, int]:
    """Return the ``(offset, limit)`` for a 1-based page; pages below 1 clamp to 1."""

    page = max(page, 1)
    page_size = max(page_size, 0)
    return (page - 1) * page_size, page_size


def matches_term(record: MediaRecord, term: str) -> bool:
    """Case-insensitive substring match against the title or any genre."""

    needle = term.casefold()
    if needle in record.title.casefold():
        return True
    return any(needle in genre.casefold() for genre in record.genres)


def rank_by_score(records: Iterable[MediaRecord]) -> list[MediaRecord]:
    """Sort by vote score descending; ``sorted`` is stable so ties keep input order."""

    return sorted(records, key=lambda record: record.score, reverse=True)


def filter_search(
    records: Sequence[MediaRecord], term: str, kind: MediaKind | None
) -> list[MediaRecord]:
    matched = [
        record
        for record in records
        if (kind is None or record.kind == kind) and matches_term(record, term)
    ]
    return rank_by_score(matched)
