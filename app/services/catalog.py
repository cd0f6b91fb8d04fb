"""Read-through catalog: answer from storage, fall back to TMDB on a miss."""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol, Sequence

from ..config import Settings
from ..errors import (
    DuplicateMediaError,
    InvalidArgumentError,
    MediaValidationError,
    NotFoundError,
    UpstreamError,
)
from ..models import MediaCandidate, MediaKind, MediaRecord, parse_kind
from ..storage import CatalogStore
from ..storage.base import rank_by_score
from .normalizer import normalize
from .tmdb import MediaDetails, RawItem

logger = logging.getLogger(__name__)


class UpstreamSource(Protocol):
    async def fetch_popular(self, kind: MediaKind, page: int = 1) -> list[RawItem]:
        ...

    async def fetch_details(
        self, external_id: int, kind: MediaKind
    ) -> MediaDetails | None:
        ...

    async def search(self, term: str, kind: MediaKind | None = None) -> list[RawItem]:
        ...


class CatalogMediator:
    """Coordinates the catalog store and the upstream metadata provider.

    Each query first looks locally. Only an empty local result triggers an
    upstream fetch, whose items are enriched and normalized concurrently and
    then persisted through :meth:`get_or_create`, which serializes work per
    ``(external_id, kind)`` so the store never holds the same title twice.
    """

    def __init__(
        self,
        store: CatalogStore,
        upstream: UpstreamSource,
        settings: Settings,
    ):
        self._store = store
        self._upstream = upstream
        self._settings = settings
        self._locks: dict[tuple[int, str], asyncio.Lock] = {}
        self._background: set[asyncio.Future] = set()

    async def list_page(
        self, page: int = 1, kind: MediaKind = "movie"
    ) -> list[MediaRecord]:
        """Return one page of titles, populating it from TMDB's popular list on a miss."""

        page = max(page, 1)
        local = await self._store.list_page(page, self._settings.catalog_page_size, kind)
        if local:
            return local

        raw_items = await self._upstream.fetch_popular(kind, page)
        records = await self._ingest(raw_items)
        logger.info(
            "Populated %s page %s from TMDB: %s of %s items stored",
            kind,
            page,
            len(records),
            len(raw_items),
        )
        return records

    async def search(
        self, term: str, kind: MediaKind | None = None
    ) -> list[MediaRecord]:
        """Search stored titles; when nothing matches, search TMDB and keep the results."""

        local = await self._store.search(term, kind)
        if local:
            return local

        raw_items = await self._upstream.search(term, kind)
        records = await self._ingest(raw_items)
        logger.info(
            "Search %r (%s) populated %s of %s TMDB results",
            term,
            kind or "all",
            len(records),
            len(raw_items),
        )
        return rank_by_score(records)

    async def get_by_id(self, local_id: int) -> MediaRecord:
        record = await self._store.get_by_id(local_id)
        if record is None:
            raise NotFoundError(f"Media {local_id} not found")
        return record

    def get_stream_url(self, external_id: int | str, kind: object = "movie") -> str:
        """Build the embed URL for a title; no lookups are performed."""

        try:
            parsed_id = int(str(external_id).strip())
        except ValueError as exc:
            raise InvalidArgumentError("Invalid ID") from exc
        resolved_kind = parse_kind(kind, default="movie")
        return f"{self._settings.stream_embed_url}/{resolved_kind}/{parsed_id}"

    async def get_or_create(self, candidate: MediaCandidate) -> MediaRecord:
        """Return the stored record for the candidate's key, creating it once."""

        key = candidate.key
        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            existing = await self._store.get_by_external(*key)
            if existing is not None:
                return existing
            try:
                return await self._store.create(candidate)
            except DuplicateMediaError:
                # Another writer sharing the store won the race; theirs is canonical.
                existing = await self._store.get_by_external(*key)
                if existing is None:
                    raise
                return existing

    async def _ingest(self, raw_items: Sequence[RawItem]) -> list[MediaRecord]:
        if not raw_items:
            return []

        job = asyncio.ensure_future(self._ingest_batch(raw_items))
        self._background.add(job)
        job.add_done_callback(self._background.discard)
        # Shielded so an abandoned request still lets items finish warming the store.
        return await asyncio.shield(job)

    async def _ingest_batch(self, raw_items: Sequence[RawItem]) -> list[MediaRecord]:
        prepared = await asyncio.gather(
            *(self._prepare_item(raw) for raw in raw_items), return_exceptions=True
        )

        # Stored in provider order so local ids follow the upstream listing.
        records: list[MediaRecord] = []
        for raw, result in zip(raw_items, prepared):
            if isinstance(result, BaseException):
                self._log_dropped(raw, result)
                continue
            try:
                records.append(await self.get_or_create(result))
            except Exception as exc:
                self._log_dropped(raw, exc)
        return records

    async def _prepare_item(self, raw: RawItem) -> MediaCandidate:
        details: MediaDetails | None = None
        try:
            details = await self._upstream.fetch_details(raw.external_id, raw.kind)
        except UpstreamError as exc:
            logger.warning(
                "Details unavailable for %s %s, storing without enrichment: %s",
                raw.kind,
                raw.external_id,
                exc,
            )
        return normalize(raw, details)

    @staticmethod
    def _log_dropped(raw: RawItem, exc: BaseException) -> None:
        if isinstance(exc, MediaValidationError):
            logger.warning("Dropping %s %s: %s", raw.kind, raw.external_id, exc)
        else:
            logger.error(
                "Dropping %s %s after unexpected error",
                raw.kind,
                raw.external_id,
                exc_info=exc,
            )

    async def wait_idle(self) -> None:
        """Wait for shielded ingestion work left behind by cancelled requests."""

        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
