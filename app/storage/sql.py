"""SQLAlchemy-backed storage for catalog records and favorites."""

from __future__ import annotations

import logging

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db_models import FavoriteRow, MediaRow
from ..errors import DuplicateMediaError
from ..models import FavoriteEntry, MediaCandidate, MediaKind, MediaRecord
from .base import filter_search, page_bounds

logger = logging.getLogger(__name__)


def _row_to_record(row: MediaRow) -> MediaRecord:
    return MediaRecord(
        local_id=row.id,
        external_id=row.tmdb_id,
        kind=row.media_type,  # type: ignore[arg-type]
        title=row.title,
        overview=row.overview or "",
        poster_path=row.poster_path,
        backdrop_path=row.backdrop_path,
        release_date=row.release_date or "",
        vote_average=row.vote_average or "0",
        runtime=row.runtime or 0,
        genres=tuple(row.genres or ()),
        cast=tuple(row.cast or ()),
    )


def _row_to_favorite(row: FavoriteRow) -> FavoriteEntry:
    return FavoriteEntry(
        id=row.id,
        media_id=row.media_id,
        kind=row.media_type,  # type: ignore[arg-type]
        created_at=row.created_at,
    )


class SqlCatalogStore:
    """Catalog store persisting records through an async session factory.

    Genres and cast live in JSON columns; they are converted to and from
    tuples here and nowhere else.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def list_page(
        self, page: int, page_size: int, kind: MediaKind | None = None
    ) -> list[MediaRecord]:
        offset, limit = page_bounds(page, page_size)
        stmt = select(MediaRow).order_by(MediaRow.id).offset(offset).limit(limit)
        if kind is not None:
            stmt = stmt.where(MediaRow.media_type == kind)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [_row_to_record(row) for row in result.scalars()]

    async def get_by_id(self, local_id: int) -> MediaRecord | None:
        async with self._session_factory() as session:
            row = await session.get(MediaRow, local_id)
            return _row_to_record(row) if row is not None else None

    async def get_by_external(
        self, external_id: int, kind: MediaKind
    ) -> MediaRecord | None:
        stmt = select(MediaRow).where(
            MediaRow.tmdb_id == external_id, MediaRow.media_type == kind
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            row = result.scalars().first()
            return _row_to_record(row) if row is not None else None

    async def search(
        self, term: str, kind: MediaKind | None = None
    ) -> list[MediaRecord]:
        # Genre matching needs the decoded JSON list, so filtering happens in Python.
        stmt = select(MediaRow).order_by(MediaRow.id)
        if kind is not None:
            stmt = stmt.where(MediaRow.media_type == kind)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            records = [_row_to_record(row) for row in result.scalars()]
        return filter_search(records, term, kind)

    async def create(self, candidate: MediaCandidate) -> MediaRecord:
        row = MediaRow(
            tmdb_id=candidate.external_id,
            media_type=candidate.kind,
            title=candidate.title,
            overview=candidate.overview,
            poster_path=candidate.poster_path,
            backdrop_path=candidate.backdrop_path,
            release_date=candidate.release_date,
            vote_average=candidate.vote_average,
            runtime=candidate.runtime,
            genres=list(candidate.genres),
            cast=list(candidate.cast),
        )
        async with self._session_factory() as session:
            session.add(row)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise DuplicateMediaError(
                    candidate.external_id, candidate.kind
                ) from exc
            record = MediaRecord.from_candidate(candidate, row.id)
        logger.debug(
            "Stored %s %s as local id %s", record.kind, record.external_id, row.id
        )
        return record

    async def remove(self, local_id: int) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                delete(MediaRow).where(MediaRow.id == local_id)
            )
            await session.commit()
            return bool(result.rowcount)


class SqlFavoriteEntries:
    """Favorites persisted in the ``favorites`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def add(self, media_id: int, kind: MediaKind) -> FavoriteEntry:
        async with self._session_factory() as session:
            row = FavoriteRow(media_id=media_id, media_type=kind)
            session.add(row)
            await session.commit()
            return _row_to_favorite(row)

    async def remove(self, favorite_id: int) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                delete(FavoriteRow).where(FavoriteRow.id == favorite_id)
            )
            await session.commit()
            return bool(result.rowcount)

    async def all(self) -> list[FavoriteEntry]:
        async with self._session_factory() as session:
            result = await session.execute(select(FavoriteRow).order_by(FavoriteRow.id))
            return [_row_to_favorite(row) for row in result.scalars()]
