"""SQLAlchemy ORM models backing the persistent catalog."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer, JSON, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MediaRow(Base):
    """Persisted media record; list fields are stored as JSON arrays."""

    __tablename__ = "media"
    __table_args__ = (
        UniqueConstraint("tmdb_id", "media_type", name="uq_media_external"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tmdb_id: Mapped[int] = mapped_column(Integer, index=True)
    media_type: Mapped[str] = mapped_column(String(16))
    title: Mapped[str] = mapped_column(String(512))
    overview: Mapped[str] = mapped_column(Text, default="")
    poster_path: Mapped[str | None] = mapped_column(String(255), nullable=True)
    backdrop_path: Mapped[str | None] = mapped_column(String(255), nullable=True)
    release_date: Mapped[str] = mapped_column(String(32), default="")
    vote_average: Mapped[str] = mapped_column(String(32), default="0")
    runtime: Mapped[int] = mapped_column(Integer, default=0)
    genres: Mapped[list[str]] = mapped_column(JSON, default=list)
    cast: Mapped[list[str]] = mapped_column(JSON, default=list)


class FavoriteRow(Base):
    """Persisted favorite; ``media_id`` is a plain reference into ``media``."""

    __tablename__ = "favorites"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    media_id: Mapped[int] = mapped_column(Integer)
    media_type: Mapped[str] = mapped_column(String(16), default="movie")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
