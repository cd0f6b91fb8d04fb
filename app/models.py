"""Pydantic models describing catalog records and favorites."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Literal, get_args

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import InvalidArgumentError, MediaValidationError

MediaKind = Literal["movie", "tv"]
MEDIA_KINDS: tuple[str, ...] = get_args(MediaKind)

MAX_CAST_MEMBERS = 10


def parse_kind(value: object, *, default: MediaKind | None = None) -> MediaKind:
    """Return ``value`` as a media kind, falling back to ``default`` when blank."""

    if value is None or (isinstance(value, str) and not value.strip()):
        if default is None:
            raise InvalidArgumentError("Media type is required")
        return default
    normalized = str(value).strip().lower()
    if normalized not in MEDIA_KINDS:
        raise InvalidArgumentError(f"Unsupported media type: {value}")
    return normalized  # type: ignore[return-value]


def vote_score(value: str | None) -> float:
    """Parse a stored vote average for sorting; anything unparseable counts as 0."""

    if not value:
        return 0.0
    try:
        score = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(score):
        return 0.0
    return score


class MediaCandidate(BaseModel):
    """A normalized media entry that has not been assigned a local id yet."""

    model_config = ConfigDict(frozen=True)

    external_id: int
    kind: MediaKind
    title: str = Field(min_length=1)
    overview: str = ""
    poster_path: str | None = None
    backdrop_path: str | None = None
    release_date: str = ""
    vote_average: str = "0"
    runtime: int = 0
    genres: tuple[str, ...] = ()
    cast: tuple[str, ...] = ()

    @field_validator("overview", "release_date", mode="before")
    @classmethod
    def _blank_text(cls, value: object) -> object:
        return "" if value is None else value

    @field_validator("poster_path", "backdrop_path", mode="before")
    @classmethod
    def _empty_path_is_null(cls, value: object) -> object:
        if isinstance(value, str) and not value:
            return None
        return value

    @field_validator("vote_average", mode="before")
    @classmethod
    def _default_vote(cls, value: object) -> object:
        if value is None or value == "":
            return "0"
        return value

    @field_validator("runtime", mode="before")
    @classmethod
    def _default_runtime(cls, value: object) -> object:
        return 0 if value is None else value

    @field_validator("cast", mode="after")
    @classmethod
    def _limit_cast(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        return value[:MAX_CAST_MEMBERS]

    @classmethod
    def build(cls, **fields: Any) -> "MediaCandidate":
        """Validate ``fields`` into a candidate, raising ``MediaValidationError``."""

        try:
            return cls.model_validate(fields)
        except ValidationError as exc:
            missing = sorted(
                {".".join(str(part) for part in error["loc"]) for error in exc.errors()}
            )
            raise MediaValidationError(
                f"Invalid media candidate: {', '.join(missing)}"
            ) from exc

    @property
    def key(self) -> tuple[int, MediaKind]:
        return self.external_id, self.kind


class MediaRecord(MediaCandidate):
    """A stored catalog entry with its process-unique local id."""

    local_id: int

    @classmethod
    def from_candidate(cls, candidate: MediaCandidate, local_id: int) -> "MediaRecord":
        return cls(local_id=local_id, **candidate.model_dump())

    @property
    def score(self) -> float:
        return vote_score(self.vote_average)

    def to_payload(self) -> dict[str, object]:
        """Return the JSON shape served to the browsing UI."""

        return {
            "id": self.local_id,
            "tmdbId": self.external_id,
            "title": self.title,
            "overview": self.overview,
            "posterPath": self.poster_path,
            "backdropPath": self.backdrop_path,
            "releaseDate": self.release_date,
            "voteAverage": self.vote_average,
            "genres": list(self.genres),
            "runtime": self.runtime,
            "cast": list(self.cast),
            "mediaType": self.kind,
        }


class FavoriteEntry(BaseModel):
    """A favorited media reference; ``media_id`` points at ``MediaRecord.local_id``."""

    model_config = ConfigDict(frozen=True)

    id: int
    media_id: int
    kind: MediaKind
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_payload(self) -> dict[str, object]:
        return {
            "id": self.id,
            "mediaId": self.media_id,
            "mediaType": self.kind,
            "createdAt": self.created_at.isoformat(),
        }
