"""Client for listing, searching and describing titles on The Movie Database (TMDB)."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Literal, Union

import httpx

from ..config import Settings
from ..errors import UpstreamError
from ..models import MAX_CAST_MEMBERS, MEDIA_KINDS, MediaKind

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class RawMovie:
    """A movie entry as returned by TMDB list and search endpoints."""

    external_id: int
    title: str | None = None
    release_date: str | None = None
    overview: str | None = None
    poster_path: str | None = None
    backdrop_path: str | None = None
    vote_average: float | int | str | None = None
    kind: Literal["movie"] = "movie"


@dataclass(slots=True, frozen=True)
class RawSeries:
    """A TV series entry; TMDB names the title and date fields differently."""

    external_id: int
    name: str | None = None
    first_air_date: str | None = None
    overview: str | None = None
    poster_path: str | None = None
    backdrop_path: str | None = None
    vote_average: float | int | str | None = None
    kind: Literal["tv"] = "tv"


RawItem = Union[RawMovie, RawSeries]


@dataclass(slots=True, frozen=True)
class MediaDetails:
    """Enrichment fetched per title: runtime, genres and top-billed cast."""

    runtime: int | None = None
    genres: tuple[str, ...] = field(default_factory=tuple)
    cast: tuple[str, ...] = field(default_factory=tuple)


def raw_item_from_payload(payload: dict[str, Any], kind: MediaKind) -> RawItem | None:
    """Build the kind-specific raw item, or ``None`` when the payload has no usable id."""

    try:
        external_id = int(payload["id"])
    except (KeyError, TypeError, ValueError):
        return None

    common = {
        "external_id": external_id,
        "overview": payload.get("overview"),
        "poster_path": payload.get("poster_path"),
        "backdrop_path": payload.get("backdrop_path"),
        "vote_average": payload.get("vote_average"),
    }
    if kind == "tv":
        return RawSeries(
            name=payload.get("name"),
            first_air_date=payload.get("first_air_date"),
            **common,
        )
    return RawMovie(
        title=payload.get("title"),
        release_date=payload.get("release_date"),
        **common,
    )


def details_from_payload(payload: dict[str, Any], kind: MediaKind) -> MediaDetails:
    runtime = _coerce_minutes(payload.get("runtime"))
    if kind == "tv" and not runtime:
        episode_runtimes = payload.get("episode_run_time") or []
        if isinstance(episode_runtimes, list) and episode_runtimes:
            runtime = _coerce_minutes(episode_runtimes[0])

    genres = tuple(
        str(genre["name"])
        for genre in payload.get("genres") or []
        if isinstance(genre, dict) and genre.get("name")
    )
    credits = payload.get("credits") or {}
    cast_entries = credits.get("cast") if isinstance(credits, dict) else None
    cast = tuple(
        str(member["name"])
        for member in (cast_entries or [])[:MAX_CAST_MEMBERS]
        if isinstance(member, dict) and member.get("name")
    )
    return MediaDetails(runtime=runtime, genres=genres, cast=cast)


def _coerce_minutes(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class TMDBClient:
    """Thin translation layer over the TMDB v3 API; no caching and no retries."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self._settings = settings
        self._client = http_client
        self._semaphore = asyncio.Semaphore(settings.upstream_concurrency)

    async def fetch_popular(self, kind: MediaKind, page: int = 1) -> list[RawItem]:
        """Return the provider's popular listing for ``kind`` in provider order."""

        payload = await self._get(f"/{kind}/popular", {"page": max(page, 1)})
        return self._parse_results(payload, kind)

    async def fetch_details(
        self, external_id: int, kind: MediaKind
    ) -> MediaDetails | None:
        """Fetch runtime, genres and credits; a 404 from TMDB yields ``None``."""

        payload = await self._get(
            f"/{kind}/{external_id}",
            {"append_to_response": "credits"},
            allow_missing=True,
        )
        if payload is None:
            return None
        return details_from_payload(payload, kind)

    async def search(self, term: str, kind: MediaKind | None = None) -> list[RawItem]:
        """Search one kind, or both through the multi endpoint when ``kind`` is omitted."""

        endpoint = f"/search/{kind}" if kind else "/search/multi"
        payload = await self._get(endpoint, {"query": term})
        if kind is not None:
            return self._parse_results(payload, kind)

        items: list[RawItem] = []
        for entry in self._results(payload):
            entry_kind = entry.get("media_type")
            # Multi search also returns people and collections.
            if entry_kind not in MEDIA_KINDS:
                continue
            item = raw_item_from_payload(entry, entry_kind)
            if item is not None:
                items.append(item)
        return items

    async def _get(
        self,
        path: str,
        params: dict[str, Any],
        *,
        allow_missing: bool = False,
    ) -> dict[str, Any] | None:
        api_key = self._settings.tmdb_api_key
        if not api_key:
            raise UpstreamError("TMDB API key is not configured")

        query = {**params, "api_key": api_key}
        try:
            async with self._semaphore:
                response = await self._client.get(
                    path,
                    params=query,
                    timeout=self._settings.upstream_timeout_seconds,
                )
        except httpx.HTTPError as exc:
            logger.warning("TMDB request to %s failed: %s", path, exc)
            raise UpstreamError(f"TMDB request to {path} failed: {exc}") from exc

        if response.status_code == 404 and allow_missing:
            logger.debug("TMDB has no entry at %s", path)
            return None
        if response.status_code >= 400:
            logger.warning(
                "TMDB request to %s returned %s: %s",
                path,
                response.status_code,
                response.text[:200],
            )
            raise UpstreamError(
                f"TMDB request to {path} returned {response.status_code}"
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamError(f"TMDB returned non-JSON content for {path}") from exc
        if not isinstance(data, dict):
            raise UpstreamError(f"Unexpected TMDB response structure for {path}")
        return data

    def _parse_results(
        self, payload: dict[str, Any] | None, kind: MediaKind
    ) -> list[RawItem]:
        items: list[RawItem] = []
        for entry in self._results(payload):
            item = raw_item_from_payload(entry, kind)
            if item is None:
                logger.debug("Skipping TMDB %s result without an id: %s", kind, entry)
                continue
            items.append(item)
        return items

    @staticmethod
    def _results(payload: dict[str, Any] | None) -> list[dict[str, Any]]:
        results = (payload or {}).get("results") or []
        if not isinstance(results, list):
            return []
        return [entry for entry in results if isinstance(entry, dict)]
