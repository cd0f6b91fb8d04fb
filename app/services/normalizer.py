"""Translate raw TMDB items into catalog candidates."""

from __future__ import annotations

import math

from ..models import MediaCandidate
from .tmdb import MediaDetails, RawItem, RawMovie, RawSeries


def format_vote_average(value: object) -> str:
    """Stringify a provider score the way TMDB prints it (``8`` not ``8.0``)."""

    if value is None or value == "":
        return "0"
    if isinstance(value, bool):
        return "0"
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return "0"
        if value.is_integer():
            return str(int(value))
        return repr(value)
    return str(value)


def normalize(raw: RawItem, details: MediaDetails | None = None) -> MediaCandidate:
    """Map ``raw`` (plus optional enrichment) onto the canonical schema.

    Missing enrichment degrades to zero runtime and empty genres/cast. Only a
    missing title or id raises ``MediaValidationError``.
    """

    if isinstance(raw, RawSeries):
        title, release_date = raw.name, raw.first_air_date
    elif isinstance(raw, RawMovie):
        title, release_date = raw.title, raw.release_date
    else:
        raise TypeError(f"Unsupported raw item type: {type(raw).__name__}")

    return MediaCandidate.build(
        external_id=raw.external_id,
        kind=raw.kind,
        title=title,
        overview=raw.overview or "",
        poster_path=raw.poster_path or None,
        backdrop_path=raw.backdrop_path or None,
        release_date=release_date or "",
        vote_average=format_vote_average(raw.vote_average),
        runtime=(details.runtime or 0) if details else 0,
        genres=details.genres if details else (),
        cast=details.cast if details else (),
    )
