"""Behaviour of the read-through catalog mediator."""

from __future__ import annotations

import asyncio

import pytest

from app.config import Settings
from app.errors import InvalidArgumentError, NotFoundError, UpstreamError
from app.models import MediaCandidate
from app.services.catalog import CatalogMediator
from app.services.tmdb import MediaDetails
from app.storage import MemoryCatalogStore

from fakes import FakeUpstream, movie, series


def build_mediator(
    upstream: FakeUpstream, store: MemoryCatalogStore | None = None, **overrides
) -> tuple[CatalogMediator, MemoryCatalogStore]:
    settings = Settings(_env_file=None, **overrides)  # type: ignore[arg-type]
    store = store or MemoryCatalogStore()
    return CatalogMediator(store, upstream, settings), store


@pytest.mark.anyio("asyncio")
async def test_first_page_is_fetched_once_then_served_from_store() -> None:
    upstream = FakeUpstream(popular=[movie(index) for index in range(1, 21)])
    mediator, store = build_mediator(upstream)

    first = await mediator.list_page(1, "movie")
    second = await mediator.list_page(1, "movie")

    assert len(first) == 20
    assert second == first
    assert [record.local_id for record in second] == list(range(1, 21))
    assert upstream.popular_calls == [("movie", 1)]
    assert len(upstream.detail_calls) == 20
    assert len(store) == 20


@pytest.mark.anyio("asyncio")
async def test_listing_keeps_provider_order_when_details_finish_out_of_order() -> None:
    upstream = FakeUpstream(
        popular=[movie(10), movie(20), movie(30)],
        detail_delays={10: 0.03, 20: 0.01},
    )
    mediator, _ = build_mediator(upstream)

    records = await mediator.list_page(1, "movie")

    assert [record.external_id for record in records] == [10, 20, 30]


@pytest.mark.anyio("asyncio")
async def test_cached_listing_matches_first_response_when_details_finish_out_of_order() -> None:
    upstream = FakeUpstream(
        popular=[movie(10), movie(20), movie(30)],
        detail_delays={10: 0.03, 20: 0.01},
    )
    mediator, _ = build_mediator(upstream)

    first = await mediator.list_page(1, "movie")
    second = await mediator.list_page(1, "movie")

    assert second == first
    assert [(record.local_id, record.external_id) for record in second] == [
        (1, 10),
        (2, 20),
        (3, 30),
    ]
    assert upstream.popular_calls == [("movie", 1)]


@pytest.mark.anyio("asyncio")
async def test_listing_attaches_details() -> None:
    upstream = FakeUpstream(
        popular=[movie(550, "Fight Club", 8.4)],
        details={
            550: MediaDetails(
                runtime=139, genres=("Drama",), cast=("Edward Norton", "Brad Pitt")
            )
        },
    )
    mediator, _ = build_mediator(upstream)

    (record,) = await mediator.list_page(1, "movie")

    assert record.title == "Fight Club"
    assert record.runtime == 139
    assert record.genres == ("Drama",)
    assert record.cast == ("Edward Norton", "Brad Pitt")
    assert record.vote_average == "8.4"


@pytest.mark.anyio("asyncio")
async def test_invalid_items_are_dropped_without_failing_the_listing() -> None:
    upstream = FakeUpstream(popular=[movie(1), movie(2, title=""), movie(3)])
    mediator, store = build_mediator(upstream)

    records = await mediator.list_page(1, "movie")

    assert [record.external_id for record in records] == [1, 3]
    assert len(store) == 2


@pytest.mark.anyio("asyncio")
async def test_failed_detail_fetch_degrades_instead_of_dropping() -> None:
    upstream = FakeUpstream(
        popular=[movie(1), movie(2)],
        details={1: MediaDetails(runtime=90, genres=("Comedy",))},
        failing_details=[2],
    )
    mediator, _ = build_mediator(upstream)

    records = await mediator.list_page(1, "movie")

    assert [record.external_id for record in records] == [1, 2]
    degraded = records[1]
    assert degraded.runtime == 0
    assert degraded.genres == ()
    assert degraded.cast == ()


@pytest.mark.anyio("asyncio")
async def test_listing_error_from_provider_propagates() -> None:
    upstream = FakeUpstream(popular_error=True)
    mediator, _ = build_mediator(upstream)

    with pytest.raises(UpstreamError):
        await mediator.list_page(1, "movie")


@pytest.mark.anyio("asyncio")
async def test_listing_filters_local_page_by_kind() -> None:
    upstream = FakeUpstream(popular=[movie(1), series(2, "Dark")])
    mediator, _ = build_mediator(upstream)

    movies = await mediator.list_page(1, "movie")
    shows = await mediator.list_page(1, "tv")

    assert [record.kind for record in movies] == ["movie"]
    assert [record.title for record in shows] == ["Dark"]
    assert upstream.popular_calls == [("movie", 1), ("tv", 1)]


@pytest.mark.anyio("asyncio")
async def test_partial_local_page_is_returned_without_upstream_call() -> None:
    upstream = FakeUpstream(popular=[movie(index) for index in range(1, 6)])
    mediator, store = build_mediator(upstream)
    await store.create(MediaCandidate.build(external_id=99, kind="movie", title="Solo"))

    records = await mediator.list_page(1, "movie")

    assert [record.external_id for record in records] == [99]
    assert upstream.popular_calls == []


@pytest.mark.anyio("asyncio")
async def test_empty_later_page_goes_upstream_and_reuses_existing_records() -> None:
    upstream = FakeUpstream(popular=[movie(1), movie(2)])
    mediator, store = build_mediator(upstream, CATALOG_PAGE_SIZE=2)

    first = await mediator.list_page(1, "movie")
    second = await mediator.list_page(2, "movie")

    assert upstream.popular_calls == [("movie", 1), ("movie", 2)]
    assert second == first
    assert len(store) == 2


@pytest.mark.anyio("asyncio")
async def test_search_miss_sorts_by_score_with_stable_ties() -> None:
    upstream = FakeUpstream(
        results=[
            movie(1, "Batman Begins", 7.7),
            movie(2, "Batman Returns", 6.9),
            series(3, "Batman: The Animated Series", 8.5),
            movie(4, "Batman Forever", 6.9),
        ]
    )
    mediator, _ = build_mediator(upstream)

    records = await mediator.search("batman")

    assert [record.external_id for record in records] == [3, 1, 2, 4]


@pytest.mark.anyio("asyncio")
async def test_search_hit_skips_provider_and_is_idempotent() -> None:
    upstream = FakeUpstream(
        results=[movie(414906, "The Batman", 7.7), movie(268, "Batman", 7.2)]
    )
    mediator, _ = build_mediator(upstream)

    first = await mediator.search("batman")
    second = await mediator.search("batman")

    assert second == first
    assert len(upstream.search_calls) == 1


@pytest.mark.anyio("asyncio")
async def test_cached_search_keeps_tie_order_of_first_response() -> None:
    upstream = FakeUpstream(
        results=[movie(1, "Heat", 7.0), movie(2, "Heat Wave", 7.0)],
        detail_delays={1: 0.02},
    )
    mediator, _ = build_mediator(upstream)

    first = await mediator.search("heat")
    second = await mediator.search("heat")

    assert [record.external_id for record in first] == [1, 2]
    assert second == first


@pytest.mark.anyio("asyncio")
async def test_search_matches_genres_locally() -> None:
    upstream = FakeUpstream()
    mediator, store = build_mediator(upstream)
    await store.create(
        MediaCandidate.build(
            external_id=1, kind="movie", title="The Batman", vote_average="7.7"
        )
    )
    await store.create(
        MediaCandidate.build(
            external_id=2,
            kind="movie",
            title="Gotham Nights",
            vote_average="8.1",
            genres=["Batman-verse"],
        )
    )

    records = await mediator.search("BATMAN")

    assert [record.external_id for record in records] == [2, 1]
    assert upstream.search_calls == []


@pytest.mark.anyio("asyncio")
async def test_concurrent_misses_for_same_title_create_one_record() -> None:
    upstream = FakeUpstream(
        results=[movie(550, "Fight Club", 8.4)], detail_delays={550: 0.01}
    )
    mediator, store = build_mediator(upstream)

    left, right = await asyncio.gather(
        mediator.search("fight"), mediator.search("fight")
    )

    assert len(store) == 1
    assert left[0].local_id == right[0].local_id
    assert left[0] == right[0]


@pytest.mark.anyio("asyncio")
async def test_get_or_create_is_single_flight_per_key() -> None:
    mediator, store = build_mediator(FakeUpstream())
    candidates = [
        MediaCandidate.build(external_id=550, kind="movie", title=f"Fight Club {n}")
        for n in range(25)
    ]

    records = await asyncio.gather(*(mediator.get_or_create(c) for c in candidates))

    assert {record.local_id for record in records} == {1}
    assert {record.title for record in records} == {"Fight Club 0"}
    assert len(store) == 1


@pytest.mark.anyio("asyncio")
async def test_same_external_id_with_different_kinds_are_distinct() -> None:
    upstream = FakeUpstream(results=[movie(7, "Seven"), series(7, "Seven Seas")])
    mediator, store = build_mediator(upstream)

    records = await mediator.search("seven")

    assert len(store) == 2
    assert {record.kind for record in records} == {"movie", "tv"}


@pytest.mark.anyio("asyncio")
async def test_abandoned_request_still_warms_the_store() -> None:
    gate = asyncio.Event()
    upstream = FakeUpstream(popular=[movie(1), movie(2)], gate=gate)
    mediator, store = build_mediator(upstream)

    task = asyncio.create_task(mediator.list_page(1, "movie"))
    await asyncio.sleep(0)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    gate.set()
    await mediator.wait_idle()

    assert len(store) == 2


@pytest.mark.anyio("asyncio")
async def test_get_by_id_has_no_upstream_fallback() -> None:
    upstream = FakeUpstream(popular=[movie(1)])
    mediator, _ = build_mediator(upstream)

    with pytest.raises(NotFoundError):
        await mediator.get_by_id(99)
    assert upstream.popular_calls == []


def test_stream_url_is_built_without_lookups() -> None:
    upstream = FakeUpstream()
    mediator, store = build_mediator(upstream)

    assert mediator.get_stream_url(12345, "tv") == "https://vidsrc.to/embed/tv/12345"
    assert mediator.get_stream_url("550", None) == "https://vidsrc.to/embed/movie/550"
    assert len(store) == 0
    assert upstream.detail_calls == []


def test_stream_url_rejects_non_numeric_ids() -> None:
    mediator, _ = build_mediator(FakeUpstream())

    with pytest.raises(InvalidArgumentError, match="Invalid ID"):
        mediator.get_stream_url("abc", "movie")


def test_stream_url_uses_configured_embed_base() -> None:
    mediator, _ = build_mediator(
        FakeUpstream(), STREAM_EMBED_URL="https://embed.example.com/e/"
    )

    assert mediator.get_stream_url(42, "movie") == "https://embed.example.com/e/movie/42"
