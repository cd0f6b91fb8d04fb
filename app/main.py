"""Entry point for the FastAPI-powered media catalog."""

from __future__ import annotations

import json
import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, settings
from .database import Database
from .errors import InvalidArgumentError, NotFoundError, UpstreamError
from .models import MediaKind, parse_kind
from .services.catalog import CatalogMediator
from .services.favorites import FavoritesLedger
from .services.tmdb import TMDBClient
from .storage import (
    MemoryCatalogStore,
    MemoryFavoriteEntries,
    SqlCatalogStore,
    SqlFavoriteEntries,
)

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    exit_stack = AsyncExitStack()
    tmdb_http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            base_url=settings.tmdb_base_url,
            timeout=httpx.Timeout(settings.upstream_timeout_seconds, connect=5.0),
        )
    )
    if not settings.tmdb_api_key:
        logger.warning(
            "TMDB_API_KEY is not configured; catalog misses cannot be filled from TMDB"
        )

    database: Database | None = None
    if settings.storage_backend == "database":
        database = Database(settings.database_url)
        await database.create_all()
        store = SqlCatalogStore(database.session_factory)
        entries = SqlFavoriteEntries(database.session_factory)
    else:
        store = MemoryCatalogStore()
        entries = MemoryFavoriteEntries()

    mediator = CatalogMediator(store, TMDBClient(settings, tmdb_http_client), settings)
    fastapi_app.state.mediator = mediator
    fastapi_app.state.favorites = FavoritesLedger(entries, store)
    fastapi_app.state.database = database

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await mediator.wait_idle()
        if database is not None:
            await database.dispose()
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Movie and TV catalog backed by TMDB",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def get_mediator(app: FastAPI) -> CatalogMediator:
    mediator = getattr(app.state, "mediator", None)
    if not isinstance(mediator, CatalogMediator):
        raise RuntimeError("Catalog mediator not initialised")
    return mediator


def get_favorites(app: FastAPI) -> FavoritesLedger:
    ledger = getattr(app.state, "favorites", None)
    if not isinstance(ledger, FavoritesLedger):
        raise RuntimeError("Favorites ledger not initialised")
    return ledger


def _message(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"message": message}, status_code=status_code)


def register_routes(fastapi_app: FastAPI, app_settings: Settings | None = None) -> None:
    config = app_settings or settings

    @fastapi_app.exception_handler(InvalidArgumentError)
    async def _invalid_argument(_: Request, exc: InvalidArgumentError) -> JSONResponse:
        return _message(400, str(exc))

    @fastapi_app.exception_handler(NotFoundError)
    async def _not_found(_: Request, exc: NotFoundError) -> JSONResponse:
        return _message(404, str(exc))

    @fastapi_app.exception_handler(Exception)
    async def _unhandled(_: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error while serving request", exc_info=exc)
        return _message(500, "Internal server error")

    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/api/movies")
    async def list_media(
        page: str | None = None, mediaType: str | None = None
    ) -> JSONResponse:
        mediator = get_mediator(fastapi_app)
        kind = parse_kind(mediaType, default="movie")
        page_number = _coerce_int(page, default=1) or 1
        try:
            records = await mediator.list_page(page_number, kind)
        except UpstreamError as exc:
            logger.error("Error fetching %s page %s: %s", kind, page_number, exc)
            return _message(500, "Failed to fetch media")
        return JSONResponse([record.to_payload() for record in records])

    @fastapi_app.get("/api/search")
    async def search_media(
        q: str | None = None, mediaType: str | None = None
    ) -> JSONResponse:
        if not q:
            return _message(400, "Search query is required")
        term = q.strip()
        if len(term) < config.search_min_length:
            return JSONResponse([])
        kind: MediaKind | None = parse_kind(mediaType) if mediaType else None

        mediator = get_mediator(fastapi_app)
        try:
            records = await mediator.search(term, kind)
        except UpstreamError as exc:
            logger.error("Error searching %r: %s", term, exc)
            return _message(500, "Failed to search media")
        return JSONResponse([record.to_payload() for record in records])

    @fastapi_app.get("/api/media/{media_id}")
    async def media_detail(media_id: str) -> JSONResponse:
        local_id = _coerce_int(media_id)
        if local_id is None:
            return _message(400, "Invalid ID")
        mediator = get_mediator(fastapi_app)
        try:
            record = await mediator.get_by_id(local_id)
        except NotFoundError:
            return _message(404, "Media not found")
        return JSONResponse(record.to_payload())

    @fastapi_app.get("/api/stream/{tmdb_id}")
    async def stream_url(tmdb_id: str, mediaType: str | None = None) -> dict[str, str]:
        mediator = get_mediator(fastapi_app)
        return {"streamUrl": mediator.get_stream_url(tmdb_id, mediaType)}

    @fastapi_app.get("/api/favorites")
    async def list_favorites() -> JSONResponse:
        ledger = get_favorites(fastapi_app)
        records = await ledger.list()
        return JSONResponse([record.to_payload() for record in records])

    @fastapi_app.post("/api/favorites")
    async def add_favorite(request: Request) -> JSONResponse:
        try:
            payload = await request.json()
        except json.JSONDecodeError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}

        media_id = _coerce_int(payload.get("mediaId"))
        raw_kind = payload.get("mediaType")
        if not media_id or not raw_kind:
            return _message(400, "MediaId and mediaType are required")
        kind = parse_kind(raw_kind)

        ledger = get_favorites(fastapi_app)
        entry = await ledger.add(media_id, kind)
        return JSONResponse(entry.to_payload())

    @fastapi_app.delete("/api/favorites/{favorite_id}")
    async def remove_favorite(favorite_id: str) -> JSONResponse:
        ledger = get_favorites(fastapi_app)
        parsed_id = _coerce_int(favorite_id)
        if parsed_id is not None and await ledger.remove(parsed_id):
            return _message(200, "Removed from favorites")
        return _message(404, "Favorite not found")


def _coerce_int(value: Any, *, default: int | None = None) -> int | None:
    if isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


app = create_app()


if __name__ == "__main__":  # pragma: no cover - manual execution
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
    )
