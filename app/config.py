"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="MediaCatalog", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")

    tmdb_api_key: str | None = Field(default=None, alias="TMDB_API_KEY")
    tmdb_api_url: HttpUrl = Field(
        default="https://api.themoviedb.org/3", alias="TMDB_API_URL"
    )
    stream_embed_url: str = Field(
        default="https://vidsrc.to/embed", alias="STREAM_EMBED_URL"
    )

    catalog_page_size: int = Field(
        default=20, alias="CATALOG_PAGE_SIZE", ge=1, le=100
    )
    search_min_length: int = Field(
        default=3, alias="SEARCH_MIN_LENGTH", ge=1, le=50
    )
    upstream_timeout_seconds: float = Field(
        default=10.0, alias="UPSTREAM_TIMEOUT", gt=0, le=120
    )
    upstream_concurrency: int = Field(
        default=8, alias="UPSTREAM_CONCURRENCY", ge=1, le=64
    )

    storage_backend: Literal["memory", "database"] = Field(
        default="memory", alias="STORAGE_BACKEND"
    )
    database_url: str = Field(
        default="sqlite+aiosqlite:///./mediacatalog.db", alias="DATABASE_URL"
    )

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("tmdb_api_key", mode="before")
    @classmethod
    def _blank_key_is_missing(cls, value: object) -> object:
        """Treat an empty API key the same as an absent one."""

        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("stream_embed_url", mode="before")
    @classmethod
    def _strip_trailing_slash(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().rstrip("/")
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalise_log_level(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().upper() or "INFO"
        return value

    @property
    def tmdb_base_url(self) -> str:
        """Return the upstream base URL without a trailing slash."""

        return str(self.tmdb_api_url).rstrip("/")

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
