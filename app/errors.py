"""Exception hierarchy shared by the catalog components."""

from __future__ import annotations


class CatalogError(Exception):
    """Base class for errors raised by the media catalog."""


class MediaValidationError(CatalogError):
    """A candidate record is missing a required field or carries a bad value."""


class DuplicateMediaError(CatalogError):
    """A record with the same (external id, kind) key is already stored."""

    def __init__(self, external_id: int, kind: str):
        super().__init__(f"Media {kind}/{external_id} already exists")
        self.external_id = external_id
        self.kind = kind


class UpstreamError(CatalogError):
    """The metadata provider could not be reached or answered with an error."""


class NotFoundError(CatalogError):
    """A lookup missed and no fallback is defined for it."""


class InvalidArgumentError(CatalogError):
    """Caller input could not be interpreted."""
