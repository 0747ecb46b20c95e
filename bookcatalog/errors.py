"""Exceptions raised by the catalog read model.

``StoreUnavailableError`` is the only retryable one; the others signal a
caller mistake and should not be retried.
"""

from __future__ import annotations

__all__ = [
    "CatalogError",
    "UnknownEntityError",
    "NoFilterProvidedError",
    "StoreUnavailableError",
    "AggregationError",
]


class CatalogError(Exception):
    retryable = False


class UnknownEntityError(CatalogError):
    def __init__(self, entity):
        self.entity = entity
        super().__init__(f"Unknown entity type: {entity!r}")


class NoFilterProvidedError(CatalogError):
    def __init__(self, message: str = "At least one filter must be provided"):
        super().__init__(message)


class StoreUnavailableError(CatalogError):
    retryable = True

    def __init__(self, handle, message: str):
        self.handle = handle
        super().__init__(f"{getattr(handle, 'value', handle)} store unavailable: {message}")


class AggregationError(CatalogError):
    """A facet lookup failed while assembling attachments; ``__cause__`` holds the error."""

    def __init__(self, facet, book_id, cause: BaseException):
        self.facet = facet
        self.book_id = book_id
        self.cause = cause
        super().__init__(f"Fetching {getattr(facet, 'value', facet)} for book {book_id} failed: {cause}")

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return isinstance(self.cause, CatalogError) and self.cause.retryable
