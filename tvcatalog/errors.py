"""
Error conditions raised by the catalog core.
"""
from typing import Any, Optional


class CatalogError(Exception):
    """Base class for catalog errors."""


class SourceUnavailable(CatalogError):
    """An entity collection could not be obtained from its loader."""

    def __init__(self, entity: str, reason: str = ""):
        self.entity = entity
        self.reason = reason
        message = f"Entity source unavailable: {entity}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class MalformedInput(CatalogError):
    """An entity collection is not an iterable of records."""


class MalformedEntity(CatalogError):
    """A single record is missing a required field."""

    def __init__(self, entity: str, record: Any, reason: str = ""):
        self.entity = entity
        self.record = record
        self.reason = reason
        super().__init__(f"Malformed {entity} record: {reason}")


class UnsupportedViewType(CatalogError):
    """The requested view type is not produced by the grouping engine."""

    def __init__(self, view_type: Any):
        self.view_type = view_type
        super().__init__(f"Unsupported view type: {view_type}")


class PersistenceWriteFailure(CatalogError):
    """The persisted cache tier rejected a write."""

    def __init__(self, key: str, reason: Optional[str] = None):
        self.key = key
        self.reason = reason
        super().__init__(f"Could not persist cache entry {key}: {reason}")


class AbortedFetch(CatalogError):
    """An in-flight fetch was superseded by a newer request."""
