"""Exception hierarchy for the Mushaf core.

Range errors are raised synchronously before any I/O. Fetch and cache
failures are wrapped so callers can tell a dead network from a dead store.
"""

from __future__ import annotations


class HifzError(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, *, context: dict[str, object] | None = None) -> None:
        """Initialize error with message and optional context.

        Args:
            message: Human-readable error description.
            context: Additional key-value pairs for logging.
        """
        super().__init__(message)
        self.context = context or {}


class QuranRangeError(HifzError, ValueError):
    """Page, surah, ayah or page range is out of bounds."""


class PageDataError(HifzError):
    """The data source returned nothing usable for a page."""


class QuranDataError(HifzError):
    """Base class for verse data I/O failures."""


class FetchError(QuranDataError):
    """The remote verse API request failed."""


class CacheUnavailableError(QuranDataError):
    """The persistent verse cache could not be read or written."""


class RepositoryError(HifzError):
    """Base class for flashcard/annotation store failures."""


class NotFoundError(RepositoryError):
    """Requested record does not exist."""


class DuplicateKeyError(RepositoryError):
    """A record with the same id already exists."""


class ConfigurationError(HifzError):
    """Invalid or unknown configuration (e.g. an unregistered edition)."""
