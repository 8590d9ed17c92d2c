"""Cached verse data source.

Fetches verse/word records from the remote API and keeps them in a
persistent key-value cache with a time-to-live. Verse data is immutable
upstream, so concurrent misses on the same key simply both fetch and the
last write wins.
"""

import logging
from datetime import datetime, timedelta
from typing import Any

from pydantic import ValidationError
from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.config import settings, utcnow
from backend.errors import CacheUnavailableError, FetchError, QuranRangeError
from backend.models.cache_entry import CacheEntry
from backend.quran.client import PAGE_WORD_FIELDS, RICH_WORD_FIELDS, VerseApiClient
from backend.quran.verses import TOTAL_PAGES, TOTAL_SURAHS, VerseRecord

logger = logging.getLogger(__name__)

PAGES_STORE = "pages"
VERSES_STORE = "verses"


def validate_page(page: int) -> None:
    if not 1 <= page <= TOTAL_PAGES:
        raise QuranRangeError(
            f"Invalid page number: {page}. Must be between 1 and {TOTAL_PAGES}.",
            context={"page": page},
        )


def validate_verse(surah: int, ayah: int) -> None:
    if not 1 <= surah <= TOTAL_SURAHS:
        raise QuranRangeError(
            f"Invalid surah number: {surah}. Must be between 1 and {TOTAL_SURAHS}.",
            context={"surah": surah},
        )
    if ayah < 1:
        raise QuranRangeError(
            f"Invalid ayah number: {ayah}. Must be at least 1.", context={"ayah": ayah}
        )


class VerseCache:
    """TTL key-value cache stored in the ``cache_entries`` table."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        ttl: timedelta | None = None,
    ) -> None:
        """Initialize the cache with a session factory and entry lifetime."""
        self._session_factory = session_factory
        self.ttl = ttl or timedelta(days=settings.verse_cache_ttl_days)

    async def get(self, store: str, key: str, now: datetime | None = None) -> Any | None:
        """Return the cached payload, or None when missing or expired."""
        now = now or utcnow()
        try:
            async with self._session_factory() as db:
                entry = await db.get(CacheEntry, (store, key))
        except SQLAlchemyError as e:
            raise CacheUnavailableError(f"Cache read failed for {store}/{key}") from e

        if entry is None:
            return None
        if now - entry.cached_at > self.ttl:
            logger.debug("Cache entry %s/%s expired", store, key)
            return None
        return entry.data

    async def put(self, store: str, key: str, data: Any, now: datetime | None = None) -> None:
        """Store a payload with a capture timestamp, replacing any prior entry."""
        try:
            async with self._session_factory() as db:
                await db.merge(CacheEntry(store=store, key=key, data=data, cached_at=now or utcnow()))
                await db.commit()
        except SQLAlchemyError as e:
            raise CacheUnavailableError(f"Cache write failed for {store}/{key}") from e

    async def clear(self) -> None:
        try:
            async with self._session_factory() as db:
                await db.execute(delete(CacheEntry))
                await db.commit()
        except SQLAlchemyError as e:
            raise CacheUnavailableError("Cache clear failed") from e

    async def count(self, store: str) -> int:
        try:
            async with self._session_factory() as db:
                stmt = select(func.count()).select_from(CacheEntry).where(CacheEntry.store == store)
                return (await db.execute(stmt)).scalar() or 0
        except SQLAlchemyError as e:
            raise CacheUnavailableError(f"Cache count failed for {store}") from e


class VerseDataSource:
    """Verse lookups by page or key, served from cache when fresh."""

    def __init__(self, client: VerseApiClient, cache: VerseCache) -> None:
        """Initialize the data source with an API client and a cache."""
        self.client = client
        self.cache = cache

    async def get_page_verses(self, page: int) -> list[VerseRecord]:
        """Get all verses for a page (1-604), with line-level word data.

        Raises:
            QuranRangeError: If the page is out of bounds (before any I/O).
            FetchError: If the remote API fails.
            CacheUnavailableError: If the cache store fails.
        """
        validate_page(page)
        key = f"page_{page}"

        cached = await self.cache.get(PAGES_STORE, key)
        if cached is not None:
            logger.debug("Cache hit for %s", key)
            return _parse_verses(cached["verses"])

        logger.info("Cache miss for %s, fetching from API", key)
        verses = await self.client.fetch_page_verses(page, PAGE_WORD_FIELDS)
        records = _parse_verses(verses)
        await self.cache.put(PAGES_STORE, key, {"page_number": page, "verses": verses})
        return records

    async def get_verse(self, surah: int, ayah: int) -> VerseRecord:
        """Get a single verse by surah and ayah."""
        validate_verse(surah, ayah)
        return await self._get_verse(f"verse_{surah}_{ayah}", surah, ayah, None)

    async def get_verse_with_words(self, surah: int, ayah: int) -> VerseRecord:
        """Get a verse with translation, transliteration and audio per word.

        Cached under a separate key from ``get_verse`` so the two never collide.
        """
        validate_verse(surah, ayah)
        return await self._get_verse(f"verse_words_{surah}_{ayah}", surah, ayah, RICH_WORD_FIELDS)

    async def clear_cache(self) -> None:
        await self.cache.clear()

    async def get_cache_stats(self) -> dict[str, int]:
        """Return cached entry counts per store."""
        return {
            "verses": await self.cache.count(VERSES_STORE),
            "pages": await self.cache.count(PAGES_STORE),
        }

    async def close(self) -> None:
        await self.client.aclose()

    async def _get_verse(
        self,
        key: str,
        surah: int,
        ayah: int,
        word_fields: tuple[str, ...] | None,
    ) -> VerseRecord:
        cached = await self.cache.get(VERSES_STORE, key)
        if cached is not None:
            logger.debug("Cache hit for %s", key)
            return _parse_verse(cached)

        logger.info("Cache miss for %s, fetching from API", key)
        verse = await self.client.fetch_verse(surah, ayah, word_fields)
        record = _parse_verse(verse)
        await self.cache.put(VERSES_STORE, key, verse)
        return record


def _parse_verse(data: dict[str, Any]) -> VerseRecord:
    try:
        return VerseRecord.model_validate(data)
    except ValidationError as e:
        raise FetchError(f"Malformed verse payload: {e.error_count()} errors") from e


def _parse_verses(data: list[dict[str, Any]]) -> list[VerseRecord]:
    return [_parse_verse(item) for item in data]
