"""Rebuild printed Mushaf pages from verse/word records.

The upstream ``line_number`` on each word is trusted as ground truth for
layout; the rebuilder only groups, orders and annotates.
"""

import logging

from pydantic import BaseModel

from backend.config import settings
from backend.errors import PageDataError, QuranDataError, QuranRangeError
from backend.quran.editions import EditionFingerprint, EditionRegistry, default_registry
from backend.quran.verse_source import VerseDataSource, validate_page
from backend.quran.verses import TOTAL_PAGES, VerseRecord, WordRecord, parse_verse_key

logger = logging.getLogger(__name__)


class MushafLine(BaseModel):
    line_number: int
    words: list[WordRecord]
    verse_keys: list[str]  # Verses with at least one word on this line


class MushafPage(BaseModel):
    page_number: int
    lines: list[MushafLine]
    verses: list[VerseRecord]
    edition_id: str
    lines_per_page: int


class PageReconstructor:
    """Reconstructs pages while preserving an edition's traditional pagination."""

    def __init__(
        self,
        source: VerseDataSource,
        edition_id: str | None = None,
        registry: EditionRegistry = default_registry,
    ) -> None:
        """Initialize with a verse source and the target edition id.

        Raises:
            ConfigurationError: If the edition id is not registered.
        """
        self.source = source
        self._edition = registry.get(edition_id or settings.default_edition)

    @property
    def edition(self) -> EditionFingerprint:
        return self._edition

    async def rebuild_page(self, page_num: int, lines_per_page: int | None = None) -> MushafPage:
        """Rebuild a page (1-604) as ordered lines of ordered words.

        Args:
            page_num: Page number.
            lines_per_page: Optional override of the edition's lines per page.

        Returns:
            The page with lines sorted by line number and words sorted by position.

        Raises:
            QuranRangeError: If the page is out of bounds or the line override is not positive.
            PageDataError: If the source returns no verses.
        """
        validate_page(page_num)
        if lines_per_page is None:
            effective_lines = self._edition.lines_per_page
        elif lines_per_page > 0:
            effective_lines = lines_per_page
        else:
            raise QuranRangeError(
                f"Invalid lines per page: {lines_per_page}",
                context={"lines_per_page": lines_per_page},
            )

        verses = await self.source.get_page_verses(page_num)
        if not verses:
            raise PageDataError(f"No verses found for page {page_num}", context={"page": page_num})

        verse_by_word_id: dict[int, str] = {}
        for verse in verses:
            for word in verse.words:
                verse_by_word_id.setdefault(word.id, verse.verse_key)

        line_words: dict[int, list[WordRecord]] = {}
        line_verse_keys: dict[int, dict[str, None]] = {}  # Insertion-ordered set
        for verse in verses:
            if not verse.words:
                logger.warning("Verse %s on page %d has no words", verse.verse_key, page_num)
            for word in verse.words:
                line_num = word.line_number if word.line_number is not None else 1
                line_words.setdefault(line_num, []).append(word)
                keys = line_verse_keys.setdefault(line_num, {})
                verse_key = verse_by_word_id.get(word.id)
                if verse_key is not None:
                    keys[verse_key] = None

        lines = [
            MushafLine(
                line_number=line_num,
                words=sorted(line_words[line_num], key=lambda w: w.position),
                verse_keys=list(line_verse_keys[line_num]),
            )
            for line_num in sorted(line_words)
        ]

        if len(lines) > effective_lines:
            logger.warning(
                "Page %d has %d lines but expected %d. This may indicate data inconsistency.",
                page_num,
                len(lines),
                effective_lines,
            )

        return MushafPage(
            page_number=page_num,
            lines=lines,
            verses=verses,
            edition_id=self._edition.id,
            lines_per_page=effective_lines,
        )

    async def verify_page_boundaries(self, page_num: int) -> bool:
        """Check a page's first/last verse against the edition's sample pages.

        Pages without a registered sample are trivially valid. Fetch failures
        return False instead of raising; an out-of-range page raises
        QuranRangeError before any lookup.
        """
        validate_page(page_num)
        sample = self._edition.sample_for(page_num)
        if sample is None:
            return True

        try:
            verses = await self.source.get_page_verses(page_num)
        except QuranDataError as e:
            logger.error("Error verifying page %d: %s", page_num, e)
            return False

        if not verses:
            return False

        first = parse_verse_key(verses[0].verse_key)
        last = parse_verse_key(verses[-1].verse_key)
        return first == tuple(sample.first_ayah) and last == tuple(sample.last_ayah)

    async def rebuild_pages(self, start_page: int, end_page: int) -> list[MushafPage]:
        """Rebuild an inclusive range of pages sequentially."""
        if start_page < 1 or end_page > TOTAL_PAGES or start_page > end_page:
            raise QuranRangeError(
                f"Invalid page range: {start_page}-{end_page}",
                context={"start": start_page, "end": end_page},
            )
        return [await self.rebuild_page(page) for page in range(start_page, end_page + 1)]

    async def get_line_count(self, page_num: int) -> int:
        page = await self.rebuild_page(page_num)
        return len(page.lines)
