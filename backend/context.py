"""Explicit application context holding the shared engine instances.

Built once at startup and passed to whatever needs the engines (the API,
the CLI, tests). There is no module-level singleton.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.commands import CommandStack
from backend.config import Settings, settings as default_settings
from backend.quran.client import QuranComClient, VerseApiClient
from backend.quran.editions import EditionRegistry, default_registry
from backend.quran.rebuilder import MushafPage, PageReconstructor
from backend.quran.timing import (
    DurationEstimator,
    WordTimestamp,
    estimate_word_duration,
    load_word_timestamps,
    merge_timestamps_with_positions,
    timestamp_cache_key,
)
from backend.quran.verse_source import VerseCache, VerseDataSource
from backend.quran.word_mapper import GridConfig, PageMap, WordMapper
from backend.srs.fsrs import FSRS, FSRSParameters
from backend.stores.annotations import AnnotationRepository
from backend.stores.flashcards import FlashcardRepository

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    settings: Settings
    source: VerseDataSource
    reconstructor: PageReconstructor
    scheduler: FSRS
    commands: CommandStack
    flashcards: FlashcardRepository
    annotations: AnnotationRepository
    estimator: DurationEstimator = estimate_word_duration
    mapper_cache_size: int = 1
    timestamp_cache_size: int = 64
    # Least recently used first
    _mappers: OrderedDict[int, WordMapper] = field(default_factory=OrderedDict)
    _timestamps: OrderedDict[str, list[WordTimestamp]] = field(default_factory=OrderedDict)

    @classmethod
    def create(
        cls,
        session_factory: async_sessionmaker[AsyncSession],
        app_settings: Settings | None = None,
        client: VerseApiClient | None = None,
        registry: EditionRegistry = default_registry,
    ) -> "AppContext":
        """Wire up every engine from settings and a database session factory."""
        app_settings = app_settings or default_settings
        if client is None:
            client = QuranComClient(
                base_url=app_settings.quran_api_base_url,
                timeout=app_settings.quran_api_timeout_seconds,
            )

        source = VerseDataSource(client, VerseCache(session_factory))
        scheduler = FSRS(FSRSParameters.from_settings(app_settings))
        return cls(
            settings=app_settings,
            source=source,
            reconstructor=PageReconstructor(source, app_settings.default_edition, registry),
            scheduler=scheduler,
            commands=CommandStack(max_size=app_settings.command_history_size),
            flashcards=FlashcardRepository(session_factory, scheduler),
            annotations=AnnotationRepository(session_factory),
            mapper_cache_size=max(app_settings.mapper_cache_size, 1),
            timestamp_cache_size=max(app_settings.timestamp_cache_size, 1),
        )

    def mapper_for(self, page_number: int) -> WordMapper:
        """Return the word mapper for a page, creating it on first use.

        Only the most recently used pages keep their mappers; moving to a new
        page past ``mapper_cache_size`` discards the oldest page map.
        """
        mapper = self._mappers.get(page_number)
        if mapper is None:
            mapper = WordMapper(GridConfig.from_edition(self.reconstructor.edition))
            self._mappers[page_number] = mapper
            while len(self._mappers) > self.mapper_cache_size:
                evicted, _ = self._mappers.popitem(last=False)
                logger.debug("Discarding page map for page %d", evicted)
        else:
            self._mappers.move_to_end(page_number)
        return mapper

    def clear_mapper_cache(self, page_number: int | None = None) -> None:
        if page_number is None:
            self._mappers.clear()
        else:
            self._mappers.pop(page_number, None)

    async def word_timestamps_for(
        self, surah: int, ayah: int, page_number: int | None = None
    ) -> list[WordTimestamp]:
        """Estimated word timings for an ayah, placed on the page's word boxes.

        Timings are cached for the most recently used ayahs. Box positions
        come from the page's mapper when it is cached and already built.
        """
        key = timestamp_cache_key(surah, ayah)
        timestamps = self._timestamps.get(key)
        if timestamps is None:
            timestamps = await load_word_timestamps(self.source, surah, ayah, self.estimator)
            if timestamps:
                self._timestamps[key] = timestamps
                while len(self._timestamps) > self.timestamp_cache_size:
                    self._timestamps.popitem(last=False)
        else:
            self._timestamps.move_to_end(key)

        if page_number is not None:
            mapper = self._mappers.get(page_number)
            if mapper is not None and mapper.page_map is not None:
                return merge_timestamps_with_positions(timestamps, mapper.page_map)
        return timestamps

    async def close(self) -> None:
        await self.source.close()


@dataclass
class PageView:
    page: MushafPage
    page_map: PageMap


class PageViewLoader:
    """Loads pages for display, discarding results superseded by a newer load.

    Each ``load`` call bumps a generation counter. In-flight fetches are not
    cancelled; when one finishes after a newer load has started, its result
    is dropped and ``None`` is returned.
    """

    def __init__(self, context: AppContext) -> None:
        self.context = context
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    async def load(self, page_number: int) -> PageView | None:
        self._generation += 1
        generation = self._generation

        page = await self.context.reconstructor.rebuild_page(page_number)
        if generation != self._generation:
            logger.warning(
                "Discarding stale load of page %d (generation %d < %d)",
                page_number,
                generation,
                self._generation,
            )
            return None

        page_map = self.context.mapper_for(page_number).build_page_map(page)
        return PageView(page=page, page_map=page_map)
