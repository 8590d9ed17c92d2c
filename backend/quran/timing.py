"""Word-level audio timing for highlight synchronization.

Timings are estimated from word text length until real per-word audio
segments are available. The estimator is pluggable so true timing data can
replace the heuristic without touching the synchronizer.
"""

import logging
from dataclasses import dataclass, replace
from typing import Protocol

from backend.errors import QuranDataError
from backend.quran.verse_source import VerseDataSource
from backend.quran.verses import WordRecord
from backend.quran.word_mapper import PageMap

logger = logging.getLogger(__name__)

BASE_WORD_DURATION = 0.3  # seconds


@dataclass(frozen=True)
class WordTimestamp:
    word_id: str  # "<verse_key>:<position>"
    start_time: float  # seconds
    end_time: float
    verse_key: str
    position: int
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0


class DurationEstimator(Protocol):
    def __call__(self, word: WordRecord) -> float: ...


def estimate_word_duration(word: WordRecord) -> float:
    """Estimate how long a word takes to recite from its text length."""
    length = len(word.text_uthmani)
    if length <= 2:
        return BASE_WORD_DURATION * 0.7
    if length <= 4:
        return BASE_WORD_DURATION
    if length <= 6:
        return BASE_WORD_DURATION * 1.2
    return BASE_WORD_DURATION * 1.5


def word_timestamp_id(verse_key: str, position: int) -> str:
    return f"{verse_key}:{position}"


def timestamp_cache_key(surah: int, ayah: int) -> str:
    return f"{surah}:{ayah}"


def build_word_timestamps(
    verse_key: str,
    words: list[WordRecord],
    estimator: DurationEstimator = estimate_word_duration,
) -> list[WordTimestamp]:
    """Lay words end to end on a timeline starting at zero."""
    timestamps: list[WordTimestamp] = []
    cursor = 0.0
    for word in words:
        duration = estimator(word)
        timestamps.append(
            WordTimestamp(
                word_id=word_timestamp_id(verse_key, word.position),
                start_time=cursor,
                end_time=cursor + duration,
                verse_key=verse_key,
                position=word.position,
            )
        )
        cursor += duration
    return timestamps


async def load_word_timestamps(
    source: VerseDataSource,
    surah: int,
    ayah: int,
    estimator: DurationEstimator = estimate_word_duration,
) -> list[WordTimestamp]:
    """Load estimated word timings for one ayah.

    Fetch failures are logged and produce an empty list so that playback
    is never interrupted by a highlight problem.
    """
    try:
        verse = await source.get_verse_with_words(surah, ayah)
    except QuranDataError as e:
        logger.error("Failed to load word timestamps for %d:%d: %s", surah, ayah, e)
        return []

    if not verse.words:
        logger.warning("No words found for %d:%d", surah, ayah)
        return []

    return build_word_timestamps(verse.verse_key, verse.words, estimator)


def merge_timestamps_with_positions(
    timestamps: list[WordTimestamp], page_map: PageMap
) -> list[WordTimestamp]:
    """Attach on-page word boxes to timestamps; unmatched ones keep zero boxes."""
    boxes = {word_timestamp_id(w.verse_key, w.position): w.bounds for w in page_map.words}
    merged = []
    for timestamp in timestamps:
        bounds = boxes.get(timestamp.word_id)
        if bounds is None:
            merged.append(timestamp)
            continue
        merged.append(
            replace(timestamp, x=bounds.x, y=bounds.y, width=bounds.width, height=bounds.height)
        )
    return merged
