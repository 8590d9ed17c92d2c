"""Tests for estimated word timings."""

import pytest
from conftest import FakeVerseClient, make_verse, make_word

from backend.context import AppContext
from backend.quran.timing import (
    BASE_WORD_DURATION,
    build_word_timestamps,
    estimate_word_duration,
    load_word_timestamps,
    merge_timestamps_with_positions,
)
from backend.quran.verse_source import VerseDataSource
from backend.quran.verses import WordRecord


def word(text: str, position: int = 1) -> WordRecord:
    return WordRecord(id=position, position=position, text_uthmani=text)


class TestEstimateWordDuration:
    @pytest.mark.parametrize(
        "text,factor",
        [("في", 0.7), ("من", 0.7), ("قال", 1.0), ("رحمن", 1.0), ("الكتاب", 1.2), ("المستقيمين", 1.5)],
    )
    def test_length_buckets(self, text: str, factor: float) -> None:
        assert estimate_word_duration(word(text)) == pytest.approx(BASE_WORD_DURATION * factor)


class TestBuildWordTimestamps:
    def test_words_laid_end_to_end(self) -> None:
        words = [word("في", 1), word("الكتاب", 2), word("المستقيمين", 3)]
        timestamps = build_word_timestamps("2:255", words)

        assert [t.word_id for t in timestamps] == ["2:255:1", "2:255:2", "2:255:3"]
        assert timestamps[0].start_time == 0
        for previous, current in zip(timestamps, timestamps[1:]):
            assert current.start_time == pytest.approx(previous.end_time)
        assert timestamps[-1].end_time == pytest.approx(0.21 + 0.36 + 0.45)

    def test_custom_estimator(self) -> None:
        timestamps = build_word_timestamps("1:1", [word("a", 1), word("b", 2)], lambda w: 1.0)
        assert [(t.start_time, t.end_time) for t in timestamps] == [(0.0, 1.0), (1.0, 2.0)]

    def test_boxes_default_to_zero(self) -> None:
        (timestamp,) = build_word_timestamps("1:1", [word("في")])
        assert (timestamp.x, timestamp.y, timestamp.width, timestamp.height) == (0, 0, 0, 0)


class TestLoadWordTimestamps:
    @pytest.mark.asyncio
    async def test_loads_from_rich_verse(self, verse_source: VerseDataSource) -> None:
        timestamps = await load_word_timestamps(verse_source, 2, 255)
        assert [t.verse_key for t in timestamps] == ["2:255"] * 3
        assert [t.position for t in timestamps] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_fetch_failure_yields_empty(
        self, verse_source: VerseDataSource, fake_client: FakeVerseClient
    ) -> None:
        fake_client.fail = True
        assert await load_word_timestamps(verse_source, 2, 255) == []

    @pytest.mark.asyncio
    async def test_verse_without_words_yields_empty(
        self, verse_source: VerseDataSource, fake_client: FakeVerseClient
    ) -> None:
        fake_client.verses[(1, 1)] = make_verse("1:1", 1, [])
        assert await load_word_timestamps(verse_source, 1, 1) == []


class TestMergeWithPositions:
    @pytest.mark.asyncio
    async def test_boxes_copied_from_page_map(self, context: AppContext) -> None:
        page = await context.reconstructor.rebuild_page(1)
        page_map = context.mapper_for(1).build_page_map(page)
        timestamps = build_word_timestamps("1:1", [word("a", 1), word("b", 3), word("c", 7)])

        merged = merge_timestamps_with_positions(timestamps, page_map)
        first_box = page_map.ayahs["1:1"].words[0].bounds
        assert (merged[0].x, merged[0].y, merged[0].width) == (
            first_box.x,
            first_box.y,
            first_box.width,
        )
        assert merged[1].y == page_map.lines[1].bounds.y
        # Position 7 is not on the page
        assert merged[2] == timestamps[2]
        assert timestamps[0].x == 0


class TestContextTimestamps:
    @pytest.mark.asyncio
    async def test_cached_per_ayah(self, context: AppContext, fake_client: FakeVerseClient) -> None:
        first = await context.word_timestamps_for(2, 255)
        second = await context.word_timestamps_for(2, 255)
        assert first == second
        assert len(fake_client.verse_calls) == 1

    @pytest.mark.asyncio
    async def test_failures_are_not_cached(
        self, context: AppContext, fake_client: FakeVerseClient
    ) -> None:
        fake_client.fail = True
        assert await context.word_timestamps_for(2, 255) == []
        fake_client.fail = False
        assert len(await context.word_timestamps_for(2, 255)) == 3

    @pytest.mark.asyncio
    async def test_merged_when_page_is_mapped(
        self, context: AppContext, fake_client: FakeVerseClient
    ) -> None:
        fake_client.verses[(1, 1)] = make_verse(
            "1:1", 1, [make_word(101, 1, 1), make_word(102, 2, 1), make_word(103, 3, 2)]
        )
        unmapped = await context.word_timestamps_for(1, 1, page_number=1)
        assert all(t.width == 0 for t in unmapped)

        page = await context.reconstructor.rebuild_page(1)
        context.mapper_for(1).build_page_map(page)
        mapped = await context.word_timestamps_for(1, 1, page_number=1)
        assert all(t.width > 0 for t in mapped)
