"""Tests for page reconstruction and boundary verification."""

import pytest
from conftest import FakeVerseClient, make_verse, make_word

from backend.context import AppContext
from backend.errors import ConfigurationError, PageDataError, QuranRangeError
from backend.quran.rebuilder import PageReconstructor


class TestRebuildPage:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("page", [0, 605])
    async def test_out_of_range(self, context: AppContext, page: int) -> None:
        with pytest.raises(QuranRangeError):
            await context.reconstructor.rebuild_page(page)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("page", [1, 604])
    async def test_boundaries_are_valid(self, context: AppContext, page: int) -> None:
        rebuilt = await context.reconstructor.rebuild_page(page)
        assert rebuilt.page_number == page
        assert rebuilt.edition_id == "madani-15-tajweed"
        assert rebuilt.lines_per_page == 15

    @pytest.mark.asyncio
    async def test_lines_grouped_and_ordered(self, context: AppContext) -> None:
        page = await context.reconstructor.rebuild_page(1)
        assert [line.line_number for line in page.lines] == [1, 2, 3]
        assert [w.id for w in page.lines[0].words] == [101, 102]
        # Words on a shared line are ordered by their position within the verse
        assert [w.position for w in page.lines[1].words] == [1, 3]
        assert [w.id for w in page.lines[2].words] == [105]

    @pytest.mark.asyncio
    async def test_verse_keys_per_line(self, context: AppContext) -> None:
        page = await context.reconstructor.rebuild_page(1)
        assert [line.verse_keys for line in page.lines] == [["1:1"], ["1:1", "1:2"], ["1:2"]]

    @pytest.mark.asyncio
    async def test_rebuild_is_idempotent(self, context: AppContext) -> None:
        first = await context.reconstructor.rebuild_page(2)
        second = await context.reconstructor.rebuild_page(2)
        assert first == second

    @pytest.mark.asyncio
    async def test_missing_line_number_defaults_to_first_line(
        self, context: AppContext, fake_client: FakeVerseClient
    ) -> None:
        fake_client.pages[8] = [make_verse("8:1", 8, [make_word(1, 1, None), make_word(2, 2, 3)])]
        page = await context.reconstructor.rebuild_page(8)
        assert [line.line_number for line in page.lines] == [1, 3]

    @pytest.mark.asyncio
    async def test_empty_page_is_a_data_error(
        self, context: AppContext, fake_client: FakeVerseClient
    ) -> None:
        fake_client.pages[5] = []
        with pytest.raises(PageDataError):
            await context.reconstructor.rebuild_page(5)

    @pytest.mark.asyncio
    async def test_lines_per_page_override(self, context: AppContext) -> None:
        page = await context.reconstructor.rebuild_page(1, lines_per_page=2)
        assert page.lines_per_page == 2
        assert len(page.lines) == 3

    @pytest.mark.asyncio
    @pytest.mark.parametrize("lines", [0, -3])
    async def test_non_positive_override_rejected(
        self, context: AppContext, fake_client: FakeVerseClient, lines: int
    ) -> None:
        with pytest.raises(QuranRangeError):
            await context.reconstructor.rebuild_page(1, lines_per_page=lines)
        assert fake_client.page_calls == []

    @pytest.mark.asyncio
    async def test_line_count(self, context: AppContext) -> None:
        assert await context.reconstructor.get_line_count(1) == 3


class TestRebuildPages:
    @pytest.mark.asyncio
    async def test_inclusive_range(self, context: AppContext) -> None:
        pages = await context.reconstructor.rebuild_pages(3, 5)
        assert [p.page_number for p in pages] == [3, 4, 5]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("start,end", [(0, 2), (600, 605), (5, 4)])
    async def test_invalid_range(self, context: AppContext, start: int, end: int) -> None:
        with pytest.raises(QuranRangeError):
            await context.reconstructor.rebuild_pages(start, end)


class TestVerifyPageBoundaries:
    @pytest.mark.asyncio
    async def test_matching_sample(self, context: AppContext, fake_client: FakeVerseClient) -> None:
        fake_client.pages[1] = [
            make_verse("1:1", 1, [make_word(1, 1, 1)]),
            make_verse("2:5", 1, [make_word(2, 1, 2)]),
        ]
        assert await context.reconstructor.verify_page_boundaries(1) is True

    @pytest.mark.asyncio
    async def test_mismatching_sample(self, context: AppContext) -> None:
        # The default fake page ends at 1:2, not 2:5
        assert await context.reconstructor.verify_page_boundaries(1) is False

    @pytest.mark.asyncio
    async def test_page_without_sample_is_valid(
        self, context: AppContext, fake_client: FakeVerseClient
    ) -> None:
        assert await context.reconstructor.verify_page_boundaries(3) is True
        assert fake_client.page_calls == []

    @pytest.mark.asyncio
    async def test_fetch_failure_is_invalid(
        self, context: AppContext, fake_client: FakeVerseClient
    ) -> None:
        fake_client.fail = True
        assert await context.reconstructor.verify_page_boundaries(604) is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("page", [0, 605, 9999])
    async def test_out_of_range(
        self, context: AppContext, fake_client: FakeVerseClient, page: int
    ) -> None:
        with pytest.raises(QuranRangeError):
            await context.reconstructor.verify_page_boundaries(page)
        assert fake_client.page_calls == []


def test_unknown_edition_rejected(verse_source) -> None:
    with pytest.raises(ConfigurationError):
        PageReconstructor(verse_source, "madani-99")
