"""Shared fixtures: in-memory database, a fake verse API and a wired context."""

import copy
from collections.abc import AsyncIterator
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from backend.context import AppContext
from backend.errors import FetchError
from backend.models import Base
from backend.quran.verse_source import VerseCache, VerseDataSource


def make_word(
    word_id: int, position: int, line: int | None, text: str = "كلمة", page: int = 1
) -> dict[str, Any]:
    return {
        "id": word_id,
        "position": position,
        "text_uthmani": text,
        "line_number": line,
        "page_number": page,
        "char_type_name": "word",
    }


def make_verse(verse_key: str, page: int, words: list[dict[str, Any]]) -> dict[str, Any]:
    surah, ayah = (int(part) for part in verse_key.split(":"))
    return {
        "id": surah * 1000 + ayah,
        "verse_number": ayah,
        "verse_key": verse_key,
        "page_number": page,
        "juz_number": 1,
        "text_uthmani": " ".join(w["text_uthmani"] for w in words),
        "words": words,
    }


def default_page(page: int) -> list[dict[str, Any]]:
    """Two verses over three lines; line 2 is shared by both verses."""
    surah = (page - 1) % 114 + 1
    base = page * 100
    first = make_verse(
        f"{surah}:1",
        page,
        [
            make_word(base + 1, 1, 1, "بسم", page),
            make_word(base + 2, 2, 1, "الله", page),
            make_word(base + 3, 3, 2, "الرحمن", page),
        ],
    )
    second = make_verse(
        f"{surah}:2",
        page,
        [
            make_word(base + 4, 1, 2, "الحمد", page),
            make_word(base + 5, 2, 3, "لله", page),
        ],
    )
    return [first, second]


class FakeVerseClient:
    """In-memory stand-in for the remote verse API that counts calls."""

    def __init__(self) -> None:
        self.pages: dict[int, list[dict[str, Any]]] = {}
        self.verses: dict[tuple[int, int], dict[str, Any]] = {}
        self.page_calls: list[int] = []
        self.verse_calls: list[tuple[int, int, tuple[str, ...] | None]] = []
        self.fail = False
        self.closed = False

    async def fetch_page_verses(
        self, page: int, word_fields: tuple[str, ...] = ()
    ) -> list[dict[str, Any]]:
        self.page_calls.append(page)
        if self.fail:
            raise FetchError("network down", context={"page": page})
        return copy.deepcopy(self.pages.get(page, default_page(page)))

    async def fetch_verse(
        self, surah: int, ayah: int, word_fields: tuple[str, ...] | None = None
    ) -> dict[str, Any]:
        self.verse_calls.append((surah, ayah, word_fields))
        if self.fail:
            raise FetchError("network down", context={"surah": surah, "ayah": ayah})
        verse = self.verses.get((surah, ayah))
        if verse is None:
            verse = make_verse(
                f"{surah}:{ayah}",
                1,
                [
                    make_word(1, 1, 1, "في"),
                    make_word(2, 2, 1, "الكتاب"),
                    make_word(3, 3, 1, "المستقيمين"),
                ],
            )
        return copy.deepcopy(verse)

    async def aclose(self) -> None:
        self.closed = True


@pytest_asyncio.fixture
async def db_engine() -> AsyncIterator[AsyncEngine]:
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def fake_client() -> FakeVerseClient:
    return FakeVerseClient()


@pytest.fixture
def verse_source(
    fake_client: FakeVerseClient, session_factory: async_sessionmaker[AsyncSession]
) -> VerseDataSource:
    return VerseDataSource(fake_client, VerseCache(session_factory))


@pytest.fixture
def context(
    fake_client: FakeVerseClient, session_factory: async_sessionmaker[AsyncSession]
) -> AppContext:
    return AppContext.create(session_factory, client=fake_client)
