"""Verse and word records as returned by the remote verse API.

Records are frozen once parsed; the cache owns the stored JSON and every
reader gets its own validated copy.
"""

from pydantic import BaseModel, ConfigDict

TOTAL_PAGES = 604
TOTAL_SURAHS = 114


class WordRecord(BaseModel):
    """A single word of a verse with its printed-page placement."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: int
    position: int  # Order within the verse, 1-based
    text_uthmani: str = ""
    text_imlaei: str | None = None
    translation: str | dict | None = None
    transliteration: str | dict | None = None
    char_type_name: str | None = None
    line_number: int | None = None  # Absolute line on its page, trusted as ground truth
    page_number: int | None = None
    audio_url: str | None = None

    @property
    def text(self) -> str:
        return self.text_uthmani


class VerseRecord(BaseModel):
    """A verse (ayah) addressed by its ``surah:ayah`` key."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: int
    verse_number: int
    verse_key: str
    page_number: int
    juz_number: int = 0
    hizb_number: int | None = None
    rub_el_hizb_number: int | None = None
    text_uthmani: str = ""
    text_imlaei: str | None = None
    words: list[WordRecord] = []

    @property
    def surah(self) -> int:
        return parse_verse_key(self.verse_key)[0]

    @property
    def ayah(self) -> int:
        return parse_verse_key(self.verse_key)[1]

    @property
    def text(self) -> str:
        return self.text_uthmani


def parse_verse_key(verse_key: str) -> tuple[int, int]:
    """Split a ``"surah:ayah"`` key into integers."""
    surah, _, ayah = verse_key.partition(":")
    return int(surah), int(ayah or 0)


def format_verse_key(surah: int, ayah: int) -> str:
    return f"{surah}:{ayah}"
