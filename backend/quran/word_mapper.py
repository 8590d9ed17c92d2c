"""Word-level spatial mapping and hit-testing for rebuilt pages.

Builds a Page -> Line -> Ayah -> Word hierarchy with bounding boxes.
The layout is approximate: real glyph widths are unknown here, so every
word on a line gets an equal share of the content width (scaled down to
leave inter-word spacing). Only ordering and non-overlap within a line are
meaningful, not exact pixel widths.
"""

import json
from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel

from backend.quran.editions import EditionFingerprint
from backend.quran.rebuilder import MushafPage
from backend.quran.verses import WordRecord, parse_verse_key

# Fraction of the equal share a word box occupies
WORD_WIDTH_FACTOR = 0.9


class BoundingBox(BaseModel):
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def contains(self, x: float, y: float) -> bool:
        return self.x <= x <= self.right and self.y <= y <= self.bottom

    def intersects(self, other: "BoundingBox") -> bool:
        """Axis-aligned overlap test; touching edges count as intersecting."""
        return not (
            self.right < other.x
            or other.right < self.x
            or self.bottom < other.y
            or other.bottom < self.y
        )


class WordPosition(WordRecord):
    bounds: BoundingBox
    verse_key: str
    line_number: int


class AyahPosition(BaseModel):
    verse_key: str
    verse_number: int
    words: list[WordPosition]
    bounds: BoundingBox  # Envelope of all the ayah's words on this page


class LinePosition(BaseModel):
    line_number: int
    words: list[WordPosition]
    ayahs: list[str]
    bounds: BoundingBox


class PageMap(BaseModel):
    page_number: int
    lines: list[LinePosition]
    ayahs: dict[str, AyahPosition]
    words: list[WordPosition]  # Page reading order
    bounds: BoundingBox


@dataclass(frozen=True)
class GridConfig:
    margin_top: float = 80
    margin_bottom: float = 80
    margin_left: float = 60
    margin_right: float = 60
    line_height: float = 35
    page_width: float = 420
    page_height: float = 600
    direction: Literal["ltr", "rtl"] = "ltr"

    @property
    def content_width(self) -> float:
        return self.page_width - self.margin_left - self.margin_right

    @classmethod
    def from_edition(cls, edition: EditionFingerprint, **overrides) -> "GridConfig":
        grid = edition.grid
        values = {
            "margin_top": grid.margin_top,
            "margin_bottom": grid.margin_bottom,
            "margin_left": grid.margin_left,
            "margin_right": grid.margin_right,
            "line_height": grid.line_height,
        }
        values.update(overrides)
        return cls(**values)


class WordMapper:
    """Holds the spatial map of one page view and answers hit-test queries."""

    def __init__(self, grid: GridConfig | None = None) -> None:
        self.grid = grid or GridConfig()
        self._page_map: PageMap | None = None

    @property
    def page_map(self) -> PageMap | None:
        return self._page_map

    def build_page_map(self, page: MushafPage) -> PageMap:
        """Lay out every word of a rebuilt page and index it by line and ayah."""
        grid = self.grid
        content_width = grid.content_width

        verse_by_word_id: dict[int, str] = {}
        for verse in page.verses:
            for word in verse.words:
                verse_by_word_id.setdefault(word.id, verse.verse_key)

        lines: list[LinePosition] = []
        ayah_words: dict[str, list[WordPosition]] = {}
        all_words: list[WordPosition] = []

        for line_index, line in enumerate(page.lines):
            line_y = grid.margin_top + line_index * grid.line_height
            word_width = content_width / (len(line.words) or 1) * WORD_WIDTH_FACTOR
            default_key = line.verse_keys[0] if line.verse_keys else ""

            line_words: list[WordPosition] = []
            for word_index, word in enumerate(line.words):
                if grid.direction == "rtl":
                    x = grid.margin_left + content_width - (word_index + 1) * word_width
                else:
                    x = grid.margin_left + word_index * word_width

                position = WordPosition.model_validate(
                    {
                        **word.model_dump(),
                        "verse_key": verse_by_word_id.get(word.id, default_key),
                        "line_number": line.line_number,
                        "bounds": BoundingBox(
                            x=x, y=line_y, width=word_width, height=grid.line_height
                        ),
                    }
                )
                line_words.append(position)
                all_words.append(position)
                ayah_words.setdefault(position.verse_key, []).append(position)

            lines.append(
                LinePosition(
                    line_number=line.line_number,
                    words=line_words,
                    ayahs=list(line.verse_keys),
                    bounds=BoundingBox(
                        x=grid.margin_left, y=line_y, width=content_width, height=grid.line_height
                    ),
                )
            )

        ayahs = {
            verse_key: AyahPosition(
                verse_key=verse_key,
                verse_number=_verse_number(verse_key),
                words=words,
                bounds=_envelope(words),
            )
            for verse_key, words in ayah_words.items()
        }

        self._page_map = PageMap(
            page_number=page.page_number,
            lines=lines,
            ayahs=ayahs,
            words=all_words,
            bounds=BoundingBox(x=0, y=0, width=grid.page_width, height=grid.page_height),
        )
        return self._page_map

    def get_word_at(self, x: float, y: float) -> WordPosition | None:
        """Return the first word whose box contains the point (edges inclusive)."""
        if self._page_map is None:
            return None
        return next((w for w in self._page_map.words if w.bounds.contains(x, y)), None)

    def get_ayah_range(self, start_word: WordPosition, end_word: WordPosition) -> list[str]:
        """Verse keys covered by the words between two endpoints, in either order."""
        if self._page_map is None:
            return []

        ids = [w.id for w in self._page_map.words]
        try:
            start_index = ids.index(start_word.id)
            end_index = ids.index(end_word.id)
        except ValueError:
            return []

        start, end = sorted((start_index, end_index))
        verse_keys = dict.fromkeys(w.verse_key for w in self._page_map.words[start : end + 1])
        return list(verse_keys)

    def get_ayah_words(self, verse_key: str) -> list[WordPosition]:
        if self._page_map is None:
            return []
        ayah = self._page_map.ayahs.get(verse_key)
        return ayah.words if ayah else []

    def get_line_words(self, line_number: int) -> list[WordPosition]:
        if self._page_map is None:
            return []
        line = next((ln for ln in self._page_map.lines if ln.line_number == line_number), None)
        return line.words if line else []

    def get_ayahs_in_bounds(self, bounds: BoundingBox) -> list[str]:
        """Verse keys whose envelope intersects the given box."""
        if self._page_map is None:
            return []
        return [key for key, ayah in self._page_map.ayahs.items() if bounds.intersects(ayah.bounds)]

    def to_json(self) -> str:
        """Serialize the current map; the ayah dict is flattened to key/value pairs."""
        if self._page_map is None:
            return json.dumps(None)

        data = self._page_map.model_dump(mode="json")
        data["ayahs"] = [{"key": key, "value": value} for key, value in data["ayahs"].items()]
        return json.dumps(data, ensure_ascii=False, indent=2)

    def from_json(self, payload: str) -> PageMap | None:
        """Load a map produced by ``to_json``, replacing the current one."""
        data = json.loads(payload)
        if data is None:
            self._page_map = None
            return None

        data["ayahs"] = {item["key"]: item["value"] for item in data["ayahs"]}
        self._page_map = PageMap.model_validate(data)
        return self._page_map


def _verse_number(verse_key: str) -> int:
    try:
        return parse_verse_key(verse_key)[1]
    except ValueError:
        return 0


def _envelope(words: list[WordPosition]) -> BoundingBox:
    if not words:
        return BoundingBox(x=0, y=0, width=0, height=0)
    left = min(w.bounds.x for w in words)
    top = min(w.bounds.y for w in words)
    right = max(w.bounds.right for w in words)
    bottom = max(w.bounds.bottom for w in words)
    return BoundingBox(x=left, y=top, width=right - left, height=bottom - top)
