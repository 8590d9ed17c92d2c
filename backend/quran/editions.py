"""Known Mushaf editions and fingerprint matching.

A fingerprint is the lines-per-page of an edition plus a handful of sample
pages with their first and last ayah. Matching narrows candidates by line
count, then by how many supplied samples agree with the registered ones.
"""

from collections.abc import Iterator
from dataclasses import dataclass
from typing import NamedTuple

from backend.errors import ConfigurationError


class AyahRef(NamedTuple):
    surah: int
    ayah: int

    @property
    def verse_key(self) -> str:
        return f"{self.surah}:{self.ayah}"


@dataclass(frozen=True)
class SamplePage:
    page: int
    first_ayah: AyahRef
    last_ayah: AyahRef


@dataclass(frozen=True)
class EditionGrid:
    """Page margins and line height in layout units."""

    margin_top: float
    margin_bottom: float
    margin_left: float
    margin_right: float
    line_height: float


@dataclass(frozen=True)
class EditionIndicators:
    has_juz_markers: bool
    has_sajdah_markers: bool
    has_rub_markers: bool


@dataclass(frozen=True)
class EditionFingerprint:
    id: str
    name: str
    lines_per_page: int
    total_pages: int
    has_tajweed: bool
    sample_pages: tuple[SamplePage, ...]
    grid: EditionGrid
    indicators: EditionIndicators

    def sample_for(self, page: int) -> SamplePage | None:
        return next((s for s in self.sample_pages if s.page == page), None)


def _sample(page: int, first: tuple[int, int], last: tuple[int, int]) -> SamplePage:
    return SamplePage(page=page, first_ayah=AyahRef(*first), last_ayah=AyahRef(*last))


_MADANI_SAMPLES = (
    _sample(1, (1, 1), (2, 5)),
    _sample(2, (2, 6), (2, 16)),
    _sample(50, (2, 254), (2, 260)),
    _sample(100, (4, 148), (4, 155)),
    _sample(604, (114, 1), (114, 6)),
)
_MADANI_GRID = EditionGrid(
    margin_top=80, margin_bottom=80, margin_left=60, margin_right=60, line_height=35
)

KNOWN_EDITIONS: tuple[EditionFingerprint, ...] = (
    EditionFingerprint(
        id="madani-15-tajweed",
        name="Madani Mushaf 15-Line (Tajweed)",
        lines_per_page=15,
        total_pages=604,
        has_tajweed=True,
        sample_pages=_MADANI_SAMPLES,
        grid=_MADANI_GRID,
        indicators=EditionIndicators(True, True, True),
    ),
    EditionFingerprint(
        id="madani-15",
        name="Madani Mushaf 15-Line (King Fahd)",
        lines_per_page=15,
        total_pages=604,
        has_tajweed=False,
        sample_pages=_MADANI_SAMPLES,
        grid=_MADANI_GRID,
        indicators=EditionIndicators(True, True, True),
    ),
    EditionFingerprint(
        id="indopak-13",
        name="Indo-Pak 13-Line",
        lines_per_page=13,
        total_pages=540,
        has_tajweed=False,
        sample_pages=(
            _sample(1, (1, 1), (2, 7)),
            _sample(2, (2, 8), (2, 21)),
            _sample(50, (2, 282), (3, 5)),
            _sample(540, (114, 1), (114, 6)),
        ),
        grid=EditionGrid(
            margin_top=70, margin_bottom=70, margin_left=50, margin_right=50, line_height=40
        ),
        indicators=EditionIndicators(True, True, False),
    ),
    EditionFingerprint(
        id="madani-16-warsh",
        name="Madani 16-Line (Warsh)",
        lines_per_page=16,
        total_pages=559,
        has_tajweed=False,
        sample_pages=(
            _sample(1, (1, 1), (2, 6)),
            _sample(559, (114, 1), (114, 6)),
        ),
        grid=EditionGrid(
            margin_top=75, margin_bottom=75, margin_left=55, margin_right=55, line_height=33
        ),
        indicators=EditionIndicators(True, True, True),
    ),
)


class EditionRegistry:
    """Read-only lookup table of edition fingerprints, in registration order."""

    def __init__(self, editions: tuple[EditionFingerprint, ...] = KNOWN_EDITIONS) -> None:
        self._editions = editions

    def __iter__(self) -> Iterator[EditionFingerprint]:
        return iter(self._editions)

    def __len__(self) -> int:
        return len(self._editions)

    def get(self, edition_id: str) -> EditionFingerprint:
        for edition in self._editions:
            if edition.id == edition_id:
                return edition
        raise ConfigurationError(
            f"Unknown Mushaf edition: {edition_id}", context={"edition_id": edition_id}
        )

    def match_edition(
        self, detected_line_count: int, sample_verses: list[SamplePage]
    ) -> EditionFingerprint | None:
        """Identify an edition from its line count and sampled page boundaries.

        Candidates are filtered by exact lines-per-page. With several
        candidates, the first one matching more than half of the supplied
        samples wins; if none clears that bar the first registered candidate
        is returned. Ties are not broken beyond registration order.
        """
        candidates = [e for e in self._editions if e.lines_per_page == detected_line_count]
        if not candidates:
            return None
        if len(candidates) == 1:
            return candidates[0]

        for candidate in candidates:
            matches = sum(1 for sample in sample_verses if candidate.sample_for(sample.page) == sample)
            if matches > len(sample_verses) / 2:
                return candidate

        return candidates[0]


default_registry = EditionRegistry()


def match_edition(
    detected_line_count: int, sample_verses: list[SamplePage]
) -> EditionFingerprint | None:
    """Match against the built-in edition table."""
    return default_registry.match_edition(detected_line_count, sample_verses)
