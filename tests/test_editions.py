"""Tests for the edition fingerprint registry."""

from dataclasses import replace

import pytest

from backend.errors import ConfigurationError
from backend.quran.editions import (
    KNOWN_EDITIONS,
    AyahRef,
    EditionRegistry,
    SamplePage,
    default_registry,
    match_edition,
)


def sample(page: int, first: tuple[int, int], last: tuple[int, int]) -> SamplePage:
    return SamplePage(page=page, first_ayah=AyahRef(*first), last_ayah=AyahRef(*last))


class TestMatchEdition:
    def test_shared_sample_resolves_to_first_registered(self) -> None:
        edition = match_edition(15, [sample(1, (1, 1), (2, 5))])
        assert edition is not None
        assert edition.id == "madani-15-tajweed"

    def test_unique_line_count_needs_no_samples(self) -> None:
        assert match_edition(13, []).id == "indopak-13"
        assert match_edition(16, []).id == "madani-16-warsh"

    def test_unknown_line_count(self) -> None:
        assert match_edition(12, [sample(1, (1, 1), (2, 5))]) is None

    def test_no_majority_falls_back_to_first_candidate(self) -> None:
        edition = match_edition(15, [sample(1, (1, 1), (2, 7)), sample(2, (9, 9), (9, 10))])
        assert edition.id == "madani-15-tajweed"

    def test_majority_match_wins_over_registration_order(self) -> None:
        custom = replace(
            KNOWN_EDITIONS[1], id="custom-15", sample_pages=(sample(1, (1, 1), (1, 7)),)
        )
        registry = EditionRegistry((custom, KNOWN_EDITIONS[1], KNOWN_EDITIONS[0]))
        samples = [sample(1, (1, 1), (2, 5)), sample(604, (114, 1), (114, 6))]
        assert registry.match_edition(15, samples).id == "madani-15"

    def test_exactly_half_is_not_a_majority(self) -> None:
        custom = replace(KNOWN_EDITIONS[1], id="custom-15", sample_pages=())
        registry = EditionRegistry((custom, KNOWN_EDITIONS[0]))
        samples = [sample(1, (1, 1), (2, 5)), sample(2, (3, 3), (3, 4))]
        assert registry.match_edition(15, samples).id == "custom-15"


class TestRegistry:
    def test_known_editions(self) -> None:
        assert [e.id for e in default_registry] == [
            "madani-15-tajweed",
            "madani-15",
            "indopak-13",
            "madani-16-warsh",
        ]
        assert len(default_registry) == 4

    def test_get_unknown_edition(self) -> None:
        with pytest.raises(ConfigurationError):
            default_registry.get("nope")

    def test_sample_for(self) -> None:
        edition = default_registry.get("madani-15")
        assert edition.sample_for(604).last_ayah == AyahRef(114, 6)
        assert edition.sample_for(3) is None
        assert AyahRef(2, 255).verse_key == "2:255"
