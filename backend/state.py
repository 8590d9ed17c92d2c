"""Typed application state and the reducers that update it.

State objects are immutable; every reducer returns a new ``AppState``.
Nothing here touches the engines: adapters read the state and call the
core themselves.
"""

from dataclasses import dataclass, field, replace

from backend.models.flashcard import FlashcardType
from backend.quran.verses import TOTAL_PAGES

MIN_ZOOM = 0.5
MAX_ZOOM = 3.0
DEFAULT_RECITER = "ar.alafasy"


@dataclass(frozen=True)
class NavigationState:
    current_page: int = 1
    current_surah: int | None = None
    current_juz: int | None = None
    zoom: float = 1.0
    pan_x: float = 0.0
    pan_y: float = 0.0


@dataclass(frozen=True)
class SelectionState:
    start_word: int | None = None  # Word ids
    end_word: int | None = None
    surah: int | None = None
    ayah: int | None = None
    text: str | None = None


@dataclass(frozen=True)
class AudioState:
    is_playing: bool = False
    current_reciter: str = DEFAULT_RECITER
    current_surah: int | None = None
    current_ayah: int | None = None
    volume: float = 0.8


@dataclass(frozen=True)
class FlashcardState:
    active_type: FlashcardType | None = None
    is_reviewing: bool = False
    review_queue: tuple[str, ...] = ()  # Flashcard ids
    current_card: str | None = None


@dataclass(frozen=True)
class AppState:
    navigation: NavigationState = field(default_factory=NavigationState)
    selection: SelectionState = field(default_factory=SelectionState)
    audio: AudioState = field(default_factory=AudioState)
    flashcards: FlashcardState = field(default_factory=FlashcardState)
    theme: str = "light"


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def set_current_page(state: AppState, page: int) -> AppState:
    page = int(_clamp(page, 1, TOTAL_PAGES))
    return replace(state, navigation=replace(state.navigation, current_page=page))


def set_current_surah(state: AppState, surah: int | None) -> AppState:
    return replace(state, navigation=replace(state.navigation, current_surah=surah))


def set_current_juz(state: AppState, juz: int | None) -> AppState:
    return replace(state, navigation=replace(state.navigation, current_juz=juz))


def set_zoom(state: AppState, zoom: float) -> AppState:
    zoom = _clamp(zoom, MIN_ZOOM, MAX_ZOOM)
    return replace(state, navigation=replace(state.navigation, zoom=zoom))


def set_pan(state: AppState, x: float, y: float) -> AppState:
    return replace(state, navigation=replace(state.navigation, pan_x=x, pan_y=y))


def set_selection(state: AppState, **changes) -> AppState:
    """Merge the given fields into the current selection."""
    return replace(state, selection=replace(state.selection, **changes))


def clear_selection(state: AppState) -> AppState:
    return replace(state, selection=SelectionState())


def set_audio_playing(state: AppState, playing: bool) -> AppState:
    return replace(state, audio=replace(state.audio, is_playing=playing))


def set_audio_reciter(state: AppState, reciter: str) -> AppState:
    return replace(state, audio=replace(state.audio, current_reciter=reciter))


def set_audio_ayah(state: AppState, surah: int, ayah: int) -> AppState:
    return replace(state, audio=replace(state.audio, current_surah=surah, current_ayah=ayah))


def set_volume(state: AppState, volume: float) -> AppState:
    return replace(state, audio=replace(state.audio, volume=_clamp(volume, 0.0, 1.0)))


def set_active_flashcard_type(state: AppState, card_type: FlashcardType | None) -> AppState:
    return replace(state, flashcards=replace(state.flashcards, active_type=card_type))


def start_review(state: AppState, queue: list[str] | tuple[str, ...] = ()) -> AppState:
    """Enter review mode over the given flashcard ids."""
    queue = tuple(queue)
    flashcards = replace(
        state.flashcards,
        is_reviewing=True,
        review_queue=queue,
        current_card=queue[0] if queue else None,
    )
    return replace(state, flashcards=flashcards)


def advance_review(state: AppState) -> AppState:
    """Move to the next queued card; leaves review mode after the last one."""
    queue = state.flashcards.review_queue
    current = state.flashcards.current_card
    if current is None or current not in queue:
        return stop_review(state)

    index = queue.index(current) + 1
    if index >= len(queue):
        return stop_review(state)
    return replace(state, flashcards=replace(state.flashcards, current_card=queue[index]))


def stop_review(state: AppState) -> AppState:
    return replace(
        state, flashcards=replace(state.flashcards, is_reviewing=False, current_card=None)
    )


def toggle_theme(state: AppState) -> AppState:
    return replace(state, theme="dark" if state.theme == "light" else "light")
