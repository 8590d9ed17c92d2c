"""Audio-synchronized word highlighting.

A cooperative per-frame loop reads the audio position, finds the active
word by binary search over timestamps sorted by start time, and redraws a
single rounded-rectangle highlight on an overlay surface when the word
changes. The loop re-schedules itself every frame until stopped.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import Any, Protocol

from backend.quran.timing import WordTimestamp

logger = logging.getLogger(__name__)

FRAME_INTERVAL = 1 / 60  # seconds


class AudioClock(Protocol):
    """Anything exposing the playback position in seconds."""

    @property
    def current_time(self) -> float: ...


class DrawingSurface(Protocol):
    """A canvas-like immediate-mode 2D context."""

    width: float
    height: float
    fill_style: str
    shadow_color: str
    shadow_blur: float

    def clear_rect(self, x: float, y: float, width: float, height: float) -> None: ...
    def save(self) -> None: ...
    def restore(self) -> None: ...
    def scale(self, x: float, y: float) -> None: ...
    def translate(self, x: float, y: float) -> None: ...
    def begin_path(self) -> None: ...
    def move_to(self, x: float, y: float) -> None: ...
    def line_to(self, x: float, y: float) -> None: ...
    def quadratic_curve_to(self, cpx: float, cpy: float, x: float, y: float) -> None: ...
    def close_path(self) -> None: ...
    def fill(self) -> None: ...


class FrameScheduler(Protocol):
    """The display's repaint cycle."""

    def request_frame(self, callback: Callable[[], None]) -> Any: ...
    def cancel_frame(self, handle: Any) -> None: ...


class AsyncioFrameScheduler:
    """Runs frame callbacks on the asyncio event loop at a fixed rate."""

    def __init__(self, interval: float = FRAME_INTERVAL) -> None:
        self.interval = interval

    def request_frame(self, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return asyncio.get_running_loop().call_later(self.interval, callback)

    def cancel_frame(self, handle: asyncio.TimerHandle) -> None:
        handle.cancel()


@dataclass(frozen=True)
class HighlightStyle:
    fill_color: str = "rgba(245, 158, 11, 0.3)"  # Gold at 30% opacity
    shadow_color: str = "rgba(245, 158, 11, 0.5)"
    shadow_blur: float = 10
    padding: float = 4
    border_radius: float = 8


@dataclass(frozen=True)
class ViewTransform:
    zoom: float = 1.0
    pan_x: float = 0.0
    pan_y: float = 0.0


def find_word_at_time(timestamps: list[WordTimestamp], time: float) -> WordTimestamp | None:
    """Binary search for the word whose [start, end] contains ``time``.

    ``timestamps`` must be sorted by start time. No match is a normal
    result, not an error.
    """
    left, right = 0, len(timestamps) - 1
    while left <= right:
        mid = (left + right) // 2
        word = timestamps[mid]
        if word.start_time <= time <= word.end_time:
            return word
        if time < word.start_time:
            right = mid - 1
        else:
            left = mid + 1
    return None


class HighlightSynchronizer:
    """Tracks audio playback and highlights the word being recited.

    At most one frame loop runs per instance: ``start`` always stops a
    prior loop first, and ``stop`` is safe to call repeatedly.
    """

    def __init__(
        self,
        scheduler: FrameScheduler | None = None,
        style: HighlightStyle | None = None,
    ) -> None:
        self._scheduler = scheduler or AsyncioFrameScheduler()
        self.style = style or HighlightStyle()
        self.transform = ViewTransform()
        self._audio: AudioClock | None = None
        self._surface: DrawingSurface | None = None
        self._timestamps: list[WordTimestamp] = []
        self._frame_handle: Any = None
        self._current_word_id: str | None = None
        self._active = False

    @property
    def current_word_id(self) -> str | None:
        return self._current_word_id

    @property
    def is_running(self) -> bool:
        return self._active

    @property
    def timestamps(self) -> list[WordTimestamp]:
        return list(self._timestamps)

    def start(self, audio: AudioClock, surface: DrawingSurface) -> None:
        """Begin tracking ``audio`` and drawing onto ``surface``."""
        if self._active:
            self.stop()

        self._audio = audio
        self._surface = surface
        self._active = True
        self._frame_handle = self._scheduler.request_frame(self._on_frame)

    def stop(self) -> None:
        """Cancel the frame loop, clear the highlight and forget the tracked word."""
        self._active = False
        if self._frame_handle is not None:
            self._scheduler.cancel_frame(self._frame_handle)
            self._frame_handle = None
        self._clear_highlight()
        self._current_word_id = None

    def destroy(self) -> None:
        self.stop()
        self._audio = None
        self._surface = None
        self._timestamps = []

    def set_word_timestamps(self, timestamps: list[WordTimestamp]) -> None:
        """Replace the active timestamp set wholesale, sorted by start time."""
        self._timestamps = sorted(timestamps, key=lambda t: t.start_time)

    def clear_word_timestamps(self) -> None:
        self._timestamps = []
        self._clear_highlight()

    def set_transform(self, zoom: float, pan_x: float, pan_y: float) -> None:
        """Match the main page's zoom/pan for subsequent draws."""
        self.transform = ViewTransform(zoom=zoom, pan_x=pan_x, pan_y=pan_y)

    def set_style(self, **changes: Any) -> None:
        self.style = replace(self.style, **changes)

    def find_word_at_time(self, time: float) -> WordTimestamp | None:
        return find_word_at_time(self._timestamps, time)

    def tick(self) -> None:
        """Run one frame of tracking without scheduling the next one."""
        if not self._active or self._audio is None:
            return

        word = self.find_word_at_time(self._audio.current_time)
        if word is not None and word.word_id != self._current_word_id:
            logger.debug("Highlighting %s", word.word_id)
            self._highlight_word(word)
            self._current_word_id = word.word_id
        elif word is None and self._current_word_id is not None:
            self._clear_highlight()
            self._current_word_id = None

    def _on_frame(self) -> None:
        if not self._active:
            return
        self.tick()
        self._frame_handle = self._scheduler.request_frame(self._on_frame)

    def _highlight_word(self, word: WordTimestamp) -> None:
        surface = self._surface
        if surface is None:
            return

        surface.clear_rect(0, 0, surface.width, surface.height)
        surface.save()
        surface.scale(self.transform.zoom, self.transform.zoom)
        surface.translate(self.transform.pan_x, self.transform.pan_y)

        surface.fill_style = self.style.fill_color
        surface.shadow_color = self.style.shadow_color
        surface.shadow_blur = self.style.shadow_blur

        pad = self.style.padding
        _rounded_rect(
            surface,
            word.x - pad,
            word.y - pad,
            word.width + pad * 2,
            word.height + pad * 2,
            self.style.border_radius,
        )
        surface.fill()
        surface.restore()

    def _clear_highlight(self) -> None:
        if self._surface is not None:
            self._surface.clear_rect(0, 0, self._surface.width, self._surface.height)


def _rounded_rect(
    surface: DrawingSurface, x: float, y: float, width: float, height: float, radius: float
) -> None:
    surface.begin_path()
    surface.move_to(x + radius, y)
    surface.line_to(x + width - radius, y)
    surface.quadratic_curve_to(x + width, y, x + width, y + radius)
    surface.line_to(x + width, y + height - radius)
    surface.quadratic_curve_to(x + width, y + height, x + width - radius, y + height)
    surface.line_to(x + radius, y + height)
    surface.quadratic_curve_to(x, y + height, x, y + height - radius)
    surface.line_to(x, y + radius)
    surface.quadratic_curve_to(x, y, x + radius, y)
    surface.close_path()
