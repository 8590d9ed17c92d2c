"""Undo/redo history built on reversible commands.

The stack only orders and replays commands; it knows nothing about what
they change. History is kept in memory for the life of the process.
"""

from __future__ import annotations

import inspect
import logging
from collections import deque
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime
from typing import Any, Protocol

from backend.config import settings, utcnow

logger = logging.getLogger(__name__)

UNKNOWN_DESCRIPTION = "Unknown action"

Action = Callable[[], Awaitable[None] | None]


class Command(Protocol):
    """A reversible unit of work. ``execute``/``undo`` may be sync or async."""

    description: str | None
    timestamp: datetime | None

    def execute(self) -> Awaitable[None] | None: ...
    def undo(self) -> Awaitable[None] | None: ...


async def _run(action: Action) -> None:
    result = action()
    if inspect.isawaitable(result):
        await result


class FunctionCommand:
    """Wraps a pair of execute/undo callables as a command."""

    def __init__(self, execute: Action, undo: Action, description: str | None = None) -> None:
        self._execute = execute
        self._undo = undo
        self.description = description
        self.timestamp: datetime | None = None

    async def execute(self) -> None:
        await _run(self._execute)

    async def undo(self) -> None:
        await _run(self._undo)


class CompositeCommand:
    """Runs several commands as one; undo walks them in reverse."""

    def __init__(self, commands: Sequence[Command], description: str | None = None) -> None:
        self.commands = list(commands)
        self.description = description
        self.timestamp: datetime | None = None

    async def execute(self) -> None:
        for command in self.commands:
            await _run(command.execute)

    async def undo(self) -> None:
        for command in reversed(self.commands):
            await _run(command.undo)


class CommandStack:
    """Bounded undo/redo stacks with editor semantics.

    Executing a new command discards the redo history; branching history is
    not supported. When the undo stack is full the oldest entry is dropped.
    Operations on one stack must not overlap.
    """

    def __init__(
        self,
        max_size: int | None = None,
        on_change: Callable[[], Any] | None = None,
    ) -> None:
        self.max_size = max_size or settings.command_history_size
        self.on_change = on_change
        self._undo: deque[Command] = deque(maxlen=self.max_size)
        self._redo: deque[Command] = deque(maxlen=self.max_size)

    async def execute(self, command: Command) -> None:
        """Run ``command`` and record it for undo.

        If the command raises, nothing is recorded and the error propagates.
        """
        await _run(command.execute)
        command.timestamp = utcnow()
        self._undo.append(command)
        self._redo.clear()
        self._notify()

    async def undo(self) -> bool:
        """Reverse the most recent command. Returns False when there is none.

        A failing undo puts the command back on the undo stack before the
        error propagates.
        """
        if not self._undo:
            return False

        command = self._undo.pop()
        try:
            await _run(command.undo)
        except Exception:
            self._undo.append(command)
            logger.warning("Undo failed for %s", command.description or UNKNOWN_DESCRIPTION)
            raise

        self._redo.append(command)
        self._notify()
        return True

    async def redo(self) -> bool:
        """Re-run the most recently undone command. Returns False when there is none."""
        if not self._redo:
            return False

        command = self._redo.pop()
        try:
            await _run(command.execute)
        except Exception:
            self._redo.append(command)
            logger.warning("Redo failed for %s", command.description or UNKNOWN_DESCRIPTION)
            raise

        self._undo.append(command)
        self._notify()
        return True

    def can_undo(self) -> bool:
        return bool(self._undo)

    def can_redo(self) -> bool:
        return bool(self._redo)

    def clear(self) -> None:
        self._undo.clear()
        self._redo.clear()
        self._notify()

    @property
    def undo_count(self) -> int:
        return len(self._undo)

    @property
    def redo_count(self) -> int:
        return len(self._redo)

    @property
    def undo_description(self) -> str | None:
        return self._undo[-1].description if self._undo else None

    @property
    def redo_description(self) -> str | None:
        return self._redo[-1].description if self._redo else None

    def undo_history(self) -> list[str]:
        """Descriptions of undoable commands, most recent first."""
        return [c.description or UNKNOWN_DESCRIPTION for c in reversed(self._undo)]

    def redo_history(self) -> list[str]:
        return [c.description or UNKNOWN_DESCRIPTION for c in reversed(self._redo)]

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change()
