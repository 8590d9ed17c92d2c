"""Tests for the undo/redo command stack."""

import pytest

from backend.commands import CommandStack, CompositeCommand, FunctionCommand


class Counter:
    def __init__(self) -> None:
        self.value = 0
        self.log: list[str] = []

    def command(self, amount: int, description: str | None = None) -> FunctionCommand:
        def execute() -> None:
            self.value += amount
            self.log.append(f"+{amount}")

        def undo() -> None:
            self.value -= amount
            self.log.append(f"-{amount}")

        return FunctionCommand(execute, undo, description)


class Boom(Exception):
    pass


class TestCommandStack:
    def setup_method(self) -> None:
        self.counter = Counter()
        self.stack = CommandStack(max_size=3)

    @pytest.mark.asyncio
    async def test_new_command_clears_redo(self) -> None:
        await self.stack.execute(self.counter.command(1, "one"))
        await self.stack.execute(self.counter.command(2, "two"))
        await self.stack.undo()
        assert self.stack.can_redo()

        await self.stack.execute(self.counter.command(3, "three"))
        assert not self.stack.can_redo()
        assert self.stack.undo_history() == ["three", "one"]
        assert self.counter.value == 4

    @pytest.mark.asyncio
    async def test_undo_then_redo(self) -> None:
        await self.stack.execute(self.counter.command(5))
        assert await self.stack.undo() is True
        assert self.counter.value == 0
        assert await self.stack.redo() is True
        assert self.counter.value == 5
        assert self.stack.undo_count == 1
        assert self.stack.redo_count == 0

    @pytest.mark.asyncio
    async def test_empty_stacks(self) -> None:
        assert await self.stack.undo() is False
        assert await self.stack.redo() is False
        assert self.stack.undo_description is None
        assert self.stack.redo_description is None

    @pytest.mark.asyncio
    async def test_oldest_entry_evicted(self) -> None:
        for amount in range(1, 5):
            await self.stack.execute(self.counter.command(amount, str(amount)))
        assert self.stack.undo_count == 3
        assert self.stack.undo_history() == ["4", "3", "2"]

    @pytest.mark.asyncio
    async def test_execute_failure_records_nothing(self) -> None:
        def fail() -> None:
            raise Boom

        with pytest.raises(Boom):
            await self.stack.execute(FunctionCommand(fail, lambda: None))
        assert not self.stack.can_undo()

    @pytest.mark.asyncio
    async def test_failed_undo_stays_undoable(self) -> None:
        def fail() -> None:
            raise Boom

        await self.stack.execute(FunctionCommand(lambda: None, fail, "fragile"))
        with pytest.raises(Boom):
            await self.stack.undo()
        assert self.stack.undo_description == "fragile"
        assert not self.stack.can_redo()

    @pytest.mark.asyncio
    async def test_failed_redo_stays_redoable(self) -> None:
        calls = []

        def execute() -> None:
            calls.append("run")
            if len(calls) > 1:
                raise Boom

        await self.stack.execute(FunctionCommand(execute, lambda: None, "once"))
        await self.stack.undo()
        with pytest.raises(Boom):
            await self.stack.redo()
        assert self.stack.redo_description == "once"
        assert not self.stack.can_undo()

    @pytest.mark.asyncio
    async def test_descriptions_and_timestamps(self) -> None:
        command = self.counter.command(1)
        await self.stack.execute(command)
        assert command.timestamp is not None
        assert self.stack.undo_history() == ["Unknown action"]
        await self.stack.undo()
        assert self.stack.redo_history() == ["Unknown action"]

    @pytest.mark.asyncio
    async def test_async_actions(self) -> None:
        events = []

        async def execute() -> None:
            events.append("do")

        async def undo() -> None:
            events.append("undo")

        await self.stack.execute(FunctionCommand(execute, undo))
        await self.stack.undo()
        assert events == ["do", "undo"]

    @pytest.mark.asyncio
    async def test_clear_and_on_change(self) -> None:
        changes = []
        stack = CommandStack(max_size=5, on_change=lambda: changes.append(1))
        await stack.execute(self.counter.command(1))
        await stack.undo()
        await stack.redo()
        stack.clear()
        assert len(changes) == 4
        assert not stack.can_undo()
        assert not stack.can_redo()

    def test_default_size_from_settings(self) -> None:
        assert CommandStack().max_size == 50


class TestCompositeCommand:
    @pytest.mark.asyncio
    async def test_undo_runs_in_reverse(self) -> None:
        counter = Counter()
        composite = CompositeCommand(
            [counter.command(1), counter.command(2), counter.command(3)], "batch"
        )
        stack = CommandStack(max_size=5)

        await stack.execute(composite)
        await stack.undo()
        assert counter.log == ["+1", "+2", "+3", "-3", "-2", "-1"]
        assert counter.value == 0
        assert stack.redo_description == "batch"
