"""Tests for the annotation store and its undoable commands."""

import json
from datetime import datetime, timedelta

import pytest
from pydantic import ValidationError

from backend.commands import CommandStack
from backend.errors import NotFoundError
from backend.models.annotation import AnnotationType
from backend.stores.annotations import (
    AddAnnotationCommand,
    AnnotationData,
    AnnotationFilter,
    AnnotationRepository,
    DeleteAnnotationCommand,
)

NOW = datetime(2026, 3, 1, 9, 0, 0)
STROKE = {"points": [[0, 0], [10, 12]], "color": "#f00", "width": 2}


@pytest.fixture
def repo(session_factory) -> AnnotationRepository:
    return AnnotationRepository(session_factory)


class TestAddAndQuery:
    @pytest.mark.asyncio
    async def test_page_filter_returns_exactly_that_page(self, repo: AnnotationRepository) -> None:
        first = await repo.add_annotation(AnnotationType.DRAWING, 5, STROKE, now=NOW)
        second = await repo.add_annotation(
            AnnotationType.NOTE, 5, {"text": "pause here"}, verse_key="2:30", now=NOW
        )
        await repo.add_annotation(AnnotationType.HIGHLIGHT, 6, {"color": "yellow"}, now=NOW)

        found = await repo.get_annotations(AnnotationFilter(page_number=5))
        assert sorted(a.id for a in found) == sorted([first.id, second.id])
        for annotation in found:
            assert annotation.created_at == NOW
            assert annotation.modified_at == NOW

    @pytest.mark.asyncio
    async def test_ids_are_generated(self, repo: AnnotationRepository) -> None:
        a = await repo.add_annotation("circle", 1, {"r": 3})
        b = await repo.add_annotation("circle", 1, {"r": 3})
        assert a.id and b.id and a.id != b.id

    @pytest.mark.asyncio
    async def test_unknown_type_rejected(self, repo: AnnotationRepository) -> None:
        with pytest.raises(ValueError):
            await repo.add_annotation("scribble", 1, {})

    @pytest.mark.asyncio
    async def test_criteria_are_combined(self, repo: AnnotationRepository) -> None:
        await repo.add_annotation("note", 5, {"text": "a"}, verse_key="2:30")
        await repo.add_annotation("underline", 5, {}, verse_key="2:30")
        await repo.add_annotation("note", 5, {"text": "b"}, verse_key="2:31")

        found = await repo.get_annotations(
            AnnotationFilter(page_number=5, verse_key="2:30", type=AnnotationType.NOTE)
        )
        assert [a.data for a in found] == [{"text": "a"}]

    @pytest.mark.asyncio
    async def test_tags_match_any(self, repo: AnnotationRepository) -> None:
        await repo.add_annotation("note", 1, {}, tags=["tajweed", "review"])
        await repo.add_annotation("note", 1, {}, tags=["meaning"])
        await repo.add_annotation("note", 1, {})

        found = await repo.get_annotations(AnnotationFilter(tags=["review", "meaning"]))
        assert len(found) == 2
        assert await repo.get_annotations(AnnotationFilter(tags=["other"])) == []

    @pytest.mark.asyncio
    async def test_no_filter_returns_all(self, repo: AnnotationRepository) -> None:
        await repo.add_annotation("note", 1, {})
        await repo.add_annotation("note", 2, {})
        assert len(await repo.get_annotations()) == 2


class TestUpdate:
    @pytest.mark.asyncio
    async def test_keeps_id_and_creation_time(self, repo: AnnotationRepository) -> None:
        created = await repo.add_annotation("note", 1, {"text": "old"}, now=NOW)
        later = NOW + timedelta(hours=1)

        updated = await repo.update_annotation(
            created.id, now=later, data={"text": "new"}, metadata={"pinned": True}
        )
        assert updated.id == created.id
        assert updated.created_at == NOW
        assert updated.modified_at == later

        loaded = await repo.get_annotation(created.id)
        assert loaded.data == {"text": "new"}
        assert loaded.meta == {"pinned": True}

    @pytest.mark.asyncio
    async def test_missing(self, repo: AnnotationRepository) -> None:
        with pytest.raises(NotFoundError):
            await repo.update_annotation("ghost", data={})

    @pytest.mark.asyncio
    async def test_immutable_fields_rejected(self, repo: AnnotationRepository) -> None:
        created = await repo.add_annotation("note", 1, {})
        with pytest.raises(ValueError):
            await repo.update_annotation(created.id, created_at=NOW)

    @pytest.mark.asyncio
    async def test_null_required_fields_rejected(self, repo: AnnotationRepository) -> None:
        created = await repo.add_annotation("note", 5, {"text": "keep"})
        for field in ("data", "type", "page_number"):
            with pytest.raises(ValueError):
                await repo.update_annotation(created.id, **{field: None})

        stored = await repo.get_annotation(created.id)
        assert stored.data == {"text": "keep"}
        assert [a.id for a in await repo.get_annotations(AnnotationFilter(page_number=5))] == [
            created.id
        ]

    @pytest.mark.asyncio
    async def test_optional_fields_can_be_cleared(self, repo: AnnotationRepository) -> None:
        created = await repo.add_annotation("note", 5, {}, verse_key="2:30", tags=["a"])
        updated = await repo.update_annotation(created.id, verse_key=None, tags=None)
        assert updated.verse_key is None
        assert updated.tags is None


class TestDeleteAndStats:
    @pytest.mark.asyncio
    async def test_delete_single(self, repo: AnnotationRepository) -> None:
        created = await repo.add_annotation("note", 1, {})
        assert await repo.delete_annotation(created.id) is True
        assert await repo.delete_annotation(created.id) is False
        assert await repo.get_annotation(created.id) is None

    @pytest.mark.asyncio
    async def test_delete_page_and_verse(self, repo: AnnotationRepository) -> None:
        await repo.add_annotation("note", 3, {}, verse_key="2:20")
        await repo.add_annotation("note", 3, {}, verse_key="2:21")
        await repo.add_annotation("note", 4, {}, verse_key="2:21")

        assert await repo.delete_verse_annotations("2:21") == 2
        assert await repo.delete_page_annotations(3) == 1
        assert await repo.get_annotations() == []

    @pytest.mark.asyncio
    async def test_clear_all(self, repo: AnnotationRepository) -> None:
        await repo.add_annotation("note", 3, {})
        await repo.clear_all()
        assert await repo.get_annotations() == []

    @pytest.mark.asyncio
    async def test_stats(self, repo: AnnotationRepository) -> None:
        await repo.add_annotation("note", 3, {})
        await repo.add_annotation("drawing", 3, STROKE)
        await repo.add_annotation("drawing", 9, STROKE)

        stats = await repo.get_stats()
        assert stats["total"] == 3
        assert stats["by_type"]["drawing"] == 2
        assert stats["by_type"]["circle"] == 0
        assert stats["by_page"] == {3: 2, 9: 1}


class TestExportImport:
    @pytest.mark.asyncio
    async def test_round_trip_adds_new_records(self, repo: AnnotationRepository) -> None:
        original = await repo.add_annotation("drawing", 7, STROKE, tags=["x"], metadata={"k": 1})
        payload = await repo.export_annotations()
        assert json.loads(payload)[0]["metadata"] == {"k": 1}

        assert await repo.import_annotations(payload) == 1
        annotations = await repo.get_annotations(AnnotationFilter(page_number=7))
        assert len(annotations) == 2
        copy = next(a for a in annotations if a.id != original.id)
        assert copy.data == STROKE
        assert copy.tags == ["x"]
        assert copy.meta == {"k": 1}

    @pytest.mark.asyncio
    async def test_import_replacing_existing(self, repo: AnnotationRepository) -> None:
        await repo.add_annotation("note", 1, {})
        payload = json.dumps([{"type": "circle", "page_number": 2, "data": {"r": 5}}])

        assert await repo.import_annotations(payload, clear_existing=True) == 1
        (only,) = await repo.get_annotations()
        assert only.page_number == 2

    @pytest.mark.asyncio
    async def test_invalid_payload(self, repo: AnnotationRepository) -> None:
        with pytest.raises(ValidationError):
            await repo.import_annotations('[{"type": "circle"}]')

    @pytest.mark.asyncio
    async def test_restore_keeps_identity(self, repo: AnnotationRepository) -> None:
        created = await repo.add_annotation("note", 1, {"text": "t"}, now=NOW)
        snapshot = AnnotationData.model_validate(created)
        await repo.delete_annotation(created.id)

        restored = await repo.restore_annotation(snapshot)
        assert restored.id == created.id
        assert restored.created_at == NOW

    @pytest.mark.asyncio
    async def test_restore_requires_id(self, repo: AnnotationRepository) -> None:
        with pytest.raises(ValueError):
            await repo.restore_annotation(AnnotationData(type="note", page_number=1, data={}))


class TestAnnotationCommands:
    @pytest.mark.asyncio
    async def test_add_undo_redo(self, repo: AnnotationRepository) -> None:
        stack = CommandStack(max_size=10)
        command = AddAnnotationCommand(repo, "highlight", 4, {"color": "gold"}, verse_key="3:7")

        await stack.execute(command)
        annotation_id = command.snapshot.id
        assert stack.undo_description == "Add highlight on page 4"
        assert await repo.get_annotation(annotation_id) is not None

        await stack.undo()
        assert await repo.get_annotation(annotation_id) is None

        await stack.redo()
        restored = await repo.get_annotation(annotation_id)
        assert restored is not None
        assert restored.verse_key == "3:7"

    @pytest.mark.asyncio
    async def test_delete_undo(self, repo: AnnotationRepository) -> None:
        created = await repo.add_annotation("note", 2, {"text": "keep"}, now=NOW)
        stack = CommandStack(max_size=10)

        await stack.execute(DeleteAnnotationCommand(repo, created.id))
        assert await repo.get_annotation(created.id) is None

        await stack.undo()
        restored = await repo.get_annotation(created.id)
        assert restored.data == {"text": "keep"}
        assert restored.created_at == NOW

    @pytest.mark.asyncio
    async def test_delete_missing_is_not_recorded(self, repo: AnnotationRepository) -> None:
        stack = CommandStack(max_size=10)
        with pytest.raises(NotFoundError):
            await stack.execute(DeleteAnnotationCommand(repo, "ghost"))
        assert not stack.can_undo()
