"""Persistent store for drawings, highlights and notes on Mushaf pages."""

import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter
from sqlalchemy import delete, select

from backend.config import utcnow
from backend.errors import NotFoundError
from backend.models.annotation import Annotation, AnnotationType
from backend.stores.base import SqlRepository

logger = logging.getLogger(__name__)

# Fields callers may change through update_annotation
_UPDATABLE_FIELDS = {"type", "page_number", "verse_key", "data", "tags", "metadata"}
_REQUIRED_FIELDS = ("type", "page_number", "data")


class AnnotationData(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str | None = None
    type: AnnotationType
    page_number: int
    verse_key: str | None = None
    data: dict[str, Any]
    created_at: datetime | None = None
    modified_at: datetime | None = None
    tags: list[str] | None = None
    metadata: dict[str, Any] | None = Field(
        default=None, validation_alias=AliasChoices("meta", "metadata")
    )


_annotation_list = TypeAdapter(list[AnnotationData])


@dataclass
class AnnotationFilter:
    """Criteria for ``get_annotations``; unset fields do not constrain."""

    page_number: int | None = None
    verse_key: str | None = None
    type: AnnotationType | str | None = None
    tags: list[str] | None = None  # Matches annotations carrying any of these


class AnnotationRepository(SqlRepository):
    async def add_annotation(
        self,
        type: AnnotationType | str,
        page_number: int,
        data: dict[str, Any],
        *,
        verse_key: str | None = None,
        tags: list[str] | None = None,
        metadata: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> Annotation:
        """Store a new annotation with a generated id and timestamps."""
        now = now or utcnow()
        annotation = Annotation(
            id=uuid.uuid4().hex,
            type=AnnotationType(type).value,
            page_number=page_number,
            verse_key=verse_key,
            data=data,
            tags=tags,
            meta=metadata,
            created_at=now,
            modified_at=now,
        )
        async with self._transaction() as db:
            db.add(annotation)
        return annotation

    async def update_annotation(
        self, annotation_id: str, now: datetime | None = None, **updates: Any
    ) -> Annotation:
        """Apply partial updates, keeping the id and creation time.

        Raises:
            NotFoundError: If the annotation does not exist.
            ValueError: If an update names a field that cannot change or
                sets a required field to None.
        """
        unknown = set(updates) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update annotation fields: {sorted(unknown)}")
        nulled = [name for name in _REQUIRED_FIELDS if name in updates and updates[name] is None]
        if nulled:
            raise ValueError(f"Annotation fields cannot be null: {nulled}")

        async with self._transaction() as db:
            annotation = await db.get(Annotation, annotation_id)
            if annotation is None:
                raise NotFoundError(
                    f"Annotation not found: {annotation_id}", context={"id": annotation_id}
                )

            for name, value in updates.items():
                if name == "type":
                    value = AnnotationType(value).value
                setattr(annotation, "meta" if name == "metadata" else name, value)
            annotation.modified_at = now or utcnow()

        return annotation

    async def get_annotation(self, annotation_id: str) -> Annotation | None:
        async with self._transaction() as db:
            return await db.get(Annotation, annotation_id)

    async def get_annotations(self, query: AnnotationFilter | None = None) -> list[Annotation]:
        """Return annotations matching every criterion set on ``query``.

        Page, verse and type are resolved through their column indexes; tags
        are matched afterwards, keeping annotations that carry at least one
        of the requested tags.
        """
        query = query or AnnotationFilter()

        stmt = select(Annotation).order_by(Annotation.created_at, Annotation.id)
        if query.page_number is not None:
            stmt = stmt.where(Annotation.page_number == query.page_number)
        if query.verse_key:
            stmt = stmt.where(Annotation.verse_key == query.verse_key)
        if query.type:
            stmt = stmt.where(Annotation.type == AnnotationType(query.type).value)

        async with self._transaction() as db:
            annotations = list((await db.execute(stmt)).scalars().all())

        if query.tags:
            wanted = set(query.tags)
            annotations = [a for a in annotations if a.tags and wanted.intersection(a.tags)]
        return annotations

    async def delete_annotation(self, annotation_id: str) -> bool:
        async with self._transaction() as db:
            result = await db.execute(delete(Annotation).where(Annotation.id == annotation_id))
        return result.rowcount > 0

    async def delete_page_annotations(self, page_number: int) -> int:
        """Delete each annotation on a page individually; returns how many went."""
        annotations = await self.get_annotations(AnnotationFilter(page_number=page_number))
        for annotation in annotations:
            await self.delete_annotation(annotation.id)
        logger.info("Deleted %d annotations on page %d", len(annotations), page_number)
        return len(annotations)

    async def delete_verse_annotations(self, verse_key: str) -> int:
        annotations = await self.get_annotations(AnnotationFilter(verse_key=verse_key))
        for annotation in annotations:
            await self.delete_annotation(annotation.id)
        logger.info("Deleted %d annotations for verse %s", len(annotations), verse_key)
        return len(annotations)

    async def clear_all(self) -> None:
        async with self._transaction() as db:
            await db.execute(delete(Annotation))

    async def get_stats(self) -> dict[str, Any]:
        annotations = await self.get_annotations()

        by_type = {t.value: 0 for t in AnnotationType}
        by_page: dict[int, int] = {}
        for annotation in annotations:
            by_type[annotation.type] = by_type.get(annotation.type, 0) + 1
            by_page[annotation.page_number] = by_page.get(annotation.page_number, 0) + 1

        return {"total": len(annotations), "by_type": by_type, "by_page": by_page}

    async def export_annotations(self) -> str:
        annotations = await self.get_annotations()
        payload = [AnnotationData.model_validate(a).model_dump(mode="json") for a in annotations]
        logger.info("Exported %d annotations", len(payload))
        return json.dumps(payload, ensure_ascii=False, indent=2)

    async def import_annotations(self, payload: str, clear_existing: bool = False) -> int:
        """Load annotations from ``export_annotations`` output.

        Ids and timestamps in the payload are discarded; each annotation is
        added as new so imports never collide with existing records.
        """
        records = _annotation_list.validate_json(payload)

        if clear_existing:
            await self.clear_all()

        for record in records:
            await self.add_annotation(
                record.type,
                record.page_number,
                record.data,
                verse_key=record.verse_key,
                tags=record.tags,
                metadata=record.metadata,
            )

        logger.info("Imported %d annotations", len(records))
        return len(records)

    async def restore_annotation(self, record: AnnotationData) -> Annotation:
        """Put back a previously exported or deleted annotation unchanged."""
        if record.id is None:
            raise ValueError("Cannot restore an annotation without an id")
        annotation = Annotation(
            id=record.id,
            type=record.type.value,
            page_number=record.page_number,
            verse_key=record.verse_key,
            data=record.data,
            tags=record.tags,
            meta=record.metadata,
            created_at=record.created_at or utcnow(),
            modified_at=record.modified_at or utcnow(),
        )
        async with self._transaction() as db:
            annotation = await db.merge(annotation)
        return annotation


class AddAnnotationCommand:
    """Undoable creation of an annotation; redo restores the same record."""

    def __init__(
        self,
        repo: AnnotationRepository,
        type: AnnotationType | str,
        page_number: int,
        data: dict[str, Any],
        **fields: Any,
    ) -> None:
        self.repo = repo
        self._args = (type, page_number, data)
        self._fields = fields
        self.snapshot: AnnotationData | None = None
        self.description = f"Add {AnnotationType(type).value} on page {page_number}"
        self.timestamp: datetime | None = None

    async def execute(self) -> None:
        if self.snapshot is None:
            annotation = await self.repo.add_annotation(*self._args, **self._fields)
            self.snapshot = AnnotationData.model_validate(annotation)
        else:
            await self.repo.restore_annotation(self.snapshot)

    async def undo(self) -> None:
        if self.snapshot is not None and self.snapshot.id is not None:
            await self.repo.delete_annotation(self.snapshot.id)


class DeleteAnnotationCommand:
    """Undoable deletion of an annotation."""

    def __init__(self, repo: AnnotationRepository, annotation_id: str) -> None:
        self.repo = repo
        self.annotation_id = annotation_id
        self.snapshot: AnnotationData | None = None
        self.description = f"Delete annotation {annotation_id}"
        self.timestamp: datetime | None = None

    async def execute(self) -> None:
        annotation = await self.repo.get_annotation(self.annotation_id)
        if annotation is None:
            raise NotFoundError(
                f"Annotation not found: {self.annotation_id}", context={"id": self.annotation_id}
            )
        self.snapshot = AnnotationData.model_validate(annotation)
        await self.repo.delete_annotation(self.annotation_id)

    async def undo(self) -> None:
        if self.snapshot is not None:
            await self.repo.restore_annotation(self.snapshot)
