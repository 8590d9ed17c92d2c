"""Persistent flashcard store with FSRS scheduling state.

Cards are looked up through the type, surah, page and due indexes. Due
queries across types scan every card. Bulk deletes by page or verse
remove matching cards one at a time, so a failure part way through
leaves the earlier deletions in place.
"""

import json
import logging
import uuid
from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.config import utcnow
from backend.errors import DuplicateKeyError, NotFoundError
from backend.models.flashcard import Flashcard, FlashcardType
from backend.srs.fsrs import FSRS, CardState, FSRSCard, Rating
from backend.stores.base import SqlRepository

logger = logging.getLogger(__name__)


class FSRSStateData(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    state: CardState = CardState.NEW
    stability: float = 0.0
    difficulty: float = 5.0
    reps: int = 0
    lapses: int = 0
    due: datetime
    last_review: datetime | None = None
    interval: float = 0.0
    elapsed_days: float = 0.0


class FlashcardData(BaseModel):
    """Serializable view of a flashcard, used for export/import and the API."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    type: FlashcardType
    surah: int
    ayah: int
    page: int
    front: str
    back: str
    fsrs_state: FSRSStateData
    created_at: datetime | None = None
    last_reviewed: datetime | None = None
    metadata: dict[str, Any] | None = Field(
        default=None, validation_alias=AliasChoices("meta", "metadata")
    )


_flashcard_list = TypeAdapter(list[FlashcardData])


def make_flashcard(
    type: FlashcardType | str,
    surah: int,
    ayah: int,
    page: int,
    front: str,
    back: str,
    *,
    scheduler: FSRS,
    metadata: dict[str, Any] | None = None,
    card_id: str | None = None,
    now: datetime | None = None,
) -> Flashcard:
    """Build an unsaved flashcard with a fresh New scheduling state."""
    now = now or utcnow()
    card_id = card_id or uuid.uuid4().hex
    flashcard = Flashcard(
        id=card_id,
        type=FlashcardType(type).value,
        surah=surah,
        ayah=ayah,
        page=page,
        front=front,
        back=back,
        meta=metadata,
        created_at=now,
        updated_at=now,
    )
    flashcard.fsrs_state = scheduler.create_card(card_id, now=now)
    return flashcard


class FlashcardRepository(SqlRepository):
    """CRUD, index lookups and review recording for flashcards."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        scheduler: FSRS | None = None,
    ) -> None:
        super().__init__(session_factory)
        self.scheduler = scheduler or FSRS()

    async def create(self, flashcard: Flashcard) -> Flashcard:
        """Insert a new card.

        Raises:
            DuplicateKeyError: If a card with the same id already exists.
        """
        async with self._transaction() as db:
            if await db.get(Flashcard, flashcard.id) is not None:
                raise DuplicateKeyError(
                    f"Flashcard already exists: {flashcard.id}", context={"id": flashcard.id}
                )
            db.add(flashcard)
        return flashcard

    async def read(self, card_id: str) -> Flashcard | None:
        async with self._transaction() as db:
            return await db.get(Flashcard, card_id)

    async def update(self, flashcard: Flashcard) -> Flashcard:
        """Replace an existing card's fields.

        Raises:
            NotFoundError: If no card with that id exists.
        """
        async with self._transaction() as db:
            if await db.get(Flashcard, flashcard.id) is None:
                raise NotFoundError(
                    f"Flashcard not found: {flashcard.id}", context={"id": flashcard.id}
                )
            merged = await db.merge(flashcard)
        return merged

    async def delete(self, card_id: str) -> bool:
        """Delete a card by id. Returns False if it did not exist."""
        async with self._transaction() as db:
            result = await db.execute(delete(Flashcard).where(Flashcard.id == card_id))
        return result.rowcount > 0

    async def clear_all(self) -> None:
        async with self._transaction() as db:
            await db.execute(delete(Flashcard))

    async def get_all(self) -> list[Flashcard]:
        return await self._select()

    async def get_by_type(self, card_type: FlashcardType | str) -> list[Flashcard]:
        return await self._select(Flashcard.type == FlashcardType(card_type).value)

    async def get_by_surah(self, surah: int) -> list[Flashcard]:
        return await self._select(Flashcard.surah == surah)

    async def get_by_page(self, page: int) -> list[Flashcard]:
        return await self._select(Flashcard.page == page)

    async def get_due_cards(self, as_of: datetime | None = None) -> list[Flashcard]:
        """Cards due at or before ``as_of``, across all types."""
        as_of = as_of or utcnow()
        return [card for card in await self.get_all() if card.due <= as_of]

    async def get_due_cards_by_type(
        self, card_type: FlashcardType | str, as_of: datetime | None = None
    ) -> list[Flashcard]:
        as_of = as_of or utcnow()
        return [card for card in await self.get_by_type(card_type) if card.due <= as_of]

    async def get_stats(self, now: datetime | None = None) -> dict[str, Any]:
        """Totals per type plus the number of cards due now."""
        now = now or utcnow()
        cards = await self.get_all()

        by_type = {t.value: 0 for t in FlashcardType}
        for card in cards:
            by_type[card.type] = by_type.get(card.type, 0) + 1

        return {
            "total": len(cards),
            "by_type": by_type,
            "due_today": sum(1 for card in cards if card.due <= now),
        }

    async def record_review(
        self, card_id: str, rating: Rating | int, now: datetime | None = None
    ) -> Flashcard:
        """Rate a card and persist its new scheduling state.

        The read, the rating and the write share one transaction, so two
        concurrent reviews of the same card cannot both apply to the same
        prior state.

        Raises:
            NotFoundError: If no card with that id exists.
        """
        now = now or utcnow()
        async with self._transaction() as db:
            flashcard = await db.get(Flashcard, card_id, with_for_update=True)
            if flashcard is None:
                raise NotFoundError(f"Flashcard not found: {card_id}", context={"id": card_id})

            next_state: FSRSCard = self.scheduler.rate_card(flashcard.fsrs_state, rating, now)
            flashcard.fsrs_state = next_state
            flashcard.last_reviewed = now

        logger.debug(
            "Reviewed %s with %s: %s, due %s",
            card_id,
            Rating(rating).name,
            next_state.state.value,
            next_state.due.isoformat(),
        )
        return flashcard

    async def delete_by_page(self, page: int) -> int:
        return await self._delete_each(await self.get_by_page(page), f"page {page}")

    async def delete_by_verse(self, surah: int, ayah: int) -> int:
        cards = [card for card in await self.get_by_surah(surah) if card.ayah == ayah]
        return await self._delete_each(cards, f"verse {surah}:{ayah}")

    async def export_json(self) -> str:
        """Dump every card, including scheduling state, as a JSON array."""
        cards = await self.get_all()
        payload = [FlashcardData.model_validate(card).model_dump(mode="json") for card in cards]
        logger.info("Exported %d flashcards", len(payload))
        return json.dumps(payload, ensure_ascii=False, indent=2)

    async def import_json(self, payload: str, clear_existing: bool = False) -> int:
        """Load cards from ``export_json`` output.

        Every imported card gets a fresh id so it can never collide with an
        existing one. Scheduling state is kept as exported.

        Raises:
            pydantic.ValidationError: If the payload is not a list of cards.
        """
        records = _flashcard_list.validate_json(payload)

        if clear_existing:
            await self.clear_all()

        for record in records:
            card_id = uuid.uuid4().hex
            flashcard = Flashcard(
                id=card_id,
                type=record.type.value,
                surah=record.surah,
                ayah=record.ayah,
                page=record.page,
                front=record.front,
                back=record.back,
                meta=record.metadata,
                last_reviewed=record.last_reviewed,
                created_at=record.created_at or utcnow(),
            )
            flashcard.fsrs_state = FSRSCard(id=card_id, **record.fsrs_state.model_dump())
            await self.create(flashcard)

        logger.info("Imported %d flashcards", len(records))
        return len(records)

    async def _select(self, *criteria) -> list[Flashcard]:
        stmt = select(Flashcard).order_by(Flashcard.created_at, Flashcard.id)
        if criteria:
            stmt = stmt.where(*criteria)
        async with self._transaction() as db:
            result = await db.execute(stmt)
            return list(result.scalars().all())

    async def _delete_each(self, cards: list[Flashcard], scope: str) -> int:
        deleted = 0
        for card in cards:
            if await self.delete(card.id):
                deleted += 1
        logger.info("Deleted %d flashcards for %s", deleted, scope)
        return deleted
