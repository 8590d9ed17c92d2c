"""Flashcard model with embedded FSRS scheduling state."""

from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from backend.config import utcnow
from backend.models.base import Base, TimestampMixin
from backend.srs.fsrs import CardState, FSRSCard


class FlashcardType(str, Enum):
    """What kind of memorization hazard a card drills."""

    MISTAKE = "mistake"
    MUTASHABIHAT = "mutashabihat"
    TRANSITION = "transition"
    CUSTOM_TRANSITION = "custom-transition"
    PAGE_NUMBER = "page-number"


class Flashcard(Base, TimestampMixin):
    """A user-created card anchored to a page/verse of the Mushaf."""

    __tablename__ = "flashcards"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    type: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    surah: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    ayah: Mapped[int] = mapped_column(Integer, nullable=False)
    page: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    front: Mapped[str] = mapped_column(Text, nullable=False)
    back: Mapped[str] = mapped_column(Text, nullable=False)
    last_reviewed: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    # "metadata" is reserved on declarative classes
    meta: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)  # color, notes, tags

    # FSRS state
    state: Mapped[str] = mapped_column(String(20), nullable=False, default=CardState.NEW.value)
    stability: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    difficulty: Mapped[float] = mapped_column(Float, nullable=False, default=5.0)
    reps: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    lapses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    due: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, index=True)
    last_review: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    interval: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    elapsed_days: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    @property
    def verse_key(self) -> str:
        return f"{self.surah}:{self.ayah}"

    @property
    def fsrs_state(self) -> FSRSCard:
        """The scheduler's view of this card."""
        return FSRSCard(
            id=self.id,
            state=CardState(self.state or CardState.NEW.value),
            stability=self.stability if self.stability is not None else 0.0,
            difficulty=self.difficulty if self.difficulty is not None else 5.0,
            reps=self.reps or 0,
            lapses=self.lapses or 0,
            due=self.due or utcnow(),
            last_review=self.last_review,
            interval=self.interval or 0.0,
            elapsed_days=self.elapsed_days or 0.0,
        )

    @fsrs_state.setter
    def fsrs_state(self, card: FSRSCard) -> None:
        self.state = card.state.value
        self.stability = card.stability
        self.difficulty = card.difficulty
        self.reps = card.reps
        self.lapses = card.lapses
        self.due = card.due
        self.last_review = card.last_review
        self.interval = card.interval
        self.elapsed_days = card.elapsed_days
