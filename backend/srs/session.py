"""Review session orchestrator.

Walks an interleaved queue of flashcards, records each rating through the
repository and keeps running statistics for the session.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from backend.config import utcnow
from backend.models.flashcard import Flashcard
from backend.srs.fsrs import CardState, Rating
from backend.srs.queue import QueueConfig, ReviewQueue, build_queue
from backend.stores.flashcards import FlashcardRepository

logger = logging.getLogger(__name__)


@dataclass
class SessionStats:
    """Statistics for a review session."""

    cards_reviewed: int = 0
    again: int = 0
    hard: int = 0
    good: int = 0
    easy: int = 0
    new_cards_seen: int = 0
    started_at: datetime = field(default_factory=utcnow)

    def record(self, rating: Rating, was_new: bool) -> None:
        self.cards_reviewed += 1
        if was_new:
            self.new_cards_seen += 1
        counter = rating.name.lower()
        setattr(self, counter, getattr(self, counter) + 1)

    @property
    def accuracy(self) -> float:
        """Share of reviews not rated Again."""
        if not self.cards_reviewed:
            return 0.0
        return (self.cards_reviewed - self.again) / self.cards_reviewed


@dataclass
class ReviewSession:
    """An active pass over a review queue."""

    repo: FlashcardRepository
    queue: ReviewQueue
    stats: SessionStats = field(default_factory=SessionStats)
    _card_index: int = 0
    _cards: list[Flashcard] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._cards = self.queue.interleaved()

    @property
    def remaining(self) -> int:
        return max(0, len(self._cards) - self._card_index)

    @property
    def is_complete(self) -> bool:
        return self._card_index >= len(self._cards)

    @property
    def current_card(self) -> Flashcard | None:
        if self._card_index < len(self._cards):
            return self._cards[self._card_index]
        return None

    async def rate_current(self, rating: Rating | int, now: datetime | None = None) -> Flashcard:
        """Rate the current card, persist it and advance to the next one.

        Raises:
            IndexError: If the session is already complete.
        """
        card = self.current_card
        if card is None:
            raise IndexError("Review session is complete")

        rating = Rating(rating)
        was_new = card.state == CardState.NEW.value
        updated = await self.repo.record_review(card.id, rating, now)

        self._cards[self._card_index] = updated
        self.stats.record(rating, was_new)
        self._card_index += 1
        return updated

    def skip_current(self) -> None:
        if not self.is_complete:
            self._card_index += 1


async def start_session(
    repo: FlashcardRepository,
    config: QueueConfig | None = None,
    now: datetime | None = None,
) -> ReviewSession:
    """Build a queue of due cards and open a session over it."""
    queue = await build_queue(repo, now, config)
    session = ReviewSession(repo=repo, queue=queue)
    logger.info("Started review session: %d cards queued", queue.total)
    return session
