"""Queue management for flashcard review sessions.

Handles card prioritization, mixing new cards with reviews,
and session limits to prevent overwhelm.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from backend.config import settings, utcnow
from backend.models.flashcard import Flashcard, FlashcardType
from backend.srs.fsrs import CardState
from backend.stores.flashcards import FlashcardRepository

logger = logging.getLogger(__name__)


@dataclass
class QueueConfig:
    """Configuration for queue building."""

    max_reviews: int = settings.max_reviews_per_session
    max_new: int = settings.max_new_cards_per_session
    new_card_ratio: float = 0.25  # 1 new card per 4 reviews
    card_type: FlashcardType | None = None  # Restrict the deck to one type


@dataclass
class ReviewQueue:
    """A prepared queue of cards for a review session."""

    due_cards: list[Flashcard] = field(default_factory=list)
    new_cards: list[Flashcard] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.due_cards) + len(self.new_cards)

    def interleaved(self) -> list[Flashcard]:
        """Return reviews with new cards inserted at regular intervals."""
        if not self.new_cards:
            return list(self.due_cards)
        if not self.due_cards:
            return list(self.new_cards)

        result: list[Flashcard] = []
        new = list(self.new_cards)

        # Insert a new card every N reviews
        interval = max(1, len(self.due_cards) // (len(new) + 1))
        new_idx = 0

        for i, card in enumerate(self.due_cards):
            result.append(card)
            if new_idx < len(new) and (i + 1) % interval == 0:
                result.append(new[new_idx])
                new_idx += 1

        result.extend(new[new_idx:])
        return result


async def build_queue(
    repo: FlashcardRepository,
    now: datetime | None = None,
    config: QueueConfig | None = None,
) -> ReviewQueue:
    """Build a review queue from the flashcard store.

    Due cards that have been seen before come first, most overdue first.
    New cards are added in proportion to the number of reviews, oldest
    first, up to the configured limit.
    """
    config = config or QueueConfig()
    now = now or utcnow()

    if config.card_type is not None:
        due = await repo.get_due_cards_by_type(config.card_type, now)
    else:
        due = await repo.get_due_cards(now)

    seen = [c for c in due if c.state != CardState.NEW.value]
    seen.sort(key=lambda c: c.due)
    due_cards = seen[: config.max_reviews]

    new_card_slots = min(config.max_new, max(1, int(len(due_cards) * config.new_card_ratio)))
    unseen = [c for c in due if c.state == CardState.NEW.value]
    unseen.sort(key=lambda c: (c.created_at, c.id))
    new_cards = unseen[:new_card_slots]

    queue = ReviewQueue(due_cards=due_cards, new_cards=new_cards)
    logger.info(
        "Built queue: %d due + %d new = %d total",
        len(due_cards),
        len(new_cards),
        queue.total,
    )
    return queue
