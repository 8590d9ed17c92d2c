"""FSRS (Free Spaced Repetition Scheduler) engine tuned for Quran memorization.

A simplified FSRS-4.5 state machine for Hifz flashcards.
Reference: https://github.com/open-spaced-repetition/fsrs4anki

Key concepts:
- Stability (S): Days until recall probability drops to the target retention.
- Difficulty (D): Inherent item difficulty on a 1-10 scale (5 is neutral).
- State: New -> Learning -> Review, with Review -> Relearning on a lapse.
- Rating: 1=Again, 2=Hard, 3=Good, 4=Easy

Cards in Learning/Relearning are scheduled in minutes using fixed steps;
only Review cards use the stability model. All functions are pure: given the
same card, rating and ``now`` they return the same result.
"""

import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum, IntEnum

from backend.config import Settings, settings, utcnow

# FSRS-4.5 default weights (simplified for Hifz)
# w[0..1]: initial stability from difficulty, S0 = w0 + w1 * (11 - D)
# w[3..4]: difficulty update, D' = D - (w3 - (rating - 3) * w4)
# w[5..8]: stability growth on successful review
# w[9..16]: unused by the simplified model, kept for parameter compatibility
DEFAULT_WEIGHTS = [
    0.4, 0.6, 2.4, 5.8, 4.93, 0.94, 0.86, 0.01, 1.49, 0.14,
    0.94, 2.18, 0.05, 0.34, 1.26, 0.29, 2.61,
]

DEFAULT_LEARNING_STEPS = [1.0, 10.0]  # minutes
DEFAULT_RELEARNING_STEPS = [10.0]  # minutes
DEFAULT_MAXIMUM_INTERVAL = 365  # days
DEFAULT_REQUEST_RETENTION = 0.9

# Bounds
MIN_DIFFICULTY = 1.0
MAX_DIFFICULTY = 10.0
NEUTRAL_DIFFICULTY = 5.0
MIN_STABILITY = 0.1  # Minimum 0.1 days (~2.4 hours)

HARD_STABILITY_FACTOR = 0.8
EASY_STABILITY_FACTOR = 1.3

MINUTES_PER_DAY = 24 * 60


class Rating(IntEnum):
    """How well the learner recalled the card."""

    AGAIN = 1  # Complete forget - reset card
    HARD = 2   # Difficult recall - short interval
    GOOD = 3   # Correct recall - normal interval
    EASY = 4   # Perfect recall - longer interval


class CardState(Enum):
    """Where a card sits in the learning lifecycle."""

    NEW = "new"
    LEARNING = "learning"
    REVIEW = "review"
    RELEARNING = "relearning"


@dataclass
class FSRSCard:
    """The scheduling state of a single flashcard."""

    id: str
    state: CardState = CardState.NEW
    stability: float = 0.0  # Days
    difficulty: float = NEUTRAL_DIFFICULTY  # 1-10
    reps: int = 0  # Total ratings applied
    lapses: int = 0  # Times forgotten after graduating
    due: datetime = field(default_factory=utcnow)
    last_review: datetime | None = None
    interval: float = 0.0  # Days until due (fractional for learning steps)
    elapsed_days: float = 0.0  # Days between the previous and current review


@dataclass
class FSRSParameters:
    """Tunable scheduler parameters."""

    w: list[float] = field(default_factory=lambda: list(DEFAULT_WEIGHTS))
    learning_steps: list[float] = field(default_factory=lambda: list(DEFAULT_LEARNING_STEPS))
    relearning_steps: list[float] = field(default_factory=lambda: list(DEFAULT_RELEARNING_STEPS))
    maximum_interval: int = DEFAULT_MAXIMUM_INTERVAL
    request_retention: float = DEFAULT_REQUEST_RETENTION

    @classmethod
    def from_settings(cls, app_settings: Settings | None = None) -> "FSRSParameters":
        """Build parameters from application settings."""
        app_settings = app_settings or settings
        return cls(
            learning_steps=list(app_settings.learning_steps_minutes),
            relearning_steps=list(app_settings.relearning_steps_minutes),
            maximum_interval=app_settings.maximum_interval_days,
            request_retention=app_settings.target_retention,
        )


@dataclass
class SchedulerStats:
    """Counts of cards per lifecycle bucket."""

    total: int
    new: int
    learning: int  # Learning + Relearning
    review: int
    due: int


class FSRS:
    """Free Spaced Repetition Scheduler with learning steps."""

    def __init__(self, params: FSRSParameters | None = None) -> None:
        """Initialize the scheduler with optional custom parameters."""
        self.params = params or FSRSParameters()
        if not self.params.learning_steps or not self.params.relearning_steps:
            raise ValueError("learning_steps and relearning_steps must not be empty")

    @property
    def w(self) -> list[float]:
        return self.params.w

    def create_card(self, card_id: str, now: datetime | None = None) -> FSRSCard:
        """Create a brand new card, due immediately.

        Args:
            card_id: Unique identifier (e.g. a flashcard id or "ayah_2_255").
            now: Creation time (defaults to utcnow).
        """
        return FSRSCard(id=card_id, due=now or utcnow())

    def rate_card(
        self,
        card: FSRSCard,
        rating: Rating | int,
        now: datetime | None = None,
    ) -> FSRSCard:
        """Apply a rating and return the card's next state.

        The input card is never mutated.

        Args:
            card: Current card state.
            rating: Review rating (1=Again, 2=Hard, 3=Good, 4=Easy).
            now: When the review happened (defaults to utcnow).

        Returns:
            A new FSRSCard with updated state, memory model and due date.
        """
        rating = Rating(rating)
        now = now or utcnow()

        elapsed_days = 0.0
        if card.last_review is not None:
            elapsed_days = max(0.0, (now - card.last_review).total_seconds() / 86400)

        rated = replace(card, last_review=now, elapsed_days=elapsed_days, reps=card.reps + 1)

        if card.state is CardState.NEW:
            return self._rate_new(rated, rating, now)
        if card.state in (CardState.LEARNING, CardState.RELEARNING):
            return self._rate_learning(rated, rating, now)
        return self._rate_review(rated, rating, now)

    def get_due_cards(
        self, cards: list[FSRSCard], as_of: datetime | None = None
    ) -> list[FSRSCard]:
        """Return the cards whose due date is at or before ``as_of``."""
        as_of = as_of or utcnow()
        return [card for card in cards if card.due <= as_of]

    def get_stats(self, cards: list[FSRSCard], now: datetime | None = None) -> SchedulerStats:
        """Summarize a collection of cards by state and due-ness."""
        now = now or utcnow()
        return SchedulerStats(
            total=len(cards),
            new=sum(1 for c in cards if c.state is CardState.NEW),
            learning=sum(
                1 for c in cards if c.state in (CardState.LEARNING, CardState.RELEARNING)
            ),
            review=sum(1 for c in cards if c.state is CardState.REVIEW),
            due=sum(1 for c in cards if c.due <= now),
        )

    # --- State handlers ---

    def _rate_new(self, card: FSRSCard, rating: Rating, now: datetime) -> FSRSCard:
        steps = self.params.learning_steps

        if rating is Rating.AGAIN:
            return self._schedule_step(card, CardState.LEARNING, steps[0], now)

        if rating is Rating.EASY and len(steps) == 1:
            # Graduate immediately
            stability = self._initial_stability(card.difficulty)
            return self._schedule_review(card, card.difficulty, stability, now)

        step = steps[-1] if rating is Rating.EASY else steps[0]
        return self._schedule_step(card, CardState.LEARNING, step, now)

    def _rate_learning(self, card: FSRSCard, rating: Rating, now: datetime) -> FSRSCard:
        if rating is Rating.AGAIN:
            relearning = card.state is CardState.RELEARNING
            step = self.params.relearning_steps[0] if relearning else self.params.learning_steps[0]
            card = replace(card, lapses=card.lapses + 1) if relearning else card
            return self._schedule_step(card, card.state, step, now)

        difficulty = self._update_difficulty(card.difficulty, rating)
        stability = self._initial_stability(difficulty)
        return self._schedule_review(card, difficulty, stability, now)

    def _rate_review(self, card: FSRSCard, rating: Rating, now: datetime) -> FSRSCard:
        if rating is Rating.AGAIN:
            lapsed = replace(card, lapses=card.lapses + 1)
            return self._schedule_step(
                lapsed, CardState.RELEARNING, self.params.relearning_steps[0], now
            )

        difficulty = self._update_difficulty(card.difficulty, rating)
        stability = self._next_stability(card.stability, difficulty, rating, card.elapsed_days)
        return self._schedule_review(card, difficulty, stability, now)

    def _schedule_step(
        self, card: FSRSCard, state: CardState, minutes: float, now: datetime
    ) -> FSRSCard:
        return replace(
            card,
            state=state,
            interval=minutes / MINUTES_PER_DAY,
            due=now + timedelta(minutes=minutes),
        )

    def _schedule_review(
        self, card: FSRSCard, difficulty: float, stability: float, now: datetime
    ) -> FSRSCard:
        interval = self._stability_to_interval(stability)
        return replace(
            card,
            state=CardState.REVIEW,
            difficulty=difficulty,
            stability=stability,
            interval=float(interval),
            due=now + timedelta(days=interval),
        )

    # --- Memory model ---

    def _initial_stability(self, difficulty: float) -> float:
        """S0 = w0 + w1 * (11 - D)"""
        return self.w[0] + self.w[1] * (11 - difficulty)

    def _update_difficulty(self, current_d: float, rating: Rating) -> float:
        """D' = clamp(D - (w3 - (rating - 3) * w4), 1, 10)"""
        delta = self.w[3] - (rating - 3) * self.w[4]
        return max(MIN_DIFFICULTY, min(MAX_DIFFICULTY, current_d - delta))

    def _retrievability(self, elapsed_days: float, stability: float) -> float:
        """Probability of recall from the power forgetting curve.

        R = (1 + t / (9 * S))^(-1)
        """
        if stability <= 0 or elapsed_days <= 0:
            return 1.0
        return (1 + elapsed_days / (9 * stability)) ** -1

    def _next_stability(
        self,
        stability: float,
        difficulty: float,
        rating: Rating,
        elapsed_days: float,
    ) -> float:
        """Calculate new stability after a successful review.

        S' = S * (1 + e^(w5) * (11 - D) * S^(w6) * (e^((1 - R) * w7) - 1) * w8)
        """
        retention = self._retrievability(elapsed_days, stability)
        new_s = stability * (
            1
            + math.exp(self.w[5])
            * (11 - difficulty)
            * stability ** self.w[6]
            * (math.exp((1 - retention) * self.w[7]) - 1)
            * self.w[8]
        )

        if rating is Rating.HARD:
            new_s *= HARD_STABILITY_FACTOR
        elif rating is Rating.EASY:
            new_s *= EASY_STABILITY_FACTOR

        return max(MIN_STABILITY, new_s)

    def _stability_to_interval(self, stability: float) -> int:
        """Convert stability to a whole-day interval for the request retention.

        interval = round(S * ln(retention) / ln(0.9)), clamped to [1, maximum_interval]
        """
        interval = round(
            stability * (math.log(self.params.request_retention) / math.log(0.9))
        )
        return max(1, min(self.params.maximum_interval, interval))
