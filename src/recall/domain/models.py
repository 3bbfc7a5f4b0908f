"""
Domain models for card review scheduling.

These are pure data structures with no I/O or external dependencies.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum, IntEnum
from typing import Union

from .errors import InvalidRating


class Rating(IntEnum):
    """Answer button pressed for a card (1=Again, 2=Hard, 3=Good, 4=Easy)."""

    AGAIN = 1
    HARD = 2
    GOOD = 3
    EASY = 4

    @classmethod
    def parse(cls, value: object) -> "Rating":
        """
        Coerce a rating from an enum member, an integer 1-4 or a button name.

        Raises:
            InvalidRating: If the value does not name one of the four buttons.
        """
        if isinstance(value, Rating):
            return value
        if isinstance(value, bool):
            raise InvalidRating(value)
        if isinstance(value, int):
            try:
                return cls(value)
            except ValueError:
                raise InvalidRating(value) from None
        if isinstance(value, str):
            text = value.strip()
            if text.isdigit():
                return cls.parse(int(text))
            try:
                return cls[text.upper()]
            except KeyError:
                raise InvalidRating(value) from None
        raise InvalidRating(value)


class CardState(str, Enum):
    NEW = "new"
    LEARNING = "learning"
    REVIEW = "review"
    RELEARNING = "relearning"


@dataclass(frozen=True)
class NewPhase:
    """Card never answered. Carries no scheduling payload."""


@dataclass(frozen=True)
class LearningPhase:
    step: int


@dataclass(frozen=True)
class ReviewPhase:
    interval_days: int
    ease: float


@dataclass(frozen=True)
class RelearningPhase:
    """
    Lapsed card working back through the relearning steps.

    Attributes:
        step: Index into the relearning steps.
        interval_days: Interval held before the lapse, used as the recovery base.
        ease: Ease after the lapse penalty.
    """

    step: int
    interval_days: int
    ease: float


Phase = Union[NewPhase, LearningPhase, ReviewPhase, RelearningPhase]

_PHASE_STATES: dict[type, CardState] = {
    NewPhase: CardState.NEW,
    LearningPhase: CardState.LEARNING,
    ReviewPhase: CardState.REVIEW,
    RelearningPhase: CardState.RELEARNING,
}


@dataclass(frozen=True)
class CardReviewState:
    """
    Review state of one card for one user within one project.

    Attributes:
        card_id: Flashcard identifier from the card catalog.
        phase: Variant holding the fields meaningful for the current state.
        due: Next instant the card is eligible for review (aware datetime).
        repetitions: Successful Review-state reviews since the last lapse.
        lapses: Lifetime count of Again ratings given in Review state.
        is_suspended: Excluded from every queue while set.
        is_leech: Lapse count crossed the leech threshold.
        last_reviewed: Instant of the most recent rating, if any.
        version: Stored version the state was loaded at (0 = never stored).
    """

    card_id: str
    phase: Phase
    due: datetime
    repetitions: int = 0
    lapses: int = 0
    is_suspended: bool = False
    is_leech: bool = False
    last_reviewed: datetime | None = None
    version: int = 0

    @classmethod
    def new(cls, card_id: str, now: datetime) -> "CardReviewState":
        """Materialize the virtual New default for a card with no record."""
        return cls(card_id=card_id, phase=NewPhase(), due=now)

    @property
    def state(self) -> CardState:
        return _PHASE_STATES[type(self.phase)]

    @property
    def ease(self) -> float | None:
        if isinstance(self.phase, (ReviewPhase, RelearningPhase)):
            return self.phase.ease
        return None

    @property
    def interval_days(self) -> int | None:
        if isinstance(self.phase, (ReviewPhase, RelearningPhase)):
            return self.phase.interval_days
        return None

    @property
    def learning_step(self) -> int | None:
        if isinstance(self.phase, (LearningPhase, RelearningPhase)):
            return self.phase.step
        return None

    @property
    def is_new(self) -> bool:
        return isinstance(self.phase, NewPhase)

    def is_due(self, now: datetime) -> bool:
        return self.due <= now


@dataclass(frozen=True)
class DailyCounters:
    """Per user, project and study date counters. Absent records count as zero."""

    user_id: str
    project_id: str
    study_date: date
    new_cards_introduced: int = 0
    reviews_completed: int = 0


@dataclass(frozen=True)
class CardRef:
    """
    A flashcard as known by the card catalog.

    Attributes:
        card_id: Flashcard identifier.
        project_id: Project (deck) the card belongs to.
        created_at: Creation instant; defines FIFO order for new cards.
        sibling_group: Cards sharing a group are siblings (e.g. one note, two directions).
    """

    card_id: str
    project_id: str
    created_at: datetime
    sibling_group: str | None = None


@dataclass
class DeckSummary:
    """Dashboard counts for one project, derived on demand."""

    total: int = 0
    new: int = 0
    learning: int = 0
    review: int = 0
    suspended: int = 0
    leeches: int = 0
    due_learning: int = 0
    due_review: int = 0
    new_available: int = 0
    new_cards_introduced_today: int = 0
    reviews_completed_today: int = 0
    by_state: dict[str, int] = field(default_factory=dict)

    @property
    def due_now(self) -> int:
        return self.due_learning + self.due_review + self.new_available
