"""
Ports (interfaces) for the scheduling engine.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Literal

from .models import CardRef, CardReviewState, DailyCounters
from .settings import SRSSettings

CounterField = Literal["new_cards_introduced", "reviews_completed"]


class Clock(ABC):
    """Source of the current instant. Injected so tests can pin time."""

    @abstractmethod
    def now(self) -> datetime:
        """Return the current time as an aware datetime."""
        pass


class SettingsProvider(ABC):
    """Port supplying validated SRSSettings per project."""

    @abstractmethod
    def get_settings(self, project_id: str) -> SRSSettings:
        pass


class CardCatalog(ABC):
    """
    Port onto the flashcard store.

    Implementations:
        - InMemoryStore: dictionaries, for tests and embedding.
        - SqliteStore: a local SQLite database.
    """

    @abstractmethod
    def get_card(self, card_id: str) -> CardRef | None:
        """Look up a card by id, or None if it does not exist."""
        pass

    @abstractmethod
    def list_cards(self, project_id: str) -> list[CardRef]:
        """All cards of a project, in creation order."""
        pass


class ReviewStateRepository(ABC):
    """
    Port for persisted CardReviewState records.

    Writes use optimistic concurrency: the version carried by the state is the
    version the caller loaded, and must still be the stored version.
    """

    @abstractmethod
    def get_state(self, user_id: str, project_id: str, card_id: str) -> CardReviewState | None:
        pass

    @abstractmethod
    def list_for_project(self, user_id: str, project_id: str) -> list[CardReviewState]:
        pass

    @abstractmethod
    def save(self, user_id: str, project_id: str, state: CardReviewState) -> CardReviewState:
        """
        Store a state whose ``version`` is the expected stored version.

        A version of 0 means no record may exist yet.

        Returns:
            The stored state, carrying the incremented version.

        Raises:
            StaleWrite: If the stored version differs from ``state.version``.
        """
        pass


class DailyCountersRepository(ABC):
    """Port for per user, project and date counters."""

    @abstractmethod
    def get_counters(self, user_id: str, project_id: str, study_date: date) -> DailyCounters:
        """Return the counters for a date; a missing record reads as zeros."""
        pass

    @abstractmethod
    def increment(
        self,
        user_id: str,
        project_id: str,
        study_date: date,
        counter: CounterField,
        cap: int | None,
    ) -> DailyCounters | None:
        """
        Atomically add one to ``counter`` unless that would exceed ``cap``.

        Args:
            cap: Maximum allowed value after the increment; None means unlimited.

        Returns:
            The updated counters, or None when the cap refused the increment
            (the stored value is left unchanged).
        """
        pass
