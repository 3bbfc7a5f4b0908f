"""
Scheduling Service: Application layer orchestrator.

The only component collaborators talk to. Coordinates the card catalog,
stored review states, daily quotas and project settings around the pure
scheduling components.
"""

import hashlib
import logging
from collections.abc import Iterator
from dataclasses import dataclass, replace
from datetime import datetime

from recall.domain.errors import UnknownCard
from recall.domain.models import (
    CardRef,
    CardReviewState,
    DailyCounters,
    DeckSummary,
    NewPhase,
    Rating,
    ReviewPhase,
)
from recall.domain.ports import CardCatalog, Clock, ReviewStateRepository, SettingsProvider

from .leech_detector import LeechDetector
from .queue_builder import QueueAssembler
from .quota_tracker import DailyQuotaTracker
from .review_state_machine import ReviewStateMachine
from .summary import summarize

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateResult:
    """Outcome of rating a card: the stored state and today's counters."""

    state: CardReviewState
    counters: DailyCounters


class SchedulingService:
    """
    Application service for study queues and answer handling.

    Follows Dependency Inversion: depends on port abstractions, never on
    concrete storage adapters.
    """

    def __init__(
        self,
        catalog: CardCatalog,
        states: ReviewStateRepository,
        quota: DailyQuotaTracker,
        settings_provider: SettingsProvider,
        clock: Clock,
        machine: ReviewStateMachine | None = None,
        leech_detector: LeechDetector | None = None,
        assembler: QueueAssembler | None = None,
        new_card_seed: int | None = None,
    ):
        """
        Args:
            catalog: Port onto the flashcard store.
            states: Port for stored review states.
            quota: Daily quota tracker.
            settings_provider: Supplies validated settings per project.
            clock: Used when callers do not pass ``now``.
            new_card_seed: Fixed seed for random new-card order; derived per day if None.
        """
        self._catalog = catalog
        self._states = states
        self._quota = quota
        self._settings = settings_provider
        self._clock = clock
        self._machine = machine or ReviewStateMachine()
        self._leech = leech_detector or LeechDetector()
        self._assembler = assembler or QueueAssembler()
        self._seed = new_card_seed

    # ------------------------------------------------------------------
    # Queue
    # ------------------------------------------------------------------

    def build_queue(self, user_id: str, project_id: str, now: datetime | None = None) -> Iterator[str]:
        """
        Build the ordered session queue for a user's project.

        The result reflects a snapshot; building again after ratings may differ.
        Two builds on an unchanged snapshot within one study day are identical.
        """
        now = now or self._clock.now()
        settings = self._settings.get_settings(project_id)
        cards = self._catalog.list_cards(project_id)
        states = self._states.list_for_project(user_id, project_id)

        remaining_new = self._quota.remaining_new_slots(user_id, project_id, settings, now)
        remaining_reviews = self._quota.remaining_review_slots(user_id, project_id, settings, now)

        return self._assembler.build_queue(
            cards,
            states,
            settings,
            remaining_new=remaining_new,
            remaining_reviews=remaining_reviews,
            now=now,
            seed=self._session_seed(user_id, project_id, now),
        )

    def _session_seed(self, user_id: str, project_id: str, now: datetime) -> int:
        if self._seed is not None:
            return self._seed
        key = f"{user_id}:{project_id}:{self._quota.study_date(now).isoformat()}"
        return int.from_bytes(hashlib.sha256(key.encode("utf-8")).digest()[:8], "big")

    # ------------------------------------------------------------------
    # Rating
    # ------------------------------------------------------------------

    def rate(
        self,
        user_id: str,
        project_id: str,
        card_id: str,
        rating: Rating | int | str,
        now: datetime | None = None,
    ) -> RateResult:
        """
        Apply an answer to a card and store the result.

        Raises:
            InvalidRating: Rating is not Again, Hard, Good or Easy. Nothing changes.
            UnknownCard: Card missing or in another project. Nothing changes.
            StaleWrite: The stored state changed since it was loaded.
        """
        rating = Rating.parse(rating)
        now = now or self._clock.now()
        self._require_card(project_id, card_id)
        settings = self._settings.get_settings(project_id)

        current = self._load(user_id, project_id, card_id, now)
        if current.is_suspended:
            logger.warning(f"Ignoring rating for suspended card {card_id}")
            return RateResult(current, self._quota.counters(user_id, project_id, now))

        updated = self._machine.apply(current, rating, settings, now)
        is_lapse = isinstance(current.phase, ReviewPhase) and rating == Rating.AGAIN
        if is_lapse:
            updated = self._leech.check(updated, settings)

        stored = self._states.save(user_id, project_id, updated)
        logger.info(
            f"Rated {card_id} {rating.name}: {current.state.value} -> {stored.state.value}, "
            f"due {stored.due.isoformat()}"
        )

        if isinstance(current.phase, NewPhase):
            self._quota.try_consume_new_card_slot(user_id, project_id, settings, now)
        elif isinstance(current.phase, ReviewPhase):
            self._quota.try_consume_review_slot(user_id, project_id, settings, now)

        return RateResult(stored, self._quota.counters(user_id, project_id, now))

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------

    def summary(self, user_id: str, project_id: str, now: datetime | None = None) -> DeckSummary:
        """Counts of new, learning, review and due cards for dashboard display."""
        now = now or self._clock.now()
        settings = self._settings.get_settings(project_id)
        return summarize(
            self._catalog.list_cards(project_id),
            self._states.list_for_project(user_id, project_id),
            now,
            remaining_new=self._quota.remaining_new_slots(user_id, project_id, settings, now),
            counters=self._quota.counters(user_id, project_id, now),
        )

    # ------------------------------------------------------------------
    # Card maintenance
    # ------------------------------------------------------------------

    def suspend_card(
        self, user_id: str, project_id: str, card_id: str, now: datetime | None = None
    ) -> CardReviewState:
        return self._update_flags(user_id, project_id, card_id, now, is_suspended=True)

    def unsuspend_card(
        self, user_id: str, project_id: str, card_id: str, now: datetime | None = None
    ) -> CardReviewState:
        return self._update_flags(user_id, project_id, card_id, now, is_suspended=False)

    def reset_card(
        self, user_id: str, project_id: str, card_id: str, now: datetime | None = None
    ) -> CardReviewState:
        """Forget all progress: back to New, lapses and leech flag cleared, unsuspended."""
        now = now or self._clock.now()
        self._require_card(project_id, card_id)
        current = self._load(user_id, project_id, card_id, now)
        fresh = CardReviewState.new(card_id, now)
        logger.info(f"Resetting card {card_id} (was {current.state.value})")
        return self._states.save(user_id, project_id, replace(fresh, version=current.version))

    def _update_flags(
        self,
        user_id: str,
        project_id: str,
        card_id: str,
        now: datetime | None,
        **flags: bool,
    ) -> CardReviewState:
        now = now or self._clock.now()
        self._require_card(project_id, card_id)
        current = self._load(user_id, project_id, card_id, now)
        return self._states.save(user_id, project_id, replace(current, **flags))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_card(self, project_id: str, card_id: str) -> CardRef:
        card = self._catalog.get_card(card_id)
        if card is None or card.project_id != project_id:
            raise UnknownCard(card_id, project_id)
        return card

    def _load(
        self, user_id: str, project_id: str, card_id: str, now: datetime
    ) -> CardReviewState:
        stored = self._states.get_state(user_id, project_id, card_id)
        if stored is None:
            return CardReviewState.new(card_id, now)
        return stored
