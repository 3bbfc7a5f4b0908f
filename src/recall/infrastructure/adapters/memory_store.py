"""
In-memory store: Infrastructure adapter backed by dictionaries.

Implements CardCatalog, ReviewStateRepository and DailyCountersRepository.
A single lock makes version checks and quota increments atomic, so the store
can be shared between threads.
"""

import logging
import threading
from dataclasses import replace
from datetime import date

from recall.domain.errors import StaleWrite
from recall.domain.models import CardRef, CardReviewState, DailyCounters
from recall.domain.ports import (
    CardCatalog,
    CounterField,
    DailyCountersRepository,
    ReviewStateRepository,
)

logger = logging.getLogger(__name__)


class InMemoryStore(CardCatalog, ReviewStateRepository, DailyCountersRepository):
    def __init__(self, cards: list[CardRef] | None = None):
        self._lock = threading.Lock()
        self._cards: dict[str, CardRef] = {}
        self._states: dict[tuple[str, str, str], CardReviewState] = {}
        self._counters: dict[tuple[str, str, date], DailyCounters] = {}
        for card in cards or []:
            self.add_card(card)

    # ---------- CardCatalog ----------

    def add_card(self, card: CardRef) -> None:
        with self._lock:
            self._cards[card.card_id] = card

    def get_card(self, card_id: str) -> CardRef | None:
        return self._cards.get(card_id)

    def list_cards(self, project_id: str) -> list[CardRef]:
        cards = [c for c in self._cards.values() if c.project_id == project_id]
        return sorted(cards, key=lambda c: (c.created_at, c.card_id))

    # ---------- ReviewStateRepository ----------

    def get_state(self, user_id: str, project_id: str, card_id: str) -> CardReviewState | None:
        return self._states.get((user_id, project_id, card_id))

    def list_for_project(self, user_id: str, project_id: str) -> list[CardReviewState]:
        return [
            state
            for (uid, pid, _), state in self._states.items()
            if uid == user_id and pid == project_id
        ]

    def save(self, user_id: str, project_id: str, state: CardReviewState) -> CardReviewState:
        key = (user_id, project_id, state.card_id)
        with self._lock:
            existing = self._states.get(key)
            actual = existing.version if existing is not None else 0
            if actual != state.version:
                logger.warning(
                    f"Rejecting stale write for {state.card_id}: "
                    f"expected v{state.version}, stored v{actual}"
                )
                raise StaleWrite(
                    state.card_id, state.version, existing.version if existing else None
                )
            stored = replace(state, version=state.version + 1)
            self._states[key] = stored
            return stored

    # ---------- DailyCountersRepository ----------

    def get_counters(self, user_id: str, project_id: str, study_date: date) -> DailyCounters:
        counters = self._counters.get((user_id, project_id, study_date))
        if counters is None:
            return DailyCounters(user_id=user_id, project_id=project_id, study_date=study_date)
        return counters

    def increment(
        self,
        user_id: str,
        project_id: str,
        study_date: date,
        counter: CounterField,
        cap: int | None,
    ) -> DailyCounters | None:
        with self._lock:
            current = self.get_counters(user_id, project_id, study_date)
            value = getattr(current, counter) + 1
            if cap is not None and value > cap:
                return None
            updated = replace(current, **{counter: value})
            self._counters[(user_id, project_id, study_date)] = updated
            return updated
