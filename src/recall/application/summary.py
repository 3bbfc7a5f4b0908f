"""
Dashboard summary counts.

Derived from a snapshot of card states on every call; nothing is stored.
"""

from collections.abc import Iterable
from datetime import datetime

from recall.domain.models import CardRef, CardReviewState, CardState, DailyCounters, DeckSummary


def summarize(
    cards: Iterable[CardRef],
    states: Iterable[CardReviewState],
    now: datetime,
    remaining_new: int,
    counters: DailyCounters | None = None,
) -> DeckSummary:
    """
    Count cards per state and how many are studyable right now.

    Cards without a stored state count as new. Suspended cards are counted
    under ``suspended`` only.
    """
    by_id = {state.card_id: state for state in states}
    summary = DeckSummary(by_state={s.value: 0 for s in CardState})

    for card in cards:
        summary.total += 1
        state = by_id.get(card.card_id)
        if state is not None and state.is_leech:
            summary.leeches += 1
        if state is not None and state.is_suspended:
            summary.suspended += 1
            continue

        kind = state.state if state is not None else CardState.NEW
        summary.by_state[kind.value] += 1

        if kind == CardState.NEW:
            summary.new += 1
        elif kind == CardState.REVIEW:
            summary.review += 1
            if state.is_due(now):
                summary.due_review += 1
        else:
            summary.learning += 1
            if state.is_due(now):
                summary.due_learning += 1

    summary.new_available = min(summary.new, max(0, remaining_new))
    if counters is not None:
        summary.new_cards_introduced_today = counters.new_cards_introduced
        summary.reviews_completed_today = counters.reviews_completed
    return summary
