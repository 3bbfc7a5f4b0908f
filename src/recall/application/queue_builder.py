"""
Queue builder for daily study sessions.

Builds ordered study queues by fixed precedence:
1. Due learning and relearning cards (most overdue first)
2. Due review cards (most overdue first), capped by remaining review slots
3. New cards, capped by remaining new-card slots, in fifo or seeded random order

Suspended cards never appear. When sibling burying is enabled, a card whose
sibling group already appeared earlier in the same build is dropped.
"""

import logging
import random
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import datetime, timedelta

from recall.domain.models import CardRef, CardReviewState, CardState
from recall.domain.settings import NewCardOrder, SRSSettings

logger = logging.getLogger(__name__)


@dataclass
class QueueBuckets:
    """Cards selected per bucket, before sibling burying."""

    learning: list[CardRef]
    review: list[CardRef]
    new: list[CardRef]


class QueueAssembler:
    """
    Assembles a session queue from a snapshot of card states.

    Stateless; every build works from the arguments alone.
    """

    def build_queue(
        self,
        cards: Iterable[CardRef],
        states: Iterable[CardReviewState],
        settings: SRSSettings,
        remaining_new: int,
        remaining_reviews: int | None,
        now: datetime,
        seed: int | None = None,
    ) -> Iterator[str]:
        """
        Return a lazy, finite iterator of card ids for one session.

        Args:
            cards: All cards of the project, from the card catalog.
            states: Persisted review states of those cards for the user.
            settings: Validated project settings.
            remaining_new: New-card slots left today.
            remaining_reviews: Review slots left today; None means unlimited.
            now: Snapshot instant.
            seed: Seed for ``random`` new-card order.
        """
        buckets = self.select(cards, states, settings, remaining_new, remaining_reviews, now, seed)
        logger.debug(
            f"Queue buckets: learning={len(buckets.learning)} review={len(buckets.review)} "
            f"new={len(buckets.new)}"
        )
        return self._iterate(buckets, settings)

    def select(
        self,
        cards: Iterable[CardRef],
        states: Iterable[CardReviewState],
        settings: SRSSettings,
        remaining_new: int,
        remaining_reviews: int | None,
        now: datetime,
        seed: int | None = None,
    ) -> QueueBuckets:
        by_id = {state.card_id: state for state in states}
        review_horizon = now
        if settings.review_ahead:
            review_horizon = now + timedelta(days=settings.review_ahead_days)

        learning: list[tuple[datetime, str, CardRef]] = []
        review: list[tuple[datetime, str, CardRef]] = []
        new: list[CardRef] = []

        for card in cards:
            state = by_id.get(card.card_id)
            if state is None or state.state == CardState.NEW:
                if state is None or not state.is_suspended:
                    new.append(card)
                continue
            if state.is_suspended:
                continue
            if state.state in (CardState.LEARNING, CardState.RELEARNING):
                if state.due <= now:
                    learning.append((state.due, card.card_id, card))
            elif state.due <= review_horizon:
                review.append((state.due, card.card_id, card))

        learning.sort(key=lambda item: (item[0], item[1]))
        review.sort(key=lambda item: (item[0], item[1]))
        review_cards = [item[2] for item in review]
        if remaining_reviews is not None:
            review_cards = review_cards[: max(0, remaining_reviews)]

        return QueueBuckets(
            learning=[item[2] for item in learning],
            review=review_cards,
            new=self._order_new(new, settings, seed)[: max(0, remaining_new)],
        )

    def _order_new(
        self, cards: list[CardRef], settings: SRSSettings, seed: int | None
    ) -> list[CardRef]:
        ordered = sorted(cards, key=lambda card: (card.created_at, card.card_id))
        if settings.new_card_order == NewCardOrder.RANDOM:
            random.Random(seed).shuffle(ordered)
        return ordered

    def _iterate(self, buckets: QueueBuckets, settings: SRSSettings) -> Iterator[str]:
        seen_groups: set[str] = set()

        for card in buckets.learning:
            # Time-sensitive: never buried, but still claims its group.
            if card.sibling_group is not None:
                seen_groups.add(card.sibling_group)
            yield card.card_id

        for card in buckets.review + buckets.new:
            group = card.sibling_group
            if settings.bury_siblings and group is not None:
                if group in seen_groups:
                    logger.debug(f"Burying {card.card_id}: sibling group {group} already queued")
                    continue
                seen_groups.add(group)
            yield card.card_id
