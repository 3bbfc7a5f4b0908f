"""Leech detection after a Review-state lapse."""

import logging
from dataclasses import replace

from recall.domain.models import CardReviewState
from recall.domain.settings import LeechAction, SRSSettings

logger = logging.getLogger(__name__)


class LeechDetector:
    """
    Flags cards whose lifetime lapse count reached the leech threshold.

    Only called after a lapse. Checking an already-flagged card is a no-op.
    """

    def check(self, state: CardReviewState, settings: SRSSettings) -> CardReviewState:
        if state.lapses < settings.leech_threshold:
            return state

        if settings.leech_action == LeechAction.SUSPEND:
            if state.is_leech and state.is_suspended:
                return state
            logger.info(
                f"Card {state.card_id} is a leech ({state.lapses} lapses), suspending"
            )
            return replace(state, is_leech=True, is_suspended=True)

        if state.is_leech:
            return state
        logger.info(f"Card {state.card_id} is a leech ({state.lapses} lapses), tagging")
        return replace(state, is_leech=True)
