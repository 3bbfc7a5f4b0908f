"""
Review state machine.

Applies one rating to one card's review state and returns the next state.
This is a pure computation module with no I/O.

Ease follows the discrete Anki-style adjustments: Hard -0.15, Good unchanged,
Easy +0.15, lapse minus the configured penalty. Hard does not multiply the
ease into the interval.
"""

import logging
import math
from dataclasses import replace
from datetime import datetime, timedelta

from recall.domain import constants as c
from recall.domain.models import (
    CardReviewState,
    LearningPhase,
    NewPhase,
    Rating,
    RelearningPhase,
    ReviewPhase,
)
from recall.domain.settings import SRSSettings

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positive values."""
    return int(math.floor(value + 0.5))


def clamp_interval(days: float, settings: SRSSettings) -> int:
    """Apply the interval modifier, round, and clamp to [1, max_interval]."""
    scaled = round_half_up(days * settings.interval_modifier)
    return max(1, min(scaled, settings.max_interval))


def _clean_ease(ease: float) -> float:
    return round(ease, c.EASE_PRECISION)


class ReviewStateMachine:
    """
    Computes the next CardReviewState for a rating.

    Stateless and side-effect free.
    """

    def apply(
        self,
        state: CardReviewState,
        rating: Rating,
        settings: SRSSettings,
        now: datetime,
    ) -> CardReviewState:
        """
        Apply a rating.

        Args:
            state: Current state (a New default for never-answered cards).
            rating: Button pressed.
            settings: Validated project settings.
            now: Instant of the answer.

        Returns:
            A new state; ``version`` is carried over unchanged.
        """
        rating = Rating(rating)
        phase = state.phase
        reviewed = replace(state, last_reviewed=now)

        if isinstance(phase, (NewPhase, LearningPhase)):
            return self._learning(reviewed, rating, settings, now)
        if isinstance(phase, ReviewPhase):
            return self._review(reviewed, phase, rating, settings, now)
        if isinstance(phase, RelearningPhase):
            return self._relearning(reviewed, phase, rating, settings, now)
        raise TypeError(f"Unsupported phase {type(phase).__name__}")

    # ------------------------------------------------------------------
    # New / Learning
    # ------------------------------------------------------------------

    def _learning(
        self,
        state: CardReviewState,
        rating: Rating,
        settings: SRSSettings,
        now: datetime,
    ) -> CardReviewState:
        steps = settings.learning_steps
        # A New card is answered at the first learning step.
        step = state.phase.step if isinstance(state.phase, LearningPhase) else 0
        # Steps may have been shortened since the state was stored.
        step = min(step, len(steps) - 1)

        if rating == Rating.AGAIN:
            return self._at_learning_step(state, 0, steps, now)

        if rating == Rating.HARD:
            return self._at_learning_step(state, step, steps, now)

        if rating == Rating.GOOD:
            next_step = step + 1
            if next_step < len(steps):
                return self._at_learning_step(state, next_step, steps, now)
            return self._graduate(state, settings.graduating_interval, settings, now)

        return self._graduate(state, settings.easy_interval, settings, now)

    def _at_learning_step(
        self,
        state: CardReviewState,
        step: int,
        steps: tuple[float, ...],
        now: datetime,
    ) -> CardReviewState:
        return replace(
            state,
            phase=LearningPhase(step=step),
            due=now + timedelta(minutes=steps[step]),
        )

    def _graduate(
        self,
        state: CardReviewState,
        interval_days: int,
        settings: SRSSettings,
        now: datetime,
    ) -> CardReviewState:
        interval = clamp_interval(interval_days, settings)
        logger.debug(f"Card {state.card_id} graduating to review, interval {interval}d")
        return replace(
            state,
            phase=ReviewPhase(interval_days=interval, ease=_clean_ease(settings.starting_ease)),
            due=now + timedelta(days=interval),
        )

    # ------------------------------------------------------------------
    # Review
    # ------------------------------------------------------------------

    def _review(
        self,
        state: CardReviewState,
        phase: ReviewPhase,
        rating: Rating,
        settings: SRSSettings,
        now: datetime,
    ) -> CardReviewState:
        if rating == Rating.AGAIN:
            ease = _clean_ease(max(settings.minimum_ease, phase.ease - settings.lapse_ease_penalty))
            logger.debug(
                f"Card {state.card_id} lapsed (lapse {state.lapses + 1}), ease {phase.ease} -> {ease}"
            )
            return replace(
                state,
                phase=RelearningPhase(step=0, interval_days=phase.interval_days, ease=ease),
                lapses=state.lapses + 1,
                repetitions=0,
                due=now + timedelta(minutes=settings.relearning_steps[0]),
            )

        if rating == Rating.HARD:
            ease = max(settings.minimum_ease, phase.ease - c.HARD_EASE_DELTA)
            raw = phase.interval_days * settings.hard_interval_factor
        elif rating == Rating.GOOD:
            ease = phase.ease
            raw = phase.interval_days * ease
        else:
            ease = phase.ease + c.EASY_EASE_DELTA
            if settings.maximum_ease is not None:
                ease = min(ease, settings.maximum_ease)
            ease = max(settings.minimum_ease, ease)
            raw = phase.interval_days * ease * settings.easy_bonus

        interval = clamp_interval(raw, settings)
        return replace(
            state,
            phase=ReviewPhase(interval_days=interval, ease=_clean_ease(ease)),
            repetitions=state.repetitions + 1,
            due=now + timedelta(days=interval),
        )

    # ------------------------------------------------------------------
    # Relearning
    # ------------------------------------------------------------------

    def _relearning(
        self,
        state: CardReviewState,
        phase: RelearningPhase,
        rating: Rating,
        settings: SRSSettings,
        now: datetime,
    ) -> CardReviewState:
        steps = settings.relearning_steps
        step = min(phase.step, len(steps) - 1)

        if rating == Rating.AGAIN:
            return self._at_relearning_step(state, phase, 0, steps, now)

        if rating == Rating.HARD:
            return self._at_relearning_step(state, phase, step, steps, now)

        if rating == Rating.GOOD:
            next_step = step + 1
            if next_step < len(steps):
                return self._at_relearning_step(state, phase, next_step, steps, now)

        return self._recover(state, phase, settings, now)

    def _at_relearning_step(
        self,
        state: CardReviewState,
        phase: RelearningPhase,
        step: int,
        steps: tuple[float, ...],
        now: datetime,
    ) -> CardReviewState:
        return replace(
            state,
            phase=replace(phase, step=step),
            due=now + timedelta(minutes=steps[step]),
        )

    def _recover(
        self,
        state: CardReviewState,
        phase: RelearningPhase,
        settings: SRSSettings,
        now: datetime,
    ) -> CardReviewState:
        interval = clamp_interval(phase.interval_days * settings.lapse_recovery_factor, settings)
        logger.debug(f"Card {state.card_id} recovered to review, interval {interval}d")
        return replace(
            state,
            phase=ReviewPhase(interval_days=interval, ease=phase.ease),
            due=now + timedelta(days=interval),
        )
