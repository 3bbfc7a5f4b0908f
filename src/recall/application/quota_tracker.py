"""
Daily quota tracker.

Counts new cards introduced and reviews completed per user, project and
study date, and refuses increments past the daily caps.

The study date is the calendar date of ``now`` in the tracker's timezone.
The timezone is fixed when the tracker is built (UTC unless configured), so
every call for a tracker uses the same day boundary. Crossing midnight simply
addresses a new, zero-initialized record; there is no reset operation.
"""

import logging
from datetime import date, datetime
from zoneinfo import ZoneInfo

from recall.domain.constants import DEFAULT_TIMEZONE
from recall.domain.models import DailyCounters
from recall.domain.ports import DailyCountersRepository
from recall.domain.settings import SRSSettings

logger = logging.getLogger(__name__)


class DailyQuotaTracker:
    def __init__(self, repo: DailyCountersRepository, timezone: str = DEFAULT_TIMEZONE):
        """
        Args:
            repo: Storage port providing atomic compare-and-increment.
            timezone: IANA timezone name defining the day boundary.
        """
        self._repo = repo
        self.timezone = timezone
        self._tz = ZoneInfo(timezone)

    def study_date(self, now: datetime) -> date:
        if now.tzinfo is None:
            raise ValueError("now must be timezone-aware")
        return now.astimezone(self._tz).date()

    def counters(self, user_id: str, project_id: str, now: datetime) -> DailyCounters:
        return self._repo.get_counters(user_id, project_id, self.study_date(now))

    def try_consume_new_card_slot(
        self, user_id: str, project_id: str, settings: SRSSettings, now: datetime
    ) -> bool:
        """Take one new-card slot. Returns False, changing nothing, when the cap is reached."""
        return self._consume(
            user_id, project_id, now, "new_cards_introduced", settings.new_cards_per_day
        )

    def try_consume_review_slot(
        self, user_id: str, project_id: str, settings: SRSSettings, now: datetime
    ) -> bool:
        """Take one review slot. Returns False, changing nothing, when the cap is reached."""
        return self._consume(
            user_id, project_id, now, "reviews_completed", settings.max_reviews_per_day
        )

    def remaining_new_slots(
        self, user_id: str, project_id: str, settings: SRSSettings, now: datetime
    ) -> int:
        used = self.counters(user_id, project_id, now).new_cards_introduced
        return max(0, settings.new_cards_per_day - used)

    def remaining_review_slots(
        self, user_id: str, project_id: str, settings: SRSSettings, now: datetime
    ) -> int | None:
        """Remaining reviews for today, or None when reviews are unlimited."""
        if settings.max_reviews_per_day is None:
            return None
        used = self.counters(user_id, project_id, now).reviews_completed
        return max(0, settings.max_reviews_per_day - used)

    def _consume(
        self,
        user_id: str,
        project_id: str,
        now: datetime,
        counter: str,
        cap: int | None,
    ) -> bool:
        study_date = self.study_date(now)
        updated = self._repo.increment(user_id, project_id, study_date, counter, cap)
        if updated is None:
            logger.info(
                f"Daily {counter} quota exhausted for user={user_id} "
                f"project={project_id} date={study_date} (cap {cap})"
            )
            return False
        return True
