from datetime import datetime, timedelta, timezone

import pytest

from recall.application.quota_tracker import DailyQuotaTracker
from recall.application.service import SchedulingService
from recall.domain.models import CardRef, CardReviewState, ReviewPhase
from recall.domain.settings import SRSSettings
from recall.infrastructure.adapters.memory_store import InMemoryStore
from recall.infrastructure.adapters.yaml_settings import StaticSettingsProvider
from recall.infrastructure.clock import FixedClock

PROJECT = "spanish"


@pytest.fixture
def now():
    """Mid-morning UTC, well away from any day boundary."""
    return datetime(2024, 3, 10, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def settings():
    return SRSSettings()


@pytest.fixture
def clock(now):
    return FixedClock(now)


@pytest.fixture
def make_card(now):
    """Factory for cards created one minute apart in call order."""
    counter = {"n": 0}

    def _make(card_id, project_id=PROJECT, sibling_group=None, created_at=None):
        counter["n"] += 1
        return CardRef(
            card_id=card_id,
            project_id=project_id,
            created_at=created_at or now - timedelta(days=30) + timedelta(minutes=counter["n"]),
            sibling_group=sibling_group,
        )

    return _make


@pytest.fixture
def review_state(now):
    """Factory for a Review-state card due at ``now`` unless told otherwise."""

    def _make(card_id, interval_days=10, ease=2.5, due=None, **kwargs):
        return CardReviewState(
            card_id=card_id,
            phase=ReviewPhase(interval_days=interval_days, ease=ease),
            due=due or now,
            **kwargs,
        )

    return _make


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def make_service(store, clock):
    """Build a SchedulingService over the in-memory store with the given settings."""

    def _make(settings=None, timezone="UTC", new_card_seed=1234):
        return SchedulingService(
            catalog=store,
            states=store,
            quota=DailyQuotaTracker(store, timezone=timezone),
            settings_provider=StaticSettingsProvider(settings or SRSSettings()),
            clock=clock,
            new_card_seed=new_card_seed,
        )

    return _make


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Mocking HOME to a temp directory to isolate config files
    monkeypatch.setenv("HOME", str(home))
    return home
