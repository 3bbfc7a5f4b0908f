from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from recall.application.quota_tracker import DailyQuotaTracker
from recall.application.service import SchedulingService
from recall.domain.errors import InvalidRating, StaleWrite, UnknownCard
from recall.domain.models import CardState, Rating
from recall.domain.settings import SRSSettings
from recall.infrastructure.adapters.yaml_settings import StaticSettingsProvider

USER = "alice"
PROJECT = "spanish"


@pytest.fixture
def deck(store, make_card):
    for card_id in ("a", "b", "c"):
        store.add_card(make_card(card_id))
    store.add_card(make_card("x", project_id="french"))
    return store


# --- rate ---


def test_rating_a_new_card_materializes_and_consumes_new_slot(make_service, deck, now):
    service = make_service()

    result = service.rate(USER, PROJECT, "a", Rating.GOOD)

    assert result.state.state == CardState.LEARNING
    assert result.state.version == 1
    assert result.state.last_reviewed == now
    assert result.counters.new_cards_introduced == 1
    assert result.counters.reviews_completed == 0
    assert deck.get_state(USER, PROJECT, "a") == result.state


def test_rate_accepts_button_names(make_service, deck):
    service = make_service()
    assert service.rate(USER, PROJECT, "a", "easy").state.state == CardState.REVIEW


def test_learning_answers_do_not_consume_quota(make_service, deck, clock):
    service = make_service()
    service.rate(USER, PROJECT, "a", Rating.GOOD)
    clock.advance(minutes=10)

    result = service.rate(USER, PROJECT, "a", Rating.GOOD)

    assert result.state.state == CardState.REVIEW
    assert result.counters.new_cards_introduced == 1
    assert result.counters.reviews_completed == 0


def test_review_answers_consume_review_slot(make_service, deck, review_state):
    deck.save(USER, PROJECT, review_state("b"))
    service = make_service()

    result = service.rate(USER, PROJECT, "b", Rating.GOOD)

    assert result.state.interval_days == 25
    assert result.state.version == 2
    assert result.counters.reviews_completed == 1


def test_invalid_rating_changes_nothing(make_service, deck):
    service = make_service()

    with pytest.raises(InvalidRating):
        service.rate(USER, PROJECT, "a", 7)

    assert deck.get_state(USER, PROJECT, "a") is None


@pytest.mark.parametrize("card_id, project_id", [("missing", PROJECT), ("x", PROJECT)])
def test_unknown_card_changes_nothing(make_service, deck, now, card_id, project_id):
    service = make_service()

    with pytest.raises(UnknownCard):
        service.rate(USER, project_id, card_id, Rating.GOOD)

    assert deck.list_for_project(USER, project_id) == []
    assert deck.get_counters(USER, project_id, now.date()).new_cards_introduced == 0


def test_concurrent_rating_raises_stale_write(make_service, deck, review_state):
    deck.save(USER, PROJECT, review_state("b"))
    service = make_service()
    loaded = deck.get_state(USER, PROJECT, "b")

    service.rate(USER, PROJECT, "b", Rating.GOOD)

    with pytest.raises(StaleWrite) as exc_info:
        deck.save(USER, PROJECT, loaded)
    assert exc_info.value.expected_version == 1
    assert exc_info.value.actual_version == 2


def test_stale_write_from_repository_propagates(deck, clock):
    states = MagicMock()
    states.get_state.return_value = None
    states.save.side_effect = StaleWrite("a", 0, 1)
    service = SchedulingService(
        catalog=deck,
        states=states,
        quota=DailyQuotaTracker(deck),
        settings_provider=StaticSettingsProvider(),
        clock=clock,
    )

    with pytest.raises(StaleWrite):
        service.rate(USER, PROJECT, "a", Rating.GOOD)

    # No quota is consumed for a rejected write
    assert deck.get_counters(USER, PROJECT, clock.now().date()).new_cards_introduced == 0


def test_rating_a_suspended_card_is_ignored(make_service, deck, review_state):
    stored = deck.save(USER, PROJECT, review_state("b", is_suspended=True))
    service = make_service()

    result = service.rate(USER, PROJECT, "b", Rating.AGAIN)

    assert result.state == stored
    assert deck.get_state(USER, PROJECT, "b") == stored


def test_leech_suspends_on_threshold_lapse(make_service, deck, review_state):
    deck.save(USER, PROJECT, review_state("b", lapses=7))
    deck.save(USER, PROJECT, review_state("c", lapses=6))
    service = make_service()

    leech = service.rate(USER, PROJECT, "b", Rating.AGAIN).state
    not_yet = service.rate(USER, PROJECT, "c", Rating.AGAIN).state

    assert leech.lapses == 8
    assert leech.is_leech and leech.is_suspended
    assert not_yet.lapses == 7
    assert not not_yet.is_leech and not not_yet.is_suspended


def test_new_cards_beyond_cap_are_still_scheduled(make_service, deck):
    service = make_service(SRSSettings(new_cards_per_day=1))

    service.rate(USER, PROJECT, "a", Rating.GOOD)
    result = service.rate(USER, PROJECT, "b", Rating.GOOD)

    assert result.state.state == CardState.LEARNING
    assert result.counters.new_cards_introduced == 1


# --- build_queue ---


def test_build_queue_respects_daily_new_limit(make_service, deck):
    service = make_service(SRSSettings(new_cards_per_day=2, new_card_order="fifo"))

    assert list(service.build_queue(USER, PROJECT)) == ["a", "b"]

    service.rate(USER, PROJECT, "a", Rating.EASY)
    assert list(service.build_queue(USER, PROJECT)) == ["b"]


def test_build_queue_is_stable_within_a_day(make_service, deck):
    service = make_service(new_card_seed=None)

    first = list(service.build_queue(USER, PROJECT))
    second = list(service.build_queue(USER, PROJECT))

    assert first == second
    assert sorted(first) == ["a", "b", "c"]


def test_learning_card_returns_when_due(make_service, deck, clock):
    service = make_service(SRSSettings(new_card_order="fifo"))
    service.rate(USER, PROJECT, "a", Rating.AGAIN)

    assert "a" not in list(service.build_queue(USER, PROJECT))

    clock.advance(minutes=1)
    assert list(service.build_queue(USER, PROJECT))[0] == "a"


def test_build_queue_excludes_other_users_progress(make_service, deck):
    service = make_service(SRSSettings(new_card_order="fifo"))
    service.rate("bob", PROJECT, "a", Rating.EASY)

    assert list(service.build_queue(USER, PROJECT)) == ["a", "b", "c"]


# --- summary ---


def test_summary_reflects_ratings(make_service, deck):
    service = make_service(SRSSettings(new_cards_per_day=2))
    service.rate(USER, PROJECT, "a", Rating.AGAIN)
    service.rate(USER, PROJECT, "b", Rating.EASY)

    summary = service.summary(USER, PROJECT)

    assert summary.total == 3
    assert summary.new == 1
    assert summary.learning == 1
    assert summary.review == 1
    assert summary.new_available == 0
    assert summary.new_cards_introduced_today == 2


# --- card maintenance ---


def test_suspend_and_unsuspend(make_service, deck):
    service = make_service(SRSSettings(new_card_order="fifo"))

    suspended = service.suspend_card(USER, PROJECT, "a")
    assert suspended.is_suspended
    assert suspended.state == CardState.NEW
    assert "a" not in list(service.build_queue(USER, PROJECT))

    service.unsuspend_card(USER, PROJECT, "a")
    assert "a" in list(service.build_queue(USER, PROJECT))


def test_reset_card_forgets_progress(make_service, deck, review_state, clock):
    deck.save(USER, PROJECT, review_state("b", lapses=9, is_leech=True, is_suspended=True))
    service = make_service()

    reset = service.reset_card(USER, PROJECT, "b")

    assert reset.state == CardState.NEW
    assert reset.lapses == 0
    assert not reset.is_leech and not reset.is_suspended
    assert reset.version == 2
    assert reset.due == clock.now()


def test_maintenance_on_unknown_card(make_service, deck):
    service = make_service()

    with pytest.raises(UnknownCard):
        service.suspend_card(USER, PROJECT, "x")
    with pytest.raises(UnknownCard):
        service.reset_card(USER, PROJECT, "nope")


def test_explicit_now_overrides_clock(make_service, deck, now):
    service = make_service()
    later = now + timedelta(days=3)

    result = service.rate(USER, PROJECT, "a", Rating.HARD, now=later)

    assert result.state.last_reviewed == later
    assert result.counters.study_date == later.date()
