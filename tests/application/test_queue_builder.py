from datetime import timedelta

import pytest

from recall.application.queue_builder import QueueAssembler
from recall.domain.models import CardReviewState, LearningPhase, NewPhase, RelearningPhase
from recall.domain.settings import SRSSettings


@pytest.fixture
def assembler():
    return QueueAssembler()


@pytest.fixture
def deck(make_card, review_state, now):
    """A project with learning, review, new and suspended cards."""
    cards = [
        make_card("L1"),
        make_card("L2"),
        make_card("L3"),
        make_card("R1"),
        make_card("R2"),
        make_card("R3"),
        make_card("N1"),
        make_card("N2"),
        make_card("N3"),
        make_card("S1"),
        make_card("S2"),
    ]
    states = [
        CardReviewState("L1", LearningPhase(step=0), due=now - timedelta(minutes=5)),
        CardReviewState(
            "L2",
            RelearningPhase(step=0, interval_days=8, ease=2.3),
            due=now - timedelta(minutes=10),
        ),
        CardReviewState("L3", LearningPhase(step=1), due=now + timedelta(minutes=10)),
        review_state("R1", due=now - timedelta(days=1)),
        review_state("R2", due=now - timedelta(days=3)),
        review_state("R3", due=now + timedelta(hours=12)),
        review_state("S1", due=now - timedelta(days=5), is_suspended=True),
        CardReviewState("S2", NewPhase(), due=now, is_suspended=True),
    ]
    return cards, states


def _build(assembler, deck, now, settings=None, remaining_new=20, remaining_reviews=None, seed=1):
    cards, states = deck
    return list(
        assembler.build_queue(
            cards,
            states,
            settings or SRSSettings(new_card_order="fifo"),
            remaining_new=remaining_new,
            remaining_reviews=remaining_reviews,
            now=now,
            seed=seed,
        )
    )


def test_precedence_learning_then_review_then_new(assembler, deck, now):
    queue = _build(assembler, deck, now)

    assert queue == ["L2", "L1", "R2", "R1", "N1", "N2", "N3"]


def test_suspended_cards_never_appear(assembler, deck, now):
    queue = _build(assembler, deck, now)

    assert "S1" not in queue
    assert "S2" not in queue


def test_new_cards_capped_by_remaining_slots(assembler, deck, now):
    assert _build(assembler, deck, now, remaining_new=2)[-2:] == ["N1", "N2"]
    assert not {"N1", "N2", "N3"} & set(_build(assembler, deck, now, remaining_new=0))


def test_reviews_capped_by_remaining_slots(assembler, deck, now):
    queue = _build(assembler, deck, now, remaining_reviews=1)

    assert queue == ["L2", "L1", "R2", "N1", "N2", "N3"]


def test_review_ahead_includes_cards_due_within_window(assembler, deck, now):
    settings = SRSSettings(new_card_order="fifo", review_ahead=True, review_ahead_days=1)

    queue = _build(assembler, deck, now, settings=settings)

    assert queue[2:5] == ["R2", "R1", "R3"]
    # Learning cards are never pulled ahead
    assert "L3" not in queue


def test_random_order_is_deterministic_for_a_seed(assembler, deck, now):
    settings = SRSSettings(new_card_order="random")

    first = _build(assembler, deck, now, settings=settings, seed=42)
    second = _build(assembler, deck, now, settings=settings, seed=42)

    assert first == second
    assert first[:4] == ["L2", "L1", "R2", "R1"]
    assert sorted(first[4:]) == ["N1", "N2", "N3"]


def test_random_order_respects_cap(assembler, deck, now):
    settings = SRSSettings(new_card_order="random")

    queue = _build(assembler, deck, now, settings=settings, remaining_new=1, seed=7)

    assert len([c for c in queue if c.startswith("N")]) == 1


def test_build_is_lazy(assembler, deck, now):
    cards, states = deck
    queue = assembler.build_queue(
        cards, states, SRSSettings(new_card_order="fifo"), remaining_new=5,
        remaining_reviews=None, now=now,
    )

    assert next(queue) == "L2"
    assert next(queue) == "L1"


def test_empty_project_yields_nothing(assembler, now):
    assert list(assembler.build_queue([], [], SRSSettings(), 20, None, now)) == []


# --- Sibling burying ---


@pytest.fixture
def sibling_deck(make_card, review_state, now):
    cards = [
        make_card("C", sibling_group="g2"),
        make_card("D", sibling_group="g2"),
        make_card("A", sibling_group="g1"),
        make_card("B", sibling_group="g1"),
        make_card("E"),
    ]
    states = [
        CardReviewState("C", LearningPhase(step=0), due=now - timedelta(minutes=1)),
        review_state("D", due=now - timedelta(days=1)),
        review_state("A", due=now - timedelta(hours=1)),
    ]
    return cards, states


def test_bury_siblings_drops_later_cards_of_a_group(assembler, sibling_deck, now):
    settings = SRSSettings(new_card_order="fifo", bury_siblings=True)

    queue = _build(assembler, sibling_deck, now, settings=settings)

    assert queue == ["C", "A", "E"]


def test_siblings_all_appear_without_burying(assembler, sibling_deck, now):
    queue = _build(assembler, sibling_deck, now)

    assert queue == ["C", "D", "A", "B", "E"]


def test_select_exposes_buckets(assembler, deck, now):
    cards, states = deck

    buckets = assembler.select(
        cards, states, SRSSettings(new_card_order="fifo"), 1, None, now
    )

    assert [c.card_id for c in buckets.learning] == ["L2", "L1"]
    assert [c.card_id for c in buckets.review] == ["R2", "R1"]
    assert [c.card_id for c in buckets.new] == ["N1"]
