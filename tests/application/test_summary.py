from datetime import date, timedelta

from recall.application.summary import summarize
from recall.domain.models import CardReviewState, DailyCounters, LearningPhase


def test_summary_counts(make_card, review_state, now):
    cards = [make_card(cid) for cid in ("n1", "n2", "n3", "l1", "l2", "r1", "r2", "s1")]
    states = [
        CardReviewState("l1", LearningPhase(step=0), due=now - timedelta(minutes=1)),
        CardReviewState("l2", LearningPhase(step=1), due=now + timedelta(minutes=9)),
        review_state("r1", due=now - timedelta(days=1)),
        review_state("r2", due=now + timedelta(days=3)),
        review_state("s1", is_suspended=True, is_leech=True, lapses=8),
    ]
    counters = DailyCounters("alice", "spanish", date(2024, 3, 10), 18, 40)

    summary = summarize(cards, states, now, remaining_new=2, counters=counters)

    assert summary.total == 8
    assert summary.new == 3
    assert summary.learning == 2
    assert summary.review == 2
    assert summary.suspended == 1
    assert summary.leeches == 1
    assert summary.due_learning == 1
    assert summary.due_review == 1
    assert summary.new_available == 2
    assert summary.due_now == 4
    assert summary.new_cards_introduced_today == 18
    assert summary.reviews_completed_today == 40
    assert summary.by_state == {"new": 3, "learning": 2, "review": 2, "relearning": 0}


def test_summary_of_empty_project(now):
    summary = summarize([], [], now, remaining_new=20)

    assert summary.total == 0
    assert summary.due_now == 0
    assert summary.new_cards_introduced_today == 0
