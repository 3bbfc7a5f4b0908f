from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from recall.domain.errors import StaleWrite
from recall.domain.models import CardRef, CardReviewState
from recall.infrastructure.adapters.sqlite_store import SqliteStore


def test_in_memory_database():
    with SqliteStore(":memory:") as store:
        store.add_card(CardRef("c1", "p", datetime(2024, 1, 1, tzinfo=timezone.utc)))
        assert store.get_card("c1").project_id == "p"


def test_two_connections_share_versions(tmp_path):
    path = tmp_path / "nested" / "recall.db"
    now = datetime(2024, 3, 10, 9, 0, tzinfo=timezone.utc)

    with SqliteStore(path) as first, SqliteStore(path) as second:
        stored = first.save("u", "p", CardReviewState.new("c1", now))
        loaded = second.get_state("u", "p", "c1")
        assert loaded == stored

        second.save("u", "p", loaded)
        with pytest.raises(StaleWrite):
            first.save("u", "p", stored)

        day = date(2024, 3, 10)
        assert first.increment("u", "p", day, "reviews_completed", 1) is not None
        assert second.increment("u", "p", day, "reviews_completed", 1) is None


def test_timestamps_come_back_in_utc(tmp_path):
    local = datetime(2024, 3, 10, 9, 0, tzinfo=ZoneInfo("Europe/Madrid"))

    with SqliteStore(tmp_path / "recall.db") as store:
        store.add_card(CardRef("c1", "p", local))
        card = store.get_card("c1")

    assert card.created_at == local
    assert card.created_at.utcoffset().total_seconds() == 0


def test_unknown_counter_is_rejected(tmp_path):
    with SqliteStore(tmp_path / "recall.db") as store:
        with pytest.raises(ValueError):
            store.increment("u", "p", date(2024, 3, 10), "lapses", 1)
