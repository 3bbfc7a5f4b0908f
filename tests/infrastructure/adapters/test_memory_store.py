import threading
from datetime import date

from recall.infrastructure.adapters.memory_store import InMemoryStore


def test_concurrent_increments_never_exceed_cap():
    store = InMemoryStore()
    day = date(2024, 3, 10)
    granted = []

    def worker():
        for _ in range(20):
            if store.increment("u", "p", day, "new_cards_introduced", 25) is not None:
                granted.append(1)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(granted) == 25
    assert store.get_counters("u", "p", day).new_cards_introduced == 25
