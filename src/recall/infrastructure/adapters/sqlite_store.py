"""
SQLite store: Infrastructure adapter for a local SQLite database.

Implements CardCatalog, ReviewStateRepository and DailyCountersRepository.
Review-state writes are conditional on the stored version, and quota
increments are conditional updates inside an immediate transaction, so
several processes may share one database file.
"""

import logging
import sqlite3
import threading
from dataclasses import replace
from datetime import date, datetime, timezone
from pathlib import Path

from recall.domain.errors import StaleWrite
from recall.domain.models import (
    CardRef,
    CardReviewState,
    CardState,
    DailyCounters,
    LearningPhase,
    NewPhase,
    Phase,
    RelearningPhase,
    ReviewPhase,
)
from recall.domain.ports import (
    CardCatalog,
    CounterField,
    DailyCountersRepository,
    ReviewStateRepository,
)

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS cards (
    card_id       TEXT PRIMARY KEY,
    project_id    TEXT NOT NULL,
    created_at    TEXT NOT NULL,
    sibling_group TEXT
);
CREATE INDEX IF NOT EXISTS idx_cards_project ON cards(project_id);

CREATE TABLE IF NOT EXISTS review_states (
    user_id       TEXT NOT NULL,
    project_id    TEXT NOT NULL,
    card_id       TEXT NOT NULL,
    state         TEXT NOT NULL,
    step          INTEGER,
    interval_days INTEGER,
    ease          REAL,
    due           TEXT NOT NULL,
    repetitions   INTEGER NOT NULL DEFAULT 0,
    lapses        INTEGER NOT NULL DEFAULT 0,
    is_suspended  INTEGER NOT NULL DEFAULT 0,
    is_leech      INTEGER NOT NULL DEFAULT 0,
    last_reviewed TEXT,
    version       INTEGER NOT NULL,
    PRIMARY KEY (user_id, project_id, card_id)
);

CREATE TABLE IF NOT EXISTS daily_counters (
    user_id              TEXT NOT NULL,
    project_id           TEXT NOT NULL,
    study_date           TEXT NOT NULL,
    new_cards_introduced INTEGER NOT NULL DEFAULT 0,
    reviews_completed    INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (user_id, project_id, study_date)
);
"""

_COUNTER_COLUMNS = {"new_cards_introduced", "reviews_completed"}

_STATE_COLUMNS = (
    "card_id, state, step, interval_days, ease, due, repetitions, lapses, "
    "is_suspended, is_leech, last_reviewed, version"
)


def _to_text(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat()


def _from_text(value: str | None) -> datetime | None:
    if value is None:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _phase_columns(phase: Phase) -> tuple[str, int | None, int | None, float | None]:
    if isinstance(phase, LearningPhase):
        return CardState.LEARNING.value, phase.step, None, None
    if isinstance(phase, ReviewPhase):
        return CardState.REVIEW.value, None, phase.interval_days, phase.ease
    if isinstance(phase, RelearningPhase):
        return CardState.RELEARNING.value, phase.step, phase.interval_days, phase.ease
    return CardState.NEW.value, None, None, None


def _phase_from_row(state: str, step, interval_days, ease) -> Phase:
    kind = CardState(state)
    if kind == CardState.LEARNING:
        return LearningPhase(step=step)
    if kind == CardState.REVIEW:
        return ReviewPhase(interval_days=interval_days, ease=ease)
    if kind == CardState.RELEARNING:
        return RelearningPhase(step=step, interval_days=interval_days, ease=ease)
    return NewPhase()


def _state_from_row(row: sqlite3.Row) -> CardReviewState:
    return CardReviewState(
        card_id=row["card_id"],
        phase=_phase_from_row(row["state"], row["step"], row["interval_days"], row["ease"]),
        due=_from_text(row["due"]),
        repetitions=row["repetitions"],
        lapses=row["lapses"],
        is_suspended=bool(row["is_suspended"]),
        is_leech=bool(row["is_leech"]),
        last_reviewed=_from_text(row["last_reviewed"]),
        version=row["version"],
    )


class SqliteStore(CardCatalog, ReviewStateRepository, DailyCountersRepository):
    """
    Card catalog, review states and daily counters in one SQLite file.

    Usable as a context manager; the connection is closed on exit.
    """

    def __init__(self, path: Path | str):
        self.path = path
        if str(path) != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(str(path), isolation_level=None, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(SCHEMA)

    def __enter__(self) -> "SqliteStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self._conn.close()

    # ---------- CardCatalog ----------

    def add_card(self, card: CardRef) -> None:
        with self._lock:
            self._conn.execute(
                "INSERT INTO cards (card_id, project_id, created_at, sibling_group) "
                "VALUES (?, ?, ?, ?) "
                "ON CONFLICT(card_id) DO UPDATE SET project_id = excluded.project_id, "
                "sibling_group = excluded.sibling_group",
                (card.card_id, card.project_id, _to_text(card.created_at), card.sibling_group),
            )

    def get_card(self, card_id: str) -> CardRef | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT card_id, project_id, created_at, sibling_group FROM cards "
                "WHERE card_id = ?",
                (card_id,),
            ).fetchone()
        return self._card_from_row(row) if row else None

    def list_cards(self, project_id: str) -> list[CardRef]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT card_id, project_id, created_at, sibling_group FROM cards "
                "WHERE project_id = ?",
                (project_id,),
            ).fetchall()
        cards = [self._card_from_row(row) for row in rows]
        return sorted(cards, key=lambda c: (c.created_at, c.card_id))

    def _card_from_row(self, row: sqlite3.Row) -> CardRef:
        return CardRef(
            card_id=row["card_id"],
            project_id=row["project_id"],
            created_at=_from_text(row["created_at"]),
            sibling_group=row["sibling_group"],
        )

    # ---------- ReviewStateRepository ----------

    def get_state(self, user_id: str, project_id: str, card_id: str) -> CardReviewState | None:
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_STATE_COLUMNS} FROM review_states "
                "WHERE user_id = ? AND project_id = ? AND card_id = ?",
                (user_id, project_id, card_id),
            ).fetchone()
        return _state_from_row(row) if row else None

    def list_for_project(self, user_id: str, project_id: str) -> list[CardReviewState]:
        with self._lock:
            rows = self._conn.execute(
                f"SELECT {_STATE_COLUMNS} FROM review_states "
                "WHERE user_id = ? AND project_id = ? ORDER BY card_id",
                (user_id, project_id),
            ).fetchall()
        return [_state_from_row(row) for row in rows]

    def save(self, user_id: str, project_id: str, state: CardReviewState) -> CardReviewState:
        kind, step, interval_days, ease = _phase_columns(state.phase)
        new_version = state.version + 1
        values = (
            kind,
            step,
            interval_days,
            ease,
            _to_text(state.due),
            state.repetitions,
            state.lapses,
            int(state.is_suspended),
            int(state.is_leech),
            _to_text(state.last_reviewed),
            new_version,
        )

        with self._lock:
            if state.version == 0:
                try:
                    self._conn.execute(
                        "INSERT INTO review_states (user_id, project_id, card_id, state, step, "
                        "interval_days, ease, due, repetitions, lapses, is_suspended, is_leech, "
                        "last_reviewed, version) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                        (user_id, project_id, state.card_id, *values),
                    )
                except sqlite3.IntegrityError:
                    raise self._stale(user_id, project_id, state) from None
            else:
                cur = self._conn.execute(
                    "UPDATE review_states SET state = ?, step = ?, interval_days = ?, ease = ?, "
                    "due = ?, repetitions = ?, lapses = ?, is_suspended = ?, is_leech = ?, "
                    "last_reviewed = ?, version = ? "
                    "WHERE user_id = ? AND project_id = ? AND card_id = ? AND version = ?",
                    (*values, user_id, project_id, state.card_id, state.version),
                )
                if cur.rowcount == 0:
                    raise self._stale(user_id, project_id, state)

        return replace(state, version=new_version)

    def _stale(self, user_id: str, project_id: str, state: CardReviewState) -> StaleWrite:
        row = self._conn.execute(
            "SELECT version FROM review_states WHERE user_id = ? AND project_id = ? AND card_id = ?",
            (user_id, project_id, state.card_id),
        ).fetchone()
        actual = row["version"] if row else None
        logger.warning(
            f"Rejecting stale write for {state.card_id}: expected v{state.version}, stored v{actual}"
        )
        return StaleWrite(state.card_id, state.version, actual)

    # ---------- DailyCountersRepository ----------

    def get_counters(self, user_id: str, project_id: str, study_date: date) -> DailyCounters:
        with self._lock:
            row = self._conn.execute(
                "SELECT new_cards_introduced, reviews_completed FROM daily_counters "
                "WHERE user_id = ? AND project_id = ? AND study_date = ?",
                (user_id, project_id, study_date.isoformat()),
            ).fetchone()
        if row is None:
            return DailyCounters(user_id=user_id, project_id=project_id, study_date=study_date)
        return DailyCounters(
            user_id=user_id,
            project_id=project_id,
            study_date=study_date,
            new_cards_introduced=row["new_cards_introduced"],
            reviews_completed=row["reviews_completed"],
        )

    def increment(
        self,
        user_id: str,
        project_id: str,
        study_date: date,
        counter: CounterField,
        cap: int | None,
    ) -> DailyCounters | None:
        if counter not in _COUNTER_COLUMNS:
            raise ValueError(f"Unknown counter {counter!r}")
        key = (user_id, project_id, study_date.isoformat())

        with self._lock:
            self._conn.execute("BEGIN IMMEDIATE")
            try:
                self._conn.execute(
                    "INSERT OR IGNORE INTO daily_counters (user_id, project_id, study_date) "
                    "VALUES (?, ?, ?)",
                    key,
                )
                cur = self._conn.execute(
                    f"UPDATE daily_counters SET {counter} = {counter} + 1 "
                    "WHERE user_id = ? AND project_id = ? AND study_date = ? "
                    f"AND (? IS NULL OR {counter} + 1 <= ?)",
                    (*key, cap, cap),
                )
                applied = cur.rowcount > 0
                self._conn.execute("COMMIT")
            except Exception:
                self._conn.execute("ROLLBACK")
                raise

        if not applied:
            return None
        return self.get_counters(user_id, project_id, study_date)
