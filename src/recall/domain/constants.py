"""Centralized constants for the recall scheduling engine.

All magic numbers and configuration defaults live here so every layer
imports from a single source of truth.
"""

# ---------- Ease ----------
STARTING_EASE = 2.5
MINIMUM_EASE = 1.3
EASE_FLOOR = 1.3  # lowest value any project may configure
EASE_CEILING = 5.0
MAXIMUM_EASE_CEILING = 10.0
HARD_EASE_DELTA = 0.15
EASY_EASE_DELTA = 0.15
EASE_PRECISION = 4  # decimal places kept on stored ease

# ---------- Steps (minutes) ----------
LEARNING_STEPS = (1.0, 10.0)
RELEARNING_STEPS = (10.0, 1440.0)
MAX_STEP_MINUTES = 525600.0  # one year

# ---------- Intervals (days) ----------
GRADUATING_INTERVAL = 1
EASY_INTERVAL = 4
MAX_INTERVAL = 36500
EASY_BONUS = 1.3
HARD_INTERVAL_FACTOR = 1.2
LAPSE_RECOVERY_FACTOR = 0.2
LAPSE_EASE_PENALTY = 0.2
INTERVAL_MODIFIER = 1.0

# ---------- Daily limits ----------
NEW_CARDS_PER_DAY = 20
MAX_REVIEWS_PER_DAY = 200

# ---------- Leeches ----------
LEECH_THRESHOLD = 8
LEECH_THRESHOLD_MAX = 20

# ---------- Queue ----------
REVIEW_AHEAD_DAYS = 1
REVIEW_AHEAD_DAYS_MAX = 30

# ---------- Day boundary ----------
DEFAULT_TIMEZONE = "UTC"
