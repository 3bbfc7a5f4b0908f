"""
Errors raised by the scheduling engine.

Running out of daily quota is not an error: the tracker reports it as a
False return value.
"""


class RecallError(Exception):
    """Base exception for all scheduling engine errors."""


class InvalidRating(RecallError, ValueError):
    """Raised when a rating is not one of Again, Hard, Good or Easy."""

    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Invalid rating {value!r}: expected Again, Hard, Good or Easy (1-4)")


class UnknownCard(RecallError, LookupError):
    """Raised when a card does not exist or belongs to another project."""

    def __init__(self, card_id: str, project_id: str):
        self.card_id = card_id
        self.project_id = project_id
        super().__init__(f"Card {card_id!r} does not belong to project {project_id!r}")


class InvalidSettings(RecallError, ValueError):
    """Raised when SRS settings fail validation. Values are never silently clamped."""

    def __init__(self, message: str, errors: list[str] | None = None):
        self.errors = errors or []
        super().__init__(message)


class StaleWrite(RecallError):
    """
    Raised when a stored review state changed since it was loaded.

    Callers are expected to reload and retry; the engine never retries.
    """

    def __init__(self, card_id: str, expected_version: int, actual_version: int | None):
        self.card_id = card_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Stale write for card {card_id!r}: expected version {expected_version}, "
            f"found {actual_version if actual_version is not None else 'no record'}"
        )
