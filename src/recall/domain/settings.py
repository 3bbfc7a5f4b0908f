"""
Per-project SRS settings.

Settings are immutable and validated at construction. Anything outside the
accepted ranges raises InvalidSettings; nothing is clamped or replaced by a
default behind the caller's back.
"""

import math
from collections.abc import Mapping
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from . import constants as c
from .errors import InvalidSettings


class LeechAction(str, Enum):
    SUSPEND = "suspend"
    TAG = "tag"


class NewCardOrder(str, Enum):
    RANDOM = "random"
    FIFO = "fifo"


class SRSSettings(BaseModel):
    """
    Scheduling configuration for one project.

    Accepts snake_case field names or the upper-case keys used by stored
    settings documents (e.g. ``LEARNING_STEPS``).
    """

    model_config = ConfigDict(
        frozen=True, populate_by_name=True, extra="forbid", allow_inf_nan=False
    )

    # Daily limits
    new_cards_per_day: int = Field(c.NEW_CARDS_PER_DAY, ge=0, alias="NEW_CARDS_PER_DAY")
    max_reviews_per_day: Annotated[int, Field(ge=0)] | None = Field(
        c.MAX_REVIEWS_PER_DAY, alias="MAX_REVIEWS_PER_DAY"
    )  # None = unlimited

    # Steps in minutes
    learning_steps: tuple[float, ...] = Field(c.LEARNING_STEPS, alias="LEARNING_STEPS")
    relearning_steps: tuple[float, ...] = Field(c.RELEARNING_STEPS, alias="RELEARNING_STEPS")

    # Intervals in days
    graduating_interval: int = Field(c.GRADUATING_INTERVAL, ge=1, alias="GRADUATING_INTERVAL")
    easy_interval: int = Field(c.EASY_INTERVAL, ge=1, alias="EASY_INTERVAL")
    max_interval: int = Field(c.MAX_INTERVAL, ge=1, le=c.MAX_INTERVAL, alias="MAX_INTERVAL")

    # Ease
    starting_ease: float = Field(
        c.STARTING_EASE, ge=c.EASE_FLOOR, le=c.EASE_CEILING, alias="STARTING_EASE"
    )
    minimum_ease: float = Field(
        c.MINIMUM_EASE, ge=c.EASE_FLOOR, le=c.EASE_CEILING, alias="MINIMUM_EASE"
    )
    maximum_ease: Annotated[float, Field(le=c.MAXIMUM_EASE_CEILING)] | None = Field(
        None, alias="MAXIMUM_EASE"
    )

    # Multipliers
    easy_bonus: float = Field(c.EASY_BONUS, ge=1.0, le=3.0, alias="EASY_BONUS")
    hard_interval_factor: float = Field(
        c.HARD_INTERVAL_FACTOR, ge=0.1, le=2.0, alias="HARD_INTERVAL_FACTOR"
    )
    lapse_recovery_factor: float = Field(
        c.LAPSE_RECOVERY_FACTOR, ge=0.0, le=1.0, alias="LAPSE_RECOVERY_FACTOR"
    )
    lapse_ease_penalty: float = Field(
        c.LAPSE_EASE_PENALTY, ge=0.0, le=1.0, alias="LAPSE_EASE_PENALTY"
    )
    interval_modifier: float = Field(
        c.INTERVAL_MODIFIER, ge=0.1, le=3.0, alias="INTERVAL_MODIFIER"
    )

    # Leeches
    leech_threshold: int = Field(
        c.LEECH_THRESHOLD, ge=1, le=c.LEECH_THRESHOLD_MAX, alias="LEECH_THRESHOLD"
    )
    leech_action: LeechAction = Field(LeechAction.SUSPEND, alias="LEECH_ACTION")

    # Queue options
    new_card_order: NewCardOrder = Field(NewCardOrder.RANDOM, alias="NEW_CARD_ORDER")
    review_ahead: bool = Field(False, alias="REVIEW_AHEAD")
    review_ahead_days: int = Field(
        c.REVIEW_AHEAD_DAYS, ge=0, le=c.REVIEW_AHEAD_DAYS_MAX, alias="REVIEW_AHEAD_DAYS"
    )
    bury_siblings: bool = Field(False, alias="BURY_SIBLINGS")

    def __init__(self, **data: Any):
        try:
            super().__init__(**data)
        except ValidationError as e:
            raise _to_invalid_settings(e) from e

    @classmethod
    def model_validate(cls, obj: Any, **kwargs: Any) -> "SRSSettings":
        try:
            return super().model_validate(obj, **kwargs)
        except ValidationError as e:
            raise _to_invalid_settings(e) from e

    @classmethod
    def model_validate_json(cls, json_data: str | bytes, **kwargs: Any) -> "SRSSettings":
        try:
            return super().model_validate_json(json_data, **kwargs)
        except ValidationError as e:
            raise _to_invalid_settings(e) from e

    @field_validator("learning_steps", "relearning_steps")
    @classmethod
    def check_steps(cls, v: tuple[float, ...]) -> tuple[float, ...]:
        if not v:
            raise ValueError("at least one step is required")
        for step in v:
            if not math.isfinite(step) or step <= 0:
                raise ValueError(f"steps must be positive minutes, got {step}")
            if step > c.MAX_STEP_MINUTES:
                raise ValueError(
                    f"steps must not exceed {c.MAX_STEP_MINUTES:g} minutes, got {step}"
                )
        return v

    @model_validator(mode="after")
    def check_ease_bounds(self) -> "SRSSettings":
        if self.minimum_ease > self.starting_ease:
            raise ValueError(
                f"minimum_ease ({self.minimum_ease}) exceeds starting_ease ({self.starting_ease})"
            )
        if self.maximum_ease is not None and self.maximum_ease < self.starting_ease:
            raise ValueError(
                f"maximum_ease ({self.maximum_ease}) is below starting_ease ({self.starting_ease})"
            )
        return self

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "SRSSettings":
        """
        Build settings from a loosely-typed document (YAML, JSON, database row).

        Raises:
            InvalidSettings: If the document is not a mapping or any value is invalid.
        """
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise InvalidSettings(
                f"Settings must be a mapping, got {type(data).__name__}",
                [f"expected mapping, got {type(data).__name__}"],
            )
        return cls(**dict(data))

    def to_document(self) -> dict[str, Any]:
        """Dump using the upper-case keys of stored settings documents."""
        return self.model_dump(mode="json", by_alias=True)


def _to_invalid_settings(e: ValidationError) -> InvalidSettings:
    errors = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "settings"
        errors.append(f"{loc}: {err.get('msg')}")
    return InvalidSettings("Invalid SRS settings: " + "; ".join(errors), errors)
