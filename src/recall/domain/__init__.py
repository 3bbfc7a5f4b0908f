# Domain Package
from .errors import InvalidRating, InvalidSettings, RecallError, StaleWrite, UnknownCard
from .models import CardRef, CardReviewState, CardState, DailyCounters, DeckSummary, Rating
from .settings import SRSSettings

__all__ = [
    "CardRef",
    "CardReviewState",
    "CardState",
    "DailyCounters",
    "DeckSummary",
    "Rating",
    "SRSSettings",
    "RecallError",
    "InvalidRating",
    "InvalidSettings",
    "StaleWrite",
    "UnknownCard",
]
