# Application Package
from .service import RateResult, SchedulingService

__all__ = ["RateResult", "SchedulingService"]
