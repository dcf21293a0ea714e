from .errors import (
    NotFound,
    OverlapConflict,
    PricingError,
    SerializationConflict,
    StorageFailure,
    ValidationFailure,
)
from .financials import Financials, calculate_financials
from .resolver import current_price, resolve_price
from .schedule import (
    GLOBAL,
    DeviceScope,
    GlobalScope,
    PriceSchedule,
    ResolvedPrice,
    ScheduleRequest,
    Scope,
    scope_for,
)
from .settlement import Settlement, settle_dispense
from .store import PgScheduleBackend, PgScheduleStore
from .writer import create_schedule

__all__ = [
    "GLOBAL", "DeviceScope", "GlobalScope", "Scope", "scope_for",
    "PriceSchedule", "ResolvedPrice", "ScheduleRequest",
    "PricingError", "ValidationFailure", "NotFound", "OverlapConflict",
    "StorageFailure", "SerializationConflict",
    "PgScheduleBackend", "PgScheduleStore",
    "create_schedule", "resolve_price", "current_price",
    "Financials", "calculate_financials",
    "Settlement", "settle_dispense",
]
