"""
Типи розкладу цін.

Розклад діє на напіввідкритому інтервалі [effective_from, effective_to).
effective_to = None: розклад «відкритий», діє до наступної зміни ціни.
Scope: або весь парк (GLOBAL), або конкретний пристрій.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Union
from uuid import UUID


# ── Scope ─────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class GlobalScope:
    @property
    def device_id(self) -> None:
        return None

    def label(self) -> str:
        return "Global"


@dataclass(frozen=True)
class DeviceScope:
    device_id: str

    def label(self) -> str:
        return self.device_id


Scope = Union[GlobalScope, DeviceScope]

GLOBAL = GlobalScope()

DEFAULT_CURRENCY = "ZMW"


def to_decimal(value) -> Decimal:
    """float → Decimal через str, щоб 25.555 лишалось 25.555."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise InvalidOperation("bool is not a number")
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def scope_for(device_id: str | None) -> Scope:
    """None або '' → GLOBAL, інакше DeviceScope."""
    return DeviceScope(device_id) if device_id else GLOBAL


# ── Час ───────────────────────────────────────────────────────────────────────

def as_utc(dt: datetime) -> datetime:
    """Naive datetime вважається UTC; aware: приводиться до UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def intervals_overlap(
    a_from: datetime,
    a_to: datetime | None,
    b_from: datetime,
    b_to: datetime | None,
) -> bool:
    """Перетин [a_from, a_to) і [b_from, b_to); None: +нескінченність."""
    a_before_b_ends = b_to is None or a_from < b_to
    b_before_a_ends = a_to is None or b_from < a_to
    return a_before_b_ends and b_before_a_ends


# ── Записи ────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PriceSchedule:
    id:                      UUID
    scope:                   Scope
    selling_price_per_liter: Decimal
    cost_price_per_liter:    Decimal
    currency:                str
    effective_from:          datetime
    effective_to:            datetime | None
    created_at:              datetime
    created_by:              UUID | None = None

    @property
    def is_open(self) -> bool:
        return self.effective_to is None

    def covers(self, at: datetime) -> bool:
        return self.effective_from <= at and (
            self.effective_to is None or self.effective_to > at
        )

    def overlaps(self, new_from: datetime, new_to: datetime | None) -> bool:
        return intervals_overlap(self.effective_from, self.effective_to, new_from, new_to)


@dataclass(frozen=True)
class ScheduleRequest:
    """Намір власника: нова ціна для scope. Порожні поля заповнює Writer."""

    scope:                   Scope
    selling_price_per_liter: Decimal | float | int | None
    cost_price_per_liter:    Decimal | float | int | None = None
    currency:                str | None = None
    effective_from:          datetime | None = None


@dataclass(frozen=True)
class NewSchedule:
    """Провалідований запис, готовий до вставки в сховище."""

    scope:                   Scope
    selling_price_per_liter: Decimal
    cost_price_per_liter:    Decimal
    currency:                str
    effective_from:          datetime


@dataclass(frozen=True)
class ResolvedPrice:
    price_per_liter: Decimal
    cost_per_liter:  Decimal
    currency:        str
    schedule_id:     UUID | None

    @classmethod
    def zero(cls, currency: str) -> ResolvedPrice:
        return cls(Decimal("0"), Decimal("0"), currency, None)

    @classmethod
    def from_schedule(cls, schedule: PriceSchedule) -> ResolvedPrice:
        return cls(
            price_per_liter=schedule.selling_price_per_liter,
            cost_per_liter=schedule.cost_price_per_liter,
            currency=schedule.currency,
            schedule_id=schedule.id,
        )
