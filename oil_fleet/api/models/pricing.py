from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel

from oil_fleet.pricing import PriceSchedule, ResolvedPrice


class PriceScheduleCreate(BaseModel):
    device_id:               str | None = None       # None = global
    selling_price_per_liter: Decimal | None = None   # обов'язкова, перевіряє Writer (400)
    cost_price_per_liter:    Decimal | None = None
    currency:                str | None = None
    effective_from:          datetime | None = None  # None = зараз


class PriceScheduleOut(BaseModel):
    id:                      UUID
    device_id:               str | None
    site_name:               str
    currency:                str
    selling_price_per_liter: float
    cost_price_per_liter:    float
    effective_from:          datetime
    effective_to:            datetime | None
    created_at:              datetime
    created_by:              UUID | None
    is_active:               bool

    @classmethod
    def from_schedule(cls, s: PriceSchedule, now: datetime) -> PriceScheduleOut:
        return cls(
            id=s.id,
            device_id=s.scope.device_id,
            site_name=s.scope.label(),
            currency=s.currency,
            selling_price_per_liter=s.selling_price_per_liter,
            cost_price_per_liter=s.cost_price_per_liter,
            effective_from=s.effective_from,
            effective_to=s.effective_to,
            created_at=s.created_at,
            created_by=s.created_by,
            is_active=s.covers(now),
        )


class ResolvedPriceOut(BaseModel):
    price_per_liter: float
    cost_per_liter:  float
    currency:        str
    schedule_id:     UUID | None

    @classmethod
    def from_resolved(cls, p: ResolvedPrice) -> ResolvedPriceOut:
        return cls(
            price_per_liter=p.price_per_liter,
            cost_per_liter=p.cost_per_liter,
            currency=p.currency,
            schedule_id=p.schedule_id,
        )
