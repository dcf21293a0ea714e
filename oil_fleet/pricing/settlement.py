"""Розрахунок завершеного дозування: ціна на момент старту + підсумки."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from .financials import calculate_financials
from .resolver import resolve_price
from .schedule import DEFAULT_CURRENCY


@dataclass(frozen=True)
class Settlement:
    price_per_liter: Decimal
    cost_per_liter:  Decimal
    currency:        str
    schedule_id:     UUID | None
    total_cost:      Decimal
    total_profit:    Decimal

    @property
    def is_priced(self) -> bool:
        return self.schedule_id is not None


def settle_dispense(
    backend,
    device_id: str,
    started_at: datetime,
    dispensed_liters,
    default_currency: str = DEFAULT_CURRENCY,
    timeout_ms: int | None = None,
) -> Settlement:
    # ціна береться на момент СТАРТУ, навіть якщо розклад змінився під час дозування
    price = resolve_price(
        backend, device_id, started_at,
        default_currency=default_currency, timeout_ms=timeout_ms,
    )
    totals = calculate_financials(dispensed_liters, price.price_per_liter, price.cost_per_liter)
    return Settlement(
        price_per_liter=price.price_per_liter,
        cost_per_liter=price.cost_per_liter,
        currency=price.currency,
        schedule_id=price.schedule_id,
        total_cost=totals.total_cost,
        total_profit=totals.total_profit,
    )
