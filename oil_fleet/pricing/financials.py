"""
Фінансові підсумки дозування.

Округлення: Decimal.quantize(0.01, ROUND_HALF_UP): половина від нуля.
Ті ж правила використовують звіти, тому змінювати лише разом з ними.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from .errors import ValidationFailure
from .schedule import to_decimal

CENT = Decimal("0.01")


@dataclass(frozen=True)
class Financials:
    total_cost:   Decimal
    total_profit: Decimal


def round_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _number(value, name: str) -> Decimal:
    try:
        return to_decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationFailure({name: "Must be a number"})


def calculate_financials(dispensed_liters, price_per_liter, cost_per_liter) -> Financials:
    liters = _number(dispensed_liters, "dispensed_liters")
    price  = _number(price_per_liter, "price_per_liter")
    cost   = _number(cost_per_liter, "cost_per_liter")

    if not liters.is_finite() or liters < 0:
        raise ValidationFailure({"dispensed_liters": "Must not be negative"})

    return Financials(
        total_cost=round_money(liters * price),
        total_profit=round_money(liters * (price - cost)),
    )
