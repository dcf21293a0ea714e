"""
Schedule Writer: створення нового розкладу цін для scope.

Закриття попереднього відкритого розкладу, перевірка перетинів і вставка
виконуються в одній транзакції backend.transaction(): або застосовано все,
або нічого.
"""
from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from uuid import UUID

from .errors import NotFound, OverlapConflict, ValidationFailure
from .schedule import (
    DEFAULT_CURRENCY, DeviceScope, NewSchedule, PriceSchedule, ScheduleRequest, as_utc, to_decimal,
)

log = logging.getLogger(__name__)

MAX_PRICE_PER_LITER = Decimal("10000")

_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")


def _price_field(value, name: str, errors: dict[str, str], *, required: bool, positive: bool) -> Decimal:
    if value is None:
        if required:
            errors[name] = "Price is required"
        return Decimal("0")
    try:
        dec = to_decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        errors[name] = "Must be a number"
        return Decimal("0")
    if not dec.is_finite():
        errors[name] = "Must be a finite number"
    elif positive and dec <= 0:
        errors[name] = "Must be greater than 0"
    elif dec < 0:
        errors[name] = "Must not be negative"
    elif dec > MAX_PRICE_PER_LITER:
        errors[name] = f"Must not exceed {MAX_PRICE_PER_LITER}"
    return dec


def validate_request(
    request: ScheduleRequest,
    now: datetime,
    default_currency: str = DEFAULT_CURRENCY,
) -> NewSchedule:
    """ScheduleRequest → NewSchedule або ValidationFailure з помилками по полях."""
    errors: dict[str, str] = {}

    selling = _price_field(
        request.selling_price_per_liter, "selling_price_per_liter", errors,
        required=True, positive=True,
    )
    cost = _price_field(
        request.cost_price_per_liter, "cost_price_per_liter", errors,
        required=False, positive=False,
    )

    currency = (request.currency or default_currency).strip().upper()
    if not _CURRENCY_RE.match(currency):
        errors["currency"] = "Must be a 3-letter currency code"

    if isinstance(request.scope, DeviceScope) and not request.scope.device_id:
        errors["device_id"] = "Device id must not be empty"

    if errors:
        raise ValidationFailure(errors)

    effective_from = as_utc(request.effective_from) if request.effective_from else as_utc(now)
    return NewSchedule(
        scope=request.scope,
        selling_price_per_liter=selling,
        cost_price_per_liter=cost,
        currency=currency,
        effective_from=effective_from,
    )


def create_schedule(
    backend,
    request: ScheduleRequest,
    created_by: UUID | None = None,
    now: datetime | None = None,
    default_currency: str = DEFAULT_CURRENCY,
    timeout_ms: int | None = None,
) -> PriceSchedule:
    """Додає новий ціновий режим для scope.

    Порядок у транзакції:
      1. знайти відкритий розклад scope;
      2. якщо він почався строго раніше: закрити на new.effective_from;
      3. шукати перетини, крім щойно закритого (якщо не закривали -
         перевіряються всі, включно з відкритим: backdating відхиляється);
      4. вставити новий відкритий розклад.
    """
    record = validate_request(request, now or datetime.now(timezone.utc), default_currency)
    scope = record.scope
    new_from = record.effective_from

    with backend.transaction(timeout_ms=timeout_ms) as store:
        if isinstance(scope, DeviceScope) and not store.device_exists(scope.device_id):
            raise NotFound("Device not found")

        closed_id: UUID | None = None
        open_schedule = store.find_open_schedule(scope)
        if open_schedule is not None and open_schedule.effective_from < new_from:
            store.close(open_schedule.id, new_from)
            closed_id = open_schedule.id

        overlapping = store.find_overlapping(scope, new_from, None, excluding_id=closed_id)
        if overlapping is not None:
            log.warning(
                "[%s] price schedule from %s rejected: overlaps %s [%s, %s)",
                scope.label(), new_from.isoformat(), overlapping.id,
                overlapping.effective_from.isoformat(),
                overlapping.effective_to.isoformat() if overlapping.effective_to else "open",
            )
            raise OverlapConflict()

        created = store.create(record, created_by)

    if closed_id is not None:
        log.info("[%s] closed price schedule %s at %s", scope.label(), closed_id, new_from.isoformat())
    log.info(
        "[%s] created price schedule %s  price=%s cost=%s %s  from=%s",
        scope.label(), created.id, created.selling_price_per_liter,
        created.cost_price_per_liter, created.currency, new_from.isoformat(),
    )
    return created
