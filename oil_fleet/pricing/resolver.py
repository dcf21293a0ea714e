"""
Schedule Resolver: яка ціна діє для пристрою в заданий момент.

Пріоритет: розклад пристрою → глобальний розклад → нульова ціна.
Відсутність розкладу не є помилкою: дозування не блокується.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone

from .schedule import DEFAULT_CURRENCY, GLOBAL, ResolvedPrice, as_utc, scope_for

log = logging.getLogger(__name__)


def resolve_price(
    backend,
    device_id: str | None,
    at: datetime,
    default_currency: str = DEFAULT_CURRENCY,
    timeout_ms: int | None = None,
) -> ResolvedPrice:
    at = as_utc(at)
    with backend.snapshot(timeout_ms=timeout_ms) as store:
        scopes = [scope_for(device_id)]
        if scopes[0] != GLOBAL:
            scopes.append(GLOBAL)
        for scope in scopes:
            schedule = store.find_covering(scope, at)
            if schedule is not None:
                return ResolvedPrice.from_schedule(schedule)

    log.debug("[%s] no price schedule covers %s: zero price", device_id or "global", at.isoformat())
    return ResolvedPrice.zero(default_currency)


def current_price(
    backend,
    device_id: str | None,
    default_currency: str = DEFAULT_CURRENCY,
    timeout_ms: int | None = None,
) -> ResolvedPrice:
    return resolve_price(
        backend, device_id, datetime.now(timezone.utc),
        default_currency=default_currency, timeout_ms=timeout_ms,
    )
