from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query, status

from oil_fleet.api.config import settings
from oil_fleet.api.dependencies import (
    AuthUser, get_current_user, get_schedule_backend, require_owner,
)
from oil_fleet.api.models.pricing import (
    PriceScheduleCreate, PriceScheduleOut, ResolvedPriceOut,
)
from oil_fleet.pricing import (
    GLOBAL, PgScheduleBackend, ScheduleRequest, Scope, create_schedule, current_price, scope_for,
)

router = APIRouter(tags=["prices"])


def _scope_param(device_id: str | None) -> Scope:
    """'global' або порожній: глобальний scope, інакше пристрій."""
    return GLOBAL if device_id == "global" else scope_for(device_id)


@router.get("/owner/prices")
def list_prices(
    device_id: str | None = Query(default=None, description="'global': лише глобальні"),
    owner: AuthUser = Depends(require_owner),
    backend: PgScheduleBackend = Depends(get_schedule_backend),
) -> dict:
    scope = _scope_param(device_id) if device_id else None

    with backend.snapshot() as store:
        schedules = store.list_schedules(scope)

    now = datetime.now(timezone.utc)
    return {
        "ok": True,
        "schedules": [PriceScheduleOut.from_schedule(s, now) for s in schedules],
    }


@router.post("/owner/prices", status_code=status.HTTP_201_CREATED)
def create_price(
    body: PriceScheduleCreate,
    owner: AuthUser = Depends(require_owner),
    backend: PgScheduleBackend = Depends(get_schedule_backend),
) -> dict:
    request = ScheduleRequest(
        scope=_scope_param(body.device_id),
        selling_price_per_liter=body.selling_price_per_liter,
        cost_price_per_liter=body.cost_price_per_liter,
        currency=body.currency,
        effective_from=body.effective_from,
    )
    schedule = create_schedule(
        backend, request,
        created_by=owner.id,
        default_currency=settings.default_currency,
    )
    return {
        "ok": True,
        "schedule": PriceScheduleOut.from_schedule(schedule, datetime.now(timezone.utc)),
    }


@router.get("/prices/current")
def get_current_price(
    device_id: str | None = Query(default=None),
    current_user: AuthUser = Depends(get_current_user),
    backend: PgScheduleBackend = Depends(get_schedule_backend),
) -> ResolvedPriceOut:
    price = current_price(backend, device_id, default_currency=settings.default_currency)
    return ResolvedPriceOut.from_resolved(price)
