"""
Ендпоінти для пристроїв (X-Device-Id / X-Api-Key).

GET  /device/config  : поточна ціна після логіну оператора.
POST /ingest/receipt : квитанція дозування: ціна на момент старту,
                        підсумки, idempotent upsert по session_id.
"""
from __future__ import annotations

import logging
import time
from datetime import datetime, timezone

import psycopg2.extras
from fastapi import APIRouter, Depends, HTTPException, status

from oil_fleet.api.config import settings
from oil_fleet.api.database import get_conn
from oil_fleet.api.dependencies import (
    AuthDevice, config_device, get_schedule_backend, ingest_device,
)
from oil_fleet.api.models.dispense import ReceiptIn
from oil_fleet.api.models.pricing import ResolvedPriceOut
from oil_fleet.pricing import (
    Financials, PgScheduleBackend, Settlement, calculate_financials, current_price, settle_dispense,
)

log = logging.getLogger(__name__)

router = APIRouter(tags=["device"])


def _touch_device(device_id: str) -> None:
    with get_conn() as conn:
        with conn.cursor() as cur:
            cur.execute(
                "UPDATE devices SET last_seen_at = now() WHERE device_id = %s",
                (device_id,),
            )


@router.get("/device/config")
def device_config(
    device: AuthDevice = Depends(config_device),
    backend: PgScheduleBackend = Depends(get_schedule_backend),
) -> dict:
    _touch_device(device.device_id)
    price = current_price(backend, device.device_id, default_currency=settings.default_currency)
    return {
        "ok":        True,
        "device_id": device.device_id,
        "site_name": device.site_name,
        "price":     ResolvedPriceOut.from_resolved(price),
        "timestamp": int(time.time() * 1000),
    }


# ── Receipt ───────────────────────────────────────────────────────────────────

def _verified_operator(cur, operator_id, owner_id) -> str | None:
    """operator_id лише якщо оператор активний і належить власнику пристрою."""
    if operator_id is None or owner_id is None:
        return None
    cur.execute(
        "SELECT id FROM operators WHERE id = %s AND owner_id = %s AND is_active",
        (str(operator_id), str(owner_id)),
    )
    row = cur.fetchone()
    return str(row["id"]) if row else None


_RETURNING = "RETURNING id, session_id, status, price_per_liter, total_cost, currency"


def _lock_existing(cur, session_id: str) -> dict | None:
    cur.execute(
        "SELECT id, device_id, price_per_liter, cost_per_liter FROM dispense_transactions "
        "WHERE session_id = %s FOR UPDATE",
        (session_id,),
    )
    return cur.fetchone()


def _update_existing(cur, device: AuthDevice, body: ReceiptIn, ended_at: datetime,
                     s: Settlement, existing: dict) -> dict:
    if existing["device_id"] != device.device_id:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Session belongs to another device",
        )
    # повторна доставка: вже оцінену транзакцію не переоцінюємо,
    # але підсумки рахуємо з нових літрів за збереженою ціною
    reprice = not existing["price_per_liter"]
    if reprice:
        totals = Financials(s.total_cost, s.total_profit)
    else:
        totals = calculate_financials(
            body.dispensed_liters, existing["price_per_liter"], existing["cost_per_liter"],
        )
    cur.execute(
        f"""
        UPDATE dispense_transactions
        SET ended_at          = %s,
            status            = %s,
            dispensed_liters  = %s,
            duration_sec      = %s,
            error_message     = %s,
            price_per_liter   = CASE WHEN %s THEN %s ELSE price_per_liter END,
            cost_per_liter    = CASE WHEN %s THEN %s ELSE cost_per_liter END,
            currency          = CASE WHEN %s THEN %s ELSE currency END,
            price_schedule_id = CASE WHEN %s THEN %s ELSE price_schedule_id END,
            total_cost        = %s,
            total_profit      = %s
        WHERE id = %s
        {_RETURNING}
        """,
        (
            ended_at, body.status, body.dispensed_liters,
            body.duration_sec, body.error_message,
            reprice, s.price_per_liter,
            reprice, s.cost_per_liter,
            reprice, s.currency,
            reprice, str(s.schedule_id) if s.schedule_id else None,
            totals.total_cost, totals.total_profit,
            existing["id"],
        ),
    )
    return dict(cur.fetchone())


def _save_dispense(
    device: AuthDevice,
    body: ReceiptIn,
    started_at: datetime,
    ended_at: datetime,
    s: Settlement,
) -> tuple[dict, bool]:
    """INSERT або UPDATE dispense_transactions. Повертає (row, updated)."""
    with get_conn() as conn:
        with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
            existing = _lock_existing(cur, body.session_id)
            if existing:
                return _update_existing(cur, device, body, ended_at, s, existing), True

            operator_id = _verified_operator(cur, body.operator_id, device.owner_id)
            if body.operator_id and not operator_id:
                log.warning(
                    '[%s] unknown or inactive operator %s for session %s',
                    device.device_id, body.operator_id, body.session_id,
                )
            cur.execute(
                f"""
                INSERT INTO dispense_transactions
                    (device_id, operator_id, session_id, started_at, ended_at, status,
                     target_liters, dispensed_liters, duration_sec, error_message,
                     price_per_liter, cost_per_liter, total_cost, total_profit,
                     currency, price_schedule_id)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                ON CONFLICT (session_id) DO NOTHING
                {_RETURNING}
                """,
                (
                    device.device_id, operator_id, body.session_id, started_at, ended_at,
                    body.status, body.target_liters, body.dispensed_liters,
                    body.duration_sec, body.error_message,
                    s.price_per_liter, s.cost_per_liter, s.total_cost, s.total_profit,
                    s.currency, str(s.schedule_id) if s.schedule_id else None,
                ),
            )
            row = cur.fetchone()
            if row is not None:
                return dict(row), False

            # паралельна доставка тієї ж сесії вставила рядок першою
            log.info('[%s] session %s inserted concurrently: updating',
                     device.device_id, body.session_id)
            existing = _lock_existing(cur, body.session_id)
            if existing is None:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="Concurrent receipt for this session, retry",
                )
            return _update_existing(cur, device, body, ended_at, s, existing), True


@router.post("/ingest/receipt")
def ingest_receipt(
    body: ReceiptIn,
    device: AuthDevice = Depends(ingest_device),
    backend: PgScheduleBackend = Depends(get_schedule_backend),
) -> dict:
    _touch_device(device.device_id)

    started_at = datetime.fromtimestamp(body.started_at_unix, tz=timezone.utc)
    ended_at = (
        datetime.fromtimestamp(body.ended_at_unix, tz=timezone.utc)
        if body.ended_at_unix else datetime.now(timezone.utc)
    )

    settlement = settle_dispense(
        backend, device.device_id, started_at, body.dispensed_liters,
        default_currency=settings.default_currency,
    )
    if not settlement.is_priced:
        log.warning('[%s] no price schedule at %s: settled at zero price',
                    device.device_id, started_at.isoformat())

    row, updated = _save_dispense(device, body, started_at, ended_at, settlement)
    log.info(
        '[%s] receipt %s  %s  %.2fL  total=%s %s%s',
        device.device_id, body.session_id, body.status, body.dispensed_liters,
        row["total_cost"], row["currency"], '  (updated)' if updated else '',
    )
    return {
        "ok": True,
        "transaction": {
            "id":         str(row["id"]),
            "session_id": row["session_id"],
            "status":     row["status"],
        },
        "pricing": {
            "price_per_liter": float(row["price_per_liter"]),
            "total_cost":      float(row["total_cost"]),
            "currency":        row["currency"],
        },
        "updated": updated,
    }
