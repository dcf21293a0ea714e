"""
Сховище розкладів цін у PostgreSQL.

PgScheduleStore: операції над одним відкритим з'єднанням (одна транзакція).
PgScheduleBackend: видає такі з'єднання через transaction() / snapshot()
і перекладає помилки psycopg2 у PricingError.

Інваріанти (без перетинів, один відкритий розклад на scope) додатково
тримає схема: partial unique index + EXCLUDE USING gist, див. schema.sql.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, ContextManager, Generator
from uuid import UUID

import psycopg2
import psycopg2.errors
import psycopg2.extras

from .errors import OverlapConflict, SerializationConflict, StorageFailure
from .schedule import DeviceScope, NewSchedule, PriceSchedule, Scope, scope_for

log = logging.getLogger(__name__)

ConnectFn = Callable[..., ContextManager]

_COLUMNS = (
    "id, device_id, selling_price_per_liter, cost_price_per_liter, currency, "
    "effective_from, effective_to, created_at, created_by"
)


def _row_to_schedule(row: dict) -> PriceSchedule:
    return PriceSchedule(
        id=row["id"],
        scope=scope_for(row["device_id"]),
        selling_price_per_liter=row["selling_price_per_liter"],
        cost_price_per_liter=row["cost_price_per_liter"],
        currency=row["currency"],
        effective_from=row["effective_from"],
        effective_to=row["effective_to"],
        created_at=row["created_at"],
        created_by=row.get("created_by"),
    )


def _scope_filter(scope: Scope) -> tuple[str, tuple]:
    """Типізований фільтр scope: device_id IS NULL для GLOBAL."""
    if isinstance(scope, DeviceScope):
        return "device_id = %s", (scope.device_id,)
    return "device_id IS NULL", ()


class PgScheduleStore:
    def __init__(self, conn) -> None:
        self._conn = conn

    def _fetch_one(self, sql: str, params: tuple) -> PriceSchedule | None:
        with self._conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
            cur.execute(sql, params)
            row = cur.fetchone()
        return _row_to_schedule(row) if row else None

    # ── Читання ───────────────────────────────────────────────────────────────

    def device_exists(self, device_id: str) -> bool:
        with self._conn.cursor() as cur:
            cur.execute("SELECT 1 FROM devices WHERE device_id = %s", (device_id,))
            return cur.fetchone() is not None

    def find_open_schedule(self, scope: Scope) -> PriceSchedule | None:
        where, params = _scope_filter(scope)
        # FOR UPDATE: другий writer того ж scope чекає на наш commit
        return self._fetch_one(
            f"SELECT {_COLUMNS} FROM price_schedules "
            f"WHERE {where} AND effective_to IS NULL "
            f"ORDER BY effective_from DESC LIMIT 1 FOR UPDATE",
            params,
        )

    def find_overlapping(
        self,
        scope: Scope,
        new_from: datetime,
        new_to: datetime | None,
        excluding_id: UUID | None = None,
    ) -> PriceSchedule | None:
        where, params = _scope_filter(scope)
        clauses = [where, "(effective_to IS NULL OR effective_to > %s)"]
        params = params + (new_from,)
        if new_to is not None:
            clauses.append("effective_from < %s")
            params = params + (new_to,)
        if excluding_id is not None:
            clauses.append("id <> %s")
            params = params + (str(excluding_id),)
        return self._fetch_one(
            f"SELECT {_COLUMNS} FROM price_schedules "
            f"WHERE {' AND '.join(clauses)} "
            f"ORDER BY effective_from LIMIT 1",
            params,
        )

    def find_covering(self, scope: Scope, at: datetime) -> PriceSchedule | None:
        where, params = _scope_filter(scope)
        return self._fetch_one(
            f"SELECT {_COLUMNS} FROM price_schedules "
            f"WHERE {where} AND effective_from <= %s "
            f"  AND (effective_to IS NULL OR effective_to > %s) "
            f"ORDER BY effective_from DESC LIMIT 1",
            params + (at, at),
        )

    def list_schedules(self, scope: Scope | None = None) -> list[PriceSchedule]:
        sql = f"SELECT {_COLUMNS} FROM price_schedules"
        params: tuple = ()
        if scope is not None:
            where, params = _scope_filter(scope)
            sql += f" WHERE {where}"
        sql += " ORDER BY effective_from DESC"
        with self._conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
            cur.execute(sql, params)
            return [_row_to_schedule(r) for r in cur.fetchall()]

    # ── Запис ─────────────────────────────────────────────────────────────────

    def create(self, record: NewSchedule, created_by: UUID | None = None) -> PriceSchedule:
        with self._conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
            cur.execute(
                f"""
                INSERT INTO price_schedules
                    (device_id, selling_price_per_liter, cost_price_per_liter,
                     currency, effective_from, effective_to, created_by)
                VALUES (%s, %s, %s, %s, %s, NULL, %s)
                RETURNING {_COLUMNS}
                """,
                (
                    record.scope.device_id,
                    record.selling_price_per_liter,
                    record.cost_price_per_liter,
                    record.currency,
                    record.effective_from,
                    str(created_by) if created_by else None,
                ),
            )
            return _row_to_schedule(cur.fetchone())

    def close(self, schedule_id: UUID, effective_to: datetime) -> None:
        with self._conn.cursor() as cur:
            cur.execute(
                "UPDATE price_schedules SET effective_to = %s "
                "WHERE id = %s AND effective_to IS NULL",
                (effective_to, str(schedule_id)),
            )
            if cur.rowcount != 1:
                # хтось закрив його між SELECT і UPDATE
                raise SerializationConflict()


class PgScheduleBackend:
    """Транзакційна обгортка над database.get_conn."""

    def __init__(self, connect: ConnectFn, statement_timeout_ms: int | None = None) -> None:
        self._connect = connect
        self._timeout_ms = statement_timeout_ms

    @contextmanager
    def transaction(self, timeout_ms: int | None = None) -> Generator[PgScheduleStore, None, None]:
        """SERIALIZABLE read-write транзакція: commit при успіху, rollback інакше."""
        with self._translate_errors():
            with self._connect(
                serializable=True,
                statement_timeout_ms=timeout_ms or self._timeout_ms,
            ) as conn:
                yield PgScheduleStore(conn)

    @contextmanager
    def snapshot(self, timeout_ms: int | None = None) -> Generator[PgScheduleStore, None, None]:
        """Read-only транзакція для резолвера."""
        with self._translate_errors():
            with self._connect(
                read_only=True,
                statement_timeout_ms=timeout_ms or self._timeout_ms,
            ) as conn:
                yield PgScheduleStore(conn)

    @staticmethod
    @contextmanager
    def _translate_errors() -> Generator[None, None, None]:
        try:
            yield
        except psycopg2.errors.SerializationFailure as exc:
            log.warning("price_schedules serialization failure: %s", exc)
            raise SerializationConflict() from exc
        except (psycopg2.errors.UniqueViolation, psycopg2.errors.ExclusionViolation) as exc:
            log.warning("price_schedules constraint rejected write: %s", exc)
            raise OverlapConflict() from exc
        except psycopg2.errors.QueryCanceled as exc:
            log.error("price_schedules statement cancelled (deadline): %s", exc)
            raise StorageFailure("Storage deadline exceeded") from exc
        except psycopg2.Error as exc:
            log.error("price_schedules storage error: %s", exc)
            raise StorageFailure() from exc
