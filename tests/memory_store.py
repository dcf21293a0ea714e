"""
In-memory реалізація контракту сховища розкладів для тестів ядра.

transaction() працює над копією і підміняє стан лише при успішному
виході (copy-on-commit); транзакції серіалізовані локом: це модель
SERIALIZABLE-ізоляції PostgreSQL без самої бази.
"""
from __future__ import annotations

import dataclasses
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone

from oil_fleet.pricing.schedule import NewSchedule, PriceSchedule, Scope


class MemoryScheduleStore:
    def __init__(self, backend: MemoryScheduleBackend, rows: dict, read_only: bool = False) -> None:
        self._backend = backend
        self._rows = rows
        self._read_only = read_only

    def _in_scope(self, scope: Scope) -> list[PriceSchedule]:
        return [s for s in self._rows.values() if s.scope == scope]

    def device_exists(self, device_id):
        return device_id in self._backend.devices

    def find_open_schedule(self, scope):
        return next((s for s in self._in_scope(scope) if s.is_open), None)

    def find_overlapping(self, scope, new_from, new_to, excluding_id=None):
        hits = [
            s for s in self._in_scope(scope)
            if s.id != excluding_id and s.overlaps(new_from, new_to)
        ]
        return min(hits, key=lambda s: s.effective_from) if hits else None

    def find_covering(self, scope, at):
        hits = [s for s in self._in_scope(scope) if s.covers(at)]
        return max(hits, key=lambda s: s.effective_from) if hits else None

    def list_schedules(self, scope=None):
        rows = self._rows.values() if scope is None else self._in_scope(scope)
        return sorted(rows, key=lambda s: s.effective_from, reverse=True)

    def create(self, record: NewSchedule, created_by=None):
        assert not self._read_only
        if self._backend.fail_on_create is not None:
            raise self._backend.fail_on_create
        schedule = PriceSchedule(
            id=uuid.uuid4(),
            scope=record.scope,
            selling_price_per_liter=record.selling_price_per_liter,
            cost_price_per_liter=record.cost_price_per_liter,
            currency=record.currency,
            effective_from=record.effective_from,
            effective_to=None,
            created_at=datetime.now(timezone.utc),
            created_by=created_by,
        )
        self._rows[schedule.id] = schedule
        return schedule

    def close(self, schedule_id, effective_to):
        assert not self._read_only
        self._rows[schedule_id] = dataclasses.replace(self._rows[schedule_id], effective_to=effective_to)


class MemoryScheduleBackend:
    def __init__(self, devices=()) -> None:
        self.devices = set(devices)
        self.schedules: dict = {}
        self.fail_on_create: Exception | None = None
        self.timeouts: list = []
        self._lock = threading.Lock()

    @contextmanager
    def transaction(self, timeout_ms=None):
        self.timeouts.append(timeout_ms)
        with self._lock:
            working = dict(self.schedules)
            yield MemoryScheduleStore(self, working)
            self.schedules = working

    @contextmanager
    def snapshot(self, timeout_ms=None):
        self.timeouts.append(timeout_ms)
        with self._lock:
            rows = dict(self.schedules)
        yield MemoryScheduleStore(self, rows, read_only=True)

    def add(self, scope, price, effective_from, effective_to=None, cost="0", currency="ZMW") -> PriceSchedule:
        """Пряма вставка в обхід Writer: для тестів резолвера."""
        from decimal import Decimal

        schedule = PriceSchedule(
            id=uuid.uuid4(),
            scope=scope,
            selling_price_per_liter=Decimal(str(price)),
            cost_price_per_liter=Decimal(str(cost)),
            currency=currency,
            effective_from=effective_from,
            effective_to=effective_to,
            created_at=datetime.now(timezone.utc),
        )
        self.schedules[schedule.id] = schedule
        return schedule

    def in_scope(self, scope) -> list[PriceSchedule]:
        return sorted(
            (s for s in self.schedules.values() if s.scope == scope),
            key=lambda s: s.effective_from,
        )
