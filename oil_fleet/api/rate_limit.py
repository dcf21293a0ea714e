"""
In-memory rate limiter для запитів пристроїв.

Мінімальний інтервал між запитами на ключ (device_id або device_id-config).
Стан локальний для процесу: при кількох інстансах API кожен рахує своє.
Ядро ціноутворення його не бачить: перевірка робиться в роуті ДО виклику.
"""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass

_STALE_AFTER_MS = 5 * 60 * 1000


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    wait_ms: int


@dataclass
class _Entry:
    last_request_ms: float
    request_count:   int


class RateLimiter:
    def __init__(self, default_interval_ms: int, clock=time.monotonic) -> None:
        self.default_interval_ms = default_interval_ms
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._lock = threading.Lock()

    def _now_ms(self) -> float:
        return self._clock() * 1000

    def check(self, key: str, min_interval_ms: int | None = None) -> RateLimitResult:
        interval = self.default_interval_ms if min_interval_ms is None else min_interval_ms
        with self._lock:
            now = self._now_ms()
            self._prune(now)
            entry = self._entries.get(key)
            if entry is None:
                self._entries[key] = _Entry(now, 1)
                return RateLimitResult(True, 0)

            elapsed = now - entry.last_request_ms
            if elapsed < interval:
                return RateLimitResult(False, int(round(interval - elapsed)))

            entry.last_request_ms = now
            entry.request_count += 1
            return RateLimitResult(True, 0)

    def stats(self) -> dict:
        with self._lock:
            return {
                "total_devices": len(self._entries),
                "entries": [
                    {"key": k, "requests": e.request_count}
                    for k, e in self._entries.items()
                ],
            }

    def _prune(self, now: float) -> None:
        cutoff = now - _STALE_AFTER_MS
        for key in [k for k, e in self._entries.items() if e.last_request_ms < cutoff]:
            del self._entries[key]
