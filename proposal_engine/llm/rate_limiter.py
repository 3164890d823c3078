"""Sliding-window request limiter keyed by model tier."""

from __future__ import annotations

import asyncio
import time
from collections import deque
from collections.abc import Callable
from typing import Deque, Dict

_WINDOW_SECONDS = 60.0


class RateLimiter:
    """At most ``rpm`` acquisitions per tier in any 60 second window, evenly spaced.

    Unknown tiers are not limited. Waiters on the same tier queue behind a
    per-tier lock so concurrent callers cannot over-admit.
    """

    def __init__(
        self,
        flash_rpm: int = 10,
        flash_lite_rpm: int = 15,
        pro_rpm: int = 5,
        on_waiting: Callable[[str, int, int], None] | None = None,
    ):
        self._limits: Dict[str, int] = {
            "flash-lite": flash_lite_rpm,
            "flash": flash_rpm,
            "pro": pro_rpm,
        }
        self._calls: Dict[str, Deque[float]] = {tier: deque() for tier in self._limits}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._on_waiting = on_waiting
        self._last_wait_log: Dict[str, float] = {}
        self._wait_log_interval = 30.0

    def limit_for(self, tier: str) -> int | None:
        return self._limits.get(tier.lower())

    def in_window(self, tier: str) -> int:
        queue = self._calls.get(tier.lower())
        if queue is None:
            return 0
        self._evict(queue, time.monotonic())
        return len(queue)

    @staticmethod
    def _evict(queue: Deque[float], now: float) -> None:
        while queue and (now - queue[0]) >= _WINDOW_SECONDS:
            queue.popleft()

    def _lock(self, tier: str) -> asyncio.Lock:
        lock = self._locks.get(tier)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[tier] = lock
        return lock

    def _report_wait(self, tier: str, used: int, limit: int, now: float) -> None:
        if self._on_waiting is None:
            return
        last = self._last_wait_log.get(tier)
        if last is None or now - last >= self._wait_log_interval:
            self._on_waiting(tier, used, limit)
            self._last_wait_log[tier] = now

    async def acquire(self, tier: str) -> float:
        """Wait for a slot. Returns the seconds spent waiting."""
        normalized = tier.lower()
        limit = self._limits.get(normalized)
        if limit is None:
            return 0.0
        min_interval = _WINDOW_SECONDS / limit
        queue = self._calls[normalized]
        started = time.monotonic()

        async with self._lock(normalized):
            while True:
                now = time.monotonic()
                self._evict(queue, now)
                if len(queue) >= limit:
                    self._report_wait(normalized, len(queue), limit, now)
                    await asyncio.sleep(max(_WINDOW_SECONDS - (now - queue[0]), 0.05))
                    continue
                if queue and (now - queue[-1]) < min_interval:
                    await asyncio.sleep(min_interval - (now - queue[-1]))
                    continue
                queue.append(now)
                return now - started
