"""
Rate Limiter

Throttles outgoing requests of the ToneMap API clients. Supports a
per-second token bucket and a sliding per-minute window.
"""

import asyncio
import time
from collections import deque
from typing import Optional

import structlog

logger = structlog.get_logger(__name__)

MINUTE = 60.0


class RateLimiter:
    """
    Rate limiter shared by all requests of one client.

    Per-second limits use a token bucket so short bursts pass without
    waiting; per-minute limits count requests in the last 60 seconds.
    """

    def __init__(
        self,
        calls_per_second: Optional[float] = None,
        calls_per_minute: Optional[int] = None,
        burst_size: Optional[int] = None,
        service_name: str = "api"
    ):
        self.calls_per_second = calls_per_second
        self.calls_per_minute = calls_per_minute
        self.service_name = service_name

        self.burst_size = burst_size or (max(int(calls_per_second * 2), 1) if calls_per_second else 0)
        self.tokens = float(self.burst_size)
        self.last_refill = time.monotonic()

        self.request_times: deque = deque()
        self.lock = asyncio.Lock()
        self.logger = logger.bind(component="RateLimiter", service=service_name)

    @classmethod
    def for_open_meteo(cls, calls_per_minute: int = 600) -> "RateLimiter":
        """Limiter for the Open-Meteo forecast API (600 calls/minute on the free tier)."""
        return cls(calls_per_minute=calls_per_minute, service_name="OpenMeteo")

    async def wait_if_needed(self) -> None:
        """Block until the next request is allowed, then record it."""
        async with self.lock:
            now = time.monotonic()
            self._forget_before(now - MINUTE)

            wait_time = 0.0
            if self.calls_per_second:
                wait_time = max(wait_time, self._token_wait(now))
            if self.calls_per_minute:
                wait_time = max(wait_time, self._window_wait(now))

            if wait_time > 0:
                self.logger.debug("Rate limit wait", wait_time=round(wait_time, 3))
                await asyncio.sleep(wait_time)
                now = time.monotonic()
                if self.calls_per_second:
                    self._refill(now)

            self.request_times.append(now)
            if self.calls_per_second:
                self.tokens = max(self.tokens - 1, 0.0)

    def _refill(self, now: float) -> None:
        elapsed = now - self.last_refill
        self.tokens = min(float(self.burst_size), self.tokens + elapsed * self.calls_per_second)
        self.last_refill = now

    def _token_wait(self, now: float) -> float:
        self._refill(now)
        if self.tokens >= 1:
            return 0.0
        return (1.0 - self.tokens) / self.calls_per_second

    def _window_wait(self, now: float) -> float:
        if len(self.request_times) < self.calls_per_minute:
            return 0.0
        return max(0.0, MINUTE - (now - self.request_times[0]))

    def _forget_before(self, cutoff: float) -> None:
        while self.request_times and self.request_times[0] < cutoff:
            self.request_times.popleft()

    def get_current_usage(self) -> dict:
        """Requests in the current window and remaining burst tokens."""
        self._forget_before(time.monotonic() - MINUTE)
        usage = {"requests_last_minute": len(self.request_times)}
        if self.calls_per_second:
            usage["tokens_available"] = self.tokens
            usage["burst_capacity"] = self.burst_size
        if self.calls_per_minute:
            usage["minute_usage_percent"] = len(self.request_times) / self.calls_per_minute * 100
        return usage

    def reset(self) -> None:
        self.request_times.clear()
        self.tokens = float(self.burst_size)
        self.last_refill = time.monotonic()
