"""Per-client request rate limiting."""

from __future__ import annotations

from collections.abc import Callable
from functools import lru_cache
import math
import threading
import time
from typing import Dict, Optional, Tuple

from fastapi import HTTPException, Request, status

from ...services.config import get_config


class TokenBucket:
    """Token bucket refilling ``max_calls`` tokens every ``period_seconds``."""

    def __init__(self, max_calls: int, period_seconds: float, now: float) -> None:
        self._max_calls = float(max_calls)
        self._rate_per_second = self._max_calls / period_seconds
        self._time_per_token = period_seconds / self._max_calls
        self._tokens = self._max_calls
        self._last_refill = now

    def _refill(self, now: float) -> None:
        elapsed = now - self._last_refill
        if elapsed > 0:
            self._tokens = min(self._max_calls, self._tokens + elapsed * self._rate_per_second)
            self._last_refill = now

    def is_full(self, now: float) -> bool:
        """A full bucket behaves exactly like a fresh one."""
        self._refill(now)
        return self._tokens >= self._max_calls

    def try_acquire(self, now: float) -> Tuple[bool, float]:
        """Consume one token if available; otherwise return the wait in seconds."""
        self._refill(now)
        if self._tokens >= 1.0:
            self._tokens -= 1.0
            return True, 0.0
        return False, (1.0 - self._tokens) * self._time_per_token


class ClientRateLimiter:
    """Keeps one token bucket per client key. Rejects instead of blocking."""

    def __init__(
        self,
        max_calls: int,
        period_seconds: float,
        *,
        time_fn: Optional[Callable[[], float]] = None,
        sweep_threshold: int = 1024,
    ) -> None:
        if max_calls <= 0:
            raise ValueError("max_calls must be positive.")
        if period_seconds <= 0:
            raise ValueError("period_seconds must be positive.")
        if sweep_threshold <= 0:
            raise ValueError("sweep_threshold must be positive.")
        self.max_calls = max_calls
        self.period_seconds = float(period_seconds)
        self._time_fn = time_fn or time.monotonic
        self._lock = threading.Lock()
        self._sweep_threshold = sweep_threshold
        self._next_sweep = sweep_threshold
        self._last_sweep: Optional[float] = None
        self._buckets: Dict[str, TokenBucket] = {}

    def check(self, client_key: str) -> Tuple[bool, float]:
        with self._lock:
            now = self._time_fn()
            bucket = self._buckets.get(client_key)
            if bucket is None:
                if self._sweep_due(now):
                    self._evict_full(now)
                bucket = TokenBucket(self.max_calls, self.period_seconds, now)
                self._buckets[client_key] = bucket
            return bucket.try_acquire(now)

    def _sweep_due(self, now: float) -> bool:
        size = len(self._buckets)
        if size >= self._next_sweep:
            return True
        # Any bucket untouched for a whole period has refilled.
        return size >= self._sweep_threshold and (
            self._last_sweep is None or now - self._last_sweep >= self.period_seconds
        )

    def _evict_full(self, now: float) -> None:
        full = [key for key, bucket in self._buckets.items() if bucket.is_full(now)]
        for key in full:
            del self._buckets[key]
        self._last_sweep = now
        # Next sweep once the surviving map has doubled.
        self._next_sweep = max(self._sweep_threshold, 2 * len(self._buckets))

    def __len__(self) -> int:
        return len(self._buckets)

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()
            self._next_sweep = self._sweep_threshold
            self._last_sweep = None


@lru_cache(maxsize=1)
def get_rate_limiter() -> ClientRateLimiter:
    config = get_config()
    return ClientRateLimiter(config.rate_limit_requests, config.rate_limit_window_seconds)


def enforce_rate_limit(request: Request) -> None:
    """Route dependency raising 429 once the client's bucket is empty."""
    client_key = request.client.host if request.client else "anonymous"
    allowed, retry_after = get_rate_limiter().check(client_key)
    if not allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "error": "rate_limited",
                "message": "Too many requests, slow down",
                "detail": {"retry_after_seconds": round(retry_after, 3)},
            },
            headers={"Retry-After": str(max(1, math.ceil(retry_after)))},
        )


__all__ = ["TokenBucket", "ClientRateLimiter", "get_rate_limiter", "enforce_rate_limit"]
