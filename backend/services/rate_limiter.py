"""Sliding-window attempt counter used to throttle login attempts."""

from __future__ import annotations

import time
from collections import deque
from threading import RLock
from typing import Callable, Deque, Dict, Optional

from backend.domain.errors import RateLimitedError
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


class SlidingWindowRateLimiter:
    """Best-effort, in-memory limiter keyed by caller identity.

    State is per process and lost on restart. Timestamps older than the
    window are evicted on every hit for the key being hit. At most once per
    window, a hit also sweeps every other key and drops those with no recent
    attempts.
    """

    def __init__(
        self,
        *,
        window_seconds: float,
        max_attempts: int,
        clock: Callable[[], float] = time.monotonic,
        message: str = "Too many requests. Please try again later.",
    ) -> None:
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        if max_attempts <= 0:
            raise ValueError("max_attempts must be > 0")
        self._window = float(window_seconds)
        self._max_attempts = max_attempts
        self._clock = clock
        self._message = message
        self._attempts: Dict[str, Deque[float]] = {}
        self._lock = RLock()
        self._last_sweep = clock()

    @classmethod
    def for_login(cls, settings: Optional[Settings] = None) -> "SlidingWindowRateLimiter":
        resolved = settings or get_settings()
        return cls(
            window_seconds=resolved.login_rate_limit_window_seconds,
            max_attempts=resolved.login_rate_limit_max_attempts,
            message="Too many login attempts. Please try again later.",
        )

    def _evict(self, key: str, now: float) -> Deque[float]:
        attempts = self._attempts.get(key)
        if attempts is None:
            return deque()
        while attempts and now - attempts[0] >= self._window:
            attempts.popleft()
        if not attempts:
            del self._attempts[key]
        return attempts

    def hit(self, key: str) -> None:
        """Record an attempt for ``key`` or raise once the budget is spent."""
        with self._lock:
            now = self._clock()
            if now - self._last_sweep >= self._window:
                self._sweep(now)
            attempts = self._evict(key, now)
            if len(attempts) >= self._max_attempts:
                logger.warning("Rate limit exceeded for %s", key)
                raise RateLimitedError(self._message)
            attempts.append(now)
            self._attempts[key] = attempts

    def purge(self) -> int:
        """Drop every key whose attempts have all aged out; returns keys removed."""
        with self._lock:
            return self._sweep(self._clock())

    def _sweep(self, now: float) -> int:
        before = len(self._attempts)
        for key in list(self._attempts):
            self._evict(key, now)
        self._last_sweep = now
        removed = before - len(self._attempts)
        if removed:
            logger.debug("Evicted %s idle rate-limit keys", removed)
        return removed

    def reset(self, key: Optional[str] = None) -> None:
        with self._lock:
            if key is None:
                self._attempts.clear()
            else:
                self._attempts.pop(key, None)

    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._attempts)
