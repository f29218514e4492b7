"""
Fixed window rate limiter for the Status Lab service.
"""

import math
import threading
import time
from dataclasses import dataclass
from typing import Dict, Optional, Protocol

from shared.logging import get_logger


class Clock(Protocol):
    """Source of the current time, in seconds."""

    def now(self) -> float:
        ...


class SystemClock:
    """Monotonic process clock."""

    def now(self) -> float:
        return time.monotonic()


@dataclass
class RateWindow:
    """Request count for one client inside the current window."""

    count: int
    reset_at: float


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of counting one request."""

    allowed: bool
    count: int
    limit: int
    reset_in_seconds: int
    retry_after: Optional[int] = None

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.count)


class FixedWindowRateLimiter:
    """In-process fixed window rate limiter keyed by client identity.

    The first request from a client opens a window of ``window_seconds``.
    Every request inside a live window is counted, including the ones that
    get rejected, so a client hammering a closed window keeps its count
    growing until the window expires.
    """

    def __init__(self, max_requests: int = 10, window_seconds: float = 60.0, clock: Optional[Clock] = None):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.clock = clock or SystemClock()
        self.logger = get_logger("status.rate_limiter")
        self._windows: Dict[str, RateWindow] = {}
        self._lock = threading.Lock()

    def admit(self, client_id: str, now: Optional[float] = None) -> RateLimitDecision:
        """Count a request from ``client_id`` and decide whether it may proceed."""
        if now is None:
            now = self.clock.now()

        with self._lock:
            window = self._windows.get(client_id)
            if window is None or now > window.reset_at:
                window = RateWindow(count=1, reset_at=now + self.window_seconds)
                self._windows[client_id] = window
                return self._decision(window, now, allowed=True)

            window.count += 1
            if window.count > self.max_requests:
                decision = self._decision(window, now, allowed=False)
                self.logger.warning(
                    "Rate limit exceeded",
                    client_id=client_id,
                    current_count=window.count,
                    limit=self.max_requests,
                    retry_after=decision.retry_after
                )
                return decision

            return self._decision(window, now, allowed=True)

    def status(self, client_id: str, now: Optional[float] = None) -> Optional[RateWindow]:
        """Return a copy of the live window for ``client_id`` without counting."""
        if now is None:
            now = self.clock.now()

        with self._lock:
            window = self._windows.get(client_id)
            if window is None or now > window.reset_at:
                return None
            return RateWindow(count=window.count, reset_at=window.reset_at)

    def reset(self, client_id: str) -> bool:
        """Drop the window for ``client_id``."""
        with self._lock:
            removed = self._windows.pop(client_id, None) is not None

        if removed:
            self.logger.info("Rate limit reset", client_id=client_id)
        return removed

    def _decision(self, window: RateWindow, now: float, allowed: bool) -> RateLimitDecision:
        reset_in = max(0, math.ceil(window.reset_at - now))
        return RateLimitDecision(
            allowed=allowed,
            count=window.count,
            limit=self.max_requests,
            reset_in_seconds=reset_in,
            retry_after=None if allowed else reset_in,
        )
