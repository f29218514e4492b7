"""
Rate limiting package for the Status Lab.

Holds the fixed-window limiter that enforces per-client request budgets.
"""

from .fixed_window import Clock, FixedWindowRateLimiter, RateLimitDecision, RateWindow, SystemClock

__all__ = [
    "Clock",
    "FixedWindowRateLimiter",
    "RateLimitDecision",
    "RateWindow",
    "SystemClock",
]
