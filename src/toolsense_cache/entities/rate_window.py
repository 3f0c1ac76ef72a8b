"""Rate limiting domain entities."""

import math
from dataclasses import dataclass


@dataclass
class RateWindow:
    """Mutable per-identifier counter owned by a single RateLimiter.

    Attributes:
        identifier: Caller identity (usually the client IP)
        count: Requests observed in the current window
        window_reset_at: When the window lapses (epoch milliseconds)
    """

    identifier: str
    count: int
    window_reset_at: int


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of an admission check.

    Attributes:
        allowed: Whether the request may proceed
        limit: Maximum requests per window
        remaining: Requests left in the current window
        reset_at: When the window lapses (epoch milliseconds)
        now: Time of the check (epoch milliseconds)
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    now: int

    @property
    def reset_epoch_seconds(self) -> int:
        return math.ceil(self.reset_at / 1000)

    @property
    def retry_after_seconds(self) -> int:
        """Seconds until the window resets, never less than zero."""
        return max(0, math.ceil((self.reset_at - self.now) / 1000))
