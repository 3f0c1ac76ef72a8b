"""Fixed-window request admission control.

Each limiter instance owns an in-memory table of windows keyed by client
identity. The table is never persisted or shared, so every process enforces
its own budget; this is abuse mitigation, not a hard quota.
"""

import asyncio
import threading
import time
from collections.abc import Callable, Mapping

import structlog

from toolsense_cache.entities import RateLimitResult, RateWindow

logger = structlog.get_logger(__name__)

DEFAULT_MAX_REQUESTS = 10
DEFAULT_WINDOW_MS = 60 * 1000
DEFAULT_SWEEP_INTERVAL = 5 * 60


def _now_ms() -> int:
    return int(time.time() * 1000)


class RateLimiter:
    """Fixed-window counter keyed by client identifier.

    A window opens on the first request from an identifier (or the first
    request after the previous window lapsed) and lasts ``window_ms``.
    Rejected attempts still count, so hammering a closed window does not
    shorten it. Boundary bursts of up to twice the limit are possible.

    Example:
        ```python
        limiter = RateLimiter()
        result = limiter.check("203.0.113.7", max_requests=20, window_ms=60_000)
        if not result.allowed:
            print(f"retry in {result.retry_after_seconds}s")
        ```
    """

    def __init__(self, clock: Callable[[], int] | None = None) -> None:
        """Initialize the rate limiter.

        Args:
            clock: Returns the current time in epoch milliseconds.
        """
        self._clock = clock or _now_ms
        self._windows: dict[str, RateWindow] = {}
        self._lock = threading.Lock()

    def check(
        self,
        identifier: str,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window_ms: int = DEFAULT_WINDOW_MS,
    ) -> RateLimitResult:
        """Count a request and decide whether it is admitted.

        Args:
            identifier: Caller identity (IP address, user id, ...)
            max_requests: Requests allowed per window
            window_ms: Window length in milliseconds

        Returns:
            RateLimitResult with the decision and header values
        """
        now = self._clock()

        with self._lock:
            window = self._windows.get(identifier)

            if window is None or now > window.window_reset_at:
                window = RateWindow(identifier=identifier, count=1, window_reset_at=now + window_ms)
                self._windows[identifier] = window
                return RateLimitResult(
                    allowed=True,
                    limit=max_requests,
                    remaining=max_requests - 1,
                    reset_at=window.window_reset_at,
                    now=now,
                )

            window.count += 1
            count, reset_at = window.count, window.window_reset_at

        if count > max_requests:
            logger.info("rate_limited", identifier=identifier, count=count, limit=max_requests)
            return RateLimitResult(
                allowed=False, limit=max_requests, remaining=0, reset_at=reset_at, now=now
            )

        return RateLimitResult(
            allowed=True,
            limit=max_requests,
            remaining=max_requests - count,
            reset_at=reset_at,
            now=now,
        )

    def sweep(self) -> int:
        """Drop windows that have lapsed.

        Returns:
            Number of windows removed
        """
        now = self._clock()
        with self._lock:
            lapsed = [key for key, window in self._windows.items() if now > window.window_reset_at]
            for key in lapsed:
                del self._windows[key]

        if lapsed:
            logger.debug("rate_windows_swept", count=len(lapsed))
        return len(lapsed)

    async def run_sweeper(self, interval: float = DEFAULT_SWEEP_INTERVAL) -> None:
        """Sweep lapsed windows every ``interval`` seconds until cancelled."""
        while True:
            await asyncio.sleep(interval)
            self.sweep()

    def get_window(self, identifier: str) -> RateWindow | None:
        """Return the current window for an identifier, if any."""
        with self._lock:
            return self._windows.get(identifier)

    def reset(self) -> None:
        """Forget all windows."""
        with self._lock:
            self._windows.clear()

    def __len__(self) -> int:
        return len(self._windows)


def client_identifier(headers: Mapping[str, str], peer: str | None = None) -> str:
    """Derive the caller identity used for rate limiting.

    Prefers the first ``X-Forwarded-For`` hop, then ``X-Real-IP``, then the
    socket peer address.
    """
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    return peer or "unknown"
