"""
Client-side rate limiting for upstream providers.

Providers space consecutive calls to the same upstream by a minimum
interval so throttling is pre-empted rather than merely reacted to, and
track the quota the upstream reports in its response headers.
"""

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_MIN_INTERVAL_MS = 100
WINDOW_SECONDS = 60.0

# Header values above this are treated as absolute epoch seconds.
_EPOCH_THRESHOLD = 1_000_000_000


# =============================================================================
# QUOTA BOOKKEEPING
# =============================================================================

@dataclass
class RateLimitInfo:
    """Upstream quota as last reported; reset_time is epoch seconds."""
    remaining: Optional[int] = None
    reset_time: Optional[float] = None
    limit: Optional[int] = None

    @property
    def exhausted(self) -> bool:
        if self.remaining is None or self.remaining > 0:
            return False
        return self.reset_time is None or self.reset_time > time.time()

    def seconds_until_reset(self) -> float:
        if self.reset_time is None:
            return 0.0
        return max(0.0, self.reset_time - time.time())

    def update_from_headers(self, headers: Mapping[str, Any]) -> bool:
        """
        Read ``x-ratelimit-*`` (or ``ratelimit-*``) headers.

        Returns True if any field was updated. Reset values may be absolute
        epoch seconds or seconds from now.
        """
        lowered = {str(k).lower(): v for k, v in headers.items()}
        updated = False

        remaining = _first_int(lowered, "x-ratelimit-remaining", "ratelimit-remaining")
        if remaining is not None:
            self.remaining = remaining
            updated = True

        limit = _first_int(lowered, "x-ratelimit-limit", "ratelimit-limit")
        if limit is not None:
            self.limit = limit
            updated = True

        reset = _first_float(lowered, "x-ratelimit-reset", "ratelimit-reset")
        if reset is not None:
            self.reset_time = reset if reset > _EPOCH_THRESHOLD else time.time() + reset
            updated = True

        return updated

    def to_dict(self) -> Dict[str, Any]:
        return {"remaining": self.remaining, "reset_time": self.reset_time, "limit": self.limit}


def _first_float(headers: Dict[str, Any], *names: str) -> Optional[float]:
    for name in names:
        raw = headers.get(name)
        if raw is None:
            continue
        try:
            return float(raw)
        except (TypeError, ValueError):
            logger.debug("Ignoring malformed %s header: %r", name, raw)
    return None


def _first_int(headers: Dict[str, Any], *names: str) -> Optional[int]:
    value = _first_float(headers, *names)
    return int(value) if value is not None else None


def parse_retry_after(value: Any, default: float = 5.0) -> float:
    """Seconds from a Retry-After header value; HTTP-date form falls back to ``default``."""
    if value is None:
        return default
    try:
        return max(0.0, float(value))
    except (TypeError, ValueError):
        return default


# =============================================================================
# REQUEST SPACING
# =============================================================================

class RequestSpacer:
    """
    Enforces a minimum interval between calls to one upstream, plus an
    optional sliding one-minute budget.
    """

    def __init__(
        self,
        min_interval_ms: Optional[float] = None,
        max_per_second: Optional[float] = None,
        max_per_minute: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if min_interval_ms is None:
            if max_per_second:
                min_interval_ms = 1000.0 / max_per_second
            else:
                min_interval_ms = DEFAULT_MIN_INTERVAL_MS
        self.min_interval = max(0.0, min_interval_ms / 1000.0)
        self.max_per_minute = max_per_minute
        self._clock = clock
        self._last_request: Optional[float] = None
        self._window: Deque[float] = deque()
        self._lock = asyncio.Lock()
        self.total_wait = 0.0

    def _minute_wait(self, now: float) -> float:
        cutoff = now - WINDOW_SECONDS
        while self._window and self._window[0] <= cutoff:
            self._window.popleft()
        if self.max_per_minute and len(self._window) >= self.max_per_minute:
            return self._window[0] + WINDOW_SECONDS - now
        return 0.0

    async def wait(self) -> float:
        """Sleep until the next call is allowed. Returns seconds waited."""
        async with self._lock:
            now = self._clock()
            spacing = 0.0
            if self._last_request is not None:
                spacing = self._last_request + self.min_interval - now
            waited = max(0.0, spacing, self._minute_wait(now))
            if waited > 0:
                await asyncio.sleep(waited)

            now = max(self._clock(), now + waited)
            self._last_request = now
            if self.max_per_minute:
                self._window.append(now)
            self.total_wait += waited
            if waited:
                logger.debug("Request spacing waited %.3fs", waited)
            return waited

    def reset(self) -> None:
        self._last_request = None
        self._window.clear()


__all__ = [
    "RateLimitInfo",
    "RequestSpacer",
    "parse_retry_after",
    "DEFAULT_MIN_INTERVAL_MS",
]
