"""
Module: rate_limit.py
Description: Fixed-window rate limiting for the webhook receiver.

Each source key (client address) gets a bucket ``{count, window_reset_at}``
created lazily on its first request. Expired buckets are removed by a
periodic sweep running independently of request traffic.
"""

import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Dict, Mapping, Optional

from clawtell.utils.cancellation import CancellationToken
from clawtell.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_REQUESTS = 100
DEFAULT_WINDOW_SECONDS = 60.0
UNKNOWN_SOURCE = "unknown"


@dataclass
class RateLimitBucket:
    count: int
    window_reset_at: float


def source_key(headers: Mapping[str, str], client_host: Optional[str]) -> str:
    """
    Derive the rate-limit key for a request.

    Preference order: first hop of ``X-Forwarded-For``, ``X-Real-IP``, the
    socket peer address.
    """
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = (headers.get("x-real-ip") or "").strip()
    if real_ip:
        return real_ip
    return client_host or UNKNOWN_SOURCE


class RateLimiter:
    """
    Per-source fixed-window counter.

    Attributes:
        max_requests: Requests allowed per key per window
        window_seconds: Window length
    """

    def __init__(
        self,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._buckets: Dict[str, RateLimitBucket] = {}
        self._lock = Lock()

    def __len__(self) -> int:
        return len(self._buckets)

    def allow(self, key: str) -> bool:
        """
        Count a request from ``key``.

        Returns:
            True if the request is within the limit, False if it must be
            rejected with 429
        """
        now = self._clock()
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None or now >= bucket.window_reset_at:
                self._buckets[key] = RateLimitBucket(count=1, window_reset_at=now + self.window_seconds)
                return True
            if bucket.count >= self.max_requests:
                return False
            bucket.count += 1
            return True

    def sweep(self) -> int:
        """
        Remove buckets whose window has expired.

        Expired keys are collected from a snapshot without the lock and
        deleted one at a time, re-checking expiry under the lock.

        Returns:
            Number of buckets removed
        """
        now = self._clock()
        expired = [key for key, bucket in list(self._buckets.items()) if now >= bucket.window_reset_at]
        removed = 0
        for key in expired:
            with self._lock:
                bucket = self._buckets.get(key)
                if bucket is not None and now >= bucket.window_reset_at:
                    del self._buckets[key]
                    removed += 1
        return removed

    async def run_sweeper(self, token: CancellationToken, interval_seconds: float) -> None:
        """Sweep expired buckets every ``interval_seconds`` until cancelled."""
        while not await token.sleep(interval_seconds):
            removed = self.sweep()
            if removed:
                logger.debug("Expired rate-limit buckets removed", removed=removed, remaining=len(self))
