"""
Per-client token buckets for the gateway.

Each client key owns a bucket holding at most ``burst`` tokens, refilled
continuously at ``rate`` tokens per second; an admitted request spends one.
A new key starts with a full bucket. A periodic sweep drops buckets that
have refilled completely, which bounds the map under key churn: a dropped
bucket would be recreated full anyway, so the sweep never changes a
client's allowance.

The map is process-local. Running N gateway replicas multiplies the
effective limit by N.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class TokenBucket:
    def __init__(self, rate: float, burst: int, clock: Clock = time.monotonic):
        self.rate = float(rate)
        self.burst = burst
        self._clock = clock
        self._tokens = float(burst)
        self._updated = clock()
        self._lock = threading.Lock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._updated)
        self._tokens = min(float(self.burst), self._tokens + elapsed * self.rate)
        self._updated = now

    def allow(self) -> bool:
        """Spend one token if available."""
        with self._lock:
            self._refill()
            if self._tokens >= 1.0:
                self._tokens -= 1.0
                return True
            return False

    def tokens(self) -> float:
        with self._lock:
            self._refill()
            return self._tokens

    def is_full(self) -> bool:
        return self.tokens() >= self.burst


class RateLimiter:
    """Maps client keys to buckets; creation and sweeping are exclusive."""

    def __init__(self, rate: float, burst: int, clock: Clock = time.monotonic):
        self.rate = rate
        self.burst = burst
        self._clock = clock
        self._buckets: dict[str, TokenBucket] = {}
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._sweeper: threading.Thread | None = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._buckets)

    def bucket(self, key: str) -> TokenBucket:
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = TokenBucket(self.rate, self.burst, self._clock)
                self._buckets[key] = bucket
            return bucket

    def allow(self, key: str) -> bool:
        return self.bucket(key).allow()

    def cleanup(self) -> int:
        """Drop every bucket that has refilled to capacity; returns how many."""
        with self._lock:
            idle = [key for key, bucket in self._buckets.items() if bucket.is_full()]
            for key in idle:
                del self._buckets[key]
            remaining = len(self._buckets)
        if idle:
            logger.debug("Rate limiter swept %d idle buckets, %d remain", len(idle), remaining)
        return len(idle)

    # -- background sweep ---------------------------------------------------

    def start_cleanup(self, interval: float) -> None:
        if self._sweeper is not None and self._sweeper.is_alive():
            return
        self._stop.clear()
        self._sweeper = threading.Thread(
            target=self._sweep_loop, args=(interval,), name="rate-limit-sweeper", daemon=True
        )
        self._sweeper.start()
        logger.info("Rate limiter sweeping every %.0fs", interval)

    def stop_cleanup(self) -> None:
        self._stop.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=5)
            self._sweeper = None

    def _sweep_loop(self, interval: float) -> None:
        while not self._stop.wait(interval):
            try:
                self.cleanup()
            except Exception:
                logger.exception("Rate limiter sweep failed")
