"""
Optima AI - Message Quota
=========================
Per-user daily chat message quota on token buckets.
"""

import time
from dataclasses import dataclass, field
from typing import Callable, Dict

from exceptions import QuotaExceededError
from logging_config import get_logger
from services.providers import get_entitlements

logger = get_logger(__name__)

SECONDS_PER_DAY = 86400.0
CLEANUP_INTERVAL = 300.0


@dataclass
class RateLimitBucket:
    """Token bucket for rate limiting."""
    capacity: int
    refill_rate: float  # tokens per second
    clock: Callable[[], float] = time.monotonic
    tokens: float = field(init=False)
    last_refill: float = field(init=False)

    def __post_init__(self):
        self.tokens = float(self.capacity)
        self.last_refill = self.clock()

    def refill(self):
        """Refill tokens based on elapsed time."""
        now = self.clock()
        elapsed = now - self.last_refill
        self.tokens = min(self.capacity, self.tokens + elapsed * self.refill_rate)
        self.last_refill = now

    def consume(self, tokens: int = 1) -> bool:
        """
        Try to consume tokens.

        Returns:
            True if tokens consumed, False if insufficient
        """
        self.refill()

        if self.tokens >= tokens:
            self.tokens -= tokens
            return True

        return False

    def get_wait_time(self, tokens: int = 1) -> float:
        """Get time to wait for tokens to be available."""
        self.refill()

        if self.tokens >= tokens:
            return 0.0

        return (tokens - self.tokens) / self.refill_rate


class MessageQuota:
    """
    Rolling 24-hour message allowance per user.

    Each user gets a bucket holding their user type's ``max_messages_per_day``
    that refills continuously over a day. State is in process memory.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._buckets: Dict[str, RateLimitBucket] = {}
        self._last_cleanup = clock()

    def _get_bucket(self, user_id: str, user_type: str) -> RateLimitBucket:
        capacity = get_entitlements(user_type).max_messages_per_day
        bucket = self._buckets.get(user_id)
        if bucket is None or bucket.capacity != capacity:
            bucket = RateLimitBucket(
                capacity=capacity,
                refill_rate=capacity / SECONDS_PER_DAY,
                clock=self._clock,
            )
            self._buckets[user_id] = bucket
        return bucket

    def consume(self, user_id: str, user_type: str) -> None:
        """
        Count one message against the user's quota.

        Raises:
            QuotaExceededError: Daily allowance used up
        """
        now = self._clock()
        if now - self._last_cleanup > CLEANUP_INTERVAL:
            self.cleanup_stale_buckets()
            self._last_cleanup = now

        bucket = self._get_bucket(user_id, user_type)
        if not bucket.consume():
            wait_time = bucket.get_wait_time()
            logger.warning("Message quota exceeded", user_id=user_id, user_type=user_type, retry_after=round(wait_time, 1))
            raise QuotaExceededError(user_id=user_id, limit=bucket.capacity, retry_after=wait_time)

    def try_consume(self, user_id: str, user_type: str) -> bool:
        """Like ``consume`` but reports exhaustion as False."""
        try:
            self.consume(user_id, user_type)
        except QuotaExceededError:
            return False
        return True

    def remaining(self, user_id: str, user_type: str) -> int:
        bucket = self._get_bucket(user_id, user_type)
        bucket.refill()
        return int(bucket.tokens)

    def cleanup_stale_buckets(self, max_age: float = SECONDS_PER_DAY):
        """Drop buckets idle long enough to be full again."""
        now = self._clock()
        stale = [user_id for user_id, bucket in self._buckets.items() if now - bucket.last_refill > max_age]
        for user_id in stale:
            del self._buckets[user_id]
        if stale:
            logger.debug("Cleaned up stale quota buckets", count=len(stale))
