"""
Verify-attempt limiter for OTP authentication
Redis-backed with in-memory fallback
"""
import time
import logging
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

import redis

logger = logging.getLogger(__name__)


class AttemptEntry:
    """Failed attempts and lockout state for one phone"""

    def __init__(self):
        self.failures: List[float] = []  # timestamps of failed verifies
        self.locked_until: Optional[float] = None


class VerifyAttemptLimiter:
    """
    Locks a phone out of verification after too many wrong codes.

    Limits (defaults, see Settings):
    - OTP_MAX_VERIFY_ATTEMPTS failures within OTP_VERIFY_WINDOW_SECONDS
    - lockout of OTP_LOCKOUT_SECONDS once the limit is reached
    - a successful verify clears the phone's counters

    Issuance is not limited here; one live code per phone already bounds it.
    """

    def __init__(
        self,
        max_attempts: int = 5,
        window_seconds: int = 600,
        lockout_seconds: int = 300,
        redis_client: Optional["redis.Redis"] = None,
        clock=time.time,
    ):
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self.lockout_seconds = lockout_seconds
        self._redis = redis_client
        self._clock = clock
        self._entries: Dict[str, AttemptEntry] = defaultdict(AttemptEntry)

    @staticmethod
    def _failures_key(phone: str) -> str:
        return f"otp:verify_failures:{phone}"

    @staticmethod
    def _lockout_key(phone: str) -> str:
        return f"otp:verify_lockout:{phone}"

    # Redis helpers return None when Redis is not configured or errors,
    # so callers fall back to the in-memory entry.

    def _get_lockout_redis(self, phone: str) -> Optional[float]:
        if not self._redis:
            return None
        try:
            value = self._redis.get(self._lockout_key(phone))
            return float(value) if value else 0.0
        except redis.RedisError as e:
            logger.warning(f"Redis lockout read failed, using fallback: {e}")
            return None

    def _record_failure_redis(self, phone: str, now: float) -> Optional[int]:
        if not self._redis:
            return None
        key = self._failures_key(phone)
        try:
            pipe = self._redis.pipeline()
            pipe.zadd(key, {str(now): now})
            pipe.zremrangebyscore(key, 0, now - self.window_seconds)
            pipe.zcard(key)
            pipe.expire(key, self.window_seconds)
            _, _, count, _ = pipe.execute()
            return int(count)
        except redis.RedisError as e:
            logger.warning(f"Redis attempt record failed, using fallback: {e}")
            return None

    def _set_lockout_redis(self, phone: str, until: float) -> bool:
        if not self._redis:
            return False
        try:
            self._redis.setex(self._lockout_key(phone), self.lockout_seconds, str(until))
            return True
        except redis.RedisError as e:
            logger.warning(f"Redis lockout set failed: {e}")
            return False

    def _reset_redis(self, phone: str) -> None:
        if not self._redis:
            return
        try:
            self._redis.delete(self._failures_key(phone), self._lockout_key(phone))
        except redis.RedisError as e:
            logger.warning(f"Redis attempt reset failed: {e}")

    def check(self, phone: str) -> Tuple[bool, Optional[int]]:
        """
        Check whether phone may attempt a verification.

        Returns:
            Tuple of (allowed, retry_after_seconds)
        """
        now = self._clock()
        locked_until = self._get_lockout_redis(phone)
        if locked_until is None:
            locked_until = self._entries[phone].locked_until or 0.0

        if locked_until > now:
            return False, max(1, int(locked_until - now))
        return True, None

    def record_failure(self, phone: str) -> bool:
        """
        Record a wrong code for phone.

        Returns:
            True if this failure triggered a lockout
        """
        now = self._clock()
        count = self._record_failure_redis(phone, now)

        entry = self._entries[phone]
        entry.failures = [ts for ts in entry.failures if ts > now - self.window_seconds]
        entry.failures.append(now)
        if count is None:
            count = len(entry.failures)

        if count >= self.max_attempts:
            until = now + self.lockout_seconds
            entry.locked_until = until
            entry.failures = []
            self._set_lockout_redis(phone, until)
            logger.warning(f"[OTP] Verify lockout for ...{phone[-4:]} after {count} failed attempts")
            return True
        return False

    def reset(self, phone: str) -> None:
        """Clear failures and lockout after a successful verification."""
        self._entries.pop(phone, None)
        self._reset_redis(phone)

    def is_locked_out(self, phone: str) -> bool:
        allowed, _ = self.check(phone)
        return not allowed


# Global singleton instance
_limiter: Optional[VerifyAttemptLimiter] = None


def get_verify_attempt_limiter() -> VerifyAttemptLimiter:
    """Get or create the limiter singleton"""
    global _limiter
    if _limiter is None:
        from ...core.config import settings

        redis_client = None
        if settings.REDIS_URL:
            try:
                redis_client = redis.from_url(
                    settings.REDIS_URL,
                    decode_responses=True,
                    socket_connect_timeout=3,
                    socket_timeout=3,
                )
                redis_client.ping()
                logger.info("Redis verify-attempt limiting enabled")
            except redis.RedisError as e:
                logger.warning(f"Failed to initialize Redis for verify limiting, using in-memory fallback: {e}")
                redis_client = None

        _limiter = VerifyAttemptLimiter(
            max_attempts=settings.OTP_MAX_VERIFY_ATTEMPTS,
            window_seconds=settings.OTP_VERIFY_WINDOW_SECONDS,
            lockout_seconds=settings.OTP_LOCKOUT_SECONDS,
            redis_client=redis_client,
        )
    return _limiter


def reset_verify_attempt_limiter() -> None:
    global _limiter
    _limiter = None
