"""
Client-side retry and cooldown bookkeeping for the OTP flow
"""
import logging
import time
from typing import Callable, Dict, Optional

from .errors import CLEAR_CODE_ERRORS, format_countdown, get_retry_config

logger = logging.getLogger(__name__)

OPERATIONS = ("send_code", "verify_code", "resend_code")

RESEND_COOLDOWN_SECONDS = 60
RATE_LIMIT_COOLDOWN_SECONDS = 300
LOCKOUT_COOLDOWN_SECONDS = 60


class RetryController:
    """
    Tracks per-operation attempt counts and a shared request cooldown.

    The cooldown gates send_code and resend_code only; verify_code is
    limited server-side.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self.attempts: Dict[str, int] = {op: 0 for op in OPERATIONS}
        self._cooldown_until: float = 0.0

    def _check_op(self, operation: str):
        if operation not in self.attempts:
            raise ValueError(f"Unknown operation: {operation}")

    def start_cooldown(self, seconds: float):
        until = self._clock() + seconds
        # Never shorten an active cooldown
        self._cooldown_until = max(self._cooldown_until, until)

    def record_success(self, operation: str):
        self._check_op(operation)
        self.attempts[operation] = 0
        if operation in ("send_code", "resend_code"):
            self.start_cooldown(RESEND_COOLDOWN_SECONDS)

    def record_failure(
        self,
        operation: str,
        error_code: str,
        retry_after: Optional[int] = None,
    ) -> bool:
        """
        Count a failed attempt and apply any cooldown the error implies.

        Returns:
            True if the entered code should be cleared
        """
        self._check_op(operation)
        self.attempts[operation] += 1

        if error_code == "RATE_LIMIT_EXCEEDED":
            self.start_cooldown(retry_after or RATE_LIMIT_COOLDOWN_SECONDS)
        elif error_code == "MAX_ATTEMPTS_EXCEEDED":
            self.start_cooldown(retry_after or LOCKOUT_COOLDOWN_SECONDS)

        logger.debug(
            f"[AuthClient] {operation} failed with {error_code} "
            f"(attempt {self.attempts[operation]})"
        )
        return error_code in CLEAR_CODE_ERRORS

    def cooldown_remaining(self) -> int:
        remaining = self._cooldown_until - self._clock()
        return max(0, int(round(remaining)))

    def can_request_code(self) -> bool:
        return self.cooldown_remaining() == 0

    def should_retry(self, operation: str, error_code: str) -> bool:
        self._check_op(operation)
        config = get_retry_config(error_code)
        if not config["retryable"]:
            return False
        return self.attempts[operation] < config["max_attempts"]

    def countdown_text(self) -> str:
        return format_countdown(self.cooldown_remaining())

    def reset(self):
        self.attempts = {op: 0 for op in OPERATIONS}
        self._cooldown_until = 0.0
