"""
User-facing error catalog for the auth client

Maps server error codes and client-side failures onto display text and
retry policy.
"""
from dataclasses import dataclass
from typing import Optional, Union

import httpx


@dataclass(frozen=True)
class ErrorInfo:
    title: str
    message: str
    action: str
    severity: str = "error"
    retryable: bool = False
    retry_delay: Optional[int] = None
    max_attempts: Optional[int] = None


ERROR_MESSAGES = {
    "INVALID_PHONE_NUMBER": ErrorInfo(
        title="Invalid Phone Number",
        message="Please enter a valid phone number with country code.",
        action="Check your phone number and try again",
    ),
    "PHONE_NUMBER_REQUIRED": ErrorInfo(
        title="Phone Number Required",
        message="Please enter your phone number to continue.",
        action="Enter your phone number",
    ),
    "MISSING_FIELDS": ErrorInfo(
        title="Missing Information",
        message="Please fill in all required fields.",
        action="Complete the form",
    ),
    "RATE_LIMIT_EXCEEDED": ErrorInfo(
        title="Too Many Requests",
        message="You have requested too many codes. Please wait before trying again.",
        action="Wait and try again",
        severity="warning",
        retryable=True,
        retry_delay=300,
        max_attempts=1,
    ),
    "MAX_ATTEMPTS_EXCEEDED": ErrorInfo(
        title="Too Many Attempts",
        message="Too many incorrect attempts. Please wait before trying again.",
        action="Wait and try again",
        severity="warning",
        retryable=True,
        retry_delay=60,
        max_attempts=1,
    ),
    "INVALID_CODE": ErrorInfo(
        title="Invalid Code",
        message="The code you entered is incorrect. Please try again.",
        action="Re-enter the code",
        severity="warning",
    ),
    "CODE_EXPIRED": ErrorInfo(
        title="Code Expired",
        message="Your verification code has expired. Please request a new one.",
        action="Request a new code",
        severity="warning",
    ),
    "CODE_ALREADY_USED": ErrorInfo(
        title="Code Already Used",
        message="This code has already been used. Please request a new one.",
        action="Request a new code",
        severity="warning",
    ),
    "CODE_NOT_FOUND": ErrorInfo(
        title="Code Not Found",
        message="No verification code found for this number. Please request a new one.",
        action="Request a new code",
        severity="warning",
    ),
    "DELIVERY_FAILED": ErrorInfo(
        title="Message Not Sent",
        message="We could not deliver your code via WhatsApp. Please try again.",
        action="Try again",
        retryable=True,
        retry_delay=30,
        max_attempts=3,
    ),
    "SERVICE_NOT_CONFIGURED": ErrorInfo(
        title="Service Unavailable",
        message="Messaging is temporarily unavailable. Please try again later.",
        action="Try again later",
    ),
    "NETWORK_ERROR": ErrorInfo(
        title="Connection Problem",
        message="Please check your internet connection and try again.",
        action="Check your connection",
        retryable=True,
        retry_delay=10,
        max_attempts=3,
    ),
    "TIMEOUT_ERROR": ErrorInfo(
        title="Request Timed Out",
        message="The request took too long. Please try again.",
        action="Try again",
        retryable=True,
        retry_delay=5,
        max_attempts=3,
    ),
    "SERVER_ERROR": ErrorInfo(
        title="Server Error",
        message="Something went wrong on our end. Please try again.",
        action="Try again",
        retryable=True,
        retry_delay=30,
        max_attempts=2,
    ),
    "INTERNAL_ERROR": ErrorInfo(
        title="Server Error",
        message="An unexpected error occurred. Please try again.",
        action="Try again",
        retryable=True,
        retry_delay=15,
        max_attempts=2,
    ),
    "INVALID_REQUEST": ErrorInfo(
        title="Invalid Request",
        message="The request could not be processed.",
        action="Check your input",
    ),
    "UNKNOWN_ERROR": ErrorInfo(
        title="Something Went Wrong",
        message="An unexpected error occurred. Please try again.",
        action="Try again",
        retryable=True,
        retry_delay=10,
        max_attempts=3,
    ),
}

# Codes after which the entered code should be cleared from the input
CLEAR_CODE_ERRORS = frozenset({"INVALID_CODE", "CODE_EXPIRED", "CODE_ALREADY_USED"})


def get_error_info(error_code: Optional[str], fallback_message: Optional[str] = None) -> ErrorInfo:
    """Look up display info, falling back to UNKNOWN_ERROR with the server's message."""
    info = ERROR_MESSAGES.get(error_code or "")
    if info is not None:
        return info

    unknown = ERROR_MESSAGES["UNKNOWN_ERROR"]
    if fallback_message:
        return ErrorInfo(
            title=unknown.title,
            message=fallback_message,
            action=unknown.action,
            severity=unknown.severity,
            retryable=unknown.retryable,
            retry_delay=unknown.retry_delay,
            max_attempts=unknown.max_attempts,
        )
    return unknown


def get_retry_config(error_code: Optional[str]) -> dict:
    info = get_error_info(error_code)
    return {
        "retryable": info.retryable,
        "retry_delay": info.retry_delay if info.retry_delay is not None else 10,
        "max_attempts": info.max_attempts if info.max_attempts is not None else 3,
    }


def classify_error(error: Union[BaseException, int]) -> str:
    """
    Classify a transport exception or an HTTP status code into an error code.

    Timeouts are checked before generic network errors since httpx timeouts
    are also transport errors.
    """
    if isinstance(error, BaseException):
        if isinstance(error, httpx.TimeoutException):
            return "TIMEOUT_ERROR"
        if isinstance(error, (httpx.NetworkError, httpx.TransportError)):
            return "NETWORK_ERROR"
        return "UNKNOWN_ERROR"

    status = int(error)
    if status == 429:
        return "RATE_LIMIT_EXCEEDED"
    if status >= 500:
        return "SERVER_ERROR"
    if status >= 400:
        return "INVALID_REQUEST"
    return "UNKNOWN_ERROR"


def format_countdown(seconds: float) -> str:
    """Render a remaining wait as 45s, 2m 5s, 3m or 1h 2m."""
    total = int(seconds)
    if total <= 0:
        return ""
    if total < 60:
        return f"{total}s"
    if total < 3600:
        minutes, secs = divmod(total, 60)
        return f"{minutes}m {secs}s" if secs else f"{minutes}m"
    hours, remainder = divmod(total, 3600)
    return f"{hours}h {remainder // 60}m"
