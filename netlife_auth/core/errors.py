"""
Error taxonomy for the OTP lifecycle.

Services raise these; exception_handlers.py turns them into JSON responses.
Each class fixes an HTTP status and a stable error code that clients key on.
"""
from typing import Optional


class OTPError(Exception):
    status_code = 500
    error_code = "INTERNAL_ERROR"
    default_message = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        error_code: Optional[str] = None,
        retry_after: Optional[int] = None,
    ):
        self.message = message or self.default_message
        if error_code:
            self.error_code = error_code
        self.retry_after = retry_after
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body = {
            "success": False,
            "error": self.error_code,
            "message": self.message,
        }
        if self.retry_after is not None:
            body["retry_after"] = self.retry_after
        return body


class ValidationError(OTPError):
    """Malformed phone or code. The user has to correct the input."""

    status_code = 400
    error_code = "INVALID_PHONE_NUMBER"
    default_message = "Invalid phone number"

    def __init__(self, message: Optional[str] = None, error_code: Optional[str] = None, reason: Optional[str] = None):
        super().__init__(message, error_code)
        self.reason = reason


class ConflictError(OTPError):
    """A code is already live for this phone. Caller should wait, not retry."""

    status_code = 429
    error_code = "RATE_LIMIT_EXCEEDED"
    default_message = (
        "An OTP code is already active for this phone number. "
        "Please wait before requesting a new one."
    )


class TooManyAttemptsError(ConflictError):
    error_code = "MAX_ATTEMPTS_EXCEEDED"
    default_message = "Too many verification attempts. Please wait before trying again."


class NotFoundError(OTPError):
    status_code = 404
    error_code = "CODE_NOT_FOUND"
    default_message = "No OTP code found for this phone number. Please request a new code."


class ExpiredError(OTPError):
    status_code = 401
    error_code = "CODE_EXPIRED"
    default_message = "OTP code has expired. Please request a new code."


class MismatchError(OTPError):
    status_code = 401
    error_code = "INVALID_CODE"
    default_message = "Invalid OTP code. Please check and try again."


class DeliveryError(OTPError):
    """
    The delivery backend failed. The stored code has already been rolled back
    by the time this is raised.

    detail holds the provider's own error text. It is only shown to clients
    in local/dev environments.
    """

    status_code = 500
    error_code = "DELIVERY_FAILED"
    default_message = "Failed to send WhatsApp message. Please try again."

    def __init__(
        self,
        message: Optional[str] = None,
        detail: Optional[str] = None,
        failure_kind: Optional[str] = None,
        provider: Optional[str] = None,
    ):
        super().__init__(message)
        self.detail = detail
        self.failure_kind = failure_kind
        self.provider = provider


class ConfigurationError(OTPError):
    status_code = 500
    error_code = "SERVICE_NOT_CONFIGURED"
    default_message = "Messaging service is not configured"
