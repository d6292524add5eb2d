"""
OTP issuance and verification flows
"""
import logging
import secrets
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..core.errors import (
    ConflictError,
    DeliveryError,
    ExpiredError,
    MismatchError,
    NotFoundError,
    TooManyAttemptsError,
    ValidationError,
)
from ..utils.phone import REASON_MISSING, get_phone_last4, validate_phone
from .auth.audit import AuditService
from .auth.code_store import SQLAlchemyCodeStore
from .auth.delivery import DeliveryProvider
from .auth.identity import IdentityService
from .auth.rate_limit import VerifyAttemptLimiter, get_verify_attempt_limiter

logger = logging.getLogger(__name__)

CODE_LENGTH = 6


def generate_code() -> str:
    """Uniform 6-digit code from the OS CSPRNG."""
    return str(secrets.randbelow(10 ** CODE_LENGTH)).zfill(CODE_LENGTH)


def _is_blank(value) -> bool:
    return not isinstance(value, str) or not value.strip()


def build_code_message(app_name: str, code: str) -> str:
    return f"Your {app_name} verification code is: {code}"


class CompensatingAction:
    """
    Undo step registered after a write that a later step may need reversed.

    run() is safe to call once; a failure inside the undo is logged and the
    caller continues with its own error.
    """

    def __init__(self, description: str, undo: Callable[[], None]):
        self.description = description
        self._undo = undo
        self.done = False

    def run(self) -> bool:
        if self.done:
            return True
        try:
            self._undo()
            self.done = True
            logger.info(f"[OTP] Compensated: {self.description}")
        except Exception as e:
            logger.error(f"[OTP] Compensation failed ({self.description}): {e}", exc_info=True)
        return self.done


@dataclass
class IssueResult:
    phone: str
    message_id: Optional[str]
    provider: str
    code: Optional[str] = None  # only set when dev echo is enabled


@dataclass
class VerifyResult:
    phone: str
    user: Optional[dict] = None
    session: Optional[dict] = None
    is_new_user: bool = False
    identity_error: Optional[str] = None


class OTPService:
    """
    Stateless request-scoped flows. Each call does a bounded number of store
    operations and at most one outbound delivery call.
    """

    @staticmethod
    def _require_valid_phone(phone) -> str:
        result = validate_phone(phone)
        if not result.valid:
            if result.reason == REASON_MISSING:
                raise ValidationError(
                    "Phone number is required", error_code="PHONE_NUMBER_REQUIRED", reason=result.reason
                )
            raise ValidationError(result.error, error_code="INVALID_PHONE_NUMBER", reason=result.reason)
        return result.normalized

    @staticmethod
    async def send_code(
        db: Session,
        phone: str,
        provider: DeliveryProvider,
        request_id: Optional[str] = None,
        ip: Optional[str] = None,
        user_agent: Optional[str] = None,
        config: Optional[Settings] = None,
    ) -> IssueResult:
        """
        Issue a new code for phone and deliver it.

        Args:
            db: Database session
            phone: Raw phone input (normalized here)
            provider: Delivery backend chosen at startup
            request_id: Request ID from middleware
            ip: Client IP address
            user_agent: User agent string
            config: Settings override (tests)

        Returns:
            IssueResult

        Raises:
            ValidationError: Phone missing or malformed
            ConflictError: A live code already exists for the phone
            DeliveryError: The provider failed; the stored code was rolled back
        """
        config = config or default_settings
        normalized = OTPService._require_valid_phone(phone)
        phone_last4 = get_phone_last4(normalized)
        context = {"request_id": request_id, "ip": ip, "user_agent": user_agent}
        store = SQLAlchemyCodeStore(db)

        AuditService.log_code_requested(phone_last4, **context)

        if store.has_live_active(normalized):
            record = store.get_active_unverified(normalized)
            retry_after = None
            if record is not None:
                retry_after = max(1, int((record.expires_at - store.now()).total_seconds()))
            AuditService.log_code_conflict(phone_last4, retry_after=retry_after, **context)
            raise ConflictError(retry_after=retry_after)

        code = generate_code()
        store.put(normalized, code, config.OTP_CODE_TTL_MINUTES)
        store.commit()

        def _delete_stored_code():
            store.delete(normalized)
            store.commit()

        rollback = CompensatingAction(f"delete stored code for ...{phone_last4}", _delete_stored_code)

        try:
            result = await provider.send(normalized, build_code_message(config.APP_NAME, code))
        except Exception:
            rollback.run()
            raise

        if not result.success:
            rollback.run()
            AuditService.log_send_failed(
                phone_last4, provider.name, result.failure_kind, result.error, **context
            )
            raise DeliveryError(
                detail=result.error,
                failure_kind=result.failure_kind,
                provider=result.provider or provider.name,
            )

        AuditService.log_code_sent(phone_last4, provider.name, result.message_id, **context)
        logger.info(f"[OTP] Code sent to ...{phone_last4} via {provider.name}")

        return IssueResult(
            phone=normalized,
            message_id=result.message_id,
            provider=result.provider or provider.name,
            code=code if config.dev_echo_code else None,
        )

    @staticmethod
    async def verify_code(
        db: Session,
        phone: str,
        code: str,
        request_id: Optional[str] = None,
        ip: Optional[str] = None,
        user_agent: Optional[str] = None,
        limiter: Optional[VerifyAttemptLimiter] = None,
    ) -> VerifyResult:
        """
        Check a submitted code and hand off to identity issuance on success.

        Raises:
            ValidationError: Missing fields or malformed phone
            TooManyAttemptsError: Phone is locked out after repeated wrong codes
            NotFoundError: No unverified code on record
            ExpiredError: Code lapsed; the record is deleted
            MismatchError: Wrong code; the record stays live
        """
        if _is_blank(phone) or _is_blank(code):
            raise ValidationError("Phone number and code are required", error_code="MISSING_FIELDS")

        normalized = OTPService._require_valid_phone(phone)
        phone_last4 = get_phone_last4(normalized)
        context = {"request_id": request_id, "ip": ip, "user_agent": user_agent}
        limiter = limiter or get_verify_attempt_limiter()
        store = SQLAlchemyCodeStore(db)

        allowed, retry_after = limiter.check(normalized)
        if not allowed:
            AuditService.log_verify_locked(phone_last4, retry_after=retry_after, **context)
            raise TooManyAttemptsError(retry_after=retry_after)

        record = store.get_active_unverified(normalized)
        if record is None:
            AuditService.log_verify_failed(phone_last4, "not_found", **context)
            raise NotFoundError()

        now = store.now()
        if record.is_expired(now):
            # A fresh code issued since the read is left alone
            store.delete_expired(normalized, now)
            store.commit()
            AuditService.log_verify_failed(phone_last4, "expired", **context)
            raise ExpiredError()

        if not secrets.compare_digest(record.code.encode(), code.encode()):
            locked = limiter.record_failure(normalized)
            AuditService.log_verify_failed(phone_last4, "mismatch", locked=locked, **context)
            raise MismatchError()

        store.mark_verified(normalized)
        store.commit()
        limiter.reset(normalized)

        result = VerifyResult(phone=normalized)
        try:
            identity = IdentityService.issue_for_phone(db, normalized)
            result.user = identity["user"]
            result.session = identity["session"]
            result.is_new_user = identity["is_new_user"]
        except Exception as e:
            # The phone is verified either way; identity is reported separately
            logger.error(f"[OTP] Identity issuance failed for ...{phone_last4}: {e}", exc_info=True)
            db.rollback()
            result.identity_error = "Phone verified, but the session could not be created. Please sign in again."

        AuditService.log_verify_success(
            phone_last4,
            user_id=result.user["public_id"] if result.user else None,
            is_new_user=result.is_new_user if result.user else None,
            **context,
        )
        return result
