"""
Structured audit logging for OTP authentication events
"""
import json
import logging
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger(__name__)


class AuditService:
    """
    Structured audit logging for OTP events.

    Never logs codes or full phone numbers.
    """

    @staticmethod
    def _log_audit_event(
        event_type: str,
        request_id: Optional[str] = None,
        phone_last4: Optional[str] = None,
        ip: Optional[str] = None,
        user_agent: Optional[str] = None,
        outcome: Optional[str] = None,
        error: Optional[str] = None,
        **kwargs,
    ) -> dict:
        """
        Log structured audit event.

        Args:
            event_type: Event type (e.g., 'otp_send_requested')
            request_id: Request ID from middleware
            phone_last4: Last 4 digits of phone number
            ip: Client IP address
            user_agent: User agent string
            outcome: success / fail / conflict / locked
            error: Error message (if any)
            **kwargs: Additional event-specific fields

        Returns:
            The logged payload
        """
        from ...core.config import settings

        audit_data = {
            "event_type": event_type,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "outcome": outcome,
            "env": settings.ENV,
        }

        if request_id:
            audit_data["request_id"] = request_id
        if phone_last4:
            audit_data["phone_last4"] = phone_last4
        if ip:
            audit_data["ip"] = ip
        if user_agent:
            audit_data["user_agent"] = user_agent
        if error:
            audit_data["error"] = error

        audit_data.update({k: v for k, v in kwargs.items() if v is not None})

        logger.info(f"[Auth][Audit] {json.dumps(audit_data)}")
        return audit_data

    @staticmethod
    def log_code_requested(phone_last4: str, **context):
        return AuditService._log_audit_event("otp_send_requested", phone_last4=phone_last4, outcome="requested", **context)

    @staticmethod
    def log_code_conflict(phone_last4: str, retry_after: Optional[int] = None, **context):
        return AuditService._log_audit_event(
            "otp_send_conflict", phone_last4=phone_last4, outcome="conflict", retry_after=retry_after, **context
        )

    @staticmethod
    def log_code_sent(phone_last4: str, provider: str, message_id: Optional[str] = None, **context):
        return AuditService._log_audit_event(
            "otp_send_success",
            phone_last4=phone_last4,
            outcome="success",
            provider=provider,
            message_id=message_id,
            **context,
        )

    @staticmethod
    def log_send_failed(phone_last4: str, provider: str, failure_kind: Optional[str], error: Optional[str], **context):
        return AuditService._log_audit_event(
            "otp_send_failed",
            phone_last4=phone_last4,
            outcome="fail",
            provider=provider,
            failure_kind=failure_kind,
            error=error,
            **context,
        )

    @staticmethod
    def log_verify_success(phone_last4: str, user_id: Optional[str] = None, is_new_user: Optional[bool] = None, **context):
        return AuditService._log_audit_event(
            "otp_verify_success",
            phone_last4=phone_last4,
            outcome="success",
            user_id=user_id,
            is_new_user=is_new_user,
            **context,
        )

    @staticmethod
    def log_verify_failed(phone_last4: str, reason: str, **context):
        return AuditService._log_audit_event(
            "otp_verify_failed", phone_last4=phone_last4, outcome="fail", reason=reason, **context
        )

    @staticmethod
    def log_verify_locked(phone_last4: str, retry_after: Optional[int] = None, **context):
        return AuditService._log_audit_event(
            "otp_verify_locked", phone_last4=phone_last4, outcome="locked", retry_after=retry_after, **context
        )
