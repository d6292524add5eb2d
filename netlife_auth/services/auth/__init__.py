"""
Authentication services module
"""
from .delivery import DeliveryProvider, DeliveryResult, FAILURE_REJECTED, FAILURE_TRANSPORT
from .infobip import InfobipProvider
from .waapi import WaapiProvider
from .twilio_whatsapp import TwilioWhatsAppProvider
from .stub_provider import StubDeliveryProvider
from .provider_factory import build_delivery_provider, get_delivery_provider
from .code_store import CodeStore, CodeStoreStats, SQLAlchemyCodeStore
from .rate_limit import VerifyAttemptLimiter, get_verify_attempt_limiter
from .audit import AuditService
from .identity import IdentityService
from .tokens import create_access_token, decode_access_token

__all__ = [
    "DeliveryProvider",
    "DeliveryResult",
    "FAILURE_REJECTED",
    "FAILURE_TRANSPORT",
    "InfobipProvider",
    "WaapiProvider",
    "TwilioWhatsAppProvider",
    "StubDeliveryProvider",
    "build_delivery_provider",
    "get_delivery_provider",
    "CodeStore",
    "CodeStoreStats",
    "SQLAlchemyCodeStore",
    "VerifyAttemptLimiter",
    "get_verify_attempt_limiter",
    "AuditService",
    "IdentityService",
    "create_access_token",
    "decode_access_token",
]
