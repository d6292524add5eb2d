"""
Stub delivery provider for local development and tests
"""
import logging
import uuid

from ...utils.phone import get_phone_last4
from .delivery import DeliveryProvider, DeliveryResult

logger = logging.getLogger(__name__)


class StubDeliveryProvider(DeliveryProvider):
    """
    Logs messages instead of sending them.

    Always succeeds. Keeps the last message per phone so a developer (or a
    test) can read the code back.
    """

    name = "stub"

    def __init__(self, env: str = "dev"):
        if env in ("prod", "production"):
            raise ValueError("Stub delivery provider cannot be used in production")
        self.env = env
        self.sent: dict = {}
        logger.info(f"[OTP][Stub] Stub provider enabled for environment: {env}")

    async def send(self, phone: str, message: str) -> DeliveryResult:
        self.sent[phone] = message
        logger.info(f"[OTP][Stub] Message for ...{get_phone_last4(phone)}: {message}")
        return DeliveryResult.ok(f"stub_{uuid.uuid4().hex[:12]}", self.name)
