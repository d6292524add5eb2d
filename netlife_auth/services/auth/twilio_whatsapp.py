"""
Twilio WhatsApp delivery provider
"""
import asyncio
import logging

from twilio.rest import Client
from twilio.http.http_client import TwilioHttpClient
from twilio.base.exceptions import TwilioException, TwilioRestException

from ...utils.phone import get_phone_last4
from .delivery import (
    DeliveryProvider,
    DeliveryResult,
    FAILURE_REJECTED,
    FAILURE_TRANSPORT,
    with_plus,
)

logger = logging.getLogger(__name__)


class TwilioWhatsAppProvider(DeliveryProvider):
    """
    Sends messages through the Twilio Messages API on the WhatsApp channel.

    The Twilio SDK is synchronous, so calls run in a worker thread and are
    bounded by asyncio.wait_for on top of the HTTP client timeout.
    """

    name = "twilio_whatsapp"

    def __init__(self, account_sid: str, auth_token: str, from_number: str, timeout_seconds: float = 10.0, client=None):
        if not account_sid or not auth_token:
            raise ValueError("Twilio credentials not configured")
        if not from_number:
            raise ValueError("TWILIO_WHATSAPP_FROM not configured")

        if client is None:
            http_client = TwilioHttpClient()
            http_client.timeout = timeout_seconds
            client = Client(account_sid, auth_token, http_client=http_client)

        self.client = client
        self.from_number = self._whatsapp_address(from_number)
        self.timeout_seconds = timeout_seconds

    @staticmethod
    def _whatsapp_address(phone: str) -> str:
        if phone.startswith("whatsapp:"):
            return phone
        return f"whatsapp:{with_plus(phone)}"

    async def send(self, phone: str, message: str) -> DeliveryResult:
        phone_last4 = get_phone_last4(phone)
        to = self._whatsapp_address(phone)

        def _create_message():
            return self.client.messages.create(from_=self.from_number, to=to, body=message)

        try:
            sent = await asyncio.wait_for(
                asyncio.to_thread(_create_message),
                timeout=self.timeout_seconds + 5,  # buffer for executor overhead
            )
        except asyncio.TimeoutError:
            logger.error(f"[OTP][Twilio] Timeout sending to {phone_last4} (>{self.timeout_seconds}s)")
            return DeliveryResult.failed(
                f"Timeout after {self.timeout_seconds}s", FAILURE_TRANSPORT, self.name
            )
        except TwilioRestException as e:
            logger.error(f"[OTP][Twilio] API rejected message to {phone_last4}: {e.status} {e.code} {e.msg}")
            return DeliveryResult.failed(
                e.msg or f"HTTP {e.status}", FAILURE_REJECTED, self.name
            )
        except (TwilioException, OSError) as e:
            logger.error(f"[OTP][Twilio] Network error sending to {phone_last4}: {type(e).__name__}: {e}")
            return DeliveryResult.failed(f"Network error: {e}", FAILURE_TRANSPORT, self.name)

        status = getattr(sent, "status", None)
        if status in ("failed", "undelivered"):
            error = getattr(sent, "error_message", None) or f"Message {status}"
            logger.warning(f"[OTP][Twilio] Message to {phone_last4} not accepted: {error}")
            return DeliveryResult.failed(error, FAILURE_REJECTED, self.name)

        logger.info(f"[OTP][Twilio] Message queued for {phone_last4}, SID: {sent.sid}")
        return DeliveryResult.ok(sent.sid, self.name)
