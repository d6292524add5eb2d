"""
Infobip delivery provider (primary backend).

Sends the code as a WhatsApp text message by default, or as SMS when
INFOBIP_CHANNEL=sms.
"""
import logging
from typing import Optional

import httpx

from ...utils.phone import get_phone_last4
from .delivery import (
    DeliveryProvider,
    DeliveryResult,
    FAILURE_REJECTED,
    FAILURE_TRANSPORT,
    strip_plus,
)

logger = logging.getLogger(__name__)

# Infobip status group 1 is PENDING, i.e. accepted for delivery
ACCEPTED_GROUP_ID = 1


class InfobipProvider(DeliveryProvider):
    name = "infobip"

    WHATSAPP_PATH = "/whatsapp/1/message/text"
    SMS_PATH = "/sms/2/text/advanced"

    def __init__(
        self,
        api_key: str,
        sender: str,
        base_url: str = "https://api.infobip.com",
        channel: str = "whatsapp",
        timeout_seconds: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not api_key or not sender or not base_url:
            raise ValueError("Infobip API key, sender and base URL are required")
        if channel not in ("whatsapp", "sms"):
            raise ValueError(f"Unknown Infobip channel: {channel}. Must be one of: whatsapp, sms")

        self.api_key = api_key
        self.sender = sender
        self.base_url = base_url.rstrip("/")
        self.channel = channel
        self.timeout_seconds = timeout_seconds
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    def _headers(self) -> dict:
        return {
            "Authorization": f"App {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _build_request(self, to: str, message: str):
        if self.channel == "sms":
            payload = {
                "messages": [
                    {
                        "from": self.sender,
                        "destinations": [{"to": to}],
                        "text": message,
                    }
                ]
            }
            return f"{self.base_url}{self.SMS_PATH}", payload

        payload = {
            "from": self.sender,
            "to": to,
            "content": {"text": message},
        }
        return f"{self.base_url}{self.WHATSAPP_PATH}", payload

    async def send(self, phone: str, message: str) -> DeliveryResult:
        phone_last4 = get_phone_last4(phone)
        url, payload = self._build_request(strip_plus(phone), message)

        try:
            response = await self._client.post(url, json=payload, headers=self._headers())
        except httpx.TimeoutException:
            logger.error(f"[OTP][Infobip] Timeout sending to {phone_last4} (>{self.timeout_seconds}s)")
            return DeliveryResult.failed(
                f"Timeout after {self.timeout_seconds}s", FAILURE_TRANSPORT, self.name
            )
        except httpx.HTTPError as e:
            logger.error(f"[OTP][Infobip] Network error sending to {phone_last4}: {type(e).__name__}: {e}")
            return DeliveryResult.failed(f"Network error: {e}", FAILURE_TRANSPORT, self.name)

        if not response.is_success:
            error = f"HTTP {response.status_code}: {response.reason_phrase}"
            logger.error(f"[OTP][Infobip] API error sending to {phone_last4}: {error}")
            return DeliveryResult.failed(error, FAILURE_TRANSPORT, self.name)

        return self._classify(response, phone_last4)

    def _classify(self, response: httpx.Response, phone_last4: str) -> DeliveryResult:
        try:
            data = response.json()
        except ValueError:
            data = {}

        # Bulk endpoints wrap results in "messages"; the single WhatsApp text
        # endpoint may also answer with one flat message object.
        messages = data.get("messages") if isinstance(data, dict) else None
        if messages:
            message_info = messages[0]
        elif isinstance(data, dict) and "status" in data:
            message_info = data
        else:
            message_info = {}

        status = message_info.get("status") or {}
        if status.get("groupId") == ACCEPTED_GROUP_ID:
            message_id = message_info.get("messageId")
            logger.info(
                f"[OTP][Infobip] Message accepted for {phone_last4}, "
                f"messageId={message_id}, bulkId={data.get('bulkId')}"
            )
            return DeliveryResult.ok(message_id, self.name)

        error = (
            f"{status.get('description') or 'Message not accepted'} "
            f"(Status: {status.get('name') or 'Unknown'}, GroupId: {status.get('groupId') or 'Unknown'})"
        )
        logger.warning(f"[OTP][Infobip] Message rejected for {phone_last4}: {error}")
        return DeliveryResult.failed(error, FAILURE_REJECTED, self.name)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
