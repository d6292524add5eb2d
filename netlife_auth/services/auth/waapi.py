"""
waapi.net WhatsApp delivery provider (low-cost / testing backend).

Tries an interactive message with a "copy code" reply button first and falls
back to plain text when that is refused, errors, or is not accepted.
"""
import logging
import re
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

_TRAILING_CODE = re.compile(r"(\d{6})\s*$")


class WaapiProvider(DeliveryProvider):
    name = "waapi"

    def __init__(
        self,
        instance_key: str,
        base_url: str = "https://waapi.net/api",
        timeout_seconds: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not instance_key:
            raise ValueError("waapi instance key is required")
        self.instance_key = instance_key
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    async def send(self, phone: str, message: str) -> DeliveryResult:
        jid = strip_plus(phone)
        phone_last4 = get_phone_last4(phone)

        match = _TRAILING_CODE.search(message)
        if match:
            result = await self._send_interactive(jid, message, match.group(1))
            if result.success:
                logger.info(f"[OTP][Waapi] Interactive message accepted for {phone_last4}")
                return result
            logger.warning(
                f"[OTP][Waapi] Interactive message failed for {phone_last4} ({result.error}), "
                "falling back to plain text"
            )

        result = await self._send_text(jid, message)
        if result.success:
            logger.info(f"[OTP][Waapi] Text message accepted for {phone_last4}")
        else:
            logger.error(f"[OTP][Waapi] Text message failed for {phone_last4}: {result.error}")
        return result

    async def _send_interactive(self, jid: str, message: str, code: str) -> DeliveryResult:
        payload = {
            "instance_key": self.instance_key,
            "jid": jid,
            "type": "interactive",
            "interactive": {
                "type": "button",
                "body": {"text": message},
                "action": {
                    "buttons": [
                        {
                            "type": "reply",
                            "reply": {
                                "id": f"copy_{code}",
                                "title": f"📋 Copy {code}",
                            },
                        }
                    ]
                },
            },
        }
        return await self._post("/sendMessage", payload, "waapi_interactive_message")

    async def _send_text(self, jid: str, message: str) -> DeliveryResult:
        payload = {
            "instance_key": self.instance_key,
            "jid": jid,
            "message": message,
        }
        return await self._post("/sendMessageText", payload, "waapi_message")

    async def _post(self, path: str, payload: dict, default_message_id: str) -> DeliveryResult:
        try:
            response = await self._client.post(
                f"{self.base_url}{path}",
                json=payload,
                headers={"Content-Type": "application/json"},
            )
        except httpx.TimeoutException:
            return DeliveryResult.failed(
                f"Timeout after {self.timeout_seconds}s", FAILURE_TRANSPORT, self.name
            )
        except httpx.HTTPError as e:
            return DeliveryResult.failed(f"Network error: {e}", FAILURE_TRANSPORT, self.name)

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if not response.is_success:
            detail = data.get("message") or response.reason_phrase
            return DeliveryResult.failed(
                f"HTTP {response.status_code}: {detail}", FAILURE_TRANSPORT, self.name
            )

        if not self._accepted(data):
            return DeliveryResult.failed(
                data.get("message") or data.get("error") or "Message not sent",
                FAILURE_REJECTED,
                self.name,
            )

        message_id = data.get("messageId") or data.get("id") or default_message_id
        return DeliveryResult.ok(str(message_id), self.name)

    @staticmethod
    def _accepted(data: dict) -> bool:
        """
        waapi answers 2xx for most requests; only an explicit error status or
        success=false in the body counts as not accepted.
        """
        if data.get("status") == "success" or data.get("success") is True:
            return True
        if data.get("status") == "error" or data.get("success") is False:
            return False
        return True

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
