"""
Tests for delivery providers and provider selection.

HTTP backends run against httpx.MockTransport; Twilio is mocked at the SDK
client.
"""
import json
import logging
from unittest.mock import MagicMock

import httpx
import pytest
from twilio.base.exceptions import TwilioRestException

from netlife_auth.core.config import Settings
from netlife_auth.core.errors import ConfigurationError
from netlife_auth.services.auth.delivery import FAILURE_REJECTED, FAILURE_TRANSPORT
from netlife_auth.services.auth.infobip import InfobipProvider
from netlife_auth.services.auth.provider_factory import build_delivery_provider
from netlife_auth.services.auth.stub_provider import StubDeliveryProvider
from netlife_auth.services.auth.twilio_whatsapp import TwilioWhatsAppProvider
from netlife_auth.services.auth.waapi import WaapiProvider

PHONE = "+256701234567"
MESSAGE = "Your NetLife verification code is: 123456"


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestInfobipProvider:
    @pytest.mark.asyncio
    async def test_whatsapp_request_shape_and_success(self):
        seen = {}

        def handler(request: httpx.Request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={"messages": [{"messageId": "ib-1", "status": {"groupId": 1, "name": "PENDING_ENROUTE"}}]},
            )

        provider = InfobipProvider("key-123", "447860099299", client=mock_client(handler))
        result = await provider.send(PHONE, MESSAGE)

        assert result.success is True
        assert result.message_id == "ib-1"
        assert result.provider == "infobip"
        assert seen["url"] == "https://api.infobip.com/whatsapp/1/message/text"
        assert seen["auth"] == "App key-123"
        assert seen["body"] == {
            "from": "447860099299",
            "to": "256701234567",
            "content": {"text": MESSAGE},
        }

    @pytest.mark.asyncio
    async def test_flat_response_object_is_accepted(self):
        def handler(request):
            return httpx.Response(200, json={"messageId": "ib-2", "status": {"groupId": 1}})

        provider = InfobipProvider("key", "sender", client=mock_client(handler))
        result = await provider.send(PHONE, MESSAGE)
        assert result.success is True
        assert result.message_id == "ib-2"

    @pytest.mark.asyncio
    async def test_sms_channel_uses_bulk_payload(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"messages": [{"messageId": "sms-1", "status": {"groupId": 1}}]})

        provider = InfobipProvider("key", "NetLife", channel="sms", client=mock_client(handler))
        result = await provider.send(PHONE, MESSAGE)

        assert result.success is True
        assert seen["path"] == "/sms/2/text/advanced"
        assert seen["body"]["messages"][0]["destinations"] == [{"to": "256701234567"}]

    @pytest.mark.asyncio
    async def test_rejected_status_group(self):
        def handler(request):
            return httpx.Response(
                200,
                json={
                    "messages": [
                        {
                            "messageId": "ib-3",
                            "status": {"groupId": 5, "name": "REJECTED_DESTINATION", "description": "Destination rejected"},
                        }
                    ]
                },
            )

        provider = InfobipProvider("key", "sender", client=mock_client(handler))
        result = await provider.send(PHONE, MESSAGE)

        assert result.success is False
        assert result.failure_kind == FAILURE_REJECTED
        assert "Destination rejected" in result.error
        assert "REJECTED_DESTINATION" in result.error

    @pytest.mark.asyncio
    async def test_http_error_is_transport_failure(self):
        def handler(request):
            return httpx.Response(401, json={"requestError": {}})

        provider = InfobipProvider("key", "sender", client=mock_client(handler))
        result = await provider.send(PHONE, MESSAGE)

        assert result.success is False
        assert result.failure_kind == FAILURE_TRANSPORT
        assert result.error == "HTTP 401: Unauthorized"

    @pytest.mark.asyncio
    async def test_timeout_is_transport_failure(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        provider = InfobipProvider("key", "sender", timeout_seconds=3, client=mock_client(handler))
        result = await provider.send(PHONE, MESSAGE)

        assert result.success is False
        assert result.is_transport_failure
        assert result.error == "Timeout after 3s"

    @pytest.mark.asyncio
    async def test_connect_error_is_transport_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        provider = InfobipProvider("key", "sender", client=mock_client(handler))
        result = await provider.send(PHONE, MESSAGE)

        assert result.is_transport_failure
        assert result.error.startswith("Network error:")

    def test_requires_credentials(self):
        with pytest.raises(ValueError):
            InfobipProvider("", "sender")
        with pytest.raises(ValueError):
            InfobipProvider("key", "sender", channel="telegram")


class TestWaapiProvider:
    @pytest.mark.asyncio
    async def test_interactive_message_with_copy_button(self):
        requests = []

        def handler(request):
            requests.append((request.url.path, json.loads(request.content)))
            return httpx.Response(200, json={"status": "success", "messageId": "wa-1"})

        provider = WaapiProvider("inst-1", client=mock_client(handler))
        result = await provider.send(PHONE, MESSAGE)

        assert result.success is True
        assert result.message_id == "wa-1"
        assert len(requests) == 1
        path, body = requests[0]
        assert path == "/api/sendMessage"
        assert body["jid"] == "256701234567"
        assert body["instance_key"] == "inst-1"
        button = body["interactive"]["action"]["buttons"][0]["reply"]
        assert button["id"] == "copy_123456"
        assert button["title"].endswith("Copy 123456")

    @pytest.mark.asyncio
    async def test_falls_back_to_text_when_interactive_rejected(self):
        requests = []

        def handler(request):
            requests.append(request.url.path)
            if request.url.path.endswith("/sendMessage"):
                return httpx.Response(200, json={"status": "error", "message": "interactive not supported"})
            return httpx.Response(200, json={"success": True})

        provider = WaapiProvider("inst-1", client=mock_client(handler))
        result = await provider.send(PHONE, MESSAGE)

        assert result.success is True
        assert result.message_id == "waapi_message"
        assert requests == ["/api/sendMessage", "/api/sendMessageText"]

    @pytest.mark.asyncio
    async def test_falls_back_to_text_on_interactive_http_error(self):
        def handler(request):
            if request.url.path.endswith("/sendMessage"):
                return httpx.Response(500, json={"message": "boom"})
            return httpx.Response(200, json={"id": "wa-text-7"})

        provider = WaapiProvider("inst-1", client=mock_client(handler))
        result = await provider.send(PHONE, MESSAGE)

        assert result.success is True
        assert result.message_id == "wa-text-7"

    @pytest.mark.asyncio
    async def test_falls_back_to_text_on_interactive_connect_error(self):
        requests = []

        def handler(request):
            requests.append(request.url.path)
            if request.url.path.endswith("/sendMessage"):
                raise httpx.ConnectError("connection reset", request=request)
            return httpx.Response(200, json={"status": "success", "messageId": "wa-text-8"})

        provider = WaapiProvider("inst-1", client=mock_client(handler))
        result = await provider.send(PHONE, MESSAGE)

        assert result.success is True
        assert result.message_id == "wa-text-8"
        assert requests == ["/api/sendMessage", "/api/sendMessageText"]

    @pytest.mark.asyncio
    async def test_message_without_code_goes_straight_to_text(self):
        requests = []

        def handler(request):
            requests.append(request.url.path)
            return httpx.Response(200, json={})

        provider = WaapiProvider("inst-1", client=mock_client(handler))
        result = await provider.send(PHONE, "Welcome to NetLife")

        assert result.success is True
        assert requests == ["/api/sendMessageText"]

    @pytest.mark.asyncio
    async def test_both_attempts_failing_reports_text_failure(self):
        def handler(request):
            if request.url.path.endswith("/sendMessage"):
                return httpx.Response(200, json={"status": "error"})
            return httpx.Response(200, json={"success": False, "message": "Instance disconnected"})

        provider = WaapiProvider("inst-1", client=mock_client(handler))
        result = await provider.send(PHONE, MESSAGE)

        assert result.success is False
        assert result.failure_kind == FAILURE_REJECTED
        assert result.error == "Instance disconnected"

    @pytest.mark.asyncio
    async def test_text_http_error_is_transport_failure(self):
        def handler(request):
            return httpx.Response(503, json={"message": "Service Unavailable"})

        provider = WaapiProvider("inst-1", client=mock_client(handler))
        result = await provider.send(PHONE, "hello")

        assert result.failure_kind == FAILURE_TRANSPORT
        assert result.error == "HTTP 503: Service Unavailable"


class TestTwilioWhatsAppProvider:
    def _provider(self, client):
        return TwilioWhatsAppProvider("AC123", "token", "+14155238886", client=client)

    @pytest.mark.asyncio
    async def test_send_success(self):
        client = MagicMock()
        client.messages.create.return_value = MagicMock(sid="SM123", status="queued")

        result = await self._provider(client).send(PHONE, MESSAGE)

        assert result.success is True
        assert result.message_id == "SM123"
        client.messages.create.assert_called_once_with(
            from_="whatsapp:+14155238886",
            to="whatsapp:+256701234567",
            body=MESSAGE,
        )

    @pytest.mark.asyncio
    async def test_rest_exception_is_rejected(self):
        client = MagicMock()
        client.messages.create.side_effect = TwilioRestException(
            400, "https://api.twilio.com", msg="Invalid 'To' Phone Number", code=21211
        )

        result = await self._provider(client).send(PHONE, MESSAGE)

        assert result.success is False
        assert result.failure_kind == FAILURE_REJECTED
        assert result.error == "Invalid 'To' Phone Number"

    @pytest.mark.asyncio
    async def test_os_error_is_transport_failure(self):
        client = MagicMock()
        client.messages.create.side_effect = ConnectionError("reset by peer")

        result = await self._provider(client).send(PHONE, MESSAGE)

        assert result.failure_kind == FAILURE_TRANSPORT

    @pytest.mark.asyncio
    async def test_failed_status_is_rejected(self):
        client = MagicMock()
        client.messages.create.return_value = MagicMock(
            sid="SM9", status="failed", error_message="Unreachable"
        )

        result = await self._provider(client).send(PHONE, MESSAGE)

        assert result.success is False
        assert result.error == "Unreachable"

    def test_requires_from_number(self):
        with pytest.raises(ValueError):
            TwilioWhatsAppProvider("AC123", "token", "", client=MagicMock())


class TestStubProvider:
    @pytest.mark.asyncio
    async def test_records_message(self):
        provider = StubDeliveryProvider(env="dev")
        result = await provider.send(PHONE, MESSAGE)

        assert result.success is True
        assert result.message_id.startswith("stub_")
        assert provider.sent[PHONE] == MESSAGE

    @pytest.mark.asyncio
    async def test_logs_only_last_four_digits(self, caplog):
        caplog.set_level(logging.INFO, logger="netlife_auth.services.auth.stub_provider")
        provider = StubDeliveryProvider(env="dev")

        await provider.send(PHONE, MESSAGE)

        assert "...4567" in caplog.text
        assert PHONE not in caplog.text
        assert "256701234567" not in caplog.text

    def test_refuses_production(self):
        with pytest.raises(ValueError):
            StubDeliveryProvider(env="prod")


class TestProviderFactory:
    def test_builds_infobip(self):
        config = Settings(ENV="dev", OTP_PROVIDER="infobip", INFOBIP_API_KEY="k", INFOBIP_SENDER="s")
        provider = build_delivery_provider(config)
        assert isinstance(provider, InfobipProvider)

    def test_use_waapi_overrides_provider(self):
        config = Settings(ENV="dev", OTP_PROVIDER="infobip", USE_WAAPI=True, WAAPI_INSTANCE_KEY="inst")
        provider = build_delivery_provider(config)
        assert isinstance(provider, WaapiProvider)

    def test_use_waapi_without_key_is_ignored(self):
        config = Settings(ENV="dev", OTP_PROVIDER="stub", USE_WAAPI=True, WAAPI_INSTANCE_KEY="")
        provider = build_delivery_provider(config)
        assert isinstance(provider, StubDeliveryProvider)

    def test_builds_twilio(self):
        config = Settings(
            ENV="dev",
            OTP_PROVIDER="twilio_whatsapp",
            TWILIO_ACCOUNT_SID="AC123",
            TWILIO_AUTH_TOKEN="token",
            TWILIO_WHATSAPP_FROM="whatsapp:+14155238886",
        )
        provider = build_delivery_provider(config)
        assert isinstance(provider, TwilioWhatsAppProvider)
        assert provider.from_number == "whatsapp:+14155238886"

    def test_missing_credentials_raise_configuration_error(self):
        config = Settings(ENV="dev", OTP_PROVIDER="infobip", INFOBIP_API_KEY="", INFOBIP_SENDER="")
        with pytest.raises(ConfigurationError) as exc_info:
            build_delivery_provider(config)
        assert exc_info.value.error_code == "SERVICE_NOT_CONFIGURED"

    def test_unknown_provider(self):
        config = Settings(ENV="dev", OTP_PROVIDER="carrier_pigeon")
        with pytest.raises(ConfigurationError):
            build_delivery_provider(config)

    def test_stub_refused_in_production(self):
        config = Settings(ENV="prod", OTP_PROVIDER="stub")
        with pytest.raises(ConfigurationError):
            build_delivery_provider(config)
