"""
Delivery provider factory.

The provider is built once at startup (see main.lifespan) and handed to
request handlers through the get_delivery_provider dependency. The issuance
flow never looks at configuration to decide which backend to use.
"""
import logging
from typing import Optional

from fastapi import Request

from ...core.config import Settings, settings as default_settings, missing_provider_config
from ...core.errors import ConfigurationError
from .delivery import DeliveryProvider
from .infobip import InfobipProvider
from .waapi import WaapiProvider
from .twilio_whatsapp import TwilioWhatsAppProvider
from .stub_provider import StubDeliveryProvider

logger = logging.getLogger(__name__)

PROVIDERS = ("infobip", "waapi", "twilio_whatsapp", "stub")


def build_delivery_provider(config: Optional[Settings] = None) -> DeliveryProvider:
    """
    Construct the delivery provider selected by configuration.

    Args:
        config: Settings to read; defaults to the process settings

    Returns:
        DeliveryProvider instance

    Raises:
        ConfigurationError: If the provider is unknown or missing credentials
    """
    config = config or default_settings
    provider_type = config.selected_provider

    if provider_type not in PROVIDERS:
        raise ConfigurationError(
            f"Unknown OTP provider: {provider_type}. Must be one of: {', '.join(PROVIDERS)}"
        )

    missing = missing_provider_config(config)
    if missing:
        logger.error(f"[OTP] Provider '{provider_type}' missing configuration: {', '.join(missing)}")
        raise ConfigurationError()

    timeout = config.DELIVERY_TIMEOUT_SECONDS

    if provider_type == "infobip":
        provider = InfobipProvider(
            api_key=config.INFOBIP_API_KEY,
            sender=config.INFOBIP_SENDER,
            base_url=config.INFOBIP_BASE_URL,
            channel=config.INFOBIP_CHANNEL,
            timeout_seconds=timeout,
        )
    elif provider_type == "waapi":
        provider = WaapiProvider(
            instance_key=config.WAAPI_INSTANCE_KEY,
            base_url=config.WAAPI_BASE_URL,
            timeout_seconds=timeout,
        )
    elif provider_type == "twilio_whatsapp":
        provider = TwilioWhatsAppProvider(
            account_sid=config.TWILIO_ACCOUNT_SID,
            auth_token=config.TWILIO_AUTH_TOKEN,
            from_number=config.TWILIO_WHATSAPP_FROM,
            timeout_seconds=timeout,
        )
    else:
        try:
            provider = StubDeliveryProvider(env=config.ENV)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

    logger.info(f"[OTP] Using {provider.name} delivery provider")
    return provider


def get_delivery_provider(request: Request) -> DeliveryProvider:
    """FastAPI dependency returning the provider built at startup."""
    provider = getattr(request.app.state, "delivery_provider", None)
    if provider is None:
        raise ConfigurationError()
    return provider
