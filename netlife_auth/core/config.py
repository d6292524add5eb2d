from pydantic import BaseModel
import os
import logging


class Settings(BaseModel):
    ENV: str = os.getenv("ENV", "dev").lower()
    APP_NAME: str = os.getenv("APP_NAME", "NetLife")

    # JWT secret used for session tokens issued after verification
    JWT_SECRET: str = os.getenv("JWT_SECRET", "dev-secret-change-me")
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./netlife_auth.db")

    # OTP lifecycle
    # infobip | waapi | twilio_whatsapp | stub
    OTP_PROVIDER: str = os.getenv("OTP_PROVIDER", "infobip").lower()
    # Legacy switch: USE_WAAPI=true with a WAAPI_INSTANCE_KEY forces the waapi backend
    USE_WAAPI: bool = os.getenv("USE_WAAPI", "false").lower() == "true"
    OTP_CODE_TTL_MINUTES: int = int(os.getenv("OTP_CODE_TTL_MINUTES", "10"))
    # Echo the plaintext code in the send-code response. Never honoured in production.
    OTP_DEV_ECHO_CODE: bool = os.getenv("OTP_DEV_ECHO_CODE", "false").lower() == "true"

    # Server-side verify lockout
    OTP_MAX_VERIFY_ATTEMPTS: int = int(os.getenv("OTP_MAX_VERIFY_ATTEMPTS", "5"))
    OTP_VERIFY_WINDOW_SECONDS: int = int(os.getenv("OTP_VERIFY_WINDOW_SECONDS", "600"))
    OTP_LOCKOUT_SECONDS: int = int(os.getenv("OTP_LOCKOUT_SECONDS", "300"))

    # Outbound delivery
    DELIVERY_TIMEOUT_SECONDS: float = float(os.getenv("DELIVERY_TIMEOUT_SECONDS", "10"))

    INFOBIP_API_KEY: str = os.getenv("INFOBIP_API_KEY", "")
    INFOBIP_BASE_URL: str = os.getenv("INFOBIP_BASE_URL", "https://api.infobip.com")
    INFOBIP_SENDER: str = os.getenv("INFOBIP_SENDER", "")
    INFOBIP_CHANNEL: str = os.getenv("INFOBIP_CHANNEL", "whatsapp").lower()  # whatsapp | sms

    WAAPI_INSTANCE_KEY: str = os.getenv("WAAPI_INSTANCE_KEY", "")
    WAAPI_BASE_URL: str = os.getenv("WAAPI_BASE_URL", "https://waapi.net/api")

    TWILIO_ACCOUNT_SID: str = os.getenv("TWILIO_ACCOUNT_SID", "")
    TWILIO_AUTH_TOKEN: str = os.getenv("TWILIO_AUTH_TOKEN", "")
    TWILIO_WHATSAPP_FROM: str = os.getenv("TWILIO_WHATSAPP_FROM", "")  # e.g. whatsapp:+14155238886

    REDIS_URL: str = os.getenv("REDIS_URL", "")
    SENTRY_DSN: str = os.getenv("SENTRY_DSN", "")

    @property
    def is_prod(self) -> bool:
        return self.ENV in {"prod", "production"}

    @property
    def selected_provider(self) -> str:
        """
        Resolve which delivery backend this deployment uses.

        USE_WAAPI wins over OTP_PROVIDER as long as an instance key is present,
        matching how older deployments were switched over to waapi.
        """
        if self.USE_WAAPI and self.WAAPI_INSTANCE_KEY:
            return "waapi"
        return self.OTP_PROVIDER

    @property
    def dev_echo_code(self) -> bool:
        return self.OTP_DEV_ECHO_CODE and not self.is_prod


settings = Settings()


def missing_provider_config(config: Settings) -> list:
    """Return the names of settings the selected provider needs but does not have."""
    provider = config.selected_provider
    missing = []
    if provider == "infobip":
        if not config.INFOBIP_API_KEY:
            missing.append("INFOBIP_API_KEY")
        if not config.INFOBIP_SENDER:
            missing.append("INFOBIP_SENDER")
        if not config.INFOBIP_BASE_URL:
            missing.append("INFOBIP_BASE_URL")
    elif provider == "waapi":
        if not config.WAAPI_INSTANCE_KEY:
            missing.append("WAAPI_INSTANCE_KEY")
    elif provider == "twilio_whatsapp":
        if not config.TWILIO_ACCOUNT_SID:
            missing.append("TWILIO_ACCOUNT_SID")
        if not config.TWILIO_AUTH_TOKEN:
            missing.append("TWILIO_AUTH_TOKEN")
        if not config.TWILIO_WHATSAPP_FROM:
            missing.append("TWILIO_WHATSAPP_FROM")
    return missing


def validate_config():
    """Validate configuration at startup. Raises ValueError if invalid."""
    logger = logging.getLogger(__name__)

    if not settings.is_prod:
        return

    if settings.JWT_SECRET == "dev-secret-change-me":
        error_msg = "JWT_SECRET must be set in production"
        logger.error(error_msg)
        raise ValueError(error_msg)

    if settings.DATABASE_URL.startswith("sqlite"):
        error_msg = "SQLite database is not supported in production. Set DATABASE_URL to PostgreSQL."
        logger.error(error_msg)
        raise ValueError(error_msg)

    if settings.selected_provider == "stub":
        error_msg = "OTP_PROVIDER=stub is not allowed in production"
        logger.error(error_msg)
        raise ValueError(error_msg)

    missing = missing_provider_config(settings)
    if missing:
        error_msg = (
            f"OTP provider '{settings.selected_provider}' is missing required configuration: "
            f"{', '.join(missing)}"
        )
        logger.error(error_msg)
        raise ValueError(error_msg)

    if settings.OTP_DEV_ECHO_CODE:
        logger.warning("OTP_DEV_ECHO_CODE is set in production and will be ignored")

    logger.info("Configuration validated")
