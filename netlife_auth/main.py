"""
NetLife auth API application
"""
import logging
import sys
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI

# Load .env before settings are read
load_dotenv()

from .core.config import settings, validate_config  # noqa: E402
from .core.env import is_local_env  # noqa: E402
from .core.errors import ConfigurationError  # noqa: E402
from .db import init_db  # noqa: E402
from .exception_handlers import register_exception_handlers  # noqa: E402
from .middleware import LoggingMiddleware, RequestIDMiddleware  # noqa: E402
from .routers import auth, health  # noqa: E402
from .services.auth.provider_factory import build_delivery_provider  # noqa: E402

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger("netlife_auth")

if settings.SENTRY_DSN and not is_local_env():
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.logging import LoggingIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENV,
        integrations=[
            FastApiIntegration(),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
        traces_sample_rate=0.1,
        send_default_pii=False,
    )
    logger.info("Sentry error tracking initialized")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.APP_NAME} auth service (ENV={settings.ENV})")
    validate_config()
    init_db()

    try:
        app.state.delivery_provider = build_delivery_provider(settings)
    except ConfigurationError as e:
        # validate_config() already refused to start in production
        logger.error(f"[OTP] Delivery provider unavailable: {e.message}. send-code will answer 500.")
        app.state.delivery_provider = None

    yield

    provider = getattr(app.state, "delivery_provider", None)
    if provider is not None:
        await provider.aclose()
    logger.info("Shutdown complete")


def create_app() -> FastAPI:
    app = FastAPI(title=f"{settings.APP_NAME} Auth", version="1.0.0", lifespan=lifespan)

    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(LoggingMiddleware)
    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(auth.router)
    return app


app = create_app()
