"""
Exception handlers.

Register these on a FastAPI app instance via `register_exception_handlers(app)`.
"""
import logging

from fastapi import Request, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.env import is_local_env
from .core.errors import DeliveryError, OTPError

logger = logging.getLogger("netlife_auth")


async def otp_error_handler(request: Request, exc: OTPError):
    """Translate the OTP error taxonomy into the public JSON error shape."""
    body = exc.to_dict()

    if isinstance(exc, DeliveryError):
        logger.error(
            f"[OTP] Delivery failed on {request.url.path}: provider={exc.provider} "
            f"kind={exc.failure_kind} detail={exc.detail}"
        )
        # Provider error text only leaves the server in local/dev
        if is_local_env() and exc.detail:
            body["message"] = f"WhatsApp API Error: {exc.detail}"
    elif exc.status_code >= 500:
        logger.error(f"[OTP] {exc.error_code} on {request.url.path}: {exc.message}")
    else:
        logger.info(f"[OTP] {exc.error_code} on {request.url.path}")

    headers = None
    if exc.retry_after is not None:
        headers = {"Retry-After": str(exc.retry_after)}

    return JSONResponse(status_code=exc.status_code, content=body, headers=headers)


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": "HTTP_ERROR", "message": str(exc.detail)},
    )


async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are reported as 400, not FastAPI's default 422."""
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "INVALID_REQUEST", "message": "Invalid request data"},
    )


async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled errors"""
    if isinstance(exc, (HTTPException, StarletteHTTPException)):
        return await http_error_handler(request, exc)

    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)

    # In production, don't leak internal error details to clients
    if is_local_env():
        message = f"Internal server error: {exc}"
    else:
        message = "Internal server error"

    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "INTERNAL_ERROR", "message": message},
    )


def register_exception_handlers(app):
    """Register all exception handlers on the given FastAPI app."""
    app.add_exception_handler(OTPError, otp_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, global_exception_handler)
