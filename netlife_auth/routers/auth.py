"""
Phone OTP auth router: send-code and verify-code
"""
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ..db import get_db
from ..schemas.auth import (
    ErrorResponse,
    SendCodeRequest,
    SendCodeResponse,
    VerifyCodeRequest,
    VerifyCodeResponse,
)
from ..services.auth.delivery import DeliveryProvider
from ..services.auth.provider_factory import get_delivery_provider
from ..services.otp_service import OTPService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/auth", tags=["auth"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def _request_context(request: Request) -> dict:
    return {
        "request_id": getattr(request.state, "request_id", None),
        "ip": request.client.host if request.client else "unknown",
        "user_agent": request.headers.get("user-agent"),
    }


@router.post("/send-code", response_model=SendCodeResponse, response_model_exclude_none=True, responses=ERROR_RESPONSES)
async def send_code(
    payload: SendCodeRequest,
    request: Request,
    db: Session = Depends(get_db),
    provider: DeliveryProvider = Depends(get_delivery_provider),
):
    """
    Issue a one-time code for a phone number and deliver it.
    Rejected with 429 while a previous code is still live.
    """
    result = await OTPService.send_code(
        db=db,
        phone=payload.phone,
        provider=provider,
        **_request_context(request),
    )
    return SendCodeResponse(
        message="OTP code sent successfully via WhatsApp",
        message_id=result.message_id,
        code=result.code,
    )


@router.post("/verify-code", response_model=VerifyCodeResponse, response_model_exclude_none=True, responses=ERROR_RESPONSES)
async def verify_code(
    payload: VerifyCodeRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Verify a code and sign the user in. Creates the user on first login.
    """
    result = await OTPService.verify_code(
        db=db,
        phone=payload.phone,
        code=payload.code,
        **_request_context(request),
    )
    return VerifyCodeResponse(
        message="OTP code verified successfully",
        user=result.user,
        session=result.session,
        is_new_user=result.is_new_user if result.user else None,
        identity_error=result.identity_error,
    )
