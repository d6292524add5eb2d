from typing import Optional
from pydantic import BaseModel


# Fields are optional so missing values reach the handlers and get the
# domain error codes instead of a generic 422
class SendCodeRequest(BaseModel):
    phone: Optional[str] = None


class SendCodeResponse(BaseModel):
    success: bool = True
    message: str
    message_id: Optional[str] = None
    code: Optional[str] = None


class VerifyCodeRequest(BaseModel):
    phone: Optional[str] = None
    code: Optional[str] = None


class VerifyCodeResponse(BaseModel):
    success: bool = True
    message: str
    user: Optional[dict] = None
    session: Optional[dict] = None
    is_new_user: Optional[bool] = None
    identity_error: Optional[str] = None


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    message: str
    retry_after: Optional[int] = None
