"""
Async HTTP client for the NetLife auth API
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx

from ..utils.phone import validate_phone
from .controller import RetryController
from .errors import ErrorInfo, classify_error, get_error_info

logger = logging.getLogger(__name__)

CODE_PATTERN = re.compile(r"^\d{6}$")


@dataclass
class AuthResult:
    success: bool
    data: Dict[str, Any] = field(default_factory=dict)
    error_code: Optional[str] = None
    error: Optional[ErrorInfo] = None
    message: Optional[str] = None  # server or validator text, when there is one
    retry_after: Optional[int] = None
    clear_code: bool = False
    can_retry: bool = False


class AuthClient:
    """
    Wraps send-code and verify-code with client-side validation and the
    retry controller.

    Pass an httpx.AsyncClient to share a connection pool or to inject a
    mock transport in tests.
    """

    def __init__(
        self,
        base_url: str,
        client: Optional[httpx.AsyncClient] = None,
        controller: Optional[RetryController] = None,
        timeout: float = 15.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.controller = controller or RetryController()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    def _local_failure(self, error_code: str, message: Optional[str] = None) -> AuthResult:
        info = get_error_info(error_code, message)
        return AuthResult(
            success=False,
            error_code=error_code,
            error=info,
            message=message or info.message,
        )

    def _failure(
        self,
        operation: str,
        error_code: str,
        message: Optional[str] = None,
        retry_after: Optional[int] = None,
    ) -> AuthResult:
        clear_code = self.controller.record_failure(operation, error_code, retry_after)
        info = get_error_info(error_code, message)
        return AuthResult(
            success=False,
            error_code=error_code,
            error=info,
            message=message or info.message,
            retry_after=retry_after,
            clear_code=clear_code,
            can_retry=self.controller.should_retry(operation, error_code),
        )

    async def _post(self, operation: str, path: str, payload: dict) -> AuthResult:
        try:
            response = await self._client.post(f"{self.base_url}{path}", json=payload)
        except httpx.HTTPError as e:
            error_code = classify_error(e)
            logger.warning(f"[AuthClient] {operation} transport error: {e}")
            return self._failure(operation, error_code)

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if response.is_success and body.get("success", True):
            self.controller.record_success(operation)
            return AuthResult(success=True, data=body)

        error_code = body.get("error") or classify_error(response.status_code)
        retry_after = body.get("retry_after")
        if retry_after is None and response.headers.get("retry-after", "").isdigit():
            retry_after = int(response.headers["retry-after"])
        return self._failure(operation, error_code, body.get("message"), retry_after)

    async def _request_code(self, operation: str, phone: str) -> AuthResult:
        check = validate_phone(phone)
        if not check.valid:
            error_code = "PHONE_NUMBER_REQUIRED" if not (phone or "").strip() else "INVALID_PHONE_NUMBER"
            return self._local_failure(error_code, check.error)

        if not self.controller.can_request_code():
            remaining = self.controller.cooldown_remaining()
            result = self._local_failure(
                "RATE_LIMIT_EXCEEDED",
                f"Please wait {self.controller.countdown_text()} before requesting another code.",
            )
            result.retry_after = remaining
            return result

        return await self._post(operation, "/v1/auth/send-code", {"phone": check.normalized})

    async def send_code(self, phone: str) -> AuthResult:
        return await self._request_code("send_code", phone)

    async def resend_code(self, phone: str) -> AuthResult:
        return await self._request_code("resend_code", phone)

    async def verify_code(self, phone: str, code: str) -> AuthResult:
        code = (code or "").strip()
        if not (phone or "").strip() or not code:
            return self._local_failure("MISSING_FIELDS")
        if not CODE_PATTERN.match(code):
            return self._local_failure("INVALID_CODE", "Please enter the 6-digit code.")

        check = validate_phone(phone)
        if not check.valid:
            return self._local_failure("INVALID_PHONE_NUMBER", check.error)

        return await self._post(
            "verify_code",
            "/v1/auth/verify-code",
            {"phone": check.normalized, "code": code},
        )
