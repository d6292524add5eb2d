"""
Session token creation
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt

from ...core.config import settings


def create_access_token(
    subject: str,
    auth_provider: str = "phone",
    expires_delta: Optional[timedelta] = None,
    extra_claims: Optional[dict] = None,
) -> str:
    """
    Create a signed JWT access token.

    Args:
        subject: User's public_id, used as the sub claim
        auth_provider: How the user authenticated
        expires_delta: Optional lifetime; defaults to ACCESS_TOKEN_EXPIRE_MINUTES
        extra_claims: Additional claims to embed

    Returns:
        JWT token string
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    now = datetime.now(timezone.utc)
    payload = {
        "sub": subject,
        "auth_provider": auth_provider,
        "iat": now,
        "exp": now + expires_delta,
    }
    if extra_claims:
        payload.update(extra_claims)

    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Decode and verify a token. Raises jose.JWTError when invalid or expired."""
    return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.ALGORITHM])
