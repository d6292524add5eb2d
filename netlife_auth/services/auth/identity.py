"""
Identity hand-off after a phone number has been verified
"""
import logging
import uuid

from sqlalchemy.orm import Session

from ...core.config import settings
from ...models.user import User
from ...utils.phone import get_phone_last4
from .code_store import utcnow
from .tokens import create_access_token

logger = logging.getLogger(__name__)


class IdentityService:
    @staticmethod
    def issue_for_phone(db: Session, phone: str) -> dict:
        """
        Find or create the user for a verified phone and mint a session token.

        Args:
            db: Database session
            phone: Canonical, already-verified phone number

        Returns:
            Dict with user, session and is_new_user
        """
        user = db.query(User).filter(User.phone == phone).first()
        is_new_user = False

        if not user:
            user = User(
                public_id=str(uuid.uuid4()),
                phone=phone,
                auth_provider="phone",
                is_active=True,
            )
            db.add(user)
            is_new_user = True

        user.last_login_at = utcnow()
        db.commit()
        db.refresh(user)

        access_token = create_access_token(
            user.public_id,
            auth_provider="phone",
            extra_claims={"phone_last4": get_phone_last4(phone)},
        )

        if is_new_user:
            logger.info(f"[Auth] Created user {user.public_id} for phone ...{get_phone_last4(phone)}")

        return {
            "user": {
                "public_id": user.public_id,
                "phone": user.phone,
                "auth_provider": user.auth_provider,
                "created_at": user.created_at.isoformat() if user.created_at else None,
            },
            "session": {
                "access_token": access_token,
                "token_type": "bearer",
                "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
            },
            "is_new_user": is_new_user,
        }
