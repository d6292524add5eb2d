from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime
from ..db import Base


class LoginCode(Base):
    """The single outstanding OTP challenge for a phone number."""

    __tablename__ = "login_codes"

    phone_number = Column(String(20), primary_key=True)  # canonical +<digits>
    code = Column(String(6), nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)  # naive UTC
    verified = Column(Boolean, nullable=False, default=False, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def __repr__(self):
        return f"<LoginCode ...{self.phone_number[-4:]} verified={self.verified} expires_at={self.expires_at}>"
