"""
Login code storage.

CodeStore is the contract the issuance and verification flows depend on.
SQLAlchemyCodeStore is the implementation backed by the login_codes table.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from ...models.login_code import LoginCode

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how expires_at is stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class CodeStoreStats:
    total_active: int
    expired_count: int
    verified_count: int

    def as_dict(self) -> dict:
        return {
            "total_active": self.total_active,
            "expired_count": self.expired_count,
            "verified_count": self.verified_count,
        }


class CodeStore(ABC):
    """
    One record per phone. All deletes are no-ops when the record is already
    gone, so read-then-delete races between requests are harmless.
    """

    @abstractmethod
    def put(self, phone: str, code: str, ttl_minutes: int) -> datetime:
        """Replace any record for phone with a new unverified one. Returns expires_at."""

    @abstractmethod
    def get_active_unverified(self, phone: str) -> Optional[LoginCode]:
        """Return the unverified record for phone, expired or not."""

    @abstractmethod
    def has_live_active(self, phone: str) -> bool:
        """True iff an unverified record exists and has not expired."""

    @abstractmethod
    def mark_verified(self, phone: str) -> None:
        ...

    @abstractmethod
    def delete(self, phone: str) -> int:
        ...

    @abstractmethod
    def delete_expired(self, phone: str, now: datetime) -> int:
        """Delete the record for phone only if it had expired at now. Returns the count."""

    @abstractmethod
    def purge_expired(self) -> int:
        """Delete every record whose expires_at is before now. Returns the count."""

    @abstractmethod
    def get_stats(self) -> CodeStoreStats:
        ...

    def commit(self) -> None:
        """Make preceding writes durable. No-op for stores without transactions."""
        return None


class SQLAlchemyCodeStore(CodeStore):
    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    def _upsert_statement(self, values: dict):
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            insert = postgresql.insert
        elif dialect == "sqlite":
            insert = sqlite.insert
        else:
            return None

        stmt = insert(LoginCode.__table__).values(**values)
        return stmt.on_conflict_do_update(
            index_elements=[LoginCode.__table__.c.phone_number],
            set_={
                "code": stmt.excluded.code,
                "expires_at": stmt.excluded.expires_at,
                "verified": stmt.excluded.verified,
                "created_at": stmt.excluded.created_at,
            },
        )

    def put(self, phone: str, code: str, ttl_minutes: int) -> datetime:
        now = self.now()
        expires_at = now + timedelta(minutes=ttl_minutes)
        values = {
            "phone_number": phone,
            "code": code,
            "expires_at": expires_at,
            "verified": False,
            "created_at": now,
        }

        stmt = self._upsert_statement(values)
        if stmt is not None:
            self.db.execute(stmt)
        else:
            # Dialects without ON CONFLICT: merge is a select-then-write
            self.db.merge(LoginCode(**values))
            self.db.flush()
        return expires_at

    def get_active_unverified(self, phone: str) -> Optional[LoginCode]:
        # populate_existing: the row may have been rewritten by a Core upsert
        # after the ORM object was loaded in this session
        return (
            self.db.query(LoginCode)
            .populate_existing()
            .filter(
                LoginCode.phone_number == phone,
                LoginCode.verified.is_(False),
            )
            .first()
        )

    def has_live_active(self, phone: str) -> bool:
        row = (
            self.db.query(LoginCode.phone_number)
            .filter(
                LoginCode.phone_number == phone,
                LoginCode.verified.is_(False),
                LoginCode.expires_at > self.now(),
            )
            .first()
        )
        return row is not None

    def mark_verified(self, phone: str) -> None:
        self.db.query(LoginCode).filter(LoginCode.phone_number == phone).update(
            {"verified": True}, synchronize_session="fetch"
        )

    def delete(self, phone: str) -> int:
        return self.db.query(LoginCode).filter(LoginCode.phone_number == phone).delete(
            synchronize_session="fetch"
        )

    def delete_expired(self, phone: str, now: datetime) -> int:
        return (
            self.db.query(LoginCode)
            .filter(LoginCode.phone_number == phone, LoginCode.expires_at < now)
            .delete(synchronize_session="fetch")
        )

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        # now is read once so rows written during the sweep always land in the future
        cutoff = now or self.now()
        return self.db.query(LoginCode).filter(LoginCode.expires_at < cutoff).delete(
            synchronize_session=False
        )

    def get_stats(self, now: Optional[datetime] = None) -> CodeStoreStats:
        now = now or self.now()
        total_active = (
            self.db.query(LoginCode)
            .filter(LoginCode.verified.is_(False), LoginCode.expires_at > now)
            .count()
        )
        expired_count = self.db.query(LoginCode).filter(LoginCode.expires_at < now).count()
        verified_count = self.db.query(LoginCode).filter(LoginCode.verified.is_(True)).count()
        return CodeStoreStats(
            total_active=total_active,
            expired_count=expired_count,
            verified_count=verified_count,
        )

    def commit(self) -> None:
        self.db.commit()
