"""
Pytest configuration and fixtures for NetLife auth tests.

Provides test database isolation, a controllable delivery provider and a
TestClient wired to both.
"""
import os
from typing import List, Optional

# Settings are read at import time; pin a safe test environment first
os.environ.setdefault("ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("OTP_PROVIDER", "stub")

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from netlife_auth.core.env import clear_env_cache  # noqa: E402
from netlife_auth.services.auth.delivery import (  # noqa: E402
    DeliveryProvider,
    DeliveryResult,
    FAILURE_REJECTED,
)
from netlife_auth.services.auth.rate_limit import reset_verify_attempt_limiter  # noqa: E402

# One shared in-memory database for the whole session
test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
    echo=False,  # Set to True for SQL debugging
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(scope="session", autouse=True)
def setup_test_db():
    """Create the schema once per test session."""
    from netlife_auth.db import Base
    from netlife_auth import models  # noqa: F401

    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)
    yield
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def db():
    """
    Provide a clean database session for each test.

    The session is bound to an outer transaction that is rolled back after
    the test, so commits made by the code under test never leak.
    """
    connection = test_engine.connect()
    transaction = connection.begin()
    session = TestingSessionLocal(bind=connection)

    try:
        yield session
    finally:
        session.close()
        if transaction.is_active:
            transaction.rollback()
        connection.close()


@pytest.fixture(autouse=True)
def reset_limiter():
    """The verify-attempt limiter is a process singleton."""
    reset_verify_attempt_limiter()
    yield
    reset_verify_attempt_limiter()


@pytest.fixture
def env(monkeypatch):
    """Switch ENV for one test, clearing the cached environment lookups."""

    def _set(name: str):
        monkeypatch.setenv("ENV", name)
        clear_env_cache()

    yield _set
    clear_env_cache()


class FakeDeliveryProvider(DeliveryProvider):
    """
    Records every send and answers with a scripted result.

    Set `result` to a DeliveryResult to return, or `exc` to an exception to
    raise from send().
    """

    name = "fake"

    def __init__(self):
        self.calls: List[tuple] = []
        self.result: Optional[DeliveryResult] = None
        self.exc: Optional[BaseException] = None

    async def send(self, phone: str, message: str) -> DeliveryResult:
        self.calls.append((phone, message))
        if self.exc is not None:
            raise self.exc
        if self.result is not None:
            return self.result
        return DeliveryResult.ok(f"fake_{len(self.calls)}", self.name)

    def fail_with(self, error: str = "Recipient not on WhatsApp", kind: str = FAILURE_REJECTED):
        self.result = DeliveryResult.failed(error, kind, self.name)

    def last_code(self) -> str:
        """Pull the 6-digit code out of the most recent message."""
        _, message = self.calls[-1]
        return message.rsplit(" ", 1)[-1]


@pytest.fixture
def fake_provider() -> FakeDeliveryProvider:
    return FakeDeliveryProvider()


def override_get_db(db_session):
    """Dependency override yielding the test session."""

    def _override():
        yield db_session

    return _override


@pytest.fixture(scope="function")
def client(setup_test_db, db, fake_provider):
    """
    Provide a FastAPI TestClient using the test session and fake provider.
    """
    from fastapi.testclient import TestClient
    from netlife_auth.db import get_db
    from netlife_auth.main import app
    from netlife_auth.services.auth.provider_factory import get_delivery_provider

    app.dependency_overrides[get_db] = override_get_db(db)
    app.dependency_overrides[get_delivery_provider] = lambda: fake_provider

    try:
        # Set raise_server_exceptions=False so unhandled errors become 500 responses
        with TestClient(app, raise_server_exceptions=False) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()
