"""Shared pytest fixtures."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID

import pytest

from authflow.config import Config
from authflow.core.modules.account.models import Account
from authflow.core.modules.mail.service import MailService
from authflow.core.modules.session.models import Session
from authflow.core.modules.token.service import TokenService
from authflow.utils import now

ACCOUNT_ID = UUID("87654321-4321-8765-4321-876543218765")
SESSION_ID = UUID("12345678-1234-5678-1234-567812345678")


class FakeTransaction:
    """Records commit on the shared event log."""

    def __init__(self, events: list[str]) -> None:
        self.events = events
        self.session = MagicMock(name="client_session")
        self.committed = False

    async def commit(self) -> None:
        self.events.append("commit")
        self.committed = True


class FakeCore:
    """Stands in for Core: real config and token service, mocked storage services."""

    def __init__(self, config: Config) -> None:
        self.config = config
        self.events: list[str] = []
        self.transactions: list[FakeTransaction] = []
        self.redis = AsyncMock(name="redis")

        token = TokenService(database=MagicMock())
        token.set_core(self)  # type: ignore[arg-type]
        self.services = SimpleNamespace(
            token=token,
            account=AsyncMock(name="account"),
            session=AsyncMock(name="session"),
            verification=AsyncMock(name="verification"),
            mail=MailService(database=MagicMock()),
        )
        self.services.mail.set_core(self)  # type: ignore[arg-type]
        self.services.mail.send = AsyncMock(side_effect=lambda message: self.events.append(f"mail:{message.to}"))  # type: ignore[method-assign]

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[FakeTransaction]:
        tx = FakeTransaction(self.events)
        self.transactions.append(tx)
        self.events.append("begin")
        try:
            yield tx
        finally:
            if not tx.committed:
                self.events.append("rollback")

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        yield


@pytest.fixture
def config():
    """Configuration for tests; nothing here connects anywhere."""
    return Config(
        database_url="mongodb://localhost:27017/authflow_test",
        redis_url="redis://localhost:6379/15",
        jwt_secret="test-secret-with-at-least-32-bytes!",
        jwt_issuer="authflow-test",
        cookie_secure=True,
        smtp_host=None,
    )


@pytest.fixture
def fake_core(config):
    return FakeCore(config)


@pytest.fixture
def account():
    """Verified account whose password is 'secret123'."""
    return Account(
        id=ACCOUNT_ID,
        name="Alice",
        username="alice",
        email="a@x.com",
        password_hash=TokenService.hash_password("secret123"),
        verified=True,
    )


@pytest.fixture
def session():
    """Live session owned by the account fixture."""
    return Session(
        id=SESSION_ID,
        account_id=ACCOUNT_ID,
        device_id="device-1",
        device_type="web",
        user_agent="pytest",
        refresh_token="refresh-token-1",
        expires_at=now() + timedelta(days=30),
    )
