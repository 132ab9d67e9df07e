"""Tests for SessionService against a mocked collection and redis."""

import asyncio
from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from authflow.core.modules.session.models import DeviceInfo
from authflow.core.modules.session.service import SessionService, ping_key
from authflow.core.modules.token.service import TokenService
from authflow.errors import AuthenticationError, NotFoundError
from authflow.utils import now


@pytest.fixture
def collection():
    collection = MagicMock()
    collection.find_one = AsyncMock(return_value=None)
    collection.find_one_and_update = AsyncMock(return_value=None)
    collection.insert_one = AsyncMock()
    collection.update_one = AsyncMock(return_value=SimpleNamespace(matched_count=1))
    collection.update_many = AsyncMock()
    collection.distinct = AsyncMock(return_value=[])
    return collection


@pytest.fixture
def redis():
    return AsyncMock(name="redis")


@pytest.fixture
def service(config, collection, redis):
    database = MagicMock()
    database.get_collection.return_value = collection
    service = SessionService(database)
    service.set_core(MagicMock(config=config, redis=redis, services=SimpleNamespace(token=TokenService)))
    return service


@pytest.fixture
def tx():
    return SimpleNamespace(session=MagicMock(name="client_session"))


class TestCreateAndTouch:
    """Tests for session creation and device reuse."""

    def test_create_inserts_session_with_lifespan(self, service, collection, config, tx):
        account_id = uuid4()
        device = DeviceInfo(device_id="phone", device_type="ios", user_agent="app/1.0")

        session = asyncio.run(service.create(tx, account_id, device))

        assert session.account_id == account_id
        assert session.device_id == "phone"
        assert session.refresh_token
        assert abs(session.remaining_seconds() - config.session_lifespan) < 5
        assert collection.insert_one.call_args.kwargs["session"] is tx.session

    def test_touch_rotates_existing_device_session(self, service, collection, session, tx):
        """Test that signing in again from the same device reuses its session with a new refresh token."""
        rotated = session.model_copy(update={"refresh_token": "refresh-token-2"})
        collection.find_one.return_value = session.to_mongo()
        collection.find_one_and_update.return_value = rotated.to_mongo()
        device = DeviceInfo(device_id=session.device_id, device_type=session.device_type, user_agent=session.user_agent)

        result = asyncio.run(service.touch(tx, session.account_id, device))

        assert result.id == session.id
        assert result.refresh_token == "refresh-token-2"
        collection.insert_one.assert_not_called()

    def test_touch_creates_session_for_new_device(self, service, collection, tx):
        result = asyncio.run(service.touch(tx, uuid4(), DeviceInfo(device_id="laptop")))
        assert result.device_id == "laptop"
        collection.insert_one.assert_awaited_once()


class TestRefresh:
    """Tests for refresh token rotation."""

    def test_rotates_live_session(self, service, collection, session, tx):
        rotated = session.model_copy(update={"refresh_token": "refresh-token-2"})
        collection.find_one.return_value = session.to_mongo()
        collection.find_one_and_update.return_value = rotated.to_mongo()

        result = asyncio.run(service.refresh(tx, session.account_id, session.refresh_token))

        assert result.refresh_token == "refresh-token-2"
        guard = collection.find_one_and_update.call_args.args[0]
        assert guard == {"_id": session.id, "refresh_token": "refresh-token-1", "revoked_at": None}

    def test_unknown_token_rejected(self, service, tx):
        with pytest.raises(AuthenticationError, match="Invalid refresh token"):
            asyncio.run(service.refresh(tx, uuid4(), "nope"))

    def test_token_of_other_account_rejected(self, service, collection, session, tx):
        collection.find_one.return_value = session.to_mongo()
        with pytest.raises(AuthenticationError):
            asyncio.run(service.refresh(tx, uuid4(), session.refresh_token))
        collection.find_one_and_update.assert_not_called()

    def test_revoked_session_rejected(self, service, collection, session, tx):
        session.revoked_at = now()
        collection.find_one.return_value = session.to_mongo()
        with pytest.raises(AuthenticationError):
            asyncio.run(service.refresh(tx, session.account_id, session.refresh_token))

    def test_expired_session_rejected(self, service, collection, session, tx):
        session.expires_at = now() - timedelta(minutes=1)
        collection.find_one.return_value = session.to_mongo()
        with pytest.raises(AuthenticationError):
            asyncio.run(service.refresh(tx, session.account_id, session.refresh_token))

    def test_concurrently_rotated_token_rejected(self, service, collection, session, tx):
        """Test that only one of two refreshes with the same token succeeds."""
        collection.find_one.return_value = session.to_mongo()
        collection.find_one_and_update.return_value = None
        with pytest.raises(AuthenticationError):
            asyncio.run(service.refresh(tx, session.account_id, session.refresh_token))


class TestRevoke:
    def test_revoke_scoped_to_account(self, service, collection, tx):
        account_id, session_id = uuid4(), uuid4()
        asyncio.run(service.revoke(tx, account_id, session_id))
        query = collection.update_one.call_args.args[0]
        assert query == {"_id": session_id, "account_id": account_id, "revoked_at": None}

    def test_revoke_unknown_session_not_found(self, service, collection, tx):
        collection.update_one.return_value = SimpleNamespace(matched_count=0)
        with pytest.raises(NotFoundError):
            asyncio.run(service.revoke(tx, uuid4(), uuid4()))


class TestPingCache:
    """Tests for the redis-backed liveness cache."""

    def test_publish_sets_key_with_remaining_lifespan(self, service, redis, session):
        asyncio.run(service.publish(session))

        key, owner = redis.set.call_args.args
        assert key == ping_key(session.id)
        assert owner == str(session.account_id)
        assert abs(redis.set.call_args.kwargs["ex"] - 30 * 24 * 3600) < 5

    def test_publish_skips_expired_session(self, service, redis, session):
        session.expires_at = now() - timedelta(seconds=1)
        asyncio.run(service.publish(session))
        redis.set.assert_not_called()

    def test_ping_live_session(self, service, redis, session):
        redis.get.return_value = str(session.account_id)
        assert asyncio.run(service.ping(session.id, session.account_id)) is True

    def test_ping_missing_key(self, service, redis, session):
        redis.get.return_value = None
        assert asyncio.run(service.ping(session.id, session.account_id)) is False

    def test_ping_other_owner(self, service, redis, session):
        redis.get.return_value = str(uuid4())
        assert asyncio.run(service.ping(session.id, session.account_id)) is False

    def test_ping_fails_closed_when_redis_unavailable(self, service, redis, session):
        """Test that a cache outage denies access instead of granting it."""
        redis.get.side_effect = RedisConnectionError("down")
        assert asyncio.run(service.ping(session.id, session.account_id)) is False

    def test_forget_deletes_key(self, service, redis, session):
        asyncio.run(service.forget(session.id))
        redis.delete.assert_awaited_once_with(ping_key(session.id))


class TestInvalidateAll:
    """Tests for signing an account out everywhere."""

    def test_drops_ping_keys_before_revoking(self, service, collection, redis):
        calls = []
        first, second = uuid4(), uuid4()
        collection.distinct.return_value = [first, second]
        redis.delete.side_effect = lambda *keys: calls.append(("delete", keys))
        collection.update_many.side_effect = lambda *a, **kw: calls.append(("update", a[0]))
        account_id = uuid4()

        count = asyncio.run(service.invalidate_all(account_id))

        assert count == 2
        assert calls[0] == ("delete", (ping_key(first), ping_key(second)))
        assert calls[1][0] == "update"
        assert calls[1][1] == {"_id": {"$in": [first, second]}, "revoked_at": None}

    def test_no_live_sessions(self, service, collection, redis):
        assert asyncio.run(service.invalidate_all(uuid4())) == 0
        redis.delete.assert_not_called()
        collection.update_many.assert_not_called()
