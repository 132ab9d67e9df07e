"""Tests for AccountService against a mocked collection."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from pymongo.errors import DuplicateKeyError

from authflow.core.modules.account.models import Account
from authflow.core.modules.account.service import AccountService
from authflow.core.modules.token.service import TokenService
from authflow.errors import ConflictError, NotFoundError, ValidationError


@pytest.fixture
def collection():
    collection = MagicMock()
    collection.find_one = AsyncMock(return_value=None)
    collection.insert_one = AsyncMock()
    collection.find_one_and_update = AsyncMock(return_value=None)
    return collection


@pytest.fixture
def service(config, collection):
    database = MagicMock()
    database.get_collection.return_value = collection
    service = AccountService(database)
    service.set_core(MagicMock(config=config, services=SimpleNamespace(token=TokenService)))
    return service


@pytest.fixture
def tx():
    return SimpleNamespace(session=MagicMock(name="client_session"))


def _stored_by(*accounts):
    """find_one side effect answering lookups by _id, username or email."""

    def find_one(query, session=None):
        for account in accounts:
            keys = {"_id": account.id, "username": account.username, "email": account.email}
            if any(query.get(key) == value for key, value in keys.items()):
                return account.to_mongo()
        return None

    return find_one


def _duplicate(field):
    return DuplicateKeyError(f"E11000 duplicate key error {field}", code=11000, details={"keyPattern": {field: 1}})


class TestCreateAccount:
    """Tests for account creation."""

    def test_creates_account_with_normalized_email_and_hash(self, service, collection, tx):
        account = asyncio.run(
            service.create_account(tx, name="Alice", username="alice", email=" Alice@X.com ", password="secret123")
        )

        assert account.email == "alice@x.com"
        assert account.verified is False
        assert TokenService.verify_password("secret123", account.password_hash)
        document = collection.insert_one.call_args.args[0]
        assert document["_id"] == account.id
        assert document["email"] == "alice@x.com"
        assert collection.insert_one.call_args.kwargs["session"] is tx.session

    def test_existing_username_conflicts(self, service, collection, account, tx):
        collection.find_one.side_effect = _stored_by(account)
        with pytest.raises(ConflictError, match="Username is already taken"):
            asyncio.run(service.create_account(tx, name="", username="alice", email="other@x.com", password="secret123"))
        collection.insert_one.assert_not_called()

    def test_existing_email_conflicts(self, service, collection, account, tx):
        collection.find_one.side_effect = _stored_by(account)
        with pytest.raises(ConflictError, match="Email is already in use"):
            asyncio.run(service.create_account(tx, name="", username="bob", email="A@x.com", password="secret123"))

    @pytest.mark.parametrize(
        ("field", "message"), [("email", "Email is already in use"), ("username", "Username is already taken")]
    )
    def test_concurrent_duplicate_becomes_conflict(self, service, collection, tx, field, message):
        """Test that a unique index violation from a racing insert is reported as a conflict."""
        collection.insert_one.side_effect = _duplicate(field)
        with pytest.raises(ConflictError, match=message):
            asyncio.run(service.create_account(tx, name="", username="bob", email="b@x.com", password="secret123"))

    def test_invalid_fields_rejected_before_lookup(self, service, collection, tx):
        with pytest.raises(ValidationError):
            asyncio.run(service.create_account(tx, name="", username="bob", email="b@x.com", password="short"))
        collection.find_one.assert_not_called()


class TestUpdateProfile:
    """Tests for partial profile updates."""

    @pytest.mark.parametrize("changes", [{}, {"name": "", "username": "", "avatar": ""}, {"name": None}])
    def test_empty_fields_change_nothing(self, service, collection, account, tx, changes):
        collection.find_one.side_effect = _stored_by(account)

        result = asyncio.run(service.update_profile(tx, account.id, **changes))

        assert result.name == "Alice"
        assert result.username == "alice"
        collection.find_one_and_update.assert_not_called()

    def test_only_given_fields_set(self, service, collection, account, tx):
        collection.find_one_and_update.return_value = account.model_copy(update={"name": "Alicia"}).to_mongo()

        result = asyncio.run(service.update_profile(tx, account.id, name="Alicia", username="", avatar=None))

        assert result.name == "Alicia"
        query, update = collection.find_one_and_update.call_args.args
        assert query == {"_id": account.id}
        assert set(update["$set"]) == {"name", "updated_at"}

    def test_username_of_other_account_conflicts(self, service, collection, account, tx):
        other = Account(username="bob", email="b@x.com", password_hash="hash")
        collection.find_one.side_effect = _stored_by(other)
        with pytest.raises(ConflictError, match="Username is already taken"):
            asyncio.run(service.update_profile(tx, account.id, username="bob"))
        collection.find_one_and_update.assert_not_called()

    def test_keeping_own_username_allowed(self, service, collection, account, tx):
        collection.find_one.side_effect = _stored_by(account)
        collection.find_one_and_update.return_value = account.to_mongo()
        asyncio.run(service.update_profile(tx, account.id, username="alice"))
        collection.find_one_and_update.assert_awaited_once()

    def test_concurrent_username_claim_becomes_conflict(self, service, collection, account, tx):
        collection.find_one_and_update.side_effect = _duplicate("username")
        with pytest.raises(ConflictError, match="Username is already taken"):
            asyncio.run(service.update_profile(tx, account.id, username="bob"))


class TestAccountWrites:
    """Tests for email, password and verification writes."""

    def test_set_email_taken_by_other_account(self, service, collection, account, tx):
        other = Account(username="bob", email="b@x.com", password_hash="hash")
        collection.find_one.side_effect = _stored_by(other)
        with pytest.raises(ConflictError):
            asyncio.run(service.set_email(tx, account.id, "B@x.com"))

    def test_set_password_stores_new_hash(self, service, collection, account, tx):
        collection.find_one_and_update.return_value = account.to_mongo()
        asyncio.run(service.set_password(tx, account.id, "new-secret-1"))
        stored_hash = collection.find_one_and_update.call_args.args[1]["$set"]["password_hash"]
        assert TokenService.verify_password("new-secret-1", stored_hash)

    def test_update_of_missing_account(self, service, tx):
        with pytest.raises(NotFoundError):
            asyncio.run(service.mark_verified(tx, uuid4()))

    def test_get_missing_account(self, service):
        with pytest.raises(NotFoundError):
            asyncio.run(service.get_account(uuid4()))
