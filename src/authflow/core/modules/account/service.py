from typing import Any
from uuid import UUID

import structlog
from pymongo import ReturnDocument
from pymongo.asynchronous.client_session import AsyncClientSession
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError

from authflow.core.modules.account.models import Account
from authflow.core.modules.account.validators import normalize_email, validate_password, validate_username
from authflow.core.service import Service
from authflow.core.transaction import Transaction
from authflow.errors import ConflictError, NotFoundError
from authflow.utils import now

logger = structlog.get_logger(__name__)


def _session(tx: Transaction | None) -> AsyncClientSession | None:
    return tx.session if tx is not None else None


def _conflict_from(error: DuplicateKeyError) -> ConflictError:
    """Translate a unique index violation into a user-safe conflict."""
    key_pattern = (error.details or {}).get("keyPattern", {})
    if "email" in key_pattern:
        return ConflictError("Email is already in use")
    if "username" in key_pattern:
        return ConflictError("Username is already taken")
    return ConflictError("Account already exists")


class AccountService(Service):
    """Reads and writes accounts; every write runs inside the caller's transaction."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("accounts")

    async def on_start(self) -> None:
        """Create indexes on startup."""
        await self._collection.create_index([("username", 1)], unique=True)
        await self._collection.create_index([("email", 1)], unique=True)

    async def get_account(self, account_id: UUID, tx: Transaction | None = None) -> Account:
        account = Account.from_mongo(await self._collection.find_one({"_id": account_id}, session=_session(tx)))
        if account is None:
            raise NotFoundError(f"Account '{account_id}' not found")
        return account

    async def find_by_email(self, email: str, tx: Transaction | None = None) -> Account | None:
        return Account.from_mongo(await self._collection.find_one({"email": email.strip().lower()}, session=_session(tx)))

    async def find_by_username(self, username: str, tx: Transaction | None = None) -> Account | None:
        return Account.from_mongo(await self._collection.find_one({"username": username}, session=_session(tx)))

    async def is_email_taken(self, email: str, tx: Transaction | None = None) -> bool:
        return await self.find_by_email(email, tx) is not None

    async def create_account(
        self,
        tx: Transaction,
        *,
        name: str,
        username: str,
        email: str,
        password: str,
        avatar: str = "",
        verified: bool = False,
    ) -> Account:
        """Create account with hashed password."""
        validate_username(username)
        email = normalize_email(email)
        validate_password(password)

        if await self.find_by_username(username, tx) is not None:
            raise ConflictError("Username is already taken")
        if await self.is_email_taken(email, tx):
            raise ConflictError("Email is already in use")

        account = Account(
            name=name,
            username=username,
            email=email,
            avatar=avatar,
            password_hash=self.core.services.token.hash_password(password),
            verified=verified,
        )
        try:
            await self._collection.insert_one(account.to_mongo(), session=tx.session)
        except DuplicateKeyError as e:
            raise _conflict_from(e) from e
        logger.debug("account_created", account_id=str(account.id))
        return account

    async def update_profile(
        self,
        tx: Transaction,
        account_id: UUID,
        name: str | None = None,
        username: str | None = None,
        avatar: str | None = None,
    ) -> Account:
        """Apply non-empty profile fields; empty or missing ones leave the stored value alone."""
        changes: dict[str, Any] = {}
        if name:
            changes["name"] = name
        if avatar:
            changes["avatar"] = avatar
        if username:
            validate_username(username)
            existing = await self.find_by_username(username, tx)
            if existing is not None and existing.id != account_id:
                raise ConflictError("Username is already taken")
            changes["username"] = username

        if not changes:
            return await self.get_account(account_id, tx)
        return await self._update(tx, account_id, changes)

    async def set_email(self, tx: Transaction, account_id: UUID, email: str) -> Account:
        email = normalize_email(email)
        existing = await self.find_by_email(email, tx)
        if existing is not None and existing.id != account_id:
            raise ConflictError("Email is already in use")
        return await self._update(tx, account_id, {"email": email})

    async def set_password(self, tx: Transaction, account_id: UUID, password: str) -> Account:
        validate_password(password)
        return await self._update(tx, account_id, {"password_hash": self.core.services.token.hash_password(password)})

    async def mark_verified(self, tx: Transaction, account_id: UUID) -> Account:
        return await self._update(tx, account_id, {"verified": True})

    async def _update(self, tx: Transaction, account_id: UUID, changes: dict[str, Any]) -> Account:
        try:
            document = await self._collection.find_one_and_update(
                {"_id": account_id},
                {"$set": {**changes, "updated_at": now()}},
                return_document=ReturnDocument.AFTER,
                session=tx.session,
            )
        except DuplicateKeyError as e:
            raise _conflict_from(e) from e
        account = Account.from_mongo(document)
        if account is None:
            raise NotFoundError(f"Account '{account_id}' not found")
        return account
