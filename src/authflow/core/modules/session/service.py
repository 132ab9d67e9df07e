from typing import Any
from uuid import UUID

import structlog
from pymongo import ReturnDocument
from pymongo.asynchronous.database import AsyncDatabase
from redis.exceptions import RedisError

from authflow.core.modules.session.models import DeviceInfo, Session
from authflow.core.service import Service
from authflow.core.transaction import Transaction
from authflow.errors import AuthenticationError, NotFoundError
from authflow.utils import expires_in, now

logger = structlog.get_logger(__name__)

PING_KEY_PREFIX = "authflow:session:"


def ping_key(session_id: UUID) -> str:
    return f"{PING_KEY_PREFIX}{session_id}"


class SessionService(Service):
    """Session registry: persisted sessions plus the redis-backed liveness cache.

    Writes to MongoDB go through the caller's transaction. Cache writes (publish,
    forget, invalidate_all) happen after commit and are driven by the caller.
    """

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("sessions")

    async def on_start(self) -> None:
        """Create indexes on startup."""
        await self._collection.create_index([("refresh_token", 1)], unique=True)
        await self._collection.create_index([("account_id", 1), ("device_id", 1)])
        # Expired sessions are dropped by MongoDB once expires_at passes
        await self._collection.create_index([("expires_at", 1)], expireAfterSeconds=0)

    async def create(self, tx: Transaction, account_id: UUID, device: DeviceInfo) -> Session:
        """Create a new session with a fresh refresh token."""
        session = Session(
            account_id=account_id,
            device_id=device.device_id,
            device_type=device.device_type,
            user_agent=device.user_agent,
            refresh_token=self.core.services.token.generate_refresh_token(),
            expires_at=expires_in(self.config.session_lifespan),
        )
        await self._collection.insert_one(session.to_mongo(), session=tx.session)
        return session

    async def touch(self, tx: Transaction, account_id: UUID, device: DeviceInfo) -> Session:
        """Reuse the live session of this device fingerprint, or create one.

        A reused session gets a new refresh token, so whatever the device held before stops working.
        """
        document = await self._collection.find_one(
            {
                "account_id": account_id,
                "device_id": device.device_id,
                "device_type": device.device_type,
                "user_agent": device.user_agent,
                "revoked_at": None,
                "expires_at": {"$gt": now()},
            },
            session=tx.session,
        )
        existing = Session.from_mongo(document)
        if existing is None:
            return await self.create(tx, account_id, device)
        rotated = await self._rotate(tx, existing)
        if rotated is None:
            # Rotated by a concurrent request between the read and the write
            return await self.create(tx, account_id, device)
        return rotated

    async def refresh(self, tx: Transaction, account_id: UUID, refresh_token: str) -> Session:
        """Exchange a refresh token for a rotated one.

        Unknown, foreign, expired, revoked and already rotated tokens all fail the same way.
        """
        session = Session.from_mongo(await self._collection.find_one({"refresh_token": refresh_token}, session=tx.session))
        if session is None or session.account_id != account_id or not session.is_live():
            raise AuthenticationError("Invalid refresh token")

        rotated = await self._rotate(tx, session)
        if rotated is None:
            raise AuthenticationError("Invalid refresh token")
        return rotated

    async def _rotate(self, tx: Transaction, session: Session) -> Session | None:
        """Swap the refresh token and extend the lifespan, conditional on the old token."""
        document = await self._collection.find_one_and_update(
            {"_id": session.id, "refresh_token": session.refresh_token, "revoked_at": None},
            {
                "$set": {
                    "refresh_token": self.core.services.token.generate_refresh_token(),
                    "last_active_at": now(),
                    "expires_at": expires_in(self.config.session_lifespan),
                }
            },
            return_document=ReturnDocument.AFTER,
            session=tx.session,
        )
        return Session.from_mongo(document)

    async def list_sessions(self, account_id: UUID) -> list[Session]:
        """Live sessions of an account, most recently active first."""
        cursor = self._collection.find(
            {"account_id": account_id, "revoked_at": None, "expires_at": {"$gt": now()}},
        ).sort("last_active_at", -1)
        return await Session.list_cursor(cursor)

    async def revoke(self, tx: Transaction, account_id: UUID, session_id: UUID) -> None:
        """Revoke one session of the account; the caller forgets its ping key after commit."""
        result = await self._collection.update_one(
            {"_id": session_id, "account_id": account_id, "revoked_at": None},
            {"$set": {"revoked_at": now()}},
            session=tx.session,
        )
        if result.matched_count == 0:
            raise NotFoundError(f"Session '{session_id}' not found")

    async def publish(self, session: Session) -> None:
        """Mark the session live in the ping cache for the rest of its lifespan."""
        ttl = session.remaining_seconds()
        if ttl <= 0:
            return
        await self.core.redis.set(ping_key(session.id), str(session.account_id), ex=ttl)

    async def forget(self, session_id: UUID) -> None:
        await self.core.redis.delete(ping_key(session_id))

    async def invalidate_all(self, account_id: UUID) -> int:
        """Revoke every live session of the account and drop their ping keys.

        Shared by password update, password reset, and email update validation.
        Runs after the triggering change has committed.
        """
        live_filter = {"account_id": account_id, "revoked_at": None}
        session_ids = await self._collection.distinct("_id", live_filter)
        if not session_ids:
            return 0

        # Ping keys before the revoke write; content access checks only the cache
        await self.core.redis.delete(*(ping_key(session_id) for session_id in session_ids))
        await self._collection.update_many(
            {"_id": {"$in": session_ids}, "revoked_at": None},
            {"$set": {"revoked_at": now()}},
        )
        logger.info("sessions_invalidated", account_id=str(account_id), count=len(session_ids))
        return len(session_ids)

    async def ping(self, session_id: UUID, account_id: UUID | None = None) -> bool:
        """Fast liveness check against the cache.

        Fails closed: a missing key, a key owned by another account, or any redis
        error means the session is not live.
        """
        try:
            owner = await self.core.redis.get(ping_key(session_id))
        except RedisError:
            logger.warning("session_ping_failed", session_id=str(session_id), exc_info=True)
            return False
        if owner is None:
            return False
        return account_id is None or owner == str(account_id)
