from typing import Any
from uuid import UUID

import structlog
from pymongo import ReturnDocument
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import PyMongoError

from authflow.core.modules.verification.models import VerificationArtifact, VerificationKind, VerificationStatus
from authflow.core.service import Service
from authflow.core.transaction import Transaction
from authflow.errors import InvalidTokenError
from authflow.utils import expires_in, now

logger = structlog.get_logger(__name__)

# Expired artifacts stay this long past expires_at; redeeming one in that window reports "expired"
EXPIRED_RETENTION_SECONDS = 7 * 24 * 60 * 60


class VerificationService(Service):
    """Two-phase change-confirmation workflows over single-use artifacts."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("verifications")

    async def on_start(self) -> None:
        """Create indexes on startup."""
        # At most one active artifact per account and kind
        await self._collection.create_index(
            [("account_id", 1), ("kind", 1)],
            unique=True,
            partialFilterExpression={"status": VerificationStatus.REQUESTED.value},
        )
        await self._collection.create_index([("expires_at", 1)], expireAfterSeconds=EXPIRED_RETENTION_SECONDS)

    def _lifespan(self, kind: VerificationKind) -> int:
        match kind:
            case VerificationKind.REGISTRATION:
                return self.config.registration_lifespan
            case VerificationKind.EMAIL_UPDATE:
                return self.config.email_update_lifespan
            case VerificationKind.PASSWORD_RESET:
                return self.config.password_reset_lifespan

    async def request(
        self, tx: Transaction, account_id: UUID, kind: VerificationKind, new_email: str | None = None
    ) -> VerificationArtifact:
        """Open a new artifact, superseding any pending one of the same kind."""
        tokens = self.core.services.token
        artifact = VerificationArtifact(
            account_id=account_id,
            kind=kind,
            token=tokens.generate_code() if kind == VerificationKind.REGISTRATION else tokens.generate_token(),
            revoke_token=tokens.generate_token() if kind == VerificationKind.EMAIL_UPDATE else None,
            new_email=new_email,
            expires_at=expires_in(self._lifespan(kind)),
        )

        superseded = await self._collection.update_many(
            {"account_id": account_id, "kind": kind.value, "status": VerificationStatus.REQUESTED.value},
            {"$set": {"status": VerificationStatus.SUPERSEDED.value, "closed_at": now()}},
            session=tx.session,
        )
        if superseded.modified_count:
            logger.debug("verification_superseded", account_id=str(account_id), kind=kind.value)

        await self._collection.insert_one(artifact.to_mongo(), session=tx.session)
        return artifact

    async def redeem(self, tx: Transaction, account_id: UUID, kind: VerificationKind, token: str) -> VerificationArtifact:
        """Consume the confirmation token. Raises InvalidTokenError or ExpiredTokenError."""
        return await self._close(tx, account_id, kind, "token", token, VerificationStatus.REDEEMED)

    async def revoke(
        self, tx: Transaction, account_id: UUID, kind: VerificationKind, revoke_token: str
    ) -> VerificationArtifact:
        """Cancel a pending request with its revoke token, same guards as redeem."""
        return await self._close(tx, account_id, kind, "revoke_token", revoke_token, VerificationStatus.REVOKED)

    async def _close(
        self,
        tx: Transaction,
        account_id: UUID,
        kind: VerificationKind,
        token_field: str,
        token: str,
        status: VerificationStatus,
    ) -> VerificationArtifact:
        if not token:
            raise InvalidTokenError

        artifact = VerificationArtifact.from_mongo(
            await self._collection.find_one(
                {
                    "account_id": account_id,
                    "kind": kind.value,
                    token_field: token,
                    "status": VerificationStatus.REQUESTED.value,
                },
                session=tx.session,
            )
        )
        if artifact is None:
            raise InvalidTokenError
        artifact.ensure_redeemable()

        # Conditional on status, so of two concurrent redemptions only one moves the artifact
        try:
            document = await self._collection.find_one_and_update(
                {"_id": artifact.id, "status": VerificationStatus.REQUESTED.value},
                {"$set": {"status": status.value, "closed_at": now()}},
                return_document=ReturnDocument.AFTER,
                session=tx.session,
            )
        except PyMongoError as e:
            if e.has_error_label("TransientTransactionError"):
                raise InvalidTokenError from e
            raise

        closed = VerificationArtifact.from_mongo(document)
        if closed is None:
            raise InvalidTokenError
        logger.debug("verification_closed", account_id=str(account_id), kind=kind.value, status=status.value)
        return closed

    async def get_pending(self, tx: Transaction, account_id: UUID, kind: VerificationKind) -> VerificationArtifact | None:
        """The active artifact of this kind, if any (expired ones included)."""
        return VerificationArtifact.from_mongo(
            await self._collection.find_one(
                {"account_id": account_id, "kind": kind.value, "status": VerificationStatus.REQUESTED.value},
                session=tx.session,
            )
        )
