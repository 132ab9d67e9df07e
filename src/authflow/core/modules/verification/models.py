"""Change-confirmation artifacts shared by registration, email update and password reset."""

from datetime import datetime
from enum import StrEnum
from uuid import UUID

from pydantic import Field

from authflow.core.db import MongoModel
from authflow.errors import ExpiredTokenError, InvalidTokenError
from authflow.utils import now


class VerificationKind(StrEnum):
    REGISTRATION = "registration"
    EMAIL_UPDATE = "email_update"
    PASSWORD_RESET = "password_reset"


class VerificationStatus(StrEnum):
    """Artifact states.

    REQUESTED is the only non-terminal state. A newer request for the same account and
    kind moves the previous artifact to SUPERSEDED, after which it is never redeemable.
    Expiry is not stored; it is evaluated against expires_at on redemption.
    """

    REQUESTED = "requested"
    REDEEMED = "redeemed"
    REVOKED = "revoked"
    SUPERSEDED = "superseded"


class VerificationArtifact(MongoModel):
    """Single-use proof that an out-of-band confirmation was requested.

    Indexed on (account_id, kind) unique while status is "requested".
    """

    account_id: UUID
    kind: VerificationKind
    token: str
    revoke_token: str | None = None
    new_email: str | None = None  # email update target
    status: VerificationStatus = VerificationStatus.REQUESTED
    created_at: datetime = Field(default_factory=now)
    expires_at: datetime
    closed_at: datetime | None = None

    def is_expired(self, at: datetime | None = None) -> bool:
        return self.expires_at <= (at or now())

    def ensure_redeemable(self, at: datetime | None = None) -> None:
        """Raise unless the artifact can still move out of REQUESTED."""
        if self.status != VerificationStatus.REQUESTED:
            raise InvalidTokenError
        if self.is_expired(at):
            raise ExpiredTokenError
