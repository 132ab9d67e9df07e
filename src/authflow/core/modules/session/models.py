"""Session registry models."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from authflow.core.db import MongoModel
from authflow.utils import now


class DeviceInfo(BaseModel):
    """Device fingerprint a session is bound to."""

    device_id: str = ""
    device_type: str = ""
    user_agent: str = ""


class Session(MongoModel):
    """One authenticated device binding for an account.

    Indexed on refresh_token (unique), account_id, and expires_at (TTL).
    """

    account_id: UUID
    device_id: str = ""
    device_type: str = ""
    user_agent: str = ""
    refresh_token: str
    created_at: datetime = Field(default_factory=now)
    last_active_at: datetime = Field(default_factory=now)
    expires_at: datetime
    revoked_at: datetime | None = None

    def is_live(self, at: datetime | None = None) -> bool:
        """Live until revoked or past its lifespan."""
        return self.revoked_at is None and self.expires_at > (at or now())

    def remaining_seconds(self, at: datetime | None = None) -> int:
        return max(0, int((self.expires_at - (at or now())).total_seconds()))


class SessionView(BaseModel):
    """Session information (API representation). Never includes the refresh token."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: UUID = Field(..., description="Session ID")
    device_id: str = Field(..., description="Client supplied device identifier")
    device_type: str = Field(..., description="Client supplied device type")
    user_agent: str = Field(..., description="User agent at sign-in")
    created_at: datetime = Field(..., description="When the session was created")
    last_active_at: datetime = Field(..., description="Last sign-in or refresh")
    expires_at: datetime = Field(..., description="When the refresh token stops working")
    current: bool = Field(False, description="Whether this is the session of the calling token")

    @classmethod
    def from_domain(cls, session: Session, current_session_id: UUID | None = None) -> "SessionView":
        return cls(
            id=session.id,
            device_id=session.device_id,
            device_type=session.device_type,
            user_agent=session.user_agent,
            created_at=session.created_at,
            last_active_at=session.last_active_at,
            expires_at=session.expires_at,
            current=session.id == current_session_id,
        )
