from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from authflow.core.db import MongoModel
from authflow.utils import now


class Account(MongoModel):
    """Registered identity with credentials.

    Indexed on username and email, both unique.
    """

    name: str = ""
    username: str
    email: str  # stored lower-cased
    avatar: str = ""
    password_hash: str  # bcrypt hash
    verified: bool = False
    created_at: datetime = Field(default_factory=now)
    updated_at: datetime = Field(default_factory=now)


class AccountView(BaseModel):
    """Account information (API representation)."""

    id: UUID = Field(..., description="Account ID")
    name: str = Field(..., description="Display name")
    username: str = Field(..., description="Username")
    email: str = Field(..., description="Email address")
    avatar: str = Field(..., description="Avatar URL")
    verified: bool = Field(..., description="Whether the registration was verified")

    @classmethod
    def from_domain(cls, account: Account) -> "AccountView":
        """Create view model from domain model."""
        return cls(
            id=account.id,
            name=account.name,
            username=account.username,
            email=account.email,
            avatar=account.avatar,
            verified=account.verified,
        )
