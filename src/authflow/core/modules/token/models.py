from typing import NewType
from uuid import UUID

from pydantic import BaseModel

AccessToken = NewType("AccessToken", str)


class AuthContext(BaseModel):
    """Authenticated caller, resolved from a verified access token."""

    account_id: UUID
    session_id: UUID
    username: str
    email: str
    verified: bool  # False until registration is verified; informational, does not narrow access
