import secrets
from uuid import UUID

import bcrypt
import jwt
import structlog

from authflow.core.modules.account.models import Account
from authflow.core.modules.token.models import AccessToken, AuthContext
from authflow.core.service import Service
from authflow.errors import AuthenticationError
from authflow.utils import expires_in, now

logger = structlog.get_logger(__name__)

JWT_ALGORITHM = "HS256"
REQUIRED_CLAIMS = ["sub", "sid", "iss", "iat", "exp"]
BCRYPT_MAX_BYTES = 72

# Compared against when the identifier is unknown so both login failures cost one bcrypt check
_DUMMY_HASH = bcrypt.hashpw(b"authflow-dummy-password", bcrypt.gensalt()).decode("utf-8")


class TokenService(Service):
    """Password hashing, access token signing, and random token generation."""

    @staticmethod
    def hash_password(password: str) -> str:
        return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")

    @staticmethod
    def verify_password(password: str, password_hash: str | None) -> bool:
        """Check password against hash.

        A missing hash or a password longer than bcrypt accepts still burns one
        comparison and fails; no stored password can be that long.
        """
        encoded = password.encode("utf-8")
        if password_hash is None or len(encoded) > BCRYPT_MAX_BYTES:
            bcrypt.checkpw(encoded[:BCRYPT_MAX_BYTES], _DUMMY_HASH.encode("utf-8"))
            return False
        return bcrypt.checkpw(encoded, password_hash.encode("utf-8"))

    def mint_access_token(self, account: Account, session_id: UUID) -> AccessToken:
        """Sign a short-lived access token bound to one session."""
        issued_at = now()
        payload = {
            "sub": str(account.id),
            "sid": str(session_id),
            "iss": self.config.jwt_issuer,
            "iat": issued_at,
            "exp": expires_in(self.config.jwt_lifespan),
            "username": account.username,
            "email": account.email,
            "verified": account.verified,
        }
        return AccessToken(jwt.encode(payload, self.config.jwt_secret, algorithm=JWT_ALGORITHM))

    def decode_access_token(self, token: str, verify_exp: bool = True) -> AuthContext:
        """Verify signature and issuer and return the caller context.

        ``verify_exp=False`` accepts expired tokens; only the refresh endpoint does that,
        because the refresh cookie is what authenticates there.
        """
        try:
            payload = jwt.decode(
                token,
                self.config.jwt_secret,
                algorithms=[JWT_ALGORITHM],
                issuer=self.config.jwt_issuer,
                options={"require": REQUIRED_CLAIMS, "verify_exp": verify_exp},
            )
        except jwt.ExpiredSignatureError as e:
            raise AuthenticationError("Access token expired") from e
        except jwt.InvalidTokenError as e:
            logger.debug("access_token_rejected", reason=str(e))
            raise AuthenticationError("Invalid access token") from e

        try:
            return AuthContext(
                account_id=UUID(payload["sub"]),
                session_id=UUID(payload["sid"]),
                username=payload.get("username", ""),
                email=payload.get("email", ""),
                verified=bool(payload.get("verified", False)),
            )
        except ValueError as e:
            raise AuthenticationError("Invalid access token") from e

    @staticmethod
    def generate_refresh_token() -> str:
        return secrets.token_urlsafe(48)

    @staticmethod
    def generate_token() -> str:
        return secrets.token_urlsafe(32)

    @staticmethod
    def generate_code(digits: int = 6) -> str:
        return f"{secrets.randbelow(10**digits):0{digits}d}"
