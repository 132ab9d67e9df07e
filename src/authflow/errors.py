from abc import ABC


class UserError(ABC, Exception):
    """Base class for user-related errors.

    All errors that inherit from UserError will have their messages
    displayed to the user. These errors should not contain any
    sensitive information.
    """


class NotFoundError(UserError):
    """Raised when a requested resource is not found."""

    def __init__(self, message: str = "Document not found") -> None:
        super().__init__(message)


class AuthenticationError(UserError):
    """Raised when authentication fails."""

    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message)


class MissingRefreshTokenError(AuthenticationError):
    """Raised when a refresh is attempted without the refresh token cookie."""

    def __init__(self, message: str = "Missing refresh token") -> None:
        super().__init__(message)


class ValidationError(UserError):
    """Raised when user input fails validation."""


class ConflictError(UserError):
    """Raised when a write would break a uniqueness rule (email, username)."""


class InvalidTokenError(UserError):
    """Raised when a verification, reset or revoke token cannot be redeemed.

    Covers wrong tokens as well as tokens that were already redeemed,
    revoked or superseded by a newer request.
    """

    def __init__(self, message: str = "Invalid or already used token") -> None:
        super().__init__(message)


class ExpiredTokenError(InvalidTokenError):
    """Raised when a matching token is past its expiry."""

    def __init__(self, message: str = "Token expired, please request a new one") -> None:
        super().__init__(message)
