import re

from authflow.errors import ValidationError

USERNAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]{0,63}$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

PASSWORD_MIN_LENGTH = 8
# bcrypt only looks at the first 72 bytes and newer releases reject longer input
PASSWORD_MAX_BYTES = 72


def validate_username(username: str) -> None:
    if not USERNAME_RE.fullmatch(username):
        raise ValidationError(
            "Username must be 1-64 characters of letters, digits, '.', '_' or '-' and start with a letter or digit"
        )


def normalize_email(email: str) -> str:
    """Validate email shape and return it stripped and lower-cased."""
    normalized = email.strip().lower()
    if len(normalized) > 254 or not EMAIL_RE.fullmatch(normalized):
        raise ValidationError("Invalid email address")
    return normalized


def validate_password(password: str) -> None:
    """Validate password meets requirements.

    Requirements:
    - At least 8 characters
    - At most 72 bytes when UTF-8 encoded
    - No whitespace characters

    Raises:
        ValidationError: If password doesn't meet requirements
    """
    if len(password) < PASSWORD_MIN_LENGTH:
        raise ValidationError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long")

    if len(password.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValidationError(f"Password must be at most {PASSWORD_MAX_BYTES} bytes long")

    if any(char.isspace() for char in password):
        raise ValidationError("Password cannot contain whitespace characters")
