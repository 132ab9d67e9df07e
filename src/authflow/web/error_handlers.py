import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response

from authflow.errors import (
    AuthenticationError,
    ConflictError,
    ExpiredTokenError,
    InvalidTokenError,
    MissingRefreshTokenError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def create_json_error_response(status_code: int, message: str, error_type: str | None = None) -> JSONResponse:
    """Create JSON error response with optional type for machine parsing."""
    content = {"message": message}
    if error_type:
        content["type"] = error_type
    return JSONResponse(status_code=status_code, content=content)


async def user_error_handler(_: Request, exc: Exception) -> Response:
    """Handle all UserError subclasses with appropriate status codes."""
    # Subclasses before their bases
    if isinstance(exc, MissingRefreshTokenError):
        status_code = 401
        error_type = "missing_refresh_token"
    elif isinstance(exc, AuthenticationError):
        status_code = 401
        error_type = "authentication_error"
    elif isinstance(exc, ExpiredTokenError):
        status_code = 400
        error_type = "expired_token"
    elif isinstance(exc, InvalidTokenError):
        status_code = 400
        error_type = "unauthorized"
    elif isinstance(exc, ConflictError):
        status_code = 409
        error_type = "conflict"
    elif isinstance(exc, NotFoundError):
        status_code = 404
        error_type = "not_found"
    elif isinstance(exc, ValidationError):
        status_code = 400
        error_type = "validation_error"
    else:
        status_code = 400
        error_type = "bad_request"

    return create_json_error_response(status_code=status_code, message=str(exc), error_type=error_type)


async def request_validation_handler(_: Request, exc: Exception) -> Response:
    """Malformed or incomplete request bodies are client errors (400), never 422."""
    errors = exc.errors() if isinstance(exc, RequestValidationError) else []
    fields = sorted({".".join(str(part) for part in error.get("loc", ())[1:]) for error in errors} - {""})
    message = f"Invalid request body: {', '.join(fields)}" if fields else "Invalid request body"
    return create_json_error_response(status_code=400, message=message, error_type="invalid_request_body")


async def general_exception_handler(_: Request, exc: Exception) -> Response:
    """Handle unexpected errors (500); storage and cache errors are never echoed."""
    logger.exception("Unexpected error: %s", type(exc).__name__)
    return create_json_error_response(
        status_code=500, message="An unexpected error occurred.", error_type="internal_server_error"
    )
