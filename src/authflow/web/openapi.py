from typing import Any

from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi
from pydantic import BaseModel, Field

# Endpoints callable without a bearer token
PUBLIC_ENDPOINTS = {
    ("POST", "/register"),
    ("POST", "/auth/email"),
    ("POST", "/auth/username"),
    ("POST", "/email/update/validate"),
    ("POST", "/email/update/revoke"),
    ("POST", "/password/forgot"),
    ("POST", "/password/reset"),
    ("GET", "/health"),
}


def set_custom_openapi(app: FastAPI) -> None:
    def custom_openapi() -> dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        openapi_schema = get_openapi(
            title="authflow API",
            version="0.1.0",
            summary="Account onboarding, sign-in, session rotation and change confirmation",
            routes=app.routes,
        )

        components = openapi_schema.setdefault("components", {})
        components["securitySchemes"] = {
            "BearerAuth": {
                "type": "http",
                "scheme": "bearer",
                "bearerFormat": "JWT",
                "description": "Access token returned by register, sign-in and refresh",
            },
            "RefreshTokenCookie": {
                "type": "apiKey",
                "in": "cookie",
                "name": "refreshToken",
                "description": "Refresh token, only read by PATCH /refresh",
            },
        }

        openapi_schema["security"] = [{"BearerAuth": []}]

        for path, path_item in openapi_schema["paths"].items():
            for method, operation in path_item.items():
                if (method.upper(), path) in PUBLIC_ENDPOINTS:
                    operation["security"] = []
                elif (method.upper(), path) == ("PATCH", "/refresh"):
                    operation["security"] = [{"BearerAuth": [], "RefreshTokenCookie": []}]

        app.openapi_schema = openapi_schema
        return app.openapi_schema

    app.openapi = custom_openapi  # type: ignore[method-assign]


class ErrorResponse(BaseModel):
    """Standard error response format."""

    message: str = Field(..., description="Human-readable error message")
    type: str = Field(..., description="Machine-readable error type")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"message": "Invalid credentials", "type": "authentication_error"},
                {"message": "Invalid or already used token", "type": "unauthorized"},
                {"message": "Email is already in use", "type": "conflict"},
            ]
        }
    }
