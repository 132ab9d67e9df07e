from typing import Annotated

from fastapi import APIRouter, Header, Response
from pydantic import Field

from authflow.web.deps import AppDep, LiveAuthDep, ConfigDep
from authflow.web.openapi import ErrorResponse
from authflow.web.schemas import AccessTokenResponse, ApiModel, DevicePayload, set_refresh_cookie

router = APIRouter(tags=["registration"])


class RegisterRequest(DevicePayload):
    """New account with its first device."""

    name: str = Field("", max_length=255, description="Display name")
    username: str = Field(..., min_length=1, max_length=64, description="Unique username")
    email: str = Field(..., min_length=3, max_length=254, description="Unique email address")
    password: str = Field(..., min_length=1, max_length=72, description="Password, 8 characters to 72 UTF-8 bytes")
    avatar: str = Field("", max_length=2048, description="Avatar URL")


class RegisterResponse(AccessTokenResponse):
    verification_code: str | None = Field(None, description="Code to confirm the registration, when required")


class VerifyRegistrationRequest(ApiModel):
    verification_code: str = Field(..., min_length=1, max_length=32, description="Code issued at registration")


@router.post(
    "/register",
    summary="Register account",
    description="Create an account and its first session. Sets the refresh token cookie.",
    operation_id="register",
    response_model_exclude_none=True,
    responses={
        200: {"description": "Account created"},
        400: {"model": ErrorResponse, "description": "Malformed or invalid request body"},
        409: {"model": ErrorResponse, "description": "Email or username already in use"},
    },
)
async def register(
    body: RegisterRequest,
    app: AppDep,
    config: ConfigDep,
    response: Response,
    user_agent: Annotated[str | None, Header()] = None,
) -> RegisterResponse:
    sign_in = await app.register(
        name=body.name,
        username=body.username,
        email=body.email,
        password=body.password,
        avatar=body.avatar,
        device=body.to_device(user_agent),
    )
    set_refresh_cookie(response, config, sign_in.refresh_token, sign_in.refresh_max_age)
    return RegisterResponse(access_token=sign_in.access_token, verification_code=sign_in.verification_code)


@router.post(
    "/register/verify",
    summary="Verify registration",
    description="Redeem the registration code. Returns an access token marked as verified.",
    operation_id="verifyRegistration",
    responses={
        200: {"description": "Registration verified"},
        400: {"model": ErrorResponse, "description": "Invalid or expired code"},
        401: {"model": ErrorResponse, "description": "Not authenticated or session no longer live"},
    },
)
async def verify_registration(body: VerifyRegistrationRequest, app: AppDep, ctx: LiveAuthDep) -> AccessTokenResponse:
    access_token = await app.verify_registration(ctx, body.verification_code)
    return AccessTokenResponse(access_token=access_token)
