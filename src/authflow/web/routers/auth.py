from typing import Annotated, Any

from fastapi import APIRouter, Header, Request, Response
from pydantic import Field

from authflow.web.deps import AppDep, ConfigDep, RefreshAuthDep
from authflow.web.openapi import ErrorResponse
from authflow.web.schemas import AccessTokenResponse, DevicePayload, set_refresh_cookie

router = APIRouter(tags=["auth"])


class EmailLoginRequest(DevicePayload):
    email: str = Field(..., min_length=1, max_length=254, description="Account email")
    password: str = Field(..., min_length=1, max_length=255, description="Account password")


class UsernameLoginRequest(DevicePayload):
    username: str = Field(..., min_length=1, max_length=64, description="Account username")
    password: str = Field(..., min_length=1, max_length=255, description="Account password")


LOGIN_RESPONSES: dict[int | str, dict[str, Any]] = {
    200: {"description": "Successfully authenticated"},
    400: {"model": ErrorResponse, "description": "Malformed request body"},
    401: {"model": ErrorResponse, "description": "Invalid credentials"},
}


@router.post(
    "/auth/email",
    summary="Sign in with email",
    description="Authenticate with email and password. Sets the refresh token cookie.",
    operation_id="loginWithEmail",
    responses=LOGIN_RESPONSES,
)
async def login_with_email(
    body: EmailLoginRequest,
    app: AppDep,
    config: ConfigDep,
    response: Response,
    user_agent: Annotated[str | None, Header()] = None,
) -> AccessTokenResponse:
    sign_in = await app.login_with_email(body.email, body.password, body.to_device(user_agent))
    set_refresh_cookie(response, config, sign_in.refresh_token, sign_in.refresh_max_age)
    return AccessTokenResponse(access_token=sign_in.access_token)


@router.post(
    "/auth/username",
    summary="Sign in with username",
    description="Authenticate with username and password. Sets the refresh token cookie.",
    operation_id="loginWithUsername",
    responses=LOGIN_RESPONSES,
)
async def login_with_username(
    body: UsernameLoginRequest,
    app: AppDep,
    config: ConfigDep,
    response: Response,
    user_agent: Annotated[str | None, Header()] = None,
) -> AccessTokenResponse:
    sign_in = await app.login_with_username(body.username, body.password, body.to_device(user_agent))
    set_refresh_cookie(response, config, sign_in.refresh_token, sign_in.refresh_max_age)
    return AccessTokenResponse(access_token=sign_in.access_token)


@router.patch(
    "/refresh",
    summary="Refresh session",
    description=(
        "Exchange the refresh token cookie for a new access token. The bearer token may be expired. "
        "The cookie is rotated; the previous refresh token stops working."
    ),
    operation_id="refresh",
    responses={
        200: {"description": "Session refreshed"},
        401: {"model": ErrorResponse, "description": "Missing or invalid refresh token"},
    },
)
async def refresh(
    request: Request, app: AppDep, config: ConfigDep, ctx: RefreshAuthDep, response: Response
) -> AccessTokenResponse:
    sign_in = await app.refresh(ctx, request.cookies.get(config.cookie_name))
    set_refresh_cookie(response, config, sign_in.refresh_token, sign_in.refresh_max_age)
    return AccessTokenResponse(access_token=sign_in.access_token)
