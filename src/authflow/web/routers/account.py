from fastapi import APIRouter
from pydantic import Field

from authflow.core.modules.account.models import AccountView
from authflow.web.deps import AppDep, LiveAuthDep
from authflow.web.openapi import ErrorResponse
from authflow.web.schemas import AccessTokenResponse, ApiModel

router = APIRouter(tags=["account"])


class UpdateAccountRequest(ApiModel):
    """Partial profile update; empty or missing fields are left unchanged."""

    name: str | None = Field(None, max_length=255, description="New display name")
    username: str | None = Field(None, max_length=64, description="New username")
    avatar: str | None = Field(None, max_length=2048, description="New avatar URL")


@router.get(
    "/account",
    summary="Get current account",
    description="Get the profile of the authenticated account.",
    operation_id="getAccount",
    responses={
        200: {"description": "Current account"},
        401: {"model": ErrorResponse, "description": "Not authenticated or session no longer live"},
    },
)
async def get_account(app: AppDep, ctx: LiveAuthDep) -> AccountView:
    return await app.get_account(ctx)


@router.patch(
    "/account",
    summary="Update account",
    description="Update name, username or avatar. Returns an access token reflecting the changes.",
    operation_id="updateAccount",
    responses={
        200: {"description": "Account updated"},
        400: {"model": ErrorResponse, "description": "Malformed or invalid request body"},
        401: {"model": ErrorResponse, "description": "Not authenticated or session no longer live"},
        409: {"model": ErrorResponse, "description": "Username already taken"},
    },
)
async def update_account(body: UpdateAccountRequest, app: AppDep, ctx: LiveAuthDep) -> AccessTokenResponse:
    access_token = await app.update_account(ctx, name=body.name, username=body.username, avatar=body.avatar)
    return AccessTokenResponse(access_token=access_token)
