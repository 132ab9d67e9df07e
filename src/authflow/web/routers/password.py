from uuid import UUID

from fastapi import APIRouter, Response
from pydantic import Field

from authflow.web.deps import AppDep, LiveAuthDep
from authflow.web.openapi import ErrorResponse
from authflow.web.schemas import ApiModel

router = APIRouter(tags=["password"])


class UpdatePasswordRequest(ApiModel):
    old_password: str = Field(..., min_length=1, max_length=255, description="Current password")
    new_password: str = Field(..., min_length=8, max_length=72, description="New password, at most 72 UTF-8 bytes")


class ForgotPasswordRequest(ApiModel):
    email: str = Field(..., min_length=1, max_length=254, description="Email of the account")


class ForgotPasswordResponse(ApiModel):
    account_uuid: UUID = Field(..., alias="accountUUID", description="Account the reset belongs to")
    token: str = Field(..., description="Reset token; delivered to the account email")


class ResetPasswordRequest(ApiModel):
    account_uuid: UUID = Field(..., alias="accountUUID", description="Account the reset belongs to")
    token: str = Field(..., min_length=1, max_length=128, description="Reset token")
    new_password: str = Field(..., min_length=8, max_length=72, description="New password, at most 72 UTF-8 bytes")


@router.post(
    "/password/update",
    summary="Change password",
    description="Change the password after checking the current one. Every session of the account is signed out.",
    operation_id="updatePassword",
    responses={
        200: {"description": "Password changed"},
        400: {"model": ErrorResponse, "description": "Malformed request or weak password"},
        401: {"model": ErrorResponse, "description": "Not authenticated, session no longer live, or invalid current password"},
    },
)
async def update_password(body: UpdatePasswordRequest, app: AppDep, ctx: LiveAuthDep) -> Response:
    await app.update_password(ctx, body.old_password, body.new_password)
    return Response(status_code=200)


@router.post(
    "/password/forgot",
    summary="Request password reset",
    description="Open a password reset for the account with this email. A previous pending reset stops working.",
    operation_id="forgotPassword",
    responses={
        200: {"description": "Reset requested"},
        400: {"model": ErrorResponse, "description": "Malformed request body"},
        401: {"model": ErrorResponse, "description": "Invalid credentials"},
    },
)
async def forgot_password(body: ForgotPasswordRequest, app: AppDep) -> ForgotPasswordResponse:
    ticket = await app.forgot_password(body.email)
    return ForgotPasswordResponse(account_uuid=ticket.account_id, token=ticket.token)


@router.post(
    "/password/reset",
    summary="Reset password",
    description="Redeem a reset token and set a new password. Every session of the account is signed out.",
    operation_id="resetPassword",
    responses={
        200: {"description": "Password reset"},
        400: {"model": ErrorResponse, "description": "Invalid or expired token, or weak password"},
    },
)
async def reset_password(body: ResetPasswordRequest, app: AppDep) -> Response:
    await app.reset_password(body.account_uuid, body.token, body.new_password)
    return Response(status_code=200)
