from typing import Any
from uuid import UUID

from fastapi import APIRouter, Response
from pydantic import Field

from authflow.web.deps import AppDep, LiveAuthDep
from authflow.web.openapi import ErrorResponse
from authflow.web.schemas import ApiModel

router = APIRouter(tags=["email"])


class UpdateEmailRequest(ApiModel):
    new_email: str = Field(..., min_length=3, max_length=254, description="Address to move the account to")


class EmailUpdateResponse(ApiModel):
    token: str = Field(..., description="Confirms the change; delivered to the new address")
    revoke_token: str = Field(..., description="Cancels the change; delivered to the current address")


class ValidateEmailUpdateRequest(ApiModel):
    account_uuid: UUID = Field(..., alias="accountUUID", description="Account the change belongs to")
    token: str = Field(..., min_length=1, max_length=128, description="Confirmation token")


class RevokeEmailUpdateRequest(ApiModel):
    account_uuid: UUID = Field(..., alias="accountUUID", description="Account the change belongs to")
    revoke_token: str = Field(..., min_length=1, max_length=128, description="Revoke token")


TOKEN_RESPONSES: dict[int | str, dict[str, Any]] = {
    200: {"description": "Email update requested"},
    400: {"model": ErrorResponse, "description": "Malformed request or same email"},
    401: {"model": ErrorResponse, "description": "Not authenticated or session no longer live"},
    409: {"model": ErrorResponse, "description": "Email already in use"},
}


@router.post(
    "/email/update",
    summary="Request email update",
    description="Start an email change. A previous pending request stops being redeemable.",
    operation_id="requestEmailUpdate",
    responses=TOKEN_RESPONSES,
)
async def request_email_update(body: UpdateEmailRequest, app: AppDep, ctx: LiveAuthDep) -> EmailUpdateResponse:
    tokens = await app.request_email_update(ctx, body.new_email)
    return EmailUpdateResponse(token=tokens.token, revoke_token=tokens.revoke_token)


@router.post(
    "/email/update/resend",
    summary="Resend email update",
    description="Reissue tokens for the pending email change. The previous tokens stop working.",
    operation_id="resendEmailUpdate",
    responses={**TOKEN_RESPONSES, 404: {"model": ErrorResponse, "description": "No pending email update"}},
)
async def resend_email_update(app: AppDep, ctx: LiveAuthDep) -> EmailUpdateResponse:
    tokens = await app.resend_email_update(ctx)
    return EmailUpdateResponse(token=tokens.token, revoke_token=tokens.revoke_token)


@router.post(
    "/email/update/validate",
    summary="Validate email update",
    description="Apply the pending email change. Every session of the account is signed out.",
    operation_id="validateEmailUpdate",
    responses={
        200: {"description": "Email updated"},
        400: {"model": ErrorResponse, "description": "Invalid or expired token"},
        409: {"model": ErrorResponse, "description": "Email taken in the meantime"},
    },
)
async def validate_email_update(body: ValidateEmailUpdateRequest, app: AppDep) -> Response:
    await app.validate_email_update(body.account_uuid, body.token)
    return Response(status_code=200)


@router.post(
    "/email/update/revoke",
    summary="Revoke email update",
    description="Cancel the pending email change. The account keeps its current email.",
    operation_id="revokeEmailUpdate",
    responses={
        200: {"description": "Email update cancelled"},
        400: {"model": ErrorResponse, "description": "Invalid, expired or already used token"},
    },
)
async def revoke_email_update(body: RevokeEmailUpdateRequest, app: AppDep) -> Response:
    await app.revoke_email_update(body.account_uuid, body.revoke_token)
    return Response(status_code=200)
