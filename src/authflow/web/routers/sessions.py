from uuid import UUID

from fastapi import APIRouter, Response

from authflow.core.modules.session.models import SessionView
from authflow.web.deps import AppDep, LiveAuthDep
from authflow.web.openapi import ErrorResponse

router = APIRouter(tags=["sessions"])


@router.get(
    "/session",
    summary="List sessions",
    description="Live sessions of the authenticated account, most recently active first.",
    operation_id="listSessions",
    responses={
        200: {"description": "Live sessions"},
        401: {"model": ErrorResponse, "description": "Not authenticated or session no longer live"},
    },
)
async def list_sessions(app: AppDep, ctx: LiveAuthDep) -> list[SessionView]:
    return await app.get_sessions(ctx)


@router.post(
    "/session/revoke/{session_id}",
    summary="Revoke session",
    description="Sign one device out. Its refresh token and liveness stop working immediately.",
    operation_id="revokeSession",
    responses={
        200: {"description": "Session revoked"},
        401: {"model": ErrorResponse, "description": "Not authenticated or session no longer live"},
        404: {"model": ErrorResponse, "description": "No such live session for this account"},
    },
)
async def revoke_session(session_id: UUID, app: AppDep, ctx: LiveAuthDep) -> Response:
    await app.revoke_session(ctx, session_id)
    return Response(status_code=200)
