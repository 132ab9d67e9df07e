from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from authflow.web.deps import AppDep, LiveAuthDep
from authflow.web.openapi import ErrorResponse

router = APIRouter(tags=["content"])


@router.get(
    "/content",
    summary="Protected content",
    description="Example resource that requires a valid access token and a live session.",
    operation_id="getContent",
    response_class=PlainTextResponse,
    responses={
        200: {"description": "Greeting for the authenticated account"},
        401: {"model": ErrorResponse, "description": "Not authenticated or session no longer live"},
    },
)
async def get_content(app: AppDep, ctx: LiveAuthDep) -> str:
    return await app.get_content(ctx)
