from typing import Annotated, cast

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from authflow.app import App
from authflow.config import Config
from authflow.core.modules.token.models import AuthContext
from authflow.errors import AuthenticationError

bearer_scheme = HTTPBearer(auto_error=False)


async def get_app(request: Request) -> App:
    return cast(App, request.app.state.app)


async def get_config(request: Request) -> Config:
    return cast(Config, request.app.state.config)


def _bearer_token(credentials: HTTPAuthorizationCredentials | None) -> str:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Missing access token")
    return credentials.credentials


async def get_auth_context(
    app: Annotated[App, Depends(get_app)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)] = None,
) -> AuthContext:
    """Validate the Authorization Bearer access token."""
    return app.authenticate(_bearer_token(credentials))


async def get_refresh_auth_context(
    app: Annotated[App, Depends(get_app)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)] = None,
) -> AuthContext:
    """Like get_auth_context but accepts an expired access token; the refresh cookie authenticates."""
    return app.authenticate(_bearer_token(credentials), allow_expired=True)


async def get_live_auth_context(
    app: Annotated[App, Depends(get_app)],
    ctx: Annotated[AuthContext, Depends(get_auth_context)],
) -> AuthContext:
    """Valid access token whose session still answers the liveness ping."""
    await app.ensure_live_session(ctx)
    return ctx


# Type aliases for dependencies
AppDep = Annotated[App, Depends(get_app)]
ConfigDep = Annotated[Config, Depends(get_config)]
RefreshAuthDep = Annotated[AuthContext, Depends(get_refresh_auth_context)]
LiveAuthDep = Annotated[AuthContext, Depends(get_live_auth_context)]
