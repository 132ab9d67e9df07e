from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from authflow.app import App
from authflow.config import Config
from authflow.errors import UserError
from authflow.web.error_handlers import general_exception_handler, request_validation_handler, user_error_handler
from authflow.web.openapi import set_custom_openapi
from authflow.web.routers import (
    account_router,
    auth_router,
    content_router,
    email_router,
    password_router,
    registration_router,
    sessions_router,
)


def create_fastapi_app(app_instance: App, config: Config) -> FastAPI:
    """Create and configure FastAPI application."""

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncGenerator[None]:
        async with app_instance.lifespan():
            yield

    app = FastAPI(title="authflow API", lifespan=lifespan)
    app.state.app = app_instance
    app.state.config = config

    if config.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "PATCH"],
            allow_headers=["Authorization", "Content-Type"],
        )

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy"}

    app.include_router(registration_router)
    app.include_router(auth_router)
    app.include_router(account_router)
    app.include_router(email_router)
    app.include_router(password_router)
    app.include_router(sessions_router)
    app.include_router(content_router)

    app.add_exception_handler(UserError, user_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    set_custom_openapi(app)

    return app
