from authflow.web.routers.account import router as account_router
from authflow.web.routers.auth import router as auth_router
from authflow.web.routers.content import router as content_router
from authflow.web.routers.email import router as email_router
from authflow.web.routers.password import router as password_router
from authflow.web.routers.registration import router as registration_router
from authflow.web.routers.sessions import router as sessions_router

__all__ = [
    "account_router",
    "auth_router",
    "content_router",
    "email_router",
    "password_router",
    "registration_router",
    "sessions_router",
]
