"""Shared request/response building blocks for the routers."""

from fastapi import Response
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from authflow.config import Config
from authflow.core.modules.session.models import DeviceInfo


class ApiModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DevicePayload(ApiModel):
    """Device fingerprint fields accepted by sign-in producing endpoints."""

    device_id: str = Field("", max_length=255, description="Client generated device identifier")
    device_type: str = Field("", max_length=64, description="Device type, e.g. ios, android, web")
    user_agent: str = Field("", max_length=512, description="User agent; defaults to the User-Agent header")

    def to_device(self, header_user_agent: str | None) -> DeviceInfo:
        return DeviceInfo(
            device_id=self.device_id,
            device_type=self.device_type,
            user_agent=self.user_agent or (header_user_agent or "")[:512],
        )


class AccessTokenResponse(ApiModel):
    access_token: str = Field(..., description="Short-lived bearer token")


def set_refresh_cookie(response: Response, config: Config, refresh_token: str, max_age: int) -> None:
    """Refresh tokens travel only in this cookie: HttpOnly, Secure, SameSite=Strict."""
    response.set_cookie(
        key=config.cookie_name,
        value=refresh_token,
        max_age=max_age,
        path="/",
        httponly=True,
        secure=config.cookie_secure,
        samesite="strict",
    )
