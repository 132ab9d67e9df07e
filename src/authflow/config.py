from pydantic_settings import BaseSettings


class Config(BaseSettings):
    """Application configuration loaded from environment variables.

    Frozen after construction; passed explicitly to Core and from there to every service.
    """

    database_url: str  # MongoDB replica set URL, transactions need a replica set
    database_timeout_ms: int = 10_000
    redis_url: str = "redis://localhost:6379/0"
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 3000
    debug: bool = False
    jwt_secret: str
    jwt_issuer: str = "authflow"
    jwt_lifespan: int = 14 * 24 * 60 * 60  # access token lifetime in seconds
    session_lifespan: int = 30 * 24 * 60 * 60  # refresh token / session lifetime in seconds
    registration_lifespan: int = 24 * 60 * 60
    email_update_lifespan: int = 60 * 60
    password_reset_lifespan: int = 60 * 60
    require_verification: bool = True
    cookie_name: str = "refreshToken"
    cookie_secure: bool = True
    cors_origins: list[str] = []
    smtp_host: str | None = None  # Outbound mail is only logged when unset
    smtp_port: int = 25
    mail_from: str = "no-reply@authflow.local"

    model_config = {
        "env_file": [".env"],
        "env_prefix": "AUTHFLOW_",
        "extra": "ignore",
        "frozen": True,
    }
