from __future__ import annotations

import importlib
from collections.abc import AsyncGenerator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any, cast
from urllib.parse import urlparse

from pymongo import AsyncMongoClient
from pymongo.asynchronous.database import AsyncDatabase
from redis.asyncio import Redis

from authflow.config import Config
from authflow.core.service import Service
from authflow.core.transaction import Transaction, open_transaction


class Services:
    """Service registry that automatically discovers and initializes services."""

    from authflow.core.modules.account.service import AccountService  # noqa: PLC0415
    from authflow.core.modules.mail.service import MailService  # noqa: PLC0415
    from authflow.core.modules.session.service import SessionService  # noqa: PLC0415
    from authflow.core.modules.token.service import TokenService  # noqa: PLC0415
    from authflow.core.modules.verification.service import VerificationService  # noqa: PLC0415

    token: TokenService
    account: AccountService
    session: SessionService
    verification: VerificationService
    mail: MailService

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        """Initialize all services automatically using service configuration."""
        self._services: list[Service] = []
        self._database = database

        # (attribute_name, module_path, class_name); token first, the others hash and sign through it
        service_configs = [
            ("token", "authflow.core.modules.token.service", "TokenService"),
            ("account", "authflow.core.modules.account.service", "AccountService"),
            ("session", "authflow.core.modules.session.service", "SessionService"),
            ("verification", "authflow.core.modules.verification.service", "VerificationService"),
            ("mail", "authflow.core.modules.mail.service", "MailService"),
        ]

        for attr_name, module_path, class_name in service_configs:
            module = importlib.import_module(module_path)
            service_class = cast(type[Service], getattr(module, class_name))
            service_instance = service_class(database)
            setattr(self, attr_name, service_instance)
            self._services.append(service_instance)

    def set_core(self, core: Core) -> None:
        """Set core reference for all services."""
        for service in self._services:
            service.set_core(core)

    async def start_all(self) -> None:
        """Start all services that have startup logic."""
        for service in self._services:
            await service.on_start()

    async def stop_all(self) -> None:
        """Stop all services that have cleanup logic."""
        for service in self._services:
            await service.on_stop()


class Core:
    """Container providing config, database, session cache, and all service instances."""

    config: Config
    mongo_client: AsyncMongoClient[dict[str, Any]]
    database: AsyncDatabase[dict[str, Any]]
    redis: Redis
    services: Services

    def __init__(self, config: Config) -> None:
        """Initialize core with config, MongoDB, Redis, and auto-register services."""
        self.config = config
        self.mongo_client = AsyncMongoClient(
            config.database_url,
            uuidRepresentation="standard",
            tz_aware=True,
            timeoutMS=config.database_timeout_ms,
        )
        self.database = self.mongo_client.get_database(urlparse(config.database_url).path[1:])
        self.redis = Redis.from_url(config.redis_url, decode_responses=True)
        self.services = Services(self.database)
        self.services.set_core(self)

    def transaction(self) -> AbstractAsyncContextManager[Transaction]:
        """Open a storage transaction; see Transaction for commit/rollback rules."""
        return open_transaction(self.mongo_client, self.config.database_timeout_ms)

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Manage application lifecycle - startup and shutdown."""
        await self.on_start()
        try:
            yield
        finally:
            await self.on_stop()

    async def on_start(self) -> None:
        await self.services.start_all()

    async def on_stop(self) -> None:
        """Stop services and close MongoDB and Redis connections on shutdown."""
        await self.services.stop_all()
        await self.redis.aclose()
        await self.mongo_client.aclose()
