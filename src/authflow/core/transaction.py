"""Unit of work over a MongoDB client session."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from pymongo import AsyncMongoClient, WriteConcern
from pymongo.asynchronous.client_session import AsyncClientSession
from pymongo.errors import PyMongoError
from pymongo.read_concern import ReadConcern

logger = structlog.get_logger(__name__)


class Transaction:
    """One storage transaction shared by every write of a request.

    Services receive it explicitly and pass ``tx.session`` to each collection call.
    Nothing written through it is visible to other requests until commit().
    """

    def __init__(self, session: AsyncClientSession) -> None:
        self.session = session
        self._committed = False

    @property
    def committed(self) -> bool:
        return self._committed

    async def commit(self) -> None:
        if self._committed:
            raise RuntimeError("Transaction already committed")
        await self.session.commit_transaction()
        self._committed = True

    async def rollback(self) -> None:
        """Abort unless already committed. Abort failures are logged, never raised."""
        if self._committed or not self.session.in_transaction:
            return
        try:
            await self.session.abort_transaction()
        except PyMongoError:
            logger.warning("transaction_rollback_failed", exc_info=True)


@asynccontextmanager
async def open_transaction(client: AsyncMongoClient[dict[str, Any]], timeout_ms: int) -> AsyncGenerator[Transaction]:
    """Start a session with an open transaction; roll back on exit unless committed."""
    async with client.start_session() as session:
        await session.start_transaction(
            read_concern=ReadConcern("snapshot"),
            write_concern=WriteConcern("majority", wtimeout=timeout_ms),
            max_commit_time_ms=timeout_ms,
        )
        tx = Transaction(session)
        try:
            yield tx
        finally:
            await tx.rollback()
