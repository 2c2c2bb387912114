"""
SQLAlchemy implementation of the source store.

Works with any async SQLAlchemy dialect. Production runs use
``mysql+aiomysql://``; tests use ``sqlite+aiosqlite://``.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import inspect, text
from sqlalchemy.exc import DBAPIError, DisconnectionError, InterfaceError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from storemigrate.exceptions import StoreConnectionError
from storemigrate.observability import (
    ATTR_DB_OPERATION,
    ATTR_DB_SYSTEM,
    ATTR_SOURCE_TABLE,
    Tracer,
    create_tracer,
)
from storemigrate.sources.base import Row, validate_identifier

logger = logging.getLogger(__name__)


def _is_disconnect(error: SQLAlchemyError) -> bool:
    if isinstance(error, (DisconnectionError, InterfaceError)):
        return True
    return isinstance(error, DBAPIError) and bool(error.connection_invalidated)


class SQLAlchemySourceStore:
    """
    Read-only source store over an AsyncEngine.

    Every query runs on a fresh pooled connection without an explicit
    transaction. Failures to open a connection and disconnect-class errors
    are raised as StoreConnectionError; any other database error propagates so the caller can decide whether it
    is a per-row failure.

    Example:
        >>> store = SQLAlchemySourceStore.from_url("mysql+aiomysql://u:p@db/opencart")
        >>> rows = await store.fetch_all(
        ...     "SELECT * FROM oc_address WHERE customer_id = :id", {"id": 12}
        ... )
        >>> await store.close()
    """

    def __init__(
        self,
        engine: AsyncEngine,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the store.

        Args:
            engine: Async engine bound to the source database
            tracer: Optional custom Tracer instance.
            enable_tracing: Whether to enable OpenTelemetry tracing
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._engine = engine

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> SQLAlchemySourceStore:
        """
        Create a store and its engine from a database URL.

        Args:
            url: SQLAlchemy async URL
            **kwargs: Passed to the store constructor

        Returns:
            SQLAlchemySourceStore owning a new engine
        """
        engine = create_async_engine(url, pool_pre_ping=True)
        return cls(engine, **kwargs)

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    @property
    def dialect(self) -> str:
        return self._engine.dialect.name

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[AsyncConnection]:
        """
        Yield a pooled connection, translating connection loss.

        Any error while opening the connection is a connection failure.
        Errors raised by statements are only translated when SQLAlchemy
        classifies them as a disconnect.

        Yields:
            AsyncConnection ready for execute() calls

        Raises:
            StoreConnectionError: If the connection is lost or cannot be opened
        """
        try:
            conn = await self._engine.connect().start()
        except (SQLAlchemyError, OSError) as e:
            raise StoreConnectionError("source", str(e)) from e

        try:
            yield conn
        except SQLAlchemyError as e:
            if _is_disconnect(e):
                raise StoreConnectionError("source", str(e)) from e
            raise
        finally:
            await conn.close()

    async def fetch_all(self, sql: str, params: Mapping[str, Any] | None = None) -> list[Row]:
        with self._tracer.span(
            "storemigrate.source.fetch_all",
            {ATTR_DB_SYSTEM: self.dialect, ATTR_DB_OPERATION: "SELECT"},
        ):
            async with self._connect() as conn:
                result = await conn.execute(text(sql), dict(params or {}))
                return [dict(row) for row in result.mappings().all()]

    async def fetch_one(self, sql: str, params: Mapping[str, Any] | None = None) -> Row | None:
        async with self._connect() as conn:
            result = await conn.execute(text(sql), dict(params or {}))
            row = result.mappings().first()
            return dict(row) if row is not None else None

    async def fetch_value(self, sql: str, params: Mapping[str, Any] | None = None) -> Any:
        async with self._connect() as conn:
            result = await conn.execute(text(sql), dict(params or {}))
            return result.scalar()

    async def table_exists(self, table: str) -> bool:
        validate_identifier(table)
        with self._tracer.span(
            "storemigrate.source.table_exists",
            {ATTR_DB_SYSTEM: self.dialect, ATTR_SOURCE_TABLE: table},
        ):
            async with self._connect() as conn:
                return await conn.run_sync(lambda sync_conn: inspect(sync_conn).has_table(table))

    async def columns(self, table: str) -> set[str]:
        validate_identifier(table)
        if not await self.table_exists(table):
            return set()
        async with self._connect() as conn:
            found = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_columns(table))
        return {column["name"] for column in found}

    async def ping(self) -> None:
        """
        Run a trivial query against the source.

        Raises:
            StoreConnectionError: If the query fails for any reason
        """
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            raise StoreConnectionError("source", str(e)) from e
        logger.debug("Source store reachable (%s)", self.dialect)

    async def close(self) -> None:
        await self._engine.dispose()


__all__ = ["SQLAlchemySourceStore"]
