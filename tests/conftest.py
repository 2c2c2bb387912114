"""
Shared pytest fixtures for the storemigrate tests.

This module provides:
- Source fixtures (source_engine, source, seed) backed by a SQLite file
  database through aiosqlite, with a trimmed OpenCart schema
- Target fixtures (target) backed by InMemoryDocumentStore
- Engine fixtures (allocator, status_store, mock_tracer)
- OpenTelemetry metrics fixtures (metric_reader)
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable, Iterable, Mapping
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import InMemoryMetricReader
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from storemigrate.observability import MockTracer
from storemigrate.sequences import SequenceAllocator
from storemigrate.sources.sql import SQLAlchemySourceStore
from storemigrate.status import StatusStore
from storemigrate.targets.memory import InMemoryDocumentStore
from tests.fixtures import create_schema, insert_rows

SeedFunc = Callable[[str, Iterable[Mapping[str, Any]]], Awaitable[None]]


# ============================================================================
# Source store fixtures
# ============================================================================


@pytest_asyncio.fixture
async def source_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """
    Provide an async engine over a fresh SQLite file with the OpenCart schema.

    A file database is used so concurrent related reads get their own
    connections.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'opencart.db'}")
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def source(source_engine: AsyncEngine) -> SQLAlchemySourceStore:
    """Provide the source store over the test database."""
    return SQLAlchemySourceStore(source_engine, enable_tracing=False)


@pytest.fixture
def seed(source_engine: AsyncEngine) -> SeedFunc:
    """
    Provide a coroutine function that inserts rows into a source table.

    Example:
        async def test_something(seed):
            await seed("oc_customer", customer_rows(7, 12))
    """

    async def _seed(table: str, rows: Iterable[Mapping[str, Any]]) -> None:
        await insert_rows(source_engine, table, rows)

    return _seed


# ============================================================================
# Target store and engine fixtures
# ============================================================================


@pytest.fixture
def target() -> InMemoryDocumentStore:
    """Provide a fresh in-memory target store."""
    return InMemoryDocumentStore(enable_tracing=False)


@pytest.fixture
def allocator(target: InMemoryDocumentStore) -> SequenceAllocator:
    """Provide a SequenceAllocator over the in-memory target."""
    return SequenceAllocator(target, enable_tracing=False)


@pytest.fixture
def status_store(target: InMemoryDocumentStore) -> StatusStore:
    """Provide a StatusStore over the in-memory target."""
    return StatusStore(target, enable_tracing=False)


@pytest.fixture
def mock_tracer() -> MockTracer:
    """Provide a MockTracer that records span names and attributes."""
    return MockTracer()


# ============================================================================
# OpenTelemetry metrics fixtures
# ============================================================================


@pytest.fixture
def metric_reader(monkeypatch: pytest.MonkeyPatch) -> InMemoryMetricReader:
    """
    Provide an InMemoryMetricReader wired into storemigrate.metrics.

    The module-level meter is replaced for the duration of the test, so
    the global meter provider is never touched.
    """
    reader = InMemoryMetricReader()
    provider = MeterProvider(metric_readers=[reader])
    meter = provider.get_meter("storemigrate")
    monkeypatch.setattr("storemigrate.metrics._get_meter", lambda: meter)
    return reader
