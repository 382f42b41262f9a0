"""
Shared pytest fixtures for the schemashift tests.

This module provides:
- Storage fixtures (sqlite_storage: in-memory aiosqlite executor)
- Ledger fixtures backed by the SQLite executor (version_ledger, history_repo)
- Manager fixture (manager: initialized SchemaManager over in-memory SQLite)
- Fakes for unit tests (recording_storage, fake_versions, fake_history)
- Tracing fixture (mock_tracer)
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio

from schemashift.manager import SchemaManager
from schemashift.migration.repositories import MigrationHistoryRepository, VersionLedger
from schemashift.observability import MockTracer
from schemashift.schema import SchemaCatalog
from schemashift.stores import SQLiteStorageExecutor
from tests.fixtures import InMemoryHistory, InMemoryVersions, RecordingStorage

# ============================================================================
# Fakes
# ============================================================================


@pytest.fixture
def recording_storage() -> RecordingStorage:
    """Storage executor that records statements and touches no database."""
    return RecordingStorage()


@pytest.fixture
def fake_versions() -> InMemoryVersions:
    return InMemoryVersions()


@pytest.fixture
def fake_history() -> InMemoryHistory:
    return InMemoryHistory()


@pytest.fixture
def mock_tracer() -> MockTracer:
    """Tracer that records span names and attributes."""
    return MockTracer()


@pytest.fixture
def catalog() -> SchemaCatalog:
    return SchemaCatalog()


# ============================================================================
# SQLite
# ============================================================================


@pytest_asyncio.fixture
async def sqlite_storage() -> AsyncGenerator[SQLiteStorageExecutor, None]:
    """Connected in-memory SQLite executor, closed after the test."""
    async with SQLiteStorageExecutor(":memory:", enable_tracing=False) as storage:
        yield storage


@pytest_asyncio.fixture
async def version_ledger(sqlite_storage: SQLiteStorageExecutor) -> VersionLedger:
    ledger = VersionLedger(sqlite_storage, enable_tracing=False)
    await ledger.ensure_table()
    return ledger


@pytest_asyncio.fixture
async def history_repo(sqlite_storage: SQLiteStorageExecutor) -> MigrationHistoryRepository:
    repo = MigrationHistoryRepository(sqlite_storage, enable_tracing=False)
    await repo.ensure_table()
    return repo


@pytest_asyncio.fixture
async def manager(sqlite_storage: SQLiteStorageExecutor) -> SchemaManager:
    """Initialized SchemaManager over in-memory SQLite."""
    schema_manager = SchemaManager(sqlite_storage, enable_tracing=False)
    await schema_manager.initialize()
    return schema_manager
