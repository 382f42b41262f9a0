"""
Shared pytest fixtures for integration tests.

Integration tests run the engine against real SQLite databases: the
aiosqlite executor from the root conftest, and a SQLAlchemy executor over
an in-memory ``sqlite+aiosqlite`` engine.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from schemashift.manager import SchemaManager
from schemashift.stores import SQLAlchemyStorageExecutor

# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for integration tests."""
    config.addinivalue_line("markers", "integration: marks tests that use a real database")
    config.addinivalue_line("markers", "sqlalchemy: marks tests that run through SQLAlchemy")


# ============================================================================
# SQLAlchemy
# ============================================================================


@pytest_asyncio.fixture
async def sqlalchemy_engine() -> AsyncGenerator[AsyncEngine, None]:
    """
    In-memory SQLite engine.

    StaticPool keeps a single connection so every statement sees the same
    database.
    """
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def sqlalchemy_storage(sqlalchemy_engine: AsyncEngine) -> SQLAlchemyStorageExecutor:
    return SQLAlchemyStorageExecutor(sqlalchemy_engine, enable_tracing=False)


@pytest_asyncio.fixture
async def sqlalchemy_manager(sqlalchemy_storage: SQLAlchemyStorageExecutor) -> SchemaManager:
    schema_manager = SchemaManager(sqlalchemy_storage, enable_tracing=False)
    await schema_manager.initialize()
    return schema_manager

