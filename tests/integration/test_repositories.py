"""
Integration tests for the version ledger and migration history tables.

Tests cover:
- VersionLedger insert, increment, rename and change detection
- MigrationHistoryRepository start/finish round trip and ordering
"""

import pytest

from schemashift.migration import MigrationNotFoundError, MigrationOperation, MigrationState
from schemashift.migration.models import MigrationStatus
from schemashift.migration.repositories import MigrationHistoryRepository, VersionLedger
from schemashift.observability import ATTR_TABLE_NAME, MockTracer
from schemashift.stores import SQLiteStorageExecutor
from tests.fixtures import users_v1, users_with_email

pytestmark = pytest.mark.integration


class TestVersionLedger:
    """VersionLedger on real SQLite."""

    @pytest.mark.asyncio
    async def test_untracked_table_is_version_zero(self, version_ledger: VersionLedger) -> None:
        assert await version_ledger.current_version("users") == 0
        assert await version_ledger.get("users") is None

    @pytest.mark.asyncio
    async def test_first_record_then_increments(self, version_ledger: VersionLedger) -> None:
        assert await version_ledger.record_version("users", "h1") == 1
        assert await version_ledger.record_version("users", "h2") == 2
        record = await version_ledger.get("users")
        assert record is not None
        assert record.version == 2
        assert record.schema_hash == "h2"
        assert record.updated_at >= record.created_at

    @pytest.mark.asyncio
    async def test_ensure_table_idempotent(self, version_ledger: VersionLedger) -> None:
        await version_ledger.record_version("users", "h1")
        await version_ledger.ensure_table()
        assert await version_ledger.current_version("users") == 1

    @pytest.mark.asyncio
    async def test_rename(self, version_ledger: VersionLedger) -> None:
        await version_ledger.record_version("users", "h1")
        assert await version_ledger.rename("users", "app_users") is True
        assert await version_ledger.current_version("app_users") == 1
        assert await version_ledger.current_version("users") == 0

    @pytest.mark.asyncio
    async def test_rename_missing_row(self, version_ledger: VersionLedger) -> None:
        assert await version_ledger.rename("ghost", "spirit") is False

    @pytest.mark.asyncio
    async def test_rename_replaces_stale_row(self, version_ledger: VersionLedger) -> None:
        """A leftover row under the new name is replaced, keeping names unique."""
        await version_ledger.record_version("users", "h1")
        await version_ledger.record_version("users", "h2")
        await version_ledger.record_version("app_users", "stale")
        assert await version_ledger.rename("users", "app_users")
        assert await version_ledger.current_version("app_users") == 2
        assert [r.table_name for r in await version_ledger.list_all()] == ["app_users"]

    @pytest.mark.asyncio
    async def test_has_changed(self, version_ledger: VersionLedger) -> None:
        assert await version_ledger.has_changed(users_v1())
        await version_ledger.record_schema(users_v1())
        assert not await version_ledger.has_changed(users_v1())
        assert await version_ledger.has_changed(users_with_email())

    @pytest.mark.asyncio
    async def test_spans(self, sqlite_storage: SQLiteStorageExecutor) -> None:
        tracer = MockTracer()
        ledger = VersionLedger(sqlite_storage, tracer=tracer)
        await ledger.ensure_table()
        await ledger.record_version("users", "h1")
        await ledger.list_all()
        assert "schemashift.version_ledger.record_version" in tracer.span_names
        assert "schemashift.version_ledger.list_all" in tracer.span_names
        await ledger.get("users")
        assert ("schemashift.version_ledger.get", {ATTR_TABLE_NAME: "users"}) in tracer.spans


class TestMigrationHistory:
    """MigrationHistoryRepository on real SQLite."""

    @pytest.mark.asyncio
    async def test_start_and_finish(self, history_repo: MigrationHistoryRepository) -> None:
        """Operations survive the JSON round trip; finish sets the outcome."""
        operations = [MigrationOperation.rename_table("users", "app_users")]
        status = MigrationStatus.started("migration_1", "app_users")
        await history_repo.start(status, 1, 2, operations)

        pending = await history_repo.get("migration_1")
        assert pending is not None
        assert pending.state is MigrationState.IN_PROGRESS
        assert pending.completed_at is None

        await history_repo.finish(status.completed())
        record = await history_repo.get("migration_1")
        assert record is not None
        assert record.state is MigrationState.COMPLETED
        assert record.operations == operations
        assert (record.from_version, record.to_version) == (1, 2)
        assert record.started_at == status.started_at
        assert record.completed_at is not None

    @pytest.mark.asyncio
    async def test_failed_run(self, history_repo: MigrationHistoryRepository) -> None:
        status = MigrationStatus.started("migration_1", "users")
        await history_repo.start(status, 0, 1, [])
        await history_repo.finish(status.failed("disk full"))
        record = await history_repo.get("migration_1")
        assert record is not None
        assert record.state is MigrationState.FAILED
        assert record.error_message == "disk full"

    @pytest.mark.asyncio
    async def test_finish_unknown_run(self, history_repo: MigrationHistoryRepository) -> None:
        with pytest.raises(MigrationNotFoundError):
            await history_repo.finish(MigrationStatus.started("ghost", "users").completed())

    @pytest.mark.asyncio
    async def test_newest_first_per_table(self, history_repo: MigrationHistoryRepository) -> None:
        for task_id, table in (("m1", "users"), ("m2", "posts"), ("m3", "users")):
            await history_repo.start(MigrationStatus.started(task_id, table), 0, 1, [])
        assert [r.task_id for r in await history_repo.list_for_table("users")] == ["m3", "m1"]
        assert [r.task_id for r in await history_repo.list_all()] == ["m3", "m2", "m1"]
        assert await history_repo.get("missing") is None
