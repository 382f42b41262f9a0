"""
Basic Usage Example

This example walks through the life of one table:
- Defining a table with stable field ids
- Creating it through the schema manager
- Adding a column in place
- Renaming a column and dropping another with a shadow-table rewrite
- Watching progress and rolling a migration back

Run with: python examples/basic_usage.py
"""

import asyncio
import logging

from schemashift import (
    FieldSchema,
    IndexSchema,
    MigrationStatus,
    RewriteResult,
    SchemaManager,
    SQLiteStorageExecutor,
    TableSchema,
)

# =============================================================================
# Step 1: Define Tables
# =============================================================================
# A field id survives renames, so the detector can tell a renamed column
# from a dropped one plus an added one.

USERS_V1 = TableSchema(
    name="users",
    table_id="users",
    fields=(
        FieldSchema.text("username", field_id="username", nullable=False),
        FieldSchema.integer("age", field_id="age"),
    ),
)

USERS_V2 = TableSchema(
    name="users",
    table_id="users",
    fields=(
        FieldSchema.text("username", field_id="username", nullable=False),
        FieldSchema.integer("age", field_id="age"),
        FieldSchema.text("email", field_id="email"),
    ),
    indexes=(IndexSchema(fields=("email",), unique=True),),
)

# "username" becomes "handle" and "age" goes away.
USERS_V3 = TableSchema(
    name="users",
    table_id="users",
    fields=(
        FieldSchema.text("handle", field_id="username", nullable=False),
        FieldSchema.text("email", field_id="email"),
    ),
    indexes=(IndexSchema(fields=("email",), unique=True),),
)


# =============================================================================
# Step 2: Watch Progress
# =============================================================================


def print_progress(status: MigrationStatus) -> None:
    print(f"  [{status.task_id}] {status.state.value:<11} {status.progress_percent:>3}%")


# =============================================================================
# Step 3: Run It
# =============================================================================


async def main() -> None:
    logging.basicConfig(level=logging.INFO)

    async with SQLiteStorageExecutor(":memory:") as storage:
        manager = SchemaManager(storage)
        await manager.initialize()
        manager.add_progress_callback(print_progress)

        print("Creating users")
        await manager.create_table(USERS_V1)
        await storage.execute_insert(
            'INSERT INTO "users" ("username", "age") VALUES (?, ?)', ["alice", 31]
        )

        print("Adding email")
        added = await manager.migrate(USERS_V1, USERS_V2)
        assert isinstance(added, MigrationStatus)

        print("Renaming username and dropping age")
        rebuilt = await manager.migrate(USERS_V2, USERS_V3)
        assert isinstance(rebuilt, RewriteResult)
        print(f"  copied {rebuilt.rows_copied} row(s), dropped {rebuilt.dropped_columns}")

        rows = await storage.execute_query('SELECT * FROM "users"')
        print(f"Rows now: {rows}")
        print(f"Version: {await manager.get_schema_version('users')}")

        print("History:")
        for record in await manager.get_migration_history("users"):
            kinds = ", ".join(op.type.value for op in record.operations)
            print(f"  {record.task_id}: v{record.from_version} -> v{record.to_version} ({kinds})")

        print("Rolling back the email column")
        await manager.rollback_migration(added.task_id)
        print(f"Rows now: {await storage.execute_query('SELECT * FROM users')}")


if __name__ == "__main__":
    asyncio.run(main())
