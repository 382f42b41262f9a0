"""
Shared test fixtures for the schemashift test suite.

Usage:
    from tests.fixtures import (
        RecordingStorage,
        InMemoryVersions,
        InMemoryHistory,
        users_v1,
        users_with_email,
    )
"""

from tests.fixtures.fakes import (
    InMemoryHistory,
    InMemoryVersions,
    RecordingStorage,
    TransactionalRecordingStorage,
)
from tests.fixtures.helpers import column_names, fetch_all
from tests.fixtures.schemas import (
    app_users,
    posts,
    users_renamed_field,
    users_retyped,
    users_v1,
    users_with_email,
    users_with_index,
)

__all__ = [
    # Fakes
    "RecordingStorage",
    "TransactionalRecordingStorage",
    "InMemoryVersions",
    "InMemoryHistory",
    # Helpers
    "column_names",
    "fetch_all",
    # Schemas
    "users_v1",
    "users_with_email",
    "users_renamed_field",
    "users_retyped",
    "users_with_index",
    "app_users",
    "posts",
]
