"""Row conversion helpers shared by the metadata repositories."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any


def format_timestamp(value: datetime | None) -> str | None:
    """Timestamps are stored as ISO 8601 text in UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat()


def parse_timestamp(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed
