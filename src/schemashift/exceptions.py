"""Library exceptions for the schemashift package."""


class SchemaShiftError(Exception):
    """Base exception for schemashift library."""

    pass


class StorageError(SchemaShiftError):
    """Raised when a storage executor cannot run a statement."""

    def __init__(self, message: str, sql: str | None = None) -> None:
        self.sql = sql
        super().__init__(message)


class NotConnectedError(StorageError):
    """Raised when a storage executor is used before it is connected."""

    def __init__(self, database: str) -> None:
        self.database = database
        super().__init__(
            f"Not connected to database {database!r}. "
            "Use 'async with executor:' or call 'connect()' first."
        )


class InvalidIdentifierError(SchemaShiftError, ValueError):
    """Raised when a table, column or index name cannot be quoted safely."""

    def __init__(self, identifier: str, reason: str) -> None:
        self.identifier = identifier
        super().__init__(f"Invalid identifier {identifier!r}: {reason}")
