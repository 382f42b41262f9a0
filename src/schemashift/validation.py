"""
Record validation against table definitions.

Schemas stay plain data; executable checks are registered separately in a
:class:`ValidatorRegistry` keyed by ``(table, field)`` and looked up when a
record is validated.

Usage:
    >>> registry = ValidatorRegistry()
    >>> registry.register("users", "email", FunctionValidator(lambda v: "@" in v))
    >>> result = await RecordValidator(registry).validate(users, {"email": "nope"})
    >>> result.is_valid
    False
"""

from __future__ import annotations

import inspect
import logging
import re
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from schemashift.schema.fields import DataType, FieldSchema
from schemashift.schema.table import TableSchema

logger = logging.getLogger(__name__)


class ValidationType(Enum):
    """Which check a value failed."""

    REQUIRED = "required"
    TYPE = "type"
    LENGTH = "length"
    PATTERN = "pattern"
    RANGE = "range"
    DIMENSIONS = "dimensions"
    CUSTOM = "custom"


@dataclass(frozen=True)
class ValidationFailure:
    """One failed check on one field."""

    field: str
    message: str
    type: ValidationType

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field, "message": self.message, "type": self.type.value}


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one record."""

    failures: tuple[ValidationFailure, ...] = field(default_factory=tuple)

    @property
    def is_valid(self) -> bool:
        return not self.failures

    def for_field(self, name: str) -> list[ValidationFailure]:
        return [f for f in self.failures if f.field == name]

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "failures": [f.to_dict() for f in self.failures],
        }


@runtime_checkable
class FieldValidator(Protocol):
    """A custom check on a single field value."""

    async def validate(self, value: Any) -> bool:
        """True if ``value`` is acceptable."""
        ...


class FunctionValidator:
    """Adapts a plain or async predicate to :class:`FieldValidator`."""

    def __init__(
        self,
        func: Callable[[Any], bool | Awaitable[bool]],
        *,
        message: str | None = None,
    ) -> None:
        self._func = func
        self.message = message

    async def validate(self, value: Any) -> bool:
        outcome = self._func(value)
        if inspect.isawaitable(outcome):
            outcome = await outcome
        return bool(outcome)

    def __repr__(self) -> str:
        return f"FunctionValidator({getattr(self._func, '__name__', self._func)!r})"


class ValidatorRegistry:
    """Custom validators by table and field, in registration order."""

    def __init__(self) -> None:
        self._validators: dict[tuple[str, str], list[FieldValidator]] = {}

    def register(self, table_name: str, field_name: str, validator: FieldValidator) -> None:
        self._validators.setdefault((table_name, field_name), []).append(validator)

    def unregister(self, table_name: str, field_name: str) -> list[FieldValidator]:
        """Remove and return every validator of a field."""
        return self._validators.pop((table_name, field_name), [])

    def get(self, table_name: str, field_name: str) -> list[FieldValidator]:
        return list(self._validators.get((table_name, field_name), ()))

    def clear(self) -> None:
        self._validators.clear()

    def __len__(self) -> int:
        return sum(len(v) for v in self._validators.values())


class RecordValidator:
    """
    Checks a record (column name -> value) against a TableSchema.

    Checks per field, stopping at the first structural failure:
    required, type, then length, pattern, range and vector dimensions,
    then every registered custom validator. Keys of the record that the
    schema does not declare are ignored.
    """

    def __init__(self, registry: ValidatorRegistry | None = None) -> None:
        self._registry = registry if registry is not None else ValidatorRegistry()

    @property
    def registry(self) -> ValidatorRegistry:
        return self._registry

    async def validate(
        self,
        schema: TableSchema,
        record: Mapping[str, Any],
        *,
        partial: bool = False,
    ) -> ValidationResult:
        """
        Validate ``record``.

        Args:
            schema: Table definition to validate against
            record: Column values
            partial: Fields absent from ``record`` are not required (updates)
        """
        failures: list[ValidationFailure] = []
        for field_schema in schema.fields:
            name = field_schema.name
            if name not in record:
                if not partial and not field_schema.nullable and field_schema.default is None:
                    failures.append(
                        ValidationFailure(name, "value is required", ValidationType.REQUIRED)
                    )
                continue

            value = record[name]
            if value is None:
                if not field_schema.nullable:
                    failures.append(
                        ValidationFailure(name, "value must not be null", ValidationType.REQUIRED)
                    )
                continue

            failure = _check_type(field_schema, value)
            if failure is None:
                failure = _check_bounds(field_schema, value)
            if failure is not None:
                failures.append(failure)
                continue

            failures.extend(await self._run_custom(schema.name, field_schema, value))

        if failures:
            logger.debug(
                "Record for %s failed validation: %s",
                schema.name,
                ", ".join(str(f) for f in failures),
            )
        return ValidationResult(tuple(failures))

    async def _run_custom(
        self,
        table_name: str,
        field_schema: FieldSchema,
        value: Any,
    ) -> list[ValidationFailure]:
        failures = []
        for validator in self._registry.get(table_name, field_schema.name):
            try:
                ok = await validator.validate(value)
            except Exception as e:
                logger.warning(
                    "Validator %r raised for %s.%s: %s",
                    validator,
                    table_name,
                    field_schema.name,
                    e,
                )
                failures.append(
                    ValidationFailure(
                        field_schema.name, f"validator raised: {e}", ValidationType.CUSTOM
                    )
                )
                continue
            if not ok:
                message = getattr(validator, "message", None) or "failed custom validation"
                failures.append(ValidationFailure(field_schema.name, message, ValidationType.CUSTOM))
        return failures


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


_TYPE_CHECKS: dict[DataType, Callable[[Any], bool]] = {
    DataType.TEXT: lambda v: isinstance(v, str),
    DataType.INTEGER: lambda v: isinstance(v, int) and not isinstance(v, bool),
    DataType.REAL: _is_number,
    DataType.BOOLEAN: lambda v: isinstance(v, bool),
    DataType.DATETIME: lambda v: isinstance(v, datetime | date | str),
    DataType.BLOB: lambda v: isinstance(v, bytes | bytearray | memoryview),
    DataType.JSON: lambda v: isinstance(v, dict | list | str),
    DataType.VECTOR: lambda v: isinstance(v, list | tuple) and all(_is_number(x) for x in v),
}


def _check_type(field_schema: FieldSchema, value: Any) -> ValidationFailure | None:
    if _TYPE_CHECKS[field_schema.type](value):
        return None
    return ValidationFailure(
        field_schema.name,
        f"expected {field_schema.type.value}, got {type(value).__name__}",
        ValidationType.TYPE,
    )


def _check_bounds(field_schema: FieldSchema, value: Any) -> ValidationFailure | None:
    name = field_schema.name
    if isinstance(value, str):
        if field_schema.min_length is not None and len(value) < field_schema.min_length:
            return ValidationFailure(
                name, f"must be at least {field_schema.min_length} characters", ValidationType.LENGTH
            )
        if field_schema.max_length is not None and len(value) > field_schema.max_length:
            return ValidationFailure(
                name, f"must be at most {field_schema.max_length} characters", ValidationType.LENGTH
            )
        if field_schema.pattern is not None and re.search(field_schema.pattern, value) is None:
            return ValidationFailure(
                name, f"does not match pattern {field_schema.pattern!r}", ValidationType.PATTERN
            )

    if _is_number(value) and field_schema.type.is_numeric:
        if field_schema.min_value is not None and value < field_schema.min_value:
            return ValidationFailure(
                name, f"must be >= {field_schema.min_value}", ValidationType.RANGE
            )
        if field_schema.max_value is not None and value > field_schema.max_value:
            return ValidationFailure(
                name, f"must be <= {field_schema.max_value}", ValidationType.RANGE
            )

    config = field_schema.vector_config
    if config is not None and len(value) != config.dimensions:
        return ValidationFailure(
            name,
            f"expected {config.dimensions} dimensions, got {len(value)}",
            ValidationType.DIMENSIONS,
        )
    return None


__all__ = [
    "ValidationType",
    "ValidationFailure",
    "ValidationResult",
    "FieldValidator",
    "FunctionValidator",
    "ValidatorRegistry",
    "RecordValidator",
]
