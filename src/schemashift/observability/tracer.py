"""
Tracers handed to schemashift components.

Every component takes an optional ``tracer`` and otherwise builds one with
:func:`create_tracer`:

    self._tracer = tracer or create_tracer(__name__, enable_tracing)
    self._enable_tracing = self._tracer.enabled

A span context yields the live span (OpenTelemetry) or None, so callers
setting result attributes check for None first:

    with self._tracer.span("schemashift.rewriter.rewrite", attrs) as span:
        ...
        if span is not None:
            span.set_attribute(ATTR_ROWS_COPIED, rows)
"""

from __future__ import annotations

import contextlib
from collections.abc import Iterator
from contextlib import AbstractContextManager
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from opentelemetry.trace import Span

from schemashift.observability.tracing import OTEL_AVAILABLE, get_tracer

SpanRecord = tuple[str, dict[str, Any] | None]


@runtime_checkable
class Tracer(Protocol):
    """What a component needs from a tracer: spans, and whether they are real."""

    def span(
        self,
        name: str,
        attributes: dict[str, Any] | None = None,
    ) -> AbstractContextManager[Span | None]: ...

    @property
    def enabled(self) -> bool: ...


class NullTracer:
    """Tracer used when tracing is off or OpenTelemetry is missing."""

    @contextlib.contextmanager
    def span(self, name: str, attributes: dict[str, Any] | None = None) -> Iterator[None]:
        yield None

    @property
    def enabled(self) -> bool:
        return False


class OpenTelemetryTracer:
    """
    Spans through the global OpenTelemetry tracer provider.

    Each span becomes the current span, so store-level spans nest under the
    migration that issued them.
    """

    def __init__(self, tracer_name: str) -> None:
        tracer = get_tracer(tracer_name)
        if tracer is None:
            raise ImportError("opentelemetry is not installed; pip install schemashift[telemetry]")
        self._tracer = tracer

    def span(
        self,
        name: str,
        attributes: dict[str, Any] | None = None,
    ) -> AbstractContextManager[Span | None]:
        return self._tracer.start_as_current_span(name, attributes=attributes or {})

    @property
    def enabled(self) -> bool:
        return True


class MockTracer:
    """
    Records ``(name, attributes)`` for every span opened through it.

    Reports itself as enabled so components compute their span attributes.

    Example:
        >>> tracer = MockTracer()
        >>> executor = MigrationExecutor(storage, versions, history, notifier, tracer=tracer)
        >>> await executor.execute("users", operations)
        >>> tracer.span_names[0]
        'schemashift.executor.execute'
    """

    def __init__(self) -> None:
        self.spans: list[SpanRecord] = []

    @contextlib.contextmanager
    def span(self, name: str, attributes: dict[str, Any] | None = None) -> Iterator[None]:
        self.spans.append((name, attributes))
        yield None

    @property
    def enabled(self) -> bool:
        return True

    @property
    def span_names(self) -> list[str]:
        return [name for name, _ in self.spans]

    def clear(self) -> None:
        self.spans.clear()


def create_tracer(name: str, enable_tracing: bool = True) -> Tracer:
    """OpenTelemetryTracer when wanted and installed, NullTracer otherwise."""
    if enable_tracing and OTEL_AVAILABLE:
        return OpenTelemetryTracer(name)
    return NullTracer()


__all__ = [
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "create_tracer",
]
