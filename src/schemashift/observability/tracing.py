"""
OpenTelemetry detection and the ``traced`` decorator.

OpenTelemetry is optional (``pip install schemashift[telemetry]``). The
import is attempted once here; the rest of the package reads ``OTEL_AVAILABLE``
or asks :func:`~schemashift.observability.tracer.create_tracer` for a tracer.

Example:
    >>> from schemashift.observability import ATTR_TABLE_NAME, traced
    >>>
    >>> class VersionLedger:
    ...     @traced("schemashift.version_ledger.get", args={"table_name": ATTR_TABLE_NAME})
    ...     async def get(self, table_name: str) -> VersionRecord | None:
    ...         ...
"""

from __future__ import annotations

import contextlib
import functools
import inspect
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any, ParamSpec, TypeVar

if TYPE_CHECKING:
    from opentelemetry.trace import Tracer

try:
    from opentelemetry import trace

    OTEL_AVAILABLE = True
except ImportError:
    OTEL_AVAILABLE = False
    trace = None  # type: ignore[assignment]

P = ParamSpec("P")
R = TypeVar("R")


def get_tracer(name: str) -> Tracer | None:
    """Raw OpenTelemetry tracer for ``name``, or None without the SDK."""
    if not OTEL_AVAILABLE:
        return None
    return trace.get_tracer(name)


def should_trace(enable_tracing: bool) -> bool:
    return enable_tracing and OTEL_AVAILABLE


def _span_attributes(
    signature: inspect.Signature,
    static: Mapping[str, Any] | None,
    args: Mapping[str, str] | None,
    call_args: tuple[Any, ...],
    call_kwargs: dict[str, Any],
) -> dict[str, Any] | None:
    if not args:
        return dict(static) if static else None
    bound = signature.bind_partial(*call_args, **call_kwargs).arguments
    attributes = dict(static or {})
    for param, attribute in args.items():
        if param in bound and bound[param] is not None:
            attributes[attribute] = bound[param]
    return attributes


def traced(
    name: str,
    attributes: Mapping[str, Any] | None = None,
    *,
    args: Mapping[str, str] | None = None,
) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Run a method inside a span named ``name``.

    The owner must carry ``_tracer`` and ``_enable_tracing``, as every
    component built with ``create_tracer`` does. With tracing off the
    method is called directly.

    Args:
        name: Span name, e.g. ``schemashift.history.get``
        attributes: Static span attributes
        args: Maps parameter names of the method to span attribute names;
            the call's argument values are recorded under them (None
            values are skipped)
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        signature = inspect.signature(func)

        def open_span(owner: Any, call_args: tuple[Any, ...], call_kwargs: dict[str, Any]):
            tracer = getattr(owner, "_tracer", None)
            if tracer is None or not getattr(owner, "_enable_tracing", False):
                return contextlib.nullcontext()
            span_attributes = _span_attributes(
                signature, attributes, args, (owner, *call_args), call_kwargs
            )
            return tracer.span(name, span_attributes)

        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(self: Any, *call_args: Any, **call_kwargs: Any) -> Any:
                with open_span(self, call_args, call_kwargs):
                    return await func(self, *call_args, **call_kwargs)

            return async_wrapper  # type: ignore[return-value]

        @functools.wraps(func)
        def sync_wrapper(self: Any, *call_args: Any, **call_kwargs: Any) -> Any:
            with open_span(self, call_args, call_kwargs):
                return func(self, *call_args, **call_kwargs)

        return sync_wrapper  # type: ignore[return-value]

    return decorator


__all__ = [
    "OTEL_AVAILABLE",
    "get_tracer",
    "should_trace",
    "traced",
]
