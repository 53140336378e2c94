"""Utility functions and decorators for distributed tracing"""
from collections.abc import Callable
from functools import wraps
from typing import Any

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

# Never copied onto spans
_SENSITIVE_ARGS = frozenset({"password", "token", "secret", "upload", "file_data"})


def _set_argument_attributes(span: trace.Span, kwargs: dict[str, Any]) -> None:
    for key, value in kwargs.items():
        if key.startswith("_") or key in _SENSITIVE_ARGS:
            continue
        if value is None or isinstance(value, (str, int, float, bool)):
            span.set_attribute(f"arg.{key}", str(value))


def traced(operation_name: str | None = None, attributes: dict[str, Any] | None = None):
    """
    Decorator to create a span around a coroutine function

    Usage:
        @traced("document.upload_version")
        async def upload_version(self, document_id: str, ...):
            ...

    Args:
        operation_name: Name of the operation (defaults to function name)
        attributes: Additional attributes to add to the span
    """

    def decorator(func: Callable) -> Callable:
        span_name = operation_name or f"{func.__module__}.{func.__qualname__}"

        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            tracer = trace.get_tracer(__name__)

            with tracer.start_as_current_span(span_name) as span:
                if attributes:
                    for key, value in attributes.items():
                        span.set_attribute(key, value)
                _set_argument_attributes(span, kwargs)

                try:
                    result = await func(*args, **kwargs)
                    span.set_status(Status(StatusCode.OK))
                    return result
                except Exception as e:
                    span.set_status(Status(StatusCode.ERROR, str(e)))
                    span.record_exception(e)
                    raise

        return async_wrapper

    return decorator


def add_span_attributes(**attributes):
    """
    Add attributes to the current span

    Usage:
        add_span_attributes(document_id="doc_123", version_number=2)
    """
    span = trace.get_current_span()
    if span:
        for key, value in attributes.items():
            span.set_attribute(key, value)


def add_span_event(name: str, attributes: dict | None = None):
    """
    Add an event to the current span

    Usage:
        add_span_event("access_log.write_failed", {"document_id": "doc_123"})
    """
    span = trace.get_current_span()
    if span:
        span.add_event(name, attributes=attributes or {})
