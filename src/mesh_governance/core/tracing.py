"""OpenTelemetry instrumentation for governance operations.

Only the OpenTelemetry API is used here; without an SDK configured by the
host process, spans are no-ops.
"""

from functools import wraps
from typing import Any, Callable, TypeVar

from opentelemetry import trace
from opentelemetry.trace import SpanKind, Status, StatusCode

F = TypeVar("F", bound=Callable[..., Any])

TRACER_NAME = "mesh_governance"


def get_tracer() -> trace.Tracer:
    return trace.get_tracer(TRACER_NAME)


def traced(operation: str) -> Callable[[F], F]:
    """Wrap a governance operation in a span named ``governance.<operation>``.

    Exceptions are recorded on the span and re-raised unchanged.
    """
    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            with get_tracer().start_as_current_span(
                f"governance.{operation}",
                kind=SpanKind.INTERNAL,
                record_exception=False,
                set_status_on_exception=False,
            ) as span:
                span.set_attribute("governance.operation", operation)
                for key in ("product_id", "request_id", "grant_id", "rule_id"):
                    value = kwargs.get(key)
                    if isinstance(value, str):
                        span.set_attribute(f"governance.{key}", value)
                try:
                    result = func(*args, **kwargs)
                    span.set_status(Status(StatusCode.OK))
                    return result
                except Exception as e:
                    span.set_status(Status(StatusCode.ERROR, str(e)))
                    span.record_exception(e)
                    raise

        return wrapper  # type: ignore
    return decorator
