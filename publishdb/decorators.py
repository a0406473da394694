"""Shared decorators for coordinator operations.

``instrumented`` wraps an operation with the ambient concerns every
coordinator call carries: the log context, a tracing span, a latency
histogram and an outcome counter. Methods taking an ``account_id`` argument
bind it into the log context and the span.

``handle_db_errors`` turns storage-level failures raised inside a write into
:class:`~publishdb.errors.TransactionFailure`. Domain errors pass through
untouched so callers still see ValidationError / NotFoundError.
"""

import inspect
import time
from collections.abc import Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from publishdb.config import EntityKind
from publishdb.errors import PublishDBError, TransactionFailure
from publishdb.logging import logger, operation_context
from publishdb.metrics import (
    database_operations_total,
    database_query_duration_seconds,
    errors_total,
)
from publishdb.telemetry import (
    add_span_attributes,
    get_tracer,
    record_exception_in_span,
)

P = ParamSpec("P")
R = TypeVar("R")

tracer = get_tracer(__name__)


def instrumented(
    operation: str,
    entity: EntityKind,
    component: str = "coordinator",
    account_arg: str = "account_id",
) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """Decorate a coordinator method with logging context, tracing and metrics.

    Args:
        operation: Operation name used in logs, spans and metric labels
        entity: Entity kind the operation primarily acts on
        component: Component label for the errors counter
        account_arg: Parameter whose value is bound as the acting account

    Returns:
        Decorator function
    """

    def decorator(function: Callable[P, R]) -> Callable[P, R]:
        signature = inspect.signature(function)
        account_keyed = account_arg in signature.parameters

        @wraps(function)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            account_id = (
                signature.bind_partial(*args, **kwargs).arguments.get(account_arg)
                if account_keyed
                else None
            )
            start = time.perf_counter()
            status = "success"
            with operation_context(operation, account_id), tracer.start_as_current_span(
                f"publishdb.{operation}"
            ) as span:
                add_span_attributes(
                    span,
                    {
                        "publishdb.operation": operation,
                        "publishdb.entity": entity.value,
                        "publishdb.account_id": account_id,
                    },
                )
                try:
                    return function(*args, **kwargs)
                except PublishDBError as e:
                    status = type(e).__name__
                    errors_total.labels(error_type=status, component=component).inc()
                    record_exception_in_span(span, e)
                    raise
                except Exception as e:
                    status = type(e).__name__
                    errors_total.labels(error_type=status, component=component).inc()
                    record_exception_in_span(span, e)
                    logger.exception(f"{operation} failed unexpectedly")
                    raise
                except BaseException as e:
                    status = type(e).__name__
                    raise
                finally:
                    duration = time.perf_counter() - start
                    database_query_duration_seconds.labels(
                        operation=operation, entity=entity.value
                    ).observe(duration)
                    database_operations_total.labels(
                        operation=operation, entity=entity.value, status=status
                    ).inc()
                    logger.debug(f"{operation} finished in {duration * 1000:.1f}ms ({status})")

        return wrapper

    return decorator


def handle_db_errors(operation: str) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """Re-raise storage errors from a write as TransactionFailure.

    The wrapped function must already have rolled its transaction back
    (``session_scope`` does) by the time the error reaches this decorator.

    Args:
        operation: Operation name recorded on the TransactionFailure
    """

    def decorator(function: Callable[P, R]) -> Callable[P, R]:
        @wraps(function)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            try:
                return function(*args, **kwargs)
            except SQLAlchemyError as e:
                raise TransactionFailure(operation, e) from e

        return wrapper

    return decorator


__all__ = ["instrumented", "handle_db_errors"]
