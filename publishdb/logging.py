"""Logging setup using Loguru.

Every coordinator call runs inside :func:`operation_context`, which binds the
operation name and, for calls keyed by an account, the account id. JSON
records pick both up, so one account's writes, reads and hook output can be
followed through the log.

Example:
    >>> from publishdb.logging import logger, operation_context
    >>> with operation_context("create_profile", account_id=1):
    ...     logger.info("Attaching profile")
    >>> # {"message": "Attaching profile", "operation": "create_profile", "account_id": "1", ...}
"""

import json
import sys
import traceback
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Any

from loguru import logger as loguru_logger

from publishdb.config import settings

operation_var: ContextVar[str | None] = ContextVar("operation", default=None)
account_id_var: ContextVar[str | None] = ContextVar("account_id", default=None)

HUMAN_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)


# =============================================================================
# Operation Context
# =============================================================================


def current_context() -> dict[str, str | None]:
    """Return the operation and account bound to the running call."""
    return {"operation": operation_var.get(), "account_id": account_id_var.get()}


@contextmanager
def operation_context(operation: str, account_id: int | str | None = None) -> Iterator[None]:
    """Bind an operation, and optionally the account it acts for, to a block.

    An ``account_id`` of None leaves any account bound by an enclosing call
    in place. Both values revert on exit, including on error.
    """
    operation_token = operation_var.set(operation)
    account_token = account_id_var.set(str(account_id)) if account_id is not None else None
    try:
        yield
    finally:
        if account_token is not None:
            account_id_var.reset(account_token)
        operation_var.reset(operation_token)


# =============================================================================
# Serialization
# =============================================================================


def serialize(record: dict[str, Any]) -> str:
    """Render a log record as one compact JSON line.

    Carries the bound operation context plus anything passed through
    ``logger.bind()``.
    """
    subset: dict[str, Any] = {
        "time": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "module": record["module"],
        "function": record["function"],
        "line": record["line"],
    }
    subset.update({key: value for key, value in current_context().items() if value})
    subset.update(record["extra"])

    if exc := record["exception"]:
        subset["exception"] = {
            "type": exc.type.__name__ if exc.type else None,
            "value": str(exc.value),
            "traceback": traceback.format_exception(exc.type, exc.value, exc.traceback),
        }

    return json.dumps(subset, default=str)


def patching(record: dict[str, Any]) -> None:
    record["serialized"] = serialize(record)


def custom_formatter(record: dict[str, Any]) -> str:
    return "{serialized}\n"


# =============================================================================
# Logger Configuration
# =============================================================================


def setup_logging(
    level: str = "INFO",
    json_logs: bool = False,
    log_file: Path | None = None,
    colorize: bool = True,
) -> Any:
    """Replace every Loguru sink with the PublishDB ones.

    Args:
        level: Minimum log level
        json_logs: Write JSON lines to stdout instead of the human format
        log_file: Also write to this file, rotated at 100 MB and kept 30 days
        colorize: Color the human-readable stdout format

    Returns:
        Logger patched with the JSON serializer
    """
    loguru_logger.remove()
    patched_logger = loguru_logger.patch(patching)

    if json_logs:
        patched_logger.add(sys.stdout, level=level, format=custom_formatter, serialize=False)
    else:
        patched_logger.add(sys.stdout, level=level, format=HUMAN_FORMAT, colorize=colorize)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        patched_logger.add(
            log_file,
            level=level,
            format=custom_formatter if json_logs else "{time} | {level} | {message}",
            rotation="100 MB",
            retention="30 days",
            compression="zip",
            enqueue=True,
        )

    return patched_logger


logger = setup_logging(
    level=settings.log_level,
    json_logs=settings.log_json,
    log_file=settings.log_file if settings.log_to_file else None,
    colorize=not settings.log_json,
)


__all__ = [
    "logger",
    "operation_var",
    "account_id_var",
    "current_context",
    "operation_context",
    "setup_logging",
]
