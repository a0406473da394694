"""Protocol interfaces for dependency injection.

The coordinators and hooks depend on these structural types rather than on
concrete classes, so tests can hand in lightweight fakes and an alternative
connection-pool owner can be swapped in without inheritance.

Example:
    >>> from publishdb.interfaces import IDatabaseManager
    >>> from publishdb.database import DatabaseManager
    >>> isinstance(DatabaseManager(), IDatabaseManager)
    True
"""

from contextlib import AbstractContextManager
from typing import Any, Protocol, runtime_checkable

from sqlmodel import Session


@runtime_checkable
class IDatabaseManager(Protocol):
    """Owner of the connection pool and the transaction scope."""

    def initialize(self) -> None:
        """Create the engine and tables. Idempotent."""
        ...

    def close(self) -> None:
        """Dispose of the pool."""
        ...

    def new_session(self) -> Session:
        """Open a bare session; the caller owns commit and close."""
        ...

    def session_scope(self, label: str = ...) -> AbstractContextManager[Session]:
        """Atomic unit of work: commit on success, roll back on any failure."""
        ...


@runtime_checkable
class AfterCreateHook(Protocol):
    """Callable invoked once with the read model of a freshly committed row."""

    def __call__(self, entity: Any) -> None: ...


@runtime_checkable
class IHookRegistry(Protocol):
    """Dispatcher for afterCreate hooks."""

    def fire_after_create(self, kind: Any, entity: Any) -> list[Any]:
        """Run every hook for ``kind``; return the failures that were logged."""
        ...


__all__ = ["IDatabaseManager", "AfterCreateHook", "IHookRegistry"]
