"""Named status scopes for content queries.

A scope is a reusable predicate over ``ContentRow.status``. Scopes are applied
to a select statement before pagination, ordering and eager-loading, so the
total used for page counts always matches what a page draws from.

Example:
    >>> stmt = apply_scope(select(ContentRow), "active")
    >>> stmt = apply_scopes(select(ContentRow), "draft", "archived")
"""

from collections.abc import Callable
from typing import Any, TypeVar

from sqlalchemy import or_
from sqlalchemy.sql.elements import ColumnElement

from publishdb.config import ContentStatus
from publishdb.errors import InvalidScopeError
from publishdb.models import ContentRow

StmtT = TypeVar("StmtT")
ScopePredicate = Callable[[], ColumnElement[bool]]


def _status_is(status: ContentStatus) -> ScopePredicate:
    def predicate() -> ColumnElement[bool]:
        return ContentRow.status == status  # type: ignore[return-value]

    predicate.__name__ = f"status_is_{status.value}"
    return predicate


SCOPES: dict[str, ScopePredicate] = {
    status.value: _status_is(status) for status in ContentStatus
}


def register_scope(name: str, predicate: ScopePredicate) -> None:
    """Register a new named scope.

    Raises:
        ValueError: If the name is empty or already registered
    """
    if not name:
        raise ValueError("Scope name must not be empty")
    if name in SCOPES:
        raise ValueError(f"Scope {name!r} is already registered")
    SCOPES[name] = predicate


def scope_predicate(name: str) -> ColumnElement[bool]:
    """Build the predicate for one scope.

    Raises:
        InvalidScopeError: If no scope is registered under ``name``
    """
    try:
        factory = SCOPES[name]
    except KeyError:
        raise InvalidScopeError(name, known=SCOPES) from None
    return factory()


def apply_scope(stmt: StmtT, name: str | None) -> StmtT:
    """Narrow a statement to one scope. ``None`` leaves it unscoped."""
    if name is None:
        return stmt
    return stmt.where(scope_predicate(name))  # type: ignore[attr-defined]


def apply_scopes(stmt: StmtT, *names: str) -> StmtT:
    """Narrow a statement to rows matching any of the named scopes.

    With no names the statement is returned unchanged.
    """
    if not names:
        return stmt
    predicates: list[Any] = [scope_predicate(name) for name in names]
    return stmt.where(or_(*predicates))  # type: ignore[attr-defined]


__all__ = ["SCOPES", "register_scope", "scope_predicate", "apply_scope", "apply_scopes"]
