"""Generic repository pattern for type-safe database operations.

This module provides a Generic Repository[T] for SQLModel tables. A
repository is bound to one session and never commits: the enclosing
``session_scope`` decides whether the unit of work is kept or rolled back.
Writes are flushed immediately so generated keys and constraint violations
surface at the statement that caused them.

Example:
    >>> from publishdb.repository import Repository
    >>> from publishdb.models import ContentRow
    >>>
    >>> with db.session_scope() as session:
    ...     contents = Repository[ContentRow](session, ContentRow)
    ...     post = contents.get(1)
    ...     drafts = contents.find_by(status=ContentStatus.DRAFT)
"""

from collections.abc import Sequence
from typing import Any, Generic, TypeVar

from sqlalchemy import delete, func
from sqlmodel import Session, SQLModel, select

from publishdb.utils import utc_now

# =============================================================================
# Type Variables
# =============================================================================

T = TypeVar("T", bound=SQLModel)


# =============================================================================
# Generic Repository
# =============================================================================


class Repository(Generic[T]):
    """Generic repository implementation for SQLModel tables.

    Type Parameter:
        T: SQLModel table type (AccountRow, ContentRow, TagRow, etc.)

    Args:
        session: SQLModel Session for the current unit of work
        model: SQLModel table class

    Example:
        >>> accounts = Repository[AccountRow](session, AccountRow)
        >>> ada = accounts.add(AccountRow(first_name="Ada", last_name="L", email="ada@example.com"))
        >>> accounts.update(ada, {"last_name": "Lovelace"})
        >>> accounts.delete_where(id=ada.id)
        1
    """

    def __init__(self, session: Session, model: type[T]):
        self.session = session
        self.model = model

    def _filtered(self, stmt: Any, filters: dict[str, Any]) -> Any:
        for key, value in filters.items():
            if not hasattr(self.model, key):
                raise AttributeError(f"{self.model.__name__} has no attribute {key!r}")
            stmt = stmt.where(getattr(self.model, key) == value)
        return stmt

    def get(self, entity_id: int) -> T | None:
        """Get entity by primary key, or None."""
        return self.session.get(self.model, entity_id)

    def get_by(self, **filters: Any) -> T | None:
        """Get the first entity matching equality filters, or None.

        Example:
            >>> profile = profiles.get_by(account_id=7)
        """
        stmt = self._filtered(select(self.model), filters)
        return self.session.exec(stmt).first()

    def find_by(self, **filters: Any) -> Sequence[T]:
        """Find all entities matching equality filters."""
        stmt = self._filtered(select(self.model), filters)
        return self.session.exec(stmt).all()

    def get_all(self, limit: int | None = None, offset: int = 0) -> Sequence[T]:
        """Get entities in primary-key order with optional pagination."""
        stmt = select(self.model).order_by(self.model.id).offset(offset)  # type: ignore[attr-defined]
        if limit is not None:
            stmt = stmt.limit(limit)
        return self.session.exec(stmt).all()

    def count(self, **filters: Any) -> int:
        """Count entities matching equality filters."""
        stmt = self._filtered(select(func.count()).select_from(self.model), filters)
        return self.session.exec(stmt).one()

    def exists(self, entity_id: int) -> bool:
        """Check if an entity exists by primary key."""
        return self.get(entity_id) is not None

    def add(self, entity: T) -> T:
        """Insert a new entity and flush so its key is assigned."""
        self.session.add(entity)
        self.session.flush()
        self.session.refresh(entity)
        return entity

    def update(self, entity: T, changes: dict[str, Any]) -> T:
        """Apply attribute changes to a loaded entity and flush.

        ``updated_at`` is bumped when the table carries one.
        """
        for key, value in changes.items():
            setattr(entity, key, value)
        if hasattr(entity, "updated_at"):
            entity.updated_at = utc_now()  # type: ignore[attr-defined]
        self.session.add(entity)
        self.session.flush()
        self.session.refresh(entity)
        return entity

    def delete_where(self, **filters: Any) -> int:
        """Delete rows matching equality filters with a single statement.

        No ORM cascade runs; only the matched rows are removed.

        Returns:
            Number of rows deleted
        """
        if not filters:
            raise ValueError("delete_where requires at least one filter")
        stmt = self._filtered(delete(self.model), filters)
        result = self.session.connection().execute(stmt)
        return result.rowcount or 0


# =============================================================================
# Repository Factory Helper
# =============================================================================


class RepositoryFactory:
    """Factory for creating repositories bound to one session.

    Example:
        >>> repos = RepositoryFactory(session)
        >>> contents = repos.for_entity(ContentRow)
        >>> tags = repos.for_entity(TagRow)
    """

    def __init__(self, session: Session):
        self.session = session

    def for_entity(self, model: type[T]) -> Repository[T]:
        """Create a repository for a specific table."""
        return Repository[T](self.session, model)


# =============================================================================
# Export Public API
# =============================================================================

__all__ = ["Repository", "RepositoryFactory"]
