"""Read coordinator: scoped, paginated and eager-loaded reads.

Every read opens a fresh session, eager-loads exactly the relations its
result exposes, and returns pydantic read models that stay valid after the
session closes. Nothing is cached between calls.

Example:
    >>> reads = ReadCoordinator(db)
    >>> page = reads.list_content("active", page=2, page_size=2)
    >>> page.total_pages, page.current_page
    (3, 2)
"""

from sqlalchemy import func
from sqlmodel import select

from publishdb.config import EntityKind, settings
from publishdb.decorators import instrumented
from publishdb.errors import NotFoundError, ValidationError
from publishdb.interfaces import IDatabaseManager
from publishdb.models import (
    ENTITY_MODELS,
    AccountDetail,
    AccountRead,
    AccountRow,
    ContentDetail,
    ContentPage,
    ContentRow,
    ProfileDetail,
    ProfileRow,
    TagRead,
    TagRow,
)
from publishdb.relationships import eager_options
from publishdb.repository import RepositoryFactory
from publishdb.scopes import apply_scope
from publishdb.utils import page_offset, total_pages


class ReadCoordinator:
    """Read-side operations over the content model.

    Args:
        db: Connection-pool owner
        default_page_size: Page size used when ``list_content`` gets none
            (defaults to settings.default_page_size)
    """

    def __init__(self, db: IDatabaseManager, default_page_size: int | None = None):
        self.db = db
        self.default_page_size = default_page_size or settings.default_page_size

    @instrumented("list_content", EntityKind.CONTENT, component="reads")
    def list_content(
        self,
        scope: str | None = None,
        page: int = 1,
        page_size: int | None = None,
    ) -> ContentPage:
        """List content newest first, optionally narrowed to a status scope.

        The scope is applied before counting and paging, so ``total`` and
        ``total_pages`` describe exactly the rows the pages draw from.

        Args:
            scope: Scope name (active, draft, archived) or None for all
            page: 1-based page number
            page_size: Rows per page (defaults to the configured page size)

        Raises:
            InvalidScopeError: If ``scope`` is not a registered scope name
            ValidationError: If ``page`` or ``page_size`` is below 1
        """
        size = self.default_page_size if page_size is None else page_size
        if page < 1:
            raise ValidationError("page", "must be >= 1")
        if size < 1:
            raise ValidationError("page_size", "must be >= 1")

        count_stmt = apply_scope(select(func.count()).select_from(ContentRow), scope)
        rows_stmt = (
            apply_scope(select(ContentRow), scope)
            .options(*eager_options(EntityKind.CONTENT, "account", "tags"))
            .order_by(ContentRow.created_at.desc(), ContentRow.id.desc())  # type: ignore[attr-defined,union-attr]
            .offset(page_offset(page, size))
            .limit(size)
        )

        with self.db.new_session() as session:
            total = session.exec(count_stmt).one()
            items = [ContentDetail.model_validate(row) for row in session.exec(rows_stmt).all()]

        return ContentPage(
            items=items,
            total=total,
            total_pages=total_pages(total, size),
            current_page=page,
            page_size=size,
        )

    @instrumented("get_content_by_id", EntityKind.CONTENT, component="reads")
    def get_content_by_id(self, content_id: int) -> ContentDetail:
        """Fetch one content item with its author and tags.

        Raises:
            NotFoundError: If the content does not exist
        """
        stmt = (
            select(ContentRow)
            .where(ContentRow.id == content_id)
            .options(*eager_options(EntityKind.CONTENT, "account", "tags"))
        )
        with self.db.new_session() as session:
            row = session.exec(stmt).first()
            if row is None:
                raise NotFoundError(EntityKind.CONTENT, content_id)
            return ContentDetail.model_validate(row)

    @instrumented("get_account_by_id", EntityKind.ACCOUNT, component="reads")
    def get_account_by_id(self, account_id: int) -> AccountDetail:
        """Fetch an account with its profile and authored content.

        The account is returned even when it has no profile and no content.

        Raises:
            NotFoundError: Only if the account itself does not exist
        """
        stmt = (
            select(AccountRow)
            .where(AccountRow.id == account_id)
            .options(*eager_options(EntityKind.ACCOUNT, "profile", "contents"))
        )
        with self.db.new_session() as session:
            row = session.exec(stmt).first()
            if row is None:
                raise NotFoundError(EntityKind.ACCOUNT, account_id)
            return AccountDetail.model_validate(row)

    @instrumented("get_profile_by_account_id", EntityKind.PROFILE, component="reads")
    def get_profile_by_account_id(self, account_id: int) -> ProfileDetail:
        """Fetch the profile of an account, with the account attached.

        Raises:
            NotFoundError: If the account has no profile
        """
        stmt = (
            select(ProfileRow)
            .where(ProfileRow.account_id == account_id)
            .options(*eager_options(EntityKind.PROFILE, "account"))
        )
        with self.db.new_session() as session:
            row = session.exec(stmt).first()
            if row is None:
                raise NotFoundError(EntityKind.PROFILE, account_id)
            return ProfileDetail.model_validate(row)

    @instrumented("list_accounts", EntityKind.ACCOUNT, component="reads")
    def list_accounts(self, limit: int | None = None, offset: int = 0) -> list[AccountRead]:
        with self.db.new_session() as session:
            rows = RepositoryFactory(session).for_entity(AccountRow).get_all(limit, offset)
            return [AccountRead.model_validate(row) for row in rows]

    @instrumented("list_tags", EntityKind.TAG, component="reads")
    def list_tags(self) -> list[TagRead]:
        """All tags, alphabetically."""
        with self.db.new_session() as session:
            rows = session.exec(select(TagRow).order_by(TagRow.name)).all()
            return [TagRead.model_validate(row) for row in rows]

    def count_entities(self) -> dict[EntityKind, int]:
        """Row count for every entity table, including the join table."""
        with self.db.new_session() as session:
            repos = RepositoryFactory(session)
            return {
                kind: repos.for_entity(row_model).count()
                for kind, (row_model, _) in ENTITY_MODELS.items()
            }


__all__ = ["ReadCoordinator"]
