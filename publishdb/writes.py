"""Write coordinator: every mutation of the content model.

Each public method is one unit of work. It validates its input, opens a
transaction through ``DatabaseManager.session_scope``, performs its
statements in order, and commits. Any failure rolls the whole unit back
before it reaches the caller:

- ValidationError and NotFoundError surface unchanged
- a unique-column IntegrityError surfaces as ValidationError
- any other storage error surfaces as TransactionFailure

afterCreate hooks fire only after the commit, so a failing hook can never
undo a create.

Example:
    >>> writes = WriteCoordinator(db)
    >>> ada = writes.create_account("Ada", "Lovelace", "ada@example.com")
    >>> post = writes.create_content_with_tags(
    ...     ada.id, "Notes", "On the engine", status="active", tag_names=["math", "history"]
    ... )
"""

from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import Any, cast

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from publishdb.config import ContentStatus, EntityKind, settings
from publishdb.decorators import handle_db_errors, instrumented
from publishdb.errors import NotFoundError, ValidationError
from publishdb.hooks import default_hooks
from publishdb.interfaces import IDatabaseManager, IHookRegistry
from publishdb.logging import logger
from publishdb.models import (
    AccountCreate,
    AccountRead,
    AccountRow,
    AccountUpdate,
    ContentCreate,
    ContentRead,
    ContentRow,
    ContentUpdate,
    ProfileCreate,
    ProfileRead,
    ProfileRow,
    ProfileUpdate,
    TagCreate,
    TagRead,
    TagRow,
    TagUpdate,
    validate_payload,
)
from publishdb.relationships import RelationshipGraph
from publishdb.repository import RepositoryFactory
from publishdb.utils import unique_names

UNIQUE_VIOLATION_PGCODE = "23505"


def is_unique_violation(error: IntegrityError) -> bool:
    """Tell a unique-constraint failure from other integrity failures (FK, NOT NULL)."""
    if getattr(error.orig, "pgcode", None) == UNIQUE_VIOLATION_PGCODE:
        return True
    message = str(error.orig).lower()
    return "unique" in message or "duplicate" in message


@contextmanager
def unique_violation(field: str, reason: str) -> Iterator[None]:
    """Translate a unique-constraint IntegrityError into a ValidationError.

    Any other IntegrityError propagates unchanged.
    """
    try:
        yield
    except IntegrityError as e:
        if not is_unique_violation(e):
            raise
        raise ValidationError(field, reason) from e


class WriteCoordinator:
    """Runs every write against the content model as one atomic transaction.

    Args:
        db: Connection-pool owner providing ``session_scope``
        hooks: afterCreate hook registry (defaults to the stock hooks)
        restrict_account_delete: Reject account deletion while a profile or
            content still references it (defaults to the setting)
    """

    def __init__(
        self,
        db: IDatabaseManager,
        hooks: IHookRegistry | None = None,
        restrict_account_delete: bool | None = None,
    ):
        self.db = db
        self.hooks = hooks if hooks is not None else default_hooks(db)
        self.restrict_account_delete = (
            settings.restrict_account_delete
            if restrict_account_delete is None
            else restrict_account_delete
        )

    # =========================================================================
    # Composite write
    # =========================================================================

    @instrumented("create_content_with_tags", EntityKind.CONTENT, component="writes")
    @handle_db_errors("create_content_with_tags")
    def create_content_with_tags(
        self,
        account_id: int,
        title: str,
        body: str,
        status: ContentStatus | str | None = None,
        tag_names: Iterable[str] = (),
    ) -> ContentRead:
        """Create a content item and attach tags to it atomically.

        Steps, all inside one transaction:
        1. Check the author account exists
        2. Insert the content (status defaults to draft)
        3. Find or create each distinct tag name
        4. Link every tag to the content

        The Content afterCreate hooks fire after the commit.

        Args:
            account_id: Author account key
            title: Content title
            body: Content body
            status: active, draft or archived (None means draft)
            tag_names: Tag names; blanks are rejected and repeats collapsed

        Returns:
            The created content, without its tags

        Raises:
            ValidationError: If any attribute fails its constraint
            NotFoundError: If the account does not exist
            TransactionFailure: If storage fails mid-way (nothing is kept)
        """
        payload = validate_payload(
            ContentCreate,
            {
                "account_id": account_id,
                "title": title,
                "body": body,
                "status": status,
                "tags": list(tag_names),
            },
        )

        with self.db.session_scope("create_content_with_tags") as session:
            graph = RelationshipGraph(session)
            if not graph.account_exists(payload.account_id):
                raise NotFoundError(EntityKind.ACCOUNT, payload.account_id)

            contents = RepositoryFactory(session).for_entity(ContentRow)
            row = contents.add(
                ContentRow(
                    title=payload.title,
                    body=payload.body,
                    account_id=payload.account_id,
                    status=payload.status,
                )
            )
            content_id = cast(int, row.id)

            for name in unique_names(payload.tags):
                tag, _ = graph.find_or_create_tag(name)
                graph.link(content_id, cast(int, tag.id))

            created = ContentRead.model_validate(row)

        logger.info(
            f"Created content {created.id} for account {created.account_id} "
            f"with {len(unique_names(payload.tags))} tag(s)"
        )
        self.hooks.fire_after_create(EntityKind.CONTENT, created)
        return created

    # =========================================================================
    # Content <-> Tag links
    # =========================================================================

    def _require_content_and_tag(self, session: Session, content_id: int, tag_id: int) -> None:
        content = session.get(ContentRow, content_id)
        tag = session.get(TagRow, tag_id)
        if content is None or tag is None:
            raise NotFoundError((EntityKind.CONTENT, EntityKind.TAG), (content_id, tag_id))

    @instrumented("add_tag_to_content", EntityKind.CONTENT_TAG, component="writes")
    @handle_db_errors("add_tag_to_content")
    def add_tag_to_content(self, content_id: int, tag_id: int) -> None:
        """Pair an existing content item with an existing tag. Idempotent.

        Raises:
            NotFoundError: Naming Content or Tag when either key is missing
        """
        with self.db.session_scope("add_tag_to_content") as session:
            self._require_content_and_tag(session, content_id, tag_id)
            RelationshipGraph(session).link(content_id, tag_id)

    @instrumented("remove_tag_from_content", EntityKind.CONTENT_TAG, component="writes")
    @handle_db_errors("remove_tag_from_content")
    def remove_tag_from_content(self, content_id: int, tag_id: int) -> None:
        """Remove a pairing. Removing a pairing that does not exist is a no-op.

        Raises:
            NotFoundError: Naming Content or Tag when either key is missing
        """
        with self.db.session_scope("remove_tag_from_content") as session:
            self._require_content_and_tag(session, content_id, tag_id)
            removed = RelationshipGraph(session).unlink(content_id, tag_id)
        if not removed:
            logger.debug(f"Content {content_id} was not tagged with {tag_id}")

    # =========================================================================
    # Accounts
    # =========================================================================

    @instrumented("create_account", EntityKind.ACCOUNT, component="writes")
    @handle_db_errors("create_account")
    def create_account(self, first_name: str, last_name: str, email: str) -> AccountRead:
        """Register an account.

        Raises:
            ValidationError: On an invalid attribute or an email already in use
        """
        payload = validate_payload(
            AccountCreate,
            {"first_name": first_name, "last_name": last_name, "email": email},
        )

        with unique_violation("email", "must be unique"):
            with self.db.session_scope("create_account") as session:
                accounts = RepositoryFactory(session).for_entity(AccountRow)
                if accounts.get_by(email=payload.email) is not None:
                    raise ValidationError("email", "must be unique")
                row = accounts.add(AccountRow.model_validate(payload))
                created = AccountRead.model_validate(row)

        self.hooks.fire_after_create(EntityKind.ACCOUNT, created)
        return created

    @instrumented("update_account", EntityKind.ACCOUNT, component="writes")
    @handle_db_errors("update_account")
    def update_account(self, account_id: int, changes: dict[str, Any]) -> AccountRead:
        """Apply a partial update to an account.

        Raises:
            ValidationError: On an invalid attribute or an email already in use
            NotFoundError: If the account does not exist
        """
        payload = validate_payload(AccountUpdate, changes)
        values = payload.model_dump(exclude_unset=True, exclude_none=True)

        with unique_violation("email", "must be unique"):
            with self.db.session_scope("update_account") as session:
                accounts = RepositoryFactory(session).for_entity(AccountRow)
                row = accounts.get(account_id)
                if row is None:
                    raise NotFoundError(EntityKind.ACCOUNT, account_id)
                if "email" in values:
                    holder = accounts.get_by(email=values["email"])
                    if holder is not None and holder.id != account_id:
                        raise ValidationError("email", "must be unique")
                updated = AccountRead.model_validate(accounts.update(row, values))
        return updated

    @instrumented("delete_account", EntityKind.ACCOUNT, component="writes")
    @handle_db_errors("delete_account")
    def delete_account(self, account_id: int) -> None:
        """Delete an account row.

        The delete does not cascade: the account's profile and content keep
        their dangling foreign key. With ``restrict_account_delete`` enabled
        the delete is refused while either still exists.

        Raises:
            NotFoundError: If the account does not exist
            ValidationError: If restricted and dependents exist
        """
        with self.db.session_scope("delete_account") as session:
            repos = RepositoryFactory(session)
            accounts = repos.for_entity(AccountRow)
            if not accounts.exists(account_id):
                raise NotFoundError(EntityKind.ACCOUNT, account_id)
            if self.restrict_account_delete:
                dependents = repos.for_entity(ProfileRow).count(
                    account_id=account_id
                ) + repos.for_entity(ContentRow).count(account_id=account_id)
                if dependents:
                    raise ValidationError(
                        "account_id", "account still has a profile or content"
                    )
            accounts.delete_where(id=account_id)
        logger.info(f"Deleted account {account_id}")

    # =========================================================================
    # Profiles (keyed by account)
    # =========================================================================

    @instrumented("create_profile", EntityKind.PROFILE, component="writes")
    @handle_db_errors("create_profile")
    def create_profile(self, account_id: int, description: str | None = None) -> ProfileRead:
        """Attach the profile of an account.

        Raises:
            NotFoundError: If the account does not exist
            ValidationError: If the account already has a profile
        """
        payload = validate_payload(
            ProfileCreate, {"account_id": account_id, "description": description}
        )

        with unique_violation("account_id", "account already has a profile"):
            with self.db.session_scope("create_profile") as session:
                repos = RepositoryFactory(session)
                if not repos.for_entity(AccountRow).exists(payload.account_id):
                    raise NotFoundError(EntityKind.ACCOUNT, payload.account_id)
                profiles = repos.for_entity(ProfileRow)
                if profiles.get_by(account_id=payload.account_id) is not None:
                    raise ValidationError("account_id", "account already has a profile")
                row = profiles.add(ProfileRow.model_validate(payload))
                created = ProfileRead.model_validate(row)

        self.hooks.fire_after_create(EntityKind.PROFILE, created)
        return created

    @instrumented("update_profile", EntityKind.PROFILE, component="writes")
    @handle_db_errors("update_profile")
    def update_profile(self, account_id: int, changes: dict[str, Any]) -> ProfileRead:
        """Update the profile belonging to ``account_id``.

        Raises:
            NotFoundError: If the account has no profile
        """
        payload = validate_payload(ProfileUpdate, changes)
        values = payload.model_dump(exclude_unset=True)

        with self.db.session_scope("update_profile") as session:
            profiles = RepositoryFactory(session).for_entity(ProfileRow)
            row = profiles.get_by(account_id=account_id)
            if row is None:
                raise NotFoundError(EntityKind.PROFILE, account_id)
            updated = ProfileRead.model_validate(profiles.update(row, values))
        return updated

    @instrumented("delete_profile", EntityKind.PROFILE, component="writes")
    @handle_db_errors("delete_profile")
    def delete_profile(self, account_id: int) -> None:
        """Delete the profile belonging to ``account_id``.

        Raises:
            NotFoundError: If the account has no profile
        """
        with self.db.session_scope("delete_profile") as session:
            profiles = RepositoryFactory(session).for_entity(ProfileRow)
            if not profiles.delete_where(account_id=account_id):
                raise NotFoundError(EntityKind.PROFILE, account_id)

    # =========================================================================
    # Content
    # =========================================================================

    @instrumented("update_content", EntityKind.CONTENT, component="writes")
    @handle_db_errors("update_content")
    def update_content(self, content_id: int, changes: dict[str, Any]) -> ContentRead:
        """Apply a partial update to a content item.

        Raises:
            ValidationError: If a new title is shorter than 5 characters, or
                any other attribute fails its constraint
            NotFoundError: If the content does not exist
        """
        payload = validate_payload(ContentUpdate, changes)
        values = payload.model_dump(exclude_unset=True, exclude_none=True)

        with self.db.session_scope("update_content") as session:
            contents = RepositoryFactory(session).for_entity(ContentRow)
            row = contents.get(content_id)
            if row is None:
                raise NotFoundError(EntityKind.CONTENT, content_id)
            updated = ContentRead.model_validate(contents.update(row, values))
        return updated

    @instrumented("delete_content", EntityKind.CONTENT, component="writes")
    @handle_db_errors("delete_content")
    def delete_content(self, content_id: int) -> None:
        """Delete a content item and its tag pairings. Tags themselves stay.

        Raises:
            NotFoundError: If the content does not exist
        """
        with self.db.session_scope("delete_content") as session:
            contents = RepositoryFactory(session).for_entity(ContentRow)
            if not contents.exists(content_id):
                raise NotFoundError(EntityKind.CONTENT, content_id)
            RelationshipGraph(session).unlink_all(content_id=content_id)
            contents.delete_where(id=content_id)

    # =========================================================================
    # Tags
    # =========================================================================

    @instrumented("create_tag", EntityKind.TAG, component="writes")
    @handle_db_errors("create_tag")
    def create_tag(self, name: str) -> TagRead:
        """Create a tag.

        Raises:
            ValidationError: On a blank name or a name already in use
        """
        payload = validate_payload(TagCreate, {"name": name})

        with unique_violation("name", "must be unique"):
            with self.db.session_scope("create_tag") as session:
                tags = RepositoryFactory(session).for_entity(TagRow)
                if tags.get_by(name=payload.name) is not None:
                    raise ValidationError("name", "must be unique")
                created = TagRead.model_validate(tags.add(TagRow.model_validate(payload)))

        self.hooks.fire_after_create(EntityKind.TAG, created)
        return created

    @instrumented("update_tag", EntityKind.TAG, component="writes")
    @handle_db_errors("update_tag")
    def update_tag(self, tag_id: int, changes: dict[str, Any]) -> TagRead:
        """Rename a tag.

        Raises:
            ValidationError: On a blank name or a name already in use
            NotFoundError: If the tag does not exist
        """
        payload = validate_payload(TagUpdate, changes)

        with unique_violation("name", "must be unique"):
            with self.db.session_scope("update_tag") as session:
                tags = RepositoryFactory(session).for_entity(TagRow)
                row = tags.get(tag_id)
                if row is None:
                    raise NotFoundError(EntityKind.TAG, tag_id)
                holder = tags.get_by(name=payload.name)
                if holder is not None and holder.id != tag_id:
                    raise ValidationError("name", "must be unique")
                updated = TagRead.model_validate(tags.update(row, {"name": payload.name}))
        return updated

    @instrumented("delete_tag", EntityKind.TAG, component="writes")
    @handle_db_errors("delete_tag")
    def delete_tag(self, tag_id: int) -> None:
        """Delete a tag and its content pairings. Content items stay.

        Raises:
            NotFoundError: If the tag does not exist
        """
        with self.db.session_scope("delete_tag") as session:
            tags = RepositoryFactory(session).for_entity(TagRow)
            if not tags.exists(tag_id):
                raise NotFoundError(EntityKind.TAG, tag_id)
            RelationshipGraph(session).unlink_all(tag_id=tag_id)
            tags.delete_where(id=tag_id)


__all__ = ["WriteCoordinator", "is_unique_violation", "unique_violation"]
