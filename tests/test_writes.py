"""Tests for the write coordinator."""

import pytest
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlmodel import select

from publishdb.config import ContentStatus, EntityKind
from publishdb.errors import NotFoundError, TransactionFailure, ValidationError
from publishdb.metrics import sample_value
from publishdb.models import AccountRow, ContentRow, ContentTagLink, ProfileRow, TagRow
from publishdb.relationships import RelationshipGraph
from publishdb.repository import Repository
from publishdb.writes import WriteCoordinator, is_unique_violation, unique_violation


def _count(db, model, *where) -> int:
    with db.session_scope() as session:
        stmt = select(func.count()).select_from(model)
        for clause in where:
            stmt = stmt.where(clause)
        return session.exec(stmt).one()


# =============================================================================
# Composite write
# =============================================================================


class TestCreateContentWithTags:
    """Tests for create_content_with_tags."""

    def test_creates_content_and_links_tags(self, db, writes, reads, ada):
        created = writes.create_content_with_tags(
            ada.id, "Notes", "On the engine", status="active", tag_names=["a", "b"]
        )

        assert created.id is not None
        assert created.status == ContentStatus.ACTIVE
        assert not hasattr(created, "tags")
        assert reads.get_content_by_id(created.id).tag_names == {"a", "b"}
        assert _count(db, ContentTagLink) == 2

    def test_status_defaults_to_draft(self, writes, ada):
        assert writes.create_content_with_tags(ada.id, "T", "B").status == ContentStatus.DRAFT

    def test_reuses_existing_tags_and_collapses_repeats(self, db, writes, ada, python_tag):
        created = writes.create_content_with_tags(
            ada.id, "T", "B", tag_names=["python", " python ", "sql"]
        )

        assert _count(db, TagRow) == 2
        with db.session_scope() as session:
            tag_ids = set(RelationshipGraph(session).tag_ids_for(created.id))
        assert python_tag.id in tag_ids
        assert len(tag_ids) == 2

    def test_missing_account_raises_before_any_write(self, db, writes):
        with pytest.raises(NotFoundError) as exc_info:
            writes.create_content_with_tags(404, "T", "B", tag_names=["x"])

        assert exc_info.value.kind == EntityKind.ACCOUNT
        assert exc_info.value.key == 404
        assert _count(db, ContentRow) == 0
        assert _count(db, TagRow) == 0

    @pytest.mark.parametrize(
        "kwargs,field",
        [
            ({"title": ""}, "title"),
            ({"body": "   "}, "body"),
            ({"status": "published"}, "status"),
            ({"tag_names": ["ok", ""]}, "tags"),
        ],
    )
    def test_invalid_attributes_persist_nothing(self, db, writes, ada, kwargs, field):
        values = {"title": "Title", "body": "Body", **kwargs}
        with pytest.raises(ValidationError) as exc_info:
            writes.create_content_with_tags(ada.id, **values)

        assert exc_info.value.field == field
        assert _count(db, ContentRow) == 0

    def test_failure_on_third_tag_rolls_back_everything(self, db, writes, ada, monkeypatch):
        existing = writes.create_tag("a")
        original = RelationshipGraph.find_or_create_tag

        def failing_on_c(self, name):
            if name == "c":
                raise OperationalError("INSERT INTO tagrow", {}, Exception("disk I/O error"))
            return original(self, name)

        monkeypatch.setattr(RelationshipGraph, "find_or_create_tag", failing_on_c)
        before = sample_value(
            "transactions_total", {"label": "create_content_with_tags", "outcome": "rolled_back"}
        )

        with pytest.raises(TransactionFailure) as exc_info:
            writes.create_content_with_tags(ada.id, "T", "B", tag_names=["a", "b", "c"])

        assert isinstance(exc_info.value.__cause__, OperationalError)
        assert exc_info.value.operation == "create_content_with_tags"
        assert _count(db, ContentRow) == 0
        assert _count(db, ContentTagLink) == 0
        with db.session_scope() as session:
            names = session.exec(select(TagRow.name)).all()
        assert names == [existing.name]
        assert (
            sample_value(
                "transactions_total",
                {"label": "create_content_with_tags", "outcome": "rolled_back"},
            )
            == before + 1
        )

    def test_interrupt_rolls_back(self, db, writes, ada, monkeypatch):
        def interrupted(self, content_id, tag_id):
            raise KeyboardInterrupt

        monkeypatch.setattr(RelationshipGraph, "link", interrupted)

        with pytest.raises(KeyboardInterrupt):
            writes.create_content_with_tags(ada.id, "T", "B", tag_names=["x"])

        assert _count(db, ContentRow) == 0
        assert _count(db, TagRow) == 0

    def test_records_operation_metric(self, writes, ada):
        labels = {
            "operation": "create_content_with_tags",
            "entity": "Content",
            "status": "success",
        }
        before = sample_value("database_operations_total", labels)
        writes.create_content_with_tags(ada.id, "T", "B")
        assert sample_value("database_operations_total", labels) == before + 1


# =============================================================================
# Content <-> Tag links
# =============================================================================


class TestTagLinks:
    """Tests for add_tag_to_content / remove_tag_from_content."""

    def test_add_is_idempotent(self, db, writes, reads, draft_post, python_tag):
        writes.add_tag_to_content(draft_post.id, python_tag.id)
        writes.add_tag_to_content(draft_post.id, python_tag.id)

        assert _count(db, ContentTagLink) == 1
        assert reads.get_content_by_id(draft_post.id).tag_names == {"python"}

    def test_remove(self, db, writes, draft_post, python_tag):
        writes.add_tag_to_content(draft_post.id, python_tag.id)
        writes.remove_tag_from_content(draft_post.id, python_tag.id)
        assert _count(db, ContentTagLink) == 0

    def test_remove_never_linked_pair_is_noop(self, writes, draft_post, python_tag):
        writes.remove_tag_from_content(draft_post.id, python_tag.id)

    @pytest.mark.parametrize("method", ["add_tag_to_content", "remove_tag_from_content"])
    @pytest.mark.parametrize("missing", ["content", "tag"])
    def test_missing_side_yields_combined_not_found(
        self, writes, draft_post, python_tag, method, missing
    ):
        content_id = 999 if missing == "content" else draft_post.id
        tag_id = 999 if missing == "tag" else python_tag.id

        with pytest.raises(NotFoundError) as exc_info:
            getattr(writes, method)(content_id, tag_id)

        assert exc_info.value.kinds == (EntityKind.CONTENT, EntityKind.TAG)
        assert str(exc_info.value) == "Content or Tag not found"


# =============================================================================
# Accounts
# =============================================================================


class TestAccounts:
    """Tests for account create / update / delete."""

    def test_create_strips_and_returns_read_model(self, writes):
        account = writes.create_account("  Ada ", "Lovelace", " ada@example.com ")
        assert account.first_name == "Ada"
        assert account.email == "ada@example.com"
        assert account.full_name == "Ada Lovelace"

    def test_duplicate_email_rejected_without_duplicate_row(self, db, writes, ada):
        with pytest.raises(ValidationError) as exc_info:
            writes.create_account("Other", "Person", "ada@example.com")

        assert exc_info.value.field == "email"
        assert _count(db, AccountRow) == 1

    def test_unique_violation_from_storage_is_validation_error(self, db, writes, ada, monkeypatch):
        monkeypatch.setattr(Repository, "get_by", lambda self, **filters: None)

        with pytest.raises(ValidationError) as exc_info:
            writes.create_account("Other", "Person", "ada@example.com")

        assert exc_info.value.field == "email"
        assert _count(db, AccountRow) == 1

    def test_invalid_email_rejected(self, writes):
        with pytest.raises(ValidationError) as exc_info:
            writes.create_account("Ada", "Lovelace", "not-an-email")
        assert exc_info.value.field == "email"

    def test_update(self, writes, ada):
        updated = writes.update_account(ada.id, {"last_name": "King"})
        assert updated.last_name == "King"
        assert updated.first_name == "Ada"
        assert updated.updated_at >= ada.updated_at

    def test_update_duplicate_email_rejected(self, writes, ada, grace):
        with pytest.raises(ValidationError):
            writes.update_account(grace.id, {"email": "ada@example.com"})

    def test_update_own_email_allowed(self, writes, ada):
        assert writes.update_account(ada.id, {"email": "ada@example.com"}).email == "ada@example.com"

    def test_update_missing_account(self, writes):
        with pytest.raises(NotFoundError) as exc_info:
            writes.update_account(404, {"first_name": "X"})
        assert exc_info.value.kind == EntityKind.ACCOUNT

    def test_delete_does_not_cascade(self, db, writes, reads, ada, draft_post):
        writes.create_profile(ada.id, "bio")
        writes.delete_account(ada.id)

        assert _count(db, AccountRow) == 0
        assert _count(db, ContentRow) == 1
        assert reads.get_content_by_id(draft_post.id).account is None

    def test_delete_missing_account(self, writes):
        with pytest.raises(NotFoundError):
            writes.delete_account(404)

    def test_restricted_delete_rejects_dependents(self, db, hooks, ada, draft_post):
        writes = WriteCoordinator(db, hooks=hooks, restrict_account_delete=True)

        with pytest.raises(ValidationError):
            writes.delete_account(ada.id)
        assert _count(db, AccountRow) == 1

    def test_restricted_delete_allows_bare_account(self, db, hooks, ada):
        writes = WriteCoordinator(db, hooks=hooks, restrict_account_delete=True)
        writes.delete_account(ada.id)
        assert _count(db, AccountRow) == 0


# =============================================================================
# Profiles
# =============================================================================


class TestProfiles:
    """Tests for profile writes, keyed by account id."""

    def test_create(self, writes, ada):
        profile = writes.create_profile(ada.id, "Mathematician")
        assert profile.account_id == ada.id
        assert profile.description == "Mathematician"

    def test_create_without_description(self, writes, ada):
        assert writes.create_profile(ada.id).description is None

    def test_second_profile_rejected(self, writes, ada):
        writes.create_profile(ada.id, "first")
        with pytest.raises(ValidationError) as exc_info:
            writes.create_profile(ada.id, "second")
        assert exc_info.value.field == "account_id"

    def test_duplicate_profile_caught_by_constraint(self, db, writes, ada, monkeypatch):
        writes.create_profile(ada.id, "first")
        monkeypatch.setattr(Repository, "get_by", lambda self, **filters: None)

        with pytest.raises(ValidationError) as exc_info:
            writes.create_profile(ada.id, "second")

        assert exc_info.value.field == "account_id"
        assert _count(db, ProfileRow) == 1

    def test_foreign_key_failure_is_not_a_duplicate(self, db, writes, ada, monkeypatch):
        def fail_insert(self, entity):
            raise IntegrityError(
                "INSERT INTO profilerow", {}, Exception("FOREIGN KEY constraint failed")
            )

        monkeypatch.setattr(Repository, "add", fail_insert)

        with pytest.raises(TransactionFailure) as exc_info:
            writes.create_profile(ada.id, "bio")

        assert isinstance(exc_info.value.__cause__, IntegrityError)
        assert _count(db, ProfileRow) == 0

    def test_create_for_missing_account(self, writes):
        with pytest.raises(NotFoundError) as exc_info:
            writes.create_profile(404, "bio")
        assert exc_info.value.kind == EntityKind.ACCOUNT

    def test_update_and_clear(self, writes, ada):
        writes.create_profile(ada.id, "old")
        assert writes.update_profile(ada.id, {"description": "new"}).description == "new"
        assert writes.update_profile(ada.id, {"description": None}).description is None

    def test_update_missing_profile(self, writes, ada):
        with pytest.raises(NotFoundError) as exc_info:
            writes.update_profile(ada.id, {"description": "x"})
        assert exc_info.value.kind == EntityKind.PROFILE

    def test_delete(self, writes, reads, ada):
        writes.create_profile(ada.id, "bio")
        writes.delete_profile(ada.id)
        assert reads.get_account_by_id(ada.id).profile is None

    def test_delete_missing_profile(self, writes, ada):
        with pytest.raises(NotFoundError):
            writes.delete_profile(ada.id)


# =============================================================================
# Content
# =============================================================================


class TestContentUpdates:
    """Tests for update_content / delete_content."""

    def test_update_title_and_status(self, writes, draft_post):
        updated = writes.update_content(
            draft_post.id, {"title": "A longer title", "status": "archived"}
        )
        assert updated.title == "A longer title"
        assert updated.status == ContentStatus.ARCHIVED
        assert updated.body == draft_post.body

    def test_short_title_rejected_and_unchanged(self, writes, reads, draft_post):
        with pytest.raises(ValidationError) as exc_info:
            writes.update_content(draft_post.id, {"title": "abcd"})

        assert exc_info.value.field == "title"
        assert reads.get_content_by_id(draft_post.id).title == draft_post.title

    def test_update_missing_content(self, writes):
        with pytest.raises(NotFoundError):
            writes.update_content(404, {"title": "Long enough"})

    def test_delete_removes_links_but_keeps_tags(self, db, writes, ada):
        post = writes.create_content_with_tags(ada.id, "T", "B", tag_names=["keep"])
        writes.delete_content(post.id)

        assert _count(db, ContentRow) == 0
        assert _count(db, ContentTagLink) == 0
        assert _count(db, TagRow) == 1

    def test_delete_missing_content(self, writes):
        with pytest.raises(NotFoundError):
            writes.delete_content(404)


# =============================================================================
# Tags
# =============================================================================


class TestTags:
    """Tests for tag create / update / delete."""

    def test_create(self, writes):
        assert writes.create_tag(" python ").name == "python"

    def test_duplicate_name_rejected(self, db, writes, python_tag):
        with pytest.raises(ValidationError) as exc_info:
            writes.create_tag("python")
        assert exc_info.value.field == "name"
        assert _count(db, TagRow) == 1

    def test_blank_name_rejected(self, writes):
        with pytest.raises(ValidationError):
            writes.create_tag("  ")

    def test_rename(self, writes, python_tag):
        assert writes.update_tag(python_tag.id, {"name": "py"}).name == "py"

    def test_rename_onto_existing_name_rejected(self, writes, python_tag):
        other = writes.create_tag("sql")
        with pytest.raises(ValidationError):
            writes.update_tag(other.id, {"name": "python"})

    def test_update_missing_tag(self, writes):
        with pytest.raises(NotFoundError):
            writes.update_tag(404, {"name": "x"})

    def test_delete_removes_links_but_keeps_content(self, db, writes, ada):
        post = writes.create_content_with_tags(ada.id, "T", "B", tag_names=["gone"])
        with db.session_scope() as session:
            tag_id = session.exec(select(TagRow.id).where(TagRow.name == "gone")).one()

        writes.delete_tag(tag_id)

        assert _count(db, TagRow) == 0
        assert _count(db, ContentTagLink) == 0
        assert _count(db, ContentRow, ContentRow.id == post.id) == 1

    def test_delete_missing_tag(self, writes):
        with pytest.raises(NotFoundError):
            writes.delete_tag(404)


# =============================================================================
# Integrity Error Translation
# =============================================================================


class PgUniqueError(Exception):
    pgcode = "23505"


@pytest.mark.parametrize(
    "orig, expected",
    [
        (Exception("UNIQUE constraint failed: tagrow.name"), True),
        (Exception("Duplicate entry 'news' for key 'name'"), True),
        (PgUniqueError("constraint ix_tagrow_name"), True),
        (Exception("FOREIGN KEY constraint failed"), False),
        (Exception("NOT NULL constraint failed: contentrow.title"), False),
    ],
)
def test_is_unique_violation(orig, expected):
    assert is_unique_violation(IntegrityError("INSERT", {}, orig)) is expected


def test_unique_violation_passes_other_integrity_errors():
    error = IntegrityError("INSERT", {}, Exception("FOREIGN KEY constraint failed"))

    with pytest.raises(IntegrityError):
        with unique_violation("account_id", "account already has a profile"):
            raise error

    with pytest.raises(ValidationError):
        with unique_violation("name", "must be unique"):
            raise IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed: tagrow.name"))
