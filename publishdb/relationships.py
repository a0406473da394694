"""Relationship graph for the content model.

Declares how entities relate and performs every association read and write
explicitly, on bare foreign keys. The ORM relationship attributes on the
table models are view-only and ``lazy="raise"``: they exist so the read
coordinator can eager-load them, never to load or write implicitly.

Relations:
    Account 1-1 Profile      (Profile.account_id)
    Account 1-N Content      (Content.account_id)
    Content N-N Tag          (ContentTagLink.content_id / ContentTagLink.tag_id)

Usage:
    >>> with db.session_scope() as session:
    ...     graph = RelationshipGraph(session)
    ...     tag, created = graph.find_or_create_tag("python")
    ...     graph.link(content_id=42, tag_id=tag.id)
    ...     graph.resolve(account, "contents")
"""

from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Optional

from sqlalchemy import delete
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload
from sqlmodel import Session, SQLModel, select

from publishdb.config import EntityKind
from publishdb.logging import logger
from publishdb.models import (
    ENTITY_MODELS,
    AccountRow,
    ContentTagLink,
    TagRow,
)
from publishdb.utils import utc_now


class Cardinality(StrEnum):
    """How many targets one source row relates to."""

    ONE_TO_ONE = "1-1"
    ONE_TO_MANY = "1-N"
    MANY_TO_ONE = "N-1"
    MANY_TO_MANY = "N-N"

    @property
    def to_many(self) -> bool:
        return self in (Cardinality.ONE_TO_MANY, Cardinality.MANY_TO_MANY)


@dataclass(frozen=True)
class Relation:
    """One directed edge of the relationship graph.

    Attributes:
        name: Attribute name on the source (e.g. "tags")
        source: Entity the relation is read from
        target: Entity the relation resolves to
        cardinality: 1-1, 1-N, N-1 or N-N
        owner: Entity whose table carries the foreign key (the join for N-N)
        foreign_key: FK attribute on the owner (N-N: the FK pointing at source)
        target_key: For N-N, the join FK pointing at target
    """

    name: str
    source: EntityKind
    target: EntityKind
    cardinality: Cardinality
    owner: EntityKind
    foreign_key: str
    target_key: Optional[str] = None


RELATIONS: tuple[Relation, ...] = (
    Relation("profile", EntityKind.ACCOUNT, EntityKind.PROFILE,
             Cardinality.ONE_TO_ONE, EntityKind.PROFILE, "account_id"),
    Relation("contents", EntityKind.ACCOUNT, EntityKind.CONTENT,
             Cardinality.ONE_TO_MANY, EntityKind.CONTENT, "account_id"),
    Relation("account", EntityKind.PROFILE, EntityKind.ACCOUNT,
             Cardinality.MANY_TO_ONE, EntityKind.PROFILE, "account_id"),
    Relation("account", EntityKind.CONTENT, EntityKind.ACCOUNT,
             Cardinality.MANY_TO_ONE, EntityKind.CONTENT, "account_id"),
    Relation("tags", EntityKind.CONTENT, EntityKind.TAG,
             Cardinality.MANY_TO_MANY, EntityKind.CONTENT_TAG, "content_id", "tag_id"),
    Relation("contents", EntityKind.TAG, EntityKind.CONTENT,
             Cardinality.MANY_TO_MANY, EntityKind.CONTENT_TAG, "tag_id", "content_id"),
)

_BY_NAME: dict[tuple[EntityKind, str], Relation] = {
    (relation.source, relation.name): relation for relation in RELATIONS
}
_KIND_BY_MODEL: dict[type[SQLModel], EntityKind] = {
    row_model: kind for kind, (row_model, _) in ENTITY_MODELS.items()
}


def get_relation(source: EntityKind, name: str) -> Relation:
    """Look up a declared relation.

    Raises:
        KeyError: If ``source`` has no relation called ``name``
    """
    try:
        return _BY_NAME[(source, name)]
    except KeyError:
        raise KeyError(f"{source.value} has no relation {name!r}") from None


def relations_of(source: EntityKind) -> list[Relation]:
    """All relations readable from an entity kind."""
    return [relation for relation in RELATIONS if relation.source == source]


def eager_options(source: EntityKind, *names: str) -> list[Any]:
    """Loader options that eager-load the named relations in one extra query each."""
    row_model = ENTITY_MODELS[source][0]
    options = []
    for name in names:
        get_relation(source, name)
        options.append(selectinload(getattr(row_model, name)))
    return options


class RelationshipGraph:
    """Resolves and mutates associations within one session.

    Args:
        session: Session of the current unit of work
    """

    def __init__(self, session: Session):
        self.session = session

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------

    def resolve(self, entity: SQLModel, name: str) -> Any:
        """Fetch the rows related to a loaded entity.

        Returns a list for to-many relations and a row or None for to-one
        relations. Missing related rows are never an error here.

        Args:
            entity: Loaded row (AccountRow, ProfileRow, ContentRow or TagRow)
            name: Relation name declared for the entity's kind
        """
        source = _KIND_BY_MODEL[type(entity)]
        relation = get_relation(source, name)
        target_model = ENTITY_MODELS[relation.target][0]

        if relation.cardinality == Cardinality.MANY_TO_MANY:
            stmt = (
                select(target_model)
                .join(
                    ContentTagLink,
                    getattr(ContentTagLink, relation.target_key) == target_model.id,  # type: ignore[arg-type]
                )
                .where(getattr(ContentTagLink, relation.foreign_key) == entity.id)  # type: ignore[attr-defined]
                .order_by(target_model.id)  # type: ignore[attr-defined]
            )
            return list(self.session.exec(stmt).unique().all())

        if relation.cardinality == Cardinality.MANY_TO_ONE:
            return self.session.get(target_model, getattr(entity, relation.foreign_key))

        stmt = select(target_model).where(
            getattr(target_model, relation.foreign_key) == entity.id  # type: ignore[attr-defined]
        )
        if relation.cardinality == Cardinality.ONE_TO_ONE:
            return self.session.exec(stmt).first()
        return list(self.session.exec(stmt.order_by(target_model.id)).all())  # type: ignore[attr-defined]

    def account_exists(self, account_id: int) -> bool:
        return self.session.get(AccountRow, account_id) is not None

    # -------------------------------------------------------------------------
    # Content <-> Tag links
    # -------------------------------------------------------------------------

    def find_link(self, content_id: int, tag_id: int) -> ContentTagLink | None:
        stmt = select(ContentTagLink).where(
            ContentTagLink.content_id == content_id,
            ContentTagLink.tag_id == tag_id,
        )
        return self.session.exec(stmt).first()

    def link(self, content_id: int, tag_id: int) -> ContentTagLink:
        """Pair a content item with a tag.

        Idempotent: an existing pairing is returned instead of duplicated.
        """
        existing = self.find_link(content_id, tag_id)
        if existing is not None:
            logger.debug(f"Content {content_id} already tagged with {tag_id}")
            return existing

        link = ContentTagLink(content_id=content_id, tag_id=tag_id)
        self.session.add(link)
        self.session.flush()
        return link

    def unlink(self, content_id: int, tag_id: int) -> int:
        """Remove a content/tag pairing. Removing a missing pairing is a no-op.

        Returns:
            Number of join rows removed
        """
        stmt = delete(ContentTagLink).where(
            ContentTagLink.content_id == content_id,  # type: ignore[arg-type]
            ContentTagLink.tag_id == tag_id,  # type: ignore[arg-type]
        )
        return self.session.connection().execute(stmt).rowcount or 0

    def unlink_all(self, content_id: int | None = None, tag_id: int | None = None) -> int:
        """Remove every pairing for a content item or a tag."""
        if (content_id is None) == (tag_id is None):
            raise ValueError("Pass exactly one of content_id or tag_id")
        column = ContentTagLink.content_id if content_id is not None else ContentTagLink.tag_id
        key = content_id if content_id is not None else tag_id
        stmt = delete(ContentTagLink).where(column == key)  # type: ignore[arg-type]
        return self.session.connection().execute(stmt).rowcount or 0

    def tag_ids_for(self, content_id: int) -> Sequence[int]:
        stmt = select(ContentTagLink.tag_id).where(ContentTagLink.content_id == content_id)
        return self.session.exec(stmt).all()

    # -------------------------------------------------------------------------
    # Tags
    # -------------------------------------------------------------------------

    def _lookup_tag(self, name: str) -> TagRow | None:
        return self.session.exec(select(TagRow).where(TagRow.name == name)).first()

    def _insert_tag_ignoring_conflict(self, name: str) -> bool:
        now = utc_now()
        values = {"name": name, "created_at": now, "updated_at": now}
        dialect = self.session.get_bind().dialect.name

        if dialect in ("sqlite", "postgresql"):
            insert = sqlite_insert if dialect == "sqlite" else pg_insert
            stmt = (
                insert(TagRow.__table__)  # type: ignore[attr-defined]
                .values(**values)
                .on_conflict_do_nothing(index_elements=["name"])
            )
            return self.session.connection().execute(stmt).rowcount == 1

        try:
            with self.session.begin_nested():
                self.session.add(TagRow(**values))
            return True
        except IntegrityError:
            return False

    def find_or_create_tag(self, name: str) -> tuple[TagRow, bool]:
        """Return the tag called ``name``, creating it if needed.

        Atomic per name: the insert is conflict-tolerant against the unique
        constraint on TagRow.name, so a concurrent creator of the same name
        makes this call find the winner's row instead of duplicating it.

        Returns:
            Tuple of (tag, created)
        """
        existing = self._lookup_tag(name)
        if existing is not None:
            return existing, False

        created = self._insert_tag_ignoring_conflict(name)
        tag = self._lookup_tag(name)
        if tag is None:
            raise RuntimeError(f"Tag {name!r} vanished during find-or-create")
        if created:
            logger.debug(f"Created tag {name!r} (id={tag.id})")
        return tag, created


__all__ = [
    "Cardinality",
    "Relation",
    "RELATIONS",
    "RelationshipGraph",
    "get_relation",
    "relations_of",
    "eager_options",
]
