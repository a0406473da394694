"""Data models for PublishDB.

This module defines the input schemas that validate caller-supplied values,
the SQLModel tables that persist them, and the read models handed back to
callers once a session has closed.

Models are organized into four sections:
1. Input schemas (SQLModel, non-table) used to validate writes
2. Link table for the Content-Tag many-to-many relationship
3. SQLModel tables for database persistence
4. Read models returned by the coordinators
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, TypeVar

import pydantic
from pydantic import BaseModel, ConfigDict, EmailStr, field_validator
from sqlalchemy import Column, Text
from sqlalchemy import Enum as SAEnum
from sqlmodel import Field, Relationship, SQLModel

from publishdb.config import ContentStatus, EntityKind
from publishdb.errors import ValidationError
from publishdb.utils import utc_now

SchemaT = TypeVar("SchemaT", bound=BaseModel)

# Relationships never load implicitly and never drive writes; the
# relationship graph and the coordinators do both explicitly.
_EXPLICIT = {"lazy": "raise", "viewonly": True}


def _strip(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


def _enum_values(enum_cls: type[ContentStatus]) -> list[str]:
    return [member.value for member in enum_cls]


# =============================================================================
# Section 1: Input Schemas
# =============================================================================


class AccountCreate(SQLModel):
    """Values required to register an account."""

    first_name: str = Field(min_length=1, max_length=255)
    last_name: str = Field(min_length=1, max_length=255)
    email: EmailStr

    @field_validator("first_name", "last_name", "email", mode="before")
    @classmethod
    def _strip_text(cls, v: Any) -> Any:
        return _strip(v)


class AccountUpdate(SQLModel):
    """Partial account update; unset fields are left untouched."""

    first_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None

    @field_validator("first_name", "last_name", "email", mode="before")
    @classmethod
    def _strip_text(cls, v: Any) -> Any:
        return _strip(v)


class ProfileCreate(SQLModel):
    """Values required to attach a profile to an account."""

    account_id: int
    description: Optional[str] = None


class ProfileUpdate(SQLModel):
    """Profile update. Only the description is mutable."""

    description: Optional[str] = None


class ContentCreate(SQLModel):
    """Values required to publish a content item with its tags."""

    account_id: int
    title: str = Field(min_length=1, max_length=255)
    body: str = Field(min_length=1)
    status: ContentStatus = ContentStatus.DRAFT
    tags: list[str] = Field(default_factory=list)

    @field_validator("title", "body", mode="before")
    @classmethod
    def _strip_text(cls, v: Any) -> Any:
        return _strip(v)

    @field_validator("status", mode="before")
    @classmethod
    def _default_status(cls, v: Any) -> Any:
        return ContentStatus.DRAFT if v is None else v

    @field_validator("tags", mode="before")
    @classmethod
    def _check_tags(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, str):
            raise ValueError("tags must be a list of names")
        names = [_strip(name) for name in v]
        if any(not isinstance(name, str) or not name for name in names):
            raise ValueError("tag names must be non-empty strings")
        return names


class ContentUpdate(SQLModel):
    """Partial content update. A new title must be at least 5 characters."""

    title: Optional[str] = Field(default=None, min_length=5, max_length=255)
    body: Optional[str] = Field(default=None, min_length=1)
    status: Optional[ContentStatus] = None

    @field_validator("title", "body", mode="before")
    @classmethod
    def _strip_text(cls, v: Any) -> Any:
        return _strip(v)


class TagCreate(SQLModel):
    """Values required to create a tag."""

    name: str = Field(min_length=1, max_length=100)

    @field_validator("name", mode="before")
    @classmethod
    def _strip_text(cls, v: Any) -> Any:
        return _strip(v)


class TagUpdate(TagCreate):
    """Tag rename."""


# =============================================================================
# Section 2: Link Table for Many-to-Many Relationships
# =============================================================================


class ContentTagLink(SQLModel, table=True):
    """Join row pairing one content item with one tag.

    Pairings are not unique at the database level; writers check for an
    existing pairing before inserting.

    Attributes:
        id: Surrogate primary key
        content_id: FK to ContentRow.id
        tag_id: FK to TagRow.id
    """

    id: Optional[int] = Field(default=None, primary_key=True)
    content_id: int = Field(foreign_key="contentrow.id", index=True)
    tag_id: int = Field(foreign_key="tagrow.id", index=True)


# =============================================================================
# Section 3: SQLModel Tables for Database Persistence
# =============================================================================


class AccountRow(SQLModel, table=True):
    """Persisted account. Root of the ownership graph.

    Attributes:
        id: Surrogate primary key
        first_name: Given name
        last_name: Family name
        email: Login email, unique across all accounts
        created_at: Insert timestamp (UTC)
        updated_at: Last update timestamp (UTC)
    """

    id: Optional[int] = Field(default=None, primary_key=True)
    first_name: str
    last_name: str
    email: str = Field(unique=True, index=True)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    profile: Optional["ProfileRow"] = Relationship(
        back_populates="account",
        sa_relationship_kwargs={**_EXPLICIT, "uselist": False},
    )
    contents: list["ContentRow"] = Relationship(
        back_populates="account",
        sa_relationship_kwargs={**_EXPLICIT, "order_by": "ContentRow.created_at.desc()"},
    )


class ProfileRow(SQLModel, table=True):
    """Persisted profile, one per account.

    Attributes:
        id: Surrogate primary key
        description: Free-text description (nullable)
        account_id: FK to AccountRow.id, unique
        created_at: Insert timestamp (UTC)
        updated_at: Last update timestamp (UTC)
    """

    id: Optional[int] = Field(default=None, primary_key=True)
    description: Optional[str] = Field(
        default=None, sa_column=Column(Text, nullable=True)
    )
    account_id: int = Field(foreign_key="accountrow.id", unique=True, index=True)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    account: Optional[AccountRow] = Relationship(
        back_populates="profile", sa_relationship_kwargs=dict(_EXPLICIT)
    )


class ContentRow(SQLModel, table=True):
    """Persisted content item authored by an account.

    Attributes:
        id: Surrogate primary key
        title: Headline
        body: Full text
        account_id: FK to the authoring AccountRow.id
        status: active, draft or archived (default draft)
        created_at: Insert timestamp (UTC, indexed for listing order)
        updated_at: Last update timestamp (UTC)
    """

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    body: str = Field(sa_column=Column(Text, nullable=False))
    account_id: int = Field(foreign_key="accountrow.id", index=True)
    status: ContentStatus = Field(
        default=ContentStatus.DRAFT,
        sa_column=Column(
            SAEnum(
                ContentStatus,
                name="content_status",
                values_callable=_enum_values,
                validate_strings=True,
            ),
            nullable=False,
            index=True,
            default=ContentStatus.DRAFT,
        ),
    )
    created_at: datetime = Field(default_factory=utc_now, index=True)
    updated_at: datetime = Field(default_factory=utc_now)

    account: Optional[AccountRow] = Relationship(
        back_populates="contents", sa_relationship_kwargs=dict(_EXPLICIT)
    )
    tags: list["TagRow"] = Relationship(
        back_populates="contents",
        link_model=ContentTagLink,
        sa_relationship_kwargs={**_EXPLICIT, "order_by": "TagRow.name"},
    )


class TagRow(SQLModel, table=True):
    """Persisted tag shared across content items.

    Attributes:
        id: Surrogate primary key
        name: Tag label, unique so find-or-create cannot race into duplicates
        created_at: Insert timestamp (UTC)
        updated_at: Last update timestamp (UTC)
    """

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(unique=True, index=True)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    contents: list[ContentRow] = Relationship(
        back_populates="tags",
        link_model=ContentTagLink,
        sa_relationship_kwargs=dict(_EXPLICIT),
    )


# =============================================================================
# Section 4: Read Models
# =============================================================================


class AccountRead(BaseModel):
    """Account as returned to callers."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    first_name: str
    last_name: str
    email: str
    created_at: datetime
    updated_at: datetime

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class ProfileRead(BaseModel):
    """Profile as returned to callers."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    description: Optional[str] = None
    account_id: int
    created_at: datetime
    updated_at: datetime


class TagRead(BaseModel):
    """Tag as returned to callers."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    created_at: datetime
    updated_at: datetime


class ContentRead(BaseModel):
    """Content item without its relations."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    body: str
    account_id: int
    status: ContentStatus
    created_at: datetime
    updated_at: datetime


class ContentDetail(ContentRead):
    """Content item with its author and tags eagerly loaded.

    ``account`` is None only when the author row was deleted out from under
    the content (account deletion does not cascade).
    """

    account: Optional[AccountRead] = None
    tags: list[TagRead] = []

    @property
    def tag_names(self) -> set[str]:
        return {tag.name for tag in self.tags}


class AccountDetail(AccountRead):
    """Account with its profile and authored content."""

    profile: Optional[ProfileRead] = None
    contents: list[ContentRead] = []


class ProfileDetail(ProfileRead):
    """Profile with its owning account."""

    account: Optional[AccountRead] = None


class ContentPage(BaseModel):
    """One page of a content listing.

    Attributes:
        items: Content on this page, newest first
        total: Rows matching the scope across all pages
        total_pages: ceil(total / page_size)
        current_page: The requested page number
        page_size: The requested page size
    """

    items: list[ContentDetail]
    total: int
    total_pages: int
    current_page: int
    page_size: int


# =============================================================================
# Section 5: Schema Introspection and Validation Factory
# =============================================================================


@dataclass(frozen=True)
class AttributeSpec:
    """One attribute of an entity schema."""

    name: str
    type: str
    nullable: bool
    default: Any
    primary_key: bool = False
    foreign_key: Optional[str] = None
    unique: bool = False
    rules: tuple[str, ...] = ()


ENTITY_MODELS: dict[EntityKind, tuple[type[SQLModel], Optional[type[SQLModel]]]] = {
    EntityKind.ACCOUNT: (AccountRow, AccountCreate),
    EntityKind.PROFILE: (ProfileRow, ProfileCreate),
    EntityKind.CONTENT: (ContentRow, ContentCreate),
    EntityKind.TAG: (TagRow, TagCreate),
    EntityKind.CONTENT_TAG: (ContentTagLink, None),
}


def _column_default(column: Any) -> Any:
    if column.default is None:
        return None
    arg = column.default.arg
    if callable(arg):
        return getattr(arg, "__name__", "callable")
    return arg.value if isinstance(arg, ContentStatus) else arg


def describe_schema(kind: EntityKind) -> dict[str, AttributeSpec]:
    """Return the ordered attribute schema for an entity kind.

    Column facts (type, nullability, keys, uniqueness) come from the table;
    validation rules come from the matching input schema.

    Example:
        >>> schema = describe_schema(EntityKind.CONTENT)
        >>> schema["account_id"].foreign_key
        'accountrow.id'
        >>> schema["status"].default
        'draft'
    """
    row_model, input_model = ENTITY_MODELS[kind]
    input_fields = input_model.model_fields if input_model else {}

    schema: dict[str, AttributeSpec] = {}
    for column in row_model.__table__.columns:  # type: ignore[attr-defined]
        fk = next(iter(column.foreign_keys), None)
        field = input_fields.get(column.name)
        rules: tuple[str, ...] = ()
        if field is not None:
            rules = tuple(str(m) for m in field.metadata)
            if column.name == "email":
                rules += ("email",)
        schema[column.name] = AttributeSpec(
            name=column.name,
            type=str(column.type),
            nullable=bool(column.nullable),
            default=_column_default(column),
            primary_key=bool(column.primary_key),
            foreign_key=fk.target_fullname if fk is not None else None,
            unique=bool(column.unique),
            rules=rules,
        )
    return schema


def validate_payload(schema: type[SchemaT], data: dict[str, Any] | SchemaT) -> SchemaT:
    """Validate raw values against an input schema.

    Args:
        schema: Input schema class (e.g. ContentCreate)
        data: Raw mapping, or an already-built schema instance

    Returns:
        Validated schema instance

    Raises:
        ValidationError: Carrying the first offending field and every failure
    """
    if isinstance(data, schema):
        return data
    try:
        return schema.model_validate(data)
    except pydantic.ValidationError as e:
        failures = [
            (".".join(str(part) for part in err["loc"]) or "__root__", err["msg"])
            for err in e.errors()
        ]
        field, reason = failures[0]
        raise ValidationError(field, reason, failures) from e


__all__ = [
    "AccountCreate",
    "AccountUpdate",
    "ProfileCreate",
    "ProfileUpdate",
    "ContentCreate",
    "ContentUpdate",
    "TagCreate",
    "TagUpdate",
    "ContentTagLink",
    "AccountRow",
    "ProfileRow",
    "ContentRow",
    "TagRow",
    "AccountRead",
    "ProfileRead",
    "TagRead",
    "ContentRead",
    "ContentDetail",
    "AccountDetail",
    "ProfileDetail",
    "ContentPage",
    "AttributeSpec",
    "ENTITY_MODELS",
    "describe_schema",
    "validate_payload",
]
