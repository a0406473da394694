"""PublishDB - relational content model for accounts, profiles, content and tags.

This package provides the persistence core of a small publishing service:
validated entity schemas, an explicit relationship graph, status scopes,
afterCreate hooks, and the read/write coordinators that run every operation
as one transaction.

Example:
    >>> from publishdb import DatabaseManager, ReadCoordinator, WriteCoordinator
    >>>
    >>> db = DatabaseManager()
    >>> db.initialize()
    >>> writes, reads = WriteCoordinator(db), ReadCoordinator(db)
    >>>
    >>> ada = writes.create_account("Ada", "Lovelace", "ada@example.com")
    >>> post = writes.create_content_with_tags(ada.id, "Notes", "...", tag_names=["math"])
    >>> reads.get_content_by_id(post.id).tag_names
    {'math'}
    >>> db.close()
"""

__version__ = "0.1.0"

from publishdb.config import ContentStatus, EntityKind, settings  # noqa: E402
from publishdb.database import DatabaseManager  # noqa: E402
from publishdb.errors import (  # noqa: E402
    HookError,
    InvalidScopeError,
    NotFoundError,
    PublishDBError,
    TransactionFailure,
    ValidationError,
)
from publishdb.hooks import HookRegistry, default_hooks  # noqa: E402
from publishdb.models import (  # noqa: E402
    AccountDetail,
    AccountRead,
    ContentDetail,
    ContentPage,
    ContentRead,
    ProfileDetail,
    ProfileRead,
    TagRead,
)
from publishdb.reads import ReadCoordinator  # noqa: E402
from publishdb.writes import WriteCoordinator  # noqa: E402

__all__ = [
    # Main components
    "DatabaseManager",
    "ReadCoordinator",
    "WriteCoordinator",
    "HookRegistry",
    "default_hooks",
    # Configuration
    "settings",
    "ContentStatus",
    "EntityKind",
    # Read models
    "AccountRead",
    "AccountDetail",
    "ProfileRead",
    "ProfileDetail",
    "ContentRead",
    "ContentDetail",
    "ContentPage",
    "TagRead",
    # Errors
    "PublishDBError",
    "ValidationError",
    "NotFoundError",
    "InvalidScopeError",
    "TransactionFailure",
    "HookError",
]
