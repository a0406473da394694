"""Error kinds raised by the PublishDB core.

Every error derives from :class:`PublishDBError`, so a boundary layer can
catch the whole family in one place and map each kind to its own response.

Kinds:
    - ValidationError: an attribute failed its schema constraint
    - NotFoundError: a primary or foreign key did not resolve
    - InvalidScopeError: an unknown scope name was passed to a filtered read
    - TransactionFailure: a storage error inside a composite write (rolled back)
    - HookError: a lifecycle hook failed (logged, never propagated)
"""

from collections.abc import Iterable
from typing import Any

from publishdb.config import EntityKind


class PublishDBError(Exception):
    """Base exception for all PublishDB errors."""


class ValidationError(PublishDBError):
    """An attribute value failed its schema constraint.

    Attributes:
        field: Name of the offending attribute
        reason: Human-readable description of the failure
        errors: Every (field, reason) pair when more than one field failed
    """

    def __init__(
        self,
        field: str,
        reason: str,
        errors: list[tuple[str, str]] | None = None,
    ):
        self.field = field
        self.reason = reason
        self.errors = errors or [(field, reason)]
        super().__init__(f"{field}: {reason}")


class NotFoundError(PublishDBError):
    """A referenced key does not resolve to a row.

    A single error may name several entity kinds when the caller's contract
    does not distinguish which lookup failed (e.g. "Content or Tag").

    Attributes:
        kinds: Entity kinds that were looked up
        key: The key (or keys) that failed to resolve
    """

    def __init__(self, kinds: EntityKind | Iterable[EntityKind], key: Any = None):
        if isinstance(kinds, EntityKind):
            kinds = (kinds,)
        self.kinds: tuple[EntityKind, ...] = tuple(kinds)
        self.key = key
        super().__init__(f"{' or '.join(k.value for k in self.kinds)} not found")

    @property
    def kind(self) -> EntityKind:
        """Primary entity kind (the first one named)."""
        return self.kinds[0]


class InvalidScopeError(PublishDBError):
    """An unknown scope name was requested."""

    def __init__(self, name: str, known: Iterable[str] = ()):
        self.name = name
        self.known = tuple(known)
        message = f"Unknown scope: {name!r}"
        if self.known:
            message += f" (expected one of: {', '.join(self.known)})"
        super().__init__(message)


class TransactionFailure(PublishDBError):
    """A storage-level error occurred inside a composite write.

    Raised only after the transaction has been rolled back. The underlying
    exception is chained as ``__cause__``.
    """

    def __init__(self, operation: str, cause: BaseException):
        self.operation = operation
        self.cause = cause
        super().__init__(f"{operation} failed and was rolled back: {cause}")


class HookError(PublishDBError):
    """A lifecycle hook raised. Logged by the hook registry, never propagated."""

    def __init__(self, hook_name: str, entity: EntityKind, cause: BaseException):
        self.hook_name = hook_name
        self.entity = entity
        self.cause = cause
        super().__init__(f"afterCreate hook {hook_name!r} for {entity.value} failed: {cause}")


__all__ = [
    "PublishDBError",
    "ValidationError",
    "NotFoundError",
    "InvalidScopeError",
    "TransactionFailure",
    "HookError",
]
