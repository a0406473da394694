"""afterCreate lifecycle hooks.

Hooks are registered per entity kind and fired by the write coordinator once,
synchronously, after the creating transaction has committed. They receive the
created entity's read model. A hook that raises is reported as a
:class:`~publishdb.errors.HookError` in the log and the ``hook_failures_total``
metric; the insert it follows is never rolled back and the caller never sees
the failure.

Example:
    >>> hooks = default_hooks(db)
    >>> hooks.register(EntityKind.TAG, lambda tag: logger.info(f"tag {tag.name}"))
    >>> hooks.fire_after_create(EntityKind.TAG, tag_read)
    []
"""

from collections import defaultdict
from typing import Any

from publishdb.config import EntityKind
from publishdb.errors import HookError
from publishdb.interfaces import AfterCreateHook, IDatabaseManager
from publishdb.logging import logger
from publishdb.metrics import errors_total, hook_failures_total
from publishdb.models import AccountRead, AccountRow, ContentRead


def hook_name(hook: AfterCreateHook) -> str:
    return getattr(hook, "__name__", type(hook).__name__)


class HookRegistry:
    """Ordered afterCreate hooks keyed by entity kind."""

    def __init__(self) -> None:
        self._hooks: dict[EntityKind, list[AfterCreateHook]] = defaultdict(list)

    def register(self, kind: EntityKind, hook: AfterCreateHook) -> AfterCreateHook:
        """Append a hook for ``kind``. Returns the hook so this works as a decorator body."""
        self._hooks[kind].append(hook)
        logger.debug(f"Registered afterCreate hook {hook_name(hook)!r} for {kind.value}")
        return hook

    def hooks_for(self, kind: EntityKind) -> list[AfterCreateHook]:
        return list(self._hooks.get(kind, ()))

    def clear(self, kind: EntityKind | None = None) -> None:
        if kind is None:
            self._hooks.clear()
        else:
            self._hooks.pop(kind, None)

    def fire_after_create(self, kind: EntityKind, entity: Any) -> list[HookError]:
        """Invoke every hook for ``kind`` with the created entity.

        Args:
            kind: Kind of the entity that was created
            entity: Read model of the committed row

        Returns:
            The failures that were logged, in hook order (empty on success)
        """
        failures: list[HookError] = []
        for hook in self.hooks_for(kind):
            name = hook_name(hook)
            try:
                hook(entity)
            except Exception as e:
                error = HookError(name, kind, e)
                failures.append(error)
                hook_failures_total.labels(entity=kind.value, hook=name).inc()
                errors_total.labels(error_type=type(e).__name__, component="hooks").inc()
                logger.opt(exception=e).warning(str(error))
        return failures


# =============================================================================
# Default Hooks
# =============================================================================


def log_account_registered(account: AccountRead) -> None:
    logger.info(
        f"New account registered: {account.first_name} {account.last_name} "
        f"(Email: {account.email})"
    )


def make_content_created_hook(db: IDatabaseManager) -> AfterCreateHook:
    """Build the Content hook, which looks up the author in its own session.

    A missing author is logged and otherwise ignored.
    """

    def log_content_created(content: ContentRead) -> None:
        with db.new_session() as session:
            author = session.get(AccountRow, content.account_id)
            if author is None:
                logger.warning(
                    f"Content {content.id} created but author account "
                    f"{content.account_id} was not found"
                )
                return
            author_name = f"{author.first_name} {author.last_name}"
        logger.info(
            f"New content created by {author_name}: '{content.title}' "
            f"(status: {content.status.value})"
        )

    return log_content_created


def default_hooks(db: IDatabaseManager) -> HookRegistry:
    """Registry with the stock Account and Content hooks installed."""
    registry = HookRegistry()
    registry.register(EntityKind.ACCOUNT, log_account_registered)
    registry.register(EntityKind.CONTENT, make_content_created_hook(db))
    return registry


__all__ = [
    "HookRegistry",
    "default_hooks",
    "log_account_registered",
    "make_content_created_hook",
]
