"""Database connection management for PublishDB.

This module owns the process-wide connection pool. A single
:class:`DatabaseManager` is created at process start, handed to the
coordinators, and closed at shutdown. Every unit of work opens its own
short-lived session through :meth:`DatabaseManager.session_scope`, which
commits on success and rolls back on any failure, including cancellation.

Example:
    >>> from publishdb.database import DatabaseManager
    >>>
    >>> db = DatabaseManager()
    >>> db.initialize()
    >>>
    >>> with db.session_scope() as session:
    ...     session.add(AccountRow(first_name="Ada", last_name="L", email="ada@example.com"))
    >>>
    >>> db.close()
"""

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from publishdb import models  # noqa: F401  registers table metadata
from publishdb.config import settings
from publishdb.logging import logger
from publishdb.metrics import active_database_connections, transactions_total


# =============================================================================
# Database Manager
# =============================================================================


class DatabaseManager:
    """Owns the engine, its connection pool and the transaction scope.

    Features:
    - Explicit lifecycle (``initialize`` / ``close``)
    - WAL mode and pragmas for SQLite, sized pool for server databases
    - Static pool for in-memory SQLite so every session sees one database
    - ``session_scope`` for atomic units of work

    Args:
        database_url: SQLAlchemy URL (defaults to settings.resolved_database_url)
        database_path: Convenience for a SQLite file path; ignored when a URL is given
        echo: Echo SQL statements (defaults to settings.echo_sql)

    Example:
        >>> db = DatabaseManager(database_path=Path("/tmp/publish.db"))
        >>> db.initialize()
        >>> with db.session_scope() as session:
        ...     ...
        >>> db.close()
    """

    def __init__(
        self,
        database_url: str | None = None,
        database_path: Path | None = None,
        echo: bool | None = None,
    ):
        if database_url is None and database_path is not None:
            database_url = (
                "sqlite://"
                if str(database_path) == ":memory:"
                else f"sqlite:///{database_path}"
            )
        self.database_url = database_url or settings.resolved_database_url
        self.echo = settings.echo_sql if echo is None else echo
        self.engine: Engine | None = None

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def is_memory(self) -> bool:
        return self.database_url in ("sqlite://", "sqlite:///:memory:")

    @property
    def is_initialized(self) -> bool:
        return self.engine is not None

    def _engine_kwargs(self) -> dict[str, Any]:
        if self.is_memory:
            return {
                "connect_args": {"check_same_thread": False},
                "poolclass": StaticPool,
            }
        if self.is_sqlite:
            return {"connect_args": {"check_same_thread": False}}
        return {
            "pool_size": settings.pool_size,
            "pool_timeout": settings.pool_timeout,
            "pool_pre_ping": True,
        }

    def initialize(self) -> None:
        """Create the engine and all tables.

        This method:
        1. Creates the SQLite parent directory if needed
        2. Builds the engine with a pool suited to the backend
        3. Registers pool listeners for the connection gauge
        4. Enables WAL mode and pragmas on SQLite
        5. Creates all tables from SQLModel metadata

        Calling it twice is a no-op.
        """
        if self.engine is not None:
            return

        if self.is_sqlite and not self.is_memory:
            db_file = Path(self.database_url.removeprefix("sqlite:///"))
            db_file.parent.mkdir(parents=True, exist_ok=True)

        self.engine = create_engine(
            self.database_url,
            echo=self.echo,
            **self._engine_kwargs(),
        )

        event.listen(self.engine, "checkout", _on_checkout)
        event.listen(self.engine, "checkin", _on_checkin)

        if self.is_sqlite and not self.is_memory:
            with self.engine.connect() as conn:
                conn.exec_driver_sql("PRAGMA journal_mode = WAL;")
                conn.exec_driver_sql("PRAGMA synchronous = NORMAL;")
                conn.commit()

        SQLModel.metadata.create_all(self.engine)
        logger.info(f"✅ Database initialized at {self.engine.url.render_as_string()}")

    def close(self) -> None:
        """Dispose of the pool and every pooled connection."""
        if self.engine is not None:
            self.engine.dispose()
            self.engine = None
            logger.debug("Database connections closed")

    def reset(self) -> None:
        """Drop and recreate every table. Intended for tests and ``init --force``."""
        engine = self._require_engine()
        SQLModel.metadata.drop_all(engine)
        SQLModel.metadata.create_all(engine)
        logger.warning("Database schema dropped and recreated")

    def _require_engine(self) -> Engine:
        if self.engine is None:
            raise RuntimeError("Database not initialized")
        return self.engine

    # =========================================================================
    # Sessions
    # =========================================================================

    def new_session(self) -> Session:
        """Open a bare session. The caller owns commit and close."""
        return Session(self._require_engine(), expire_on_commit=False)

    @contextmanager
    def session_scope(self, label: str = "unit_of_work") -> Iterator[Session]:
        """Provide a transactional scope around a series of operations.

        Commits when the block exits normally. Any exception, including
        ``KeyboardInterrupt`` and other cancellation signals, rolls the whole
        scope back before it propagates.

        Args:
            label: Name recorded in logs and the transactions metric

        Yields:
            Session bound to one transaction
        """
        session = self.new_session()
        try:
            yield session
            session.commit()
            transactions_total.labels(label=label, outcome="committed").inc()
        except BaseException as e:
            session.rollback()
            transactions_total.labels(label=label, outcome="rolled_back").inc()
            logger.warning(f"Rolled back {label}: {type(e).__name__}: {e}")
            raise
        finally:
            session.close()


def _on_checkout(dbapi_conn: Any, conn_record: Any, conn_proxy: Any) -> None:
    active_database_connections.inc()


def _on_checkin(dbapi_conn: Any, conn_record: Any) -> None:
    active_database_connections.dec()


# =============================================================================
# Export Public API
# =============================================================================

__all__ = ["DatabaseManager"]
