"""Pytest configuration and shared fixtures for PublishDB tests."""

import os

# Settings are read at import time; pin the testing profile before any
# publishdb module is imported.
os.environ.setdefault("ENVIRONMENT", "testing")

import sys
from collections.abc import Generator
from pathlib import Path

import pytest
from loguru import logger

from publishdb.config import ContentStatus, Settings
from publishdb.database import DatabaseManager
from publishdb.hooks import HookRegistry
from publishdb.models import AccountRead, ContentRead, TagRead
from publishdb.reads import ReadCoordinator
from publishdb.writes import WriteCoordinator


# =============================================================================
# Test Configuration
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def configure_logging():
    """Configure loguru for tests to avoid I/O errors."""
    logger.remove()
    logger.add(
        sys.stderr,
        level="ERROR",
        format="{time} {level} {message}",
        catch=True,
    )
    yield
    logger.remove()


@pytest.fixture(scope="function", autouse=True)
def reset_loguru():
    """Reset loguru handlers before each test."""
    logger.remove()
    logger.add(
        sys.stderr,
        level="ERROR",
        format="{time} {level} {message}",
        catch=True,
    )
    yield
    logger.remove()


@pytest.fixture
def log_messages() -> Generator[list[str], None, None]:
    """Capture every log line emitted during a test as ``LEVEL|message``."""
    messages: list[str] = []
    handler_id = logger.add(
        lambda msg: messages.append(msg.rstrip("\n")),
        level="DEBUG",
        format="{level}|{message}",
    )
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def test_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Settings:
    """Fresh settings pointing at a temporary data directory."""
    monkeypatch.setenv("DATA_DIR", str(tmp_path))
    monkeypatch.setenv("ENVIRONMENT", "development")
    return Settings()  # type: ignore[call-arg]


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def temp_db_path(tmp_path: Path) -> Path:
    """Path of a not-yet-created SQLite file."""
    return tmp_path / "publishdb_test.db"


@pytest.fixture
def db(temp_db_path: Path) -> Generator[DatabaseManager, None, None]:
    """Initialized database manager on a temporary SQLite file."""
    manager = DatabaseManager(database_path=temp_db_path)
    manager.initialize()
    yield manager
    manager.close()


@pytest.fixture
def memory_db() -> Generator[DatabaseManager, None, None]:
    """Initialized database manager on in-memory SQLite (static pool)."""
    manager = DatabaseManager(database_path=Path(":memory:"))
    manager.initialize()
    yield manager
    manager.close()


@pytest.fixture
def hooks() -> HookRegistry:
    """Empty hook registry, so tests opt in to the hooks they exercise."""
    return HookRegistry()


@pytest.fixture
def writes(db: DatabaseManager, hooks: HookRegistry) -> WriteCoordinator:
    return WriteCoordinator(db, hooks=hooks)


@pytest.fixture
def reads(db: DatabaseManager) -> ReadCoordinator:
    return ReadCoordinator(db)


# =============================================================================
# Database Fixtures with Sample Data
# =============================================================================


@pytest.fixture
def ada(writes: WriteCoordinator) -> AccountRead:
    """Account with no profile and no content."""
    return writes.create_account("Ada", "Lovelace", "ada@example.com")


@pytest.fixture
def grace(writes: WriteCoordinator) -> AccountRead:
    """Second account, used as a different author."""
    return writes.create_account("Grace", "Hopper", "grace@example.com")


@pytest.fixture
def python_tag(writes: WriteCoordinator) -> TagRead:
    return writes.create_tag("python")


@pytest.fixture
def draft_post(writes: WriteCoordinator, ada: AccountRead) -> ContentRead:
    """Untagged draft authored by ada."""
    return writes.create_content_with_tags(ada.id, "First draft", "Some words")


@pytest.fixture
def populated(writes: WriteCoordinator, ada: AccountRead, grace: AccountRead) -> dict:
    """Five active, two draft and one archived content items across two authors."""
    active = [
        writes.create_content_with_tags(
            ada.id if i % 2 == 0 else grace.id,
            f"Active post {i}",
            f"Body {i}",
            status=ContentStatus.ACTIVE,
            tag_names=["news"] if i < 3 else [],
        )
        for i in range(5)
    ]
    drafts = [
        writes.create_content_with_tags(ada.id, f"Draft {i}", "wip", status="draft")
        for i in range(2)
    ]
    archived = [
        writes.create_content_with_tags(grace.id, "Old post", "stale", status="archived")
    ]
    return {"active": active, "draft": drafts, "archived": archived}
