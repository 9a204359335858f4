"""Shared fixtures for libsql-sync tests."""

from pathlib import Path
from typing import Callable, Iterator

import pytest

from libsql_sync import Database


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    """Create a temporary database path."""
    return str(tmp_path / "test.db")


@pytest.fixture
def db(db_path: str) -> Iterator[Database]:
    """Database with a ``users`` table holding Alice and Bob."""
    database = Database(db_path)
    database.exec(
        """
        CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT, email TEXT);
        INSERT INTO users (id, name, email) VALUES (1, 'Alice', 'alice@example.org');
        INSERT INTO users (id, name, email) VALUES (2, 'Bob', 'bob@example.com');
        """
    )
    yield database
    database.close()


@pytest.fixture
def count_users() -> Callable[[Database], int]:
    """Return a function counting the rows in ``users`` of a database."""

    def count(database: Database) -> int:
        return database.prepare("SELECT COUNT(*) FROM users").pluck().get()

    return count
