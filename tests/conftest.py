"""Shared test fixtures."""

import pytest

from scoped_sqlite.db import SQLITE_OK, Command, Connection, Query, Row


@pytest.fixture
def db():
    """In-memory database connection."""
    conn = Connection(":memory:")
    yield conn
    conn.disconnect()


@pytest.fixture
def people(db):
    """In-memory database with a small people table."""
    cmd = Command(
        db,
        "CREATE TABLE people (id INTEGER PRIMARY KEY, name TEXT NOT NULL, score REAL, avatar BLOB);"
        "INSERT INTO people (name, score, avatar) VALUES ('ada', 9.5, x'0102');"
        "INSERT INTO people (name, score, avatar) VALUES ('grace', 8.25, NULL);"
        "INSERT INTO people (name, score, avatar) VALUES ('linus', NULL, x'');",
    )
    assert cmd.execute_all() == SQLITE_OK
    cmd.finish()
    return db


@pytest.fixture
def db_path(tmp_path):
    """Path for an on-disk database shared between connections."""
    return tmp_path / "shared.db"


def _count_rows(db: Connection, table: str) -> int:
    with Query(db, f"SELECT count(*) FROM {table}") as q:
        q.step()
        return Row(q).get(0, int)


@pytest.fixture
def count_rows():
    """Row counter for assertions on table contents."""
    return _count_rows
