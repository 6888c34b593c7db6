"""Tests for hook closures registered on a connection."""

import gc
import logging

import pytest

from scoped_sqlite.db import (
    SQLITE_BUSY,
    SQLITE_CONSTRAINT,
    SQLITE_DENY,
    SQLITE_IGNORE,
    SQLITE_OK,
    Command,
    Connection,
    MisuseError,
    Query,
    Row,
)
from scoped_sqlite.db.native import (
    SQLITE_AUTH,
    SQLITE_CREATE_TABLE,
    SQLITE_DELETE,
    SQLITE_DROP_TABLE,
    SQLITE_INSERT,
    SQLITE_READ,
    SQLITE_SELECT,
    SQLITE_UPDATE,
)


@pytest.fixture
def locked(db_path):
    """A file database with a reserved lock held by another connection."""
    holder = Connection(db_path)
    assert holder.execute("CREATE TABLE t (x)") == SQLITE_OK
    assert holder.execute("BEGIN IMMEDIATE") == SQLITE_OK
    yield db_path
    holder.execute("ROLLBACK")
    holder.disconnect()


class TestBusyHandler:
    def test_retries_until_handler_gives_up(self, locked):
        calls = []

        def on_busy(count):
            calls.append(count)
            return count < 3

        with Connection(locked) as conn:
            conn.set_busy_handler(on_busy)
            assert conn.execute("BEGIN IMMEDIATE") == SQLITE_BUSY
        assert calls == [0, 1, 2, 3]

    def test_busy_timeout_replaces_handler(self, locked):
        calls = []
        with Connection(locked) as conn:
            conn.set_busy_handler(calls.append)
            assert conn.set_busy_timeout(10) == SQLITE_OK
            assert conn.execute("BEGIN IMMEDIATE") == SQLITE_BUSY
        assert calls == []

    def test_raising_handler_stops_retrying(self, locked, caplog):
        def on_busy(count):
            raise RuntimeError("boom")

        with Connection(locked) as conn:
            conn.set_busy_handler(on_busy)
            with caplog.at_level(logging.ERROR, logger="scoped_sqlite.db.connection"):
                assert conn.execute("BEGIN IMMEDIATE") == SQLITE_BUSY
        assert "Hook closure raised" in caplog.text


class TestCommitAndRollbackHandlers:
    def test_commit_handler_sees_commits(self, db):
        commits = []
        db.set_commit_handler(lambda: commits.append(1))
        db.execute("CREATE TABLE t (x)")
        db.execute("INSERT INTO t VALUES (1)")
        assert len(commits) == 2

    def test_commit_handler_veto_rolls_back(self, db, count_rows):
        rollbacks = []
        db.execute("CREATE TABLE t (x)")
        db.set_commit_handler(lambda: True)
        db.set_rollback_handler(lambda: rollbacks.append(1))
        assert db.execute("INSERT INTO t VALUES (1)") == SQLITE_CONSTRAINT
        db.set_commit_handler(None)
        assert count_rows(db, "t") == 0
        assert rollbacks == [1]

    def test_removed_handler_no_longer_called(self, db, count_rows):
        db.execute("CREATE TABLE t (x)")
        db.set_commit_handler(lambda: True)
        db.set_commit_handler(None)
        assert db.execute("INSERT INTO t VALUES (1)") == SQLITE_OK
        assert count_rows(db, "t") == 1

    def test_rollback_handler(self, db):
        rollbacks = []
        db.set_rollback_handler(lambda: rollbacks.append("rolled back"))
        db.execute("BEGIN")
        db.execute("CREATE TABLE t (x)")
        db.execute("ROLLBACK")
        assert rollbacks == ["rolled back"]


class TestUpdateHandler:
    def test_reports_row_changes(self, db):
        events = []
        db.execute("CREATE TABLE t (x)")
        db.set_update_handler(lambda *args: events.append(args))
        db.execute("INSERT INTO t VALUES ('a')")
        db.execute("UPDATE t SET x = 'b' WHERE rowid = 1")
        db.execute("DELETE FROM t WHERE rowid = 1")
        assert events == [
            (SQLITE_INSERT, "main", "t", 1),
            (SQLITE_UPDATE, "main", "t", 1),
            (SQLITE_DELETE, "main", "t", 1),
        ]


class TestAuthorizeHandler:
    def test_deny_drop_table(self, people, count_rows):
        def authorize(action, arg1, arg2, database, source):
            return SQLITE_DENY if action == SQLITE_DROP_TABLE else SQLITE_OK

        people.set_authorize_handler(authorize)
        assert people.execute("DROP TABLE people") == SQLITE_AUTH
        assert "not authorized" in people.error_msg()
        assert count_rows(people, "people") == 3

    def test_ignore_column_read(self, people):
        def authorize(action, arg1, arg2, database, source):
            if action == SQLITE_READ and (arg1, arg2) == ("people", "score"):
                return SQLITE_IGNORE
            return SQLITE_OK

        people.set_authorize_handler(authorize)
        with Query(people, "SELECT name, score FROM people WHERE id = 1") as q:
            q.step()
            assert Row(q).as_tuple() == ("ada", None)

    def test_sees_statement_actions(self, db):
        actions = []

        def authorize(action, *_):
            actions.append(action)
            return SQLITE_OK

        db.set_authorize_handler(authorize)
        db.execute("CREATE TABLE t (x)")
        db.execute("SELECT x FROM t")
        assert SQLITE_CREATE_TABLE in actions
        assert SQLITE_SELECT in actions

    def test_raising_handler_denies(self, db, caplog):
        def authorize(*_):
            raise ValueError("nope")

        db.set_authorize_handler(authorize)
        with caplog.at_level(logging.ERROR, logger="scoped_sqlite.db.connection"):
            assert db.execute("CREATE TABLE t (x)") == SQLITE_AUTH
        assert "Hook closure raised" in caplog.text
        db.set_authorize_handler(None)
        assert db.execute("CREATE TABLE t (x)") == SQLITE_OK


def test_handlers_need_a_connection():
    conn = Connection()
    with pytest.raises(MisuseError):
        conn.set_commit_handler(lambda: False)


def test_statement_outliving_disconnect_fires_no_hooks(db_path):
    calls = []
    conn = Connection(db_path)
    conn.execute("CREATE TABLE t (x)")
    conn.set_commit_handler(lambda: calls.append("commit"))
    conn.set_rollback_handler(lambda: calls.append("rollback"))
    conn.set_update_handler(lambda *args: calls.append("update"))
    conn.set_authorize_handler(lambda *args: calls.append("authorize") or SQLITE_OK)
    cmd = Command(conn, "INSERT INTO t VALUES (1)")
    calls.clear()

    assert conn.disconnect() == SQLITE_OK
    gc.collect()
    assert cmd.execute() == SQLITE_OK
    assert calls == []
    assert cmd.finish() == SQLITE_OK


def test_reconnect_drops_hooks(db_path):
    calls = []
    conn = Connection(db_path)
    conn.set_commit_handler(lambda: calls.append("commit"))
    cmd = Command(conn, "CREATE TABLE t (x)")
    assert conn.connect(":memory:") == SQLITE_OK
    assert cmd.execute() == SQLITE_OK
    assert conn.execute("CREATE TABLE u (x)") == SQLITE_OK
    assert calls == []
    cmd.finish()
    conn.disconnect()
