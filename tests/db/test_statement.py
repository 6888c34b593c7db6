"""Tests for the prepared statement lifecycle and parameter binding."""

import gc

import pytest

from scoped_sqlite.db import (
    SQLITE_DONE,
    SQLITE_MISUSE,
    SQLITE_OK,
    SQLITE_RANGE,
    SQLITE_ROW,
    Connection,
    DatabaseError,
    MisuseError,
    Row,
    Statement,
    StatementState,
)
from scoped_sqlite.models.value import NULL


def _fetch_one(stmt: Statement) -> tuple:
    assert stmt.step() == SQLITE_ROW
    return Row(stmt).as_tuple()


class TestPrepare:
    def test_prepare_keeps_tail(self, db):
        stmt = Statement(db, "SELECT 1; SELECT 2")
        assert stmt.state is StatementState.PREPARED
        assert stmt.sql == "SELECT 1;"
        assert stmt.tail == " SELECT 2"

    def test_prepare_failure_raises(self, db):
        stmt = Statement(db)
        with pytest.raises(DatabaseError) as exc_info:
            stmt.prepare("SELEC 1")
        assert "syntax error" in exc_info.value.message
        assert stmt.state is StatementState.UNPREPARED
        assert stmt.handle is None

    def test_prepare_unknown_table_raises(self, db):
        with pytest.raises(DatabaseError, match="no such table"):
            Statement(db, "SELECT * FROM missing")

    def test_prepare_on_disconnected_connection(self):
        with pytest.raises(MisuseError):
            Statement(Connection(), "SELECT 1")

    def test_comment_only_text_prepares_nothing(self, db):
        stmt = Statement(db, "  -- nothing here\n")
        assert stmt.handle is None
        assert stmt.state is StatementState.UNPREPARED
        assert stmt.step() == SQLITE_MISUSE

    def test_reprepare_finishes_previous_handle(self, db):
        stmt = Statement(db, "SELECT 1")
        stmt.prepare("SELECT 2")
        assert db.open_statement_count() == 1
        assert _fetch_one(stmt) == (2,)


class TestLifecycle:
    def test_step_through_rows(self, db):
        stmt = Statement(db, "SELECT 1 UNION ALL SELECT 2")
        assert stmt.step() == SQLITE_ROW
        assert stmt.state is StatementState.STEPPING
        assert stmt.step() == SQLITE_ROW
        assert stmt.step() == SQLITE_DONE
        assert stmt.state is StatementState.EXHAUSTED

    def test_generation_moves_on_every_transition(self, db):
        stmt = Statement(db, "SELECT 1")
        seen = [stmt.generation]
        stmt.step()
        seen.append(stmt.generation)
        stmt.reset()
        seen.append(stmt.generation)
        stmt.finish()
        seen.append(stmt.generation)
        assert seen == sorted(set(seen))

    def test_reset_is_idempotent(self, db):
        stmt = Statement(db, "SELECT 1")
        stmt.step()
        assert stmt.reset() == SQLITE_OK
        assert stmt.reset() == SQLITE_OK
        assert stmt.state is StatementState.PREPARED
        assert _fetch_one(stmt) == (1,)

    def test_reset_unprepared_is_ok(self, db):
        assert Statement(db).reset() == SQLITE_OK

    def test_step_unprepared_is_misuse(self, db):
        assert Statement(db).step() == SQLITE_MISUSE

    def test_finish_releases_handle(self, db):
        stmt = Statement(db, "SELECT 1")
        assert db.open_statement_count() == 1
        assert stmt.finish() == SQLITE_OK
        assert db.open_statement_count() == 0
        assert stmt.finish() == SQLITE_OK
        assert stmt.tail == ""

    def test_context_manager_finishes(self, db):
        with Statement(db, "SELECT 1") as stmt:
            assert stmt.handle is not None
        assert stmt.handle is None
        assert db.open_statement_count() == 0

    def test_collected_statement_is_finalized(self, db):
        stmt = Statement(db, "SELECT 1")
        assert db.open_statement_count() == 1
        del stmt
        gc.collect()
        assert db.open_statement_count() == 0

    def test_finish_after_disconnect(self):
        conn = Connection(":memory:")
        stmt = Statement(conn, "SELECT 1")
        assert conn.disconnect() == SQLITE_OK
        assert not conn.connected
        assert stmt.finish() == SQLITE_OK


class TestBind:
    def test_bind_each_storage_class(self, db):
        stmt = Statement(db, "SELECT ?, ?, ?, ?, ?, ?")
        for index, value in enumerate([42, 2.5, "text", b"\x00\x01", None, True], start=1):
            assert stmt.bind(index, value) == SQLITE_OK
        assert _fetch_one(stmt) == (42, 2.5, "text", b"\x00\x01", None, 1)

    def test_bind_null_sentinel(self, db):
        stmt = Statement(db, "SELECT ?")
        assert stmt.bind(1, NULL) == SQLITE_OK
        assert _fetch_one(stmt) == (None,)

    def test_bind_copied_buffer(self, db):
        stmt = Statement(db, "SELECT ?, ?")
        payload = bytearray(b"abc")
        assert stmt.bind(1, "copied", static=False) == SQLITE_OK
        assert stmt.bind(2, payload, static=False) == SQLITE_OK
        payload[0] = ord("z")
        assert _fetch_one(stmt) == ("copied", b"abc")

    def test_bind_by_name(self, db):
        stmt = Statement(db, "SELECT :a, @b, $c")
        assert stmt.bind(":a", 1) == SQLITE_OK
        assert stmt.bind("@b", "two") == SQLITE_OK
        assert stmt.bind("$c", 3.0) == SQLITE_OK
        assert _fetch_one(stmt) == (1, "two", 3.0)

    def test_bind_out_of_range_returns_code(self, db):
        stmt = Statement(db, "SELECT ?")
        assert stmt.bind(5, 1) == SQLITE_RANGE
        assert stmt.bind(":missing", 1) == SQLITE_RANGE

    def test_bind_unprepared_is_misuse(self, db):
        assert Statement(db).bind(1, 1) == SQLITE_MISUSE

    def test_bind_unsupported_type(self, db):
        stmt = Statement(db, "SELECT ?")
        with pytest.raises(TypeError, match="unsupported parameter type"):
            stmt.bind(1, object())

    def test_reset_keeps_bindings(self, db):
        stmt = Statement(db, "SELECT ?")
        stmt.bind(1, 7)
        assert _fetch_one(stmt) == (7,)
        stmt.reset()
        assert _fetch_one(stmt) == (7,)

    def test_clear_bindings(self, db):
        stmt = Statement(db, "SELECT ?")
        stmt.bind(1, "gone")
        assert stmt.clear_bindings() == SQLITE_OK
        assert _fetch_one(stmt) == (None,)

    def test_parameter_introspection(self, db):
        stmt = Statement(db, "SELECT :a, ?, @b")
        assert stmt.parameter_count == 3
        assert stmt.parameter_index(":a") == 1
        assert stmt.parameter_index("@b") == 3
        assert stmt.parameter_index(":nope") == 0
        assert stmt.parameter_name(1) == ":a"
        assert stmt.parameter_name(2) is None
