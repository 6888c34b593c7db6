"""Prepared statement lifecycle: prepare, bind, step, reset, finish."""

from __future__ import annotations

import logging
from enum import StrEnum
from types import TracebackType
from typing import TYPE_CHECKING, Any

from scoped_sqlite.db.errors import DatabaseError
from scoped_sqlite.db.native import (
    SQLITE_DONE,
    SQLITE_MISUSE,
    SQLITE_OK,
    SQLITE_ROW,
    SQLITE_STATIC,
    SQLITE_TRANSIENT,
    encode,
    ffi,
    lib,
    to_str,
)
from scoped_sqlite.models.value import NULL

if TYPE_CHECKING:
    from scoped_sqlite.db.connection import Connection

logger = logging.getLogger(__name__)


class StatementState(StrEnum):
    """Where a statement is in its prepare/step cycle."""

    UNPREPARED = "unprepared"
    PREPARED = "prepared"
    STEPPING = "stepping"
    EXHAUSTED = "exhausted"


class Statement:
    """Owner of at most one prepared native statement.

    The handle is finalized exactly once: by ``finish()``, by leaving a
    ``with`` block, by a later ``prepare()``, or when the object is collected.
    Engine failures from ``bind``, ``step`` and ``reset`` come back as result
    codes; ``prepare`` raises DatabaseError.
    """

    def __init__(self, db: Connection, sql: str | bytes | None = None) -> None:
        """Borrow ``db`` and prepare ``sql`` when given."""
        self._db = db
        self._stmt: Any = None
        self._tail = b""
        self._pinned: dict[int, Any] = {}
        self._state = StatementState.UNPREPARED
        self._generation = 0
        if sql is not None:
            self.prepare(sql)

    def __del__(self) -> None:
        stmt = getattr(self, "_stmt", None)
        if stmt is not None:
            self._stmt = None
            lib.sqlite3_finalize(stmt)

    def __enter__(self) -> Statement:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.finish()

    # -- Introspection --

    @property
    def connection(self) -> Connection:
        """The borrowed connection."""
        return self._db

    @property
    def handle(self) -> Any:
        """The native ``sqlite3_stmt*``, or None when unprepared."""
        return self._stmt

    @property
    def state(self) -> StatementState:
        """Current lifecycle state."""
        return self._state

    @property
    def generation(self) -> int:
        """Counter bumped by every step, reset, prepare and finish."""
        return self._generation

    @property
    def tail(self) -> str:
        """Source text left unparsed by the last prepare."""
        return self._tail.decode("utf-8", errors="replace")

    @property
    def sql(self) -> str | None:
        """Text of the prepared statement."""
        if self._stmt is None:
            return None
        return to_str(lib.sqlite3_sql(self._stmt))

    # -- Lifecycle --

    def prepare(self, sql: str | bytes) -> int:
        """Compile the leading statement of ``sql``, finishing any held handle first.

        The unparsed remainder is kept as the tail. Raises DatabaseError on
        failure, leaving the statement unprepared.
        """
        self.finish()
        rc = self._prepare_impl(sql)
        if rc != SQLITE_OK:
            raise DatabaseError.from_status(self._db, rc)
        return rc

    def _prepare_impl(self, sql: str | bytes) -> int:
        handle = self._db.handle
        if handle is None:
            return SQLITE_MISUSE
        encoded = encode(sql)
        source = ffi.new("char[]", encoded)
        stmt_out = ffi.new("sqlite3_stmt **")
        tail_out = ffi.new("const char **")
        rc = lib.sqlite3_prepare_v2(handle, source, len(encoded), stmt_out, tail_out)
        if rc != SQLITE_OK:
            return rc
        self._tail = ffi.string(tail_out[0]) if tail_out[0] else b""
        if not stmt_out[0]:
            # Only whitespace or comments: the engine succeeds without a statement
            return rc
        self._stmt = stmt_out[0]
        self._state = StatementState.PREPARED
        self._generation += 1
        logger.debug("Prepared statement: %s", self.sql)
        return rc

    def finish(self) -> int:
        """Finalize the native statement. A no-op when nothing is prepared."""
        rc = SQLITE_OK
        if self._stmt is not None:
            stmt, self._stmt = self._stmt, None
            rc = lib.sqlite3_finalize(stmt)
            logger.debug("Finalized statement")
        self._tail = b""
        self._pinned.clear()
        self._state = StatementState.UNPREPARED
        self._generation += 1
        return int(rc)

    def step(self) -> int:
        """Advance the cursor: SQLITE_ROW, SQLITE_DONE, or an error code."""
        if self._stmt is None:
            return SQLITE_MISUSE
        rc = lib.sqlite3_step(self._stmt)
        self._generation += 1
        if rc == SQLITE_ROW:
            self._state = StatementState.STEPPING
        elif rc == SQLITE_DONE:
            self._state = StatementState.EXHAUSTED
        return int(rc)

    def reset(self) -> int:
        """Rewind to just after prepare. Bound values are kept."""
        if self._stmt is None:
            return SQLITE_OK
        rc = lib.sqlite3_reset(self._stmt)
        self._state = StatementState.PREPARED
        self._generation += 1
        return int(rc)

    # -- Parameters --

    @property
    def parameter_count(self) -> int:
        """Largest parameter index in the statement."""
        if self._stmt is None:
            return 0
        return int(lib.sqlite3_bind_parameter_count(self._stmt))

    def parameter_index(self, name: str) -> int:
        """Index of a named parameter (``:a``, ``@a``, ``$a``), 0 when unknown."""
        if self._stmt is None:
            return 0
        return int(lib.sqlite3_bind_parameter_index(self._stmt, encode(name)))

    def parameter_name(self, index: int) -> str | None:
        """Name of the parameter at ``index``, None for nameless ``?`` parameters."""
        if self._stmt is None:
            return None
        return to_str(lib.sqlite3_bind_parameter_name(self._stmt, index))

    def bind(self, param: int | str, value: Any = None, *, static: bool = True) -> int:
        """Bind ``value`` to a 1-based index or a parameter name.

        None and NULL bind SQL NULL; bool and int bind 64-bit integers; float
        binds a double; str binds UTF-8 text; bytes-like values bind a blob.
        With ``static`` the engine reads the buffer in place and the statement
        keeps it alive; otherwise the engine copies it. Returns the engine's
        result code, e.g. SQLITE_RANGE for an unknown index or name.
        """
        if isinstance(param, str):
            return self.bind(self.parameter_index(param), value, static=static)
        if self._stmt is None:
            return SQLITE_MISUSE
        if value is None or value is NULL:
            rc = lib.sqlite3_bind_null(self._stmt, param)
        elif isinstance(value, bool | int):
            rc = lib.sqlite3_bind_int64(self._stmt, param, int(value))
        elif isinstance(value, float):
            rc = lib.sqlite3_bind_double(self._stmt, param, value)
        elif isinstance(value, str):
            return self._bind_buffer(lib.sqlite3_bind_text, param, value.encode("utf-8"), static)
        elif isinstance(value, bytes | bytearray | memoryview):
            return self._bind_buffer(lib.sqlite3_bind_blob, param, bytes(value), static)
        else:
            raise TypeError(f"unsupported parameter type: {type(value).__name__}")
        if rc == SQLITE_OK:
            self._pinned.pop(param, None)
        return int(rc)

    def _bind_buffer(self, bind_fn: Any, index: int, data: bytes, static: bool) -> int:
        buffer = ffi.new("char[]", data)
        destructor = SQLITE_STATIC if static else SQLITE_TRANSIENT
        rc = bind_fn(self._stmt, index, buffer, len(data), destructor)
        if rc == SQLITE_OK:
            if static:
                self._pinned[index] = buffer
            else:
                self._pinned.pop(index, None)
        return int(rc)

    def clear_bindings(self) -> int:
        """Set every parameter back to NULL."""
        if self._stmt is None:
            return SQLITE_OK
        rc = lib.sqlite3_clear_bindings(self._stmt)
        self._pinned.clear()
        return int(rc)
