"""Statements run for their side effects."""

from __future__ import annotations

from typing import Any

from scoped_sqlite.db.errors import DatabaseError
from scoped_sqlite.db.native import SQLITE_DONE, SQLITE_OK, SQLITE_ROW
from scoped_sqlite.db.statement import Statement


class BindStream:
    """Fluent positional binder: ``cmd.binder() << 1 << "x"``.

    Each ``<<`` binds the next parameter index and raises DatabaseError on
    the first failure instead of returning a result code.
    """

    def __init__(self, cmd: Command, index: int) -> None:
        """Start binding ``cmd`` at parameter ``index``."""
        self._cmd = cmd
        self._index = index

    @property
    def index(self) -> int:
        """Parameter index the next ``<<`` binds."""
        return self._index

    def __lshift__(self, value: Any) -> BindStream:
        rc = self._cmd.bind(self._index, value)
        if rc != SQLITE_OK:
            raise DatabaseError.from_status(self._cmd.connection, rc)
        self._index += 1
        return self


class Command(Statement):
    """A statement executed for its effect (DDL, INSERT, UPDATE, DELETE)."""

    def binder(self, start: int = 1) -> BindStream:
        """Return a BindStream positioned at parameter ``start``."""
        return BindStream(self, start)

    def execute(self) -> int:
        """Step the statement to completion, discarding any rows.

        Returns SQLITE_OK when it ran to the end, else the engine's error code.
        """
        rc = self.step()
        while rc == SQLITE_ROW:
            rc = self.step()
        return SQLITE_OK if rc == SQLITE_DONE else rc

    def execute_all(self) -> int:
        """Execute the prepared statement, then every statement left in the tail.

        Each further statement is prepared in place of the previous one and
        executed in source order. Stops at the first failure and returns its
        code; bound parameters apply to the first statement only.
        """
        rc = self.execute()
        if rc != SQLITE_OK:
            return rc
        tail = self._tail
        while tail.strip():
            self.finish()
            rc = self._prepare_impl(tail)
            if rc != SQLITE_OK or self.handle is None:
                return rc
            rc = self.execute()
            if rc != SQLITE_OK:
                return rc
            tail = self._tail
        return rc
