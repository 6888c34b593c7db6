"""Exception types raised by the fail-fast paths of the wrapper."""

from __future__ import annotations

from typing import TYPE_CHECKING

from scoped_sqlite.db.native import (
    SQLITE_BUSY,
    SQLITE_CONSTRAINT,
    SQLITE_ERROR,
    SQLITE_LOCKED,
    SQLITE_MISUSE,
    SQLITE_RANGE,
    errstr,
)

if TYPE_CHECKING:
    from scoped_sqlite.db.connection import Connection


class DatabaseError(RuntimeError):
    """An engine failure, carrying the result code and message seen at raise time."""

    def __init__(self, message: str, code: int = SQLITE_ERROR) -> None:
        """Initialize with a message and an engine result code."""
        super().__init__(message)
        self.message = message
        self.code = code

    @classmethod
    def from_connection(cls, db: Connection) -> DatabaseError:
        """Snapshot the connection's current error code and message."""
        return error_for(db.error_code(), db.error_msg())

    @classmethod
    def from_status(cls, db: Connection, code: int) -> DatabaseError:
        """Build an error for ``code``, using the connection's message when it matches."""
        if db.error_code() == code:
            return cls.from_connection(db)
        return error_for(code, errstr(code))


class BusyError(DatabaseError):
    """The database or a table was locked by another connection."""


class ConstraintError(DatabaseError):
    """A constraint (UNIQUE, NOT NULL, CHECK, foreign key) was violated."""


class MisuseError(DatabaseError):
    """The API was called out of order or with an out-of-range argument."""


class StaleRowError(MisuseError):
    """A Row view was used after its statement stepped, reset or finished."""


_ERROR_CLASSES: dict[int, type[DatabaseError]] = {
    SQLITE_BUSY: BusyError,
    SQLITE_LOCKED: BusyError,
    SQLITE_CONSTRAINT: ConstraintError,
    SQLITE_MISUSE: MisuseError,
    SQLITE_RANGE: MisuseError,
}


def error_for(code: int, message: str) -> DatabaseError:
    """Instantiate the DatabaseError subclass matching a result code."""
    error_cls = _ERROR_CLASSES.get(code & 0xFF, DatabaseError)
    return error_cls(message, code)
