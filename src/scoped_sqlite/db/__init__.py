"""Resource-scoped access to SQLite: connections, statements, rows, transactions."""

from scoped_sqlite.db.command import BindStream, Command
from scoped_sqlite.db.connection import Connection
from scoped_sqlite.db.errors import (
    BusyError,
    ConstraintError,
    DatabaseError,
    MisuseError,
    StaleRowError,
)
from scoped_sqlite.db.native import (
    SQLITE_BUSY,
    SQLITE_CONSTRAINT,
    SQLITE_DENY,
    SQLITE_DONE,
    SQLITE_ERROR,
    SQLITE_IGNORE,
    SQLITE_MISUSE,
    SQLITE_OK,
    SQLITE_OPEN_CREATE,
    SQLITE_OPEN_MEMORY,
    SQLITE_OPEN_READONLY,
    SQLITE_OPEN_READWRITE,
    SQLITE_OPEN_URI,
    SQLITE_RANGE,
    SQLITE_ROW,
    sqlite_version,
)
from scoped_sqlite.db.query import Query, QueryIterator
from scoped_sqlite.db.row import GetStream, Row
from scoped_sqlite.db.statement import Statement, StatementState
from scoped_sqlite.db.transaction import Transaction

__all__ = [
    "SQLITE_BUSY",
    "SQLITE_CONSTRAINT",
    "SQLITE_DENY",
    "SQLITE_DONE",
    "SQLITE_ERROR",
    "SQLITE_IGNORE",
    "SQLITE_MISUSE",
    "SQLITE_OK",
    "SQLITE_OPEN_CREATE",
    "SQLITE_OPEN_MEMORY",
    "SQLITE_OPEN_READONLY",
    "SQLITE_OPEN_READWRITE",
    "SQLITE_OPEN_URI",
    "SQLITE_RANGE",
    "SQLITE_ROW",
    "BindStream",
    "BusyError",
    "Command",
    "Connection",
    "ConstraintError",
    "DatabaseError",
    "GetStream",
    "MisuseError",
    "Query",
    "QueryIterator",
    "Row",
    "StaleRowError",
    "Statement",
    "StatementState",
    "Transaction",
    "sqlite_version",
]
