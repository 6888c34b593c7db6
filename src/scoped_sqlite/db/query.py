"""Statements run for their result rows, and the forward-only iterator over them."""

from __future__ import annotations

from scoped_sqlite.db.errors import DatabaseError, MisuseError
from scoped_sqlite.db.native import SQLITE_DONE, SQLITE_MISUSE, SQLITE_ROW, lib, to_str
from scoped_sqlite.db.row import Row
from scoped_sqlite.db.statement import Statement, StatementState
from scoped_sqlite.models.column import ColumnInfo


class Query(Statement):
    """A statement stepped for its rows.

    ``for row in query`` yields Row views into the query's live cursor; each
    view expires when the loop advances.
    """

    def column_count(self) -> int:
        """Number of result columns, available before the first step."""
        if self._stmt is None:
            return 0
        return int(lib.sqlite3_column_count(self._stmt))

    def _check_column(self, idx: int) -> None:
        count = self.column_count()
        if not 0 <= idx < count:
            raise IndexError(f"column index {idx} out of range (0..{count - 1})")

    def column_name(self, idx: int) -> str:
        """Name of result column ``idx`` (its AS alias when given)."""
        self._check_column(idx)
        return to_str(lib.sqlite3_column_name(self._stmt, idx)) or ""

    def column_decltype(self, idx: int) -> str | None:
        """Declared type of the table column behind result column ``idx``, if any."""
        self._check_column(idx)
        return to_str(lib.sqlite3_column_decltype(self._stmt, idx))

    def columns(self) -> list[ColumnInfo]:
        """Metadata for every result column."""
        return [
            ColumnInfo(index=i, name=self.column_name(i), decltype=self.column_decltype(i))
            for i in range(self.column_count())
        ]

    def begin(self) -> QueryIterator:
        """Iterator positioned on the first row (or at the end when there are none)."""
        return QueryIterator(self)

    def end(self) -> QueryIterator:
        """The end-position iterator. Does not touch the engine."""
        return QueryIterator()

    def __iter__(self) -> QueryIterator:
        return self.begin()


class QueryIterator:
    """Single-pass cursor over a Query.

    Constructing one over a query steps it to the first row. ``advance()``
    steps again; ``current()`` returns a Row view of the live position.
    Two iterators are equal when both are at the end, or both reference the
    same query at the same step.
    """

    def __init__(self, query: Query | None = None) -> None:
        """Step ``query`` to its first row; without a query, build the end iterator."""
        self._query = query
        self._generation = -1
        self._yielded = False
        if query is not None:
            if query.state in (StatementState.STEPPING, StatementState.EXHAUSTED):
                query.reset()
            self._step()

    def _step(self) -> None:
        query = self._query
        if query is None:
            return
        rc = query.step()
        if rc == SQLITE_ROW:
            self._generation = query.generation
            return
        self._query = None
        if rc != SQLITE_DONE:
            raise DatabaseError.from_status(query.connection, rc)

    @property
    def at_end(self) -> bool:
        """True once the query reported no more rows."""
        return self._query is None

    def advance(self) -> QueryIterator:
        """Step to the next row. A no-op at the end."""
        if self._query is not None:
            self._step()
        self._yielded = False
        return self

    def current(self) -> Row:
        """Row view of the current position."""
        if self._query is None:
            raise MisuseError("iterator is at the end of the result set", SQLITE_MISUSE)
        return Row(self._query)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, QueryIterator):
            return NotImplemented
        if self._query is None or other._query is None:
            return self._query is other._query
        return self._query is other._query and self._generation == other._generation

    __hash__ = None  # type: ignore[assignment]

    def __iter__(self) -> QueryIterator:
        return self

    def __next__(self) -> Row:
        if self._yielded:
            self.advance()
        if self._query is None:
            raise StopIteration
        self._yielded = True
        return self.current()
