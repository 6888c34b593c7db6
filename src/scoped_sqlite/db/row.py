"""Row views over a statement's current cursor position."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, TypeVar

from scoped_sqlite.db.errors import StaleRowError
from scoped_sqlite.db.native import ffi, lib, to_str
from scoped_sqlite.db.statement import StatementState
from scoped_sqlite.models.value import StorageClass, Value, coerce

if TYPE_CHECKING:
    from scoped_sqlite.db.statement import Statement

T = TypeVar("T")


class Row:
    """Non-owning view of the row a statement is positioned on.

    A Row reads the engine's column buffers directly, so it is valid only
    until its statement steps, resets or finishes. Using it after that raises
    StaleRowError. Column indices are 0-based and bounds-checked.
    """

    def __init__(self, statement: Statement) -> None:
        """Bind the view to the statement's current generation."""
        self._statement = statement
        self._generation = statement.generation

    def _handle(self) -> Any:
        statement = self._statement
        if (
            statement.generation != self._generation
            or statement.state is not StatementState.STEPPING
        ):
            raise StaleRowError("row is no longer current; the statement has moved on")
        return statement.handle

    def _checked(self, idx: int) -> Any:
        handle = self._handle()
        count = lib.sqlite3_data_count(handle)
        if not 0 <= idx < count:
            raise IndexError(f"column index {idx} out of range (0..{count - 1})")
        return handle

    @property
    def valid(self) -> bool:
        """True while the view still refers to the statement's current row."""
        return (
            self._statement.generation == self._generation
            and self._statement.state is StatementState.STEPPING
        )

    def data_count(self) -> int:
        """Number of columns in the current row."""
        return int(lib.sqlite3_data_count(self._handle()))

    def __len__(self) -> int:
        return self.data_count()

    def column_type(self, idx: int) -> StorageClass:
        """Storage class of the value in column ``idx``."""
        return StorageClass(lib.sqlite3_column_type(self._checked(idx), idx))

    def column_bytes(self, idx: int) -> int:
        """Size in bytes of the text or blob in column ``idx``."""
        return int(lib.sqlite3_column_bytes(self._checked(idx), idx))

    def value(self, idx: int) -> Value:
        """The tagged value stored in column ``idx``."""
        handle = self._checked(idx)
        storage = StorageClass(lib.sqlite3_column_type(handle, idx))
        if storage is StorageClass.INTEGER:
            return Value(storage, int(lib.sqlite3_column_int64(handle, idx)))
        if storage is StorageClass.FLOAT:
            return Value(storage, float(lib.sqlite3_column_double(handle, idx)))
        if storage is StorageClass.TEXT:
            # Fetch the pointer before the size, as the engine requires
            text = lib.sqlite3_column_text(handle, idx)
            size = lib.sqlite3_column_bytes(handle, idx)
            raw = ffi.buffer(text, size)[:] if size else b""
            return Value(storage, raw.decode("utf-8", errors="replace"))
        if storage is StorageClass.BLOB:
            blob = lib.sqlite3_column_blob(handle, idx)
            size = lib.sqlite3_column_bytes(handle, idx)
            return Value(storage, ffi.buffer(blob, size)[:] if size else b"")
        return Value(StorageClass.NULL)

    def get(self, idx: int, kind: type[T] = Value) -> T:  # type: ignore[assignment]
        """Column ``idx`` converted to ``kind`` (int, float, str, bytes, Null or Value)."""
        return coerce(self.value(idx), kind)

    def get_columns(self, *columns: tuple[type, int]) -> tuple[Any, ...]:
        """Extract several columns at once from ``(kind, index)`` pairs.

        Indices are independent of each other: any order, repeats allowed.
        """
        if not columns:
            raise ValueError("get_columns needs at least one (kind, index) pair")
        return tuple(self.get(idx, kind) for kind, idx in columns)

    def getter(self, start: int = 0) -> GetStream:
        """Return a GetStream reading successive columns from ``start``."""
        return GetStream(self, start)

    # -- Mapping-style access --

    def keys(self) -> list[str]:
        """Column names, in order."""
        handle = self._handle()
        return [
            to_str(lib.sqlite3_column_name(handle, i)) or ""
            for i in range(lib.sqlite3_data_count(handle))
        ]

    def __getitem__(self, key: int | str) -> Any:
        """Natural Python value of a column, by position or by name."""
        if isinstance(key, str):
            try:
                key = self.keys().index(key)
            except ValueError:
                raise KeyError(key) from None
        return self.value(key).payload

    def as_tuple(self) -> tuple[Any, ...]:
        """All column values as natural Python values."""
        return tuple(self.value(i).payload for i in range(self.data_count()))

    def as_dict(self) -> dict[str, Any]:
        """Column names mapped to natural Python values."""
        return dict(zip(self.keys(), self.as_tuple(), strict=True))


class GetStream:
    """Reads successive columns of a Row, one column per pull.

    ``stream.pull(int)`` returns the value; ``stream >> int >> str`` collects
    the values into ``stream.values``.
    """

    def __init__(self, row: Row, index: int) -> None:
        """Start reading ``row`` at column ``index``."""
        self._row = row
        self._index = index
        self.values: list[Any] = []

    @property
    def index(self) -> int:
        """Column the next pull reads."""
        return self._index

    def pull(self, kind: type[T]) -> T:
        """Read the next column as ``kind`` and advance."""
        value = self._row.get(self._index, kind)
        self._index += 1
        return value

    def __rshift__(self, kind: type) -> GetStream:
        self.values.append(self.pull(kind))
        return self
