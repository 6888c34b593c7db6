"""Column storage classes and the typed coercion matrix.

A column value read from a row is a tagged variant: one of five storage
classes plus its payload. Typed extraction never depends on the engine's
own conversion routines; ``coerce`` spells out every (storage, kind) pair.
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Final, TypeVar

T = TypeVar("T")

INT64_MIN: Final[int] = -(2**63)
INT64_MAX: Final[int] = 2**63 - 1

_INT_PREFIX = re.compile(r"\s*([+-]?\d+)")
_REAL_PREFIX = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


class StorageClass(IntEnum):
    """Dynamic type of a stored value, numbered as the engine numbers them."""

    INTEGER = 1
    FLOAT = 2
    TEXT = 3
    BLOB = 4
    NULL = 5


class Null:
    """Type of the SQL NULL marker. There is exactly one instance, ``NULL``."""

    _instance: Null | None = None

    def __new__(cls) -> Null:
        """Return the shared instance."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NULL"

    def __bool__(self) -> bool:
        return False


NULL: Final[Null] = Null()


@dataclass(frozen=True)
class Value:
    """A column value tagged with its storage class."""

    storage: StorageClass
    payload: int | float | str | bytes | None = None

    @classmethod
    def of(cls, obj: Any) -> Value:
        """Tag a plain Python value with the storage class it binds as."""
        if obj is None or obj is NULL:
            return cls(StorageClass.NULL)
        if isinstance(obj, bool | int):
            return cls(StorageClass.INTEGER, int(obj))
        if isinstance(obj, float):
            return cls(StorageClass.FLOAT, obj)
        if isinstance(obj, str):
            return cls(StorageClass.TEXT, obj)
        if isinstance(obj, bytes | bytearray | memoryview):
            return cls(StorageClass.BLOB, bytes(obj))
        raise TypeError(f"no storage class for {type(obj).__name__}")

    @property
    def is_null(self) -> bool:
        """True for the NULL storage class."""
        return self.storage is StorageClass.NULL


def _clamp_int64(number: int) -> int:
    return max(INT64_MIN, min(INT64_MAX, number))


def _parse_int(text: str) -> int:
    """Leading integer prefix of ``text``, 0 when there is none."""
    match = _INT_PREFIX.match(text)
    if match is None:
        return 0
    return _clamp_int64(int(match.group(1)))


def _parse_real(text: str) -> float:
    """Leading real-number prefix of ``text``, 0.0 when there is none."""
    match = _REAL_PREFIX.match(text)
    if match is None:
        return 0.0
    return float(match.group(1))


def _real_to_int(number: float) -> int:
    if math.isnan(number):
        return 0
    if number >= 2.0**63:
        return INT64_MAX
    if number <= -(2.0**63):
        return INT64_MIN
    return int(number)


def format_real(number: float) -> str:
    """Render a float as text with 15 significant digits, always with a decimal point."""
    if math.isnan(number):
        return "NaN"
    if math.isinf(number):
        return "Inf" if number > 0 else "-Inf"
    mantissa, sep, exponent = f"{number:.15g}".partition("e")
    if "." not in mantissa:
        mantissa += ".0"
    return mantissa + sep + exponent


def _as_text(value: Value) -> str:
    payload = value.payload
    if isinstance(payload, bytes):
        return payload.decode("utf-8", errors="replace")
    return str(payload)


def _to_int(value: Value) -> int:
    storage = value.storage
    if storage is StorageClass.INTEGER:
        return int(value.payload)  # type: ignore[arg-type]
    if storage is StorageClass.FLOAT:
        return _real_to_int(float(value.payload))  # type: ignore[arg-type]
    if storage is StorageClass.NULL:
        return 0
    return _parse_int(_as_text(value))


def _to_float(value: Value) -> float:
    storage = value.storage
    if storage is StorageClass.INTEGER:
        return float(value.payload)  # type: ignore[arg-type]
    if storage is StorageClass.FLOAT:
        return float(value.payload)  # type: ignore[arg-type]
    if storage is StorageClass.NULL:
        return 0.0
    return _parse_real(_as_text(value))


def _to_str(value: Value) -> str | None:
    storage = value.storage
    if storage is StorageClass.NULL:
        return None
    if storage is StorageClass.FLOAT:
        return format_real(float(value.payload))  # type: ignore[arg-type]
    return _as_text(value)


def _to_bytes(value: Value) -> bytes | None:
    if value.storage is StorageClass.BLOB:
        return value.payload  # type: ignore[return-value]
    text = _to_str(value)
    if text is None:
        return None
    return text.encode("utf-8")


_CONVERTERS: dict[type, Callable[[Value], Any]] = {
    int: _to_int,
    float: _to_float,
    str: _to_str,
    bytes: _to_bytes,
}


def coerce(value: Value, kind: type[T]) -> T:
    """Convert a tagged column value to the requested Python type.

    ``kind`` is one of ``int``, ``float``, ``str``, ``bytes``, ``Null`` or
    ``Value``. Text and blob values convert to numbers through their leading
    numeric prefix (0 when there is none); NULL converts to 0, 0.0, or None
    for ``str`` and ``bytes``; any value requested as ``Null`` is ``NULL``.
    """
    if kind is Value:
        return value  # type: ignore[return-value]
    if kind is Null:
        return NULL  # type: ignore[return-value]
    converter = _CONVERTERS.get(kind)
    if converter is None:
        raise TypeError(f"unsupported column kind: {kind!r}")
    return converter(value)  # type: ignore[no-any-return]
