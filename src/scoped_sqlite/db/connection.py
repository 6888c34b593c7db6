"""Database connection: native handle ownership, hooks, and one-shot execution."""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Callable
from pathlib import Path
from types import TracebackType
from typing import Any

from scoped_sqlite.config import get_busy_timeout_ms
from scoped_sqlite.db.errors import DatabaseError, MisuseError
from scoped_sqlite.db.native import (
    SQLITE_DENY,
    SQLITE_MISUSE,
    SQLITE_NOMEM,
    SQLITE_OK,
    SQLITE_OPEN_CREATE,
    SQLITE_OPEN_READWRITE,
    encode,
    errstr,
    ffi,
    lib,
    to_str,
)

logger = logging.getLogger(__name__)

BusyHandler = Callable[[int], bool | int]
CommitHandler = Callable[[], bool | int]
RollbackHandler = Callable[[], None]
UpdateHandler = Callable[[int, str, str, int], None]
AuthorizeHandler = Callable[[int, str | None, str | None, str | None, str | None], int]

# printf-style conversions understood by sqlite3_mprintf
_CONVERSION_RE = re.compile(r"%([-+ 0#!,]*)(\*|\d+)?(?:\.(\*|\d+))?(ll|l)?([a-zA-Z%])")
_INTEGER_TYPES = {None: "int", "l": "long", "ll": "long long"}
_UNSIGNED_TYPES = {None: "unsigned int", "l": "unsigned long", "ll": "unsigned long long"}


def _log_hook_error(
    exc_type: type[BaseException], exc_value: BaseException, tb: TracebackType | None
) -> None:
    """Report an exception raised inside a hook closure; it cannot cross the C boundary."""
    logger.error("Hook closure raised", exc_info=(exc_type, exc_value, tb))


def _mprintf_args(fmt: str, args: tuple[Any, ...]) -> list[Any]:
    """Convert Python arguments to the C types the conversions in ``fmt`` expect."""
    remaining = list(args)
    c_args: list[Any] = []

    def take() -> Any:
        if not remaining:
            raise TypeError("not enough arguments for format string")
        return remaining.pop(0)

    for match in _CONVERSION_RE.finditer(fmt):
        _flags, width, precision, length, conversion = match.groups()
        if conversion == "%":
            continue
        if width == "*":
            c_args.append(ffi.cast("int", int(take())))
        if precision == "*":
            c_args.append(ffi.cast("int", int(take())))
        if conversion in "dic":
            c_args.append(ffi.cast(_INTEGER_TYPES[length], int(take())))
        elif conversion in "uxXo":
            c_args.append(ffi.cast(_UNSIGNED_TYPES[length], int(take())))
        elif conversion in "feEgG":
            c_args.append(ffi.cast("double", float(take())))
        elif conversion in "sqQw":
            arg = take()
            c_args.append(ffi.NULL if arg is None else ffi.new("char[]", encode(str(arg))))
        else:
            raise ValueError(f"unsupported format conversion %{conversion}")
    if remaining:
        raise TypeError("not all arguments converted during string formatting")
    return c_args


class Connection:
    """Owner of one native database handle.

    Statements, queries and transactions borrow a Connection for their whole
    lifetime. Hook closures registered here run synchronously, on the calling
    thread, from inside whichever engine call triggered them.
    """

    def __init__(self, name: str | Path | None = None) -> None:
        """Create a connection, opening ``name`` immediately when given."""
        self._handle: Any = None
        self._callbacks: dict[str, Any] = {}
        self._handlers: dict[str, Callable[..., Any]] = {}
        if name is not None:
            rc = self.connect(name)
            if rc != SQLITE_OK:
                error = DatabaseError.from_connection(self)
                self.disconnect()
                raise error

    def __del__(self) -> None:
        if getattr(self, "_handle", None) is not None:
            self.disconnect()

    def __enter__(self) -> Connection:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.disconnect()

    # -- Lifecycle --

    @property
    def connected(self) -> bool:
        """True while a native handle is held."""
        return self._handle is not None

    @property
    def handle(self) -> Any:
        """The native ``sqlite3*`` handle, or None when disconnected."""
        return self._handle

    def connect(self, name: str | Path) -> int:
        """Open ``name`` with ``sqlite3_open``, releasing any handle held before."""
        self.disconnect()
        handle_out = ffi.new("sqlite3 **")
        rc = lib.sqlite3_open(encode(os.fspath(name)), handle_out)
        return self._adopt(handle_out[0], rc, name)

    def connect_v2(
        self,
        name: str | Path,
        flags: int = SQLITE_OPEN_READWRITE | SQLITE_OPEN_CREATE,
        vfs: str | None = None,
    ) -> int:
        """Open ``name`` with explicit open flags and an optional VFS name."""
        self.disconnect()
        handle_out = ffi.new("sqlite3 **")
        vfs_name = ffi.NULL if vfs is None else encode(vfs)
        rc = lib.sqlite3_open_v2(encode(os.fspath(name)), handle_out, flags, vfs_name)
        return self._adopt(handle_out[0], rc, name)

    def _adopt(self, handle: Any, rc: int, name: str | Path) -> int:
        # The engine allocates a handle even when opening fails; keep it so
        # error_msg() can explain the failure until disconnect() releases it.
        self._handle = handle if handle else None
        if rc != SQLITE_OK:
            logger.debug("Opening %s failed: %s", name, errstr(rc))
            return rc
        logger.debug("Opened database %s", name)
        timeout_ms = get_busy_timeout_ms()
        if timeout_ms > 0:
            self.set_busy_timeout(timeout_ms)
        return rc

    def disconnect(self) -> int:
        """Release the native handle. A no-op when already disconnected."""
        if self._handle is None:
            return SQLITE_OK
        # Statements still alive after close_v2 keep firing hooks
        self._unregister_hooks()
        rc = lib.sqlite3_close_v2(self._handle)
        if rc != SQLITE_OK:
            return rc
        self._handle = None
        logger.debug("Database connection closed")
        return rc

    def _unregister_hooks(self) -> None:
        handle = self._handle
        for category in list(self._callbacks):
            if category == "busy":
                lib.sqlite3_busy_handler(handle, ffi.NULL, ffi.NULL)
            elif category == "commit":
                lib.sqlite3_commit_hook(handle, ffi.NULL, ffi.NULL)
            elif category == "rollback":
                lib.sqlite3_rollback_hook(handle, ffi.NULL, ffi.NULL)
            elif category == "update":
                lib.sqlite3_update_hook(handle, ffi.NULL, ffi.NULL)
            elif category == "authorize":
                lib.sqlite3_set_authorizer(handle, ffi.NULL, ffi.NULL)
        self._callbacks.clear()
        self._handlers.clear()

    def _require_handle(self) -> Any:
        if self._handle is None:
            raise MisuseError("database is not connected", SQLITE_MISUSE)
        return self._handle

    # -- Engine state --

    def last_insert_rowid(self) -> int:
        """Rowid of the most recent successful INSERT on this connection."""
        return int(lib.sqlite3_last_insert_rowid(self._require_handle()))

    def changes(self) -> int:
        """Rows modified by the most recent INSERT, UPDATE or DELETE."""
        return int(lib.sqlite3_changes(self._require_handle()))

    def error_code(self) -> int:
        """Result code of the most recent failed engine call."""
        if self._handle is None:
            return SQLITE_MISUSE
        return int(lib.sqlite3_errcode(self._handle))

    def extended_error_code(self) -> int:
        """Extended result code of the most recent failed engine call."""
        if self._handle is None:
            return SQLITE_MISUSE
        return int(lib.sqlite3_extended_errcode(self._handle))

    def error_msg(self) -> str:
        """English message for the most recent failed engine call."""
        if self._handle is None:
            return "database is not connected"
        return to_str(lib.sqlite3_errmsg(self._handle)) or ""

    @property
    def in_transaction(self) -> bool:
        """True when a BEGIN is open (the engine is not in autocommit mode)."""
        return not lib.sqlite3_get_autocommit(self._require_handle())

    def open_statement_count(self) -> int:
        """Number of prepared statements not yet finalized on this connection."""
        count = 0
        stmt = lib.sqlite3_next_stmt(self._require_handle(), ffi.NULL)
        while stmt:
            count += 1
            stmt = lib.sqlite3_next_stmt(self._handle, stmt)
        return count

    # -- Execution --

    def execute(self, sql: str | bytes) -> int:
        """Run every statement in ``sql`` to completion, discarding rows."""
        if self._handle is None:
            return SQLITE_MISUSE
        return int(lib.sqlite3_exec(self._handle, encode(sql), ffi.NULL, ffi.NULL, ffi.NULL))

    def executef(self, fmt: str, *args: Any) -> int:
        """Format ``fmt`` with the engine's printf, then execute the result.

        Supports the engine's SQL-quoting conversions: ``%q`` doubles single
        quotes, ``%Q`` also wraps in quotes and renders None as NULL, ``%w``
        doubles double quotes for identifiers.
        """
        if self._handle is None:
            return SQLITE_MISUSE
        c_args = _mprintf_args(fmt, args)
        formatted = lib.sqlite3_mprintf(encode(fmt), *c_args)
        if not formatted:
            return SQLITE_NOMEM
        try:
            return int(lib.sqlite3_exec(self._handle, formatted, ffi.NULL, ffi.NULL, ffi.NULL))
        finally:
            lib.sqlite3_free(formatted)

    def attach(self, name: str | Path, alias: str) -> int:
        """Attach another database file under ``alias``."""
        return self.executef("ATTACH %Q AS %Q", os.fspath(name), alias)

    def detach(self, alias: str) -> int:
        """Detach a previously attached database."""
        return self.executef("DETACH %Q", alias)

    def set_busy_timeout(self, ms: int) -> int:
        """Wait up to ``ms`` milliseconds on locks. Replaces any busy handler."""
        if self._handle is None:
            return SQLITE_MISUSE
        rc = int(lib.sqlite3_busy_timeout(self._handle, ms))
        self._callbacks.pop("busy", None)
        self._handlers.pop("busy", None)
        return rc

    # -- Hooks --

    def _install(self, category: str, handler: Callable[..., Any] | None, callback: Any) -> None:
        # Called after the engine points at the new trampoline, so the old
        # one is only dropped once nothing can call it.
        if handler is None:
            self._callbacks.pop(category, None)
            self._handlers.pop(category, None)
            return
        self._callbacks[category] = callback
        self._handlers[category] = handler

    def set_busy_handler(self, handler: BusyHandler | None) -> None:
        """Call ``handler(count)`` on lock contention; truthy means retry."""
        handle = self._require_handle()
        callback = ffi.NULL
        if handler is not None:

            def busy(_arg: Any, count: int) -> int:
                return 1 if handler(count) else 0

            callback = ffi.callback("int(void*, int)", busy, error=0, onerror=_log_hook_error)
        lib.sqlite3_busy_handler(handle, callback, ffi.NULL)
        self._install("busy", handler, callback)

    def set_commit_handler(self, handler: CommitHandler | None) -> None:
        """Call ``handler()`` before each commit; truthy turns it into a rollback."""
        handle = self._require_handle()
        callback = ffi.NULL
        if handler is not None:

            def commit(_arg: Any) -> int:
                return 1 if handler() else 0

            callback = ffi.callback("int(void*)", commit, error=1, onerror=_log_hook_error)
        lib.sqlite3_commit_hook(handle, callback, ffi.NULL)
        self._install("commit", handler, callback)

    def set_rollback_handler(self, handler: RollbackHandler | None) -> None:
        """Call ``handler()`` after each rollback."""
        handle = self._require_handle()
        callback = ffi.NULL
        if handler is not None:

            def rollback(_arg: Any) -> None:
                handler()

            callback = ffi.callback("void(void*)", rollback, onerror=_log_hook_error)
        lib.sqlite3_rollback_hook(handle, callback, ffi.NULL)
        self._install("rollback", handler, callback)

    def set_update_handler(self, handler: UpdateHandler | None) -> None:
        """Call ``handler(action, database, table, rowid)`` for each changed rowid-table row."""
        handle = self._require_handle()
        callback = ffi.NULL
        if handler is not None:

            def update(_arg: Any, action: int, database: Any, table: Any, rowid: int) -> None:
                handler(action, to_str(database) or "", to_str(table) or "", int(rowid))

            callback = ffi.callback(
                "void(void*, int, const char*, const char*, sqlite3_int64)",
                update,
                onerror=_log_hook_error,
            )
        lib.sqlite3_update_hook(handle, callback, ffi.NULL)
        self._install("update", handler, callback)

    def set_authorize_handler(self, handler: AuthorizeHandler | None) -> None:
        """Call ``handler(action, arg1, arg2, database, source)`` while statements compile.

        The handler returns SQLITE_OK, SQLITE_DENY or SQLITE_IGNORE.
        """
        handle = self._require_handle()
        callback = ffi.NULL
        if handler is not None:

            def authorize(
                _arg: Any, action: int, arg1: Any, arg2: Any, database: Any, source: Any
            ) -> int:
                return int(
                    handler(action, to_str(arg1), to_str(arg2), to_str(database), to_str(source))
                )

            callback = ffi.callback(
                "int(void*, int, const char*, const char*, const char*, const char*)",
                authorize,
                error=SQLITE_DENY,
                onerror=_log_hook_error,
            )
        lib.sqlite3_set_authorizer(handle, callback, ffi.NULL)
        self._install("authorize", handler, callback)

    # -- Extensions --

    def enable_load_extension(self, enabled: bool) -> None:
        """Allow or forbid loading extensions from shared libraries."""
        rc = lib.sqlite3_enable_load_extension(self._require_handle(), int(enabled))
        if rc != SQLITE_OK:
            raise DatabaseError.from_status(self, rc)

    def load_extension(self, path: str | Path, entry_point: str | None = None) -> None:
        """Load an extension library into this connection."""
        errmsg = ffi.new("char **")
        proc = ffi.NULL if entry_point is None else encode(entry_point)
        rc = lib.sqlite3_load_extension(
            self._require_handle(), encode(os.fspath(path)), proc, errmsg
        )
        if rc != SQLITE_OK:
            message = to_str(errmsg[0]) or errstr(rc)
            lib.sqlite3_free(errmsg[0])
            raise DatabaseError(message, rc)
        logger.debug("Loaded extension %s", path)
