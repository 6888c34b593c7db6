"""cffi declarations for the SQLite C API and shared-library loading.

The engine is reached in cffi ABI mode: the declarations below are parsed
at import time and resolved against the system ``libsqlite3`` with
``ffi.dlopen``. Nothing is compiled at install time.
"""

from __future__ import annotations

import ctypes.util
import logging
from typing import Any

from cffi import FFI

from scoped_sqlite.config import get_library_path

logger = logging.getLogger(__name__)

_CDEF = """
typedef struct sqlite3 sqlite3;
typedef struct sqlite3_stmt sqlite3_stmt;
typedef long long sqlite3_int64;
typedef void (*sqlite3_destructor_type)(void*);

const char *sqlite3_libversion(void);
const char *sqlite3_errstr(int);

int sqlite3_open(const char *filename, sqlite3 **ppDb);
int sqlite3_open_v2(const char *filename, sqlite3 **ppDb, int flags, const char *zVfs);
int sqlite3_close_v2(sqlite3 *db);

int sqlite3_errcode(sqlite3 *db);
int sqlite3_extended_errcode(sqlite3 *db);
const char *sqlite3_errmsg(sqlite3 *db);
sqlite3_int64 sqlite3_last_insert_rowid(sqlite3 *db);
int sqlite3_changes(sqlite3 *db);
int sqlite3_get_autocommit(sqlite3 *db);
sqlite3_stmt *sqlite3_next_stmt(sqlite3 *db, sqlite3_stmt *pStmt);

int sqlite3_exec(sqlite3 *db, const char *sql,
                 int (*callback)(void*, int, char**, char**), void *arg, char **errmsg);
char *sqlite3_mprintf(const char *fmt, ...);
void sqlite3_free(void *p);

int sqlite3_busy_timeout(sqlite3 *db, int ms);
int sqlite3_busy_handler(sqlite3 *db, int (*handler)(void*, int), void *arg);
void *sqlite3_commit_hook(sqlite3 *db, int (*hook)(void*), void *arg);
void *sqlite3_rollback_hook(sqlite3 *db, void (*hook)(void*), void *arg);
void *sqlite3_update_hook(sqlite3 *db,
                          void (*hook)(void*, int, const char*, const char*, sqlite3_int64),
                          void *arg);
int sqlite3_set_authorizer(sqlite3 *db,
                           int (*auth)(void*, int, const char*, const char*,
                                       const char*, const char*),
                           void *arg);

int sqlite3_enable_load_extension(sqlite3 *db, int onoff);
int sqlite3_load_extension(sqlite3 *db, const char *zFile, const char *zProc, char **pzErrMsg);

int sqlite3_prepare_v2(sqlite3 *db, const char *zSql, int nByte,
                       sqlite3_stmt **ppStmt, const char **pzTail);
int sqlite3_finalize(sqlite3_stmt *pStmt);
int sqlite3_step(sqlite3_stmt *pStmt);
int sqlite3_reset(sqlite3_stmt *pStmt);
int sqlite3_clear_bindings(sqlite3_stmt *pStmt);
const char *sqlite3_sql(sqlite3_stmt *pStmt);

int sqlite3_bind_parameter_count(sqlite3_stmt *pStmt);
int sqlite3_bind_parameter_index(sqlite3_stmt *pStmt, const char *zName);
const char *sqlite3_bind_parameter_name(sqlite3_stmt *pStmt, int idx);
int sqlite3_bind_null(sqlite3_stmt *pStmt, int idx);
int sqlite3_bind_int64(sqlite3_stmt *pStmt, int idx, sqlite3_int64 value);
int sqlite3_bind_double(sqlite3_stmt *pStmt, int idx, double value);
int sqlite3_bind_text(sqlite3_stmt *pStmt, int idx, const char *value, int n,
                      sqlite3_destructor_type destructor);
int sqlite3_bind_blob(sqlite3_stmt *pStmt, int idx, const void *value, int n,
                      sqlite3_destructor_type destructor);

int sqlite3_column_count(sqlite3_stmt *pStmt);
int sqlite3_data_count(sqlite3_stmt *pStmt);
const char *sqlite3_column_name(sqlite3_stmt *pStmt, int idx);
const char *sqlite3_column_decltype(sqlite3_stmt *pStmt, int idx);
int sqlite3_column_type(sqlite3_stmt *pStmt, int idx);
int sqlite3_column_bytes(sqlite3_stmt *pStmt, int idx);
sqlite3_int64 sqlite3_column_int64(sqlite3_stmt *pStmt, int idx);
double sqlite3_column_double(sqlite3_stmt *pStmt, int idx);
const unsigned char *sqlite3_column_text(sqlite3_stmt *pStmt, int idx);
const void *sqlite3_column_blob(sqlite3_stmt *pStmt, int idx);
"""

# Result codes
SQLITE_OK = 0
SQLITE_ERROR = 1
SQLITE_INTERNAL = 2
SQLITE_PERM = 3
SQLITE_ABORT = 4
SQLITE_BUSY = 5
SQLITE_LOCKED = 6
SQLITE_NOMEM = 7
SQLITE_READONLY = 8
SQLITE_INTERRUPT = 9
SQLITE_IOERR = 10
SQLITE_CORRUPT = 11
SQLITE_NOTFOUND = 12
SQLITE_FULL = 13
SQLITE_CANTOPEN = 14
SQLITE_PROTOCOL = 15
SQLITE_EMPTY = 16
SQLITE_SCHEMA = 17
SQLITE_TOOBIG = 18
SQLITE_CONSTRAINT = 19
SQLITE_MISMATCH = 20
SQLITE_MISUSE = 21
SQLITE_NOLFS = 22
SQLITE_AUTH = 23
SQLITE_FORMAT = 24
SQLITE_RANGE = 25
SQLITE_NOTADB = 26
SQLITE_ROW = 100
SQLITE_DONE = 101

# Open flags
SQLITE_OPEN_READONLY = 0x00000001
SQLITE_OPEN_READWRITE = 0x00000002
SQLITE_OPEN_CREATE = 0x00000004
SQLITE_OPEN_URI = 0x00000040
SQLITE_OPEN_MEMORY = 0x00000080

# Authorizer return values
SQLITE_DENY = 1
SQLITE_IGNORE = 2

# Authorizer action codes used by the update hook as well
SQLITE_CREATE_TABLE = 2
SQLITE_DELETE = 9
SQLITE_DROP_TABLE = 11
SQLITE_INSERT = 18
SQLITE_READ = 20
SQLITE_SELECT = 21
SQLITE_UPDATE = 23

_DEFAULT_LIBRARY_NAMES = ("libsqlite3.so.0", "libsqlite3.dylib", "sqlite3.dll")

ffi = FFI()
ffi.cdef(_CDEF)

# Destructor markers: the engine either trusts our buffer or copies it
SQLITE_STATIC = ffi.NULL
SQLITE_TRANSIENT = ffi.cast("sqlite3_destructor_type", -1)


def _candidate_names() -> list[str]:
    """Library names to try, most specific first."""
    names: list[str] = []
    configured = get_library_path()
    if configured is not None:
        names.append(str(configured))
    found = ctypes.util.find_library("sqlite3")
    if found:
        names.append(found)
    names.extend(_DEFAULT_LIBRARY_NAMES)
    return names


def _load_library() -> Any:
    """Open the SQLite shared library, raising OSError if none can be loaded."""
    failures: list[str] = []
    for name in _candidate_names():
        try:
            loaded = ffi.dlopen(name)
        except OSError as e:
            failures.append(f"{name} ({e})")
            continue
        logger.debug("Loaded SQLite library %s", name)
        return loaded
    raise OSError("SQLite shared library not found, tried: " + ", ".join(failures))


lib = _load_library()

sqlite_version = ffi.string(lib.sqlite3_libversion()).decode("ascii")


def encode(text: str | bytes) -> bytes:
    """Encode SQL or a name for the engine (UTF-8)."""
    if isinstance(text, bytes):
        return text
    return text.encode("utf-8")


def to_str(ptr: Any) -> str | None:
    """Decode a NUL-terminated engine string, or None for a NULL pointer."""
    if not ptr:
        return None
    return ffi.string(ptr).decode("utf-8", errors="replace")


def errstr(code: int) -> str:
    """Return the engine's English description of a result code."""
    return to_str(lib.sqlite3_errstr(code)) or f"unknown error ({code})"
