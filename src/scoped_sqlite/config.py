"""Environment-variable-based configuration."""

import os
from pathlib import Path


def get_library_path() -> Path | None:
    """Return the SQLite shared library path from SCOPED_SQLITE_LIBRARY, if set."""
    raw = os.environ.get("SCOPED_SQLITE_LIBRARY", "")
    if not raw:
        return None
    return Path(raw).expanduser()


def get_busy_timeout_ms() -> int:
    """Return the busy timeout applied on connect from SCOPED_SQLITE_BUSY_TIMEOUT_MS."""
    return int(os.environ.get("SCOPED_SQLITE_BUSY_TIMEOUT_MS", "0"))


def get_log_level() -> str:
    """Return the logging level from SCOPED_SQLITE_LOG_LEVEL."""
    return os.environ.get("SCOPED_SQLITE_LOG_LEVEL", "WARNING")
