"""Tests for environment configuration."""

from pathlib import Path

from scoped_sqlite.config import get_busy_timeout_ms, get_library_path, get_log_level


def test_defaults(monkeypatch):
    monkeypatch.delenv("SCOPED_SQLITE_LIBRARY", raising=False)
    monkeypatch.delenv("SCOPED_SQLITE_BUSY_TIMEOUT_MS", raising=False)
    monkeypatch.delenv("SCOPED_SQLITE_LOG_LEVEL", raising=False)
    assert get_library_path() is None
    assert get_busy_timeout_ms() == 0
    assert get_log_level() == "WARNING"


def test_overrides(monkeypatch):
    monkeypatch.setenv("SCOPED_SQLITE_LIBRARY", "/opt/sqlite/libsqlite3.so")
    monkeypatch.setenv("SCOPED_SQLITE_BUSY_TIMEOUT_MS", "250")
    monkeypatch.setenv("SCOPED_SQLITE_LOG_LEVEL", "DEBUG")
    assert get_library_path() == Path("/opt/sqlite/libsqlite3.so")
    assert get_busy_timeout_ms() == 250
    assert get_log_level() == "DEBUG"
