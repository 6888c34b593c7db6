"""Transaction scope with a single terminal action."""

from __future__ import annotations

import logging
from types import TracebackType

from scoped_sqlite.db.connection import Connection
from scoped_sqlite.db.errors import DatabaseError
from scoped_sqlite.db.native import SQLITE_MISUSE, SQLITE_OK, errstr

logger = logging.getLogger(__name__)


class Transaction:
    """A BEGIN ... COMMIT/ROLLBACK region on a borrowed connection.

    Exactly one of COMMIT or ROLLBACK is issued per instance. If neither
    ``commit()`` nor ``rollback()`` is called, leaving the ``with`` block,
    calling ``close()``, or collecting the object applies the default:
    COMMIT when constructed with ``commit=True``, ROLLBACK otherwise.
    """

    def __init__(self, db: Connection, commit: bool = False, reserve: bool = False) -> None:
        """Issue BEGIN (BEGIN IMMEDIATE when ``reserve``); raise DatabaseError if it fails."""
        self._db: Connection | None = None
        self._commit_on_close = commit
        rc = db.execute("BEGIN IMMEDIATE" if reserve else "BEGIN")
        if rc != SQLITE_OK:
            raise DatabaseError.from_status(db, rc)
        self._db = db
        logger.debug("Transaction started (reserve=%s)", reserve)

    def __del__(self) -> None:
        db = getattr(self, "_db", None)
        if db is None:
            return
        if not db.connected:
            # Closing the connection already rolled the transaction back
            self._db = None
            return
        rc = self.close()
        if rc != SQLITE_OK:
            logger.warning("Abandoned transaction did not end cleanly: %s", errstr(rc))

    def __enter__(self) -> Transaction:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    @property
    def active(self) -> bool:
        """True until a terminal action has been issued."""
        return self._db is not None

    def commit(self) -> int:
        """Issue COMMIT. Returns SQLITE_MISUSE without issuing anything if already ended."""
        return self._end("COMMIT")

    def rollback(self) -> int:
        """Issue ROLLBACK. Returns SQLITE_MISUSE without issuing anything if already ended."""
        return self._end("ROLLBACK")

    def close(self) -> int:
        """Apply the default terminal action unless one was already issued."""
        if self._db is None:
            return SQLITE_OK
        return self.commit() if self._commit_on_close else self.rollback()

    def _end(self, sql: str) -> int:
        db = self._db
        if db is None:
            logger.debug("Transaction already ended; %s not issued", sql)
            return SQLITE_MISUSE
        self._db = None
        rc = db.execute(sql)
        logger.debug("Transaction %s: %s", sql, errstr(rc))
        return rc
