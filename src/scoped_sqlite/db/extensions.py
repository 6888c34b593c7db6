"""Loadable extensions for a Connection."""

import logging

import sqlite_vec

from scoped_sqlite.db.connection import Connection

logger = logging.getLogger(__name__)


def load_vec(db: Connection) -> None:
    """Load the sqlite-vec extension into ``db``.

    Extension loading is switched on only for the duration of the load.
    Raises DatabaseError when the engine refuses the library.
    """
    db.enable_load_extension(True)
    try:
        sqlite_vec.load(db)  # type: ignore[arg-type]
    finally:
        db.enable_load_extension(False)
    logger.debug("sqlite-vec extension loaded")
