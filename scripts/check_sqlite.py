"""Quick check that libsqlite3 loads and the sqlite-vec extension is usable."""

import logging
import sys

from scoped_sqlite.config import get_library_path, get_log_level
from scoped_sqlite.db import Connection, DatabaseError, Query, sqlite_version
from scoped_sqlite.db.extensions import load_vec


def main() -> None:
    """Check native library loading and sqlite-vec availability."""
    logging.basicConfig(level=getattr(logging, get_log_level().upper(), logging.WARNING))
    library = get_library_path() or "(system default)"
    print(f"Using SQLite {sqlite_version} from {library}")

    try:
        with Connection(":memory:") as db:
            load_vec(db)
            with Query(db, "SELECT vec_version()") as q:
                print(f"  sqlite-vec {next(iter(q)).get(0, str)} is available")
    except AttributeError:
        print("  This libsqlite3 was built without extension loading")
        sys.exit(1)
    except DatabaseError as e:
        print(f"  Could not load sqlite-vec: {e.message}")
        sys.exit(1)


if __name__ == "__main__":
    main()
