"""
SQLite connections for the quota and activity store.

Every repository call opens its own connection. Concurrent writers wait on
the database lock for up to BUSY_TIMEOUT_SECONDS before failing.
"""

import sqlite3
from pathlib import Path

from insight_broker.config.loader import DEFAULT_DB_PATH

BUSY_TIMEOUT_SECONDS = 10.0


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Open a connection to the broker database.

    The parent directory is created on first use so a configured
    ``storage.db_path`` like ``data/broker.db`` works on a fresh checkout.
    """
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), timeout=BUSY_TIMEOUT_SECONDS)
    conn.execute("PRAGMA foreign_keys = ON")
    return conn
