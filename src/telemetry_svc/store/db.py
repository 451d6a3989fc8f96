"""SQLite database connection and schema initialization for the telemetry store."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from .errors import StoreUnavailableError

logger = logging.getLogger(__name__)

# Default database path
DEFAULT_DB_PATH = "telemetry.db"

MEMORY_DB = ":memory:"

# SQL schema for the staging table
SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS telemetry (
    uuid TEXT PRIMARY KEY,
    payload TEXT NOT NULL,
    available INTEGER NOT NULL DEFAULT 1,
    last_changed TEXT NOT NULL,
    creation_date TEXT NOT NULL
);

-- Checkout and reclamation scans
CREATE INDEX IF NOT EXISTS idx_telemetry_available ON telemetry(available, last_changed);

-- Capacity eviction ordering
CREATE INDEX IF NOT EXISTS idx_telemetry_creation ON telemetry(creation_date);
"""


def init_db(
    db_path: str | Path = DEFAULT_DB_PATH,
    busy_timeout_seconds: float = 5.0,
) -> sqlite3.Connection:
    """Open the database and create the staging table if it doesn't exist.

    The connection runs in autocommit mode; the repository opens its own
    write transactions with BEGIN IMMEDIATE.

    Args:
        db_path: Path to the SQLite database file, or ":memory:".
        busy_timeout_seconds: How long to wait for another writer's lock.

    Returns:
        A connection to the database.

    Raises:
        StoreUnavailableError: If the database cannot be opened.
    """
    target = str(db_path)
    if target != MEMORY_DB:
        Path(target).parent.mkdir(parents=True, exist_ok=True)

    try:
        conn = sqlite3.connect(
            target,
            timeout=busy_timeout_seconds,
            isolation_level=None,
            check_same_thread=False,
        )
        conn.row_factory = sqlite3.Row
        if target != MEMORY_DB:
            conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute(f"PRAGMA busy_timeout={int(busy_timeout_seconds * 1000)}")
        conn.executescript(SCHEMA_SQL)
    except sqlite3.Error as e:
        raise StoreUnavailableError(f"Cannot open telemetry database {target}: {e}") from e

    logger.debug(f"Opened telemetry database {target}")
    return conn


@contextmanager
def get_db(
    db_path: str | Path = DEFAULT_DB_PATH,
    busy_timeout_seconds: float = 5.0,
) -> Generator[sqlite3.Connection, None, None]:
    """Get a database connection as a context manager.

    Args:
        db_path: Path to the SQLite database file.
        busy_timeout_seconds: How long to wait for another writer's lock.

    Yields:
        A connection to the database.
    """
    conn = init_db(db_path, busy_timeout_seconds)
    try:
        yield conn
    finally:
        conn.close()


class DatabaseManager:
    """Owns the connection handed to the telemetry repository."""

    def __init__(self, db_path: str | Path = DEFAULT_DB_PATH, busy_timeout_seconds: float = 5.0):
        """Initialize the database manager.

        Args:
            db_path: Path to the SQLite database file.
            busy_timeout_seconds: How long to wait for another writer's lock.
        """
        self.db_path = db_path
        self.busy_timeout_seconds = busy_timeout_seconds
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> sqlite3.Connection:
        """Get or create a database connection."""
        if self._conn is None:
            self._conn = init_db(self.db_path, self.busy_timeout_seconds)
            logger.info(f"Telemetry store opened at {self.db_path}")
        return self._conn

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> sqlite3.Connection:
        return self.connect()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
