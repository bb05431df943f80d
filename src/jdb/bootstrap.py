from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from .schema import SCHEMA_SQL, SCHEMA_VERSION

DEFAULT_DB_PATH = Path("runtime/state/invsim.db")
MEMORY_DB = ":memory:"
BUSY_TIMEOUT_SECONDS = 5.0

_LOGGER = logging.getLogger("invsim.jdb")


def _apply_pragmas(conn: sqlite3.Connection, *, on_disk: bool) -> None:
    conn.execute("PRAGMA foreign_keys = ON")
    if on_disk:
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA synchronous = NORMAL")


def get_connection(db_path: str | Path = DEFAULT_DB_PATH) -> sqlite3.Connection:
    on_disk = str(db_path) != MEMORY_DB
    if on_disk:
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    # Concurrent requests reconciling the same symbol wait on the writer lock instead of failing.
    conn = sqlite3.connect(str(db_path), timeout=BUSY_TIMEOUT_SECONDS)
    conn.row_factory = sqlite3.Row
    _apply_pragmas(conn, on_disk=on_disk)
    return conn


def _schema_version(conn: sqlite3.Connection) -> int:
    row = conn.execute("SELECT MAX(version) AS version FROM schema_version").fetchone()
    return int(row["version"]) if row and row["version"] is not None else 0


def run_migrations(conn: sqlite3.Connection) -> int:
    """Create missing journal tables and record the schema version; returns the version now in place."""
    with conn:
        conn.executescript(SCHEMA_SQL)
        found = _schema_version(conn)
        if found >= SCHEMA_VERSION:
            return found
        conn.execute(
            "INSERT OR REPLACE INTO schema_version(version, applied_at) VALUES (?, ?)",
            (SCHEMA_VERSION, datetime.now(timezone.utc).isoformat()),
        )
    _LOGGER.info("Applied journal schema: from_version=%s to_version=%s", found, SCHEMA_VERSION)
    return SCHEMA_VERSION


def initialize_database(db_path: str | Path = DEFAULT_DB_PATH) -> sqlite3.Connection:
    conn = get_connection(db_path)
    run_migrations(conn)
    dangling = conn.execute("PRAGMA foreign_key_check").fetchall()
    if dangling:
        _LOGGER.warning("Journal database has %s rows with broken references: path=%s", len(dangling), db_path)
    return conn
