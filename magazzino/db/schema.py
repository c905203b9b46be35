"""SQLite schema for the local store and its migration steps."""

from __future__ import annotations

import sqlite3
from pathlib import Path

# Applied in order; entry N brings the database to version N + 1.
_MIGRATIONS: list[str] = [
    # 1: one row per collection, payload is the JSON array of its documents
    """
    CREATE TABLE IF NOT EXISTS collections (
        name TEXT PRIMARY KEY,
        payload TEXT NOT NULL DEFAULT '[]',
        updated_at TEXT NOT NULL DEFAULT (datetime('now', 'localtime'))
    );
    """,
]

_SCHEMA_VERSION = len(_MIGRATIONS)


def current_version(conn: sqlite3.Connection) -> int:
    conn.execute("CREATE TABLE IF NOT EXISTS schema_version (version INTEGER NOT NULL)")
    row = conn.execute("SELECT MAX(version) AS version FROM schema_version").fetchone()
    return row["version"] or 0


def ensure_schema(db_path: str | Path) -> sqlite3.Connection:
    """Open the local database, creating it and applying pending migrations.

    Returns:
        A connection with ``sqlite3.Row`` rows and WAL journaling.
    """
    path = Path(db_path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")

    version = current_version(conn)
    for step, script in enumerate(_MIGRATIONS[version:], start=version + 1):
        conn.executescript(script)
        conn.execute("DELETE FROM schema_version")
        conn.execute("INSERT INTO schema_version (version) VALUES (?)", (step,))
    conn.commit()
    return conn
