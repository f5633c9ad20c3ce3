"""Durable key-value store backed by DuckDB.

The orchestration core persists exactly two entries (the selected root
directory and the JSON status map), plus the last transcription language.
A single ``kv_store`` table is enough for that.
"""

import logging
import os
from pathlib import Path
from typing import Any

import duckdb

from clipflow.exceptions import StorageError

LOGGER = logging.getLogger(__name__)

DB_PATH_ENV = "CLIPFLOW_DB_PATH"


def get_default_db_path() -> Path:
    """Get XDG-compliant default database path.

    Uses XDG Base Directory specification:
    - CLIPFLOW_DB_PATH if set (explicit override)
    - XDG_DATA_HOME if set (e.g., ~/.local/share)
    - Falls back to ~/.local/share if not set

    Returns:
        Path to database file in XDG data directory
    """
    override = os.environ.get(DB_PATH_ENV)
    if override:
        return Path(override).expanduser()

    xdg_data_home = os.environ.get("XDG_DATA_HOME")
    if xdg_data_home:
        data_dir = Path(xdg_data_home)
    else:
        data_dir = Path.home() / ".local" / "share"

    # Create app-specific directory
    app_data_dir = data_dir / "clipflow"
    app_data_dir.mkdir(parents=True, exist_ok=True)

    return app_data_dir / "state.duckdb"


class DuckDBKeyValueStore:
    """String key-value store in a single DuckDB table."""

    def __init__(self, db_path: str | Path | None = None) -> None:
        """Open (and create if needed) the database.

        Args:
            db_path: Path to the DuckDB file.
                     If None, uses the XDG-compliant default path.
                     ":memory:" keeps everything in memory.
        """
        if db_path is None:
            self.db_path = str(get_default_db_path())
        else:
            self.db_path = str(db_path)

        self.conn: duckdb.DuckDBPyConnection | None = None
        self._init_db()

    def _init_db(self) -> None:
        """Initialize the schema if it doesn't exist."""
        try:
            self.conn = duckdb.connect(self.db_path)
            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS kv_store (
                    key VARCHAR PRIMARY KEY,
                    value VARCHAR NOT NULL,
                    updated_at TIMESTAMP DEFAULT current_timestamp
                );
            """)
            LOGGER.debug("Key-value store ready at %s", self.db_path)
        except duckdb.Error as e:
            msg = f"Failed to initialize key-value store at {self.db_path}: {e}"
            raise StorageError(msg) from e

    def _connection(self) -> duckdb.DuckDBPyConnection:
        if not self.conn:
            msg = "Database not initialized"
            raise StorageError(msg)
        return self.conn

    def get(self, key: str) -> str | None:
        """Return the stored value or None when the key is absent."""
        conn = self._connection()
        try:
            row = conn.execute("SELECT value FROM kv_store WHERE key = ?", [key]).fetchone()
        except duckdb.Error as e:
            msg = f"Failed to read {key}: {e}"
            raise StorageError(msg) from e
        return None if row is None else str(row[0])

    def set(self, key: str, value: str) -> None:
        conn = self._connection()
        try:
            conn.execute(
                """
                INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, current_timestamp)
                ON CONFLICT (key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                """,
                [key, value],
            )
            LOGGER.debug("Stored %s (%d bytes)", key, len(value))
        except duckdb.Error as e:
            msg = f"Failed to write {key}: {e}"
            raise StorageError(msg) from e

    def delete(self, key: str) -> None:
        conn = self._connection()
        try:
            conn.execute("DELETE FROM kv_store WHERE key = ?", [key])
        except duckdb.Error as e:
            msg = f"Failed to delete {key}: {e}"
            raise StorageError(msg) from e

    def keys(self) -> list[str]:
        conn = self._connection()
        try:
            rows = conn.execute("SELECT key FROM kv_store ORDER BY key").fetchall()
        except duckdb.Error as e:
            msg = f"Failed to list keys: {e}"
            raise StorageError(msg) from e
        return [str(row[0]) for row in rows]

    def close(self) -> None:
        """Close the database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None
            LOGGER.debug("Database connection closed")

    def __enter__(self) -> "DuckDBKeyValueStore":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Context manager exit."""
        self.close()
