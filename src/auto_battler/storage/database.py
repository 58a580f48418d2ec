"""SQLite file holding the save blobs and their backup trail."""
from __future__ import annotations

import contextlib
import importlib
import logging
import pathlib
import sqlite3
from typing import Generator

logger = logging.getLogger(__name__)

# Applied in order; a migration's version is its position, starting at 1.
_MIGRATIONS = (
    "001_initial",
    "002_save_backups",
)


class Database:
    """One shared connection to the save database."""

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self._connection: sqlite3.Connection | None = None
        if db_path != ":memory:":
            pathlib.Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    @property
    def connection(self) -> sqlite3.Connection:
        if self._connection is None:
            self._connection = sqlite3.connect(self.db_path)
            self._connection.row_factory = sqlite3.Row
        return self._connection

    def schema_version(self) -> int:
        row = self.connection.execute("SELECT max(version) FROM schema_version").fetchone()
        return row[0] or 0

    def initialize(self) -> None:
        """Create the version table, then apply every migration past the stored version."""
        conn = self.connection
        conn.execute("CREATE TABLE IF NOT EXISTS schema_version (version INTEGER PRIMARY KEY)")
        current = self.schema_version()
        for version, name in enumerate(_MIGRATIONS[current:], current + 1):
            importlib.import_module(f"auto_battler.storage.migrations.{name}").upgrade(conn)
            conn.execute("INSERT INTO schema_version VALUES (?)", (version,))
            logger.debug("Applied migration %s", name)
        conn.commit()

    @contextlib.contextmanager
    def get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Yield the connection inside a transaction: commit on success, roll back on error."""
        conn = self.connection
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None
