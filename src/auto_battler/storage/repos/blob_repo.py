"""Repository for opaque string blobs keyed by name."""
from __future__ import annotations

from datetime import datetime, timezone

from auto_battler.storage.database import Database

BACKUPS_KEPT = 5


class BlobRepo:
    """Key/value CRUD over the kv_store table, with a short backup trail."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def get(self, key: str) -> str | None:
        with self.db.get_connection() as conn:
            row = conn.execute(
                "SELECT value FROM kv_store WHERE key = ?", (key,)
            ).fetchone()
        return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        """Upsert a value, moving the old one into kv_backups."""
        now = datetime.now(timezone.utc).isoformat()
        with self.db.get_connection() as conn:
            old = conn.execute(
                "SELECT value FROM kv_store WHERE key = ?", (key,)
            ).fetchone()
            if old is not None:
                conn.execute(
                    "INSERT INTO kv_backups (key, value, replaced_at) VALUES (?, ?, ?)",
                    (key, old["value"], now),
                )
                conn.execute(
                    "DELETE FROM kv_backups WHERE key = ? AND id NOT IN "
                    "(SELECT id FROM kv_backups WHERE key = ? ORDER BY id DESC LIMIT ?)",
                    (key, key, BACKUPS_KEPT),
                )
            conn.execute(
                "INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value, "
                "updated_at = excluded.updated_at",
                (key, value, now),
            )

    def remove(self, key: str) -> None:
        with self.db.get_connection() as conn:
            conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            conn.execute("DELETE FROM kv_backups WHERE key = ?", (key,))

    def list_keys(self) -> list[str]:
        with self.db.get_connection() as conn:
            rows = conn.execute("SELECT key FROM kv_store ORDER BY key").fetchall()
        return [r["key"] for r in rows]

    def get_backups(self, key: str) -> list[dict]:
        """Previous values of a key, newest first."""
        with self.db.get_connection() as conn:
            rows = conn.execute(
                "SELECT value, replaced_at FROM kv_backups WHERE key = ? ORDER BY id DESC",
                (key,),
            ).fetchall()
        return [dict(r) for r in rows]
