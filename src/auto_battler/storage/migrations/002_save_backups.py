"""Migration 002: keep the previous value of a key when it is overwritten."""
from __future__ import annotations

import sqlite3


def upgrade(conn: sqlite3.Connection) -> None:
    conn.executescript("""
        CREATE TABLE IF NOT EXISTS kv_backups (
            id          INTEGER PRIMARY KEY AUTOINCREMENT,
            key         TEXT NOT NULL,
            value       TEXT NOT NULL,
            replaced_at TEXT NOT NULL
        );
        CREATE INDEX IF NOT EXISTS idx_kv_backups_key
            ON kv_backups(key, id DESC);
    """)
