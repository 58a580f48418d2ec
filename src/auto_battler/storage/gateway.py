"""Persistence gateway: async get/set/remove of opaque string blobs."""
from __future__ import annotations

import logging
import sqlite3
from typing import Protocol

from auto_battler.errors import PersistenceError
from auto_battler.storage.repos.blob_repo import BlobRepo

logger = logging.getLogger(__name__)


class PersistenceGateway(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...

    async def remove(self, key: str) -> None: ...


class InMemoryGateway:
    """Dict-backed gateway for tests and embedding."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value

    async def remove(self, key: str) -> None:
        self.data.pop(key, None)


class SqliteGateway:
    """Gateway over the SQLite blob repo; driver errors become PersistenceError."""

    def __init__(self, repo: BlobRepo) -> None:
        self.repo = repo

    async def get(self, key: str) -> str | None:
        try:
            return self.repo.get(key)
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read {key}: {e}") from e

    async def set(self, key: str, value: str) -> None:
        try:
            self.repo.set(key, value)
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to write {key}: {e}") from e
        logger.debug("Stored %d bytes under %s", len(value), key)

    async def remove(self, key: str) -> None:
        try:
            self.repo.remove(key)
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to remove {key}: {e}") from e
