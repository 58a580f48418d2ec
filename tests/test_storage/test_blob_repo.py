"""Tests for src/auto_battler/storage/repos/blob_repo.py and storage/gateway.py."""
from __future__ import annotations

import asyncio

import pytest

from auto_battler.errors import PersistenceError
from auto_battler.storage.gateway import InMemoryGateway, SqliteGateway
from auto_battler.storage.repos.blob_repo import BACKUPS_KEPT, BlobRepo


@pytest.fixture
def repo(in_memory_db):
    return BlobRepo(in_memory_db)


class TestBlobRepo:
    def test_missing_key(self, repo):
        assert repo.get("nope") is None

    def test_set_then_get(self, repo):
        repo.set("save", '{"a": 1}')
        assert repo.get("save") == '{"a": 1}'

    def test_overwrite_keeps_backup(self, repo):
        repo.set("save", "one")
        repo.set("save", "two")
        assert repo.get("save") == "two"
        backups = repo.get_backups("save")
        assert [b["value"] for b in backups] == ["one"]
        assert backups[0]["replaced_at"]

    def test_backup_trail_is_capped(self, repo):
        for i in range(BACKUPS_KEPT + 4):
            repo.set("save", str(i))
        values = [b["value"] for b in repo.get_backups("save")]
        assert len(values) == BACKUPS_KEPT
        assert values[0] == str(BACKUPS_KEPT + 2)

    def test_remove_clears_backups(self, repo):
        repo.set("save", "one")
        repo.set("save", "two")
        repo.remove("save")
        assert repo.get("save") is None
        assert repo.get_backups("save") == []

    def test_remove_missing_is_noop(self, repo):
        repo.remove("nope")

    def test_list_keys(self, repo):
        repo.set("b", "1")
        repo.set("a", "2")
        assert repo.list_keys() == ["a", "b"]


class TestSqliteGateway:
    def test_round_trip(self, repo):
        gateway = SqliteGateway(repo)

        async def scenario():
            await gateway.set("k", "v")
            first = await gateway.get("k")
            await gateway.remove("k")
            return first, await gateway.get("k")

        assert asyncio.run(scenario()) == ("v", None)

    def test_driver_errors_wrapped(self, in_memory_db):
        gateway = SqliteGateway(BlobRepo(in_memory_db))
        with in_memory_db.get_connection() as conn:
            conn.execute("DROP TABLE kv_store")
        with pytest.raises(PersistenceError):
            asyncio.run(gateway.get("k"))
        with pytest.raises(PersistenceError):
            asyncio.run(gateway.set("k", "v"))


class TestInMemoryGateway:
    def test_initial_data(self):
        gateway = InMemoryGateway({"k": "v"})
        assert asyncio.run(gateway.get("k")) == "v"
        asyncio.run(gateway.remove("k"))
        asyncio.run(gateway.remove("k"))
        assert gateway.data == {}
