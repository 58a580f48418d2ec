"""Shared fixtures for the auto-battler test suite."""
from __future__ import annotations

from typing import Sequence

import pytest

from auto_battler.engine.store import GameStore
from auto_battler.mechanics.character_creation import create_character
from auto_battler.models.character import Character
from auto_battler.models.monster import LootEntry, MonsterRarity, MonsterStats, SpawnedMonster
from auto_battler.storage.gateway import InMemoryGateway


class ScriptedRng:
    """Returns scripted floats in order, then ``default`` forever."""

    def __init__(self, values: Sequence[float] = (), default: float | None = None):
        self.values = list(values)
        self.default = default
        self.calls = 0

    def random(self) -> float:
        self.calls += 1
        if self.values:
            return self.values.pop(0)
        if self.default is None:
            raise AssertionError("ScriptedRng ran out of values")
        return self.default


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FailingGateway:
    """Gateway whose writes always fail."""

    def __init__(self, message: str = "disk full"):
        self.message = message

    async def get(self, key: str) -> str | None:
        return None

    async def set(self, key: str, value: str) -> None:
        raise OSError(self.message)

    async def remove(self, key: str) -> None:
        raise OSError(self.message)


def make_monster(
    name: str = "Rat",
    level: int = 1,
    rarity: MonsterRarity = MonsterRarity.COMMON,
    health: int = 20,
    damage: int = 5,
    armor: int = 0,
    speed: int = 5,
    loot: list[LootEntry] | None = None,
    tile_id: str = "tile_greenwood_valley_0_0",
) -> SpawnedMonster:
    return SpawnedMonster(
        template_id=name.lower().replace(" ", "_"),
        name=name,
        level=level,
        stats=MonsterStats(health=health, damage=damage, armor=armor, speed=speed),
        rarity=rarity,
        loot=loot or [],
        tile_id=tile_id,
        spawned_at=0.0,
    )


@pytest.fixture
def warrior() -> Character:
    return create_character("Aldric", "warrior", now=0.0)


@pytest.fixture
def mage() -> Character:
    return create_character("Mirela", "mage", now=0.0)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def gateway() -> InMemoryGateway:
    return InMemoryGateway()


@pytest.fixture
def store(gateway, clock) -> GameStore:
    from auto_battler.mechanics.rng import default_rng

    return GameStore(gateway, rng=default_rng(7), clock=clock)


@pytest.fixture
def in_memory_db():
    from auto_battler.storage.database import Database

    db = Database(":memory:")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def scripted_rng():
    """Factory for ScriptedRng streams."""
    return ScriptedRng


@pytest.fixture
def monster_factory():
    return make_monster


@pytest.fixture
def failing_gateway() -> FailingGateway:
    return FailingGateway()
