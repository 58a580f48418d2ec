from __future__ import annotations

import time
import uuid
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class MonsterRarity(str, Enum):
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    ELITE = "elite"
    BOSS = "boss"


class BiomeType(str, Enum):
    FOREST = "forest"
    PLAINS = "plains"
    MOUNTAINS = "mountains"
    UNDERGROUND = "underground"
    SWAMP = "swamp"
    TUNDRA = "tundra"


class MonsterStats(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    health: int
    damage: int
    armor: int = 0
    speed: int = 5


class LootEntry(BaseModel):
    """One independent bonus roll on a monster's loot table."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    chance: float
    item_id: Optional[str] = None
    gold: int = 0
    experience: int = 0


class MonsterTemplate(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    name: str
    description: str = ""
    level: int
    base_stats: MonsterStats
    biomes: list[BiomeType]
    rarity: MonsterRarity = MonsterRarity.COMMON
    loot: list[LootEntry] = Field(default_factory=list)


class SpawnedMonster(BaseModel):
    """A scaled monster instance owned by the tile that spawned it."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    template_id: str
    name: str
    level: int
    stats: MonsterStats
    rarity: MonsterRarity
    loot: list[LootEntry] = Field(default_factory=list)
    tile_id: str
    spawned_at: float = Field(default_factory=time.time)
    is_alive: bool = True
