from __future__ import annotations

import time
import uuid
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auto_battler.models.monster import BiomeType, SpawnedMonster


class TileType(str, Enum):
    GRASS = "grass"
    FOREST = "forest"
    MOUNTAIN = "mountain"
    CAVE = "cave"
    WATER = "water"
    ROAD = "road"
    RUINS = "ruins"
    VILLAGE = "village"
    MERCHANT = "merchant"
    PORTAL = "portal"
    SWAMP = "swamp"
    CRYSTAL = "crystal"
    LAVA = "lava"
    ICE = "ice"


SAFE_TILE_TYPES = frozenset({TileType.VILLAGE, TileType.MERCHANT, TileType.PORTAL})


class WildernessTile(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    x: int
    y: int
    type: TileType
    name: str
    biome: BiomeType
    min_level: int
    max_level: int
    spawn_rate: float
    last_spawn_check: float = 0.0
    visited: bool = False
    monsters: list[SpawnedMonster] = Field(default_factory=list)

    @property
    def alive_monsters(self) -> list[SpawnedMonster]:
        return [m for m in self.monsters if m.is_alive]


class WildernessMap(BaseModel):
    """A fixed-size grid of tiles, indexed ``tiles[y][x]``."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    name: str
    description: str = ""
    width: int
    height: int
    start_x: int
    start_y: int
    min_level: int = 1
    max_level: int = 10
    required_level: int = 1
    tiles: list[list[WildernessTile]]

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def tile_at(self, x: int, y: int) -> Optional[WildernessTile]:
        if not self.in_bounds(x, y):
            return None
        return self.tiles[y][x]

    def all_tiles(self) -> list[WildernessTile]:
        return [tile for row in self.tiles for tile in row]


class PlayerPosition(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    x: int
    y: int
    map_id: str
    last_moved: float = Field(default_factory=time.time)


class WildernessEncounter(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    tile_id: str
    monster_ids: list[str] = Field(default_factory=list)
    started_at: float = Field(default_factory=time.time)
    resolved: bool = False
    victory: Optional[bool] = None


class WildernessState(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    current_map: WildernessMap
    player_position: PlayerPosition
    explored_tiles: set[str] = Field(default_factory=set)
    encounters: list[WildernessEncounter] = Field(default_factory=list)
