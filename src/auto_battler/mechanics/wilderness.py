"""Wilderness maps, movement and monster spawning: pure math, no I/O.

Maps are frozen models. Every change goes through ``replace_tile``, which
builds a new grid that shares all untouched rows with the old one.
"""
from __future__ import annotations

import functools
import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Optional

from auto_battler.content.loader import load_all_maps
from auto_battler.errors import NotFoundError, ValidationError
from auto_battler.mechanics.rng import RngSource, chance, randint, weighted_choice
from auto_battler.models.character import Character
from auto_battler.models.monster import BiomeType, MonsterRarity, MonsterStats, MonsterTemplate, SpawnedMonster
from auto_battler.models.wilderness import (
    SAFE_TILE_TYPES,
    PlayerPosition,
    TileType,
    WildernessMap,
    WildernessTile,
)

logger = logging.getLogger(__name__)

DEFAULT_MAP_ID = "greenwood_valley"
LEGACY_MAP_ID = "starter_map"
SPAWN_COOLDOWN_SECONDS = 0.25
LEVEL_SCALE_PER_LEVEL = 0.08
MIN_SCALE_FACTOR = 0.4

RARITY_SPAWN_WEIGHT: dict[MonsterRarity, float] = {
    MonsterRarity.COMMON: 50,
    MonsterRarity.UNCOMMON: 30,
    MonsterRarity.RARE: 15,
    MonsterRarity.ELITE: 4,
    MonsterRarity.BOSS: 1,
}

RARITY_STAT_SCALE: dict[MonsterRarity, float] = {
    MonsterRarity.COMMON: 0.6,
    MonsterRarity.UNCOMMON: 0.7,
    MonsterRarity.RARE: 0.8,
    MonsterRarity.ELITE: 0.9,
    MonsterRarity.BOSS: 1.0,
}

_NEIGHBOUR_OFFSETS = [(-1, -1), (0, -1), (1, -1), (-1, 0), (1, 0), (-1, 1), (0, 1), (1, 1)]


@dataclass
class MoveResult:
    map: WildernessMap
    position: PlayerPosition
    tile: WildernessTile
    spawned: Optional[SpawnedMonster] = None


# -- Map configs --

@functools.cache
def map_configs() -> dict[str, dict[str, Any]]:
    return load_all_maps()


def get_map_config(map_id: str) -> dict[str, Any]:
    try:
        return map_configs()[map_id]
    except KeyError:
        raise NotFoundError(f"Unknown map: {map_id}") from None


@functools.cache
def monster_templates(map_id: str) -> tuple[MonsterTemplate, ...]:
    return tuple(MonsterTemplate.model_validate(m) for m in get_map_config(map_id).get("monsters", []))


def can_access_map(map_id: str, player_level: int) -> bool:
    return player_level >= get_map_config(map_id).get("required_level", 1)


def available_maps(player_level: int) -> list[dict[str, Any]]:
    """Summary of every map with an ``accessible`` flag, in unlock order."""
    return [
        {
            "id": cfg["id"],
            "name": cfg["name"],
            "description": cfg.get("description", ""),
            "required_level": cfg.get("required_level", 1),
            "level_range": (cfg["min_level"], cfg["max_level"]),
            "accessible": player_level >= cfg.get("required_level", 1),
        }
        for cfg in map_configs().values()
    ]


# -- Construction --

def distance(x1: int, y1: int, x2: int, y2: int) -> int:
    return abs(x1 - x2) + abs(y1 - y2)


def tile_level_range(map_min: int, map_max: int, dist: int) -> tuple[int, int]:
    """Level band for a tile ``dist`` steps from the start, inside the map range."""
    low = min(map_max, max(map_min, map_min + dist // 2))
    high = min(map_max, max(low, low + 2 + math.floor(dist / 1.5)))
    return low, high


def create_wilderness_map(map_id: str = DEFAULT_MAP_ID) -> WildernessMap:
    cfg = get_map_config(map_id)
    start_x, start_y = cfg["start"]["x"], cfg["start"]["y"]
    default_biome = BiomeType(cfg["biome"])
    tile_biomes = {TileType(k): BiomeType(v) for k, v in cfg.get("tile_biomes", {}).items()}

    rows = []
    for y, row in enumerate(cfg["rows"]):
        tiles = []
        for x, cell in enumerate(row):
            tile_type = TileType(cell["type"])
            low, high = tile_level_range(cfg["min_level"], cfg["max_level"], distance(x, y, start_x, start_y))
            is_start = (x, y) == (start_x, start_y)
            tiles.append(WildernessTile(
                id=f"tile_{map_id}_{x}_{y}",
                x=x,
                y=y,
                type=tile_type,
                name=cell["name"],
                biome=tile_biomes.get(tile_type, default_biome),
                min_level=low,
                max_level=high,
                spawn_rate=0.0 if tile_type in SAFE_TILE_TYPES else cell.get("spawn_rate", 0.0),
                visited=is_start,
            ))
        rows.append(tiles)

    width = len(rows[0]) if rows else 0
    if any(len(r) != width for r in rows):
        raise ValueError(f"Map {map_id} has ragged rows")

    logger.debug("Built map %s (%dx%d)", map_id, width, len(rows))
    return WildernessMap(
        id=map_id,
        name=cfg["name"],
        description=cfg.get("description", ""),
        width=width,
        height=len(rows),
        start_x=start_x,
        start_y=start_y,
        min_level=cfg["min_level"],
        max_level=cfg["max_level"],
        required_level=cfg.get("required_level", 1),
        tiles=rows,
    )


def start_position(wmap: WildernessMap, now: float | None = None) -> PlayerPosition:
    return PlayerPosition(
        x=wmap.start_x, y=wmap.start_y, map_id=wmap.id,
        last_moved=time.time() if now is None else now,
    )


def replace_tile(wmap: WildernessMap, tile: WildernessTile) -> WildernessMap:
    """New map with one tile swapped; other rows are shared."""
    rows = list(wmap.tiles)
    row = list(rows[tile.y])
    row[tile.x] = tile
    rows[tile.y] = row
    return wmap.model_copy(update={"tiles": rows})


def mark_visited(wmap: WildernessMap, x: int, y: int) -> WildernessMap:
    tile = get_tile(wmap, x, y)
    if tile.visited:
        return wmap
    return replace_tile(wmap, tile.model_copy(update={"visited": True}))


def get_tile(wmap: WildernessMap, x: int, y: int) -> WildernessTile:
    tile = wmap.tile_at(x, y)
    if tile is None:
        raise NotFoundError(f"No tile at ({x}, {y}) on {wmap.id}")
    return tile


def available_moves(wmap: WildernessMap, x: int, y: int) -> list[tuple[int, int]]:
    return [(x + dx, y + dy) for dx, dy in _NEIGHBOUR_OFFSETS if wmap.in_bounds(x + dx, y + dy)]


# -- Monsters --

def calculate_target_level(player_level: int, dist: int, tile: WildernessTile, rng: RngSource) -> int:
    base = max(1, math.floor(player_level * 0.8) + math.floor(dist * 0.8))
    level = base + randint(rng, -2, 2)
    return max(tile.min_level, min(tile.max_level, level))


def scale_monster_stats(template: MonsterTemplate, target_level: int) -> MonsterStats:
    factor = (1 + (target_level - template.level) * LEVEL_SCALE_PER_LEVEL) * RARITY_STAT_SCALE[template.rarity]
    factor = max(MIN_SCALE_FACTOR, factor)
    base = template.base_stats
    return MonsterStats(
        health=max(5, math.floor(base.health * factor)),
        damage=max(1, math.floor(base.damage * factor)),
        armor=max(0, math.floor(base.armor * factor)),
        speed=base.speed,
    )


def spawn_weight(template: MonsterTemplate, target_level: int) -> float:
    """Rarity dominates; closeness in level only nudges the odds."""
    proximity = max(0.5, 2 - 0.1 * abs(template.level - target_level))
    return RARITY_SPAWN_WEIGHT[template.rarity] * proximity


def select_monster(
    templates: tuple[MonsterTemplate, ...] | list[MonsterTemplate],
    biome: BiomeType,
    target_level: int,
    rng: RngSource,
) -> Optional[MonsterTemplate]:
    candidates = [t for t in templates if biome in t.biomes]
    if not candidates:
        return None
    return weighted_choice(rng, candidates, [spawn_weight(t, target_level) for t in candidates])


def spawn_monster(
    wmap: WildernessMap,
    tile: WildernessTile,
    player_level: int,
    rng: RngSource,
    now: float | None = None,
) -> Optional[SpawnedMonster]:
    """Pick and scale a monster for ``tile``; None if no template fits its biome."""
    dist = distance(tile.x, tile.y, wmap.start_x, wmap.start_y)
    target = calculate_target_level(player_level, dist, tile, rng)
    template = select_monster(monster_templates(wmap.id), tile.biome, target, rng)
    if template is None:
        return None
    return SpawnedMonster(
        template_id=template.id,
        name=template.name,
        level=target,
        stats=scale_monster_stats(template, target),
        rarity=template.rarity,
        loot=template.loot,
        tile_id=tile.id,
        spawned_at=time.time() if now is None else now,
    )


def try_spawn(
    wmap: WildernessMap,
    tile: WildernessTile,
    player_level: int,
    rng: RngSource,
    now: float,
) -> tuple[WildernessTile, Optional[SpawnedMonster]]:
    """One spawn attempt, gated by the per-tile cooldown and spawn rate."""
    if now - tile.last_spawn_check < SPAWN_COOLDOWN_SECONDS:
        return tile, None
    tile = tile.model_copy(update={"last_spawn_check": now})
    if tile.spawn_rate <= 0 or not chance(rng, tile.spawn_rate):
        return tile, None
    monster = spawn_monster(wmap, tile, player_level, rng, now)
    if monster is None:
        return tile, None
    logger.debug("Spawned %s (lvl %d) on %s", monster.name, monster.level, tile.id)
    return tile.model_copy(update={"monsters": [*tile.monsters, monster]}), monster


def move_to_tile(
    wmap: WildernessMap,
    x: int,
    y: int,
    character: Character,
    rng: RngSource,
    now: float | None = None,
) -> MoveResult:
    """Step onto (x, y): mark it visited and roll for a spawn."""
    if not wmap.in_bounds(x, y):
        raise ValidationError(f"({x}, {y}) is outside {wmap.name}")
    if not character.is_alive:
        raise ValidationError("Cannot move while dead")

    now = time.time() if now is None else now
    tile = get_tile(wmap, x, y).model_copy(update={"visited": True})
    tile, spawned = try_spawn(wmap, tile, character.level, rng, now)
    new_map = replace_tile(wmap, tile)
    return MoveResult(
        map=new_map,
        position=PlayerPosition(x=x, y=y, map_id=wmap.id, last_moved=now),
        tile=tile,
        spawned=spawned,
    )


def remove_monster(wmap: WildernessMap, x: int, y: int, monster_id: str) -> WildernessMap:
    tile = get_tile(wmap, x, y)
    remaining = [m for m in tile.monsters if m.id != monster_id]
    if len(remaining) == len(tile.monsters):
        raise NotFoundError(f"Monster {monster_id} not found on {tile.id}")
    return replace_tile(wmap, tile.model_copy(update={"monsters": remaining}))


def find_monster(wmap: WildernessMap, x: int, y: int, monster_id: str) -> SpawnedMonster:
    tile = get_tile(wmap, x, y)
    for monster in tile.monsters:
        if monster.id == monster_id and monster.is_alive:
            return monster
    raise NotFoundError(f"Monster {monster_id} not found on {tile.id}")


def regenerate_legacy_map(position: PlayerPosition, now: float | None = None) -> tuple[WildernessMap, PlayerPosition]:
    """Rebuild a save from the retired starter map on the default map.

    The player's coordinates are kept (clamped into the new grid) and that
    tile is marked visited.
    """
    wmap = create_wilderness_map(DEFAULT_MAP_ID)
    x = max(0, min(wmap.width - 1, position.x))
    y = max(0, min(wmap.height - 1, position.y))
    wmap = mark_visited(wmap, x, y)
    logger.info("Regenerated legacy map %s as %s", LEGACY_MAP_ID, DEFAULT_MAP_ID)
    return wmap, PlayerPosition(
        x=x, y=y, map_id=wmap.id,
        last_moved=position.last_moved if now is None else now,
    )
