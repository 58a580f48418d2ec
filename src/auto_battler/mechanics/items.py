"""Item generation and pricing: pure math, no I/O beyond the cached catalogue."""
from __future__ import annotations

import functools
import math
import uuid
from typing import Any

from auto_battler.content.loader import load_all_items
from auto_battler.models.item import Item, ItemRarity

RARITY_BASE_PRICE: dict[ItemRarity, int] = {
    ItemRarity.COMMON: 50,
    ItemRarity.UNCOMMON: 150,
    ItemRarity.RARE: 500,
    ItemRarity.EPIC: 2000,
    ItemRarity.LEGENDARY: 10000,
}

DEFAULT_DURABILITY = 100
SELL_RATIO = 0.5
STARTER_ITEM_IDS = ("iron_sword", "padded_undershirt", "leather_boots")


@functools.cache
def base_items() -> dict[str, dict[str, Any]]:
    """Base item definitions keyed by id, loaded once from content/items."""
    return load_all_items()


def get_base_item(item_id: str) -> dict[str, Any]:
    try:
        return base_items()[item_id]
    except KeyError:
        raise KeyError(f"Unknown item: {item_id}") from None


def item_power(stat_bonus: dict[str, int], armor: int = 0, damage: int = 0,
               crit_chance: int = 0, dodge_chance: int = 0) -> float:
    """Rough power score used to scale price."""
    return sum(stat_bonus.values()) + armor * 0.5 + damage * 2 + crit_chance * 10 + dodge_chance * 10


def calculate_item_price(rarity: ItemRarity, level: int, power: float) -> int:
    """Buy price: rarity base, compounding per level, scaled by power."""
    base = RARITY_BASE_PRICE[ItemRarity(rarity)]
    level_mult = 1.2 ** min(level - 1, 50) * 1.05 ** max(level - 51, 0)
    if power > 1000:
        power_mult = (power / 1000) ** 1.5
    else:
        power_mult = max(1.0, power / 100)
    return math.floor(base * level_mult * power_mult)


def calculate_sell_price(item: Item) -> int:
    return math.floor(item.price * SELL_RATIO)


def generate_item(item_id: str, level: int = 1) -> Item:
    """Instantiate a base item at the given level with a fresh id.

    Every other level adds a point to each stat bonus, two damage and one
    armor.
    """
    base = get_base_item(item_id)
    level = max(1, level)
    level_bonus = (level - 1) // 2
    stat_bonus = {stat: value + level_bonus for stat, value in base.get("stat_bonus", {}).items()}
    damage = base.get("damage", 0)
    armor = base.get("armor", 0)
    if damage:
        damage += level_bonus * 2
    if armor:
        armor += level_bonus
    rarity = ItemRarity(base.get("rarity", "common"))
    power = item_power(
        stat_bonus, armor=armor, damage=damage,
        crit_chance=base.get("crit_chance", 0), dodge_chance=base.get("dodge_chance", 0),
    )
    return Item(
        id=str(uuid.uuid4()),
        base_id=base["id"],
        name=base["name"],
        description=base.get("description", ""),
        type=base.get("type", "material"),
        rarity=rarity,
        level=level,
        price=calculate_item_price(rarity, level, power),
        stat_bonus=stat_bonus,
        durability=DEFAULT_DURABILITY,
        max_durability=DEFAULT_DURABILITY,
        damage=damage,
        handedness=base.get("handedness"),
        weapon_speed=base.get("weapon_speed"),
        is_magic=base.get("is_magic", False),
        armor=armor,
        crit_chance=base.get("crit_chance", 0),
        dodge_chance=base.get("dodge_chance", 0),
        heal_amount=base.get("heal_amount", 0),
    )


def generate_starter_equipment() -> list[Item]:
    return [generate_item(item_id, 1) for item_id in STARTER_ITEM_IDS]
