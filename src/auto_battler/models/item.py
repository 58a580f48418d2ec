from __future__ import annotations

import uuid
from enum import Enum
from typing import Annotated, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ItemType(str, Enum):
    WEAPON = "weapon"
    ARMOR = "armor"
    HELMET = "helmet"
    BOOTS = "boots"
    ACCESSORY = "accessory"
    SHIELD = "shield"
    GEM = "gem"
    CONSUMABLE = "consumable"
    MATERIAL = "material"


class ItemRarity(str, Enum):
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class Handedness(str, Enum):
    ONE_HANDED = "one-handed"
    TWO_HANDED = "two-handed"


class GemType(str, Enum):
    RUBY = "ruby"
    SAPPHIRE = "sapphire"
    EMERALD = "emerald"
    DIAMOND = "diamond"
    OPAL = "opal"
    CITRINE = "citrine"
    AMBER = "amber"


class GemTier(str, Enum):
    """Ordered gem power levels, lowest first."""

    FLAWED = "flawed"
    NORMAL = "normal"
    GREATER = "greater"
    PERFECT = "perfect"
    LEGENDARY = "legendary"

    @property
    def rank(self) -> int:
        return list(GemTier).index(self)


class Item(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    base_id: Optional[str] = None
    name: str
    description: str = ""
    type: ItemType = ItemType.MATERIAL
    rarity: ItemRarity = ItemRarity.COMMON
    level: int = 1
    price: int = 0
    stat_bonus: dict[str, int] = Field(default_factory=dict)
    durability: int = 100
    max_durability: int = 100
    # Weapon-only
    damage: int = 0
    handedness: Optional[Handedness] = None
    weapon_speed: Optional[int] = None
    is_magic: bool = False
    # Defensive
    armor: int = 0
    crit_chance: int = 0
    dodge_chance: int = 0
    heal_amount: int = 0

    @property
    def is_two_handed(self) -> bool:
        return self.handedness == Handedness.TWO_HANDED


class ConsumeEffect(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    effect: str  # a stat name, "experience_bonus" or "gold_bonus"
    value: int
    duration: int  # battles


class Gem(Item):
    type: ItemType = ItemType.GEM
    gem_type: GemType
    gem_tier: GemTier
    consume_effect: ConsumeEffect


# Gems are tried first; a plain item dict has no gem_type and falls through.
InventoryItem = Annotated[Union[Gem, Item], Field(union_mode="left_to_right")]
