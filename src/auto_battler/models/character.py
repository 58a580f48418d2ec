from __future__ import annotations

import time
import uuid
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auto_battler.models.item import GemType, InventoryItem, Item


class StatType(str, Enum):
    STRENGTH = "strength"
    DEXTERITY = "dexterity"
    CONSTITUTION = "constitution"
    INTELLIGENCE = "intelligence"
    SPEED = "speed"


class EquipmentSlot(str, Enum):
    MAIN_HAND = "main_hand"
    OFF_HAND = "off_hand"
    ARMOR = "armor"
    HELMET = "helmet"
    BOOTS = "boots"
    ACCESSORY = "accessory"


class CharacterStats(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    strength: int = 10
    dexterity: int = 10
    constitution: int = 10
    intelligence: int = 10
    speed: int = 10

    def get(self, stat: StatType | str) -> int:
        return getattr(self, StatType(stat).value)

    def with_stat(self, stat: StatType | str, value: int) -> CharacterStats:
        return self.model_copy(update={StatType(stat).value: value})


class Equipment(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    main_hand: Optional[Item] = None
    off_hand: Optional[Item] = None
    armor: Optional[Item] = None
    helmet: Optional[Item] = None
    boots: Optional[Item] = None
    accessory: Optional[Item] = None

    def equipped_items(self) -> list[Item]:
        return [item for slot in EquipmentSlot if (item := getattr(self, slot.value)) is not None]

    def get(self, slot: EquipmentSlot | str) -> Optional[Item]:
        return getattr(self, EquipmentSlot(slot).value)


class ClassDefinition(BaseModel):
    """Static class data loaded from content/classes/*.toml."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    name: str
    description: str = ""
    primary_stat: StatType
    base_stats: CharacterStats
    growth: dict[StatType, float]


class ActiveGemEffect(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    gem_type: GemType
    effect: str
    value: int
    battles_remaining: int


class Character(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    character_class: str
    level: int = 1
    experience: int = 0
    gold: int = 0
    energy: int = 100
    max_energy: int = 100
    current_health: int = 100
    max_health: int = 100
    stats: CharacterStats = Field(default_factory=CharacterStats)
    equipment: Equipment = Field(default_factory=Equipment)
    inventory: list[InventoryItem] = Field(default_factory=list)
    wins: int = 0
    losses: int = 0
    last_training: dict[str, float] = Field(default_factory=dict)
    active_gem_effects: list[ActiveGemEffect] = Field(default_factory=list)
    created_at: float = Field(default_factory=time.time)
    last_active: float = Field(default_factory=time.time)

    @property
    def is_alive(self) -> bool:
        return self.current_health > 0

    def find_item(self, item_id: str) -> Optional[Item]:
        return next((i for i in self.inventory if i.id == item_id), None)

    def gem_bonus(self, effect: str) -> int:
        """Sum of active gem effects of the given kind."""
        return sum(e.value for e in self.active_gem_effects if e.effect == effect)
