"""Character creation logic: assembles a complete starting character."""
from __future__ import annotations

import functools
import math
import time

from auto_battler.content.loader import load_all_classes
from auto_battler.errors import ValidationError
from auto_battler.mechanics.items import generate_starter_equipment
from auto_battler.models.character import Character, ClassDefinition, Equipment, EquipmentSlot
from auto_battler.models.item import ItemType

STARTING_GOLD = 500
STARTING_ENERGY = 100
MAX_NAME_LENGTH = 24

_STARTER_SLOTS: dict[ItemType, EquipmentSlot] = {
    ItemType.WEAPON: EquipmentSlot.MAIN_HAND,
    ItemType.ARMOR: EquipmentSlot.ARMOR,
    ItemType.HELMET: EquipmentSlot.HELMET,
    ItemType.BOOTS: EquipmentSlot.BOOTS,
    ItemType.ACCESSORY: EquipmentSlot.ACCESSORY,
}


@functools.cache
def class_definitions() -> dict[str, ClassDefinition]:
    return {cid: ClassDefinition.model_validate(data) for cid, data in load_all_classes().items()}


def get_class(class_id: str) -> ClassDefinition:
    try:
        return class_definitions()[class_id]
    except KeyError:
        raise ValidationError(f"Unknown class: {class_id}") from None


def calculate_max_health(constitution: int, level: int) -> int:
    return math.floor(100 + constitution * 5 + level * 10)


def create_character(
    name: str,
    class_id: str,
    starting_gold: int = STARTING_GOLD,
    now: float | None = None,
) -> Character:
    """Build a level 1 character with class base stats and starter gear equipped."""
    name = name.strip()
    if not name:
        raise ValidationError("Character name cannot be empty")
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(f"Character name must be at most {MAX_NAME_LENGTH} characters")

    cls = get_class(class_id)
    now = time.time() if now is None else now
    stats = cls.base_stats.model_copy()
    max_health = calculate_max_health(stats.constitution, 1)

    slots = {}
    for item in generate_starter_equipment():
        slot = _STARTER_SLOTS.get(item.type)
        if slot is not None and slot.value not in slots:
            slots[slot.value] = item

    return Character(
        name=name,
        character_class=cls.id,
        level=1,
        experience=0,
        gold=starting_gold,
        energy=STARTING_ENERGY,
        max_energy=STARTING_ENERGY,
        current_health=max_health,
        max_health=max_health,
        stats=stats,
        equipment=Equipment(**slots),
        inventory=[],
        created_at=now,
        last_active=now,
    )
