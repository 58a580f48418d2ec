"""Validates character snapshots before they are committed."""
from __future__ import annotations

from auto_battler.models.character import Character, Equipment
from auto_battler.models.item import ItemType
from auto_battler.utils import clamp


def clamp_character(character: Character) -> Character:
    """Pull health, energy and gold back inside their bounds."""
    health = clamp(character.current_health, 0, character.max_health)
    energy = clamp(character.energy, 0, character.max_energy)
    gold = max(0, character.gold)
    if (health, energy, gold) == (character.current_health, character.energy, character.gold):
        return character
    return character.model_copy(update={"current_health": health, "energy": energy, "gold": gold})


def validate_equipment(equipment: Equipment) -> tuple[bool, str]:
    """Check the hand rule: two-handed main hand means an empty off hand."""
    main, off = equipment.main_hand, equipment.off_hand
    if main is not None and main.type != ItemType.WEAPON:
        return False, f"{main.name} is not a weapon"
    if off is not None and off.type not in (ItemType.WEAPON, ItemType.SHIELD):
        return False, f"{off.name} cannot be held in the off hand"
    if main is not None and main.is_two_handed and off is not None:
        return False, "A two-handed weapon leaves no room for an off-hand item"
    if off is not None and off.is_two_handed:
        return False, "Two-handed weapons cannot go in the off hand"
    return True, ""


def validate_character(character: Character) -> tuple[bool, str]:
    if not 0 <= character.current_health <= character.max_health:
        return False, "Health out of range"
    if not 0 <= character.energy <= character.max_energy:
        return False, "Energy out of range"
    return validate_equipment(character.equipment)
