"""Equip and unequip rules: pure functions over character snapshots.

Each call computes the new equipment and inventory as whole values, so a
rejected change leaves the character untouched.
"""
from __future__ import annotations

from auto_battler.errors import ValidationError
from auto_battler.models.character import Character, EquipmentSlot
from auto_battler.models.item import Item, ItemType

_ARMOR_SLOTS: dict[ItemType, EquipmentSlot] = {
    ItemType.ARMOR: EquipmentSlot.ARMOR,
    ItemType.HELMET: EquipmentSlot.HELMET,
    ItemType.BOOTS: EquipmentSlot.BOOTS,
    ItemType.ACCESSORY: EquipmentSlot.ACCESSORY,
}


def _plan_weapon(character: Character, item: Item) -> dict[EquipmentSlot, Item | None]:
    eq = character.equipment
    if item.is_two_handed:
        return {EquipmentSlot.MAIN_HAND: item, EquipmentSlot.OFF_HAND: None}
    if eq.main_hand is None:
        return {EquipmentSlot.MAIN_HAND: item}
    if not eq.main_hand.is_two_handed and eq.off_hand is None:
        return {EquipmentSlot.OFF_HAND: item}
    return {EquipmentSlot.MAIN_HAND: item}


def _plan_shield(character: Character, item: Item) -> dict[EquipmentSlot, Item | None]:
    plan: dict[EquipmentSlot, Item | None] = {EquipmentSlot.OFF_HAND: item}
    main = character.equipment.main_hand
    if main is not None and main.is_two_handed:
        plan[EquipmentSlot.MAIN_HAND] = None
    return plan


def equip_item(character: Character, item_id: str) -> Character:
    """Move an inventory item into its slot; displaced items return to inventory."""
    item = character.find_item(item_id)
    if item is None:
        raise ValidationError(f"Item {item_id} is not in the inventory")

    if item.type == ItemType.WEAPON:
        plan = _plan_weapon(character, item)
    elif item.type == ItemType.SHIELD:
        plan = _plan_shield(character, item)
    elif item.type in _ARMOR_SLOTS:
        plan = {_ARMOR_SLOTS[item.type]: item}
    else:
        raise ValidationError(f"{item.name} cannot be equipped")

    displaced = [
        old for slot in plan
        if (old := character.equipment.get(slot)) is not None
    ]
    inventory = [i for i in character.inventory if i.id != item_id] + displaced
    equipment = character.equipment.model_copy(update={slot.value: new for slot, new in plan.items()})
    return character.model_copy(update={"equipment": equipment, "inventory": inventory})


def unequip_item(character: Character, slot: EquipmentSlot | str) -> Character:
    slot = EquipmentSlot(slot)
    item = character.equipment.get(slot)
    if item is None:
        raise ValidationError(f"Nothing equipped in {slot.value}")
    equipment = character.equipment.model_copy(update={slot.value: None})
    return character.model_copy(update={
        "equipment": equipment,
        "inventory": [*character.inventory, item],
    })
