"""Monster kill rewards: pure math, no I/O.

Every kill pays guaranteed experience and gold; the monster's loot table
and the gem drop roll only add to that.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field

from auto_battler.mechanics.gems import EXPERIENCE_BONUS, GOLD_BONUS, roll_gem_drop
from auto_battler.mechanics.items import generate_item
from auto_battler.mechanics.rng import RngSource, chance, randint
from auto_battler.models.character import Character
from auto_battler.models.item import Gem, Item
from auto_battler.models.monster import MonsterRarity, SpawnedMonster

logger = logging.getLogger(__name__)

RARITY_REWARD_MULTIPLIER: dict[MonsterRarity, float] = {
    MonsterRarity.COMMON: 1.0,
    MonsterRarity.UNCOMMON: 1.3,
    MonsterRarity.RARE: 1.6,
    MonsterRarity.ELITE: 2.0,
    MonsterRarity.BOSS: 3.0,
}


@dataclass
class LootResult:
    experience: int = 0
    gold: int = 0
    items: list[Item] = field(default_factory=list)
    gems: list[Gem] = field(default_factory=list)
    log: list[str] = field(default_factory=list)

    @property
    def all_items(self) -> list[Item]:
        return [*self.items, *self.gems]


def level_multiplier(monster_level: int, player_level: int) -> float:
    return max(0.3, 1 + 0.2 * (monster_level - player_level))


def guaranteed_rewards(
    monster_level: int,
    rarity: MonsterRarity,
    player_level: int,
    experience_bonus: int = 0,
    gold_bonus: int = 0,
) -> tuple[int, int]:
    """Experience and gold paid for every kill.

    ``experience_bonus`` and ``gold_bonus`` are percentages from active gems.
    """
    mult = RARITY_REWARD_MULTIPLIER[MonsterRarity(rarity)] * level_multiplier(monster_level, player_level)
    experience = math.floor(10 * monster_level ** 1.2) * mult
    gold = math.floor(5 * monster_level ** 1.1) * mult
    experience *= 1 + experience_bonus / 100
    gold *= 1 + gold_bonus / 100
    return math.floor(experience), math.floor(gold)


def roll_bonus_drops(monster: SpawnedMonster, rng: RngSource) -> LootResult:
    """One independent trial per loot-table entry."""
    result = LootResult()
    for entry in monster.loot:
        if not chance(rng, entry.chance):
            continue
        result.gold += entry.gold
        result.experience += entry.experience
        if entry.item_id:
            level = max(1, monster.level + randint(rng, -1, 1))
            item = generate_item(entry.item_id, level)
            result.items.append(item)
            result.log.append(f"🎁 {monster.name} dropped {item.name}!")
        if entry.gold:
            result.log.append(f"💰 Found {entry.gold} extra gold!")
        if entry.experience:
            result.log.append(f"✨ Gained {entry.experience} bonus experience!")
    return result


def generate_loot(monster: SpawnedMonster, character: Character, rng: RngSource) -> LootResult:
    """All rewards for killing ``monster``: guaranteed, bonus, then gem."""
    experience, gold = guaranteed_rewards(
        monster.level,
        monster.rarity,
        character.level,
        experience_bonus=character.gem_bonus(EXPERIENCE_BONUS),
        gold_bonus=character.gem_bonus(GOLD_BONUS),
    )
    result = roll_bonus_drops(monster, rng)
    result.experience += experience
    result.gold += gold
    result.log.insert(0, f"Defeated {monster.name}: +{experience} XP, +{gold} gold")

    gem = roll_gem_drop(monster.level, monster.rarity, rng)
    if gem is not None:
        result.gems.append(gem)
        result.log.append(f"💎 {monster.name} dropped a {gem.name}!")

    logger.debug(
        "Loot from %s (lvl %d): %d xp, %d gold, %d items, %d gems",
        monster.name, monster.level, result.experience, result.gold, len(result.items), len(result.gems),
    )
    return result
