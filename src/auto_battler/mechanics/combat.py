"""Combat resolution: pure math, no I/O.

``resolve_combat`` takes two immutable combatant snapshots and returns a
``CombatResult``; it never touches the characters themselves. Callers
reconcile ``final_health`` back onto their records.
"""
from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field

from auto_battler.errors import CombatError
from auto_battler.mechanics.character_creation import calculate_max_health, class_definitions
from auto_battler.mechanics.items import generate_item
from auto_battler.mechanics.rng import RngSource, choice, percent_chance, randint, uniform
from auto_battler.models.character import Character, CharacterStats, Equipment, StatType
from auto_battler.models.combat import CombatResult, CombatRewards, CombatRound
from auto_battler.models.item import Handedness, Item, ItemType
from auto_battler.models.monster import SpawnedMonster

logger = logging.getLogger(__name__)

MAX_ROUNDS = 100
CRITICAL_MULTIPLIER = 2.5
MAX_ARMOR_REDUCTION = 0.75
MIN_HIT_CHANCE = 5
DEFAULT_WEAPON_SPEED = 5
LOSER_EXPERIENCE_SHARE = 0.5

AI_NAMES = [
    "Grimjaw", "Shadowbane", "Ironwill", "Swiftblade", "Stormcaller",
    "Bloodfist", "Nightwhisper", "Flameheart", "Icevein", "Thornspike",
    "Voidwalker", "Sunbringer", "Darkbane", "Steelclaw", "Mistral",
]


@dataclass(frozen=True)
class Combatant:
    """Snapshot of one side of a fight."""

    id: str
    name: str
    level: int
    stats: CharacterStats
    equipment: Equipment
    current_health: int
    max_health: int
    bonus_stats: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class CombatStats:
    max_health: int
    damage: int
    armor: int
    accuracy: int
    dodge: int
    critical_chance: int
    speed: int


def from_character(character: Character) -> Combatant:
    """Combatant for a character, with active gem stat effects applied."""
    bonus = {stat.value: character.gem_bonus(stat.value) for stat in StatType}
    return Combatant(
        id=character.id,
        name=character.name,
        level=character.level,
        stats=character.stats,
        equipment=character.equipment,
        current_health=character.current_health,
        max_health=character.max_health,
        bonus_stats={k: v for k, v in bonus.items() if v},
    )


def monster_to_combatant(monster: SpawnedMonster) -> Combatant:
    """Map monster stats onto character stats so both use one formula set."""
    s = monster.stats
    max_health = max(5, math.floor(s.health + monster.level * 2))
    speed = max(1, math.floor(s.speed * 0.8))
    claws = Item(
        id=f"{monster.id}_claws",
        name="Monster Claws",
        type=ItemType.WEAPON,
        damage=max(1, math.floor(s.damage * 0.2)),
        handedness=Handedness.ONE_HANDED,
        weapon_speed=DEFAULT_WEAPON_SPEED,
    )
    hide = Item(
        id=f"{monster.id}_hide",
        name="Thick Hide",
        type=ItemType.ARMOR,
        armor=math.floor(s.armor * 0.5),
    )
    return Combatant(
        id=monster.id,
        name=monster.name,
        level=monster.level,
        stats=CharacterStats(
            strength=max(1, math.floor(s.damage * 0.6)),
            dexterity=speed,
            constitution=max(1, math.floor(s.health / 15)),
            intelligence=5,
            speed=speed,
        ),
        equipment=Equipment(main_hand=claws, armor=hide),
        current_health=max_health,
        max_health=max_health,
    )


def generate_ai_opponent(player_level: int, rng: RngSource) -> Character:
    """A sparring opponent within one level of the player."""
    level = max(1, player_level + randint(rng, -1, 1))
    class_id = choice(rng, sorted(class_definitions()))
    name = choice(rng, AI_NAMES)
    value = 10 + (level - 1) * 3
    stats = CharacterStats(strength=value, dexterity=value, constitution=value, intelligence=value, speed=value)
    max_health = calculate_max_health(stats.constitution, level)
    return Character(
        name=name,
        character_class=class_id,
        level=level,
        stats=stats,
        equipment=Equipment(
            main_hand=generate_item("iron_sword", level),
            armor=generate_item("padded_undershirt", level),
        ),
        current_health=max_health,
        max_health=max_health,
    )


def _effective_stats(c: Combatant) -> dict[str, int]:
    totals = {stat.value: c.stats.get(stat) + c.bonus_stats.get(stat.value, 0) for stat in StatType}
    for item in c.equipment.equipped_items():
        for stat, bonus in item.stat_bonus.items():
            if stat in totals:
                totals[stat] += bonus
    return totals


def calculate_combat_stats(c: Combatant) -> CombatStats:
    """Derive fight numbers from stats, level and equipped gear."""
    eff = _effective_stats(c)
    gear = c.equipment.equipped_items()
    armor = sum(i.armor for i in gear)
    weapon_damage = sum(i.damage for i in gear)
    crit_bonus = sum(i.crit_chance for i in gear)
    dodge_bonus = sum(i.dodge_chance for i in gear)

    main, off = c.equipment.main_hand, c.equipment.off_hand
    dual_wield_bonus = 0
    speed_modifier = 0
    if main is not None and main.type == ItemType.WEAPON:
        speed_modifier = main.weapon_speed or DEFAULT_WEAPON_SPEED
        if (off is not None and off.type == ItemType.WEAPON
                and main.handedness == Handedness.ONE_HANDED
                and off.handedness == Handedness.ONE_HANDED):
            dual_wield_bonus = math.floor(off.damage * 0.5)
            speed_modifier = math.floor((speed_modifier + (off.weapon_speed or DEFAULT_WEAPON_SPEED)) * 1.1)
            crit_bonus += 5
        elif main.is_two_handed:
            weapon_damage = math.floor(weapon_damage * 1.15)
            speed_modifier = math.floor(speed_modifier * 0.9)

    magic = main is not None and main.is_magic
    primary = eff["intelligence"] if magic else eff["strength"]
    secondary = eff["strength"] if magic else eff["intelligence"]
    damage = (
        math.floor(math.sqrt(max(0, primary) * 20) + primary * 0.5)
        + weapon_damage
        + dual_wield_bonus
        + math.floor(secondary * 0.3)
        + math.floor(c.level * 1.5 + math.sqrt(c.level * 10))
    )

    dex = max(0, eff["dexterity"])
    accuracy = min(95, max(15, 75 + math.floor(math.sqrt(dex * 25))))
    dodge = min(35, max(0, math.floor(math.sqrt(dex * 8)) + dodge_bonus))
    critical = min(25, max(2, 2 + math.floor(math.sqrt(dex * 4)) + crit_bonus))
    speed = eff["speed"] + math.floor(c.level * 0.5) + math.floor(eff["dexterity"] * 0.2) + speed_modifier
    total_armor = armor + math.floor(math.sqrt(max(0, eff["constitution"]) * 10))

    return CombatStats(
        max_health=c.max_health,
        damage=max(1, damage),
        armor=max(0, total_armor),
        accuracy=accuracy,
        dodge=dodge,
        critical_chance=critical,
        speed=max(1, speed),
    )


def armor_reduction(armor: int) -> float:
    """Fraction of damage absorbed; diminishing returns, capped at 75%."""
    if armor <= 0:
        return 0.0
    return min(MAX_ARMOR_REDUCTION, armor / (armor + 12 * math.sqrt(armor)))


def calculate_damage(base_damage: int, armor: int, rng: RngSource) -> int:
    variable = math.floor(base_damage * uniform(rng, 0.88, 1.12))
    return max(1, math.floor(variable * (1 - armor_reduction(armor))))


def hit_chance(accuracy: int, dodge: int) -> float:
    return max(MIN_HIT_CHANCE, accuracy * (1 - dodge / 100))


def critical_chance(crit: int, attacker_speed: int, defender_speed: int) -> float:
    speed_bonus = max(0.0, min(8.0, (attacker_speed - defender_speed) * 0.15))
    return crit + speed_bonus


def _resolve_attack(
    round_number: int,
    attacker: Combatant,
    defender: Combatant,
    att: CombatStats,
    dfn: CombatStats,
    defender_health: int,
    rng: RngSource,
) -> CombatRound:
    if not percent_chance(rng, hit_chance(att.accuracy, dfn.dodge)):
        return CombatRound(
            round_number=round_number, attacker_id=attacker.id, defender_id=defender.id,
            is_miss=True, defender_health=defender_health,
            description=f"{attacker.name} swings at {defender.name} but the attack goes wide!",
        )
    if percent_chance(rng, dfn.dodge):
        return CombatRound(
            round_number=round_number, attacker_id=attacker.id, defender_id=defender.id,
            is_dodge=True, defender_health=defender_health,
            description=f"{defender.name} nimbly dodges {attacker.name}'s attack!",
        )

    base = att.damage
    is_critical = percent_chance(rng, critical_chance(att.critical_chance, att.speed, dfn.speed))
    if is_critical:
        base = math.floor(base * CRITICAL_MULTIPLIER)
    damage = calculate_damage(base, dfn.armor, rng)
    remaining = max(0, defender_health - damage)
    if is_critical:
        text = (f"💥 {attacker.name} lands a DEVASTATING CRITICAL HIT on "
                f"{defender.name} for {damage} damage!")
    else:
        text = f"{attacker.name} strikes {defender.name} for {damage} damage."
    return CombatRound(
        round_number=round_number, attacker_id=attacker.id, defender_id=defender.id,
        damage=damage, is_critical=is_critical, defender_health=remaining, description=text,
    )


def combat_rewards(winner_level: int, loser_level: int) -> tuple[CombatRewards, CombatRewards]:
    """Winner and loser rewards for a duel; beating weaker foes pays less."""
    multiplier = max(0.5, 1 - (winner_level - loser_level) * 0.1)
    experience = math.floor((50 + loser_level * 10) * multiplier)
    gold = math.floor((20 + loser_level * 5) * multiplier)
    return (
        CombatRewards(experience=experience, gold=gold),
        CombatRewards(experience=math.floor(experience * LOSER_EXPERIENCE_SHARE)),
    )


def _first_actor(a: Combatant, b: Combatant, a_stats: CombatStats, b_stats: CombatStats) -> bool:
    """True if ``a`` opens the fight."""
    if a_stats.speed != b_stats.speed:
        return a_stats.speed > b_stats.speed
    return a.id <= b.id


def resolve_combat(
    a: Combatant,
    b: Combatant,
    rng: RngSource,
    now: float | None = None,
    award_rewards: bool = True,
) -> CombatResult:
    """Fight until one side drops or the round cap is hit."""
    if a.id == b.id:
        raise CombatError("A combatant cannot fight itself")
    if a.max_health <= 0 or b.max_health <= 0:
        raise CombatError("Combatants must have positive max health")

    now = time.time() if now is None else now
    stats = {a.id: calculate_combat_stats(a), b.id: calculate_combat_stats(b)}
    health = {
        a.id: max(0, min(a.current_health, a.max_health)),
        b.id: max(0, min(b.current_health, b.max_health)),
    }
    a_first = _first_actor(a, b, stats[a.id], stats[b.id])
    attacker, defender = (a, b) if a_first else (b, a)
    opener = attacker

    rounds: list[CombatRound] = []
    log: list[str] = [f"⚔️ {a.name} (Lv {a.level}) vs {b.name} (Lv {b.level})"]
    for round_number in range(1, MAX_ROUNDS + 1):
        if health[a.id] <= 0 or health[b.id] <= 0:
            break
        rnd = _resolve_attack(
            round_number, attacker, defender,
            stats[attacker.id], stats[defender.id], health[defender.id], rng,
        )
        health[defender.id] = rnd.defender_health
        rounds.append(rnd)
        log.append(rnd.description)
        attacker, defender = defender, attacker

    if health[b.id] <= 0 < health[a.id]:
        winner, loser = a, b
    elif health[a.id] <= 0 < health[b.id]:
        winner, loser = b, a
    else:
        frac_a = health[a.id] / a.max_health
        frac_b = health[b.id] / b.max_health
        if frac_a == frac_b:
            winner = opener
        else:
            winner = a if frac_a > frac_b else b
        loser = b if winner is a else a
        log.append(f"The fight is called after {len(rounds)} rounds!")
    log.append(f"🏆 {winner.name} wins!")

    if award_rewards:
        winner_rewards, loser_rewards = combat_rewards(winner.level, loser.level)
    else:
        winner_rewards, loser_rewards = CombatRewards(), CombatRewards()

    logger.debug("Combat %s vs %s: %s won in %d rounds", a.name, b.name, winner.name, len(rounds))
    return CombatResult(
        character1_id=a.id,
        character1_name=a.name,
        character2_id=b.id,
        character2_name=b.name,
        winner_id=winner.id,
        loser_id=loser.id,
        rounds=rounds,
        log=log,
        winner_rewards=winner_rewards,
        loser_rewards=loser_rewards,
        final_health=dict(health),
        duration=len(rounds),
        timestamp=now,
    )
