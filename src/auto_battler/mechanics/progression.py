"""Stat training and experience-based leveling: pure math, no I/O."""
from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass

from auto_battler.errors import ValidationError
from auto_battler.mechanics.character_creation import calculate_max_health, get_class
from auto_battler.mechanics.rng import RngSource, chance, percent_chance
from auto_battler.models.character import Character, StatType

logger = logging.getLogger(__name__)

TRAINING_COOLDOWN_SECONDS = 30 * 60
CRITICAL_TRAINING_CHANCE = 0.10
LEVEL_UP_STAT_GAIN = 2


@dataclass(frozen=True)
class TrainingCost:
    energy: int
    gold: int


@dataclass
class TrainingResult:
    character: Character
    stat: StatType
    old_value: int
    new_value: int
    energy_cost: int
    gold_cost: int
    success: bool
    critical: bool = False


def parse_stat(stat: StatType | str) -> StatType:
    try:
        return StatType(stat)
    except ValueError:
        raise ValidationError(f"Unknown stat: {stat}") from None


def training_cost(character: Character, stat: StatType | str) -> TrainingCost:
    """Energy and gold cost grow with the current stat value."""
    value = character.stats.get(parse_stat(stat))
    return TrainingCost(
        energy=math.floor(20 * (1 + value * 0.1)),
        gold=math.floor(50 * (1 + value * 0.05)),
    )


def success_rate(stat_value: int) -> int:
    """Percent chance a training session succeeds."""
    return max(50, 95 - stat_value * 2)


def seconds_until_trainable(character: Character, stat: StatType | str, now: float | None = None) -> float:
    now = time.time() if now is None else now
    last = character.last_training.get(parse_stat(stat).value)
    if last is None:
        return 0.0
    return max(0.0, TRAINING_COOLDOWN_SECONDS - (now - last))


def can_train(character: Character, stat: StatType | str, now: float | None = None) -> bool:
    """True iff alive, affordable, and off cooldown. Never raises."""
    if not character.is_alive:
        return False
    try:
        stat = parse_stat(stat)
    except ValidationError:
        return False
    cost = training_cost(character, stat)
    if character.energy < cost.energy or character.gold < cost.gold:
        return False
    return seconds_until_trainable(character, stat, now) <= 0


def _with_constitution(character: Character, constitution: int) -> dict:
    """Fields to update when constitution changes; health tracks the new max."""
    new_max = calculate_max_health(constitution, character.level)
    delta = new_max - character.max_health
    current = max(0, min(new_max, character.current_health + max(0, delta)))
    return {"max_health": new_max, "current_health": current}


def train(
    character: Character,
    stat: StatType | str,
    rng: RngSource,
    now: float | None = None,
) -> TrainingResult:
    """Run one training session. The cost is paid whether or not it succeeds."""
    stat = parse_stat(stat)
    now = time.time() if now is None else now
    if not can_train(character, stat, now):
        raise ValidationError(f"Cannot train {stat.value} right now")

    cost = training_cost(character, stat)
    old_value = character.stats.get(stat)
    success = percent_chance(rng, success_rate(old_value))
    critical = success and chance(rng, CRITICAL_TRAINING_CHANCE)
    gain = (2 if critical else 1) if success else 0
    new_value = old_value + gain

    update: dict = {
        "energy": character.energy - cost.energy,
        "gold": character.gold - cost.gold,
        "stats": character.stats.with_stat(stat, new_value),
        "last_training": {**character.last_training, stat.value: now},
        "last_active": now,
    }
    if stat == StatType.CONSTITUTION and gain:
        update.update(_with_constitution(character, new_value))

    logger.debug(
        "Training %s for %s: %d -> %d (success=%s, critical=%s)",
        stat.value, character.name, old_value, new_value, success, critical,
    )
    return TrainingResult(
        character=character.model_copy(update=update),
        stat=stat,
        old_value=old_value,
        new_value=new_value,
        energy_cost=cost.energy,
        gold_cost=cost.gold,
        success=success,
        critical=critical,
    )


def experience_for_level(level: int) -> int:
    """Experience needed to advance past the given level."""
    return math.floor(100 * 1.5 ** (max(1, level) - 1))


def can_level_up(character: Character) -> bool:
    return character.experience >= experience_for_level(character.level)


def level_up_character(character: Character) -> Character:
    """Advance one level if enough experience has accrued; otherwise a no-op."""
    if not can_level_up(character):
        return character

    cls = get_class(character.character_class)
    stats = character.stats
    for stat in StatType:
        growth = cls.growth.get(stat, 1.0)
        stats = stats.with_stat(stat, stats.get(stat) + max(1, math.floor(LEVEL_UP_STAT_GAIN * growth)))

    new_level = character.level + 1
    max_health = calculate_max_health(stats.constitution, new_level)
    logger.info("%s reached level %d", character.name, new_level)
    return character.model_copy(update={
        "level": new_level,
        "experience": character.experience - experience_for_level(character.level),
        "stats": stats,
        "max_health": max_health,
        "current_health": max_health,
        "energy": character.max_energy,
    })
