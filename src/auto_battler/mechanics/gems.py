"""Gem catalogue, drops, consumption and fusion: pure math, no I/O."""
from __future__ import annotations

import functools
import logging
import math
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from auto_battler.content.loader import load_gem_catalogue
from auto_battler.errors import ValidationError
from auto_battler.mechanics.rng import RngSource, chance, weighted_choice
from auto_battler.models.character import ActiveGemEffect, Character
from auto_battler.models.item import ConsumeEffect, Gem, GemTier, GemType, Item, ItemRarity
from auto_battler.models.monster import MonsterRarity

logger = logging.getLogger(__name__)

BASE_GEM_DROP_CHANCE = 0.05
EXPERIENCE_BONUS = "experience_bonus"
GOLD_BONUS = "gold_bonus"
MIN_PERCENT_BONUS = 2

GEM_DROP_RARITY_MULTIPLIER: dict[MonsterRarity, float] = {
    MonsterRarity.COMMON: 1.0,
    MonsterRarity.UNCOMMON: 1.5,
    MonsterRarity.RARE: 2.0,
    MonsterRarity.ELITE: 3.0,
    MonsterRarity.BOSS: 4.0,
}

# Stronger monsters shift weight toward higher tiers: each tier's drop weight
# is multiplied by (1 + tier_rank * shift).
TIER_SHIFT_BY_RARITY: dict[MonsterRarity, float] = {
    MonsterRarity.COMMON: 0.0,
    MonsterRarity.UNCOMMON: 0.25,
    MonsterRarity.RARE: 0.5,
    MonsterRarity.ELITE: 1.0,
    MonsterRarity.BOSS: 2.0,
}


@dataclass(frozen=True)
class GemTypeInfo:
    gem_type: GemType
    name: str
    effect: str
    base_price: int
    drop_weight: float


@dataclass(frozen=True)
class GemTierInfo:
    tier: GemTier
    name: str
    multiplier: float
    rarity: ItemRarity
    duration: int
    price_multiplier: float
    min_monster_level: int
    drop_weight: float
    fusion_cost: Optional[int] = None  # gems of this tier consumed per fusion
    failure_chance: float = 0.0  # when this tier is the fusion target


@dataclass
class FusionResult:
    success: bool
    consumed: list[Gem]
    result_gem: Optional[Gem] = None
    message: str = ""


@dataclass
class BatchFusionResult:
    inventory: list[Item]
    attempts: list[FusionResult] = field(default_factory=list)

    @property
    def successes(self) -> int:
        return sum(1 for a in self.attempts if a.success)

    @property
    def failures(self) -> int:
        return sum(1 for a in self.attempts if not a.success)


@functools.cache
def _catalogue() -> dict[str, Any]:
    return load_gem_catalogue()


@functools.cache
def gem_types() -> dict[GemType, GemTypeInfo]:
    return {
        GemType(key): GemTypeInfo(
            gem_type=GemType(key),
            name=data["name"],
            effect=data["effect"],
            base_price=data["base_price"],
            drop_weight=data.get("drop_weight", 1),
        )
        for key, data in _catalogue()["types"].items()
    }


@functools.cache
def gem_tiers() -> dict[GemTier, GemTierInfo]:
    return {
        GemTier(key): GemTierInfo(
            tier=GemTier(key),
            name=data["name"],
            multiplier=data["multiplier"],
            rarity=ItemRarity(data["rarity"]),
            duration=data["duration"],
            price_multiplier=data["price_multiplier"],
            min_monster_level=data["min_monster_level"],
            drop_weight=data["drop_weight"],
            fusion_cost=data.get("fusion_cost"),
            failure_chance=data.get("failure_chance", 0.0),
        )
        for key, data in _catalogue()["tiers"].items()
    }


def base_value() -> int:
    return _catalogue().get("base_value", 5)


def next_tier(tier: GemTier) -> Optional[GemTier]:
    tiers = list(GemTier)
    idx = tiers.index(tier)
    return tiers[idx + 1] if idx + 1 < len(tiers) else None


def required_count(tier: GemTier) -> Optional[int]:
    """Gems of this tier needed for one fusion, or None at the top tier."""
    return gem_tiers()[tier].fusion_cost


def fusion_failure_chance(from_tier: GemTier) -> float:
    """Failure probability when fusing up from ``from_tier``, set by the target tier."""
    target = next_tier(from_tier)
    if target is None:
        return 0.0
    return gem_tiers()[target].failure_chance


def gem_name(gem_type: GemType, tier: GemTier) -> str:
    type_name = gem_types()[gem_type].name
    if tier == GemTier.NORMAL:
        return type_name
    return f"{gem_tiers()[tier].name} {type_name}"


def gem_effect_value(gem_type: GemType, tier: GemTier) -> int:
    value = math.floor(base_value() * gem_tiers()[tier].multiplier)
    if gem_types()[gem_type].effect in (EXPERIENCE_BONUS, GOLD_BONUS):
        return max(MIN_PERCENT_BONUS, value)
    return max(1, value)


def gem_price(gem_type: GemType, tier: GemTier, level: int) -> int:
    base = gem_types()[gem_type].base_price
    return math.floor(base * gem_tiers()[tier].price_multiplier * (1 + level * 0.1))


def parse_gem_kind(gem_type: GemType | str, tier: GemTier | str) -> tuple[GemType, GemTier]:
    try:
        return GemType(gem_type), GemTier(tier)
    except ValueError:
        raise ValidationError(f"Unknown gem: {gem_type} {tier}") from None


def create_gem(gem_type: GemType | str, tier: GemTier | str, level: int = 1) -> Gem:
    gem_type, tier = parse_gem_kind(gem_type, tier)
    level = max(1, level)
    type_info = gem_types()[gem_type]
    tier_info = gem_tiers()[tier]
    effect = ConsumeEffect(
        effect=type_info.effect,
        value=gem_effect_value(gem_type, tier),
        duration=tier_info.duration,
    )
    return Gem(
        id=str(uuid.uuid4()),
        base_id=f"{tier.value}_{gem_type.value}",
        name=gem_name(gem_type, tier),
        description=f"Consume to gain +{effect.value} {effect.effect.replace('_', ' ')} for {effect.duration} battles.",
        rarity=tier_info.rarity,
        level=level,
        price=gem_price(gem_type, tier, level),
        gem_type=gem_type,
        gem_tier=tier,
        consume_effect=effect,
    )


def gems_in(inventory: Sequence[Item], gem_type: GemType | None = None, tier: GemTier | None = None) -> list[Gem]:
    return [
        item for item in inventory
        if isinstance(item, Gem)
        and (gem_type is None or item.gem_type == gem_type)
        and (tier is None or item.gem_tier == tier)
    ]


# -- Fusion --

def validate_fusion(gems: Sequence[Gem]) -> None:
    """Raise ValidationError unless the gems form at least one valid recipe."""
    if not gems:
        raise ValidationError("No gems selected for fusion")
    if len({g.id for g in gems}) != len(gems):
        raise ValidationError("The same gem cannot be used twice in a fusion")
    first = gems[0]
    if any(g.gem_type != first.gem_type for g in gems):
        raise ValidationError("All gems must be the same type")
    if any(g.gem_tier != first.gem_tier for g in gems):
        raise ValidationError("All gems must be the same tier")
    if next_tier(first.gem_tier) is None:
        raise ValidationError(f"{gem_tiers()[first.gem_tier].name} gems cannot be fused further")
    needed = required_count(first.gem_tier)
    if len(gems) < needed:
        raise ValidationError(f"Need {needed} gems to fuse, have {len(gems)}")


def can_fuse(gems: Sequence[Gem]) -> tuple[bool, str]:
    try:
        validate_fusion(gems)
    except ValidationError as e:
        return False, str(e)
    return True, ""


def fuse_gems(gems: Sequence[Gem], rng: RngSource) -> FusionResult:
    """Fuse one recipe's worth of gems. Inputs are consumed either way."""
    validate_fusion(gems)
    tier = gems[0].gem_tier
    gem_type = gems[0].gem_type
    consumed = list(gems[: required_count(tier)])
    target = next_tier(tier)

    if chance(rng, fusion_failure_chance(tier)):
        logger.info("Fusion of %d %s gems failed", len(consumed), gem_name(gem_type, tier))
        return FusionResult(
            success=False,
            consumed=consumed,
            message=f"The fusion failed! {len(consumed)} gems were destroyed.",
        )

    level = math.floor(sum(g.level for g in consumed) / len(consumed))
    result = create_gem(gem_type, target, level)
    logger.info("Fused %d gems into %s", len(consumed), result.name)
    return FusionResult(
        success=True,
        consumed=consumed,
        result_gem=result,
        message=f"Successfully created {result.name}!",
    )


def apply_fusion(inventory: Sequence[Item], fusion: FusionResult) -> list[Item]:
    """New inventory with the consumed gems removed and the result added."""
    consumed_ids = {g.id for g in fusion.consumed}
    remaining = [item for item in inventory if item.id not in consumed_ids]
    if fusion.result_gem is not None:
        remaining.append(fusion.result_gem)
    return remaining


def fuse_all(
    inventory: Sequence[Item],
    gem_type: GemType | str,
    tier: GemTier | str,
    rng: RngSource,
) -> BatchFusionResult:
    """Fuse matching gems one recipe at a time until stock runs short."""
    gem_type, tier = parse_gem_kind(gem_type, tier)
    needed = required_count(tier)
    if needed is None:
        raise ValidationError(f"{gem_tiers()[tier].name} gems cannot be fused further")

    batch = BatchFusionResult(inventory=list(inventory))
    while True:
        stock = gems_in(batch.inventory, gem_type, tier)
        if len(stock) < needed:
            break
        fusion = fuse_gems(stock[:needed], rng)
        batch.inventory = apply_fusion(batch.inventory, fusion)
        batch.attempts.append(fusion)
    if not batch.attempts:
        raise ValidationError(f"Need {needed} gems to fuse, have {len(gems_in(inventory, gem_type, tier))}")
    return batch


# -- Drops --

def gem_drop_chance(rarity: MonsterRarity) -> float:
    return BASE_GEM_DROP_CHANCE * GEM_DROP_RARITY_MULTIPLIER[MonsterRarity(rarity)]


def available_tiers(monster_level: int) -> list[GemTier]:
    return [t for t, info in gem_tiers().items() if monster_level >= info.min_monster_level]


def roll_gem_drop(monster_level: int, rarity: MonsterRarity, rng: RngSource) -> Optional[Gem]:
    """Two-stage gem drop: the overall drop roll, then type and tier sampling."""
    rarity = MonsterRarity(rarity)
    if not chance(rng, gem_drop_chance(rarity)):
        return None

    tiers = available_tiers(monster_level)
    shift = TIER_SHIFT_BY_RARITY[rarity]
    tier_weights = [gem_tiers()[t].drop_weight * (1 + t.rank * shift) for t in tiers]
    tier = weighted_choice(rng, tiers, tier_weights)

    types = list(gem_types().values())
    info = weighted_choice(rng, types, [t.drop_weight for t in types])
    gem = create_gem(info.gem_type, tier, monster_level)
    logger.debug("Gem drop: %s (monster level %d, %s)", gem.name, monster_level, rarity.value)
    return gem


# -- Consumption --

def consume_gem(character: Character, gem_id: str) -> Character:
    """Use a gem from inventory, activating its effect for a number of battles.

    A gem of a type that is already active refreshes the duration and keeps
    the stronger value.
    """
    gem = character.find_item(gem_id)
    if not isinstance(gem, Gem):
        raise ValidationError("Only gems can be consumed")

    effect = gem.consume_effect
    effects = []
    replaced = False
    for active in character.active_gem_effects:
        if active.gem_type == gem.gem_type:
            effects.append(ActiveGemEffect(
                gem_type=gem.gem_type,
                effect=effect.effect,
                value=max(active.value, effect.value),
                battles_remaining=max(active.battles_remaining, effect.duration),
            ))
            replaced = True
        else:
            effects.append(active)
    if not replaced:
        effects.append(ActiveGemEffect(
            gem_type=gem.gem_type,
            effect=effect.effect,
            value=effect.value,
            battles_remaining=effect.duration,
        ))

    return character.model_copy(update={
        "inventory": [i for i in character.inventory if i.id != gem_id],
        "active_gem_effects": effects,
    })


def tick_gem_effects(character: Character) -> Character:
    """Count one battle off every active effect, dropping the expired ones."""
    if not character.active_gem_effects:
        return character
    effects = [
        e.model_copy(update={"battles_remaining": e.battles_remaining - 1})
        for e in character.active_gem_effects
        if e.battles_remaining > 1
    ]
    return character.model_copy(update={"active_gem_effects": effects})
