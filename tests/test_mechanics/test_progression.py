"""Tests for src/auto_battler/mechanics/progression.py."""
from __future__ import annotations

import pytest

from auto_battler.errors import ValidationError
from auto_battler.mechanics.progression import (
    TRAINING_COOLDOWN_SECONDS,
    can_level_up,
    can_train,
    experience_for_level,
    level_up_character,
    seconds_until_trainable,
    success_rate,
    train,
    training_cost,
)
from auto_battler.models.character import StatType


def _with_strength(character, value):
    return character.model_copy(update={"stats": character.stats.with_stat(StatType.STRENGTH, value)})


class TestTrainingCost:
    def test_strength_ten(self, warrior):
        cost = training_cost(_with_strength(warrior, 10), StatType.STRENGTH)
        assert cost.energy == 40
        assert cost.gold == 75

    @pytest.mark.parametrize("value, energy, gold", [
        (0, 20, 50), (5, 30, 62), (15, 50, 87), (30, 80, 125),
    ])
    def test_scales_with_value(self, warrior, value, energy, gold):
        cost = training_cost(_with_strength(warrior, value), "strength")
        assert (cost.energy, cost.gold) == (energy, gold)


class TestSuccessRate:
    @pytest.mark.parametrize("value, expected", [
        (0, 95), (10, 75), (22, 51), (23, 50), (40, 50),
    ])
    def test_floor_at_fifty(self, value, expected):
        assert success_rate(value) == expected


class TestCanTrain:
    def test_fresh_character(self, warrior):
        assert can_train(warrior, StatType.STRENGTH, now=10_000.0)

    def test_unknown_stat_is_false(self, warrior):
        assert not can_train(warrior, "strenght", now=10_000.0)

    def test_refused_without_energy(self, warrior):
        tired = warrior.model_copy(update={"energy": 10})
        assert not can_train(tired, StatType.STRENGTH, now=10_000.0)

    def test_refused_without_gold(self, warrior):
        broke = warrior.model_copy(update={"gold": 0})
        assert not can_train(broke, StatType.STRENGTH, now=10_000.0)

    def test_refused_when_dead(self, warrior):
        dead = warrior.model_copy(update={"current_health": 0})
        assert not can_train(dead, StatType.STRENGTH, now=10_000.0)

    @pytest.mark.parametrize("elapsed, allowed", [
        (0, False), (60, False), (TRAINING_COOLDOWN_SECONDS - 1, False),
        (TRAINING_COOLDOWN_SECONDS, True), (TRAINING_COOLDOWN_SECONDS * 3, True),
    ])
    def test_cooldown_regardless_of_resources(self, warrior, elapsed, allowed):
        rich = warrior.model_copy(update={
            "gold": 1_000_000,
            "last_training": {"strength": 5_000.0},
        })
        assert can_train(rich, StatType.STRENGTH, now=5_000.0 + elapsed) is allowed

    def test_cooldown_is_per_stat(self, warrior):
        trained = warrior.model_copy(update={"last_training": {"strength": 5_000.0}})
        assert not can_train(trained, StatType.STRENGTH, now=5_001.0)
        assert can_train(trained, StatType.DEXTERITY, now=5_001.0)

    def test_seconds_until_trainable(self, warrior):
        trained = warrior.model_copy(update={"last_training": {"speed": 100.0}})
        assert seconds_until_trainable(trained, "speed", now=160.0) == TRAINING_COOLDOWN_SECONDS - 60
        assert seconds_until_trainable(warrior, "speed", now=160.0) == 0.0


class TestTrain:
    def test_unknown_stat(self, warrior, scripted_rng):
        with pytest.raises(ValidationError):
            train(warrior, "strenght", scripted_rng(), now=10_000.0)
        with pytest.raises(ValidationError):
            training_cost(warrior, "luck")

    def test_success_deducts_cost(self, warrior, scripted_rng):
        character = _with_strength(warrior, 10)
        # 0.5 -> 50 < 75 succeeds; 0.9 is not a critical
        result = train(character, StatType.STRENGTH, scripted_rng([0.5, 0.9]), now=10_000.0)
        assert result.success and not result.critical
        assert result.old_value == 10
        assert result.new_value == 11
        assert result.character.energy == warrior.energy - 40
        assert result.character.gold == warrior.gold - 75
        assert result.character.last_training["strength"] == 10_000.0

    def test_critical_gives_two(self, warrior, scripted_rng):
        result = train(_with_strength(warrior, 10), "strength", scripted_rng([0.1, 0.05]), now=10_000.0)
        assert result.critical
        assert result.new_value == 12

    def test_failure_still_costs(self, warrior, scripted_rng):
        character = _with_strength(warrior, 10)
        result = train(character, StatType.STRENGTH, scripted_rng([0.8]), now=10_000.0)
        assert not result.success
        assert result.new_value == 10
        assert result.character.energy == warrior.energy - 40
        assert result.character.gold == warrior.gold - 75
        assert result.character.last_training["strength"] == 10_000.0

    def test_failure_does_not_roll_critical(self, warrior, scripted_rng):
        rng = scripted_rng([0.99])
        train(warrior, StatType.STRENGTH, rng, now=10_000.0)
        assert rng.calls == 1

    def test_refused_on_cooldown(self, warrior, scripted_rng):
        first = train(warrior, StatType.STRENGTH, scripted_rng([0.0, 0.9]), now=10_000.0)
        rested = first.character.model_copy(update={"energy": 100, "gold": 10_000})
        with pytest.raises(ValidationError):
            train(rested, StatType.STRENGTH, scripted_rng([0.0, 0.9]), now=10_060.0)

    def test_constitution_recomputes_max_health(self, warrior, scripted_rng):
        result = train(warrior, StatType.CONSTITUTION, scripted_rng([0.0, 0.9]), now=10_000.0)
        assert result.new_value == 16
        assert result.character.max_health == warrior.max_health + 5
        assert result.character.current_health <= result.character.max_health


class TestLeveling:
    @pytest.mark.parametrize("level, expected", [
        (1, 100), (2, 150), (3, 225), (4, 337), (10, 3844),
    ])
    def test_experience_for_level(self, level, expected):
        assert experience_for_level(level) == expected

    def test_can_level_up(self, warrior):
        assert not can_level_up(warrior)
        assert can_level_up(warrior.model_copy(update={"experience": 100}))

    def test_level_up_without_experience_is_noop(self, warrior):
        assert level_up_character(warrior) is warrior

    def test_level_up_applies_growth(self, warrior):
        ready = warrior.model_copy(update={"experience": 130, "current_health": 10, "energy": 3})
        leveled = level_up_character(ready)
        assert leveled.level == 2
        assert leveled.experience == 30
        # warrior growth: str 1.3, dex 1.0, con 1.2, int 0.8, speed 0.9
        assert leveled.stats.strength == warrior.stats.strength + 2
        assert leveled.stats.dexterity == warrior.stats.dexterity + 2
        assert leveled.stats.constitution == warrior.stats.constitution + 2
        assert leveled.stats.intelligence == warrior.stats.intelligence + 1
        assert leveled.stats.speed == warrior.stats.speed + 1
        assert leveled.max_health == 100 + leveled.stats.constitution * 5 + 2 * 10
        assert leveled.current_health == leveled.max_health
        assert leveled.energy == leveled.max_energy
