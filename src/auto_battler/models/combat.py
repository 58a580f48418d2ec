from __future__ import annotations

import time
import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auto_battler.models.item import InventoryItem


class CombatRound(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    round_number: int
    attacker_id: str
    defender_id: str
    damage: int = 0
    is_critical: bool = False
    is_miss: bool = False
    is_dodge: bool = False
    defender_health: int
    description: str


class CombatRewards(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    experience: int = 0
    gold: int = 0
    items: list[InventoryItem] = Field(default_factory=list)


class CombatResult(BaseModel):
    """Immutable record of one resolved encounter."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    character1_id: str
    character1_name: str
    character2_id: str
    character2_name: str
    winner_id: Optional[str] = None
    loser_id: Optional[str] = None
    rounds: list[CombatRound] = Field(default_factory=list)
    log: list[str] = Field(default_factory=list)
    winner_rewards: CombatRewards = Field(default_factory=CombatRewards)
    loser_rewards: CombatRewards = Field(default_factory=CombatRewards)
    final_health: dict[str, int] = Field(default_factory=dict)
    duration: int = 0  # rounds fought
    timestamp: float = Field(default_factory=time.time)

    def rewards_for(self, combatant_id: str) -> CombatRewards:
        if combatant_id == self.winner_id:
            return self.winner_rewards
        if combatant_id == self.loser_id:
            return self.loser_rewards
        return CombatRewards()


class DetailedBattleResult(BaseModel):
    """Outcome of a wilderness fight against one or more monsters."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    victory: bool
    results: list[CombatResult] = Field(default_factory=list)
    monsters_defeated: list[str] = Field(default_factory=list)
    rewards: CombatRewards = Field(default_factory=CombatRewards)
    log: list[str] = Field(default_factory=list)
    player_health: int = 0
    timestamp: float = Field(default_factory=time.time)
