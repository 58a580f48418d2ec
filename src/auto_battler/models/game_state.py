from __future__ import annotations

import time
import uuid
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auto_battler.models.character import Character
from auto_battler.models.combat import CombatResult
from auto_battler.models.item import InventoryItem
from auto_battler.models.wilderness import WildernessState


class NotificationType(str, Enum):
    ITEM_DROP = "item_drop"
    GEM_DROP = "gem_drop"
    DEATH = "death"
    LEVEL_UP = "level_up"
    INFO = "info"


class Notification(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    type: NotificationType
    title: str
    message: str
    item: Optional[InventoryItem] = None
    rarity: Optional[str] = None
    duration: int = 3000  # milliseconds
    created_at: float = Field(default_factory=time.time)


class GameSettings(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    auto_save: bool = True
    combat_speed: str = "normal"
    sound_enabled: bool = True
    notifications: bool = True


class GameState(BaseModel):
    """Everything the engine persists, as one document."""

    model_config = ConfigDict(from_attributes=True)

    characters: list[Character] = Field(default_factory=list)
    current_character_id: Optional[str] = None
    combat_history: list[CombatResult] = Field(default_factory=list)
    settings: GameSettings = Field(default_factory=GameSettings)
    wilderness_state: Optional[WildernessState] = None
    notifications: list[Notification] = Field(default_factory=list)
    last_save: Optional[float] = None
    game_started: bool = False

    @property
    def current_character(self) -> Optional[Character]:
        if self.current_character_id is None:
            return None
        return next((c for c in self.characters if c.id == self.current_character_id), None)
