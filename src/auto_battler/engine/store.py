"""Authoritative in-memory game state and the actions that change it.

All actions are synchronous and run to completion against the current
snapshot; each one builds a new ``GameState`` and commits it in one step.
Saving is the only asynchronous boundary.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Optional, Protocol

from auto_battler.engine.save_codec import decode_state, encode_state
from auto_battler.engine.validators import clamp_character, validate_character
from auto_battler.errors import NotFoundError, PersistenceError, ValidationError
from auto_battler.mechanics import equipment as equipment_rules
from auto_battler.mechanics import gems as gem_rules
from auto_battler.mechanics import progression
from auto_battler.mechanics import wilderness as wild
from auto_battler.mechanics.character_creation import create_character
from auto_battler.mechanics.combat import (
    from_character,
    generate_ai_opponent,
    monster_to_combatant,
    resolve_combat,
)
from auto_battler.mechanics.items import calculate_sell_price
from auto_battler.mechanics.loot import LootResult, generate_loot
from auto_battler.mechanics.rng import RngSource, default_rng
from auto_battler.models.character import Character, EquipmentSlot, StatType
from auto_battler.models.combat import CombatResult, CombatRewards, DetailedBattleResult
from auto_battler.models.game_state import GameState, Notification, NotificationType
from auto_battler.models.item import Gem, GemTier, GemType, Item, ItemType
from auto_battler.models.monster import SpawnedMonster
from auto_battler.models.wilderness import WildernessEncounter, WildernessState

logger = logging.getLogger(__name__)

STORAGE_KEY = "auto_battler_game_state"
HISTORY_LIMIT = 100
ENERGY_REGEN_AMOUNT = 10
ITEM_NOTIFICATION_MS = 3000
LONG_NOTIFICATION_MS = 5000


class NotificationSink(Protocol):
    def notify(self, notification: Notification) -> None: ...


class GameStore:
    """The single state container every subsystem reads and writes through."""

    def __init__(
        self,
        gateway,
        rng: RngSource | None = None,
        sink: NotificationSink | None = None,
        storage_key: str = STORAGE_KEY,
        history_limit: int = HISTORY_LIMIT,
        clock: Callable[[], float] | None = None,
        default_map: str = wild.DEFAULT_MAP_ID,
    ) -> None:
        self.gateway = gateway
        self.rng = rng or default_rng()
        self.sink = sink
        self.storage_key = storage_key
        self.history_limit = history_limit
        self.clock = clock or time.time
        self.default_map = default_map

        self._state = GameState()
        self.save_error: str | None = None
        self.dirty = False
        self._pending_saves: set[asyncio.Task] = set()

    # -- State plumbing --

    @property
    def state(self) -> GameState:
        return self._state

    @property
    def current_character(self) -> Optional[Character]:
        return self._state.current_character

    def _commit(self, state: GameState, persist: bool = True) -> None:
        self._state = state
        self.dirty = True
        if persist:
            self._request_save()

    def _with_character(self, state: GameState, character: Character) -> GameState:
        character = clamp_character(character)
        ok, reason = validate_character(character)
        if not ok:
            raise ValidationError(reason)
        if not any(c.id == character.id for c in state.characters):
            raise NotFoundError(f"Character {character.id} not found")
        return state.model_copy(update={
            "characters": [character if c.id == character.id else c for c in state.characters],
        })

    def _commit_character(self, character: Character) -> Character:
        state = self._with_character(self._state, character)
        self._commit(state)
        return next(c for c in state.characters if c.id == character.id)

    def _require_character(self, character_id: str | None = None) -> Character:
        if character_id is None:
            character = self.current_character
            if character is None:
                raise NotFoundError("No character selected")
            return character
        character = self.get_character(character_id)
        if character is None:
            raise NotFoundError(f"Character {character_id} not found")
        return character

    def _push_history(self, state: GameState, *results: CombatResult) -> GameState:
        history = [*reversed(results), *state.combat_history][: self.history_limit]
        return state.model_copy(update={"combat_history": history})

    # -- Persistence --

    def _request_save(self) -> None:
        """Fire-and-forget save on the running loop; otherwise leave it to autosave."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(self.save())
        self._pending_saves.add(task)
        task.add_done_callback(self._pending_saves.discard)

    async def flush(self) -> None:
        """Wait for any in-flight background saves."""
        if self._pending_saves:
            await asyncio.gather(*list(self._pending_saves))

    async def save(self) -> bool:
        """Persist the whole state. Failures set ``save_error`` and never raise."""
        saved_at = self.clock()
        snapshot = self._state.model_copy(update={"last_save": saved_at})
        try:
            await self.gateway.set(self.storage_key, encode_state(snapshot))
        except Exception as e:
            self.save_error = str(e) or e.__class__.__name__
            logger.warning("Save failed: %s", self.save_error)
            return False
        self._state = self._state.model_copy(update={"last_save": saved_at})
        self.save_error = None
        self.dirty = False
        logger.info("Game saved (%d characters)", len(self._state.characters))
        return True

    async def load(self) -> bool:
        """Replace in-memory state with the saved document, if there is one."""
        try:
            raw = await self.gateway.get(self.storage_key)
        except Exception as e:
            self.save_error = str(e) or e.__class__.__name__
            logger.warning("Load failed: %s", self.save_error)
            return False
        if raw is None:
            return False
        try:
            state = decode_state(raw)
        except PersistenceError as e:
            self.save_error = str(e)
            logger.warning("Discarding unreadable save: %s", e)
            return False
        state = state.model_copy(update={
            "characters": [clamp_character(c) for c in state.characters],
        })
        self._state = state
        self.dirty = False
        logger.info("Loaded save with %d characters", len(state.characters))
        return True

    async def clear_save(self) -> None:
        try:
            await self.gateway.remove(self.storage_key)
        except Exception as e:
            self.save_error = str(e) or e.__class__.__name__
            logger.warning("Could not clear save: %s", self.save_error)
            return
        self._state = GameState()

    def debug_dump(self) -> dict[str, Any]:
        """Plain-data summary of the state for diagnostics."""
        s = self._state
        ws = s.wilderness_state
        return {
            "characters": [
                {"id": c.id, "name": c.name, "class": c.character_class, "level": c.level,
                 "health": f"{c.current_health}/{c.max_health}", "energy": f"{c.energy}/{c.max_energy}",
                 "gold": c.gold, "inventory": len(c.inventory)}
                for c in s.characters
            ],
            "current_character_id": s.current_character_id,
            "combat_history": len(s.combat_history),
            "settings": s.settings.model_dump(mode="json"),
            "wilderness": None if ws is None else {
                "map": ws.current_map.id,
                "position": (ws.player_position.x, ws.player_position.y),
                "explored_tiles": len(ws.explored_tiles),
                "monsters": sum(len(t.monsters) for t in ws.current_map.all_tiles()),
            },
            "notifications": len(s.notifications),
            "last_save": s.last_save,
            "save_error": self.save_error,
            "dirty": self.dirty,
        }

    def update_settings(self, **changes: Any) -> None:
        settings = self._state.settings.model_copy(update=changes)
        self._commit(self._state.model_copy(update={"settings": settings}))

    # -- Characters --

    def get_character(self, character_id: str) -> Optional[Character]:
        return next((c for c in self._state.characters if c.id == character_id), None)

    async def create_character(self, name: str, class_id: str, starting_gold: int | None = None) -> Character:
        kwargs = {} if starting_gold is None else {"starting_gold": starting_gold}
        character = create_character(name, class_id, now=self.clock(), **kwargs)
        self._commit(self._state.model_copy(update={
            "characters": [*self._state.characters, character],
            "current_character_id": character.id,
            "game_started": True,
        }), persist=False)
        await self.save()
        logger.info("Created %s the %s", character.name, character.character_class)
        return character

    def select_character(self, character_id: str) -> Character:
        character = self._require_character(character_id)
        self._commit(self._state.model_copy(update={"current_character_id": character.id}))
        return character

    def update_character(self, character: Character) -> Character:
        return self._commit_character(character)

    def delete_character(self, character_id: str) -> None:
        self._require_character(character_id)
        current = self._state.current_character_id
        self._commit(self._state.model_copy(update={
            "characters": [c for c in self._state.characters if c.id != character_id],
            "current_character_id": None if current == character_id else current,
        }))

    # -- Training and levels --

    def get_training_cost(self, stat: StatType | str) -> progression.TrainingCost:
        return progression.training_cost(self._require_character(), stat)

    def can_train(self, stat: StatType | str) -> bool:
        character = self.current_character
        return character is not None and progression.can_train(character, stat, self.clock())

    def train(self, stat: StatType | str) -> progression.TrainingResult:
        result = progression.train(self._require_character(), stat, self.rng, self.clock())
        result.character = self._commit_character(result.character)
        return result

    def can_level_up(self) -> bool:
        character = self.current_character
        return character is not None and progression.can_level_up(character)

    def level_up(self) -> Character:
        character = self._require_character()
        leveled = progression.level_up_character(character)
        if leveled is character:
            return character
        leveled = self._commit_character(leveled)
        self.add_notification(
            NotificationType.LEVEL_UP, "Level Up!",
            f"{leveled.name} reached level {leveled.level}!",
            duration=LONG_NOTIFICATION_MS,
        )
        return leveled

    def level_up_all(self) -> int:
        """Take every level-up the current experience pays for. Returns levels gained."""
        levels = 0
        while self.can_level_up():
            self.level_up()
            levels += 1
        return levels

    def regenerate_energy(self, amount: int = ENERGY_REGEN_AMOUNT) -> None:
        """One regeneration tick for the current character; saved by autosave."""
        character = self.current_character
        if character is None or character.energy >= character.max_energy:
            return
        updated = character.model_copy(update={"energy": min(character.max_energy, character.energy + amount)})
        self._commit(self._with_character(self._state, updated), persist=False)

    # -- Health --

    def heal_character(self, amount: int | None = None) -> Character:
        """Heal by ``amount``, or to full when no amount is given."""
        character = self._require_character()
        target = character.max_health if amount is None else character.current_health + max(0, amount)
        return self._commit_character(character.model_copy(update={"current_health": target}))

    def health_percentage(self) -> float:
        character = self.current_character
        if character is None or character.max_health <= 0:
            return 0.0
        return character.current_health / character.max_health * 100

    def is_player_dead(self) -> bool:
        character = self.current_character
        return character is not None and character.current_health <= 0

    # -- Inventory and equipment --

    def add_to_inventory(self, item: Item) -> Character:
        character = self._require_character()
        return self._commit_character(character.model_copy(update={"inventory": [*character.inventory, item]}))

    def remove_from_inventory(self, item_id: str) -> Item:
        character = self._require_character()
        item = character.find_item(item_id)
        if item is None:
            raise ValidationError(f"Item {item_id} is not in the inventory")
        self._commit_character(character.model_copy(update={
            "inventory": [i for i in character.inventory if i.id != item_id],
        }))
        return item

    def sell_item(self, item_id: str) -> int:
        character = self._require_character()
        item = character.find_item(item_id)
        if item is None:
            raise ValidationError(f"Item {item_id} is not in the inventory")
        price = calculate_sell_price(item)
        self._commit_character(character.model_copy(update={
            "inventory": [i for i in character.inventory if i.id != item_id],
            "gold": character.gold + price,
        }))
        return price

    def purchase_item(self, item: Item) -> Character:
        character = self._require_character()
        if character.gold < item.price:
            raise ValidationError(f"Not enough gold for {item.name} ({item.price} needed)")
        return self._commit_character(character.model_copy(update={
            "gold": character.gold - item.price,
            "inventory": [*character.inventory, item],
        }))

    def use_consumable(self, item_id: str) -> Character:
        character = self._require_character()
        item = character.find_item(item_id)
        if item is None or item.type != ItemType.CONSUMABLE:
            raise ValidationError("That item cannot be used")
        return self._commit_character(character.model_copy(update={
            "inventory": [i for i in character.inventory if i.id != item_id],
            "current_health": character.current_health + item.heal_amount,
        }))

    def equip_item(self, item_id: str) -> Character:
        return self._commit_character(equipment_rules.equip_item(self._require_character(), item_id))

    def unequip_item(self, slot: EquipmentSlot | str) -> Character:
        return self._commit_character(equipment_rules.unequip_item(self._require_character(), slot))

    # -- Gems --

    def consume_gem(self, gem_id: str) -> Character:
        return self._commit_character(gem_rules.consume_gem(self._require_character(), gem_id))

    def fuse_gems(self, gem_ids: list[str]) -> gem_rules.FusionResult:
        """Fuse the selected gems; fewer than a recipe's worth changes nothing."""
        character = self._require_character()
        if len(set(gem_ids)) != len(gem_ids):
            raise ValidationError("The same gem cannot be used twice in a fusion")
        selected = [character.find_item(gid) for gid in gem_ids]
        if any(not isinstance(g, Gem) for g in selected):
            raise ValidationError("Only gems from the inventory can be fused")
        fusion = gem_rules.fuse_gems(selected, self.rng)
        self._commit_character(character.model_copy(update={
            "inventory": gem_rules.apply_fusion(character.inventory, fusion),
        }))
        return fusion

    def fuse_all_gems(self, gem_type: GemType | str, tier: GemTier | str) -> gem_rules.BatchFusionResult:
        character = self._require_character()
        batch = gem_rules.fuse_all(character.inventory, gem_type, tier, self.rng)
        self._commit_character(character.model_copy(update={"inventory": batch.inventory}))
        return batch

    # -- Notifications --

    def add_notification(
        self,
        type: NotificationType | str,
        title: str,
        message: str,
        item: Item | None = None,
        rarity: str | None = None,
        duration: int = ITEM_NOTIFICATION_MS,
    ) -> Notification:
        notification = Notification(
            type=type, title=title, message=message, item=item,
            rarity=rarity, duration=duration, created_at=self.clock(),
        )
        self._state = self._state.model_copy(update={
            "notifications": [*self._state.notifications, notification],
        })
        if self.sink is not None and self._state.settings.notifications:
            self.sink.notify(notification)
        return notification

    def dismiss_notification(self, notification_id: str) -> None:
        self._state = self._state.model_copy(update={
            "notifications": [n for n in self._state.notifications if n.id != notification_id],
        })

    def _announce_loot(self, loot: LootResult) -> None:
        for item in loot.items:
            self.add_notification(
                NotificationType.ITEM_DROP, "Item Found!", f"You found {item.name}!",
                item=item, rarity=item.rarity.value, duration=ITEM_NOTIFICATION_MS,
            )
        for gem in loot.gems:
            self.add_notification(
                NotificationType.GEM_DROP, "Rare Gem Found!", f"You found a {gem.name}!",
                item=gem, rarity=gem.rarity.value, duration=LONG_NOTIFICATION_MS,
            )

    def _announce_death(self, character: Character) -> None:
        self.add_notification(
            NotificationType.DEATH, "You have died!",
            f"{character.name} has fallen. Heal up before venturing out again.",
            duration=LONG_NOTIFICATION_MS,
        )

    # -- Duels --

    def _error_result(self, character: Character | None, log: list[str], opponent_id: str = "unknown") -> CombatResult:
        cid = character.id if character else "unknown"
        return CombatResult(
            character1_id=cid,
            character1_name=character.name if character else "Unknown",
            character2_id=opponent_id,
            character2_name="Unknown",
            winner_id=opponent_id,
            loser_id=cid,
            log=log,
            final_health={cid: character.current_health} if character else {},
            timestamp=self.clock(),
        )

    @staticmethod
    def _apply_duel(character: Character, result: CombatResult) -> Character:
        rewards = result.rewards_for(character.id)
        won = result.winner_id == character.id
        return gem_rules.tick_gem_effects(character.model_copy(update={
            "current_health": result.final_health.get(character.id, character.current_health),
            "experience": character.experience + rewards.experience,
            "gold": character.gold + rewards.gold,
            "wins": character.wins + (1 if won else 0),
            "losses": character.losses + (0 if won else 1),
        }))

    def start_battle(self, opponent_id: str | None = None) -> CombatResult:
        """Duel another stored character, or a generated opponent when none is given."""
        character = self.current_character
        if character is None:
            return self._error_result(None, ["Character not found"])
        try:
            if opponent_id is None:
                opponent = generate_ai_opponent(character.level, self.rng)
                stored_opponent = False
            else:
                opponent = self._require_character(opponent_id)
                stored_opponent = True
            if not character.is_alive:
                raise ValidationError(f"{character.name} is too wounded to fight")
            result = resolve_combat(from_character(character), from_character(opponent), self.rng, self.clock())

            updated = self._apply_duel(character, result)
            state = self._with_character(self._state, updated)
            if stored_opponent:
                state = self._with_character(state, self._apply_duel(opponent, result))
            self._commit(self._push_history(state, result))
        except NotFoundError:
            return self._error_result(character, ["Character not found"], opponent_id or "unknown")
        except ValidationError:
            raise
        except Exception:
            logger.exception("Combat failed between %s and %s", character.id, opponent_id)
            return self._error_result(character, ["Combat error occurred"], opponent_id or "unknown")

        if not updated.is_alive:
            self._announce_death(updated)
        return result

    def get_battle_history(self, character_id: str | None = None, limit: int | None = None) -> list[CombatResult]:
        history = self._state.combat_history
        if character_id is not None:
            history = [r for r in history if character_id in (r.character1_id, r.character2_id)]
        return history[:limit] if limit is not None else list(history)

    # -- Wilderness --

    @property
    def wilderness(self) -> WildernessState:
        """Current wilderness state, created on the default map on first use."""
        ws = self._state.wilderness_state
        if ws is None:
            wmap = wild.create_wilderness_map(self.default_map)
            start = wmap.tile_at(wmap.start_x, wmap.start_y)
            ws = WildernessState(
                current_map=wmap,
                player_position=wild.start_position(wmap, self.clock()),
                explored_tiles={start.id},
            )
            self._commit(self._state.model_copy(update={"wilderness_state": ws}), persist=False)
        return ws

    def _with_wilderness(self, state: GameState, **changes: Any) -> GameState:
        ws = (state.wilderness_state or self.wilderness).model_copy(update=changes)
        return state.model_copy(update={"wilderness_state": ws})

    def get_available_maps(self) -> list[dict[str, Any]]:
        character = self.current_character
        return wild.available_maps(character.level if character else 1)

    def can_access_map(self, map_id: str) -> bool:
        character = self.current_character
        try:
            return wild.can_access_map(map_id, character.level if character else 1)
        except NotFoundError:
            return False

    def switch_map(self, map_id: str) -> WildernessState:
        """Travel to another map. Monsters on the old map are discarded."""
        if not self.can_access_map(map_id):
            raise ValidationError(f"Map {map_id} is not accessible")
        wmap = wild.create_wilderness_map(map_id)
        start = wmap.tile_at(wmap.start_x, wmap.start_y)
        ws = self.wilderness
        state = self._with_wilderness(
            self._state,
            current_map=wmap,
            player_position=wild.start_position(wmap, self.clock()),
            explored_tiles={*ws.explored_tiles, start.id},
            encounters=[],
        )
        self._commit(state)
        logger.info("Switched to map %s", map_id)
        return state.wilderness_state

    def get_available_moves(self) -> list[tuple[int, int]]:
        ws = self.wilderness
        return wild.available_moves(ws.current_map, ws.player_position.x, ws.player_position.y)

    def move_to_tile(self, x: int, y: int) -> wild.MoveResult:
        character = self._require_character()
        ws = self.wilderness
        move = wild.move_to_tile(ws.current_map, x, y, character, self.rng, self.clock())
        encounters = ws.encounters
        if move.spawned is not None:
            encounters = [*encounters, WildernessEncounter(
                tile_id=move.tile.id, monster_ids=[move.spawned.id], started_at=self.clock(),
            )]
        state = self._with_wilderness(
            self._state,
            current_map=move.map,
            player_position=move.position,
            explored_tiles={*ws.explored_tiles, move.tile.id},
            encounters=encounters,
        )
        self._commit(state)
        return move

    def remove_dead_monster(self, x: int, y: int, monster_id: str) -> None:
        ws = self.wilderness
        wmap = wild.remove_monster(ws.current_map, x, y, monster_id)
        self._commit(self._with_wilderness(self._state, current_map=wmap))

    def _resolve_position(self, x: int | None, y: int | None) -> tuple[int, int]:
        pos = self.wilderness.player_position
        return (pos.x if x is None else x, pos.y if y is None else y)

    def _fight_one(
        self, character: Character, monster: SpawnedMonster,
    ) -> tuple[Character, CombatResult, LootResult | None]:
        """One monster fight. Returns the updated player, the result and any loot."""
        result = resolve_combat(
            from_character(character), monster_to_combatant(monster),
            self.rng, self.clock(), award_rewards=False,
        )
        health = result.final_health.get(character.id, character.current_health)
        if result.winner_id != character.id:
            updated = character.model_copy(update={"current_health": health, "losses": character.losses + 1})
            return gem_rules.tick_gem_effects(updated), result, None

        loot = generate_loot(monster, character, self.rng)
        result = result.model_copy(update={
            "winner_rewards": CombatRewards(experience=loot.experience, gold=loot.gold, items=loot.all_items),
            "log": [*result.log, *loot.log],
        })
        updated = character.model_copy(update={
            "current_health": health,
            "experience": character.experience + loot.experience,
            "gold": character.gold + loot.gold,
            "inventory": [*character.inventory, *loot.all_items],
            "wins": character.wins + 1,
        })
        return gem_rules.tick_gem_effects(updated), result, loot

    def _resolve_encounters(self, encounters: list[WildernessEncounter], defeated: set[str]) -> list[WildernessEncounter]:
        resolved = []
        for enc in encounters:
            if not enc.resolved and set(enc.monster_ids) <= defeated:
                enc = enc.model_copy(update={"resolved": True, "victory": True})
            resolved.append(enc)
        return resolved

    def _battle_error(self, character: Character | None, message: str) -> DetailedBattleResult:
        return DetailedBattleResult(
            victory=False,
            log=[message],
            player_health=character.current_health if character else 0,
            timestamp=self.clock(),
        )

    def fight_monster(self, monster_id: str, x: int | None = None, y: int | None = None) -> DetailedBattleResult:
        """Fight one spawned monster on a tile (the player's tile by default)."""
        character = self.current_character
        if character is None:
            return self._battle_error(None, "Character not found")
        if not character.is_alive:
            raise ValidationError(f"{character.name} is too wounded to fight")
        try:
            x, y = self._resolve_position(x, y)
            ws = self.wilderness
            monster = wild.find_monster(ws.current_map, x, y, monster_id)
            updated, result, loot = self._fight_one(character, monster)
            victory = loot is not None
            wmap = wild.remove_monster(ws.current_map, x, y, monster.id) if victory else ws.current_map
            state = self._with_character(self._state, updated)
            state = self._with_wilderness(
                state, current_map=wmap,
                encounters=self._resolve_encounters(ws.encounters, {monster.id} if victory else set()),
            )
            self._commit(self._push_history(state, result))
        except NotFoundError:
            return self._battle_error(character, "Monster not found")
        except Exception:
            logger.exception("Combat failed against monster %s", monster_id)
            return self._battle_error(character, "Combat error occurred")

        updated = self.current_character
        if loot is not None:
            self._announce_loot(loot)
        if not updated.is_alive:
            self._announce_death(updated)
        return DetailedBattleResult(
            victory=victory,
            results=[result],
            monsters_defeated=[monster.id] if victory else [],
            rewards=result.winner_rewards if victory else CombatRewards(),
            log=result.log,
            player_health=updated.current_health,
            timestamp=self.clock(),
        )

    def fight_all_monsters(self, x: int | None = None, y: int | None = None) -> DetailedBattleResult:
        """Fight every live monster on a tile in turn, stopping if the player falls."""
        character = self.current_character
        if character is None:
            return self._battle_error(None, "Character not found")
        if not character.is_alive:
            raise ValidationError(f"{character.name} is too wounded to fight")
        try:
            x, y = self._resolve_position(x, y)
            ws = self.wilderness
            monsters = wild.get_tile(ws.current_map, x, y).alive_monsters
            if not monsters:
                return self._battle_error(character, "No monsters to fight")

            log = ["=== MULTI-MONSTER BATTLE ===", f"Facing {len(monsters)} monsters!"]
            wmap = ws.current_map
            results: list[CombatResult] = []
            loots: list[LootResult] = []
            defeated: list[str] = []
            defeats = 0
            for i, monster in enumerate(monsters, 1):
                if character.current_health <= 0:
                    log.append(f"{len(monsters) - i + 1} monsters remain unfought.")
                    break
                log.append(f"--- Fight {i}: {monster.name} (Lv {monster.level}) ---")
                character, result, loot = self._fight_one(character, monster)
                results.append(result)
                log.extend(result.log)
                if loot is not None:
                    loots.append(loot)
                    defeated.append(monster.id)
                    wmap = wild.remove_monster(wmap, x, y, monster.id)
                else:
                    defeats += 1

            total = CombatRewards(
                experience=sum(l.experience for l in loots),
                gold=sum(l.gold for l in loots),
                items=[item for l in loots for item in l.all_items],
            )
            log.extend([
                "=== BATTLE SUMMARY ===",
                f"Victories: {len(defeated)}",
                f"Defeats: {defeats}",
                f"Total: +{total.experience} XP, +{total.gold} gold, {len(total.items)} items",
            ])
            state = self._with_character(self._state, character)
            state = self._with_wilderness(
                state, current_map=wmap,
                encounters=self._resolve_encounters(ws.encounters, set(defeated)),
            )
            self._commit(self._push_history(state, *results))
        except NotFoundError:
            return self._battle_error(self.current_character, "Monster not found")
        except Exception:
            logger.exception("Multi-monster combat failed at (%s, %s)", x, y)
            return self._battle_error(self.current_character, "Combat error occurred")

        updated = self.current_character
        for loot in loots:
            self._announce_loot(loot)
        if not updated.is_alive:
            self._announce_death(updated)
        return DetailedBattleResult(
            victory=len(defeated) > defeats and updated.current_health > 0,
            results=results,
            monsters_defeated=defeated,
            rewards=total,
            log=log,
            player_health=updated.current_health,
            timestamp=self.clock(),
        )
