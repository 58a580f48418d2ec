"""Tests for src/auto_battler/engine/store.py."""
from __future__ import annotations

import asyncio
import itertools
import json

import pytest

from auto_battler.engine.save_codec import encode_state
from auto_battler.engine.store import GameStore
from auto_battler.errors import ValidationError
from auto_battler.mechanics import wilderness as wild
from auto_battler.mechanics.gems import create_gem
from auto_battler.mechanics.items import generate_item
from auto_battler.models.game_state import NotificationType

FOREST = (1, 1)
FOREST_TILE_ID = "tile_greenwood_valley_1_1"


class CyclingRng:
    def __init__(self, values):
        self._values = itertools.cycle(values)

    def random(self) -> float:
        return next(self._values)


# hit, no dodge, no crit, mid damage roll
ALWAYS_HIT = (0.0, 0.99, 0.99, 0.5)


class RecordingSink:
    def __init__(self):
        self.received = []

    def notify(self, notification):
        self.received.append(notification)


def _new_game(store, name="Aldric", class_id="warrior"):
    return asyncio.run(store.create_character(name, class_id))


def _set_player(store, **changes):
    return store.update_character(store.current_character.model_copy(update=changes))


def _place_monsters(store, monsters, x=FOREST[0], y=FOREST[1]):
    ws = store.wilderness
    tile = ws.current_map.tile_at(x, y).model_copy(update={"monsters": list(monsters)})
    wmap = wild.replace_tile(ws.current_map, tile)
    store._commit(store.state.model_copy(update={
        "wilderness_state": ws.model_copy(update={"current_map": wmap}),
    }), persist=False)


class TestCharacters:
    def test_create_saves_and_selects(self, store, gateway):
        character = _new_game(store)
        assert store.current_character == character
        assert store.state.game_started
        assert character.created_at == store.clock()
        saved = json.loads(gateway.data[store.storage_key])
        assert saved["current_character_id"] == character.id
        assert not store.dirty

    def test_custom_starting_gold(self, store):
        assert asyncio.run(store.create_character("Pip", "rogue", starting_gold=10)).gold == 10

    def test_invalid_class(self, store):
        with pytest.raises(ValidationError):
            _new_game(store, class_id="bard")
        assert store.state.characters == []

    def test_select_and_delete(self, store):
        first = _new_game(store)
        second = _new_game(store, "Mirela", "mage")
        assert store.current_character == second
        store.select_character(first.id)
        assert store.current_character == first
        store.delete_character(first.id)
        assert store.current_character is None
        assert [c.id for c in store.state.characters] == [second.id]

    def test_select_unknown(self, store):
        from auto_battler.errors import NotFoundError

        with pytest.raises(NotFoundError):
            store.select_character("ghost")

    def test_update_clamps(self, store):
        _new_game(store)
        updated = _set_player(store, current_health=9999, energy=-5, gold=-1)
        assert updated.current_health == updated.max_health
        assert updated.energy == 0
        assert updated.gold == 0

    def test_update_rejects_bad_hands(self, store):
        character = _new_game(store)
        eq = character.equipment.model_copy(update={
            "main_hand": generate_item("war_hammer"),
            "off_hand": generate_item("wooden_shield"),
        })
        with pytest.raises(ValidationError):
            store.update_character(character.model_copy(update={"equipment": eq}))
        assert store.current_character == character


class TestProgression:
    def test_train_pays_cost(self, store):
        character = _new_game(store)
        cost = store.get_training_cost("strength")
        assert store.can_train("strength")
        result = store.train("strength")
        assert result.character == store.current_character
        assert store.current_character.energy == character.energy - cost.energy
        assert store.current_character.gold == character.gold - cost.gold

    def test_train_on_cooldown(self, store):
        _new_game(store)
        store.train("strength")
        _set_player(store, energy=100, gold=500)
        assert not store.can_train("strength")
        with pytest.raises(ValidationError):
            store.train("strength")

    def test_can_train_without_character(self, store):
        assert not store.can_train("strength")

    def test_level_up_notifies(self, store):
        sink = RecordingSink()
        store.sink = sink
        _new_game(store)
        _set_player(store, experience=100)
        assert store.can_level_up()
        leveled = store.level_up()
        assert leveled.level == 2
        assert leveled.experience == 0
        assert not store.can_level_up()
        assert sink.received[-1].type == NotificationType.LEVEL_UP

    def test_level_up_all_chains(self, store):
        _new_game(store)
        _set_player(store, experience=100 + 150 + 10)
        assert store.level_up_all() == 2
        assert store.current_character.level == 3
        assert store.current_character.experience == 10
        assert store.level_up_all() == 0

    def test_unknown_stat(self, store):
        _new_game(store)
        assert not store.can_train("strenght")
        with pytest.raises(ValidationError):
            store.get_training_cost("strenght")
        with pytest.raises(ValidationError):
            store.train("strenght")

    def test_level_up_not_ready(self, store):
        character = _new_game(store)
        assert store.level_up() == character
        assert store.state.notifications == []

    def test_regenerate_energy(self, store):
        _new_game(store)
        _set_player(store, energy=95)
        store.regenerate_energy()
        assert store.current_character.energy == 100
        store.regenerate_energy()
        assert store.current_character.energy == 100
        assert store.dirty


class TestHealth:
    def test_heal(self, store):
        _new_game(store)
        _set_player(store, current_health=10)
        assert store.heal_character(25).current_health == 35
        assert store.heal_character().current_health == 185

    def test_percentage_and_death(self, store):
        assert store.health_percentage() == 0.0
        assert not store.is_player_dead()
        _new_game(store)
        _set_player(store, current_health=37)
        assert store.health_percentage() == pytest.approx(20.0)
        _set_player(store, current_health=0)
        assert store.is_player_dead()


class TestInventory:
    def test_add_and_remove(self, store):
        _new_game(store)
        potion = generate_item("health_potion")
        store.add_to_inventory(potion)
        assert store.remove_from_inventory(potion.id) == potion
        assert store.current_character.inventory == []
        with pytest.raises(ValidationError):
            store.remove_from_inventory(potion.id)

    def test_sell(self, store):
        character = _new_game(store)
        sword = generate_item("iron_sword", 5)
        store.add_to_inventory(sword)
        assert store.sell_item(sword.id) == 51
        assert store.current_character.gold == character.gold + 51

    def test_purchase(self, store):
        _new_game(store)
        _set_player(store, gold=5)
        item = generate_item("iron_sword", 5)
        with pytest.raises(ValidationError):
            store.purchase_item(item)
        _set_player(store, gold=200)
        assert store.purchase_item(item).gold == 200 - item.price

    def test_use_consumable(self, store):
        _new_game(store)
        _set_player(store, current_health=10)
        potion = generate_item("health_potion")
        store.add_to_inventory(potion)
        healed = store.use_consumable(potion.id)
        assert healed.current_health == min(185, 10 + potion.heal_amount)
        assert healed.inventory == []

    def test_use_non_consumable(self, store):
        _new_game(store)
        sword = generate_item("iron_sword")
        store.add_to_inventory(sword)
        with pytest.raises(ValidationError):
            store.use_consumable(sword.id)

    def test_equip_round_trip(self, store):
        _new_game(store)
        boots = store.current_character.equipment.boots
        store.unequip_item("boots")
        assert store.current_character.inventory == [boots]
        store.equip_item(boots.id)
        assert store.current_character.equipment.boots == boots


class TestGems:
    def test_fusion_refused_without_enough_gems(self, store):
        _new_game(store)
        gem = create_gem("ruby", "flawed")
        store.add_to_inventory(gem)
        before = store.current_character
        with pytest.raises(ValidationError):
            store.fuse_gems([gem.id])
        assert store.current_character == before

    def test_same_gem_twice_refused(self, store):
        _new_game(store)
        gem = create_gem("ruby", "flawed")
        store.add_to_inventory(gem)
        before = store.current_character
        with pytest.raises(ValidationError):
            store.fuse_gems([gem.id, gem.id])
        assert store.current_character == before

    def test_successful_fusion_consumes_recipe(self, gateway, clock, scripted_rng):
        store = GameStore(gateway, rng=scripted_rng(default=0.99), clock=clock)
        _new_game(store)
        gems = [create_gem("ruby", "flawed") for _ in range(3)]
        for gem in gems:
            store.add_to_inventory(gem)
        fusion = store.fuse_gems([gems[0].id, gems[1].id])
        assert fusion.success
        inventory = store.current_character.inventory
        assert len(inventory) == 3 - 2 + 1
        assert {i.id for i in inventory} == {gems[2].id, fusion.result_gem.id}
        assert fusion.result_gem.gem_tier == "normal"

    def test_unknown_gem_kind(self, store):
        _new_game(store)
        with pytest.raises(ValidationError):
            store.fuse_all_gems("rubby", "flawed")

    def test_fusion_rejects_non_gems(self, store):
        _new_game(store)
        sword = generate_item("iron_sword")
        store.add_to_inventory(sword)
        with pytest.raises(ValidationError):
            store.fuse_gems([sword.id])

    def test_fuse_all_with_nothing_to_fuse(self, store):
        _new_game(store)
        before = store.current_character
        with pytest.raises(ValidationError):
            store.fuse_all_gems("ruby", "flawed")
        assert store.current_character == before


class TestNotifications:
    def test_add_and_dismiss(self, store):
        sink = RecordingSink()
        store.sink = sink
        note = store.add_notification(NotificationType.INFO, "Hello", "World")
        assert store.state.notifications == [note]
        assert sink.received == [note]
        assert note.duration == 3000
        store.dismiss_notification(note.id)
        assert store.state.notifications == []

    def test_disabled_in_settings(self, store):
        sink = RecordingSink()
        store.sink = sink
        store.update_settings(notifications=False)
        store.add_notification(NotificationType.INFO, "Hello", "World")
        assert sink.received == []
        assert len(store.state.notifications) == 1


class TestDuels:
    def test_no_character(self, store):
        result = store.start_battle()
        assert result.log == ["Character not found"]

    def test_unknown_opponent(self, store):
        _new_game(store)
        assert store.start_battle("ghost").log == ["Character not found"]

    def test_generated_opponent(self, store):
        character = _new_game(store)
        result = store.start_battle()
        player = store.current_character
        assert character.id in (result.winner_id, result.loser_id)
        assert player.wins + player.losses == 1
        assert player.current_health == result.final_health[character.id]
        assert store.get_battle_history() == [result]

    def test_stored_opponent_updated(self, store):
        rival = _new_game(store, "Mirela", "mage")
        me = _new_game(store)
        result = store.start_battle(rival.id)
        rival_after = store.get_character(rival.id)
        assert rival_after.wins + rival_after.losses == 1
        assert rival_after.current_health == result.final_health[rival.id]
        assert store.get_battle_history(me.id) == [result]
        assert store.get_battle_history("nobody") == []

    def test_dead_player_cannot_duel(self, store):
        _new_game(store)
        _set_player(store, current_health=0)
        with pytest.raises(ValidationError):
            store.start_battle()

    def test_history_capped_newest_first(self, gateway, clock):
        from auto_battler.mechanics.rng import default_rng

        store = GameStore(gateway, rng=default_rng(3), clock=clock, history_limit=3)
        _new_game(store)
        results = []
        for _ in range(5):
            _set_player(store, current_health=185)
            results.append(store.start_battle())
        history = store.get_battle_history()
        assert len(history) == 3
        assert history[0] == results[-1]
        assert store.get_battle_history(limit=1) == [results[-1]]


class TestWilderness:
    def test_lazy_start(self, store):
        ws = store.wilderness
        assert ws.current_map.id == "greenwood_valley"
        assert (ws.player_position.x, ws.player_position.y) == (1, 2)
        assert ws.explored_tiles == {"tile_greenwood_valley_1_2"}

    def test_move_records_tile(self, store, clock):
        _new_game(store)
        move = store.move_to_tile(*FOREST)
        ws = store.wilderness
        assert (ws.player_position.x, ws.player_position.y) == FOREST
        assert FOREST_TILE_ID in ws.explored_tiles
        if move.spawned is not None:
            assert ws.encounters[-1].monster_ids == [move.spawned.id]

    def test_available_moves(self, store):
        assert len(store.get_available_moves()) == 8

    def test_switch_map_locked(self, store):
        _new_game(store)
        assert not store.can_access_map("frozen_wastes")
        assert not store.can_access_map("atlantis")
        with pytest.raises(ValidationError):
            store.switch_map("frozen_wastes")
        assert store.wilderness.current_map.id == "greenwood_valley"

    def test_switch_map_keeps_explored(self, store):
        _new_game(store)
        store.move_to_tile(*FOREST)
        _set_player(store, level=8)
        ws = store.switch_map("shadowmere_swamps")
        assert ws.current_map.id == "shadowmere_swamps"
        assert FOREST_TILE_ID in ws.explored_tiles
        assert ws.encounters == []
        maps = {m["id"]: m["accessible"] for m in store.get_available_maps()}
        assert maps["shadowmere_swamps"] and not maps["crystal_caverns"]


class TestMonsterFights:
    def test_fight_monster_victory(self, store, monster_factory):
        sink = RecordingSink()
        store.sink = sink
        _new_game(store)
        rat = monster_factory(health=1, damage=1, tile_id=FOREST_TILE_ID)
        _place_monsters(store, [rat])
        result = store.fight_monster(rat.id, *FOREST)
        assert result.victory
        assert result.monsters_defeated == [rat.id]
        assert result.rewards.experience > 0
        player = store.current_character
        assert player.wins == 1
        assert player.experience == result.rewards.experience
        assert store.wilderness.current_map.tile_at(*FOREST).monsters == []
        assert len(store.get_battle_history()) == 1

    def test_fight_missing_monster(self, store):
        _new_game(store)
        result = store.fight_monster("ghost", *FOREST)
        assert not result.victory
        assert result.log == ["Monster not found"]

    def test_fight_without_character(self, store):
        assert store.fight_monster("ghost").log == ["Character not found"]

    def test_dead_player_cannot_fight(self, store, monster_factory):
        _new_game(store)
        _place_monsters(store, [monster_factory(tile_id=FOREST_TILE_ID)])
        _set_player(store, current_health=0)
        with pytest.raises(ValidationError):
            store.fight_all_monsters(*FOREST)

    def test_empty_tile(self, store):
        _new_game(store)
        result = store.fight_all_monsters(*FOREST)
        assert result.log == ["No monsters to fight"]
        assert not result.victory

    def test_fight_all_clears_tile(self, store, monster_factory):
        _new_game(store)
        rats = [monster_factory(f"Rat {i}", health=1, damage=1, tile_id=FOREST_TILE_ID) for i in range(3)]
        _place_monsters(store, rats)
        result = store.fight_all_monsters(*FOREST)
        assert result.victory
        assert result.monsters_defeated == [r.id for r in rats]
        assert result.log[0] == "=== MULTI-MONSTER BATTLE ==="
        assert "=== BATTLE SUMMARY ===" in result.log
        assert "Victories: 3" in result.log
        assert store.wilderness.current_map.tile_at(*FOREST).monsters == []
        assert len(store.get_battle_history()) == 3

    def test_fight_all_stops_when_player_falls(self, gateway, clock, monster_factory):
        sink = RecordingSink()
        store = GameStore(gateway, rng=CyclingRng(ALWAYS_HIT), sink=sink, clock=clock)
        _new_game(store)
        _set_player(store, current_health=1)
        ogres = [
            monster_factory(f"Ogre {i}", level=5, health=500, damage=50, tile_id=FOREST_TILE_ID)
            for i in range(2)
        ]
        _place_monsters(store, ogres)

        result = store.fight_all_monsters(*FOREST)
        assert not result.victory
        assert result.monsters_defeated == []
        assert len(result.results) == 1
        assert "1 monsters remain unfought." in result.log
        assert "Defeats: 1" in result.log
        assert store.current_character.current_health == 0
        remaining = store.wilderness.current_map.tile_at(*FOREST).alive_monsters
        assert [m.id for m in remaining] == [o.id for o in ogres]
        assert sink.received[-1].type == NotificationType.DEATH


class TestPersistence:
    def test_save_and_load(self, store, gateway, clock):
        character = _new_game(store)
        store.move_to_tile(*FOREST)
        assert asyncio.run(store.save())

        fresh = GameStore(gateway, clock=clock)
        assert asyncio.run(fresh.load())
        assert fresh.current_character == character
        assert fresh.state.last_save == clock()
        assert fresh.wilderness.player_position.x == FOREST[0]

    def test_background_save_in_loop(self, store, gateway):
        async def scenario():
            await store.create_character("Aldric", "warrior")
            store.heal_character(1)
            assert store.dirty
            await store.flush()

        asyncio.run(scenario())
        assert not store.dirty
        assert store.storage_key in gateway.data

    def test_save_failure_recorded(self, failing_gateway, clock):
        store = GameStore(failing_gateway, clock=clock)
        character = asyncio.run(store.create_character("Aldric", "warrior"))
        assert store.save_error == "disk full"
        assert store.dirty
        assert store.current_character == character
        assert not asyncio.run(store.save())

    def test_load_nothing(self, store):
        assert not asyncio.run(store.load())
        assert store.state.characters == []

    def test_load_garbage(self, gateway, clock):
        gateway.data["auto_battler_game_state"] = "{broken"
        store = GameStore(gateway, clock=clock)
        assert not asyncio.run(store.load())
        assert store.save_error
        assert store.state.characters == []

    def test_load_clamps(self, gateway, clock, warrior):
        from auto_battler.models.game_state import GameState

        broken = warrior.model_copy(update={"current_health": 5000})
        gateway.data["auto_battler_game_state"] = encode_state(
            GameState(characters=[broken], current_character_id=broken.id)
        )
        store = GameStore(gateway, clock=clock)
        assert asyncio.run(store.load())
        assert store.current_character.current_health == warrior.max_health

    def test_clear_save(self, store, gateway):
        _new_game(store)
        asyncio.run(store.clear_save())
        assert gateway.data == {}
        assert store.state.characters == []

    def test_debug_dump(self, store):
        _new_game(store)
        store.wilderness
        dump = store.debug_dump()
        assert dump["characters"][0]["health"] == "185/185"
        assert dump["wilderness"]["map"] == "greenwood_valley"
        assert dump["save_error"] is None
