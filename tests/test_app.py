"""Tests for src/auto_battler/app.py."""
from __future__ import annotations

import asyncio

from auto_battler.app import GameApp


def _config(tmp_path, **game):
    return {
        "storage": {"db_path": str(tmp_path / "saves" / "game.db"), "key": "slot_1"},
        "engine": {"history_limit": 7},
        "game": game,
    }


class TestGameApp:
    def test_components_follow_config(self, tmp_path):
        game_app = GameApp(_config(tmp_path, default_map="shadowmere_swamps"))
        assert game_app.store.storage_key == "slot_1"
        assert game_app.store.history_limit == 7
        assert game_app.store.default_map == "shadowmere_swamps"
        assert game_app.log_level == "WARNING"
        assert game_app.starting_gold is None
        asyncio.run(game_app.close())

    def test_state_survives_restart(self, tmp_path):
        config = _config(tmp_path)

        async def first_session():
            game_app = GameApp(config)
            await game_app.open()
            character = await game_app.store.create_character("Aldric", "warrior")
            game_app.store.heal_character(5)
            await game_app.close()
            return character

        async def second_session():
            game_app = GameApp(config)
            loaded = await game_app.open()
            character = game_app.store.current_character
            await game_app.close()
            return loaded, character

        created = asyncio.run(first_session())
        loaded, character = asyncio.run(second_session())
        assert loaded
        assert character.id == created.id
        assert (tmp_path / "saves" / "game.db").exists()

    def test_open_empty(self, tmp_path):
        async def session():
            game_app = GameApp(_config(tmp_path))
            loaded = await game_app.open()
            await game_app.close()
            return loaded

        assert asyncio.run(session()) is False
