"""Main application bootstrap: wires storage, store and scheduler together."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def _load_config() -> dict[str, Any]:
    """Load config.toml from project root."""
    import tomllib

    config_path = Path(__file__).parent.parent.parent / "config.toml"
    if config_path.exists():
        with open(config_path, "rb") as f:
            return tomllib.load(f)
    return {}


class GameApp:
    """Owns the lazily built components of one running game."""

    def __init__(self, config: dict[str, Any] | None = None, sink=None):
        self.config = _load_config() if config is None else config
        self.sink = sink

        # Lazy-initialized components
        self._db = None
        self._repo = None
        self._gateway = None
        self._store = None
        self._scheduler = None

    # -- Component initialization (lazy) --

    @property
    def db(self):
        if self._db is None:
            from auto_battler.storage.database import Database

            db_path = self.config.get("storage", {}).get("db_path", "saves/game.db")
            self._db = Database(db_path)
            self._db.initialize()
        return self._db

    @property
    def repo(self):
        if self._repo is None:
            from auto_battler.storage.repos import BlobRepo

            self._repo = BlobRepo(self.db)
        return self._repo

    @property
    def gateway(self):
        if self._gateway is None:
            from auto_battler.storage.gateway import SqliteGateway

            self._gateway = SqliteGateway(self.repo)
        return self._gateway

    @property
    def store(self):
        if self._store is None:
            from auto_battler.engine.store import HISTORY_LIMIT, STORAGE_KEY, GameStore
            from auto_battler.mechanics.wilderness import DEFAULT_MAP_ID

            self._store = GameStore(
                self.gateway,
                sink=self.sink,
                storage_key=self.config.get("storage", {}).get("key", STORAGE_KEY),
                history_limit=self.config.get("engine", {}).get("history_limit", HISTORY_LIMIT),
                default_map=self.config.get("game", {}).get("default_map", DEFAULT_MAP_ID),
            )
        return self._store

    @property
    def scheduler(self):
        if self._scheduler is None:
            from auto_battler.engine.scheduler import (
                AUTOSAVE_INTERVAL,
                ENERGY_REGEN_INTERVAL,
                GameScheduler,
            )
            from auto_battler.engine.store import ENERGY_REGEN_AMOUNT

            engine_cfg = self.config.get("engine", {})
            self._scheduler = GameScheduler(
                self.store,
                energy_regen_interval=engine_cfg.get("energy_regen_interval", ENERGY_REGEN_INTERVAL),
                energy_regen_amount=engine_cfg.get("energy_regen_amount", ENERGY_REGEN_AMOUNT),
                autosave_interval=engine_cfg.get("autosave_interval", AUTOSAVE_INTERVAL),
            )
        return self._scheduler

    @property
    def starting_gold(self) -> int | None:
        return self.config.get("game", {}).get("starting_gold")

    @property
    def log_level(self) -> str:
        return self.config.get("logging", {}).get("level", "WARNING")

    # -- Public interface --

    async def open(self) -> bool:
        """Load the saved game, if any."""
        loaded = await self.store.load()
        if not loaded and self.store.save_error:
            logger.warning("Starting with an empty game: %s", self.store.save_error)
        return loaded

    async def close(self) -> None:
        """Stop timers and write any unsaved changes."""
        if self._scheduler is not None:
            await self._scheduler.stop()
        if self._store is not None:
            await self._store.flush()
            if self._store.dirty:
                await self._store.save()
        if self._db is not None:
            self._db.close()
            self._db = None
