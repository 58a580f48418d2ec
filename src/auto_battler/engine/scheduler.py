"""Background timers: energy regeneration and autosave."""
from __future__ import annotations

import asyncio
import logging

from auto_battler.engine.store import ENERGY_REGEN_AMOUNT, GameStore

logger = logging.getLogger(__name__)

ENERGY_REGEN_INTERVAL = 300.0
AUTOSAVE_INTERVAL = 30.0


class GameScheduler:
    """Owns the periodic tasks for a store. Call ``start()`` inside a running loop."""

    def __init__(
        self,
        store: GameStore,
        energy_regen_interval: float = ENERGY_REGEN_INTERVAL,
        energy_regen_amount: int = ENERGY_REGEN_AMOUNT,
        autosave_interval: float = AUTOSAVE_INTERVAL,
    ) -> None:
        self.store = store
        self.energy_regen_interval = energy_regen_interval
        self.energy_regen_amount = energy_regen_amount
        self.autosave_interval = autosave_interval
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    def start(self) -> None:
        if self.running:
            return
        self._tasks = [
            asyncio.create_task(self._energy_loop(), name="energy-regen"),
            asyncio.create_task(self._autosave_loop(), name="autosave"),
        ]
        logger.debug("Scheduler started")

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.debug("Scheduler stopped")

    async def _energy_loop(self) -> None:
        while True:
            await asyncio.sleep(self.energy_regen_interval)
            self.store.regenerate_energy(self.energy_regen_amount)

    async def _autosave_loop(self) -> None:
        while True:
            await asyncio.sleep(self.autosave_interval)
            if self.store.state.settings.auto_save:
                await self.store.save()
