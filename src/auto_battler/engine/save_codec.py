"""Save document encoding: captures and restores the whole game state."""
from __future__ import annotations

import json
import logging
from typing import Any

import pydantic

from auto_battler.errors import PersistenceError
from auto_battler.mechanics.wilderness import LEGACY_MAP_ID, mark_visited, regenerate_legacy_map
from auto_battler.models.game_state import GameState
from auto_battler.models.wilderness import PlayerPosition

logger = logging.getLogger(__name__)

SAVE_VERSION = 2


def encode_state(state: GameState) -> str:
    """Serialize to one JSON document. Notifications are not persisted."""
    data = state.model_dump(mode="json", exclude={"notifications"})
    ws = data.get("wilderness_state")
    if ws is not None:
        ws["explored_tiles"] = sorted(ws.get("explored_tiles") or [])
    data["version"] = SAVE_VERSION
    return json.dumps(data)


def _migrate_character(char: dict[str, Any]) -> dict[str, Any]:
    char.setdefault("inventory", [])
    if char["inventory"] is None:
        char["inventory"] = []
    return char


def _legacy_visited(old_map: Any) -> list[tuple[int, int]]:
    """Coordinates flagged visited in an old map document, if readable."""
    coords = []
    if not isinstance(old_map, dict):
        return coords
    for row in old_map.get("tiles") or []:
        for tile in row if isinstance(row, list) else []:
            if isinstance(tile, dict) and tile.get("visited"):
                coords.append((tile.get("x", -1), tile.get("y", -1)))
    return coords


def _migrate_wilderness(ws: dict[str, Any]) -> dict[str, Any]:
    ws["explored_tiles"] = list(ws.get("explored_tiles") or [])
    ws.setdefault("encounters", [])
    old_map = ws.get("current_map") or {}
    if old_map.get("id") != LEGACY_MAP_ID:
        return ws

    pos = ws.get("player_position") or {}
    position = PlayerPosition(
        x=pos.get("x", 0), y=pos.get("y", 0),
        map_id=LEGACY_MAP_ID, last_moved=pos.get("last_moved", 0.0),
    )
    new_map, new_position = regenerate_legacy_map(position)
    for x, y in _legacy_visited(old_map):
        if new_map.in_bounds(x, y):
            new_map = mark_visited(new_map, x, y)
    ws["current_map"] = new_map.model_dump(mode="json")
    ws["player_position"] = new_position.model_dump(mode="json")
    ws["explored_tiles"] = [t.id for t in new_map.all_tiles() if t.visited]
    ws["encounters"] = []
    return ws


def decode_state(raw: str) -> GameState:
    """Parse a save document, upgrading older layouts on the way in."""
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        raise PersistenceError(f"Save data is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise PersistenceError("Save data is not a JSON object")

    data.pop("version", None)
    data["characters"] = [_migrate_character(c) for c in data.get("characters") or []]
    legacy_current = data.pop("current_character", None)
    if isinstance(legacy_current, dict) and not data.get("current_character_id"):
        data["current_character_id"] = legacy_current.get("id")
    if data.get("wilderness_state"):
        data["wilderness_state"] = _migrate_wilderness(data["wilderness_state"])

    try:
        state = GameState.model_validate(data)
    except pydantic.ValidationError as e:
        raise PersistenceError(f"Save data failed validation: {e}") from e
    logger.debug("Decoded save with %d characters", len(state.characters))
    return state
