from __future__ import annotations
import tomllib
from pathlib import Path
from typing import Any

CONTENT_DIR = Path(__file__).parent

def load_toml(filepath: Path) -> dict[str, Any]:
    with open(filepath, "rb") as f:
        return tomllib.load(f)

def load_all_classes() -> dict[str, dict]:
    classes = {}
    class_dir = CONTENT_DIR / "classes"
    for f in sorted(class_dir.glob("*.toml")):
        data = load_toml(f)
        classes[data["id"]] = data
    return classes


def load_all_items() -> dict[str, dict]:
    items = {}
    items_dir = CONTENT_DIR / "items"
    for f in sorted(items_dir.glob("*.toml")):
        data = load_toml(f)
        for item in data.get("items", [data]):
            items[item["id"]] = item
    return items


def load_gem_catalogue() -> dict[str, Any]:
    """Load gem types and tiers from content/gems.toml."""
    return load_toml(CONTENT_DIR / "gems.toml")


def load_all_maps() -> dict[str, dict[str, Any]]:
    """Load every wilderness map config, ordered by required level.

    Each file carries the grid layout as ``rows`` plus its ``[[monsters]]``
    templates.
    """
    maps_dir = CONTENT_DIR / "maps"
    configs = [load_toml(f) for f in maps_dir.glob("*.toml")]
    configs.sort(key=lambda c: (c.get("required_level", 1), c["id"]))
    return {c["id"]: c for c in configs}


def load_map(map_id: str) -> dict[str, Any]:
    map_file = CONTENT_DIR / "maps" / f"{map_id}.toml"
    if not map_file.exists():
        raise KeyError(f"Unknown map: {map_id}")
    return load_toml(map_file)
