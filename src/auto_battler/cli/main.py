"""Typer CLI application."""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

import typer

from auto_battler.errors import GameError

app = typer.Typer(
    name="auto-battler",
    help="Debug harness for the auto-battler game engine",
    no_args_is_help=True,
)


def _run(action: Callable[[Any, Any], Awaitable[None]]) -> None:
    """Open the saved game, run one action against it, then save and close."""
    from auto_battler.app import GameApp
    from auto_battler.cli.display import Display, configure_logging

    display = Display()
    game_app = GameApp(sink=display)
    configure_logging(game_app.log_level)

    async def session() -> None:
        await game_app.open()
        try:
            await action(game_app, display)
        finally:
            await game_app.close()

    try:
        asyncio.run(session())
    except GameError as e:
        display.show_error(str(e))
        raise typer.Exit(code=1)


def _require_character(game_app, display):
    character = game_app.store.current_character
    if character is None:
        display.show_error("No character selected. Create one with 'new'.")
        raise typer.Exit(code=1)
    return character


@app.command()
def new(
    name: str = typer.Argument(..., help="Character name"),
    character_class: str = typer.Option("warrior", "--class", "-c", help="Character class"),
) -> None:
    """Create a character and make it current."""
    async def action(game_app, display):
        character = await game_app.store.create_character(name, character_class, game_app.starting_gold)
        display.show_success(f"{character.name} the {character.character_class} is ready.")
        display.show_character_sheet(character)

    _run(action)


@app.command()
def status() -> None:
    """Show the current character."""
    async def action(game_app, display):
        character = _require_character(game_app, display)
        display.show_character_sheet(character)
        display.show_inventory(character)

    _run(action)


@app.command()
def train(stat: str = typer.Argument(..., help="Stat to train")) -> None:
    """Spend energy and gold to train one stat."""
    async def action(game_app, display):
        _require_character(game_app, display)
        result = game_app.store.train(stat)
        if not result.success:
            display.show_info(f"Training {result.stat.value} failed. The cost is still paid.")
        elif result.critical:
            display.show_success(f"Critical training! {result.stat.value} {result.old_value} -> {result.new_value}")
        else:
            display.show_success(f"{result.stat.value} {result.old_value} -> {result.new_value}")
        game_app.store.level_up_all()

    _run(action)


@app.command()
def duel(opponent: str = typer.Option(None, "--opponent", "-o", help="Stored character id")) -> None:
    """Fight another character, or a generated opponent."""
    async def action(game_app, display):
        character = _require_character(game_app, display)
        result = game_app.store.start_battle(opponent)
        display.show_duel(result, character.id)
        game_app.store.level_up_all()

    _run(action)


@app.command()
def explore(x: int = typer.Argument(...), y: int = typer.Argument(...)) -> None:
    """Move to a tile and fight everything on it."""
    async def action(game_app, display):
        _require_character(game_app, display)
        move = game_app.store.move_to_tile(x, y)
        display.show_info(f"You arrive at {move.tile.name} ({x}, {y}).")
        if move.tile.alive_monsters:
            display.show_wilderness_battle(game_app.store.fight_all_monsters(x, y))
        else:
            display.show_info("Nothing stirs here.")
        game_app.store.level_up_all()

    _run(action)


@app.command()
def fuse(gem_type: str = typer.Argument(...), tier: str = typer.Argument(...)) -> None:
    """Fuse every full batch of one gem type and tier."""
    async def action(game_app, display):
        _require_character(game_app, display)
        batch = game_app.store.fuse_all_gems(gem_type, tier)
        for attempt in batch.attempts:
            if attempt.success:
                display.show_success(attempt.message)
            else:
                display.show_info(attempt.message)
        display.show_info(f"{batch.successes} succeeded, {batch.failures} failed.")

    _run(action)


@app.command()
def travel(map_id: str = typer.Argument(..., help="Map to travel to")) -> None:
    """Switch to another wilderness map."""
    async def action(game_app, display):
        _require_character(game_app, display)
        ws = game_app.store.switch_map(map_id)
        display.show_success(f"You arrive in {ws.current_map.name}.")

    _run(action)


@app.command()
def rest(seconds: float = typer.Argument(5.0, help="How long to idle")) -> None:
    """Heal to full, then idle while energy regenerates."""
    async def action(game_app, display):
        _require_character(game_app, display)
        game_app.store.heal_character()
        game_app.scheduler.start()
        await asyncio.sleep(seconds)
        await game_app.scheduler.stop()
        character = game_app.store.current_character
        display.show_info(f"Energy {character.energy}/{character.max_energy}")

    _run(action)


@app.command()
def maps() -> None:
    """List maps and whether they are open."""
    async def action(game_app, display):
        display.show_maps(game_app.store.get_available_maps())

    _run(action)


@app.command()
def dump() -> None:
    """Print a summary of the whole game state."""
    async def action(game_app, display):
        display.show_dump(game_app.store.debug_dump())

    _run(action)


if __name__ == "__main__":
    app()
