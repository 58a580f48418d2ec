"""Rich terminal display manager."""
from __future__ import annotations

import logging
from typing import Any

from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from auto_battler.mechanics.progression import experience_for_level
from auto_battler.models.character import Character, EquipmentSlot, StatType
from auto_battler.models.combat import CombatResult, DetailedBattleResult
from auto_battler.models.game_state import Notification, NotificationType

console = Console()

RARITY_STYLES = {
    "common": "white",
    "uncommon": "green",
    "rare": "blue",
    "epic": "magenta",
    "legendary": "yellow",
}

_NOTIFICATION_STYLES = {
    NotificationType.ITEM_DROP: "cyan",
    NotificationType.GEM_DROP: "magenta",
    NotificationType.DEATH: "red",
    NotificationType.LEVEL_UP: "yellow",
    NotificationType.INFO: "blue",
}


def configure_logging(level: str = "WARNING") -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
    )


class Display:
    """Renders store snapshots. Also serves as the store's notification sink."""

    def __init__(self, width: int = 80):
        self.console = console
        self.width = width

    def notify(self, notification: Notification) -> None:
        style = _NOTIFICATION_STYLES.get(notification.type, "blue")
        if notification.rarity:
            style = RARITY_STYLES.get(notification.rarity, style)
        self.console.print(Panel(
            notification.message,
            title=f"[bold]{notification.title}[/bold]",
            border_style=style,
            box=box.ROUNDED,
            width=min(self.width, 50),
        ))

    def show_error(self, message: str) -> None:
        self.console.print(f"[bold red]Error:[/bold red] {message}")

    def show_info(self, message: str) -> None:
        self.console.print(f"[bold blue]Info:[/bold blue] {message}")

    def show_success(self, message: str) -> None:
        self.console.print(f"[bold green]{message}[/bold green]")

    def show_character_sheet(self, character: Character) -> None:
        table = Table(title=f"{character.name} - Character Sheet", box=box.DOUBLE_EDGE, border_style="cyan")
        table.add_column("Attribute", style="bold", width=20)
        table.add_column("Value", min_width=30)
        table.add_row("Class", character.character_class.title())

        # Level with XP progress bar
        needed = experience_for_level(character.level)
        pct = min(character.experience / max(needed, 1), 1.0)
        bar_width = 20
        filled = int(pct * bar_width)
        bar = f"[green]{'=' * filled}[/green][dim]{'-' * (bar_width - filled)}[/dim]"
        table.add_row("Level", f"{character.level}    [{bar}] {character.experience}/{needed} XP")

        hp_pct = character.current_health / max(character.max_health, 1)
        hp_color = "green" if hp_pct > 0.5 else ("yellow" if hp_pct > 0.25 else "red")
        table.add_row("HP", f"[{hp_color}]{character.current_health}[/{hp_color}]/{character.max_health}")
        table.add_row("Energy", f"{character.energy}/{character.max_energy}")
        table.add_row("Gold", f"[yellow]{character.gold}[/yellow]")
        table.add_row("Record", f"{character.wins}W / {character.losses}L")

        for stat in StatType:
            table.add_row(stat.value.title(), str(character.stats.get(stat)))

        for slot in EquipmentSlot:
            item = character.equipment.get(slot)
            label = slot.value.replace("_", " ").title()
            if item is None:
                table.add_row(label, "[dim]-[/dim]")
            else:
                style = RARITY_STYLES.get(item.rarity.value, "white")
                table.add_row(label, f"[{style}]{item.name}[/{style}]")

        if character.active_gem_effects:
            effects = ", ".join(
                f"{e.effect} +{e.value} ({e.battles_remaining})" for e in character.active_gem_effects
            )
            table.add_row("Gem Effects", effects)
        self.console.print(table)

    def show_inventory(self, character: Character) -> None:
        if not character.inventory:
            self.console.print("[dim]Inventory is empty.[/dim]")
            return
        table = Table(title="Inventory", box=box.ROUNDED, border_style="cyan")
        table.add_column("Name", style="bold")
        table.add_column("Type")
        table.add_column("Level", justify="right")
        table.add_column("Price", justify="right")
        for item in character.inventory:
            style = RARITY_STYLES.get(item.rarity.value, "white")
            table.add_row(f"[{style}]{item.name}[/{style}]", item.type.value, str(item.level), str(item.price))
        self.console.print(table)

    def show_battle_log(self, log: list[str], title: str = "Battle") -> None:
        self.console.print(Panel(
            "\n".join(log) or "[dim]Nothing happened.[/dim]",
            title=f"[bold]{title}[/bold]",
            border_style="red",
            box=box.ROUNDED,
            width=self.width,
        ))

    def show_duel(self, result: CombatResult, character_id: str) -> None:
        self.show_battle_log(result.log, title=f"{result.character1_name} vs {result.character2_name}")
        rewards = result.rewards_for(character_id)
        if result.winner_id == character_id:
            self.show_success(f"Victory! +{rewards.experience} XP, +{rewards.gold} gold")
        else:
            self.console.print(f"[red]Defeat.[/red] +{rewards.experience} XP")

    def show_wilderness_battle(self, result: DetailedBattleResult) -> None:
        self.show_battle_log(result.log, title="Wilderness")
        if result.victory:
            self.show_success(
                f"Victory! +{result.rewards.experience} XP, +{result.rewards.gold} gold, "
                f"{len(result.rewards.items)} items"
            )
        else:
            self.console.print(f"[red]No victory.[/red] Health: {result.player_health}")

    def show_maps(self, maps: list[dict[str, Any]]) -> None:
        table = Table(title="Maps", box=box.ROUNDED, border_style="green")
        table.add_column("Id", style="bold")
        table.add_column("Name")
        table.add_column("Levels", justify="right")
        table.add_column("Required", justify="right")
        table.add_column("Open")
        for m in maps:
            low, high = m["level_range"]
            table.add_row(
                m["id"], m["name"], f"{low}-{high}", str(m["required_level"]),
                "[green]yes[/green]" if m["accessible"] else "[red]no[/red]",
            )
        self.console.print(table)

    def show_dump(self, dump: dict[str, Any]) -> None:
        from rich.pretty import Pretty

        self.console.print(Panel(Pretty(dump), title="[bold]State[/bold]", border_style="cyan", box=box.ROUNDED))
