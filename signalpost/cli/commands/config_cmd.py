"""``signalpost config`` — show the effective router settings."""

from __future__ import annotations

from rich.console import Console
from rich.table import Table

from signalpost.config import config

console = Console()


def config_cmd() -> None:
    """Print the settings in effect, after environment overrides."""
    table = Table(title="signalpost settings (SIGNALPOST_*)")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for name, value in config.model_dump().items():
        table.add_row(name, str(value))
    console.print(table)
