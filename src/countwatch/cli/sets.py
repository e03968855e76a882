# Copyright (c) Syntropy Systems
"""countwatch sets command."""

import typer
from rich.console import Console
from rich.table import Table

from countwatch.config import load_config, require_countwatch_dir
from countwatch.exceptions import ConfigurationError

console = Console()


def sets() -> None:
    """List the configured check-sets and their tables."""
    try:
        countwatch_dir = require_countwatch_dir()
        registry = load_config(countwatch_dir).registry()
    except (RuntimeError, ConfigurationError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    if not registry:
        console.print("[dim]No check-sets configured[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Check-set")
    table.add_column("Tables")

    for name in registry.names():
        table.add_row(name, ", ".join(registry.tables(name)))

    console.print(table)
