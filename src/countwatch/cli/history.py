# Copyright (c) Syntropy Systems
"""countwatch history command."""
from __future__ import annotations

from typing import Optional

import typer
from rich.table import Table

from countwatch.cli.common import console, format_count, load_project


def history(
    check_set_id: str = typer.Argument(..., help="Check-set to show history for"),
    table_name: Optional[str] = typer.Option(
        None,
        "--table", "-t",
        help="Only show one member table",
    ),
    last: int = typer.Option(
        20,
        "--last", "-n",
        help="Number of records to show",
    ),
    database_url: Optional[str] = typer.Option(
        None,
        "--database-url",
        help="PostgreSQL connection URL (default: project SQLite database)",
    ),
) -> None:
    """Show recorded outcomes for a check-set, newest first."""
    _, database = load_project(database_url)
    try:
        records = database.get_history(check_set_id, table_name=table_name, limit=last)
    finally:
        database.close()

    if not records:
        console.print("[dim]No history found[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Stored at", style="dim")
    table.add_column("Table")
    table.add_column("Count", justify="right")
    table.add_column("Status")
    table.add_column("Reason")

    for record in records:
        status = "[green]valid[/green]" if record.is_valid else "[red]invalid[/red]"
        table.add_row(
            record.stored_at,
            record.table_name,
            format_count(record.record_count),
            status,
            record.reason or "-",
        )

    console.print(table)
