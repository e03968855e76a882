# Copyright (c) Syntropy Systems
"""countwatch check command."""
from __future__ import annotations

from typing import Optional

import typer
from rich.table import Table

from countwatch.cli.common import console, format_count, load_project
from countwatch.client import CountwatchClient, CountwatchClientError
from countwatch.exceptions import StoreNotReady, UnknownCheckSet
from countwatch.models.outcome import CheckOutcome
from countwatch.orchestrator import CheckSetOrchestrator

EXIT_INVALID = 1
EXIT_UNKNOWN_CHECK_SET = 2


def check(
    check_set_id: str = typer.Argument(..., help="Name of the check-set to run"),
    server: Optional[str] = typer.Option(
        None,
        "--server",
        envvar="COUNTWATCH_SERVER",
        help="Run on a countwatch server instead of locally (e.g., http://monitor:8080)",
    ),
    database_url: Optional[str] = typer.Option(
        None,
        "--database-url",
        help="PostgreSQL connection URL (default: project SQLite database)",
    ),
) -> None:
    """
    Run a check-set and record the outcome of every table.

    Exits 0 when every table is valid, 1 when any table regressed or
    failed to query, and 2 when the check-set is unknown.
    """
    if server:
        outcomes, overall_valid = _run_remote(server, check_set_id)
    else:
        outcomes, overall_valid = _run_local(check_set_id, database_url)

    _show_outcomes(check_set_id, outcomes)

    if overall_valid:
        console.print(f"[green]Check-set {check_set_id} passed[/green]")
        return

    console.print(f"[red]Check-set {check_set_id} failed[/red]")
    raise typer.Exit(EXIT_INVALID)


def _run_local(check_set_id: str, database_url: Optional[str]) -> tuple[list[CheckOutcome], bool]:
    config, database = load_project(database_url)
    orchestrator = CheckSetOrchestrator.from_config(config, database)
    try:
        result = orchestrator.run_check_set(check_set_id)
    except UnknownCheckSet as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(EXIT_UNKNOWN_CHECK_SET) from e
    except StoreNotReady as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e
    finally:
        database.close()
    return result.outcomes, result.overall_valid


def _run_remote(server: str, check_set_id: str) -> tuple[list[CheckOutcome], bool]:
    try:
        with CountwatchClient(server) as client:
            response = client.run_check_set(check_set_id)
    except ImportError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e
    except CountwatchClientError as e:
        console.print(f"[red]Error:[/red] {e}")
        if e.status_code == 404:
            raise typer.Exit(EXIT_UNKNOWN_CHECK_SET) from e
        raise typer.Exit(1) from e
    return response.outcomes, response.overall_valid


def _show_outcomes(check_set_id: str, outcomes: list[CheckOutcome]) -> None:
    """Display outcomes in a table."""
    table = Table(show_header=True, header_style="bold", title=check_set_id)
    table.add_column("Table")
    table.add_column("Count", justify="right")
    table.add_column("Last valid", justify="right")
    table.add_column("Expected >=", justify="right")
    table.add_column("Status")
    table.add_column("Time", justify="right", style="dim")
    table.add_column("Reason")

    for outcome in outcomes:
        if outcome.is_valid:
            status = "[green]valid[/green]"
        elif outcome.failed:
            status = "[red]error[/red]"
        else:
            status = "[yellow]below[/yellow]"

        table.add_row(
            outcome.table_name,
            format_count(outcome.current_count),
            format_count(outcome.baseline_count),
            format_count(outcome.expected_minimum),
            status,
            f"{outcome.query_duration_ms}ms",
            outcome.reason or "-",
        )

    console.print(table)
