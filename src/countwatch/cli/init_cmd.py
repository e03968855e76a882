# Copyright (c) Syntropy Systems
"""countwatch init command."""

from pathlib import Path

import typer
import yaml
from rich.console import Console

from countwatch.db import init_db
from countwatch.models.outcome import DEFAULT_TOLERANCE_RATIO

console = Console()

EXAMPLE_CHECK_SETS = {
    "risk": ["risk_actions", "risk_csa", "risk_history", "risk_rbs", "risks"],
    "primavera": ["primavera_project", "primavera_task"],
}


def init(
    path: Path = typer.Argument(
        Path(),
        help="Directory to initialize (default: current directory)",
    ),
) -> None:
    """Initialize a new countwatch project.

    Creates a .countwatch directory with configuration and database.
    """
    target = path.resolve()
    countwatch_dir = target / ".countwatch"

    if countwatch_dir.exists():
        console.print(f"[yellow]Already initialized:[/yellow] {countwatch_dir}")
        return

    countwatch_dir.mkdir(parents=True)

    # Create default config
    config = {
        "tolerance_ratio": DEFAULT_TOLERANCE_RATIO,
        "max_parallel": 8,
        "check_sets": EXAMPLE_CHECK_SETS,
    }

    config_path = countwatch_dir / "config.yaml"
    with config_path.open("w") as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False)

    # Initialize database
    db_path = countwatch_dir / "countwatch.db"
    init_db(db_path)

    console.print(f"[green]Initialized countwatch project:[/green] {countwatch_dir}")
    console.print(f"  [dim]config:[/dim] {config_path}")
    console.print(f"  [dim]database:[/dim] {db_path}")
