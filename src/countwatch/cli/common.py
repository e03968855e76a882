# Copyright (c) Syntropy Systems
"""Helpers shared by countwatch CLI commands."""
from __future__ import annotations

from typing import Optional

import typer
from rich.console import Console

from countwatch.config import (
    CountwatchConfig,
    find_countwatch_dir,
    get_database_url,
    get_db_path,
    load_config,
    require_countwatch_dir,
)
from countwatch.db import Database, get_database
from countwatch.exceptions import ConfigurationError, StoreNotReady

console = Console()


def load_project(database_url: Optional[str] = None) -> tuple[CountwatchConfig, Database]:
    """Load config and open a ready database handle, exiting on failure.

    A database URL (argument or COUNTWATCH_DATABASE_URL) wins over the
    project's SQLite file. Check-set definitions are validated here so a bad
    table name is reported before anything connects.
    """
    database_url = database_url or get_database_url()
    try:
        if database_url:
            countwatch_dir = find_countwatch_dir()
            config = load_config(countwatch_dir)
            database = get_database(database_url)
        else:
            countwatch_dir = require_countwatch_dir()
            config = load_config(countwatch_dir)
            database = get_database(db_path=get_db_path(countwatch_dir))
        _ = config.registry()
        database.connect()
    except (RuntimeError, ConfigurationError, StoreNotReady, ImportError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e
    return config, database


def format_count(value: Optional[int]) -> str:
    """Format a row count with thousands separators."""
    if value is None:
        return "-"
    return f"{value:,}"
