# Copyright (c) Syntropy Systems
"""Configuration management for countwatch."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import cast

import yaml

from countwatch.exceptions import ConfigurationError
from countwatch.models.outcome import DEFAULT_TOLERANCE_RATIO
from countwatch.registry import CheckSetRegistry

DATABASE_URL_ENV = "COUNTWATCH_DATABASE_URL"


@dataclass
class CountwatchConfig:
    """Configuration for countwatch."""

    # Fraction of the baseline below which a count is a regression
    tolerance_ratio: float = DEFAULT_TOLERANCE_RATIO

    # Upper bound on concurrent table checks within one check-set
    max_parallel: int = 8

    # Seconds to wait for a single table's query; None waits indefinitely
    query_timeout: float | None = None

    # check-set name -> ordered table names
    check_sets: dict[str, list[str]] = field(default_factory=dict)

    def registry(self) -> CheckSetRegistry:
        """Build the check-set registry from this config."""
        return CheckSetRegistry(self.check_sets)


def find_countwatch_dir(start_path: Path | None = None) -> Path | None:
    """Find the nearest .countwatch directory by walking up from start_path.

    Returns None if no .countwatch directory is found.
    """
    if start_path is None:
        start_path = Path.cwd()

    current = start_path.resolve()

    while current != current.parent:
        countwatch_dir = current / ".countwatch"
        if countwatch_dir.is_dir():
            return countwatch_dir
        current = current.parent

    # Check root
    countwatch_dir = current / ".countwatch"
    if countwatch_dir.is_dir():
        return countwatch_dir

    return None


def get_global_config_dir() -> Path:
    """Get the global countwatch config directory (~/.countwatch)."""
    return Path.home() / ".countwatch"


def _parse_check_sets(value: object) -> dict[str, list[str]]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        msg = "'check_sets' must map check-set names to lists of tables"
        raise ConfigurationError(msg)
    check_sets: dict[str, list[str]] = {}
    for name, tables in cast("dict[object, object]", value).items():
        if not isinstance(tables, list):
            msg = f"Check-set {name!r} must list table names"
            raise ConfigurationError(msg)
        check_sets[str(name)] = [str(t) for t in tables]
    return check_sets


def load_config(countwatch_dir: Path | None = None) -> CountwatchConfig:
    """Load configuration from .countwatch/config.yaml or defaults.

    Looks for config in:
    1. Provided countwatch_dir
    2. Nearest .countwatch directory walking up
    3. ~/.countwatch/config.yaml
    4. Defaults
    """
    config = CountwatchConfig()

    # Find config file
    config_path = None

    if countwatch_dir is not None:
        config_path = countwatch_dir / "config.yaml"
    else:
        found_dir = find_countwatch_dir()
        if found_dir is not None:
            config_path = found_dir / "config.yaml"
        else:
            global_config = get_global_config_dir() / "config.yaml"
            if global_config.exists():
                config_path = global_config

    if config_path is not None and config_path.exists():
        with config_path.open() as f:
            try:
                loaded = yaml.safe_load(f)
            except yaml.YAMLError as e:
                msg = f"Invalid YAML in {config_path}: {e}"
                raise ConfigurationError(msg) from e
        if loaded is not None and not isinstance(loaded, dict):
            msg = f"{config_path} must contain a mapping"
            raise ConfigurationError(msg)
        data = cast("dict[str, object]", loaded or {})

        tolerance_ratio = data.get("tolerance_ratio")
        if isinstance(tolerance_ratio, (int, float)) and tolerance_ratio > 0:
            config.tolerance_ratio = float(tolerance_ratio)
        max_parallel = data.get("max_parallel")
        if isinstance(max_parallel, int) and max_parallel >= 1:
            config.max_parallel = max_parallel
        query_timeout = data.get("query_timeout")
        if isinstance(query_timeout, (int, float)) and query_timeout > 0:
            config.query_timeout = float(query_timeout)
        config.check_sets = _parse_check_sets(data.get("check_sets"))

    return config


def get_db_path(countwatch_dir: Path | None = None) -> Path:
    """Get the path to the SQLite database."""
    if countwatch_dir is None:
        countwatch_dir = find_countwatch_dir()

    if countwatch_dir is None:
        msg = "No .countwatch directory found. Run 'countwatch init' first."
        raise RuntimeError(
            msg
        )

    return countwatch_dir / "countwatch.db"


def get_database_url() -> str | None:
    """Get the database URL from the environment, if set."""
    return os.environ.get(DATABASE_URL_ENV) or None


def require_countwatch_dir() -> Path:
    """Get countwatch directory or raise an error if not found."""
    countwatch_dir = find_countwatch_dir()
    if countwatch_dir is None:
        msg = "No .countwatch directory found. Run 'countwatch init' first."
        raise RuntimeError(
            msg
        )
    return countwatch_dir
