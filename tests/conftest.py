# Copyright (c) Syntropy Systems
"""Pytest fixtures for countwatch tests."""

import os
import tempfile
from collections.abc import Callable, Generator
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
import yaml

if TYPE_CHECKING:
    from countwatch.db import SQLiteDatabase

# Store original cwd at module load time
_original_cwd = Path.cwd()

CHECK_SETS = {
    "risk": ["risk_actions", "risks"],
    "primavera": ["primavera_project", "primavera_task"],
}


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def countwatch_project(
    temp_dir: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> Generator[Path, None, None]:
    """Create a temporary countwatch project directory."""
    from countwatch.db import init_db

    monkeypatch.delenv("COUNTWATCH_DATABASE_URL", raising=False)

    countwatch_dir = temp_dir / ".countwatch"
    countwatch_dir.mkdir()

    with (countwatch_dir / "config.yaml").open("w") as f:
        yaml.dump({"tolerance_ratio": 0.9, "check_sets": CHECK_SETS}, f)

    # Initialize database
    db_path = countwatch_dir / "countwatch.db"
    init_db(db_path)

    # Change to temp directory
    os.chdir(temp_dir)

    yield temp_dir

    # Always return to original cwd
    os.chdir(_original_cwd)


@pytest.fixture
def db_path(countwatch_project: Path) -> Path:
    """Path to the project's SQLite database."""
    return countwatch_project / ".countwatch" / "countwatch.db"


@pytest.fixture
def make_table(db_path: Path) -> Callable[[str, int], None]:
    """Return a helper that (re)creates a monitored table with n rows."""
    from countwatch.db import get_connection

    def _make_table(name: str, rows: int) -> None:
        conn = get_connection(db_path)
        try:
            conn.execute(f'DROP TABLE IF EXISTS "{name}"')
            conn.execute(f'CREATE TABLE "{name}" (id INTEGER PRIMARY KEY, payload TEXT)')
            conn.executemany(
                f'INSERT INTO "{name}" (id, payload) VALUES (?, ?)',
                [(i, f"row-{i}") for i in range(rows)],
            )
        finally:
            conn.close()

    return _make_table


@pytest.fixture
def make_slow_view(db_path: Path) -> Callable[[str], None]:
    """Return a helper that creates a view whose COUNT(*) runs for minutes."""
    from countwatch.db import get_connection

    def _make_slow_view(name: str) -> None:
        conn = get_connection(db_path)
        try:
            conn.execute(
                f'CREATE VIEW "{name}" AS '
                "WITH RECURSIVE c(x) AS (SELECT 1 UNION ALL SELECT x + 1 FROM c WHERE x < 2000000000) "
                "SELECT x FROM c"
            )
        finally:
            conn.close()

    return _make_slow_view


@pytest.fixture
def database(db_path: Path) -> Generator["SQLiteDatabase", None, None]:
    """A connected SQLite database handle for the test project."""
    from countwatch.db import SQLiteDatabase

    db = SQLiteDatabase(db_path)
    db.connect()
    yield db
    db.close()


@pytest.fixture
def record_baseline(database: "SQLiteDatabase") -> Callable[..., None]:
    """Return a helper that stores a prior outcome for a (check-set, table) pair."""
    from countwatch.models.outcome import CheckOutcome

    def _record(check_set_id: str, table_name: str, count: int, is_valid: bool = True) -> None:
        _ = database.append_outcome(
            CheckOutcome(
                check_set_id=check_set_id,
                table_name=table_name,
                current_count=count,
                is_valid=is_valid,
                reason=None if is_valid else "COUNT_BELOW_EXPECTED: seeded",
            )
        )

    return _record
