# Copyright (c) Syntropy Systems
"""Outcome history storage and the combined count/baseline query.

The history table doubles as the baseline source: the latest row with
``is_valid`` set for a (check-set, table) pair is that pair's baseline.
"""

import logging
import re
import sqlite3
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

try:
    import psycopg
    from psycopg.rows import dict_row
except ImportError:
    psycopg = None  # type: ignore[assignment]

from .exceptions import QueryError, StorageAppendError, StoreNotReady
from .models.db import CountResult, HistoryRecord
from .models.outcome import CheckOutcome

logger = logging.getLogger(__name__)

HISTORY_TABLE = "countwatch_history"

# `id` holds the check-set id, matching the column layout existing
# deployments already query.
SQLITE_SCHEMA = f"""
CREATE TABLE IF NOT EXISTS {HISTORY_TABLE} (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL,
    table_name TEXT NOT NULL,
    record_count INTEGER,
    is_valid INTEGER NOT NULL,
    reason TEXT,
    stored_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);

CREATE INDEX IF NOT EXISTS idx_history_baseline
    ON {HISTORY_TABLE}(id, table_name, is_valid, stored_at);
"""

POSTGRES_SCHEMA = f"""
CREATE TABLE IF NOT EXISTS {HISTORY_TABLE} (
    seq BIGSERIAL PRIMARY KEY,
    id TEXT NOT NULL,
    table_name TEXT NOT NULL,
    record_count BIGINT,
    is_valid BOOLEAN NOT NULL,
    reason TEXT,
    stored_at TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE INDEX IF NOT EXISTS idx_history_baseline
    ON {HISTORY_TABLE}(id, table_name, is_valid, stored_at);
"""

_IDENTIFIER_PART = r"[A-Za-z_][A-Za-z0-9_$]*"
TABLE_NAME_RE = re.compile(rf"^{_IDENTIFIER_PART}(\.{_IDENTIFIER_PART})?$")


def is_valid_table_name(name: str) -> bool:
    """Check that a name is a plain or schema-qualified identifier."""
    return bool(TABLE_NAME_RE.match(name))


def safe_table_name(name: str) -> str:
    """Return a validated table name for interpolation.

    Names stay unquoted, so PostgreSQL folds them to lower case exactly as
    it does for an unquoted CREATE TABLE.
    """
    if not is_valid_table_name(name):
        raise QueryError(f"invalid table name {name!r}")
    return name


def _count_with_baseline_sql(table_name: str, placeholder: str, true_literal: str) -> str:
    return f"""
        SELECT COUNT(*) AS current_count,
               COALESCE(
                   (SELECT record_count
                      FROM {HISTORY_TABLE}
                     WHERE id = {placeholder}
                       AND table_name = {placeholder}
                       AND is_valid = {true_literal}
                     ORDER BY stored_at DESC, seq DESC
                     LIMIT 1),
                   0) AS baseline_count
          FROM {safe_table_name(table_name)}
    """


def get_connection(db_path: Path) -> sqlite3.Connection:
    """
    Get a database connection with proper settings for concurrent access.

    - isolation_level=None for explicit transaction control
    - WAL mode for concurrent readers/writers
    - busy_timeout to wait for locks instead of failing immediately
    - Row factory for dict-like access
    """
    conn = sqlite3.connect(str(db_path), timeout=5.0, isolation_level=None)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA busy_timeout=5000")
    conn.row_factory = sqlite3.Row
    return conn


def init_db(db_path: Path) -> None:
    """Initialize the database with the history schema."""
    conn = get_connection(db_path)
    try:
        conn.executescript(SQLITE_SCHEMA)
    finally:
        conn.close()


# --- SQLite operations ---


def count_with_baseline(
    conn: sqlite3.Connection,
    check_set_id: str,
    table_name: str,
) -> CountResult:
    """Count a table and fetch its last valid count in one statement."""
    sql = _count_with_baseline_sql(table_name, "?", "1")
    try:
        row = conn.execute(sql, (check_set_id, table_name)).fetchone()
    except sqlite3.Error as e:
        raise QueryError(str(e)) from e
    return CountResult.model_validate(dict(row))


def append_outcome(conn: sqlite3.Connection, outcome: CheckOutcome) -> str:
    """Append one outcome to the history. Returns the stored timestamp."""
    logger.debug(
        "Storing result %s/%s count=%s valid=%s",
        outcome.check_set_id,
        outcome.table_name,
        outcome.current_count,
        outcome.is_valid,
    )
    try:
        rows = conn.execute(
            f"""
            INSERT INTO {HISTORY_TABLE} (id, table_name, record_count, is_valid, reason)
            VALUES (?, ?, ?, ?, ?)
            RETURNING stored_at
            """,
            (
                outcome.check_set_id,
                outcome.table_name,
                outcome.current_count,
                1 if outcome.is_valid else 0,
                outcome.reason,
            ),
        ).fetchall()
    except sqlite3.Error as e:
        raise StorageAppendError(
            f"Failed to store outcome for {outcome.check_set_id}/{outcome.table_name}: {e}"
        ) from e
    return rows[0]["stored_at"]


def latest_valid_count(conn: sqlite3.Connection, check_set_id: str, table_name: str) -> int:
    """Get the most recent valid count for a pair, or 0 if there is none."""
    row = conn.execute(
        f"""
        SELECT record_count FROM {HISTORY_TABLE}
        WHERE id = ? AND table_name = ? AND is_valid = 1
        ORDER BY stored_at DESC, seq DESC
        LIMIT 1
        """,
        (check_set_id, table_name),
    ).fetchone()

    if row is None or row["record_count"] is None:
        return 0
    return int(row["record_count"])


def get_history(
    conn: sqlite3.Connection,
    check_set_id: str,
    table_name: Optional[str] = None,
    limit: int = 50,
) -> list[HistoryRecord]:
    """Get persisted outcomes for a check-set, newest first."""
    query = f"SELECT * FROM {HISTORY_TABLE} WHERE id = ?"
    params: list[Any] = [check_set_id]
    if table_name is not None:
        query += " AND table_name = ?"
        params.append(table_name)
    query += " ORDER BY stored_at DESC, seq DESC LIMIT ?"
    params.append(limit)

    rows = conn.execute(query, params).fetchall()
    return [HistoryRecord.model_validate(dict(row)) for row in rows]


# --- Database handles ---


class Database(ABC):
    """Handle to the store holding both the monitored tables and the history.

    A handle starts out not ready; ``connect()`` verifies connectivity and
    flips it ready. Callers check ``is_ready`` before issuing queries.
    """

    def __init__(self) -> None:
        self._ready = False

    @property
    def is_ready(self) -> bool:
        return self._ready

    def connect(self) -> None:
        """Verify the store is reachable and mark the handle ready."""
        try:
            self._ping()
        except Exception as e:
            self._ready = False
            raise StoreNotReady(f"Unable to connect: {e}") from e
        self._ready = True

    def close(self) -> None:
        self._ready = False

    @abstractmethod
    def _ping(self) -> None:
        ...

    @abstractmethod
    def init_schema(self) -> None:
        """Create the history table if it does not exist. Raises StoreNotReady."""

    @abstractmethod
    def count_with_baseline(
        self,
        check_set_id: str,
        table_name: str,
        timeout: Optional[float] = None,
    ) -> CountResult:
        """Count a table and fetch its baseline. Raises QueryError.

        With a timeout, the store cancels the statement once it has run that
        many seconds and raises QueryError("timed out after <n>s").
        """

    @abstractmethod
    def append_outcome(self, outcome: CheckOutcome) -> str:
        """Persist one outcome. Raises StorageAppendError."""

    @abstractmethod
    def latest_valid_count(self, check_set_id: str, table_name: str) -> int:
        ...

    @abstractmethod
    def get_history(
        self,
        check_set_id: str,
        table_name: Optional[str] = None,
        limit: int = 50,
    ) -> list[HistoryRecord]:
        ...


class SQLiteDatabase(Database):
    """SQLite-backed store. Every operation uses its own connection."""

    def __init__(self, db_path: Path) -> None:
        super().__init__()
        self.db_path = Path(db_path)

    def __repr__(self) -> str:
        return f"SQLiteDatabase({str(self.db_path)!r})"

    def _ping(self) -> None:
        conn = get_connection(self.db_path)
        try:
            conn.execute("SELECT 1").fetchone()
        finally:
            conn.close()

    def init_schema(self) -> None:
        try:
            init_db(self.db_path)
        except sqlite3.Error as e:
            raise StoreNotReady(f"Unable to create history table: {e}") from e

    def count_with_baseline(
        self,
        check_set_id: str,
        table_name: str,
        timeout: Optional[float] = None,
    ) -> CountResult:
        try:
            conn = get_connection(self.db_path)
        except sqlite3.Error as e:
            raise QueryError(str(e)) from e

        cancelled = threading.Event()

        def cancel() -> None:
            cancelled.set()
            conn.interrupt()

        timer = None
        if timeout is not None:
            timer = threading.Timer(timeout, cancel)
            timer.daemon = True
            timer.start()
        try:
            return count_with_baseline(conn, check_set_id, table_name)
        except QueryError as e:
            if cancelled.is_set():
                raise QueryError(f"timed out after {timeout:g}s") from e
            raise
        finally:
            if timer is not None:
                timer.cancel()
                timer.join()
            conn.close()

    def append_outcome(self, outcome: CheckOutcome) -> str:
        try:
            conn = get_connection(self.db_path)
        except sqlite3.Error as e:
            raise StorageAppendError(str(e)) from e
        try:
            return append_outcome(conn, outcome)
        finally:
            conn.close()

    def latest_valid_count(self, check_set_id: str, table_name: str) -> int:
        conn = get_connection(self.db_path)
        try:
            return latest_valid_count(conn, check_set_id, table_name)
        finally:
            conn.close()

    def get_history(
        self,
        check_set_id: str,
        table_name: Optional[str] = None,
        limit: int = 50,
    ) -> list[HistoryRecord]:
        conn = get_connection(self.db_path)
        try:
            return get_history(conn, check_set_id, table_name=table_name, limit=limit)
        finally:
            conn.close()


class PostgresDatabase(Database):
    """PostgreSQL-backed store using psycopg."""

    def __init__(self, database_url: str, connect_timeout: int = 10) -> None:
        if psycopg is None:
            msg = (
                "psycopg is required for PostgreSQL support. "
                "Install with: pip install countwatch[postgres]"
            )
            raise ImportError(msg)
        super().__init__()
        self.database_url = database_url
        self.connect_timeout = connect_timeout

    def __repr__(self) -> str:
        return "PostgresDatabase(...)"

    def _connect(self, statement_timeout: Optional[float] = None):
        kwargs: dict[str, Any] = {}
        if statement_timeout is not None:
            kwargs["options"] = f"-c statement_timeout={max(1, round(statement_timeout * 1000))}"
        return psycopg.connect(
            self.database_url,
            autocommit=True,
            connect_timeout=self.connect_timeout,
            row_factory=dict_row,
            **kwargs,
        )

    def _ping(self) -> None:
        with self._connect() as conn:
            conn.execute("SELECT 1").fetchone()

    def init_schema(self) -> None:
        try:
            with self._connect() as conn:
                for statement in POSTGRES_SCHEMA.split(";"):
                    if statement.strip():
                        conn.execute(statement)
        except psycopg.Error as e:
            raise StoreNotReady(f"Unable to create history table: {e}") from e

    def count_with_baseline(
        self,
        check_set_id: str,
        table_name: str,
        timeout: Optional[float] = None,
    ) -> CountResult:
        sql = _count_with_baseline_sql(table_name, "%s", "TRUE")
        try:
            with self._connect(statement_timeout=timeout) as conn:
                row = conn.execute(sql, (check_set_id, table_name)).fetchone()
        except psycopg.errors.QueryCanceled as e:
            raise QueryError(f"timed out after {timeout:g}s") from e
        except psycopg.Error as e:
            raise QueryError(str(e).strip()) from e
        return CountResult.model_validate(row)

    def append_outcome(self, outcome: CheckOutcome) -> str:
        try:
            with self._connect() as conn:
                row = conn.execute(
                    f"""
                    INSERT INTO {HISTORY_TABLE} (id, table_name, record_count, is_valid, reason)
                    VALUES (%s, %s, %s, %s, %s)
                    RETURNING stored_at
                    """,
                    (
                        outcome.check_set_id,
                        outcome.table_name,
                        outcome.current_count,
                        outcome.is_valid,
                        outcome.reason,
                    ),
                ).fetchone()
        except psycopg.Error as e:
            raise StorageAppendError(
                f"Failed to store outcome for {outcome.check_set_id}/{outcome.table_name}: {e}"
            ) from e
        return row["stored_at"].isoformat()

    def latest_valid_count(self, check_set_id: str, table_name: str) -> int:
        with self._connect() as conn:
            row = conn.execute(
                f"""
                SELECT record_count FROM {HISTORY_TABLE}
                WHERE id = %s AND table_name = %s AND is_valid = TRUE
                ORDER BY stored_at DESC, seq DESC
                LIMIT 1
                """,
                (check_set_id, table_name),
            ).fetchone()
        if row is None or row["record_count"] is None:
            return 0
        return int(row["record_count"])

    def get_history(
        self,
        check_set_id: str,
        table_name: Optional[str] = None,
        limit: int = 50,
    ) -> list[HistoryRecord]:
        query = f"SELECT * FROM {HISTORY_TABLE} WHERE id = %s"
        params: list[Any] = [check_set_id]
        if table_name is not None:
            query += " AND table_name = %s"
            params.append(table_name)
        query += " ORDER BY stored_at DESC, seq DESC LIMIT %s"
        params.append(limit)
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [HistoryRecord.model_validate(row) for row in rows]


def get_database(
    database_url: Optional[str] = None,
    db_path: Optional[Path] = None,
) -> Database:
    """Build a database handle. PostgreSQL URLs win over a SQLite path."""
    if database_url:
        if database_url.startswith("sqlite:///"):
            return SQLiteDatabase(Path(database_url[len("sqlite:///"):]))
        return PostgresDatabase(database_url)
    if db_path is not None:
        return SQLiteDatabase(db_path)
    raise ValueError("No database configuration provided")
