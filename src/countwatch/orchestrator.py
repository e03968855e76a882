# Copyright (c) Syntropy Systems
"""Runs every table of a check-set and records the outcomes."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from countwatch.checker import TableChecker
from countwatch.concurrency import settle_all
from countwatch.exceptions import StorageAppendError, StoreNotReady
from countwatch.models.outcome import DEFAULT_TOLERANCE_RATIO, CheckOutcome, CheckSetResult

if TYPE_CHECKING:
    from countwatch.config import CountwatchConfig
    from countwatch.db import Database
    from countwatch.registry import CheckSetRegistry

logger = logging.getLogger(__name__)


class CheckSetOrchestrator:
    """Fans out table checks for a check-set and persists every outcome.

    A failing table never stops its siblings: query failures become
    ``SQL_ERROR`` outcomes and storage failures are logged without touching
    the verdict, which reflects validation only.
    """

    def __init__(
        self,
        registry: CheckSetRegistry,
        database: Database,
        checker: TableChecker | None = None,
        *,
        tolerance_ratio: float = DEFAULT_TOLERANCE_RATIO,
        max_parallel: int = 8,
        query_timeout: float | None = None,
    ) -> None:
        self.registry = registry
        self.database = database
        self.checker = checker or TableChecker(
            database, tolerance_ratio=tolerance_ratio, query_timeout=query_timeout
        )
        self.max_parallel = max_parallel
        self.query_timeout = query_timeout

    @classmethod
    def from_config(cls, config: CountwatchConfig, database: Database) -> CheckSetOrchestrator:
        return cls(
            config.registry(),
            database,
            tolerance_ratio=config.tolerance_ratio,
            max_parallel=config.max_parallel,
            query_timeout=config.query_timeout,
        )

    @property
    def is_ready(self) -> bool:
        return self.database.is_ready

    def run_check_set(self, check_set_id: str) -> CheckSetResult:
        """Check and persist every member table of a check-set.

        Raises UnknownCheckSet before any query if the name is not registered,
        and StoreNotReady if the database handle has not connected.
        """
        tables = self.registry.tables(check_set_id)
        if not self.is_ready:
            raise StoreNotReady("Database connection is not ready")

        logger.info("Running check-set %s (%d tables)", check_set_id, len(tables))
        outcomes = self._check_tables(check_set_id, tables)
        outcomes = self._store_outcomes(outcomes)

        result = CheckSetResult(check_set_id=check_set_id, outcomes=outcomes)
        logger.info(
            "Check-set %s %s: %d valid, %d below expected, %d errors",
            check_set_id,
            "passed" if result.overall_valid else "failed",
            result.valid_count,
            result.invalid_count,
            result.error_count,
        )
        return result

    def _check_tables(self, check_set_id: str, tables: tuple[str, ...]) -> list[CheckOutcome]:
        settled = settle_all(
            lambda table: self.checker.check(check_set_id, table),
            tables,
            max_workers=self.max_parallel,
            timeout=self.query_timeout,
        )
        outcomes: list[CheckOutcome] = []
        for result in settled:
            if result.ok and result.value is not None:
                outcomes.append(result.value)
                continue
            logger.error(
                "Check for %s/%s did not complete: %s", check_set_id, result.item, result.error
            )
            outcomes.append(
                CheckOutcome.query_failed(
                    check_set_id,
                    result.item,
                    str(result.error),
                    tolerance_ratio=self.checker.tolerance_ratio,
                )
            )
        return outcomes

    def _store_outcomes(self, outcomes: list[CheckOutcome]) -> list[CheckOutcome]:
        settled = settle_all(
            self.database.append_outcome,
            outcomes,
            max_workers=self.max_parallel,
        )
        stored: list[CheckOutcome] = []
        for result in settled:
            outcome = result.item
            if result.ok:
                stored.append(outcome.model_copy(update={"observed_at": result.value}))
                continue
            error = result.error
            if not isinstance(error, StorageAppendError):
                error = StorageAppendError(str(error))
            logger.error(
                "Failed to store outcome for %s/%s: %s",
                outcome.check_set_id,
                outcome.table_name,
                error,
            )
            stored.append(outcome)
        return stored
