# Copyright (c) Syntropy Systems
"""Row-count check for a single table against its rolling baseline."""
from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from countwatch.exceptions import QueryError
from countwatch.models.outcome import DEFAULT_TOLERANCE_RATIO, CheckOutcome

if TYPE_CHECKING:
    from countwatch.db import Database

logger = logging.getLogger(__name__)


def _elapsed_ms(start: float) -> int:
    return round((time.perf_counter() - start) * 1000)


class TableChecker:
    """Compares a table's current row count with its last valid count.

    ``check()`` does not raise on query failures: they are recorded in the
    returned outcome as ``SQL_ERROR`` with no current count. A query running
    longer than ``query_timeout`` seconds is cancelled by the store.
    """

    def __init__(
        self,
        database: Database,
        tolerance_ratio: float = DEFAULT_TOLERANCE_RATIO,
        query_timeout: float | None = None,
    ) -> None:
        self.database = database
        self.tolerance_ratio = tolerance_ratio
        self.query_timeout = query_timeout

    def check(self, check_set_id: str, table_name: str) -> CheckOutcome:
        """Check one table of a check-set."""
        start = time.perf_counter()
        try:
            counts = self.database.count_with_baseline(
                check_set_id, table_name, timeout=self.query_timeout
            )
        except QueryError as e:
            logger.error("Count query failed for %s/%s: %s", check_set_id, table_name, e)
            return CheckOutcome.query_failed(
                check_set_id,
                table_name,
                str(e),
                tolerance_ratio=self.tolerance_ratio,
                query_duration_ms=_elapsed_ms(start),
            )

        outcome = CheckOutcome.evaluate(
            check_set_id,
            table_name,
            counts.current_count,
            counts.baseline_count,
            tolerance_ratio=self.tolerance_ratio,
            query_duration_ms=_elapsed_ms(start),
        )
        if outcome.is_valid:
            logger.info(
                "%s/%s ok: count=%d expected>=%d (%dms)",
                check_set_id,
                table_name,
                outcome.current_count,
                outcome.expected_minimum,
                outcome.query_duration_ms,
            )
        else:
            logger.warning(
                "%s/%s regressed: count=%d %s",
                check_set_id,
                table_name,
                outcome.current_count,
                outcome.reason,
            )
        return outcome
