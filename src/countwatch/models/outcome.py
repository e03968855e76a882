# Copyright (c) Syntropy Systems
"""Pydantic models for check outcomes."""

from __future__ import annotations

import math

from pydantic import Field, computed_field

from .base import FrozenModel

DEFAULT_TOLERANCE_RATIO = 0.9

REASON_COUNT_BELOW_EXPECTED = "COUNT_BELOW_EXPECTED"
REASON_SQL_ERROR = "SQL_ERROR"


def expected_minimum_for(baseline_count: int, tolerance_ratio: float = DEFAULT_TOLERANCE_RATIO) -> int:
    """Lowest count accepted against a baseline, rounded down."""
    return math.floor(baseline_count * tolerance_ratio)


class CheckOutcome(FrozenModel):
    """Result of checking one table of a check-set at one point in time.

    ``expected_minimum`` is derived from ``baseline_count`` and is never stored.
    ``current_count`` is None when the count query failed. ``observed_at`` is
    assigned by the store when the outcome is persisted and stays None if the
    append failed.
    """

    check_set_id: str
    table_name: str
    current_count: int | None = Field(default=None, ge=0)
    baseline_count: int = Field(default=0, ge=0)
    tolerance_ratio: float = Field(default=DEFAULT_TOLERANCE_RATIO, gt=0)
    is_valid: bool
    reason: str | None = None
    query_duration_ms: int = 0
    observed_at: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def expected_minimum(self) -> int:
        """Minimum acceptable count for this run."""
        return expected_minimum_for(self.baseline_count, self.tolerance_ratio)

    @property
    def failed(self) -> bool:
        """True when the count query itself failed."""
        return self.current_count is None

    @classmethod
    def evaluate(
        cls,
        check_set_id: str,
        table_name: str,
        current_count: int,
        baseline_count: int,
        *,
        tolerance_ratio: float = DEFAULT_TOLERANCE_RATIO,
        query_duration_ms: int = 0,
    ) -> CheckOutcome:
        """Build an outcome by comparing a count against its baseline."""
        expected = expected_minimum_for(baseline_count, tolerance_ratio)
        is_valid = current_count >= expected
        reason = None
        if not is_valid:
            reason = f"{REASON_COUNT_BELOW_EXPECTED}: Last={baseline_count}, Expected={expected}"
        return cls(
            check_set_id=check_set_id,
            table_name=table_name,
            current_count=current_count,
            baseline_count=baseline_count,
            tolerance_ratio=tolerance_ratio,
            is_valid=is_valid,
            reason=reason,
            query_duration_ms=query_duration_ms,
        )

    @classmethod
    def query_failed(
        cls,
        check_set_id: str,
        table_name: str,
        diagnostic: str,
        *,
        tolerance_ratio: float = DEFAULT_TOLERANCE_RATIO,
        query_duration_ms: int = 0,
    ) -> CheckOutcome:
        """Build the outcome recorded when the count query could not run."""
        return cls(
            check_set_id=check_set_id,
            table_name=table_name,
            tolerance_ratio=tolerance_ratio,
            is_valid=False,
            reason=f"{REASON_SQL_ERROR}: {diagnostic}",
            query_duration_ms=query_duration_ms,
        )


class CheckSetResult(FrozenModel):
    """Aggregated result of one check-set run, in registry order."""

    check_set_id: str
    outcomes: list[CheckOutcome] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def overall_valid(self) -> bool:
        """True only if every member table is valid."""
        return all(outcome.is_valid for outcome in self.outcomes)

    @property
    def valid_count(self) -> int:
        return sum(1 for o in self.outcomes if o.is_valid)

    @property
    def invalid_count(self) -> int:
        return sum(1 for o in self.outcomes if not o.is_valid and not o.failed)

    @property
    def error_count(self) -> int:
        return sum(1 for o in self.outcomes if o.failed)

    def outcome_for(self, table_name: str) -> CheckOutcome | None:
        """Return the outcome for a table, if it is a member of this set."""
        for outcome in self.outcomes:
            if outcome.table_name == table_name:
                return outcome
        return None
