# Copyright (c) Syntropy Systems
"""Pydantic models for countwatch API requests and responses."""

from __future__ import annotations

from pydantic import Field

from .base import CountwatchBaseModel
from .db import HistoryRecord
from .outcome import CheckOutcome, CheckSetResult


class CheckSetResponse(CountwatchBaseModel):
    """Result of triggering a check-set."""

    check_set_id: str
    overall_valid: bool
    outcomes: list[CheckOutcome] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: CheckSetResult) -> CheckSetResponse:
        return cls(
            check_set_id=result.check_set_id,
            overall_valid=result.overall_valid,
            outcomes=result.outcomes,
        )


class CheckSetInfo(CountwatchBaseModel):
    """A registered check-set and its member tables."""

    name: str
    tables: list[str]


class CheckSetListResponse(CountwatchBaseModel):
    """Response containing the registered check-sets."""

    check_sets: list[CheckSetInfo]


class HistoryResponse(CountwatchBaseModel):
    """Response containing persisted outcomes, newest first."""

    records: list[HistoryRecord]
    count: int


class HealthResponse(CountwatchBaseModel):
    """Health check response."""

    status: str
    store_ready: bool


class ErrorResponse(CountwatchBaseModel):
    """Error response."""

    detail: str
    error_code: str | None = None
