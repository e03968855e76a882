# Copyright (c) Syntropy Systems
"""Pydantic models for database records."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, cast

from pydantic import AliasChoices, Field, field_validator

from .base import CountwatchBaseModel


class CountResult(CountwatchBaseModel):
    """Row returned by the combined count/baseline statement."""

    current_count: int = Field(ge=0)
    baseline_count: int = Field(default=0, ge=0)

    @field_validator("baseline_count", mode="before")
    @classmethod
    def _default_baseline(cls, value: object) -> int:
        if value is None:
            return 0
        return int(cast(int, value))


class HistoryRecord(CountwatchBaseModel):
    """One persisted row of the outcome history."""

    seq: int
    check_set_id: str = Field(validation_alias=AliasChoices("id", "check_set_id"))
    table_name: str
    record_count: Optional[int] = None
    is_valid: bool
    reason: Optional[str] = None
    stored_at: str

    @field_validator("stored_at", mode="before")
    @classmethod
    def _parse_datetime(cls, value: object) -> str:
        if isinstance(value, datetime):
            return value.isoformat()
        return cast(str, value)
