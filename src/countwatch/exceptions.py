# Copyright (c) Syntropy Systems
"""Exceptions raised by countwatch."""

from __future__ import annotations


class CountwatchError(Exception):
    """Base class for countwatch errors."""


class ConfigurationError(CountwatchError):
    """Raised when config.yaml is malformed or names an invalid table."""


class UnknownCheckSet(CountwatchError, KeyError):
    """Raised when a check-set name is not present in the registry."""

    def __init__(self, check_set_id: str) -> None:
        super().__init__(check_set_id)
        self.check_set_id = check_set_id

    def __str__(self) -> str:
        return f"Unknown check-set: {self.check_set_id}"


class StoreNotReady(CountwatchError):
    """Raised when the database handle has not connected yet."""


class QueryError(CountwatchError):
    """The count/baseline query for one table failed."""


class StorageAppendError(CountwatchError):
    """Persisting one outcome to the history table failed."""
