# Copyright (c) Syntropy Systems
"""Static mapping from check-set name to its member tables."""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from types import MappingProxyType

from .db import is_valid_table_name
from .exceptions import ConfigurationError, UnknownCheckSet


class CheckSetRegistry(Mapping[str, tuple[str, ...]]):
    """Registry of named check-sets, built once and never mutated."""

    def __init__(self, check_sets: Mapping[str, Sequence[str]] | None = None) -> None:
        resolved: dict[str, tuple[str, ...]] = {}
        for name, tables in (check_sets or {}).items():
            if not isinstance(name, str) or not name.strip():
                raise ConfigurationError(f"Invalid check-set name: {name!r}")
            if isinstance(tables, str) or not isinstance(tables, Sequence):
                raise ConfigurationError(f"Check-set {name!r} must list table names")
            for table in tables:
                if not isinstance(table, str) or not is_valid_table_name(table):
                    raise ConfigurationError(
                        f"Check-set {name!r} has an invalid table name: {table!r}"
                    )
            if len(set(tables)) != len(tables):
                raise ConfigurationError(f"Check-set {name!r} lists a table twice")
            resolved[name] = tuple(tables)
        self._check_sets = MappingProxyType(resolved)

    def tables(self, check_set_id: str) -> tuple[str, ...]:
        """Return the ordered member tables of a check-set."""
        try:
            return self._check_sets[check_set_id]
        except KeyError:
            raise UnknownCheckSet(check_set_id) from None

    def names(self) -> list[str]:
        return list(self._check_sets)

    def __getitem__(self, check_set_id: str) -> tuple[str, ...]:
        return self.tables(check_set_id)

    def __iter__(self) -> Iterator[str]:
        return iter(self._check_sets)

    def __len__(self) -> int:
        return len(self._check_sets)

    def __repr__(self) -> str:
        return f"CheckSetRegistry({dict(self._check_sets)!r})"
