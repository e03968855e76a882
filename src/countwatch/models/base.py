# Copyright (c) Syntropy Systems
"""Shared Pydantic model helpers for countwatch."""

from __future__ import annotations

from typing import ClassVar

from pydantic import BaseModel, ConfigDict


class CountwatchBaseModel(BaseModel):
    """Base model with shared config for countwatch schemas."""

    model_config: ClassVar[ConfigDict] = ConfigDict(
        extra="ignore",
        populate_by_name=True,
    )


class FrozenModel(BaseModel):
    """Base model for facts that are never mutated after creation."""

    model_config: ClassVar[ConfigDict] = ConfigDict(
        extra="ignore",
        populate_by_name=True,
        frozen=True,
    )
