# Copyright (c) Syntropy Systems
"""countwatch server module exposing check-sets over HTTP."""

from .app import create_app

__all__ = [
    "create_app",
]
