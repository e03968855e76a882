"""
countwatch - Row-count regression monitoring.

Group tables into check-sets, compare counts with the last known-good
run, keep the history.
"""

from countwatch.checker import TableChecker
from countwatch.exceptions import UnknownCheckSet
from countwatch.models.outcome import CheckOutcome, CheckSetResult
from countwatch.orchestrator import CheckSetOrchestrator
from countwatch.registry import CheckSetRegistry

__version__ = "0.1.0"
__all__ = [
    "CheckOutcome",
    "CheckSetOrchestrator",
    "CheckSetRegistry",
    "CheckSetResult",
    "TableChecker",
    "UnknownCheckSet",
    "__version__",
]
