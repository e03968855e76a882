# Copyright (c) Syntropy Systems
"""Bounded fan-out that settles every task instead of failing fast."""
from __future__ import annotations

import logging
import queue
import threading
import time
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Generic, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class SettleTimeout(Exception):
    """A task did not settle within the allotted time."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"timed out after {timeout:g}s")
        self.timeout = timeout


@dataclass(frozen=True)
class Settled(Generic[T, R]):
    """Outcome of one task: either a value or the exception it raised."""

    item: T
    value: R | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def settle_all(
    func: Callable[[T], R],
    items: Sequence[T],
    *,
    max_workers: int = 8,
    timeout: float | None = None,
) -> list[Settled[T, R]]:
    """Run ``func`` over ``items`` concurrently and wait for every task.

    Results come back in the order of ``items``, regardless of completion
    order. A task that raises yields a ``Settled`` carrying the exception.

    With a ``timeout``, each task gets that long from the moment it starts
    running; time spent queued behind other tasks does not count. A task
    still running at its deadline yields a ``SettleTimeout`` error and frees
    its slot. Its daemon thread is left behind and never delays exit.
    """
    if not items:
        return []

    workers = max(1, min(max_workers, len(items)))
    if timeout is not None:
        return _settle_with_deadlines(func, items, workers, timeout)

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="countwatch") as executor:
        futures = [executor.submit(func, item) for item in items]
        results: list[Settled[T, R]] = []
        for item, future in zip(items, futures):
            error = future.exception()
            if error is not None:
                results.append(Settled(item=item, error=error))
            else:
                results.append(Settled(item=item, value=future.result()))
        return results


def _settle_with_deadlines(
    func: Callable[[T], R],
    items: Sequence[T],
    workers: int,
    timeout: float,
) -> list[Settled[T, R]]:
    finished: queue.Queue[tuple[int, Any, Exception | None]] = queue.Queue()

    def run(index: int, item: T) -> None:
        try:
            value = func(item)
        except Exception as e:
            finished.put((index, None, e))
        else:
            finished.put((index, value, None))

    results: list[Settled[T, R] | None] = [None] * len(items)
    waiting = deque(range(len(items)))
    # index -> monotonic deadline, for tasks currently holding a slot
    deadlines: dict[int, float] = {}

    while waiting or deadlines:
        while waiting and len(deadlines) < workers:
            index = waiting.popleft()
            deadlines[index] = time.monotonic() + timeout
            threading.Thread(
                target=run,
                args=(index, items[index]),
                name=f"countwatch-{index}",
                daemon=True,
            ).start()

        remaining = min(deadlines.values()) - time.monotonic()
        try:
            index, value, error = finished.get(timeout=max(0.0, remaining))
        except queue.Empty:
            now = time.monotonic()
            for index, deadline in list(deadlines.items()):
                if deadline <= now:
                    del deadlines[index]
                    logger.warning("Abandoning task %d still running after %ss", index, timeout)
                    results[index] = Settled(item=items[index], error=SettleTimeout(timeout))
            continue

        # Late results from tasks that already timed out are dropped.
        if deadlines.pop(index, None) is not None:
            results[index] = Settled(item=items[index], value=value, error=error)

    return [result for result in results if result is not None]
