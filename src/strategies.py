"""
Concurrency strategies for applying a per-instance task across a fleet.

Both strategies return results in the order of the input instances.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class SequentialStrategy:
    """Process one instance to completion before starting the next."""

    max_parallel = 1

    def run(self, task: Callable[[T], R], items: Sequence[T]) -> List[R]:
        return [task(item) for item in items]


class BoundedParallelStrategy:
    """Process instances on a thread pool with a bounded number of workers.

    The pool never covers the whole fleet when it has more than one instance,
    so at least one instance keeps serving while the others update. The task
    is expected to record its own failures; one failing task does not cancel
    its peers.
    """

    def __init__(self, max_parallel: int):
        self.max_parallel = max(1, max_parallel)

    def workers_for(self, fleet_size: int) -> int:
        if fleet_size <= 1:
            return 1
        return max(1, min(self.max_parallel, fleet_size - 1))

    def run(self, task: Callable[[T], R], items: Sequence[T]) -> List[R]:
        workers = self.workers_for(len(items))
        logger.debug(f"Running {len(items)} task(s) on {workers} worker(s)")
        with ThreadPoolExecutor(max_workers=workers) as pool:
            return list(pool.map(task, items))


def build_strategy(max_parallel: int):
    if max_parallel <= 1:
        return SequentialStrategy()
    return BoundedParallelStrategy(max_parallel)
