"""Work queue with a configurable concurrency limit."""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, List, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class WorkQueue:
    """Runs a handler over items, at most max_workers at a time.

    With max_workers=1 (default) items run one after another in the
    order given. With more workers they overlap, but results are still
    returned in the original order (pool.map preserves it).
    """

    def __init__(self, max_workers: int = 1) -> None:
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self.max_workers = max_workers

    def run(self, handler: Callable[[T], R], items: Iterable[T]) -> List[R]:
        items = list(items)
        if not items:
            return []

        if self.max_workers <= 1:
            logger.debug(f"Running {len(items)} items sequentially")
            return [handler(item) for item in items]

        workers = min(self.max_workers, len(items))
        logger.info(f"Running {len(items)} items with {workers} workers")
        with ThreadPoolExecutor(max_workers=workers) as pool:
            return list(pool.map(handler, items))
