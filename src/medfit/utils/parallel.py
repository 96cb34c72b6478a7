"""Parallel execution helpers.

``parallel_map`` behaves like ``map`` but spreads the calls over a worker
pool. Results always come back in input order, whatever the completion
order was. The thread and process backends keep at most ``max_workers``
tasks in flight, so memory held by pending work is bounded by the pool size
rather than by the number of items. When a task raises, no new task is
submitted, the in-flight ones are allowed to finish, the pool is joined and
the first error is re-raised.
"""

from __future__ import annotations

import contextvars
import os
import time
from concurrent.futures import (
    FIRST_COMPLETED,
    Executor,
    Future,
    ProcessPoolExecutor,
    ThreadPoolExecutor,
    wait,
)
from typing import Any, Callable, Iterable, Iterator, List, Optional, TypeVar

from joblib import Parallel, delayed

from .logging_config import get_logger

__all__ = ["BACKENDS", "parallel_map", "resolve_workers"]

logger = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")

BACKENDS = ("sequential", "thread", "process", "joblib")

_EXECUTORS: dict[str, type[Executor]] = {
    "thread": ThreadPoolExecutor,
    "process": ProcessPoolExecutor,
}


def resolve_workers(max_workers: Optional[int]) -> int:
    """Return the effective pool size (defaults to the CPU count)."""
    if max_workers is None:
        return os.cpu_count() or 1
    if max_workers < 1:
        raise ValueError("max_workers must be at least 1")
    return int(max_workers)


def parallel_map(
    func: Callable[[T], R],
    iterable: Iterable[T],
    *,
    backend: str = "thread",
    max_workers: Optional[int] = None,
) -> List[R]:
    """Apply ``func`` to every item, possibly in parallel.

    Args:
        func: Callable applied to each item. Must be picklable for the
            ``process`` and ``joblib`` backends.
        iterable: Items to process.
        backend: ``sequential``, ``thread``, ``process`` or ``joblib``.
        max_workers: Pool size. ``None`` uses the CPU count; ``1`` runs
            sequentially in the calling thread.

    Returns:
        Results in the same order as ``iterable``.

    Raises:
        ValueError: For an unknown backend.
        Exception: The first exception raised by a task, after the pool has
            drained and shut down.
    """
    if backend not in BACKENDS:
        raise ValueError(
            f"Backend '{backend}' not recognised. Use one of: {', '.join(BACKENDS)}."
        )

    items = list(iterable)
    workers = resolve_workers(max_workers)
    job_name = getattr(func, "__name__", type(func).__name__)
    start_time = time.perf_counter()

    if backend == "sequential" or workers == 1 or len(items) <= 1:
        results = [func(item) for item in items]
        effective = "sequential"
    elif backend == "joblib":
        results = list(
            Parallel(n_jobs=workers, backend="loky")(delayed(func)(item) for item in items)
        )
        effective = backend
    else:
        results = _bounded_map(_EXECUTORS[backend], func, items, workers)
        effective = backend

    logger.debug(
        "Job '%s' finished %d task(s) on backend '%s' with %d worker(s) in %.2fs",
        job_name,
        len(items),
        effective,
        workers,
        time.perf_counter() - start_time,
    )
    return results


def _bounded_map(
    executor_cls: type[Executor],
    func: Callable[[T], R],
    items: List[T],
    workers: int,
) -> List[R]:
    results: List[Any] = [None] * len(items)
    queue: Iterator[tuple[int, T]] = iter(enumerate(items))
    pending: dict[Future, int] = {}
    first_error: BaseException | None = None

    with executor_cls(max_workers=workers) as executor:

        def submit_next() -> bool:
            try:
                index, item = next(queue)
            except StopIteration:
                return False
            if executor_cls is ThreadPoolExecutor:
                # Worker threads see the caller's context variables (run log tags).
                future = executor.submit(contextvars.copy_context().run, func, item)
            else:
                future = executor.submit(func, item)
            pending[future] = index
            return True

        for _ in range(workers):
            if not submit_next():
                break

        while pending:
            done, _ = wait(pending, return_when=FIRST_COMPLETED)
            for future in done:
                index = pending.pop(future)
                error = future.exception()
                if error is not None:
                    if first_error is None:
                        first_error = error
                        logger.error(
                            "Task %d raised %s; draining %d in-flight task(s)",
                            index,
                            type(error).__name__,
                            len(pending),
                        )
                    continue
                results[index] = future.result()
                if first_error is None:
                    submit_next()

    if first_error is not None:
        raise first_error
    return results
