"""
Worker pool for per-individual evaluation.

Uses a thread pool so that any callable (closures, lambdas, bound methods)
can serve as a fitness function or domain callback without pickling.
"""

from contextlib import contextmanager
from multiprocessing import cpu_count
from multiprocessing.pool import ThreadPool
from typing import Iterator, Optional


def default_worker_count() -> int:
    """One worker per available core."""
    return max(1, cpu_count())


@contextmanager
def worker_pool(n_workers: Optional[int] = None) -> Iterator[ThreadPool]:
    """Open a fixed-size pool, closed when the block exits."""
    with ThreadPool(n_workers or default_worker_count()) as pool:
        yield pool


@contextmanager
def borrowed_pool(pool: Optional[ThreadPool] = None) -> Iterator[ThreadPool]:
    """Use the given pool, or open a temporary one for the duration of the block."""
    if pool is not None:
        yield pool
        return
    with worker_pool() as owned:
        yield owned
