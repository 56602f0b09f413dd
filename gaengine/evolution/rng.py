"""
Thread-local random number generation.

Domain callbacks run on pool threads, so each thread gets its own numpy
Generator instead of sharing one. Streams are spawned from a root
SeedSequence; seeding the root makes the set of streams reproducible,
although which thread receives which stream depends on scheduling.
"""

from typing import Optional
import threading

import numpy as np

_local = threading.local()
_root_lock = threading.Lock()
_root = np.random.SeedSequence()
_epoch = 0


def seed(value: Optional[int] = None) -> None:
    """
    Reseed the root sequence.

    Every thread draws a fresh stream on its next ``thread_rng()`` call.
    """
    global _root, _epoch
    with _root_lock:
        _root = np.random.SeedSequence(value)
        _epoch += 1


def _spawn() -> np.random.Generator:
    with _root_lock:
        child = _root.spawn(1)[0]
        epoch = _epoch
    _local.epoch = epoch
    _local.rng = np.random.default_rng(child)
    return _local.rng


def thread_rng() -> np.random.Generator:
    """Return the calling thread's random generator."""
    rng = getattr(_local, 'rng', None)
    if rng is None or _local.epoch != _epoch:
        return _spawn()
    return rng
