"""
Fitness bookkeeping and ranking.

Provides:
- GradedIndividual, the (individual, fitness) pair the engine ranks
- A total order over float fitness values (NaN ranks lowest)
- A thread-safe call counter for fitness functions
"""

from dataclasses import dataclass
from typing import Iterable, List, Tuple
import math
import threading

from .individual import Individual, FitnessFunction


@dataclass(frozen=True)
class GradedIndividual:
    """An individual paired with the fitness it scored when evaluated."""
    individual: Individual
    fitness: float

    def __repr__(self) -> str:
        return f"GradedIndividual(fitness={self.fitness:.4f}, individual={self.individual!r})"


def grade(individual: Individual, fitness: FitnessFunction) -> GradedIndividual:
    """Score an individual once and wrap the result."""
    return GradedIndividual(individual, float(fitness(individual)))


def fitness_sort_key(entry: GradedIndividual) -> Tuple[bool, float]:
    """
    Sort key giving a total order over fitness values.

    NaN sorts below every number (including -inf). The NaN slot carries 0.0
    so tuple comparison never touches a NaN.
    """
    value = entry.fitness
    if math.isnan(value):
        return (False, 0.0)
    return (True, value)


def sort_by_fitness(entries: Iterable[GradedIndividual]) -> List[GradedIndividual]:
    """
    Sort graded individuals by descending fitness.

    The sort is stable: entries with equal fitness keep their input order.
    """
    return sorted(entries, key=fitness_sort_key, reverse=True)


class CountingFitness:
    """
    Wraps a fitness function and counts how many times it was called.

    Safe to share between worker threads. Only the counter is guarded; the
    wrapped function runs outside the lock.
    """

    def __init__(self, fitness: FitnessFunction):
        self.fitness = fitness
        self._lock = threading.Lock()
        self._calls = 0

    def __call__(self, individual: Individual) -> float:
        with self._lock:
            self._calls += 1
        return self.fitness(individual)

    @property
    def calls(self) -> int:
        with self._lock:
            return self._calls
