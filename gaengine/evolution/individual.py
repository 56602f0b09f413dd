"""
Capability contracts for problem domains.

The engine never looks inside an individual. A problem domain plugs in by
providing:
- An Individual type that can produce a mutated copy of itself
- A Generator that creates random individuals and combines two parents
- A fitness callable mapping one individual to a float (higher is better)
"""

from abc import ABC, abstractmethod
from typing import Callable


class Individual(ABC):
    """
    One candidate solution in the search space.

    Implementations should be immutable values: the engine keeps individuals
    from the previous generation alive while the next one is being built,
    and may share the same instance between generations (elitism).
    """

    @abstractmethod
    def mutate(self) -> 'Individual':
        """
        Return a variant of this individual via a small random change.

        Must not modify ``self`` and must terminate. Randomness should come
        from ``gaengine.evolution.rng.thread_rng()`` since this is called
        concurrently from worker threads.
        """


class Generator(ABC):
    """
    Factory for individuals of one problem domain.

    Generators are shared across worker threads and should hold no mutable
    state of their own.
    """

    @abstractmethod
    def generate(self) -> Individual:
        """Create a brand-new random individual."""

    @abstractmethod
    def evolve(self, a: Individual, b: Individual) -> Individual:
        """
        Crossover: combine two parents into one offspring.

        Must not modify either parent.
        """


# Scoring callback: pure, thread-safe, bounded in time.
FitnessFunction = Callable[[Individual], float]
