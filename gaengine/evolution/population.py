"""
Population management for evolutionary search.

Handles:
- Initial population creation (parallel generate + score + sort)
- The generational transition (elitism, mutation, crossover)
- Summary statistics over a ranked population
"""

from functools import partial
from multiprocessing.pool import ThreadPool
from typing import List, Dict, Any, Iterable, Iterator, Optional
import logging

import numpy as np

from .fitness import GradedIndividual, grade, sort_by_fitness
from .individual import Generator, FitnessFunction
from .operators import (
    split_bands,
    mutate_and_score,
    crossover_and_score,
    interleave,
)
from .parallel import borrowed_pool

logger = logging.getLogger(__name__)


class Population:
    """
    Graded individuals ranked by descending fitness.

    Entries are ranked on construction, so the order holds however the
    population was built. A population is never modified afterwards:
    ``evolve`` returns a new one and leaves ``self`` untouched.
    """

    def __init__(self, individuals: Iterable[GradedIndividual]):
        self.individuals = tuple(sort_by_fitness(individuals))

    @classmethod
    def new(
        cls,
        size: int,
        generator: Generator,
        fitness: FitnessFunction,
        pool: Optional[ThreadPool] = None,
    ) -> 'Population':
        """
        Create a random initial population.

        Generates ``size - 1`` individuals, not ``size``: slot counting starts
        at 1. A size of 0 or 1 gives an empty population.

        Args:
            size: Requested population size
            generator: Source of random individuals
            fitness: Scoring function, called once per individual
            pool: Worker pool to use (a temporary one is opened if omitted)

        Returns:
            Population sorted by descending fitness
        """
        with borrowed_pool(pool) as workers:
            graded = workers.map(
                partial(_generate_and_score, generator=generator, fitness=fitness),
                range(1, size),
            )
        logger.debug("Generated initial population of %d", len(graded))
        return cls(graded)

    def evolve(
        self,
        generator: Generator,
        fitness: FitnessFunction,
        pool: Optional[ThreadPool] = None,
    ) -> 'Population':
        """
        Produce the next generation.

        The top 10% are copied unchanged. The remaining slots alternate
        between mutation and crossover with a uniformly random partner from
        the whole current population; each offspring is scored once. The
        three streams are interleaved and re-ranked.

        Args:
            generator: Domain crossover operator
            fitness: Scoring function
            pool: Worker pool to use (a temporary one is opened if omitted)

        Returns:
            New population with the same size as this one

        Raises:
            Any exception raised by a domain callback; no partial generation
            is returned.
        """
        elites, mutants, crossers = split_bands(self.individuals)

        with borrowed_pool(pool) as workers:
            mutated = workers.map_async(
                partial(mutate_and_score, fitness=fitness),
                mutants,
            )
            crossed = workers.map_async(
                partial(
                    crossover_and_score,
                    parents=self.individuals,
                    generator=generator,
                    fitness=fitness,
                ),
                crossers,
            )
            offspring = interleave(interleave(elites, mutated.get()), crossed.get())

        return Population(offspring)

    @property
    def best(self) -> GradedIndividual:
        """Highest-ranked entry. Raises IndexError on an empty population."""
        return self.individuals[0]

    def top(self, n: int = 5) -> List[GradedIndividual]:
        """The ``n`` highest-ranked entries."""
        return list(self.individuals[:n])

    @property
    def fitnesses(self) -> List[float]:
        return [entry.fitness for entry in self.individuals]

    def __len__(self) -> int:
        return len(self.individuals)

    def __iter__(self) -> Iterator[GradedIndividual]:
        return iter(self.individuals)

    def __getitem__(self, index):
        return self.individuals[index]

    def __repr__(self) -> str:
        if not self.individuals:
            return "Population(size=0)"
        return f"Population(size={len(self)}, best={self.best.fitness:.4f})"


def _generate_and_score(
    _slot: int,
    generator: Generator,
    fitness: FitnessFunction,
) -> GradedIndividual:
    """Worker: create one random individual and score it."""
    return grade(generator.generate(), fitness)


def get_population_stats(population: Population) -> Dict[str, Any]:
    """
    Compute statistics about the population.

    NaN fitness values are ignored in the aggregate figures.

    Args:
        population: Ranked population

    Returns:
        Dictionary with population statistics
    """
    if not len(population):
        return {'size': 0}

    fitnesses = np.array(population.fitnesses, dtype=float)
    nan_mask = np.isnan(fitnesses)
    finite = fitnesses[~nan_mask]
    if finite.size == 0:
        finite = np.zeros(1)

    unique = {repr(entry.individual) for entry in population}

    return {
        'size': len(population),
        'best_fitness': float(np.max(finite)),
        'mean_fitness': float(np.mean(finite)),
        'min_fitness': float(np.min(finite)),
        'std_fitness': float(np.std(finite)),
        'nan_count': int(nan_mask.sum()),
        'unique_individuals': len(unique),
    }
