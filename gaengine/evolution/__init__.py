"""
gaengine - Evolutionary Optimization Engine

This module provides a domain-agnostic genetic algorithm: a ranked population
that evolves through elitism, mutation and crossover, with every fitness
evaluation dispatched to a worker pool.

Key components:
- Individual / Generator: Capability contracts a problem domain implements
- GradedIndividual: An individual paired with its fitness score
- Population: Ranked population with the generational transition
- EvolutionEngine: Evolution loop with termination conditions and history

Example usage:
    from gaengine.evolution import EvolutionEngine, EvolutionConfig
    from gaengine.problems.phrase import PhraseGenerator, PhraseFitness

    # Configure evolution
    config = EvolutionConfig(population_size=1000, target_fitness=10.0)

    # Create and run engine
    engine = EvolutionEngine(config, PhraseGenerator(), PhraseFitness('helloworld'))
    result = engine.evolve()

    print(f"Best fitness: {result.best_fitness:.3f}")
"""

from .individual import Individual, Generator, FitnessFunction
from .fitness import (
    GradedIndividual,
    CountingFitness,
    grade,
    fitness_sort_key,
    sort_by_fitness,
)
from .operators import (
    ELITE_FRACTION,
    elite_count,
    split_bands,
    interleave,
)
from .population import Population, get_population_stats
from .engine import EvolutionEngine, EvolutionConfig, EvolutionResult
from .history import EvolutionHistory, GenerationStats
from .rng import thread_rng

__all__ = [
    # Core classes
    'Individual',
    'Generator',
    'FitnessFunction',
    'GradedIndividual',
    'Population',
    'EvolutionEngine',
    'EvolutionConfig',
    'EvolutionResult',
    'EvolutionHistory',
    'GenerationStats',
    # Fitness
    'CountingFitness',
    'grade',
    'fitness_sort_key',
    'sort_by_fitness',
    # Operators
    'ELITE_FRACTION',
    'elite_count',
    'split_bands',
    'interleave',
    # Population
    'get_population_stats',
    # Randomness
    'thread_rng',
]
