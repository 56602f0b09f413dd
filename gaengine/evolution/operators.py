"""
Evolutionary operators: elitism, mutation, and crossover.

The generational transition splits the current ranked population into
three bands:
- Elites: the top 10%, carried over unchanged
- Mutants: every other remaining slot, starting at the elite boundary
- Crossovers: the slots in between, each bred with a random partner

The per-entry functions here run on pool workers.
"""

from typing import List, Sequence, Tuple

from .fitness import GradedIndividual, grade
from .individual import Generator, FitnessFunction
from .rng import thread_rng

# Fraction of the ranked population copied verbatim into the next generation
ELITE_FRACTION = 0.1


# =============================================================================
# Band Selection
# =============================================================================

def elite_count(size: int) -> int:
    """Number of elites for a population of ``size``, i.e. floor(0.1 * size)."""
    return int(size * ELITE_FRACTION)


def split_bands(
    ranked: Sequence[GradedIndividual],
) -> Tuple[List[GradedIndividual], List[GradedIndividual], List[GradedIndividual]]:
    """
    Partition a ranked population into elite, mutation and crossover bands.

    Every entry lands in exactly one band. Past the elites the two remaining
    bands alternate, so the mutation band holds at most one entry more than
    the crossover band.

    Args:
        ranked: Population sorted by descending fitness

    Returns:
        Tuple of (elites, mutation band, crossover band)
    """
    n_elite = elite_count(len(ranked))
    elites = list(ranked[:n_elite])
    mutants = list(ranked[n_elite::2])
    crossers = list(ranked[n_elite + 1::2])
    return elites, mutants, crossers


# =============================================================================
# Variation Operators
# =============================================================================

def mutate_and_score(
    entry: GradedIndividual,
    fitness: FitnessFunction,
) -> GradedIndividual:
    """Replace an entry with its mutated copy and score it."""
    return grade(entry.individual.mutate(), fitness)


def crossover_and_score(
    entry: GradedIndividual,
    parents: Sequence[GradedIndividual],
    generator: Generator,
    fitness: FitnessFunction,
) -> GradedIndividual:
    """
    Breed an entry with a partner drawn uniformly from ``parents``.

    The partner may be the entry itself.
    """
    partner = parents[int(thread_rng().integers(len(parents)))]
    child = generator.evolve(entry.individual, partner.individual)
    return grade(child, fitness)


# =============================================================================
# Helper Functions
# =============================================================================

def interleave(first: Sequence, second: Sequence) -> list:
    """
    Alternate items from two sequences, starting with ``first``.

    Once the shorter one runs out the rest of the longer one is appended,
    so relative order within each input is preserved.

    Example:
        interleave([1, 2, 3, 4], ['a', 'b']) -> [1, 'a', 2, 'b', 3, 4]
    """
    merged = []
    shared = min(len(first), len(second))
    for i in range(shared):
        merged.append(first[i])
        merged.append(second[i])
    merged.extend(first[shared:])
    merged.extend(second[shared:])
    return merged
