"""
Phrase problem domain: evolve a fixed-length lowercase string toward a target.

Each letter scores ``1 - |target - letter|`` by ASCII distance, so an exact
match scores the phrase length and every unit of distance costs one point.
"""

from dataclasses import dataclass

from ..evolution.individual import Individual, Generator
from ..evolution.rng import thread_rng

ALPHABET_START = ord('a')
ALPHABET_SIZE = 26
DEFAULT_LENGTH = 10


def _random_letter() -> int:
    return ALPHABET_START + int(thread_rng().integers(ALPHABET_SIZE))


@dataclass(frozen=True)
class PhraseIndividual(Individual):
    """A candidate phrase stored as lowercase ASCII bytes."""
    genes: bytes

    @classmethod
    def random(cls, length: int = DEFAULT_LENGTH) -> 'PhraseIndividual':
        return cls(bytes(_random_letter() for _ in range(length)))

    def mutate(self) -> 'PhraseIndividual':
        """Replace one random position with a random letter."""
        genes = bytearray(self.genes)
        genes[int(thread_rng().integers(len(genes)))] = _random_letter()
        return PhraseIndividual(bytes(genes))

    def __str__(self) -> str:
        return self.genes.decode('ascii')


class PhraseGenerator(Generator):
    """Random phrases with single-point crossover."""

    def __init__(self, length: int = DEFAULT_LENGTH):
        if length < 2:
            raise ValueError(f"Phrase length must be at least 2, got {length}")
        self.length = length

    def generate(self) -> PhraseIndividual:
        return PhraseIndividual.random(self.length)

    def evolve(self, a: PhraseIndividual, b: PhraseIndividual) -> PhraseIndividual:
        """
        Keep the head of ``a`` and take the tail of ``b``.

        The cut point is drawn from [0, length - 1), so at least the final
        letter always comes from ``b``.
        """
        cut = int(thread_rng().integers(self.length - 1))
        return PhraseIndividual(a.genes[:cut] + b.genes[cut:])


class PhraseFitness:
    """Score candidates by per-letter ASCII distance from a target phrase."""

    def __init__(self, phrase: str = 'helloworld'):
        if not phrase or not all('a' <= ch <= 'z' for ch in phrase):
            raise ValueError(
                f"Phrase must be non-empty and only contain a-z, got {phrase!r}"
            )
        self.phrase = phrase
        self.target = phrase.encode('ascii')

    @property
    def max_score(self) -> float:
        """Score of an exact match."""
        return float(len(self.target))

    def __call__(self, individual: PhraseIndividual) -> float:
        if len(individual.genes) != len(self.target):
            raise ValueError(
                f"Expected a phrase of length {len(self.target)}, "
                f"got {len(individual.genes)}"
            )
        return float(sum(
            1 - abs(want - got)
            for want, got in zip(self.target, individual.genes)
        ))
