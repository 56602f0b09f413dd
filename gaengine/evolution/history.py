"""
Generation history for evolutionary runs.

Enables:
- Recording per-generation fitness statistics
- Stagnation detection for early stopping
- Exporting the trajectory for plotting and reports

Histories can be saved to JSON for later plotting; populations themselves
are never written to disk.
"""

from dataclasses import dataclass, asdict
from typing import List, Dict, Any, Optional, Union
from pathlib import Path
from datetime import datetime
import json
import uuid

from .population import Population, get_population_stats


@dataclass
class GenerationStats:
    """Statistics for a single generation."""
    generation: int
    best_fitness: float
    mean_fitness: float
    min_fitness: float
    std_fitness: float
    population_size: int
    unique_individuals: int
    evaluations_this_gen: int
    timestamp: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class EvolutionHistory:
    """
    Tracks evolution progress over generations.

    Records per-generation statistics for analysis and visualization.
    """

    def __init__(self):
        self.generations: List[GenerationStats] = []
        self.best_individual_per_gen: List[Optional[str]] = []
        self.fitness_trajectory: List[float] = []
        self.diversity_trajectory: List[float] = []

    def record_generation(
        self,
        generation: int,
        population: Population,
        evaluations: int,
    ) -> GenerationStats:
        """
        Record statistics for a completed generation.

        Args:
            generation: Generation number
            population: Ranked population for this generation
            evaluations: Number of fitness evaluations spent producing it

        Returns:
            GenerationStats for this generation
        """
        stats = get_population_stats(population)
        size = stats['size']

        if size:
            best_fitness = population.best.fitness
            self.best_individual_per_gen.append(str(population.best.individual))
        else:
            best_fitness = 0.0
            self.best_individual_per_gen.append(None)

        record = GenerationStats(
            generation=generation,
            best_fitness=best_fitness,
            mean_fitness=stats.get('mean_fitness', 0.0),
            min_fitness=stats.get('min_fitness', 0.0),
            std_fitness=stats.get('std_fitness', 0.0),
            population_size=size,
            unique_individuals=stats.get('unique_individuals', 0),
            evaluations_this_gen=evaluations,
            timestamp=datetime.now().isoformat(),
        )

        self._append(record)
        return record

    def _append(self, record: GenerationStats) -> None:
        size = record.population_size
        self.generations.append(record)
        self.fitness_trajectory.append(record.best_fitness)
        self.diversity_trajectory.append(
            record.unique_individuals / size if size else 0
        )

    @property
    def mean_fitness_trajectory(self) -> List[float]:
        return [g.mean_fitness for g in self.generations]

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert history to a JSON-serializable dictionary.

        Trajectories are derived data and are rebuilt by from_dict.
        """
        return {
            'generations': [g.to_dict() for g in self.generations],
            'best_individual_per_gen': list(self.best_individual_per_gen),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EvolutionHistory':
        """Rebuild a history from to_dict output."""
        history = cls()
        for entry in data.get('generations', []):
            history._append(GenerationStats(**entry))
        history.best_individual_per_gen = list(data.get('best_individual_per_gen', []))
        return history

    def save(self, path: Union[str, Path]) -> Path:
        """Write the history to a JSON file, creating parent directories."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)
        return path

    @classmethod
    def load(cls, path: Union[str, Path]) -> 'EvolutionHistory':
        """Read a history written by save."""
        with open(path, 'r') as f:
            return cls.from_dict(json.load(f))

    def get_improvement_rate(self, window: int = 5) -> float:
        """
        Calculate recent improvement rate.

        Args:
            window: Number of recent generations to consider

        Returns:
            Improvement rate (positive = improving)
        """
        if len(self.fitness_trajectory) < window + 1:
            return float('inf')  # Not enough data

        recent = self.fitness_trajectory[-window:]
        older = self.fitness_trajectory[-(window + 1):-1]

        return max(recent) - max(older)

    def should_early_stop(
        self,
        patience: int = 10,
        min_improvement: float = 0.001,
    ) -> bool:
        """
        Check if evolution should stop early.

        Args:
            patience: Generations without improvement before stopping
            min_improvement: Minimum improvement to count as progress

        Returns:
            True if should stop, False otherwise
        """
        # Need at least patience + 1 generations to compare
        if len(self.fitness_trajectory) <= patience:
            return False

        recent_best = max(self.fitness_trajectory[-patience:])
        older_best = max(self.fitness_trajectory[:-patience])

        return recent_best - older_best < min_improvement


def generate_run_id() -> str:
    """Generate unique run identifier."""
    timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
    short_uuid = uuid.uuid4().hex[:6]
    return f"evo_{timestamp}_{short_uuid}"
