"""
Main evolutionary optimization engine.

Orchestrates the evolution loop:
1. Initialize population (parallel generate + score)
2. Record generation statistics
3. Check termination (target fitness streak, stagnation, generation cap)
4. Evolve the next generation (elitism, mutation, crossover)
5. Repeat until a termination condition is met
"""

from dataclasses import dataclass, asdict
from multiprocessing.pool import ThreadPool
from typing import List, Dict, Any, Optional, Callable
import logging
import time

from . import rng
from .fitness import GradedIndividual, CountingFitness
from .history import EvolutionHistory, generate_run_id
from .individual import Generator, FitnessFunction
from .parallel import default_worker_count
from .population import Population

logger = logging.getLogger(__name__)


@dataclass
class EvolutionResult:
    """Results from an evolution run."""
    run_id: str
    generations_completed: int
    total_evaluations: int
    best: Optional[GradedIndividual]
    best_fitness: float
    history: EvolutionHistory
    final_population: Population
    runtime_seconds: float
    stop_reason: str

    @property
    def reached_target(self) -> bool:
        return self.stop_reason.startswith('target')

    def summary(self) -> str:
        """Generate summary string."""
        lines = [
            f"Evolution Run: {self.run_id}",
            f"Generations: {self.generations_completed}",
            f"Total evaluations: {self.total_evaluations}",
            f"Best fitness: {self.best_fitness:.4f}",
            f"Runtime: {self.runtime_seconds:.1f}s",
            f"Stopped: {self.stop_reason}",
        ]
        if self.best is not None:
            lines.append(f"Best individual: {self.best.individual}")
        return '\n'.join(lines)


@dataclass
class EvolutionConfig:
    """Configuration for evolution run."""
    # Population parameters
    population_size: int = 1000
    max_generations: int = 1000

    # Target: stop once best fitness >= target for target_streak generations
    target_fitness: Optional[float] = None
    target_streak: int = 1

    # Early stopping on stagnation (disabled when patience is None)
    early_stop_patience: Optional[int] = None
    early_stop_min_improvement: float = 0.001

    # Parallelization
    n_workers: Optional[int] = None
    seed: Optional[int] = None

    # Reporting
    top_k: int = 5

    def __post_init__(self):
        """Validate configuration."""
        # Population.new creates population_size - 1 individuals
        if self.population_size < 2:
            raise ValueError(
                f"population_size must be at least 2, got {self.population_size}"
            )
        if self.max_generations < 1:
            raise ValueError(
                f"max_generations must be at least 1, got {self.max_generations}"
            )
        if self.target_streak < 1:
            raise ValueError(f"target_streak must be at least 1, got {self.target_streak}")
        if self.early_stop_patience is not None and self.early_stop_patience < 1:
            raise ValueError(
                f"early_stop_patience must be at least 1, got {self.early_stop_patience}"
            )
        if self.n_workers is not None and self.n_workers < 1:
            raise ValueError(f"n_workers must be at least 1, got {self.n_workers}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class EvolutionEngine:
    """
    Main evolutionary optimization engine.

    Drives a Population through generations for any problem domain that
    supplies a Generator and a fitness function.
    """

    def __init__(
        self,
        config: EvolutionConfig,
        generator: Generator,
        fitness: FitnessFunction,
        run_id: Optional[str] = None,
    ):
        """
        Initialize evolution engine.

        Args:
            config: Evolution configuration
            generator: Domain generator (random individuals + crossover)
            fitness: Domain fitness function, shared by all workers
            run_id: Optional run identifier (auto-generated if not provided)
        """
        self.config = config
        self.generator = generator
        self.fitness = CountingFitness(fitness)
        self.run_id = run_id or generate_run_id()

        self.population: Optional[Population] = None
        self.history = EvolutionHistory()
        self.generation = 0
        self.n_workers = config.n_workers or default_worker_count()

        self._pool: Optional[ThreadPool] = None
        self._matches = 0
        self._last_evaluations = 0

    @property
    def total_evaluations(self) -> int:
        return self.fitness.calls

    def start_pool(self) -> ThreadPool:
        """Open the worker pool (sized to n_workers) if it is not open yet."""
        if self._pool is None:
            self._pool = ThreadPool(self.n_workers)
        return self._pool

    def shutdown_pool(self) -> None:
        """Close the worker pool and wait for its threads."""
        if self._pool is not None:
            self._pool.close()
            self._pool.join()
            self._pool = None

    def __enter__(self) -> 'EvolutionEngine':
        self.start_pool()
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.shutdown_pool()

    def initialize_population(self) -> None:
        """Create the first generation."""
        if self.config.seed is not None:
            rng.seed(self.config.seed)

        before = self.total_evaluations
        self.population = Population.new(
            self.config.population_size,
            self.generator,
            self.fitness,
            pool=self.start_pool(),
        )
        self._last_evaluations = self.total_evaluations - before
        self.generation = 1
        self._matches = 0
        self.history = EvolutionHistory()

    def run_generation(self) -> None:
        """Replace the current population with the next generation."""
        if self.population is None:
            raise RuntimeError("initialize_population() must be called first")
        before = self.total_evaluations
        self.population = self.population.evolve(
            self.generator,
            self.fitness,
            pool=self.start_pool(),
        )
        self._last_evaluations = self.total_evaluations - before
        self.generation += 1

    def _is_recorded(self) -> bool:
        """Whether the current generation is already in the history."""
        generations = self.history.generations
        return bool(generations) and generations[-1].generation == self.generation

    def _record(self) -> Dict[str, Any]:
        stats = self.history.record_generation(
            generation=self.generation,
            population=self.population,
            evaluations=self._last_evaluations,
        )
        target = self.config.target_fitness
        if target is not None:
            self._matches = self._matches + 1 if stats.best_fitness >= target else 0

        logger.debug(
            "Generation %d: best=%.4f mean=%.4f evaluations=%d",
            self.generation, stats.best_fitness, stats.mean_fitness,
            self._last_evaluations,
        )
        return {
            'generation': self.generation,
            'best_fitness': stats.best_fitness,
            'mean_fitness': stats.mean_fitness,
            'evaluations': self.total_evaluations,
            'improvement_rate': self.history.get_improvement_rate(),
            'top': [entry.fitness for entry in self.population.top(self.config.top_k)],
        }

    def _check_termination(self) -> Optional[str]:
        """Return the reason to stop, or None to keep evolving."""
        config = self.config

        if config.target_fitness is not None and self._matches >= config.target_streak:
            return (
                f"target fitness {config.target_fitness} held for "
                f"{config.target_streak} generation(s)"
            )

        if config.early_stop_patience is not None and self.history.should_early_stop(
            patience=config.early_stop_patience,
            min_improvement=config.early_stop_min_improvement,
        ):
            return (
                f"no improvement > {config.early_stop_min_improvement} "
                f"in {config.early_stop_patience} generations"
            )

        if self.generation >= config.max_generations:
            return f"reached max generations ({config.max_generations})"

        return None

    def evolve(
        self,
        progress_callback: Optional[Callable[[int, int, Dict], None]] = None,
    ) -> EvolutionResult:
        """
        Run full evolutionary optimization.

        Creates the initial population if needed, then evolves until a
        termination condition holds. Calling it again on a finished engine
        continues from the current generation (for example after raising
        max_generations) without recording that generation twice.

        All generations share the engine's worker pool. A pool opened here
        is shut down when the run ends; one opened by the caller (via
        ``with engine:`` or start_pool) is left open.

        Args:
            progress_callback: Optional callback(gen, max_gens, stats), called
                once per recorded generation before the termination check

        Returns:
            EvolutionResult with final population and statistics
        """
        start_time = time.time()
        logger.info(
            "Starting run %s: population=%d workers=%d",
            self.run_id, self.config.population_size, self.n_workers,
        )

        owns_pool = self._pool is None
        self.start_pool()
        try:
            stop_reason = self._run_loop(progress_callback)
        finally:
            if owns_pool:
                self.shutdown_pool()

        runtime = time.time() - start_time
        best = self.population.best if len(self.population) else None
        logger.info(
            "Run %s stopped after %d generations: %s",
            self.run_id, self.generation, stop_reason,
        )

        return EvolutionResult(
            run_id=self.run_id,
            generations_completed=self.generation,
            total_evaluations=self.total_evaluations,
            best=best,
            best_fitness=best.fitness if best is not None else float('nan'),
            history=self.history,
            final_population=self.population,
            runtime_seconds=runtime,
            stop_reason=stop_reason,
        )

    def _run_loop(self, progress_callback) -> str:
        if self.population is None:
            self.initialize_population()

        while True:
            if not self._is_recorded():
                stats = self._record()
                if progress_callback:
                    progress_callback(self.generation, self.config.max_generations, stats)

            stop_reason = self._check_termination()
            if stop_reason is not None:
                return stop_reason

            self.run_generation()

    def leaders(self, n: Optional[int] = None) -> List[GradedIndividual]:
        """Top entries of the current population."""
        if self.population is None:
            return []
        return self.population.top(n or self.config.top_k)
