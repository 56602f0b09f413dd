"""
Tests for the evolution engine.

Run with: python -m pytest tests/test_evolution.py -v
"""

import math
import threading
from dataclasses import dataclass
from multiprocessing.pool import ThreadPool

import pytest
import numpy as np
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from gaengine.evolution.individual import Individual, Generator
from gaengine.evolution.fitness import (
    GradedIndividual,
    CountingFitness,
    grade,
    sort_by_fitness,
)
from gaengine.evolution.operators import (
    elite_count,
    split_bands,
    crossover_and_score,
    interleave,
)
from gaengine.evolution.parallel import worker_pool
from gaengine.evolution.population import Population, get_population_stats
from gaengine.evolution.history import EvolutionHistory, generate_run_id
from gaengine.evolution.engine import EvolutionEngine, EvolutionConfig
from gaengine.evolution import parallel, rng
from gaengine.problems.phrase import PhraseGenerator, PhraseFitness
from gaengine.visualization import plot_fitness_progression, plot_diversity_over_time


# =============================================================================
# Toy domain
# =============================================================================

@dataclass(frozen=True)
class Number(Individual):
    """Individual whose fitness is its own value."""
    value: int

    def mutate(self) -> 'Number':
        return Number(self.value - 1000)


class NumberGenerator(Generator):
    def generate(self) -> Number:
        return Number(int(rng.thread_rng().integers(1000)))

    def evolve(self, a: Number, b: Number) -> Number:
        return Number(a.value + b.value - 5000)


def value_fitness(individual: Number) -> float:
    return float(individual.value)


def ranked(values) -> Population:
    """Population of Numbers scored by value."""
    return Population(sort_by_fitness(grade(Number(v), value_fitness) for v in values))


def assert_descending(population: Population):
    fitnesses = [f for f in population.fitnesses if not math.isnan(f)]
    assert all(x >= y for x, y in zip(fitnesses, fitnesses[1:]))


class TestFitness:
    """Tests for grading and ranking."""

    def test_grade(self):
        """Test grading wraps the individual with a float score."""
        entry = grade(Number(7), lambda ind: np.float32(ind.value))

        assert entry.individual == Number(7)
        assert entry.fitness == 7.0
        assert isinstance(entry.fitness, float)

    def test_graded_individual_immutable(self):
        """Test graded individuals cannot be modified."""
        entry = GradedIndividual(Number(1), 1.0)
        with pytest.raises(AttributeError):
            entry.fitness = 2.0

    def test_sort_descending(self):
        """Test sorting by descending fitness."""
        entries = [GradedIndividual(Number(i), f) for i, f in enumerate([0.5, 3.0, -1.0, 2.0])]

        result = sort_by_fitness(entries)

        assert [e.fitness for e in result] == [3.0, 2.0, 0.5, -1.0]

    def test_sort_nan_ranks_lowest(self):
        """Test NaN fitness sorts below everything, including -inf."""
        entries = [
            GradedIndividual(Number(0), float('nan')),
            GradedIndividual(Number(1), float('-inf')),
            GradedIndividual(Number(2), 1.0),
            GradedIndividual(Number(3), float('inf')),
            GradedIndividual(Number(4), float('nan')),
        ]

        result = sort_by_fitness(entries)

        assert [e.individual.value for e in result[:3]] == [3, 2, 1]
        assert all(math.isnan(e.fitness) for e in result[3:])

    def test_sort_ties_keep_input_order(self):
        """Test equal fitness entries keep their relative order."""
        entries = [GradedIndividual(Number(i), 1.0) for i in range(10)]
        entries.insert(3, GradedIndividual(Number(99), 5.0))

        result = sort_by_fitness(entries)

        assert result[0].individual.value == 99
        assert [e.individual.value for e in result[1:]] == list(range(10))

    def test_repeated_scoring_is_deterministic(self):
        """Test a pure fitness function scores an individual identically."""
        individual = Number(123)
        scores = {value_fitness(individual) for _ in range(20)}
        assert scores == {123.0}

    def test_counting_fitness_across_threads(self):
        """Test the call counter is exact under concurrent use."""
        counting = CountingFitness(value_fitness)

        with ThreadPool(8) as pool:
            results = pool.map(counting, [Number(i) for i in range(1000)])

        assert counting.calls == 1000
        assert results == [float(i) for i in range(1000)]


class TestOperators:
    """Tests for band selection and helpers."""

    @pytest.mark.parametrize('size,expected', [
        (0, 0), (1, 0), (9, 0), (10, 1), (19, 1), (25, 2), (100, 10), (1001, 100),
    ])
    def test_elite_count(self, size, expected):
        """Test elite count is floor(0.1 * size)."""
        assert elite_count(size) == expected

    @pytest.mark.parametrize('size', list(range(0, 42)))
    def test_split_bands_partition(self, size):
        """Test bands cover every entry exactly once."""
        population = ranked(range(size))

        elites, mutants, crossers = split_bands(population.individuals)

        assert len(elites) == elite_count(size)
        assert len(elites) + len(mutants) + len(crossers) == size
        ids = [id(e) for e in elites + mutants + crossers]
        assert len(set(ids)) == size
        assert 0 <= len(mutants) - len(crossers) <= 1

    def test_split_bands_positions(self):
        """Test elites are the top entries and the other bands alternate."""
        population = ranked(range(20))  # fitness 19 .. 0

        elites, mutants, crossers = split_bands(population.individuals)

        assert [e.fitness for e in elites] == [19.0, 18.0]
        assert [e.fitness for e in mutants] == [17.0, 15.0, 13.0, 11.0, 9.0, 7.0, 5.0, 3.0, 1.0]
        assert [e.fitness for e in crossers] == [16.0, 14.0, 12.0, 10.0, 8.0, 6.0, 4.0, 2.0, 0.0]

    def test_interleave(self):
        """Test alternating merge with remainder appended."""
        assert interleave([1, 2, 3, 4], ['a', 'b']) == [1, 'a', 2, 'b', 3, 4]
        assert interleave([1], ['a', 'b', 'c']) == [1, 'a', 'b', 'c']
        assert interleave([], [1, 2]) == [1, 2]
        assert interleave([], []) == []

    def test_crossover_partner_may_be_self(self):
        """Test crossover with a single-entry population breeds with itself."""
        population = ranked([3000])
        entry = population.best

        child = crossover_and_score(entry, population.individuals, NumberGenerator(), value_fitness)

        assert child.individual == Number(1000)
        assert child.fitness == 1000.0


class TestPopulation:
    """Tests for population construction and evolution."""

    def test_new_generates_size_minus_one(self):
        """Test initial population holds size - 1 individuals."""
        population = Population.new(10, NumberGenerator(), value_fitness)

        assert len(population) == 9
        assert_descending(population)

    @pytest.mark.parametrize('size', [0, 1])
    def test_new_degenerate_sizes_are_empty(self, size):
        """Test sizes 0 and 1 give an empty population."""
        population = Population.new(size, NumberGenerator(), value_fitness)

        assert len(population) == 0
        with pytest.raises(IndexError):
            population.best

    def test_constructor_ranks_entries(self):
        """Test a hand-built population is ranked on construction."""
        entries = [grade(Number(v), value_fitness) for v in [3, 40, 7, 25, 1, 9, 33, 12, 5, 18]]

        population = Population(entries)

        assert population.fitnesses == [40.0, 33.0, 25.0, 18.0, 12.0, 9.0, 7.0, 5.0, 3.0, 1.0]
        assert population.best.individual == Number(40)

    def test_unsorted_input_keeps_true_elites(self):
        """Test elites come from the highest fitness even when input was unsorted."""
        values = [3, 40, 7, 25, 1, 9, 33, 12, 5, 18, 2, 6, 8, 4, 11, 10, 14, 13, 16, 15]
        population = Population(grade(Number(v), value_fitness) for v in values)

        evolved = population.evolve(NumberGenerator(), value_fitness)

        # Offspring all score far below the two elites
        assert [e.individual for e in evolved.top(2)] == [Number(40), Number(33)]

    @pytest.mark.parametrize('size', [0, 1, 2, 3, 9, 10, 11, 50, 101])
    def test_evolve_preserves_size(self, size):
        """Test evolve returns a population of the same size."""
        population = ranked(range(size))

        evolved = population.evolve(NumberGenerator(), value_fitness)

        assert len(evolved) == size

    def test_repeated_evolve_preserves_size_and_order(self):
        """Test size and ordering hold across many generations."""
        generator = NumberGenerator()
        population = Population.new(64, generator, value_fitness)
        size = len(population)

        with worker_pool(4) as pool:
            for _ in range(10):
                population = population.evolve(generator, value_fitness, pool=pool)
                assert len(population) == size
                assert_descending(population)

    def test_elites_survive_unchanged(self):
        """Test the top 10% reappear with identical individual and fitness."""
        population = ranked(range(50))
        elites = population.top(elite_count(50))

        evolved = population.evolve(NumberGenerator(), value_fitness)

        for elite in elites:
            assert elite in evolved.individuals

    def test_evolve_leaves_source_untouched(self):
        """Test evolving does not modify the current population."""
        population = ranked(range(30))
        before = population.individuals

        population.evolve(NumberGenerator(), value_fitness)

        assert population.individuals == before

    def test_mutation_and_crossover_offspring(self):
        """Test non-elite slots hold mutated or crossed offspring."""
        population = ranked(range(1000, 1020))

        evolved = population.evolve(NumberGenerator(), value_fitness)

        # Elites keep their values; offspring are all far lower
        assert [e.fitness for e in evolved.top(2)] == [1019.0, 1018.0]
        assert all(e.fitness < 1019.0 - 900 for e in evolved.individuals[2:])

    @pytest.mark.parametrize('n_workers', [1, 2, 8])
    def test_one_fitness_call_per_non_elite(self, n_workers):
        """Test each non-elite slot is scored exactly once per generation."""
        counting = CountingFitness(value_fitness)
        generator = NumberGenerator()

        with worker_pool(n_workers) as pool:
            population = Population.new(101, generator, counting, pool=pool)
            assert counting.calls == 100

            for generation in range(1, 4):
                before = counting.calls
                population = population.evolve(generator, counting, pool=pool)
                assert counting.calls - before == 100 - elite_count(100)

    def test_fitness_error_aborts_generation(self):
        """Test an exception in a fitness call propagates out of evolve."""
        def fragile_fitness(individual):
            if individual.value < 0:
                raise RuntimeError("negative value")
            return float(individual.value)

        population = ranked(range(20))

        with pytest.raises(RuntimeError, match="negative value"):
            population.evolve(NumberGenerator(), fragile_fitness)

    def test_generator_error_aborts_construction(self):
        """Test an exception in generate propagates out of new."""
        class BrokenGenerator(NumberGenerator):
            def generate(self):
                raise ValueError("cannot generate")

        with pytest.raises(ValueError, match="cannot generate"):
            Population.new(5, BrokenGenerator(), value_fitness)

    def test_nan_fitness_never_breaks_ranking(self):
        """Test NaN scores sort to the tail without raising."""
        def odd_is_nan(individual):
            return float('nan') if individual.value % 2 else float(individual.value)

        population = Population.new(40, NumberGenerator(), odd_is_nan)
        evolved = population.evolve(NumberGenerator(), odd_is_nan)

        for pop in (population, evolved):
            flags = [math.isnan(f) for f in pop.fitnesses]
            # once NaN starts it never stops
            assert flags == sorted(flags)
            assert_descending(pop)

    def test_population_stats(self):
        """Test population statistics."""
        population = ranked([1, 2, 3, 3])

        stats = get_population_stats(population)

        assert stats['size'] == 4
        assert stats['best_fitness'] == 3.0
        assert stats['min_fitness'] == 1.0
        assert stats['mean_fitness'] == pytest.approx(2.25)
        assert stats['unique_individuals'] == 3
        assert stats['nan_count'] == 0

        assert get_population_stats(Population([])) == {'size': 0}


class TestRng:
    """Tests for thread-local random generators."""

    def test_threads_get_distinct_generators(self):
        """Test each thread receives its own generator."""
        seen = {}
        barrier = threading.Barrier(4)

        def grab(index):
            barrier.wait()
            seen[index] = rng.thread_rng()

        threads = [threading.Thread(target=grab, args=(i,)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len({id(g) for g in seen.values()}) == 4

    def test_same_thread_reuses_generator(self):
        """Test repeated calls in one thread return the same generator."""
        assert rng.thread_rng() is rng.thread_rng()

    def test_seed_is_reproducible(self):
        """Test reseeding replays the same stream in a thread."""
        rng.seed(1234)
        first = rng.thread_rng().integers(1_000_000, size=5).tolist()
        rng.seed(1234)
        second = rng.thread_rng().integers(1_000_000, size=5).tolist()

        assert first == second


class TestHistory:
    """Tests for generation history."""

    def test_record_generation(self):
        """Test statistics recorded for one generation."""
        history = EvolutionHistory()
        population = ranked(range(10))

        stats = history.record_generation(generation=1, population=population, evaluations=9)

        assert stats.generation == 1
        assert stats.best_fitness == 9.0
        assert stats.mean_fitness == pytest.approx(4.5)
        assert stats.evaluations_this_gen == 9
        assert history.fitness_trajectory == [9.0]
        assert history.diversity_trajectory == [1.0]
        assert history.best_individual_per_gen == [str(Number(9))]

    def test_record_empty_generation(self):
        """Test an empty population records zeros."""
        history = EvolutionHistory()

        stats = history.record_generation(1, Population([]), 0)

        assert stats.population_size == 0
        assert history.best_individual_per_gen == [None]

    def test_early_stopping_detection(self):
        """Test early stopping logic."""
        history = EvolutionHistory()

        # Simulate improving generations
        for gen in range(5):
            history.record_generation(gen, ranked([gen * 10]), 10)

        # Should not stop (improving)
        assert not history.should_early_stop(patience=3, min_improvement=0.01)

        # Simulate stagnation
        for gen in range(5, 15):
            history.record_generation(gen, ranked([40]), 10)

        # Should stop (no improvement)
        assert history.should_early_stop(patience=5, min_improvement=0.01)

    def test_improvement_rate(self):
        """Test improvement rate over a window."""
        history = EvolutionHistory()
        assert history.get_improvement_rate(window=2) == float('inf')

        for gen, best in enumerate([1, 2, 4, 4]):
            history.record_generation(gen, ranked([best]), 1)

        assert history.get_improvement_rate(window=2) == 0.0

    def test_save_and_load(self, tmp_path):
        """Test a saved history reloads with its trajectories rebuilt."""
        history = EvolutionHistory()
        history.record_generation(1, ranked([1, 2]), 2)
        history.record_generation(2, ranked([2, 2, 5]), 3)

        path = history.save(tmp_path / 'runs' / 'history.json')
        restored = EvolutionHistory.load(path)

        assert restored.fitness_trajectory == [2.0, 5.0]
        assert restored.diversity_trajectory == history.diversity_trajectory
        assert restored.best_individual_per_gen == [str(Number(2)), str(Number(5))]
        assert [g.evaluations_this_gen for g in restored.generations] == [2, 3]
        assert not restored.should_early_stop(patience=1, min_improvement=0.01)

    def test_run_id_format(self):
        """Test run ids are unique and prefixed."""
        first, second = generate_run_id(), generate_run_id()
        assert first.startswith('evo_')
        assert first != second


class TestEngine:
    """Tests for the evolution loop."""

    @pytest.mark.parametrize('kwargs', [
        {'population_size': 1},
        {'max_generations': 0},
        {'target_streak': 0},
        {'early_stop_patience': 0},
        {'n_workers': 0},
    ])
    def test_config_validation(self, kwargs):
        """Test invalid configurations are rejected."""
        with pytest.raises(ValueError):
            EvolutionConfig(**kwargs)

    def test_config_to_dict(self):
        """Test config serialization."""
        config = EvolutionConfig(population_size=20, target_fitness=1.5)
        d = config.to_dict()
        assert d['population_size'] == 20
        assert d['target_fitness'] == 1.5

    def test_stops_at_max_generations(self):
        """Test the generation cap ends the run."""
        config = EvolutionConfig(population_size=20, max_generations=5, n_workers=2)
        engine = EvolutionEngine(config, NumberGenerator(), value_fitness)

        result = engine.evolve()

        assert result.generations_completed == 5
        assert len(result.history.generations) == 5
        assert 'max generations' in result.stop_reason
        assert not result.reached_target
        assert len(result.final_population) == 19

    def test_counts_evaluations(self):
        """Test evaluation totals match the band sizes."""
        config = EvolutionConfig(population_size=20, max_generations=3, n_workers=2)
        engine = EvolutionEngine(config, NumberGenerator(), value_fitness)

        result = engine.evolve()

        # 19 initial, then 18 per generation (1 elite out of 19)
        assert result.total_evaluations == 19 + 2 * 18
        assert [g.evaluations_this_gen for g in result.history.generations] == [19, 18, 18]

    def test_target_streak(self):
        """Test the run stops after the target holds for the streak length."""
        config = EvolutionConfig(
            population_size=10, max_generations=50,
            target_fitness=1.0, target_streak=3, n_workers=2,
        )
        engine = EvolutionEngine(config, NumberGenerator(), lambda ind: 1.0)

        result = engine.evolve()

        assert result.generations_completed == 3
        assert result.reached_target

    def test_early_stop_on_stagnation(self):
        """Test stagnation stops the run."""
        config = EvolutionConfig(
            population_size=10, max_generations=50,
            early_stop_patience=2, n_workers=2,
        )
        engine = EvolutionEngine(config, NumberGenerator(), lambda ind: 1.0)

        result = engine.evolve()

        assert result.generations_completed == 3
        assert 'no improvement' in result.stop_reason

    def test_progress_callback(self):
        """Test the callback sees every generation."""
        calls = []
        config = EvolutionConfig(population_size=10, max_generations=4, top_k=3, n_workers=2)
        engine = EvolutionEngine(config, NumberGenerator(), value_fitness)

        engine.evolve(progress_callback=lambda gen, total, stats: calls.append((gen, total, stats)))

        assert [c[0] for c in calls] == [1, 2, 3, 4]
        assert all(c[1] == 4 for c in calls)
        assert len(calls[0][2]['top']) == 3
        assert 'best_fitness' in calls[0][2]

    def test_run_generation_requires_population(self):
        """Test evolving before initialization fails clearly."""
        engine = EvolutionEngine(EvolutionConfig(population_size=10), NumberGenerator(), value_fitness)
        with pytest.raises(RuntimeError):
            engine.run_generation()

    def test_manual_stepping(self):
        """Test driving generations by hand outside evolve()."""
        config = EvolutionConfig(population_size=30, seed=7)
        engine = EvolutionEngine(config, NumberGenerator(), value_fitness)

        engine.initialize_population()
        engine.run_generation()

        assert engine.generation == 2
        assert len(engine.population) == 29
        assert len(engine.leaders()) == 5
        engine.shutdown_pool()

    def test_manual_stepping_uses_configured_workers(self, monkeypatch):
        """Test stepping by hand evaluates on n_workers threads, not cpu_count."""
        monkeypatch.setattr(parallel, 'cpu_count', lambda: 8)
        threads = set()

        def tracking_fitness(individual):
            threads.add(threading.get_ident())
            return float(individual.value)

        config = EvolutionConfig(population_size=2000, n_workers=1)
        engine = EvolutionEngine(config, NumberGenerator(), tracking_fitness)

        engine.initialize_population()
        pool = engine._pool
        engine.run_generation()
        engine.run_generation()

        assert len(threads) == 1
        assert engine._pool is pool
        engine.shutdown_pool()
        assert engine._pool is None

    def test_context_manager_closes_pool(self):
        """Test the with-block owns the pool across evolve calls."""
        config = EvolutionConfig(population_size=20, max_generations=3, n_workers=2)

        with EvolutionEngine(config, NumberGenerator(), value_fitness) as engine:
            pool = engine._pool
            engine.evolve()
            assert engine._pool is pool

        assert engine._pool is None

    def test_evolve_pool_closed_after_run(self):
        """Test a pool opened by evolve is shut down when it returns."""
        config = EvolutionConfig(population_size=20, max_generations=2, n_workers=2)
        engine = EvolutionEngine(config, NumberGenerator(), value_fitness)

        engine.evolve()

        assert engine._pool is None

    def test_repeat_evolve_does_not_duplicate_history(self):
        """Test calling evolve again on a finished run records nothing new."""
        config = EvolutionConfig(population_size=20, max_generations=3, n_workers=2)
        engine = EvolutionEngine(config, NumberGenerator(), value_fitness)
        engine.evolve()

        result = engine.evolve()

        assert result.generations_completed == 3
        assert [g.generation for g in result.history.generations] == [1, 2, 3]
        assert result.total_evaluations == 19 + 2 * 18

    def test_evolve_continues_after_raising_cap(self):
        """Test a finished run resumes from its last generation."""
        config = EvolutionConfig(population_size=20, max_generations=3, n_workers=2)
        engine = EvolutionEngine(config, NumberGenerator(), value_fitness)
        engine.evolve()

        config.max_generations = 5
        result = engine.evolve()

        assert result.generations_completed == 5
        assert [g.generation for g in result.history.generations] == [1, 2, 3, 4, 5]

    def test_repeat_evolve_keeps_target_streak(self):
        """Test re-checking a finished run does not extend the target streak."""
        calls = []
        config = EvolutionConfig(
            population_size=10, max_generations=50,
            target_fitness=1.0, target_streak=2, n_workers=2,
        )
        engine = EvolutionEngine(config, NumberGenerator(), lambda ind: 1.0)
        engine.evolve()

        result = engine.evolve(progress_callback=lambda *args: calls.append(args))

        assert result.reached_target
        assert result.generations_completed == 2
        assert calls == []

    def test_phrase_reaches_target(self):
        """Test a short phrase is found."""
        fitness = PhraseFitness('ga')
        config = EvolutionConfig(
            population_size=300, max_generations=300,
            target_fitness=fitness.max_score, seed=3,
        )
        engine = EvolutionEngine(config, PhraseGenerator(2), fitness)

        result = engine.evolve()

        assert result.reached_target
        assert result.best_fitness == 2.0
        assert str(result.best.individual) == 'ga'
        assert 'Best fitness' in result.summary()


class TestVisualization:
    """Tests for plotting."""

    def test_plot_fitness_progression(self, tmp_path):
        """Test a plot file is written."""
        history = EvolutionHistory()
        for gen in range(1, 6):
            history.record_generation(gen, ranked([gen, gen * 2]), 2)

        output = plot_fitness_progression(history, tmp_path / 'plots' / 'fitness.png')

        assert output is not None
        assert output.exists()

    def test_plot_empty_history(self, tmp_path):
        """Test nothing is written for an empty history."""
        assert plot_fitness_progression(EvolutionHistory(), tmp_path / 'x.png') is None
        assert plot_diversity_over_time(EvolutionHistory(), tmp_path / 'x.png') is None
        assert not (tmp_path / 'x.png').exists()

    def test_plot_diversity_from_saved_history(self, tmp_path):
        """Test a reloaded history can be plotted."""
        history = EvolutionHistory()
        for gen in range(1, 4):
            history.record_generation(gen, ranked([1, gen, gen]), 3)
        restored = EvolutionHistory.load(history.save(tmp_path / 'history.json'))

        output = plot_diversity_over_time(restored, tmp_path / 'diversity.png')

        assert output is not None
        assert output.exists()


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
