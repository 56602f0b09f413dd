#!/usr/bin/env python3
"""
Stack Machine Calculator Evolution

Evolves stack machine programs that read a and b from memory and store
a*b + a. Operands are random on every evaluation, so the run only stops
once the best program has scored >= 1.9 (a correct, short program) for 100
consecutive generations.

Usage:
    python examples/run_calc_evolution.py [options]

Options:
    --population-size N     Population size (default: 10000)
    --max-generations N     Generation cap (default: 20000)
    --workers N             Parallel workers (default: cpu_count)
    --seed N                Random seed
    --plot PATH             Save a fitness progression plot
    --history PATH          Save the generation history as JSON
    -v, --verbose           Print the top fitness values of every generation
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from gaengine.evolution import EvolutionEngine, EvolutionConfig
from gaengine.problems.stack_machine import CalcGenerator, CalcFitness
from gaengine.visualization import plot_fitness_progression

TARGET_FITNESS = 1.9
TARGET_STREAK = 100


def parse_args():
    parser = argparse.ArgumentParser(
        description='Evolve a stack machine program computing a*b + a'
    )
    parser.add_argument(
        '--population-size', type=int, default=10000,
        help='Population size (default: 10000)'
    )
    parser.add_argument(
        '--max-generations', type=int, default=20000,
        help='Maximum number of generations (default: 20000)'
    )
    parser.add_argument(
        '--workers', type=int, default=None,
        help='Number of parallel workers (default: cpu_count)'
    )
    parser.add_argument(
        '--seed', type=int, default=None,
        help='Random seed'
    )
    parser.add_argument(
        '--plot', type=str, default=None,
        help='Path for a fitness progression plot'
    )
    parser.add_argument(
        '--history', type=str, default=None,
        help='Path for a JSON dump of the generation history'
    )
    parser.add_argument(
        '-v', '--verbose', action='store_true',
        help='Print the top fitness values of every generation'
    )
    return parser.parse_args()


def main():
    args = parse_args()
    if args.verbose:
        logging.basicConfig(level=logging.INFO)

    config = EvolutionConfig(
        population_size=args.population_size,
        max_generations=args.max_generations,
        target_fitness=TARGET_FITNESS,
        target_streak=TARGET_STREAK,
        n_workers=args.workers,
        seed=args.seed,
    )
    engine = EvolutionEngine(config, CalcGenerator(), CalcFitness())

    def progress_callback(gen: int, total: int, stats: dict):
        if not args.verbose:
            return
        print(f"{gen})")
        for value in stats['top']:
            print(f"\t{value}")

    result = engine.evolve(progress_callback=progress_callback)

    print(f"After {result.generations_completed} Generations")
    for entry in engine.leaders():
        print(f"\t{entry.fitness}")

    print("Final solution:")
    print(result.best.individual)

    if args.plot:
        saved = plot_fitness_progression(
            result.history, args.plot, title='Calculator evolution - a*b + a'
        )
        if saved:
            print(f"Saved fitness plot: {saved}")

    if args.history:
        saved = result.history.save(args.history)
        print(f"Saved history: {saved}")
        print(f"Visualize with: python examples/visualize_history.py {saved}")

    return 0 if result.reached_target else 1


if __name__ == '__main__':
    sys.exit(main())
