#!/usr/bin/env python3
"""
Phrase Evolution

Evolves random lowercase strings toward a target phrase. Stops as soon as
the best individual matches the phrase exactly.

Usage:
    python examples/run_phrase_evolution.py [options]

Options:
    --phrase TEXT           Target phrase, a-z only (default: helloworld)
    --population-size N     Population size (default: 1000)
    --max-generations N     Generation cap (default: 1000)
    --workers N             Parallel workers (default: cpu_count)
    --seed N                Random seed
    --plot PATH             Save a fitness progression plot
    --history PATH          Save the generation history as JSON
    -v, --verbose           Print the leaders of every generation
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from gaengine.evolution import EvolutionEngine, EvolutionConfig
from gaengine.problems.phrase import PhraseGenerator, PhraseFitness
from gaengine.visualization import plot_fitness_progression


def parse_args():
    parser = argparse.ArgumentParser(
        description='Evolve a string toward a target phrase'
    )
    parser.add_argument(
        '--phrase', type=str, default='helloworld',
        help='Target phrase, lowercase a-z (default: helloworld)'
    )
    parser.add_argument(
        '--population-size', type=int, default=1000,
        help='Population size (default: 1000)'
    )
    parser.add_argument(
        '--max-generations', type=int, default=1000,
        help='Maximum number of generations (default: 1000)'
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
        help='Print the leaders of every generation'
    )
    return parser.parse_args()


def main():
    args = parse_args()
    if args.verbose:
        logging.basicConfig(level=logging.INFO)

    fitness = PhraseFitness(args.phrase)
    generator = PhraseGenerator(len(args.phrase))
    config = EvolutionConfig(
        population_size=args.population_size,
        max_generations=args.max_generations,
        target_fitness=fitness.max_score,
        n_workers=args.workers,
        seed=args.seed,
    )
    engine = EvolutionEngine(config, generator, fitness)

    def progress_callback(gen: int, total: int, stats: dict):
        if not args.verbose:
            return
        print(f"{gen})")
        for entry in engine.leaders():
            print(f"\t{entry.individual} {entry.fitness}")

    result = engine.evolve(progress_callback=progress_callback)

    print(f"After {result.generations_completed} Generations:")
    for entry in engine.leaders():
        print(f"\t{entry.individual} {entry.fitness}")

    if args.plot:
        saved = plot_fitness_progression(
            result.history, args.plot, title=f"Phrase evolution - {args.phrase}"
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
