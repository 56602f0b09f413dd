#!/usr/bin/env python3
"""
Evolution History - Visualization and Summary

Reads history files written with --history by the run_*_evolution.py
scripts and produces:
- A text summary of the fitness progression
- Fitness progression plot (best and mean per generation)
- Diversity plot (share of distinct individuals per generation)

Usage:
    python examples/visualize_history.py HISTORY.json [HISTORY.json ...] [options]

Options:
    --output DIR        Output directory for plots (default: next to each file)
    --no-plots          Skip plot generation, just print summary
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from gaengine.evolution.history import EvolutionHistory
from gaengine.visualization import plot_fitness_progression, plot_diversity_over_time


def print_history_summary(history: EvolutionHistory, path: Path):
    """Print summary of a recorded run."""
    print(f"\n{'='*60}")
    print(f"History: {path.name}")
    print(f"{'='*60}")

    trajectory = history.fitness_trajectory
    if not trajectory:
        print("\nNo generations recorded")
        return

    evaluations = sum(g.evaluations_this_gen for g in history.generations)
    print(f"\nGenerations: {len(history.generations)}")
    print(f"Evaluations: {evaluations}")

    print(f"\nFitness progression:")
    print(f"  Initial:  {trajectory[0]:.4f}")
    print(f"  Final:    {trajectory[-1]:.4f}")
    print(f"  Best:     {max(trajectory):.4f}")
    print(f"  Improvement: {trajectory[-1] - trajectory[0]:+.4f}")

    final_best = history.best_individual_per_gen[-1] if history.best_individual_per_gen else None
    if final_best is not None:
        print(f"\nFinal best individual:")
        for line in final_best.splitlines():
            print(f"  {line}")


def main():
    parser = argparse.ArgumentParser(
        description='Summarize and plot saved evolution histories'
    )
    parser.add_argument(
        'histories', nargs='+',
        help='History JSON files written with --history'
    )
    parser.add_argument(
        '--output', type=str, default=None,
        help='Output directory for plots'
    )
    parser.add_argument(
        '--no-plots', action='store_true',
        help='Skip plot generation'
    )
    args = parser.parse_args()

    failures = 0
    for name in args.histories:
        path = Path(name)
        try:
            history = EvolutionHistory.load(path)
        except (OSError, ValueError, TypeError) as e:
            print(f"\nError loading {path}: {e}")
            failures += 1
            continue

        print_history_summary(history, path)

        if args.no_plots:
            continue

        output_dir = Path(args.output) if args.output else path.parent
        saved = plot_fitness_progression(history, output_dir / f'{path.stem}_fitness.png')
        if saved:
            print(f"Saved fitness plot: {saved}")
        saved = plot_diversity_over_time(history, output_dir / f'{path.stem}_diversity.png')
        if saved:
            print(f"Saved diversity plot: {saved}")

    return 1 if failures else 0


if __name__ == '__main__':
    sys.exit(main())
