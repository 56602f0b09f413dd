"""
Matplotlib-based visualization for evolution runs.

These functions create static plots for analysis and reports.
"""

from pathlib import Path
from typing import Optional, Union

# Matplotlib imports with non-GUI backend
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt

from ..evolution.history import EvolutionHistory


def plot_fitness_progression(
    history: EvolutionHistory,
    output_path: Union[str, Path],
    title: Optional[str] = None,
) -> Optional[Path]:
    """
    Plot best and mean fitness per generation.

    Args:
        history: Recorded history of a run
        output_path: Where to write the image (format from the suffix)
        title: Plot title

    Returns:
        Path of the saved figure, or None if the history is empty
    """
    trajectory = history.fitness_trajectory
    if not trajectory:
        return None

    generations = [g.generation for g in history.generations]

    fig, ax = plt.subplots(figsize=(10, 6))
    ax.plot(generations, trajectory, 'b-', linewidth=2, label='Best')
    ax.plot(generations, history.mean_fitness_trajectory, 'g--', linewidth=1, label='Mean')
    ax.set_xlabel('Generation', fontsize=12)
    ax.set_ylabel('Fitness', fontsize=12)
    ax.set_title(title or 'Evolution Progress', fontsize=14)
    ax.grid(True, alpha=0.3)
    ax.legend()

    improvement = trajectory[-1] - trajectory[0]
    ax.annotate(
        f'Improvement: {improvement:+.4f}',
        xy=(generations[-1], trajectory[-1]),
        xytext=(0.6, 0.1),
        textcoords='axes fraction',
        fontsize=10,
        arrowprops=dict(arrowstyle='->', color='gray', alpha=0.5),
    )

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(output_path, dpi=150, bbox_inches='tight')
    plt.close(fig)
    return output_path


def plot_diversity_over_time(
    history: EvolutionHistory,
    output_path: Union[str, Path],
    title: Optional[str] = None,
) -> Optional[Path]:
    """
    Plot the share of distinct individuals per generation.

    Returns:
        Path of the saved figure, or None if the history is empty
    """
    diversity = history.diversity_trajectory
    if not diversity:
        return None

    generations = [g.generation for g in history.generations]

    fig, ax = plt.subplots(figsize=(10, 6))
    ax.plot(generations, diversity, 'g-', linewidth=2, marker='s', markersize=4)
    ax.set_xlabel('Generation', fontsize=12)
    ax.set_ylabel('Diversity (unique individuals ratio)', fontsize=12)
    ax.set_title(title or 'Population Diversity', fontsize=14)
    ax.grid(True, alpha=0.3)
    ax.set_ylim(0, 1.05)

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(output_path, dpi=150, bbox_inches='tight')
    plt.close(fig)
    return output_path
