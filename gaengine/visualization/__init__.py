"""Visualization utilities for evolution runs."""

from .plots import plot_fitness_progression, plot_diversity_over_time

__all__ = [
    'plot_fitness_progression',
    'plot_diversity_over_time',
]
