"""Parallel genetic algorithm engine with pluggable problem domains."""

__version__ = '0.1.0'
