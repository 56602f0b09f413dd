"""
Entry point for running gaengine as a module.

Usage:
    python -m gaengine             # Show help
"""


def main():
    print("""
gaengine - Parallel Genetic Algorithm Engine
============================================

Examples:
    python examples/run_phrase_evolution.py   Evolve a string toward a target phrase
    python examples/run_calc_evolution.py     Evolve a stack machine program for a*b+a
    python examples/visualize_history.py      Summarize and plot a saved --history file

Run any script with --help for options.
    """)


if __name__ == '__main__':
    main()
