"""Example problem domains built on the evolution engine."""

from .phrase import PhraseIndividual, PhraseGenerator, PhraseFitness
from .stack_machine import (
    Instruction,
    OpCode,
    ExitType,
    StackMachine,
    CalcProgram,
    CalcGenerator,
    CalcFitness,
)

__all__ = [
    'PhraseIndividual',
    'PhraseGenerator',
    'PhraseFitness',
    'Instruction',
    'OpCode',
    'ExitType',
    'StackMachine',
    'CalcProgram',
    'CalcGenerator',
    'CalcFitness',
]
