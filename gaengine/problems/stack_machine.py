"""
Stack machine problem domain: evolve a program that computes ``a*b + a``.

Individuals are variable-length programs for a small stack machine with
memory-resident operands. The machine never faults:
- Arithmetic wraps at 32 bits; division by zero pushes the largest int32
- Popping an empty stack yields 0; pushing onto a full stack is dropped
- Memory reads outside the address space yield 0, writes are ignored
- An instruction pointer that leaves the program restarts at address 0

Execution is bounded by a step budget so every fitness call terminates.
"""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import List, Sequence, Tuple

import numpy as np

from ..evolution.individual import Individual, Generator
from ..evolution.rng import thread_rng

INT32_MIN = -2 ** 31
INT32_MAX = 2 ** 31 - 1

# Memory layout used by the calculator fitness
OPERAND_A_ADDRESS = 0
OPERAND_B_ADDRESS = 1
RESULT_ADDRESS = 3

# Literals of random opcodes are drawn from [0, LITERAL_LIMIT)
LITERAL_LIMIT = 5


def wrap_int32(value: int) -> int:
    """Two's-complement wrap of an arbitrary int into the int32 range."""
    return (value - INT32_MIN) % 2 ** 32 + INT32_MIN


def _truncating_div(dividend: int, divisor: int) -> int:
    """Integer division rounding toward zero."""
    quotient = abs(dividend) // abs(divisor)
    return -quotient if (dividend < 0) != (divisor < 0) else quotient


class Instruction(IntEnum):
    """Instruction set, numbered by opcode."""
    NOP = 0
    BIT_OR = 1
    BIT_AND = 2
    BIT_XOR = 3
    ADD = 4
    SUB = 5
    MULT = 6
    DIV = 7
    PUSH = 8
    POP = 9
    PUSH_DUPLICATE = 10
    PUSH_MEM = 11
    POP_MEM = 12
    JUMP_REL = 13
    JUMP_EQ = 14
    JUMP_GT = 15
    JUMP_LT = 16
    ABORT = 17


MNEMONICS = {
    Instruction.NOP: 'nop',
    Instruction.BIT_OR: 'bit_or',
    Instruction.BIT_AND: 'bit_and',
    Instruction.BIT_XOR: 'bit_xor',
    Instruction.ADD: 'add',
    Instruction.SUB: 'sub',
    Instruction.MULT: 'mult',
    Instruction.DIV: 'div',
    Instruction.PUSH: 'push {}',
    Instruction.POP: 'pop',
    Instruction.PUSH_DUPLICATE: 'push_dup',
    Instruction.PUSH_MEM: 'push ({})',
    Instruction.POP_MEM: 'pop_to {}',
    Instruction.JUMP_REL: 'jmp {}',
    Instruction.JUMP_EQ: 'jmp_eq {}',
    Instruction.JUMP_GT: 'jmp_gt {}',
    Instruction.JUMP_LT: 'jmp_lt {}',
    Instruction.ABORT: 'abort',
}

# Binary operators: applied as op(first_popped, second_popped)
_BINARY_OPS = {
    Instruction.BIT_OR: lambda a, b: a | b,
    Instruction.BIT_AND: lambda a, b: a & b,
    Instruction.BIT_XOR: lambda a, b: a ^ b,
    Instruction.ADD: lambda a, b: wrap_int32(a + b),
    Instruction.SUB: lambda a, b: wrap_int32(a - b),
    Instruction.MULT: lambda a, b: wrap_int32(a * b),
}

# Conditional jumps: taken when the predicate holds for the popped value
_JUMP_CONDITIONS = {
    Instruction.JUMP_EQ: lambda v: v == 0,
    Instruction.JUMP_GT: lambda v: v > 0,
    Instruction.JUMP_LT: lambda v: v < 0,
}


@dataclass(frozen=True)
class OpCode:
    """One instruction with its literal operand."""
    code: Instruction
    literal: int = 0

    @classmethod
    def random(cls) -> 'OpCode':
        """Uniformly random instruction with a small literal."""
        rng = thread_rng()
        return cls(
            code=Instruction(int(rng.integers(len(Instruction)))),
            literal=int(rng.integers(LITERAL_LIMIT)),
        )

    def __str__(self) -> str:
        return MNEMONICS[self.code].format(self.literal)


class ExitType(Enum):
    """How a program run ended."""
    TIMEOUT = 'timeout'
    ABORT = 'abort'


@dataclass
class ExecutionStats:
    instructions_issued: int = 0


class StackMachine:
    """
    Bounded stack machine.

    Attributes:
        memory: Word-addressed memory, zero-initialized
        stack: Operand stack, top at the end
        stack_size: Maximum number of values on the stack
        stats: Counters for the most recent runs (cleared by reset_state)
    """

    def __init__(self, words: int = 100, stack_size: int = 100):
        self.memory: List[int] = [0] * words
        self.stack: List[int] = []
        self.stack_size = stack_size
        self.stats = ExecutionStats()

    def peek_mem(self, address: int) -> int:
        if 0 <= address < len(self.memory):
            return self.memory[address]
        return 0

    def poke_mem(self, address: int, value: int) -> None:
        if 0 <= address < len(self.memory):
            self.memory[address] = value

    def pop_stack(self) -> int:
        if not self.stack:
            return 0
        return self.stack.pop()

    def push_stack(self, value: int) -> None:
        if len(self.stack) < self.stack_size:
            self.stack.append(value)

    def reset_state(self) -> None:
        """Zero memory, clear the stack and the stats."""
        self.memory = [0] * len(self.memory)
        self.stack.clear()
        self.stats = ExecutionStats()

    def execute(self, program: Sequence[OpCode], max_steps: int) -> ExitType:
        """
        Run a program for at most ``max_steps`` instructions.

        Returns ExitType.ABORT if an abort instruction was reached, otherwise
        ExitType.TIMEOUT. An empty program cannot make progress and times out
        without issuing anything.
        """
        if not program:
            return ExitType.TIMEOUT

        ip = 0
        for _ in range(max_steps):
            if not 0 <= ip < len(program):
                ip = 0

            op = program[ip]
            ip += 1
            self.stats.instructions_issued += 1
            code = op.code

            if code in _BINARY_OPS:
                a = self.pop_stack()
                b = self.pop_stack()
                self.push_stack(_BINARY_OPS[code](a, b))
            elif code in _JUMP_CONDITIONS:
                if _JUMP_CONDITIONS[code](self.pop_stack()):
                    ip += op.literal
            elif code == Instruction.DIV:
                dividend = self.pop_stack()
                divisor = self.pop_stack()
                if divisor != 0:
                    self.push_stack(wrap_int32(_truncating_div(dividend, divisor)))
                else:
                    self.push_stack(INT32_MAX)
            elif code == Instruction.PUSH:
                self.push_stack(op.literal)
            elif code == Instruction.POP:
                self.pop_stack()
            elif code == Instruction.PUSH_DUPLICATE:
                value = self.pop_stack()
                self.push_stack(value)
                self.push_stack(value)
            elif code == Instruction.PUSH_MEM:
                self.push_stack(self.peek_mem(op.literal))
            elif code == Instruction.POP_MEM:
                self.poke_mem(op.literal, self.pop_stack())
            elif code == Instruction.JUMP_REL:
                ip += op.literal
            elif code == Instruction.ABORT:
                return ExitType.ABORT
            # NOP falls through

        return ExitType.TIMEOUT


@dataclass(frozen=True)
class CalcProgram(Individual):
    """A candidate program for the calculator problem."""
    ops: Tuple[OpCode, ...] = field(default_factory=tuple)

    @classmethod
    def random(cls, min_length: int = 5, max_length: int = 25) -> 'CalcProgram':
        """Random program with length in [min_length, max_length)."""
        rng = thread_rng()
        length = int(rng.integers(min_length, max_length))
        return cls(tuple(OpCode.random() for _ in range(length)))

    def mutate(self) -> 'CalcProgram':
        """
        Apply one of three edits, chosen uniformly:
        - Replace a random instruction
        - Delete a random instruction (only when longer than 2, else append)
        - Append a random instruction
        """
        rng = thread_rng()
        action = int(rng.integers(3))
        length = len(self.ops)
        if length <= 2 and action == 1:
            action = 2

        ops = list(self.ops)
        if action == 0 and length:
            ops[int(rng.integers(length))] = OpCode.random()
        elif action == 1:
            del ops[int(rng.integers(length))]
        else:
            ops.append(OpCode.random())
        return CalcProgram(tuple(ops))

    def __len__(self) -> int:
        return len(self.ops)

    def __str__(self) -> str:
        return '\n'.join(str(op) for op in self.ops)


class CalcGenerator(Generator):
    """Random programs; crossover simply mutates the first parent."""

    def __init__(self, min_length: int = 5, max_length: int = 25):
        self.min_length = min_length
        self.max_length = max_length

    def generate(self) -> CalcProgram:
        return CalcProgram.random(self.min_length, self.max_length)

    def evolve(self, a: CalcProgram, b: CalcProgram) -> CalcProgram:
        return a.mutate()


def length_bonus(length: int) -> float:
    """Reward for a correct program; shorter programs earn more."""
    if length < 10:
        return 2.0
    if length < 15:
        return 1.8
    if length < 20:
        return 1.7
    if length < 25:
        return 1.6
    if length < 30:
        return 1.5
    return 1.0


@dataclass(frozen=True)
class CalcFitness:
    """
    Fitness for programs that should store ``a*b + a`` at RESULT_ADDRESS.

    Each call draws fresh operands, so a program only scores well
    consistently if it computes the formula rather than a constant. Scores
    are computed in float32:

        bonus - |expected - result|

    where bonus is length_bonus(len(program)) when the program reached
    abort with the exact answer, and 0 otherwise.
    """
    max_steps: int = 25
    memory_words: int = 100
    stack_size: int = 100
    operand_low: int = 1
    operand_high: int = 10000

    @staticmethod
    def expected(a: int, b: int) -> int:
        return wrap_int32(a * b + a)

    def __call__(self, program: CalcProgram) -> float:
        rng = thread_rng()
        a = int(rng.integers(self.operand_low, self.operand_high))
        b = int(rng.integers(self.operand_low, self.operand_high))
        return self.score(program, a, b)

    def score(self, program: CalcProgram, a: int, b: int) -> float:
        """Score a program against fixed operands."""
        vm = StackMachine(self.memory_words, self.stack_size)
        vm.poke_mem(OPERAND_A_ADDRESS, a)
        vm.poke_mem(OPERAND_B_ADDRESS, b)
        exit_type = vm.execute(program.ops, self.max_steps)

        expected = np.float32(self.expected(a, b))
        result = np.float32(vm.peek_mem(RESULT_ADDRESS))

        bonus = np.float32(0.0)
        if exit_type is ExitType.ABORT and expected == result:
            bonus = np.float32(length_bonus(len(program.ops)))

        return float(bonus - abs(expected - result))
