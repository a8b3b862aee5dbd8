"""
IC10 Program
Compiled chip state: registers, stack, operations, name tables and error slots
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np

from devices import check_memory_address
from errors import ErrorKind
from instructions import Opcode
from operands import AliasKind, AliasTarget, Operand, REGISTER_COUNT, RA_INDEX, SP_INDEX, to_integer

STACK_SIZE = 512


@dataclass(frozen=True)
class Operation:
    """One compiled line. A line with no opcode (blank, comment, label) is a no-op"""
    line: int
    opcode: Optional[Opcode] = None
    operands: Tuple[Operand, ...] = ()
    text: str = ""

    @property
    def is_noop(self) -> bool:
        return self.opcode is None


@dataclass(frozen=True)
class ErrorSlot:
    kind: ErrorKind
    line: int
    message: str = ""

    def __str__(self) -> str:
        return f"{self.kind.value} at line {self.line + 1}"


@dataclass
class SleepTimer:
    last_time: float
    remaining: float


@dataclass
class Program:
    registers: np.ndarray = field(default_factory=lambda: np.zeros(REGISTER_COUNT, dtype=np.float64))
    stack: np.ndarray = field(default_factory=lambda: np.zeros(STACK_SIZE, dtype=np.float64))
    operations: List[Operation] = field(default_factory=list)
    aliases: Dict[str, AliasTarget] = field(default_factory=dict)
    defines: Dict[str, float] = field(default_factory=dict)
    jump_tags: Dict[str, int] = field(default_factory=dict)
    compile_error: Optional[ErrorSlot] = None
    run_error: Optional[ErrorSlot] = None
    counter: int = 0
    sleep_timers: Dict[int, SleepTimer] = field(default_factory=dict)
    on_fire: bool = False

    # ---------------------------
    # Lifecycle
    # ---------------------------
    def reset(self):
        """
        Clear everything a recompilation discards and install the standard aliases.

        Register and stack contents survive, except the stack pointer.
        """
        self.stack_pointer = 0.0
        self.operations = []
        self.aliases.clear()
        self.defines.clear()
        self.jump_tags.clear()
        self.compile_error = None
        self.run_error = None
        self.counter = 0
        self.sleep_timers.clear()
        self.on_fire = False
        self.install_standard_aliases()

    def install_standard_aliases(self):
        self.aliases["db"] = AliasTarget(AliasKind.DEVICE, -1)
        self.aliases["sp"] = AliasTarget(AliasKind.REGISTER, SP_INDEX)
        self.aliases["ra"] = AliasTarget(AliasKind.REGISTER, RA_INDEX)

    # ---------------------------
    # Program counter
    # ---------------------------
    @property
    def line_count(self) -> int:
        return len(self.operations)

    @property
    def program_counter(self) -> int:
        return self.counter

    @program_counter.setter
    def program_counter(self, value: int):
        # Host-side writes clamp rather than fault
        upper = max(self.line_count - 1, 0)
        self.counter = min(max(int(value), 0), upper)

    @property
    def line_number(self) -> int:
        """1-based line shown to users"""
        return self.counter + 1

    @property
    def halted(self) -> bool:
        return self.counter >= self.line_count

    # ---------------------------
    # Registers
    # ---------------------------
    @property
    def stack_pointer(self) -> float:
        return float(self.registers[SP_INDEX])

    @stack_pointer.setter
    def stack_pointer(self, value: float):
        self.registers[SP_INDEX] = value

    def get_register(self, index: int) -> float:
        return float(self.registers[index])

    # ---------------------------
    # Stack (also the chip's memory for get/put on its own housing)
    # ---------------------------
    def _sp_address(self) -> int:
        return to_integer(self.stack_pointer)

    def push(self, value: float):
        address = check_memory_address(self._sp_address(), STACK_SIZE)
        self.stack[address] = value
        self.stack_pointer = address + 1

    def pop(self) -> float:
        address = check_memory_address(self._sp_address() - 1, STACK_SIZE)
        value = float(self.stack[address])
        self.stack_pointer = address
        return value

    def peek(self) -> float:
        address = check_memory_address(self._sp_address() - 1, STACK_SIZE)
        return float(self.stack[address])

    def read_memory(self, address: int) -> float:
        return float(self.stack[check_memory_address(address, STACK_SIZE)])

    def write_memory(self, address: int, value: float):
        self.stack[check_memory_address(address, STACK_SIZE)] = value

    def clear_memory(self):
        self.stack[:] = 0.0

    # ---------------------------
    # Inspection
    # ---------------------------
    def register_snapshot(self) -> List[float]:
        return [float(v) for v in self.registers]

    def stack_snapshot(self, count: Optional[int] = None) -> List[float]:
        values = self.stack if count is None else self.stack[:count]
        return [float(v) for v in values]
