"""
IC10 Chip
A Program, its compiler and its interpreter wired to one device gateway
"""

import logging
import random
import time
from typing import Callable, Optional

from compiler import Compiler
from devices import DeviceGateway
from interpreter import DEFAULT_LINES_PER_TICK, Interpreter
from program import ErrorSlot, Program

logger = logging.getLogger(__name__)


class Chip:
    def __init__(self,
                 gateway: Optional[DeviceGateway] = None,
                 lines_per_tick: int = DEFAULT_LINES_PER_TICK,
                 seed: Optional[int] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.program = Program()
        self.program.install_standard_aliases()
        self.compiler = Compiler(self.program)
        self.interpreter = Interpreter(self.program, gateway, clock, random.Random(seed))
        self.lines_per_tick = lines_per_tick
        self.source = ""

    @property
    def gateway(self) -> DeviceGateway:
        return self.interpreter.gateway

    @property
    def compile_error(self) -> Optional[ErrorSlot]:
        return self.program.compile_error

    @property
    def run_error(self) -> Optional[ErrorSlot]:
        return self.program.run_error

    def load(self, source: str) -> Optional[ErrorSlot]:
        self.source = source
        return self.compiler.compile(source)

    def tick(self, budget: Optional[int] = None) -> int:
        return self.interpreter.execute(self.lines_per_tick if budget is None else budget)

    def step(self):
        """Run exactly one line, ignoring the tick budget"""
        if self.program.on_fire or self.program.halted:
            return None
        return self.interpreter.step()

    def run(self, ticks: int, tick_seconds: float = 0.0) -> int:
        executed = 0
        for count in range(ticks):
            executed += self.tick()
            if self.program.run_error or self.program.halted or self.program.on_fire:
                break
            if tick_seconds > 0 and count < ticks - 1:
                time.sleep(tick_seconds)
        logger.info("Ran %d line(s) over at most %d tick(s)", executed, ticks)
        return executed
