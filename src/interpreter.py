"""
IC10 Interpreter
Executes a compiled Program one tick at a time
"""

import logging
import math
import operator
import random
import time
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, Dict, List, Optional

import numpy as np

from devices import Device, DeviceGateway, DeviceRef, MemoryDevice, NullGateway, RefKind
from errors import ChipRuntimeError, ErrorKind, IC10Error
from instructions import Opcode
from logic_types import (LogicBatchMethod, LogicReagentMode, LogicSlotType, LogicType,
                         SMALLEST_SUBNORMAL)
from operands import (RA_INDEX, AliasKind, resolve_alias_target, resolve_device, resolve_enum,
                      resolve_integer, resolve_line, resolve_register, resolve_value, to_integer)
from program import ErrorSlot, Operation, Program, SleepTimer

logger = logging.getLogger(__name__)

DEFAULT_LINES_PER_TICK = 128

PAYLOAD_BITS = 53
PAYLOAD_MASK = (1 << PAYLOAD_BITS) - 1
PAYLOAD_SIGN = 1 << (PAYLOAD_BITS - 1)


class Flow(Enum):
    CONTINUE = auto()
    SUSPEND = auto()
    FAULT = auto()


@dataclass(frozen=True)
class StepResult:
    flow: Flow
    target: int
    error: Optional[ErrorSlot] = None

    @classmethod
    def go(cls, target: int) -> "StepResult":
        return cls(Flow.CONTINUE, target)

    @classmethod
    def suspend(cls, resume_at: int) -> "StepResult":
        return cls(Flow.SUSPEND, resume_at)


# ---------------------------
# Numeric helpers
# ---------------------------

def approximately_equal(a: float, b: float, tolerance: float) -> bool:
    return abs(a - b) <= max(tolerance * max(abs(a), abs(b)), SMALLEST_SUBNORMAL)


def to_payload(value: float) -> int:
    """Truncate a float to the 53-bit two's complement payload used by bitwise opcodes"""
    if not math.isfinite(value) or abs(value) >= 2 ** PAYLOAD_BITS:
        raise ChipRuntimeError(ErrorKind.PAYLOAD_OVERFLOW, f"{value} does not fit in {PAYLOAD_BITS} bits")
    return int(value) & PAYLOAD_MASK


def from_payload(payload: int) -> float:
    """Signed reading of a 53-bit payload (bit 52 is the sign)"""
    payload &= PAYLOAD_MASK
    if payload & PAYLOAD_SIGN:
        payload -= 1 << PAYLOAD_BITS
    return float(payload)


def check_shift(amount: int) -> int:
    if amount < 0:
        raise ChipRuntimeError(ErrorKind.SHIFT_UNDERFLOW, f"Shift {amount} below 0")
    if amount >= PAYLOAD_BITS:
        raise ChipRuntimeError(ErrorKind.SHIFT_OVERFLOW, f"Shift {amount} beyond {PAYLOAD_BITS - 1}")
    return amount


def check_bit_field(offset: int, length: int):
    if offset < 0 or length < 1:
        raise ChipRuntimeError(ErrorKind.SHIFT_UNDERFLOW, f"Bit field offset {offset} length {length}")
    if offset >= PAYLOAD_BITS or offset + length > PAYLOAD_BITS:
        raise ChipRuntimeError(ErrorKind.SHIFT_OVERFLOW, f"Bit field offset {offset} length {length}")


def aggregate(values: List[float], mode: LogicBatchMethod) -> float:
    if mode is LogicBatchMethod.Average:
        return sum(values) / len(values) if values else math.nan
    if mode is LogicBatchMethod.Sum:
        return float(sum(values))
    if not values:
        return 0.0
    if mode is LogicBatchMethod.Minimum:
        return min(values)
    return max(values)


BINARY_MATH: Dict[Opcode, Callable] = {
    Opcode.ADD: np.add,
    Opcode.SUB: np.subtract,
    Opcode.MUL: np.multiply,
    Opcode.DIV: np.divide,
    Opcode.MOD: np.mod,
    Opcode.POW: np.power,
    Opcode.MAX: np.maximum,
    Opcode.MIN: np.minimum,
    Opcode.ATAN2: np.arctan2,
}

UNARY_MATH: Dict[Opcode, Callable] = {
    Opcode.ABS: np.abs,
    Opcode.CEIL: np.ceil,
    Opcode.FLOOR: np.floor,
    Opcode.ROUND: np.rint,
    Opcode.TRUNC: np.trunc,
    Opcode.SQRT: np.sqrt,
    Opcode.EXP: np.exp,
    Opcode.LOG: np.log,
    Opcode.SIN: np.sin,
    Opcode.COS: np.cos,
    Opcode.TAN: np.tan,
    Opcode.ASIN: np.arcsin,
    Opcode.ACOS: np.arccos,
    Opcode.ATAN: np.arctan,
}

COMPARISONS: Dict[str, Callable[[float, float], bool]] = {
    "eq": operator.eq,
    "ne": operator.ne,
    "lt": operator.lt,
    "gt": operator.gt,
    "le": operator.le,
    "ge": operator.ge,
}

SET_COMPARE = {Opcode("s" + name): test for name, test in COMPARISONS.items()}
SET_COMPARE_ZERO = {Opcode("s" + name + "z"): test for name, test in COMPARISONS.items()}

BITWISE: Dict[Opcode, Callable[[int, int], int]] = {
    Opcode.AND: operator.and_,
    Opcode.OR: operator.or_,
    Opcode.XOR: operator.xor,
    Opcode.NOR: lambda a, b: ~(a | b),
}


class BranchKind(Enum):
    COMPARE = auto()
    COMPARE_ZERO = auto()
    APPROX = auto()
    APPROX_ZERO = auto()
    NAN = auto()
    DEVICE_SET = auto()
    DEVICE_NOT_LOADABLE = auto()
    DEVICE_NOT_STORABLE = auto()


@dataclass(frozen=True)
class BranchSpec:
    kind: BranchKind
    relative: bool = False
    link: bool = False
    test: Optional[Callable] = None
    negate: bool = False


def _build_branch_table() -> Dict[Opcode, BranchSpec]:
    table: Dict[Opcode, BranchSpec] = {}
    for name, test in COMPARISONS.items():
        table[Opcode("b" + name)] = BranchSpec(BranchKind.COMPARE, test=test)
        table[Opcode("b" + name + "al")] = BranchSpec(BranchKind.COMPARE, link=True, test=test)
        table[Opcode("br" + name)] = BranchSpec(BranchKind.COMPARE, relative=True, test=test)
        table[Opcode("b" + name + "z")] = BranchSpec(BranchKind.COMPARE_ZERO, test=test)
        table[Opcode("b" + name + "zal")] = BranchSpec(BranchKind.COMPARE_ZERO, link=True, test=test)
        table[Opcode("br" + name + "z")] = BranchSpec(BranchKind.COMPARE_ZERO, relative=True, test=test)
    for name, negate in (("ap", False), ("na", True)):
        table[Opcode("b" + name)] = BranchSpec(BranchKind.APPROX, negate=negate)
        table[Opcode("b" + name + "al")] = BranchSpec(BranchKind.APPROX, link=True, negate=negate)
        table[Opcode("br" + name)] = BranchSpec(BranchKind.APPROX, relative=True, negate=negate)
        table[Opcode("b" + name + "z")] = BranchSpec(BranchKind.APPROX_ZERO, negate=negate)
        table[Opcode("b" + name + "zal")] = BranchSpec(BranchKind.APPROX_ZERO, link=True, negate=negate)
        table[Opcode("br" + name + "z")] = BranchSpec(BranchKind.APPROX_ZERO, relative=True, negate=negate)
    table[Opcode.BNAN] = BranchSpec(BranchKind.NAN)
    table[Opcode.BRNAN] = BranchSpec(BranchKind.NAN, relative=True)
    for name, negate in (("se", False), ("ns", True)):
        table[Opcode("bd" + name)] = BranchSpec(BranchKind.DEVICE_SET, negate=negate)
        table[Opcode("bd" + name + "al")] = BranchSpec(BranchKind.DEVICE_SET, link=True, negate=negate)
        table[Opcode("brd" + name)] = BranchSpec(BranchKind.DEVICE_SET, relative=True, negate=negate)
    table[Opcode.BDNVL] = BranchSpec(BranchKind.DEVICE_NOT_LOADABLE)
    table[Opcode.BDNVS] = BranchSpec(BranchKind.DEVICE_NOT_STORABLE)
    return table


BRANCHES = _build_branch_table()


class Interpreter:
    def __init__(self,
                 program: Program,
                 gateway: Optional[DeviceGateway] = None,
                 clock: Callable[[], float] = time.monotonic,
                 rng: Optional[random.Random] = None):
        self.program = program
        self.gateway = gateway if gateway is not None else NullGateway()
        self.clock = clock
        self.rng = rng if rng is not None else random.Random()
        self.handlers = self._build_dispatch_table()

    def _build_dispatch_table(self) -> Dict[Opcode, Callable[[Operation, int], StepResult]]:
        table = {}
        for opcode in Opcode:
            if opcode in BRANCHES:
                table[opcode] = self.op_branch
            elif opcode in BINARY_MATH:
                table[opcode] = self.op_binary_math
            elif opcode in UNARY_MATH:
                table[opcode] = self.op_unary_math
            elif opcode in SET_COMPARE:
                table[opcode] = self.op_set_compare
            elif opcode in SET_COMPARE_ZERO:
                table[opcode] = self.op_set_compare_zero
            elif opcode in BITWISE:
                table[opcode] = self.op_bitwise
            else:
                table[opcode] = getattr(self, f"op_{opcode.value}")
        return table

    # ---------------------------
    # Tick loop
    # ---------------------------
    def execute(self, budget: int = DEFAULT_LINES_PER_TICK) -> int:
        """
        Run up to `budget` lines. Stops early on a suspension, a fault, or
        when the program runs off its end. Returns the number of lines run.
        """
        program = self.program
        if program.on_fire:
            logger.debug("Chip is on fire; refusing to execute")
            return 0

        executed = 0
        while executed < budget and not program.halted:
            result = self.step()
            executed += 1
            if result.flow is not Flow.CONTINUE:
                break
        logger.debug("Tick ran %d line(s); counter now %d", executed, program.counter)
        return executed

    def step(self) -> StepResult:
        program = self.program
        index = program.counter
        operation = program.operations[index]
        # A sleep only keeps its timer while execution stays on its line
        for line in [line for line in program.sleep_timers if line != index]:
            del program.sleep_timers[line]
        try:
            if operation.is_noop:
                result = StepResult.go(index + 1)
            else:
                with np.errstate(all="ignore"):
                    result = self.handlers[operation.opcode](operation, index)
            if result.target < 0:
                raise ChipRuntimeError(ErrorKind.INDEX_OUT_OF_RANGE, f"Jump to line {result.target}")
        except IC10Error as error:
            return self.fault(index, error.kind, error.message)
        except Exception as error:
            logger.exception("Unexpected failure executing line %d", index + 1)
            return self.fault(index, ErrorKind.UNKNOWN, str(error))

        program.run_error = None
        program.counter = min(result.target, program.line_count)
        return result

    def fault(self, index: int, kind: ErrorKind, message: str) -> StepResult:
        slot = ErrorSlot(kind, index, message)
        self.program.counter = index
        self.program.run_error = slot
        logger.warning("Run-time error at line %d: %s (%s)", index + 1, kind.value, message)
        return StepResult(Flow.FAULT, index, slot)

    # ---------------------------
    # Operand helpers
    # ---------------------------
    def value(self, operand) -> float:
        return resolve_value(self.program, operand)

    def integer(self, operand) -> int:
        return resolve_integer(self.program, operand)

    def store(self, operand, value: float):
        self.program.registers[resolve_register(self.program, operand)] = value

    def logic_type(self, operand) -> LogicType:
        logic_type = resolve_enum(self.program, operand, LogicType, ErrorKind.INCORRECT_LOGIC_TYPE)
        if logic_type is LogicType.None_:
            raise ChipRuntimeError(ErrorKind.LOGIC_TYPE_IS_NONE, "Logic type is None")
        return logic_type

    def slot_type(self, operand) -> LogicSlotType:
        slot_type = resolve_enum(self.program, operand, LogicSlotType, ErrorKind.INCORRECT_LOGIC_SLOT_TYPE)
        if slot_type is LogicSlotType.None_:
            raise ChipRuntimeError(ErrorKind.LOGIC_TYPE_IS_NONE, "Slot logic type is None")
        return slot_type

    def device_ref(self, operand) -> DeviceRef:
        return resolve_device(self.program, operand)

    def id_ref(self, operand) -> DeviceRef:
        return DeviceRef.by_id(self.integer(operand))

    def device(self, ref: DeviceRef) -> Device:
        device = self.gateway.resolve(ref)
        if device is None:
            kind = ErrorKind.DEVICE_NOT_FOUND if ref.kind is RefKind.ID else ErrorKind.DEVICE_NOT_SET
            raise ChipRuntimeError(kind, f"No device at {ref}")
        return device

    def memory(self, ref: DeviceRef):
        # The housing's memory is the chip's own stack
        if ref.is_base:
            return self.program
        device = self.device(ref)
        if not isinstance(device, MemoryDevice):
            raise ChipRuntimeError(ErrorKind.DEVICE_HAS_NO_MEMORY, f"Device at {ref} has no memory")
        return device

    def batch(self, prefab_hash: int, name_hash: Optional[int] = None) -> List[Device]:
        devices = self.gateway.batch_output()
        if devices is None:
            raise ChipRuntimeError(ErrorKind.DEVICE_LIST_NULL, "No batch device list")
        return [device for device in devices
                if device.prefab_hash() == prefab_hash
                and (name_hash is None or device.name_hash() == name_hash)]

    def jump(self, index: int, target: int, relative: bool, link: bool) -> StepResult:
        destination = index + target if relative else target
        if destination < 0:
            raise ChipRuntimeError(ErrorKind.INDEX_OUT_OF_RANGE, f"Jump to line {destination}")
        if link:
            self.program.registers[RA_INDEX] = index + 1
        return StepResult.go(destination)

    # ---------------------------
    # Misc
    # ---------------------------
    def op_alias(self, op: Operation, index: int) -> StepResult:
        name = op.operands[0].token
        target = resolve_alias_target(self.program, op.operands[1])
        previous = self.program.aliases.get(name)
        if previous is not None and previous.kind is not AliasKind.REGISTER and previous.index >= 0:
            self.gateway.set_pin_label(previous.index, None)
        self.program.aliases[name] = target
        if target.kind is not AliasKind.REGISTER and target.index >= 0:
            self.gateway.set_pin_label(target.index, name)
        return StepResult.go(index + 1)

    op_label = op_alias

    def op_define(self, op: Operation, index: int) -> StepResult:
        # Bound at compile time
        return StepResult.go(index + 1)

    def op_move(self, op: Operation, index: int) -> StepResult:
        self.store(op.operands[0], self.value(op.operands[1]))
        return StepResult.go(index + 1)

    def op_sleep(self, op: Operation, index: int) -> StepResult:
        timers = self.program.sleep_timers
        now = self.clock()
        timer = timers.get(index)
        if timer is None:
            timers[index] = SleepTimer(now, self.value(op.operands[0]))
            return StepResult.suspend(index)
        timer.remaining -= now - timer.last_time
        timer.last_time = now
        if timer.remaining <= 0:
            del timers[index]
            return StepResult.go(index + 1)
        return StepResult.suspend(index)

    def op_yield(self, op: Operation, index: int) -> StepResult:
        return StepResult.suspend(index + 1)

    def op_hcf(self, op: Operation, index: int) -> StepResult:
        self.program.on_fire = True
        raise ChipRuntimeError(ErrorKind.CHIP_CATCHING_FIRE, "Halt and catch fire")

    # ---------------------------
    # Arithmetic
    # ---------------------------
    def op_binary_math(self, op: Operation, index: int) -> StepResult:
        a = np.float64(self.value(op.operands[1]))
        b = np.float64(self.value(op.operands[2]))
        self.store(op.operands[0], float(BINARY_MATH[op.opcode](a, b)))
        return StepResult.go(index + 1)

    def op_unary_math(self, op: Operation, index: int) -> StepResult:
        a = np.float64(self.value(op.operands[1]))
        self.store(op.operands[0], float(UNARY_MATH[op.opcode](a)))
        return StepResult.go(index + 1)

    def op_lerp(self, op: Operation, index: int) -> StepResult:
        a, b, t = (self.value(operand) for operand in op.operands[1:])
        t = min(max(t, 0.0), 1.0)
        self.store(op.operands[0], a + (b - a) * t)
        return StepResult.go(index + 1)

    def op_rand(self, op: Operation, index: int) -> StepResult:
        self.store(op.operands[0], self.rng.random())
        return StepResult.go(index + 1)

    # ---------------------------
    # Select / compare
    # ---------------------------
    def op_select(self, op: Operation, index: int) -> StepResult:
        a, b, c = (self.value(operand) for operand in op.operands[1:])
        self.store(op.operands[0], b if a != 0 else c)
        return StepResult.go(index + 1)

    def op_set_compare(self, op: Operation, index: int) -> StepResult:
        a = self.value(op.operands[1])
        b = self.value(op.operands[2])
        self.store(op.operands[0], 1.0 if SET_COMPARE[op.opcode](a, b) else 0.0)
        return StepResult.go(index + 1)

    def op_set_compare_zero(self, op: Operation, index: int) -> StepResult:
        a = self.value(op.operands[1])
        self.store(op.operands[0], 1.0 if SET_COMPARE_ZERO[op.opcode](a, 0.0) else 0.0)
        return StepResult.go(index + 1)

    def op_sap(self, op: Operation, index: int) -> StepResult:
        a, b, c = (self.value(operand) for operand in op.operands[1:])
        self.store(op.operands[0], 1.0 if approximately_equal(a, b, c) else 0.0)
        return StepResult.go(index + 1)

    def op_sna(self, op: Operation, index: int) -> StepResult:
        a, b, c = (self.value(operand) for operand in op.operands[1:])
        self.store(op.operands[0], 0.0 if approximately_equal(a, b, c) else 1.0)
        return StepResult.go(index + 1)

    def op_sapz(self, op: Operation, index: int) -> StepResult:
        a, c = (self.value(operand) for operand in op.operands[1:])
        self.store(op.operands[0], 1.0 if approximately_equal(a, 0.0, c) else 0.0)
        return StepResult.go(index + 1)

    def op_snaz(self, op: Operation, index: int) -> StepResult:
        a, c = (self.value(operand) for operand in op.operands[1:])
        self.store(op.operands[0], 0.0 if approximately_equal(a, 0.0, c) else 1.0)
        return StepResult.go(index + 1)

    def op_snan(self, op: Operation, index: int) -> StepResult:
        self.store(op.operands[0], 1.0 if math.isnan(self.value(op.operands[1])) else 0.0)
        return StepResult.go(index + 1)

    def op_snanz(self, op: Operation, index: int) -> StepResult:
        self.store(op.operands[0], 0.0 if math.isnan(self.value(op.operands[1])) else 1.0)
        return StepResult.go(index + 1)

    def op_sdse(self, op: Operation, index: int) -> StepResult:
        present = self.gateway.resolve(self.device_ref(op.operands[1])) is not None
        self.store(op.operands[0], 1.0 if present else 0.0)
        return StepResult.go(index + 1)

    def op_sdns(self, op: Operation, index: int) -> StepResult:
        present = self.gateway.resolve(self.device_ref(op.operands[1])) is not None
        self.store(op.operands[0], 0.0 if present else 1.0)
        return StepResult.go(index + 1)

    # ---------------------------
    # Bitwise
    # ---------------------------
    def op_bitwise(self, op: Operation, index: int) -> StepResult:
        a = to_payload(self.value(op.operands[1]))
        b = to_payload(self.value(op.operands[2]))
        self.store(op.operands[0], from_payload(BITWISE[op.opcode](a, b)))
        return StepResult.go(index + 1)

    def op_not(self, op: Operation, index: int) -> StepResult:
        self.store(op.operands[0], from_payload(~to_payload(self.value(op.operands[1]))))
        return StepResult.go(index + 1)

    def _shift_operands(self, op: Operation):
        payload = to_payload(self.value(op.operands[1]))
        return payload, check_shift(self.integer(op.operands[2]))

    def op_sll(self, op: Operation, index: int) -> StepResult:
        payload, amount = self._shift_operands(op)
        self.store(op.operands[0], from_payload(payload << amount))
        return StepResult.go(index + 1)

    op_sla = op_sll

    def op_srl(self, op: Operation, index: int) -> StepResult:
        payload, amount = self._shift_operands(op)
        self.store(op.operands[0], from_payload(payload >> amount))
        return StepResult.go(index + 1)

    def op_sra(self, op: Operation, index: int) -> StepResult:
        payload, amount = self._shift_operands(op)
        signed = int(from_payload(payload))
        self.store(op.operands[0], from_payload(signed >> amount))
        return StepResult.go(index + 1)

    def op_ext(self, op: Operation, index: int) -> StepResult:
        payload = to_payload(self.value(op.operands[1]))
        offset = self.integer(op.operands[2])
        length = self.integer(op.operands[3])
        check_bit_field(offset, length)
        self.store(op.operands[0], from_payload((payload >> offset) & ((1 << length) - 1)))
        return StepResult.go(index + 1)

    def op_ins(self, op: Operation, index: int) -> StepResult:
        destination = resolve_register(self.program, op.operands[0])
        current = to_payload(float(self.program.registers[destination]))
        field = to_payload(self.value(op.operands[1]))
        offset = self.integer(op.operands[2])
        length = self.integer(op.operands[3])
        check_bit_field(offset, length)
        mask = ((1 << length) - 1) << offset
        self.program.registers[destination] = from_payload((current & ~mask) | ((field << offset) & mask))
        return StepResult.go(index + 1)

    # ---------------------------
    # Stack / memory
    # ---------------------------
    def op_push(self, op: Operation, index: int) -> StepResult:
        self.program.push(self.value(op.operands[0]))
        return StepResult.go(index + 1)

    def op_pop(self, op: Operation, index: int) -> StepResult:
        destination = resolve_register(self.program, op.operands[0])
        self.program.registers[destination] = self.program.pop()
        return StepResult.go(index + 1)

    def op_peek(self, op: Operation, index: int) -> StepResult:
        self.store(op.operands[0], self.program.peek())
        return StepResult.go(index + 1)

    def op_poke(self, op: Operation, index: int) -> StepResult:
        self.program.write_memory(self.integer(op.operands[0]), self.value(op.operands[1]))
        return StepResult.go(index + 1)

    def op_get(self, op: Operation, index: int) -> StepResult:
        memory = self.memory(self.device_ref(op.operands[1]))
        self.store(op.operands[0], memory.read_memory(self.integer(op.operands[2])))
        return StepResult.go(index + 1)

    def op_getd(self, op: Operation, index: int) -> StepResult:
        memory = self.memory(self.id_ref(op.operands[1]))
        self.store(op.operands[0], memory.read_memory(self.integer(op.operands[2])))
        return StepResult.go(index + 1)

    def op_put(self, op: Operation, index: int) -> StepResult:
        memory = self.memory(self.device_ref(op.operands[0]))
        memory.write_memory(self.integer(op.operands[1]), self.value(op.operands[2]))
        return StepResult.go(index + 1)

    def op_putd(self, op: Operation, index: int) -> StepResult:
        memory = self.memory(self.id_ref(op.operands[0]))
        memory.write_memory(self.integer(op.operands[1]), self.value(op.operands[2]))
        return StepResult.go(index + 1)

    def op_clr(self, op: Operation, index: int) -> StepResult:
        self.memory(self.device_ref(op.operands[0])).clear_memory()
        return StepResult.go(index + 1)

    def op_clrd(self, op: Operation, index: int) -> StepResult:
        self.memory(self.id_ref(op.operands[0])).clear_memory()
        return StepResult.go(index + 1)

    # ---------------------------
    # Device logic
    # ---------------------------
    def _load(self, device: Device, logic_type: LogicType) -> float:
        if not device.can_logic_read(logic_type):
            raise ChipRuntimeError(ErrorKind.INCORRECT_LOGIC_TYPE, f"Cannot read {logic_type.name}")
        return device.get_logic_value(logic_type)

    def _store(self, device: Device, logic_type: LogicType, value: float):
        if not device.can_logic_write(logic_type):
            raise ChipRuntimeError(ErrorKind.INCORRECT_LOGIC_TYPE, f"Cannot write {logic_type.name}")
        device.set_logic_value(logic_type, value)

    def op_l(self, op: Operation, index: int) -> StepResult:
        device = self.device(self.device_ref(op.operands[1]))
        self.store(op.operands[0], self._load(device, self.logic_type(op.operands[2])))
        return StepResult.go(index + 1)

    def op_ld(self, op: Operation, index: int) -> StepResult:
        device = self.device(self.id_ref(op.operands[1]))
        self.store(op.operands[0], self._load(device, self.logic_type(op.operands[2])))
        return StepResult.go(index + 1)

    def op_s(self, op: Operation, index: int) -> StepResult:
        device = self.device(self.device_ref(op.operands[0]))
        self._store(device, self.logic_type(op.operands[1]), self.value(op.operands[2]))
        return StepResult.go(index + 1)

    def op_sd(self, op: Operation, index: int) -> StepResult:
        device = self.device(self.id_ref(op.operands[0]))
        self._store(device, self.logic_type(op.operands[1]), self.value(op.operands[2]))
        return StepResult.go(index + 1)

    def op_ls(self, op: Operation, index: int) -> StepResult:
        device = self.device(self.device_ref(op.operands[1]))
        slot = self.integer(op.operands[2])
        slot_type = self.slot_type(op.operands[3])
        if not device.can_logic_read(slot_type, slot):
            raise ChipRuntimeError(ErrorKind.INCORRECT_LOGIC_SLOT_TYPE,
                                   f"Cannot read {slot_type.name} from slot {slot}")
        self.store(op.operands[0], device.get_logic_value(slot_type, slot))
        return StepResult.go(index + 1)

    def op_ss(self, op: Operation, index: int) -> StepResult:
        device = self.device(self.device_ref(op.operands[0]))
        slot = self.integer(op.operands[1])
        slot_type = self.slot_type(op.operands[2])
        if not device.can_logic_write(slot_type, slot):
            raise ChipRuntimeError(ErrorKind.DEVICE_NOT_SLOT_WRITABLE,
                                   f"Cannot write {slot_type.name} to slot {slot}")
        device.set_logic_value(slot_type, self.value(op.operands[3]), slot)
        return StepResult.go(index + 1)

    def op_lr(self, op: Operation, index: int) -> StepResult:
        device = self.device(self.device_ref(op.operands[1]))
        mode = resolve_enum(self.program, op.operands[2], LogicReagentMode, ErrorKind.INCORRECT_REAGENT_MODE)
        self.store(op.operands[0], device.get_reagent_value(mode, self.integer(op.operands[3])))
        return StepResult.go(index + 1)

    def op_rmap(self, op: Operation, index: int) -> StepResult:
        device = self.device(self.device_ref(op.operands[1]))
        self.store(op.operands[0], device.reagent_map(self.integer(op.operands[2])))
        return StepResult.go(index + 1)

    # ---------------------------
    # Batch
    # ---------------------------
    def batch_mode(self, operand) -> LogicBatchMethod:
        return resolve_enum(self.program, operand, LogicBatchMethod, ErrorKind.INCORRECT_BATCH_MODE)

    def _batch_load(self, devices: List[Device], logic_type: LogicType) -> List[float]:
        return [self._load(device, logic_type) for device in devices]

    def _batch_load_slot(self, devices: List[Device], slot: int, slot_type: LogicSlotType) -> List[float]:
        values = []
        for device in devices:
            if not device.can_logic_read(slot_type, slot):
                raise ChipRuntimeError(ErrorKind.INCORRECT_LOGIC_SLOT_TYPE,
                                       f"Cannot read {slot_type.name} from slot {slot}")
            values.append(device.get_logic_value(slot_type, slot))
        return values

    def op_lb(self, op: Operation, index: int) -> StepResult:
        devices = self.batch(self.integer(op.operands[1]))
        values = self._batch_load(devices, self.logic_type(op.operands[2]))
        self.store(op.operands[0], aggregate(values, self.batch_mode(op.operands[3])))
        return StepResult.go(index + 1)

    def op_lbn(self, op: Operation, index: int) -> StepResult:
        devices = self.batch(self.integer(op.operands[1]), self.integer(op.operands[2]))
        values = self._batch_load(devices, self.logic_type(op.operands[3]))
        self.store(op.operands[0], aggregate(values, self.batch_mode(op.operands[4])))
        return StepResult.go(index + 1)

    def op_lbs(self, op: Operation, index: int) -> StepResult:
        devices = self.batch(self.integer(op.operands[1]))
        values = self._batch_load_slot(devices, self.integer(op.operands[2]), self.slot_type(op.operands[3]))
        self.store(op.operands[0], aggregate(values, self.batch_mode(op.operands[4])))
        return StepResult.go(index + 1)

    def op_lbns(self, op: Operation, index: int) -> StepResult:
        devices = self.batch(self.integer(op.operands[1]), self.integer(op.operands[2]))
        values = self._batch_load_slot(devices, self.integer(op.operands[3]), self.slot_type(op.operands[4]))
        self.store(op.operands[0], aggregate(values, self.batch_mode(op.operands[5])))
        return StepResult.go(index + 1)

    def _batch_store(self, devices: List[Device], logic_type: LogicType, value: float):
        for device in devices:
            if not device.can_logic_write(logic_type):
                raise ChipRuntimeError(ErrorKind.INCORRECT_LOGIC_TYPE, f"Cannot write {logic_type.name}")
        for device in devices:
            device.set_logic_value(logic_type, value)

    def op_sb(self, op: Operation, index: int) -> StepResult:
        devices = self.batch(self.integer(op.operands[0]))
        self._batch_store(devices, self.logic_type(op.operands[1]), self.value(op.operands[2]))
        return StepResult.go(index + 1)

    def op_sbn(self, op: Operation, index: int) -> StepResult:
        devices = self.batch(self.integer(op.operands[0]), self.integer(op.operands[1]))
        self._batch_store(devices, self.logic_type(op.operands[2]), self.value(op.operands[3]))
        return StepResult.go(index + 1)

    def op_sbs(self, op: Operation, index: int) -> StepResult:
        devices = self.batch(self.integer(op.operands[0]))
        slot = self.integer(op.operands[1])
        slot_type = self.slot_type(op.operands[2])
        value = self.value(op.operands[3])
        for device in devices:
            if not device.can_logic_write(slot_type, slot):
                raise ChipRuntimeError(ErrorKind.DEVICE_NOT_SLOT_WRITABLE,
                                       f"Cannot write {slot_type.name} to slot {slot}")
        for device in devices:
            device.set_logic_value(slot_type, value, slot)
        return StepResult.go(index + 1)

    # ---------------------------
    # Jumps and branches
    # ---------------------------
    def line_target(self, operand) -> int:
        return to_integer(resolve_line(self.program, operand))

    def op_j(self, op: Operation, index: int) -> StepResult:
        return self.jump(index, self.line_target(op.operands[0]), relative=False, link=False)

    def op_jal(self, op: Operation, index: int) -> StepResult:
        return self.jump(index, self.line_target(op.operands[0]), relative=False, link=True)

    def op_jr(self, op: Operation, index: int) -> StepResult:
        return self.jump(index, self.line_target(op.operands[0]), relative=True, link=False)

    def branch_taken(self, spec: BranchSpec, operands) -> bool:
        kind = spec.kind
        if kind is BranchKind.COMPARE:
            return spec.test(self.value(operands[0]), self.value(operands[1]))
        if kind is BranchKind.COMPARE_ZERO:
            return spec.test(self.value(operands[0]), 0.0)
        if kind is BranchKind.APPROX:
            a, b, c = (self.value(operand) for operand in operands[:3])
            return approximately_equal(a, b, c) != spec.negate
        if kind is BranchKind.APPROX_ZERO:
            a, c = (self.value(operand) for operand in operands[:2])
            return approximately_equal(a, 0.0, c) != spec.negate
        if kind is BranchKind.NAN:
            return math.isnan(self.value(operands[0]))
        if kind is BranchKind.DEVICE_SET:
            present = self.gateway.resolve(self.device_ref(operands[0])) is not None
            return present != spec.negate

        # Not valid for load/store: missing device, or the logic type is not accessible
        device = self.gateway.resolve(self.device_ref(operands[0]))
        logic_type = self.logic_type(operands[1])
        if device is None:
            return True
        if kind is BranchKind.DEVICE_NOT_LOADABLE:
            return not device.can_logic_read(logic_type)
        return not device.can_logic_write(logic_type)

    def op_branch(self, op: Operation, index: int) -> StepResult:
        spec = BRANCHES[op.opcode]
        if not self.branch_taken(spec, op.operands):
            return StepResult.go(index + 1)
        return self.jump(index, self.line_target(op.operands[-1]), spec.relative, spec.link)
