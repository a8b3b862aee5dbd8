"""
IC10 Operands
Parses operand tokens into descriptors at compile time and resolves them
against a program's registers and tables at run time
"""

import math
import re
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, Type, Union

from devices import DeviceRef, DEVICE_PIN_COUNT
from errors import ChipRuntimeError, ErrorKind
from logic_types import CONSTANTS, lookup_any, lookup_member, from_ordinal

REGISTER_COUNT = 18
SP_INDEX = 16
RA_INDEX = 17

_REGISTER_RE = re.compile(r"^(r+)(\d+)$")
_DEVICE_RE = re.compile(r"^d(?:(b)|(\d+)|(r+)(\d+))(?::(\d+))?$")
_NUMBER_RE = re.compile(r"^[-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?$")
_HEX_RE = re.compile(r"^\$[0-9A-Fa-f_]+$")
_BINARY_RE = re.compile(r"^%[01_]+$")
_NAME_RE = re.compile(r"^[A-Za-z_.][A-Za-z0-9_.]*$")


class OperandKind(Enum):
    REGISTER = auto()
    VALUE = auto()
    LINE = auto()
    DEVICE = auto()
    LOGIC_TYPE = auto()
    SLOT_TYPE = auto()
    BATCH_MODE = auto()
    REAGENT_MODE = auto()
    NAME = auto()
    TARGET = auto()


class AliasKind(Enum):
    REGISTER = auto()
    DEVICE = auto()
    NETWORK = auto()


@dataclass(frozen=True)
class AliasTarget:
    kind: AliasKind
    index: int
    network: Optional[int] = None

    def device_ref(self) -> DeviceRef:
        if self.index < 0:
            return DeviceRef.base()
        return DeviceRef.pin(self.index, self.network)


# Operand descriptors

@dataclass(frozen=True)
class Literal:
    token: str
    value: float


@dataclass(frozen=True)
class RegisterChain:
    token: str
    depth: int
    base: int


@dataclass(frozen=True)
class DeviceSpec:
    token: str
    is_base: bool = False
    pin: Optional[int] = None
    depth: int = 0
    register: Optional[int] = None
    network: Optional[int] = None


@dataclass(frozen=True)
class Name:
    token: str


@dataclass(frozen=True)
class Invalid:
    token: str


Operand = Union[Literal, RegisterChain, DeviceSpec, Name, Invalid]


def parse_number(token: str) -> Optional[float]:
    """Parse a decimal, $hex or %binary literal; None if the token is not one"""
    if _NUMBER_RE.match(token):
        return float(token)
    if _HEX_RE.match(token):
        return float(int(token[1:].replace("_", ""), 16))
    if _BINARY_RE.match(token):
        return float(int(token[1:].replace("_", ""), 2))
    return None


def parse_operand(token: str) -> Operand:
    number = parse_number(token)
    if number is not None:
        return Literal(token, number)

    match = _REGISTER_RE.match(token)
    if match:
        return RegisterChain(token, len(match.group(1)) - 1, int(match.group(2)))

    match = _DEVICE_RE.match(token)
    if match:
        base, pin, chain, register, network = match.groups()
        network = int(network) if network is not None else None
        if base:
            return DeviceSpec(token, is_base=True, network=network)
        if pin is not None:
            return DeviceSpec(token, pin=int(pin), network=network)
        return DeviceSpec(token, depth=len(chain) - 1, register=int(register), network=network)

    if _NAME_RE.match(token):
        return Name(token)
    return Invalid(token)


# Run-time resolution. `program` is anything exposing registers, aliases,
# defines and jump_tags (see program.Program).

def to_integer(value: float, kind: ErrorKind = ErrorKind.INVALID_INTEGER) -> int:
    if not math.isfinite(value):
        raise ChipRuntimeError(kind, f"{value} is not a valid integer")
    return int(round(value))


def check_register_index(index: int) -> int:
    if index < 0 or index >= REGISTER_COUNT:
        raise ChipRuntimeError(ErrorKind.OUT_OF_REGISTER_BOUNDS, f"Register index {index} out of bounds")
    return index


def follow_chain(program, base: int, depth: int) -> int:
    """Start at register `base` and perform `depth` levels of indirection"""
    index = check_register_index(base)
    for _ in range(depth):
        value = float(program.registers[index])
        index = check_register_index(to_integer(value, ErrorKind.OUT_OF_REGISTER_BOUNDS))
    return index


def _alias(program, name: str) -> Optional[AliasTarget]:
    return program.aliases.get(name)


def resolve_register(program, operand: Operand) -> int:
    """Resolve a destination operand to a register index"""
    if isinstance(operand, RegisterChain):
        return follow_chain(program, operand.base, operand.depth)
    if isinstance(operand, Name):
        target = _alias(program, operand.token)
        if target is None:
            raise ChipRuntimeError(ErrorKind.ALIAS_NOT_FOUND, f"Alias not found: {operand.token}")
        if target.kind is not AliasKind.REGISTER:
            raise ChipRuntimeError(ErrorKind.INCORRECT_VARIABLE, f"{operand.token} is not a register")
        return check_register_index(target.index)
    raise ChipRuntimeError(ErrorKind.INCORRECT_VARIABLE, f"{operand.token} is not a register")


def _resolve_name(program, name: str, allow_jump_tags: bool) -> float:
    if name in program.defines:
        return program.defines[name]
    target = _alias(program, name)
    # Device aliases are skipped here; the name may still be a label or constant
    if target is not None and target.kind is AliasKind.REGISTER:
        return float(program.registers[check_register_index(target.index)])
    if allow_jump_tags and name in program.jump_tags:
        return float(program.jump_tags[name])
    if name in CONSTANTS:
        return CONSTANTS[name]
    member = lookup_any(name)
    if member is not None:
        return float(int(member))
    if target is not None:
        raise ChipRuntimeError(ErrorKind.INCORRECT_VARIABLE, f"{name} does not alias a register")
    raise ChipRuntimeError(ErrorKind.ALIAS_NOT_FOUND, f"Alias not found: {name}")


def resolve_value(program, operand: Operand) -> float:
    if isinstance(operand, Literal):
        return operand.value
    if isinstance(operand, RegisterChain):
        return float(program.registers[follow_chain(program, operand.base, operand.depth)])
    if isinstance(operand, Name):
        return _resolve_name(program, operand.token, allow_jump_tags=False)
    raise ChipRuntimeError(ErrorKind.INCORRECT_VARIABLE, f"{operand.token} is not a value")


def resolve_line(program, operand: Operand) -> float:
    """Like resolve_value, but jump tags are visible"""
    if isinstance(operand, Name):
        return _resolve_name(program, operand.token, allow_jump_tags=True)
    return resolve_value(program, operand)


def resolve_integer(program, operand: Operand) -> int:
    return to_integer(resolve_value(program, operand))


def resolve_device_spec(program, spec: DeviceSpec) -> DeviceRef:
    if spec.is_base:
        return DeviceRef.base(spec.network)
    if spec.pin is not None:
        pin = spec.pin
    else:
        index = follow_chain(program, spec.register, spec.depth)
        pin = to_integer(float(program.registers[index]), ErrorKind.OUT_OF_DEVICE_BOUNDS)
    if pin < 0 or pin >= DEVICE_PIN_COUNT:
        raise ChipRuntimeError(ErrorKind.OUT_OF_DEVICE_BOUNDS, f"Device index {pin} out of bounds")
    return DeviceRef.pin(pin, spec.network)


def resolve_device(program, operand: Operand) -> DeviceRef:
    if isinstance(operand, Name):
        target = _alias(program, operand.token)
        if target is None:
            raise ChipRuntimeError(ErrorKind.ALIAS_NOT_FOUND, f"Alias not found: {operand.token}")
        if target.kind is AliasKind.REGISTER:
            raise ChipRuntimeError(ErrorKind.INCORRECT_VARIABLE, f"{operand.token} is not a device")
        return target.device_ref()
    if isinstance(operand, DeviceSpec):
        return resolve_device_spec(program, operand)
    raise ChipRuntimeError(ErrorKind.INCORRECT_VARIABLE, f"{operand.token} is not a device")


def resolve_alias_target(program, operand: Operand) -> AliasTarget:
    if isinstance(operand, RegisterChain):
        return AliasTarget(AliasKind.REGISTER, follow_chain(program, operand.base, operand.depth))
    if isinstance(operand, DeviceSpec):
        ref = resolve_device_spec(program, operand)
        index = -1 if ref.is_base else ref.index
        kind = AliasKind.DEVICE if operand.network is None else AliasKind.NETWORK
        return AliasTarget(kind, index, operand.network)
    raise ChipRuntimeError(ErrorKind.INCORRECT_VARIABLE, f"{operand.token} cannot be aliased")


def resolve_enum(program, operand: Operand, enum_cls: Type, kind: ErrorKind):
    """
    Resolve a logic type / slot type / batch mode / reagent mode operand.

    A name is looked up in the expected family first. Names from other
    families are rejected rather than converted through their ordinal.
    Anything else is read as a value and must be a valid ordinal.
    """
    if isinstance(operand, Name):
        member = lookup_member(enum_cls, operand.token)
        if member is not None:
            return member
        name = operand.token
        target = _alias(program, name)
        if name in program.defines:
            value = program.defines[name]
        elif target is not None and target.kind is AliasKind.REGISTER:
            value = float(program.registers[check_register_index(target.index)])
        else:
            raise ChipRuntimeError(kind, f"{name} is not a valid {enum_cls.__name__}")
    elif isinstance(operand, (Literal, RegisterChain)):
        value = resolve_value(program, operand)
    else:
        raise ChipRuntimeError(kind, f"{operand.token} is not a valid {enum_cls.__name__}")

    if not math.isfinite(value):
        raise ChipRuntimeError(kind, f"{value} is not a valid {enum_cls.__name__}")
    member = from_ordinal(enum_cls, int(round(value)))
    if member is None:
        raise ChipRuntimeError(kind, f"{value} is not a valid {enum_cls.__name__}")
    return member
