"""
IC10 Error Types
Compile-time and run-time error kinds raised by the chip
"""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    # Compile-time
    UNRECOGNIZED_INSTRUCTION = "unrecognized-instruction"
    INCORRECT_ARGUMENT_COUNT = "incorrect-argument-count"
    DUPLICATE_DEFINE = "duplicate-define"
    DUPLICATE_LABEL = "duplicate-label"
    INVALID_DEFINE_VALUE = "invalid-define-value"
    MALFORMED_STRING = "malformed-string"
    MALFORMED_HASH = "malformed-hash"
    MALFORMED_HEX = "malformed-hex"
    MALFORMED_BINARY = "malformed-binary"

    # Run-time
    INCORRECT_VARIABLE = "incorrect-variable"
    INCORRECT_LOGIC_TYPE = "incorrect-logic-type"
    INCORRECT_LOGIC_SLOT_TYPE = "incorrect-logic-slot-type"
    INCORRECT_REAGENT_MODE = "incorrect-reagent-mode"
    INCORRECT_BATCH_MODE = "incorrect-batch-mode"
    DEVICE_NOT_FOUND = "device-not-found"
    DEVICE_NOT_SET = "device-not-set"
    DEVICE_LIST_NULL = "device-list-null"
    DEVICE_NOT_SLOT_WRITABLE = "device-not-slot-writable"
    DEVICE_HAS_NO_MEMORY = "device-has-no-memory"
    OUT_OF_REGISTER_BOUNDS = "out-of-register-bounds"
    OUT_OF_DEVICE_BOUNDS = "out-of-device-bounds"
    STACK_UNDERFLOW = "stack-underflow"
    STACK_OVERFLOW = "stack-overflow"
    INVALID_INTEGER = "invalid-integer"
    SHIFT_UNDERFLOW = "shift-underflow"
    SHIFT_OVERFLOW = "shift-overflow"
    PAYLOAD_OVERFLOW = "payload-overflow"
    LOGIC_TYPE_IS_NONE = "logic-type-is-none"
    ALIAS_NOT_FOUND = "alias-not-found"
    INDEX_OUT_OF_RANGE = "index-out-of-range"
    CHIP_CATCHING_FIRE = "chip-catching-fire"
    UNKNOWN = "unknown"


class IC10Error(Exception):
    """Base class for every error the chip reports"""

    def __init__(self, kind: ErrorKind, message: str = "", line: Optional[int] = None):
        self.kind = kind
        self.message = message or kind.value
        self.line = line
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.line is None:
            return f"{self.kind.value}: {self.message}"
        return f"{self.kind.value} at line {self.line + 1}: {self.message}"


class CompileError(IC10Error):
    pass


class ChipRuntimeError(IC10Error):
    pass
