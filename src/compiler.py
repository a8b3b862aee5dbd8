"""
IC10 Line Compiler
Rebuilds a Program from source text, one Operation per line
"""

import logging
from typing import List, Optional

from errors import CompileError, ErrorKind
from instructions import Opcode, SIGNATURES, lookup_opcode
from lexer import split_lines, tokenize_line
from logic_types import CONSTANTS, lookup_any
from operands import Literal, Name, OperandKind, parse_operand
from program import ErrorSlot, Operation, Program

logger = logging.getLogger(__name__)


class Compiler:
    def __init__(self, program: Program):
        self.program = program

    def compile(self, source: str) -> Optional[ErrorSlot]:
        """
        Replace the program with a compilation of `source`.

        Returns the compile error slot (also stored on the program) or None.
        Lines before a failing line stay compiled; later lines are not looked at.
        """
        program = self.program
        program.reset()

        operations: List[Operation] = []
        for number, text in enumerate(split_lines(source)):
            try:
                operations.append(self.compile_line(number, text))
            except CompileError as error:
                error.line = number
                program.compile_error = ErrorSlot(error.kind, number, error.message)
                logger.warning("Compile error at line %d: %s", number + 1, error.message)
                break

        program.operations = operations
        logger.debug("Compiled %d line(s), %d define(s), %d label(s)",
                     len(operations), len(program.defines), len(program.jump_tags))
        return program.compile_error

    def compile_line(self, number: int, text: str) -> Operation:
        tokens = tokenize_line(text)
        if not tokens:
            return Operation(number, text=text)

        if len(tokens) == 1 and tokens[0].endswith(":") and len(tokens[0]) > 1:
            self.add_label(tokens[0][:-1], number)
            return Operation(number, text=text)

        opcode = lookup_opcode(tokens[0])
        if opcode is None:
            raise CompileError(ErrorKind.UNRECOGNIZED_INSTRUCTION, f"Unrecognized instruction: {tokens[0]}")

        signature = SIGNATURES[opcode]
        arguments = tokens[1:]
        if len(arguments) != len(signature):
            raise CompileError(ErrorKind.INCORRECT_ARGUMENT_COUNT,
                               f"{opcode.value} expects {len(signature)} argument(s), got {len(arguments)}")

        operands = tuple(
            Name(token) if kind is OperandKind.NAME else parse_operand(token)
            for kind, token in zip(signature, arguments)
        )

        if opcode is Opcode.DEFINE:
            self.add_define(operands[0].token, operands[1])

        return Operation(number, opcode, operands, text)

    def add_label(self, name: str, number: int):
        if name in self.program.jump_tags:
            raise CompileError(ErrorKind.DUPLICATE_LABEL, f"Label defined twice: {name}")
        self.program.jump_tags[name] = number

    def add_define(self, name: str, operand):
        defines = self.program.defines
        if name in defines:
            # Neither the old nor the new binding survives a duplicate
            del defines[name]
            raise CompileError(ErrorKind.DUPLICATE_DEFINE, f"Define declared twice: {name}")
        defines[name] = self.define_value(operand)

    def define_value(self, operand) -> float:
        if isinstance(operand, Literal):
            return operand.value
        if isinstance(operand, Name):
            name = operand.token
            if name in self.program.defines:
                return self.program.defines[name]
            if name in CONSTANTS:
                return CONSTANTS[name]
            member = lookup_any(name)
            if member is not None:
                return float(int(member))
        raise CompileError(ErrorKind.INVALID_DEFINE_VALUE, f"Define value must be a constant: {operand.token}")
