"""
IC10 REPL
Interactive chip console: type instructions, step them, inspect the chip
"""

import logging
from typing import List, Optional

from chip import Chip
from operands import REGISTER_COUNT, RA_INDEX, SP_INDEX

logger = logging.getLogger(__name__)


def register_name(index: int) -> str:
    if index == SP_INDEX:
        return "sp"
    if index == RA_INDEX:
        return "ra"
    return f"r{index}"


def format_registers(values: List[float]) -> str:
    cells = [f"{register_name(i):>3} = {values[i]:g}" for i in range(REGISTER_COUNT)]
    rows = [cells[i:i + 6] for i in range(0, len(cells), 6)]
    return "\n".join("  ".join(f"{cell:<18}" for cell in row).rstrip() for row in rows)


class REPL:
    def __init__(self, chip: Optional[Chip] = None):
        self.chip = chip if chip is not None else Chip()
        self.lines: List[str] = []
        self.prompt = "ic10> "
        self.commands = {
            "help": self.show_help,
            "load": self.cmd_load,
            "step": self.cmd_step,
            "tick": self.cmd_tick,
            "regs": self.cmd_regs,
            "stack": self.cmd_stack,
            "aliases": self.cmd_aliases,
            "errors": self.cmd_errors,
            "list": self.cmd_list,
        }

    def run(self):
        """Start the REPL"""
        print("IC10 chip console")
        print("Type 'help' for help, 'exit' to quit.")
        print()

        while True:
            try:
                line = input(self.prompt)
            except KeyboardInterrupt:
                print("\nKeyboardInterrupt")
                continue
            except EOFError:
                print("\nGoodbye!")
                break

            if line.strip() in ("exit", "quit"):
                print("Goodbye!")
                break
            self.handle(line)

    def handle(self, line: str):
        parts = line.split()
        if parts and parts[0] in self.commands:
            self.commands[parts[0]](parts[1:])
        elif parts:
            self.append_line(line)

    def append_line(self, line: str):
        self.lines.append(line)
        self.recompile()

    def recompile(self):
        error = self.chip.load("\n".join(self.lines))
        if error is not None:
            print(f"Compile Error: {error} ({error.message})")

    # ---------------------------
    # Commands
    # ---------------------------
    def cmd_load(self, args: List[str]):
        if len(args) != 1:
            print("usage: load FILE")
            return
        try:
            with open(args[0], "r", encoding="utf-8") as f:
                source = f.read()
        except OSError as e:
            print(f"Error: {e}")
            return
        self.lines = source.splitlines()
        self.recompile()
        print(f"Loaded {len(self.lines)} line(s) from {args[0]}")

    def _count(self, args: List[str]) -> Optional[int]:
        if not args:
            return 1
        try:
            return max(int(args[0]), 0)
        except ValueError:
            print(f"Not a number: {args[0]}")
            return None

    def cmd_step(self, args: List[str]):
        count = self._count(args)
        if count is None:
            return
        for _ in range(count):
            result = self.chip.step()
            if result is None:
                print("Program halted")
                break
            if result.error is not None:
                print(f"Runtime Error: {result.error} ({result.error.message})")
                break
        print(f"line {self.chip.program.line_number}")

    def cmd_tick(self, args: List[str]):
        count = self._count(args)
        if count is None:
            return
        executed = 0
        for _ in range(count):
            executed += self.chip.tick()
            if self.chip.run_error is not None:
                break
        print(f"Ran {executed} line(s), now at line {self.chip.program.line_number}")
        if self.chip.run_error is not None:
            print(f"Runtime Error: {self.chip.run_error} ({self.chip.run_error.message})")

    def cmd_regs(self, args: List[str]):
        print(format_registers(self.chip.program.register_snapshot()))

    def cmd_stack(self, args: List[str]):
        count = self._count(args) if args else 16
        if count is None:
            return
        for address, value in enumerate(self.chip.program.stack_snapshot(count)):
            print(f"  [{address:3}] {value:g}")

    def cmd_aliases(self, args: List[str]):
        program = self.chip.program
        for name, target in sorted(program.aliases.items()):
            print(f"  {name} -> {target.kind.name.lower()} {target.index}")
        for name, value in sorted(program.defines.items()):
            print(f"  define {name} = {value:g}")
        for name, line in sorted(program.jump_tags.items()):
            print(f"  label {name} -> line {line + 1}")

    def cmd_errors(self, args: List[str]):
        program = self.chip.program
        print(f"compile: {program.compile_error or 'none'}")
        print(f"run:     {program.run_error or 'none'}")
        if program.on_fire:
            print("chip is on fire")

    def cmd_list(self, args: List[str]):
        for number, text in enumerate(self.lines):
            marker = ">" if number == self.chip.program.counter else " "
            print(f"{marker}{number + 1:4}  {text}")

    def show_help(self, args: Optional[List[str]] = None):
        """Show help information"""
        help_text = """
IC10 Chip Console Help

Commands:
  help          - Show this help
  exit, quit    - Exit the console
  load FILE     - Replace the program with the contents of FILE
  step [N]      - Execute N lines (default 1)
  tick [N]      - Run N ticks at the chip's line budget (default 1)
  regs          - Show the register file
  stack [N]     - Show the first N stack slots (default 16)
  aliases       - Show aliases, defines and labels
  errors        - Show compile and run-time errors
  list          - Show the program with the current line marked

Anything else is appended to the program, which is then recompiled:
  ic10> move r0 10
  ic10> add r1 r0 HASH("Foo")
  ic10> step 2
  ic10> regs
"""
        print(help_text)
