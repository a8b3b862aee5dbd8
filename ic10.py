#!/usr/bin/env python3
"""
IC10 Chip Runner
Main entry point: compile an IC10 program and run it for a number of ticks
"""

import sys
import argparse
import logging
from pathlib import Path

# Add src directory to Python path
sys.path.insert(0, str(Path(__file__).parent / 'src'))

from chip import Chip
from config import ConfigError, load_config
from devices import gateway_from_config
from repl import REPL, format_registers

__version__ = "1.0.0"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='ic10', description='IC10 chip compiler and execution engine')
    parser.add_argument('file', nargs='?', help='IC10 source file to run')
    parser.add_argument('--ticks', type=int, help='Number of ticks to run')
    parser.add_argument('--lines-per-tick', type=int, help='Line budget per tick')
    parser.add_argument('--config', help='Path to ic10.json or ic10.toml')
    parser.add_argument('--verbose', action='store_true', help='Log at DEBUG level')
    parser.add_argument('--repl', action='store_true', help='Start interactive console')
    parser.add_argument('--version', action='version', version=f'IC10 {__version__}')
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format='%(levelname)s %(name)s: %(message)s')

    try:
        config = load_config(args.config)
        gateway = gateway_from_config(config.devices)
    except (ConfigError, ValueError) as e:
        print(f"Config Error: {e}")
        return 1

    lines_per_tick = args.lines_per_tick or config.lines_per_tick
    chip = Chip(gateway, lines_per_tick=lines_per_tick, seed=config.seed)

    if args.repl or not args.file:
        REPL(chip).run()
        return 0

    try:
        with open(args.file, 'r', encoding='utf-8') as f:
            source = f.read()
    except FileNotFoundError:
        print(f"Error: File '{args.file}' not found")
        return 1

    error = chip.load(source)
    if error is not None:
        print(f"Compile Error: {error} ({error.message})")
        return 1

    ticks = args.ticks if args.ticks is not None else config.ticks
    executed = chip.run(ticks, config.tick_seconds)

    print(f"Executed {executed} line(s); line {chip.program.line_number} of {chip.program.line_count}")
    print(format_registers(chip.program.register_snapshot()))
    if chip.run_error is not None:
        print(f"Runtime Error: {chip.run_error} ({chip.run_error.message})")
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
