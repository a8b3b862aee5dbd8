#!/usr/bin/env python3
"""
IC10 Tooling Tests
Configuration loading, the command-line runner and the REPL
"""

import io
import json
import os
import tempfile
import unittest
import sys
from contextlib import redirect_stdout
from pathlib import Path

# Add repository root and src directory to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

import ic10
from chip import Chip
from config import ChipConfig, ConfigError, find_config, load_config
from interpreter import DEFAULT_LINES_PER_TICK
from logic_types import LogicType
from repl import REPL


class TempDirTestCase(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)

    def write(self, name, text):
        path = os.path.join(self.tmp.name, name)
        with open(path, "w", encoding="utf-8") as f:
            f.write(text)
        return path


class TestConfig(TempDirTestCase):

    def test_defaults(self):
        config = ChipConfig()
        self.assertEqual(config.lines_per_tick, DEFAULT_LINES_PER_TICK)
        self.assertEqual(config.ticks, 1)
        self.assertIsNone(config.seed)
        self.assertIsNone(find_config(self.tmp.name))

    def test_json(self):
        path = self.write("ic10.json", json.dumps({
            "lines_per_tick": 10,
            "ticks": 3,
            "devices": {"d0": {"prefab": "StructureVolumePump", "logic": {"On": 1}}},
        }))
        self.assertEqual(find_config(self.tmp.name), path)
        config = load_config(path)
        self.assertEqual(config.lines_per_tick, 10)
        self.assertEqual(config.ticks, 3)
        self.assertIn("d0", config.devices)

    def test_toml(self):
        path = self.write("ic10.toml", """
[chip]
lines_per_tick = 64
seed = 7

[devices.d0]
prefab = "StructureVolumePump"
logic = { On = 1 }
""")
        config = load_config(path)
        self.assertEqual(config.lines_per_tick, 64)
        self.assertEqual(config.seed, 7)
        self.assertEqual(config.devices["d0"]["logic"], {"On": 1})

    def test_invalid(self):
        with self.assertRaises(ConfigError):
            load_config(self.write("bad.json", "{not json"))
        with self.assertRaises(ConfigError):
            load_config(self.write("extra.json", json.dumps({"lines": 3})))
        with self.assertRaises(ConfigError):
            load_config(self.write("zero.json", json.dumps({"lines_per_tick": 0})))
        with self.assertRaises(ConfigError):
            load_config(self.write("chip.yaml", "lines_per_tick: 3"))
        with self.assertRaises(ConfigError):
            load_config(os.path.join(self.tmp.name, "missing.json"))


class TestCommandLine(TempDirTestCase):

    def setUp(self):
        super().setUp()
        self.config = self.write("ic10.json", json.dumps({
            "tick_seconds": 0,
            "devices": {"d0": {"prefab": "StructureVolumePump", "logic": {"Setting": 21}}},
        }))

    def run_cli(self, *args):
        out = io.StringIO()
        with redirect_stdout(out):
            code = ic10.main(["--config", self.config, *args])
        return code, out.getvalue()

    def test_run(self):
        source = self.write("prog.ic10", "l r0 d0 Setting\nmul r0 r0 2\n")
        code, out = self.run_cli(source)
        self.assertEqual(code, 0)
        self.assertIn("r0 = 42", out)
        self.assertIn("Executed 2 line(s)", out)

    def test_ticks_and_budget(self):
        source = self.write("loop.ic10", "add r0 r0 1\nyield\nj 0")
        code, out = self.run_cli(source, "--ticks", "3")
        self.assertEqual(code, 0)
        self.assertIn("r0 = 3", out)

        code, out = self.run_cli(source, "--lines-per-tick", "1", "--ticks", "1")
        self.assertIn("Executed 1 line(s)", out)

    def test_compile_error(self):
        source = self.write("bad.ic10", "move r0 1\nfrobnicate r0")
        code, out = self.run_cli(source)
        self.assertEqual(code, 1)
        self.assertIn("Compile Error: unrecognized-instruction at line 2", out)

    def test_run_error(self):
        source = self.write("fault.ic10", "l r0 d3 Setting")
        code, out = self.run_cli(source)
        self.assertEqual(code, 1)
        self.assertIn("Runtime Error: device-not-set at line 1", out)

    def test_missing_file(self):
        code, out = self.run_cli(os.path.join(self.tmp.name, "nope.ic10"))
        self.assertEqual(code, 1)
        self.assertIn("not found", out)

    def test_bad_config(self):
        self.config = self.write("broken.json", json.dumps({"devices": {"d7": {}}}))
        code, out = self.run_cli(self.write("prog.ic10", "yield"))
        self.assertEqual(code, 1)
        self.assertIn("Config Error", out)


class TestREPL(TempDirTestCase):

    def setUp(self):
        super().setUp()
        self.repl = REPL(Chip())

    def send(self, *lines):
        out = io.StringIO()
        with redirect_stdout(out):
            for line in lines:
                self.repl.handle(line)
        return out.getvalue()

    def test_append_and_step(self):
        self.send("move r0 5", "add r1 r0 1")
        self.assertEqual(self.repl.lines, ["move r0 5", "add r1 r0 1"])
        out = self.send("step 2", "regs")
        self.assertEqual(self.repl.chip.program.get_register(1), 6)
        self.assertIn("r1 = 6", out)
        self.assertIn("line 3", out)

    def test_compile_error_is_reported(self):
        out = self.send("bogus")
        self.assertIn("Compile Error", out)
        self.assertIn("unrecognized-instruction", self.send("errors"))

    def test_load_and_tick(self):
        path = self.write("prog.ic10", "define Speed 3\nalias out r2\nmove out Speed\nyield\nj 0")
        out = self.send(f"load {path}", "tick", "aliases", "stack 2")
        self.assertIn("Loaded 5 line(s)", out)
        self.assertIn("define Speed = 3", out)
        self.assertIn("out -> register 2", out)
        self.assertEqual(self.repl.chip.program.get_register(2), 3)

    def test_step_reports_faults(self):
        out = self.send("pop r0", "step")
        self.assertIn("Runtime Error: stack-underflow", out)

    def test_help(self):
        self.assertIn("step [N]", self.send("help"))


class TestChipRun(unittest.TestCase):

    def test_run_stops_on_halt(self):
        chip = Chip(lines_per_tick=4)
        chip.load("move r0 1\nmove r1 2")
        self.assertEqual(chip.run(10), 2)
        self.assertTrue(chip.program.halted)

    def test_step_ignores_budget(self):
        chip = Chip(lines_per_tick=1)
        chip.load("move r0 1\nmove r1 2\nmove r2 LogicType.On")
        for _ in range(3):
            chip.step()
        self.assertEqual(chip.program.get_register(2), float(LogicType.On))
        self.assertIsNone(chip.step())


if __name__ == '__main__':
    unittest.main(verbosity=2)
