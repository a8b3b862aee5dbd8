#!/usr/bin/env python3
"""
IC10 Device Tests
Device logic, memory, batch opcodes and gateway configuration
"""

import math
import unittest
import sys
from pathlib import Path

# Add src directory to Python path
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from chip import Chip
from devices import (DeviceRef, SimpleDevice, SimpleGateway, SimpleMemoryDevice,
                     device_from_config, gateway_from_config)
from errors import ErrorKind
from lexer import compute_hash
from logic_types import LogicReagentMode, LogicSlotType, LogicType

FOO = compute_hash("Foo")
BAR = compute_hash("Bar")


class ChipTestCase(unittest.TestCase):

    def run_chip(self, source, gateway):
        chip = Chip(gateway)
        self.assertIsNone(chip.load(source))
        chip.tick()
        return chip

    def assertFault(self, chip, kind):
        self.assertIsNotNone(chip.run_error)
        self.assertEqual(chip.run_error.kind, kind)


class TestDeviceLogic(ChipTestCase):

    def setUp(self):
        self.pump = SimpleDevice(compute_hash("StructureVolumePump"),
                                 logic={LogicType.On: 0, LogicType.Setting: 10, LogicType.PrefabHash: 0},
                                 slots={(0, LogicSlotType.Occupied): 1, (0, LogicSlotType.Quantity): 5},
                                 read_only=[LogicType.PrefabHash],
                                 reagents={(LogicReagentMode.Contents, FOO): 2.5},
                                 reference_id=77)
        self.gateway = SimpleGateway(pins={0: self.pump})

    def test_load_and_store(self):
        chip = self.run_chip("l r0 d0 Setting\ns d0 On 1\nadd r1 r0 5\ns d0 Setting r1", self.gateway)
        self.assertIsNone(chip.run_error)
        self.assertEqual(chip.program.get_register(0), 10)
        self.assertEqual(self.pump.logic[LogicType.On], 1)
        self.assertEqual(self.pump.logic[LogicType.Setting], 15)

    def test_capability_checks(self):
        self.assertFault(self.run_chip("l r0 d0 Pressure", self.gateway), ErrorKind.INCORRECT_LOGIC_TYPE)
        self.assertFault(self.run_chip("s d0 PrefabHash 1", self.gateway), ErrorKind.INCORRECT_LOGIC_TYPE)
        self.assertFault(self.run_chip("l r0 d0 Average", self.gateway), ErrorKind.INCORRECT_LOGIC_TYPE)
        self.assertFault(self.run_chip("l r0 d1 On", self.gateway), ErrorKind.DEVICE_NOT_SET)

    def test_slots(self):
        chip = self.run_chip("ls r0 d0 0 Occupied\nls r1 d0 0 Quantity\nss d0 0 Quantity 7", self.gateway)
        self.assertEqual(chip.program.get_register(0), 1)
        self.assertEqual(chip.program.get_register(1), 5)
        self.assertEqual(self.pump.slots[(0, LogicSlotType.Quantity)], 7)

        self.assertFault(self.run_chip("ls r0 d0 1 Occupied", self.gateway), ErrorKind.INCORRECT_LOGIC_SLOT_TYPE)
        self.assertFault(self.run_chip("ss d0 3 Quantity 1", self.gateway), ErrorKind.DEVICE_NOT_SLOT_WRITABLE)

    def test_reference_ids(self):
        chip = self.run_chip("ld r0 77 Setting\nsd 77 Setting 3", self.gateway)
        self.assertEqual(chip.program.get_register(0), 10)
        self.assertEqual(self.pump.logic[LogicType.Setting], 3)
        self.assertFault(self.run_chip("ld r0 78 Setting", self.gateway), ErrorKind.DEVICE_NOT_FOUND)

    def test_reagents(self):
        chip = self.run_chip('lr r0 d0 Contents HASH("Foo")\nlr r1 d0 Required HASH("Foo")', self.gateway)
        self.assertEqual(chip.program.get_register(0), 2.5)
        self.assertEqual(chip.program.get_register(1), 0)
        self.assertFault(self.run_chip("lr r0 d0 Power 1", self.gateway), ErrorKind.INCORRECT_REAGENT_MODE)

    def test_presence(self):
        chip = self.run_chip("sdse r0 d0\nsdse r1 d1\nsdns r2 d1\nmove r3 2\nsdse r4 dr3", self.gateway)
        self.assertEqual([chip.program.get_register(i) for i in (0, 1, 2, 4)], [1, 0, 1, 0])

        chip = self.run_chip("bdse d0 2\nmove r0 1\nbdns d1 4\nmove r1 1\nmove r2 1", self.gateway)
        self.assertEqual([chip.program.get_register(i) for i in range(3)], [0, 0, 1])

    def test_not_valid_branches(self):
        chip = self.run_chip("bdnvl d0 Pressure 2\nmove r0 1\nbdnvs d0 PrefabHash 4\nmove r1 1\n"
                             "bdnvl d1 On 6\nmove r2 1\nbdnvl d0 On 8\nmove r3 1", self.gateway)
        self.assertEqual([chip.program.get_register(i) for i in range(4)], [0, 0, 0, 1])


class TestMemory(ChipTestCase):

    def setUp(self):
        self.memory = SimpleMemoryDevice(1, memory_size=16, reference_id=5)
        self.gateway = SimpleGateway(pins={0: SimpleDevice(2), 1: self.memory})

    def test_put_and_get(self):
        chip = self.run_chip("put d1 5 42\nget r0 d1 5\nputd 5 6 7\ngetd r1 5 6", self.gateway)
        self.assertIsNone(chip.run_error)
        self.assertEqual(chip.program.get_register(0), 42)
        self.assertEqual(chip.program.get_register(1), 7)
        self.assertEqual(self.memory.memory[6], 7)

    def test_clear(self):
        self.memory.memory[3] = 1
        self.run_chip("clr d1", self.gateway)
        self.assertEqual(self.memory.memory, [0.0] * 16)

        chip = self.run_chip("poke 4 9\nclr db\nget r0 db 4", self.gateway)
        self.assertEqual(chip.program.get_register(0), 0)

    def test_errors(self):
        self.assertFault(self.run_chip("get r0 d0 0", self.gateway), ErrorKind.DEVICE_HAS_NO_MEMORY)
        self.assertFault(self.run_chip("put d1 16 1", self.gateway), ErrorKind.STACK_OVERFLOW)
        self.assertFault(self.run_chip("get r0 d1 -1", self.gateway), ErrorKind.STACK_UNDERFLOW)
        self.assertFault(self.run_chip("clrd 9", self.gateway), ErrorKind.DEVICE_NOT_FOUND)


class TestBatch(ChipTestCase):

    def setUp(self):
        self.devices = [
            SimpleDevice(FOO, name=BAR, logic={LogicType.Power: 2, LogicType.On: 0},
                         slots={(0, LogicSlotType.Quantity): 1}),
            SimpleDevice(FOO, logic={LogicType.Power: 4, LogicType.On: 0},
                         slots={(0, LogicSlotType.Quantity): 3}),
            SimpleDevice(FOO, logic={LogicType.Power: 6, LogicType.On: 0},
                         slots={(0, LogicSlotType.Quantity): 5}),
            SimpleDevice(BAR, logic={LogicType.Power: 100}),
        ]
        self.gateway = SimpleGateway(network=self.devices)

    def test_average(self):
        chip = self.run_chip('lb r0 HASH("Foo") Power Average', self.gateway)
        self.assertEqual(chip.program.get_register(0), 4)

    def test_aggregates(self):
        chip = self.run_chip('lb r0 HASH("Foo") Power Sum\nlb r1 HASH("Foo") Power Minimum\n'
                             'lb r2 HASH("Foo") Power Maximum\nlbn r3 HASH("Foo") HASH("Bar") Power Sum\n'
                             'lbs r4 HASH("Foo") 0 Quantity Sum\nlbns r5 HASH("Foo") HASH("Bar") 0 Quantity Average',
                             self.gateway)
        self.assertEqual([chip.program.get_register(i) for i in range(6)], [12, 2, 6, 2, 9, 1])

    def test_no_matches(self):
        chip = self.run_chip('lb r0 HASH("Baz") Power Average\nlb r1 HASH("Baz") Power Sum\n'
                             'lb r2 HASH("Baz") Power Maximum', self.gateway)
        self.assertTrue(math.isnan(chip.program.get_register(0)))
        self.assertEqual(chip.program.get_register(1), 0)
        self.assertEqual(chip.program.get_register(2), 0)

    def test_batch_writes(self):
        self.run_chip('sb HASH("Foo") On 1\nsbn HASH("Foo") HASH("Bar") Power 9\nsbs HASH("Foo") 0 Quantity 4',
                      self.gateway)
        self.assertEqual([d.logic[LogicType.On] for d in self.devices[:3]], [1, 1, 1])
        self.assertEqual([d.logic[LogicType.Power] for d in self.devices], [9, 4, 6, 100])
        self.assertEqual([d.slots[(0, LogicSlotType.Quantity)] for d in self.devices[:3]], [4, 4, 4])

    def test_batch_write_checks_every_match(self):
        self.devices[2].read_only.add(LogicType.On)
        chip = self.run_chip('sb HASH("Foo") On 1', self.gateway)
        self.assertFault(chip, ErrorKind.INCORRECT_LOGIC_TYPE)
        self.assertEqual([d.logic[LogicType.On] for d in self.devices[:3]], [0, 0, 0])

    def test_batch_errors(self):
        self.assertFault(self.run_chip('lb r0 HASH("Bar") On Sum', self.gateway), ErrorKind.INCORRECT_LOGIC_TYPE)
        self.assertFault(self.run_chip('lb r0 HASH("Foo") Power 7', self.gateway), ErrorKind.INCORRECT_BATCH_MODE)
        self.assertFault(self.run_chip('lb r0 HASH("Foo") Power Average', SimpleGateway()),
                         ErrorKind.DEVICE_LIST_NULL)


class TestGatewayConfig(unittest.TestCase):

    def test_device_from_config(self):
        device = device_from_config({
            "prefab": "StructureVolumePump",
            "name": "Main Pump",
            "logic": {"On": 1, "Setting": 20},
            "slots": {"0": {"Occupied": 1}},
            "read_only": ["Setting"],
            "id": 12,
        })
        self.assertEqual(device.prefab_hash(), -321403609)
        self.assertEqual(device.name_hash(), compute_hash("Main Pump"))
        self.assertEqual(device.get_logic_value(LogicType.On), 1)
        self.assertTrue(device.can_logic_read(LogicSlotType.Occupied, 0))
        self.assertFalse(device.can_logic_write(LogicType.Setting))
        self.assertEqual(device.reference_id, 12)

        memory = device_from_config({"prefab": 5, "memory": 32})
        self.assertIsInstance(memory, SimpleMemoryDevice)
        self.assertEqual(len(memory.memory), 32)

    def test_gateway_from_config(self):
        gateway = gateway_from_config({
            "db": {"prefab": "StructureCircuitHousing"},
            "d2": {"prefab": "StructureDaylightSensor", "logic": {"SolarAngle": 45}},
            "network": [{"prefab": "StructureVolumePump"}],
        })
        self.assertEqual(gateway.resolve(DeviceRef.pin(2)).prefab_hash(), 1076425094)
        self.assertIsNotNone(gateway.resolve(DeviceRef.base()))
        self.assertEqual(len(gateway.batch_output()), 3)

    def test_unknown_entries(self):
        with self.assertRaises(ValueError):
            gateway_from_config({"d9": {"prefab": 1}})
        with self.assertRaises(ValueError):
            device_from_config({"logic": {"Bogus": 1}})


if __name__ == '__main__':
    unittest.main(verbosity=2)
