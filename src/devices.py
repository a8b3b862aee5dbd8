"""
IC10 Device Gateway
Abstract interface the chip uses to reach devices, plus an in-memory
implementation for the command line, the REPL and tests
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Dict, Iterable, List, Optional, Tuple

from errors import ChipRuntimeError, ErrorKind
from lexer import compute_hash
from logic_types import LogicReagentMode, LogicSlotType, LogicType, lookup_member

logger = logging.getLogger(__name__)

DEVICE_PIN_COUNT = 6


class RefKind(Enum):
    BASE = auto()
    PIN = auto()
    ID = auto()


@dataclass(frozen=True)
class DeviceRef:
    kind: RefKind
    index: int = -1
    network: Optional[int] = None

    @classmethod
    def base(cls, network: Optional[int] = None) -> "DeviceRef":
        return cls(RefKind.BASE, -1, network)

    @classmethod
    def pin(cls, index: int, network: Optional[int] = None) -> "DeviceRef":
        return cls(RefKind.PIN, index, network)

    @classmethod
    def by_id(cls, reference_id: int) -> "DeviceRef":
        return cls(RefKind.ID, reference_id)

    @property
    def is_base(self) -> bool:
        return self.kind is RefKind.BASE

    def __str__(self) -> str:
        if self.kind is RefKind.ID:
            return f"id:{self.index}"
        text = "db" if self.is_base else f"d{self.index}"
        if self.network is not None:
            text += f":{self.network}"
        return text


def check_memory_address(address: int, size: int) -> int:
    """Shared bounds check for chip stacks and device memory"""
    if address < 0:
        raise ChipRuntimeError(ErrorKind.STACK_UNDERFLOW, f"Address {address} below 0")
    if address >= size:
        raise ChipRuntimeError(ErrorKind.STACK_OVERFLOW, f"Address {address} beyond {size - 1}")
    return address


class Device(ABC):
    """A device the chip can query and command"""

    @abstractmethod
    def prefab_hash(self) -> int:
        pass

    @abstractmethod
    def name_hash(self) -> int:
        pass

    @abstractmethod
    def can_logic_read(self, logic_type, slot: Optional[int] = None) -> bool:
        pass

    @abstractmethod
    def can_logic_write(self, logic_type, slot: Optional[int] = None) -> bool:
        pass

    @abstractmethod
    def get_logic_value(self, logic_type, slot: Optional[int] = None) -> float:
        pass

    @abstractmethod
    def set_logic_value(self, logic_type, value: float, slot: Optional[int] = None) -> None:
        pass

    def get_reagent_value(self, mode: LogicReagentMode, reagent_hash: int) -> float:
        return 0.0

    def reagent_map(self, reagent_hash: int) -> float:
        return 0.0


class MemoryDevice(Device):
    """A device with addressable memory (get/put/clr)"""

    @abstractmethod
    def read_memory(self, address: int) -> float:
        pass

    @abstractmethod
    def write_memory(self, address: int, value: float) -> None:
        pass

    @abstractmethod
    def clear_memory(self) -> None:
        pass


class DeviceGateway(ABC):
    """Resolves device references for one chip"""

    def __init__(self):
        self.pin_labels: Dict[int, str] = {}

    @abstractmethod
    def resolve(self, ref: DeviceRef) -> Optional[Device]:
        pass

    @abstractmethod
    def batch_output(self) -> Optional[List[Device]]:
        pass

    def set_pin_label(self, index: int, label: Optional[str]):
        if label is None:
            self.pin_labels.pop(index, None)
        else:
            self.pin_labels[index] = label


class NullGateway(DeviceGateway):
    """A chip with nothing connected"""

    def resolve(self, ref: DeviceRef) -> Optional[Device]:
        return None

    def batch_output(self) -> Optional[List[Device]]:
        return []


# ---------------------------
# In-memory implementation
# ---------------------------

class SimpleDevice(Device):
    def __init__(self,
                 prefab: int,
                 name: int = 0,
                 logic: Optional[Dict[LogicType, float]] = None,
                 slots: Optional[Dict[Tuple[int, LogicSlotType], float]] = None,
                 read_only: Iterable = (),
                 reagents: Optional[Dict[Tuple[LogicReagentMode, int], float]] = None,
                 reference_id: Optional[int] = None):
        self.prefab = prefab
        self.name = name
        self.logic: Dict[LogicType, float] = dict(logic or {})
        self.slots: Dict[Tuple[int, LogicSlotType], float] = dict(slots or {})
        self.read_only = set(read_only)
        self.reagents: Dict[Tuple[LogicReagentMode, int], float] = dict(reagents or {})
        self.reference_id = reference_id

    def prefab_hash(self) -> int:
        return self.prefab

    def name_hash(self) -> int:
        return self.name

    def can_logic_read(self, logic_type, slot: Optional[int] = None) -> bool:
        if slot is None:
            return logic_type in self.logic
        return (slot, logic_type) in self.slots

    def can_logic_write(self, logic_type, slot: Optional[int] = None) -> bool:
        if logic_type in self.read_only:
            return False
        return self.can_logic_read(logic_type, slot)

    def get_logic_value(self, logic_type, slot: Optional[int] = None) -> float:
        if slot is None:
            return self.logic[logic_type]
        return self.slots[(slot, logic_type)]

    def set_logic_value(self, logic_type, value: float, slot: Optional[int] = None) -> None:
        if slot is None:
            self.logic[logic_type] = value
        else:
            self.slots[(slot, logic_type)] = value

    def get_reagent_value(self, mode: LogicReagentMode, reagent_hash: int) -> float:
        return self.reagents.get((mode, reagent_hash), 0.0)

    def reagent_map(self, reagent_hash: int) -> float:
        # Maps a reagent to the prefab hash of the item that carries it
        return self.reagents.get((LogicReagentMode.Recipe, reagent_hash), 0.0)

    def __repr__(self) -> str:
        return f"SimpleDevice(prefab={self.prefab}, name={self.name})"


class SimpleMemoryDevice(SimpleDevice, MemoryDevice):
    def __init__(self, prefab: int, memory_size: int = 512, **kwargs):
        super().__init__(prefab, **kwargs)
        self.memory: List[float] = [0.0] * memory_size

    def read_memory(self, address: int) -> float:
        return self.memory[check_memory_address(address, len(self.memory))]

    def write_memory(self, address: int, value: float) -> None:
        self.memory[check_memory_address(address, len(self.memory))] = value

    def clear_memory(self) -> None:
        self.memory = [0.0] * len(self.memory)


class SimpleGateway(DeviceGateway):
    """Six pins, a housing (db), and a list of devices visible to batch opcodes"""

    def __init__(self,
                 pins: Optional[Dict[int, Device]] = None,
                 base: Optional[Device] = None,
                 network: Optional[List[Device]] = None):
        super().__init__()
        self.pins: Dict[int, Device] = dict(pins or {})
        self.base = base
        self.network: Optional[List[Device]] = list(network) if network is not None else None

    def all_devices(self) -> List[Device]:
        seen = []
        for device in [self.base, *self.pins.values(), *(self.network or [])]:
            if device is not None and all(device is not other for other in seen):
                seen.append(device)
        return seen

    def resolve(self, ref: DeviceRef) -> Optional[Device]:
        if ref.kind is RefKind.BASE:
            return self.base
        if ref.kind is RefKind.PIN:
            return self.pins.get(ref.index)
        for device in self.all_devices():
            if getattr(device, "reference_id", None) == ref.index:
                return device
        return None

    def batch_output(self) -> Optional[List[Device]]:
        if self.network is None:
            return None
        return list(self.network)


def _logic_key(name: str, enum_cls):
    member = lookup_member(enum_cls, name)
    if member is None:
        raise ValueError(f"Unknown {enum_cls.__name__}: {name}")
    return member


def device_from_config(spec: Dict[str, Any]) -> SimpleDevice:
    """
    Build a device from a config mapping such as
    {"prefab": "StructureVolumePump", "logic": {"On": 1}, "slots": {"0": {"Occupied": 1}}, "memory": 512}
    """
    prefab = spec.get("prefab", 0)
    if isinstance(prefab, str):
        prefab = compute_hash(prefab)
    name = spec.get("name", 0)
    if isinstance(name, str):
        name = compute_hash(name)

    logic = {_logic_key(k, LogicType): float(v) for k, v in spec.get("logic", {}).items()}
    slots = {}
    for slot_index, values in spec.get("slots", {}).items():
        for k, v in values.items():
            slots[(int(slot_index), _logic_key(k, LogicSlotType))] = float(v)
    read_only = [_logic_key(k, LogicType) for k in spec.get("read_only", [])]
    kwargs = dict(name=name, logic=logic, slots=slots, read_only=read_only,
                  reference_id=spec.get("id"))

    memory_size = spec.get("memory")
    if memory_size:
        return SimpleMemoryDevice(prefab, memory_size=int(memory_size), **kwargs)
    return SimpleDevice(prefab, **kwargs)


def gateway_from_config(devices: Dict[str, Any]) -> SimpleGateway:
    """
    Build a gateway from the "devices" section of a chip config.

    Keys are "db", "d0".."d5" or "network"; every configured device is
    also placed on the batch network.
    """
    pins: Dict[int, Device] = {}
    base = None
    network: List[Device] = []
    for key, spec in devices.items():
        if key == "network":
            network.extend(device_from_config(item) for item in spec)
            continue
        device = device_from_config(spec)
        if key == "db":
            base = device
        elif key.startswith("d") and key[1:].isdigit() and int(key[1:]) < DEVICE_PIN_COUNT:
            pins[int(key[1:])] = device
        else:
            raise ValueError(f"Unknown device slot in config: {key}")
        network.append(device)
    logger.debug("Gateway configured with %d pinned device(s), %d on network", len(pins), len(network))
    return SimpleGateway(pins=pins, base=base, network=network)
