"""
IC10 Logic Enumerations
Named logic types, slot types, batch methods, reagent modes and script constants
"""

import math
from enum import IntEnum
from typing import Dict, Optional, Type

import numpy as np


class LogicType(IntEnum):
    None_ = 0
    Power = 1
    Open = 2
    Mode = 3
    Error = 4
    Pressure = 5
    Temperature = 6
    PressureExternal = 7
    PressureInternal = 8
    Activate = 9
    Lock = 10
    Charge = 11
    Setting = 12
    Reagents = 13
    RatioOxygen = 14
    RatioCarbonDioxide = 15
    RatioNitrogen = 16
    RatioPollutant = 17
    RatioVolatiles = 18
    RatioWater = 19
    Horizontal = 20
    Vertical = 21
    SolarAngle = 22
    Maximum = 23
    Ratio = 24
    PowerPotential = 25
    PowerActual = 26
    Quantity = 27
    On = 28
    ImportQuantity = 29
    ImportSlotOccupant = 30
    ExportQuantity = 31
    ExportSlotOccupant = 32
    RequiredPower = 33
    HorizontalRatio = 34
    VerticalRatio = 35
    PowerRequired = 36
    Idle = 37
    Color = 38
    ElevatorSpeed = 39
    ElevatorLevel = 40
    RecipeHash = 41
    ExportSlotHash = 42
    ImportSlotHash = 43
    PlantHealth1 = 44
    PlantHealth2 = 45
    PlantHealth3 = 46
    PlantHealth4 = 47
    PlantGrowth1 = 48
    PlantGrowth2 = 49
    PlantGrowth3 = 50
    PlantGrowth4 = 51
    PlantEfficiency1 = 52
    PlantEfficiency2 = 53
    PlantEfficiency3 = 54
    PlantEfficiency4 = 55
    PlantHash1 = 56
    PlantHash2 = 57
    PlantHash3 = 58
    PlantHash4 = 59
    RequestHash = 60
    CompletionRatio = 61
    ClearMemory = 62
    ExportCount = 63
    ImportCount = 64
    PowerGeneration = 65
    TotalMoles = 66
    Volume = 67
    Plant = 68
    Harvest = 69
    Output = 70
    PressureSetting = 71
    TemperatureSetting = 72
    TemperatureExternal = 73
    Filtration = 74
    AirRelease = 75
    PositionX = 76
    PositionY = 77
    PositionZ = 78
    VelocityMagnitude = 79
    VelocityRelativeX = 80
    VelocityRelativeY = 81
    VelocityRelativeZ = 82
    RatioNitrousOxide = 83
    PrefabHash = 84
    ForceWrite = 85
    SignalStrength = 86
    SignalID = 87
    TargetX = 88
    TargetY = 89
    TargetZ = 90
    SettingInput = 91
    SettingOutput = 92
    CurrentResearchPodType = 93
    ManualResearchRequiredPod = 94
    MineablesInVicinity = 95
    MineablesInQueue = 96
    NextWeatherEventTime = 97
    Combustion = 98
    Fuel = 99
    ReturnFuelCost = 100
    LineNumber = 173
    ReferenceId = 217
    NameHash = 268


class LogicSlotType(IntEnum):
    None_ = 0
    Occupied = 1
    OccupantHash = 2
    Quantity = 3
    Damage = 4
    Efficiency = 5
    Health = 6
    Growth = 7
    Pressure = 8
    Temperature = 9
    Charge = 10
    ChargeRatio = 11
    Class = 12
    PressureWaste = 13
    PressureAir = 14
    MaxQuantity = 15
    Mature = 16
    PrefabHash = 17
    Seeding = 18
    LineNumber = 19
    Volume = 20
    Open = 21
    On = 22
    Lock = 23
    SortingClass = 24
    FilterType = 25
    ReferenceId = 26


class LogicBatchMethod(IntEnum):
    Average = 0
    Sum = 1
    Minimum = 2
    Maximum = 3


class LogicReagentMode(IntEnum):
    Contents = 0
    Required = 1
    Recipe = 2
    TotalContents = 3


# Script-visible name for each family, used for qualified names like LogicType.Power
ENUM_FAMILIES: Dict[str, Type[IntEnum]] = {
    "LogicType": LogicType,
    "LogicSlotType": LogicSlotType,
    "LogicBatchMethod": LogicBatchMethod,
    "LogicReagentMode": LogicReagentMode,
}

SMALLEST_SUBNORMAL = float(np.finfo(np.float64).smallest_subnormal)

CONSTANTS: Dict[str, float] = {
    "nan": math.nan,
    "pinf": math.inf,
    "ninf": -math.inf,
    "pi": math.pi,
    "tau": math.tau,
    "deg2rad": math.pi / 180.0,
    "rad2deg": 180.0 / math.pi,
    "epsilon": SMALLEST_SUBNORMAL,
    "rgas": 8.31446261815324,
}


def member_name(member: IntEnum) -> str:
    """Script spelling of an enum member (the trailing underscore on None_ is dropped)"""
    return member.name.rstrip("_")


def lookup_member(enum_cls: Type[IntEnum], name: str) -> Optional[IntEnum]:
    """Find a member of one family by its script name, bare or qualified"""
    if "." in name:
        family, _, name = name.partition(".")
        if ENUM_FAMILIES.get(family) is not enum_cls:
            return None
    for member in enum_cls:
        if member_name(member) == name:
            return member
    return None


def lookup_any(name: str) -> Optional[IntEnum]:
    """Find a member in any family; bare names are tried in family order"""
    for enum_cls in ENUM_FAMILIES.values():
        member = lookup_member(enum_cls, name)
        if member is not None:
            return member
    return None


def from_ordinal(enum_cls: Type[IntEnum], value: int) -> Optional[IntEnum]:
    try:
        return enum_cls(value)
    except ValueError:
        return None
