"""
IC10 Chip Configuration
Loads ic10.json / ic10.toml into a ChipConfig
"""

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import toml

from interpreter import DEFAULT_LINES_PER_TICK

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILES = ("ic10.json", "ic10.toml")


class ConfigError(Exception):
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


@dataclass
class ChipConfig:
    lines_per_tick: int = DEFAULT_LINES_PER_TICK
    ticks: int = 1
    tick_seconds: float = 0.5
    seed: Optional[int] = None
    devices: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChipConfig":
        chip = data.get("chip", data)
        known = {"lines_per_tick", "ticks", "tick_seconds", "seed", "devices"}
        unknown = set(chip) - known - {"chip"}
        if unknown:
            raise ConfigError(f"Unknown config key(s): {', '.join(sorted(unknown))}")
        config = cls(
            lines_per_tick=int(chip.get("lines_per_tick", DEFAULT_LINES_PER_TICK)),
            ticks=int(chip.get("ticks", 1)),
            tick_seconds=float(chip.get("tick_seconds", 0.5)),
            seed=chip.get("seed"),
            devices=dict(data.get("devices", chip.get("devices", {}))),
        )
        if config.lines_per_tick < 1:
            raise ConfigError("lines_per_tick must be at least 1")
        if config.ticks < 0:
            raise ConfigError("ticks must not be negative")
        return config


def find_config(directory: str = ".") -> Optional[str]:
    for name in DEFAULT_CONFIG_FILES:
        path = os.path.join(directory, name)
        if os.path.isfile(path):
            return path
    return None


def load_config(config_path: Optional[str] = None) -> ChipConfig:
    """Read an explicit config file, else ic10.json or ic10.toml in the working directory"""
    if not config_path:
        config_path = find_config()
    if not config_path:
        return ChipConfig()

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            if config_path.endswith(".json"):
                data = json.load(f)
            elif config_path.endswith(".toml"):
                data = toml.load(f)
            else:
                raise ConfigError(f"Unsupported config format: {config_path}")
    except (json.JSONDecodeError, toml.TomlDecodeError) as e:
        raise ConfigError(f"Could not parse {config_path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Could not read {config_path}: {e}") from e

    logger.debug("[config] loaded %s", config_path)
    return ChipConfig.from_dict(data)
