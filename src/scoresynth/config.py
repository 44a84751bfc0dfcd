"""Engine configuration: JSON defaults with environment overrides."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

_CONFIGS_DIR = Path(__file__).resolve().parent / "configs"

_ENV_PREFIX = "SCORESYNTH_"


def load_config(config_name: str = "engine.json") -> dict:
    """Load a JSON config file from the package configs/ directory."""
    config_path = _CONFIGS_DIR / config_name
    with open(config_path) as f:
        return json.load(f)


@dataclass(frozen=True)
class EngineConfig:
    """Engine-wide defaults.

    Attributes:
        sample_rate: Output sample rate in Hz.
        channels: Channel count of rendered buffers.
        master_volume: Initial master volume (0-1).
        tick_interval_s: Period of the playback progress tick.
        min_render_length_s: Floor applied to render and playback length.
        harmony_delay_s: Simulated processing delay of harmony generation.
        default_instrument: Instrument id selected in a new session.
        default_genre: Genre id selected in a new session.
    """

    sample_rate: int = 44100
    channels: int = 2
    master_volume: float = 0.7
    tick_interval_s: float = 0.1
    min_render_length_s: float = 4.0
    harmony_delay_s: float = 2.0
    default_instrument: str = "sine"
    default_genre: str = "pop"


def _env(name: str, default):
    """Resolve a setting from ``SCORESYNTH_<NAME>`` (preferred) or the default."""
    raw = os.environ.get(_ENV_PREFIX + name.upper())
    if raw is None:
        return default
    return type(default)(raw)


def get_engine_config() -> EngineConfig:
    """Build the EngineConfig from engine.json plus environment overrides."""
    data = load_config("engine.json")
    defaults = EngineConfig()
    values = {}
    for name in EngineConfig.__dataclass_fields__:
        default = getattr(defaults, name)
        from_file = type(default)(data.get(name, default))
        values[name] = _env(name, from_file)
    return EngineConfig(**values)
