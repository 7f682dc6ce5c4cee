"""
Configuration for the Reactive Cue Engine.

Settings live in a YAML file (default: config/settings.yaml) with one
section per component. Missing sections fall back to the dataclass
defaults; malformed values raise InvalidConfiguration at load time, never
during a session.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml
from loguru import logger

from reactive_engine.core.contracts import AnalyzerMode, PaletteMode, RevealCue
from reactive_engine.core.errors import InvalidConfiguration

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "settings.yaml"

# Visual effects the render collaborator knows how to show
VISUALIZER_IDS = [
    "scope",
    "grid",
    "cube",
    "sphere",
    "diffusedRing",
    "dna",
    "movingBoxes",
    "ribbons",
    "treadmill",
]


def _default_cues() -> List[Dict[str, Any]]:
    return [
        {"time": 0, "id": "diffusedRing"},
        {"time": 31, "id": "cube"},
        {"time": 46, "id": "sphere"},
        {"time": 60, "id": "cube"},
        {"time": 75, "id": "diffusedRing"},
        {"time": 77, "id": "grid"},
        {"time": 91, "id": "ribbons"},
        {"time": 120, "id": "treadmill"},
    ]


@dataclass
class SamplerSettings:
    """Analysis node and sampler settings.

    Attributes:
        buffer_size: Samples per tick (power of two)
        max_amplitude: Bound of sampled values and texture channels
        mode: "fft" or "waveform"
        fft_size: Analyser window length
        smoothing_time_constant: Analyser spectral smoothing
        min_decibels / max_decibels: Level range mapped to [0, 1]
    """
    buffer_size: int = 512
    max_amplitude: float = 1.0
    mode: str = "fft"
    fft_size: int = 1024
    smoothing_time_constant: float = 0.8
    min_decibels: float = -100.0
    max_decibels: float = -30.0

    @property
    def analyzer_mode(self) -> AnalyzerMode:
        try:
            return AnalyzerMode(self.mode)
        except ValueError as e:
            raise InvalidConfiguration(
                f"Unknown sampler mode '{self.mode}', expected one of {[m.value for m in AnalyzerMode]}"
            ) from e


@dataclass
class DetectorSettings:
    """Event detector settings; band_* select the scalar fed to it."""
    alpha: float = 0.65
    window_ms: float = 150.0
    threshold_delta: float = 0.1
    refractory_ms: float = 500.0
    band_low: float = 0.0
    band_high: float = 0.1


@dataclass
class PaletteSettings:
    palettes: List[str] = field(
        default_factory=lambda: ["rainbow", "sunset", "ocean", "neon"]
    )
    interval_seconds: float = 15.0
    mode: str = "time"

    @property
    def palette_mode(self) -> PaletteMode:
        try:
            return PaletteMode(self.mode)
        except ValueError as e:
            raise InvalidConfiguration(
                f"Unknown palette mode '{self.mode}', expected one of {[m.value for m in PaletteMode]}"
            ) from e


@dataclass
class EngineConfig:
    """Main configuration of the engine.

    Attributes:
        sampler: Analyser / sampler settings
        detector: Event detector settings
        palette: Palette cycling settings
        cues: Declaration-ordered `{time, id}` cue records
        allowed_cue_ids: Closed set of cue ids (None = any id)
        reveals: `{id, time, text?, duration?}` reveal records
        tick_rate_hz: Rate of the fixed-rate tick loop
    """
    sampler: SamplerSettings = field(default_factory=SamplerSettings)
    detector: DetectorSettings = field(default_factory=DetectorSettings)
    palette: PaletteSettings = field(default_factory=PaletteSettings)
    cues: List[Dict[str, Any]] = field(default_factory=_default_cues)
    allowed_cue_ids: Optional[List[str]] = field(default_factory=lambda: list(VISUALIZER_IDS))
    reveals: List[Dict[str, Any]] = field(default_factory=list)
    tick_rate_hz: float = 60.0

    def reveal_cues(self) -> List[RevealCue]:
        """Parse reveal records into RevealCue objects."""
        cues: List[RevealCue] = []
        for idx, record in enumerate(self.reveals):
            if not isinstance(record, Mapping) or "id" not in record or "time" not in record:
                raise InvalidConfiguration(f"Reveal record #{idx} must have 'id' and 'time': {record!r}")
            try:
                cues.append(RevealCue(
                    reveal_id=str(record["id"]),
                    trigger_time_seconds=float(record["time"]),
                    text=record.get("text"),
                    reveal_duration_seconds=float(record.get("duration", 0.0)),
                ))
            except (TypeError, ValueError) as e:
                raise InvalidConfiguration(f"Reveal record #{idx} is malformed: {record!r}") from e
        return cues


def _coerce(value: Any, type_name: str, where: str) -> Any:
    """Convert a YAML value to a settings field's annotated type."""
    if isinstance(value, bool):
        raise InvalidConfiguration(f"{where} must be {type_name}, got {value!r}")

    try:
        if type_name == "int":
            number = float(value)
            if not number.is_integer():
                raise ValueError(f"{value!r} is not an integer")
            return int(number)
        if type_name == "float":
            number = float(value)
            if not math.isfinite(number):
                raise ValueError(f"{value!r} is not finite")
            return number
        if type_name == "str":
            if not isinstance(value, str):
                raise TypeError(f"{value!r} is not a string")
            return value
        if type_name == "List[str]":
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise TypeError(f"{value!r} is not a list of strings")
            return list(value)
    except (TypeError, ValueError) as e:
        raise InvalidConfiguration(f"{where} must be {type_name}: {e}") from e
    return value


def _build_section(cls, data: Any, name: str):
    """Build a settings dataclass from a mapping, rejecting unknown keys and bad types."""
    if data is None:
        return cls()
    if not isinstance(data, Mapping):
        raise InvalidConfiguration(f"Section '{name}' must be a mapping, got {type(data).__name__}")

    types = {f.name: f.type for f in fields(cls)}
    unknown = set(data) - set(types)
    if unknown:
        raise InvalidConfiguration(f"Unknown keys in section '{name}': {sorted(unknown)}")

    values = {
        key: _coerce(value, types[key], f"{name}.{key}")
        for key, value in data.items()
    }
    return cls(**values)


def _positive_rate(value: Any) -> float:
    try:
        rate = float(value)
    except (TypeError, ValueError) as e:
        raise InvalidConfiguration(f"Invalid tick_rate_hz: {value!r}") from e
    if isinstance(value, bool) or not math.isfinite(rate) or rate <= 0:
        raise InvalidConfiguration(f"tick_rate_hz must be a positive number, got {value!r}")
    return rate


def config_from_dict(data: Optional[Mapping[str, Any]]) -> EngineConfig:
    """Build an EngineConfig from parsed YAML data."""
    if not data:
        return EngineConfig()
    if not isinstance(data, Mapping):
        raise InvalidConfiguration("Configuration root must be a mapping")

    config = EngineConfig(
        sampler=_build_section(SamplerSettings, data.get("sampler"), "sampler"),
        detector=_build_section(DetectorSettings, data.get("detector"), "detector"),
        palette=_build_section(PaletteSettings, data.get("palette"), "palette"),
    )

    if "cues" in data:
        if not isinstance(data["cues"], list):
            raise InvalidConfiguration("'cues' must be a list of {time, id} records")
        config.cues = list(data["cues"])
    if "allowed_cue_ids" in data:
        allowed = data["allowed_cue_ids"]
        if allowed is not None and not isinstance(allowed, list):
            raise InvalidConfiguration("'allowed_cue_ids' must be a list or null")
        config.allowed_cue_ids = allowed
    if "reveals" in data:
        if not isinstance(data["reveals"], list):
            raise InvalidConfiguration("'reveals' must be a list")
        config.reveals = list(data["reveals"])
    if "tick_rate_hz" in data:
        config.tick_rate_hz = _positive_rate(data["tick_rate_hz"])

    # Enum-valued fields are checked now so a bad file fails at load time
    _ = (config.sampler.analyzer_mode, config.palette.palette_mode)
    return config


def load_config(config_path: Optional[Union[str, Path]] = None) -> EngineConfig:
    """Load configuration from file.

    Args:
        config_path: YAML file; None tries the default location

    Returns:
        EngineConfig (defaults if no file is found)
    """
    if config_path is not None:
        path = Path(config_path)
        if not path.exists():
            raise InvalidConfiguration(f"Config file not found: {path}")
    else:
        path = DEFAULT_CONFIG_PATH
        if not path.exists():
            logger.info("No config file found, using defaults")
            return EngineConfig()

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise InvalidConfiguration(f"Malformed YAML in {path}: {e}") from e

    logger.info(f"Loaded configuration from {path}")
    return config_from_dict(data)
