"""Configuration helpers for terrain generation and water simulation runs."""
from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, replace
from typing import Mapping, Optional, Tuple


DEFAULT_ENV_PREFIX = "TERRAINFLOW"

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


# //1.- Parse booleans from config payloads and environment strings alike.
def _parse_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUTHY:
        return True
    if text in _FALSY:
        return False
    raise ValueError(f"Cannot interpret {value!r} as a boolean")


# //2.- Accept "x,z" strings or two element sequences for cell coordinates.
def parse_cell(value: object) -> Tuple[int, int]:
    if isinstance(value, str):
        parts = [part.strip() for part in value.split(",")]
    else:
        parts = list(value)  # type: ignore[arg-type]
    if len(parts) != 2:
        raise ValueError(f"Cell must have exactly two coordinates; got {value!r}")
    return (int(parts[0]), int(parts[1]))


# //3.- Knobs controlling diamond-square synthesis.
@dataclass(frozen=True)
class HeightmapSettings:
    """Perturbation and smoothing parameters for the heightmap generator."""

    initial_scale: float = 1.0
    roughness_growth: float = 1.6
    smooth: bool = True

    def __post_init__(self) -> None:
        if self.initial_scale <= 0.0:
            raise ValueError("initial_scale must be positive")
        if self.roughness_growth <= 0.0:
            raise ValueError("roughness_growth must be positive")

    @classmethod
    def from_mapping(cls, payload: Optional[Mapping[str, object]] = None) -> "HeightmapSettings":
        if not payload:
            return cls()
        defaults = cls()
        return cls(
            initial_scale=float(payload.get("initial_scale", defaults.initial_scale)),
            roughness_growth=float(payload.get("roughness_growth", defaults.roughness_growth)),
            smooth=_parse_bool(payload.get("smooth", defaults.smooth)),
        )


# //4.- Aggregate everything a host needs to generate terrain and run water.
@dataclass(frozen=True)
class SimulationConfig:
    """Resolved configuration for a terrain + water simulation run."""

    grid_exponent: int = 7
    seed: Optional[int] = None
    inflow_rate: float = 0.1
    initial_source_depth: float = 0.1
    source: Optional[Tuple[int, int]] = None
    heightmap: HeightmapSettings = field(default_factory=HeightmapSettings)

    def __post_init__(self) -> None:
        if self.grid_exponent < 1:
            raise ValueError("grid_exponent must be >= 1")
        if self.inflow_rate < 0.0:
            raise ValueError("inflow_rate must be non-negative")
        if self.initial_source_depth < 0.0:
            raise ValueError("initial_source_depth must be non-negative")

    @property
    def grid_width(self) -> int:
        return 2 ** self.grid_exponent + 1

    @property
    def surface_size(self) -> int:
        return self.grid_width - 1

    def resolve_source(self) -> Tuple[int, int]:
        """Return the configured source cell, defaulting to the surface center."""
        if self.source is not None:
            return self.source
        center = self.surface_size // 2
        return (center, center)

    def with_overrides(self, **overrides: object) -> "SimulationConfig":
        # //1.- Drop unset overrides so CLI flags only replace what the user passed.
        applied = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **applied)

    @classmethod
    def from_mapping(cls, payload: Optional[Mapping[str, object]] = None) -> "SimulationConfig":
        if not payload:
            return cls()
        defaults = cls()
        seed = payload.get("seed")
        source = payload.get("source")
        heightmap_payload = payload.get("heightmap")
        return cls(
            grid_exponent=int(payload.get("grid_exponent", defaults.grid_exponent)),
            seed=None if seed is None else int(seed),
            inflow_rate=float(payload.get("inflow_rate", defaults.inflow_rate)),
            initial_source_depth=float(
                payload.get("initial_source_depth", defaults.initial_source_depth)
            ),
            source=None if source is None else parse_cell(source),
            heightmap=HeightmapSettings.from_mapping(
                heightmap_payload if isinstance(heightmap_payload, Mapping) else None
            ),
        )

    @classmethod
    def from_environment(
        cls,
        prefix: str = DEFAULT_ENV_PREFIX,
        env: Optional[Mapping[str, str]] = None,
    ) -> "SimulationConfig":
        # //1.- Allow dependency injection during testing by accepting a custom mapping.
        source_env = env if env is not None else os.environ
        mapping: dict = {}
        heightmap: dict = {}
        for key, target in (
            ("GRID_EXPONENT", "grid_exponent"),
            ("SEED", "seed"),
            ("INFLOW_RATE", "inflow_rate"),
            ("INITIAL_SOURCE_DEPTH", "initial_source_depth"),
            ("SOURCE", "source"),
        ):
            value = source_env.get(f"{prefix}_{key}")
            if value is not None:
                mapping[target] = value
        for key, target in (
            ("INITIAL_SCALE", "initial_scale"),
            ("ROUGHNESS_GROWTH", "roughness_growth"),
            ("SMOOTH", "smooth"),
        ):
            value = source_env.get(f"{prefix}_{key}")
            if value is not None:
                heightmap[target] = value
        if heightmap:
            mapping["heightmap"] = heightmap
        # //2.- Fall back to defaults for anything the environment leaves unset.
        return cls.from_mapping(mapping)


# //5.- Load a JSON configuration file and coerce it into a config object.
def load_config_file(path: str) -> SimulationConfig:
    with open(path, "r", encoding="utf-8") as handle:
        payload = json.load(handle)
    if not isinstance(payload, Mapping):
        raise ValueError(f"Configuration file {path} must contain a JSON object")
    return SimulationConfig.from_mapping(payload)


# //6.- Provide canonical configuration accessor used by the runner and hosts.
def load_simulation_config(
    mapping: Optional[Mapping[str, object]] = None,
    *,
    path: Optional[str] = None,
    env_prefix: str = DEFAULT_ENV_PREFIX,
) -> SimulationConfig:
    if mapping is not None:
        return SimulationConfig.from_mapping(mapping)
    if path is not None:
        return load_config_file(path)
    return SimulationConfig.from_environment(prefix=env_prefix)
