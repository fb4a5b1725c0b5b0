"""Terrainflow package.

Diamond-square terrain synthesis and a per-tick grid water-flow simulation.
Presentation is left to the host: it reads the height grid once and then
reconciles its own objects against the change reports of each step.
"""

from .config import HeightmapSettings, SimulationConfig, load_simulation_config
from .grid import HeightGrid
from .heightmap import HeightmapGenerator, generate_heightmap, make_rng
from .water import CellChange, WaterSimulator, simulate

__all__ = [
    "HeightmapSettings",
    "SimulationConfig",
    "load_simulation_config",
    "HeightGrid",
    "HeightmapGenerator",
    "generate_heightmap",
    "make_rng",
    "CellChange",
    "WaterSimulator",
    "simulate",
]
