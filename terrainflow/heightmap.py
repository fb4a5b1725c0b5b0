from __future__ import annotations

import logging
from typing import Optional, Tuple

import numpy as np

from .config import HeightmapSettings
from .grid import HeightGrid


LOGGER = logging.getLogger(__name__)

# Offsets of the 8-connected neighbourhood, self excluded.
_NEIGHBOUR_OFFSETS = tuple(
    (dx, dz) for dx in (-1, 0, 1) for dz in (-1, 0, 1) if (dx, dz) != (0, 0)
)


# ----------------------------- RNG Utilities ----------------------------- #

def make_rng(seed: Optional[int]) -> np.random.Generator:
    """
    Create a numpy Generator without polluting global RNG state.
    """
    if seed is None:
        return np.random.default_rng()
    # Accept wide Python int; fold into uint64 for numpy
    return np.random.default_rng(np.uint64(seed & ((1 << 64) - 1)))


def _perturb(rng: np.random.Generator, scale: float, shape) -> np.ndarray:
    return rng.uniform(-scale, scale, size=shape)


# ----------------------------- Preconditions ----------------------------- #

def is_valid_width(width: int) -> bool:
    """True when ``width - 1`` is a power of two and ``width >= 3``."""
    span = int(width) - 1
    return span >= 2 and (span & (span - 1)) == 0


def _check_inputs(width: int, rng: object) -> None:
    if not is_valid_width(width):
        raise ValueError(f"width - 1 must be a power of two >= 2; got width={width}")
    if not isinstance(rng, np.random.Generator):
        raise TypeError("rng must be a numpy.random.Generator; build one with make_rng(seed)")


# ----------------------------- Diamond-Square ---------------------------- #

def seed_corners(grid: np.ndarray, rng: np.random.Generator, scale: float) -> None:
    last = grid.shape[0] - 1
    draws = _perturb(rng, scale, 4)
    grid[0, 0] = draws[0]
    grid[last, 0] = draws[1]
    grid[0, last] = draws[2]
    grid[last, last] = draws[3]


def diamond_step(grid: np.ndarray, step: int, rng: np.random.Generator, scale: float) -> None:
    """
    Set the center of every ``step``-sized square to the mean of its corners
    plus a perturbation.
    """
    last = grid.shape[0] - 1
    half = step // 2
    top_left = grid[0:last:step, 0:last:step]
    top_right = grid[step::step, 0:last:step]
    bottom_left = grid[0:last:step, step::step]
    bottom_right = grid[step::step, step::step]
    mean = (top_left + top_right + bottom_left + bottom_right) / 4.0
    grid[half::step, half::step] = mean + _perturb(rng, scale, mean.shape)


def _edge_midpoints(corner_a: np.ndarray, corner_b: np.ndarray, centers: np.ndarray) -> np.ndarray:
    """
    Mean of the two corners of each edge and one adjacent square center.

    ``corner_a``/``corner_b`` have one more row than ``centers``: row ``i`` of
    the edge set touches center rows ``i - 1`` and ``i`` when they exist.
    Shared edges take the center on the positive side (row ``i``); the last
    boundary row only has center row ``i - 1``.
    """
    owning = np.concatenate([centers, centers[-1:]], axis=0)
    return (corner_a + corner_b + owning) / 3.0


def square_step(grid: np.ndarray, step: int, rng: np.random.Generator, scale: float) -> None:
    """
    Set every edge midpoint of the ``step``-sized squares.

    Each midpoint is the mean of its two corners and one square center. An
    edge shared by two squares uses the square on the +x or +z side; boundary
    edges use the only square they touch. Every midpoint is written exactly
    once and no index leaves the grid.
    """
    last = grid.shape[0] - 1
    half = step // 2
    centers = grid[half::step, half::step]

    # Edges running along z: x on the lattice, z halfway between corners.
    along_z = _edge_midpoints(grid[0::step, 0:last:step], grid[0::step, step::step], centers)
    # Edges running along x: z on the lattice. Transpose so the shared helper
    # sees the lattice axis first.
    along_x = _edge_midpoints(
        grid[0:last:step, 0::step].T, grid[step::step, 0::step].T, centers.T
    ).T

    grid[0::step, half::step] = along_z + _perturb(rng, scale, along_z.shape)
    grid[half::step, 0::step] = along_x + _perturb(rng, scale, along_x.shape)


def smooth(values: np.ndarray) -> np.ndarray:
    """
    Replace every cell with the mean of itself and its existing 8 neighbours.

    Reads only pre-smoothing values; edges use the neighbours that exist and
    never wrap.
    """
    size_x, size_z = values.shape
    total = values.astype(np.float64, copy=True)
    count = np.ones(values.shape, dtype=np.float64)
    for dx, dz in _NEIGHBOUR_OFFSETS:
        dst_x = slice(max(0, -dx), size_x - max(0, dx))
        dst_z = slice(max(0, -dz), size_z - max(0, dz))
        src_x = slice(max(0, dx), size_x - max(0, -dx))
        src_z = slice(max(0, dz), size_z - max(0, -dz))
        total[dst_x, dst_z] += values[src_x, src_z]
        count[dst_x, dst_z] += 1.0
    return total / count


def synthesize(
    width: int,
    rng: np.random.Generator,
    settings: Optional[HeightmapSettings] = None,
) -> np.ndarray:
    """
    Run corner seeding plus the diamond/square octaves, without smoothing.

    Scale grows by ``settings.roughness_growth`` after each octave.
    """
    _check_inputs(width, rng)
    settings = settings or HeightmapSettings()

    grid = np.full((width, width), np.nan, dtype=np.float64)
    scale = settings.initial_scale
    seed_corners(grid, rng, scale)

    step = width - 1
    while step > 1:
        diamond_step(grid, step, rng, scale)
        square_step(grid, step, rng, scale)
        step //= 2
        scale *= settings.roughness_growth

    unset = int(np.count_nonzero(np.isnan(grid)))
    if unset:
        raise RuntimeError(f"diamond-square left {unset} cells unset for width={width}")
    return grid


# ----------------------------- Public Entry ------------------------------ #

def generate_heightmap(
    width: int,
    rng: np.random.Generator,
    settings: Optional[HeightmapSettings] = None,
) -> HeightGrid:
    """
    Generate a ``width x width`` terrain with diamond-square and smoothing.

    Deterministic for a given generator state; ``width - 1`` must be a power
    of two.
    """
    settings = settings or HeightmapSettings()
    values = synthesize(width, rng, settings)
    if settings.smooth:
        values = smooth(values)
    heights = HeightGrid(values=values)
    LOGGER.debug(
        "Generated %dx%d heightmap, elevation range [%.4f, %.4f]",
        width,
        width,
        heights.min_elevation,
        heights.max_elevation,
    )
    return heights


class HeightmapGenerator:
    """Reusable generator bound to a width and settings."""

    def __init__(self, width: int = 129, settings: Optional[HeightmapSettings] = None) -> None:
        if not is_valid_width(width):
            raise ValueError(f"width - 1 must be a power of two >= 2; got width={width}")
        self.width = int(width)
        self.settings = settings or HeightmapSettings()

    def generate(self, rng: np.random.Generator) -> HeightGrid:
        return generate_heightmap(self.width, rng, self.settings)

    def generate_seeded(self, seed: int) -> Tuple[HeightGrid, np.random.Generator]:
        """Generate from a fresh seeded generator and hand the generator back."""
        rng = make_rng(seed)
        return self.generate(rng), rng
