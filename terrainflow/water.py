"""Grid water-flow simulation over a static height grid.

Every tick the simulator injects water at a source cell and then lets each
wet cell spill a quarter of its level difference per second into every
lower orthogonal neighbour. Comparisons use the levels computed at the start
of the step, so the processing order of cells and directions has no effect
on the result.

The simulator never touches presentation objects. It returns the cells whose
depth changed so the host can create, resize or remove whatever it draws.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import math
from typing import Iterator, List, Optional, Tuple

import numpy as np

from .grid import Cell, HeightGrid


LOGGER = logging.getLogger(__name__)

# North, east, south, west as (dx, dz).
DIRECTIONS: Tuple[Cell, ...] = ((0, -1), (1, 0), (0, 1), (-1, 0))

# Fraction of the level difference moved per neighbour per second.
FLOW_FRACTION = 0.25


def _neighbour_slices(delta: int) -> Tuple[slice, slice]:
    """Return ``(own, neighbour)`` slices pairing cells with the cell ``delta`` away."""
    if delta > 0:
        return slice(0, -delta), slice(delta, None)
    if delta < 0:
        return slice(-delta, None), slice(0, delta)
    return slice(None), slice(None)


@dataclass(frozen=True)
class CellChange:
    """Depth change of a single cell during one step."""

    x: int
    z: int
    previous_depth: float
    depth: float

    @property
    def cell(self) -> Cell:
        return (self.x, self.z)

    @property
    def was_wet(self) -> bool:
        return self.previous_depth > 0.0

    @property
    def is_wet(self) -> bool:
        return self.depth > 0.0

    @property
    def kind(self) -> str:
        """``created`` for dry -> wet, ``removed`` for wet -> dry, else ``updated``."""
        if self.is_wet and not self.was_wet:
            return "created"
        if self.was_wet and not self.is_wet:
            return "removed"
        return "updated"


class WaterSimulator:
    """Owns the water depth grid for one terrain and advances it per tick.

    The height grid is bound once at construction and never changes, so
    ``step`` only takes the elapsed seconds; a host wanting different terrain
    builds a new simulator.
    """

    def __init__(
        self,
        heights: HeightGrid,
        source: Optional[Cell] = None,
        *,
        inflow_rate: float = 0.1,
        initial_source_depth: float = 0.1,
    ) -> None:
        if inflow_rate < 0.0 or not math.isfinite(inflow_rate):
            raise ValueError("inflow_rate must be a finite non-negative number")
        if initial_source_depth < 0.0 or not math.isfinite(initial_source_depth):
            raise ValueError("initial_source_depth must be a finite non-negative number")

        size = heights.surface_size
        if source is None:
            source = (size // 2, size // 2)
        source = (int(source[0]), int(source[1]))
        if not heights.contains(*source):
            raise ValueError(f"source {source} outside the {size}x{size} surface")

        self._heights = heights
        self._surface = heights.surface
        self.source = source
        self.inflow_rate = float(inflow_rate)
        self._depths = np.zeros((size, size), dtype=np.float64)
        self._depths[source] = float(initial_source_depth)
        self.tick_count = 0

    # ----------------------------------------------------------------- state

    @property
    def heights(self) -> HeightGrid:
        return self._heights

    @property
    def size(self) -> int:
        return int(self._depths.shape[0])

    @property
    def depths(self) -> np.ndarray:
        view = self._depths.view()
        view.setflags(write=False)
        return view

    @property
    def levels(self) -> np.ndarray:
        """Total surface level (terrain height plus depth) of every cell."""
        return self._surface + self._depths

    @property
    def total_water(self) -> float:
        return float(self._depths.sum())

    def _check_cell(self, x: int, z: int) -> None:
        if not self._heights.contains(x, z):
            raise IndexError(f"cell ({x}, {z}) outside the {self.size}x{self.size} surface")

    def depth_at(self, x: int, z: int) -> float:
        self._check_cell(x, z)
        return float(self._depths[x, z])

    def is_wet(self, x: int, z: int) -> bool:
        return self.depth_at(x, z) > 0.0

    def wet_cells(self) -> Iterator[Cell]:
        for x, z in zip(*np.nonzero(self._depths > 0.0)):
            yield (int(x), int(z))

    def set_depth(self, x: int, z: int, depth: float) -> None:
        """Seed a cell's depth directly, e.g. when a host restores a snapshot."""
        self._check_cell(x, z)
        if depth < 0.0 or not math.isfinite(depth):
            raise ValueError("depth must be a finite non-negative number")
        self._depths[x, z] = float(depth)

    # ------------------------------------------------------------------ step

    def _outflows(self, depths: np.ndarray, elapsed_seconds: float) -> np.ndarray:
        """Per-direction outflow of every cell, before drain limiting."""
        levels = self._surface + depths
        wet = depths > 0.0
        flows = np.zeros((len(DIRECTIONS),) + depths.shape, dtype=np.float64)
        for index, (dx, dz) in enumerate(DIRECTIONS):
            own_x, other_x = _neighbour_slices(dx)
            own_z, other_z = _neighbour_slices(dz)
            diff = levels[own_x, own_z] - levels[other_x, other_z]
            spill = (diff > 0.0) & wet[own_x, own_z]
            flows[index][own_x, own_z] = np.where(
                spill, diff * FLOW_FRACTION * elapsed_seconds, 0.0
            )
        return flows

    def _limit_drain(self, flows: np.ndarray, depths: np.ndarray) -> np.ndarray:
        """Scale down outflows exceeding a cell's depth; return per-cell outflow."""
        # A cell spilling in several directions at once may not give away more
        # than it holds; scale all of its outflows down together.
        outflow = flows.sum(axis=0)
        over = outflow > depths
        limited = int(np.count_nonzero(over))
        if not limited:
            return outflow
        factor = np.ones_like(depths)
        factor[over] = depths[over] / outflow[over]
        flows *= factor
        LOGGER.debug("Drain limited on %d cells at tick %d", limited, self.tick_count)
        # Limited cells give away exactly what they hold and end up dry.
        return np.where(over, depths, flows.sum(axis=0))

    def step(self, elapsed_seconds: float) -> List[CellChange]:
        """
        Advance the simulation by ``elapsed_seconds`` and report changed cells.

        Cells that stay dry are never reported.
        """
        elapsed_seconds = float(elapsed_seconds)
        if elapsed_seconds < 0.0 or not math.isfinite(elapsed_seconds):
            raise ValueError("elapsed_seconds must be a finite non-negative number")

        previous = self._depths
        depths = previous.copy()
        depths[self.source] += self.inflow_rate * elapsed_seconds

        flows = self._outflows(depths, elapsed_seconds)
        outflow = self._limit_drain(flows, depths)

        updated = depths - outflow
        for index, (dx, dz) in enumerate(DIRECTIONS):
            own_x, other_x = _neighbour_slices(dx)
            own_z, other_z = _neighbour_slices(dz)
            updated[other_x, other_z] += flows[index][own_x, own_z]
        # Only rounding residue can dip below zero after drain limiting.
        np.maximum(updated, 0.0, out=updated)

        self._depths = updated
        self.tick_count += 1

        changes = [
            CellChange(
                x=int(x),
                z=int(z),
                previous_depth=float(previous[x, z]),
                depth=float(updated[x, z]),
            )
            for x, z in zip(*np.nonzero(updated != previous))
        ]
        return changes


def simulate(
    simulator: WaterSimulator,
    ticks: int,
    elapsed_seconds: float,
) -> List[List[CellChange]]:
    """Run ``ticks`` fixed-size steps and collect every change report."""
    if ticks < 0:
        raise ValueError("ticks must be non-negative")
    return [simulator.step(elapsed_seconds) for _ in range(ticks)]
