"""Grid containers shared by the heightmap generator and the water simulator.

Both grids are indexed ``[x, z]`` where ``x`` runs east-west and ``z`` runs
north-south. The height grid carries one extra row and column beyond the
simulated surface; they only exist as scratch space for diamond-square
synthesis.
"""

from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Mapping, Sequence, Tuple

import numpy as np


Cell = Tuple[int, int]


def _to_int(value: object, default: int = 0) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    return int(number)


@dataclass(frozen=True, eq=False)
class HeightGrid:
    """Immutable square elevation grid."""

    values: np.ndarray

    def __post_init__(self) -> None:
        if self.values.ndim != 2 or self.values.shape[0] != self.values.shape[1]:
            raise ValueError(f"height grid must be square; got shape {self.values.shape}")
        if self.values.shape[0] < 2:
            raise ValueError("height grid must be at least 2x2")
        if not np.all(np.isfinite(self.values)):
            raise ValueError("height grid contains non-finite elevations")
        self.values.setflags(write=False)

    @classmethod
    def from_array(cls, data: object) -> "HeightGrid":
        # Copy so later mutation of the caller's buffer cannot leak in.
        return cls(values=np.array(data, dtype=np.float64, copy=True))

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> "HeightGrid":
        rows = _to_int(payload.get("rows") or 0)
        cols = _to_int(payload.get("cols") or 0)
        data = payload.get("data")
        if not rows or not cols or not isinstance(data, Sequence):
            raise ValueError("height grid payload must define rows, cols and a data array")
        if rows != cols:
            raise ValueError("height grid payload must be square")
        if len(data) != rows * cols:
            raise ValueError("height grid payload expected rows*cols samples")
        return cls.from_array(np.asarray(data, dtype=np.float64).reshape(rows, cols))

    @property
    def width(self) -> int:
        return int(self.values.shape[0])

    @property
    def surface_size(self) -> int:
        return self.width - 1

    @property
    def surface(self) -> np.ndarray:
        """Read-only view of the simulated terrain surface."""
        return self.values[: self.surface_size, : self.surface_size]

    @property
    def min_elevation(self) -> float:
        return float(self.values.min())

    @property
    def max_elevation(self) -> float:
        return float(self.values.max())

    @property
    def elevation_range(self) -> Tuple[float, float]:
        return self.min_elevation, self.max_elevation

    def contains(self, x: int, z: int) -> bool:
        """Whether ``(x, z)`` lies on the simulated surface."""
        return 0 <= x < self.surface_size and 0 <= z < self.surface_size

    def height_at(self, x: int, z: int) -> float:
        if not (0 <= x < self.width and 0 <= z < self.width):
            raise IndexError(f"cell ({x}, {z}) outside {self.width}x{self.width} height grid")
        return float(self.values[x, z])

    def to_mapping(self) -> dict:
        return {
            "rows": self.width,
            "cols": self.width,
            "data": self.values.flatten().tolist(),
            "minElevation": self.min_elevation,
            "maxElevation": self.max_elevation,
        }
