"""Headless host that generates terrain and drives the water simulator."""

from __future__ import annotations

import argparse
import json
import logging
from dataclasses import dataclass, field, replace
from typing import List, Optional, Sequence, Set, Tuple

from .config import SimulationConfig, load_simulation_config, parse_cell
from .grid import HeightGrid
from .heightmap import HeightmapGenerator, make_rng
from .water import WaterSimulator


LOGGER = logging.getLogger(__name__)


@dataclass
class SimulationResult:
    """Outcome of a headless run, kept in memory for callers and snapshots."""

    config: SimulationConfig
    seed: int
    heights: HeightGrid
    simulator: WaterSimulator
    elapsed_seconds: float = 0.0
    # //1.- Number of cells reported per tick, in tick order.
    changes_per_tick: List[int] = field(default_factory=list)
    # //2.- Distinct cells that turned wet at least once during the run.
    created_cells: Set[Tuple[int, int]] = field(default_factory=set)

    def to_mapping(self) -> dict:
        depths = self.simulator.depths
        return {
            "seed": self.seed,
            "ticks": self.simulator.tick_count,
            "elapsedSeconds": self.elapsed_seconds,
            "source": list(self.simulator.source),
            "terrain": self.heights.to_mapping(),
            "water": {
                "rows": int(depths.shape[0]),
                "cols": int(depths.shape[1]),
                "data": depths.flatten().tolist(),
                "totalWater": self.simulator.total_water,
                "wetCells": sum(1 for _ in self.simulator.wet_cells()),
            },
        }


def _resolve_seed(config: SimulationConfig) -> int:
    # //1.- Backfill a concrete seed so every run can be replayed from its snapshot.
    if config.seed is not None:
        return int(config.seed)
    return int(make_rng(None).integers(0, 2**31 - 1))


def run_simulation(
    config: SimulationConfig,
    ticks: int,
    elapsed_seconds: float,
    *,
    log_every: int = 0,
) -> SimulationResult:
    """Generate terrain from ``config`` and advance the water ``ticks`` times."""

    if ticks < 0:
        raise ValueError("ticks must be non-negative")

    # //1.- Generate the static terrain once, exactly as an interactive host would.
    seed = _resolve_seed(config)
    generator = HeightmapGenerator(config.grid_width, config.heightmap)
    heights, _ = generator.generate_seeded(seed)
    low, high = heights.elevation_range
    LOGGER.info(
        "Terrain %dx%d seed=%d elevation min=%.4f max=%.4f",
        heights.width,
        heights.width,
        seed,
        low,
        high,
    )

    # //2.- Seed the water source and drive the simulator with a fixed tick length.
    simulator = WaterSimulator(
        heights,
        config.resolve_source(),
        inflow_rate=config.inflow_rate,
        initial_source_depth=config.initial_source_depth,
    )
    result = SimulationResult(config=config, seed=seed, heights=heights, simulator=simulator)
    for tick in range(1, ticks + 1):
        changes = simulator.step(elapsed_seconds)
        result.elapsed_seconds += elapsed_seconds
        result.changes_per_tick.append(len(changes))
        result.created_cells.update(change.cell for change in changes if change.kind == "created")
        # //3.- Emit a periodic heartbeat so long runs show progress.
        if log_every and tick % log_every == 0:
            LOGGER.info(
                "Tick %d: %d changed cells, total water %.6f",
                tick,
                len(changes),
                simulator.total_water,
            )

    LOGGER.info(
        "Finished %d ticks: %d wet cells, total water %.6f",
        simulator.tick_count,
        sum(1 for _ in simulator.wet_cells()),
        simulator.total_water,
    )
    return result


# ----------------------------- CLI / Script ------------------------------ #

def parse_source(value: str) -> Tuple[int, int]:
    try:
        return parse_cell(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid cell '{value}'. Use like 64,64.") from exc


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="terrainflow",
        description="Generate a diamond-square terrain and simulate water flowing over it.",
    )
    ap.add_argument("--config", type=str, default=None, help="JSON configuration file")
    ap.add_argument("--seed", type=int, default=None, help="Terrain seed")
    ap.add_argument("--exponent", type=int, default=None, help="Grid width is 2**exponent + 1")
    ap.add_argument("--ticks", type=int, default=100, help="Number of simulation ticks")
    ap.add_argument("--dt", type=float, default=1.0 / 60.0, help="Seconds elapsed per tick")
    ap.add_argument("--inflow", type=float, default=None, help="Source inflow per second")
    ap.add_argument("--source", type=parse_source, default=None, help="Source cell, e.g. 64,64")
    ap.add_argument("--no-smooth", action="store_true", help="Skip the terrain smoothing pass")
    ap.add_argument("--log-every", type=int, default=0, help="Log a summary every N ticks")
    ap.add_argument("--out", type=str, default=None, help="Write a JSON snapshot to this path")
    ap.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return ap


def resolve_config(args: argparse.Namespace) -> SimulationConfig:
    # //1.- Start from a file when given, otherwise from TERRAINFLOW_* variables.
    config = load_simulation_config(path=args.config)
    # //2.- Command-line flags win over both.
    config = config.with_overrides(
        seed=args.seed,
        grid_exponent=args.exponent,
        inflow_rate=args.inflow,
        source=args.source,
    )
    if args.no_smooth:
        config = replace(config, heightmap=replace(config.heightmap, smooth=False))
    return config


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Console script entry point invoked via ``python -m terrainflow.runner``."""

    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(asctime)s] %(levelname)s %(message)s",
    )
    config = resolve_config(args)
    result = run_simulation(config, args.ticks, args.dt, log_every=args.log_every)

    if args.out:
        with open(args.out, "w", encoding="utf-8") as f:
            json.dump(result.to_mapping(), f, indent=2)
        LOGGER.info("Wrote snapshot to %s", args.out)
    return 0


if __name__ == "__main__":  # pragma: no cover - exercised via ``python -m`` execution
    raise SystemExit(main())
