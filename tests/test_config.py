"""Tests for simulation configuration loaders."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

# Ensure the terrainflow package is importable when running tests from repo root.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from terrainflow.config import (  # noqa: E402
    HeightmapSettings,
    SimulationConfig,
    load_config_file,
    load_simulation_config,
    parse_cell,
)


def test_defaults_mirror_the_reference_scene() -> None:
    # //1.- A 129 wide terrain with the source in the middle of the 128 surface.
    config = SimulationConfig()
    assert config.grid_width == 129
    assert config.surface_size == 128
    assert config.resolve_source() == (64, 64)
    assert config.inflow_rate == pytest.approx(0.1)
    assert config.initial_source_depth == pytest.approx(0.1)
    assert config.heightmap.roughness_growth == pytest.approx(1.6)
    assert config.heightmap.smooth is True


def test_from_mapping_parses_nested_values() -> None:
    config = SimulationConfig.from_mapping(
        {
            "grid_exponent": 4,
            "seed": 99,
            "inflow_rate": 0.25,
            "source": [3, 5],
            "heightmap": {"initial_scale": 2.0, "smooth": "no"},
        }
    )
    assert config.grid_width == 17
    assert config.seed == 99
    assert config.resolve_source() == (3, 5)
    assert config.heightmap == HeightmapSettings(initial_scale=2.0, smooth=False)


def test_from_environment_reads_prefixed_variables() -> None:
    # //1.- Inject a fake environment so the test never depends on the host shell.
    env = {
        "TERRAINFLOW_GRID_EXPONENT": "3",
        "TERRAINFLOW_SEED": "7",
        "TERRAINFLOW_SOURCE": "2, 4",
        "TERRAINFLOW_ROUGHNESS_GROWTH": "1.2",
        "TERRAINFLOW_SMOOTH": "false",
        "OTHER_SEED": "1",
    }
    config = SimulationConfig.from_environment(env=env)
    assert config.grid_width == 9
    assert config.seed == 7
    assert config.source == (2, 4)
    assert config.heightmap.roughness_growth == pytest.approx(1.2)
    assert config.heightmap.smooth is False


def test_empty_environment_yields_defaults() -> None:
    assert SimulationConfig.from_environment(env={}) == SimulationConfig()


def test_load_config_file(tmp_path: Path) -> None:
    path = tmp_path / "terrain.json"
    path.write_text(json.dumps({"grid_exponent": 5, "seed": 3}), encoding="utf-8")
    config = load_config_file(str(path))
    assert config.grid_width == 33
    assert load_simulation_config(path=str(path)) == config


def test_load_config_file_rejects_non_objects(tmp_path: Path) -> None:
    path = tmp_path / "terrain.json"
    path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config_file(str(path))


def test_mapping_takes_precedence_over_path(tmp_path: Path) -> None:
    config = load_simulation_config({"seed": 11}, path=str(tmp_path / "missing.json"))
    assert config.seed == 11


def test_with_overrides_ignores_unset_values() -> None:
    config = SimulationConfig(seed=1).with_overrides(seed=None, inflow_rate=0.5)
    assert config.seed == 1
    assert config.inflow_rate == pytest.approx(0.5)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"grid_exponent": 0},
        {"inflow_rate": -0.1},
        {"initial_source_depth": -1.0},
    ],
)
def test_invalid_simulation_values_are_rejected(kwargs) -> None:
    with pytest.raises(ValueError):
        SimulationConfig(**kwargs)


def test_invalid_heightmap_values_are_rejected() -> None:
    with pytest.raises(ValueError):
        HeightmapSettings(initial_scale=0.0)
    with pytest.raises(ValueError):
        HeightmapSettings.from_mapping({"smooth": "maybe"})


def test_parse_cell_formats() -> None:
    assert parse_cell("64,64") == (64, 64)
    assert parse_cell((1, 2)) == (1, 2)
    with pytest.raises(ValueError):
        parse_cell("1,2,3")
