import logging
import random
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from laser_puzzle import angles
from laser_puzzle.config import ConfigLoader
from laser_puzzle.engine import RayTraceEngine
from laser_puzzle.grid import Difficulty, Grid, GridPosition, MaterialType
from laser_puzzle.placement import (
    SUPPORTING_MIRROR_ANGLES,
    MaterialPlacementOptimizer,
    density_shortfall,
    target_material_count,
)
from laser_puzzle.planner import MaterialRequirement, PathPlan, Priority


@pytest.fixture(scope="module")
def configs():
    return ConfigLoader().load_difficulties()


@pytest.fixture
def corner_plan():
    """Entry on the left edge, one mirror at (2, 2), exit on the top edge."""

    point = GridPosition(2, 2)
    return PathPlan(
        entry=GridPosition(0, 2),
        exit=GridPosition(2, 0),
        required_reflections=1,
        reflection_points=(point,),
        requirements=(
            MaterialRequirement(point, MaterialType.MIRROR, 225.0, Priority.CRITICAL, 0),
        ),
        complexity=2,
        difficulty=Difficulty.EASY,
        entry_direction=angles.EAST,
    )


def test_reserved_cells_cover_path_and_clearance(configs, corner_plan):
    optimizer = MaterialPlacementOptimizer(configs, random.Random(0))

    reserved = optimizer.reserved_cells(corner_plan, 6)

    assert reserved == {(0, 2), (1, 2), (2, 2), (2, 1), (2, 0), (3, 2), (2, 3)}


def test_place_reaches_target_and_keeps_path_clear(configs, corner_plan):
    optimizer = MaterialPlacementOptimizer(configs, random.Random(4))

    materials = optimizer.place(corner_plan, 6)

    assert len(materials) == target_material_count(6, 0.7) == 25
    positions = [m.position for m in materials]
    assert len(positions) == len(set(positions))
    critical = [m for m in materials if m.position == (2, 2)]
    assert critical and critical[0].angle == 225.0
    reserved = optimizer.reserved_cells(corner_plan, 6) - {GridPosition(2, 2)}
    assert not reserved.intersection(positions)

    trace = RayTraceEngine().trace(Grid(6, materials), corner_plan.entry, corner_plan.entry_direction)
    assert trace.exit == corner_plan.exit


def test_supporting_materials_use_allowed_types_and_quantized_angles(configs, corner_plan):
    optimizer = MaterialPlacementOptimizer(configs, random.Random(9))

    materials = optimizer.place(corner_plan, 6)

    supporting = [m for m in materials if m.position != (2, 2)]
    assert {m.type for m in supporting} <= {MaterialType.MIRROR, MaterialType.ABSORBER}
    for material in supporting:
        if material.type is MaterialType.MIRROR:
            assert material.angle in SUPPORTING_MIRROR_ANGLES


def test_over_dense_grid_drops_supporting_materials_first(configs, corner_plan):
    optimizer = MaterialPlacementOptimizer(configs, random.Random(2))
    materials = optimizer.place(corner_plan, 6)

    thinned = optimizer.optimize_density(materials, 0.5, 6, corner_plan)

    assert len(thinned) == 18
    assert GridPosition(2, 2) in {m.position for m in thinned}


def test_critical_materials_survive_zero_density(configs, corner_plan):
    optimizer = MaterialPlacementOptimizer(configs, random.Random(2))
    materials = optimizer.place(corner_plan, 6)

    thinned = optimizer.optimize_density(materials, 0.0, 6, corner_plan)

    assert [m.position for m in thinned] == [GridPosition(2, 2)]


def test_infeasible_density_stops_with_warning(configs, corner_plan, caplog):
    optimizer = MaterialPlacementOptimizer(configs, random.Random(3))
    critical = optimizer.critical_materials(corner_plan)

    with caplog.at_level(logging.WARNING, logger="laser_puzzle.placement"):
        filled = optimizer.optimize_density(critical, 1.0, 6, corner_plan)

    assert len(filled) == 30
    assert density_shortfall(filled, 6, 1.0) == 6
    assert any("shortfall" in record.getMessage() for record in caplog.records)


def test_placement_is_reproducible_for_a_seed(configs, corner_plan):
    first = MaterialPlacementOptimizer(configs, random.Random(21)).place(corner_plan, 6)
    second = MaterialPlacementOptimizer(configs, random.Random(21)).place(corner_plan, 6)

    assert first == second


def test_supporting_weights_are_normalized(configs):
    optimizer = MaterialPlacementOptimizer(configs, random.Random(0))

    weights = optimizer.supporting_weights(configs[Difficulty.HARD])

    assert sum(weights.values()) == pytest.approx(1.0)
    assert set(weights) == set(configs[Difficulty.HARD].allowed_materials)
