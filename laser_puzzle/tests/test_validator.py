import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from laser_puzzle import angles
from laser_puzzle.config import ConfigLoader
from laser_puzzle.engine import RaySegment, RayTrace, RayTraceEngine, TerminationReason
from laser_puzzle.grid import Difficulty, Grid, GridPosition, Material, MaterialType
from laser_puzzle.validator import (
    PathValidator,
    complexity_score,
    path_is_continuous,
    trace_complexity,
    within_band,
)


def example_grid():
    return Grid(6, [Material(MaterialType.MIRROR, GridPosition(2, 2), 45.0)])


class ScriptedEngine:
    """Return a fixed trace regardless of the grid."""

    max_bounces = 1000

    def __init__(self, trace):
        self._trace = trace

    def trace(self, grid, entry, initial_direction, rng=None):
        return self._trace


def test_valid_grid_passes_with_full_confidence():
    result = PathValidator().validate(example_grid(), (0, 2), (2, 0), angles.EAST)

    assert result.is_valid
    assert result.termination_correct
    assert result.path_continuity
    assert result.reflection_accuracy == 1.0
    assert result.alternative_exits == 0
    assert result.confidence_score == 100
    assert not result.errors


def test_wrong_exit_is_an_error():
    result = PathValidator().validate(example_grid(), (0, 2), (5, 2), angles.EAST)

    assert not result.is_valid
    assert not result.termination_correct
    assert any("instead of" in error for error in result.errors)
    assert result.confidence_score == 50


def test_absorbed_beam_is_an_error():
    grid = Grid(6, [Material(MaterialType.ABSORBER, GridPosition(3, 2))])

    result = PathValidator().validate(grid, (0, 2), (5, 2), angles.EAST)

    assert not result.is_valid
    assert result.trace.exit is None
    assert result.confidence_score == 30


def test_direction_defaults_to_inward_from_boundary():
    result = PathValidator().validate(example_grid(), (0, 2), (2, 0))

    assert result.is_valid
    assert result.trace.initial_direction == angles.EAST


def test_other_entries_reaching_the_same_exit_are_warnings():
    result = PathValidator().validate(Grid(6), (2, 2), (5, 2), angles.EAST)

    assert result.is_valid
    assert result.alternative_exits == 1
    assert any("(0, 2)" in warning for warning in result.warnings)
    assert result.confidence_score == 100


def test_alternative_check_can_be_disabled():
    validator = PathValidator(check_alternatives=False)

    result = validator.validate(Grid(6), (2, 2), (5, 2), angles.EAST)

    assert result.alternative_exits == 0


def misreflected_trace():
    """Mirror at 45 degrees reported as sending the beam west instead of north."""

    mirror = Material(MaterialType.MIRROR, GridPosition(2, 2), 45.0)
    return RayTrace(
        entry=GridPosition(0, 2),
        initial_direction=0.0,
        segments=(
            RaySegment(GridPosition(0, 2), GridPosition(2, 2), 0.0, mirror),
            RaySegment(GridPosition(2, 2), GridPosition(2, 0), 180.0, None),
        ),
        exit=GridPosition(2, 0),
        termination=TerminationReason.EXIT,
        bounces=1,
        final_intensity=1.0,
        final_direction=180.0,
    )


def test_low_reflection_accuracy_is_reported():
    validator = PathValidator(ScriptedEngine(misreflected_trace()), check_alternatives=False)

    result = validator.validate(example_grid(), (0, 2), (2, 0), angles.EAST)

    assert result.reflection_accuracy == pytest.approx(0.5)
    assert result.is_valid
    assert any("accuracy" in warning for warning in result.warnings)
    assert result.confidence_score == 70
    assert not result.interactions[0].compliant


def test_accuracy_penalty_follows_configured_threshold():
    validator = PathValidator(
        ScriptedEngine(misreflected_trace()),
        min_reflection_accuracy=0.4,
        check_alternatives=False,
    )

    result = validator.validate(example_grid(), (0, 2), (2, 0), angles.EAST)

    assert result.reflection_accuracy == pytest.approx(0.5)
    assert not any("accuracy" in warning for warning in result.warnings)
    assert result.confidence_score == 100


def test_discontinuous_trace_is_detected():
    trace = RayTrace(
        entry=GridPosition(0, 2),
        initial_direction=0.0,
        segments=(
            RaySegment(GridPosition(0, 2), GridPosition(2, 2), 0.0, None),
            RaySegment(GridPosition(3, 2), GridPosition(5, 2), 0.0, None),
        ),
        exit=GridPosition(5, 2),
        termination=TerminationReason.EXIT,
        bounces=0,
        final_intensity=1.0,
        final_direction=0.0,
    )
    assert not path_is_continuous(trace)

    validator = PathValidator(ScriptedEngine(trace), check_alternatives=False)
    result = validator.validate(Grid(6), (0, 2), (5, 2), angles.EAST)
    assert not result.is_valid
    assert not result.path_continuity


def test_runaway_trace_is_invalid():
    grid = Grid(
        6,
        [
            Material(MaterialType.METAL, GridPosition(1, 2)),
            Material(MaterialType.METAL, GridPosition(4, 2)),
        ],
    )
    validator = PathValidator(RayTraceEngine(max_bounces=20))

    result = validator.validate(grid, (2, 2), (5, 2), angles.EAST)

    assert not result.is_valid
    assert any("bounces" in error for error in result.errors)
    assert any("revisits" in warning for warning in result.warnings)


def test_complexity_score_normalizes_to_ten_point_scale():
    waypoints = [(0, 0), (3, 0), (3, 3), (5, 3)]

    assert complexity_score(2, [MaterialType.MIRROR], waypoints) == 4
    assert complexity_score(0, [], [(0, 0), (0, 1)]) == 1
    assert complexity_score(20, [MaterialType.MIRROR], waypoints) == 10


def test_trace_complexity_uses_struck_materials():
    trace = RayTraceEngine().trace(example_grid(), (0, 2), angles.EAST)

    assert trace_complexity(trace) == 2


def test_within_band_uses_difficulty_limits():
    configs = ConfigLoader().load_difficulties()
    hard = configs[Difficulty.HARD]

    assert not within_band(4, hard)
    assert within_band(5, hard)
    assert within_band(10, hard)
