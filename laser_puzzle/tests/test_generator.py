import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import laser_puzzle
from laser_puzzle import (
    GenerationMetrics,
    InMemoryGenerationCache,
    generate_puzzle,
    trace_laser_path,
    validate_path_physics,
)
from laser_puzzle.errors import ErrorKind, GenerationExhaustedError, PlanningError
from laser_puzzle.generator import LEGACY, GUARANTEED, LegacyPuzzleGenerator, PuzzleGenerator
from laser_puzzle.grid import Difficulty, MaterialType
from laser_puzzle.placement import target_material_count
from laser_puzzle.validator import within_band


class FailingPlanner:
    def plan(self, entry, exit, difficulty):
        raise PlanningError("no room", index=0, position=entry)


class BrokenCollaborator:
    def __getattr__(self, name):
        def fail(*args, **kwargs):
            raise RuntimeError(f"{name} is unavailable")

        return fail


def assert_solvable(generator, puzzle):
    trace = generator.engine.trace(puzzle.grid, puzzle.entry, puzzle.entry_direction)
    assert trace.exit == puzzle.exit

    result = generator.validator.validate(
        puzzle.grid, puzzle.entry, puzzle.exit, puzzle.entry_direction
    )
    assert result.termination_correct
    assert result.is_valid

    public_trace = trace_laser_path(puzzle.grid, puzzle.entry, puzzle.entry_direction)
    assert public_trace == puzzle.solution_path
    public_result = validate_path_physics(
        puzzle.grid, puzzle.entry, puzzle.exit, puzzle.entry_direction
    )
    assert public_result.termination_correct
    assert public_result.is_valid


def strikes_water(puzzle):
    return any(
        segment.material is not None and segment.material.type is MaterialType.WATER
        for segment in puzzle.solution_path.segments
    )


@pytest.mark.parametrize("difficulty", list(Difficulty))
def test_generated_puzzles_are_solvable_and_in_band(difficulty):
    generator = PuzzleGenerator(seed=7)

    puzzle = generator.generate(difficulty)

    config = generator.configs[difficulty]
    assert puzzle.grid.size == config.grid_size
    assert puzzle.grid.is_boundary(puzzle.exit)
    assert_solvable(generator, puzzle)
    assert within_band(puzzle.complexity, config)
    assert puzzle.metadata.validation_passed
    assert puzzle.metadata.attempts >= 1
    assert puzzle.metadata.algorithm in (GUARANTEED, LEGACY)
    assert puzzle.metadata.fallback_used == (puzzle.metadata.algorithm == LEGACY)


@pytest.mark.parametrize("difficulty", list(Difficulty))
def test_density_is_on_target_or_reported(difficulty):
    generator = PuzzleGenerator(seed=13)

    puzzle = generator.generate(difficulty)

    config = generator.configs[difficulty]
    target = target_material_count(config.grid_size, config.material_density)
    if abs(len(puzzle.grid) - target) > 1:
        assert any("Density shortfall" in warning for warning in puzzle.metadata.warnings)
    assert puzzle.metadata.density_achieved == pytest.approx(puzzle.grid.density())


def test_same_seed_generates_identical_puzzles():
    first = PuzzleGenerator(seed=42).generate(Difficulty.EASY)
    second = PuzzleGenerator(seed=42).generate(Difficulty.EASY)

    assert first.grid.fingerprint() == second.grid.fingerprint()
    assert first.entry == second.entry
    assert first.exit == second.exit
    assert first.id == second.id
    assert first.solution_path == second.solution_path


def test_generate_accepts_difficulty_names():
    puzzle = generate_puzzle("medium", seed=3)

    assert puzzle.difficulty is Difficulty.MEDIUM


def test_exhausted_planner_falls_back_to_legacy_generator():
    generator = PuzzleGenerator(seed=5, planner=FailingPlanner())

    puzzle = generator.generate(Difficulty.EASY)

    assert puzzle.metadata.fallback_used
    assert puzzle.metadata.algorithm == LEGACY
    assert puzzle.metadata.attempts > generator.settings.max_attempts
    assert "Fell back to legacy generator" in puzzle.metadata.warnings
    kinds = {issue.kind for issue in puzzle.metadata.issues}
    assert ErrorKind.GEOMETRY in kinds
    assert ErrorKind.EXHAUSTION in kinds
    assert_solvable(generator, puzzle)


@pytest.mark.parametrize("difficulty", [Difficulty.MEDIUM, Difficulty.HARD])
def test_fallback_puzzles_through_water_replay_via_public_api(difficulty):
    watery = 0
    for seed in range(8):
        generator = PuzzleGenerator(seed=seed, planner=FailingPlanner())

        puzzle = generator.generate(difficulty)

        assert puzzle.metadata.fallback_used
        assert within_band(puzzle.complexity, generator.configs[difficulty])
        assert trace_laser_path(puzzle.grid, puzzle.entry, puzzle.entry_direction).exit == puzzle.exit
        assert_solvable(generator, puzzle)
        watery += strikes_water(puzzle)

    assert watery


def test_exhausting_every_strategy_raises():
    metrics = GenerationMetrics()
    generator = PuzzleGenerator(seed=5, planner=FailingPlanner(), metrics=metrics)
    generator.legacy = LegacyPuzzleGenerator(
        generator.engine, generator.validator, generator.rng, attempts=0
    )

    with pytest.raises(GenerationExhaustedError) as excinfo:
        generator.generate(Difficulty.HARD)

    error = excinfo.value
    assert error.kind is ErrorKind.EXHAUSTION
    assert error.difficulty == "Hard"
    assert error.issues
    assert metrics.total == 1
    assert metrics.successful == 0
    assert metrics.recent_failures[-1]["difficulty"] == "Hard"


def test_broken_collaborators_are_ignored():
    broken = BrokenCollaborator()
    generator = PuzzleGenerator(seed=8, cache=broken, metrics=broken)

    puzzle = generator.generate(Difficulty.EASY)

    assert_solvable(generator, puzzle)


def test_cache_and_metrics_are_populated():
    cache = InMemoryGenerationCache()
    metrics = GenerationMetrics()
    generator = PuzzleGenerator(seed=9, cache=cache, metrics=metrics)

    generator.generate(Difficulty.EASY)
    generator.generate(Difficulty.EASY)

    assert cache.get_pairs(Difficulty.EASY, 6)
    assert metrics.total == 2
    summary = metrics.summary()
    assert summary["by_difficulty"]["Easy"]["total"] == 2
    assert 0.0 <= summary["success_rate"] <= 1.0


def test_hints_reveal_growing_prefixes_of_the_solution():
    puzzle = PuzzleGenerator(seed=11).generate(Difficulty.EASY)

    counts = [len(hint.segments) for hint in puzzle.hints]

    assert [hint.percentage for hint in puzzle.hints] == [25, 50, 75, 100]
    assert counts == sorted(counts)
    assert counts[-1] == len(puzzle.solution_path.segments)


def test_puzzle_serializes_to_plain_data():
    puzzle = PuzzleGenerator(seed=12).generate(Difficulty.EASY)

    payload = puzzle.to_dict()

    assert payload["entry"] == [puzzle.entry.x, puzzle.entry.y]
    assert payload["exit"] == [puzzle.exit.x, puzzle.exit.y]
    assert payload["metadata"]["difficulty"] == "Easy"
    assert len(payload["materials"]) == len(puzzle.grid)


def test_collaborators_are_part_of_the_public_api():
    assert {"InMemoryGenerationCache", "GenerationMetrics"} <= set(laser_puzzle.__all__)
    assert laser_puzzle.InMemoryGenerationCache is InMemoryGenerationCache
