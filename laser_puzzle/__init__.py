"""Laser reflection puzzle engine and guaranteed puzzle generator."""

from __future__ import annotations

import random
from typing import Optional, Tuple, Union

from .collaborators import GenerationMetrics, InMemoryGenerationCache
from .config import ConfigLoader, GenerationSettings
from .engine import RayTrace, RayTraceEngine, TerminationReason
from .errors import ErrorKind, GenerationExhaustedError, LaserPuzzleError, PlanningError
from .generator import GeneratedPuzzle, PuzzleGenerationMetadata, PuzzleGenerator
from .grid import Difficulty, Grid, GridPosition, Material, MaterialType
from .planner import PathPlan, ReversePathPlanner
from .validator import PathValidator, ValidationResult


def _settings() -> GenerationSettings:
    return ConfigLoader().load_generation()


def generate_puzzle(difficulty: Union[Difficulty, str], seed: Optional[int] = None) -> GeneratedPuzzle:
    return PuzzleGenerator(seed=seed).generate(difficulty)


def trace_laser_path(
    grid: Grid,
    entry: Tuple[int, int],
    initial_direction: float,
    rng: Optional[random.Random] = None,
) -> RayTrace:
    return RayTraceEngine.from_settings(_settings()).trace(grid, entry, initial_direction, rng)


def validate_path_physics(
    grid: Grid,
    entry: Tuple[int, int],
    expected_exit: Tuple[int, int],
    initial_direction: Optional[float] = None,
) -> ValidationResult:
    settings = _settings()
    validator = PathValidator(
        RayTraceEngine.from_settings(settings),
        min_reflection_accuracy=settings.min_reflection_accuracy,
    )
    return validator.validate(grid, entry, expected_exit, initial_direction)


def plan_optimal_path(
    entry: Tuple[int, int],
    exit: Tuple[int, int],
    difficulty: Union[Difficulty, str],
    seed: Optional[int] = None,
) -> PathPlan:
    if not isinstance(difficulty, Difficulty):
        difficulty = Difficulty.from_name(difficulty)
    configs = ConfigLoader().load_difficulties()
    return ReversePathPlanner(configs, random.Random(seed)).plan(entry, exit, difficulty)


__all__ = [
    "ConfigLoader",
    "Difficulty",
    "ErrorKind",
    "GeneratedPuzzle",
    "GenerationMetrics",
    "GenerationExhaustedError",
    "GenerationSettings",
    "Grid",
    "GridPosition",
    "InMemoryGenerationCache",
    "LaserPuzzleError",
    "Material",
    "MaterialType",
    "PathPlan",
    "PathValidator",
    "PlanningError",
    "PuzzleGenerationMetadata",
    "PuzzleGenerator",
    "RayTrace",
    "RayTraceEngine",
    "ReversePathPlanner",
    "TerminationReason",
    "ValidationResult",
    "generate_puzzle",
    "plan_optimal_path",
    "trace_laser_path",
    "validate_path_physics",
]
