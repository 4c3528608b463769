"""Generation orchestrator: plan, place, simulate, validate, then accept or retry.

When the guaranteed strategy runs out of attempts the legacy generator
(random grid, keep it if the beam leaves somewhere acceptable) takes over
and the result is flagged with ``fallback_used``.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from . import angles
from .candidates import BoundaryPairSource, EntryExitPair, boundary_positions
from .config import ConfigLoader, GenerationSettings
from .engine import RayTrace, RayTraceEngine, entry_direction_for
from .errors import ErrorKind, GenerationExhaustedError, GenerationIssue, PlanningError
from .grid import (
    DEFAULT_MATERIAL_PROPERTIES,
    Difficulty,
    DifficultyConfig,
    Grid,
    GridPosition,
    Material,
    MaterialProperties,
    MaterialType,
)
from .hints import HintPath, progressive_hints
from .placement import (
    SUPPORTING_MIRROR_ANGLES,
    MaterialPlacementOptimizer,
    density_shortfall,
    target_material_count,
)
from .planner import PathPlan, ReversePathPlanner
from .validator import PathValidator, ValidationResult, trace_complexity, within_band

logger = logging.getLogger(__name__)

GUARANTEED = "guaranteed"
LEGACY = "legacy"


class GenerationState(str, Enum):
    PLANNING = "planning"
    PLACING = "placing"
    SIMULATING = "simulating"
    VALIDATING = "validating"
    ACCEPTED = "accepted"
    RETRY = "retry"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class PuzzleGenerationMetadata:
    puzzle_id: str
    difficulty: Difficulty
    algorithm: str
    attempts: int
    generation_time_ms: float
    confidence_score: float
    validation_passed: bool
    spacing_distance: int
    path_complexity: int
    density_achieved: float
    fallback_used: bool
    warnings: Tuple[str, ...] = ()
    issues: Tuple[GenerationIssue, ...] = ()
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, object]:
        return {
            "puzzle_id": self.puzzle_id,
            "difficulty": self.difficulty.value,
            "algorithm": self.algorithm,
            "attempts": self.attempts,
            "generation_time_ms": self.generation_time_ms,
            "confidence_score": self.confidence_score,
            "validation_passed": self.validation_passed,
            "spacing_distance": self.spacing_distance,
            "path_complexity": self.path_complexity,
            "density_achieved": self.density_achieved,
            "fallback_used": self.fallback_used,
            "warnings": list(self.warnings),
            "issues": [issue.to_dict() for issue in self.issues],
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class GeneratedPuzzle:
    id: str
    difficulty: Difficulty
    grid: Grid
    entry: GridPosition
    entry_direction: float
    exit: GridPosition
    solution_path: RayTrace
    hints: Tuple[HintPath, ...]
    complexity: int
    base_score: int
    max_time: int
    validation: ValidationResult
    metadata: PuzzleGenerationMetadata

    @property
    def materials(self) -> List[Material]:
        return self.grid.materials

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "difficulty": self.difficulty.value,
            "grid_size": self.grid.size,
            "materials": [material.to_dict() for material in self.grid.materials],
            "entry": [self.entry.x, self.entry.y],
            "entry_direction": self.entry_direction,
            "exit": [self.exit.x, self.exit.y],
            "solution_path": self.solution_path.to_dict(),
            "hints": [hint.to_dict() for hint in self.hints],
            "complexity": self.complexity,
            "base_score": self.base_score,
            "max_time": self.max_time,
            "metadata": self.metadata.to_dict(),
        }


@dataclass(frozen=True)
class LegacyResult:
    grid: Grid
    entry: GridPosition
    direction: float
    validation: ValidationResult
    attempts: int
    warnings: Tuple[str, ...] = ()


class LegacyPuzzleGenerator:
    """Random grid; keep it once some boundary entry leads to a qualifying exit."""

    def __init__(
        self,
        engine: RayTraceEngine,
        validator: PathValidator,
        rng: random.Random,
        *,
        properties: Optional[Mapping[MaterialType, MaterialProperties]] = None,
        attempts: int = 200,
    ):
        self.engine = engine
        self.validator = validator
        self.rng = rng
        self.properties = dict(properties or DEFAULT_MATERIAL_PROPERTIES)
        self.attempts = attempts

    def generate(self, config: DifficultyConfig) -> Optional[LegacyResult]:
        size = config.grid_size
        for attempt in range(1, self.attempts + 1):
            entries = self._entry_points(size)
            grid = Grid(size, self._materials(config, entries[0]))
            accepted = self._first_accepted(grid, entries, config)
            if accepted is None:
                continue
            entry, direction, result = accepted
            warnings: List[str] = []
            shortfall = density_shortfall(grid.materials, size, config.material_density)
            if shortfall > 1:
                warnings.append(
                    f"Density shortfall: {len(grid)} of {config.target_material_count} materials"
                )
            logger.debug("Legacy generator accepted grid after %d attempts", attempt)
            return LegacyResult(grid, entry, direction, result, attempt, tuple(warnings))
        return None

    def _entry_points(self, grid_size: int) -> List[GridPosition]:
        """Every boundary cell, left and top edges first 70% of the time."""

        positions = boundary_positions(grid_size)
        self.rng.shuffle(positions)
        if self.rng.random() > 0.3:
            positions.sort(key=lambda p: not (p.x == 0 or p.y == 0))
        return positions

    def _first_accepted(
        self, grid: Grid, entries: Sequence[GridPosition], config: DifficultyConfig
    ) -> Optional[Tuple[GridPosition, float, ValidationResult]]:
        for entry in entries:
            if grid.material_at(entry) is not None:
                continue
            direction = entry_direction_for(entry, grid.size)
            trace = self.engine.trace(grid, entry, direction)
            if trace.exit is None or not grid.is_boundary(trace.exit):
                continue
            if angles.manhattan(entry, trace.exit) < config.spacing.min_distance:
                continue
            if not within_band(trace_complexity(trace), config):
                continue
            result = self.validator.validate(grid, entry, trace.exit, direction)
            if result.is_valid:
                return entry, direction, result
        return None

    def _materials(self, config: DifficultyConfig, entry: GridPosition) -> List[Material]:
        size = config.grid_size
        free = [GridPosition(x, y) for y in range(size) for x in range(size) if (x, y) != entry]
        count = min(len(free), target_material_count(size, config.material_density))
        weights = [config.material_weights.get(m, 0.0) for m in config.allowed_materials]
        if not any(weights):
            weights = [1.0] * len(config.allowed_materials)
        materials: List[Material] = []
        for position in self.rng.sample(free, count):
            material_type = self.rng.choices(config.allowed_materials, weights=weights, k=1)[0]
            angle = None
            if material_type is MaterialType.MIRROR:
                angle = float(self.rng.choice(SUPPORTING_MIRROR_ANGLES))
            materials.append(
                Material(material_type, position, angle, self.properties[material_type])
            )
        return materials


class PuzzleGenerator:
    """Drive generation attempts until a puzzle validates or strategies run out.

    Every service is injectable; by default they are built from the bundled
    configuration and share one random source, so a fixed ``seed`` replays
    an identical run.
    """

    def __init__(
        self,
        configs: Optional[Mapping[Difficulty, DifficultyConfig]] = None,
        settings: Optional[GenerationSettings] = None,
        *,
        seed: Optional[int] = None,
        rng: Optional[random.Random] = None,
        properties: Optional[Mapping[MaterialType, MaterialProperties]] = None,
        engine: Optional[RayTraceEngine] = None,
        validator: Optional[PathValidator] = None,
        planner: Optional[ReversePathPlanner] = None,
        optimizer: Optional[MaterialPlacementOptimizer] = None,
        candidates: Optional[BoundaryPairSource] = None,
        legacy: Optional[LegacyPuzzleGenerator] = None,
        cache=None,
        metrics=None,
        clock: Callable[[], float] = time.perf_counter,
    ):
        loader: Optional[ConfigLoader] = None
        if configs is None or settings is None or properties is None:
            loader = ConfigLoader()
        self.configs = dict(configs if configs is not None else loader.load_difficulties())
        self.settings = settings if settings is not None else loader.load_generation()
        self.properties = dict(properties if properties is not None else loader.load_materials())
        self.rng = rng if rng is not None else random.Random(seed)

        self.engine = engine or RayTraceEngine.from_settings(self.settings)
        self.validator = validator or PathValidator(
            self.engine, min_reflection_accuracy=self.settings.min_reflection_accuracy
        )
        self.planner = planner or ReversePathPlanner(
            self.configs, self.rng, retries=self.settings.planner_retries
        )
        self.optimizer = optimizer or MaterialPlacementOptimizer(
            self.configs, self.rng, self.properties
        )
        self.candidates = candidates or BoundaryPairSource()
        self.legacy = legacy or LegacyPuzzleGenerator(
            self.engine,
            self.validator,
            self.rng,
            properties=self.properties,
            attempts=self.settings.legacy_attempts,
        )
        self.cache = cache
        self.metrics = metrics
        self.clock = clock

    def generate(self, difficulty: Union[Difficulty, str]) -> GeneratedPuzzle:
        if not isinstance(difficulty, Difficulty):
            difficulty = Difficulty.from_name(difficulty)
        config = self.configs[difficulty]
        started = self.clock()
        issues: List[GenerationIssue] = []

        for attempt in range(1, self.settings.max_attempts + 1):
            for pair in self._select_pairs(config):
                puzzle = self._attempt(pair, config, attempt, issues, started)
                if puzzle is not None:
                    self._record(puzzle.metadata)
                    return puzzle
            logger.debug("%s attempt %d found no valid puzzle; retrying", difficulty.value, attempt)

        logger.warning(
            "Guaranteed generation exhausted %d attempts for %s; using legacy generator",
            self.settings.max_attempts,
            difficulty.value,
        )
        issues.append(
            GenerationIssue(
                kind=ErrorKind.EXHAUSTION,
                message=f"Guaranteed generation exhausted {self.settings.max_attempts} attempts",
                attempt=self.settings.max_attempts,
            )
        )
        legacy = self.legacy.generate(config)
        if legacy is None:
            attempts = self.settings.max_attempts + self.legacy.attempts
            self._record_failure(difficulty, attempts, "legacy generator exhausted")
            raise GenerationExhaustedError(
                f"Could not generate a {difficulty.value} puzzle with any strategy",
                difficulty=difficulty.value,
                attempts=attempts,
                issues=issues,
            )
        puzzle = self._build(
            config=config,
            algorithm=LEGACY,
            grid=legacy.grid,
            entry=legacy.entry,
            direction=legacy.direction,
            validation=legacy.validation,
            attempts=self.settings.max_attempts + legacy.attempts,
            started=started,
            warnings=["Fell back to legacy generator", *legacy.warnings],
            issues=issues,
        )
        self._record(puzzle.metadata)
        return puzzle

    def _candidate_pairs(self, config: DifficultyConfig) -> List[EntryExitPair]:
        cached = None
        if self.cache is not None:
            try:
                cached = self.cache.get_pairs(config.difficulty, config.grid_size)
            except Exception:
                logger.warning("Pair cache lookup failed; ignoring", exc_info=True)
        if cached:
            return list(cached)
        pairs = self.candidates.pairs(config)
        if self.cache is not None:
            try:
                self.cache.store_pairs(config.difficulty, config.grid_size, pairs)
            except Exception:
                logger.warning("Pair cache store failed; ignoring", exc_info=True)
        return pairs

    def _select_pairs(self, config: DifficultyConfig) -> List[EntryExitPair]:
        pairs = self._candidate_pairs(config)
        self.rng.shuffle(pairs)
        return pairs[: self.settings.pairs_per_attempt]

    def _attempt(
        self,
        pair: EntryExitPair,
        config: DifficultyConfig,
        attempt: int,
        issues: List[GenerationIssue],
        started: float,
    ) -> Optional[GeneratedPuzzle]:
        state = GenerationState.PLANNING
        try:
            plan = self.planner.plan(pair.entry, pair.exit, config.difficulty)
        except PlanningError as exc:
            issues.append(exc.to_issue(attempt))
            logger.debug("Attempt %d %s: %s", attempt, state.value, exc)
            return None

        state = GenerationState.PLACING
        materials = self.optimizer.place(plan, config.grid_size)
        grid = Grid(config.grid_size, materials)
        warnings: List[str] = []
        shortfall = density_shortfall(materials, config.grid_size, config.material_density)
        if shortfall > 1:
            message = f"Density shortfall: {len(materials)} of {config.target_material_count} materials"
            warnings.append(message)
            issues.append(GenerationIssue(ErrorKind.DENSITY_INFEASIBLE, message, attempt))

        state = GenerationState.SIMULATING
        trace = self.engine.trace(grid, plan.entry, plan.entry_direction)
        if not trace.terminated:
            issues.append(
                GenerationIssue(
                    ErrorKind.RUNAWAY_SIMULATION,
                    f"Trace exceeded {self.engine.max_bounces} bounces",
                    attempt,
                    position=plan.entry,
                )
            )
            return None
        if trace.exit != plan.exit:
            issues.append(
                GenerationIssue(
                    ErrorKind.PHYSICS_MISMATCH,
                    f"Simulated exit {trace.exit} differs from planned exit {tuple(plan.exit)}",
                    attempt,
                    position=trace.exit,
                )
            )
            logger.debug("Attempt %d %s: exit mismatch", attempt, state.value)
            return None

        state = GenerationState.VALIDATING
        result = self._validate(grid, plan)
        accepted = (
            result.is_valid
            and result.termination_correct
            and result.confidence_score >= self.settings.min_confidence
            and within_band(result.complexity, config)
        )
        if not accepted:
            issues.append(
                GenerationIssue(
                    ErrorKind.PHYSICS_MISMATCH,
                    f"Rejected: confidence {result.confidence_score:.0f}, "
                    f"complexity {result.complexity}, errors {list(result.errors)}",
                    attempt,
                )
            )
            logger.debug("Attempt %d %s -> %s", attempt, state.value, GenerationState.RETRY.value)
            return None

        logger.debug("Attempt %d %s", attempt, GenerationState.ACCEPTED.value)
        return self._build(
            config=config,
            algorithm=GUARANTEED,
            grid=grid,
            entry=plan.entry,
            direction=plan.entry_direction,
            validation=result,
            attempts=attempt,
            started=started,
            warnings=[*warnings, *result.warnings],
            issues=issues,
        )

    def _validate(self, grid: Grid, plan: PathPlan) -> ValidationResult:
        key = f"{grid.fingerprint()}|{plan.entry}|{plan.exit}|{plan.entry_direction:.6f}"
        if self.cache is not None:
            try:
                cached = self.cache.get_validation(key)
            except Exception:
                logger.warning("Validation cache lookup failed; ignoring", exc_info=True)
                cached = None
            if cached is not None:
                return cached
        result = self.validator.validate(grid, plan.entry, plan.exit, plan.entry_direction)
        if self.cache is not None:
            try:
                self.cache.store_validation(key, result)
            except Exception:
                logger.warning("Validation cache store failed; ignoring", exc_info=True)
        return result

    def _build(
        self,
        *,
        config: DifficultyConfig,
        algorithm: str,
        grid: Grid,
        entry: GridPosition,
        direction: float,
        validation: ValidationResult,
        attempts: int,
        started: float,
        warnings: Sequence[str],
        issues: Sequence[GenerationIssue],
    ) -> GeneratedPuzzle:
        trace = validation.trace
        exit_position = trace.exit
        puzzle_id = f"{algorithm}_{config.difficulty.value.lower()}_{self.rng.randrange(10 ** 6):06d}"
        metadata = PuzzleGenerationMetadata(
            puzzle_id=puzzle_id,
            difficulty=config.difficulty,
            algorithm=algorithm,
            attempts=attempts,
            generation_time_ms=(self.clock() - started) * 1000.0,
            confidence_score=validation.confidence_score,
            validation_passed=validation.is_valid,
            spacing_distance=angles.manhattan(entry, exit_position),
            path_complexity=validation.complexity,
            density_achieved=grid.density(),
            fallback_used=algorithm == LEGACY,
            warnings=tuple(warnings),
            issues=tuple(issues),
        )
        logger.info(
            "Generated %s puzzle %s via %s in %d attempts (confidence %.0f)",
            config.difficulty.value,
            puzzle_id,
            algorithm,
            attempts,
            validation.confidence_score,
        )
        return GeneratedPuzzle(
            id=puzzle_id,
            difficulty=config.difficulty,
            grid=grid,
            entry=entry,
            entry_direction=direction,
            exit=exit_position,
            solution_path=trace,
            hints=tuple(progressive_hints(trace)),
            complexity=validation.complexity,
            base_score=config.base_score,
            max_time=config.max_time,
            validation=validation,
            metadata=metadata,
        )

    def _record(self, metadata: PuzzleGenerationMetadata) -> None:
        if self.metrics is None:
            return
        try:
            self.metrics.record(metadata)
        except Exception:
            logger.warning("Metrics sink failed; ignoring", exc_info=True)

    def _record_failure(self, difficulty: Difficulty, attempts: int, reason: str) -> None:
        if self.metrics is None:
            return
        try:
            self.metrics.record_failure(difficulty, attempts, reason)
        except Exception:
            logger.warning("Metrics sink failed; ignoring", exc_info=True)
