"""Physics validation of a grid against an expected exit, plus complexity scoring."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from . import angles
from .engine import RayTrace, RayTraceEngine, entry_direction_for, outgoing_direction
from .grid import DifficultyConfig, Grid, GridPosition, Material, MaterialType

logger = logging.getLogger(__name__)

MIN_REFLECTION_ACCURACY = 0.9
MAX_COMPLEXITY = 10
COMPLEXITY_SCALE = 20.0


@dataclass(frozen=True)
class MaterialInteraction:
    """How closely the beam followed one material's rule."""

    material: Material
    incident_angle: float
    expected_angle: float
    actual_angle: float
    accuracy: float

    @property
    def compliant(self) -> bool:
        return self.accuracy >= MIN_REFLECTION_ACCURACY

    def to_dict(self) -> Dict[str, object]:
        return {
            "material": self.material.to_dict(),
            "incident_angle": self.incident_angle,
            "expected_angle": self.expected_angle,
            "actual_angle": self.actual_angle,
            "accuracy": self.accuracy,
            "compliant": self.compliant,
        }


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    confidence_score: float
    reflection_accuracy: float
    path_continuity: bool
    termination_correct: bool
    errors: Tuple[str, ...]
    warnings: Tuple[str, ...]
    trace: RayTrace
    interactions: Tuple[MaterialInteraction, ...] = ()
    alternative_exits: int = 0
    complexity: int = 1

    def to_dict(self) -> Dict[str, object]:
        return {
            "is_valid": self.is_valid,
            "confidence_score": self.confidence_score,
            "reflection_accuracy": self.reflection_accuracy,
            "path_continuity": self.path_continuity,
            "termination_correct": self.termination_correct,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "alternative_exits": self.alternative_exits,
            "complexity": self.complexity,
            "interactions": [interaction.to_dict() for interaction in self.interactions],
        }


def complexity_score(
    reflections: int,
    material_types: Iterable[MaterialType],
    waypoints: Sequence[Tuple[int, int]],
) -> int:
    """Normalized 1-10 complexity of a path.

    ``waypoints`` is the polyline entry, reflection points, exit; its length
    is measured as the Manhattan sum of consecutive legs.
    """

    diversity = len({m for m in material_types if m is not MaterialType.EMPTY})
    length = sum(angles.manhattan(a, b) for a, b in zip(waypoints, waypoints[1:]))
    raw = 2 * reflections + diversity + length // 3
    scaled = int(math.floor(raw * MAX_COMPLEXITY / COMPLEXITY_SCALE + 0.5))
    return max(1, min(MAX_COMPLEXITY, scaled))


def trace_complexity(trace: RayTrace) -> int:
    struck = [m for m in trace.struck_materials if m.type is not MaterialType.ABSORBER]
    waypoints: List[Tuple[int, int]] = [trace.entry]
    waypoints.extend(material.position for material in struck)
    if trace.exit is not None:
        waypoints.append(trace.exit)
    return complexity_score(len(struck), (m.type for m in struck), waypoints)


def within_band(score: int, config: DifficultyConfig) -> bool:
    low, high = config.complexity_band
    return low <= score <= high


def path_is_continuous(trace: RayTrace) -> bool:
    if not trace.segments:
        return False
    if trace.segments[0].start != trace.entry:
        return False
    return all(
        current.end == following.start
        for current, following in zip(trace.segments, trace.segments[1:])
    )


class PathValidator:
    """Re-simulate a grid and judge whether it realizes the expected exit."""

    def __init__(
        self,
        engine: Optional[RayTraceEngine] = None,
        *,
        min_reflection_accuracy: float = MIN_REFLECTION_ACCURACY,
        check_alternatives: bool = True,
    ):
        self.engine = engine or RayTraceEngine()
        self.min_reflection_accuracy = min_reflection_accuracy
        self.check_alternatives = check_alternatives

    def validate(
        self,
        grid: Grid,
        entry: Tuple[int, int],
        expected_exit: Tuple[int, int],
        initial_direction: Optional[float] = None,
    ) -> ValidationResult:
        entry = GridPosition.of(entry)
        expected_exit = GridPosition.of(expected_exit)
        if initial_direction is None:
            initial_direction = entry_direction_for(entry, grid.size)
        trace = self.engine.trace(grid, entry, initial_direction)

        errors: List[str] = []
        warnings: List[str] = []

        termination_correct = trace.exit == expected_exit
        if trace.exit is None:
            errors.append(
                f"Beam did not exit ({trace.termination.value}); expected exit at {tuple(expected_exit)}"
            )
        elif not termination_correct:
            errors.append(
                f"Beam exited at {tuple(trace.exit)} instead of {tuple(expected_exit)}"
            )

        continuity = path_is_continuous(trace)
        if not continuity:
            errors.append("Beam path is discontinuous")

        if not trace.terminated:
            errors.append(f"Simulation exceeded {self.engine.max_bounces} bounces")
        if trace.loop_detected:
            warnings.append("Beam revisits a cell in the same direction")

        interactions = self._interactions(trace)
        if interactions:
            accuracy = sum(item.accuracy for item in interactions) / len(interactions)
        else:
            accuracy = 1.0
        accuracy = max(0.0, min(1.0, accuracy))
        if accuracy < self.min_reflection_accuracy:
            warnings.append(f"Reflection accuracy {accuracy:.2f} is below {self.min_reflection_accuracy}")

        alternatives = 0
        if self.check_alternatives and trace.exit is not None:
            for position in self.alternative_entries(grid, entry, trace.exit):
                alternatives += 1
                warnings.append(f"Entry {tuple(position)} also reaches exit {tuple(trace.exit)}")

        is_valid = not errors
        confidence = self._confidence(
            exit_found=trace.exit is not None,
            termination_correct=termination_correct,
            alternatives=alternatives,
            is_valid=is_valid,
            accuracy=accuracy,
        )
        result = ValidationResult(
            is_valid=is_valid,
            confidence_score=confidence,
            reflection_accuracy=accuracy,
            path_continuity=continuity,
            termination_correct=termination_correct,
            errors=tuple(errors),
            warnings=tuple(warnings),
            trace=trace,
            interactions=tuple(interactions),
            alternative_exits=alternatives,
            complexity=trace_complexity(trace),
        )
        logger.debug(
            "Validated entry %s -> %s: valid=%s confidence=%.1f",
            tuple(entry),
            tuple(expected_exit),
            is_valid,
            confidence,
        )
        return result

    def alternative_entries(
        self, grid: Grid, entry: GridPosition, exit_position: GridPosition
    ) -> List[GridPosition]:
        """Other boundary entries whose inward beam also leaves at ``exit_position``."""

        found: List[GridPosition] = []
        for position in grid.boundary_cells():
            if position in (entry, exit_position):
                continue
            trace = self.engine.trace(grid, position, entry_direction_for(position, grid.size))
            if trace.exit == exit_position:
                found.append(position)
        return found

    def _interactions(self, trace: RayTrace) -> List[MaterialInteraction]:
        interactions: List[MaterialInteraction] = []
        segments = trace.segments
        for index, segment in enumerate(segments):
            material = segment.material
            if material is None or material.type is MaterialType.ABSORBER:
                continue
            expected = outgoing_direction(material, segment.direction)
            if index + 1 < len(segments):
                actual = segments[index + 1].direction
            else:
                actual = trace.final_direction
            accuracy = 1.0 - angles.angle_difference(expected, actual) / 180.0
            interactions.append(
                MaterialInteraction(
                    material=material,
                    incident_angle=segment.direction,
                    expected_angle=expected,
                    actual_angle=actual,
                    accuracy=accuracy,
                )
            )
        return interactions

    def _confidence(
        self,
        *,
        exit_found: bool,
        termination_correct: bool,
        alternatives: int,
        is_valid: bool,
        accuracy: float,
    ) -> float:
        score = 100.0
        if not exit_found:
            score -= 50
        elif not termination_correct:
            score -= 30
        score -= min(30, 10 * alternatives)
        if not is_valid:
            score -= 20
        threshold = self.min_reflection_accuracy
        if accuracy < threshold:
            score -= math.floor((threshold - accuracy) * 100)
        if termination_correct:
            score += 10
        return float(max(0, min(100, score)))
