"""Reverse path planning: choose reflection points from the exit back to the entry."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from . import angles
from .errors import PlanningError
from .grid import Difficulty, DifficultyConfig, GridPosition, MaterialType
from .validator import complexity_score

logger = logging.getLogger(__name__)

MIN_POINT_SPACING = 2
JITTER_RATIO = 0.2
MATERIAL_PREFERENCE = (
    MaterialType.MIRROR,
    MaterialType.GLASS,
    MaterialType.WATER,
    MaterialType.METAL,
    MaterialType.ABSORBER,
)
NEIGHBOR_OFFSETS = tuple(
    (dx, dy) for dx in (-1, 0, 1) for dy in (-1, 0, 1) if (dx, dy) != (0, 0)
)


class Priority(str, Enum):
    CRITICAL = "critical"
    SUPPORTING = "supporting"


@dataclass(frozen=True)
class MaterialRequirement:
    position: GridPosition
    material_type: MaterialType
    angle: Optional[float] = None
    priority: Priority = Priority.CRITICAL
    reflection_index: int = 0

    def to_dict(self) -> Dict[str, object]:
        return {
            "position": [self.position.x, self.position.y],
            "material": self.material_type.value,
            "angle": self.angle,
            "priority": self.priority.value,
            "reflection_index": self.reflection_index,
        }


@dataclass(frozen=True)
class PathPlan:
    """Planned route from entry to exit; immutable once built."""

    entry: GridPosition
    exit: GridPosition
    required_reflections: int
    reflection_points: Tuple[GridPosition, ...]
    requirements: Tuple[MaterialRequirement, ...]
    complexity: int
    difficulty: Difficulty
    entry_direction: float

    @property
    def waypoints(self) -> List[GridPosition]:
        return [self.entry, *self.reflection_points, self.exit]

    @property
    def critical_positions(self) -> List[GridPosition]:
        return [req.position for req in self.requirements if req.priority is Priority.CRITICAL]

    def to_dict(self) -> Dict[str, object]:
        return {
            "entry": [self.entry.x, self.entry.y],
            "exit": [self.exit.x, self.exit.y],
            "required_reflections": self.required_reflections,
            "reflection_points": [[p.x, p.y] for p in self.reflection_points],
            "requirements": [req.to_dict() for req in self.requirements],
            "complexity": self.complexity,
            "difficulty": self.difficulty.value,
            "entry_direction": self.entry_direction,
        }


def required_reflection_count(entry: Tuple[int, int], exit: Tuple[int, int], config: DifficultyConfig) -> int:
    count = config.min_reflections + angles.manhattan(entry, exit) // 3
    return max(config.min_reflections, min(config.max_reflections, count))


def choose_material(config: DifficultyConfig) -> MaterialType:
    for material_type in MATERIAL_PREFERENCE:
        if config.allows(material_type):
            return material_type
    return config.allowed_materials[0]


def mirror_angle_for(
    point: Tuple[int, int], previous: Tuple[int, int], following: Tuple[int, int]
) -> float:
    """Mirror normal that turns the beam from ``previous`` onto ``following``.

    This is the bisector of the two legs as seen from ``point``.
    """

    back = angles.angle_between(point, previous)
    forward = angles.angle_between(point, following)
    return angles.bisector(back, forward)


class ReversePathPlanner:
    """Build :class:`PathPlan` objects by working backwards from the exit."""

    def __init__(
        self,
        configs: Mapping[Difficulty, DifficultyConfig],
        rng: Optional[random.Random] = None,
        *,
        retries: int = 5,
    ):
        self.configs = dict(configs)
        self.rng = rng or random.Random()
        self.retries = max(1, retries)

    def plan(
        self, entry: Tuple[int, int], exit: Tuple[int, int], difficulty: Difficulty
    ) -> PathPlan:
        config = self.configs[difficulty]
        entry = GridPosition.of(entry)
        exit = GridPosition.of(exit)
        if entry == exit:
            raise PlanningError("Entry and exit coincide", index=0, position=entry)
        for position in (entry, exit):
            if not (0 <= position.x < config.grid_size and 0 <= position.y < config.grid_size):
                raise PlanningError(f"{tuple(position)} lies outside the grid", index=0, position=position)

        count = required_reflection_count(entry, exit, config)
        points = self._reflection_points(entry, exit, count, config.grid_size)
        material_type = choose_material(config)

        waypoints = [entry, *points, exit]
        requirements: List[MaterialRequirement] = []
        for index, point in enumerate(points, start=1):
            angle = None
            if material_type is MaterialType.MIRROR:
                angle = mirror_angle_for(point, waypoints[index - 1], waypoints[index + 1])
            requirements.append(
                MaterialRequirement(
                    position=point,
                    material_type=material_type,
                    angle=angle,
                    priority=Priority.CRITICAL,
                    reflection_index=index - 1,
                )
            )

        complexity = complexity_score(
            len(points), (req.material_type for req in requirements), waypoints
        )
        plan = PathPlan(
            entry=entry,
            exit=exit,
            required_reflections=count,
            reflection_points=tuple(points),
            requirements=tuple(requirements),
            complexity=complexity,
            difficulty=difficulty,
            entry_direction=angles.angle_between(entry, waypoints[1]),
        )
        logger.debug(
            "Planned %s path %s -> %s with %d reflections (complexity %d)",
            difficulty.value,
            tuple(entry),
            tuple(exit),
            count,
            complexity,
        )
        return plan

    def _reflection_points(
        self, entry: GridPosition, exit: GridPosition, count: int, grid_size: int
    ) -> List[GridPosition]:
        points: List[GridPosition] = []
        current = exit
        for index in range(count):
            point = self._next_point(current, entry, exit, points, grid_size, index, count)
            points.insert(0, point)
            current = point
        return points

    def _next_point(
        self,
        current: GridPosition,
        target: GridPosition,
        exit: GridPosition,
        chosen: Sequence[GridPosition],
        grid_size: int,
        index: int,
        total: int,
    ) -> GridPosition:
        progress = (index + 1) / (total + 1)
        base_x = angles.round_half_up(current.x + (target.x - current.x) * progress)
        base_y = angles.round_half_up(current.y + (target.y - current.y) * progress)
        variation = int(grid_size * JITTER_RATIO)
        low, high = 1, grid_size - 2

        candidate = GridPosition(base_x, base_y)
        for _ in range(self.retries):
            candidate = GridPosition(
                max(low, min(high, base_x + self.rng.randint(-variation, variation))),
                max(low, min(high, base_y + self.rng.randint(-variation, variation))),
            )
            if self._admissible(candidate, (current, target, exit), chosen, grid_size):
                return candidate

        for dx, dy in NEIGHBOR_OFFSETS:
            neighbor = GridPosition(candidate.x + dx, candidate.y + dy)
            if self._admissible(neighbor, (current, target, exit), chosen, grid_size):
                return neighbor

        raise PlanningError(
            f"No reflection point available for index {index} near {tuple(candidate)}",
            index=index,
            position=candidate,
        )

    @staticmethod
    def _admissible(
        candidate: GridPosition,
        reserved: Sequence[GridPosition],
        chosen: Sequence[GridPosition],
        grid_size: int,
    ) -> bool:
        if not (0 <= candidate.x < grid_size and 0 <= candidate.y < grid_size):
            return False
        if candidate in reserved:
            return False
        return all(angles.manhattan(candidate, point) >= MIN_POINT_SPACING for point in chosen)
