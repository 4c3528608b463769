"""Turn a path plan into a full set of materials at the target density."""

from __future__ import annotations

import logging
import random
from typing import Dict, List, Mapping, Optional, Sequence, Set, Tuple

from .engine import leg_cells
from .grid import (
    DEFAULT_MATERIAL_PROPERTIES,
    Difficulty,
    DifficultyConfig,
    GridPosition,
    Material,
    MaterialProperties,
    MaterialType,
)
from .planner import PathPlan

logger = logging.getLogger(__name__)

SUPPORTING_MIRROR_ANGLES = tuple(range(0, 180, 15))
CRITICAL_CLEARANCE = 1
PLACEMENT_ATTEMPTS_PER_MATERIAL = 10


def target_material_count(grid_size: int, density: float) -> int:
    return int(grid_size * grid_size * density)


def density_shortfall(materials: Sequence[Material], grid_size: int, density: float) -> int:
    """How many materials short of the density target ``materials`` is."""

    return max(0, target_material_count(grid_size, density) - len(materials))


class MaterialPlacementOptimizer:
    """Place critical-path materials, then fill supporting ones around them."""

    def __init__(
        self,
        configs: Mapping[Difficulty, DifficultyConfig],
        rng: Optional[random.Random] = None,
        properties: Optional[Mapping[MaterialType, MaterialProperties]] = None,
    ):
        self.configs = dict(configs)
        self.rng = rng or random.Random()
        self.properties = dict(properties or DEFAULT_MATERIAL_PROPERTIES)

    def _material(
        self, material_type: MaterialType, position: Tuple[int, int], angle: Optional[float] = None
    ) -> Material:
        return Material(
            type=material_type,
            position=GridPosition.of(position),
            angle=angle,
            properties=self.properties[material_type],
        )

    def critical_materials(self, plan: PathPlan) -> List[Material]:
        return [
            self._material(req.material_type, req.position, req.angle)
            for req in plan.requirements
        ]

    def reserved_cells(self, plan: PathPlan, grid_size: int) -> Set[GridPosition]:
        """Cells that must stay free of supporting materials."""

        reserved: Set[GridPosition] = {plan.entry, plan.exit}
        waypoints = plan.waypoints
        for start, end in zip(waypoints, waypoints[1:]):
            reserved.update(leg_cells(start, end, grid_size))
        for point in plan.critical_positions:
            for dx in range(-CRITICAL_CLEARANCE, CRITICAL_CLEARANCE + 1):
                for dy in range(-CRITICAL_CLEARANCE, CRITICAL_CLEARANCE + 1):
                    if abs(dx) + abs(dy) <= CRITICAL_CLEARANCE:
                        reserved.add(GridPosition(point.x + dx, point.y + dy))
        return reserved

    def place(self, plan: PathPlan, grid_size: int) -> List[Material]:
        config = self.configs[plan.difficulty]
        materials = self.critical_materials(plan)
        return self.optimize_density(materials, config.material_density, grid_size, plan)

    def optimize_density(
        self,
        materials: Sequence[Material],
        target_density: float,
        grid_size: int,
        plan: PathPlan,
    ) -> List[Material]:
        target = target_material_count(grid_size, target_density)
        critical = set(plan.critical_positions)
        result = list(materials)

        if abs(len(result) - target) <= 1:
            return result

        if len(result) > target:
            removable = [m for m in result if m.position not in critical]
            excess = len(result) - target
            self.rng.shuffle(removable)
            dropped = {m.position for m in removable[:excess]}
            result = [m for m in result if m.position not in dropped]
            if len(result) > target:
                logger.info(
                    "Density above target (%d > %d); critical materials are kept",
                    len(result),
                    target,
                )
            return result

        config = self.configs[plan.difficulty]
        occupied = {m.position for m in result}
        blocked = self.reserved_cells(plan, grid_size) | occupied
        free = [
            GridPosition(x, y)
            for y in range(grid_size)
            for x in range(grid_size)
            if GridPosition(x, y) not in blocked
        ]
        needed = target - len(result)
        attempts = needed * PLACEMENT_ATTEMPTS_PER_MATERIAL
        placed = 0
        while placed < needed and attempts > 0 and free:
            attempts -= 1
            position = free[self.rng.randrange(len(free))]
            if position in occupied:
                continue
            material_type = self._supporting_type(config)
            angle = None
            if material_type is MaterialType.MIRROR:
                angle = float(self.rng.choice(SUPPORTING_MIRROR_ANGLES))
            result.append(self._material(material_type, position, angle))
            occupied.add(position)
            free.remove(position)
            placed += 1

        if placed < needed:
            logger.warning(
                "Density shortfall on %dx%d grid: placed %d of %d materials",
                grid_size,
                grid_size,
                len(result),
                target,
            )
        return result

    def _supporting_type(self, config: DifficultyConfig) -> MaterialType:
        weights = self.supporting_weights(config)
        choices = list(weights)
        return self.rng.choices(choices, weights=[weights[m] for m in choices], k=1)[0]

    def supporting_weights(self, config: DifficultyConfig) -> Dict[MaterialType, float]:
        """Normalized supporting-type distribution over the allowed materials."""

        weights = {
            m: config.material_weights.get(m, 0.0)
            for m in config.allowed_materials
            if config.material_weights.get(m, 0.0) > 0
        }
        total = sum(weights.values())
        if not total:
            return {m: 1.0 / len(config.allowed_materials) for m in config.allowed_materials}
        return {m: weight / total for m, weight in weights.items()}
