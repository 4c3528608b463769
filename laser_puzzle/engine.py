"""Forward simulation of a single beam through a grid."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, List, Optional, Set, Tuple

from . import angles
from .grid import Grid, GridPosition, Material, MaterialType

logger = logging.getLogger(__name__)

MAX_BOUNCES = 1000
MIN_INTENSITY = 0.01
DIFFUSION_DEGREES = 50.0

# Water and glass reflect as if their surface were horizontal.
SURFACE_NORMAL = angles.SOUTH


class TerminationReason(str, Enum):
    ABSORBED = "absorbed"
    EXIT = "exit"
    MAX_BOUNCES = "max_bounces"
    MIN_INTENSITY = "min_intensity"


@dataclass(frozen=True)
class RaySegment:
    """Straight run of the beam, tagged with what it struck at ``end``."""

    start: GridPosition
    end: GridPosition
    direction: float
    material: Optional[Material] = None
    intensity: float = 1.0

    def to_dict(self) -> Dict[str, object]:
        return {
            "start": [self.start.x, self.start.y],
            "end": [self.end.x, self.end.y],
            "direction": self.direction,
            "material": self.material.to_dict() if self.material else None,
            "intensity": self.intensity,
        }


@dataclass(frozen=True)
class RayTrace:
    """Complete trajectory of one beam for a (grid, entry, direction) triple."""

    entry: GridPosition
    initial_direction: float
    segments: Tuple[RaySegment, ...]
    exit: Optional[GridPosition]
    termination: TerminationReason
    bounces: int
    final_intensity: float
    final_direction: float
    loop_detected: bool = False

    @property
    def terminated(self) -> bool:
        return self.termination is not TerminationReason.MAX_BOUNCES

    @property
    def struck_materials(self) -> List[Material]:
        return [segment.material for segment in self.segments if segment.material is not None]

    def cells(self) -> List[GridPosition]:
        """Distinct cells touched by segment endpoints, in order."""

        seen: List[GridPosition] = []
        for segment in self.segments:
            for position in (segment.start, segment.end):
                if position not in seen:
                    seen.append(position)
        return seen

    def to_dict(self) -> Dict[str, object]:
        return {
            "entry": [self.entry.x, self.entry.y],
            "initial_direction": self.initial_direction,
            "segments": [segment.to_dict() for segment in self.segments],
            "exit": [self.exit.x, self.exit.y] if self.exit is not None else None,
            "termination": self.termination.value,
            "terminated": self.terminated,
            "bounces": self.bounces,
            "final_intensity": self.final_intensity,
            "final_direction": self.final_direction,
            "loop_detected": self.loop_detected,
        }


def walk(
    start: Tuple[int, int], direction: float, grid_size: int, steps: Optional[int] = None
) -> Iterator[GridPosition]:
    """Yield the cells a straight run from ``start`` visits while inside the grid.

    ``start`` itself is not yielded. With ``steps`` the run stops after that
    many cells even when it is still inside the grid.
    """

    for index, (x, y) in enumerate(angles.cells_along(start, direction), start=1):
        if steps is not None and index > steps:
            return
        if not (0 <= x < grid_size and 0 <= y < grid_size):
            return
        yield GridPosition(x, y)


def leg_cells(start: Tuple[int, int], end: Tuple[int, int], grid_size: int) -> List[GridPosition]:
    """Cells a beam visits travelling from ``start`` straight to ``end``."""

    steps = max(abs(end[0] - start[0]), abs(end[1] - start[1]))
    if steps == 0:
        return []
    return list(walk(start, angles.angle_between(start, end), grid_size, steps=steps))


def entry_direction_for(entry: Tuple[int, int], grid_size: int) -> float:
    """Inward cardinal direction for a boundary cell."""

    x, y = entry
    last = grid_size - 1
    if x == 0:
        return angles.EAST
    if x == last:
        return angles.WEST
    if y == 0:
        return angles.SOUTH
    if y == last:
        return angles.NORTH
    raise ValueError(f"{entry} is not on the boundary of a {grid_size}x{grid_size} grid")


def diffusion_offset(
    position: Tuple[int, int], incident: float, spread: float, seed: int = 0
) -> float:
    """Offset in ``[-spread, spread]`` fixed by the water cell and the incidence."""

    key = f"{seed}:{position[0]}:{position[1]}:{angles.normalize(incident):.6f}"
    return random.Random(key).uniform(-spread, spread)


def outgoing_direction(
    material: Material,
    incident: float,
    rng: Optional[random.Random] = None,
    diffusion_degrees: float = DIFFUSION_DEGREES,
) -> float:
    """Direction after ``material`` deflects a beam heading ``incident``.

    Water only diffuses when ``rng`` is given; without it the undisturbed
    reflection is returned.
    """

    kind = material.type
    if kind is MaterialType.MIRROR:
        return angles.mirror_reflection(incident, material.angle or 0.0)
    if kind is MaterialType.METAL:
        return angles.reverse(incident)
    if kind is MaterialType.WATER:
        reflected = angles.mirror_reflection(incident, SURFACE_NORMAL)
        if rng is None:
            return reflected
        spread = material.properties.diffusion * diffusion_degrees
        return angles.normalize(reflected + rng.uniform(-spread, spread))
    if kind is MaterialType.GLASS:
        return angles.mirror_reflection(incident, SURFACE_NORMAL)
    if kind is MaterialType.EMPTY:
        return angles.normalize(incident)
    raise ValueError(f"{kind.value} does not deflect the beam")


class RayTraceEngine:
    """Simulate a beam cell by cell until it is absorbed, leaves, or fades."""

    def __init__(
        self,
        *,
        max_bounces: int = MAX_BOUNCES,
        min_intensity: float = MIN_INTENSITY,
        diffusion_seed: int = 0,
        diffusion_degrees: float = DIFFUSION_DEGREES,
    ):
        self.max_bounces = max_bounces
        self.min_intensity = min_intensity
        self.diffusion_seed = diffusion_seed
        self.diffusion_degrees = diffusion_degrees

    @classmethod
    def from_settings(cls, settings) -> "RayTraceEngine":
        return cls(
            max_bounces=settings.max_bounces,
            min_intensity=settings.min_intensity,
            diffusion_degrees=settings.diffusion_degrees,
        )

    def deflect(
        self, material: Material, incident: float, rng: Optional[random.Random] = None
    ) -> float:
        """Outgoing direction at ``material``.

        Without ``rng`` water diffuses by :func:`diffusion_offset`, so a trace
        depends only on the grid, the entry and the initial direction.
        """

        if material.type is MaterialType.WATER and rng is None:
            spread = material.properties.diffusion * self.diffusion_degrees
            offset = diffusion_offset(material.position, incident, spread, self.diffusion_seed)
            return angles.normalize(outgoing_direction(material, incident) + offset)
        return outgoing_direction(material, incident, rng, self.diffusion_degrees)

    def trace(
        self,
        grid: Grid,
        entry: Tuple[int, int],
        initial_direction: float,
        rng: Optional[random.Random] = None,
    ) -> RayTrace:
        entry = GridPosition.of(entry)
        if not grid.inside(entry):
            raise ValueError(f"Entry {entry} is outside the grid")
        direction = angles.normalize(initial_direction)
        intensity = 1.0
        bounces = 0
        segments: List[RaySegment] = []
        visited: Set[Tuple[GridPosition, float]] = set()
        loop_detected = False

        origin = entry
        position = entry
        step = angles.step_vector(direction)
        index = 0
        exit_position: Optional[GridPosition] = None

        while True:
            nxt = GridPosition(*angles.cell_at(origin, step, index + 1))
            if not grid.inside(nxt):
                segments.append(RaySegment(origin, position, direction, None, intensity))
                exit_position = position
                termination = TerminationReason.EXIT
                break
            index += 1
            position = nxt
            material = grid.material_at(position)
            if material is None or material.type is MaterialType.EMPTY:
                continue

            segments.append(RaySegment(origin, position, direction, material, intensity))
            if material.type is MaterialType.ABSORBER or material.properties.absorbs:
                termination = TerminationReason.ABSORBED
                break

            direction = self.deflect(material, direction, rng)
            intensity *= material.properties.reflectivity
            bounces += 1

            state = (position, round(direction, 6))
            if state in visited:
                loop_detected = True
            visited.add(state)

            if bounces > self.max_bounces:
                logger.debug("Beam from %s exceeded %d bounces", entry, self.max_bounces)
                termination = TerminationReason.MAX_BOUNCES
                break
            if intensity < self.min_intensity:
                termination = TerminationReason.MIN_INTENSITY
                break

            origin = position
            step = angles.step_vector(direction)
            index = 0

        return RayTrace(
            entry=entry,
            initial_direction=angles.normalize(initial_direction),
            segments=tuple(segments),
            exit=exit_position,
            termination=termination,
            bounces=bounces,
            final_intensity=intensity,
            final_direction=direction,
            loop_detected=loop_detected,
        )
