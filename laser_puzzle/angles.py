"""Angle helpers shared by the engine, the validator and the planner.

All angles are in degrees. 0 points along +x (east) and 90 along +y, which
is south because grid rows grow downwards.
"""

from __future__ import annotations

import math
from typing import Iterator, Tuple

EPSILON = 1e-9

EAST = 0.0
SOUTH = 90.0
WEST = 180.0
NORTH = 270.0


def normalize(angle: float) -> float:
    value = math.fmod(angle, 360.0)
    if value < 0:
        value += 360.0
    if abs(value - 360.0) < EPSILON or abs(value) < EPSILON:
        return 0.0
    return value


def angle_difference(first: float, second: float) -> float:
    """Shortest circular distance between two angles, in ``[0, 180]``."""

    delta = abs(normalize(first) - normalize(second))
    return 360.0 - delta if delta > 180.0 else delta


def angle_between(start: Tuple[int, int], end: Tuple[int, int]) -> float:
    """Direction of travel from ``start`` to ``end``."""

    dx = end[0] - start[0]
    dy = end[1] - start[1]
    if dx == 0 and dy == 0:
        raise ValueError(f"No direction between identical points {start}")
    return normalize(math.degrees(math.atan2(dy, dx)))


def mirror_reflection(incident: float, mirror_angle: float) -> float:
    return normalize(2 * (mirror_angle + 90.0) - incident)


def reverse(angle: float) -> float:
    return normalize(angle + 180.0)


def bisector(first: float, second: float) -> float:
    return normalize((normalize(first) + normalize(second)) / 2.0)


def manhattan(first: Tuple[int, int], second: Tuple[int, int]) -> int:
    return abs(first[0] - second[0]) + abs(first[1] - second[1])


def _snap(value: float) -> float:
    nearest = round(value)
    if abs(value - nearest) < EPSILON:
        return float(nearest)
    return round(value, 9)


def round_half_up(value: float) -> int:
    return int(math.floor(_snap(value) + 0.5))


def step_vector(direction: float) -> Tuple[float, float]:
    """Per-cell step for ``direction``; the dominant component has length 1."""

    radians = math.radians(direction)
    dx = math.cos(radians)
    dy = math.sin(radians)
    scale = max(abs(dx), abs(dy))
    return _snap(dx / scale), _snap(dy / scale)


def cell_at(origin: Tuple[int, int], step: Tuple[float, float], index: int) -> Tuple[int, int]:
    return (
        round_half_up(origin[0] + step[0] * index),
        round_half_up(origin[1] + step[1] * index),
    )


def cells_along(origin: Tuple[int, int], direction: float) -> Iterator[Tuple[int, int]]:
    """Yield the cells after ``origin`` on a straight run, without end."""

    step = step_vector(direction)
    index = 1
    while True:
        yield cell_at(origin, step, index)
        index += 1
