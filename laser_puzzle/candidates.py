"""Admissible entry/exit pairs on the grid boundary, ranked best first."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from . import angles
from .grid import Difficulty, DifficultyConfig, GridPosition

POSITION_SCORES: Dict[str, Tuple[float, Dict[Difficulty, float]]] = {
    "corner": (1.0, {Difficulty.EASY: 1.2, Difficulty.MEDIUM: 1.3, Difficulty.HARD: 1.4}),
    "edge": (0.8, {Difficulty.EASY: 1.1, Difficulty.MEDIUM: 1.15, Difficulty.HARD: 1.2}),
    "center": (0.5, {Difficulty.EASY: 0.8, Difficulty.MEDIUM: 0.9, Difficulty.HARD: 1.0}),
}

OPPOSITE_SIDES = ({"top", "bottom"}, {"left", "right"})


@dataclass(frozen=True)
class EntryExitPair:
    entry: GridPosition
    exit: GridPosition
    distance: int
    score: float
    placement: str

    def to_dict(self) -> Dict[str, object]:
        return {
            "entry": [self.entry.x, self.entry.y],
            "exit": [self.exit.x, self.exit.y],
            "distance": self.distance,
            "score": self.score,
            "placement": self.placement,
        }


def boundary_positions(grid_size: int) -> List[GridPosition]:
    last = grid_size - 1
    return [
        GridPosition(x, y)
        for y in range(grid_size)
        for x in range(grid_size)
        if x in (0, last) or y in (0, last)
    ]


def position_kind(position: Tuple[int, int], grid_size: int) -> str:
    x, y = position
    last = grid_size - 1
    on_x = x in (0, last)
    on_y = y in (0, last)
    if on_x and on_y:
        return "corner"
    if on_x or on_y:
        return "edge"
    return "center"


def grid_side(position: Tuple[int, int], grid_size: int) -> Optional[str]:
    x, y = position
    last = grid_size - 1
    if y == 0:
        return "top"
    if y == last:
        return "bottom"
    if x == 0:
        return "left"
    if x == last:
        return "right"
    return None


def side_bonus(entry: Tuple[int, int], exit: Tuple[int, int], grid_size: int) -> float:
    sides = {grid_side(entry, grid_size), grid_side(exit, grid_size)}
    if None in sides or len(sides) == 1:
        return 0.0
    if sides in OPPOSITE_SIDES:
        return 1.0
    return 0.5


class BoundaryPairSource:
    """Rank every boundary pair that respects the difficulty's spacing rules."""

    def pairs(self, config: DifficultyConfig) -> List[EntryExitPair]:
        size = config.grid_size
        spacing = config.spacing
        positions = boundary_positions(size)
        deviation = max(
            spacing.preferred_distance - spacing.min_distance,
            size * 2 - spacing.preferred_distance,
        ) or 1

        candidates: List[EntryExitPair] = []
        for entry in positions:
            for exit in positions:
                if entry == exit:
                    continue
                distance = angles.manhattan(entry, exit)
                if distance < spacing.min_distance:
                    continue
                score = self._score(entry, exit, distance, deviation, config)
                candidates.append(
                    EntryExitPair(
                        entry=entry,
                        exit=exit,
                        distance=distance,
                        score=score,
                        placement=self._placement(entry, exit, size),
                    )
                )
        candidates.sort(key=lambda pair: (-pair.score, pair.entry, pair.exit))
        return candidates[: spacing.max_candidates]

    @staticmethod
    def _score(
        entry: GridPosition,
        exit: GridPosition,
        distance: int,
        deviation: int,
        config: DifficultyConfig,
    ) -> float:
        size = config.grid_size
        score = (1 - abs(distance - config.spacing.preferred_distance) / deviation) * 40
        for position in (entry, exit):
            base, multipliers = POSITION_SCORES[position_kind(position, size)]
            score += base * multipliers[config.difficulty] * 20
        euclidean = math.hypot(exit.x - entry.x, exit.y - entry.y)
        score += euclidean / distance * 10
        score += side_bonus(entry, exit, size) * 10
        return round(score, 2)

    @staticmethod
    def _placement(entry: GridPosition, exit: GridPosition, grid_size: int) -> str:
        corners = [position_kind(p, grid_size) == "corner" for p in (entry, exit)]
        if all(corners):
            return "corner"
        if any(corners):
            return "optimal"
        return "edge"
