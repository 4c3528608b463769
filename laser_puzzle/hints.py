"""Progressive hints revealing growing prefixes of the solution path."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from .engine import RaySegment, RayTrace
from .grid import GridPosition

HINT_PERCENTAGES = (25, 50, 75, 100)


@dataclass(frozen=True)
class HintPath:
    level: int
    percentage: int
    segments: Tuple[RaySegment, ...]
    revealed_cells: Tuple[GridPosition, ...]

    def to_dict(self) -> Dict[str, object]:
        return {
            "level": self.level,
            "percentage": self.percentage,
            "segments": [segment.to_dict() for segment in self.segments],
            "revealed_cells": [[cell.x, cell.y] for cell in self.revealed_cells],
        }


def _revealed(segments: Sequence[RaySegment]) -> Tuple[GridPosition, ...]:
    cells: List[GridPosition] = []
    for segment in segments:
        for position in (segment.start, segment.end):
            if position not in cells:
                cells.append(position)
    return tuple(cells)


def progressive_hints(trace: RayTrace) -> List[HintPath]:
    total = len(trace.segments)
    hints: List[HintPath] = []
    for level, percentage in enumerate(HINT_PERCENTAGES, start=1):
        count = math.ceil(total * percentage / 100)
        segments = trace.segments[:count]
        hints.append(
            HintPath(
                level=level,
                percentage=percentage,
                segments=tuple(segments),
                revealed_cells=_revealed(segments),
            )
        )
    return hints
