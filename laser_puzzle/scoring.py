"""Answer labels, answer checking and the score formula."""

from __future__ import annotations

import re
import string
from dataclasses import dataclass
from typing import Dict, Tuple, Union

from .grid import GridPosition

HINT_MULTIPLIERS = (1.0, 0.8, 0.6, 0.4, 0.2)
_LABEL = re.compile(r"^\s*([A-Za-z])\s*(\d+)\s*$")

Answer = Union[str, Tuple[int, int]]


def position_label(position: Tuple[int, int]) -> str:
    """``(x, y)`` as a spreadsheet-style label: column letter, 1-based row."""

    x, y = position
    if not 0 <= x < len(string.ascii_uppercase):
        raise ValueError(f"Column {x} has no letter label")
    return f"{string.ascii_uppercase[x]}{y + 1}"


def parse_label(label: str) -> GridPosition:
    match = _LABEL.match(label)
    if not match:
        raise ValueError(f"Invalid cell label: {label!r}")
    column, row = match.groups()
    y = int(row) - 1
    if y < 0:
        raise ValueError(f"Invalid cell label: {label!r}")
    return GridPosition(string.ascii_uppercase.index(column.upper()), y)


def check_answer(puzzle, answer: Answer) -> bool:
    position = parse_label(answer) if isinstance(answer, str) else GridPosition.of(answer)
    return position == puzzle.exit


def hint_multiplier(hints_used: int) -> float:
    if hints_used < 0:
        raise ValueError("hints_used cannot be negative")
    if hints_used < len(HINT_MULTIPLIERS):
        return HINT_MULTIPLIERS[hints_used]
    return HINT_MULTIPLIERS[-1]


def time_multiplier(time_elapsed: float, max_time: float) -> float:
    if max_time <= 0 or time_elapsed >= max_time:
        return 0.0
    return (max_time - max(0.0, time_elapsed)) / max_time


@dataclass(frozen=True)
class ScoreBreakdown:
    base_score: int
    hint_multiplier: float
    time_multiplier: float
    final_score: int
    correct: bool

    def to_dict(self) -> Dict[str, object]:
        return {
            "base_score": self.base_score,
            "hint_multiplier": self.hint_multiplier,
            "time_multiplier": self.time_multiplier,
            "final_score": self.final_score,
            "correct": self.correct,
        }


def calculate_score(
    base_score: int,
    hints_used: int,
    time_elapsed: float,
    max_time: float,
    correct: bool,
) -> ScoreBreakdown:
    if not correct:
        return ScoreBreakdown(base_score, 0.0, 0.0, 0, False)
    hints = hint_multiplier(hints_used)
    timing = time_multiplier(time_elapsed, max_time)
    final = int(base_score * hints * timing + 0.5)
    return ScoreBreakdown(base_score, hints, timing, final, True)
