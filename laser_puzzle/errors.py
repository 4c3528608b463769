"""Error kinds and exceptions raised by the puzzle core."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple


class ErrorKind(str, Enum):
    """Closed set of failure kinds the generation pipeline distinguishes."""

    GEOMETRY = "geometry"
    PHYSICS_MISMATCH = "physics_mismatch"
    RUNAWAY_SIMULATION = "runaway_simulation"
    DENSITY_INFEASIBLE = "density_infeasible"
    EXHAUSTION = "exhaustion"
    CONFIGURATION = "configuration"


@dataclass(frozen=True)
class GenerationIssue:
    """Structured record of a recovered failure inside one attempt."""

    kind: ErrorKind
    message: str
    attempt: int = 0
    position: Optional[Tuple[int, int]] = None
    material: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "kind": self.kind.value,
            "message": self.message,
            "attempt": self.attempt,
        }
        if self.position is not None:
            payload["position"] = [self.position[0], self.position[1]]
        if self.material is not None:
            payload["material"] = self.material
        return payload


class LaserPuzzleError(Exception):
    """Base class for every error raised by :mod:`laser_puzzle`."""

    kind: ErrorKind = ErrorKind.CONFIGURATION

    def __init__(self, message: str, **context: object):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, object] = dict(context)

    def to_issue(self, attempt: int = 0) -> GenerationIssue:
        position = self.context.get("position")
        material = self.context.get("material")
        return GenerationIssue(
            kind=self.kind,
            message=self.message,
            attempt=attempt,
            position=tuple(position) if position is not None else None,
            material=str(material) if material is not None else None,
        )


class PlanningError(LaserPuzzleError):
    """No admissible reflection point exists for a planned index."""

    kind = ErrorKind.GEOMETRY

    def __init__(self, message: str, *, index: int, **context: object):
        super().__init__(message, index=index, **context)
        self.index = index


class ConfigurationError(LaserPuzzleError, ValueError):
    """Static configuration could not be read or is inconsistent."""

    kind = ErrorKind.CONFIGURATION


class GenerationExhaustedError(LaserPuzzleError):
    """Both the guaranteed and the legacy strategy ran out of attempts."""

    kind = ErrorKind.EXHAUSTION

    def __init__(
        self,
        message: str,
        *,
        difficulty: str,
        attempts: int,
        issues: Sequence[GenerationIssue] = (),
    ):
        super().__init__(message, difficulty=difficulty, attempts=attempts)
        self.difficulty = difficulty
        self.attempts = attempts
        self.issues: List[GenerationIssue] = list(issues)
