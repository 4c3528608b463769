"""Advisory cache and metrics sink used by the generator.

The generator works without either; both are read-mostly hints.
"""

from __future__ import annotations

from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional, Sequence, Tuple

from .candidates import EntryExitPair
from .grid import Difficulty
from .validator import ValidationResult


class InMemoryGenerationCache:
    """Remember candidate pairs and validation results between generations."""

    def __init__(self, max_results: int = 256):
        self.max_results = max_results
        self._pairs: Dict[Tuple[Difficulty, int], List[EntryExitPair]] = {}
        self._results: Dict[str, ValidationResult] = {}
        self.hits = 0
        self.misses = 0

    def get_pairs(self, difficulty: Difficulty, grid_size: int) -> Optional[List[EntryExitPair]]:
        pairs = self._pairs.get((difficulty, grid_size))
        if pairs is None:
            self.misses += 1
            return None
        self.hits += 1
        return list(pairs)

    def store_pairs(
        self, difficulty: Difficulty, grid_size: int, pairs: Sequence[EntryExitPair]
    ) -> None:
        self._pairs[(difficulty, grid_size)] = list(pairs)

    def get_validation(self, fingerprint: str) -> Optional[ValidationResult]:
        result = self._results.get(fingerprint)
        if result is None:
            self.misses += 1
        else:
            self.hits += 1
        return result

    def store_validation(self, fingerprint: str, result: ValidationResult) -> None:
        if len(self._results) >= self.max_results:
            oldest = next(iter(self._results))
            del self._results[oldest]
        self._results[fingerprint] = result

    def clear(self) -> None:
        self._pairs.clear()
        self._results.clear()


@dataclass
class DifficultyStats:
    total: int = 0
    successful: int = 0
    fallbacks: int = 0
    total_time_ms: float = 0.0
    total_confidence: float = 0.0


@dataclass
class GenerationMetrics:
    """Aggregate generation metadata for analytics."""

    recent_limit: int = 20
    total: int = 0
    successful: int = 0
    fallbacks: int = 0
    total_time_ms: float = 0.0
    total_confidence: float = 0.0
    by_difficulty: Dict[str, DifficultyStats] = field(
        default_factory=lambda: defaultdict(DifficultyStats)
    )
    recent_failures: Deque[Dict[str, object]] = field(default_factory=deque)

    def record(self, metadata) -> None:
        stats = self.by_difficulty[metadata.difficulty.value]
        self.total += 1
        stats.total += 1
        self.total_time_ms += metadata.generation_time_ms
        stats.total_time_ms += metadata.generation_time_ms
        self.total_confidence += metadata.confidence_score
        stats.total_confidence += metadata.confidence_score
        if metadata.validation_passed:
            self.successful += 1
            stats.successful += 1
        if metadata.fallback_used:
            self.fallbacks += 1
            stats.fallbacks += 1
        if metadata.fallback_used or not metadata.validation_passed:
            self.recent_failures.append(
                {
                    "puzzle_id": metadata.puzzle_id,
                    "difficulty": metadata.difficulty.value,
                    "attempts": metadata.attempts,
                    "warnings": list(metadata.warnings),
                }
            )
            while len(self.recent_failures) > self.recent_limit:
                self.recent_failures.popleft()

    def record_failure(self, difficulty: Difficulty, attempts: int, reason: str) -> None:
        stats = self.by_difficulty[difficulty.value]
        self.total += 1
        stats.total += 1
        self.recent_failures.append(
            {"puzzle_id": None, "difficulty": difficulty.value, "attempts": attempts, "warnings": [reason]}
        )
        while len(self.recent_failures) > self.recent_limit:
            self.recent_failures.popleft()

    @property
    def success_rate(self) -> float:
        return self.successful / self.total if self.total else 0.0

    @property
    def fallback_rate(self) -> float:
        return self.fallbacks / self.total if self.total else 0.0

    def summary(self) -> Dict[str, object]:
        def average(value: float, count: int) -> float:
            return value / count if count else 0.0

        return {
            "total": self.total,
            "successful": self.successful,
            "success_rate": self.success_rate,
            "fallback_rate": self.fallback_rate,
            "average_time_ms": average(self.total_time_ms, self.total),
            "average_confidence": average(self.total_confidence, self.total),
            "by_difficulty": {
                name: {
                    "total": stats.total,
                    "successful": stats.successful,
                    "fallbacks": stats.fallbacks,
                    "average_time_ms": average(stats.total_time_ms, stats.total),
                    "average_confidence": average(stats.total_confidence, stats.total),
                }
                for name, stats in sorted(self.by_difficulty.items())
            },
            "recent_failures": list(self.recent_failures),
        }
