"""Load the static difficulty, material and generation settings."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from .errors import ConfigurationError
from .grid import (
    Difficulty,
    DifficultyConfig,
    MaterialProperties,
    MaterialType,
    SpacingConstraints,
)

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "LASER_PUZZLE_CONFIG_ROOT"


@dataclass(frozen=True)
class GenerationSettings:
    """Bounds for the generate-validate-retry loop and the tracer."""

    max_attempts: int = 10
    pairs_per_attempt: int = 5
    min_confidence: float = 85.0
    legacy_attempts: int = 200
    max_bounces: int = 1000
    min_intensity: float = 0.01
    diffusion_degrees: float = 50.0
    min_reflection_accuracy: float = 0.9
    planner_retries: int = 5


def _default_config_root() -> Path:
    return Path(__file__).resolve().parent / "data"


def resolve_config_root(check_exists: bool = True) -> Path:
    """Resolve the configuration directory.

    ``LASER_PUZZLE_CONFIG_ROOT`` overrides the directory bundled with the
    package. With ``check_exists`` a missing directory raises
    :class:`FileNotFoundError`.
    """

    value = os.environ.get(CONFIG_ENV_VAR)
    root = Path(value).expanduser() if value else _default_config_root()
    if check_exists and not root.exists():
        raise FileNotFoundError(f"Configuration directory does not exist: {root}")
    return root


class ConfigLoader:
    """Load configuration files stored as JSON."""

    def __init__(self, root: Optional[Path] = None):
        self.root = Path(root) if root is not None else resolve_config_root()

    def _read(self, name: str) -> Dict:
        path = self.root / f"{name}.json"
        if not path.exists():
            raise FileNotFoundError(path)
        try:
            data = json.loads(path.read_text())
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Malformed JSON in {path}: {exc}", path=str(path)) from exc
        if not isinstance(data, dict):
            raise ConfigurationError(f"Expected an object in {path}", path=str(path))
        logger.debug("Loaded configuration %s", path)
        return data

    def load_materials(self) -> Dict[MaterialType, MaterialProperties]:
        data = self._read("materials")
        table: Dict[MaterialType, MaterialProperties] = {}
        for name, entry in data.items():
            try:
                material_type = MaterialType.from_name(name)
                table[material_type] = MaterialProperties(
                    reflectivity=float(entry["reflectivity"]),
                    transparency=float(entry.get("transparency", 0.0)),
                    diffusion=float(entry.get("diffusion", 0.0)),
                    absorbs=bool(entry.get("absorbs", False)),
                )
            except (KeyError, TypeError, ValueError) as exc:
                raise ConfigurationError(
                    f"Invalid material entry {name!r}: {exc}", material=name
                ) from exc
        missing = [t.value for t in MaterialType if t not in table]
        if missing:
            raise ConfigurationError(f"Material table is missing: {', '.join(missing)}")
        return table

    def load_difficulties(self) -> Dict[Difficulty, DifficultyConfig]:
        data = self._read("difficulties")
        configs: Dict[Difficulty, DifficultyConfig] = {}
        for name, entry in data.items():
            try:
                config = self._parse_difficulty(Difficulty.from_name(name), entry)
            except (KeyError, TypeError, ValueError) as exc:
                if isinstance(exc, ConfigurationError):
                    raise
                raise ConfigurationError(
                    f"Invalid difficulty entry {name!r}: {exc}", difficulty=name
                ) from exc
            configs[config.difficulty] = config
        missing = [d.value for d in Difficulty if d not in configs]
        if missing:
            raise ConfigurationError(f"Difficulty table is missing: {', '.join(missing)}")
        return configs

    def load_difficulty(self, difficulty: Difficulty) -> DifficultyConfig:
        return self.load_difficulties()[difficulty]

    def load_generation(self) -> GenerationSettings:
        path = self.root / "generation.json"
        if not path.exists():
            return GenerationSettings()
        data = self._read("generation")
        defaults = GenerationSettings()
        try:
            return GenerationSettings(
                max_attempts=int(data.get("max_attempts", defaults.max_attempts)),
                pairs_per_attempt=int(data.get("pairs_per_attempt", defaults.pairs_per_attempt)),
                min_confidence=float(data.get("min_confidence", defaults.min_confidence)),
                legacy_attempts=int(data.get("legacy_attempts", defaults.legacy_attempts)),
                max_bounces=int(data.get("max_bounces", defaults.max_bounces)),
                min_intensity=float(data.get("min_intensity", defaults.min_intensity)),
                diffusion_degrees=float(data.get("diffusion_degrees", defaults.diffusion_degrees)),
                min_reflection_accuracy=float(
                    data.get("min_reflection_accuracy", defaults.min_reflection_accuracy)
                ),
                planner_retries=int(data.get("planner_retries", defaults.planner_retries)),
            )
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid generation settings: {exc}") from exc

    def _parse_difficulty(self, difficulty: Difficulty, data: Dict) -> DifficultyConfig:
        allowed = tuple(MaterialType.from_name(name) for name in data["allowed_materials"])
        if not allowed:
            raise ConfigurationError(f"{difficulty.value} allows no materials")
        weights = {
            MaterialType.from_name(name): float(weight)
            for name, weight in data.get("material_weights", {}).items()
        }
        band = tuple(int(value) for value in data.get("complexity_band", (1, 10)))
        if len(band) != 2 or not 1 <= band[0] <= band[1] <= 10:
            raise ConfigurationError(f"{difficulty.value} has an invalid complexity band {band}")
        min_reflections = int(data["min_reflections"])
        max_reflections = int(data["max_reflections"])
        if min_reflections < 0 or max_reflections < min_reflections:
            raise ConfigurationError(
                f"{difficulty.value} reflections must satisfy 0 <= min <= max"
            )
        density = float(data["material_density"])
        if not 0.0 <= density <= 1.0:
            raise ConfigurationError(f"{difficulty.value} density must be within [0, 1]")
        spacing = data.get("spacing", {})
        return DifficultyConfig(
            difficulty=difficulty,
            grid_size=int(data["grid_size"]),
            base_score=int(data["base_score"]),
            max_time=int(data["max_time"]),
            allowed_materials=allowed,
            material_density=density,
            material_weights=weights,
            min_reflections=min_reflections,
            max_reflections=max_reflections,
            complexity_band=(band[0], band[1]),
            spacing=SpacingConstraints(
                min_distance=int(spacing.get("min_distance", 3)),
                preferred_distance=int(spacing.get("preferred_distance", 4)),
                max_candidates=int(spacing.get("max_candidates", 50)),
            ),
        )
