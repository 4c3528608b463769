"""Grid and material model shared by every stage of the puzzle pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Mapping, NamedTuple, Optional, Tuple


class GridPosition(NamedTuple):
    """Cell coordinate; ``x`` is the column and ``y`` the row."""

    x: int
    y: int

    @classmethod
    def of(cls, value: Iterable[int]) -> "GridPosition":
        x, y = value
        return cls(int(x), int(y))


class MaterialType(str, Enum):
    MIRROR = "mirror"
    WATER = "water"
    GLASS = "glass"
    METAL = "metal"
    ABSORBER = "absorber"
    EMPTY = "empty"

    @staticmethod
    def from_name(name: str) -> "MaterialType":
        try:
            return MaterialType(name.lower())
        except ValueError as exc:
            raise ValueError(f"Unknown material type: {name}") from exc


@dataclass(frozen=True)
class MaterialProperties:
    """Static optical properties of one material type."""

    reflectivity: float
    transparency: float = 0.0
    diffusion: float = 0.0
    absorbs: bool = False


DEFAULT_MATERIAL_PROPERTIES: Dict[MaterialType, MaterialProperties] = {
    MaterialType.MIRROR: MaterialProperties(reflectivity=1.0),
    MaterialType.WATER: MaterialProperties(reflectivity=0.8, diffusion=0.3),
    MaterialType.GLASS: MaterialProperties(reflectivity=0.5, transparency=0.5),
    MaterialType.METAL: MaterialProperties(reflectivity=1.0),
    MaterialType.ABSORBER: MaterialProperties(reflectivity=0.0, absorbs=True),
    MaterialType.EMPTY: MaterialProperties(reflectivity=0.0, transparency=1.0),
}


@dataclass(frozen=True)
class Material:
    """A material bound to a cell.

    ``angle`` is only meaningful for mirrors and names the mirror's normal:
    a beam heading ``theta`` leaves at ``2 * (angle + 90) - theta``.
    """

    type: MaterialType
    position: GridPosition
    angle: Optional[float] = None
    properties: MaterialProperties = field(default=None, compare=False)  # type: ignore[assignment]

    def __post_init__(self) -> None:
        object.__setattr__(self, "position", GridPosition.of(self.position))
        if self.properties is None:
            object.__setattr__(self, "properties", DEFAULT_MATERIAL_PROPERTIES[self.type])
        if self.angle is not None:
            angle = float(self.angle)
            if not 0.0 <= angle < 360.0:
                raise ValueError(f"Mirror angle out of range: {self.angle}")
            object.__setattr__(self, "angle", angle)

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "type": self.type.value,
            "position": [self.position.x, self.position.y],
        }
        if self.angle is not None:
            payload["angle"] = self.angle
        return payload


class Difficulty(str, Enum):
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"

    @staticmethod
    def from_name(name: str) -> "Difficulty":
        for member in Difficulty:
            if member.value.lower() == str(name).lower():
                return member
        raise ValueError(f"Unknown difficulty: {name}")


@dataclass(frozen=True)
class SpacingConstraints:
    """Entry/exit separation rules for one difficulty."""

    min_distance: int
    preferred_distance: int
    max_candidates: int


@dataclass(frozen=True)
class DifficultyConfig:
    """Static per-difficulty settings consumed by the generator."""

    difficulty: Difficulty
    grid_size: int
    base_score: int
    max_time: int
    allowed_materials: Tuple[MaterialType, ...]
    material_density: float
    material_weights: Mapping[MaterialType, float]
    min_reflections: int
    max_reflections: int
    complexity_band: Tuple[int, int]
    spacing: SpacingConstraints

    @property
    def target_material_count(self) -> int:
        return int(self.grid_size * self.grid_size * self.material_density)

    def allows(self, material_type: MaterialType) -> bool:
        return material_type in self.allowed_materials


class Grid:
    """Square grid holding at most one material per cell."""

    def __init__(self, size: int, materials: Iterable[Material] = ()):
        if size < 2:
            raise ValueError(f"Grid size must be at least 2, got {size}")
        self.size = size
        self._cells: Dict[GridPosition, Material] = {}
        for material in materials:
            self.place(material)

    @classmethod
    def from_materials(cls, size: int, materials: Iterable[Material]) -> "Grid":
        return cls(size, materials)

    def inside(self, position: Tuple[int, int]) -> bool:
        x, y = position
        return 0 <= x < self.size and 0 <= y < self.size

    def is_boundary(self, position: Tuple[int, int]) -> bool:
        x, y = position
        if not self.inside(position):
            return False
        return x in (0, self.size - 1) or y in (0, self.size - 1)

    def place(self, material: Material) -> None:
        if not self.inside(material.position):
            raise ValueError(f"Material outside grid: {material.position}")
        if material.position in self._cells:
            raise ValueError(f"Cell already occupied: {material.position}")
        if material.type is MaterialType.EMPTY:
            return
        self._cells[material.position] = material

    def remove(self, position: Tuple[int, int]) -> Optional[Material]:
        return self._cells.pop(GridPosition.of(position), None)

    def material_at(self, position: Tuple[int, int]) -> Optional[Material]:
        return self._cells.get(GridPosition.of(position))

    @property
    def materials(self) -> List[Material]:
        return sorted(self._cells.values(), key=lambda material: (material.position.y, material.position.x))

    def density(self) -> float:
        return len(self._cells) / float(self.size * self.size)

    def boundary_cells(self) -> Iterator[GridPosition]:
        last = self.size - 1
        for y in range(self.size):
            for x in range(self.size):
                if x in (0, last) or y in (0, last):
                    yield GridPosition(x, y)

    def fingerprint(self) -> str:
        parts = [
            f"{m.position.x},{m.position.y}:{m.type.value}:{m.angle if m.angle is not None else ''}"
            for m in self.materials
        ]
        return f"{self.size}|" + ";".join(parts)

    def to_rows(self) -> List[str]:
        symbols = {
            MaterialType.MIRROR: "M",
            MaterialType.WATER: "W",
            MaterialType.GLASS: "G",
            MaterialType.METAL: "T",
            MaterialType.ABSORBER: "A",
        }
        rows: List[str] = []
        for y in range(self.size):
            row = ""
            for x in range(self.size):
                material = self._cells.get(GridPosition(x, y))
                row += symbols[material.type] if material else "."
            rows.append(row)
        return rows

    def __len__(self) -> int:
        return len(self._cells)

    def __contains__(self, position: object) -> bool:
        return position in self._cells
