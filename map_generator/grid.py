# map_generator/grid.py

"""
================================================================================
GRID MODEL
================================================================================
This module defines the shared simulation state: the toroidal cell grid, the
tectonic plates and the WorldState that owns both.

Data Contract:
---------------
- Cells are stored as parallel NumPy arrays of shape (height, width), indexed
  [y, x]. One array per cell field.
- All coordinate access wraps on both axes. Maps are seamless.
- WorldState is a plain, picklable container so it can be handed to a worker
  process and back without any custom serialization.
================================================================================
"""
from dataclasses import dataclass, field

import numpy as np

from .config import GenerationSettings

# --- Crust Type Constants ---
CRUST_UNSET = 0
CRUST_OCEANIC = 1
CRUST_CONTINENTAL = 2

CRUST_NAMES = {
    CRUST_UNSET: 'unset',
    CRUST_OCEANIC: 'oceanic',
    CRUST_CONTINENTAL: 'continental',
}

UNASSIGNED_PLATE_ID = -1

# Moore neighbourhood as (dx, dy) pairs. The order is fixed because the
# erosion kernel stores per-direction flows by index into this table.
NEIGHBOR_OFFSETS = np.array([
    [-1, -1], [0, -1], [1, -1],
    [-1, 0],           [1, 0],
    [-1, 1],  [0, 1],  [1, 1],
], dtype=np.int64)


@dataclass
class Grid:
    """A width x height array of cells with wrap-around addressing."""
    height_map: np.ndarray
    plate_id: np.ndarray
    crust_type: np.ndarray
    crust_thickness: np.ndarray
    is_water: np.ndarray
    water: np.ndarray
    sediment: np.ndarray

    @classmethod
    def create(cls, width: int, height: int) -> 'Grid':
        """Allocates a grid with every cell in its initial, unassigned state."""
        shape = (height, width)
        return cls(
            height_map=np.zeros(shape, dtype=np.float64),
            plate_id=np.full(shape, UNASSIGNED_PLATE_ID, dtype=np.int32),
            crust_type=np.full(shape, CRUST_UNSET, dtype=np.int8),
            crust_thickness=np.zeros(shape, dtype=np.float64),
            is_water=np.zeros(shape, dtype=bool),
            water=np.zeros(shape, dtype=np.float64),
            sediment=np.zeros(shape, dtype=np.float64),
        )

    @property
    def width(self) -> int:
        return self.height_map.shape[1]

    @property
    def height(self) -> int:
        return self.height_map.shape[0]

    @property
    def cell_count(self) -> int:
        return self.height_map.size

    def wrap(self, x: int, y: int) -> tuple[int, int]:
        """Wraps a coordinate pair onto the torus."""
        return x % self.width, y % self.height

    def cell(self, x: int, y: int) -> dict:
        """Returns a snapshot of one cell's fields. Coordinates wrap."""
        wx, wy = self.wrap(x, y)
        return {
            'height': float(self.height_map[wy, wx]),
            'plate_id': int(self.plate_id[wy, wx]),
            'crust_type': int(self.crust_type[wy, wx]),
            'crust_thickness': float(self.crust_thickness[wy, wx]),
            'is_water': bool(self.is_water[wy, wx]),
            'water': float(self.water[wy, wx]),
            'sediment': float(self.sediment[wy, wx]),
        }

    def neighbors(self, x: int, y: int) -> list[tuple[int, int]]:
        """Returns the wrapped coordinates of the 8 cells around (x, y)."""
        return [self.wrap(x + dx, y + dy) for dx, dy in NEIGHBOR_OFFSETS]

    def find_min_max_height(self) -> tuple[float, float]:
        return float(np.min(self.height_map)), float(np.max(self.height_map))

    def total_mass(self) -> float:
        """Sum of terrain, standing water and suspended sediment over the grid."""
        return float(np.sum(self.height_map) + np.sum(self.water) + np.sum(self.sediment))

    def copy(self) -> 'Grid':
        return Grid(
            height_map=self.height_map.copy(),
            plate_id=self.plate_id.copy(),
            crust_type=self.crust_type.copy(),
            crust_thickness=self.crust_thickness.copy(),
            is_water=self.is_water.copy(),
            water=self.water.copy(),
            sediment=self.sediment.copy(),
        )


@dataclass
class Plate:
    """A rigid tectonic unit. Only its seed position changes during simulation."""
    id: int
    seed_x: float
    seed_y: float
    velocity_x: float
    velocity_y: float
    crust_type: int
    base_height: float = 0.0
    base_thickness: float = 0.0


@dataclass
class WorldState:
    """The single unit of state handed between phases and worker processes."""
    width: int
    height: int
    settings: GenerationSettings
    grid: Grid
    plates: list[Plate] = field(default_factory=list)
