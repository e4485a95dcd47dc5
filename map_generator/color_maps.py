# map_generator/color_maps.py

"""
================================================================================
DEBUG COLOR LAYERS
================================================================================
Colour mappings for inspecting the simulation state behind a generated map:
which plate owns each cell, and what crust it carries.

Pure, stateless helpers. Every function takes row-major (height, width) data
and returns a (height, width, 3) uint8 RGB array.
================================================================================
"""
import numpy as np

from .grid import CRUST_CONTINENTAL, CRUST_OCEANIC, CRUST_UNSET

COLOR_MAP_CRUST = {
    CRUST_UNSET: (0, 0, 0),
    CRUST_OCEANIC: (20, 40, 120),
    CRUST_CONTINENTAL: (139, 119, 80),
}

# Colour for cells not assigned to any plate.
COLOR_UNASSIGNED = (0, 0, 0)


def create_crust_color_lut() -> np.ndarray:
    """A LUT where the index is the crust type constant and the value is the RGB color."""
    return np.array([
        COLOR_MAP_CRUST[CRUST_UNSET],
        COLOR_MAP_CRUST[CRUST_OCEANIC],
        COLOR_MAP_CRUST[CRUST_CONTINENTAL],
    ], dtype=np.uint8)


def get_plate_color_array(plate_id_map: np.ndarray, num_plates: int, seed: int) -> np.ndarray:
    """Generates a color array where each tectonic plate has a unique, deterministic color."""
    # 1. A deterministic but random color per plate, plus one for unassigned cells.
    rng = np.random.default_rng(seed)
    color_palette = np.empty((num_plates + 1, 3), dtype=np.uint8)
    color_palette[:num_plates] = rng.integers(0, 256, size=(num_plates, 3), dtype=np.uint8)
    color_palette[num_plates] = COLOR_UNASSIGNED

    # 2. Unassigned cells (-1) index the trailing entry.
    indices = np.where(plate_id_map < 0, num_plates, plate_id_map)
    return color_palette[indices]


def get_crust_color_array(crust_type_map: np.ndarray) -> np.ndarray:
    """Converts a crust type map into an RGB array using the crust LUT."""
    return create_crust_color_lut()[crust_type_map]
