# map_generator/finalize.py

"""
================================================================================
FINALIZATION: NORMALIZATION, SEA LEVEL AND IMAGE OUTPUT
================================================================================
Turns the raw simulated height field into the final product.

Data Contract:
---------------
- normalize_heights: rescales heights into [0, 1] in place.
- set_water_mask: derives is_water from heights; never touches heights.
- rasterize_grayscale / render_grayscale: read-only; produce an RGBA uint8
  array or PNG bytes. Water is black, land is shaded in [LAND_GRAY_MIN, 255].
- Invariants: running the read-only steps twice yields identical output.
================================================================================
"""
import base64
import io
import logging

import numpy as np
from PIL import Image

from . import config as DEFAULTS
from .errors import ProcessingError
from .grid import Grid

module_logger = logging.getLogger(__name__)


def normalize_heights(grid: Grid, iterations: int = 1, logger: logging.Logger = None) -> Grid:
    """
    Rescales every height linearly into [0, 1]. A flat grid becomes a uniform
    FLAT_MAP_HEIGHT. Passes after the first are a no-op on an already
    normalized grid and are kept as a robustness pass.

    Raises:
        ProcessingError: If the height field contains NaN or infinity.
    """
    logger = logger or module_logger
    logger.info(f"Normalizing heights ({iterations} iterations)...")

    for i in range(iterations):
        min_height, max_height = grid.find_min_max_height()
        if not (np.isfinite(min_height) and np.isfinite(max_height)):
            raise ProcessingError(
                f"Cannot normalize a height field containing non-finite values "
                f"(min={min_height}, max={max_height})"
            )

        height_range = max_height - min_height
        if height_range <= DEFAULTS.FLAT_RANGE_EPSILON:
            logger.warning("Height range is zero; flattening the map to mid height.")
            grid.height_map.fill(DEFAULTS.FLAT_MAP_HEIGHT)
            return grid

        grid.height_map -= min_height
        grid.height_map /= height_range
        logger.debug(f"Iteration {i + 1}: normalized range [{min_height:.4f}, {max_height:.4f}] to [0, 1]")

    return grid


def set_water_mask(grid: Grid, sea_level: float, logger: logging.Logger = None) -> int:
    """Marks every cell below sea_level as water. Returns the water cell count."""
    logger = logger or module_logger
    np.less(grid.height_map, sea_level, out=grid.is_water)
    water_cells = int(np.count_nonzero(grid.is_water))
    logger.info(f"Water mask set (sea level {sea_level}): {water_cells} water cells.")
    return water_cells


def rasterize_grayscale(grid: Grid, sea_level: float) -> np.ndarray:
    """
    Converts the finalized grid into an RGBA uint8 array of shape
    (height, width, 4), row-major like the grid itself.
    """
    land_ratio = np.clip((grid.height_map - sea_level) / (1.0 - sea_level), 0.0, 1.0)
    land_span = 255 - DEFAULTS.LAND_GRAY_MIN
    # Round half up so x.5 always goes to the brighter value.
    land_values = np.floor(DEFAULTS.LAND_GRAY_MIN + land_ratio * land_span + 0.5)
    gray_values = np.where(grid.is_water, 0, land_values).astype(np.uint8)

    rgba = np.empty((grid.height, grid.width, 4), dtype=np.uint8)
    rgba[..., 0] = gray_values
    rgba[..., 1] = gray_values
    rgba[..., 2] = gray_values
    rgba[..., 3] = 255
    return rgba


def encode_png(rgba: np.ndarray) -> bytes:
    """Encodes an RGBA array as PNG bytes with Pillow."""
    buffer = io.BytesIO()
    Image.fromarray(rgba).save(buffer, format='PNG')
    return buffer.getvalue()


def render_grayscale(grid: Grid, sea_level: float, logger: logging.Logger = None) -> bytes:
    """Renders the finalized grid to PNG bytes."""
    logger = logger or module_logger
    logger.info("Generating grayscale image...")
    return encode_png(rasterize_grayscale(grid, sea_level))


def to_data_url(png_bytes: bytes) -> str:
    """Wraps PNG bytes in a data URL for embedding in HTML or JSON."""
    return 'data:image/png;base64,' + base64.b64encode(png_bytes).decode('ascii')
