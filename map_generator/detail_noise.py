# map_generator/detail_noise.py

"""Adds fractal detail noise on top of the post-tectonic elevation field."""
import logging

import numpy as np

from . import config as DEFAULTS
from .grid import Grid
from .noise import NoiseContext, seed_to_int

module_logger = logging.getLogger(__name__)


def detail_noise_seed(settings) -> int:
    """The explicit noise seed if configured, otherwise one derived from the master seed."""
    if settings.noise_seed is not None:
        return seed_to_int(settings.noise_seed)
    return seed_to_int(settings.seed) + DEFAULTS.DETAIL_SEED_OFFSET


def apply_detail_noise(
    grid: Grid,
    settings,
    noise_context: NoiseContext = None,
    logger: logging.Logger = None
) -> Grid:
    """
    Adds fbm(x / width, y / height) * strength to every cell height in place.
    Heights may leave [0, 1] here; normalization happens at finalization.
    """
    logger = logger or module_logger
    if noise_context is None:
        noise_context = NoiseContext(detail_noise_seed(settings))

    logger.info("Applying detail noise...")
    # Normalized coordinates so the frequency is independent of grid size.
    xs = np.arange(grid.width, dtype=np.float64) / grid.width
    ys = np.arange(grid.height, dtype=np.float64) / grid.height
    x_grid, y_grid = np.meshgrid(xs, ys)

    noise_values = noise_context.fbm(
        x_grid, y_grid,
        octaves=settings.noise_octaves,
        persistence=settings.noise_persistence,
        lacunarity=settings.noise_lacunarity,
        base_frequency=settings.noise_frequency
    )
    grid.height_map += noise_values * settings.noise_strength
    logger.info("Detail noise applied.")
    return grid
