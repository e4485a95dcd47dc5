# map_generator/initializer.py

"""Builds the initial WorldState that every later phase mutates."""
import logging

from .config import GenerationSettings
from .errors import ConfigError
from .grid import Grid, WorldState

module_logger = logging.getLogger(__name__)


def initialize_world_state(settings: GenerationSettings, logger: logging.Logger = None) -> WorldState:
    """
    Creates a fresh WorldState: every cell at height 0, unassigned to any
    plate, with unset crust and all transient fields zeroed.

    Raises:
        ConfigError: If the grid dimensions are not positive.
    """
    logger = logger or module_logger
    if settings.width <= 0 or settings.height <= 0:
        raise ConfigError(f"Grid dimensions must be positive, got {settings.width}x{settings.height}")

    logger.info("Initializing world state...")
    grid = Grid.create(settings.width, settings.height)
    world_state = WorldState(
        width=settings.width,
        height=settings.height,
        settings=settings,
        grid=grid,
        plates=[],
    )
    logger.info(f"Created grid: {settings.width}x{settings.height} ({grid.cell_count} cells)")
    return world_state
