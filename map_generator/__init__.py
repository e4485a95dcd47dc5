# map_generator/__init__.py

# This file makes the 'map_generator' directory a Python package.
# It also defines the public API of the package.

from .config import GenerationSettings
from .errors import (
    ChannelError,
    ConfigError,
    GenerationCancelled,
    MapGenerationError,
    ProcessingError,
)
from .generator import MapGenerator, generate_map
from .grid import Grid, Plate, WorldState
from .noise import NoiseContext

__all__ = [
    "generate_map",
    "MapGenerator",
    "GenerationSettings",
    "Grid",
    "Plate",
    "WorldState",
    "NoiseContext",
    "MapGenerationError",
    "ConfigError",
    "ProcessingError",
    "ChannelError",
    "GenerationCancelled",
]
