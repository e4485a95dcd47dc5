# map_generator/config.py

"""
================================================================================
INTERNAL DEFAULT CONFIGURATION
================================================================================
This module contains the default, fallback constants for the map generator
and the typed settings object built from them. The defaults are used for any
value not explicitly provided by the caller's configuration dictionary.

DO NOT MODIFY THIS FILE FOR A SPECIFIC MAP.
Instead, pass a configuration dictionary to generate_map() / MapGenerator.
================================================================================
"""
import json
from typing import Annotated, Any, Optional

import numpy as np
from pydantic import (
    AliasChoices,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    StrictBool,
    StrictInt,
    ValidationError,
    field_validator,
)

from .errors import ConfigError

# --- Grid Dimensions ---
DEFAULT_GRID_WIDTH = 512
DEFAULT_GRID_HEIGHT = 512

# --- Randomness ---
DEFAULT_SEED = 'hello world'
# Offsets added to the master seed so that each layer draws from its own,
# deterministic stream.
TECTONIC_PLATE_SEED_OFFSET = 54321
DETAIL_SEED_OFFSET = 98761

# --- Tectonics ---
DEFAULT_TECTONICS_ENABLED = True
DEFAULT_NUM_PLATES = 12
DEFAULT_OCEANIC_CHANCE = 0.6 # Probability that a plate starts as oceanic crust
DEFAULT_TECTONIC_STEPS = 150
# Plate speed as a fraction of the grid dimension travelled per step.
DEFAULT_PLATE_BASE_SPEED = 0.01
# Height added to every boundary cell on every step.
DEFAULT_BOUNDARY_UPLIFT = 0.01

# Base properties by crust type. Oceanic plates start below sea level with a
# thin crust, continental plates above it with a thick one.
OCEANIC_BASE_HEIGHT = -0.5
OCEANIC_BASE_THICKNESS = 0.3
CONTINENTAL_BASE_HEIGHT = 0.2
CONTINENTAL_BASE_THICKNESS = 0.7

# --- Detail Noise (applied after tectonics) ---
DEFAULT_DETAIL_NOISE_ENABLED = True
DEFAULT_NOISE_FREQUENCY = 5.0
DEFAULT_NOISE_OCTAVES = 4
DEFAULT_NOISE_PERSISTENCE = 0.5
DEFAULT_NOISE_LACUNARITY = 2.0
DEFAULT_NOISE_STRENGTH = 0.05

# --- Erosion ---
DEFAULT_EROSION_ENABLED = True
DEFAULT_EROSION_ITERATIONS = 50
DEFAULT_RAINFALL_AMOUNT = 0.01 # Water added per cell per iteration
DEFAULT_EVAPORATION_RATE = 0.5 # Fraction of water evaporating per iteration
DEFAULT_EROSION_FACTOR = 0.1
DEFAULT_DEPOSITION_FACTOR = 0.1
DEFAULT_MIN_SLOPE = 0.01
DEFAULT_CAPACITY_FACTOR = 4.0
# Water depths below this are snapped to zero after evaporation.
WATER_EPSILON = 1e-5

# --- Finalization ---
DEFAULT_SEA_LEVEL = 0.35 # Normalized height below which a cell is water
DEFAULT_NORMALIZE_ITERATIONS = 2
# A height range at or below this is treated as a perfectly flat map.
FLAT_RANGE_EPSILON = 1e-12
FLAT_MAP_HEIGHT = 0.5
# Land is drawn in the [LAND_GRAY_MIN, 255] band so it never reads as water.
LAND_GRAY_MIN = 50

# --- Worker Behavior ---
DEFAULT_PROGRESS_INTERVAL = 5 # Emit progress every N simulation steps
DEFAULT_USE_WORKER_PROCESSES = True
# Seconds between liveness checks while waiting on a worker process.
WORKER_POLL_INTERVAL_S = 0.1



# Upper-case constant names used by earlier configuration files, lower-cased,
# mapped onto the settings field they set.
LEGACY_KEY_ALIASES = {
    'width': ('grid_width',),
    'height': ('grid_height',),
    'seed': ('random_seed',),
    'oceanic_chance': ('ocean_plate_chance',),
    'tectonic_steps': ('tectonic_sim_steps',),
    'sea_level': ('sea_level_threshold',),
    'progress_interval': ('progress_update_interval',),
}
# Accepted for compatibility but have no effect.
IGNORED_KEYS = frozenset({'inertia_factor'})


def _unwrap_numpy(value):
    """NumPy scalars validate like the Python values they hold."""
    if isinstance(value, np.generic):
        return value.item()
    return value

def _integer(value):
    value = _unwrap_numpy(value)
    if isinstance(value, bool):
        raise ValueError(f"must be an integer, got {value!r}")
    return value

def _real_number(value):
    value = _unwrap_numpy(value)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"must be a number, got {value!r}")
    return value

def _aliases(name):
    return AliasChoices(name, *LEGACY_KEY_ALIASES[name])


Integer = Annotated[StrictInt, BeforeValidator(_integer)]
Flag = Annotated[StrictBool, BeforeValidator(_unwrap_numpy)]
Number = Annotated[float, BeforeValidator(_real_number), Field(allow_inf_nan=False)]


class GenerationSettings(BaseModel):
    """
    The effective, validated configuration for one map generation run.
    Instances are immutable snapshots; build them with from_dict().
    """
    model_config = ConfigDict(frozen=True, extra='forbid')

    width: Integer = Field(DEFAULT_GRID_WIDTH, ge=1, validation_alias=_aliases('width'))
    height: Integer = Field(DEFAULT_GRID_HEIGHT, ge=1, validation_alias=_aliases('height'))
    seed: Any = Field(DEFAULT_SEED, validation_alias=_aliases('seed'))

    tectonics_enabled: Flag = DEFAULT_TECTONICS_ENABLED
    num_plates: Integer = Field(DEFAULT_NUM_PLATES, ge=1)
    oceanic_chance: Number = Field(DEFAULT_OCEANIC_CHANCE, ge=0.0, le=1.0, validation_alias=_aliases('oceanic_chance'))
    tectonic_steps: Integer = Field(DEFAULT_TECTONIC_STEPS, ge=0, validation_alias=_aliases('tectonic_steps'))
    plate_base_speed: Number = Field(DEFAULT_PLATE_BASE_SPEED, ge=0.0)
    boundary_uplift: Number = DEFAULT_BOUNDARY_UPLIFT

    detail_noise_enabled: Flag = DEFAULT_DETAIL_NOISE_ENABLED
    noise_seed: Optional[Any] = None
    noise_frequency: Number = Field(DEFAULT_NOISE_FREQUENCY, gt=0.0)
    noise_octaves: Integer = Field(DEFAULT_NOISE_OCTAVES, ge=0)
    noise_persistence: Number = Field(DEFAULT_NOISE_PERSISTENCE, ge=0.0)
    noise_lacunarity: Number = Field(DEFAULT_NOISE_LACUNARITY, gt=0.0)
    noise_strength: Number = DEFAULT_NOISE_STRENGTH

    erosion_enabled: Flag = DEFAULT_EROSION_ENABLED
    erosion_iterations: Integer = Field(DEFAULT_EROSION_ITERATIONS, ge=0)
    rainfall_amount: Number = Field(DEFAULT_RAINFALL_AMOUNT, ge=0.0)
    evaporation_rate: Number = Field(DEFAULT_EVAPORATION_RATE, ge=0.0, le=1.0)
    erosion_factor: Number = Field(DEFAULT_EROSION_FACTOR, ge=0.0)
    deposition_factor: Number = Field(DEFAULT_DEPOSITION_FACTOR, ge=0.0, le=1.0)
    min_slope: Number = Field(DEFAULT_MIN_SLOPE, ge=0.0)
    capacity_factor: Number = Field(DEFAULT_CAPACITY_FACTOR, ge=0.0)

    # Below 1.0, otherwise shading land would divide by zero.
    sea_level: Number = Field(DEFAULT_SEA_LEVEL, ge=0.0, lt=1.0, validation_alias=_aliases('sea_level'))
    normalize_iterations: Integer = Field(DEFAULT_NORMALIZE_ITERATIONS, ge=1)

    progress_interval: Integer = Field(DEFAULT_PROGRESS_INTERVAL, ge=1, validation_alias=_aliases('progress_interval'))
    use_worker_processes: Flag = DEFAULT_USE_WORKER_PROCESSES

    @field_validator('seed', 'noise_seed')
    @classmethod
    def _require_serializable(cls, value):
        try:
            json.dumps(value, sort_keys=True)
        except (TypeError, ValueError) as e:
            raise ValueError(f"must be JSON-serializable: {e}") from e
        return value

    @classmethod
    def from_dict(cls, user_config: dict = None) -> 'GenerationSettings':
        """
        Merges a user configuration dictionary over the defaults.

        Keys are matched case-insensitively, so both 'sea_level' and
        'SEA_LEVEL' are accepted, as are the older constant names listed
        in LEGACY_KEY_ALIASES. Unknown keys are rejected.

        Raises:
            ConfigError: If a key is unknown or a value is out of range.
        """
        if user_config is None:
            user_config = {}
        if not isinstance(user_config, dict):
            raise ConfigError(f"Configuration must be a dict, got {type(user_config).__name__}")

        overrides = {}
        for key, value in user_config.items():
            name = str(key).lower()
            if name not in IGNORED_KEYS:
                overrides[name] = value

        try:
            return cls.model_validate(overrides)
        except ValidationError as e:
            raise ConfigError(_describe_errors(e)) from e

    def to_dict(self) -> dict:
        """Returns a JSON-ready snapshot of every setting."""
        return self.model_dump()


def _describe_errors(error: ValidationError) -> str:
    messages = []
    for details in error.errors():
        name = '.'.join(str(part) for part in details['loc'])
        if details['type'] == 'extra_forbidden':
            messages.append(f"Unknown configuration key: '{name}'")
        else:
            messages.append(f"'{name}': {details['msg']}")
    return '; '.join(messages)
