# map_generator/errors.py

"""Exceptions raised by the map generation pipeline."""


class MapGenerationError(Exception):
    """Base class for every failure reported by generate_map()."""


class ConfigError(MapGenerationError):
    """The configuration is invalid. Raised before any simulation work starts."""


class ProcessingError(MapGenerationError):
    """A phase failed while running. No image is produced for the call."""


class ChannelError(ProcessingError):
    """A worker process could not be started or terminated unexpectedly."""


class GenerationCancelled(MapGenerationError):
    """The caller's cancellation token was set during a simulation phase."""
