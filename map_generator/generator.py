# map_generator/generator.py

"""
================================================================================
MAP GENERATION ORCHESTRATOR
================================================================================
This module contains the MapGenerator class, which sequences the simulation
phases and relays their progress to a single caller callback.

Data Contract:
---------------
- Inputs (on initialization):
    - config (dict): Parameters overriding the internal defaults.
    - logger: A configured Python logging object for runtime messages.
- Outputs:
    - generate_world(): the finalized WorldState.
    - generate(): PNG bytes of the grayscale elevation map.
- Side Effects: Logs messages; calls on_progress with event dicts; runs the
  tectonic and erosion phases in worker processes unless
  use_worker_processes is false.
- Invariants:
    - Phases run strictly in order: Setup, Tectonics, Noise, Erosion,
      Finalization.
    - generate() delivers exactly one terminal event ('Complete' or 'Error').
    - Given the same seed and configuration, the output is byte-identical.
================================================================================
"""
import logging
import time

from .config import GenerationSettings
from .detail_noise import apply_detail_noise
from .errors import ConfigError, MapGenerationError, ProcessingError
from .finalize import normalize_heights, render_grayscale, set_water_mask
from .grid import WorldState
from .initializer import initialize_world_state
from .workers import (
    PhaseRequest, TASK_START_EROSION, TASK_START_TECTONICS,
    run_inline_task, run_worker_task,
)

module_logger = logging.getLogger(__name__)

PHASE_SETUP = 'Setup'
PHASE_TECTONICS = 'Tectonics'
PHASE_NOISE = 'Noise'
PHASE_EROSION = 'Erosion'
PHASE_FINALIZATION = 'Finalization'
PHASE_COMPLETE = 'Complete'
PHASE_ERROR = 'Error'


class MapGenerator:
    """
    Runs the full tectonics -> noise -> erosion -> finalization pipeline.
    """
    def __init__(self, config: dict = None, logger: logging.Logger = None):
        """
        Initializes the map generator.

        Args:
            config (dict, optional): User-defined parameters to override defaults.
            logger (logging.Logger, optional): The logger instance for all output.

        Raises:
            ConfigError: If the configuration is invalid.
        """
        self.logger = logger or module_logger
        self.settings = GenerationSettings.from_dict(config)
        self.logger.info(
            f"MapGenerator initialized with seed: {self.settings.seed!r} "
            f"({self.settings.width}x{self.settings.height} grid)"
        )

    def _run_phase(self, task_type: str, world_state: WorldState, on_progress, cancel_event) -> WorldState:
        request = PhaseRequest(type=task_type, world_state=world_state)
        if self.settings.use_worker_processes:
            return run_worker_task(request, on_progress=on_progress, cancel_event=cancel_event, logger=self.logger)
        return run_inline_task(request, on_progress=on_progress, cancel_event=cancel_event, logger=self.logger)

    def generate_world(self, on_progress=None, cancel_event=None) -> WorldState:
        """
        Runs every phase up to and including the water mask and returns the
        finalized WorldState. Emits phase progress but no terminal event.
        """
        settings = self.settings

        def emit(event):
            if on_progress is not None:
                on_progress(event)

        # --- Phase 0: Setup ---
        world_state = initialize_world_state(settings, logger=self.logger)
        emit({'phase': PHASE_SETUP, 'status': 'Complete'})

        # --- Phase 1: Tectonics (worker) ---
        if settings.tectonics_enabled:
            self.logger.info("--- Phase 1: Tectonics ---")
            world_state = self._run_phase(TASK_START_TECTONICS, world_state, emit, cancel_event)
            emit({'phase': PHASE_TECTONICS, 'status': 'Complete'})
        else:
            self.logger.info("--- Phase 1: Tectonics (Skipped) ---")
            emit({'phase': PHASE_TECTONICS, 'status': 'Skipped'})

        # --- Phase 2: Detail Noise (this process) ---
        if settings.detail_noise_enabled:
            self.logger.info("--- Phase 2: Detail Noise ---")
            apply_detail_noise(world_state.grid, settings, logger=self.logger)
            emit({'phase': PHASE_NOISE, 'status': 'Complete'})
        else:
            self.logger.info("--- Phase 2: Detail Noise (Skipped) ---")
            emit({'phase': PHASE_NOISE, 'status': 'Skipped'})

        # --- Phase 3: Erosion (worker) ---
        if settings.erosion_enabled:
            self.logger.info("--- Phase 3: Erosion ---")
            world_state = self._run_phase(TASK_START_EROSION, world_state, emit, cancel_event)
            emit({'phase': PHASE_EROSION, 'status': 'Complete'})
        else:
            self.logger.info("--- Phase 3: Erosion (Skipped) ---")
            emit({'phase': PHASE_EROSION, 'status': 'Skipped'})

        # --- Phase 4: Finalization ---
        self.logger.info("--- Phase 4: Finalization ---")
        emit({'phase': PHASE_FINALIZATION, 'status': 'Normalizing...'})
        normalize_heights(world_state.grid, settings.normalize_iterations, logger=self.logger)

        emit({'phase': PHASE_FINALIZATION, 'status': 'Setting Water...'})
        set_water_mask(world_state.grid, settings.sea_level, logger=self.logger)
        return world_state

    def generate(self, on_progress=None, cancel_event=None) -> bytes:
        """
        Generates the map and returns it as PNG bytes.

        Raises:
            MapGenerationError: ProcessingError, ChannelError or
                GenerationCancelled if any phase fails. No image is produced.
        """
        start_time = time.perf_counter()
        try:
            world_state = self.generate_world(on_progress=on_progress, cancel_event=cancel_event)
            if on_progress is not None:
                on_progress({'phase': PHASE_FINALIZATION, 'status': 'Generating Image...'})
            image = render_grayscale(world_state.grid, self.settings.sea_level, logger=self.logger)
        except MapGenerationError as e:
            self._report_failure(e, on_progress)
            raise
        except Exception as e:
            self._report_failure(e, on_progress)
            raise ProcessingError(f"Map generation failed: {e}") from e

        self.logger.info(f"--- Map Generation Complete ({time.perf_counter() - start_time:.2f} seconds) ---")
        if on_progress is not None:
            on_progress({'phase': PHASE_COMPLETE, 'status': 'Finished', 'image': image})
        return image

    def _report_failure(self, error: Exception, on_progress):
        self.logger.error(f"Map generation failed: {error}")
        if on_progress is not None:
            on_progress({'phase': PHASE_ERROR, 'status': f"Failed: {error}", 'message': str(error)})


def generate_map(config: dict = None, on_progress=None, logger: logging.Logger = None, cancel_event=None) -> bytes:
    """
    Generates a map image from a configuration dictionary.

    Args:
        config (dict, optional): Overrides for the default settings.
        on_progress (callable, optional): Receives every progress event dict,
            ending with exactly one 'Complete' or 'Error' event.
        logger (logging.Logger, optional): The logger instance for all output.
        cancel_event (optional): Any object with is_set(), e.g. a
            threading.Event. Checked between simulation steps.

    Returns:
        bytes: The PNG-encoded grayscale elevation map.
    """
    logger = logger or module_logger
    try:
        generator = MapGenerator(config=config, logger=logger)
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        if on_progress is not None:
            on_progress({'phase': PHASE_ERROR, 'status': f"Failed: {e}", 'message': str(e)})
        raise
    return generator.generate(on_progress=on_progress, cancel_event=cancel_event)
