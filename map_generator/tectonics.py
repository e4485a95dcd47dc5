# map_generator/tectonics.py

"""
================================================================================
TECTONIC PLATE SIMULATION
================================================================================
This module creates tectonic plates, partitions the grid between them with a
wrapped (toroidal) Voronoi rule, and steps the plates forward, raising the
terrain wherever two plates meet.

Data Contract:
---------------
- Inputs:
    - A WorldState fresh from the initializer (for run_tectonics) or one that
      already holds plates (for step_tectonics).
- Outputs:
    - The same WorldState, mutated in place: plate list, per-cell plate_id,
      crust_type, crust_thickness and height.
- Side Effects: Logs messages; calls the optional progress callback.
- Invariants:
    - After assignment, every cell belongs to exactly one plate.
    - Ties between equidistant plates go to the first plate in list order.
    - Given the same seed and configuration, the output is deterministic.
================================================================================
"""
import logging

import numpy as np
from numba import njit
from scipy.ndimage import maximum_filter, minimum_filter

from . import config as DEFAULTS
from .errors import GenerationCancelled
from .grid import CRUST_CONTINENTAL, CRUST_NAMES, CRUST_OCEANIC, Plate, WorldState
from .noise import seed_to_int

module_logger = logging.getLogger(__name__)

# 3x3 Moore neighbourhood, including the centre cell.
_BOUNDARY_FOOTPRINT = np.ones((3, 3), dtype=bool)


@njit
def wrapped_distance_sq(x, y, seed_x, seed_y, width, height):
    """Squared Euclidean distance on the torus, taking the shorter way round each axis."""
    dx = abs(x - seed_x)
    dy = abs(y - seed_y)
    if dx > width - dx:
        dx = width - dx
    if dy > height - dy:
        dy = height - dy
    return dx * dx + dy * dy

@njit
def nearest_plate_ids(width, height, seeds_x, seeds_y):
    """
    Returns an int32 (height, width) array holding, for every cell, the index
    of the nearest seed. A strict comparison keeps the first plate on ties.
    """
    out = np.empty((height, width), dtype=np.int32)
    num_plates = seeds_x.shape[0]
    for y in range(height):
        for x in range(width):
            best_dist = np.inf
            best_id = -1
            for i in range(num_plates):
                d = wrapped_distance_sq(float(x), float(y), seeds_x[i], seeds_y[i], float(width), float(height))
                if d < best_dist:
                    best_dist = d
                    best_id = i
            out[y, x] = best_id
    return out


def wrap_coordinate(value: float, size: float) -> float:
    """Wraps a position into [0, size). A tiny negative value would otherwise land on size itself."""
    wrapped = value % size
    if wrapped >= size:
        wrapped -= size
    return wrapped


def base_properties_for_crust(crust_type: int) -> tuple[float, float]:
    """Returns (base_height, base_thickness) for a crust type."""
    if crust_type == CRUST_OCEANIC:
        return DEFAULTS.OCEANIC_BASE_HEIGHT, DEFAULTS.OCEANIC_BASE_THICKNESS
    return DEFAULTS.CONTINENTAL_BASE_HEIGHT, DEFAULTS.CONTINENTAL_BASE_THICKNESS


def create_plates(settings, width: int, height: int) -> list[Plate]:
    """Generates the plates deterministically from the master seed."""
    rng = np.random.default_rng(seed_to_int(settings.seed) + DEFAULTS.TECTONIC_PLATE_SEED_OFFSET)
    num_plates = settings.num_plates
    speed = settings.plate_base_speed

    seeds_x = rng.uniform(0, width, num_plates)
    seeds_y = rng.uniform(0, height, num_plates)
    # Velocities are drawn as a fraction of the grid and stored in cells/step.
    velocities_x = (rng.random(num_plates) - 0.5) * 2 * speed * width
    velocities_y = (rng.random(num_plates) - 0.5) * 2 * speed * height
    oceanic = rng.random(num_plates) < settings.oceanic_chance

    plates = []
    for i in range(num_plates):
        crust_type = CRUST_OCEANIC if oceanic[i] else CRUST_CONTINENTAL
        base_height, base_thickness = base_properties_for_crust(crust_type)
        plates.append(Plate(
            id=i,
            seed_x=float(seeds_x[i]),
            seed_y=float(seeds_y[i]),
            velocity_x=float(velocities_x[i]),
            velocity_y=float(velocities_y[i]),
            crust_type=crust_type,
            base_height=base_height,
            base_thickness=base_thickness,
        ))
    return plates


def _plate_seed_arrays(plates: list[Plate]) -> tuple[np.ndarray, np.ndarray]:
    seeds_x = np.array([p.seed_x for p in plates], dtype=np.float64)
    seeds_y = np.array([p.seed_y for p in plates], dtype=np.float64)
    return seeds_x, seeds_y


def _plate_lookup(plates: list[Plate], attribute: str, dtype) -> np.ndarray:
    """A per-plate array indexed by plate id, for vectorized cell lookups."""
    return np.array([getattr(p, attribute) for p in plates], dtype=dtype)


def assign_cells_to_plates(world_state: WorldState) -> np.ndarray:
    """Assigns every cell to the nearest plate seed and returns the id map."""
    seeds_x, seeds_y = _plate_seed_arrays(world_state.plates)
    plate_ids = nearest_plate_ids(world_state.width, world_state.height, seeds_x, seeds_y)
    world_state.grid.plate_id[:] = plate_ids
    return plate_ids


def apply_initial_plate_properties(world_state: WorldState):
    """Copies each plate's crust type, base height and thickness onto its cells."""
    grid = world_state.grid
    plates = world_state.plates
    ids = grid.plate_id

    grid.height_map[:] = _plate_lookup(plates, 'base_height', np.float64)[ids]
    grid.crust_thickness[:] = _plate_lookup(plates, 'base_thickness', np.float64)[ids]
    grid.crust_type[:] = _plate_lookup(plates, 'crust_type', np.int8)[ids]


def find_boundary_mask(current_ids: np.ndarray, influencing_ids: np.ndarray) -> np.ndarray:
    """
    A cell is on a boundary if its owner differs from its influencing plate,
    or if any of its 8 wrapped neighbours has a different owner.
    """
    local_max = maximum_filter(current_ids, footprint=_BOUNDARY_FOOTPRINT, mode='wrap')
    local_min = minimum_filter(current_ids, footprint=_BOUNDARY_FOOTPRINT, mode='wrap')
    return (current_ids != influencing_ids) | (local_max != local_min)


def step_tectonics(world_state: WorldState) -> int:
    """
    Advances the plates by one step and returns the number of boundary cells.
    """
    grid = world_state.grid
    plates = world_state.plates
    width, height = world_state.width, world_state.height

    # 1. Theoretical next seed positions, wrapped into the grid.
    next_x = np.array([wrap_coordinate(p.seed_x + p.velocity_x, width) for p in plates], dtype=np.float64)
    next_y = np.array([wrap_coordinate(p.seed_y + p.velocity_y, height) for p in plates], dtype=np.float64)

    # 2. The plate whose theoretical position is nearest influences each cell.
    influencing_ids = nearest_plate_ids(width, height, next_x, next_y)

    # 3. Boundaries are judged on ownership as it stood before this step.
    current_ids = grid.plate_id.copy()
    boundary_mask = find_boundary_mask(current_ids, influencing_ids)

    # 4. Uniform uplift at every boundary.
    grid.height_map[boundary_mask] += world_state.settings.boundary_uplift

    # 5. Ownership transfers to the influencing plate.
    grid.plate_id[:] = influencing_ids
    grid.crust_type[:] = _plate_lookup(plates, 'crust_type', np.int8)[influencing_ids]

    # 6. Commit the new positions.
    for plate, x, y in zip(plates, next_x, next_y):
        plate.seed_x = float(x)
        plate.seed_y = float(y)

    return int(np.count_nonzero(boundary_mask))


def run_tectonics(
    world_state: WorldState,
    report_progress=None,
    cancel_event=None,
    logger: logging.Logger = None
) -> WorldState:
    """
    Runs the whole tectonic phase: plate creation, initial assignment and
    the fixed number of simulation steps.

    Args:
        world_state (WorldState): The state to mutate in place.
        report_progress (callable, optional): Called as
            report_progress(current_step, total_steps).
        cancel_event (optional): Any object with is_set(); checked before
            every step.
        logger (logging.Logger, optional): Logger for runtime messages.
    """
    logger = logger or module_logger
    settings = world_state.settings

    # 1. Create plates and partition the grid between them.
    logger.info(f"Initializing {settings.num_plates} plates...")
    world_state.plates = create_plates(settings, world_state.width, world_state.height)
    assign_cells_to_plates(world_state)
    apply_initial_plate_properties(world_state)
    for plate in world_state.plates:
        logger.debug(
            f"Plate {plate.id}: {CRUST_NAMES[plate.crust_type]} at "
            f"({plate.seed_x:.1f}, {plate.seed_y:.1f}), "
            f"velocity ({plate.velocity_x:.3f}, {plate.velocity_y:.3f})"
        )

    # 2. Run the simulation loop.
    total_steps = settings.tectonic_steps
    interval = settings.progress_interval
    logger.info(f"Starting tectonic simulation ({total_steps} steps)...")
    for step in range(total_steps):
        if cancel_event is not None and cancel_event.is_set():
            raise GenerationCancelled(f"Tectonics cancelled at step {step}/{total_steps}")

        boundary_cells = step_tectonics(world_state)
        logger.debug(f"Step {step + 1}/{total_steps}: {boundary_cells} boundary cells")

        if report_progress is not None and (step % interval == 0 or step == total_steps - 1):
            report_progress(step + 1, total_steps)

    logger.info("Tectonic simulation finished.")
    return world_state
