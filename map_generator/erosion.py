# map_generator/erosion.py

"""
================================================================================
HYDRAULIC EROSION
================================================================================
A grid-based rainfall / flow / sediment-transport model. Every iteration adds
rain, moves water downhill to lower neighbours, erodes the cells water leaves,
carries sediment along with the flow, deposits what the water can no longer
hold, and evaporates part of the water.

Data Contract:
---------------
- Inputs: a WorldState whose grid holds the post-tectonic, post-noise heights.
- Outputs: the same WorldState with eroded heights and the remaining water
  and sediment fields.
- Invariants:
    - water and sediment never go negative.
    - Over one iteration, height + water + sediment summed over the grid
      changes only by the rain added and the water evaporated.
    - Flows are recorded per source cell and direction, so every transfer is
      resolved by coordinates in O(1).
================================================================================
"""
import logging
from dataclasses import dataclass

import numpy as np
from numba import njit

from . import config as DEFAULTS
from .errors import GenerationCancelled
from .grid import Grid, NEIGHBOR_OFFSETS, WorldState

module_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ErosionStepStats:
    """Water accounting for a single erosion iteration."""
    rainfall_added: float
    water_after_flow: float
    evaporated: float


@njit
def _compute_outflows(height_map, water, offsets, outflow):
    """
    Fills outflow[y, x, k] with the volume moving from (x, y) to its k-th
    neighbour. A cell never sheds more than its lowest head difference, so
    it cannot drop below the highest of its downhill neighbours in one step.
    """
    rows, cols = height_map.shape
    num_dirs = offsets.shape[0]
    for y in range(rows):
        for x in range(cols):
            for k in range(num_dirs):
                outflow[y, x, k] = 0.0

            cell_water = water[y, x]
            if cell_water <= 0.0:
                continue

            head = height_map[y, x] + cell_water
            total_diff = 0.0
            min_diff = np.inf
            for k in range(num_dirs):
                nx = (x + offsets[k, 0]) % cols
                ny = (y + offsets[k, 1]) % rows
                diff = head - (height_map[ny, nx] + water[ny, nx])
                if diff > 0.0:
                    outflow[y, x, k] = diff
                    total_diff += diff
                    if diff < min_diff:
                        min_diff = diff

            if total_diff <= 0.0:
                continue

            volume = min(cell_water, min_diff)
            for k in range(num_dirs):
                outflow[y, x, k] = volume * outflow[y, x, k] / total_diff

@njit
def _net_water_delta(outflow, offsets, water_delta):
    rows, cols, num_dirs = outflow.shape
    for y in range(rows):
        for x in range(cols):
            water_delta[y, x] = 0.0
    for y in range(rows):
        for x in range(cols):
            for k in range(num_dirs):
                volume = outflow[y, x, k]
                if volume > 0.0:
                    nx = (x + offsets[k, 0]) % cols
                    ny = (y + offsets[k, 1]) % rows
                    water_delta[y, x] -= volume
                    water_delta[ny, nx] += volume

@njit
def _transport_sediment(
    height_map, water, sediment, water_delta, outflow, offsets,
    erosion_factor, deposition_factor, capacity_factor, min_slope,
    height_delta, sediment_delta
):
    """
    Computes height and sediment deltas from the flow of this iteration.
    Every unit of material taken from one field is added to another, so
    the deltas sum to zero across height and sediment.
    """
    rows, cols, num_dirs = outflow.shape
    for y in range(rows):
        for x in range(cols):
            height_delta[y, x] = 0.0
            sediment_delta[y, x] = 0.0

    for y in range(rows):
        for x in range(cols):
            delta = water_delta[y, x]
            if delta < 0.0:
                # Net outflow: erode, then carry what the flow can hold.
                out_volume = -delta
                capacity = out_volume * capacity_factor * min_slope
                erodible = max(height_map[y, x], 0.0)
                eroded = min(erodible, out_volume * erosion_factor)
                height_delta[y, x] -= eroded

                load = sediment[y, x] + eroded
                carried = min(load, capacity)
                height_delta[y, x] += load - carried
                sediment_delta[y, x] -= sediment[y, x]

                gross = 0.0
                for k in range(num_dirs):
                    gross += outflow[y, x, k]
                if gross > 0.0:
                    for k in range(num_dirs):
                        volume = outflow[y, x, k]
                        if volume > 0.0:
                            nx = (x + offsets[k, 0]) % cols
                            ny = (y + offsets[k, 1]) % rows
                            sediment_delta[ny, nx] += carried * volume / gross
                else:
                    height_delta[y, x] += carried
            elif water[y, x] > 0.0:
                # Standing or gathering water: settle the excess load.
                capacity = water[y, x] * capacity_factor * min_slope
                if sediment[y, x] > capacity:
                    deposit = (sediment[y, x] - capacity) * deposition_factor
                    sediment_delta[y, x] -= deposit
                    height_delta[y, x] += deposit


def reset_erosion_fields(grid: Grid):
    """Zeroes the transient water and sediment fields."""
    grid.water.fill(0.0)
    grid.sediment.fill(0.0)


def erosion_step(grid: Grid, settings, buffers: dict = None) -> ErosionStepStats:
    """
    Runs one full erosion iteration over the grid.

    Args:
        grid (Grid): The grid to mutate in place.
        settings: The generation settings (erosion parameters).
        buffers (dict, optional): Scratch arrays reused between iterations.
    """
    if buffers is None:
        buffers = allocate_buffers(grid)
    outflow = buffers['outflow']
    water_delta = buffers['water_delta']
    height_delta = buffers['height_delta']
    sediment_delta = buffers['sediment_delta']

    # 1. Rainfall.
    grid.water += settings.rainfall_amount
    rainfall_added = settings.rainfall_amount * grid.cell_count

    # 2. Flow computation.
    _compute_outflows(grid.height_map, grid.water, NEIGHBOR_OFFSETS, outflow)
    _net_water_delta(outflow, NEIGHBOR_OFFSETS, water_delta)

    # 3. Apply water deltas.
    grid.water += water_delta
    np.maximum(grid.water, 0.0, out=grid.water)
    water_after_flow = float(np.sum(grid.water))

    # 4. Erosion and sediment transport.
    _transport_sediment(
        grid.height_map, grid.water, grid.sediment, water_delta, outflow, NEIGHBOR_OFFSETS,
        settings.erosion_factor, settings.deposition_factor,
        settings.capacity_factor, settings.min_slope,
        height_delta, sediment_delta
    )

    # 5. Apply sediment-driven height changes.
    grid.height_map += height_delta
    grid.sediment += sediment_delta
    np.maximum(grid.sediment, 0.0, out=grid.sediment)

    # 6. Evaporation.
    grid.water *= (1.0 - settings.evaporation_rate)
    grid.water[grid.water < DEFAULTS.WATER_EPSILON] = 0.0
    evaporated = water_after_flow - float(np.sum(grid.water))

    return ErosionStepStats(
        rainfall_added=rainfall_added,
        water_after_flow=water_after_flow,
        evaporated=evaporated,
    )


def allocate_buffers(grid: Grid) -> dict:
    """Scratch arrays for erosion_step, sized for the given grid."""
    shape = (grid.height, grid.width)
    return {
        'outflow': np.zeros(shape + (len(NEIGHBOR_OFFSETS),), dtype=np.float64),
        'water_delta': np.zeros(shape, dtype=np.float64),
        'height_delta': np.zeros(shape, dtype=np.float64),
        'sediment_delta': np.zeros(shape, dtype=np.float64),
    }


def run_erosion(
    world_state: WorldState,
    report_progress=None,
    cancel_event=None,
    logger: logging.Logger = None
) -> WorldState:
    """
    Runs the whole erosion phase on the world state in place.

    Args:
        world_state (WorldState): The state to erode.
        report_progress (callable, optional): Called as
            report_progress(current_step, total_steps).
        cancel_event (optional): Any object with is_set(); checked before
            every iteration.
        logger (logging.Logger, optional): Logger for runtime messages.
    """
    logger = logger or module_logger
    settings = world_state.settings
    grid = world_state.grid

    logger.info("Initializing erosion fields...")
    reset_erosion_fields(grid)
    buffers = allocate_buffers(grid)

    total_steps = settings.erosion_iterations
    interval = settings.progress_interval
    logger.info(f"Starting erosion simulation ({total_steps} iterations)...")
    for step in range(total_steps):
        if cancel_event is not None and cancel_event.is_set():
            raise GenerationCancelled(f"Erosion cancelled at iteration {step}/{total_steps}")

        stats = erosion_step(grid, settings, buffers)
        logger.debug(
            f"Iteration {step + 1}/{total_steps}: water {stats.water_after_flow:.4f}, "
            f"evaporated {stats.evaporated:.4f}"
        )

        if report_progress is not None and (step % interval == 0 or step == total_steps - 1):
            report_progress(step + 1, total_steps)

    logger.info("Erosion simulation finished.")
    return world_state
