"""Tests for the hydraulic erosion model."""

import numpy as np
import pytest

from map_generator import GenerationCancelled, GenerationSettings
from map_generator import config as DEFAULTS
from map_generator.erosion import allocate_buffers, erosion_step, run_erosion
from map_generator.grid import Grid
from map_generator.initializer import initialize_world_state


def erosion_settings(**overrides):
    config = {"rainfall_amount": 0.01, "evaporation_rate": 0.5}
    config.update(overrides)
    return GenerationSettings.from_dict(config)


class TestWaterAccounting:
    """Test rainfall, flow and evaporation bookkeeping."""

    def test_rain_on_flat_ground(self):
        grid = Grid.create(6, 5)
        settings = erosion_settings()
        stats = erosion_step(grid, settings)

        assert stats.rainfall_added == pytest.approx(0.01 * 30)
        assert stats.water_after_flow == pytest.approx(0.01 * 30)
        np.testing.assert_allclose(grid.water, 0.005)
        assert np.all(grid.height_map == 0.0)
        assert np.all(grid.sediment == 0.0)

    def test_flow_conserves_water(self, rough_grid):
        settings = erosion_settings()
        buffers = allocate_buffers(rough_grid)
        for _ in range(5):
            water_before = float(np.sum(rough_grid.water))
            stats = erosion_step(rough_grid, settings, buffers)
            assert stats.water_after_flow == pytest.approx(water_before + stats.rainfall_added)

    def test_evaporation_scales_water(self, rough_grid):
        settings = erosion_settings(rainfall_amount=1.0, evaporation_rate=0.25)
        stats = erosion_step(rough_grid, settings)
        tolerance = rough_grid.cell_count * DEFAULTS.WATER_EPSILON
        assert np.sum(rough_grid.water) == pytest.approx(stats.water_after_flow * 0.75, abs=tolerance)

    def test_tiny_water_snaps_to_zero(self):
        grid = Grid.create(4, 4)
        settings = erosion_settings(rainfall_amount=1e-6)
        erosion_step(grid, settings)
        assert np.all(grid.water == 0.0)


class TestMassAccounting:
    """Test that material is neither created nor destroyed."""

    def test_total_mass_changes_only_by_rain_and_evaporation(self, rough_grid):
        settings = erosion_settings(erosion_factor=0.3, capacity_factor=2.0)
        buffers = allocate_buffers(rough_grid)
        for _ in range(8):
            mass_before = rough_grid.total_mass()
            stats = erosion_step(rough_grid, settings, buffers)
            expected = mass_before + stats.rainfall_added - stats.evaporated
            assert rough_grid.total_mass() == pytest.approx(expected, abs=1e-9)

    def test_fields_never_negative(self, rough_grid):
        settings = erosion_settings(erosion_factor=1.0, deposition_factor=1.0)
        buffers = allocate_buffers(rough_grid)
        for _ in range(10):
            erosion_step(rough_grid, settings, buffers)
            assert rough_grid.water.min() >= 0.0
            assert rough_grid.sediment.min() >= 0.0

    def test_strong_erosion_never_digs_below_zero(self):
        grid = Grid.create(8, 8)
        grid.height_map[:] = np.random.default_rng(3).uniform(0.0, 0.05, size=(8, 8))
        settings = erosion_settings(erosion_factor=50.0, rainfall_amount=0.5)
        buffers = allocate_buffers(grid)
        for _ in range(20):
            erosion_step(grid, settings, buffers)
            assert grid.height_map.min() >= 0.0

    def test_submerged_cell_not_eroded(self):
        grid = Grid.create(5, 5)
        grid.height_map[:] = -1.0
        grid.height_map[2, 2] = -0.5
        settings = erosion_settings(erosion_factor=50.0, rainfall_amount=0.5)
        buffers = allocate_buffers(grid)
        erosion_step(grid, settings, buffers)
        assert grid.height_map[2, 2] == -0.5
        for _ in range(10):
            erosion_step(grid, settings, buffers)
            assert grid.height_map[2, 2] >= -0.5


class TestTransport:
    """Test erosion and sediment transport around a single peak."""

    def setup_method(self):
        self.grid = Grid.create(5, 5)
        self.grid.height_map[2, 2] = 1.0
        self.settings = erosion_settings()
        erosion_step(self.grid, self.settings)

    def test_peak_sheds_its_water(self):
        assert self.grid.water[2, 2] == 0.0
        # Each neighbour keeps its own rain plus an eighth of the peak's.
        assert self.grid.water[2, 1] == pytest.approx((0.01 + 0.01 / 8) * 0.5)
        assert self.grid.water[0, 0] == pytest.approx(0.01 * 0.5)

    def test_peak_erodes_and_deposits_excess(self):
        eroded = 0.01 * 0.1
        capacity = 0.01 * 4.0 * 0.01
        assert self.grid.height_map[2, 2] == pytest.approx(1.0 - eroded + (eroded - capacity))
        assert self.grid.sediment[2, 2] == 0.0

    def test_sediment_follows_the_flow(self):
        carried = 0.01 * 4.0 * 0.01
        for dx, dy in [(-1, -1), (0, -1), (1, -1), (-1, 0), (1, 0), (-1, 1), (0, 1), (1, 1)]:
            assert self.grid.sediment[2 + dy, 2 + dx] == pytest.approx(carried / 8)
        assert self.grid.sediment[0, 0] == 0.0


class TestRunErosion:
    """Test the erosion phase runner."""

    def test_resets_transient_fields(self, world_state):
        world_state.grid.water[:] = 5.0
        world_state.grid.sediment[:] = 2.0
        world_state.settings = GenerationSettings.from_dict({"erosion_iterations": 0})
        run_erosion(world_state)
        assert np.all(world_state.grid.water == 0.0)
        assert np.all(world_state.grid.sediment == 0.0)

    def test_progress_and_result(self, small_settings):
        state = initialize_world_state(small_settings)
        calls = []
        result = run_erosion(state, report_progress=lambda current, total: calls.append((current, total)))
        assert result is state
        assert calls == [(1, 4), (3, 4), (4, 4)]

    def test_cancellation(self, world_state, cancel_event):
        with pytest.raises(GenerationCancelled):
            run_erosion(world_state, cancel_event=cancel_event)
