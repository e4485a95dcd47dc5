"""End-to-end tests for the generation pipeline."""

import io

import numpy as np
import pytest
from PIL import Image

from map_generator import (
    ConfigError,
    GenerationCancelled,
    MapGenerator,
    ProcessingError,
    generate_map,
)
from map_generator import config as DEFAULTS
from map_generator import generator as generator_module


def decode(png_bytes):
    return np.array(Image.open(io.BytesIO(png_bytes)))


class TestScenarios:
    """Test small, fully predictable maps."""

    def test_flat_map_is_uniform_mid_gray(self, flat_config, recorder):
        image = generate_map(flat_config, on_progress=recorder)
        pixels = decode(image)
        assert pixels.shape == (4, 4, 4)
        assert np.all(pixels[..., :3] == 97)
        assert np.all(pixels[..., 3] == 255)

    def test_flat_map_is_all_land(self, flat_config):
        world_state = MapGenerator(flat_config).generate_world()
        assert np.all(world_state.grid.height_map == 0.5)
        assert not world_state.grid.is_water.any()

    def test_single_plate_without_steps(self, flat_config):
        flat_config.update({
            "tectonics_enabled": True,
            "num_plates": 1,
            "tectonic_steps": 0,
            "oceanic_chance": 1.0,
        })
        world_state = MapGenerator(flat_config).generate_world()
        assert len(world_state.plates) == 1
        assert np.all(world_state.grid.plate_id == 0)
        assert np.all(world_state.grid.crust_thickness == DEFAULTS.OCEANIC_BASE_THICKNESS)
        # A single uniform plate normalizes to the flat mid height.
        assert np.all(world_state.grid.height_map == 0.5)


class TestProgressEvents:
    """Test the progress event stream."""

    def test_phase_order_and_single_terminal(self, small_config, recorder):
        generate_map(small_config, on_progress=recorder)
        phases = recorder.phases()

        order = ["Setup", "Tectonics", "Noise", "Erosion", "Finalization", "Complete"]
        first_seen = [phases.index(phase) for phase in order]
        assert first_seen == sorted(first_seen)
        assert len(recorder.terminal_events()) == 1
        assert recorder.events[-1]["phase"] == "Complete"
        assert isinstance(recorder.events[-1]["image"], bytes)

    def test_step_counters_increase(self, small_config, recorder):
        generate_map(small_config, on_progress=recorder)
        for phase, total in (("Tectonics", 6), ("Erosion", 4)):
            steps = [e["current_step"] for e in recorder.events if e["phase"] == phase and "current_step" in e]
            assert steps == sorted(steps)
            assert steps[-1] == total

    def test_disabled_phases_are_skipped(self, flat_config, recorder):
        generate_map(flat_config, on_progress=recorder)
        statuses = {e["phase"]: e.get("status") for e in recorder.events if e["phase"] in ("Tectonics", "Noise", "Erosion")}
        assert statuses == {"Tectonics": "Skipped", "Noise": "Skipped", "Erosion": "Skipped"}


class TestDeterminism:
    """Test reproducibility of generated maps."""

    def test_same_seed_same_bytes(self, small_config):
        assert generate_map(small_config) == generate_map(small_config)

    def test_different_seed_different_bytes(self, small_config):
        other = dict(small_config, seed="another-seed")
        assert generate_map(small_config) != generate_map(other)

    def test_worker_processes_match_inline(self, small_config):
        in_process = generate_map(small_config)
        with_workers = generate_map(dict(small_config, use_worker_processes=True))
        assert with_workers == in_process


class TestFailures:
    """Test error propagation and terminal error events."""

    def test_config_error_reported(self, recorder):
        with pytest.raises(ConfigError):
            generate_map({"width": 0}, on_progress=recorder)
        assert len(recorder.events) == 1
        assert recorder.events[0]["phase"] == "Error"
        assert "width" in recorder.events[0]["message"]

    def test_non_finite_heights_fail(self, small_config, recorder, monkeypatch):
        def poison(grid, settings, **kwargs):
            grid.height_map[0, 0] = np.nan

        monkeypatch.setattr(generator_module, "apply_detail_noise", poison)
        with pytest.raises(ProcessingError):
            generate_map(small_config, on_progress=recorder)
        assert len(recorder.terminal_events()) == 1
        assert recorder.events[-1]["phase"] == "Error"

    def test_unexpected_exception_wrapped(self, small_config, recorder, monkeypatch):
        def explode(grid, settings, **kwargs):
            raise RuntimeError("noise table missing")

        monkeypatch.setattr(generator_module, "apply_detail_noise", explode)
        with pytest.raises(ProcessingError) as excinfo:
            generate_map(small_config, on_progress=recorder)
        assert isinstance(excinfo.value.__cause__, RuntimeError)
        assert "noise table missing" in recorder.events[-1]["message"]

    def test_cancellation(self, small_config, recorder, cancel_event):
        with pytest.raises(GenerationCancelled):
            generate_map(small_config, on_progress=recorder, cancel_event=cancel_event)
        assert recorder.events[-1]["phase"] == "Error"
        assert "Complete" not in recorder.phases()
