"""Pytest configuration and fixtures for map generator tests."""

import threading

import numpy as np
import pytest

from map_generator import GenerationSettings
from map_generator.initializer import initialize_world_state


@pytest.fixture
def small_config():
    """A small, fast, in-process configuration exercising every phase."""
    return {
        "width": 16,
        "height": 12,
        "seed": "test-seed",
        "num_plates": 4,
        "tectonic_steps": 6,
        "erosion_iterations": 4,
        "progress_interval": 2,
        "use_worker_processes": False,
    }


@pytest.fixture
def small_settings(small_config):
    return GenerationSettings.from_dict(small_config)


@pytest.fixture
def world_state(small_settings):
    """A freshly initialized world state for the small configuration."""
    return initialize_world_state(small_settings)


@pytest.fixture
def flat_config():
    """A 4x4 grid with every simulation phase disabled."""
    return {
        "width": 4,
        "height": 4,
        "tectonics_enabled": False,
        "detail_noise_enabled": False,
        "erosion_enabled": False,
        "sea_level": 0.35,
        "use_worker_processes": False,
    }


@pytest.fixture
def rough_grid(world_state):
    """A grid with random terrain, including heights below zero."""
    rng = np.random.default_rng(7)
    world_state.grid.height_map[:] = rng.uniform(-0.5, 1.0, size=world_state.grid.height_map.shape)
    return world_state.grid


@pytest.fixture
def cancel_event():
    event = threading.Event()
    event.set()
    return event


class EventRecorder:
    """Collects progress events passed to an on_progress callback."""

    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)

    def phases(self):
        return [event["phase"] for event in self.events]

    def terminal_events(self):
        return [event for event in self.events if event["phase"] in ("Complete", "Error")]


@pytest.fixture
def recorder():
    return EventRecorder()
