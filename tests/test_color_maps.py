"""Tests for the debug colour layers."""

import numpy as np

from map_generator import color_maps
from map_generator.grid import CRUST_CONTINENTAL, CRUST_OCEANIC, CRUST_UNSET


def test_plate_colors_are_deterministic():
    ids = np.array([[0, 1], [2, 1]], dtype=np.int32)
    a = color_maps.get_plate_color_array(ids, 3, seed=5)
    b = color_maps.get_plate_color_array(ids, 3, seed=5)
    assert a.shape == (2, 2, 3)
    assert a.dtype == np.uint8
    np.testing.assert_array_equal(a, b)
    np.testing.assert_array_equal(a[0, 1], a[1, 1])


def test_unassigned_cells_use_fallback_color():
    ids = np.array([[-1, 0]], dtype=np.int32)
    colors = color_maps.get_plate_color_array(ids, 1, seed=0)
    assert tuple(colors[0, 0]) == color_maps.COLOR_UNASSIGNED


def test_crust_colors():
    crust = np.array([[CRUST_UNSET, CRUST_OCEANIC, CRUST_CONTINENTAL]], dtype=np.int8)
    colors = color_maps.get_crust_color_array(crust)
    assert colors.shape == (1, 3, 3)
    assert tuple(colors[0, 1]) == color_maps.COLOR_MAP_CRUST[CRUST_OCEANIC]
    assert tuple(colors[0, 2]) == color_maps.COLOR_MAP_CRUST[CRUST_CONTINENTAL]
