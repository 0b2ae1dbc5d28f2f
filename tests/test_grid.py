"""Tests for the H3 grid adapter."""
import h3

from geosdk.core.grid import SpatialGridAdapter
from tests.conftest import RIYADH_POINT


def test_cell_is_deterministic():
    grid = SpatialGridAdapter()
    first = grid.cell_for_point(*RIYADH_POINT)
    assert first == grid.cell_for_point(*RIYADH_POINT)
    assert h3.get_resolution(first) == 5


def test_cell_resolution_override():
    grid = SpatialGridAdapter()
    assert h3.get_resolution(grid.cell_for_point(*RIYADH_POINT, resolution=7)) == 7


def test_neighbors_exclude_origin():
    grid = SpatialGridAdapter()
    cell = grid.cell_for_point(*RIYADH_POINT)
    neighbors = grid.neighbors(cell)
    assert cell not in neighbors
    assert len(neighbors) == 6
    assert all(h3.grid_distance(cell, n) == 1 for n in neighbors)


def test_neighbors_ring_two():
    grid = SpatialGridAdapter()
    cell = grid.cell_for_point(*RIYADH_POINT)
    assert len(grid.neighbors(cell, ring=2)) == 18


def test_invalid_cell_has_no_neighbors():
    grid = SpatialGridAdapter()
    assert grid.neighbors("not-a-cell") == []
    assert grid.neighbors("") == []


def test_cell_center_maps_back_to_cell():
    grid = SpatialGridAdapter()
    cell = grid.cell_for_point(*RIYADH_POINT)
    assert grid.cell_for_point(*grid.cell_center(cell)) == cell
