"""Hexagonal spatial grid used to address tile partitions."""
from typing import List

import h3

from geosdk.core.config import H3_TILE_RESOLUTION


class SpatialGridAdapter:
    """Thin wrapper over the H3 grid at the resolution tiles were cut at."""

    def __init__(self, resolution: int = H3_TILE_RESOLUTION):
        self.resolution = resolution

    def cell_for_point(self, lat: float, lon: float, resolution: int = None) -> str:
        """
        Map a point to its grid cell.

        Args:
            lat: Latitude
            lon: Longitude
            resolution: Grid resolution (defaults to the tile resolution)

        Returns:
            Hex cell id, e.g. "8553a6a7fffffff"
        """
        return h3.latlng_to_cell(lat, lon, self.resolution if resolution is None else resolution)

    def neighbors(self, cell_id: str, ring: int = 1) -> List[str]:
        """
        Cells within ``ring`` steps of a cell, excluding the cell itself.

        Invalid cell ids yield an empty list.
        """
        if not cell_id or not h3.is_valid_cell(cell_id):
            return []
        return sorted(c for c in h3.grid_disk(cell_id, ring) if c != cell_id)

    def cell_center(self, cell_id: str):
        """(lat, lon) of a cell's center."""
        return h3.cell_to_latlng(cell_id)
