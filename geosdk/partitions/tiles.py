"""Hexagonal tile layout: one Parquet file per H3 resolution-5 cell."""
from typing import Any, Dict, Iterable, List, Optional

from geosdk.core.catalog import PartitionCatalog, region_from_row, to_int
from geosdk.core.config import TILE_INDEX_FILE
from geosdk.core.grid import SpatialGridAdapter
from geosdk.core.models import BoundingBox, PartitionDescriptor
from geosdk.partitions.base import PartitionLayout


class TileLayout(PartitionLayout):
    """Partitions addressed as ``{base}/tiles/{h3_tile}.parquet``."""

    name = "tiles"
    index_file = TILE_INDEX_FILE
    has_postcode_index = True
    supports_neighbors = True

    def __init__(self, grid: Optional[SpatialGridAdapter] = None):
        self.grid = grid or SpatialGridAdapter()

    def parse_index(self, rows: Iterable[Dict[str, Any]]) -> List[PartitionDescriptor]:
        descriptors = []
        for row in rows:
            descriptors.append(PartitionDescriptor(
                id=str(row["h3_tile"]),
                address_count=to_int(row.get("addr_count")),
                bbox=BoundingBox(
                    min_lon=float(row["min_lon"]),
                    max_lon=float(row["max_lon"]),
                    min_lat=float(row["min_lat"]),
                    max_lat=float(row["max_lat"]),
                ),
                file_size_kb=to_int(row.get("file_size_kb")),
                primary_region=region_from_row(row),
            ))
        return descriptors

    def source_for(self, base_url: str, descriptor: PartitionDescriptor) -> str:
        return f"{base_url}/tiles/{descriptor.id}.parquet"

    def partitions_for_point(self, lat: float, lon: float, catalog: PartitionCatalog, gate=None) -> List[PartitionDescriptor]:
        descriptor = catalog.by_id(self.grid.cell_for_point(lat, lon))
        return [descriptor] if descriptor is not None else []

    def neighbors_of(self, descriptor: PartitionDescriptor, catalog: PartitionCatalog) -> List[PartitionDescriptor]:
        """Ring-1 cells around a tile that have data."""
        return [
            catalog.by_id(cell)
            for cell in self.grid.neighbors(descriptor.id)
            if cell in catalog
        ]
