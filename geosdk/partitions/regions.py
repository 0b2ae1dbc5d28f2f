"""Legacy layout: one Parquet file per administrative region."""
from typing import Any, Dict, Iterable, List

from geosdk.core.catalog import PartitionCatalog, to_int
from geosdk.core.config import REGION_INDEX_FILE
from geosdk.core.models import BoundingBox, PartitionDescriptor, RegionLabel
from geosdk.partitions.base import PartitionLayout


class RegionLayout(PartitionLayout):
    """Partitions addressed as ``{base}/regions/{file_name}``, keyed by Arabic region name.

    There is no postcode index for this layout, and a point is mapped to its
    partition through the region boundary that contains it.
    """

    name = "regions"
    index_file = REGION_INDEX_FILE

    def parse_index(self, rows: Iterable[Dict[str, Any]]) -> List[PartitionDescriptor]:
        descriptors = []
        for row in rows:
            region_ar = str(row["region_ar"]).strip()
            region_en = row.get("region_en")
            descriptors.append(PartitionDescriptor(
                id=region_ar,
                address_count=to_int(row.get("addr_count")),
                bbox=BoundingBox(
                    min_lon=float(row["min_lon"]),
                    max_lon=float(row["max_lon"]),
                    min_lat=float(row["min_lat"]),
                    max_lat=float(row["max_lat"]),
                ),
                file_size_kb=to_int(row.get("file_size_kb")),
                primary_region=RegionLabel(ar=region_ar, en=region_en if isinstance(region_en, str) else None),
                file_name=str(row["file_name"]),
            ))
        return descriptors

    def source_for(self, base_url: str, descriptor: PartitionDescriptor) -> str:
        return f"{base_url}/regions/{descriptor.file_name}"

    def partitions_for_point(self, lat: float, lon: float, catalog: PartitionCatalog, gate) -> List[PartitionDescriptor]:
        region = gate.region_containing(lat, lon) if gate is not None else None
        if region is None:
            return []
        descriptor = catalog.by_id(region.ar)
        if descriptor is not None:
            return [descriptor]
        # Index and boundary labels may differ in decoration; fall back to name matching
        return catalog.by_region(region.en) if region.en else []
