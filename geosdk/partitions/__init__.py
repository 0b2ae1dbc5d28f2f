"""Partition layouts of the address corpus."""
from geosdk.partitions.base import PartitionLayout
from geosdk.partitions.regions import RegionLayout
from geosdk.partitions.tiles import TileLayout

LAYOUTS = {
    TileLayout.name: TileLayout,
    RegionLayout.name: RegionLayout,
}


def get_layout(name: str) -> PartitionLayout:
    """Instantiate a layout by name ("tiles" or "regions")."""
    try:
        return LAYOUTS[name]()
    except KeyError:
        raise ValueError(f"Unknown partition layout {name!r}; expected one of {', '.join(LAYOUTS)}") from None


__all__ = ["PartitionLayout", "TileLayout", "RegionLayout", "LAYOUTS", "get_layout"]
