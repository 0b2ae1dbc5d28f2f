"""Base class for partition layouts."""
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List

from geosdk.core.catalog import PartitionCatalog
from geosdk.core.models import PartitionDescriptor


class PartitionLayout(ABC):
    """How address partitions are named, indexed and located on the data host."""

    #: Layout name used in configuration and stats
    name: str = ""
    #: Partition index file, relative to the data URL
    index_file: str = ""
    #: Whether the layout ships a postcode index
    has_postcode_index: bool = False
    #: Whether neighbour expansion applies to reverse geocoding
    supports_neighbors: bool = False

    def index_url(self, base_url: str) -> str:
        return f"{base_url}/{self.index_file}"

    @abstractmethod
    def parse_index(self, rows: Iterable[Dict[str, Any]]) -> List[PartitionDescriptor]:
        """
        Turn partition index rows into descriptors.

        Args:
            rows: Index rows keyed by column name

        Returns:
            Descriptors in index order
        """
        pass

    @abstractmethod
    def source_for(self, base_url: str, descriptor: PartitionDescriptor) -> str:
        """Location of a partition's Parquet file."""
        pass

    @abstractmethod
    def partitions_for_point(self, lat: float, lon: float, catalog: PartitionCatalog, gate) -> List[PartitionDescriptor]:
        """
        Partitions that may hold the addresses nearest to a point.

        Args:
            lat: Latitude
            lon: Longitude
            catalog: Loaded partition catalog
            gate: BoundaryGate for layouts keyed by administrative area

        Returns:
            Matching descriptors; empty when the point falls in no partition
        """
        pass

    def neighbors_of(self, descriptor: PartitionDescriptor, catalog: PartitionCatalog) -> List[PartitionDescriptor]:
        """Adjacent partitions present in the catalog; none by default."""
        return []
