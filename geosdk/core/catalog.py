"""In-memory catalogs of address partitions and postcodes.

Both catalogs are loaded once during SDK initialization and never mutated.
"""
import math
from collections import OrderedDict
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence

from geosdk.core.models import BoundingBox, PartitionDescriptor, PostcodeEntry, RegionLabel
from geosdk.core.normalization import normalize_code
from geosdk.utils.logging import log_structured


def _clean(value: Any) -> Optional[str]:
    """None for missing/NaN values, else the stripped string."""
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    text = str(value).strip()
    return text or None


def to_int(value: Any) -> int:
    """Integer from an index cell; missing values count as zero."""
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return 0
    return int(value)


def region_from_row(row: Dict[str, Any], ar_key: str = "region_ar", en_key: str = "region_en") -> Optional[RegionLabel]:
    ar, en = _clean(row.get(ar_key)), _clean(row.get(en_key))
    if ar is None and en is None:
        return None
    return RegionLabel(ar=ar, en=en)


class PartitionCatalog:
    """Descriptors of every address partition, keyed by partition id."""

    def __init__(self, descriptors: Iterable[PartitionDescriptor]):
        self._by_id: "OrderedDict[str, PartitionDescriptor]" = OrderedDict()
        for descriptor in descriptors:
            if descriptor.id in self._by_id:
                log_structured("warning", "Duplicate partition id in index", partition_id=descriptor.id)
                continue
            self._by_id[descriptor.id] = descriptor

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, partition_id: str) -> bool:
        return partition_id in self._by_id

    def __iter__(self) -> Iterator[PartitionDescriptor]:
        return iter(self._by_id.values())

    @property
    def ids(self) -> List[str]:
        return list(self._by_id)

    def by_id(self, partition_id: str) -> Optional[PartitionDescriptor]:
        return self._by_id.get(partition_id)

    def all(self) -> List[PartitionDescriptor]:
        return list(self._by_id.values())

    def by_bounding_box_overlap(self, bbox: BoundingBox) -> List[PartitionDescriptor]:
        """Partitions whose bounding box intersects ``bbox``; edges touching count."""
        return [d for d in self._by_id.values() if d.bbox.intersects(bbox)]

    def by_region(self, name: str) -> List[PartitionDescriptor]:
        """Partitions whose primary region matches ``name`` in either language."""
        if not name:
            return []
        name = name.strip()
        return [
            d for d in self._by_id.values()
            if d.primary_region is not None and d.primary_region.matches(name)
        ]

    def regions(self) -> List[RegionLabel]:
        """Distinct primary regions, in index order."""
        seen = OrderedDict()
        for descriptor in self._by_id.values():
            if descriptor.primary_region is not None:
                seen.setdefault(descriptor.primary_region, None)
        return list(seen)

    @property
    def total_addresses(self) -> int:
        return sum(d.address_count for d in self._by_id.values())

    @property
    def total_size_kb(self) -> int:
        return sum(d.file_size_kb for d in self._by_id.values())

    @staticmethod
    def sample_evenly(
        partitions: Sequence[PartitionDescriptor],
        max_count: int,
        filtered: bool = False
    ) -> List[PartitionDescriptor]:
        """
        Cap a partition list at ``max_count`` entries.

        Unfiltered lists are sampled with a fixed stride (every
        ceil(n / max_count)-th partition) so coverage spreads across the
        index. Filtered lists keep the smallest files, which bounds the
        bytes fetched for an already-narrowed search.

        Args:
            partitions: Candidate partitions, in catalog order
            max_count: Maximum number to keep
            filtered: Whether a region/bbox filter produced the list

        Returns:
            At most ``max_count`` partitions
        """
        partitions = list(partitions)
        if max_count <= 0:
            return []
        if len(partitions) <= max_count:
            return partitions
        if filtered:
            return sorted(partitions, key=lambda d: d.file_size_kb)[:max_count]
        step = math.ceil(len(partitions) / max_count)
        return partitions[::step][:max_count]


class PostcodeCatalog:
    """Postcode to partition mapping."""

    def __init__(self, entries: Iterable[PostcodeEntry]):
        self._entries: Dict[str, PostcodeEntry] = {}
        for entry in entries:
            self._entries[normalize_code(entry.postcode)] = entry

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, postcode: str) -> bool:
        return normalize_code(postcode) in self._entries

    def get(self, postcode: str) -> Optional[PostcodeEntry]:
        """Look up a postcode; Arabic-Indic digits are accepted."""
        return self._entries.get(normalize_code(postcode))

    def prefix_search(self, prefix: Optional[str] = None, limit: Optional[int] = None) -> List[PostcodeEntry]:
        """
        Postcodes starting with ``prefix`` (all when empty), sorted by postcode.

        Args:
            prefix: Leading digits
            limit: Maximum entries to return
        """
        prefix = normalize_code(prefix)
        matches = sorted(
            (e for key, e in self._entries.items() if key.startswith(prefix)),
            key=lambda e: e.postcode
        )
        if limit is not None:
            matches = matches[:limit]
        return matches

    @classmethod
    def from_rows(cls, rows: Iterable[Dict[str, Any]], partitions: PartitionCatalog) -> "PostcodeCatalog":
        """
        Build from postcode index rows, keeping only partitions the catalog knows.

        Entries left with no known partition are dropped.
        """
        entries, dropped, trimmed = [], 0, 0
        for row in rows:
            postcode = normalize_code(_clean(row.get("postcode")))
            if not postcode:
                continue
            raw_ids = row.get("tiles")
            if raw_ids is None:
                raw_ids = []
            ids = list(OrderedDict.fromkeys(str(t) for t in raw_ids))
            known = tuple(t for t in ids if t in partitions)
            if len(known) != len(ids):
                trimmed += 1
            if not known:
                dropped += 1
                continue
            entries.append(PostcodeEntry(
                postcode=postcode,
                partition_ids=known,
                address_count=to_int(row.get("addr_count")),
                region=region_from_row(row),
            ))
        if trimmed or dropped:
            log_structured(
                "warning",
                "Postcode index references unknown partitions",
                entries_trimmed=trimmed,
                entries_dropped=dropped
            )
        return cls(entries)
