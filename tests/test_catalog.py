"""Tests for the partition and postcode catalogs."""
import pytest

from geosdk.core.catalog import PartitionCatalog, PostcodeCatalog
from geosdk.core.models import BoundingBox, PartitionDescriptor, PostcodeEntry, RegionLabel

RIYADH = RegionLabel("منطقة الرياض", "Riyadh Region")
MAKKAH = RegionLabel("منطقة مكة المكرمة", "Makkah Region")


def _descriptor(pid, bbox=(0.0, 1.0, 0.0, 1.0), size=10, region=RIYADH, count=100):
    min_lon, max_lon, min_lat, max_lat = bbox
    return PartitionDescriptor(
        id=pid,
        address_count=count,
        bbox=BoundingBox(min_lon=min_lon, max_lon=max_lon, min_lat=min_lat, max_lat=max_lat),
        file_size_kb=size,
        primary_region=region,
    )


@pytest.fixture
def catalog():
    return PartitionCatalog([
        _descriptor("a", (46.0, 47.0, 24.0, 25.0), size=300, region=RIYADH),
        _descriptor("b", (47.0, 48.0, 24.0, 25.0), size=100, region=RIYADH),
        _descriptor("c", (39.0, 40.0, 21.0, 22.0), size=200, region=MAKKAH),
        _descriptor("d", (50.0, 51.0, 26.0, 27.0), size=50, region=None),
    ])


def test_lookup(catalog):
    assert len(catalog) == 4
    assert "a" in catalog
    assert "z" not in catalog
    assert catalog.by_id("c").primary_region == MAKKAH
    assert catalog.by_id("z") is None
    assert catalog.ids == ["a", "b", "c", "d"]


def test_bbox_overlap_is_exact(catalog):
    """Only rectangles that intersect the query box are returned."""
    found = catalog.by_bounding_box_overlap(BoundingBox(46.5, 46.9, 24.2, 24.8))
    assert [d.id for d in found] == ["a"]

    # Touching edges count as overlap
    found = catalog.by_bounding_box_overlap(BoundingBox(47.0, 47.0, 24.5, 24.5))
    assert [d.id for d in found] == ["a", "b"]

    assert catalog.by_bounding_box_overlap(BoundingBox(0.0, 1.0, 0.0, 1.0)) == []


def test_by_region_either_language(catalog):
    assert [d.id for d in catalog.by_region("منطقة الرياض")] == ["a", "b"]
    assert [d.id for d in catalog.by_region("Makkah Region")] == ["c"]
    assert catalog.by_region("Unknown") == []
    assert catalog.by_region("") == []


def test_regions_and_totals(catalog):
    assert catalog.regions() == [RIYADH, MAKKAH]
    assert catalog.total_addresses == 400
    assert catalog.total_size_kb == 650


def test_duplicate_ids_keep_first():
    catalog = PartitionCatalog([_descriptor("a", size=1), _descriptor("a", size=2)])
    assert len(catalog) == 1
    assert catalog.by_id("a").file_size_kb == 1


def test_sample_evenly_unfiltered_uses_stride():
    partitions = [_descriptor(str(i)) for i in range(100)]
    sampled = PartitionCatalog.sample_evenly(partitions, 50)
    assert len(sampled) == 50
    assert [d.id for d in sampled[:3]] == ["0", "2", "4"]

    partitions = [_descriptor(str(i)) for i in range(120)]
    sampled = PartitionCatalog.sample_evenly(partitions, 50)
    assert [d.id for d in sampled[:3]] == ["0", "3", "6"]
    assert len(sampled) == 40


def test_sample_evenly_filtered_keeps_smallest():
    partitions = [_descriptor(str(i), size=100 - i) for i in range(60)]
    sampled = PartitionCatalog.sample_evenly(partitions, 50, filtered=True)
    assert len(sampled) == 50
    assert max(d.file_size_kb for d in sampled) == 90
    assert sampled[0].file_size_kb == 41


def test_sample_evenly_short_list_unchanged():
    partitions = [_descriptor(str(i)) for i in range(5)]
    assert PartitionCatalog.sample_evenly(partitions, 50) == partitions
    assert PartitionCatalog.sample_evenly(partitions, 0) == []


def test_postcode_catalog_lookup():
    postcodes = PostcodeCatalog([
        PostcodeEntry("13847", ("a",), 10),
        PostcodeEntry("13844", ("a", "b"), 5),
        PostcodeEntry("24231", ("c",), 7),
    ])
    assert len(postcodes) == 3
    assert postcodes.get("13847").partition_ids == ("a",)
    assert postcodes.get("١٣٨٤٧").postcode == "13847"
    assert postcodes.get("۱۳۸۴۷").postcode == "13847"
    assert postcodes.get("99999") is None
    assert "13844" in postcodes


def test_postcode_prefix_search_sorted():
    postcodes = PostcodeCatalog([
        PostcodeEntry("13847", ("a",), 10),
        PostcodeEntry("13844", ("a",), 5),
        PostcodeEntry("24231", ("c",), 7),
    ])
    assert [e.postcode for e in postcodes.prefix_search("138")] == ["13844", "13847"]
    assert [e.postcode for e in postcodes.prefix_search()] == ["13844", "13847", "24231"]
    assert [e.postcode for e in postcodes.prefix_search("1", limit=1)] == ["13844"]
    assert postcodes.prefix_search("9") == []


def test_postcode_rows_trimmed_to_known_partitions(catalog):
    """Unknown partition ids are removed and entries left empty are dropped."""
    rows = [
        {"postcode": "13847", "tiles": ["a", "zz", "a"], "addr_count": 10, "region_ar": "منطقة الرياض"},
        {"postcode": "11111", "tiles": ["zz"], "addr_count": 3},
        {"postcode": "٢٤٢٣١", "tiles": ["c"], "addr_count": 7},
        {"postcode": None, "tiles": ["a"], "addr_count": 1},
    ]
    postcodes = PostcodeCatalog.from_rows(rows, catalog)
    assert len(postcodes) == 2
    assert postcodes.get("13847").partition_ids == ("a",)
    assert postcodes.get("13847").region == RegionLabel("منطقة الرياض", None)
    assert postcodes.get("11111") is None
    assert postcodes.get("24231").partition_ids == ("c",)
