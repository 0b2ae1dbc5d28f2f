"""Pytest configuration and fixtures.

Builds a miniature copy of the hosted dataset on disk: H3 tiles with their
tile and postcode indices, the legacy per-region files with their index, and
the three boundary layers with WKB geometries.
"""
import os
from collections import OrderedDict

import duckdb
import h3
import pytest
from shapely import wkb
from shapely.geometry import box

from geosdk import GeoSDK
from geosdk.core.config import BOUNDARY_FILES, H3_TILE_RESOLUTION
from geosdk.core.duckdb_store import DuckDBStore

RIYADH_POINT = (24.7136, 46.6753)
JEDDAH_POINT = (21.5433, 39.1728)
DAMMAM_POINT = (26.4207, 50.0888)
MID_OCEAN_POINT = (0.0, -30.0)
# Inside the Saudi bounding box but outside the country polygon
SA_BBOX_ONLY_POINT = (31.0, 35.0)
EGYPT_POINT = (26.0, 30.0)

RIYADH = ("منطقة الرياض", "Riyadh Region")
MAKKAH = ("منطقة مكة المكرمة", "Makkah Region")
EASTERN = ("المنطقة الشرقية", "Eastern Region")

ADDRESS_SCHEMA = OrderedDict([
    ("addr_id", "BIGINT"),
    ("longitude", "DOUBLE"),
    ("latitude", "DOUBLE"),
    ("number", "VARCHAR"),
    ("street", "VARCHAR"),
    ("postcode", "VARCHAR"),
    ("district_ar", "VARCHAR"),
    ("district_en", "VARCHAR"),
    ("city", "VARCHAR"),
    ("gov_ar", "VARCHAR"),
    ("gov_en", "VARCHAR"),
    ("region_ar", "VARCHAR"),
    ("region_en", "VARCHAR"),
    ("full_address_ar", "VARCHAR"),
    ("full_address_en", "VARCHAR"),
    ("h3_index", "VARCHAR"),
])


def riyadh_neighbor_cell():
    """A ring-1 neighbour of the tile holding RIYADH_POINT."""
    cell = h3.latlng_to_cell(*RIYADH_POINT, H3_TILE_RESOLUTION)
    return sorted(c for c in h3.grid_disk(cell, 1) if c != cell)[0]


def _address(addr_id, lat, lon, number, street, postcode, district, city, region):
    street_ar, street_en = street
    district_ar, district_en = district
    city_ar, city_en = city
    return {
        "addr_id": addr_id,
        "longitude": lon,
        "latitude": lat,
        "number": number,
        "street": street_ar,
        "postcode": postcode,
        "district_ar": district_ar,
        "district_en": district_en,
        "city": city_ar,
        "gov_ar": city_ar,
        "gov_en": city_en,
        "region_ar": region[0],
        "region_en": region[1],
        "full_address_ar": f"{number} {street_ar}، {district_ar}، {city_ar} {postcode}",
        "full_address_en": f"{number} {street_en}, {district_en}, {city_en} {postcode}",
        "h3_index": h3.latlng_to_cell(lat, lon, H3_TILE_RESOLUTION),
    }


def sample_addresses():
    """Ten addresses in Riyadh, Jeddah and Dammam."""
    king_fahd = ("طريق الملك فهد", "King Fahd Road")
    urubah = ("شارع العروبة", "Al Urubah Street")
    tahlia = ("شارع التحلية", "Tahlia Street")
    palestine = ("شارع فلسطين", "Palestine Street")
    king_saud = ("شارع الملك سعود", "King Saud Street")
    olaya = ("حي العليا", "Al Olaya")
    hamra = ("حي الحمراء", "Al Hamra")
    faisaliyah = ("حي الفيصلية", "Al Faisaliyah")
    riyadh_city = ("الرياض", "Riyadh")
    jeddah_city = ("جدة", "Jeddah")
    dammam_city = ("الدمام", "Dammam")

    lat, lon = RIYADH_POINT
    n_lat, n_lon = h3.cell_to_latlng(riyadh_neighbor_cell())
    j_lat, j_lon = JEDDAH_POINT
    d_lat, d_lon = DAMMAM_POINT
    return [
        _address(1001, lat, lon, "1234", king_fahd, "12211", olaya, riyadh_city, RIYADH),
        _address(1002, lat + 0.001, lon + 0.001, "1240", king_fahd, "12211", olaya, riyadh_city, RIYADH),
        _address(1003, lat - 0.002, lon - 0.002, "15", urubah, "12212", olaya, riyadh_city, RIYADH),
        _address(1004, lat + 0.002, lon - 0.003, "1234", tahlia, "12212", olaya, riyadh_city, RIYADH),
        _address(1005, lat + 0.004, lon + 0.004, "7", king_fahd, "12211", olaya, riyadh_city, RIYADH),
        _address(1101, n_lat, n_lon, "9", king_fahd, "12211", olaya, riyadh_city, RIYADH),
        _address(2001, j_lat, j_lon, "1234", palestine, "23432", hamra, jeddah_city, MAKKAH),
        _address(2002, j_lat + 0.002, j_lon + 0.002, "88", palestine, "23432", hamra, jeddah_city, MAKKAH),
        _address(3001, d_lat, d_lon, "55", king_saud, "32241", faisaliyah, dammam_city, EASTERN),
        _address(3002, d_lat + 0.002, d_lon + 0.002, "1234", king_saud, "32241", faisaliyah, dammam_city, EASTERN),
    ]


def write_parquet(path, schema, rows):
    """Write rows (dicts) to a Parquet file through a DuckDB table."""
    os.makedirs(os.path.dirname(path), exist_ok=True)
    con = duckdb.connect()
    try:
        columns = ", ".join(f'"{name}" {sql_type}' for name, sql_type in schema.items())
        con.execute(f"CREATE TABLE t ({columns})")
        if rows:
            placeholders = ", ".join("?" for _ in schema)
            con.executemany(
                f"INSERT INTO t VALUES ({placeholders})",
                [[row.get(name) for name in schema] for row in rows]
            )
        target = str(path).replace("'", "''")
        con.execute(f"COPY t TO '{target}' (FORMAT PARQUET)")
    finally:
        con.close()


def _extent(rows):
    return {
        "min_lon": min(r["longitude"] for r in rows),
        "max_lon": max(r["longitude"] for r in rows),
        "min_lat": min(r["latitude"] for r in rows),
        "max_lat": max(r["latitude"] for r in rows),
    }


def _size_kb(path):
    return max(1, os.path.getsize(path) // 1024)


def write_boundaries(base_dir):
    countries = [
        {
            "iso_a3": "SAU", "iso_a2": "SA", "name_en": "Saudi Arabia",
            "name_ar": "المملكة العربية السعودية", "continent": "Asia",
            "geometry": wkb.dumps(box(36.0, 16.5, 55.5, 32.0)),
        },
        {
            "iso_a3": "EGY", "iso_a2": "EG", "name_en": "Egypt",
            "name_ar": "مصر", "continent": "Africa",
            "geometry": wkb.dumps(box(25.0, 22.0, 34.0, 31.5)),
        },
    ]
    write_parquet(
        os.path.join(base_dir, BOUNDARY_FILES["countries"]),
        OrderedDict([("iso_a3", "VARCHAR"), ("iso_a2", "VARCHAR"), ("name_en", "VARCHAR"),
                     ("name_ar", "VARCHAR"), ("continent", "VARCHAR"), ("geometry", "BLOB")]),
        countries
    )

    regions = [
        {"name_ar": RIYADH[0], "name_en": RIYADH[1], "geometry": wkb.dumps(box(43.0, 22.0, 48.0, 27.0))},
        {"name_ar": MAKKAH[0], "name_en": MAKKAH[1], "geometry": wkb.dumps(box(38.5, 20.0, 42.0, 23.0))},
        {"name_ar": EASTERN[0], "name_en": EASTERN[1], "geometry": wkb.dumps(box(48.5, 23.0, 55.0, 28.5))},
    ]
    write_parquet(
        os.path.join(base_dir, BOUNDARY_FILES["regions"]),
        OrderedDict([("name_ar", "VARCHAR"), ("name_en", "VARCHAR"), ("geometry", "BLOB")]),
        regions
    )

    districts = [
        {
            "name_ar": "حي العليا", "name_en": "Al Olaya",
            "region_ar": RIYADH[0], "region_en": RIYADH[1],
            "geometry": wkb.dumps(box(46.6, 24.65, 46.75, 24.78)),
        },
    ]
    write_parquet(
        os.path.join(base_dir, BOUNDARY_FILES["districts"]),
        OrderedDict([("name_ar", "VARCHAR"), ("name_en", "VARCHAR"), ("region_ar", "VARCHAR"),
                     ("region_en", "VARCHAR"), ("geometry", "BLOB")]),
        districts
    )


def build_tile_dataset(base_dir, addresses):
    """Tiles grouped by true H3 cell, plus tile and postcode indices."""
    tiles = OrderedDict()
    for row in addresses:
        tiles.setdefault(row["h3_index"], []).append(row)

    index_rows = []
    for cell, rows in tiles.items():
        path = os.path.join(base_dir, "tiles", f"{cell}.parquet")
        write_parquet(path, ADDRESS_SCHEMA, rows)
        index_rows.append({
            "h3_tile": cell,
            "addr_count": len(rows),
            **_extent(rows),
            "file_size_kb": _size_kb(path),
            "region_ar": rows[0]["region_ar"],
            "region_en": rows[0]["region_en"],
        })
    write_parquet(
        os.path.join(base_dir, "tile_index.parquet"),
        OrderedDict([("h3_tile", "VARCHAR"), ("addr_count", "BIGINT"), ("min_lon", "DOUBLE"),
                     ("max_lon", "DOUBLE"), ("min_lat", "DOUBLE"), ("max_lat", "DOUBLE"),
                     ("file_size_kb", "BIGINT"), ("region_ar", "VARCHAR"), ("region_en", "VARCHAR")]),
        index_rows
    )

    postcodes = OrderedDict()
    for row in addresses:
        entry = postcodes.setdefault(row["postcode"], {
            "postcode": row["postcode"],
            "tiles": [],
            "addr_count": 0,
            "region_ar": row["region_ar"],
            "region_en": row["region_en"],
        })
        if row["h3_index"] not in entry["tiles"]:
            entry["tiles"].append(row["h3_index"])
        entry["addr_count"] += 1
    # Stale index entries pointing at tiles that no longer exist
    postcodes["12211"]["tiles"].append("85ffffffffffffff")
    postcodes["99999"] = {
        "postcode": "99999", "tiles": ["85fffffffffffff7"], "addr_count": 3,
        "region_ar": None, "region_en": None,
    }
    write_parquet(
        os.path.join(base_dir, "postcode_index.parquet"),
        OrderedDict([("postcode", "VARCHAR"), ("tiles", "VARCHAR[]"), ("addr_count", "BIGINT"),
                     ("region_ar", "VARCHAR"), ("region_en", "VARCHAR")]),
        list(postcodes.values())
    )
    write_boundaries(base_dir)
    return list(tiles)


def build_region_dataset(base_dir, addresses):
    """Legacy layout: one file per region plus region_index.parquet."""
    file_names = {RIYADH[0]: "riyadh.parquet", MAKKAH[0]: "makkah.parquet", EASTERN[0]: "eastern.parquet"}
    regions = OrderedDict()
    for row in addresses:
        regions.setdefault(row["region_ar"], []).append(row)

    index_rows = []
    for region_ar, rows in regions.items():
        path = os.path.join(base_dir, "regions", file_names[region_ar])
        write_parquet(path, ADDRESS_SCHEMA, rows)
        index_rows.append({
            "region_ar": region_ar,
            "file_name": file_names[region_ar],
            "addr_count": len(rows),
            **_extent(rows),
            "file_size_kb": _size_kb(path),
        })
    write_parquet(
        os.path.join(base_dir, "region_index.parquet"),
        OrderedDict([("region_ar", "VARCHAR"), ("file_name", "VARCHAR"), ("addr_count", "BIGINT"),
                     ("min_lon", "DOUBLE"), ("max_lon", "DOUBLE"), ("min_lat", "DOUBLE"),
                     ("max_lat", "DOUBLE"), ("file_size_kb", "BIGINT")]),
        index_rows
    )
    write_boundaries(base_dir)


@pytest.fixture(scope="session")
def addresses():
    return sample_addresses()


@pytest.fixture(scope="session")
def tile_dataset(tmp_path_factory, addresses):
    """Directory holding the H3 tile layout; returns (path, tile ids)."""
    base_dir = str(tmp_path_factory.mktemp("tiles_dataset"))
    tile_ids = build_tile_dataset(base_dir, addresses)
    return base_dir, tile_ids


@pytest.fixture(scope="session")
def region_dataset(tmp_path_factory, addresses):
    base_dir = str(tmp_path_factory.mktemp("regions_dataset"))
    build_region_dataset(base_dir, addresses)
    return base_dir


@pytest.fixture
def sdk(tile_dataset):
    """Initialized SDK over the tile dataset, using fallback text search."""
    base_dir, _ = tile_dataset
    geo = GeoSDK(
        data_url=base_dir,
        layout="tiles",
        enable_ranked_search=False,
        init_timeout=30,
        fallback_url=None,
    )
    geo.initialize()
    yield geo
    geo.close()


@pytest.fixture
def region_sdk(region_dataset):
    geo = GeoSDK(
        data_url=region_dataset,
        layout="regions",
        enable_ranked_search=False,
        init_timeout=30,
        fallback_url=None,
    )
    geo.initialize()
    yield geo
    geo.close()


@pytest.fixture
def store():
    """In-memory DuckDB store."""
    db_store = DuckDBStore(":memory:")
    yield db_store
    db_store.close()
