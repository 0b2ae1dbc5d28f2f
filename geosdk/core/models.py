"""Data models for partitions, postcodes and geocoding results."""
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Dict, Any, Sequence, Tuple

from geosdk.core.errors import InvalidQuery

# Kilometres per degree, equirectangular approximation
KM_PER_DEGREE_LON_AT_EQUATOR = 111.32
KM_PER_DEGREE_LAT = 110.574


class DetailLevel(str, Enum):
    """Column-projection tier for address results."""
    MINIMAL = "minimal"
    POSTCODE = "postcode"
    REGION = "region"
    FULL = "full"

    @classmethod
    def parse(cls, value: Any) -> "DetailLevel":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise InvalidQuery(
                f"Unknown detail level {value!r}; expected one of "
                f"{', '.join(level.value for level in cls)}"
            ) from None


class Language(str, Enum):
    AR = "ar"
    EN = "en"

    @classmethod
    def parse(cls, value: Any) -> "Language":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise InvalidQuery(f"Unknown language {value!r}; expected 'ar' or 'en'") from None


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned lon/lat rectangle."""
    min_lon: float
    max_lon: float
    min_lat: float
    max_lat: float

    def intersects(self, other: "BoundingBox") -> bool:
        """Rectangle overlap test; touching edges count as overlap."""
        return (
            self.min_lon <= other.max_lon
            and self.max_lon >= other.min_lon
            and self.min_lat <= other.max_lat
            and self.max_lat >= other.min_lat
        )

    @classmethod
    def from_query(cls, bbox: Sequence[float]) -> "BoundingBox":
        """
        Build from the caller-facing ``[minLat, minLon, maxLat, maxLon]`` order.

        Raises InvalidQuery if the sequence is malformed or inverted.
        """
        if isinstance(bbox, BoundingBox):
            return bbox
        try:
            min_lat, min_lon, max_lat, max_lon = (float(v) for v in bbox)
        except (TypeError, ValueError):
            raise InvalidQuery(
                f"bbox must be [minLat, minLon, maxLat, maxLon], got {bbox!r}"
            ) from None
        if min_lat > max_lat or min_lon > max_lon:
            raise InvalidQuery(f"bbox minimums exceed maximums: {bbox!r}")
        return cls(min_lon=min_lon, max_lon=max_lon, min_lat=min_lat, max_lat=max_lat)

    @classmethod
    def around_point(cls, lat: float, lon: float, radius_meters: float) -> "BoundingBox":
        """
        Square box of half-width ``radius_meters`` around a point.

        Uses a local equirectangular approximation, which is accurate enough
        for the sub-tile radii used by reverse geocoding.
        """
        radius_km = radius_meters / 1000.0
        lon_delta = radius_km / (KM_PER_DEGREE_LON_AT_EQUATOR * math.cos(math.radians(lat)))
        lat_delta = radius_km / KM_PER_DEGREE_LAT
        return cls(
            min_lon=lon - lon_delta,
            max_lon=lon + lon_delta,
            min_lat=lat - lat_delta,
            max_lat=lat + lat_delta,
        )


@dataclass(frozen=True)
class RegionLabel:
    """Bilingual administrative name."""
    ar: Optional[str] = None
    en: Optional[str] = None

    def label(self, language: str = "ar") -> Optional[str]:
        if language == "en":
            return self.en or self.ar
        return self.ar or self.en

    def matches(self, name: str) -> bool:
        return name is not None and (name == self.ar or name == self.en)

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {"name_ar": self.ar, "name_en": self.en}


@dataclass(frozen=True)
class PartitionDescriptor:
    """Metadata for one remotely hosted address partition."""
    id: str
    address_count: int
    bbox: BoundingBox
    file_size_kb: int
    primary_region: Optional[RegionLabel] = None
    file_name: Optional[str] = None  # region layout only

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "address_count": self.address_count,
            "min_lon": self.bbox.min_lon,
            "max_lon": self.bbox.max_lon,
            "min_lat": self.bbox.min_lat,
            "max_lat": self.bbox.max_lat,
            "file_size_kb": self.file_size_kb,
            "region_ar": self.primary_region.ar if self.primary_region else None,
            "region_en": self.primary_region.en if self.primary_region else None,
        }


@dataclass(frozen=True)
class PostcodeEntry:
    """Postcode and the partitions holding its addresses."""
    postcode: str
    partition_ids: Tuple[str, ...]
    address_count: int
    region: Optional[RegionLabel] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "postcode": self.postcode,
            "partition_ids": list(self.partition_ids),
            "address_count": self.address_count,
            "region_ar": self.region.ar if self.region else None,
            "region_en": self.region.en if self.region else None,
        }


# Every column an address partition carries, in schema order
ADDRESS_COLUMNS: Tuple[str, ...] = (
    "addr_id",
    "longitude",
    "latitude",
    "number",
    "street",
    "postcode",
    "district_ar",
    "district_en",
    "city",
    "gov_ar",
    "gov_en",
    "region_ar",
    "region_en",
    "full_address_ar",
    "full_address_en",
    "h3_index",
)

# Columns computed per query rather than read from partitions
COMPUTED_COLUMNS: Tuple[str, ...] = ("distance_m", "similarity")


@dataclass(frozen=True)
class AddressRecord:
    """One address row as returned by a geocoding operation."""
    addr_id: int
    longitude: float
    latitude: float
    number: Optional[str] = None
    street: Optional[str] = None
    postcode: Optional[str] = None
    district_ar: Optional[str] = None
    district_en: Optional[str] = None
    city: Optional[str] = None
    gov_ar: Optional[str] = None
    gov_en: Optional[str] = None
    region_ar: Optional[str] = None
    region_en: Optional[str] = None
    full_address_ar: Optional[str] = None
    full_address_en: Optional[str] = None
    h3_index: Optional[str] = None
    distance_m: Optional[float] = None
    similarity: Optional[float] = None
    fields: Tuple[str, ...] = field(default=(), repr=False, compare=False)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "AddressRecord":
        """Build from a backend row; only known columns are kept, in schema order."""
        known = [name for name in ADDRESS_COLUMNS + COMPUTED_COLUMNS if name in row]
        values = {name: row[name] for name in known}
        values["addr_id"] = int(values["addr_id"])
        return cls(fields=tuple(known), **values)

    def full_address(self, language: str = "ar") -> Optional[str]:
        if language == "en":
            return self.full_address_en or self.full_address_ar
        return self.full_address_ar or self.full_address_en

    def to_dict(self) -> Dict[str, Any]:
        """Return exactly the projected fields."""
        return {name: getattr(self, name) for name in self.fields}


@dataclass(frozen=True)
class CountryInfo:
    """Country containing a point."""
    iso_a3: str
    iso_a2: str
    name_en: str
    name_ar: str
    continent: str

    def name(self, language: str = "ar") -> str:
        return self.name_en if language == "en" else self.name_ar

    def to_dict(self) -> Dict[str, str]:
        return {
            "iso_a3": self.iso_a3,
            "iso_a2": self.iso_a2,
            "name_en": self.name_en,
            "name_ar": self.name_ar,
            "continent": self.continent,
        }


@dataclass(frozen=True)
class AdminHierarchy:
    """District and region containing a point; either may be missing."""
    district: Optional[RegionLabel] = None
    region: Optional[RegionLabel] = None

    @property
    def is_empty(self) -> bool:
        return self.district is None and self.region is None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if self.district is not None:
            result["district"] = self.district.to_dict()
        if self.region is not None:
            result["region"] = self.region.to_dict()
        return result


@dataclass
class QueryOptions:
    """Validated per-request options shared by all operations."""
    limit: int = 10
    radius_meters: float = 1000.0
    detail_level: DetailLevel = DetailLevel.FULL
    bbox: Optional[BoundingBox] = None
    region: Optional[str] = None
    language: Language = Language.AR
    include_neighbors: bool = False
    number: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.limit, bool) or not isinstance(self.limit, int) or self.limit <= 0:
            raise InvalidQuery(f"limit must be a positive integer, got {self.limit!r}")
        try:
            radius = float(self.radius_meters)
        except (TypeError, ValueError):
            raise InvalidQuery(f"radius_meters must be a number, got {self.radius_meters!r}") from None
        if not math.isfinite(radius) or radius <= 0:
            raise InvalidQuery(f"radius_meters must be > 0, got {self.radius_meters!r}")
        self.radius_meters = radius
        self.detail_level = DetailLevel.parse(self.detail_level)
        self.language = Language.parse(self.language)
        if self.bbox is not None:
            self.bbox = BoundingBox.from_query(self.bbox)
        if self.region is not None and not str(self.region).strip():
            self.region = None


@dataclass
class SDKStats:
    """Catalog and instrumentation summary."""
    partitions_loaded: int
    total_partitions: int
    total_addresses: int
    total_size_kb: int
    total_postcodes: int
    search_mode: str
    data_url: str
    layout: str
    loaded_partition_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "partitions_loaded": self.partitions_loaded,
            "total_partitions": self.total_partitions,
            "total_addresses": self.total_addresses,
            "total_size_kb": self.total_size_kb,
            "total_postcodes": self.total_postcodes,
            "search_mode": self.search_mode,
            "data_url": self.data_url,
            "layout": self.layout,
        }
