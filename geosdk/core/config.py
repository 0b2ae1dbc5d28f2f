"""Configuration management for the geocoding SDK."""
import os
from typing import Dict, Optional, Tuple
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Public dataset hosted on source.coop; also the fallback when a custom URL fails
DEFAULT_DATA_URL = "https://data.source.coop/tabaqat/geocoding-cng/v0.1.0"

DATA_URL: str = os.getenv("GEOSDK_DATA_URL", DEFAULT_DATA_URL).rstrip("/")
LANGUAGE: str = os.getenv("GEOSDK_LANGUAGE", "ar")
PARTITION_LAYOUT: str = os.getenv("GEOSDK_LAYOUT", "tiles")
DUCKDB_PATH: str = os.getenv("GEOSDK_DUCKDB_PATH", ":memory:")

# Text search settings
ENABLE_RANKED_SEARCH: bool = os.getenv("GEOSDK_ENABLE_FTS", "true").lower() == "true"
REGION_HINT_THRESHOLD: float = float(os.getenv("GEOSDK_REGION_HINT_THRESHOLD", "0.9"))

# Partition fan-out limits
MAX_FORWARD_PARTITIONS: int = int(os.getenv("GEOSDK_MAX_PARTITIONS", "50"))
MAX_UNSCOPED_NUMBER_PARTITIONS: int = int(os.getenv("GEOSDK_MAX_UNSCOPED_PARTITIONS", "20"))

# Deadline for the whole initialization sequence, in seconds (0 disables it)
INIT_TIMEOUT: float = float(os.getenv("GEOSDK_INIT_TIMEOUT", "60"))

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
SENTRY_DSN: Optional[str] = os.getenv("SENTRY_DSN")

# H3 resolution the tiles were partitioned at (~250 km² cells)
H3_TILE_RESOLUTION = 5

# Country served by the address corpus
COUNTRY_ISO = "SA"

# Cheap (min_lon, min_lat, max_lon, max_lat) pre-gates checked before polygon containment
COUNTRY_BBOXES: Dict[str, Tuple[float, float, float, float]] = {
    "SA": (34.5, 16.3, 55.7, 32.2),
}

# Default result caps per operation
DEFAULT_LIMITS = {
    "geocode": 10,
    "reverse": 10,
    "postcode": 50,
    "number": 20,
    "suggest": 10,
}
DEFAULT_RADIUS_METERS = 1000.0

# Remote file names, relative to the data URL
TILE_INDEX_FILE = "tile_index.parquet"
REGION_INDEX_FILE = "region_index.parquet"
POSTCODE_INDEX_FILE = "postcode_index.parquet"
BOUNDARY_FILES = {
    "countries": "world_countries_simple.parquet",
    "regions": "sa_regions_simple.parquet",
    "districts": "sa_districts_simple.parquet",
}
