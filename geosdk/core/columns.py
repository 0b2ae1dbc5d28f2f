"""Column projection per detail level."""
from typing import Dict, Tuple, Union

from geosdk.core.models import ADDRESS_COLUMNS, DetailLevel

_BASE_COLUMNS = ("addr_id", "longitude", "latitude")

_COLUMNS_BY_LEVEL: Dict[DetailLevel, Tuple[str, ...]] = {
    DetailLevel.MINIMAL: _BASE_COLUMNS,
    DetailLevel.POSTCODE: _BASE_COLUMNS + ("postcode", "region_ar", "region_en"),
    DetailLevel.REGION: _BASE_COLUMNS + (
        "postcode",
        "district_ar",
        "district_en",
        "city",
        "region_ar",
        "region_en",
    ),
    DetailLevel.FULL: ADDRESS_COLUMNS,
}

# Columns every text search result carries regardless of detail level
SEARCH_COLUMNS: Tuple[str, ...] = tuple(c for c in ADDRESS_COLUMNS if c != "h3_index")


def columns_for(level: Union[DetailLevel, str]) -> Tuple[str, ...]:
    """
    Map a detail level to the columns read from address partitions.

    Sets grow strictly from minimal to full, so callers can trade payload
    size for information (minimal reads 3 of 16 columns).

    Raises InvalidQuery for unknown levels.
    """
    return _COLUMNS_BY_LEVEL[DetailLevel.parse(level)]
