"""Client-side geocoding over partitioned Parquet address data."""
from geosdk.core.errors import (
    BackendUnavailable,
    CapabilityUnavailable,
    CatalogUnavailable,
    GeoSDKError,
    InvalidQuery,
    NotInitialized,
    UnscopedSearchWarning,
)
from geosdk.core.geocoder import GeoSDK
from geosdk.core.models import (
    AddressRecord,
    AdminHierarchy,
    BoundingBox,
    CountryInfo,
    DetailLevel,
    PartitionDescriptor,
    PostcodeEntry,
    RegionLabel,
    SDKStats,
)

__version__ = "0.1.0"

__all__ = [
    "GeoSDK",
    "AddressRecord",
    "AdminHierarchy",
    "BoundingBox",
    "CountryInfo",
    "DetailLevel",
    "PartitionDescriptor",
    "PostcodeEntry",
    "RegionLabel",
    "SDKStats",
    "GeoSDKError",
    "NotInitialized",
    "CatalogUnavailable",
    "BackendUnavailable",
    "CapabilityUnavailable",
    "InvalidQuery",
    "UnscopedSearchWarning",
]
