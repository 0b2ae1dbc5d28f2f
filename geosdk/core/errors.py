"""Exception hierarchy for the geocoding SDK."""
from typing import Optional, Sequence


class GeoSDKError(Exception):
    """Base exception for all geosdk errors."""


class NotInitialized(GeoSDKError):
    """An operation was called before initialize() or after close()."""

    def __init__(self):
        super().__init__("GeoSDK not initialized. Call initialize() first.")


class CatalogUnavailable(GeoSDKError):
    """An index or boundary file could not be fetched or parsed during initialization."""

    def __init__(self, source: str, stage: str, cause: Optional[BaseException] = None):
        self.source = source
        self.stage = stage
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Failed to load {stage} from {source}{detail}")


class BackendUnavailable(GeoSDKError):
    """No partition source of a request returned data."""

    def __init__(self, sources: Sequence[str], cause: Optional[BaseException] = None):
        self.sources = list(sources)
        self.cause = cause
        super().__init__(
            f"Query backend failed for all {len(self.sources)} partition source(s)"
            + (f": {cause}" if cause else "")
        )


class CapabilityUnavailable(GeoSDKError):
    """An optional backend extension is missing or erroring.

    Recovered internally by switching strategies; never reaches SDK callers.
    """

    def __init__(self, capability: str, cause: Optional[BaseException] = None):
        self.capability = capability
        self.cause = cause
        super().__init__(f"Capability '{capability}' unavailable" + (f": {cause}" if cause else ""))


class InvalidQuery(GeoSDKError, ValueError):
    """Query options failed validation."""


class UnscopedSearchWarning(UserWarning):
    """A search ran without a region or bbox filter and covers only a sample of partitions."""
