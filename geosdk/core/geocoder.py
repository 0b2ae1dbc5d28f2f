"""Geocoding SDK: partition-aware forward, reverse, postcode and number search."""
import math
import threading
import warnings
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import duckdb

from geosdk.core import config
from geosdk.core.catalog import PartitionCatalog, PostcodeCatalog
from geosdk.core.columns import columns_for
from geosdk.core.duckdb_store import Deadline, DuckDBStore, is_remote
from geosdk.core.errors import CatalogUnavailable, InvalidQuery, NotInitialized, UnscopedSearchWarning
from geosdk.core.fuzzy import detect_region_hint
from geosdk.core.models import (
    ADDRESS_COLUMNS,
    AddressRecord,
    AdminHierarchy,
    BoundingBox,
    CountryInfo,
    Language,
    PartitionDescriptor,
    PostcodeEntry,
    QueryOptions,
    SDKStats,
)
from geosdk.core.normalization import clean_query, normalize_code
from geosdk.core.proximity import HAVERSINE_SQL, haversine_params
from geosdk.core.query import (
    AddressRequest,
    Between,
    ComputedColumn,
    Contains,
    Eq,
    IsNotNull,
    OrderKey,
    all_of,
)
from geosdk.core.spatial import BoundaryGate, boundary_layer_from_frame
from geosdk.core.text_search import TextSearch, address_field
from geosdk.partitions import PartitionLayout, get_layout
from geosdk.utils.logging import log_structured
from geosdk.utils.timing import ProgressCallback, Timer

# Failures while fetching or parsing an index or boundary file
_LOAD_ERRORS = (duckdb.Error, KeyError, ValueError, TypeError)

REVERSE_ORDER = (OrderKey("distance_m"), OrderKey("addr_id"))
POSTCODE_ORDER = (OrderKey("number"), OrderKey("addr_id"))
NUMBER_ORDER = (OrderKey("postcode"), OrderKey("street"), OrderKey("addr_id"))

MIN_SUGGEST_LENGTH = 2


@dataclass(frozen=True)
class OrchestratorContext:
    """Everything loaded by initialize(); read-only for the lifetime of the SDK."""
    data_url: str
    layout: PartitionLayout
    catalog: PartitionCatalog
    postcodes: PostcodeCatalog
    gate: BoundaryGate
    search: TextSearch

    def source_for(self, descriptor: PartitionDescriptor) -> str:
        return self.layout.source_for(self.data_url, descriptor)


def _validate_point(lat: float, lon: float) -> Tuple[float, float]:
    try:
        lat, lon = float(lat), float(lon)
    except (TypeError, ValueError):
        raise InvalidQuery(f"Coordinates must be numbers, got ({lat!r}, {lon!r})") from None
    if not (math.isfinite(lat) and math.isfinite(lon)) or not (-90 <= lat <= 90 and -180 <= lon <= 180):
        raise InvalidQuery(f"Coordinates out of range: ({lat}, {lon})")
    return lat, lon


class GeoSDK:
    """Geocoder over a remotely hosted, partitioned national address corpus.

    Catalogs and boundary layers are loaded by ``initialize()``; each query
    then fetches only the partitions it needs.

    Example:
        with GeoSDK() as sdk:
            sdk.reverse_geocode(24.7136, 46.6753, limit=5)
            sdk.geocode("طريق الملك فهد الرياض")
    """

    def __init__(
        self,
        data_url: Optional[str] = None,
        language: Optional[str] = None,
        layout: Optional[str] = None,
        enable_ranked_search: Optional[bool] = None,
        max_partitions: Optional[int] = None,
        max_unscoped_partitions: Optional[int] = None,
        init_timeout: Optional[float] = None,
        region_hint_threshold: Optional[float] = None,
        db_path: Optional[str] = None,
        fallback_url: Optional[str] = config.DEFAULT_DATA_URL,
        on_progress: Optional[ProgressCallback] = None
    ):
        """
        Initialize SDK settings. Nothing is fetched until initialize().

        Args:
            data_url: Base location of the dataset (defaults to GEOSDK_DATA_URL)
            language: Preferred label language, "ar" or "en"
            layout: Partition layout, "tiles" (H3) or "regions" (legacy)
            enable_ranked_search: Try BM25 search through the fts extension
            max_partitions: Cap on partitions per forward search
            max_unscoped_partitions: Cap on partitions for unscoped number search
            init_timeout: Deadline in seconds for initialize() (0 disables it)
            region_hint_threshold: Minimum fuzzy score (0-1) for region hints
            db_path: DuckDB database path
            fallback_url: Base location retried once if data_url cannot serve the index
            on_progress: Callback receiving (step, status, elapsed_ms, details)
        """
        self.data_url = (data_url or config.DATA_URL).rstrip("/")
        self.language = Language.parse(language or config.LANGUAGE).value
        self.layout_name = layout or config.PARTITION_LAYOUT
        self.enable_ranked_search = (
            config.ENABLE_RANKED_SEARCH if enable_ranked_search is None else enable_ranked_search
        )
        self.max_partitions = max_partitions or config.MAX_FORWARD_PARTITIONS
        self.max_unscoped_partitions = max_unscoped_partitions or config.MAX_UNSCOPED_NUMBER_PARTITIONS
        self.init_timeout = config.INIT_TIMEOUT if init_timeout is None else init_timeout
        self.region_hint_threshold = (
            config.REGION_HINT_THRESHOLD if region_hint_threshold is None else region_hint_threshold
        )
        self.db_path = db_path or config.DUCKDB_PATH
        self.fallback_url = fallback_url.rstrip("/") if fallback_url else None
        self.on_progress = on_progress

        get_layout(self.layout_name)

        self.store: Optional[DuckDBStore] = None
        self._context: Optional[OrchestratorContext] = None
        self._loaded: set = set()
        self._loaded_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def __enter__(self) -> "GeoSDK":
        if not self.is_initialized:
            self.initialize()
        return self

    def __exit__(self, *args):
        self.close()

    @property
    def is_initialized(self) -> bool:
        return self._context is not None

    def initialize(self, on_progress: Optional[ProgressCallback] = None) -> "GeoSDK":
        """
        Load the partition index, postcode index and boundary layers, and
        pick the text search strategy.

        Args:
            on_progress: Callback receiving (step, status, elapsed_ms, details);
                overrides the one given to the constructor

        Returns:
            self

        Raises:
            CatalogUnavailable: A required file could not be fetched or parsed,
                or the initialization deadline expired
        """
        if self.is_initialized:
            return self

        progress = on_progress or self.on_progress
        store = DuckDBStore(self.db_path)
        try:
            context = self._load(store, progress)
        except BaseException:
            store.close()
            raise

        self.store = store
        self._context = context
        log_structured(
            "info",
            "GeoSDK initialized",
            data_url=context.data_url,
            layout=context.layout.name,
            partitions=len(context.catalog),
            postcodes=len(context.postcodes),
            search_mode=context.search.mode
        )
        return self

    def _load(self, store: DuckDBStore, progress: Optional[ProgressCallback]) -> OrchestratorContext:
        layout = get_layout(self.layout_name)
        data_url = self.data_url

        with store.deadline(self.init_timeout) as deadline:
            with Timer("partitions", progress) as timer:
                catalog, data_url = self._load_partitions(store, deadline, layout, data_url)
                timer.details = {"partitions": len(catalog), "data_url": data_url}

            postcodes = PostcodeCatalog([])
            if layout.has_postcode_index:
                source = f"{data_url}/{config.POSTCODE_INDEX_FILE}"
                with Timer("postcodes", progress) as timer:
                    frame = self._read_step(store, deadline, source, "postcodes")
                    postcodes = PostcodeCatalog.from_rows(frame.to_dict("records"), catalog)
                    timer.details = {"postcodes": len(postcodes)}

            layers = {}
            with Timer("boundaries", progress) as timer:
                for name, file_name in config.BOUNDARY_FILES.items():
                    source = f"{data_url}/{file_name}"
                    frame = self._read_step(store, deadline, source, name)
                    try:
                        layers[name] = boundary_layer_from_frame(frame)
                    except _LOAD_ERRORS as e:
                        raise CatalogUnavailable(source, name, e) from e
                timer.details = {name: len(layer) for name, layer in layers.items()}
            gate = BoundaryGate(**layers)

            self._check_deadline(deadline, "fts", "search")
            with Timer("search", progress) as timer:
                search = TextSearch(store, enable_ranked=self.enable_ranked_search)
                search.probe(cursor=deadline.cursor)
                timer.details = {"search_mode": search.mode}
            self._check_deadline(deadline, "fts", "search")

        if data_url != self.data_url:
            self.data_url = data_url
        return OrchestratorContext(
            data_url=data_url,
            layout=layout,
            catalog=catalog,
            postcodes=postcodes,
            gate=gate,
            search=search,
        )

    @staticmethod
    def _check_deadline(deadline: Deadline, source: str, stage: str):
        """Raise CatalogUnavailable for ``stage`` once the init deadline has expired."""
        if deadline.expired:
            raise CatalogUnavailable(source, stage, TimeoutError(f"initialization exceeded {deadline.seconds}s"))

    def _read_step(self, store: DuckDBStore, deadline: Deadline, source: str, stage: str):
        """Read one initialization file, mapping every failure to CatalogUnavailable."""
        self._check_deadline(deadline, source, stage)
        try:
            if is_remote(source):
                store.enable_remote_access(cursor=deadline.cursor)
            return store.read_table(source, cursor=deadline.cursor)
        except _LOAD_ERRORS as e:
            if deadline.expired:
                cause = TimeoutError(f"initialization exceeded {deadline.seconds}s")
                raise CatalogUnavailable(source, stage, cause) from e
            raise CatalogUnavailable(source, stage, e) from e

    def _load_partitions(
        self,
        store: DuckDBStore,
        deadline: Deadline,
        layout: PartitionLayout,
        data_url: str
    ) -> Tuple[PartitionCatalog, str]:
        """Load the partition index, retrying the fallback location once."""
        try:
            return self._parse_partitions(store, deadline, layout, data_url), data_url
        except CatalogUnavailable as e:
            if deadline.expired or not self.fallback_url or self.fallback_url == data_url:
                raise
            log_structured(
                "warning",
                "Partition index unavailable, retrying fallback data URL",
                data_url=data_url,
                fallback_url=self.fallback_url,
                error=str(e)
            )
        return self._parse_partitions(store, deadline, layout, self.fallback_url), self.fallback_url

    def _parse_partitions(
        self,
        store: DuckDBStore,
        deadline: Deadline,
        layout: PartitionLayout,
        data_url: str
    ) -> PartitionCatalog:
        source = layout.index_url(data_url)
        frame = self._read_step(store, deadline, source, "partitions")
        try:
            catalog = PartitionCatalog(layout.parse_index(frame.to_dict("records")))
        except _LOAD_ERRORS as e:
            raise CatalogUnavailable(source, "partitions", e) from e
        if len(catalog) == 0:
            raise CatalogUnavailable(source, "partitions", ValueError("partition index is empty"))
        return catalog

    def close(self):
        """Release the database. The SDK must be initialized again before reuse."""
        if self.store is not None:
            self.store.close()
        self.store = None
        self._context = None
        with self._loaded_lock:
            self._loaded.clear()

    def _require(self) -> OrchestratorContext:
        context = self._context
        if context is None:
            raise NotInitialized()
        return context

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    def _fetch(self, context: OrchestratorContext, partitions: Sequence[PartitionDescriptor], request: AddressRequest) -> List[Dict[str, Any]]:
        by_source = {context.source_for(d): d.id for d in partitions}
        request.sources = list(by_source)
        result = self.store.fetch(request)
        self._mark_loaded(by_source[s] for s in result.sources)
        if result.failed_sources:
            log_structured(
                "warning",
                "Partial results: some partitions could not be read",
                failed=[by_source[s] for s in result.failed_sources]
            )
        return result.rows

    def _mark_loaded(self, partition_ids):
        with self._loaded_lock:
            self._loaded.update(partition_ids)

    def _warn_unscoped(self, operation: str, used: int, total: int, stacklevel: int = 3):
        """Warn about a capped unscoped search; ``stacklevel`` must point at the public caller."""
        message = (
            f"{operation} without a region or bbox searched {used} of {total} partitions; "
            "pass region= or bbox= for complete results"
        )
        log_structured("warning", "Unscoped search", operation=operation, partitions=used, total_partitions=total)
        warnings.warn(message, UnscopedSearchWarning, stacklevel=stacklevel)

    def _forward_candidates(
        self,
        context: OrchestratorContext,
        query: str,
        bbox: Optional[BoundingBox],
        region: Optional[str],
        operation: str
    ) -> List[PartitionDescriptor]:
        """
        Partitions to search for a free-text query, capped at max_partitions.

        Scoped by bbox, else by region, else by a region named in the query;
        otherwise a stride sample of the whole catalog with a warning.
        """
        catalog = context.catalog
        if bbox is not None:
            candidates = catalog.by_bounding_box_overlap(bbox)
            log_structured("info", "Bbox filter", operation=operation, partitions=len(candidates), total=len(catalog))
            return catalog.sample_evenly(candidates, self.max_partitions, filtered=True)
        if region:
            candidates = catalog.by_region(region)
            log_structured("info", "Region filter", operation=operation, region=region, partitions=len(candidates))
            return catalog.sample_evenly(candidates, self.max_partitions, filtered=True)

        hint = detect_region_hint(query, catalog.regions(), self.region_hint_threshold)
        if hint is not None:
            candidates = catalog.by_region(hint.ar or hint.en)
            log_structured("info", "Region detected in query", operation=operation, region=hint.ar, partitions=len(candidates))
            return catalog.sample_evenly(candidates, self.max_partitions, filtered=True)

        candidates = catalog.sample_evenly(catalog.all(), self.max_partitions, filtered=False)
        self._warn_unscoped(operation, len(candidates), len(catalog), stacklevel=4)
        return candidates

    # ------------------------------------------------------------------
    # Reverse geocoding
    # ------------------------------------------------------------------

    def reverse_geocode(
        self,
        lat: float,
        lon: float,
        limit: int = config.DEFAULT_LIMITS["reverse"],
        radius_meters: float = config.DEFAULT_RADIUS_METERS,
        detail_level: str = "full",
        include_neighbors: bool = False
    ) -> List[AddressRecord]:
        """
        Find the addresses nearest to a point.

        Args:
            lat: Latitude
            lon: Longitude
            limit: Maximum results
            radius_meters: Half-width of the search box around the point
            detail_level: "minimal", "postcode", "region" or "full"
            include_neighbors: Also search partitions adjacent to the point's own

        Returns:
            Records sorted by distance (ties by addr_id), each carrying distance_m;
            empty when the point is outside the country or in no partition
        """
        context = self._require()
        lat, lon = _validate_point(lat, lon)
        options = QueryOptions(
            limit=limit,
            radius_meters=radius_meters,
            detail_level=detail_level,
            include_neighbors=include_neighbors,
        )

        if not context.gate.country_contains(lat, lon, config.COUNTRY_ISO):
            log_structured("info", "Point outside country", lat=lat, lon=lon)
            return []

        partitions = context.layout.partitions_for_point(lat, lon, context.catalog, context.gate)
        if not partitions:
            log_structured("info", "No partition for point", lat=lat, lon=lon)
            return []

        if options.include_neighbors and not context.layout.supports_neighbors:
            log_structured("info", "Layout has no neighbour partitions", layout=context.layout.name)
        elif options.include_neighbors:
            seen = {d.id for d in partitions}
            for descriptor in list(partitions):
                for neighbor in context.layout.neighbors_of(descriptor, context.catalog):
                    if neighbor.id not in seen:
                        seen.add(neighbor.id)
                        partitions.append(neighbor)

        box = BoundingBox.around_point(lat, lon, options.radius_meters)
        request = AddressRequest(
            sources=[],
            columns=columns_for(options.detail_level),
            where=all_of(
                Between("longitude", box.min_lon, box.max_lon),
                Between("latitude", box.min_lat, box.max_lat),
            ),
            computed=[ComputedColumn("distance_m", HAVERSINE_SQL, tuple(haversine_params(lat, lon)))],
            order_by=REVERSE_ORDER,
            limit=options.limit,
        )
        log_structured(
            "info",
            "Reverse geocode",
            partitions=[d.id for d in partitions],
            detail_level=options.detail_level.value,
            radius_meters=options.radius_meters
        )
        rows = self._fetch(context, partitions, request)
        return [AddressRecord.from_row(row) for row in rows]

    # ------------------------------------------------------------------
    # Forward geocoding
    # ------------------------------------------------------------------

    def geocode(
        self,
        address: str,
        limit: int = config.DEFAULT_LIMITS["geocode"],
        bbox: Optional[Sequence[float]] = None,
        region: Optional[str] = None
    ) -> List[AddressRecord]:
        """
        Find addresses matching free text (Arabic or English).

        Args:
            address: Query text
            limit: Maximum results
            bbox: [minLat, minLon, maxLat, maxLon] restricting the partitions searched
            region: Region name in either language restricting the partitions searched

        Returns:
            Records best match first, each carrying a similarity score
        """
        context = self._require()
        options = QueryOptions(limit=limit, bbox=bbox, region=region)
        # An empty query still searches: the gate passes every row of the
        # candidate partitions and ranking alone orders them
        query = clean_query(address)
        partitions = self._forward_candidates(context, query, options.bbox, options.region, "geocode")
        if not partitions:
            log_structured("info", "No partitions match the search area")
            return []

        by_source = {context.source_for(d): d.id for d in partitions}
        outcome = context.search.search(list(by_source), query, options.limit)
        self._mark_loaded(by_source[s] for s in outcome.sources if s in by_source)
        return [AddressRecord.from_row(row) for row in outcome.rows]

    def suggest(
        self,
        partial: str,
        limit: int = config.DEFAULT_LIMITS["suggest"],
        region: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """
        Autocomplete addresses containing the typed text.

        Args:
            partial: Text typed so far (at least two characters)
            limit: Maximum suggestions
            region: Optional region name

        Returns:
            Dicts with addr_id, address_ar and address_en
        """
        context = self._require()
        options = QueryOptions(limit=limit, region=region)
        query = clean_query(partial)
        if len(query) < MIN_SUGGEST_LENGTH:
            return []

        partitions = self._forward_candidates(context, query, None, options.region, "suggest")
        if not partitions:
            return []

        field_name = address_field(query)
        request = AddressRequest(
            sources=[],
            columns=("addr_id", "full_address_ar", "full_address_en"),
            where=all_of(IsNotNull(field_name), Contains(field_name, query)),
            order_by=(OrderKey("addr_id"),),
            limit=options.limit,
        )
        rows = self._fetch(context, partitions, request)
        return [
            {
                "addr_id": int(row["addr_id"]),
                "address_ar": row["full_address_ar"],
                "address_en": row["full_address_en"],
            }
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Postcode and house number search
    # ------------------------------------------------------------------

    def search_by_postcode(
        self,
        postcode: str,
        limit: int = config.DEFAULT_LIMITS["postcode"],
        number: Optional[str] = None
    ) -> List[AddressRecord]:
        """
        Addresses with exactly this postcode, read only from the partitions
        the postcode index lists for it.

        Args:
            postcode: Postcode; Arabic-Indic and Persian digits are accepted
            limit: Maximum results
            number: Optional exact house number

        Returns:
            Records ordered by house number then addr_id; empty for unknown postcodes
        """
        context = self._require()
        options = QueryOptions(limit=limit, number=number)
        code = normalize_code(postcode)
        if not code:
            return []

        if not context.layout.has_postcode_index:
            log_structured("warning", "Layout has no postcode index", layout=context.layout.name)
            return []

        entry = context.postcodes.get(code)
        if entry is None:
            log_structured("info", "Unknown postcode", postcode=code)
            return []

        partitions = [context.catalog.by_id(pid) for pid in entry.partition_ids]
        number_code = normalize_code(options.number) if options.number is not None else ""
        request = AddressRequest(
            sources=[],
            columns=ADDRESS_COLUMNS,
            where=all_of(Eq("postcode", code), Eq("number", number_code) if number_code else None),
            order_by=POSTCODE_ORDER,
            limit=options.limit,
        )
        log_structured("info", "Postcode search", postcode=code, partitions=list(entry.partition_ids))
        rows = self._fetch(context, partitions, request)
        return [AddressRecord.from_row(row) for row in rows]

    def search_by_number(
        self,
        number: str,
        limit: int = config.DEFAULT_LIMITS["number"],
        region: Optional[str] = None,
        bbox: Optional[Sequence[float]] = None
    ) -> List[AddressRecord]:
        """
        Addresses with exactly this house number.

        Args:
            number: House number; Arabic-Indic and Persian digits are accepted
            limit: Maximum results
            region: Region name restricting the partitions searched
            bbox: [minLat, minLon, maxLat, maxLon] restricting the partitions searched

        Returns:
            Records ordered by postcode, street, addr_id
        """
        context = self._require()
        options = QueryOptions(limit=limit, region=region, bbox=bbox)
        code = normalize_code(number)
        if not code:
            return []

        catalog = context.catalog
        if options.region:
            partitions = catalog.by_region(options.region)
        elif options.bbox is not None:
            partitions = catalog.by_bounding_box_overlap(options.bbox)
        else:
            partitions = catalog.all()[: self.max_unscoped_partitions]
            self._warn_unscoped("search_by_number", len(partitions), len(catalog))
        if not partitions:
            return []

        request = AddressRequest(
            sources=[],
            columns=ADDRESS_COLUMNS,
            where=Eq("number", code),
            order_by=NUMBER_ORDER,
            limit=options.limit,
        )
        log_structured("info", "House number search", number=code, partitions=len(partitions))
        rows = self._fetch(context, partitions, request)
        return [AddressRecord.from_row(row) for row in rows]

    # ------------------------------------------------------------------
    # Boundaries
    # ------------------------------------------------------------------

    def detect_country(self, lat: float, lon: float) -> Optional[CountryInfo]:
        """Country containing the point, or None (e.g. at sea)."""
        context = self._require()
        lat, lon = _validate_point(lat, lon)
        return context.gate.country_of(lat, lon)

    def is_in_country(self, lat: float, lon: float, iso: str = config.COUNTRY_ISO) -> bool:
        context = self._require()
        lat, lon = _validate_point(lat, lon)
        return context.gate.country_contains(lat, lon, iso)

    def get_admin_hierarchy(self, lat: float, lon: float) -> AdminHierarchy:
        """District and region containing the point; empty when outside both."""
        context = self._require()
        lat, lon = _validate_point(lat, lon)
        return context.gate.district_containing(lat, lon) or AdminHierarchy()

    # ------------------------------------------------------------------
    # Catalog access
    # ------------------------------------------------------------------

    def get_postcodes(self, prefix: Optional[str] = None, limit: Optional[int] = None) -> List[PostcodeEntry]:
        return self._require().postcodes.prefix_search(prefix, limit)

    def get_partitions(self) -> List[PartitionDescriptor]:
        return self._require().catalog.all()

    def get_partitions_by_region(self, region: str) -> List[PartitionDescriptor]:
        return self._require().catalog.by_region(region)

    def get_loaded_partitions(self) -> List[str]:
        """Ids of partitions read so far, sorted."""
        self._require()
        with self._loaded_lock:
            return sorted(self._loaded)

    def format_address(self, record: AddressRecord, language: Optional[str] = None) -> Optional[str]:
        """
        Full address in ``language`` (the SDK language by default), falling
        back to the other one.

        Raises:
            InvalidQuery: Unknown language
        """
        options = QueryOptions(language=language or self.language)
        return record.full_address(options.language.value)

    def is_ranked_search_available(self) -> bool:
        return self._require().search.is_ranked_available()

    @property
    def search_mode(self) -> str:
        return self._require().search.mode

    def get_stats(self) -> SDKStats:
        context = self._require()
        loaded = self.get_loaded_partitions()
        return SDKStats(
            partitions_loaded=len(loaded),
            total_partitions=len(context.catalog),
            total_addresses=context.catalog.total_addresses,
            total_size_kb=context.catalog.total_size_kb,
            total_postcodes=len(context.postcodes),
            search_mode=context.search.mode,
            data_url=context.data_url,
            layout=context.layout.name,
            loaded_partition_ids=loaded,
        )
