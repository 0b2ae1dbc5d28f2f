"""Boundary containment: country, region and district lookups for a point."""
from typing import Dict, Optional, Tuple

import geopandas as gpd
import pandas as pd
from shapely import wkb
from shapely.geometry import Point

from geosdk.core.config import COUNTRY_BBOXES, COUNTRY_ISO
from geosdk.core.models import AdminHierarchy, CountryInfo, RegionLabel
from geosdk.utils.timing import time_function

CRS = "EPSG:4326"


def _load_geometry(value):
    if value is None:
        return None
    if isinstance(value, str):
        return wkb.loads(value, hex=True)
    return wkb.loads(bytes(value))


@time_function
def boundary_layer_from_frame(df: pd.DataFrame, geometry_column: str = "geometry") -> gpd.GeoDataFrame:
    """
    Build a GeoDataFrame from a boundary table with WKB geometries.

    Args:
        df: Rows read from a boundary Parquet file
        geometry_column: Column holding WKB (bytes or hex) geometries

    Returns:
        GeoDataFrame in WGS84; rows without geometry are dropped
    """
    if geometry_column not in df.columns:
        raise ValueError(f"Boundary table has no '{geometry_column}' column")
    geometries = [_load_geometry(v) for v in df[geometry_column]]
    attributes = df.drop(columns=[geometry_column])
    gdf = gpd.GeoDataFrame(attributes, geometry=geometries, crs=CRS)
    return gdf[gdf.geometry.notna()].reset_index(drop=True)


def spatial_join_point_to_polygons(
    point: Point,
    polygons_gdf: Optional[gpd.GeoDataFrame],
    crs: str = CRS
) -> Optional[gpd.GeoDataFrame]:
    """
    Perform spatial join of a point to polygons.

    Args:
        point: Shapely Point geometry
        polygons_gdf: GeoDataFrame with polygon geometries
        crs: CRS string

    Returns:
        GeoDataFrame with matching polygons or None
    """
    if polygons_gdf is None or polygons_gdf.empty:
        return None

    point_gdf = gpd.GeoDataFrame([{"geometry": point}], crs=crs)

    if polygons_gdf.crs != crs:
        polygons_gdf = polygons_gdf.to_crs(crs)

    joined = gpd.sjoin(point_gdf, polygons_gdf, how="inner", predicate="within")

    return joined if not joined.empty else None


def _text(value) -> Optional[str]:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return None
    return str(value)


def _label(row, ar_key: str = "name_ar", en_key: str = "name_en") -> Optional[RegionLabel]:
    ar, en = _text(row.get(ar_key)), _text(row.get(en_key))
    if ar is None and en is None:
        return None
    return RegionLabel(ar=ar, en=en)


class BoundaryGate:
    """Point-in-polygon tests against the country, region and district layers.

    Layers are loaded once and only read afterwards.
    """

    def __init__(
        self,
        countries: Optional[gpd.GeoDataFrame] = None,
        regions: Optional[gpd.GeoDataFrame] = None,
        districts: Optional[gpd.GeoDataFrame] = None,
        country_bboxes: Optional[Dict[str, Tuple[float, float, float, float]]] = None
    ):
        self.countries = countries
        self.regions = regions
        self.districts = districts
        self.country_bboxes = COUNTRY_BBOXES if country_bboxes is None else country_bboxes

    def in_country_bbox(self, lat: float, lon: float, iso: str = COUNTRY_ISO) -> bool:
        """Cheap rectangle test; True for countries without a configured box."""
        bbox = self.country_bboxes.get(iso.upper())
        if bbox is None:
            return True
        min_lon, min_lat, max_lon, max_lat = bbox
        return min_lon <= lon <= max_lon and min_lat <= lat <= max_lat

    def country_contains(self, lat: float, lon: float, iso: str = COUNTRY_ISO) -> bool:
        """
        Check whether a point lies inside a country.

        The country's bounding box is tested first; the polygon test only
        runs for points inside it.

        Args:
            lat: Latitude
            lon: Longitude
            iso: ISO 3166-1 alpha-2 code

        Returns:
            True if the point is in the country
        """
        if not self.in_country_bbox(lat, lon, iso):
            return False
        if self.countries is None or self.countries.empty:
            return True
        polygons = self.countries[self.countries["iso_a2"] == iso.upper()]
        return spatial_join_point_to_polygons(Point(lon, lat), polygons) is not None

    def country_of(self, lat: float, lon: float) -> Optional[CountryInfo]:
        """Country whose polygon contains the point, or None (e.g. at sea)."""
        joined = spatial_join_point_to_polygons(Point(lon, lat), self.countries)
        if joined is None:
            return None
        match = joined.iloc[0]
        return CountryInfo(
            iso_a3=_text(match.get("iso_a3")) or "",
            iso_a2=_text(match.get("iso_a2")) or "",
            name_en=_text(match.get("name_en")) or "",
            name_ar=_text(match.get("name_ar")) or "",
            continent=_text(match.get("continent")) or "",
        )

    def region_containing(self, lat: float, lon: float) -> Optional[RegionLabel]:
        joined = spatial_join_point_to_polygons(Point(lon, lat), self.regions)
        if joined is None:
            return None
        return _label(joined.iloc[0])

    def district_containing(self, lat: float, lon: float) -> Optional[AdminHierarchy]:
        """
        District and region for a point.

        Falls back to the region alone when no district polygon contains the
        point, and returns None when neither does.
        """
        point = Point(lon, lat)
        joined = spatial_join_point_to_polygons(point, self.districts)
        if joined is not None:
            match = joined.iloc[0]
            region = _label(match, "region_ar", "region_en") or self.region_containing(lat, lon)
            return AdminHierarchy(district=_label(match), region=region)

        region = self.region_containing(lat, lon)
        if region is None:
            return None
        return AdminHierarchy(region=region)
