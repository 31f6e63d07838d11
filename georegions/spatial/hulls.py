"""
Boundary polygons for point clusters.

Hull construction is an ordered list of strategies. Each strategy returns a
:class:`HullResult`; :func:`build_hull` tries them in order and keeps the
first success:

1. ``concave`` - Delaunay triangulation filtered by a maximum edge length,
   tighter for denser clusters
2. ``convex``  - convex hull of the points
3. ``buffer``  - circle around the centroid, radius ``max(20, sqrt(n) * 5)`` km

Clusters with fewer than three points cannot form a polygon and are dropped;
the number of dropped clusters and points is reported.
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from pyproj import CRS, Transformer
from scipy.spatial import Delaunay, QhullError
from shapely.errors import GEOSException
from shapely.geometry import MultiPoint, Point as ShapelyPoint, Polygon
from shapely.ops import transform, unary_union

from ..models import Cluster, Point, Region, YearTag
from .geodesy import bbox_diagonal_km, bounding_box, centroid, haversine_km

logger = logging.getLogger(__name__)

MIN_HULL_POINTS = 3
BUFFER_MIN_RADIUS_KM = 20.0
BUFFER_KM_PER_SQRT_POINT = 5.0
TOP_YEAR_COUNT = 3


@dataclass
class HullResult:
    """Outcome of one hull strategy."""

    polygon: Optional[Polygon]
    method: str
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.polygon is not None


@dataclass
class HullDiagnostics:
    """Bookkeeping for a batch of clusters converted to regions."""

    num_clusters: int = 0
    num_regions: int = 0
    dropped_clusters: int = 0
    """Clusters with fewer than three points."""

    dropped_points: int = 0
    failed_clusters: int = 0
    """Clusters for which every strategy failed."""

    failed_points: int = 0
    methods: Dict[str, int] = field(default_factory=dict)

    def merge(self, other: "HullDiagnostics") -> None:
        self.num_clusters += other.num_clusters
        self.num_regions += other.num_regions
        self.dropped_clusters += other.dropped_clusters
        self.dropped_points += other.dropped_points
        self.failed_clusters += other.failed_clusters
        self.failed_points += other.failed_points
        for method, count in other.methods.items():
            self.methods[method] = self.methods.get(method, 0) + count


def concave_max_edge_km(points: Sequence[Point]) -> float:
    """Maximum triangle edge for the concave hull; shrinks as clusters get denser."""
    diagonal = bbox_diagonal_km(bounding_box(points))
    n = len(points)
    if n > 500:
        return diagonal / 10
    if n > 200:
        return diagonal / 8
    if n > 50:
        return diagonal / 6
    return diagonal / 4


def _lnglat(points: Sequence[Point]) -> np.ndarray:
    return np.array([[p.lng, p.lat] for p in points], dtype=float)


def concave_hull(points: Sequence[Point]) -> HullResult:
    xy = _lnglat(points)
    max_edge = concave_max_edge_km(points)
    try:
        tri = Delaunay(xy)
    except (QhullError, ValueError) as e:
        return HullResult(None, "concave", f"triangulation failed: {e}")

    kept = []
    for simplex in tri.simplices:
        a, b, c = xy[simplex]
        longest = max(
            haversine_km(a[1], a[0], b[1], b[0]),
            haversine_km(b[1], b[0], c[1], c[0]),
            haversine_km(c[1], c[0], a[1], a[0]),
        )
        if longest <= max_edge:
            kept.append(Polygon([tuple(a), tuple(b), tuple(c)]))

    if not kept:
        return HullResult(None, "concave", f"no triangle within max edge {max_edge:.2f} km")

    try:
        hull = unary_union(kept)
        if hull.geom_type != "Polygon" or not hull.is_valid or hull.area <= 0:
            return HullResult(None, "concave", f"union is a {hull.geom_type}, not a single polygon")
        if not hull.buffer(1e-9).covers(MultiPoint([tuple(p) for p in xy])):
            return HullResult(None, "concave", "hull does not cover every point")
    except GEOSException as e:
        return HullResult(None, "concave", f"union failed: {e}")
    return HullResult(Polygon(hull.exterior), "concave")


def convex_hull(points: Sequence[Point]) -> HullResult:
    try:
        hull = MultiPoint([tuple(p) for p in _lnglat(points)]).convex_hull
    except GEOSException as e:
        return HullResult(None, "convex", str(e))
    if hull.geom_type != "Polygon" or hull.area <= 0:
        return HullResult(None, "convex", f"convex hull is a {hull.geom_type}")
    return HullResult(hull, "convex")


def buffer_radius_km(num_points: int) -> float:
    return max(BUFFER_MIN_RADIUS_KM, math.sqrt(num_points) * BUFFER_KM_PER_SQRT_POINT)


def circle_polygon(center_lat: float, center_lng: float, radius_km: float) -> Polygon:
    """Circle of ``radius_km`` around a coordinate, built in a local equidistant projection."""
    aeqd = CRS.from_proj4(
        f"+proj=aeqd +lat_0={center_lat} +lon_0={center_lng} +x_0=0 +y_0=0 "
        "+datum=WGS84 +units=m +no_defs"
    )
    wgs84 = CRS.from_epsg(4326)
    to_aeqd = Transformer.from_crs(wgs84, aeqd, always_xy=True).transform
    to_wgs = Transformer.from_crs(aeqd, wgs84, always_xy=True).transform
    circle_m = transform(to_aeqd, ShapelyPoint(center_lng, center_lat)).buffer(
        radius_km * 1000.0, resolution=16
    )
    return transform(to_wgs, circle_m)


def centroid_buffer(points: Sequence[Point]) -> HullResult:
    lat, lng = centroid(points)
    radius = buffer_radius_km(len(points))
    try:
        circle = circle_polygon(lat, lng, radius)
    except (GEOSException, ValueError) as e:
        return HullResult(None, "buffer", str(e))
    if circle.is_empty or circle.geom_type != "Polygon":
        return HullResult(None, "buffer", "buffer produced no polygon")
    return HullResult(circle, "buffer")


HULL_STRATEGIES: Tuple[Tuple[str, Callable[[Sequence[Point]], HullResult]], ...] = (
    ("concave", concave_hull),
    ("convex", convex_hull),
    ("buffer", centroid_buffer),
)


def build_hull(points: Sequence[Point]) -> HullResult:
    """
    Try each hull strategy in order and return the first success.

    Returns a failed result carrying every strategy's error when all fail,
    or immediately when there are fewer than three points.
    """
    if len(points) < MIN_HULL_POINTS:
        return HullResult(None, "none", f"only {len(points)} points")

    errors = []
    for name, strategy in HULL_STRATEGIES:
        result = strategy(points)
        if result.ok:
            return result
        logger.debug("%s hull failed: %s", name, result.error)
        errors.append(f"{name}: {result.error}")
    return HullResult(None, "none", "; ".join(errors))


def frequent_years(points: Sequence[Point], top_n: int = TOP_YEAR_COUNT) -> List[YearTag]:
    """Most frequent coverage years, ties broken towards the newer year."""
    all_years = [year for p in points for year in p.years]
    if not all_years:
        return []
    counts = pd.Series(all_years).value_counts()
    counts = counts.sort_index(ascending=False).sort_values(ascending=False, kind="stable")
    return [YearTag(year=int(y), count=int(c)) for y, c in counts.head(top_n).items()]


def clusters_to_regions(
    clusters: Sequence[Cluster],
    climate_zone: Optional[str] = None,
    climate_name: Optional[str] = None,
    first_region_id: int = 0,
) -> Tuple[List[Region], HullDiagnostics]:
    """
    Convert finished clusters into regions.

    Args:
        clusters: Balanced clusters
        climate_zone: Zone code to tag regions with (climate-aware mode)
        climate_name: Human-readable zone name
        first_region_id: Id given to the first region produced

    Returns:
        (regions, diagnostics)
    """
    diagnostics = HullDiagnostics(num_clusters=len(clusters))
    regions: List[Region] = []
    methods: Counter = Counter()

    for cluster in clusters:
        if cluster.size < MIN_HULL_POINTS:
            logger.info(
                "Skipping cluster %d with only %d points", cluster.cluster_id, cluster.size
            )
            diagnostics.dropped_clusters += 1
            diagnostics.dropped_points += cluster.size
            continue

        result = build_hull(cluster.points)
        if not result.ok:
            logger.warning(
                "All hull strategies failed for cluster %d: %s", cluster.cluster_id, result.error
            )
            diagnostics.failed_clusters += 1
            diagnostics.failed_points += cluster.size
            continue

        methods[result.method] += 1
        regions.append(
            Region(
                region_id=first_region_id + len(regions),
                polygon=result.polygon,
                point_count=cluster.size,
                year_tags=frequent_years(cluster.points),
                climate_zone=climate_zone,
                climate_name=climate_name,
                hull_method=result.method,
                points=list(cluster.points),
            )
        )

    diagnostics.num_regions = len(regions)
    diagnostics.methods = dict(methods)
    return regions, diagnostics
