"""
georegions.spatial: clustering, balancing and hull construction.

This module provides density clustering with noise reassignment, cluster-count
balancing by merge/split, and a concave -> convex -> buffer hull fallback chain.
"""

from .balancing import BalanceResult, balance_clusters, kmeans_bisect
from .clustering import ClusteringConfig, ClusteringDiagnostics, density_cluster
from .geodesy import (
    EARTH_RADIUS_KM,
    bbox_area_km2,
    bearing_deg,
    bounding_box,
    cluster_distance_km,
    haversine_km,
)
from .hulls import (
    HULL_STRATEGIES,
    HullDiagnostics,
    HullResult,
    build_hull,
    clusters_to_regions,
    frequent_years,
)

__all__ = [
    "BalanceResult",
    "balance_clusters",
    "kmeans_bisect",
    "ClusteringConfig",
    "ClusteringDiagnostics",
    "density_cluster",
    "EARTH_RADIUS_KM",
    "bbox_area_km2",
    "bearing_deg",
    "bounding_box",
    "cluster_distance_km",
    "haversine_km",
    "HULL_STRATEGIES",
    "HullDiagnostics",
    "HullResult",
    "build_hull",
    "clusters_to_regions",
    "frequent_years",
]
