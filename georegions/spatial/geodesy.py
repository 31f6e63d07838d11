"""Great-circle helpers. All distances are kilometres on a spherical earth."""

from __future__ import annotations

import math
from typing import Sequence, Tuple

import numpy as np
from pyproj import Geod
from shapely.geometry import box

from ..models import Point, coords_array

EARTH_RADIUS_KM = 6371.0

_GEOD = Geod(ellps="WGS84")

BBox = Tuple[float, float, float, float]
"""(min_lng, min_lat, max_lng, max_lat)"""


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Haversine distance between two coordinates."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlmb = math.radians(lng2 - lng1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def haversine_to_many(lat: float, lng: float, lats: np.ndarray, lngs: np.ndarray) -> np.ndarray:
    """Vectorized haversine from one coordinate to arrays of coordinates."""
    phi1 = np.radians(lat)
    phi2 = np.radians(lats)
    dphi = phi2 - phi1
    dlmb = np.radians(lngs - lng)
    a = np.sin(dphi / 2) ** 2 + np.cos(phi1) * np.cos(phi2) * np.sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_KM * np.arctan2(np.sqrt(a), np.sqrt(np.clip(1 - a, 0.0, None)))


def bearing_deg(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Initial compass bearing from the first coordinate to the second, in [0, 360)."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dlmb = math.radians(lng2 - lng1)
    y = math.sin(dlmb) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(dlmb)
    return (math.degrees(math.atan2(y, x)) + 360.0) % 360.0


def centroid(points: Sequence[Point]) -> Tuple[float, float]:
    """Mean ``(lat, lng)`` of a point set."""
    if not points:
        raise ValueError("Cannot compute centroid of an empty point set")
    lat, lng = coords_array(points).mean(axis=0)
    return float(lat), float(lng)


def bounding_box(points: Sequence[Point]) -> BBox:
    if not points:
        raise ValueError("Cannot compute bounding box of an empty point set")
    arr = coords_array(points)
    return (
        float(arr[:, 1].min()),
        float(arr[:, 0].min()),
        float(arr[:, 1].max()),
        float(arr[:, 0].max()),
    )


def bbox_area_km2(bbox: BBox) -> float:
    """Geodesic area of a lng/lat bounding box."""
    min_lng, min_lat, max_lng, max_lat = bbox
    if max_lng <= min_lng or max_lat <= min_lat:
        return 0.0
    area_m2, _ = _GEOD.geometry_area_perimeter(box(min_lng, min_lat, max_lng, max_lat))
    return abs(area_m2) / 1_000_000.0


def bbox_diagonal_km(bbox: BBox) -> float:
    min_lng, min_lat, max_lng, max_lat = bbox
    return haversine_km(min_lat, min_lng, max_lat, max_lng)


def cluster_distance_km(area_km2: float, target_regions: int) -> float:
    """
    Neighborhood radius for density clustering.

    Half the side of a square that would give each target region an equal
    share of the area, so the radius narrows as the target count grows.
    """
    if target_regions <= 0:
        raise ValueError(f"target_regions must be positive, got {target_regions}")
    return math.sqrt(max(area_km2, 0.0) / target_regions) / 2
