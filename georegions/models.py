"""
Core data model shared by every pipeline stage.

Points are immutable once normalized. Clusters are transient containers used
while clustering and balancing. Regions are the final artifact; only their
labels (direction id, city name) change after the hull stage.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np
from shapely.geometry.base import BaseGeometry


@dataclass(frozen=True)
class Point:
    """A single normalized coverage sample."""

    point_id: int
    """Position in the normalized collection; key for ownership maps."""

    lng: float
    lat: float

    years: Tuple[int, ...] = ()
    """Coverage years parsed from the sample's tags."""

    latest_year: Optional[int] = None

    climate_code: Optional[str] = None
    """Köppen-Geiger code, filled in by the climate classifier."""

    tags: Tuple[str, ...] = ()

    @property
    def coordinates(self) -> Tuple[float, float]:
        """GeoJSON ordering: (lng, lat)."""
        return (self.lng, self.lat)


def coords_array(points: Sequence[Point]) -> np.ndarray:
    """Return an ``(n, 2)`` array of ``[lat, lng]`` rows."""
    if not points:
        return np.empty((0, 2), dtype=float)
    return np.array([[p.lat, p.lng] for p in points], dtype=float)


@dataclass
class Cluster:
    """A transient, unlabeled group of points."""

    cluster_id: int
    points: List[Point] = field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.points)

    def centroid(self) -> Tuple[float, float]:
        """Arithmetic mean of member coordinates as ``(lat, lng)``."""
        if not self.points:
            raise ValueError(f"Cannot compute centroid of empty cluster {self.cluster_id}")
        arr = coords_array(self.points)
        lat, lng = arr.mean(axis=0)
        return float(lat), float(lng)


@dataclass
class ClimateZoneGroup:
    """Points sharing a climate code. A grouping key, not an owner."""

    code: str
    name: Optional[str] = None
    color: Optional[Tuple[int, int, int]] = None
    points: List[Point] = field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.points)


@dataclass(frozen=True)
class YearTag:
    """Coverage year with the number of member points carrying it."""

    year: int
    count: int

    def to_dict(self) -> dict:
        return {"year": self.year, "count": self.count}


@dataclass
class Region:
    """A finished polygon partition of a country's coverage points."""

    region_id: int
    polygon: BaseGeometry
    point_count: int
    year_tags: List[YearTag] = field(default_factory=list)
    climate_zone: Optional[str] = None
    climate_name: Optional[str] = None
    hull_method: Optional[str] = None
    """Which hull strategy produced ``polygon`` (concave, convex or buffer)."""

    direction_id: Optional[str] = None
    city_name: Optional[str] = None
    points: List[Point] = field(default_factory=list, repr=False)

    def centroid(self) -> Tuple[float, float]:
        """Point centroid ``(lat, lng)``, or the polygon centroid without points."""
        if self.points:
            lat, lng = coords_array(self.points).mean(axis=0)
            return float(lat), float(lng)
        c = self.polygon.centroid
        return float(c.y), float(c.x)
