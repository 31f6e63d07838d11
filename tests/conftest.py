"""
Pytest configuration and shared fixtures for geo-regions tests.

This file provides:
- Synthetic coverage datasets (uniform boxes, separated blobs, raw exports)
- A fake climate classifier and city gazetteer
- Common test utilities
"""

from typing import Callable, Dict, List, Optional

import numpy as np
import pytest

from georegions.climate.classifier import KOPPEN_BY_CODE, ClimateInfo
from georegions.labeling.cities import City, InMemoryGazetteer
from georegions.models import Cluster, Point


# ==============================================================================
# Point Factories
# ==============================================================================

def make_points(
    coords: List[tuple],
    years: Optional[List[int]] = None,
    start_id: int = 0,
    climate_code: Optional[str] = None,
) -> List[Point]:
    """Build points from ``(lat, lng)`` pairs."""
    points = []
    for i, (lat, lng) in enumerate(coords):
        point_years = (years[i % len(years)],) if years else ()
        points.append(
            Point(
                point_id=start_id + i,
                lng=float(lng),
                lat=float(lat),
                years=point_years,
                latest_year=max(point_years) if point_years else None,
                climate_code=climate_code,
            )
        )
    return points


def uniform_box(
    n: int,
    lat0: float,
    lng0: float,
    size: float = 1.0,
    seed: int = 0,
    start_id: int = 0,
    climate_code: Optional[str] = None,
) -> List[Point]:
    """``n`` points uniformly scattered in a ``size`` x ``size`` degree box."""
    rng = np.random.default_rng(seed)
    lats = lat0 + rng.random(n) * size
    lngs = lng0 + rng.random(n) * size
    return make_points(
        list(zip(lats, lngs)),
        years=[2015, 2019, 2022],
        start_id=start_id,
        climate_code=climate_code,
    )


def blob(n: int, lat: float, lng: float, spread: float = 0.005, start_id: int = 0) -> List[Point]:
    """Tight grid of ``n`` points around a coordinate."""
    side = int(np.ceil(np.sqrt(n)))
    coords = [
        (lat + (i // side) * spread, lng + (i % side) * spread)
        for i in range(n)
    ]
    return make_points(coords, start_id=start_id)


@pytest.fixture
def rng() -> np.random.Generator:
    """Seeded generator."""
    return np.random.default_rng(7)


@pytest.fixture
def uniform_points() -> List[Point]:
    """100 points uniformly scattered in a 1 x 1 degree box."""
    return uniform_box(100, 10.0, 20.0)


@pytest.fixture
def two_blobs() -> List[Point]:
    """Two tight 12-point blobs about 110 km apart."""
    return blob(12, 10.0, 20.0) + blob(12, 11.0, 20.0, start_id=12)


@pytest.fixture
def cluster_factory() -> Callable[..., Cluster]:
    """Build a cluster from ``(lat, lng)`` pairs."""
    counter = {"next_id": 0}

    def _make(coords, cluster_id: int = 0) -> Cluster:
        points = make_points(coords, start_id=counter["next_id"])
        counter["next_id"] += len(coords)
        return Cluster(cluster_id=cluster_id, points=points)

    return _make


# ==============================================================================
# Raw Datasets
# ==============================================================================

@pytest.fixture
def raw_coverage() -> Dict:
    """Coverage export with three valid and four invalid records."""
    return {
        "customCoordinates": [
            {"lat": -12.046, "lng": -77.043, "extra": {"tags": ["2019-07", "2013-06"]}},
            {"lat": -16.409, "lng": -71.537, "extra": {"tags": ["2022-01"]}},
            {"lat": -8.109, "lng": -79.03},
            {"lat": "bad", "lng": -79.03},
            {"lat": None, "lng": 10.0},
            {"lat": True, "lng": 10.0},
            {"lat": 95.0, "lng": 10.0},
        ]
    }


def to_raw(points: List[Point]) -> Dict:
    """Render points back into a coverage export."""
    return {
        "customCoordinates": [
            {"lat": p.lat, "lng": p.lng, "extra": {"tags": [f"{y}-06" for y in p.years]}}
            for p in points
        ]
    }


# ==============================================================================
# Fake Collaborators
# ==============================================================================

class SplitClassifier:
    """Classifies by longitude: west of ``boundary`` is BWh, east is Af."""

    def __init__(self, boundary: float):
        self.boundary = boundary
        self.calls = 0

    def __call__(self, lat: float, lng: float, resolution: str) -> Optional[ClimateInfo]:
        self.calls += 1
        return KOPPEN_BY_CODE["BWh"] if lng < self.boundary else KOPPEN_BY_CODE["Af"]


class BrokenClassifier:
    """Simulates a missing raster."""

    def __call__(self, lat: float, lng: float, resolution: str) -> Optional[ClimateInfo]:
        raise OSError("koppen_geiger_0p5.tif not found")


class OutOfRasterClassifier:
    """Simulates a lookup past the raster edge."""

    def __call__(self, lat: float, lng: float, resolution: str) -> Optional[ClimateInfo]:
        raise IndexError("pixel outside raster")


@pytest.fixture
def split_classifier() -> SplitClassifier:
    return SplitClassifier(boundary=21.0)


@pytest.fixture
def gazetteer() -> InMemoryGazetteer:
    return InMemoryGazetteer(
        [
            City("Alpha", 10.5, 20.5, "XX", 900_000),
            City("Beta", 10.2, 20.2, "XX", 400_000),
            City("Gamma", 10.8, 20.8, "XX", 50_000),
            City("Foreign", 10.5, 20.5, "YY", 5_000_000),
        ]
    )


# ==============================================================================
# Utilities
# ==============================================================================

def assert_approx_equal(a: float, b: float, tolerance: float = 0.01):
    """Assert two floats are approximately equal."""
    assert abs(a - b) < tolerance, f"{a} != {b} (tolerance={tolerance})"
