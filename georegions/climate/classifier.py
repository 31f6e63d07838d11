"""
Köppen-Geiger climate classification adapter.

Raster access lives outside this package; the pipeline only needs a
callable ``(lat, lng, resolution) -> ClimateInfo | None``. This module
provides the code table, a caching wrapper and the point-tagging step.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

from cachetools import LRUCache

from ..models import Point

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClimateInfo:
    """A single Köppen-Geiger class."""

    code: str
    name: str
    color: Tuple[int, int, int]


class ClimateClassifier(Protocol):
    def __call__(self, lat: float, lng: float, resolution: str) -> Optional[ClimateInfo]:
        ...


KOPPEN_CLASSES: Dict[int, ClimateInfo] = {
    1: ClimateInfo("Af", "Tropical, rainforest", (0, 0, 255)),
    2: ClimateInfo("Am", "Tropical, monsoon", (0, 120, 255)),
    3: ClimateInfo("Aw", "Tropical, savannah", (70, 170, 250)),
    4: ClimateInfo("BWh", "Arid, desert, hot", (255, 0, 0)),
    5: ClimateInfo("BWk", "Arid, desert, cold", (255, 150, 150)),
    6: ClimateInfo("BSh", "Arid, steppe, hot", (245, 165, 0)),
    7: ClimateInfo("BSk", "Arid, steppe, cold", (255, 220, 100)),
    8: ClimateInfo("Csa", "Temperate, dry summer, hot summer", (255, 255, 0)),
    9: ClimateInfo("Csb", "Temperate, dry summer, warm summer", (200, 200, 0)),
    10: ClimateInfo("Csc", "Temperate, dry summer, cold summer", (150, 150, 0)),
    11: ClimateInfo("Cwa", "Temperate, dry winter, hot summer", (150, 255, 150)),
    12: ClimateInfo("Cwb", "Temperate, dry winter, warm summer", (100, 200, 100)),
    13: ClimateInfo("Cwc", "Temperate, dry winter, cold summer", (50, 150, 50)),
    14: ClimateInfo("Cfa", "Temperate, no dry season, hot summer", (200, 255, 80)),
    15: ClimateInfo("Cfb", "Temperate, no dry season, warm summer", (100, 255, 80)),
    16: ClimateInfo("Cfc", "Temperate, no dry season, cold summer", (50, 200, 0)),
    17: ClimateInfo("Dsa", "Cold, dry summer, hot summer", (255, 0, 255)),
    18: ClimateInfo("Dsb", "Cold, dry summer, warm summer", (200, 0, 200)),
    19: ClimateInfo("Dsc", "Cold, dry summer, cold summer", (150, 50, 150)),
    20: ClimateInfo("Dsd", "Cold, dry summer, very cold winter", (150, 100, 150)),
    21: ClimateInfo("Dwa", "Cold, dry winter, hot summer", (170, 175, 255)),
    22: ClimateInfo("Dwb", "Cold, dry winter, warm summer", (90, 120, 220)),
    23: ClimateInfo("Dwc", "Cold, dry winter, cold summer", (75, 80, 180)),
    24: ClimateInfo("Dwd", "Cold, dry winter, very cold winter", (50, 0, 135)),
    25: ClimateInfo("Dfa", "Cold, no dry season, hot summer", (0, 255, 255)),
    26: ClimateInfo("Dfb", "Cold, no dry season, warm summer", (55, 200, 255)),
    27: ClimateInfo("Dfc", "Cold, no dry season, cold summer", (0, 125, 125)),
    28: ClimateInfo("Dfd", "Cold, no dry season, very cold winter", (0, 70, 95)),
    29: ClimateInfo("ET", "Polar, tundra", (178, 178, 178)),
    30: ClimateInfo("EF", "Polar, frost", (102, 102, 102)),
}

KOPPEN_BY_CODE: Dict[str, ClimateInfo] = {info.code: info for info in KOPPEN_CLASSES.values()}

# Raster cell size in degrees for each published resolution
RESOLUTIONS: Dict[str, float] = {
    "0p00833333": 1 / 120,
    "0p1": 0.1,
    "0p5": 0.5,
    "1p0": 1.0,
}


def climate_from_value(value: int) -> Optional[ClimateInfo]:
    """Map a raster pixel value (1-30) to its class; anything else is no-data."""
    return KOPPEN_CLASSES.get(value)


def validate_resolution(resolution: str) -> float:
    if resolution not in RESOLUTIONS:
        raise ValueError(
            f"Invalid resolution: {resolution}. Must be one of: {', '.join(RESOLUTIONS)}"
        )
    return RESOLUTIONS[resolution]


class CachedClimateClassifier:
    """
    Memoize a classifier per raster cell.

    Coverage points are dense along roads, so many fall in the same cell of
    a coarse raster; the wrapped classifier is called once per cell.
    """

    def __init__(self, classifier: ClimateClassifier, maxsize: int = 65536):
        self._classifier = classifier
        self._cache: LRUCache = LRUCache(maxsize=maxsize)
        self.hits = 0
        self.misses = 0

    def _cell_key(self, lat: float, lng: float, resolution: str) -> Tuple[str, int, int]:
        step = validate_resolution(resolution)
        return (resolution, math.floor(lat / step), math.floor(lng / step))

    def __call__(self, lat: float, lng: float, resolution: str) -> Optional[ClimateInfo]:
        key = self._cell_key(lat, lng, resolution)
        if key in self._cache:
            self.hits += 1
            return self._cache[key]
        self.misses += 1
        info = self._classifier(lat, lng, resolution)
        self._cache[key] = info
        return info

    def clear(self) -> None:
        self._cache.clear()
        self.hits = 0
        self.misses = 0


@dataclass
class ClassificationResult:
    """Points tagged with climate codes, or the reason climate mode is unavailable."""

    points: List[Point]
    classified: int
    unclassified: int
    available: bool
    reason: Optional[str] = None
    zone_info: Dict[str, ClimateInfo] = field(default_factory=dict)


def _existing_codes(points: Sequence[Point]) -> ClassificationResult:
    """Use climate codes already carried by the points (e.g. an enriched FeatureCollection)."""
    codes = {p.climate_code for p in points if p.climate_code}
    classified = sum(1 for p in points if p.climate_code)
    if not classified:
        return ClassificationResult(
            list(points), 0, len(points), False, "no climate classifier configured"
        )
    zone_info = {
        code: KOPPEN_BY_CODE.get(code, ClimateInfo(code, code, (128, 128, 128)))
        for code in codes
    }
    return ClassificationResult(
        list(points), classified, len(points) - classified, True, zone_info=zone_info
    )


def classify_points(
    points: Sequence[Point],
    classifier: Optional[ClimateClassifier],
    resolution: str = "0p5",
) -> ClassificationResult:
    """
    Tag every point with its climate code.

    Without a classifier, codes already present on the points are used. A
    classifier error, or a dataset with no classifiable point, leaves the
    points untouched and marks climate mode as unavailable; the caller then
    falls back to proximity clustering.
    """
    points = list(points)
    if classifier is None:
        return _existing_codes(points)

    validate_resolution(resolution)
    tagged: List[Point] = []
    zone_info: Dict[str, ClimateInfo] = {}
    classified = 0
    try:
        for point in points:
            info = classifier(point.lat, point.lng, resolution)
            if info is None:
                tagged.append(point)
                continue
            zone_info.setdefault(info.code, info)
            tagged.append(replace(point, climate_code=info.code))
            classified += 1
    except Exception as e:
        logger.warning("Climate classifier failed, disabling climate-aware mode: %s", e)
        return ClassificationResult(points, 0, len(points), False, f"classifier error: {e}")

    if classified == 0:
        return ClassificationResult(
            points, 0, len(points), False, "no point could be classified"
        )

    logger.info(
        "Classified %d/%d points into %d climate zones",
        classified, len(points), len(zone_info),
    )
    return ClassificationResult(
        tagged, classified, len(points) - classified, True, zone_info=zone_info
    )
