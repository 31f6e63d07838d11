"""Köppen-Geiger classification adapter and climate-zone quota allocation."""

from .classifier import (
    KOPPEN_BY_CODE,
    KOPPEN_CLASSES,
    CachedClimateClassifier,
    ClassificationResult,
    ClimateClassifier,
    ClimateInfo,
    classify_points,
    climate_from_value,
)
from .zones import (
    ZoneAllocation,
    ZoneBuildResult,
    allocate_zone_quotas,
    build_zone_regions,
    group_by_climate_zone,
)

__all__ = [
    "KOPPEN_BY_CODE",
    "KOPPEN_CLASSES",
    "CachedClimateClassifier",
    "ClassificationResult",
    "ClimateClassifier",
    "ClimateInfo",
    "classify_points",
    "climate_from_value",
    "ZoneAllocation",
    "ZoneBuildResult",
    "allocate_zone_quotas",
    "build_zone_regions",
    "group_by_climate_zone",
]
