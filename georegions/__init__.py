"""
georegions: partition road-coverage samples into named geographic regions.

Usage:
    from georegions import build_country_regions, RegionBuildConfig

    config = RegionBuildConfig.from_profile("default")
    result = build_country_regions(raw, config=config, classifier=koppen, gazetteer=cities,
                                   country_code="PE")
    for region in result.regions:
        print(region.direction_id, region.city_name, region.point_count)
"""

from .errors import InsufficientDataError, RegionBuildError
from .models import Cluster, ClimateZoneGroup, Point, Region, YearTag
from .pipeline import (
    PipelineDiagnostics,
    RegionBuildConfig,
    RegionBuildResult,
    build_country_regions,
    regions_to_feature_collection,
)

__all__ = [
    "InsufficientDataError",
    "RegionBuildError",
    "Cluster",
    "ClimateZoneGroup",
    "Point",
    "Region",
    "YearTag",
    "PipelineDiagnostics",
    "RegionBuildConfig",
    "RegionBuildResult",
    "build_country_regions",
    "regions_to_feature_collection",
]
