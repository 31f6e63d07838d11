"""Pipeline orchestration and the region collection artifact."""

from .builder import (
    PipelineDiagnostics,
    RegionBuildConfig,
    RegionBuildResult,
    build_country_regions,
)
from .artifact import (
    RegionCollectionMetadata,
    RegionProperties,
    assign_points_to_regions,
    build_metadata,
    load_raw_dataset,
    load_region_collection,
    points_in_region,
    regions_to_feature_collection,
    save_region_collection,
)

__all__ = [
    "PipelineDiagnostics",
    "RegionBuildConfig",
    "RegionBuildResult",
    "build_country_regions",
    "RegionCollectionMetadata",
    "RegionProperties",
    "assign_points_to_regions",
    "build_metadata",
    "load_raw_dataset",
    "load_region_collection",
    "points_in_region",
    "regions_to_feature_collection",
    "save_region_collection",
]
