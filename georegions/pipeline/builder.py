"""
End-to-end region construction for one country.

normalize -> simplify -> (climate zones | proximity clustering) -> hulls
-> directional ids -> city names

The run is a single synchronous batch transform. All randomness comes from
one ``numpy.random.Generator`` seeded from :attr:`RegionBuildConfig.seed`,
so identical inputs produce identical regions.
"""

from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Mapping, Optional

import numpy as np

from ..climate.classifier import ClimateClassifier, classify_points
from ..climate.zones import allocate_zone_quotas, build_zone_regions, group_by_climate_zone
from ..errors import InsufficientDataError
from ..labeling.cities import CityGazetteer, attribute_city_names
from ..labeling.directions import assign_direction_ids
from ..models import Point, Region
from ..points.normalizer import normalize_points
from ..points.sampling import simplify_points
from ..spatial.balancing import balance_clusters
from ..spatial.clustering import ClusteringConfig, ClusteringDiagnostics, density_cluster
from ..spatial.geodesy import bbox_area_km2, bounding_box, cluster_distance_km
from ..spatial.hulls import HullDiagnostics, clusters_to_regions
from ..tools.config_loader import ConfigLoader

logger = logging.getLogger(__name__)

# YAML profiles nest some settings under these sections
_SECTIONS = ("zones", "cities")


@dataclass
class RegionBuildConfig:
    """Tunable parameters for one pipeline run."""

    target_regions: int = 32
    min_points: int = 3
    climate_aware: bool = True
    climate_resolution: str = "0p5"
    max_working_points: int = 10000
    """Datasets above this size are simplified before clustering."""

    seed: int = 42

    score_exponent: float = 0.7
    points_per_region: int = 30
    single_region_threshold: int = 50

    max_cities: int = 2
    dominance_ratio: float = 3.0

    def __post_init__(self):
        if self.target_regions < 1:
            raise ValueError(f"target_regions must be >= 1, got {self.target_regions}")
        if self.min_points < 1:
            raise ValueError(f"min_points must be >= 1, got {self.min_points}")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RegionBuildConfig":
        """Build from a flat or sectioned (``zones:``, ``cities:``) mapping."""
        flat: Dict[str, Any] = {}
        for key, value in (data or {}).items():
            if key in _SECTIONS and isinstance(value, Mapping):
                flat.update(value)
            else:
                flat[key] = value
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(flat) - known)
        if unknown:
            logger.debug("Ignoring unknown config keys: %s", ", ".join(unknown))
        return cls(**{k: v for k, v in flat.items() if k in known})

    @classmethod
    def from_profile(cls, profile_name: Optional[str] = None) -> "RegionBuildConfig":
        """Load a YAML profile from ``configs/`` (``REGION_PROFILE`` when no name is given)."""
        if profile_name is None:
            return cls.from_dict(ConfigLoader.load_default_or_env_profile())
        return cls.from_dict(ConfigLoader.load_profile(profile_name))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PipelineDiagnostics:
    """Observable side effects of a run: drops, fallbacks and what was used."""

    input_records: int = 0
    invalid_records: int = 0
    working_points: int = 0
    simplified: bool = False

    mode: str = "proximity"
    """``climate`` or ``proximity``."""

    climate_fallback_reason: Optional[str] = None
    unclassified_points: int = 0
    zone_quotas: Dict[str, int] = field(default_factory=dict)
    skipped_zones: List[str] = field(default_factory=list)
    skipped_zone_points: int = 0

    clustering: Optional[ClusteringDiagnostics] = None
    zone_clustering: Dict[str, ClusteringDiagnostics] = field(default_factory=dict)
    merges: int = 0
    splits: int = 0

    hulls: HullDiagnostics = field(default_factory=HullDiagnostics)
    target_regions: int = 0
    actual_regions: int = 0
    warnings: List[str] = field(default_factory=list)
    elapsed_sec: float = 0.0

    @property
    def dropped_points(self) -> int:
        """Points that ended up in no region."""
        return self.hulls.dropped_points + self.hulls.failed_points + self.skipped_zone_points

    @property
    def reached_target(self) -> bool:
        return self.actual_regions == self.target_regions


@dataclass
class RegionBuildResult:
    """Regions for one country plus the points they were built from."""

    regions: List[Region]
    points: List[Point]
    diagnostics: PipelineDiagnostics


def _proximity_regions(
    points: List[Point],
    config: RegionBuildConfig,
    rng: np.random.Generator,
    diagnostics: PipelineDiagnostics,
) -> List[Region]:
    area = bbox_area_km2(bounding_box(points))
    distance = cluster_distance_km(area, config.target_regions)
    logger.info(
        "Area: %.2f sq km, Points: %d, clustering with max distance %.2f km",
        area, len(points), distance,
    )

    clusters, cluster_diag = density_cluster(
        points, ClusteringConfig(max_distance_km=distance, min_points=config.min_points), rng
    )
    diagnostics.clustering = cluster_diag

    balanced = balance_clusters(clusters, config.target_regions, rng)
    diagnostics.merges += balanced.merges
    diagnostics.splits += balanced.splits

    regions, hull_diag = clusters_to_regions(balanced.clusters)
    diagnostics.hulls.merge(hull_diag)
    return regions


def _climate_regions(
    points: List[Point],
    zone_info,
    config: RegionBuildConfig,
    rng: np.random.Generator,
    diagnostics: PipelineDiagnostics,
) -> List[Region]:
    groups = group_by_climate_zone(points, zone_info)
    allocation = allocate_zone_quotas(
        groups,
        config.target_regions,
        score_exponent=config.score_exponent,
        points_per_region=config.points_per_region,
    )
    diagnostics.zone_quotas = dict(allocation.quotas)
    diagnostics.warnings.extend(allocation.warnings)

    built = build_zone_regions(
        groups,
        allocation,
        rng,
        min_points=config.min_points,
        single_region_threshold=config.single_region_threshold,
    )
    diagnostics.zone_clustering = built.clustering
    diagnostics.merges += sum(b.merges for b in built.balancing.values())
    diagnostics.splits += sum(b.splits for b in built.balancing.values())
    diagnostics.skipped_zones = built.skipped_zones
    diagnostics.skipped_zone_points = built.skipped_points
    diagnostics.hulls.merge(built.hull_diagnostics)
    return built.regions


def build_country_regions(
    raw: Any,
    *,
    config: Optional[RegionBuildConfig] = None,
    classifier: Optional[ClimateClassifier] = None,
    gazetteer: Optional[CityGazetteer] = None,
    country_code: Optional[str] = None,
) -> RegionBuildResult:
    """
    Partition one country's coverage points into labeled regions.

    Args:
        raw: Raw dataset accepted by :func:`~georegions.points.normalize_points`
        config: Pipeline parameters (defaults if None)
        classifier: Climate lookup; without it climate-aware mode degrades
            to proximity clustering unless the points already carry codes
        gazetteer: City lookup used to name regions
        country_code: ISO code used to filter gazetteer cities

    Returns:
        RegionBuildResult with regions ordered by directional id

    Raises:
        InsufficientDataError: No valid point, or no region could be built
    """
    config = config or RegionBuildConfig()
    started = time.perf_counter()
    diagnostics = PipelineDiagnostics(target_regions=config.target_regions)

    normalized = normalize_points(raw)
    diagnostics.input_records = normalized.total_records
    diagnostics.invalid_records = normalized.invalid_count
    if not normalized.points:
        raise InsufficientDataError("No valid coordinates in dataset", num_points=0)

    rng = np.random.default_rng(config.seed)

    points = normalized.points
    if len(points) > config.max_working_points:
        target = int(min(config.max_working_points, len(points) / 3))
        points = simplify_points(points, target, rng)
        diagnostics.simplified = True
    diagnostics.working_points = len(points)

    regions: List[Region] = []
    if config.climate_aware:
        classification = classify_points(points, classifier, config.climate_resolution)
        if classification.available:
            points = classification.points
            diagnostics.mode = "climate"
            diagnostics.unclassified_points = classification.unclassified
            regions = _climate_regions(points, classification.zone_info, config, rng, diagnostics)
        else:
            diagnostics.climate_fallback_reason = classification.reason
            diagnostics.warnings.append(
                f"Climate-aware mode unavailable ({classification.reason}); using proximity clustering"
            )
            logger.warning("Climate-aware mode unavailable: %s", classification.reason)

    if diagnostics.mode == "proximity":
        regions = _proximity_regions(points, config, rng, diagnostics)

    if not regions:
        raise InsufficientDataError(
            f"No region could be built from {len(points)} points", num_points=len(points)
        )

    regions = assign_direction_ids(regions)
    attribute_city_names(
        regions,
        gazetteer,
        country_code,
        max_cities=config.max_cities,
        dominance_ratio=config.dominance_ratio,
    )

    diagnostics.actual_regions = len(regions)
    if not diagnostics.reached_target:
        diagnostics.warnings.append(
            f"Built {len(regions)} regions, target was {config.target_regions}"
        )
    if diagnostics.dropped_points:
        logger.info("%d points are not covered by any region", diagnostics.dropped_points)
    diagnostics.elapsed_sec = time.perf_counter() - started

    logger.info(
        "Created %d regions (%s mode) from %d points in %.2fs",
        len(regions), diagnostics.mode, len(points), diagnostics.elapsed_sec,
    )
    return RegionBuildResult(regions=regions, points=points, diagnostics=diagnostics)
