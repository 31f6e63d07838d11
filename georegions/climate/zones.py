"""
Climate-zone-aware region allocation.

Points are grouped by Köppen-Geiger code, each zone receives an integer
region quota proportional to a sub-linear score of its share of the points,
and each zone is then clustered and balanced to its own quota.

Zone processing order is a tie-break policy: zones are handled in sorted
code order and a point claimed by an earlier zone is never reused by a
later one (see :class:`ZoneBuildResult.ownership`).
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

import numpy as np
from sklearn.neighbors import BallTree

from ..models import Cluster, ClimateZoneGroup, Point, Region, coords_array
from ..spatial.balancing import BalanceResult, balance_clusters
from ..spatial.clustering import ClusteringConfig, ClusteringDiagnostics, density_cluster
from ..spatial.geodesy import bbox_area_km2, bounding_box, cluster_distance_km
from ..spatial.hulls import MIN_HULL_POINTS, HullDiagnostics, clusters_to_regions
from .classifier import ClimateInfo

logger = logging.getLogger(__name__)

SCORE_EXPONENT = 0.7
POINTS_PER_REGION = 30
SINGLE_REGION_THRESHOLD = 50


def group_by_climate_zone(
    points: Sequence[Point],
    zone_info: Optional[Mapping[str, ClimateInfo]] = None,
) -> Dict[str, ClimateZoneGroup]:
    """
    Group points by ``climate_code``.

    Points without a code (typically coastal samples falling on a raster
    no-data cell) join the zone of the nearest classified point. Groups are
    returned in sorted code order.
    """
    zone_info = zone_info or {}
    classified = [p for p in points if p.climate_code]
    unclassified = [p for p in points if not p.climate_code]

    groups: Dict[str, ClimateZoneGroup] = {}
    for point in classified:
        group = groups.get(point.climate_code)
        if group is None:
            info = zone_info.get(point.climate_code)
            group = ClimateZoneGroup(
                code=point.climate_code,
                name=info.name if info else None,
                color=info.color if info else None,
            )
            groups[point.climate_code] = group
        group.points.append(point)

    if unclassified and classified:
        tree = BallTree(np.radians(coords_array(classified)), metric="haversine")
        _, nearest = tree.query(np.radians(coords_array(unclassified)), k=1)
        for point, idx in zip(unclassified, nearest[:, 0]):
            groups[classified[int(idx)].climate_code].points.append(point)
        logger.info("Attached %d unclassified points to their nearest zone", len(unclassified))

    return {code: groups[code] for code in sorted(groups)}


@dataclass
class ZoneAllocation:
    """Integer region quota per climate zone."""

    quotas: Dict[str, int]
    target_regions: int
    scores: Dict[str, float] = field(default_factory=dict)
    caps: Dict[str, int] = field(default_factory=dict)
    passes: int = 0
    warnings: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(self.quotas.values())

    @property
    def converged(self) -> bool:
        return self.total == self.target_regions


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def allocate_zone_quotas(
    groups: Mapping[str, ClimateZoneGroup],
    target_regions: int,
    score_exponent: float = SCORE_EXPONENT,
    points_per_region: int = POINTS_PER_REGION,
) -> ZoneAllocation:
    """
    Compute a region quota for every zone.

    Each zone scores ``share ** score_exponent * 100`` and receives
    ``round(score / total_score * target_regions)`` regions, at least one and
    at most ``ceil(points / points_per_region)``. The sum is then reconciled
    against ``target_regions``: regions are added to the largest zones still
    under their cap, or removed from the smallest zones above one. A pass
    that changes nothing ends reconciliation, so an unreachable target leaves
    the allocation off-target with a warning rather than looping.
    """
    if target_regions < 1:
        raise ValueError(f"target_regions must be >= 1, got {target_regions}")

    zones = [code for code, g in groups.items() if g.size > 0]
    allocation = ZoneAllocation(quotas={}, target_regions=target_regions)
    if not zones:
        allocation.warnings.append("No climate zone has any point")
        return allocation

    total_points = sum(groups[code].size for code in zones)
    for code in zones:
        share = groups[code].size / total_points
        allocation.scores[code] = math.pow(share, score_exponent) * 100
    total_score = sum(allocation.scores.values())

    for code in zones:
        quota = max(1, _round_half_up(allocation.scores[code] / total_score * target_regions))
        cap = max(1, math.ceil(groups[code].size / points_per_region))
        allocation.caps[code] = cap
        allocation.quotas[code] = min(quota, cap)

    largest_first = sorted(zones, key=lambda c: (-groups[c].size, c))
    smallest_first = sorted(zones, key=lambda c: (groups[c].size, c))
    max_passes = target_regions + len(zones)

    while allocation.total != target_regions and allocation.passes < max_passes:
        allocation.passes += 1
        changed = False
        if allocation.total < target_regions:
            for code in largest_first:
                if allocation.total >= target_regions:
                    break
                if allocation.quotas[code] < allocation.caps[code]:
                    allocation.quotas[code] += 1
                    changed = True
        else:
            for code in smallest_first:
                if allocation.total <= target_regions:
                    break
                if allocation.quotas[code] > 1:
                    allocation.quotas[code] -= 1
                    changed = True
        if not changed:
            break

    if not allocation.converged:
        message = (
            f"Zone quotas sum to {allocation.total} regions, target was {target_regions} "
            f"({len(zones)} zones)"
        )
        allocation.warnings.append(message)
        logger.warning(message)

    for code in zones:
        logger.info(
            "Climate zone %s: %d points -> %d regions",
            code, groups[code].size, allocation.quotas[code],
        )
    return allocation


@dataclass
class ZoneBuildResult:
    """Regions built per climate zone plus bookkeeping."""

    regions: List[Region] = field(default_factory=list)
    hull_diagnostics: HullDiagnostics = field(default_factory=HullDiagnostics)
    ownership: Dict[int, str] = field(default_factory=dict)
    """point_id -> code of the zone whose region claimed the point."""

    clustering: Dict[str, ClusteringDiagnostics] = field(default_factory=dict)
    balancing: Dict[str, BalanceResult] = field(default_factory=dict)
    skipped_zones: List[str] = field(default_factory=list)
    skipped_points: int = 0


def build_zone_regions(
    groups: Mapping[str, ClimateZoneGroup],
    allocation: ZoneAllocation,
    rng: np.random.Generator,
    *,
    min_points: int = 3,
    single_region_threshold: int = SINGLE_REGION_THRESHOLD,
    ownership: Optional[Dict[int, str]] = None,
) -> ZoneBuildResult:
    """
    Build each zone's regions in sorted zone-code order.

    Args:
        groups: Points grouped by climate zone
        allocation: Quotas from :func:`allocate_zone_quotas`
        rng: Seeded generator threaded into balancing
        min_points: Density threshold for zone-scoped clustering
        single_region_threshold: Zones with fewer available points get one region
        ownership: Existing point ownership to respect (point_id -> zone code)

    Returns:
        ZoneBuildResult with regions numbered in build order
    """
    result = ZoneBuildResult(ownership=dict(ownership or {}))

    for code in sorted(groups):
        zone = groups[code]
        quota = allocation.quotas.get(code, 0)
        if quota <= 0:
            continue

        available = [p for p in zone.points if p.point_id not in result.ownership]
        if len(available) < MIN_HULL_POINTS:
            logger.info(
                "Climate zone %s has insufficient available points (%d), skipping",
                code, len(available),
            )
            result.skipped_zones.append(code)
            result.skipped_points += len(available)
            continue

        if quota == 1 or len(available) < single_region_threshold:
            clusters = [Cluster(cluster_id=0, points=available)]
        else:
            distance = cluster_distance_km(bbox_area_km2(bounding_box(available)), quota)
            clusters, diag = density_cluster(
                available, ClusteringConfig(max_distance_km=distance, min_points=min_points), rng
            )
            result.clustering[code] = diag
            balanced = balance_clusters(clusters, quota, rng)
            result.balancing[code] = balanced
            clusters = balanced.clusters

        regions, hull_diag = clusters_to_regions(
            clusters,
            climate_zone=code,
            climate_name=zone.name,
            first_region_id=len(result.regions),
        )
        result.hull_diagnostics.merge(hull_diag)
        for region in regions:
            for point in region.points:
                result.ownership[point.point_id] = code
        result.regions.extend(regions)

    logger.info(
        "Built %d climate-based regions across %d zones",
        len(result.regions), len(groups),
    )
    return result
