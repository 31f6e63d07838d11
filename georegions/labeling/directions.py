"""
Directional region identifiers.

Each region is labeled by its compass octant and distance rank relative to
the country centroid (the centroid of the region centroids): ``C`` for the
region nearest the centre, then ``N1``, ``N2``... ordered by distance.
Primary directions are filled before intercardinal ones, so a country with
enough regions always has at least one of each of N, E, S and W.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from ..models import Region
from ..spatial.geodesy import bearing_deg, haversine_km

logger = logging.getLogger(__name__)

CENTER = "C"
OCTANTS = ("N", "NE", "E", "SE", "S", "SW", "W", "NW")
PRIMARY_NEIGHBORS: Dict[str, Tuple[str, str]] = {
    "N": ("NE", "NW"),
    "E": ("NE", "SE"),
    "S": ("SE", "SW"),
    "W": ("SW", "NW"),
}


@dataclass(eq=False)
class _Placement:
    region: Region
    bearing: float
    distance_km: float


def octant(bearing: float) -> str:
    """Compass octant for a bearing; boundaries at 22.5, 67.5, ... degrees."""
    return OCTANTS[int(((bearing % 360.0) + 22.5) // 45.0) % 8]


def country_centroid(regions: Sequence[Region]) -> Tuple[float, float]:
    centroids = [r.centroid() for r in regions]
    lat = sum(c[0] for c in centroids) / len(centroids)
    lng = sum(c[1] for c in centroids) / len(centroids)
    return lat, lng


def assign_direction_ids(regions: Sequence[Region]) -> List[Region]:
    """
    Label every region with a unique directional id.

    Mutates ``direction_id`` only; geometry is untouched. Returns the regions
    sorted by their new ids (``C`` first, then octant order, then rank).
    """
    regions = list(regions)
    if not regions:
        return regions

    c_lat, c_lng = country_centroid(regions)
    placements = []
    for region in regions:
        r_lat, r_lng = region.centroid()
        placements.append(
            _Placement(
                region=region,
                bearing=bearing_deg(c_lat, c_lng, r_lat, r_lng),
                distance_km=haversine_km(c_lat, c_lng, r_lat, r_lng),
            )
        )

    center = min(placements, key=lambda p: (p.distance_km, p.region.region_id))
    center.region.direction_id = CENTER

    buckets: Dict[str, List[_Placement]] = {name: [] for name in OCTANTS}
    for placement in placements:
        if placement is not center:
            buckets[octant(placement.bearing)].append(placement)

    for primary, (left, right) in PRIMARY_NEIGHBORS.items():
        if buckets[primary]:
            continue
        candidates = buckets[left] + buckets[right]
        if not candidates:
            continue
        nearest = min(candidates, key=lambda p: (p.distance_km, p.region.region_id))
        source = left if nearest in buckets[left] else right
        buckets[source].remove(nearest)
        buckets[primary].append(nearest)
        logger.debug(
            "Moved region %d from %s to empty %s bucket",
            nearest.region.region_id, source, primary,
        )

    ordered = [center.region]
    for name in OCTANTS:
        ranked = sorted(buckets[name], key=lambda p: (p.distance_km, p.region.region_id))
        for rank, placement in enumerate(ranked, start=1):
            placement.region.direction_id = f"{name}{rank}"
            ordered.append(placement.region)

    logger.info(
        "Assigned direction ids: %s", ", ".join(r.direction_id for r in ordered)
    )
    return ordered
