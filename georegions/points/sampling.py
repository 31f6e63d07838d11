"""
Pre-simplification of large coverage datasets.

Density clustering is quadratic, so datasets above a few thousand points are
reduced before clustering: one point per H3 cell when a large reduction is
needed, otherwise a seeded random sample.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from typing import Dict, List, Sequence

import h3
import numpy as np

from ..models import Point
from ..spatial.geodesy import bbox_area_km2, bounding_box

logger = logging.getLogger(__name__)


def _resolution_for_cell_area(cell_area_km2: float) -> int:
    """Return the H3 resolution whose average hexagon area is closest to ``cell_area_km2``."""

    if cell_area_km2 <= 0:
        return 15
    target = math.log(cell_area_km2)
    return min(
        range(16),
        key=lambda res: abs(math.log(h3.average_hexagon_area(res, unit="km^2")) - target),
    )


def grid_sample(
    points: Sequence[Point],
    target_count: int,
    rng: np.random.Generator,
) -> List[Point]:
    """
    Keep one randomly chosen point per H3 cell sized for ``target_count`` cells.

    H3 resolutions step by roughly 7x in area, so the occupied cells can
    outnumber ``target_count``; the per-cell picks are then randomly thinned
    down to exactly ``target_count``.
    """

    target_count = max(int(target_count), 1)
    area = bbox_area_km2(bounding_box(points))
    resolution = _resolution_for_cell_area(area / target_count)

    cells: Dict[str, List[Point]] = defaultdict(list)
    for point in points:
        cells[h3.latlng_to_cell(point.lat, point.lng, resolution)].append(point)

    sampled = [cells[key][int(rng.integers(len(cells[key])))] for key in sorted(cells)]
    logger.info(
        "Grid-sampled %d points into %d H3 cells (res %d)",
        len(points), len(sampled), resolution,
    )
    if len(sampled) > target_count:
        keep = np.sort(rng.choice(len(sampled), size=target_count, replace=False))
        sampled = [sampled[i] for i in keep]
        logger.debug("Thinned grid sample to %d points", target_count)
    return sampled


def simplify_points(
    points: Sequence[Point],
    target_count: int,
    rng: np.random.Generator,
) -> List[Point]:
    """
    Reduce ``points`` towards ``target_count``.

    Grid sampling is used when more than a 2x reduction is required, random
    sampling for smaller reductions, and the input is returned unchanged when
    it is already small enough. Sampled points keep their ``point_id``.
    """
    points = list(points)
    target_count = int(target_count)
    if target_count <= 0 or len(points) <= target_count:
        return points

    if len(points) > target_count * 2:
        return grid_sample(points, target_count, rng)

    keep = np.sort(rng.choice(len(points), size=target_count, replace=False))
    logger.info("Randomly sampled %d of %d points", target_count, len(points))
    return [points[i] for i in keep]
