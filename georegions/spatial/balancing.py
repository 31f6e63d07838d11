"""
Cluster-count balancing.

Brings a cluster set to an exact target count: too many clusters are
merged smallest-first into the cluster with the nearest centroid, too few
are split largest-first with a seeded 2-means bisection. Points are never
dropped; when the data cannot support the target (every remaining cluster
is too small or made of coincident points) the balancer stops short and
reports it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Set

import numpy as np

from ..models import Cluster, Point, coords_array
from .geodesy import haversine_km, haversine_to_many

logger = logging.getLogger(__name__)

MIN_SPLIT_SIZE = 3
KMEANS_MAX_ITERATIONS = 10


@dataclass
class BalanceResult:
    """Result of a balancing pass."""

    clusters: List[Cluster]
    target_count: int
    merges: int = 0
    splits: int = 0

    @property
    def reached_target(self) -> bool:
        return len(self.clusters) == self.target_count


def _renumber(clusters: List[Cluster]) -> List[Cluster]:
    for i, cluster in enumerate(clusters):
        cluster.cluster_id = i
    return clusters


def kmeans_bisect(
    points: Sequence[Point],
    rng: np.random.Generator,
    max_iterations: int = KMEANS_MAX_ITERATIONS,
) -> List[List[Point]]:
    """
    Split ``points`` in two with k-means (k=2) on haversine distance.

    Seeds are two points with distinct coordinates drawn from ``points``.
    Iterates assign-nearest / recompute-centroid until assignments stop
    changing or ``max_iterations`` rounds have run. Empty halves are dropped,
    so a degenerate split returns a single group.
    """
    coords = coords_array(points)
    distinct = np.unique(coords, axis=0)
    if len(distinct) < 2:
        return [list(points)]

    seed_rows = rng.choice(len(distinct), size=2, replace=False)
    centroids = distinct[seed_rows].astype(float)
    assignments: Optional[np.ndarray] = None

    for _ in range(max_iterations):
        dist = np.vstack(
            [haversine_to_many(c[0], c[1], coords[:, 0], coords[:, 1]) for c in centroids]
        )
        new_assignments = np.argmin(dist, axis=0)
        converged = assignments is not None and np.array_equal(assignments, new_assignments)
        assignments = new_assignments
        for k in range(2):
            mask = assignments == k
            if mask.any():
                centroids[k] = coords[mask].mean(axis=0)
        if converged:
            break

    groups = [[p for p, a in zip(points, assignments) if a == k] for k in range(2)]
    return [g for g in groups if g]


def _merge_smallest(clusters: List[Cluster]) -> bool:
    """Merge the smallest cluster into its nearest neighbor. Returns False if impossible."""
    if len(clusters) < 2:
        return False
    smallest = min(clusters, key=lambda c: (c.size, c.cluster_id))
    remaining = [c for c in clusters if c is not smallest]

    s_lat, s_lng = smallest.centroid()
    nearest = min(
        remaining,
        key=lambda c: (haversine_km(s_lat, s_lng, *c.centroid()), c.cluster_id),
    )
    logger.debug(
        "Merging cluster %d (%d points) into cluster %d",
        smallest.cluster_id, smallest.size, nearest.cluster_id,
    )
    nearest.points.extend(smallest.points)
    clusters.remove(smallest)
    return True


def _split_largest(
    clusters: List[Cluster],
    rng: np.random.Generator,
    unsplittable: Set[int],
) -> bool:
    """Bisect the largest splittable cluster. Returns False if none can be split."""
    candidates = sorted(
        (c for c in clusters if id(c) not in unsplittable),
        key=lambda c: (-c.size, c.cluster_id),
    )
    for largest in candidates:
        if largest.size < MIN_SPLIT_SIZE:
            return False
        halves = kmeans_bisect(largest.points, rng)
        if len(halves) < 2:
            unsplittable.add(id(largest))
            continue
        logger.debug(
            "Split cluster %d (%d points) into %s",
            largest.cluster_id, largest.size, [len(h) for h in halves],
        )
        index = clusters.index(largest)
        next_id = max(c.cluster_id for c in clusters) + 1
        clusters[index : index + 1] = [
            Cluster(cluster_id=next_id + k, points=half) for k, half in enumerate(halves)
        ]
        return True
    return False


def balance_clusters(
    clusters: Sequence[Cluster],
    target_count: int,
    rng: np.random.Generator,
) -> BalanceResult:
    """
    Adjust ``clusters`` to exactly ``target_count`` when the data permits.

    Args:
        clusters: Cluster set from density clustering (mutated in place)
        target_count: Desired number of clusters (>= 1)
        rng: Seeded generator for k-means seeding

    Returns:
        BalanceResult with clusters renumbered 0..n-1
    """
    if target_count < 1:
        raise ValueError(f"target_count must be >= 1, got {target_count}")

    working = [c for c in clusters if c.size > 0]
    result = BalanceResult(clusters=working, target_count=target_count)

    while len(working) > target_count:
        if not _merge_smallest(working):
            break
        result.merges += 1
    _renumber(working)

    unsplittable: Set[int] = set()
    while len(working) < target_count:
        if not _split_largest(working, rng, unsplittable):
            break
        result.splits += 1
    _renumber(working)

    if not result.reached_target:
        logger.warning(
            "Cluster balancing stopped at %d clusters (target %d): data too sparse to split further",
            len(working), target_count,
        )
    else:
        logger.info(
            "Balanced to %d clusters (%d merges, %d splits)",
            len(working), result.merges, result.splits,
        )
    return result
