"""
Density-based clustering of coverage points with noise reassignment.

This module provides:
1. DBSCAN-style flood-fill clustering on great-circle distances
2. Noise reassignment to the nearest cluster centroid (no point is lost)
3. Quality metrics (silhouette score on haversine distances)
4. Diagnostics with actionable suggestions for sparse datasets

The neighborhood radius is normally derived by the caller from the area
of the point set and the number of regions wanted, see
:func:`~georegions.spatial.geodesy.cluster_distance_km`.
"""

from __future__ import annotations

import logging
import warnings
from collections import deque
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np
from sklearn.metrics import silhouette_score
from sklearn.neighbors import BallTree

from ..models import Cluster, Point, coords_array
from .geodesy import EARTH_RADIUS_KM, haversine_to_many

logger = logging.getLogger(__name__)


@dataclass
class ClusteringConfig:
    """Configuration for density clustering."""

    max_distance_km: float
    """Neighborhood radius in kilometres."""

    min_points: int = 3
    """Minimum neighbors (excluding the point itself) needed to seed a cluster."""

    silhouette_sample_size: int = 2000
    """Upper bound on points used for the silhouette score."""

    def __post_init__(self):
        if self.max_distance_km < 0:
            raise ValueError(f"max_distance_km must be >= 0, got {self.max_distance_km}")
        if self.min_points < 1:
            raise ValueError(f"min_points must be >= 1, got {self.min_points}")


@dataclass
class ClusteringDiagnostics:
    """Diagnostics for one clustering pass."""

    num_points: int
    """Total number of points provided."""

    num_clusters: int
    """Number of clusters after noise reassignment."""

    num_noise: int
    """Points that failed the density threshold and were reassigned."""

    max_distance_km: float = 0.0

    cluster_sizes: List[int] = field(default_factory=list)

    silhouette_score: Optional[float] = None
    """Silhouette score (higher = better separation, range [-1, 1])."""

    singleton_seeded: bool = False
    """Whether no dense cluster existed and a noise point had to seed one."""

    suggestions: List[str] = field(default_factory=list)


def _compute_cluster_quality(
    X_rad: np.ndarray,
    labels: np.ndarray,
    num_clusters: int,
    rng: Optional[np.random.Generator] = None,
    sample_size: int = 2000,
) -> Optional[float]:
    """
    Compute silhouette score on haversine distances.

    Returns None if quality cannot be computed (e.g., < 2 clusters).
    """
    if num_clusters < 2 or len(labels) <= num_clusters:
        return None

    random_state = int(rng.integers(2**31 - 1)) if rng is not None else 0
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            score = silhouette_score(
                X_rad,
                labels,
                metric="haversine",
                sample_size=min(sample_size, len(labels)),
                random_state=random_state,
            )
        return float(score)
    except ValueError:
        return None


def _sparsity_suggestions(num_points: int, num_noise: int, config: ClusteringConfig) -> List[str]:
    suggestions = []
    if num_points <= config.min_points:
        suggestions.append(
            f"Only {num_points} points provided, need more than {config.min_points} "
            "to form a dense cluster. All points end up in a single seeded cluster."
        )
    elif num_points and num_noise > num_points * 0.5:
        suggestions.append(
            f"High noise ratio ({num_noise}/{num_points} = {num_noise / num_points:.1%}). "
            "Consider a larger max_distance_km or a smaller min_points."
        )
    return suggestions


def density_cluster(
    points: Sequence[Point],
    config: ClusteringConfig,
    rng: Optional[np.random.Generator] = None,
) -> Tuple[List[Cluster], ClusteringDiagnostics]:
    """
    Group points into spatial clusters.

    For each unvisited point the neighbors within ``max_distance_km`` are
    found; points with fewer than ``min_points`` neighbors are deferred as
    potential noise, otherwise a cluster is grown by flood fill through every
    neighbor that itself meets the threshold. Remaining noise points are then
    attached to the cluster with the nearest centroid, with centroids updated
    as points are added. If no dense cluster exists the first noise point
    seeds a singleton cluster.

    Args:
        points: Normalized points
        config: Clustering parameters
        rng: Generator used only for silhouette sampling

    Returns:
        (clusters, diagnostics). Every input point belongs to exactly one cluster.
    """
    points = list(points)
    n = len(points)
    if n == 0:
        return [], ClusteringDiagnostics(
            num_points=0,
            num_clusters=0,
            num_noise=0,
            max_distance_km=config.max_distance_km,
            suggestions=["No points provided."],
        )

    coords = coords_array(points)
    X_rad = np.radians(coords)
    tree = BallTree(X_rad, metric="haversine")
    radius = config.max_distance_km / EARTH_RADIUS_KM

    def neighbors(i: int) -> np.ndarray:
        found = tree.query_radius(X_rad[i : i + 1], r=radius)[0]
        return found[found != i]

    visited = np.zeros(n, dtype=bool)
    labels = np.full(n, -1, dtype=int)
    members: List[List[int]] = []

    for i in range(n):
        if visited[i]:
            continue
        visited[i] = True

        seed_neighbors = neighbors(i)
        if len(seed_neighbors) < config.min_points:
            continue

        cid = len(members)
        labels[i] = cid
        cluster_members = [i]
        queue = deque(seed_neighbors.tolist())

        while queue:
            j = queue.popleft()
            if not visited[j]:
                visited[j] = True
                expansion = neighbors(j)
                if len(expansion) >= config.min_points:
                    queue.extend(k for k in expansion.tolist() if labels[k] < 0)
            if labels[j] < 0:
                labels[j] = cid
                cluster_members.append(j)

        members.append(cluster_members)

    noise = np.flatnonzero(labels < 0)
    num_noise = len(noise)
    singleton_seeded = False

    if num_noise:
        sums = np.array(
            [coords[m].sum(axis=0) for m in members], dtype=float
        ).reshape(-1, 2)
        counts = np.array([len(m) for m in members], dtype=float)

        for i in noise:
            if len(members) == 0:
                members.append([int(i)])
                labels[i] = 0
                sums = coords[i : i + 1].astype(float).copy()
                counts = np.array([1.0])
                singleton_seeded = True
                continue
            centers = sums / counts[:, None]
            dist = haversine_to_many(coords[i, 0], coords[i, 1], centers[:, 0], centers[:, 1])
            nearest = int(np.argmin(dist))
            members[nearest].append(int(i))
            labels[i] = nearest
            sums[nearest] += coords[i]
            counts[nearest] += 1

    clusters = [
        Cluster(cluster_id=cid, points=[points[k] for k in m])
        for cid, m in enumerate(members)
    ]

    silhouette = _compute_cluster_quality(
        X_rad, labels, len(clusters), rng, config.silhouette_sample_size
    )
    diagnostics = ClusteringDiagnostics(
        num_points=n,
        num_clusters=len(clusters),
        num_noise=num_noise,
        max_distance_km=config.max_distance_km,
        cluster_sizes=[c.size for c in clusters],
        silhouette_score=silhouette,
        singleton_seeded=singleton_seeded,
        suggestions=_sparsity_suggestions(n, num_noise, config),
    )

    logger.info(
        "Density clustering: %d points -> %d clusters (%d noise reassigned, radius %.2f km)",
        n, len(clusters), num_noise, config.max_distance_km,
    )
    return clusters, diagnostics
