"""
Closest-point correspondences between a source point set and an indexed target.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from ..acceleration.parallel_executor import ChunkParallelExecutor
from ..acceleration.spatial_index import SpatialIndex
from ..exceptions import InvalidInputError
from ..geometry.point_set import PointSetLike, as_point_set


@dataclass(frozen=True)
class NearestResult:
    """
    Per-source-point nearest target lookup, in source order.

    Attributes:
        indices: Target index per source point, -1 where nothing is within range
        distances: Distance to that target point, inf where unmatched
    """

    indices: np.ndarray
    distances: np.ndarray

    def __len__(self) -> int:
        return int(self.indices.shape[0])

    @property
    def matched(self) -> np.ndarray:
        return self.indices >= 0

    def as_optional(self) -> List[Optional[Tuple[int, float]]]:
        """One ``(target_index, distance)`` or None per source point."""
        return [
            (int(j), float(d)) if j >= 0 else None
            for j, d in zip(self.indices, self.distances)
        ]


@dataclass(frozen=True)
class Correspondences:
    """Matched pairs only; unmatched source points are excluded, not padded."""

    source_indices: np.ndarray
    target_indices: np.ndarray
    distances: np.ndarray

    def __len__(self) -> int:
        return int(self.source_indices.shape[0])

    def pairs(self) -> List[Tuple[int, int, float]]:
        return [
            (int(s), int(t), float(d))
            for s, t, d in zip(self.source_indices, self.target_indices, self.distances)
        ]


def find_nearest(
    source: PointSetLike,
    target: SpatialIndex,
    max_distance: float,
    *,
    early_exit_epsilon: float = 0.0,
    executor: Optional[ChunkParallelExecutor] = None,
) -> NearestResult:
    """
    Find the closest target point within ``max_distance`` for every source point.

    Ties on distance resolve to the lowest target index. With
    ``early_exit_epsilon > 0`` scanning stops at the first candidate closer
    than the epsilon, so ties below it are resolved by scan order instead.

    Args:
        source: Source point set (N x 3).
        target: Spatial index over the target point set. Its cell size should
            be at least ``max_distance`` for the search to be exact.
        max_distance: Maximum accepted pair distance (> 0).
        early_exit_epsilon: Optional early-exit distance (0 disables).
        executor: Optional chunked executor for large source sets.

    Returns:
        NearestResult with one entry per source point.
    """
    if not np.isfinite(max_distance) or max_distance <= 0:
        raise InvalidInputError(f"max_distance must be positive and finite, got {max_distance}")
    src = as_point_set(source)
    indices, distances = target.nearest(
        src,
        max_distance,
        early_exit_epsilon=early_exit_epsilon,
        executor=executor,
    )
    return NearestResult(indices=indices, distances=distances)


def find_correspondences(
    source: PointSetLike,
    target: SpatialIndex,
    max_distance: float,
    *,
    early_exit_epsilon: float = 0.0,
    executor: Optional[ChunkParallelExecutor] = None,
) -> Correspondences:
    """
    Closest-point pairs from ``source`` into ``target`` within ``max_distance``.

    Returns:
        Correspondences for matched source points, in source order.
    """
    nearest = find_nearest(
        source,
        target,
        max_distance,
        early_exit_epsilon=early_exit_epsilon,
        executor=executor,
    )
    mask = nearest.matched
    return Correspondences(
        source_indices=np.flatnonzero(mask).astype(np.int64),
        target_indices=nearest.indices[mask],
        distances=nearest.distances[mask],
    )
