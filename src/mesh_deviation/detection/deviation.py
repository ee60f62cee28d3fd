"""
Point-to-point Deviation Analysis

This module computes, for every vertex of the aligned query mesh, the distance
to its nearest reference vertex, and summarizes the resulting deviation field.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Dict, Optional, TYPE_CHECKING

import numpy as np
from sklearn.neighbors import KDTree

from ..acceleration.parallel_executor import ChunkParallelExecutor
from ..acceleration.spatial_index import SpatialIndex, cell_size_for
from ..exceptions import InvalidInputError
from ..geometry.point_set import PointSetLike, as_point_set
from ..utils.logging import setup_logger

if TYPE_CHECKING:
    from ..utils.config import DeviationConfig

logger = setup_logger(__name__)


@dataclass(frozen=True)
class DeviationStatistics:
    """
    Summary of a deviation field.

    Attributes:
        min: Smallest deviation
        max: Largest deviation
        mean: Mean deviation
        median: Median deviation (mean of the two middle values for even n)
        standard_deviation: Population standard deviation
        rms: Root mean square deviation
        matching_fraction: Share of deviations <= matching_threshold
        deviating_fraction: 1 - matching_fraction
        matching_threshold: Threshold the fractions were computed with
        n: Number of deviations
    """

    min: float
    max: float
    mean: float
    median: float
    standard_deviation: float
    rms: float
    matching_fraction: float
    deviating_fraction: float
    matching_threshold: float
    n: int

    def as_dict(self) -> Dict[str, float]:
        return {
            "min": self.min,
            "max": self.max,
            "mean": self.mean,
            "median": self.median,
            "standard_deviation": self.standard_deviation,
            "rms": self.rms,
            "matching_fraction": self.matching_fraction,
            "deviating_fraction": self.deviating_fraction,
            "matching_threshold": self.matching_threshold,
            "n": self.n,
        }


@dataclass(frozen=True)
class DeviationResult:
    """
    Result of a deviation analysis.

    Attributes:
        deviations: Per-query-point distance to the nearest reference point,
            index-aligned with the query point set
        nearest_indices: Index of that nearest reference point
        stats: Summary statistics
        metadata: Cell size, fallback counts and timing
    """

    deviations: np.ndarray
    nearest_indices: np.ndarray
    stats: DeviationStatistics
    metadata: Optional[Dict] = None

    @property
    def matching_mask(self) -> np.ndarray:
        return self.deviations <= self.stats.matching_threshold


def _validate_threshold(matching_threshold: float) -> float:
    try:
        value = float(matching_threshold)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"matching_threshold must be a real number, got {matching_threshold!r}") from e
    if not math.isfinite(value) or value < 0:
        raise InvalidInputError(f"matching_threshold must be non-negative and finite, got {matching_threshold}")
    return value


def compute_statistics(deviations: np.ndarray, matching_threshold: float) -> DeviationStatistics:
    """
    Summarize a deviation field.

    Sorts a copy for min/max/median; mean, population standard deviation and
    RMS are taken over the unsorted values.

    Args:
        deviations: 1D array of non-negative finite distances
        matching_threshold: Deviations at or below this count as matching

    Returns:
        DeviationStatistics

    Raises:
        InvalidInputError: If the field is empty or holds non-finite values.
    """
    threshold = _validate_threshold(matching_threshold)
    d = np.asarray(deviations, dtype=np.float64).ravel()
    if d.size == 0:
        raise InvalidInputError("Cannot compute statistics of an empty deviation field")
    if not np.all(np.isfinite(d)):
        raise InvalidInputError("Deviation field contains non-finite values")

    n = int(d.size)
    ordered = np.sort(d)
    mid = n // 2
    if n % 2:
        median = float(ordered[mid])
    else:
        median = float((ordered[mid - 1] + ordered[mid]) * 0.5)

    mean = float(np.mean(d))
    std = float(np.sqrt(np.mean(np.square(d - mean))))
    rms = float(np.sqrt(np.mean(np.square(d))))
    matching_fraction = float(np.count_nonzero(d <= threshold)) / n

    return DeviationStatistics(
        min=float(ordered[0]),
        max=float(ordered[-1]),
        mean=mean,
        median=median,
        standard_deviation=std,
        rms=rms,
        matching_fraction=matching_fraction,
        deviating_fraction=1.0 - matching_fraction,
        matching_threshold=threshold,
        n=n,
    )


class DeviationAnalyzer:
    """Nearest-reference-point deviation of an aligned query point set."""

    def __init__(
        self,
        matching_threshold: float = 0.01,
        cells_per_diagonal: int = 50,
        early_exit_epsilon: float = 0.0,
        executor: Optional[ChunkParallelExecutor] = None,
    ):
        """
        Args:
            matching_threshold: Deviations at or below this count as matching.
            cells_per_diagonal: Grid resolution; the cell size is the reference
                bounding diagonal divided by this.
            early_exit_epsilon: Accept the first candidate closer than this
                without scanning the rest of the neighborhood. The default 0
                keeps every deviation the true minimum; a positive value can
                report a nearby point instead of an exact match.
            executor: Optional thread-pool executor for large query sets.
        """
        self.matching_threshold = _validate_threshold(matching_threshold)
        if isinstance(cells_per_diagonal, bool) or int(cells_per_diagonal) != cells_per_diagonal or cells_per_diagonal <= 0:
            raise InvalidInputError(f"cells_per_diagonal must be a positive integer, got {cells_per_diagonal!r}")
        if not math.isfinite(early_exit_epsilon) or early_exit_epsilon < 0:
            raise InvalidInputError(f"early_exit_epsilon must be non-negative, got {early_exit_epsilon!r}")
        self.cells_per_diagonal = int(cells_per_diagonal)
        self.early_exit_epsilon = float(early_exit_epsilon)
        self.executor = executor

    @classmethod
    def from_config(
        cls,
        cfg: "DeviationConfig",
        executor: Optional[ChunkParallelExecutor] = None,
    ) -> "DeviationAnalyzer":
        return cls(
            matching_threshold=cfg.matching_threshold,
            cells_per_diagonal=cfg.cells_per_diagonal,
            early_exit_epsilon=cfg.early_exit_epsilon,
            executor=executor,
        )

    def analyze(self, aligned_query: PointSetLike, reference: PointSetLike) -> DeviationResult:
        """
        Compute the deviation of every aligned query point from the reference.

        The grid search covers the 3x3x3 cell block around each query point.
        Query points with no reference point in that block are resolved with
        an exact KD-tree lookup, so every point gets a finite deviation.

        Args:
            aligned_query: Query points after alignment (N x 3).
            reference: Reference points (M x 3).

        Returns:
            DeviationResult with per-point deviations and statistics.

        Raises:
            InvalidInputError: If either point set is empty.
        """
        query = as_point_set(aligned_query).require_non_empty("aligned query point set")
        ref = as_point_set(reference).require_non_empty("reference point set")
        start = time.time()

        cell_size = cell_size_for(ref, self.cells_per_diagonal)
        index = SpatialIndex.build(ref, cell_size)
        indices, distances = index.nearest(
            query,
            math.inf,
            early_exit_epsilon=self.early_exit_epsilon,
            executor=self.executor,
        )

        misses = indices < 0
        n_fallback = int(np.count_nonzero(misses))
        if n_fallback:
            logger.debug(
                "%d of %d query points had no reference point in their cell block; "
                "using KD-tree lookup.",
                n_fallback,
                len(query),
            )
            tree = KDTree(ref.points)
            fb_dist, fb_idx = tree.query(query.points[misses], k=1)
            distances[misses] = fb_dist.ravel()
            indices[misses] = fb_idx.ravel()

        stats = compute_statistics(distances, self.matching_threshold)
        elapsed = time.time() - start

        logger.info(
            "Deviation analysis completed: n=%d, mean=%.6g, median=%.6g, max=%.6g, "
            "matching=%.1f%% (threshold %.6g) in %.3f s",
            stats.n,
            stats.mean,
            stats.median,
            stats.max,
            100.0 * stats.matching_fraction,
            stats.matching_threshold,
            elapsed,
        )

        distances.flags.writeable = False
        indices.flags.writeable = False
        return DeviationResult(
            deviations=distances,
            nearest_indices=indices,
            stats=stats,
            metadata={
                "cell_size": cell_size,
                "occupied_cells": len(index),
                "n_fallback": n_fallback,
                "elapsed_s": elapsed,
            },
        )


def analyze(
    aligned_query: PointSetLike,
    reference: PointSetLike,
    matching_threshold: float = 0.01,
    *,
    cells_per_diagonal: int = 50,
    early_exit_epsilon: float = 0.0,
    executor: Optional[ChunkParallelExecutor] = None,
) -> DeviationResult:
    """Functional entry point for :meth:`DeviationAnalyzer.analyze`."""
    analyzer = DeviationAnalyzer(
        matching_threshold=matching_threshold,
        cells_per_diagonal=cells_per_diagonal,
        early_exit_epsilon=early_exit_epsilon,
        executor=executor,
    )
    return analyzer.analyze(aligned_query, reference)
