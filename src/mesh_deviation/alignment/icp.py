"""
ICP Registration Implementation

This module implements the Iterative Closest Point (ICP) algorithm for rigid
alignment of a query mesh's vertices onto a reference mesh's vertices.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple, TYPE_CHECKING

import numpy as np

from ..acceleration.jit_kernels import compute_distances_jit
from ..acceleration.parallel_executor import ChunkParallelExecutor
from ..acceleration.spatial_index import SpatialIndex
from ..exceptions import InvalidInputError
from ..geometry.point_set import PointSet, PointSetLike, as_point_set
from ..geometry.transforms import apply_transform, rotation_angle, translation_norm, validate_transform
from ..utils.logging import setup_logger
from .correspondence import find_correspondences
from .rigid_estimation import MIN_CORRESPONDENCES, estimate_rigid_transform

if TYPE_CHECKING:
    from ..utils.config import AlignmentICPConfig

logger = setup_logger(__name__)


class ICPStatus(str, Enum):
    """States of one ``align`` call; the last four are terminal."""

    INITIALIZED = "initialized"
    ITERATING = "iterating"
    CONVERGED = "converged"
    MAX_ITERATIONS_REACHED = "max_iterations_reached"
    INSUFFICIENT_CORRESPONDENCES = "insufficient_correspondences"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ICPResult:
    """
    Outcome of one ICP alignment.

    Attributes:
        transform: Cumulative 4x4 rigid transform mapping source onto target
        converged: True only when the residual change fell below tolerance
        iterations: Number of completed iterations
        residual_error: RMS pair distance after the last completed iteration
            (inf if no iteration completed)
        status: Terminal state of the run
        residual_history: Residual after each completed iteration
        n_correspondences: Pairs used in the last completed iteration
    """

    transform: np.ndarray
    converged: bool
    iterations: int
    residual_error: float
    status: ICPStatus
    residual_history: Tuple[float, ...] = field(default_factory=tuple)
    n_correspondences: int = 0

    def __post_init__(self):
        T = np.array(self.transform, dtype=np.float64)
        T.flags.writeable = False
        object.__setattr__(self, "transform", T)

    def apply(self, points: PointSetLike) -> PointSet:
        """Return ``points`` moved by the recovered transform."""
        return as_point_set(points).transformed(self.transform)


def _require_positive(name: str, value: float) -> None:
    if not isinstance(value, (int, float, np.integer, np.floating)) or not math.isfinite(value) or value <= 0:
        raise InvalidInputError(f"{name} must be positive and finite, got {value!r}")


class ICPRegistration:
    """
    Point-to-point ICP.

    The ICP algorithm iteratively:
    1. Finds closest point correspondences within a distance threshold
    2. Estimates the optimal rigid transformation (rotation + translation)
    3. Applies it to the source points
    4. Repeats until the residual stops changing or the budget runs out
    """

    def __init__(
        self,
        max_iterations: int = 50,
        tolerance: float = 1e-6,
        correspondence_threshold: float = 1.0,
        early_exit_epsilon: float = 0.0,
        executor: Optional[ChunkParallelExecutor] = None,
    ):
        """
        Initialize ICP parameters.

        Args:
            max_iterations: Maximum number of ICP iterations (> 0).
            tolerance: Convergence tolerance on the change in RMS residual (> 0).
            correspondence_threshold: Maximum distance for point correspondences
                (> 0). Also used as the grid cell size, which makes the
                neighborhood search exact within the threshold.
            early_exit_epsilon: Stop scanning candidates once one is closer
                than this (0 disables).
            executor: Optional thread-pool executor for large source sets.
        """
        if isinstance(max_iterations, bool) or not isinstance(max_iterations, (int, np.integer)) or max_iterations <= 0:
            raise InvalidInputError(f"max_iterations must be a positive integer, got {max_iterations!r}")
        _require_positive("tolerance", tolerance)
        _require_positive("correspondence_threshold", correspondence_threshold)
        if not math.isfinite(early_exit_epsilon) or early_exit_epsilon < 0:
            raise InvalidInputError(f"early_exit_epsilon must be non-negative, got {early_exit_epsilon!r}")

        self.max_iterations = int(max_iterations)
        self.tolerance = float(tolerance)
        self.correspondence_threshold = float(correspondence_threshold)
        self.early_exit_epsilon = float(early_exit_epsilon)
        self.executor = executor

    @classmethod
    def from_config(
        cls,
        cfg: "AlignmentICPConfig",
        executor: Optional[ChunkParallelExecutor] = None,
    ) -> "ICPRegistration":
        return cls(
            max_iterations=cfg.max_iterations,
            tolerance=cfg.tolerance,
            correspondence_threshold=cfg.correspondence_threshold,
            early_exit_epsilon=cfg.early_exit_epsilon,
            executor=executor,
        )

    def align(
        self,
        source: PointSetLike,
        target: PointSetLike,
        *,
        initial_transform: Optional[np.ndarray] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ICPResult:
        """
        Align source point set to target using ICP.

        Args:
            source: Source points (N x 3), e.g. the query mesh vertices.
            target: Target points (M x 3), e.g. the reference mesh vertices.
            initial_transform: Initial transformation matrix (4 x 4) or None.
            cancel_event: Optional event checked once per iteration; when set,
                the run stops with status CANCELLED and the transform so far.

        Returns:
            ICPResult. Only CONVERGED runs report ``converged=True``.

        Raises:
            InvalidInputError: If either point set is empty or the initial
                transform is malformed.
        """
        src = as_point_set(source).require_non_empty("source point set")
        tgt = as_point_set(target).require_non_empty("target point set")
        logger.info(
            "Starting ICP alignment with %d source points and %d target points.",
            len(src),
            len(tgt),
        )

        transform = np.eye(4) if initial_transform is None else validate_transform(initial_transform)
        current_source = apply_transform(src.points, transform)
        target_points = tgt.points

        # The target never moves, so one index serves every iteration
        build_start = time.time()
        index = SpatialIndex.build(tgt, self.correspondence_threshold)
        logger.debug(
            "Spatial index built in %.4f s (%d cells, cell size %.6g).",
            time.time() - build_start,
            len(index),
            index.cell_size,
        )

        status = ICPStatus.ITERATING
        previous_error = math.inf
        history: List[float] = []
        n_correspondences = 0
        icp_start = time.time()

        for iteration in range(self.max_iterations):
            if cancel_event is not None and cancel_event.is_set():
                status = ICPStatus.CANCELLED
                logger.warning("ICP cancelled before iteration %d.", iteration + 1)
                break

            correspondences = find_correspondences(
                current_source,
                index,
                self.correspondence_threshold,
                early_exit_epsilon=self.early_exit_epsilon,
                executor=self.executor,
            )
            if len(correspondences) < MIN_CORRESPONDENCES:
                status = ICPStatus.INSUFFICIENT_CORRESPONDENCES
                logger.warning(
                    "Only %d correspondences within %.6g at iteration %d; stopping ICP.",
                    len(correspondences),
                    self.correspondence_threshold,
                    iteration + 1,
                )
                break

            valid_source = current_source[correspondences.source_indices]
            valid_target = target_points[correspondences.target_indices]

            delta_transform = estimate_rigid_transform(valid_source, valid_target)

            # new_transform = delta_transform * current_transform
            transform = delta_transform @ transform

            # Re-derive from the ORIGINAL source to avoid compounding rounding error
            current_source = apply_transform(src.points, transform)

            moved = apply_transform(valid_source, delta_transform)
            pair_distances = compute_distances_jit(moved, valid_target)
            current_error = float(np.sqrt(np.mean(pair_distances ** 2)))
            history.append(current_error)
            n_correspondences = len(correspondences)

            logger.debug(
                "Iteration %d: pairs=%d, RMSE=%.6e, |Δt|=%.6e, Δθ=%.6e rad",
                iteration + 1,
                n_correspondences,
                current_error,
                translation_norm(delta_transform),
                rotation_angle(delta_transform),
            )

            if abs(previous_error - current_error) < self.tolerance:
                status = ICPStatus.CONVERGED
                break

            previous_error = current_error
        else:
            status = ICPStatus.MAX_ITERATIONS_REACHED
            logger.warning("ICP did not converge after %d iterations.", self.max_iterations)

        n_iterations = len(history)
        residual = history[-1] if history else math.inf
        total_time = time.time() - icp_start
        logger.info(
            "ICP finished in %.4f s: status=%s, %d iterations, final RMSE %.6g.",
            total_time,
            status.value,
            n_iterations,
            residual,
        )

        return ICPResult(
            transform=transform,
            converged=status is ICPStatus.CONVERGED,
            iterations=n_iterations,
            residual_error=residual,
            status=status,
            residual_history=tuple(history),
            n_correspondences=n_correspondences,
        )


def align(
    source: PointSetLike,
    target: PointSetLike,
    params: Optional["AlignmentICPConfig"] = None,
    *,
    initial_transform: Optional[np.ndarray] = None,
    cancel_event: Optional[threading.Event] = None,
    executor: Optional[ChunkParallelExecutor] = None,
) -> ICPResult:
    """Align ``source`` onto ``target`` with ICP parameters from ``params`` (defaults if None)."""
    if params is None:
        icp = ICPRegistration(executor=executor)
    else:
        icp = ICPRegistration.from_config(params, executor=executor)
    return icp.align(source, target, initial_transform=initial_transform, cancel_event=cancel_event)
