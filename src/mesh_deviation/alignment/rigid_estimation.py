"""
Least-squares rigid transform estimation (Kabsch).
"""

from __future__ import annotations

import numpy as np

from ..exceptions import InsufficientCorrespondencesError, InvalidInputError

MIN_CORRESPONDENCES = 3


def estimate_rigid_transform(
    source_points: np.ndarray,
    target_points: np.ndarray,
) -> np.ndarray:
    """
    Estimate the rigid transformation that best maps source points onto target points.

    Minimizes the mean squared distance between ``R @ s_i + t`` and ``t_i``
    over all pairs, using the SVD of the cross-covariance matrix.

    Args:
        source_points: Source points (N x 3).
        target_points: Corresponding target points (N x 3).

    Returns:
        Transformation matrix (4 x 4).

    Raises:
        InvalidInputError: If the arrays have different shapes or are not N x 3.
        InsufficientCorrespondencesError: If fewer than 3 pairs are given.
    """
    source_points = np.asarray(source_points, dtype=np.float64)
    target_points = np.asarray(target_points, dtype=np.float64)
    if source_points.size == 0 and target_points.size == 0:
        raise InsufficientCorrespondencesError(0, MIN_CORRESPONDENCES)
    if source_points.ndim != 2 or source_points.shape[1] != 3:
        raise InvalidInputError(f"Expected N x 3 source points, got shape {source_points.shape}")
    if source_points.shape != target_points.shape:
        raise InvalidInputError(
            f"Source and target must have the same shape, got {source_points.shape} "
            f"and {target_points.shape}"
        )
    if len(source_points) < MIN_CORRESPONDENCES:
        raise InsufficientCorrespondencesError(len(source_points), MIN_CORRESPONDENCES)

    # Center the point sets
    source_centroid = np.mean(source_points, axis=0)
    target_centroid = np.mean(target_points, axis=0)

    source_centered = source_points - source_centroid
    target_centered = target_points - target_centroid

    # Cross-covariance matrix
    H = source_centered.T @ target_centered

    U, _, Vt = np.linalg.svd(H)

    R = Vt.T @ U.T

    # Reflection: flip the last column of V (last row of V^T)
    if np.linalg.det(R) < 0:
        Vt[-1, :] *= -1
        R = Vt.T @ U.T

    t = target_centroid - R @ source_centroid

    transform = np.eye(4)
    transform[:3, :3] = R
    transform[:3, 3] = t

    return transform
