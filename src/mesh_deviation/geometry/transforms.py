"""
Rigid transform helpers.

Transforms are plain 4x4 homogeneous ``float64`` arrays holding a rotation and
a translation. Applying A then B is the matrix product ``B @ A``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from ..exceptions import InvalidInputError

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray


def identity() -> "NDArray[np.float64]":
    return np.eye(4)


def make_rigid_transform(rotation: "ArrayLike", translation: "ArrayLike") -> "NDArray[np.float64]":
    """Assemble a 4x4 transform from a 3x3 rotation and a 3-vector translation."""
    R = np.asarray(rotation, dtype=np.float64)
    t = np.asarray(translation, dtype=np.float64).reshape(-1)
    if R.shape != (3, 3) or t.shape != (3,):
        raise InvalidInputError(
            f"Expected 3x3 rotation and length-3 translation, got {R.shape} and {t.shape}"
        )
    transform = np.eye(4)
    transform[:3, :3] = R
    transform[:3, 3] = t
    return transform


def rotation_about_axis(axis: "ArrayLike", angle_rad: float) -> "NDArray[np.float64]":
    """Rotation matrix (3x3) for a right-handed rotation about ``axis``."""
    k = np.asarray(axis, dtype=np.float64).reshape(3)
    norm = float(np.linalg.norm(k))
    if norm == 0.0:
        raise InvalidInputError("Rotation axis must be non-zero")
    k = k / norm
    K = np.array(
        [
            [0.0, -k[2], k[1]],
            [k[2], 0.0, -k[0]],
            [-k[1], k[0], 0.0],
        ]
    )
    return np.eye(3) + np.sin(angle_rad) * K + (1.0 - np.cos(angle_rad)) * (K @ K)


def validate_transform(transform: "ArrayLike") -> "NDArray[np.float64]":
    """Return ``transform`` as a float64 4x4 copy, rejecting bad shapes or values."""
    T = np.array(transform, dtype=np.float64)
    if T.shape != (4, 4):
        raise InvalidInputError(f"Expected a 4x4 transform, got shape {T.shape}")
    if not np.all(np.isfinite(T)):
        raise InvalidInputError("Transform contains non-finite values")
    return T


def apply_transform(points: np.ndarray, transform: np.ndarray) -> np.ndarray:
    """
    Apply a transformation matrix to a set of points.

    Args:
        points: Point array (N x 3).
        transform: Transformation matrix (4 x 4).

    Returns:
        New transformed array (N x 3).
    """
    if points.size == 0:
        return np.empty((0, 3), dtype=np.float64)

    # Direct affine form; cheaper than homogeneous coordinates
    R = transform[:3, :3]
    t = transform[:3, 3]
    return points @ R.T + t


def compose(*transforms: np.ndarray) -> np.ndarray:
    """Compose transforms in application order: ``compose(A, B)`` applies A, then B."""
    result = np.eye(4)
    for T in transforms:
        result = T @ result
    return result


def invert_rigid(transform: np.ndarray) -> np.ndarray:
    """Inverse of a rigid transform using R^T instead of a general matrix inverse."""
    R = transform[:3, :3]
    t = transform[:3, 3]
    inverse = np.eye(4)
    inverse[:3, :3] = R.T
    inverse[:3, 3] = -R.T @ t
    return inverse


def rotation_angle(transform: np.ndarray) -> float:
    """Rotation magnitude of ``transform`` in radians."""
    trace = float(np.trace(transform[:3, :3]))
    # Clamp argument to arccos to valid range to avoid NaNs
    cos_theta = max(min((trace - 1.0) * 0.5, 1.0), -1.0)
    return float(np.arccos(cos_theta))


def translation_norm(transform: np.ndarray) -> float:
    return float(np.linalg.norm(transform[:3, 3]))
