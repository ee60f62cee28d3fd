"""
Immutable point buffers.

A PointSet wraps a read-only ``(n, 3)`` float64 array. Index position is the
only link between an entry and the mesh vertex it came from, so every
operation that drops or reorders points returns a new PointSet.
"""

from __future__ import annotations

from typing import Iterator, Tuple, Union, TYPE_CHECKING

import numpy as np

from ..exceptions import InvalidInputError
from .transforms import apply_transform, validate_transform

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray


class PointSet:
    """Ordered, immutable sequence of 3D points.

    Example:
        >>> ps = PointSet.from_buffer([0, 0, 0, 1, 0, 0])
        >>> len(ps)
        2
        >>> ps.bounding_diagonal()
        1.0
    """

    __slots__ = ("_points",)

    def __init__(self, points: "ArrayLike", *, copy: bool = True):
        """
        Args:
            points: Array-like of shape (n, 3). An empty sequence gives an empty set.
            copy: Copy the input before freezing it. Pass False only for arrays
                nobody else holds a reference to.

        Raises:
            InvalidInputError: On a wrong shape or non-finite coordinates.
        """
        arr = np.asarray(points, dtype=np.float64)
        if arr.size == 0:
            arr = np.empty((0, 3), dtype=np.float64)
        if arr.ndim != 2 or arr.shape[1] != 3:
            raise InvalidInputError(f"Expected an (n, 3) array of points, got shape {arr.shape}")
        if not np.all(np.isfinite(arr)):
            n_bad = int(np.count_nonzero(~np.isfinite(arr).all(axis=1)))
            raise InvalidInputError(f"Point set contains {n_bad} point(s) with non-finite coordinates")
        if copy:
            arr = arr.copy()
        arr.flags.writeable = False
        self._points = arr

    @classmethod
    def from_buffer(cls, buffer: "ArrayLike") -> "PointSet":
        """Build a PointSet from a flat row-major vertex buffer (x0, y0, z0, x1, ...)."""
        flat = np.asarray(buffer, dtype=np.float64).reshape(-1)
        if flat.size % 3 != 0:
            raise InvalidInputError(
                f"Vertex buffer length must be a multiple of 3, got {flat.size}"
            )
        return cls(flat.reshape(-1, 3))

    # ----------------- Sequence protocol -----------------
    def __len__(self) -> int:
        return int(self._points.shape[0])

    def __iter__(self) -> Iterator["NDArray[np.float64]"]:
        return iter(self._points)

    def __getitem__(self, idx):
        return self._points[idx]

    def __array__(self, dtype=None, copy=None):
        if dtype is None or np.dtype(dtype) == self._points.dtype:
            return self._points.copy() if copy else self._points
        return self._points.astype(dtype)

    def __repr__(self) -> str:
        return f"PointSet(n={len(self)})"

    # ----------------- Accessors -----------------
    @property
    def points(self) -> "NDArray[np.float64]":
        """Read-only (n, 3) view of the coordinates."""
        return self._points

    @property
    def is_empty(self) -> bool:
        return len(self) == 0

    def require_non_empty(self, name: str = "point set") -> "PointSet":
        if self.is_empty:
            raise InvalidInputError(f"The {name} is empty")
        return self

    def bounds(self) -> Tuple["NDArray[np.float64]", "NDArray[np.float64]"]:
        """Axis-aligned bounding box as (min_xyz, max_xyz)."""
        self.require_non_empty()
        return self._points.min(axis=0), self._points.max(axis=0)

    def bounding_diagonal(self) -> float:
        lo, hi = self.bounds()
        return float(np.linalg.norm(hi - lo))

    def centroid(self) -> "NDArray[np.float64]":
        self.require_non_empty()
        return self._points.mean(axis=0)

    # ----------------- Derived sets -----------------
    def transformed(self, transform: "ArrayLike") -> "PointSet":
        """New PointSet with ``transform`` applied; this set is left untouched."""
        T = validate_transform(transform)
        return PointSet(apply_transform(self._points, T), copy=False)

    def take(self, indices: "ArrayLike") -> "PointSet":
        return PointSet(self._points[np.asarray(indices, dtype=np.int64)], copy=False)

    def subsample(self, density: float) -> "PointSet":
        """
        Keep every ``floor(1 / density)``-th point, starting at index 0.

        Args:
            density: Fraction of points to keep, in (0, 1].
        """
        if not np.isfinite(density) or density <= 0 or density > 1:
            raise InvalidInputError(f"Sampling density must be in (0, 1], got {density}")
        step = max(1, int(np.floor(1.0 / density)))
        if step == 1:
            return self
        return PointSet(self._points[::step], copy=True)


PointSetLike = Union[PointSet, "ArrayLike"]


def as_point_set(points: PointSetLike) -> PointSet:
    """Return ``points`` unchanged if already a PointSet, otherwise wrap a frozen copy."""
    if isinstance(points, PointSet):
        return points
    return PointSet(points)
