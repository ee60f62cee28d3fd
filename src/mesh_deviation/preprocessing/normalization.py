"""
Working-frame normalization for mesh vertex buffers.

Vertex buffers arrive in arbitrary model units and positions. Upstream of the
alignment core they are shifted so their bounding-box center sits at the
origin and uniformly scaled so the largest box side equals a fixed extent:

    working = (original - center) * scale
    original = working / scale + center

The alignment and deviation code never calls this itself; it expects inputs
that already share one working frame.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np

from ..exceptions import InvalidInputError
from ..geometry.point_set import PointSet, PointSetLike, as_point_set


@dataclass(frozen=True)
class MeshNormalization:
    """Center offset and uniform scale mapping a mesh into the working frame.

    Example:
        >>> norm = MeshNormalization.from_points(np.array([[0, 0, 0], [2, 2, 2.0]]))
        >>> norm.to_working([[2, 2, 2.0]]).points   # -> [[2, 2, 2]]
    """

    center_x: float
    center_y: float
    center_z: float
    scale: float = 1.0
    origin_method: str = field(default="unknown", repr=False)

    @classmethod
    def from_points(
        cls,
        points: PointSetLike,
        *,
        target_extent: float = 4.0,
        scale: Optional[float] = None,
    ) -> "MeshNormalization":
        """Normalization centering ``points`` on their bounding-box center.

        Args:
            points: Mesh vertices (must be non-empty)
            target_extent: Largest bounding-box side after scaling
            scale: Explicit scale factor; overrides ``target_extent`` (use it
                to put a second mesh in the same units as the first)

        Returns:
            MeshNormalization for ``points``
        """
        ps = as_point_set(points).require_non_empty("point set to normalize")
        lo, hi = ps.bounds()
        center = (lo + hi) * 0.5
        if scale is None:
            if not np.isfinite(target_extent) or target_extent <= 0:
                raise InvalidInputError(f"target_extent must be positive, got {target_extent}")
            max_dimension = float(np.max(hi - lo))
            # Degenerate (single point / coincident points): shift only
            scale = target_extent / max_dimension if max_dimension > 0 else 1.0
        elif not np.isfinite(scale) or scale <= 0:
            raise InvalidInputError(f"scale must be positive and finite, got {scale}")
        return cls(
            center_x=float(center[0]),
            center_y=float(center[1]),
            center_z=float(center[2]),
            scale=float(scale),
            origin_method="bbox_center",
        )

    @classmethod
    def identity(cls) -> "MeshNormalization":
        return cls(center_x=0.0, center_y=0.0, center_z=0.0, scale=1.0, origin_method="identity")

    @property
    def center(self) -> np.ndarray:
        return np.array([self.center_x, self.center_y, self.center_z])

    def to_working(self, points: PointSetLike) -> PointSet:
        """Map original coordinates into the working frame."""
        ps = as_point_set(points)
        return PointSet((ps.points - self.center) * self.scale, copy=False)

    def to_original(self, points: PointSetLike) -> PointSet:
        """Map working-frame coordinates back to the original frame."""
        ps = as_point_set(points)
        return PointSet(ps.points / self.scale + self.center, copy=False)

    def distance_to_original(self, distances: np.ndarray) -> np.ndarray:
        """Convert working-frame distances (e.g. deviations) back to model units."""
        return np.asarray(distances, dtype=np.float64) / self.scale

    def to_dict(self) -> dict:
        return {
            "center_x": self.center_x,
            "center_y": self.center_y,
            "center_z": self.center_z,
            "scale": self.scale,
            "origin_method": self.origin_method,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MeshNormalization":
        return cls(
            center_x=float(data["center_x"]),
            center_y=float(data["center_y"]),
            center_z=float(data["center_z"]),
            scale=float(data.get("scale", 1.0)),
            origin_method=data.get("origin_method", "unknown"),
        )


def normalize_pair(
    reference: PointSetLike,
    query: PointSetLike,
    *,
    target_extent: float = 4.0,
) -> Tuple[PointSet, PointSet, MeshNormalization, MeshNormalization]:
    """
    Bring a reference and a query mesh into one working frame.

    Each mesh is centered on its own bounding-box center (a coarse
    translation-only pre-alignment); both use the reference's scale factor so
    distances stay comparable.

    Returns:
        Tuple of (reference_working, query_working, reference_norm, query_norm)
    """
    ref_norm = MeshNormalization.from_points(reference, target_extent=target_extent)
    query_norm = MeshNormalization.from_points(query, scale=ref_norm.scale)
    return (
        ref_norm.to_working(reference),
        query_norm.to_working(query),
        ref_norm,
        query_norm,
    )
