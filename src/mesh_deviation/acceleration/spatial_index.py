"""
Uniform grid spatial index.

Points are bucketed by ``floor(coord / cell_size)`` per axis. Lookups scan the
containing cell plus its 26 neighbors, which finds every point within
``cell_size`` of the query. For larger search radii the 3x3x3 block is only an
approximation: a true nearest neighbor more than one cell away is missed, so
callers pick ``cell_size`` no smaller than the radius they care about.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from itertools import product
from typing import Iterator, Optional, Sequence, Tuple, TYPE_CHECKING

import numpy as np

from ..exceptions import InvalidInputError
from ..geometry.point_set import PointSetLike, as_point_set
from ..utils.logging import setup_logger
from .jit_kernels import find_cell_jit, grid_nearest_jit
from .parallel_executor import ChunkParallelExecutor, run_chunked

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

logger = setup_logger(__name__)

# Cell coordinates are int64; keep them (and their neighbors) inside that range
_MAX_CELL_COORD = 2 ** 62

_BLOCK_OFFSETS = tuple(product((-1, 0, 1), repeat=3))


def _frozen(arr: np.ndarray) -> np.ndarray:
    arr.flags.writeable = False
    return arr


def validate_cell_size(cell_size: float) -> float:
    try:
        value = float(cell_size)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"Cell size must be a real number, got {cell_size!r}") from e
    if not math.isfinite(value) or value <= 0:
        raise InvalidInputError(f"Cell size must be positive and finite, got {cell_size}")
    return value


def cell_size_for(points: PointSetLike, cells_per_diagonal: int) -> float:
    """
    Cell size giving roughly ``cells_per_diagonal`` cells along the bounding diagonal.

    Falls back to 1.0 when all points coincide (zero diagonal).
    """
    if cells_per_diagonal <= 0:
        raise InvalidInputError(f"cells_per_diagonal must be positive, got {cells_per_diagonal}")
    diagonal = as_point_set(points).bounding_diagonal()
    if diagonal <= 0.0:
        return 1.0
    return diagonal / cells_per_diagonal


@dataclass(frozen=True, eq=False)
class SpatialIndex:
    """
    Read-only uniform grid over one point set.

    Only occupied cells are stored: their integer coordinates in lexicographic
    order, with start/count offsets into ``order`` (indices sorted by cell).
    Memory grows with the number of points, never with the bounding volume,
    so any positive cell size works on any extent. The whole structure is a
    handful of NumPy arrays the JIT kernels can scan directly.

    Attributes:
        points: (n, 3) coordinates that were indexed.
        cell_size: Edge length of a cell.
        cell_min: Smallest occupied cell coordinate (int64, per axis).
        cell_max: Largest occupied cell coordinate (int64, per axis).
        cell_coords: (k, 3) occupied cell coordinates, lexicographically sorted.
        cell_starts: Offset of each occupied cell's first entry in ``order``.
        cell_counts: Number of points in each occupied cell.
        order: Point indices grouped by cell, ascending within a cell.
    """

    points: "NDArray[np.float64]"
    cell_size: float
    cell_min: "NDArray[np.int64]"
    cell_max: "NDArray[np.int64]"
    cell_coords: "NDArray[np.int64]"
    cell_starts: "NDArray[np.int64]"
    cell_counts: "NDArray[np.int64]"
    order: "NDArray[np.int64]"

    @classmethod
    def build(cls, points: PointSetLike, cell_size: float) -> "SpatialIndex":
        """
        Bucket every point into its grid cell.

        Args:
            points: Point set to index (must be non-empty).
            cell_size: Positive, finite cell edge length.

        Returns:
            SpatialIndex over ``points``.

        Raises:
            InvalidInputError: Empty point set, bad cell size, or coordinates
                more than 2**62 cells away from the origin.
        """
        cell_size = validate_cell_size(cell_size)
        ps = as_point_set(points).require_non_empty("point set to index")
        pts = ps.points

        cells_f = np.floor(pts / cell_size)
        largest = float(np.abs(cells_f).max())
        if largest >= _MAX_CELL_COORD:
            raise InvalidInputError(
                f"Cell size {cell_size:g} is too small for coordinates of magnitude "
                f"{float(np.abs(pts).max()):g} ({largest:.3e} cells from the origin)"
            )
        cells = cells_f.astype(np.int64)

        # Point index as the last key keeps ascending order inside each bucket
        n = len(pts)
        order = np.lexsort((np.arange(n), cells[:, 2], cells[:, 1], cells[:, 0])).astype(np.int64)
        sorted_cells = cells[order]
        new_cell = np.ones(n, dtype=bool)
        new_cell[1:] = np.any(sorted_cells[1:] != sorted_cells[:-1], axis=1)
        cell_starts = np.flatnonzero(new_cell).astype(np.int64)
        cell_counts = np.diff(np.append(cell_starts, n)).astype(np.int64)

        index = cls(
            points=pts,
            cell_size=cell_size,
            cell_min=_frozen(cells.min(axis=0)),
            cell_max=_frozen(cells.max(axis=0)),
            cell_coords=_frozen(np.ascontiguousarray(sorted_cells[cell_starts])),
            cell_starts=_frozen(cell_starts),
            cell_counts=_frozen(cell_counts),
            order=_frozen(order),
        )
        logger.debug(
            "Built spatial index: %d points, cell size %.6g, %d occupied cells "
            "(mean %.1f / max %d points per cell).",
            len(pts),
            cell_size,
            len(index),
            index.mean_occupancy,
            index.max_occupancy,
        )
        return index

    # ----------------- Introspection -----------------
    def __len__(self) -> int:
        """Number of occupied cells."""
        return int(self.cell_coords.shape[0])

    @property
    def n_points(self) -> int:
        return int(self.points.shape[0])

    @property
    def mean_occupancy(self) -> float:
        return float(self.cell_counts.mean()) if len(self) else 0.0

    @property
    def max_occupancy(self) -> int:
        return int(self.cell_counts.max()) if len(self) else 0

    def cell_of(self, point: "ArrayLike") -> Tuple[int, int, int]:
        """Global integer cell coordinates of ``point``."""
        p = np.asarray(point, dtype=np.float64).reshape(3)
        c = np.floor(p / self.cell_size)
        return int(c[0]), int(c[1]), int(c[2])

    def _cell_position(self, cell: Sequence[int]) -> Optional[int]:
        c = [int(cell[a]) for a in range(3)]
        if any(c[a] < int(self.cell_min[a]) or c[a] > int(self.cell_max[a]) for a in range(3)):
            return None
        pos = find_cell_jit(self.cell_coords, c[0], c[1], c[2])
        return None if pos < 0 else int(pos)

    def bucket(self, cell: Sequence[int]) -> "NDArray[np.int64]":
        """Point indices stored in ``cell`` (global cell coordinates), ascending."""
        pos = self._cell_position(cell)
        if pos is None:
            return np.empty(0, dtype=np.int64)
        start = int(self.cell_starts[pos])
        return self.order[start:start + int(self.cell_counts[pos])]

    # ----------------- Queries -----------------
    def query(self, point: "ArrayLike", radius: float) -> Iterator[int]:
        """
        Yield indices of points within ``radius`` of ``point``.

        Only the 3x3x3 block of cells around ``point`` is scanned; the result
        is complete only when ``radius <= cell_size``.
        """
        if not math.isfinite(radius) or radius < 0:
            raise InvalidInputError(f"Query radius must be non-negative and finite, got {radius}")
        if radius > self.cell_size:
            logger.warning(
                "Query radius %.6g exceeds cell size %.6g; neighbors beyond the "
                "3x3x3 cell block are not searched.",
                radius,
                self.cell_size,
            )
        p = np.asarray(point, dtype=np.float64).reshape(3)
        cx, cy, cz = self.cell_of(p)
        radius_sq = radius * radius
        for dx, dy, dz in _BLOCK_OFFSETS:
            candidates = self.bucket((cx + dx, cy + dy, cz + dz))
            if candidates.size == 0:
                continue
            d_sq = np.sum((self.points[candidates] - p) ** 2, axis=1)
            for j in candidates[d_sq <= radius_sq]:
                yield int(j)

    def nearest(
        self,
        queries: PointSetLike,
        max_distance: float = math.inf,
        *,
        early_exit_epsilon: float = 0.0,
        executor: Optional[ChunkParallelExecutor] = None,
    ) -> Tuple["NDArray[np.int64]", "NDArray[np.float64]"]:
        """
        Nearest indexed point for every query, searched in the 3x3x3 block.

        Args:
            queries: Query points (n, 3).
            max_distance: Accept only candidates at or below this distance.
            early_exit_epsilon: Stop scanning once a candidate is closer than
                this (0 disables).
            executor: Optional chunked executor for large query sets.

        Returns:
            Tuple of (indices, distances): index -1 and distance inf where no
            candidate was accepted.
        """
        if math.isnan(max_distance) or max_distance < 0:
            raise InvalidInputError(f"max_distance must be non-negative, got {max_distance}")
        if not math.isfinite(early_exit_epsilon) or early_exit_epsilon < 0:
            raise InvalidInputError(
                f"early_exit_epsilon must be non-negative and finite, got {early_exit_epsilon}"
            )
        q = as_point_set(queries).points
        max_distance_sq = max_distance * max_distance
        early_exit_sq = early_exit_epsilon * early_exit_epsilon

        def _search(start: int, stop: int):
            return grid_nearest_jit(
                q[start:stop],
                self.points,
                self.cell_size,
                self.cell_min,
                self.cell_max,
                self.cell_coords,
                self.cell_starts,
                self.cell_counts,
                self.order,
                max_distance_sq,
                early_exit_sq,
            )

        parts = run_chunked(len(q), _search, executor)
        if not parts:
            return np.empty(0, dtype=np.int64), np.empty(0, dtype=np.float64)
        indices = np.concatenate([p[0] for p in parts])
        distances = np.concatenate([p[1] for p in parts])
        return indices, distances


def build_spatial_index(points: PointSetLike, cell_size: float) -> SpatialIndex:
    """Functional alias for :meth:`SpatialIndex.build`."""
    return SpatialIndex.build(points, cell_size)
