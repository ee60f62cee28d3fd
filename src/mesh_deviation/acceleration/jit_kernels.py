"""JIT-compiled kernels for the per-point hot loops.

The uniform-grid nearest-neighbor search and the paired-distance computation
run once per point per ICP iteration, so they are compiled with numba. All
kernels release the GIL, which lets the thread-pool executor run chunks of
query points concurrently.
"""

from __future__ import annotations

import numba
import numpy as np


@numba.njit(nogil=True)
def compute_distances_jit(points1: np.ndarray, points2: np.ndarray) -> np.ndarray:
    """Compute Euclidean distances between corresponding points (JIT-compiled).

    Args:
        points1: (N, 3) array of XYZ coordinates.
        points2: (N, 3) array of XYZ coordinates.

    Returns:
        1D array of distances of length N.
    """
    n = points1.shape[0]
    distances = np.empty(n, dtype=np.float64)

    for i in range(n):
        dx = points1[i, 0] - points2[i, 0]
        dy = points1[i, 1] - points2[i, 1]
        dz = points1[i, 2] - points2[i, 2]
        distances[i] = np.sqrt(dx * dx + dy * dy + dz * dz)

    return distances


@numba.njit(nogil=True)
def find_cell_jit(cell_coords: np.ndarray, ix: int, iy: int, iz: int) -> int:
    """Row of ``(ix, iy, iz)`` in lexicographically sorted ``cell_coords``, or -1."""
    lo = 0
    hi = cell_coords.shape[0]
    while lo < hi:
        mid = (lo + hi) // 2
        mx = cell_coords[mid, 0]
        my = cell_coords[mid, 1]
        mz = cell_coords[mid, 2]
        if mx < ix or (mx == ix and (my < iy or (my == iy and mz < iz))):
            lo = mid + 1
        else:
            hi = mid
    if (
        lo < cell_coords.shape[0]
        and cell_coords[lo, 0] == ix
        and cell_coords[lo, 1] == iy
        and cell_coords[lo, 2] == iz
    ):
        return lo
    return -1


@numba.njit(nogil=True)
def grid_nearest_jit(
    queries: np.ndarray,
    targets: np.ndarray,
    cell_size: float,
    cell_min: np.ndarray,
    cell_max: np.ndarray,
    cell_coords: np.ndarray,
    cell_starts: np.ndarray,
    cell_counts: np.ndarray,
    order: np.ndarray,
    max_distance_sq: float,
    early_exit_sq: float,
):
    """Nearest target point inside each query's 3x3x3 cell block (JIT-compiled).

    Only occupied cells are stored: ``cell_coords`` holds their integer
    ``floor(p / cell_size)`` triples in lexicographic order, and bucket ``k``
    holds ``order[cell_starts[k]:cell_starts[k] + cell_counts[k]]`` in
    ascending target index.

    Ties on distance keep the lowest target index. Scanning stops early once a
    candidate is strictly closer than ``sqrt(early_exit_sq)`` (0 disables).

    Args:
        queries: (N, 3) query coordinates.
        targets: (M, 3) indexed coordinates.
        cell_size: Grid cell edge length.
        cell_min: (3,) int64 smallest occupied cell coordinate per axis.
        cell_max: (3,) int64 largest occupied cell coordinate per axis.
        cell_coords: (K, 3) int64 occupied cells, lexicographically sorted.
        cell_starts: Start offset of each occupied cell in ``order``.
        cell_counts: Number of points in each occupied cell.
        order: Target indices grouped by cell.
        max_distance_sq: Squared acceptance radius (``inf`` for none).
        early_exit_sq: Squared early-exit distance.

    Returns:
        Tuple of (indices, distances); -1 / inf where nothing was accepted.
    """
    n = queries.shape[0]
    out_idx = np.full(n, -1, dtype=np.int64)
    out_dist = np.full(n, np.inf)

    for i in range(n):
        qx = queries[i, 0]
        qy = queries[i, 1]
        qz = queries[i, 2]

        fx = np.floor(qx / cell_size)
        fy = np.floor(qy / cell_size)
        fz = np.floor(qz / cell_size)
        # Entire 3x3x3 block outside the occupied range (also avoids int overflow on far points)
        if (
            fx < cell_min[0] - 1.0 or fx > cell_max[0] + 1.0
            or fy < cell_min[1] - 1.0 or fy > cell_max[1] + 1.0
            or fz < cell_min[2] - 1.0 or fz > cell_max[2] + 1.0
        ):
            continue
        cx = np.int64(fx)
        cy = np.int64(fy)
        cz = np.int64(fz)

        best_d = np.inf
        best_j = -1
        done = False
        for dx in range(-1, 2):
            for dy in range(-1, 2):
                for dz in range(-1, 2):
                    pos = find_cell_jit(cell_coords, cx + dx, cy + dy, cz + dz)
                    if pos < 0:
                        continue
                    start = cell_starts[pos]
                    stop = start + cell_counts[pos]
                    for k in range(start, stop):
                        j = order[k]
                        ddx = targets[j, 0] - qx
                        ddy = targets[j, 1] - qy
                        ddz = targets[j, 2] - qz
                        d = ddx * ddx + ddy * ddy + ddz * ddz
                        if d > max_distance_sq:
                            continue
                        if d < best_d or (d == best_d and j < best_j):
                            best_d = d
                            best_j = j
                            if d < early_exit_sq:
                                done = True
                                break
                    if done:
                        break
                if done:
                    break
            if done:
                break

        if best_j >= 0:
            out_idx[i] = best_j
            out_dist[i] = np.sqrt(best_d)

    return out_idx, out_dist
