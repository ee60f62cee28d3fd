"""
Tests for JIT-compiled kernels.

Covers the paired-distance kernel and the raw grid nearest-neighbor kernel
driven with hand-built grid arrays.
"""

import numpy as np
import pytest


class TestComputeDistancesJIT:
    """Test compute_distances_jit function."""

    def test_distances_basic(self):
        from mesh_deviation.acceleration import compute_distances_jit

        points1 = np.array([
            [0.0, 0.0, 0.0],
            [1.0, 1.0, 1.0],
        ])
        points2 = np.array([
            [3.0, 4.0, 0.0],
            [1.0, 1.0, 1.0],
        ])

        result = compute_distances_jit(points1, points2)

        np.testing.assert_allclose(result, [5.0, 0.0], rtol=1e-12)

    def test_distances_match_numpy(self):
        from mesh_deviation.acceleration import compute_distances_jit

        rng = np.random.default_rng(0)
        a = rng.normal(size=(500, 3))
        b = rng.normal(size=(500, 3))

        result = compute_distances_jit(a, b)
        expected = np.linalg.norm(a - b, axis=1)

        np.testing.assert_allclose(result, expected, rtol=1e-12)

    def test_distances_empty(self):
        from mesh_deviation.acceleration import compute_distances_jit

        result = compute_distances_jit(np.empty((0, 3)), np.empty((0, 3)))
        assert result.shape == (0,)


class TestGridNearestJIT:
    """Test grid_nearest_jit on a tiny two-cell grid."""

    @staticmethod
    def _grid():
        # cell size 1.0; points 0 and 2 in cell (0,0,0), point 1 in cell (1,0,0)
        targets = np.array([
            [0.2, 0.2, 0.2],
            [1.5, 0.5, 0.5],
            [0.8, 0.8, 0.8],
        ])
        cell_min = np.array([0, 0, 0], dtype=np.int64)
        cell_max = np.array([1, 0, 0], dtype=np.int64)
        cell_coords = np.array([[0, 0, 0], [1, 0, 0]], dtype=np.int64)
        cell_starts = np.array([0, 2], dtype=np.int64)
        cell_counts = np.array([2, 1], dtype=np.int64)
        order = np.array([0, 2, 1], dtype=np.int64)
        return targets, cell_min, cell_max, cell_coords, cell_starts, cell_counts, order

    def test_finds_nearest_across_cells(self):
        from mesh_deviation.acceleration import grid_nearest_jit

        targets, lo, hi, coords, starts, counts, order = self._grid()
        queries = np.array([[1.4, 0.5, 0.5], [0.1, 0.1, 0.1]])

        idx, dist = grid_nearest_jit(
            queries, targets, 1.0, lo, hi, coords, starts, counts, order, np.inf, 0.0
        )

        assert idx.tolist() == [1, 0]
        np.testing.assert_allclose(dist, [0.1, np.sqrt(3 * 0.01)], rtol=1e-12)

    def test_respects_max_distance(self):
        from mesh_deviation.acceleration import grid_nearest_jit

        targets, lo, hi, coords, starts, counts, order = self._grid()
        queries = np.array([[0.5, 0.5, 0.5]])

        idx, dist = grid_nearest_jit(
            queries, targets, 1.0, lo, hi, coords, starts, counts, order, 0.1 ** 2, 0.0
        )

        assert idx[0] == -1
        assert np.isinf(dist[0])

    def test_outside_grid_returns_no_match(self):
        from mesh_deviation.acceleration import grid_nearest_jit

        targets, lo, hi, coords, starts, counts, order = self._grid()
        queries = np.array([[-10.0, 0.0, 0.0], [1e300, 0.0, 0.0]])

        idx, dist = grid_nearest_jit(
            queries, targets, 1.0, lo, hi, coords, starts, counts, order, np.inf, 0.0
        )

        assert idx.tolist() == [-1, -1]
        assert np.all(np.isinf(dist))

    def test_early_exit_returns_first_close_candidate(self):
        from mesh_deviation.acceleration import grid_nearest_jit

        targets, lo, hi, coords, starts, counts, order = self._grid()
        # Both cell-(0,0,0) points are within 1.0 of the query; point 0 is scanned first
        queries = np.array([[0.5, 0.5, 0.5]])

        idx_full, _ = grid_nearest_jit(
            queries, targets, 1.0, lo, hi, coords, starts, counts, order, np.inf, 0.0
        )
        idx_early, _ = grid_nearest_jit(
            queries, targets, 1.0, lo, hi, coords, starts, counts, order, np.inf, 1.0
        )

        assert idx_full[0] == 0
        assert idx_early[0] == 0


class TestFindCellJIT:
    """Test the lexicographic lookup of occupied cells."""

    def test_finds_every_stored_cell(self):
        from mesh_deviation.acceleration import find_cell_jit

        coords = np.array([
            [-5, 0, 0],
            [-5, 0, 3],
            [-5, 2, -1],
            [0, 0, 0],
            [10 ** 12, -(10 ** 12), 7],
        ], dtype=np.int64)

        for row, (ix, iy, iz) in enumerate(coords):
            assert find_cell_jit(coords, ix, iy, iz) == row

    def test_missing_cells_return_minus_one(self):
        from mesh_deviation.acceleration import find_cell_jit

        coords = np.array([[-5, 0, 0], [0, 0, 0], [3, 1, 2]], dtype=np.int64)

        assert find_cell_jit(coords, -6, 0, 0) == -1
        assert find_cell_jit(coords, 0, 0, 1) == -1
        assert find_cell_jit(coords, 3, 1, 3) == -1
        assert find_cell_jit(np.empty((0, 3), dtype=np.int64), 0, 0, 0) == -1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
