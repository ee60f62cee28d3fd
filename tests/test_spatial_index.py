"""
Tests for the uniform grid spatial index.

Nearest-neighbor answers are checked against scikit-learn's exact KD-tree
whenever the search radius is within one cell.
"""

from pathlib import Path
import sys

import numpy as np
import pytest
from sklearn.neighbors import KDTree

# Ensure src is importable
sys.path.append(str(Path(__file__).parent.parent / "src"))

from mesh_deviation.acceleration.spatial_index import SpatialIndex, cell_size_for
from mesh_deviation.acceleration.parallel_executor import ChunkParallelExecutor
from mesh_deviation.exceptions import InvalidInputError


def _make_random_cloud(n: int = 2000, seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rng.uniform(-5.0, 5.0, size=(n, 3))


def test_every_point_lands_in_exactly_one_bucket():
    pts = _make_random_cloud(1500, seed=1)
    index = SpatialIndex.build(pts, cell_size=0.7)

    seen = np.concatenate(
        [index.order[s:s + c] for s, c in zip(index.cell_starts, index.cell_counts)]
    )
    assert np.array_equal(np.sort(seen), np.arange(len(pts)))

    # Bucket membership follows floor(coord / cell_size)
    for i in (0, 17, 999, 1499):
        cell = tuple(int(c) for c in np.floor(pts[i] / 0.7))
        assert i in index.bucket(cell)


def test_bucket_indices_are_ascending():
    pts = np.zeros((10, 3))  # all in one cell
    index = SpatialIndex.build(pts, cell_size=1.0)
    assert len(index) == 1
    assert index.bucket((0, 0, 0)).tolist() == list(range(10))
    assert index.bucket((5, 5, 5)).size == 0


@pytest.mark.parametrize("bad", [0.0, -1.0, float("nan"), float("inf")])
def test_build_rejects_bad_cell_size(bad):
    with pytest.raises(InvalidInputError):
        SpatialIndex.build(_make_random_cloud(10), cell_size=bad)


def test_build_rejects_empty_point_set():
    with pytest.raises(InvalidInputError):
        SpatialIndex.build(np.empty((0, 3)), cell_size=1.0)


def test_query_matches_brute_force_within_one_cell():
    pts = _make_random_cloud(800, seed=2)
    index = SpatialIndex.build(pts, cell_size=1.0)
    q = np.array([0.3, -1.2, 2.2])

    found = sorted(index.query(q, radius=0.9))
    expected = np.flatnonzero(np.linalg.norm(pts - q, axis=1) <= 0.9).tolist()
    assert found == expected


def test_query_with_radius_beyond_cell_logs_warning(caplog):
    pts = _make_random_cloud(50, seed=3)
    index = SpatialIndex.build(pts, cell_size=0.5)
    with caplog.at_level("WARNING", logger="mesh_deviation.acceleration.spatial_index"):
        list(index.query(pts[0], radius=2.0))
    assert any("exceeds cell size" in r.message for r in caplog.records)


def test_nearest_matches_kdtree_within_threshold():
    target = _make_random_cloud(3000, seed=4)
    queries = _make_random_cloud(1000, seed=5)
    threshold = 0.8
    index = SpatialIndex.build(target, cell_size=threshold)

    idx, dist = index.nearest(queries, max_distance=threshold)

    d_ref, i_ref = KDTree(target).query(queries, k=1)
    d_ref = d_ref.ravel()
    within = d_ref <= threshold
    assert np.array_equal(idx >= 0, within)
    np.testing.assert_allclose(dist[within], d_ref[within], rtol=0, atol=1e-12)
    assert np.all(np.isinf(dist[~within]))
    assert np.all(idx[~within] == -1)


def test_nearest_tie_breaks_on_lowest_index():
    # Two target points equidistant from the query
    target = np.array([[1.0, 0.0, 0.0], [-1.0, 0.0, 0.0], [0.0, 5.0, 0.0]])
    index = SpatialIndex.build(target, cell_size=2.0)
    idx, dist = index.nearest(np.array([[0.0, 0.0, 0.0]]), max_distance=2.0)
    assert idx[0] == 0
    assert dist[0] == 1.0

    # Same geometry with the labels swapped
    index = SpatialIndex.build(target[[1, 0, 2]], cell_size=2.0)
    idx, _ = index.nearest(np.array([[0.0, 0.0, 0.0]]), max_distance=2.0)
    assert idx[0] == 0


def test_nearest_far_query_finds_nothing():
    target = _make_random_cloud(100, seed=6)
    index = SpatialIndex.build(target, cell_size=1.0)
    idx, dist = index.nearest(np.array([[1e6, 1e6, 1e6]]))
    assert idx[0] == -1
    assert np.isinf(dist[0])


def test_nearest_is_identical_for_any_worker_count():
    target = _make_random_cloud(4000, seed=7)
    queries = _make_random_cloud(5000, seed=8)
    index = SpatialIndex.build(target, cell_size=0.6)

    idx_seq, dist_seq = index.nearest(queries, max_distance=0.6)
    executor = ChunkParallelExecutor(n_workers=4, chunk_size=333, min_points=1)
    idx_par, dist_par = index.nearest(queries, max_distance=0.6, executor=executor)

    assert np.array_equal(idx_seq, idx_par)
    assert np.array_equal(dist_seq, dist_par)


def test_tiny_cell_over_large_extent_stores_only_occupied_cells():
    rng = np.random.default_rng(9)
    target = rng.uniform(-1000.0, 1000.0, size=(200, 3))
    index = SpatialIndex.build(target, cell_size=1e-6)

    # One cell per point; the bounding grid would hold ~1e28 cells
    assert len(index) == 200
    assert index.cell_counts.tolist() == [1] * 200
    coords = index.cell_coords
    assert np.all(np.diff(coords[:, 0]) >= 0)

    queries = target + 1e-7
    idx, dist = index.nearest(queries, max_distance=1e-6)
    assert np.array_equal(idx, np.arange(200))
    np.testing.assert_allclose(dist, np.sqrt(3) * 1e-7, rtol=1e-4)

    for i in (0, 99, 199):
        assert index.bucket(index.cell_of(target[i])).tolist() == [i]


def test_build_rejects_cells_beyond_int64_range():
    pts = np.array([[0.0, 0.0, 0.0], [1e300, 0.0, 0.0]])
    with pytest.raises(InvalidInputError):
        SpatialIndex.build(pts, cell_size=1e-6)


def test_cell_size_for_uses_bounding_diagonal():
    pts = np.array([[0.0, 0.0, 0.0], [3.0, 4.0, 0.0]])
    assert cell_size_for(pts, 50) == pytest.approx(5.0 / 50)
    # Coincident points: fall back to a unit cell
    assert cell_size_for(np.zeros((4, 3)), 50) == 1.0
