"""
Tests for PointSet and the rigid transform helpers.
"""

from pathlib import Path
import sys

import numpy as np
import pytest

sys.path.append(str(Path(__file__).parent.parent / "src"))

from mesh_deviation.exceptions import InvalidInputError
from mesh_deviation.geometry.point_set import PointSet, as_point_set
from mesh_deviation.geometry.transforms import (
    apply_transform,
    compose,
    invert_rigid,
    make_rigid_transform,
    rotation_about_axis,
    rotation_angle,
    translation_norm,
    validate_transform,
)


class TestPointSet:
    def test_from_buffer_reshapes_flat_vertices(self):
        ps = PointSet.from_buffer([0, 0, 0, 1, 2, 3])
        assert len(ps) == 2
        np.testing.assert_array_equal(ps[1], [1.0, 2.0, 3.0])
        assert ps.points.dtype == np.float64

    def test_from_buffer_rejects_partial_vertex(self):
        with pytest.raises(InvalidInputError):
            PointSet.from_buffer([0.0, 1.0, 2.0, 3.0])

    def test_empty_input_gives_empty_set(self):
        ps = PointSet([])
        assert ps.is_empty
        assert ps.points.shape == (0, 3)
        with pytest.raises(InvalidInputError):
            ps.require_non_empty("reference")

    @pytest.mark.parametrize(
        "bad",
        [
            [[0.0, 0.0]],
            [[0.0, np.nan, 0.0]],
            [[np.inf, 0.0, 0.0]],
        ],
    )
    def test_rejects_bad_points(self, bad):
        with pytest.raises(InvalidInputError):
            PointSet(bad)

    def test_is_immutable_and_copies_input(self):
        arr = np.zeros((3, 3))
        ps = PointSet(arr)
        arr[0, 0] = 5.0
        assert ps[0, 0] == 0.0
        with pytest.raises(ValueError):
            ps.points[0, 0] = 1.0

    def test_bounds_diagonal_and_centroid(self):
        ps = PointSet([[0.0, 0.0, 0.0], [3.0, 4.0, 0.0], [0.0, 4.0, 0.0]])
        lo, hi = ps.bounds()
        np.testing.assert_array_equal(lo, [0.0, 0.0, 0.0])
        np.testing.assert_array_equal(hi, [3.0, 4.0, 0.0])
        assert ps.bounding_diagonal() == pytest.approx(5.0)
        np.testing.assert_allclose(ps.centroid(), [1.0, 8.0 / 3.0, 0.0])

    def test_transformed_returns_new_set(self):
        ps = PointSet([[1.0, 0.0, 0.0]])
        T = make_rigid_transform(rotation_about_axis([0, 0, 1], np.pi / 2), [0.0, 0.0, 1.0])
        moved = ps.transformed(T)
        np.testing.assert_allclose(moved.points, [[0.0, 1.0, 1.0]], atol=1e-12)
        np.testing.assert_array_equal(ps.points, [[1.0, 0.0, 0.0]])

    def test_subsample_keeps_every_nth_point(self):
        ps = PointSet(np.arange(30, dtype=float).reshape(10, 3))
        half = ps.subsample(0.5)
        assert len(half) == 5
        np.testing.assert_array_equal(half.points, ps.points[::2])
        # floor(1 / 0.4) == 2
        assert len(ps.subsample(0.4)) == 5
        assert ps.subsample(1.0) is ps

    @pytest.mark.parametrize("density", [0.0, -0.5, 1.5, float("nan")])
    def test_subsample_rejects_bad_density(self, density):
        with pytest.raises(InvalidInputError):
            PointSet(np.zeros((4, 3))).subsample(density)

    def test_as_point_set_passes_through(self):
        ps = PointSet(np.zeros((2, 3)))
        assert as_point_set(ps) is ps
        assert isinstance(as_point_set([[1.0, 2.0, 3.0]]), PointSet)

    def test_numpy_interop(self):
        ps = PointSet(np.ones((4, 3)))
        arr = np.asarray(ps)
        assert arr.shape == (4, 3)
        assert np.asarray(ps, dtype=np.float32).dtype == np.float32


class TestTransforms:
    def test_apply_transform_empty(self):
        out = apply_transform(np.empty((0, 3)), np.eye(4))
        assert out.shape == (0, 3)

    def test_compose_is_in_application_order(self):
        A = make_rigid_transform(np.eye(3), [1.0, 0.0, 0.0])
        B = make_rigid_transform(rotation_about_axis([0, 0, 1], np.pi / 2), [0.0, 0.0, 0.0])
        p = np.array([[0.0, 0.0, 0.0]])
        # Translate to (1,0,0), then rotate to (0,1,0)
        np.testing.assert_allclose(apply_transform(p, compose(A, B)), [[0.0, 1.0, 0.0]], atol=1e-12)

    def test_invert_rigid_round_trip(self):
        T = make_rigid_transform(rotation_about_axis([1, 2, 3], 0.7), [0.3, -1.0, 2.0])
        np.testing.assert_allclose(invert_rigid(T) @ T, np.eye(4), atol=1e-12)

    def test_rotation_angle_and_translation_norm(self):
        T = make_rigid_transform(rotation_about_axis([0, 1, 0], 0.25), [3.0, 4.0, 0.0])
        assert rotation_angle(T) == pytest.approx(0.25)
        assert translation_norm(T) == pytest.approx(5.0)
        assert rotation_angle(np.eye(4)) == 0.0

    def test_validate_transform_rejects_bad_input(self):
        with pytest.raises(InvalidInputError):
            validate_transform(np.eye(3))
        bad = np.eye(4)
        bad[0, 3] = np.nan
        with pytest.raises(InvalidInputError):
            validate_transform(bad)

    def test_rotation_about_zero_axis_raises(self):
        with pytest.raises(InvalidInputError):
            rotation_about_axis([0, 0, 0], 1.0)
