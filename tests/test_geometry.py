import numpy as np
import pytest

from calibbaseline.core.geometry import (
    RigidTransform,
    rotation_about_axis,
    rotation_error,
    translation_error,
)


def test_row_major_fill_order():
    values = np.arange(16, dtype=np.float64)
    T = RigidTransform.from_row_major(values)
    assert T.matrix[0, 3] == 3.0
    assert T.matrix[2, 1] == 9.0
    assert np.array_equal(T.translation, [3.0, 7.0, 11.0])
    assert np.array_equal(T.to_row_major(), values)


def test_from_row_major_rejects_wrong_length():
    with pytest.raises(ValueError):
        RigidTransform.from_row_major(np.zeros(12))


def test_rodrigues_is_orthonormal():
    R = rotation_about_axis(np.array([0.3, -1.0, 2.0]), 37.0)
    assert np.max(np.abs(R.T @ R - np.eye(3))) < 1e-12
    assert np.linalg.det(R) == pytest.approx(1.0, abs=1e-12)


def test_pure_rotation_ten_degrees_about_arbitrary_axis():
    axis = np.array([1.0, 2.0, 3.0])
    t = np.array([12.5, -3.0, 40.0])
    a = RigidTransform.from_rotation_translation(np.eye(3), t)
    b = RigidTransform.from_rotation_translation(rotation_about_axis(axis, 10.0), t)
    assert rotation_error(a, b) == pytest.approx(10.0, abs=1e-9)
    assert translation_error(a, b) == 0.0


def test_rotation_error_is_relative_to_first_orientation():
    base = rotation_about_axis(np.array([0.0, 1.0, 0.0]), 30.0)
    delta = rotation_about_axis(np.array([-2.0, 0.5, 1.0]), 10.0)
    a = RigidTransform.from_rotation_translation(base, np.zeros(3))
    b = RigidTransform.from_rotation_translation(base @ delta, np.zeros(3))
    assert rotation_error(a, b) == pytest.approx(10.0, abs=1e-9)
    assert rotation_error(b, a) == pytest.approx(10.0, abs=1e-9)


def test_half_turn_does_not_produce_nan():
    a = RigidTransform.identity()
    b = RigidTransform.from_rotation_translation(rotation_about_axis(np.array([0.0, 0.0, 1.0]), 180.0), np.zeros(3))
    assert rotation_error(a, b) == pytest.approx(180.0, abs=1e-6)


def test_identical_transforms_have_zero_error():
    R = rotation_about_axis(np.array([1.0, 1.0, 0.0]), 73.0)
    T = RigidTransform.from_rotation_translation(R, np.array([1.0, 2.0, 3.0]))
    assert rotation_error(T, T) == 0.0
    assert translation_error(T, T) == 0.0


def test_translation_error_is_euclidean():
    a = RigidTransform.from_rotation_translation(np.eye(3), np.array([1.0, 2.0, 3.0]))
    b = RigidTransform.from_rotation_translation(np.eye(3), np.array([4.0, 6.0, 3.0]))
    assert translation_error(a, b) == pytest.approx(5.0)
