"""
Unit tests for utility functions.

Tests the rigid-transform helpers in the utils module.
"""
import pytest
import numpy as np
from scipy.spatial.transform import Rotation

from handeye_core.utils import (
    as_transform,
    inverse_transform_matrix,
    make_transform,
    matrix_to_euler_xyz,
    matrix_to_quaternion,
    normalize_transform,
    relative_rotation_angle,
    rotation_angle,
    rpy_to_matrix,
    stack_transforms,
    transform_to_pretty_string,
    xyz_rpy_to_matrix,
)


class TestMathematicalUtilities:
    """Test mathematical utility functions."""

    @pytest.mark.unit
    def test_rpy_to_matrix(self):
        """Test roll-pitch-yaw to rotation matrix conversion."""
        identity_matrix = rpy_to_matrix([0.0, 0.0, 0.0])
        np.testing.assert_array_almost_equal(identity_matrix, np.eye(3))

        R = rpy_to_matrix([0.1, -0.2, 0.3])
        assert R.shape == (3, 3)
        assert abs(np.linalg.det(R) - 1.0) < 1e-9
        expected = Rotation.from_euler('xyz', [0.1, -0.2, 0.3]).as_matrix()
        np.testing.assert_array_almost_equal(R, expected)

    @pytest.mark.unit
    def test_xyz_rpy_to_matrix(self):
        """Test XYZ+RPY to transformation matrix conversion."""
        xyz_rpy = [0.1, 0.2, 0.3, 0.4, -0.5, 0.6]
        T = xyz_rpy_to_matrix(xyz_rpy)

        assert T.shape == (4, 4)
        np.testing.assert_array_almost_equal(T[3, :], [0, 0, 0, 1])
        np.testing.assert_array_almost_equal(T[:3, 3], [0.1, 0.2, 0.3])
        expected = Rotation.from_euler('xyz', [0.4, -0.5, 0.6]).as_matrix()
        np.testing.assert_array_almost_equal(T[:3, :3], expected)

    @pytest.mark.unit
    def test_xyz_rpy_to_matrix_rejects_wrong_length(self):
        with pytest.raises(ValueError, match="got 5 values"):
            xyz_rpy_to_matrix([0.1, 0.2, 0.3, 0.4, 0.5])

    @pytest.mark.unit
    def test_inverse_transform_matrix(self):
        """Test transformation matrix inversion."""
        T = xyz_rpy_to_matrix([1.0, 2.0, 3.0, 0.3, 0.2, 0.1])
        T_inv = inverse_transform_matrix(T)

        np.testing.assert_array_almost_equal(T @ T_inv, np.eye(4))
        np.testing.assert_array_almost_equal(T_inv @ T, np.eye(4))


class TestRotationAngles:
    """Test rotation angle helpers used by the admissibility filter."""

    @pytest.mark.unit
    def test_rotation_angle_known_values(self):
        assert rotation_angle(np.eye(3)) == pytest.approx(0.0)
        R = Rotation.from_rotvec([0.0, 0.0, 0.7]).as_matrix()
        assert rotation_angle(R) == pytest.approx(0.7)
        R = Rotation.from_rotvec([np.pi, 0.0, 0.0]).as_matrix()
        assert rotation_angle(R) == pytest.approx(np.pi)

    @pytest.mark.unit
    def test_relative_rotation_angle_ignores_translation(self):
        prior = make_transform(Rotation.from_rotvec([0.2, 0.0, 0.0]).as_matrix(), [1, 2, 3])
        candidate = make_transform(Rotation.from_rotvec([0.5, 0.0, 0.0]).as_matrix(), [-4, 0, 9])
        assert relative_rotation_angle(prior, candidate) == pytest.approx(0.3)
        assert relative_rotation_angle(candidate, prior) == pytest.approx(0.3)


class TestTransformValidation:
    """Test shape checks and rotation re-normalization."""

    @pytest.mark.unit
    def test_as_transform_rejects_bad_input(self):
        with pytest.raises(ValueError, match="4x4"):
            as_transform(np.eye(3))

        bad = np.eye(4)
        bad[0, 3] = np.nan
        with pytest.raises(ValueError, match="NaN"):
            as_transform(bad)

    @pytest.mark.unit
    def test_normalize_transform_projects_drifted_rotation(self):
        T = xyz_rpy_to_matrix([0.1, 0.2, 0.3, 0.2, 0.1, -0.3])
        drifted = T.copy()
        drifted[:3, :3] *= 1.0 + 1e-6

        normalized = normalize_transform(drifted)

        R = normalized[:3, :3]
        np.testing.assert_allclose(R @ R.T, np.eye(3), atol=1e-12)
        np.testing.assert_allclose(R, T[:3, :3], atol=1e-5)
        np.testing.assert_array_equal(normalized[:3, 3], T[:3, 3])

    @pytest.mark.unit
    def test_normalize_transform_rejects_reflection(self):
        reflection = np.diag([1.0, 1.0, -1.0, 1.0])
        with pytest.raises(ValueError, match="determinant"):
            normalize_transform(reflection)

    @pytest.mark.unit
    def test_normalize_transform_rejects_bad_bottom_row(self):
        T = np.eye(4)
        T[3, 0] = 0.5
        with pytest.raises(ValueError, match="bottom row"):
            normalize_transform(T)


class TestFormatting:
    """Test conversions used for display and export."""

    @pytest.mark.unit
    def test_quaternion_order_is_xyzw(self):
        T = make_transform(Rotation.from_rotvec([0.0, 0.0, np.pi / 2]).as_matrix(), [0, 0, 0])
        qx, qy, qz, qw = matrix_to_quaternion(T)
        assert (qx, qy) == (pytest.approx(0.0), pytest.approx(0.0))
        assert abs(qz) == pytest.approx(np.sqrt(0.5))
        assert abs(qw) == pytest.approx(np.sqrt(0.5))

    @pytest.mark.unit
    def test_euler_xyz(self):
        angles = (0.1, 0.2, 0.3)
        T = make_transform(Rotation.from_euler('XYZ', angles).as_matrix(), [0, 0, 0])
        np.testing.assert_allclose(matrix_to_euler_xyz(T), angles)

    @pytest.mark.unit
    def test_euler_xyz_first_angle_is_non_negative(self):
        """A negative first angle is folded into [0, pi] with an equivalent triple."""
        R = Rotation.from_euler('XYZ', (-0.5, 0.3, 0.2)).as_matrix()
        a, b, c = matrix_to_euler_xyz(make_transform(R, [0, 0, 0]))

        assert 0.0 <= a <= np.pi
        assert -np.pi <= b <= np.pi
        assert -np.pi <= c <= np.pi
        np.testing.assert_allclose((a, b, c), (np.pi - 0.5, np.pi - 0.3, 0.2 - np.pi), atol=1e-9)
        np.testing.assert_allclose(Rotation.from_euler('XYZ', (a, b, c)).as_matrix(), R, atol=1e-9)

    @pytest.mark.unit
    def test_transform_to_pretty_string(self):
        T = make_transform(np.eye(3), [0.5, -1.25, 2.0])
        assert transform_to_pretty_string(T) == "((0.5, -1.25, 2,), (0, 0, 0, 1))"

    @pytest.mark.unit
    def test_stack_transforms(self):
        assert stack_transforms([]).shape == (0, 4, 4)
        stacked = stack_transforms([np.eye(4), np.eye(4)])
        assert stacked.shape == (2, 4, 4)
