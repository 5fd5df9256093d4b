"""
Utility functions for rigid transforms
======================================

This module contains the homogeneous-transform helpers shared by the sample
store, the admissibility filter, the solvers and the export formatters.
All transforms are 4x4 float64 numpy arrays.
"""

import numpy as np
from typing import Sequence, Tuple
from scipy.spatial.transform import Rotation


def make_transform(rotation, translation) -> np.ndarray:
    """
    Build a 4x4 homogeneous transformation matrix.

    Args:
        rotation: 3x3 rotation matrix
        translation: 3-element translation vector

    Returns:
        4x4 transformation matrix
    """
    matrix = np.eye(4, dtype=np.float64)
    matrix[:3, :3] = np.asarray(rotation, dtype=np.float64)
    matrix[:3, 3] = np.asarray(translation, dtype=np.float64).reshape(3)
    return matrix


def as_transform(matrix) -> np.ndarray:
    """
    Convert input to a 4x4 float64 array, checking shape and finiteness.

    Raises:
        ValueError: If the input is not a finite 4x4 matrix
    """
    matrix = np.asarray(matrix, dtype=np.float64)
    if matrix.shape != (4, 4):
        raise ValueError(f"Transformation matrix must be 4x4, got shape {matrix.shape}")
    if not np.all(np.isfinite(matrix)):
        raise ValueError("Transformation matrix contains NaN or infinite values")
    return matrix


def inverse_transform_matrix(T):
    """
    Calculate the inverse of a 4x4 transformation matrix.

    Args:
        T: 4x4 transformation matrix

    Returns:
        Inverse transformation matrix
    """
    R = T[:3, :3]
    t = T[:3, 3]

    R_inv = R.T
    t_inv = -np.dot(R_inv, t)

    T_inv = np.identity(4)
    T_inv[:3, :3] = R_inv
    T_inv[:3, 3] = t_inv

    return T_inv


def normalize_transform(matrix) -> np.ndarray:
    """
    Re-normalize the rotation block of a transform.

    The rotation is converted to a unit quaternion and back, which projects a
    slightly drifted rotation block onto a proper orthonormal rotation.

    Raises:
        ValueError: If the matrix is not a rigid transform (bad shape, bad
            homogeneous row, or a rotation block with non-positive determinant)
    """
    matrix = as_transform(matrix)
    if not np.allclose(matrix[3, :], [0, 0, 0, 1], atol=1e-6):
        raise ValueError(f"Transformation matrix bottom row is not [0, 0, 0, 1]: {matrix[3, :]}")
    if np.linalg.det(matrix[:3, :3]) <= 0:
        raise ValueError("Rotation block is not a proper rotation (determinant <= 0)")

    quat = Rotation.from_matrix(matrix[:3, :3]).as_quat()
    quat /= np.linalg.norm(quat)
    return make_transform(Rotation.from_quat(quat).as_matrix(), matrix[:3, 3])


def rotation_angle(rotation) -> float:
    """Axis-angle magnitude of a 3x3 rotation matrix, in [0, pi]."""
    rotation = np.asarray(rotation, dtype=np.float64)
    cos_angle = (np.trace(rotation) - 1.0) / 2.0
    return float(np.arccos(np.clip(cos_angle, -1.0, 1.0)))


def relative_rotation_angle(prior, candidate) -> float:
    """Rotation angle of inverse(prior) * candidate."""
    relative = inverse_transform_matrix(prior) @ candidate
    return rotation_angle(relative[:3, :3])


def matrix_to_quaternion(matrix) -> Tuple[float, float, float, float]:
    """Quaternion (x, y, z, w) of the rotation block of a 4x4 transform."""
    x, y, z, w = Rotation.from_matrix(np.asarray(matrix)[:3, :3]).as_quat()
    return float(x), float(y), float(z), float(w)


def _wrap_angle(angle: float) -> float:
    return (angle + np.pi) % (2.0 * np.pi) - np.pi


def matrix_to_euler_xyz(matrix) -> Tuple[float, float, float]:
    """
    Intrinsic X-Y-Z Euler angles (radians) of the rotation block.

    The first angle is returned in [0, pi] and the other two in [-pi, pi],
    the ranges Eigen's ``eulerAngles(0, 1, 2)`` uses. A negative first angle
    from scipy is replaced by the equivalent triple (a + pi, pi - b, c + pi).
    """
    a, b, c = Rotation.from_matrix(np.asarray(matrix)[:3, :3]).as_euler('XYZ')
    if a < 0:
        a, b, c = a + np.pi, _wrap_angle(np.pi - b), _wrap_angle(c + np.pi)
    return float(a), float(b), float(c)


# Mathematical utility functions
def rpy_to_matrix(coords):
    """
    Calculate rotation matrix from roll-pitch-yaw angles (radians).

    Args:
        coords: Array of [roll, pitch, yaw] in radians

    Returns:
        3x3 rotation matrix
    """
    coords = np.asanyarray(coords, dtype=np.float64)
    c3, c2, c1 = np.cos(coords)
    s3, s2, s1 = np.sin(coords)

    return np.array([
        [c1 * c2, (c1 * s2 * s3) - (c3 * s1), (s1 * s3) + (c1 * c3 * s2)],
        [c2 * s1, (c1 * c3) + (s1 * s2 * s3), (c3 * s1 * s2) - (c1 * s3)],
        [-s2, c2 * s3, c2 * c3]
    ], dtype=np.float64)


def xyz_rpy_to_matrix(xyz_rpy):
    """
    Calculate 4x4 transformation matrix from xyz positions and rpy angles.

    Args:
        xyz_rpy: Array of [x, y, z, roll, pitch, yaw]

    Returns:
        4x4 transformation matrix

    Raises:
        ValueError: If the input does not hold six numbers
    """
    xyz_rpy =np.asarray(xyz_rpy, dtype=np.float64).reshape(-1)
    if xyz_rpy.shape != (6,):
        raise ValueError(f"Expected [x, y, z, roll, pitch, yaw], got {xyz_rpy.shape[0]} values")
    return make_transform(rpy_to_matrix(xyz_rpy[3:]), xyz_rpy[:3])


def transform_to_pretty_string(matrix) -> str:
    """
    Format a transform as ``((x, y, z,), (qx, qy, qz, qw))``.

    This is the text shown for each recorded sample.
    """
    x, y, z = (float(v) for v in np.asarray(matrix)[:3, 3])
    qx, qy, qz, qw = matrix_to_quaternion(matrix)
    return f"(({x:g}, {y:g}, {z:g},), ({qx:g}, {qy:g}, {qz:g}, {qw:g}))"


def stack_transforms(transforms: Sequence[np.ndarray]) -> np.ndarray:
    """Stack a list of 4x4 transforms into an (N, 4, 4) array."""
    if len(transforms) == 0:
        return np.zeros((0, 4, 4), dtype=np.float64)
    return np.stack([np.asarray(t, dtype=np.float64) for t in transforms])
