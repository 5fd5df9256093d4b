"""
Calibration Data Model
======================

Value types shared across the hand-eye calibration core:

- MountType: where the sensor is mounted, and which frame it is calibrated against
- CalibrationResult: solved camera-robot pose with its reprojection error
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Tuple

import numpy as np

from .utils import matrix_to_euler_xyz, matrix_to_quaternion


class MountType(str, Enum):
    """Sensor mount configuration for hand-eye calibration."""
    EYE_TO_HAND = "eye_to_hand"
    EYE_IN_HAND = "eye_in_hand"

    @classmethod
    def from_index(cls, index: int) -> "MountType":
        """Map a selector index (0: eye-to-hand, 1: eye-in-hand) to a mount type."""
        members = [cls.EYE_TO_HAND, cls.EYE_IN_HAND]
        if not 0 <= index < len(members):
            raise ValueError(f"Invalid sensor mount type index: {index}")
        return members[index]

    @property
    def from_frame_tag(self) -> str:
        """Frame tag the camera pose is published from."""
        return "base" if self is MountType.EYE_TO_HAND else "eef"

    @property
    def label(self) -> str:
        """Label written into exported launch files."""
        return "EYE-TO-HAND" if self is MountType.EYE_TO_HAND else "EYE-IN-HAND"


@dataclass(frozen=True)
class CalibrationResult:
    """
    Solved camera-robot pose.

    For EYE_TO_HAND the pose is the sensor frame expressed in the robot base
    frame; for EYE_IN_HAND it is the sensor frame expressed in the end-effector
    frame.
    """
    camera_robot_pose: np.ndarray
    translation_error: float
    rotation_error: float
    solver_id: str
    mount_type: MountType
    sample_count: int

    @property
    def translation(self) -> Tuple[float, float, float]:
        x, y, z = (float(v) for v in self.camera_robot_pose[:3, 3])
        return x, y, z

    @property
    def quaternion(self) -> Tuple[float, float, float, float]:
        """Rotation as (x, y, z, w)."""
        return matrix_to_quaternion(self.camera_robot_pose)

    @property
    def euler_xyz(self) -> Tuple[float, float, float]:
        return matrix_to_euler_xyz(self.camera_robot_pose)

    @property
    def reprojection_error(self) -> Tuple[float, float]:
        return self.translation_error, self.rotation_error

    def reprojection_error_text(self) -> str:
        return f"Reprojection error:\n{self.translation_error:g} m, {self.rotation_error:g} rad"

    def to_json(self) -> Dict[str, Any]:
        """Serialize to a JSON-compatible dictionary."""
        return {
            'camera_robot_pose': self.camera_robot_pose.tolist(),
            'translation': list(self.translation),
            'quaternion': list(self.quaternion),
            'euler_xyz': list(self.euler_xyz),
            'translation_error': float(self.translation_error),
            'rotation_error': float(self.rotation_error),
            'solver': self.solver_id,
            'mount_type': self.mount_type.value,
            'sample_count': int(self.sample_count),
        }
