"""
Hand-Eye Solver Module
======================

This module provides the pluggable AX=XB solver layer:

- HandEyeSolverBase: abstract solver provider exposing one or more algorithms
- OpenCVHandEyeSolver: provider backed by cv2.calibrateHandEye
- SolverRegistry: explicit mapping from provider name to provider instance
- solve_calibration(): resolves a "<provider>/<algorithm>" id, runs the
  solver and computes the reprojection error of the result

Solver ids use the format "provider_name/algorithm_name", for example
"opencv/TSAI".
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple

import cv2
import numpy as np
from scipy.spatial.transform import Rotation

from .errors import SolveError, ValidationError
from .models import CalibrationResult, MountType
from .utils import inverse_transform_matrix, make_transform, rotation_angle, stack_transforms

logger = logging.getLogger(__name__)

SOLVER_NAME_DELIMITER = '/'


def compute_reprojection_error(effector_wrt_world: Sequence[np.ndarray],
                               object_wrt_sensor: Sequence[np.ndarray],
                               camera_robot_pose: np.ndarray,
                               mount_type: MountType) -> Tuple[float, float]:
    """
    Reproject every sample through a solved camera-robot pose.

    The solved pose implies one stationary transform per sample: the target in
    the robot base (eye-in-hand) or the target in the end-effector
    (eye-to-hand). Their average is mapped back into the sensor frame for
    every sample and compared with the measured target pose.

    Args:
        effector_wrt_world: End-effector poses in the robot base frame
        object_wrt_sensor: Target poses in the sensor frame
        camera_robot_pose: Solved 4x4 camera-robot transform
        mount_type: Sensor mount configuration

    Returns:
        Tuple of (mean translation error in meters, mean rotation error in radians)
    """
    mount_type = MountType(mount_type)
    X = np.asarray(camera_robot_pose, dtype=np.float64)
    X_inv = inverse_transform_matrix(X)

    stationary = []
    for effector, target in zip(effector_wrt_world, object_wrt_sensor):
        if mount_type == MountType.EYE_IN_HAND:
            stationary.append(effector @ X @ target)
        else:
            stationary.append(inverse_transform_matrix(effector) @ X @ target)
    stationary = stack_transforms(stationary)
    if len(stationary) == 0:
        return 0.0, 0.0

    mean_rotation = Rotation.from_matrix(stationary[:, :3, :3]).mean().as_matrix()
    mean_translation = stationary[:, :3, 3].mean(axis=0)
    stationary_mean = make_transform(mean_rotation, mean_translation)

    translation_error = 0.0
    rotation_error = 0.0
    for effector, target in zip(effector_wrt_world, object_wrt_sensor):
        if mount_type == MountType.EYE_IN_HAND:
            predicted = X_inv @ inverse_transform_matrix(effector) @ stationary_mean
        else:
            predicted = X_inv @ effector @ stationary_mean
        translation_error += float(np.linalg.norm(predicted[:3, 3] - target[:3, 3]))
        rotation_error += rotation_angle(predicted[:3, :3].T @ target[:3, :3])

    count = len(stationary)
    return translation_error / count, rotation_error / count


class HandEyeSolverBase(ABC):
    """
    Abstract base class for hand-eye solver providers.

    A provider exposes one or more named algorithms. After a successful
    solve() the result is available from get_camera_robot_pose().
    """

    def __init__(self):
        self.camera_robot_pose = np.eye(4)

    def initialize(self) -> None:
        """Prepare the provider before first use."""
        self.camera_robot_pose = np.eye(4)

    @abstractmethod
    def get_solver_names(self) -> List[str]:
        """Names of the algorithms this provider implements."""
        raise NotImplementedError("get_solver_names() must be implemented by subclasses")

    @abstractmethod
    def solve(self,
              effector_wrt_world: Sequence[np.ndarray],
              object_wrt_sensor: Sequence[np.ndarray],
              mount_type: MountType,
              algorithm: str) -> Tuple[bool, str]:
        """
        Solve AX=XB for the camera-robot pose.

        Returns:
            Tuple of (success, error_message). The message is empty on success.
        """
        raise NotImplementedError("solve() must be implemented by subclasses")

    def get_camera_robot_pose(self) -> np.ndarray:
        return self.camera_robot_pose.copy()

    def get_reprojection_error(self,
                               effector_wrt_world: Sequence[np.ndarray],
                               object_wrt_sensor: Sequence[np.ndarray],
                               camera_robot_pose: np.ndarray,
                               mount_type: MountType) -> Tuple[float, float]:
        return compute_reprojection_error(effector_wrt_world, object_wrt_sensor,
                                          camera_robot_pose, mount_type)


class OpenCVHandEyeSolver(HandEyeSolverBase):
    """
    Solver provider using OpenCV's calibrateHandEye.

    EYE_IN_HAND solves the sensor pose in the end-effector frame. EYE_TO_HAND
    feeds the inverted end-effector poses and solves the sensor pose in the
    robot base frame.
    """

    METHODS = {
        "TSAI": cv2.CALIB_HAND_EYE_TSAI,
        "PARK": cv2.CALIB_HAND_EYE_PARK,
        "HORAUD": cv2.CALIB_HAND_EYE_HORAUD,
        "ANDREFF": cv2.CALIB_HAND_EYE_ANDREFF,
        "DANIILIDIS": cv2.CALIB_HAND_EYE_DANIILIDIS,
    }

    MIN_SAMPLES = 3

    def get_solver_names(self) -> List[str]:
        return list(self.METHODS.keys())

    def solve(self, effector_wrt_world, object_wrt_sensor, mount_type, algorithm):
        if algorithm not in self.METHODS:
            return False, f"Unknown algorithm '{algorithm}'"
        if len(effector_wrt_world) != len(object_wrt_sensor):
            return False, "Different number of poses"
        if len(effector_wrt_world) < self.MIN_SAMPLES:
            return False, (f"At least {self.MIN_SAMPLES} pose samples are required, "
                           f"got {len(effector_wrt_world)}")

        mount_type = MountType(mount_type)
        if mount_type == MountType.EYE_TO_HAND:
            # OpenCV expects base2gripper for a stationary camera
            robot_poses = [inverse_transform_matrix(E) for E in effector_wrt_world]
        else:
            robot_poses = [np.asarray(E, dtype=np.float64) for E in effector_wrt_world]

        R_robot = [T[:3, :3] for T in robot_poses]
        t_robot = [T[:3, 3].reshape(3, 1) for T in robot_poses]
        R_target = [np.asarray(T, dtype=np.float64)[:3, :3] for T in object_wrt_sensor]
        t_target = [np.asarray(T, dtype=np.float64)[:3, 3].reshape(3, 1) for T in object_wrt_sensor]

        try:
            R_result, t_result = cv2.calibrateHandEye(
                R_robot, t_robot, R_target, t_target, method=self.METHODS[algorithm])
        except cv2.error as e:
            return False, str(e)

        if R_result is None or t_result is None:
            return False, f"{algorithm} solver returned no solution"

        pose = make_transform(R_result, t_result)
        if not np.all(np.isfinite(pose)):
            return False, f"{algorithm} solver returned a non-finite solution"

        self.camera_robot_pose = pose
        return True, ""


class SolverRegistry:
    """
    Registry of solver providers.

    Providers are registered under a name at startup; each provider's
    algorithms are addressed as "provider_name/algorithm_name".
    """

    def __init__(self):
        self._providers: Dict[str, HandEyeSolverBase] = {}

    def register_solver(self, provider_name: str, provider: HandEyeSolverBase) -> None:
        """
        Register a solver provider.

        Raises:
            ValueError: If the name is empty or contains the id delimiter
        """
        if not provider_name or SOLVER_NAME_DELIMITER in provider_name:
            raise ValueError(f"Invalid solver provider name: '{provider_name}'")
        provider.initialize()
        self._providers[provider_name] = provider

    def unregister_solver(self, provider_name: str) -> None:
        if provider_name not in self._providers:
            raise ValueError(f"Solver provider '{provider_name}' is not registered")
        del self._providers[provider_name]

    def get_provider(self, provider_name: str) -> HandEyeSolverBase:
        if provider_name not in self._providers:
            available = ', '.join(self._providers.keys())
            raise ValidationError(
                f"Unknown solver provider: '{provider_name}'. Available providers: {available}")
        return self._providers[provider_name]

    def get_available_solvers(self) -> List[str]:
        """All solver ids in registration order."""
        solvers = []
        for provider_name, provider in self._providers.items():
            for algorithm in provider.get_solver_names():
                solvers.append(f"{provider_name}{SOLVER_NAME_DELIMITER}{algorithm}")
        return solvers

    def resolve(self, solver_id: str) -> Tuple[HandEyeSolverBase, str]:
        """
        Resolve a solver id to its provider and algorithm name.

        Raises:
            ValidationError: If the id is malformed or names an unknown provider or algorithm
        """
        provider_name, algorithm = parse_solver_name(solver_id)
        provider = self.get_provider(provider_name)
        if algorithm not in provider.get_solver_names():
            raise ValidationError(f"Solver provider '{provider_name}' has no algorithm '{algorithm}'")
        return provider, algorithm

    def get_solver_info(self, solver_id: str) -> Dict[str, Any]:
        provider, algorithm = self.resolve(solver_id)
        return {
            'id': solver_id,
            'provider': parse_solver_name(solver_id)[0],
            'algorithm': algorithm,
            'class_name': provider.__class__.__name__,
            'docstring': provider.__class__.__doc__ or "No description available",
        }


def parse_solver_name(solver_id: str, delimiter: str = SOLVER_NAME_DELIMITER) -> Tuple[str, str]:
    """
    Split a solver id into (provider_name, algorithm_name).

    Raises:
        ValidationError: If either part is empty
    """
    provider_name, _, algorithm = (solver_id or '').rpartition(delimiter)
    if not provider_name or not algorithm:
        raise ValidationError(
            f"Invalid solver name '{solver_id}', expected 'provider{delimiter}algorithm'")
    return provider_name, algorithm


def default_registry() -> SolverRegistry:
    """Registry populated with the built-in OpenCV provider."""
    registry = SolverRegistry()
    registry.register_solver('opencv', OpenCVHandEyeSolver())
    return registry


def solve_calibration(effector_wrt_world: Sequence[np.ndarray],
                      object_wrt_sensor: Sequence[np.ndarray],
                      mount_type: MountType,
                      solver_id: str,
                      registry: Optional[SolverRegistry] = None) -> CalibrationResult:
    """
    Solve the camera-robot pose with the solver named by solver_id.

    The caller decides whether enough samples exist; the solver decides
    whether they are numerically sufficient.

    Raises:
        ValidationError: If the sample sequences are empty or of different
            length, or the solver id cannot be resolved
        SolveError: If the solver reports a failure (message passed through verbatim)
    """
    if len(effector_wrt_world) != len(object_wrt_sensor):
        raise ValidationError(
            f"Number of end-effector poses ({len(effector_wrt_world)}) must match "
            f"number of target poses ({len(object_wrt_sensor)})")
    if len(effector_wrt_world) == 0:
        raise ValidationError("No pose samples to solve")

    if registry is None:
        registry = default_registry()
    provider, algorithm = registry.resolve(solver_id)
    mount_type = MountType(mount_type)

    success, error_message = provider.solve(effector_wrt_world, object_wrt_sensor, mount_type, algorithm)
    if not success:
        logger.error("Solver %s failed: %s", solver_id, error_message)
        raise SolveError(error_message)

    pose = provider.get_camera_robot_pose()
    translation_error, rotation_error = provider.get_reprojection_error(
        effector_wrt_world, object_wrt_sensor, pose, mount_type)
    logger.info("Solved camera pose with %s from %d samples, reprojection error: %g m, %g rad",
                solver_id, len(effector_wrt_world), translation_error, rotation_error)

    return CalibrationResult(
        camera_robot_pose=pose,
        translation_error=translation_error,
        rotation_error=rotation_error,
        solver_id=solver_id,
        mount_type=mount_type,
        sample_count=len(effector_wrt_world),
    )
