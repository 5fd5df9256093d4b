"""
Hand-Eye Calibration Controller
===============================

HandEyeController owns the calibration session state: frame names, mount
type, recorded samples and joint states, the selected solver and the latest
calibration result. It turns user requests (take sample, delete, clear,
solve, load/save, export) into operations on the core modules and keeps the
auto-calibration sequencer wired to the same stores.

All methods are meant to be called from a single control thread. Failures
are raised as HandEyeError subclasses and are safe to report to the user.
"""

import logging
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np

from .admissibility import MIN_ROTATION, check_sample_pair
from .collaborators import PlanningGroup, PlanningSceneProvider, TransformLookup, TransformPublisher
from .config import FRAME_TAGS, MIN_SAMPLES_FOR_SOLVE, STATE_WAIT_TIMEOUT, ControlSettings, empty_frame_names
from .errors import EmptyStoreError, HandEyeError, ValidationError
from .export import export_camera_pose
from .models import CalibrationResult, MountType
from .sample_store import JointStateStore, SampleStore
from .sequencer import AutoCalibrationSequencer
from .solvers import SolverRegistry, default_registry, solve_calibration
from .utils import transform_to_pretty_string

logger = logging.getLogger(__name__)

STATUS_OK = "ok"
STATUS_WARN = "warn"
STATUS_ERROR = "error"


class HandEyeController:
    """
    Calibration session controller.

    Args:
        transform_lookup: Lookup for the base->eef and sensor->object transforms
        transform_publisher: Optional publisher for the solved camera pose
        registry: Solver registry (defaults to the built-in OpenCV provider)
        planning_scene: Optional planning scene used for joint states and planning
        planning_group_factory: Optional callable creating a PlanningGroup from a group name
        min_rotation: Minimum rotation between samples, radians
    """

    def __init__(self,
                 transform_lookup: TransformLookup,
                 transform_publisher: Optional[TransformPublisher] = None,
                 registry: Optional[SolverRegistry] = None,
                 planning_scene: Optional[PlanningSceneProvider] = None,
                 planning_group_factory: Optional[Callable[[str], PlanningGroup]] = None,
                 min_rotation: float = MIN_ROTATION):
        self.transform_lookup = transform_lookup
        self.transform_publisher = transform_publisher
        self.registry = registry if registry is not None else default_registry()
        self.planning_scene = planning_scene
        self.planning_group_factory = planning_group_factory
        self.min_rotation = min_rotation

        self.frame_names: Dict[str, str] = empty_frame_names()
        self.mount_type = MountType.EYE_TO_HAND
        self.solver_id = ""
        self.group_name = ""
        self.planning_group: Optional[PlanningGroup] = None

        self.samples = SampleStore()
        self.joint_states = JointStateStore()
        # One flag per sample: True if take_sample stored a joint state with it
        self._sample_joint_flags: List[bool] = []
        self.result: Optional[CalibrationResult] = None
        self.status: Tuple[str, str] = (STATUS_OK, "Collect 5 samples to start calibration.")

        self.sequencer = AutoCalibrationSequencer(
            self.joint_states,
            on_target_reached=self._on_target_reached,
            planning_scene=planning_scene,
        )

        available = self.registry.get_available_solvers()
        if available:
            self.solver_id = available[0]

    # ============================================================================
    # Settings
    # ============================================================================

    @property
    def from_frame_tag(self) -> str:
        return self.mount_type.from_frame_tag

    def set_mount_type(self, mount_type) -> None:
        """
        Select the sensor mount type. Stored samples are kept as they are.

        Args:
            mount_type: MountType, its string value, or selector index (0 or 1)
        """
        if isinstance(mount_type, int):
            self.mount_type = MountType.from_index(mount_type)
        else:
            self.mount_type = MountType(mount_type)

    def update_frame_names(self, names: Dict[str, str]) -> None:
        for tag, name in names.items():
            self.frame_names[tag] = name or ""
        logger.debug("Frame names changed:")
        for tag, name in self.frame_names.items():
            logger.debug("%s : %s", tag, name)

    def frame_names_empty(self) -> bool:
        return any(not self.frame_names.get(tag) for tag in FRAME_TAGS)

    def get_available_solvers(self) -> List[str]:
        return self.registry.get_available_solvers()

    def select_solver(self, solver_id: str) -> None:
        """
        Raises:
            ValidationError: If the solver id is unknown
        """
        self.registry.resolve(solver_id)
        self.solver_id = solver_id

    def get_group_names(self) -> List[str]:
        if self.planning_scene is None:
            return []
        return self.planning_scene.get_group_names()

    def set_group_name(self, group_name: str) -> None:
        """
        Switch the planning group. Joint states recorded for a previous group are cleared.

        Raises:
            ValidationError: If the group name is empty, no group factory is
                available or the factory fails for this group
        """
        if not group_name:
            raise ValidationError("Group name is empty")
        if self.planning_group is not None and self.planning_group.name == group_name:
            return
        if self.planning_group_factory is None:
            raise ValidationError("No planning group interface available")

        try:
            planning_group = self.planning_group_factory(group_name)
        except Exception as e:
            logger.error("Failed to create planning group '%s': %s", group_name, e)
            raise ValidationError(f"Unable to use planning group '{group_name}': {e}") from e

        self.planning_group = planning_group
        self.group_name = group_name
        self.sequencer.planning_group = self.planning_group

        self.joint_states.clear()
        self._forget_joint_states()
        self.sequencer.reset()

    def get_settings(self) -> ControlSettings:
        return ControlSettings(solver=self.solver_id, group=self.group_name,
                               mount_type=self.mount_type, frame_names=dict(self.frame_names))

    def apply_settings(self, settings: ControlSettings) -> None:
        """Apply stored settings. Unknown solvers or groups are skipped."""
        self.mount_type = settings.mount_type
        self.update_frame_names(settings.frame_names)

        if settings.group and settings.group in self.get_group_names():
            self.set_group_name(settings.group)

        if settings.solver in self.get_available_solvers():
            self.solver_id = settings.solver
        elif settings.solver:
            logger.warning("Solver '%s' from settings is not available", settings.solver)

    def save_settings(self, path: str) -> None:
        self.get_settings().save(path)

    def load_settings(self, path: str) -> None:
        self.apply_settings(ControlSettings.load(path))

    # ============================================================================
    # Samples
    # ============================================================================

    def capture_sample(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Look up the current transform pair and store it if admissible.

        Returns:
            Tuple of the stored (effector_wrt_world, object_wrt_sensor)

        Raises:
            ValidationError: If a frame name is empty
            TransformLookupError: If a transform is unavailable
            InsufficientDiversityError: If the sample is too similar to a stored one
        """
        effector_wrt_world, object_wrt_sensor = self._lookup_sample()
        self._store_sample(effector_wrt_world, object_wrt_sensor)
        return effector_wrt_world, object_wrt_sensor

    def take_sample(self) -> Optional[CalibrationResult]:
        """
        Record a pose sample and the current joint state, then re-solve when
        enough samples exist.

        The joint state is read before the sample is stored. If it cannot be
        read, the sample is stored without one.

        Returns:
            CalibrationResult if a solve ran, else None

        Raises:
            HandEyeError: Any capture error (nothing stored) or solve error (sample kept)
        """
        effector_wrt_world, object_wrt_sensor = self._lookup_sample()
        joint_state = self._read_joint_state()
        self._store_sample(effector_wrt_world, object_wrt_sensor, joint_state)

        if len(self.samples) >= MIN_SAMPLES_FOR_SOLVE:
            return self.solve()
        return None

    def _lookup_sample(self) -> Tuple[np.ndarray, np.ndarray]:
        if self.frame_names_empty():
            raise ValidationError("At least one of the four frame names is empty.")

        object_wrt_sensor = self.transform_lookup.lookup_transform(
            self.frame_names["sensor"], self.frame_names["object"])
        effector_wrt_world = self.transform_lookup.lookup_transform(
            self.frame_names["base"], self.frame_names["eef"])

        check_sample_pair(effector_wrt_world, object_wrt_sensor,
                          self.samples.effector_wrt_world, self.samples.object_wrt_sensor,
                          self.min_rotation)
        return effector_wrt_world, object_wrt_sensor

    def _read_joint_state(self) -> Optional[Tuple[List[str], List[float]]]:
        """Active joint names and positions of the selected group, or None."""
        if self.planning_scene is None or not self.group_name:
            return None

        try:
            state = self.planning_scene.get_current_state(timeout=STATE_WAIT_TIMEOUT)
            names = list(self.planning_scene.get_active_joint_names(self.group_name))
            values = list(self.planning_scene.get_joint_group_positions(state, self.group_name))
        except Exception:
            logger.exception("Failed to read the joint state of group '%s'", self.group_name)
            return None

        if len(values) != len(names):
            logger.error("Group '%s' reported %d joint values for %d joints",
                         self.group_name, len(values), len(names))
            return None
        return names, values

    def _store_sample(self, effector_wrt_world: np.ndarray, object_wrt_sensor: np.ndarray,
                      joint_state: Optional[Tuple[List[str], List[float]]] = None) -> None:
        self.samples.append(effector_wrt_world, object_wrt_sensor)

        has_joint_state = False
        if joint_state is not None:
            names, values = joint_state
            if self.joint_states.set_joint_names(names):
                self._sample_joint_flags = [False] * len(self._sample_joint_flags)
                self.sequencer.reset()
            self.joint_states.append(values)
            has_joint_state = True
        self._sample_joint_flags.append(has_joint_state)

        logger.info("Sample %d recorded\n  TF base-to-eef: %s\n  TF camera-to-target: %s",
                    len(self.samples),
                    transform_to_pretty_string(effector_wrt_world),
                    transform_to_pretty_string(object_wrt_sensor))

    def _forget_joint_states(self) -> None:
        # Joint states were replaced, no stored sample owns one any more
        self._sample_joint_flags = [False] * len(self.samples)

    def delete_latest_sample(self) -> None:
        """
        Remove the latest sample and the joint state recorded with it, if any.

        Raises:
            EmptyStoreError: If there is no sample to delete
        """
        if len(self.samples) == 0:
            raise EmptyStoreError("Cannot delete last sample, list is already empty.")

        self.samples.pop_last()
        if self._sample_joint_flags.pop() and len(self.joint_states) > 0:
            self.joint_states.pop_last()
        self.sequencer.clamp_progress()

    def clear_samples(self) -> None:
        self.samples.clear()
        self.joint_states.clear()
        self._sample_joint_flags = []
        self.sequencer.reset()

    def save_samples(self, path: str) -> None:
        self.samples.save(path)

    def load_samples(self, path: str) -> int:
        """
        Replace the samples from a YAML file and re-solve when enough are loaded.

        A solve failure after a successful load is recorded in the status
        instead of being raised.
        """
        count = self.samples.load(path)
        self._forget_joint_states()
        if count >= MIN_SAMPLES_FOR_SOLVE and self.solver_id:
            try:
                self.solve()
            except HandEyeError as e:
                logger.warning("Loaded samples could not be solved: %s", e)
        return count

    def save_joint_states(self, path: str) -> None:
        self.joint_states.save(path)

    def load_joint_states(self, path: str) -> int:
        count = self.joint_states.load(path)
        self._forget_joint_states()
        self.sequencer.reset()
        return count

    # ============================================================================
    # Solving and export
    # ============================================================================

    def solve(self) -> CalibrationResult:
        """
        Solve the camera-robot pose from the recorded samples and publish it.

        On failure the previous result is kept.

        Raises:
            ValidationError: If no solver is selected or samples are invalid
            SolveError: Solver-reported failure
        """
        if not self.solver_id:
            self.status = (STATUS_ERROR, "No solver available.")
            raise ValidationError("No available handeye calibration solver instance.")

        try:
            result = solve_calibration(self.samples.effector_wrt_world, self.samples.object_wrt_sensor,
                                       self.mount_type, self.solver_id, self.registry)
        except HandEyeError:
            self.status = (STATUS_ERROR, "Solver failed.")
            raise

        self.result = result
        logger.warning(result.reprojection_error_text())
        self._publish_result(result)
        return result

    def _publish_result(self, result: CalibrationResult) -> bool:
        from_frame = self.frame_names.get(self.from_frame_tag, "")
        to_frame = self.frame_names.get("sensor", "")

        if not from_frame or not to_frame:
            logger.error("Found camera pose:\n%s\nbut %s or sensor frame is undefined.",
                         result.camera_robot_pose, self.from_frame_tag)
            self.status = (STATUS_WARN, "Calibration successful but frames are undefined.")
            return False

        self.status = (STATUS_OK, "Calibration successful.")
        if self.transform_publisher is None:
            return True

        self.transform_publisher.clear_all_transforms()
        logger.info("Publish camera transformation\n%s\nfrom %s frame '%s' to sensor frame '%s'",
                    result.camera_robot_pose, self.from_frame_tag, from_frame, to_frame)
        return self.transform_publisher.publish_transform(result.camera_robot_pose, from_frame, to_frame)

    def save_camera_pose(self, path: str) -> str:
        """
        Export the latest result as a launch file.

        Returns:
            str: The path written

        Raises:
            ValidationError: If there is no result, a frame is undefined or the
                extension is unsupported
        """
        if self.result is None:
            raise ValidationError("No calibration result to save. Solve the camera pose first.")
        from_frame = self.frame_names.get(self.from_frame_tag, "")
        to_frame = self.frame_names.get("sensor", "")
        return export_camera_pose(path, self.result, from_frame, to_frame)

    # ============================================================================
    # Auto calibration
    # ============================================================================

    def _on_target_reached(self) -> None:
        if not self.frame_names_empty():
            self.capture_sample()
        if len(self.samples) >= MIN_SAMPLES_FOR_SOLVE:
            self.solve()

    def get_status(self) -> dict:
        """Snapshot of the session for display."""
        plan_result = self.sequencer.last_plan_result
        execution_result = self.sequencer.last_execution_result
        capture_error = self.sequencer.last_capture_error
        return {
            'last_plan_result': plan_result.value if plan_result else None,
            'last_plan_message': plan_result.message if plan_result else "",
            'last_execution_result': execution_result.value if execution_result else None,
            'last_capture_error': str(capture_error) if capture_error else None,
            'status': {'level': self.status[0], 'message': self.status[1]},
            'sample_count': len(self.samples),
            'joint_state_count': len(self.joint_states),
            'joint_names': self.joint_states.joint_names,
            'progress': self.sequencer.progress,
            'target_count': self.sequencer.target_count,
            'sequencer_state': self.sequencer.state.value,
            'can_plan': self.sequencer.can_plan,
            'can_execute': self.sequencer.can_execute,
            'mount_type': self.mount_type.value,
            'solver': self.solver_id,
            'group': self.group_name,
            'frame_names': dict(self.frame_names),
            'result': self.result.to_json() if self.result is not None else None,
        }

    def shutdown(self) -> None:
        self.sequencer.shutdown()
