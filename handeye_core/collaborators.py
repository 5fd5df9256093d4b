"""
Collaborator Interfaces
=======================

Interfaces of the services the calibration core talks to, plus small
in-memory implementations used by the web service demo mode and tests.

- TransformLookup: named-frame transform lookup (transform tree)
- TransformPublisher: publishes the solved camera pose
- PlanningSceneProvider: current robot state and planning group joint names
- PlanningGroup: plans and executes motions to joint-value targets
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from .errors import TransformLookupError
from .utils import as_transform, inverse_transform_matrix


class TransformLookup(ABC):
    """Looks up rigid transforms between named frames."""

    @abstractmethod
    def lookup_transform(self, target_frame: str, source_frame: str, time: float = 0.0) -> np.ndarray:
        """
        Pose of source_frame expressed in target_frame.

        A time of 0 requests the latest available transform.

        Raises:
            TransformLookupError: If the frames are not connected or the data is stale
        """
        raise NotImplementedError


class TransformPublisher(ABC):
    """Publishes a transform between two frames."""

    @abstractmethod
    def publish_transform(self, transform: np.ndarray, from_frame: str, to_frame: str) -> bool:
        raise NotImplementedError

    def clear_all_transforms(self) -> None:
        """Forget previously published transforms."""


class PlanningSceneProvider(ABC):
    """Access to the current robot state."""

    @abstractmethod
    def get_group_names(self) -> List[str]:
        raise NotImplementedError

    @abstractmethod
    def get_active_joint_names(self, group_name: str) -> List[str]:
        raise NotImplementedError

    @abstractmethod
    def get_current_state(self, timeout: float = 0.1) -> Any:
        """
        Current robot state, waiting at most timeout seconds for a fresh one.

        The state object is opaque to the core and passed back to the
        planning group as a start state.
        """
        raise NotImplementedError

    @abstractmethod
    def get_joint_group_positions(self, state: Any, group_name: str) -> List[float]:
        raise NotImplementedError


class PlanningGroup(ABC):
    """A named group of joints that can be planned and executed."""

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    def get_active_joints(self) -> List[str]:
        raise NotImplementedError

    @abstractmethod
    def plan(self, start_state: Any, joint_target: Sequence[float],
             velocity_scaling: float, acceleration_scaling: float) -> Optional[Any]:
        """Plan to a joint target. Returns a plan handle, or None if planning failed."""
        raise NotImplementedError

    @abstractmethod
    def execute(self, plan: Any) -> bool:
        raise NotImplementedError


class StaticTransformBuffer(TransformLookup):
    """
    In-memory transform lookup.

    Stores parent->child transforms and answers direct or inverse lookups.
    """

    def __init__(self):
        self._transforms: Dict[Tuple[str, str], np.ndarray] = {}

    def set_transform(self, parent_frame: str, child_frame: str, transform) -> None:
        """Set the pose of child_frame expressed in parent_frame."""
        self._transforms[(parent_frame, child_frame)] = as_transform(transform).copy()

    def remove_transform(self, parent_frame: str, child_frame: str) -> None:
        self._transforms.pop((parent_frame, child_frame), None)

    def lookup_transform(self, target_frame, source_frame, time=0.0):
        if target_frame == source_frame:
            return np.eye(4)
        if (target_frame, source_frame) in self._transforms:
            return self._transforms[(target_frame, source_frame)].copy()
        if (source_frame, target_frame) in self._transforms:
            return inverse_transform_matrix(self._transforms[(source_frame, target_frame)])
        raise TransformLookupError(
            f"Could not find a connection between '{target_frame}' and '{source_frame}'")


class RecordingTransformPublisher(TransformPublisher):
    """Keeps published transforms in memory."""

    def __init__(self):
        self.published: List[Tuple[np.ndarray, str, str]] = []

    def publish_transform(self, transform, from_frame, to_frame):
        self.published.append((np.asarray(transform).copy(), from_frame, to_frame))
        return True

    def clear_all_transforms(self):
        self.published.clear()
