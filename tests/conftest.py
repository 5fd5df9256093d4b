"""
pytest configuration file for hand-eye calibration toolkit
"""
import pytest
import sys
import threading
import numpy as np
from pathlib import Path
from scipy.spatial.transform import Rotation

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from handeye_core.collaborators import PlanningGroup, PlanningSceneProvider, StaticTransformBuffer
from handeye_core.models import MountType
from handeye_core.utils import inverse_transform_matrix, make_transform

# Test configuration
pytest_plugins = []

JOINT_NAMES = ['joint_1', 'joint_2', 'joint_3', 'joint_4', 'joint_5', 'joint_6']

FRAME_NAMES = {
    'sensor': 'camera_link',
    'object': 'target',
    'base': 'base_link',
    'eef': 'tool0',
}

# Well separated end-effector orientations (rotation vectors, radians)
_EFFECTOR_ROTVECS = [
    [0.0, 0.0, 0.0],
    [0.5, 0.0, 0.0],
    [0.0, 0.5, 0.0],
    [0.0, 0.0, 0.5],
    [0.4, 0.4, 0.0],
    [0.0, 0.4, -0.4],
    [-0.4, 0.0, 0.4],
    [0.3, -0.3, 0.3],
]


def _make_pose(rotvec, translation):
    return make_transform(Rotation.from_rotvec(rotvec).as_matrix(), translation)


def make_synthetic_samples(mount_type, count=8):
    """
    Generate noise-free samples from a known camera-robot pose.

    Returns:
        Tuple of (ground truth pose, effector_wrt_world list, object_wrt_sensor list)
    """
    mount_type = MountType(mount_type)
    effector_poses = []
    for i, rotvec in enumerate(_EFFECTOR_ROTVECS[:count]):
        translation = [0.4 + 0.05 * i, -0.2 + 0.04 * i, 0.5 - 0.03 * i]
        effector_poses.append(_make_pose(rotvec, translation))

    if mount_type == MountType.EYE_IN_HAND:
        # eef -> camera, and the target fixed in the robot base frame
        ground_truth = _make_pose([0.1, -0.2, 0.3], [0.05, -0.03, 0.12])
        stationary = _make_pose([3.0, 0.1, -0.2], [0.6, 0.1, -0.05])
        target_poses = [inverse_transform_matrix(ground_truth) @ inverse_transform_matrix(E) @ stationary
                        for E in effector_poses]
    else:
        # base -> camera, and the target fixed on the end-effector
        ground_truth = _make_pose([2.5, 0.3, -0.4], [1.2, 0.3, 0.8])
        stationary = _make_pose([0.2, 0.1, -0.1], [0.02, 0.01, 0.1])
        target_poses = [inverse_transform_matrix(ground_truth) @ E @ stationary
                        for E in effector_poses]

    return ground_truth, effector_poses, target_poses


def move_robot(buffer, effector_tf, target_tf, frame_names=FRAME_NAMES):
    """Place the robot and target in the transform buffer."""
    buffer.set_transform(frame_names['base'], frame_names['eef'], effector_tf)
    buffer.set_transform(frame_names['sensor'], frame_names['object'], target_tf)


class FakePlanningScene(PlanningSceneProvider):
    """Planning scene with a single planning group and settable joint positions."""

    def __init__(self, group_names=('arm',), joint_names=JOINT_NAMES):
        self.group_names = list(group_names)
        self.joint_names = list(joint_names)
        self.positions = [0.0] * len(self.joint_names)

    def get_group_names(self):
        return list(self.group_names)

    def get_active_joint_names(self, group_name):
        return list(self.joint_names)

    def get_current_state(self, timeout=0.1):
        return {'positions': list(self.positions)}

    def get_joint_group_positions(self, state, group_name):
        return list(state['positions'])


class FakePlanningGroup(PlanningGroup):
    """
    Planning group recording plan and execute calls.

    Args:
        plan_result: 'ok', 'none' (planning returns no plan) or 'raise'
        execute_result: Value returned by execute()
        on_execute: Called with the joint target of an executed plan
        release: Optional event the planner waits on before returning
    """

    def __init__(self, name='arm', joint_names=JOINT_NAMES, plan_result='ok',
                 execute_result=True, on_execute=None, release=None):
        super().__init__(name)
        self.joint_names = list(joint_names)
        self.plan_result = plan_result
        self.execute_result = execute_result
        self.on_execute = on_execute
        self.release = release
        self.planned_targets = []
        self.executed_targets = []

    def get_active_joints(self):
        return list(self.joint_names)

    def plan(self, start_state, joint_target, velocity_scaling, acceleration_scaling):
        if self.release is not None:
            self.release.wait(timeout=5.0)
        if self.plan_result == 'raise':
            raise RuntimeError("planner crashed")
        if self.plan_result == 'none':
            return None
        self.planned_targets.append(list(joint_target))
        return {'target': list(joint_target), 'velocity_scaling': velocity_scaling}

    def execute(self, plan):
        if self.execute_result and self.on_execute is not None:
            self.on_execute(plan['target'])
        self.executed_targets.append(plan['target'])
        return self.execute_result


@pytest.fixture(scope="session")
def project_root_dir():
    """Get the project root directory."""
    return Path(__file__).parent.parent

@pytest.fixture
def temp_output_dir(tmp_path):
    """Create a temporary directory for test outputs."""
    output_dir = tmp_path / "test_output"
    output_dir.mkdir()
    return output_dir

@pytest.fixture
def frame_names():
    """Frame names used by the synthetic robot."""
    return dict(FRAME_NAMES)

@pytest.fixture
def eye_in_hand_samples():
    """Noise-free eye-in-hand samples: (ground truth, effector poses, target poses)."""
    return make_synthetic_samples(MountType.EYE_IN_HAND)

@pytest.fixture
def eye_to_hand_samples():
    """Noise-free eye-to-hand samples: (ground truth, effector poses, target poses)."""
    return make_synthetic_samples(MountType.EYE_TO_HAND)

@pytest.fixture
def transform_buffer():
    """Empty in-memory transform buffer."""
    return StaticTransformBuffer()

@pytest.fixture
def planning_scene():
    return FakePlanningScene()

@pytest.fixture
def release_event():
    """Event released at teardown so no planner thread is left waiting."""
    event = threading.Event()
    yield event
    event.set()

# Test markers
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "opencv: marks tests that require OpenCV"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )

# Configure test collection
def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers and organize tests."""
    for item in items:
        # Mark slow tests
        if "slow" in item.nodeid:
            item.add_marker(pytest.mark.slow)

        # Mark tests that require OpenCV
        if any(module in str(item.fspath) for module in ["solver", "calibration"]):
            item.add_marker(pytest.mark.opencv)
