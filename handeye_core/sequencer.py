"""
Auto-Calibration Sequencer
==========================

Walks the recorded joint states one by one: plan a motion to the next joint
target, execute it, then capture a pose sample at the reached pose.

State machine:

    IDLE -> PLANNING -> PLAN_READY -> EXECUTING -> SAMPLE_PENDING -> IDLE

Planning and execution failures return to IDLE with a named SequencerResult.

Planning and execution run on background workers so the caller is never
blocked. Worker threads only compute; their completions are queued and
applied on the control thread by process_events() (or by the blocking
wait_for_plan() / wait_for_execution() helpers). At most one plan and one
execution are outstanding, and never both at the same time.
"""

import logging
import queue
from concurrent.futures import Future, ThreadPoolExecutor, wait
from enum import Enum
from typing import Any, Callable, List, Optional, Tuple

from .collaborators import PlanningGroup, PlanningSceneProvider
from .config import MAX_ACCELERATION_SCALING, MAX_VELOCITY_SCALING, STATE_WAIT_TIMEOUT
from .errors import HandEyeError, SequencerError
from .sample_store import JointStateStore

logger = logging.getLogger(__name__)

_PLAN = 'plan'
_EXECUTION = 'execution'


class SequencerState(str, Enum):
    IDLE = "idle"
    PLANNING = "planning"
    PLAN_READY = "plan_ready"
    EXECUTING = "executing"
    SAMPLE_PENDING = "sample_pending"


class SequencerResult(str, Enum):
    """Outcome of a planning or execution request."""
    SUCCESS = "success"
    NO_JOINT_STATE = "no_joint_state"
    INVALID_JOINT_STATE = "invalid_joint_state"
    NO_PLANNING_SCENE = "no_planning_scene"
    NO_PLANNING_GROUP = "no_planning_group"
    WRONG_PLANNING_GROUP = "wrong_planning_group"
    PLAN_FAILED = "plan_failed"
    EXECUTE_FAILED = "execute_failed"
    NO_PLAN = "no_plan"
    BUSY = "busy"

    @property
    def message(self) -> str:
        return _RESULT_MESSAGES[self]


_RESULT_MESSAGES = {
    SequencerResult.SUCCESS: "",
    SequencerResult.NO_JOINT_STATE: "Could not compute plan. No more prerecorded joint states to execute.",
    SequencerResult.INVALID_JOINT_STATE: "Could not compute plan. Invalid joint states (names wrong or missing).",
    SequencerResult.NO_PLANNING_SCENE: "Could not compute plan. No planning scene monitor.",
    SequencerResult.NO_PLANNING_GROUP: "Could not compute plan. Missing move_group.",
    SequencerResult.WRONG_PLANNING_GROUP: ("Could not compute plan. Joint names for recorded state do not "
                                           "match names from current planning group."),
    SequencerResult.PLAN_FAILED: "Could not compute plan. Planning failed.",
    SequencerResult.EXECUTE_FAILED: "Execution failed.",
    SequencerResult.NO_PLAN: "No planned motion to execute. Plan the next calibration pose first.",
    SequencerResult.BUSY: "Another planning or execution request is still running.",
}


class AutoCalibrationSequencer:
    """
    Drives the robot through the recorded joint states.

    Args:
        joint_store: Joint-state targets; the target count is its length
        on_target_reached: Called on the control thread after each successful
            execution to capture a sample (and re-solve). HandEyeError raised
            by it is reported through last_capture_error.
        planning_scene: Source of the current robot state
        planning_group: Group used to plan and execute
        on_plan_finished: Optional listener receiving the planning SequencerResult
        on_execution_finished: Optional listener receiving the execution SequencerResult
    """

    def __init__(self,
                 joint_store: JointStateStore,
                 on_target_reached: Optional[Callable[[], Any]] = None,
                 planning_scene: Optional[PlanningSceneProvider] = None,
                 planning_group: Optional[PlanningGroup] = None,
                 on_plan_finished: Optional[Callable[[SequencerResult], None]] = None,
                 on_execution_finished: Optional[Callable[[SequencerResult], None]] = None,
                 velocity_scaling: float = MAX_VELOCITY_SCALING,
                 acceleration_scaling: float = MAX_ACCELERATION_SCALING,
                 state_timeout: float = STATE_WAIT_TIMEOUT):
        self.joint_store = joint_store
        self.on_target_reached = on_target_reached
        self.planning_scene = planning_scene
        self.planning_group = planning_group
        self.on_plan_finished = on_plan_finished
        self.on_execution_finished = on_execution_finished
        self.velocity_scaling = velocity_scaling
        self.acceleration_scaling = acceleration_scaling
        self.state_timeout = state_timeout

        self.state = SequencerState.IDLE
        self.progress = 0
        self.last_plan_result: Optional[SequencerResult] = None
        self.last_execution_result: Optional[SequencerResult] = None
        self.last_capture_error: Optional[HandEyeError] = None

        self._current_plan = None
        self._plan_future: Optional[Future] = None
        self._execution_future: Optional[Future] = None
        self._completions: "queue.Queue[Tuple[str, Future]]" = queue.Queue()
        self._plan_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='handeye-plan')
        self._execution_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='handeye-execute')

    # ============================================================================
    # Progress
    # ============================================================================

    @property
    def target_count(self) -> int:
        return len(self.joint_store)

    @property
    def can_plan(self) -> bool:
        return self._plan_future is None

    @property
    def can_execute(self) -> bool:
        return self._execution_future is None

    @property
    def is_finished(self) -> bool:
        return self.progress >= self.target_count

    def reset(self, progress: int = 0) -> None:
        """Restart the sequence at the given target index and drop any ready plan."""
        self.progress = max(0, min(progress, self.target_count))
        self._drop_ready_plan()

    def clamp_progress(self) -> None:
        """Keep progress within the target count after targets were removed."""
        if self.progress > self.target_count:
            self.progress = self.target_count

    def skip(self) -> int:
        """
        Move on to the next target without capturing a sample.

        Outstanding operations are not affected.

        Returns:
            int: The new progress value
        """
        if self.progress < self.target_count:
            self.progress += 1
        self._drop_ready_plan()
        logger.info("Skipped calibration target, progress %d/%d", self.progress, self.target_count)
        return self.progress

    def _drop_ready_plan(self) -> None:
        self._current_plan = None
        if self.state == SequencerState.PLAN_READY:
            self.state = SequencerState.IDLE

    # ============================================================================
    # Requests
    # ============================================================================

    def request_plan(self) -> Future:
        """
        Plan the motion to the next recorded joint state in the background.

        Returns:
            Future: Resolves to (SequencerResult, plan) on the worker thread

        Raises:
            SequencerError: BUSY if a plan or execution is already outstanding
        """
        if self._plan_future is not None or self._execution_future is not None:
            raise SequencerError(SequencerResult.BUSY)

        # Copy everything the worker needs while on the control thread
        progress = self.progress
        joint_names = self.joint_store.joint_names
        snapshots = self.joint_store.snapshots
        valid = self.joint_store.is_valid()

        self.state = SequencerState.PLANNING
        self._current_plan = None
        future = self._plan_executor.submit(self._compute_plan, progress, joint_names, snapshots, valid)
        self._plan_future = future
        future.add_done_callback(lambda f: self._completions.put((_PLAN, f)))
        return future

    def request_execute(self) -> Future:
        """
        Execute the ready plan in the background.

        An outstanding plan is waited for first.

        Returns:
            Future: Resolves to a SequencerResult on the worker thread

        Raises:
            SequencerError: BUSY if an execution is outstanding, NO_PLAN if no
                plan is ready, NO_PLANNING_GROUP if no group is set
        """
        if self._execution_future is not None:
            raise SequencerError(SequencerResult.BUSY)

        if self._plan_future is not None:
            self.wait_for_plan()

        if self.state != SequencerState.PLAN_READY or self._current_plan is None:
            raise SequencerError(SequencerResult.NO_PLAN)
        if self.planning_group is None:
            raise SequencerError(SequencerResult.NO_PLANNING_GROUP)

        plan = self._current_plan
        self._current_plan = None
        self.state = SequencerState.EXECUTING
        future = self._execution_executor.submit(self._compute_execution, self.planning_group, plan)
        self._execution_future = future
        future.add_done_callback(lambda f: self._completions.put((_EXECUTION, f)))
        return future

    # ============================================================================
    # Worker side
    # ============================================================================

    def _compute_plan(self, progress: int, joint_names: List[str],
                      snapshots: List[List[float]], valid: bool) -> Tuple[SequencerResult, Any]:
        if progress >= len(snapshots):
            return SequencerResult.NO_JOINT_STATE, None
        if not valid:
            return SequencerResult.INVALID_JOINT_STATE, None
        if self.planning_scene is None:
            return SequencerResult.NO_PLANNING_SCENE, None

        group = self.planning_group
        if group is None:
            return SequencerResult.NO_PLANNING_GROUP, None
        if list(group.get_active_joints()) != list(joint_names):
            return SequencerResult.WRONG_PLANNING_GROUP, None

        try:
            start_state = self.planning_scene.get_current_state(timeout=self.state_timeout)
            plan = group.plan(start_state, snapshots[progress],
                              self.velocity_scaling, self.acceleration_scaling)
        except Exception:
            logger.exception("Planning raised an exception")
            return SequencerResult.PLAN_FAILED, None

        if plan is None:
            logger.error("Planning failed.")
            return SequencerResult.PLAN_FAILED, None

        logger.debug("Planning succeed.")
        return SequencerResult.SUCCESS, plan

    @staticmethod
    def _compute_execution(group: PlanningGroup, plan: Any) -> SequencerResult:
        try:
            success = group.execute(plan)
        except Exception:
            logger.exception("Execution raised an exception")
            success = False

        if success:
            logger.debug("Execution succeed.")
            return SequencerResult.SUCCESS
        logger.error("Execution failed.")
        return SequencerResult.EXECUTE_FAILED

    # ============================================================================
    # Control-thread completion handling
    # ============================================================================

    def process_events(self) -> int:
        """
        Apply finished plan/execution results. Call from the control thread.

        Returns:
            int: Number of completions applied
        """
        handled = 0
        while True:
            try:
                kind, future = self._completions.get_nowait()
            except queue.Empty:
                return handled
            if self._handle_completion(kind, future):
                handled += 1

    def wait_for_plan(self, timeout: Optional[float] = None) -> Optional[SequencerResult]:
        """Block until the outstanding plan finishes and apply its result."""
        future = self._plan_future
        if future is None:
            return self.last_plan_result
        wait([future], timeout=timeout)
        if future.done():
            self._handle_completion(_PLAN, future)
        return self.last_plan_result

    def wait_for_execution(self, timeout: Optional[float] = None) -> Optional[SequencerResult]:
        """Block until the outstanding execution finishes and apply its result."""
        future = self._execution_future
        if future is None:
            return self.last_execution_result
        wait([future], timeout=timeout)
        if future.done():
            self._handle_completion(_EXECUTION, future)
        return self.last_execution_result

    def _handle_completion(self, kind: str, future: Future) -> bool:
        # Each future is applied once, whichever path sees it first
        if kind == _PLAN:
            if future is not self._plan_future:
                return False
            self._plan_finished(future)
        else:
            if future is not self._execution_future:
                return False
            self._execution_finished(future)
        return True

    def _plan_finished(self, future: Future) -> None:
        self._plan_future = None
        result, plan = future.result()

        if result == SequencerResult.SUCCESS:
            self._current_plan = plan
            self.state = SequencerState.PLAN_READY
        else:
            self._current_plan = None
            self.state = SequencerState.IDLE
            logger.warning(result.message)

        self.last_plan_result = result
        logger.debug("Plan finished")
        if self.on_plan_finished is not None:
            self.on_plan_finished(result)

    def _execution_finished(self, future: Future) -> None:
        self._execution_future = None
        result = future.result()
        self.last_execution_result = result

        if result == SequencerResult.SUCCESS:
            self.state = SequencerState.SAMPLE_PENDING
            self.progress += 1
            self.last_capture_error = None
            if self.on_target_reached is not None:
                try:
                    self.on_target_reached()
                except HandEyeError as e:
                    logger.warning("Sample capture after motion failed: %s", e)
                    self.last_capture_error = e
            logger.info("Reached calibration target %d/%d", self.progress, self.target_count)

        self.state = SequencerState.IDLE
        logger.debug("Execution finished")
        if self.on_execution_finished is not None:
            self.on_execution_finished(result)

    def shutdown(self, wait_for_workers: bool = True) -> None:
        self._plan_executor.shutdown(wait=wait_for_workers)
        self._execution_executor.shutdown(wait=wait_for_workers)
        self.process_events()
