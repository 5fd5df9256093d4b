"""
Sample Store Module
===================

This module keeps the recorded calibration data:

- SampleStore: index-aligned pairs of end-effector-in-world and
  target-in-sensor transforms
- JointStateStore: joint-value snapshots recorded alongside the samples,
  used as targets by the auto-calibration sequencer

Both stores persist to YAML. Loading always parses into a temporary buffer
and only replaces the stored data once the whole file has been validated.
"""

import logging
from typing import Any, List, Optional, Sequence, Tuple

import numpy as np
import yaml

from .errors import EmptyStoreError, PersistenceError, ValidationError
from .utils import normalize_transform

logger = logging.getLogger(__name__)

EFFECTOR_KEY = 'effector_wrt_world'
OBJECT_KEY = 'object_wrt_sensor'
JOINT_NAMES_KEY = 'joint_names'
JOINT_VALUES_KEY = 'joint_values'


def _read_yaml(path: str) -> Any:
    try:
        with open(path, 'r') as f:
            return yaml.safe_load(f)
    except OSError as e:
        raise PersistenceError(f"Unable to open file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise PersistenceError(f"YAML exception: {e}\nCheck that the file has the correct format.") from e


def _write_yaml(path: str, data: Any) -> None:
    try:
        with open(path, 'w') as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
    except OSError as e:
        raise PersistenceError(f"Unable to open file {path}: {e}") from e


def _flatten(matrix: np.ndarray) -> List[float]:
    # Row-major 4x4
    return [float(v) for v in np.asarray(matrix, dtype=np.float64).reshape(16)]


def _parse_matrix(values: Any, index: int, key: str) -> np.ndarray:
    if not isinstance(values, (list, tuple)) or len(values) != 16:
        raise PersistenceError(f"Record {index}: '{key}' must be a sequence of 16 numbers")
    try:
        matrix = np.array(values, dtype=np.float64).reshape(4, 4)
    except (TypeError, ValueError) as e:
        raise PersistenceError(f"Record {index}: '{key}' contains non-numeric values") from e
    try:
        return normalize_transform(matrix)
    except ValueError as e:
        raise PersistenceError(f"Record {index}: '{key}' is not a rigid transform: {e}") from e


class SampleStore:
    """
    Ordered collection of pose samples.

    Each sample is a pair (effector_wrt_world, object_wrt_sensor) of 4x4
    rigid transforms. Both sequences always have the same length and
    insertion order is preserved through save/load.
    """

    def __init__(self):
        self._effector_wrt_world: List[np.ndarray] = []
        self._object_wrt_sensor: List[np.ndarray] = []

    def __len__(self) -> int:
        return len(self._effector_wrt_world)

    @property
    def effector_wrt_world(self) -> List[np.ndarray]:
        """Copy of the end-effector-in-world transforms."""
        return [m.copy() for m in self._effector_wrt_world]

    @property
    def object_wrt_sensor(self) -> List[np.ndarray]:
        """Copy of the target-in-sensor transforms."""
        return [m.copy() for m in self._object_wrt_sensor]

    def samples(self) -> List[Tuple[np.ndarray, np.ndarray]]:
        return list(zip(self.effector_wrt_world, self.object_wrt_sensor))

    def append(self, effector_tf: np.ndarray, target_tf: np.ndarray) -> None:
        """
        Append a sample pair.

        The admissibility check must have been done by the caller. Rotation
        blocks are re-normalized before storing.

        Raises:
            ValidationError: If either transform is not a rigid 4x4 transform
        """
        try:
            effector = normalize_transform(effector_tf)
            target = normalize_transform(target_tf)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        self._effector_wrt_world.append(effector)
        self._object_wrt_sensor.append(target)

    def pop_last(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Remove and return the most recent sample pair.

        Raises:
            EmptyStoreError: If no samples are stored
        """
        if not self._effector_wrt_world:
            raise EmptyStoreError("Cannot delete last sample, list is already empty.")
        return self._effector_wrt_world.pop(), self._object_wrt_sensor.pop()

    def clear(self) -> None:
        self._effector_wrt_world.clear()
        self._object_wrt_sensor.clear()

    def to_records(self) -> List[dict]:
        """Serialize samples as a list of records of flat row-major matrices."""
        return [
            {EFFECTOR_KEY: _flatten(effector), OBJECT_KEY: _flatten(target)}
            for effector, target in zip(self._effector_wrt_world, self._object_wrt_sensor)
        ]

    def from_records(self, records: Any) -> int:
        """
        Replace the stored samples with the given records.

        Nothing is changed unless every record is valid.

        Returns:
            int: Number of samples loaded

        Raises:
            PersistenceError: If the records are malformed
        """
        if records is None:
            records = []
        if not isinstance(records, list):
            raise PersistenceError("Sample file must contain a sequence of records")

        effectors = []
        targets = []
        for i, record in enumerate(records):
            if not isinstance(record, dict):
                raise PersistenceError(f"Record {i} is not a mapping")
            for key in (EFFECTOR_KEY, OBJECT_KEY):
                if key not in record:
                    raise PersistenceError(f"Record {i} is missing key '{key}'")
            effectors.append(_parse_matrix(record[EFFECTOR_KEY], i, EFFECTOR_KEY))
            targets.append(_parse_matrix(record[OBJECT_KEY], i, OBJECT_KEY))

        self._effector_wrt_world = effectors
        self._object_wrt_sensor = targets
        return len(effectors)

    def save(self, path: str) -> None:
        _write_yaml(path, self.to_records())
        logger.info("Saved %d samples to %s", len(self), path)

    def load(self, path: str) -> int:
        count = self.from_records(_read_yaml(path))
        logger.info("Loaded %d samples from %s", count, path)
        return count


class JointStateStore:
    """
    Joint-value snapshots aligned with an ordered list of joint names.

    Every snapshot has one value per joint name. Changing the joint names
    discards every snapshot recorded under the previous names.
    """

    def __init__(self, joint_names: Optional[Sequence[str]] = None):
        self._joint_names: List[str] = list(joint_names) if joint_names else []
        self._snapshots: List[List[float]] = []

    def __len__(self) -> int:
        return len(self._snapshots)

    @property
    def joint_names(self) -> List[str]:
        return list(self._joint_names)

    @property
    def snapshots(self) -> List[List[float]]:
        return [list(s) for s in self._snapshots]

    def set_joint_names(self, joint_names: Sequence[str]) -> bool:
        """
        Set the active joint names.

        Returns:
            bool: True if the names changed and the snapshots were cleared
        """
        joint_names = list(joint_names)
        if joint_names == self._joint_names:
            return False
        if self._snapshots:
            logger.info("Joint names changed, discarding %d joint states", len(self._snapshots))
        self._joint_names = joint_names
        self._snapshots = []
        return True

    def append(self, values: Sequence[float]) -> None:
        """
        Record a joint-value snapshot.

        Raises:
            ValidationError: If the snapshot length does not match the joint names
        """
        values = [float(v) for v in values]
        if len(values) != len(self._joint_names):
            raise ValidationError(
                f"Joint state has {len(values)} values but {len(self._joint_names)} joint names are active")
        self._snapshots.append(values)

    def get(self, index: int) -> List[float]:
        return list(self._snapshots[index])

    def pop_last(self) -> List[float]:
        if not self._snapshots:
            raise EmptyStoreError("No joint states recorded")
        return self._snapshots.pop()

    def clear(self) -> None:
        self._snapshots.clear()

    def is_valid(self) -> bool:
        """True if names and snapshots exist and every snapshot matches the names."""
        if not self._joint_names or not self._snapshots:
            return False
        return all(len(s) == len(self._joint_names) for s in self._snapshots)

    def to_json(self) -> dict:
        return {
            JOINT_NAMES_KEY: list(self._joint_names),
            JOINT_VALUES_KEY: [list(s) for s in self._snapshots],
        }

    def from_json(self, data: Any) -> int:
        """
        Replace names and snapshots from a parsed joint-state document.

        Snapshots whose length does not match the joint names are dropped.

        Returns:
            int: Number of snapshots loaded

        Raises:
            PersistenceError: If the document is not a mapping or lacks a required key
        """
        if not isinstance(data, dict):
            raise PersistenceError("Joint state file must contain a mapping")

        names = data.get(JOINT_NAMES_KEY)
        if not isinstance(names, list):
            raise PersistenceError(f"Can't find '{JOINT_NAMES_KEY}' in the opened file.")
        names = [str(n) for n in names]

        values = data.get(JOINT_VALUES_KEY)
        if not isinstance(values, list):
            raise PersistenceError(f"Can't find '{JOINT_VALUES_KEY}' in the opened file.")

        snapshots = []
        for i, state in enumerate(values):
            joint_values = []
            if isinstance(state, list):
                try:
                    joint_values = [float(v) for v in state]
                except (TypeError, ValueError) as e:
                    raise PersistenceError(f"Joint state {i} contains non-numeric values") from e
            if len(joint_values) != len(names):
                logger.warning("Dropping joint state %d: %d values for %d joint names",
                               i, len(joint_values), len(names))
                continue
            snapshots.append(joint_values)

        self._joint_names = names
        self._snapshots = snapshots
        return len(snapshots)

    def save(self, path: str) -> None:
        """
        Raises:
            ValidationError: If there is nothing valid to save
        """
        if not self.is_valid():
            raise ValidationError("No joint states or joint state doesn't match joint names.")
        _write_yaml(path, self.to_json())
        logger.info("Saved %d joint states to %s", len(self), path)

    def load(self, path: str) -> int:
        logger.debug("Load joint states from file: %s", path)
        count = self.from_json(_read_yaml(path))
        logger.info("Loaded and parsed: %s", path)
        return count
