"""
Control Settings
================

Constants and persisted settings of the calibration control panel.
Settings are stored as JSON, in the same spirit as the calibrators'
to_json()/from_json() state.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .admissibility import MIN_ROTATION
from .errors import PersistenceError
from .models import MountType

# Samples needed before the camera pose is (re)solved automatically
MIN_SAMPLES_FOR_SOLVE = 5

# Bounded wait for a fresh robot state, seconds
STATE_WAIT_TIMEOUT = 0.1

MAX_VELOCITY_SCALING = 0.5
MAX_ACCELERATION_SCALING = 0.5

# Frame tags: sensor (camera), object (calibration target), base (robot base), eef (end-effector)
FRAME_TAGS = ("sensor", "object", "base", "eef")

__all__ = [
    'MIN_ROTATION',
    'MIN_SAMPLES_FOR_SOLVE',
    'STATE_WAIT_TIMEOUT',
    'MAX_VELOCITY_SCALING',
    'MAX_ACCELERATION_SCALING',
    'FRAME_TAGS',
    'ControlSettings',
]


def empty_frame_names() -> Dict[str, str]:
    return {tag: "" for tag in FRAME_TAGS}


@dataclass
class ControlSettings:
    """Panel settings restored between sessions."""
    solver: str = ""
    group: str = ""
    mount_type: MountType = MountType.EYE_TO_HAND
    frame_names: Dict[str, str] = field(default_factory=empty_frame_names)

    def to_json(self) -> Dict[str, Any]:
        return {
            'solver': self.solver,
            'group': self.group,
            'mount_type': self.mount_type.value,
            'frame_names': dict(self.frame_names),
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "ControlSettings":
        """
        Build settings from a JSON-compatible dictionary. Missing keys keep their defaults.

        Raises:
            PersistenceError: If a value has the wrong type
        """
        if not isinstance(data, dict):
            raise PersistenceError("Settings must be a JSON object")

        settings = cls()
        settings.solver = str(data.get('solver', settings.solver) or "")
        settings.group = str(data.get('group', settings.group) or "")

        try:
            settings.mount_type = MountType(data.get('mount_type', settings.mount_type.value))
        except ValueError as e:
            raise PersistenceError(f"Invalid mount type: {data.get('mount_type')}") from e

        frame_names = data.get('frame_names', {})
        if not isinstance(frame_names, dict):
            raise PersistenceError("'frame_names' must be a mapping")
        for tag, name in frame_names.items():
            settings.frame_names[str(tag)] = str(name or "")

        return settings

    def save(self, path: str) -> None:
        try:
            with open(path, 'w') as f:
                json.dump(self.to_json(), f, indent=2)
        except OSError as e:
            raise PersistenceError(f"Unable to open file {path}: {e}") from e

    @classmethod
    def load(cls, path: str) -> "ControlSettings":
        try:
            with open(path, 'r') as f:
                data = json.load(f)
        except OSError as e:
            raise PersistenceError(f"Unable to open file {path}: {e}") from e
        except json.JSONDecodeError as e:
            raise PersistenceError(f"Could not parse JSON file {path}: {e}") from e
        return cls.from_json(data)


def load_settings(path: Optional[str]) -> ControlSettings:
    """Load settings from path, or return defaults when no path is given."""
    if not path:
        return ControlSettings()
    return ControlSettings.load(path)
