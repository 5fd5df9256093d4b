"""
Hand-Eye Calibration Toolkit - Core Module
==========================================

This module provides the core of a robot hand-eye calibration workflow:
- Sample admissibility checks (rotational diversity between samples)
- Pose sample and joint state stores with YAML persistence
- Pluggable AX=XB solvers addressed as "provider/algorithm"
- Auto-calibration sequencing over recorded joint states
- Export of the solved camera pose as ROS 2 launch files

The core module is designed to be used independently of the web interface,
allowing easy integration into other projects as a submodule.
"""

from .admissibility import MIN_ROTATION, check_sample_pair, is_admissible
from .controller import HandEyeController
from .errors import (
    EmptyStoreError,
    HandEyeError,
    InsufficientDiversityError,
    PersistenceError,
    SequencerError,
    SolveError,
    TransformLookupError,
    ValidationError,
)
from .models import CalibrationResult, MountType
from .sample_store import JointStateStore, SampleStore
from .sequencer import AutoCalibrationSequencer, SequencerResult, SequencerState
from .solvers import (
    HandEyeSolverBase,
    OpenCVHandEyeSolver,
    SolverRegistry,
    default_registry,
    parse_solver_name,
    solve_calibration,
)

__all__ = [
    'MIN_ROTATION',
    'check_sample_pair',
    'is_admissible',
    'HandEyeController',
    'EmptyStoreError',
    'HandEyeError',
    'InsufficientDiversityError',
    'PersistenceError',
    'SequencerError',
    'SolveError',
    'TransformLookupError',
    'ValidationError',
    'CalibrationResult',
    'MountType',
    'JointStateStore',
    'SampleStore',
    'AutoCalibrationSequencer',
    'SequencerResult',
    'SequencerState',
    'HandEyeSolverBase',
    'OpenCVHandEyeSolver',
    'SolverRegistry',
    'default_registry',
    'parse_solver_name',
    'solve_calibration',
]
