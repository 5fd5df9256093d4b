"""
Error Types
===========

Exception hierarchy for hand-eye calibration control. Every error is
recoverable: callers report it to the user and keep running.
"""


class HandEyeError(Exception):
    """Base class for all hand-eye calibration errors."""


class ValidationError(HandEyeError, ValueError):
    """Invalid input: empty frame names, mismatched joint arrays, unknown solver id."""


class EmptyStoreError(HandEyeError):
    """Raised when removing a sample from an empty store."""


class InsufficientDiversityError(HandEyeError):
    """Raised when a candidate sample is rotationally too close to a stored one."""

    def __init__(self, stream: str, message: str):
        super().__init__(message)
        self.stream = stream


class TransformLookupError(HandEyeError):
    """Raised when two frames cannot be connected by the transform lookup."""


class SolveError(HandEyeError):
    """Solver-reported failure. The message is the solver's text, unmodified."""


class PersistenceError(HandEyeError):
    """Malformed sample, joint-state or settings file."""


class SequencerError(HandEyeError):
    """Named planning or execution failure of the auto-calibration sequencer."""

    def __init__(self, result, message: str = None):
        super().__init__(message or result.message)
        self.result = result
