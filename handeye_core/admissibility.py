"""
Sample Admissibility Filter
===========================

Rejects pose samples whose orientation is too close to an already recorded
sample. AX=XB solvers cannot separate rotation from translation without
enough rotational spread between samples.
"""

import logging
from typing import Sequence

import numpy as np

from .errors import InsufficientDiversityError
from .utils import relative_rotation_angle

logger = logging.getLogger(__name__)

# Smallest allowed rotation between two samples, 5 degrees
MIN_ROTATION = np.pi / 36.0

EFFECTOR_STREAM = "effector"
TARGET_STREAM = "target"


def is_admissible(new_transform: np.ndarray,
                  prior_transforms: Sequence[np.ndarray],
                  min_angle: float = MIN_ROTATION) -> bool:
    """
    Check that a candidate transform is rotated far enough from every prior.

    Args:
        new_transform: 4x4 candidate transform
        prior_transforms: Previously stored transforms of the same role
        min_angle: Minimum rotation angle in radians

    Returns:
        bool: False if the relative rotation to any prior is below min_angle
    """
    for prior in prior_transforms:
        if relative_rotation_angle(prior, new_transform) < min_angle:
            return False
    return True


def check_sample_pair(effector_tf: np.ndarray,
                      target_tf: np.ndarray,
                      effector_priors: Sequence[np.ndarray],
                      target_priors: Sequence[np.ndarray],
                      min_angle: float = MIN_ROTATION) -> None:
    """
    Check both transform streams of a candidate sample.

    Raises:
        InsufficientDiversityError: If either stream is too similar to a prior sample
    """
    if not is_admissible(effector_tf, effector_priors, min_angle):
        logger.warning("Rejected sample: end-effector rotation below %.4f rad", min_angle)
        raise InsufficientDiversityError(
            EFFECTOR_STREAM,
            "End-effector orientation is too similar to a prior sample. Sample not recorded.")

    if not is_admissible(target_tf, target_priors, min_angle):
        logger.warning("Rejected sample: camera rotation below %.4f rad", min_angle)
        raise InsufficientDiversityError(
            TARGET_STREAM,
            "Camera orientation is too similar to a prior sample. Sample not recorded.")
