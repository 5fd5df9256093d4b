"""
Unit tests for the sample admissibility filter.
"""
import pytest
import numpy as np
from scipy.spatial.transform import Rotation

from handeye_core.admissibility import (
    EFFECTOR_STREAM,
    MIN_ROTATION,
    TARGET_STREAM,
    check_sample_pair,
    is_admissible,
)
from handeye_core.errors import InsufficientDiversityError
from handeye_core.utils import make_transform


def rotated(angle_deg, axis=(0.0, 0.0, 1.0), translation=(0.0, 0.0, 0.0)):
    rotvec = np.radians(angle_deg) * np.asarray(axis, dtype=float)
    return make_transform(Rotation.from_rotvec(rotvec).as_matrix(), translation)


class TestIsAdmissible:
    """Test the per-stream rotation threshold."""

    @pytest.mark.unit
    def test_threshold_is_five_degrees(self):
        assert MIN_ROTATION == pytest.approx(np.radians(5.0))

    @pytest.mark.unit
    def test_no_priors_is_admissible(self):
        assert is_admissible(np.eye(4), [])

    @pytest.mark.unit
    def test_four_degrees_rejected_six_accepted(self):
        priors = [np.eye(4)]
        assert not is_admissible(rotated(4.0), priors)
        assert is_admissible(rotated(6.0), priors)

    @pytest.mark.unit
    def test_translation_alone_is_not_diversity(self):
        priors = [np.eye(4)]
        assert not is_admissible(rotated(0.0, translation=(1.0, 2.0, 3.0)), priors)

    @pytest.mark.unit
    def test_candidate_compared_against_every_prior(self):
        priors = [rotated(0.0), rotated(30.0), rotated(60.0)]
        assert not is_admissible(rotated(62.0), priors)
        assert is_admissible(rotated(45.0), priors)

    @pytest.mark.unit
    def test_custom_threshold(self):
        priors = [np.eye(4)]
        assert not is_admissible(rotated(8.0), priors, min_angle=np.radians(10.0))


class TestCheckSamplePair:
    """Test that both streams are checked and reported separately."""

    @pytest.mark.unit
    def test_effector_too_similar(self):
        with pytest.raises(InsufficientDiversityError) as exc_info:
            check_sample_pair(rotated(2.0), rotated(40.0), [np.eye(4)], [np.eye(4)])
        assert exc_info.value.stream == EFFECTOR_STREAM
        assert str(exc_info.value) == \
            "End-effector orientation is too similar to a prior sample. Sample not recorded."

    @pytest.mark.unit
    def test_target_too_similar(self):
        with pytest.raises(InsufficientDiversityError) as exc_info:
            check_sample_pair(rotated(40.0), rotated(2.0, axis=(1, 0, 0)), [np.eye(4)], [np.eye(4)])
        assert exc_info.value.stream == TARGET_STREAM
        assert str(exc_info.value) == \
            "Camera orientation is too similar to a prior sample. Sample not recorded."

    @pytest.mark.unit
    def test_diverse_pair_passes(self):
        check_sample_pair(rotated(20.0), rotated(20.0, axis=(0, 1, 0)), [np.eye(4)], [np.eye(4)])
