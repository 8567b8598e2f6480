from __future__ import annotations

import pytest

from calibration import Baseline, ExerciseKind
from metrics import ShoulderDistances
from pose_types import Landmark, LandmarkFrame

UPRIGHT = {
    "nose": (0.5, 0.3),
    "left_eye": (0.48, 0.28),
    "right_eye": (0.52, 0.28),
    "left_shoulder": (0.4, 0.5),
    "right_shoulder": (0.6, 0.5),
    "left_hip": (0.42, 0.8),
    "right_hip": (0.58, 0.8),
}


def build_frame(timestamp_ms: float = 0.0, visibility: float = 0.9, hidden=(), **points) -> LandmarkFrame:
    named = {}
    for name, (x, y) in {**UPRIGHT, **points}.items():
        vis = 0.1 if name in hidden else visibility
        named[name] = Landmark(x, y, 0.0, vis)
    return LandmarkFrame.from_named(named, timestamp_ms)


def slouched_frame(timestamp_ms: float = 0.0) -> LandmarkFrame:
    # Head dropped towards the shoulders: posture ratio falls from ~1.067 to ~0.567.
    return build_frame(timestamp_ms, nose=(0.5, 0.4), left_eye=(0.48, 0.38), right_eye=(0.52, 0.38))


@pytest.fixture
def make_frame():
    return build_frame


@pytest.fixture
def make_slouched():
    return slouched_frame


@pytest.fixture
def make_baseline():
    def _make(
        kind=ExerciseKind.SIT_TALL,
        nose_distance: float = 0.2,
        left: float = 0.2236,
        right: float = 0.2236,
        sample_count: int = 40,
        confidence: float = 0.9,
    ) -> Baseline:
        return Baseline(
            nose_to_shoulder_distance=nose_distance,
            shoulder_distances=ShoulderDistances(left, right),
            sample_count=sample_count,
            confidence=confidence,
            exercise_type=ExerciseKind(kind),
            captured_at_ms=0.0,
        )

    return _make
