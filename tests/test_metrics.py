from __future__ import annotations

import math

import pytest

from errors import MissingLandmark
from geometry import angle_from_vertical, distance_3d, midpoint
from metrics import full_metric_set, nose_to_shoulder_distance, posture_ratio, shoulder_distances
from pose_types import LANDMARK_COUNT, Landmark, LandmarkFrame, PoseLandmark


def test_frame_requires_full_topology():
    with pytest.raises(ValueError):
        LandmarkFrame(tuple(Landmark(0.0, 0.0) for _ in range(10)))


def test_from_landmarks_pads_missing_points():
    frame = LandmarkFrame.from_landmarks([Landmark(0.5, 0.5, 0.0, 0.9)], timestamp_ms=42.0)
    assert len(frame.landmarks) == LANDMARK_COUNT
    assert frame.is_visible(PoseLandmark.NOSE)
    assert not frame.is_visible(PoseLandmark.LEFT_SHOULDER)
    assert frame.get(PoseLandmark.LEFT_SHOULDER) is None
    assert frame.timestamp_ms == 42.0


def test_geometry_helpers():
    assert angle_from_vertical(Landmark(0.0, 0.0), Landmark(0.0, 1.0)) == pytest.approx(0.0)
    assert angle_from_vertical(Landmark(0.0, 0.0), Landmark(1.0, 1.0)) == pytest.approx(45.0)
    assert distance_3d(Landmark(0.0, 0.0, 0.0), Landmark(0.0, 0.3, 0.4)) == pytest.approx(0.5)
    mid = midpoint(Landmark(0.0, 0.0, 0.0, 0.9), Landmark(1.0, 1.0, 0.0, 0.6))
    assert (mid.x, mid.y, mid.visibility) == (0.5, 0.5, 0.6)


def test_nose_to_shoulder_distance(make_frame):
    assert nose_to_shoulder_distance(make_frame()) == pytest.approx(0.2)


def test_nose_to_shoulder_distance_missing_nose(make_frame):
    with pytest.raises(MissingLandmark) as info:
        nose_to_shoulder_distance(make_frame(hidden=("nose",)))
    assert info.value.landmark == "nose"


def test_shoulder_distances_symmetric(make_frame):
    distances = shoulder_distances(make_frame())
    assert distances.left == pytest.approx(math.hypot(0.1, 0.2))
    assert distances.ratio == pytest.approx(1.0)


def test_shoulder_distances_turned_head(make_frame):
    distances = shoulder_distances(make_frame(nose=(0.55, 0.3)))
    assert distances.left > distances.right
    assert distances.ratio == pytest.approx(math.hypot(0.15, 0.2) / math.hypot(0.05, 0.2))


def test_posture_ratio(make_frame, make_slouched):
    upright = posture_ratio(make_frame())
    assert upright == pytest.approx((0.5 - (0.28 + 0.28 + 0.3) / 3) / 0.2)
    assert posture_ratio(make_slouched()) < upright


def test_posture_ratio_absent_without_face(make_frame):
    assert posture_ratio(make_frame(hidden=("left_eye",))) is None


def test_posture_ratio_absent_for_zero_shoulder_width(make_frame):
    frame = make_frame(left_shoulder=(0.5, 0.5), right_shoulder=(0.5, 0.5))
    assert posture_ratio(frame) is None


def test_full_metric_set_upright(make_frame):
    metrics = full_metric_set(make_frame())
    assert metrics.torso_tilt == pytest.approx(0.0)
    assert metrics.neck_flex == pytest.approx(0.0)
    assert metrics.shoulder_tilt == pytest.approx(0.0)
    assert metrics.head_z_delta == pytest.approx(-0.2)


def test_full_metric_set_tilted_shoulders(make_frame):
    metrics = full_metric_set(make_frame(left_shoulder=(0.4, 0.48), right_shoulder=(0.6, 0.52)))
    assert metrics.shoulder_asym_y == pytest.approx(0.04)
    assert metrics.shoulder_tilt == pytest.approx(4.0)


def test_full_metric_set_needs_hips(make_frame):
    with pytest.raises(MissingLandmark):
        full_metric_set(make_frame(hidden=("left_hip",)))
