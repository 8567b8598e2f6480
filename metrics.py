import math
from dataclasses import dataclass
from typing import Optional, Sequence

from errors import MissingLandmark
from geometry import angle_from_vertical, distance_2d, distance_3d, midpoint, vertical_delta
from pose_types import MIN_VISIBILITY, LandmarkFrame, PoseLandmark

HEAD_AND_SHOULDERS = (PoseLandmark.NOSE, PoseLandmark.LEFT_SHOULDER, PoseLandmark.RIGHT_SHOULDER)
RATIO_LANDMARKS = (
    PoseLandmark.NOSE,
    PoseLandmark.LEFT_EYE,
    PoseLandmark.RIGHT_EYE,
    PoseLandmark.LEFT_SHOULDER,
    PoseLandmark.RIGHT_SHOULDER,
)
UPPER_BODY = HEAD_AND_SHOULDERS + (PoseLandmark.LEFT_HIP, PoseLandmark.RIGHT_HIP)


@dataclass(frozen=True)
class ShoulderDistances:
    left: float
    right: float

    @property
    def ratio(self) -> Optional[float]:
        if self.right <= 0:
            return None
        return self.left / self.right

    def is_positive(self) -> bool:
        return self.left > 0 and self.right > 0


@dataclass(frozen=True)
class PostureMetrics:
    torso_tilt: float = 0.0
    shoulder_tilt: float = 0.0
    neck_flex: float = 0.0
    head_z_delta: float = 0.0
    shoulder_asym_y: float = 0.0


def require_visible(frame: LandmarkFrame, indices: Sequence[PoseLandmark], min_visibility: float = MIN_VISIBILITY) -> None:
    for idx in indices:
        lm = frame[idx]
        if lm.visibility < min_visibility:
            raise MissingLandmark(idx.name.lower(), lm.visibility)


def nose_to_shoulder_distance(frame: LandmarkFrame) -> float:
    require_visible(frame, HEAD_AND_SHOULDERS)
    center = midpoint(frame[PoseLandmark.LEFT_SHOULDER], frame[PoseLandmark.RIGHT_SHOULDER])
    return distance_3d(frame[PoseLandmark.NOSE], center)


def shoulder_distances(frame: LandmarkFrame) -> ShoulderDistances:
    require_visible(frame, HEAD_AND_SHOULDERS)
    nose = frame[PoseLandmark.NOSE]
    return ShoulderDistances(
        left=distance_3d(nose, frame[PoseLandmark.LEFT_SHOULDER]),
        right=distance_3d(nose, frame[PoseLandmark.RIGHT_SHOULDER]),
    )


def posture_ratio(frame: LandmarkFrame) -> Optional[float]:
    if not frame.all_visible(RATIO_LANDMARKS):
        return None
    left_shoulder = frame[PoseLandmark.LEFT_SHOULDER]
    right_shoulder = frame[PoseLandmark.RIGHT_SHOULDER]
    shoulder_width = distance_2d(left_shoulder, right_shoulder)
    if shoulder_width <= 0:
        return None

    face_y = (frame[PoseLandmark.LEFT_EYE].y + frame[PoseLandmark.RIGHT_EYE].y + frame[PoseLandmark.NOSE].y) / 3.0
    shoulder_y = (left_shoulder.y + right_shoulder.y) / 2.0
    ratio = abs(face_y - shoulder_y) / shoulder_width
    if not math.isfinite(ratio):
        return None
    return ratio


def full_metric_set(frame: LandmarkFrame) -> PostureMetrics:
    require_visible(frame, UPPER_BODY)
    nose = frame[PoseLandmark.NOSE]
    left_shoulder = frame[PoseLandmark.LEFT_SHOULDER]
    right_shoulder = frame[PoseLandmark.RIGHT_SHOULDER]
    shoulder_center = midpoint(left_shoulder, right_shoulder)
    hip_center = midpoint(frame[PoseLandmark.LEFT_HIP], frame[PoseLandmark.RIGHT_HIP])

    shoulder_dy = abs(vertical_delta(left_shoulder, right_shoulder))
    return PostureMetrics(
        torso_tilt=angle_from_vertical(shoulder_center, hip_center),
        # Scaled so normalized coordinates land in a degrees-like range.
        shoulder_tilt=shoulder_dy * 100.0,
        neck_flex=angle_from_vertical(nose, shoulder_center),
        head_z_delta=vertical_delta(nose, shoulder_center),
        shoulder_asym_y=shoulder_dy,
    )
