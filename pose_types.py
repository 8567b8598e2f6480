import time
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Iterable, Mapping, Optional, Tuple

LANDMARK_COUNT = 33
MIN_VISIBILITY = 0.5


def now_ms() -> float:
    return time.monotonic() * 1000.0


class PoseLandmark(IntEnum):
    # BlazePose topology, same order as mediapipe.solutions.pose.PoseLandmark.
    NOSE = 0
    LEFT_EYE_INNER = 1
    LEFT_EYE = 2
    LEFT_EYE_OUTER = 3
    RIGHT_EYE_INNER = 4
    RIGHT_EYE = 5
    RIGHT_EYE_OUTER = 6
    LEFT_EAR = 7
    RIGHT_EAR = 8
    MOUTH_LEFT = 9
    MOUTH_RIGHT = 10
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16
    LEFT_PINKY = 17
    RIGHT_PINKY = 18
    LEFT_INDEX = 19
    RIGHT_INDEX = 20
    LEFT_THUMB = 21
    RIGHT_THUMB = 22
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28
    LEFT_HEEL = 29
    RIGHT_HEEL = 30
    LEFT_FOOT_INDEX = 31
    RIGHT_FOOT_INDEX = 32


@dataclass(frozen=True)
class Landmark:
    x: float
    y: float
    z: float = 0.0
    visibility: float = 1.0


MISSING = Landmark(0.0, 0.0, 0.0, 0.0)


@dataclass(frozen=True)
class LandmarkFrame:
    landmarks: Tuple[Landmark, ...]
    timestamp_ms: float = 0.0

    def __post_init__(self) -> None:
        if len(self.landmarks) != LANDMARK_COUNT:
            raise ValueError(f"expected {LANDMARK_COUNT} landmarks, got {len(self.landmarks)}")

    def __getitem__(self, index: PoseLandmark) -> Landmark:
        return self.landmarks[index]

    def __len__(self) -> int:
        return LANDMARK_COUNT

    def is_visible(self, index: PoseLandmark, min_visibility: float = MIN_VISIBILITY) -> bool:
        return self.landmarks[index].visibility >= min_visibility

    def all_visible(self, indices: Iterable[PoseLandmark], min_visibility: float = MIN_VISIBILITY) -> bool:
        return all(self.is_visible(i, min_visibility) for i in indices)

    def get(self, index: PoseLandmark, min_visibility: float = MIN_VISIBILITY) -> Optional[Landmark]:
        lm = self.landmarks[index]
        return lm if lm.visibility >= min_visibility else None

    @classmethod
    def from_landmarks(cls, landmarks: Iterable, timestamp_ms: float = 0.0) -> "LandmarkFrame":
        # Accepts anything exposing x/y/z/visibility, e.g. mediapipe NormalizedLandmark.
        converted = []
        for lm in landmarks:
            converted.append(
                Landmark(
                    float(lm.x),
                    float(lm.y),
                    float(getattr(lm, "z", 0.0) or 0.0),
                    float(getattr(lm, "visibility", 1.0)),
                )
            )
        converted.extend([MISSING] * (LANDMARK_COUNT - len(converted)))
        return cls(tuple(converted[:LANDMARK_COUNT]), timestamp_ms)

    @classmethod
    def from_named(cls, named: Mapping[str, Landmark], timestamp_ms: float = 0.0) -> "LandmarkFrame":
        slots = [MISSING] * LANDMARK_COUNT
        for name, lm in named.items():
            if lm is None:
                continue
            slots[PoseLandmark[name.upper()]] = lm
        return cls(tuple(slots), timestamp_ms)


@dataclass(frozen=True)
class CalibrationSample:
    frame: LandmarkFrame
    captured_at_ms: float = field(default=0.0)
