from dataclasses import dataclass
from typing import List, Optional

from calibration import Baseline, ExerciseKind
from errors import MissingLandmark
from exercises.base import ExerciseBase, ExerciseState
from exercises.hold import HoldTimer
from metrics import nose_to_shoulder_distance
from pose_types import LandmarkFrame


@dataclass
class NeckTiltThresholds:
    up_factor: float = 1.005
    down_factor: float = 0.995
    hold_ms: float = 3000
    max_reps: int = 7


class NeckTiltCounter(ExerciseBase):
    """Alternating up/down head tilts measured against the calibrated nose-to-shoulder distance."""

    name = "neck_tilt"
    kind = ExerciseKind.NECK_TILT

    def __init__(self, up_factor: float = 1.005, down_factor: float = 0.995, hold_ms: float = 3000, max_reps: int = 7):
        super().__init__()
        self._thresholds = NeckTiltThresholds(up_factor, down_factor, hold_ms, max_reps)
        self._hold = HoldTimer(hold_ms)
        self.rep_count = 0
        self.phase = "CALIBRATING"

    def set_baseline(self, baseline: Baseline) -> None:
        self.baseline = baseline
        self.rep_count = 0
        self.phase = "UP"
        self._hold = HoldTimer(self._thresholds.hold_ms)

    def reset(self) -> None:
        self.baseline = None
        self.rep_count = 0
        self.phase = "CALIBRATING"
        self._hold = HoldTimer(self._thresholds.hold_ms)

    def is_tilted(self, distance: float, direction: str) -> bool:
        reference = self.baseline.nose_to_shoulder_distance
        if direction == "UP":
            return distance > reference * self._thresholds.up_factor
        return distance < reference * self._thresholds.down_factor

    def update(self, frame: LandmarkFrame, now_ms: Optional[float] = None) -> ExerciseState:
        now = frame.timestamp_ms if now_ms is None else now_ms
        warnings: List[str] = []
        if self.baseline is None:
            return ExerciseState(self.rep_count, "CALIBRATING", ["Calibrating..."], True)
        if self.phase == "COMPLETED":
            return self._state(warnings)

        try:
            distance = nose_to_shoulder_distance(frame)
        except MissingLandmark:
            self._hold.reset()
            return self._state(["Face or shoulders not visible"])

        if self._hold.update(self.is_tilted(distance, self.phase), now):
            if self.phase == "UP":
                self.phase = "DOWN"
            else:
                self.rep_count += 1
                self.phase = "COMPLETED" if self.rep_count >= self._thresholds.max_reps else "UP"
            self._hold.reset()
        elif self._hold.phase == "HOLDING":
            warnings.append(f"Hold {self._hold.remaining_ms(now) / 1000.0:.1f}s")
        else:
            warnings.append("Tilt head up" if self.phase == "UP" else "Tilt head down")

        return self._state(warnings)

    def _state(self, warnings: List[str]) -> ExerciseState:
        progress = min(self.rep_count / self._thresholds.max_reps * 100.0, 100.0)
        return ExerciseState(
            self.rep_count,
            self.phase,
            warnings,
            True,
            progress=progress,
            completed=self.phase == "COMPLETED",
        )
