from dataclasses import dataclass
from typing import List, Optional

from calibration import Baseline, ExerciseKind
from errors import MissingLandmark
from exercises.base import ExerciseBase, ExerciseState
from exercises.hold import HoldTimer
from metrics import shoulder_distances
from pose_types import LandmarkFrame


@dataclass
class NeckRotationThresholds:
    ratio_change: float = 0.15
    hold_ms: float = 3000
    max_reps: int = 7


class NeckRotationCounter(ExerciseBase):
    name = "neck_rotation"
    kind = ExerciseKind.NECK_ROTATION

    def __init__(self, ratio_change: float = 0.15, hold_ms: float = 3000, max_reps: int = 7):
        super().__init__()
        self._thresholds = NeckRotationThresholds(ratio_change, hold_ms, max_reps)
        self._hold = HoldTimer(hold_ms)
        self._baseline_ratio: Optional[float] = None
        self.rep_count = 0
        self.phase = "CALIBRATING"

    def set_baseline(self, baseline: Baseline) -> None:
        self.baseline = baseline
        self._baseline_ratio = baseline.shoulder_distances.ratio
        self.rep_count = 0
        self.phase = "LEFT"
        self._hold = HoldTimer(self._thresholds.hold_ms)

    def reset(self) -> None:
        self.baseline = None
        self._baseline_ratio = None
        self.rep_count = 0
        self.phase = "CALIBRATING"
        self._hold = HoldTimer(self._thresholds.hold_ms)

    def ratio_change(self, frame: LandmarkFrame) -> Optional[float]:
        current = shoulder_distances(frame).ratio
        if current is None or not self._baseline_ratio:
            return None
        return (current - self._baseline_ratio) / self._baseline_ratio

    def update(self, frame: LandmarkFrame, now_ms: Optional[float] = None) -> ExerciseState:
        now = frame.timestamp_ms if now_ms is None else now_ms
        warnings: List[str] = []
        if self.baseline is None or not self._baseline_ratio:
            return ExerciseState(self.rep_count, "CALIBRATING", ["Calibrating..."], True)
        if self.phase == "COMPLETED":
            return self._state(warnings)

        try:
            change = self.ratio_change(frame)
        except MissingLandmark:
            self._hold.reset()
            return self._state(["Face or shoulders not visible"])

        # Turning left stretches the nose-to-left-shoulder distance relative to the right one.
        limit = self._thresholds.ratio_change
        if change is None:
            turned = False
        elif self.phase == "LEFT":
            turned = change > limit
        else:
            turned = change < -limit

        if self._hold.update(turned, now):
            if self.phase == "LEFT":
                self.phase = "RIGHT"
            else:
                self.rep_count += 1
                self.phase = "COMPLETED" if self.rep_count >= self._thresholds.max_reps else "LEFT"
            self._hold.reset()
        elif self._hold.phase == "HOLDING":
            warnings.append(f"Hold {self._hold.remaining_ms(now) / 1000.0:.1f}s")
        else:
            warnings.append("Turn head left" if self.phase == "LEFT" else "Turn head right")

        return self._state(warnings)

    def _state(self, warnings: List[str]) -> ExerciseState:
        return ExerciseState(
            self.rep_count,
            self.phase,
            warnings,
            True,
            progress=min(self.rep_count / self._thresholds.max_reps * 100.0, 100.0),
            completed=self.phase == "COMPLETED",
        )
