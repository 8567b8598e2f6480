from dataclasses import dataclass
from typing import List, Optional

from loguru import logger

from calibration import Baseline, ExerciseKind
from errors import MissingLandmark
from exercises.base import ExerciseBase, ExerciseState
from metrics import nose_to_shoulder_distance
from pose_types import LandmarkFrame


@dataclass
class SitTallThresholds:
    max_deviation: float = 0.05
    grace_ms: float = 2000
    meditation_ms: float = 3 * 60 * 1000


class SitTallMonitor(ExerciseBase):
    name = "sit_tall"
    kind = ExerciseKind.SIT_TALL

    def __init__(self, max_deviation: float = 0.05, grace_ms: float = 2000, meditation_ms: float = 3 * 60 * 1000):
        super().__init__()
        self._thresholds = SitTallThresholds(max_deviation, grace_ms, meditation_ms)
        self.rep_count = 0
        self.phase = "CALIBRATING"
        self.total_deviations = 0
        self.total_correction_ms = 0.0
        self.meditation_elapsed_ms = 0.0
        self._deviation_since: Optional[float] = None
        self._correction_start: Optional[float] = None
        self._last_update: Optional[float] = None

    def set_baseline(self, baseline: Baseline) -> None:
        self.reset()
        self.baseline = baseline
        self.phase = "MEDITATION"

    def reset(self) -> None:
        self.baseline = None
        self.rep_count = 0
        self.phase = "CALIBRATING"
        self.total_deviations = 0
        self.total_correction_ms = 0.0
        self.meditation_elapsed_ms = 0.0
        self._deviation_since = None
        self._correction_start = None
        self._last_update = None

    def deviation(self, frame: LandmarkFrame) -> float:
        reference = self.baseline.nose_to_shoulder_distance
        return abs(nose_to_shoulder_distance(frame) - reference) / reference

    def update(self, frame: LandmarkFrame, now_ms: Optional[float] = None) -> ExerciseState:
        now = frame.timestamp_ms if now_ms is None else now_ms
        warnings: List[str] = []
        if self.baseline is None or self.baseline.nose_to_shoulder_distance <= 0:
            return ExerciseState(0, "CALIBRATING", ["Calibrating..."], True)
        if self.phase == "COMPLETED":
            return self._state(warnings)

        # The meditation clock only runs while posture is held.
        if self.phase == "MEDITATION" and self._last_update is not None:
            self.meditation_elapsed_ms += now - self._last_update
        self._last_update = now

        try:
            deviated = self.deviation(frame) > self._thresholds.max_deviation
        except MissingLandmark:
            return self._state(["Face or shoulders not visible"])

        if deviated:
            if self._deviation_since is None:
                self._deviation_since = now
            elif self.phase == "MEDITATION" and now - self._deviation_since >= self._thresholds.grace_ms:
                self.phase = "CORRECTION"
                self.total_deviations += 1
                self._correction_start = self._deviation_since
                logger.info("Posture deviation detected - starting correction")
            warnings.append("Sit up straight")
        else:
            self._deviation_since = None
            if self.phase == "CORRECTION":
                self.total_correction_ms += now - self._correction_start
                self._correction_start = None
                self.phase = "MEDITATION"
                logger.info("Posture corrected")

        if self.meditation_elapsed_ms >= self._thresholds.meditation_ms:
            self.phase = "COMPLETED"
        return self._state(warnings)

    def _state(self, warnings: List[str]) -> ExerciseState:
        progress = min(self.meditation_elapsed_ms / self._thresholds.meditation_ms * 100.0, 100.0)
        return ExerciseState(
            self.rep_count,
            self.phase,
            warnings,
            self.phase != "CORRECTION",
            progress=progress,
            completed=self.phase == "COMPLETED",
        )
