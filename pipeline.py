"""Per-session posture pipeline.

One ``PostureSession`` owns the calibration buffer, smoothing, stuck and alert
state of a single tracking session. The host pushes landmark frames as they
arrive and calls ``tick()`` on its own cadence; events are delivered
synchronously to registered listeners.
"""
import math
from dataclasses import dataclass, field
from typing import Callable, FrozenSet, List, Optional, Union

from loguru import logger

from alerts import AlertEvent, ThresholdAlertMonitor
from calibration import (
    Baseline,
    BaselineCalibrator,
    CalibrationProgress,
    CalibrationResult,
    CalibrationState,
    ExerciseKind,
    calibrated_ratio,
    is_valid,
    personalized_thresholds,
)
from config import PipelineSettings, get_settings
from errors import DegenerateInput
from history import PoseHistory
from metrics import posture_ratio
from pose_types import LandmarkFrame, now_ms
from scoring import FlagKind, PenaltyThresholds, PostureScore, ratio_score, score_frame, uncalibrated_ratio_score
from smoothing import StabilityFilter


@dataclass(frozen=True)
class ScoreUpdated:
    smoothed_value: int
    flags: FrozenSet[FlagKind] = field(default_factory=frozenset)
    is_stuck: bool = False
    raw_score: int = 0
    ratio: Optional[float] = None
    timestamp_ms: float = 0.0


PipelineEvent = Union[ScoreUpdated, CalibrationProgress, CalibrationResult, AlertEvent]


class PostureSession:
    def __init__(self, settings: Optional[PipelineSettings] = None, clock: Optional[Callable[[], float]] = None):
        self.settings = settings or get_settings()
        self._clock = clock or now_ms
        self.history = PoseHistory(maxlen=self.settings.history_size)
        self.calibrator = BaselineCalibrator.from_settings(self.settings, clock=self._clock)
        self.stability = StabilityFilter.from_settings(self.settings)
        self.alerts = ThresholdAlertMonitor.from_settings(self.settings, clock=self._clock)

        self.calibrated_ratio: Optional[float] = None
        self.is_tracking = False
        self.last_score: Optional[ScoreUpdated] = None
        self._last_processed = 0
        self._listeners: List[Callable[[PipelineEvent], None]] = []

        self.calibrator.on_progress = self._emit
        self.calibrator.on_result = self._emit
        self.alerts.add_listener(self._emit)

    @property
    def baseline(self) -> Optional[Baseline]:
        return self.calibrator.baseline

    @property
    def calibration_state(self) -> CalibrationState:
        return self.calibrator.state

    def add_listener(self, callback: Callable[[PipelineEvent], None]) -> None:
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[PipelineEvent], None]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def push_frame(self, frame: LandmarkFrame) -> None:
        self.history.append(frame)

    # --- Calibration ---------------------------------------------------

    def start_calibration(
        self,
        exercise_kind=ExerciseKind.SIT_TALL,
        duration_ms: Optional[float] = None,
        now_ms: Optional[float] = None,
    ) -> None:
        self.calibrator.start(exercise_kind, duration_ms=duration_ms, now_ms=now_ms)

    def stop_calibration(self) -> None:
        self.calibrator.stop()

    def calibrate_ratio(self, ratio: Optional[float] = None) -> float:
        if ratio is not None:
            if not (math.isfinite(ratio) and ratio > 0):
                raise DegenerateInput(f"Calibrated ratio must be positive, got {ratio}")
            self.calibrated_ratio = ratio
        elif self.baseline is not None and self.baseline.posture_ratio:
            self.calibrated_ratio = self.baseline.posture_ratio
        else:
            self.calibrated_ratio = calibrated_ratio(self.history.latest())
        logger.info("Calibrated ratio: {:.3f}", self.calibrated_ratio)
        return self.calibrated_ratio

    # --- Live tracking -------------------------------------------------

    def start_tracking(self, calibrated_ratio: Optional[float] = None, calibrate: bool = True) -> None:
        if calibrate:
            self.calibrate_ratio(calibrated_ratio)
        else:
            self.calibrated_ratio = None
        self.stability.reset()
        self.alerts.start()
        self.last_score = None
        # Frames pushed before the session started are not scored.
        self._last_processed = self.history.total_appended
        self.is_tracking = True
        logger.info("Tracking started")

    def stop_tracking(self) -> None:
        if not self.is_tracking:
            return
        self.is_tracking = False
        self.stability.reset()
        self.alerts.stop()
        logger.info("Tracking stopped")

    def tick(self, now_ms: Optional[float] = None) -> Optional[ScoreUpdated]:
        now = self._clock() if now_ms is None else now_ms
        frame = self.history.latest()
        if self.calibrator.state == CalibrationState.COLLECTING:
            self.calibrator.tick(frame, now)

        if not self.is_tracking or frame is None:
            return None
        if self.history.total_appended == self._last_processed:
            return None
        # Only the newest frame is scored; older ones that arrived since the last tick are skipped.
        self._last_processed = self.history.total_appended
        return self.process_frame(frame, now)

    def process_frame(self, frame: LandmarkFrame, now_ms: Optional[float] = None) -> Optional[ScoreUpdated]:
        now = self._clock() if now_ms is None else now_ms
        ratio = posture_ratio(frame)
        if ratio is None:
            logger.debug("Skipping frame at {}: face or shoulders not visible", now)
            return None

        if self.calibrated_ratio is not None:
            score = ratio_score(self.calibrated_ratio, ratio)
        else:
            score = uncalibrated_ratio_score(ratio)

        reading = self.stability.process(score.value, ratio, now)
        if not reading.updated:
            return None

        event = ScoreUpdated(
            smoothed_value=reading.smoothed_value,
            flags=score.flags,
            is_stuck=reading.is_stuck,
            raw_score=score.value,
            ratio=ratio,
            timestamp_ms=now,
        )
        self.last_score = event
        self._emit(event)

        suppressed = reading.is_stuck and self.settings.suppress_alerts_when_stuck
        self.alerts.observe(reading.smoothed_value, enabled=not suppressed, now_ms=now)
        return event

    # --- Scans ---------------------------------------------------------

    def scan(
        self,
        frame: Optional[LandmarkFrame] = None,
        thresholds: Optional[PenaltyThresholds] = None,
    ) -> Optional[PostureScore]:
        if frame is None:
            frame = self.history.latest()
        if frame is None:
            return None
        if thresholds is None and is_valid(self.baseline, self.calibrator.min_samples, self.calibrator.min_confidence):
            thresholds = personalized_thresholds(self.baseline)
        return score_frame(frame, thresholds)

    def stop(self) -> None:
        self.stop_tracking()
        self.calibrator.stop()

    def _emit(self, event: PipelineEvent) -> None:
        for callback in list(self._listeners):
            callback(event)
