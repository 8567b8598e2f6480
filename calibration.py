import math
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Deque, List, Optional

import numpy as np
from loguru import logger

from config import PipelineSettings
from errors import (
    CalibrationError,
    CalibrationStateError,
    InsufficientData,
    InsufficientSamples,
    InvalidMeasurement,
    LowConfidence,
    MissingLandmark,
    PostureError,
)
from metrics import (
    PostureMetrics,
    ShoulderDistances,
    full_metric_set,
    nose_to_shoulder_distance,
    posture_ratio,
    shoulder_distances,
)
from pose_types import CalibrationSample, LandmarkFrame, now_ms
from scoring import DEFAULT_THRESHOLDS, PenaltyThresholds

COLLECTING_PROGRESS_CAP = 90.0
PROCESSING_PROGRESS = 95.0
COMPLETED_PROGRESS = 100.0
CONFIDENCE_FULL_SAMPLES = 60


class CalibrationState(str, Enum):
    IDLE = "idle"
    COLLECTING = "collecting"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class ExerciseKind(str, Enum):
    SIT_TALL = "sit-tall"
    NECK_TILT = "neck-tilt"
    NECK_ROTATION = "neck-rotation"


@dataclass(frozen=True)
class Baseline:
    nose_to_shoulder_distance: float
    shoulder_distances: ShoulderDistances
    sample_count: int
    confidence: float
    exercise_type: ExerciseKind
    captured_at_ms: float
    duration_ms: float = 0.0
    posture_ratio: Optional[float] = None
    metrics: Optional[PostureMetrics] = None


@dataclass(frozen=True)
class BaselineValidation:
    is_valid: bool
    reason: str
    confidence: float
    error: Optional[CalibrationError] = None


@dataclass(frozen=True)
class CalibrationProgress:
    percent: float
    sample_count: int
    time_remaining_ms: float
    state: CalibrationState


@dataclass(frozen=True)
class CalibrationResult:
    baseline: Optional[Baseline] = None
    error: Optional[PostureError] = None

    @property
    def ok(self) -> bool:
        return self.baseline is not None and self.error is None

    @property
    def reason(self) -> Optional[str]:
        return None if self.error is None else self.error.reason


def calculate_confidence(sample_count: int, nose_distance: float, distances: Optional[ShoulderDistances]) -> float:
    confidence = 0.5
    confidence += min(sample_count / CONFIDENCE_FULL_SAMPLES, 1.0) * 0.3
    if nose_distance > 0:
        confidence += 0.1
    if distances is not None and distances.is_positive():
        confidence += 0.1
    return max(0.0, min(confidence, 1.0))


def _mean_metrics(metrics: List[PostureMetrics]) -> Optional[PostureMetrics]:
    if not metrics:
        return None
    table = np.array(
        [[m.torso_tilt, m.shoulder_tilt, m.neck_flex, m.head_z_delta, m.shoulder_asym_y] for m in metrics],
        dtype=float,
    )
    means = table.mean(axis=0)
    return PostureMetrics(*(float(v) for v in means))


def compute_baseline(
    samples: List[CalibrationSample],
    exercise_kind: ExerciseKind,
    captured_at_ms: float,
    duration_ms: float = 0.0,
) -> Baseline:
    nose_values: List[float] = []
    left_values: List[float] = []
    right_values: List[float] = []
    ratios: List[float] = []
    metric_sets: List[PostureMetrics] = []

    for sample in samples:
        try:
            nose = nose_to_shoulder_distance(sample.frame)
            distances = shoulder_distances(sample.frame)
        except MissingLandmark as exc:
            logger.debug("Skipping calibration sample at {}: {}", sample.captured_at_ms, exc)
            continue
        # Invalid measurements are skipped, never zero-filled.
        if not (nose > 0 and distances.is_positive()):
            continue
        nose_values.append(nose)
        left_values.append(distances.left)
        right_values.append(distances.right)

        ratio = posture_ratio(sample.frame)
        if ratio is not None and ratio > 0:
            ratios.append(ratio)
        try:
            metric_sets.append(full_metric_set(sample.frame))
        except MissingLandmark:
            pass

    if not nose_values:
        raise InsufficientData(f"No valid calibration samples out of {len(samples)}")

    nose_mean = float(np.mean(nose_values))
    distances = ShoulderDistances(left=float(np.mean(left_values)), right=float(np.mean(right_values)))
    sample_count = len(nose_values)
    return Baseline(
        nose_to_shoulder_distance=nose_mean,
        shoulder_distances=distances,
        sample_count=sample_count,
        confidence=calculate_confidence(sample_count, nose_mean, distances),
        exercise_type=ExerciseKind(exercise_kind),
        captured_at_ms=captured_at_ms,
        duration_ms=duration_ms,
        posture_ratio=float(np.mean(ratios)) if ratios else None,
        metrics=_mean_metrics(metric_sets),
    )


def validate_baseline(
    baseline: Optional[Baseline],
    min_samples: int = 30,
    min_confidence: float = 0.6,
) -> BaselineValidation:
    if baseline is None:
        return BaselineValidation(False, "No baseline data available", 0.0, InsufficientSamples("No baseline data available"))

    if baseline.sample_count < min_samples:
        reason = f"Insufficient samples: {baseline.sample_count} < {min_samples}"
        return BaselineValidation(False, reason, 0.0, InsufficientSamples(reason))

    if baseline.confidence < min_confidence:
        reason = f"Low confidence: {baseline.confidence:.3f} < {min_confidence}"
        return BaselineValidation(False, reason, baseline.confidence, LowConfidence(reason))

    if baseline.exercise_type in (ExerciseKind.SIT_TALL, ExerciseKind.NECK_TILT):
        if not baseline.nose_to_shoulder_distance > 0:
            reason = "Invalid nose-to-shoulder distance measurement"
            return BaselineValidation(False, reason, 0.0, InvalidMeasurement(reason))
    elif baseline.exercise_type == ExerciseKind.NECK_ROTATION:
        if not baseline.shoulder_distances.is_positive():
            reason = "Invalid shoulder distance measurements"
            return BaselineValidation(False, reason, 0.0, InvalidMeasurement(reason))

    return BaselineValidation(True, "Calibration quality is excellent", baseline.confidence)


def is_valid(baseline: Optional[Baseline], min_samples: int = 30, min_confidence: float = 0.6) -> bool:
    return validate_baseline(baseline, min_samples, min_confidence).is_valid


def calibrated_ratio(frame: Optional[LandmarkFrame], fallback: float = 1.0) -> float:
    ratio = posture_ratio(frame) if frame is not None else None
    if ratio is None or not math.isfinite(ratio) or ratio <= 0:
        logger.info("Using fallback calibrated ratio: {}", fallback)
        return fallback
    return ratio


def personalized_thresholds(
    baseline: Optional[Baseline],
    defaults: PenaltyThresholds = DEFAULT_THRESHOLDS,
) -> PenaltyThresholds:
    # The resting posture counts as neutral; the defaults become tolerances on top of it.
    if baseline is None or baseline.metrics is None:
        return defaults
    rest = baseline.metrics
    return PenaltyThresholds(
        torso_tilt=rest.torso_tilt + defaults.torso_tilt,
        shoulder_tilt=rest.shoulder_tilt + defaults.shoulder_tilt,
        neck_flex=rest.neck_flex + defaults.neck_flex,
        head_z_delta=rest.head_z_delta + defaults.head_z_delta,
        shoulder_asym_y=rest.shoulder_asym_y + defaults.shoulder_asym_y,
    )


def _next_slot(slot: float, interval: float, now: float) -> float:
    # First slot strictly after now; missed slots are dropped, not replayed.
    if now < slot:
        return slot
    return slot + (math.floor((now - slot) / interval) + 1) * interval


class BaselineCalibrator:
    def __init__(
        self,
        sample_interval_ms: float = 50,
        progress_interval_ms: float = 100,
        min_samples: int = 30,
        max_samples: int = 200,
        min_confidence: float = 0.6,
        default_duration_ms: float = 3000,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.sample_interval_ms = sample_interval_ms
        self.progress_interval_ms = progress_interval_ms
        self.min_samples = min_samples
        self.max_samples = max_samples
        self.min_confidence = min_confidence
        self.default_duration_ms = default_duration_ms
        self._clock = clock or now_ms

        self.state = CalibrationState.IDLE
        self.exercise_kind: Optional[ExerciseKind] = None
        self.duration_ms = default_duration_ms
        self.baseline: Optional[Baseline] = None
        self.last_error: Optional[PostureError] = None
        self._samples: Deque[CalibrationSample] = deque(maxlen=max_samples)
        self._start_ms: Optional[float] = None
        self._next_sample_ms: Optional[float] = None
        self._next_progress_ms: Optional[float] = None

        self.on_progress: Optional[Callable[[CalibrationProgress], None]] = None
        self.on_state_change: Optional[Callable[[CalibrationState, CalibrationState], None]] = None
        self.on_result: Optional[Callable[[CalibrationResult], None]] = None

    @classmethod
    def from_settings(cls, settings: PipelineSettings, clock: Optional[Callable[[], float]] = None) -> "BaselineCalibrator":
        return cls(
            sample_interval_ms=settings.sample_interval_ms,
            progress_interval_ms=settings.progress_interval_ms,
            min_samples=settings.min_samples,
            max_samples=settings.max_samples,
            min_confidence=settings.min_confidence,
            default_duration_ms=settings.calibration_duration_ms,
            clock=clock,
        )

    @property
    def sample_count(self) -> int:
        return len(self._samples)

    @property
    def is_active(self) -> bool:
        return self.state in (CalibrationState.COLLECTING, CalibrationState.PROCESSING)

    def start(self, exercise_kind, duration_ms: Optional[float] = None, now_ms: Optional[float] = None) -> None:
        if self.is_active:
            raise CalibrationStateError(f"Cannot start calibration while {self.state.value}")

        now = self._now(now_ms)
        self.exercise_kind = ExerciseKind(exercise_kind)
        self.duration_ms = self.default_duration_ms if duration_ms is None else duration_ms
        self.baseline = None
        self.last_error = None
        self._samples.clear()
        self._start_ms = now
        self._next_sample_ms = now + self.sample_interval_ms
        self._next_progress_ms = now + self.progress_interval_ms
        logger.info("Starting calibration for {} ({} ms)", self.exercise_kind.value, self.duration_ms)
        self._set_state(CalibrationState.COLLECTING)

    def tick(self, frame: Optional[LandmarkFrame] = None, now_ms: Optional[float] = None) -> Optional[CalibrationResult]:
        if self.state != CalibrationState.COLLECTING:
            return None

        now = self._now(now_ms)
        if now - self._start_ms >= self.duration_ms:
            return self._finish(now)

        if now >= self._next_sample_ms:
            if frame is not None:
                self._samples.append(CalibrationSample(frame, now))
                if len(self._samples) % 20 == 0:
                    logger.debug("Calibration samples collected: {}", len(self._samples))
            self._next_sample_ms = _next_slot(self._next_sample_ms, self.sample_interval_ms, now)

        if now >= self._next_progress_ms:
            self._emit_progress(now)
            self._next_progress_ms = _next_slot(self._next_progress_ms, self.progress_interval_ms, now)
        return None

    def stop(self) -> None:
        if self.state == CalibrationState.IDLE and not self._samples:
            return
        logger.info("Stopping calibration")
        self._clear_collection()
        self._set_state(CalibrationState.IDLE)

    def reset(self) -> None:
        self.stop()
        self.baseline = None
        self.last_error = None
        self.exercise_kind = None

    def progress(self, now_ms: Optional[float] = None) -> float:
        if self.state == CalibrationState.COMPLETED:
            return COMPLETED_PROGRESS
        if self.state == CalibrationState.PROCESSING:
            return PROCESSING_PROGRESS
        if self.state == CalibrationState.COLLECTING and self._start_ms is not None and self.duration_ms > 0:
            elapsed = self._now(now_ms) - self._start_ms
            return max(0.0, min(elapsed / self.duration_ms * COLLECTING_PROGRESS_CAP, COLLECTING_PROGRESS_CAP))
        return 0.0

    def time_remaining_ms(self, now_ms: Optional[float] = None) -> float:
        if self.state != CalibrationState.COLLECTING or self._start_ms is None:
            return 0.0
        return max(0.0, self.duration_ms - (self._now(now_ms) - self._start_ms))

    def snapshot(self, now_ms: Optional[float] = None) -> CalibrationProgress:
        now = self._now(now_ms)
        return CalibrationProgress(
            percent=self.progress(now),
            sample_count=self.sample_count,
            time_remaining_ms=self.time_remaining_ms(now),
            state=self.state,
        )

    def _finish(self, now: float) -> CalibrationResult:
        self._set_state(CalibrationState.PROCESSING)
        self._emit_progress(now)
        samples = list(self._samples)
        logger.info("Processing {} calibration samples", len(samples))

        try:
            baseline = compute_baseline(samples, self.exercise_kind, now, now - self._start_ms)
        except InsufficientData as exc:
            return self._fail(exc, now)

        validation = validate_baseline(baseline, self.min_samples, self.min_confidence)
        if not validation.is_valid:
            return self._fail(validation.error, now)

        self.baseline = baseline
        self._set_state(CalibrationState.COMPLETED)
        self._emit_progress(now)
        self._clear_collection()
        logger.info(
            "Calibration completed: {} samples, confidence {:.3f}",
            baseline.sample_count,
            baseline.confidence,
        )
        return self._publish(CalibrationResult(baseline=baseline))

    def _fail(self, error: PostureError, now: float) -> CalibrationResult:
        logger.warning("Calibration failed: {}", error.reason)
        self.last_error = error
        self._clear_collection()
        self._set_state(CalibrationState.ERROR)
        return self._publish(CalibrationResult(error=error))

    def _publish(self, result: CalibrationResult) -> CalibrationResult:
        if self.on_result is not None:
            self.on_result(result)
        return result

    def _emit_progress(self, now: float) -> None:
        if self.on_progress is not None:
            self.on_progress(self.snapshot(now))

    def _set_state(self, new_state: CalibrationState) -> None:
        old_state = self.state
        self.state = new_state
        logger.debug("Calibration state: {} -> {}", old_state.value, new_state.value)
        if self.on_state_change is not None and old_state != new_state:
            self.on_state_change(old_state, new_state)

    def _clear_collection(self) -> None:
        self._samples.clear()
        self._start_ms = None
        self._next_sample_ms = None
        self._next_progress_ms = None

    def _now(self, now_ms: Optional[float]) -> float:
        return self._clock() if now_ms is None else now_ms
