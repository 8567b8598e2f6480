"""Pipeline configuration.

Plain parameter model handed to the session at construction time. Defaults
come from environment variables so a host can tune the pipeline without code.
"""
from __future__ import annotations

import os
from functools import lru_cache

from pydantic import BaseModel, Field, field_validator

MIN_ALERT_THRESHOLD = 50
MAX_ALERT_THRESHOLD = 95
MIN_ALERT_COOLDOWN_MS = 5000


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


class PipelineSettings(BaseModel):
    """Tunables for calibration, smoothing, stuck detection and alerting.

    Attributes:
        calibration_duration_ms: Length of the sample collection window.
        sample_interval_ms: Calibration sampling cadence.
        progress_interval_ms: Calibration progress reporting cadence.
        min_samples: Valid samples required for a usable baseline.
        max_samples: Upper bound on buffered calibration samples.
        min_confidence: Confidence required for a usable baseline.
        smoothing_weight: Weight of the newest raw score in the EMA.
        smoothing_every: Smoothing runs on every Nth frame only.
        stuck_epsilon: Ratio change below which the stream counts as frozen.
        stuck_after_ms: Frozen time before tracking is reported stuck.
        stuck_clear_streak: Consecutive changing frames needed to clear stuck.
        alert_threshold: Smoothed score below which a frame counts as low.
        alert_required_low_count: Consecutive low observations before alerting.
        alert_cooldown_ms: Minimum gap between two alerts.
        alerts_enabled: Master switch for the alert monitor.
        suppress_alerts_when_stuck: Skip alerting while tracking looks frozen.
        history_size: Frames kept in the session pose history.
        log_level: Loguru level used by ``setup_logging``.
    """

    calibration_duration_ms: int = int(os.getenv("POSTURE_CALIBRATION_DURATION_MS", "3000"))
    sample_interval_ms: int = 50
    progress_interval_ms: int = 100
    min_samples: int = int(os.getenv("POSTURE_MIN_SAMPLES", "30"))
    max_samples: int = int(os.getenv("POSTURE_MAX_SAMPLES", "200"))
    min_confidence: float = float(os.getenv("POSTURE_MIN_CONFIDENCE", "0.6"))

    smoothing_weight: float = Field(default=0.4, gt=0.0, le=1.0)
    smoothing_every: int = Field(default=3, ge=1)

    stuck_epsilon: float = float(os.getenv("POSTURE_STUCK_EPSILON", "0.002"))
    stuck_after_ms: int = int(os.getenv("POSTURE_STUCK_AFTER_MS", "2000"))
    stuck_clear_streak: int = 3

    alert_threshold: int = int(os.getenv("POSTURE_ALERT_THRESHOLD", "80"))
    # ~2 s of sustained low score at a 200 ms scoring cadence
    alert_required_low_count: int = int(os.getenv("POSTURE_ALERT_REQUIRED_LOW_COUNT", "10"))
    alert_cooldown_ms: int = int(os.getenv("POSTURE_ALERT_COOLDOWN_MS", "30000"))
    alerts_enabled: bool = _env_flag("POSTURE_ALERTS_ENABLED", "1")
    suppress_alerts_when_stuck: bool = _env_flag("POSTURE_SUPPRESS_ALERTS_WHEN_STUCK", "0")

    history_size: int = 120
    log_level: str = os.getenv("POSTURE_LOG_LEVEL", "INFO")

    @field_validator("alert_threshold")
    @classmethod
    def _clamp_threshold(cls, value: int) -> int:
        return max(MIN_ALERT_THRESHOLD, min(MAX_ALERT_THRESHOLD, value))

    @field_validator("alert_cooldown_ms")
    @classmethod
    def _clamp_cooldown(cls, value: int) -> int:
        return max(MIN_ALERT_COOLDOWN_MS, value)

    @field_validator("max_samples")
    @classmethod
    def _positive_max_samples(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_samples must be positive")
        return value


@lru_cache
def get_settings() -> PipelineSettings:
    """Return cached settings instance."""

    return PipelineSettings()
