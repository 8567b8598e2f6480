"""Failure taxonomy shared by every pipeline stage.

Everything except ``CalibrationStateError`` is recoverable: the caller skips
the frame, retries calibration or falls back to a neutral score.
"""
from typing import Optional


class PostureError(Exception):
    """Base class for all pipeline failures."""

    kind = "posture_error"

    def __init__(self, message: str = "", *, reason: Optional[str] = None):
        super().__init__(message)
        self.reason = reason or message


class MissingLandmark(PostureError):
    kind = "missing_landmark"

    def __init__(self, landmark: str, visibility: float = 0.0):
        super().__init__(f"Landmark {landmark} not visible (visibility={visibility:.2f})")
        self.landmark = landmark
        self.visibility = visibility


class InsufficientData(PostureError):
    kind = "insufficient_data"


class CalibrationError(PostureError):
    """Baseline computed but rejected by validation."""

    kind = "calibration_error"


class InsufficientSamples(CalibrationError):
    kind = "insufficient_samples"


class LowConfidence(CalibrationError):
    kind = "low_confidence"


class InvalidMeasurement(CalibrationError):
    kind = "invalid_measurement"


class DegenerateInput(PostureError):
    kind = "degenerate_input"


class CalibrationStateError(RuntimeError):
    # Caller bug (e.g. start() while collecting); never handled locally.
    pass
