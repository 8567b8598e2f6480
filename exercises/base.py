from dataclasses import dataclass
from typing import List, Optional

from calibration import Baseline, ExerciseKind
from pose_types import LandmarkFrame


@dataclass
class ExerciseState:
    rep_count: int
    phase: str
    warnings: List[str]
    is_rep_valid: bool
    progress: float = 0.0
    completed: bool = False


class ExerciseBase:
    """Per-frame exercise tracker driven by a calibrated baseline.

    A fresh instance is in the CALIBRATING phase and reports that state from
    ``update`` until ``set_baseline`` is called.
    """

    name = "base"
    kind: Optional[ExerciseKind] = None

    def __init__(self):
        self.baseline: Optional[Baseline] = None

    def set_baseline(self, baseline: Baseline) -> None:
        """Store the baseline, clear counters and leave the CALIBRATING phase."""
        raise NotImplementedError

    def update(self, frame: LandmarkFrame, now_ms: Optional[float] = None) -> ExerciseState:
        """Advance on one frame. ``now_ms`` defaults to ``frame.timestamp_ms``."""
        raise NotImplementedError

    def reset(self) -> None:
        """Drop the baseline and counters and return to CALIBRATING."""
        raise NotImplementedError
