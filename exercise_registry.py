from dataclasses import dataclass
from typing import Callable, Dict, List

from calibration import ExerciseKind
from exercises.base import ExerciseBase
from exercises.neck_rotation import NeckRotationCounter
from exercises.neck_tilt import NeckTiltCounter
from exercises.sit_tall import SitTallMonitor


@dataclass
class CalibrationRequirements:
    duration_ms: float
    measurements: List[str]
    instructions: str


@dataclass
class ExerciseEntry:
    kind: ExerciseKind
    name: str
    factory: Callable[[], ExerciseBase]
    requirements: CalibrationRequirements

    def create(self) -> ExerciseBase:
        return self.factory()


def get_exercise_entries() -> List[ExerciseEntry]:
    return [
        ExerciseEntry(
            ExerciseKind.SIT_TALL,
            "Sit Tall",
            SitTallMonitor,
            CalibrationRequirements(3000, ["nose_to_shoulder_distance"], "Sit up straight and look forward"),
        ),
        ExerciseEntry(
            ExerciseKind.NECK_ROTATION,
            "Neck Rotation",
            NeckRotationCounter,
            CalibrationRequirements(3000, ["shoulder_distances"], "Face forward with neutral head position"),
        ),
        ExerciseEntry(
            ExerciseKind.NECK_TILT,
            "Neck Tilt",
            NeckTiltCounter,
            CalibrationRequirements(3000, ["nose_to_shoulder_distance"], "Keep head in neutral position"),
        ),
    ]


def _entries_by_kind() -> Dict[ExerciseKind, ExerciseEntry]:
    return {entry.kind: entry for entry in get_exercise_entries()}


def get_exercise_entry(kind) -> ExerciseEntry:
    entries = _entries_by_kind()
    try:
        return entries[ExerciseKind(kind)]
    except ValueError:
        # Unknown kinds fall back to the sit-tall setup.
        return entries[ExerciseKind.SIT_TALL]


def get_calibration_requirements(kind) -> CalibrationRequirements:
    return get_exercise_entry(kind).requirements
