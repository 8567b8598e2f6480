import math
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, List, Optional

from metrics import PostureMetrics, full_metric_set
from pose_types import LandmarkFrame

NEUTRAL_SCORE = 50
RATIO_DROP_GAIN = 200.0
UNCALIBRATED_GOOD_RATIO = 0.98
UNCALIBRATED_GOOD_SCORE = 85
UNCALIBRATED_POOR_SCORE = 30


class FlagKind(str, Enum):
    TORSO_TILT = "torso_tilt"
    SHOULDER_TILT = "shoulder_tilt"
    NECK_FLEX = "neck_flex"
    HEAD_Z_DELTA = "head_z_delta"
    SHOULDER_ASYM_Y = "shoulder_asym_y"
    DEGENERATE_INPUT = "degenerate_input"
    UNCALIBRATED = "uncalibrated"


@dataclass(frozen=True)
class PostureScore:
    value: int
    flags: FrozenSet[FlagKind] = field(default_factory=frozenset)

    def has(self, flag: FlagKind) -> bool:
        return flag in self.flags


def round_half_up(value: float) -> int:
    # Python's round() is banker's rounding; scores round .5 upwards.
    return int(math.floor(value + 0.5))


def clamp_score(value: float) -> int:
    if math.isnan(value):
        return NEUTRAL_SCORE
    return round_half_up(max(0.0, min(100.0, value)))


def _usable(value: Optional[float]) -> bool:
    return value is not None and math.isfinite(value) and value > 0


def ratio_score(calibrated_ratio: Optional[float], current_ratio: Optional[float]) -> PostureScore:
    if not _usable(calibrated_ratio) or not _usable(current_ratio):
        return PostureScore(NEUTRAL_SCORE, frozenset({FlagKind.DEGENERATE_INPUT}))

    drop = calibrated_ratio - current_ratio
    if drop <= 0:
        return PostureScore(100)
    return PostureScore(clamp_score(100.0 - drop * RATIO_DROP_GAIN))


def uncalibrated_ratio_score(current_ratio: Optional[float]) -> PostureScore:
    if current_ratio is not None and current_ratio >= UNCALIBRATED_GOOD_RATIO:
        return PostureScore(UNCALIBRATED_GOOD_SCORE, frozenset({FlagKind.UNCALIBRATED}))
    return PostureScore(UNCALIBRATED_POOR_SCORE, frozenset({FlagKind.UNCALIBRATED}))


@dataclass(frozen=True)
class PenaltyThresholds:
    torso_tilt: float = 10.0
    shoulder_tilt: float = 7.0
    neck_flex: float = 12.0
    head_z_delta: float = -0.05
    shoulder_asym_y: float = 0.03


DEFAULT_THRESHOLDS = PenaltyThresholds()


@dataclass(frozen=True)
class PenaltyRule:
    metric: str
    span: float
    cap: float
    flag: FlagKind
    inverted: bool = False

    def excess(self, value: float, threshold: float) -> float:
        if self.inverted:
            return threshold - value
        return value - threshold

    def penalty(self, value: float, threshold: float) -> float:
        excess = self.excess(value, threshold)
        if excess <= 0:
            return 0.0
        return min(excess / self.span * self.cap, self.cap)


PENALTY_RULES: List[PenaltyRule] = [
    PenaltyRule("torso_tilt", span=20.0, cap=25.0, flag=FlagKind.TORSO_TILT),
    PenaltyRule("shoulder_tilt", span=20.0, cap=15.0, flag=FlagKind.SHOULDER_TILT),
    PenaltyRule("neck_flex", span=20.0, cap=35.0, flag=FlagKind.NECK_FLEX),
    # More negative means the head sits further forward/down.
    PenaltyRule("head_z_delta", span=0.10, cap=45.0, flag=FlagKind.HEAD_Z_DELTA, inverted=True),
    PenaltyRule("shoulder_asym_y", span=0.10, cap=20.0, flag=FlagKind.SHOULDER_ASYM_Y),
]


def penalty_score(metrics: PostureMetrics, thresholds: Optional[PenaltyThresholds] = None) -> PostureScore:
    thresholds = thresholds or DEFAULT_THRESHOLDS
    score = 100.0
    flags = set()
    for rule in PENALTY_RULES:
        value = getattr(metrics, rule.metric)
        if math.isnan(value):
            flags.add(FlagKind.DEGENERATE_INPUT)
            continue
        penalty = rule.penalty(value, getattr(thresholds, rule.metric))
        if penalty > 0:
            score -= penalty
            flags.add(rule.flag)
    return PostureScore(clamp_score(score), frozenset(flags))


def score_frame(frame: LandmarkFrame, thresholds: Optional[PenaltyThresholds] = None) -> PostureScore:
    # Raises MissingLandmark when the upper body is not visible.
    return penalty_score(full_metric_set(frame), thresholds)
