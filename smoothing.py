from dataclasses import dataclass
from typing import Optional

from config import PipelineSettings
from scoring import clamp_score

MAX_CHANGE_STREAK = 10


@dataclass
class SmoothingState:
    smoothed_value: float = 0.0
    frame_counter: int = 0


@dataclass
class StuckState:
    last_ratio: Optional[float] = None
    stuck_since_ms: Optional[float] = None
    change_streak: int = 0
    is_stuck: bool = False


@dataclass(frozen=True)
class StabilityReading:
    smoothed_value: int
    updated: bool
    is_stuck: bool


class ScoreSmoother:
    def __init__(self, weight: float = 0.4, update_every: int = 3, initial_value: float = 0.0):
        self.weight = weight
        self.update_every = update_every
        self.initial_value = initial_value
        self.state = SmoothingState(smoothed_value=initial_value)

    @property
    def value(self) -> int:
        return int(self.state.smoothed_value)

    def reset(self) -> None:
        self.state = SmoothingState(smoothed_value=self.initial_value)

    def update(self, raw_score: float) -> bool:
        # Only every Nth frame moves the average; in between the last value is held.
        self.state.frame_counter += 1
        if self.state.frame_counter % self.update_every != 0:
            return False
        blended = raw_score * self.weight + self.state.smoothed_value * (1.0 - self.weight)
        self.state.smoothed_value = clamp_score(blended)
        return True


class StuckDetector:
    """Flags a posture-ratio stream that stopped moving.

    A frozen camera feed or lost tracking keeps reporting the same landmarks,
    so the ratio barely changes. The flag is raised once the ratio stays within
    ``epsilon`` of the reference for longer than ``stuck_after_ms`` and is only
    cleared after ``clear_streak`` consecutive changing frames, so one noisy
    frame cannot reset it.
    """

    def __init__(self, epsilon: float = 0.002, stuck_after_ms: float = 2000, clear_streak: int = 3):
        self.epsilon = epsilon
        self.stuck_after_ms = stuck_after_ms
        self.clear_streak = clear_streak
        self.state = StuckState()

    @property
    def is_stuck(self) -> bool:
        return self.state.is_stuck

    def reset(self) -> None:
        self.state = StuckState()

    def update(self, ratio: float, now_ms: float) -> bool:
        state = self.state
        if state.last_ratio is None:
            state.last_ratio = ratio
            state.stuck_since_ms = now_ms
            return state.is_stuck

        if abs(ratio - state.last_ratio) < self.epsilon:
            if state.stuck_since_ms is None:
                state.stuck_since_ms = now_ms
            elif now_ms - state.stuck_since_ms > self.stuck_after_ms:
                state.is_stuck = True
            state.change_streak = 0
        else:
            state.change_streak = min(state.change_streak + 1, MAX_CHANGE_STREAK)
            if state.change_streak >= self.clear_streak:
                state.stuck_since_ms = None
                state.is_stuck = False
                state.last_ratio = ratio
                state.change_streak = 0
        return state.is_stuck


class StabilityFilter:
    def __init__(self, smoother: Optional[ScoreSmoother] = None, stuck: Optional[StuckDetector] = None):
        self.smoother = smoother or ScoreSmoother()
        self.stuck = stuck or StuckDetector()

    @classmethod
    def from_settings(cls, settings: PipelineSettings) -> "StabilityFilter":
        return cls(
            ScoreSmoother(weight=settings.smoothing_weight, update_every=settings.smoothing_every),
            StuckDetector(
                epsilon=settings.stuck_epsilon,
                stuck_after_ms=settings.stuck_after_ms,
                clear_streak=settings.stuck_clear_streak,
            ),
        )

    def reset(self) -> None:
        self.smoother.reset()
        self.stuck.reset()

    def process(self, raw_score: float, ratio: Optional[float], now_ms: float) -> StabilityReading:
        # Stuck detection watches the raw ratio, not the score.
        if ratio is not None:
            self.stuck.update(ratio, now_ms)
        updated = self.smoother.update(raw_score)
        return StabilityReading(self.smoother.value, updated, self.stuck.is_stuck)
