from dataclasses import dataclass
from typing import Callable, List, Optional

from loguru import logger

from config import MAX_ALERT_THRESHOLD, MIN_ALERT_COOLDOWN_MS, MIN_ALERT_THRESHOLD, PipelineSettings
from pose_types import now_ms


@dataclass
class AlertState:
    consecutive_low_count: int = 0
    last_alert_at_ms: Optional[float] = None


@dataclass(frozen=True)
class AlertEvent:
    score: int
    threshold: int
    timestamp_ms: float


@dataclass(frozen=True)
class AlertStatus:
    is_enabled: bool
    is_monitoring: bool
    threshold: int
    consecutive_low_count: int
    cooldown_ms: float
    time_since_last_alert_ms: Optional[float]


class ThresholdAlertMonitor:
    def __init__(
        self,
        threshold: int = 80,
        required_low_count: int = 10,
        cooldown_ms: float = 30000,
        enabled: bool = True,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.threshold = threshold
        self.required_low_count = required_low_count
        self.cooldown_ms = cooldown_ms
        self.enabled = enabled
        self.is_monitoring = False
        self.state = AlertState()
        self._clock = clock or now_ms
        self._listeners: List[Callable[[AlertEvent], None]] = []

    @classmethod
    def from_settings(cls, settings: PipelineSettings, clock: Optional[Callable[[], float]] = None) -> "ThresholdAlertMonitor":
        return cls(
            threshold=settings.alert_threshold,
            required_low_count=settings.alert_required_low_count,
            cooldown_ms=settings.alert_cooldown_ms,
            enabled=settings.alerts_enabled,
            clock=clock,
        )

    def add_listener(self, callback: Callable[[AlertEvent], None]) -> None:
        self._listeners.append(callback)

    def configure(
        self,
        threshold: Optional[int] = None,
        enabled: Optional[bool] = None,
        cooldown_ms: Optional[float] = None,
    ) -> None:
        if threshold is not None:
            self.threshold = max(MIN_ALERT_THRESHOLD, min(MAX_ALERT_THRESHOLD, int(threshold)))
        if enabled is not None:
            self.enabled = bool(enabled)
        if cooldown_ms is not None:
            self.cooldown_ms = max(MIN_ALERT_COOLDOWN_MS, cooldown_ms)
        logger.info(
            "Alert monitor configured: threshold={}, enabled={}, cooldown={}ms",
            self.threshold,
            self.enabled,
            self.cooldown_ms,
        )

    def start(self) -> None:
        self.is_monitoring = True
        self.state = AlertState()
        logger.info("Posture threshold monitoring started")

    def stop(self) -> None:
        if not self.is_monitoring and self.state == AlertState():
            return
        self.is_monitoring = False
        self.state = AlertState()
        logger.info("Posture threshold monitoring stopped")

    def observe(self, score: float, enabled: bool = True, now_ms: Optional[float] = None) -> Optional[AlertEvent]:
        if not (enabled and self.enabled and self.is_monitoring):
            return None

        if score < self.threshold:
            self.state.consecutive_low_count += 1
        else:
            self.state.consecutive_low_count = 0
            return None

        now = self._clock() if now_ms is None else now_ms
        if not self._should_alert(now):
            return None
        return self._fire(int(score), now)

    def status(self, now_ms: Optional[float] = None) -> AlertStatus:
        now = self._clock() if now_ms is None else now_ms
        last = self.state.last_alert_at_ms
        return AlertStatus(
            is_enabled=self.enabled,
            is_monitoring=self.is_monitoring,
            threshold=self.threshold,
            consecutive_low_count=self.state.consecutive_low_count,
            cooldown_ms=self.cooldown_ms,
            time_since_last_alert_ms=None if last is None else now - last,
        )

    def _should_alert(self, now: float) -> bool:
        if self.state.consecutive_low_count < self.required_low_count:
            return False
        last = self.state.last_alert_at_ms
        return last is None or now - last >= self.cooldown_ms

    def _fire(self, score: int, now: float) -> AlertEvent:
        # Reset the count so a sustained slouch has to rebuild before the next alert.
        self.state.consecutive_low_count = 0
        self.state.last_alert_at_ms = now
        event = AlertEvent(score=score, threshold=self.threshold, timestamp_ms=now)
        logger.info("Posture alert triggered - score: {}, threshold: {}", score, self.threshold)
        for callback in self._listeners:
            callback(event)
        return event
