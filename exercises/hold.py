from typing import Optional


class HoldTimer:
    """Tracks how long a condition has been held without interruption."""

    def __init__(self, hold_ms: float = 3000):
        self.hold_ms = hold_ms
        self.phase = "READY"
        self.total_hold_ms = 0.0
        self._hold_start: Optional[float] = None

    def reset(self) -> None:
        self.phase = "READY"
        self._hold_start = None

    def remaining_ms(self, now_ms: float) -> float:
        if self.phase != "HOLDING" or self._hold_start is None:
            return self.hold_ms
        return max(0.0, self.hold_ms - (now_ms - self._hold_start))

    def update(self, holding: bool, now_ms: float) -> bool:
        # True exactly once per completed hold; the condition must drop before the next one.
        if self.phase == "READY":
            if holding:
                self.phase = "HOLDING"
                self._hold_start = now_ms
        elif self.phase == "HOLDING":
            if not holding:
                self.phase = "READY"
                self._hold_start = None
            elif now_ms - self._hold_start >= self.hold_ms:
                self.total_hold_ms += now_ms - self._hold_start
                self.phase = "COUNTED"
                return True
        elif self.phase == "COUNTED":
            if not holding:
                self.phase = "READY"
                self._hold_start = None
        return False
