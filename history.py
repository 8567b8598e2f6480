from collections import deque
from typing import Deque, List, Optional

from pose_types import LandmarkFrame


class PoseHistory:
    def __init__(self, maxlen: int = 120):
        self._buffer: Deque[LandmarkFrame] = deque(maxlen=maxlen)
        self._appended = 0

    def __len__(self) -> int:
        return len(self._buffer)

    @property
    def total_appended(self) -> int:
        # Monotonic arrival counter; lets consumers tell a new frame from a re-read.
        return self._appended

    def append(self, frame: LandmarkFrame) -> None:
        self._buffer.append(frame)
        self._appended += 1

    def latest(self) -> Optional[LandmarkFrame]:
        return self._buffer[-1] if self._buffer else None

    def recent(self, count: int) -> List[LandmarkFrame]:
        if count <= 0:
            return []
        return list(self._buffer)[-count:]

    def time_window(self, window_ms: float) -> List[LandmarkFrame]:
        if not self._buffer:
            return []
        end_time = self._buffer[-1].timestamp_ms
        return [f for f in self._buffer if end_time - f.timestamp_ms <= window_ms]

    def clear(self) -> None:
        self._buffer.clear()
