from typing import Optional

import cv2
import mediapipe as mp
from loguru import logger

from pose_types import LandmarkFrame


class PoseDetector:
    """Turns BGR camera frames into ``LandmarkFrame``s using MediaPipe Pose.

    Landmarks are passed through with their visibility; filtering happens in
    the metric functions so every consumer applies the same threshold.
    """

    def __init__(
        self,
        min_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
        model_complexity: int = 1,
    ):
        self._pose = mp.solutions.pose.Pose(
            static_image_mode=False,
            model_complexity=model_complexity,
            smooth_landmarks=True,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
        )

    def process(self, frame_bgr, timestamp_ms: float) -> Optional[LandmarkFrame]:
        frame_rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
        results = self._pose.process(frame_rgb)
        if results.pose_landmarks is None:
            logger.debug("No pose detected at {}", timestamp_ms)
            return None
        return LandmarkFrame.from_landmarks(results.pose_landmarks.landmark, timestamp_ms)

    def close(self) -> None:
        self._pose.close()
