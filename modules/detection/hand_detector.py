"""
MediaPipe Hands front end for the tracking thread.

Only the first detected hand is ever forwarded; the tarot scene is driven by
one hand at a time.
"""

import logging
from typing import Optional

import numpy as np
import mediapipe as mp

from modules.detection.landmark_extractor import from_mediapipe

logger = logging.getLogger(__name__)


class HandDetector:
    """Lazily created ``mp.solutions.hands.Hands`` with config-driven settings."""

    def __init__(self, config: Optional[dict] = None):
        config = config or {}
        self._settings = {
            "static_image_mode": False,
            "model_complexity": config.get("model_complexity", 1),
            "max_num_hands": config.get("max_num_hands", 1),
            "min_detection_confidence": config.get("min_detection_confidence", 0.7),
            "min_tracking_confidence": config.get("min_tracking_confidence", 0.7),
        }
        self._hands_api = mp.solutions.hands
        self._drawing = mp.solutions.drawing_utils
        self._styles = mp.solutions.drawing_styles
        self._hands = None

    @property
    def is_ready(self) -> bool:
        return self._hands is not None

    def initialize(self):
        if self._hands is not None:
            return
        self._hands = self._hands_api.Hands(**self._settings)
        logger.info("MediaPipe Hands ready: %s", self._settings)

    def detect(self, rgb_frame: np.ndarray):
        """Run MediaPipe on an RGB frame and return its raw results."""
        self.initialize()
        # Read-only frames let MediaPipe skip a copy
        rgb_frame.flags.writeable = False
        try:
            return self._hands.process(rgb_frame)
        finally:
            rgb_frame.flags.writeable = True

    def first_hand(self, results) -> Optional[np.ndarray]:
        """(21, 3) landmarks of the first hand, or None if no hand was found."""
        hands = getattr(results, "multi_hand_landmarks", None)
        if not hands:
            return None
        if len(hands) > 1:
            logger.debug("%d hands detected, using the first", len(hands))
        return from_mediapipe(hands[0])

    def draw_landmarks(self, frame: np.ndarray, results) -> np.ndarray:
        """Overlay the hand skeleton(s) on a BGR preview frame."""
        for hand in getattr(results, "multi_hand_landmarks", None) or []:
            self._drawing.draw_landmarks(
                frame,
                hand,
                self._hands_api.HAND_CONNECTIONS,
                self._styles.get_default_hand_landmarks_style(),
                self._styles.get_default_hand_connections_style(),
            )
        return frame

    def close(self):
        if self._hands is None:
            return
        self._hands.close()
        self._hands = None
        logger.info("MediaPipe Hands closed")

    def __enter__(self):
        self.initialize()
        return self

    def __exit__(self, *args):
        self.close()
