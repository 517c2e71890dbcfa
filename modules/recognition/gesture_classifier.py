"""
Per-frame gesture classifier.

Maps one hand's 21 landmarks to a discrete gesture and a pointer taken from
the index fingertip. The classifier keeps no memory between frames: the same
landmarks always produce the same sample.

Rules are evaluated in priority order, first match wins:
    FIST   at most one finger extended and index, middle, ring all tucked
    PINCH  thumb and index tips touching with middle or ring extended
    POINT  index extended, middle and ring folded
    OPEN   three or more fingers extended
    NONE   anything else

FIST is checked before PINCH because a clenched hand brings the thumb tip
close to the index tip too.

Thresholds are planar wrist-to-tip distances in normalized image units and
can be tuned from gestures.yaml.
"""

import logging
from typing import Optional

import numpy as np

from core.types import GestureType, HandSample, Pointer
from modules.detection.landmark_extractor import (
    INDEX_TIP, as_landmark_array, wrist_distances, pinch_distance,
)

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION_THRESHOLDS = {
    "thumb": 0.12,
    "index": 0.25,
    "middle": 0.25,
    "ring": 0.20,
    "pinky": 0.18,
}
DEFAULT_FIST_LIMITS = {
    "max_extended": 1,
    "index": 0.22,
    "middle": 0.22,
    "ring": 0.20,
}
DEFAULT_PINCH_DISTANCE = 0.06
DEFAULT_OPEN_MIN_EXTENDED = 3

_COUNTED_FINGERS = ("index", "middle", "ring", "pinky")


class HandMeasurements:
    """Geometry extracted from one frame, kept for debugging overlays."""

    __slots__ = ("distances", "pinch_distance", "extended", "extended_count")

    def __init__(self, distances: dict, pinch: float, extended: dict):
        self.distances = distances
        self.pinch_distance = pinch
        self.extended = extended
        self.extended_count = sum(1 for f in _COUNTED_FINGERS if extended[f])

    def __repr__(self):
        fingers = "".join(f[0].upper() if self.extended[f] else "." for f in self.extended)
        return f"HandMeasurements({fingers}, pinch={self.pinch_distance:.3f})"


class GestureClassifier:
    """Rule-based classifier over wrist-to-fingertip distances."""

    def __init__(self, config: Optional[dict] = None):
        """Initialize the classifier.

        Args:
            config: gestures.yaml contents. Missing keys fall back to
                    the built-in thresholds.
        """
        config = config or {}
        self._extension = dict(DEFAULT_EXTENSION_THRESHOLDS)
        self._extension.update(config.get("extension_thresholds", {}) or {})

        self._fist = dict(DEFAULT_FIST_LIMITS)
        self._fist.update(config.get("fist", {}) or {})

        self._pinch_distance = (config.get("pinch", {}) or {}).get("max_distance", DEFAULT_PINCH_DISTANCE)
        self._open_min_extended = (config.get("open", {}) or {}).get("min_extended", DEFAULT_OPEN_MIN_EXTENDED)

        logger.debug("GestureClassifier thresholds: extension=%s fist=%s pinch=%.3f",
                     self._extension, self._fist, self._pinch_distance)

    def measure(self, landmarks: np.ndarray) -> HandMeasurements:
        """Compute distances and per-finger extension for a (21, 3) array."""
        distances = wrist_distances(landmarks)
        # Exactly-at-threshold counts as folded
        extended = {finger: distances[finger] > self._extension[finger] for finger in distances}
        return HandMeasurements(distances, pinch_distance(landmarks), extended)

    def classify_measurements(self, m: HandMeasurements) -> GestureType:
        d = m.distances
        ext = m.extended

        if (m.extended_count <= self._fist["max_extended"]
                and d["index"] < self._fist["index"]
                and d["middle"] < self._fist["middle"]
                and d["ring"] < self._fist["ring"]):
            return GestureType.FIST

        if m.pinch_distance < self._pinch_distance and (ext["middle"] or ext["ring"]):
            return GestureType.PINCH

        if ext["index"] and not ext["middle"] and not ext["ring"]:
            return GestureType.POINT

        if m.extended_count >= self._open_min_extended:
            return GestureType.OPEN

        return GestureType.NONE

    def classify(self, landmarks, timestamp: Optional[float] = None) -> HandSample:
        """Classify one hand.

        Args:
            landmarks: (21, 3) array-like in normalized image space, or
                       None / empty when no hand is visible.

        Returns:
            HandSample with the gesture and a horizontally mirrored pointer
        """
        if landmarks is None or len(landmarks) == 0:
            return HandSample(GestureType.NONE, Pointer(0.5, 0.5, 0.0), timestamp)

        arr = as_landmark_array(landmarks)
        gesture = self.classify_measurements(self.measure(arr))

        # Front-facing camera image is mirrored relative to the user
        tip = arr[INDEX_TIP]
        pointer = Pointer(1.0 - float(tip[0]), float(tip[1]), float(tip[2]))
        return HandSample(gesture, pointer, timestamp)

    @property
    def thresholds(self) -> dict:
        return {
            "extension": dict(self._extension),
            "fist": dict(self._fist),
            "pinch": self._pinch_distance,
            "open_min_extended": self._open_min_extended,
        }


_default_classifier = None


def classify(landmarks) -> HandSample:
    """Classify with the built-in thresholds."""
    global _default_classifier
    if _default_classifier is None:
        _default_classifier = GestureClassifier()
    return _default_classifier.classify(landmarks)
