"""
Hand sample sources polled once per tick.

Tracking runs at its own cadence on a background thread and only ever writes
the most recent value; the tick reads whatever is newest. Older values are
overwritten, never queued.
"""

import logging
import threading
import time
from typing import Generic, Optional, Tuple, TypeVar

from core.types import GestureType, HandSample, Pointer
from modules.recognition.gesture_classifier import GestureClassifier

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LatestValue(Generic[T]):
    """Single-slot channel with latest-value-wins semantics."""

    def __init__(self, initial: Optional[T] = None):
        self._lock = threading.Lock()
        self._value = initial
        self._version = 0
        self._updated_at = 0.0

    def publish(self, value: Optional[T]):
        with self._lock:
            self._value = value
            self._version += 1
            self._updated_at = time.monotonic()

    def read(self) -> Tuple[Optional[T], int]:
        """Return (value, version). The version grows with every publish."""
        with self._lock:
            return self._value, self._version

    @property
    def age(self) -> float:
        """Seconds since the last publish (inf if nothing was published)."""
        with self._lock:
            if self._version == 0:
                return float("inf")
            return time.monotonic() - self._updated_at


class LandmarkHandSource:
    """Camera-backed source: tracking publishes landmarks, reads classify them.

    Landmarks older than ``stale_after`` seconds count as a lost hand.
    """

    def __init__(self, classifier: Optional[GestureClassifier] = None, stale_after: float = 0.5):
        self._classifier = classifier or GestureClassifier()
        self._channel = LatestValue()
        self._stale_after = stale_after

    def publish(self, landmarks):
        """Called from the tracking thread with a (21, 3) array or None."""
        self._channel.publish(landmarks)

    def read(self) -> HandSample:
        landmarks, _ = self._channel.read()
        if landmarks is not None and self._channel.age > self._stale_after:
            landmarks = None
        return self._classifier.classify(landmarks)


class PointerHandSource:
    """Mouse / touch fallback: button held means PINCH, otherwise OPEN."""

    def __init__(self, width: int = 1, height: int = 1):
        self._width = max(1, width)
        self._height = max(1, height)
        self._lock = threading.Lock()
        self._x = 0.5
        self._y = 0.5
        self._pressed = False

    def set_viewport(self, width: int, height: int):
        with self._lock:
            self._width = max(1, width)
            self._height = max(1, height)

    def move(self, px: float, py: float):
        """Pointer moved to pixel (px, py) inside the viewport."""
        with self._lock:
            self._x = min(max(px / self._width, 0.0), 1.0)
            self._y = min(max(py / self._height, 0.0), 1.0)

    def press(self):
        with self._lock:
            self._pressed = True

    def release(self):
        with self._lock:
            self._pressed = False

    def read(self) -> HandSample:
        with self._lock:
            gesture = GestureType.PINCH if self._pressed else GestureType.OPEN
            return HandSample(gesture, Pointer(self._x, self._y, 0.0))
