"""
Background hand tracking: camera -> MediaPipe -> landmark channel.

Runs on its own daemon thread so detection latency never stalls the render
tick. Only the first plausible hand is forwarded.
"""

import time
import logging
import threading
from typing import Optional

import cv2
import numpy as np

from core.events import EventBus, Events

logger = logging.getLogger(__name__)


def is_valid_hand(landmarks: np.ndarray) -> bool:
    """Reject unlikely hand detections (e.g. face features misread as hand).

    Checks that the 21-point skeleton has a reasonable spatial layout:
    enough overall spread, a realistic wrist-to-middle-tip length, and an
    aspect ratio that is not a thin sliver.
    """
    xy = landmarks[:, :2]
    bbox_span = np.ptp(xy, axis=0)
    if bbox_span.sum() < 0.05:
        return False

    wrist_to_tip = float(np.linalg.norm(landmarks[0, :2] - landmarks[12, :2]))
    if wrist_to_tip < 0.03:
        return False

    min_span = max(bbox_span.min(), 1e-6)
    if bbox_span.max() / min_span > 4.0:
        return False

    return True


class HandTrackingWorker:
    """Feeds a LandmarkHandSource from the camera at the camera's own pace."""

    def __init__(self, camera, detector, source, config: Optional[dict] = None,
                 event_bus: Optional[EventBus] = None):
        config = config or {}
        self._camera = camera
        self._detector = detector
        self._source = source
        self._bus = event_bus or EventBus()
        self._idle_sleep = config.get("idle_sleep_ms", 2) / 1000.0
        self._keep_preview = config.get("preview", True)

        self._running = False
        self._thread = None
        self._last_frame_id = None
        self._preview = None
        self._preview_lock = threading.Lock()
        self._hand_visible = False
        self._frames_processed = 0

    def start(self) -> bool:
        """Open the camera and start tracking.

        Returns:
            False if the camera cannot be opened (caller falls back to pointer input)
        """
        if self._running:
            return True
        if not self._camera.open():
            self._bus.emit(Events.TRACKING_UNAVAILABLE, reason="camera could not be opened")
            return False

        self._camera.start_async()
        self._detector.initialize()
        self._running = True
        self._thread = threading.Thread(target=self._loop, name="hand-tracking", daemon=True)
        self._thread.start()
        logger.info("Hand tracking started")
        return True

    def _loop(self):
        while self._running:
            frame_id, frame = self._camera.read()
            if frame is None or frame_id == self._last_frame_id:
                time.sleep(self._idle_sleep)
                continue
            self._last_frame_id = frame_id
            try:
                self.process_frame(frame)
            except Exception as e:
                logger.error("Tracking frame %s failed: %s", frame_id, e)
                self._source.publish(None)
                self._bus.emit(Events.CAMERA_ERROR, error=str(e))

    def process_frame(self, frame: np.ndarray):
        """Detect on one BGR frame and publish the first valid hand (or None)."""
        rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        results = self._detector.detect(rgb)
        landmarks = self._detector.first_hand(results)
        if landmarks is not None and not is_valid_hand(landmarks):
            landmarks = None

        self._source.publish(landmarks)
        self._frames_processed += 1

        visible = landmarks is not None
        if visible != self._hand_visible:
            self._hand_visible = visible
            logger.debug("Hand %s", "detected" if visible else "lost")

        if self._keep_preview:
            self._detector.draw_landmarks(frame, results)
            with self._preview_lock:
                self._preview = frame

    @property
    def preview(self) -> Optional[np.ndarray]:
        """Most recent annotated camera frame."""
        with self._preview_lock:
            return self._preview

    @property
    def hand_visible(self) -> bool:
        return self._hand_visible

    @property
    def frames_processed(self) -> int:
        return self._frames_processed

    @property
    def is_running(self) -> bool:
        return self._running

    def stop(self):
        self._running = False
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=2.0)
        self._camera.stop()
        self._detector.close()
        logger.info("Hand tracking stopped")
