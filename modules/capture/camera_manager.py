"""
Webcam capture for hand tracking.

A daemon thread keeps overwriting a single frame slot, so the tracking
worker always sees the newest image and never a backlog.
"""

import time
import threading
import logging
from typing import Optional, Tuple

import cv2
import numpy as np

logger = logging.getLogger(__name__)

_BACKENDS = {
    "auto": cv2.CAP_ANY,
    "v4l2": cv2.CAP_V4L2,
    "gstreamer": cv2.CAP_GSTREAMER,
}

_CAPTURE_PROPS = (
    ("width", cv2.CAP_PROP_FRAME_WIDTH),
    ("height", cv2.CAP_PROP_FRAME_HEIGHT),
    ("fps", cv2.CAP_PROP_FPS),
    ("buffer_size", cv2.CAP_PROP_BUFFERSIZE),
)


class CameraManager:
    """Owns the ``cv2.VideoCapture`` and the latest captured frame."""

    def __init__(self, config: Optional[dict] = None):
        config = config or {}
        self._device_id = config.get("device_id", 0)
        self._backend = config.get("backend", "auto")
        self._requested = {
            "width": config.get("width", 640),
            "height": config.get("height", 480),
            "fps": config.get("fps", 30),
            "buffer_size": config.get("buffer_size", 1),
        }
        # Pointer mirroring happens in the classifier, not here
        self._mirror = config.get("flip_horizontal", False)
        self._warmup_frames = config.get("warmup_frames", 10)

        self._cap = None
        self._lock = threading.Lock()
        self._latest: Tuple[Optional[int], Optional[np.ndarray]] = (None, None)
        self._count = 0
        self._running = False
        self._thread = None

    def open(self) -> bool:
        """Open the device. False when it is missing or access is denied."""
        cap = cv2.VideoCapture(self._device_id, _BACKENDS.get(self._backend, cv2.CAP_ANY))
        if not cap.isOpened():
            cap.release()
            logger.warning("Camera %s could not be opened (%s backend)",
                           self._device_id, self._backend)
            return False

        for key, prop in _CAPTURE_PROPS:
            cap.set(prop, self._requested[key])
        logger.info("Camera %s open at %dx%d", self._device_id,
                    int(cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
                    int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT)))

        # Discard the dark frames taken while exposure adjusts
        for _ in range(self._warmup_frames):
            cap.grab()
        self._cap = cap
        return True

    def start_async(self):
        if self._running or self._cap is None:
            return
        self._running = True
        self._thread = threading.Thread(target=self._capture_loop, name="camera", daemon=True)
        self._thread.start()

    def _capture_loop(self):
        while self._running:
            ok, frame = self._cap.read()
            if not ok or frame is None:
                time.sleep(0.005)
                continue
            if self._mirror:
                frame = cv2.flip(frame, 1)
            with self._lock:
                self._count += 1
                self._latest = (self._count, frame)

    def read(self) -> Tuple[Optional[int], Optional[np.ndarray]]:
        """(frame number, copy of the newest frame), or (None, None) before the first frame."""
        with self._lock:
            frame_id, frame = self._latest
        if frame is None:
            return None, None
        return frame_id, frame.copy()

    @property
    def resolution(self) -> Tuple[int, int]:
        return self._requested["width"], self._requested["height"]

    @property
    def is_open(self) -> bool:
        return self._cap is not None and self._cap.isOpened()

    def stop(self):
        self._running = False
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=2.0)
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logger.info("Camera released")

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *args):
        self.stop()
