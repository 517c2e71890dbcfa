#!/usr/bin/env python3
"""
Gesture Tarot - hand-tracked three-card reading.
Application entry point.

Architecture:
    - HandTrackingWorker runs camera + MediaPipe on a background thread
    - core.TarotPipeline ticks the interaction state machine once per frame
    - core.EventBus carries sound cues and flow events to listeners
    - SceneView draws the carousel preview with OpenCV

Usage:
    python main.py                    # Camera input, English reading
    python main.py --pointer          # Mouse input only
    python main.py --language zh      # Chinese reading
    python main.py --camera 1         # Alternate camera device

Keys:
    SPACE  begin a reading        R  back to the start screen
    M      toggle mouse input      L  toggle reading language
    H      clear draw history      Q  quit
"""

import sys
import os
import time
import signal
import argparse
import logging

import cv2

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, PROJECT_ROOT)

from modules.utils.config import Config
from modules.utils.logger import setup_logging
from modules.capture.camera_manager import CameraManager
from modules.detection.hand_detector import HandDetector
from modules.detection.hand_source import LandmarkHandSource, PointerHandSource
from modules.detection.tracking import HandTrackingWorker
from modules.recognition.gesture_classifier import GestureClassifier
from modules.reading.narrative import NarrativeClient
from modules.visualization.scene_view import SceneView

from core.types import GameState, InputMode
from core.events import EventBus, Events
from core.pipeline import TarotPipeline

logger = logging.getLogger(__name__)


class GestureTarotApp:
    """Wires tracking, the reading pipeline, and the preview window together."""

    def __init__(self, config: Config, use_camera: bool = True):
        self._config = config
        self._use_camera = use_camera
        self._running = False
        self._window_name = config.get("visualization.window_name", "Gesture Tarot")

        self._bus = EventBus()

        # Input
        classifier = GestureClassifier(config.gestures)
        self._hand_source = LandmarkHandSource(classifier)
        self._view = SceneView(
            config.visualization,
            viewport=tuple(config.get("interaction.viewport", [16.0, 9.0])),
            spread_size=config.get("session.spread_size", 3),
        )
        width, height = self._view.size
        self._pointer_source = PointerHandSource(width, height)

        tracker = None
        if use_camera:
            tracker = HandTrackingWorker(
                CameraManager(config.camera),
                HandDetector(config.mediapipe),
                self._hand_source,
                config.get_section("tracking"),
                event_bus=self._bus,
            )

        self._pipeline = TarotPipeline(
            hand_source=self._hand_source,
            pointer_source=self._pointer_source,
            narrative=NarrativeClient(config.reading),
            tracker=tracker,
            config={"interaction": config.interaction, "session": config.session},
            event_bus=self._bus,
            language=config.get("reading.language", "en"),
        )

        self._bus.subscribe(Events.SOUND_CUE, self._on_sound_cue)
        self._bus.subscribe(Events.MODE_CHANGED, self._on_mode_changed)
        self._bus.subscribe(Events.TRACKING_UNAVAILABLE, self._on_tracking_unavailable)
        self._bus.subscribe(Events.READING_READY, self._on_reading_ready)

        logger.info("GestureTarotApp initialized (camera=%s)", use_camera)

    def _on_sound_cue(self, cue=None, **kwargs):
        # No audio backend; cues are surfaced in the debug log
        logger.debug("Sound cue: %s", cue.value if cue else None)

    def _on_mode_changed(self, mode=None, reason="", **kwargs):
        logger.info("Now using %s input", mode.value if mode else "unknown")

    def _on_tracking_unavailable(self, reason="", **kwargs):
        logger.warning("Camera tracking unavailable: %s", reason)

    def _on_reading_ready(self, result=None, **kwargs):
        if result is not None:
            logger.info("Reading (%s):\n%s", result.energy_flow.value, result.interpretation)

    def _on_mouse(self, event, x, y, flags, param):
        self._pointer_source.move(x, y)
        if event == cv2.EVENT_LBUTTONDOWN:
            if self._pipeline.game_state is GameState.START:
                self._pipeline.start()
            else:
                self._pointer_source.press()
        elif event == cv2.EVENT_LBUTTONUP:
            self._pointer_source.release()

    def start(self):
        """Open input and run the main loop until quit."""
        if self._use_camera:
            self._pipeline.open_input()
        else:
            self._pipeline.use_pointer("requested on command line")

        cv2.namedWindow(self._window_name)
        cv2.setMouseCallback(self._window_name, self._on_mouse)

        self._running = True
        self._bus.emit(Events.SYSTEM_STARTED)
        self._run_main_loop()

    def _run_main_loop(self):
        last = time.perf_counter()
        fps = 0.0

        while self._running:
            result = self._pipeline.tick()

            now = time.perf_counter()
            elapsed = now - last
            last = now
            if elapsed > 0:
                fps = 0.9 * fps + 0.1 * (1.0 / elapsed)

            camera_frame = None
            tracker = self._pipeline.tracker
            if result.mode is InputMode.CAMERA and tracker is not None:
                camera_frame = tracker.preview

            canvas = self._view.render(result, camera_frame, fps)
            cv2.imshow(self._window_name, canvas)
            self._handle_key(cv2.waitKey(1) & 0xFF)

        self._shutdown()

    def _handle_key(self, key: int):
        if key == ord("q"):
            self._running = False
        elif key == ord(" ") and self._pipeline.game_state is GameState.START:
            self._pipeline.start()
        elif key == ord("r"):
            self._pipeline.restart()
        elif key == ord("m"):
            if self._pipeline.mode is InputMode.POINTER:
                if not self._pipeline.use_camera():
                    logger.info("Camera tracking is not running")
            else:
                self._pipeline.use_pointer("toggled")
        elif key == ord("l"):
            self._pipeline.language = "zh" if self._pipeline.language == "en" else "en"
        elif key == ord("h"):
            self._pipeline.clear_history()

    def _shutdown(self):
        """Clean shutdown of all modules."""
        logger.info("Shutting down...")
        self._running = False
        self._pipeline.shutdown()
        cv2.destroyAllWindows()
        logger.info("Draws this run: %d", self._pipeline.reading_logger.total_draws)
        logger.info("Shutdown complete.")

    def handle_signal(self, signum, frame):
        """Handle SIGINT/SIGTERM for graceful shutdown."""
        logger.info("Signal %d received, shutting down...", signum)
        self._running = False


def parse_args():
    parser = argparse.ArgumentParser(
        description="Gesture Tarot - hand-tracked three-card reading"
    )
    parser.add_argument(
        "--pointer", action="store_true",
        help="Use mouse input instead of the camera"
    )
    parser.add_argument(
        "--language", choices=["en", "zh"], default=None,
        help="Reading language"
    )
    parser.add_argument(
        "--config", type=str, default=None,
        help="Path to config.yaml"
    )
    parser.add_argument(
        "--gestures", type=str, default=None,
        help="Path to gestures.yaml"
    )
    parser.add_argument(
        "--camera", type=int, default=None,
        help="Camera device ID"
    )
    parser.add_argument(
        "--log-level", type=str, default=None,
        help="Override logging level (DEBUG, INFO, ...)"
    )
    return parser.parse_args()


def main():
    args = parse_args()

    config = Config()
    config.load(config_path=args.config, gestures_path=args.gestures)

    overrides = {}
    if args.camera is not None:
        overrides["camera"] = {"device_id": args.camera}
    if args.language is not None:
        overrides["reading"] = {"language": args.language}
    if overrides:
        config.update(overrides)

    log_cfg = config.get_section("logging")
    setup_logging(
        level=args.log_level or log_cfg.get("level", "INFO"),
        log_file=log_cfg.get("file"),
        max_size_mb=log_cfg.get("max_size_mb", 10),
        backup_count=log_cfg.get("backup_count", 3),
    )

    logger.info("=" * 60)
    logger.info("  GESTURE TAROT")
    logger.info("  Version: %s", config.get("system.version", "1.0.0"))
    logger.info("  Input: %s", "pointer" if args.pointer else "camera")
    logger.info("=" * 60)

    app = GestureTarotApp(config, use_camera=not args.pointer)

    signal.signal(signal.SIGINT, app.handle_signal)
    signal.signal(signal.SIGTERM, app.handle_signal)

    app.start()


if __name__ == "__main__":
    main()
