"""
OpenCV preview of the tarot scene.

Projects the carousel poses onto a 2D canvas with a simple pinhole model and
draws the cursor, hints, draw gauge, and the reading flow overlays. It stands
in for a full 3D renderer and consumes only SceneSnapshot / TickResult.
"""

import math
import textwrap
import logging
from typing import Optional

import cv2
import numpy as np

from core.types import GameState, InputMode, CardOrientation
from modules.reading.deck import card_colors

logger = logging.getLogger(__name__)

HINT_TEXT = {
    "hints.open": "Open hand: Browse",
    "hints.pinch": "Pinch: Grab",
    "hints.lift": "Lift up: Draw",
    "hints.drawing": "Drawing card...",
    "hints.reading": "Reading the cards...",
}

_FONT = cv2.FONT_HERSHEY_SIMPLEX
# Hershey fonts only cover printable ASCII; other scripts come out as "?"
CONSOLE_NOTICE = "This reading uses characters the preview font cannot draw. See the console."
_CAMERA_DISTANCE = 8.0   # virtual camera sits at z=8 looking at the origin
_CARD_SIZE = (2.0, 3.3)  # world units


def hex_to_bgr(color: str) -> tuple:
    color = color.lstrip("#")
    r, g, b = (int(color[i:i + 2], 16) for i in (0, 2, 4))
    return (b, g, r)


def interpretation_lines(text: str, width: int = 90) -> list:
    """Wrapped lines of a reading, or a console notice for non-ASCII text."""
    if not text.isascii():
        return [CONSOLE_NOTICE]
    lines = []
    for paragraph in text.splitlines() or [""]:
        lines.extend(textwrap.wrap(paragraph, width) or [""])
    return lines


class SceneView:
    """Renders tick results into a BGR canvas."""

    def __init__(self, config: dict, viewport=(16.0, 9.0), spread_size: int = 3):
        self._width = config.get("width", 1280)
        self._height = config.get("height", 720)
        self._show_camera = config.get("show_camera", True)
        self._show_fps = config.get("show_fps", True)
        self._viewport = viewport
        self._spread_size = spread_size

        colors = config.get("colors", {})
        self._color_bg = tuple(colors.get("background", [30, 12, 18]))
        self._color_back = tuple(colors.get("card_back", [120, 50, 90]))
        self._color_face = tuple(colors.get("card_face", [215, 235, 245]))
        self._color_border = tuple(colors.get("card_border", [200, 200, 255]))
        self._color_text = tuple(colors.get("text", [255, 255, 255]))
        self._color_hint = tuple(colors.get("hint", [220, 200, 255]))
        self._color_fill = tuple(colors.get("fill", [255, 140, 170]))
        self._color_ashes = tuple(colors.get("ashes", [60, 120, 255]))

        self._px_per_unit = self._width / float(viewport[0])

    @property
    def size(self) -> tuple:
        return (self._width, self._height)

    def project(self, x: float, y: float, z: float):
        """World point to (pixel x, pixel y, perspective scale)."""
        scale = _CAMERA_DISTANCE / max(_CAMERA_DISTANCE - z, 0.1)
        px = self._width / 2 + x * self._px_per_unit * scale
        py = self._height / 2 - y * self._px_per_unit * scale
        return int(px), int(py), scale

    def render(self, result, camera_frame: Optional[np.ndarray] = None, fps: float = 0.0) -> np.ndarray:
        canvas = np.zeros((self._height, self._width, 3), dtype=np.uint8)
        canvas[:] = self._color_bg
        snap = result.snapshot

        if result.game_state in (GameState.DRAWING, GameState.ANALYZING):
            # Far cards first so the center card is drawn on top
            for pose in sorted(snap.poses, key=lambda p: p.position[2]):
                self._draw_card(canvas, pose, snap.orientation)
            if snap.ashes_visible and snap.ashes_position is not None:
                self._draw_ashes(canvas, snap)
            self._draw_gauge(canvas, snap.fill_level, result.records)
            self._draw_hint(canvas, snap)

        if result.game_state is GameState.START:
            self._draw_start(canvas)
        elif result.game_state is GameState.ANALYZING:
            self._draw_centered(canvas, "COMMUNING WITH THE STARS...", self._height // 2 + 260, 0.8)
        elif result.game_state is GameState.RESULT:
            self._draw_result(canvas, result)

        if result.revealed is not None and result.game_state is GameState.DRAWING:
            rec = result.revealed
            self._draw_centered(canvas, f"{rec.card.name} ({rec.orientation.value})", 140, 0.8)

        self._draw_cursor(canvas, snap)
        self._draw_status(canvas, result, fps)
        if self._show_camera and camera_frame is not None:
            self._draw_camera(canvas, camera_frame)
        return canvas

    def _draw_card(self, canvas, pose, orientation):
        if pose.opacity <= 0.01:
            return
        x, y, z = pose.position
        cx, cy, scale = self.project(x, y, z)

        # Card width narrows as it turns edge-on
        turn = abs(math.cos(pose.rotation_y))
        half_w = int(_CARD_SIZE[0] / 2 * self._px_per_unit * scale * max(turn, 0.05))
        half_h = int(_CARD_SIZE[1] / 2 * self._px_per_unit * scale)
        x0, y0 = max(cx - half_w, 0), max(cy - half_h, 0)
        x1, y1 = min(cx + half_w, self._width - 1), min(cy + half_h, self._height - 1)
        if x1 <= x0 or y1 <= y0:
            return

        face_up = pose.rotation_y < math.pi / 2
        overlay = canvas.copy()
        cv2.rectangle(overlay, (x0, y0), (x1, y1), self._color_face if face_up else self._color_back, -1)
        cv2.rectangle(overlay, (x0, y0), (x1, y1), self._color_border, 2 if pose.is_grabbed else 1)

        if face_up:
            label = pose.card.name
            if orientation is CardOrientation.REVERSED:
                label += " (R)"
            size = cv2.getTextSize(label, _FONT, 0.45, 1)[0]
            cv2.putText(overlay, label, (cx - size[0] // 2, cy), _FONT, 0.45, (40, 20, 40), 1)
        else:
            cv2.circle(overlay, (cx, cy), max(4, half_w // 3), self._color_border, 1)

        alpha = float(min(max(pose.opacity, 0.0), 1.0))
        cv2.addWeighted(overlay, alpha, canvas, 1 - alpha, 0, canvas)

    def _draw_ashes(self, canvas, snap):
        cx, cy, scale = self.project(*snap.ashes_position)
        rng = np.random.default_rng(snap.ashes_card.id if snap.ashes_card else 0)
        spread = int(self._px_per_unit * scale)
        for dx, dy in rng.integers(-spread, spread, size=(40, 2)):
            cv2.circle(canvas, (cx + int(dx), cy + int(dy)), 2, self._color_ashes, -1)

    def _draw_gauge(self, canvas, fill_level: float, records):
        """Draw progress bar, tinted with the most recently drawn card's palette."""
        bar_w, bar_h = 240, 14
        x = (self._width - bar_w) // 2
        y = 40
        cv2.rectangle(canvas, (x, y), (x + bar_w, y + bar_h), (60, 60, 60), -1)
        fill = min(fill_level / float(self._spread_size), 1.0)
        fill_color, rim_color = self._color_fill, (200, 200, 200)
        if records:
            palette = card_colors(records[-1].card.id)
            fill_color, rim_color = hex_to_bgr(palette.mid), hex_to_bgr(palette.rim)
        cv2.rectangle(canvas, (x, y), (x + int(fill * bar_w), y + bar_h), fill_color, -1)
        cv2.rectangle(canvas, (x, y), (x + bar_w, y + bar_h), rim_color, 1)
        self._draw_centered(canvas, f"CARDS DRAWN {len(records)} / {self._spread_size}", y - 10, 0.5)

    def _draw_hint(self, canvas, snap):
        text = " | ".join(HINT_TEXT.get(key, key) for key in snap.hint_keys)
        if text:
            self._draw_centered(canvas, text, self._height - 60, 0.6, self._color_hint)

    def _draw_cursor(self, canvas, snap):
        cx, cy, _ = self.project(snap.cursor[0], snap.cursor[1], 0.0)
        cv2.circle(canvas, (cx, cy), 10, hex_to_bgr(snap.cursor_color), 2)

    def _draw_start(self, canvas):
        self._draw_centered(canvas, "TAROT", self._height // 2 - 40, 2.0)
        self._draw_centered(canvas, "Draw 3 cards to reveal your destiny", self._height // 2 + 20, 0.7)
        self._draw_centered(canvas, "Press SPACE or click to begin", self._height // 2 + 70, 0.6,
                            self._color_hint)

    def _draw_result(self, canvas, result):
        reading = result.reading
        y = 90
        self._draw_centered(canvas, "THE READING", y, 1.0)
        y += 40
        spread = "   ".join(
            f"{pos}: {r.card.name} ({r.orientation.value})"
            for pos, r in zip(("Past", "Present", "Future"), result.records)
        )
        self._draw_centered(canvas, spread, y, 0.5, self._color_hint)
        if reading is None:
            return
        y += 40
        for line in interpretation_lines(reading.interpretation):
            self._draw_centered(canvas, line, y, 0.5)
            y += 24
        y += 16
        self._draw_centered(canvas, f"Energy: {reading.energy_flow.value}", y, 0.55, self._color_fill)
        if reading.has_challenge_card:
            y += 28
            self._draw_centered(canvas, "Challenging energy: " + ", ".join(reading.challenge_cards),
                                y, 0.5, self._color_ashes)
        self._draw_centered(canvas, "Press R to start over", self._height - 40, 0.55, self._color_hint)

    def _draw_status(self, canvas, result, fps: float):
        mode = "Gesture Mode" if result.mode is InputMode.CAMERA else "Mouse Mode"
        cv2.putText(canvas, mode, (15, self._height - 15), _FONT, 0.5, self._color_text, 1)
        if self._show_fps:
            cv2.putText(canvas, f"FPS: {fps:.0f}", (15, 25), _FONT, 0.5, self._color_text, 1)
        if result.game_state is GameState.DRAWING and result.sample is not None:
            label = f"{result.sample.gesture.value} / {result.snapshot.state.value}"
            cv2.putText(canvas, label, (self._width - 260, 25), _FONT, 0.5, self._color_text, 1)

    def _draw_camera(self, canvas, frame):
        thumb_w = self._width // 5
        thumb_h = int(frame.shape[0] * thumb_w / frame.shape[1])
        thumb = cv2.resize(cv2.flip(frame, 1), (thumb_w, thumb_h))
        y0 = self._height - thumb_h - 10
        x0 = self._width - thumb_w - 10
        canvas[y0:y0 + thumb_h, x0:x0 + thumb_w] = thumb
        cv2.rectangle(canvas, (x0, y0), (x0 + thumb_w, y0 + thumb_h), (200, 200, 200), 1)

    def _draw_centered(self, canvas, text, y, scale=0.6, color=None):
        color = color or self._color_text
        size = cv2.getTextSize(text, _FONT, scale, 1)[0]
        cv2.putText(canvas, text, ((self._width - size[0]) // 2, y), _FONT, scale, color, 1)
