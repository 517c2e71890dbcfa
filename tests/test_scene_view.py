"""
Tests for the OpenCV Scene Preview
==================================
"""

import numpy as np
import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from core.types import (
    CardOrientation, DrawnCardRecord, EnergyFlow, GameState, GestureType,
    HandSample, InputMode, ReadingResult,
)
from core.pipeline import TickResult
from modules.interaction.state_machine import InteractionStateMachine
from modules.reading.deck import MAJOR_ARCANA, card_colors
from modules.visualization.scene_view import (
    CONSOLE_NOTICE, SceneView, hex_to_bgr, interpretation_lines,
)


@pytest.fixture
def view():
    return SceneView({"width": 320, "height": 180}, spread_size=3)


@pytest.fixture
def snapshot(clock, bus):
    machine = InteractionStateMachine(lambda: MAJOR_ARCANA, clock=clock, event_bus=bus)
    return machine.tick(HandSample(GestureType.OPEN), 0.0)


def make_result(snapshot, state, reading=None):
    result = TickResult(snapshot, state, InputMode.POINTER)
    result.sample = HandSample(GestureType.OPEN)
    result.records = [
        DrawnCardRecord(card, CardOrientation.REVERSED, float(i))
        for i, card in enumerate(MAJOR_ARCANA[:3])
    ]
    result.reading = reading
    return result


class TestSceneView:
    """Smoke tests: every flow state renders onto a canvas of the right size."""

    def test_hex_to_bgr(self):
        assert hex_to_bgr("#00ff88") == (0x88, 0xff, 0x00)

    @pytest.mark.parametrize("state", list(GameState))
    def test_renders_each_state(self, view, snapshot, state):
        reading = ReadingResult("Line one.\nLine two.", True, ["Death (Upright)"],
                                EnergyFlow.TRANSFORMATIVE)
        canvas = view.render(make_result(snapshot, state, reading))
        assert canvas.shape == (180, 320, 3)
        assert canvas.dtype == np.uint8

    def test_draws_cards_while_drawing(self, view, snapshot):
        canvas = view.render(make_result(snapshot, GameState.DRAWING))
        background = np.array([30, 12, 18], dtype=np.uint8)
        assert np.any(canvas != background)

    def test_camera_thumbnail(self, view, snapshot):
        frame = np.full((48, 64, 3), 200, dtype=np.uint8)
        canvas = view.render(make_result(snapshot, GameState.DRAWING), camera_frame=frame)
        assert canvas[-20, -20].tolist() != [30, 12, 18]

    def test_project_center(self, view):
        px, py, scale = view.project(0.0, 0.0, 0.0)
        assert (px, py) == (160, 90)
        assert scale == 1.0

    def test_interpretation_lines_wrap(self):
        text = "First paragraph. " * 10 + "\nSecond."
        lines = interpretation_lines(text, width=40)
        assert all(len(line) <= 40 for line in lines)
        assert lines[-1] == "Second."

    def test_non_ascii_reading_points_to_console(self, view, snapshot):
        assert interpretation_lines("过去的牌预示着新的开始") == [CONSOLE_NOTICE]
        reading = ReadingResult("过去的牌预示着新的开始", energy_flow=EnergyFlow.HARMONIOUS)
        canvas = view.render(make_result(snapshot, GameState.RESULT, reading))
        assert canvas.shape == (180, 320, 3)

    def test_gauge_takes_last_drawn_card_color(self, view, snapshot):
        snapshot.fill_level = 3.0
        result = make_result(snapshot, GameState.DRAWING)
        canvas = view.render(result)
        last = result.records[-1].card
        assert canvas[47, 100].tolist() == list(hex_to_bgr(card_colors(last.id).mid))

        result.records = []
        canvas = view.render(result)
        assert canvas[47, 100].tolist() == [255, 140, 170]
