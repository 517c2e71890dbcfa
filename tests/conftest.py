"""
Shared fixtures: manual clocks, a clean event bus and synthetic hands.
"""

import sys
import math
from pathlib import Path

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from core.events import EventBus
from modules.utils.config import Config

WRIST_XY = (0.5, 0.75)

# Finger direction in degrees from straight up, negative leans left
FINGER_ANGLES = {
    "thumb": -60.0,
    "index": -20.0,
    "middle": 0.0,
    "ring": 20.0,
    "pinky": 40.0,
}

_FINGER_JOINTS = {
    "thumb": (1, 2, 3, 4),
    "index": (5, 6, 7, 8),
    "middle": (9, 10, 11, 12),
    "ring": (13, 14, 15, 16),
    "pinky": (17, 18, 19, 20),
}


class ManualClock:
    """Deterministic stand-in for time.monotonic."""

    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


def make_hand(thumb=0.1, index=0.1, middle=0.1, ring=0.1, pinky=0.1,
              pinch=False, index_z=0.0) -> np.ndarray:
    """Build a (21, 3) skeleton with the given wrist-to-tip distances.

    Each finger is a straight line from the wrist. With ``pinch`` the
    thumb tip is moved next to the index tip.
    """
    lengths = {"thumb": thumb, "index": index, "middle": middle, "ring": ring, "pinky": pinky}
    landmarks = np.zeros((21, 3))
    landmarks[0, :2] = WRIST_XY

    for finger, joints in _FINGER_JOINTS.items():
        angle = math.radians(FINGER_ANGLES[finger])
        length = lengths[finger]
        for joint, fraction in zip(joints, (0.4, 0.6, 0.8, 1.0)):
            d = length * fraction
            landmarks[joint, 0] = WRIST_XY[0] + d * math.sin(angle)
            landmarks[joint, 1] = WRIST_XY[1] - d * math.cos(angle)

    landmarks[8, 2] = index_z
    if pinch:
        landmarks[4, 0] = landmarks[8, 0] + 0.02
        landmarks[4, 1] = landmarks[8, 1]
    return landmarks


OPEN_HAND = dict(thumb=0.2, index=0.3, middle=0.3, ring=0.25, pinky=0.2)
POINT_HAND = dict(thumb=0.1, index=0.3, middle=0.15, ring=0.12, pinky=0.1)


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def bus():
    bus = EventBus()
    bus.reset()
    yield bus
    bus.reset()


@pytest.fixture
def fresh_config():
    Config.reset()
    yield Config()
    Config.reset()
