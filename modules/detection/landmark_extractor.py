"""
21-point hand landmark extraction and the planar distances the gesture
classifier works from.
"""

import logging
import numpy as np

logger = logging.getLogger(__name__)

# MediaPipe hand landmark indices
WRIST = 0
THUMB_CMC = 1
THUMB_MCP = 2
THUMB_IP = 3
THUMB_TIP = 4
INDEX_MCP = 5
INDEX_PIP = 6
INDEX_DIP = 7
INDEX_TIP = 8
MIDDLE_MCP = 9
MIDDLE_PIP = 10
MIDDLE_DIP = 11
MIDDLE_TIP = 12
RING_MCP = 13
RING_PIP = 14
RING_DIP = 15
RING_TIP = 16
PINKY_MCP = 17
PINKY_PIP = 18
PINKY_DIP = 19
PINKY_TIP = 20

NUM_LANDMARKS = 21

FINGER_TIPS = {
    "thumb": THUMB_TIP,
    "index": INDEX_TIP,
    "middle": MIDDLE_TIP,
    "ring": RING_TIP,
    "pinky": PINKY_TIP,
}


def as_landmark_array(landmarks) -> np.ndarray:
    """Coerce a landmark sequence to a float64 (21, 3) array.

    Accepts (21, 2) input as well, padding z with zeros.

    Raises:
        ValueError: if the input is not a 21-point skeleton
    """
    arr = np.asarray(landmarks, dtype=np.float64)
    if arr.ndim != 2 or arr.shape[0] != NUM_LANDMARKS or arr.shape[1] not in (2, 3):
        raise ValueError(f"expected {NUM_LANDMARKS} landmarks of (x, y[, z]), got shape {arr.shape}")
    if arr.shape[1] == 2:
        arr = np.hstack([arr, np.zeros((NUM_LANDMARKS, 1))])
    return arr


def wrist_distances(landmarks: np.ndarray) -> dict:
    """2D (x, y) distance from the wrist to each fingertip."""
    wrist = landmarks[WRIST, :2]
    return {
        finger: float(np.linalg.norm(landmarks[tip, :2] - wrist))
        for finger, tip in FINGER_TIPS.items()
    }


def pinch_distance(landmarks: np.ndarray) -> float:
    """2D distance between the thumb tip and index tip."""
    return float(np.linalg.norm(landmarks[THUMB_TIP, :2] - landmarks[INDEX_TIP, :2]))


def from_mediapipe(hand_landmarks) -> np.ndarray:
    """Copy one MediaPipe ``NormalizedLandmarkList`` into a float32 (21, 3) array."""
    points = np.zeros((NUM_LANDMARKS, 3), dtype=np.float32)
    for i, lm in enumerate(hand_landmarks.landmark[:NUM_LANDMARKS]):
        points[i] = (lm.x, lm.y, lm.z)
    return points
