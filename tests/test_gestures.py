"""
Tests for Gesture Classification
================================
"""

import pytest
import numpy as np
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.types import GestureType, HandSample
from modules.recognition.gesture_classifier import GestureClassifier, classify
from modules.detection.landmark_extractor import (
    INDEX_TIP, as_landmark_array, wrist_distances, pinch_distance,
)
from conftest import make_hand, OPEN_HAND, POINT_HAND


@pytest.fixture
def classifier():
    return GestureClassifier()


class TestGestureClassifier:
    """Test suite for the per-frame gesture rules."""

    def test_open_hand(self, classifier):
        sample = classifier.classify(make_hand(**OPEN_HAND))
        assert sample.gesture is GestureType.OPEN

    def test_fist(self, classifier):
        sample = classifier.classify(make_hand())
        assert sample.gesture is GestureType.FIST

    def test_fist_beats_pinch(self, classifier):
        """A clenched hand with the thumb on the index is still a fist."""
        sample = classifier.classify(make_hand(pinch=True))
        assert sample.gesture is GestureType.FIST

    def test_pinch(self, classifier):
        sample = classifier.classify(make_hand(pinch=True, **OPEN_HAND))
        assert sample.gesture is GestureType.PINCH

    def test_pinch_with_only_ring_extended(self, classifier):
        hand = make_hand(thumb=0.1, index=0.3, middle=0.15, ring=0.25, pinky=0.1, pinch=True)
        assert classifier.classify(hand).gesture is GestureType.PINCH

    def test_pinch_needs_middle_or_ring(self, classifier):
        """Thumb on index with the other fingers curled falls through to POINT."""
        hand = make_hand(pinch=True, **POINT_HAND)
        assert classifier.classify(hand).gesture is GestureType.POINT

    def test_point(self, classifier):
        sample = classifier.classify(make_hand(**POINT_HAND))
        assert sample.gesture is GestureType.POINT

    def test_two_fingers_is_none(self, classifier):
        hand = make_hand(thumb=0.2, index=0.3, middle=0.3, ring=0.1, pinky=0.1)
        assert classifier.classify(hand).gesture is GestureType.NONE

    def test_threshold_counts_as_folded(self, classifier):
        """A middle finger exactly at its threshold is not extended."""
        hand = make_hand(thumb=0.1, index=0.3, middle=0.25, ring=0.1, pinky=0.1)
        m = classifier.measure(as_landmark_array(hand))
        assert m.distances["middle"] == pytest.approx(0.25)
        assert not m.extended["middle"]
        assert classifier.classify(hand).gesture is GestureType.POINT

    def test_thresholds_from_config(self):
        strict = GestureClassifier({"open": {"min_extended": 5}})
        assert strict.classify(make_hand(**OPEN_HAND)).gesture is GestureType.NONE
        assert strict.thresholds["extension"]["index"] == 0.25


class TestPointer:
    """Pointer is the mirrored index fingertip."""

    def test_pointer_is_mirrored(self, classifier):
        hand = make_hand(index_z=-0.05, **OPEN_HAND)
        sample = classifier.classify(hand)
        assert sample.pointer.x == pytest.approx(1.0 - hand[INDEX_TIP, 0])
        assert sample.pointer.y == pytest.approx(hand[INDEX_TIP, 1])
        assert sample.pointer.z == pytest.approx(-0.05)

    @pytest.mark.parametrize("landmarks", [None, []])
    def test_absent_hand(self, classifier, landmarks):
        sample = classifier.classify(landmarks)
        assert sample.gesture is GestureType.NONE
        assert sample.pointer == (0.5, 0.5, 0.0)

    def test_deterministic(self, classifier):
        hand = make_hand(pinch=True, **OPEN_HAND)
        assert classifier.classify(hand) == classifier.classify(hand.copy())

    def test_accepts_float32_and_lists(self, classifier):
        hand = make_hand(**POINT_HAND)
        assert classifier.classify(hand.astype(np.float32)).gesture is GestureType.POINT
        assert classifier.classify(hand.tolist()).gesture is GestureType.POINT

    def test_module_level_classify(self):
        sample = classify(make_hand(**OPEN_HAND))
        assert isinstance(sample, HandSample)
        assert sample.gesture is GestureType.OPEN

    def test_timestamp_passthrough(self, classifier):
        assert classifier.classify(make_hand(), timestamp=12.5).timestamp == 12.5


class TestLandmarkGeometry:
    """Test suite for landmark array helpers."""

    def test_two_dimensional_input_is_padded(self):
        arr = as_landmark_array(make_hand()[:, :2])
        assert arr.shape == (21, 3)
        assert np.all(arr[:, 2] == 0.0)

    @pytest.mark.parametrize("shape", [(20, 3), (21, 4), (21,)])
    def test_bad_shape_raises(self, shape):
        with pytest.raises(ValueError):
            as_landmark_array(np.zeros(shape))

    def test_classifier_rejects_bad_shape(self, classifier):
        with pytest.raises(ValueError):
            classifier.classify(np.zeros((5, 3)))

    def test_distances(self):
        hand = make_hand(**OPEN_HAND)
        d = wrist_distances(hand)
        assert d["index"] == pytest.approx(0.3)
        assert d["ring"] == pytest.approx(0.25)
        assert pinch_distance(make_hand(pinch=True, **OPEN_HAND)) == pytest.approx(0.02)
