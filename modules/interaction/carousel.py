"""
Carousel geometry: maps the continuous scroll offset onto card slots.

The offset is stored unbounded; wrapping onto the deck only happens when an
index is derived from it, so the carousel can spin indefinitely in either
direction.

Half-way between two cards the tie goes to the higher index (round half up).
Ratios such as 11.2 / 3.2 land a hair below x.5 in binary floating point, so
a small tolerance is added before flooring.
"""

import math
from typing import List, Optional, Tuple

DEFAULT_SPACING = 3.2
DEFAULT_VISIBLE_CARDS = 7

_ROUND_TOLERANCE = 1e-9


def round_half_up(value: float) -> int:
    """Round to nearest integer, ties toward +infinity."""
    return int(math.floor(value + 0.5 + _ROUND_TOLERANCE))


def rounded_index(offset: float, spacing: float = DEFAULT_SPACING) -> int:
    """Unwrapped slot index nearest to the offset."""
    return round_half_up(offset / spacing)


def center_delta(offset: float, spacing: float = DEFAULT_SPACING) -> float:
    """Distance (in world units) between the offset and its nearest slot."""
    exact = offset / spacing
    return (exact - round_half_up(exact)) * spacing


def centered_index(offset: float, deck_length: int,
                   spacing: float = DEFAULT_SPACING) -> Optional[int]:
    """Deck index of the card under the center of the carousel.

    Returns None for an empty deck instead of dividing by zero.
    """
    if deck_length <= 0:
        return None
    # Python's modulo is already non-negative for a positive divisor
    return rounded_index(offset, spacing) % deck_length


def slot_position(slot: int, offset: float, spacing: float = DEFAULT_SPACING) -> float:
    """Horizontal position of relative slot `slot` (0 = center)."""
    return slot * spacing - center_delta(offset, spacing)


def visible_slots(offset: float, deck_length: int,
                  spacing: float = DEFAULT_SPACING,
                  visible_cards: int = DEFAULT_VISIBLE_CARDS) -> List[Tuple[int, int, float]]:
    """Visible window around the center.

    Returns:
        List of (slot, deck_index, x_position) from leftmost to rightmost.
        Empty when the deck is empty.
    """
    if deck_length <= 0:
        return []

    half = visible_cards // 2
    center = rounded_index(offset, spacing)
    delta = center_delta(offset, spacing)

    slots = []
    for slot in range(-half, half + 1):
        index = (center + slot) % deck_length
        slots.append((slot, index, slot * spacing - delta))
    return slots


def distance_factor(x_position: float, spacing: float = DEFAULT_SPACING,
                    visible_cards: int = DEFAULT_VISIBLE_CARDS) -> float:
    """Normalized distance from center, 0 at the center and 1 at the window edge."""
    max_dist = (visible_cards // 2) * spacing
    if max_dist <= 0:
        return 0.0
    return min(abs(x_position) / max_dist, 1.0)
