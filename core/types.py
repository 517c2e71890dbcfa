"""
Shared domain types for the Gesture Tarot system.

Centralizes enums, data classes, and type definitions used across modules
to eliminate circular imports and ensure type consistency.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Dict, List, NamedTuple, Tuple


# =============================================================================
# Gesture Types
# =============================================================================

class GestureType(Enum):
    """Discrete hand poses produced by the classifier."""
    NONE = "NONE"
    OPEN = "OPEN"
    PINCH = "PINCH"
    FIST = "FIST"
    POINT = "POINT"


class CardOrientation(Enum):
    UPRIGHT = "Upright"
    REVERSED = "Reversed"


class SceneState(Enum):
    """Phases of the card interaction cycle."""
    BROWSING = "browsing"
    GRABBING = "grabbing"
    LIFTING = "lifting"
    FLIPPING = "flipping"
    ASHES = "ashes"
    TRANSITION = "transition"

    @property
    def holds_card(self) -> bool:
        return self in (SceneState.GRABBING, SceneState.LIFTING, SceneState.FLIPPING)


class GameState(Enum):
    """Outer reading flow owned by the hosting pipeline."""
    START = "start"
    DRAWING = "drawing"
    ANALYZING = "analyzing"
    RESULT = "result"


class InputMode(Enum):
    CAMERA = "camera"
    POINTER = "pointer"


class EnergyFlow(Enum):
    HARMONIOUS = "harmonious"
    CONFLICTING = "conflicting"
    TRANSFORMATIVE = "transformative"


class SoundCue(Enum):
    """Named cues emitted for the audio collaborator."""
    GRAB = "grab"
    DRAW = "draw"
    FLIP = "flip"
    BURN = "burn"
    RESULT = "result_reveal"


# =============================================================================
# Presentation lookups
# =============================================================================

HINT_KEYS: Dict[SceneState, Tuple[str, ...]] = {
    SceneState.BROWSING: ("hints.open", "hints.pinch"),
    SceneState.GRABBING: ("hints.lift",),
    SceneState.LIFTING: ("hints.drawing",),
    SceneState.ASHES: ("hints.reading",),
}

CURSOR_COLORS: Dict[GestureType, str] = {
    GestureType.PINCH: "#00ff88",
    GestureType.FIST: "#ff4400",
    GestureType.POINT: "#00ccff",
}
DEFAULT_CURSOR_COLOR = "#ffffff"

# Cards whose presence marks a spread as carrying difficult energy
CHALLENGING_CARDS = (
    "Death",
    "The Tower",
    "The Devil",
    "The Moon",
    "The Hanged Man",
    "Wheel of Fortune",
)


# =============================================================================
# Data Containers
# =============================================================================

class Pointer(NamedTuple):
    """Normalized screen position (x, y in [0, 1]) plus a depth hint."""
    x: float = 0.5
    y: float = 0.5
    z: float = 0.0


CENTER_POINTER = Pointer(0.5, 0.5, 0.0)


class HandSample:
    """One frame's worth of hand signal: gesture plus pointer.

    Uses __slots__ since one is built for every tracked frame.
    """

    __slots__ = ("gesture", "pointer", "timestamp")

    def __init__(self, gesture: GestureType = GestureType.NONE,
                 pointer: Pointer = CENTER_POINTER, timestamp: Optional[float] = None):
        self.gesture = gesture
        self.pointer = pointer
        self.timestamp = time.time() if timestamp is None else timestamp

    @classmethod
    def empty(cls) -> 'HandSample':
        """Sample reported when no hand is visible."""
        return cls(GestureType.NONE, CENTER_POINTER)

    def __eq__(self, other):
        if not isinstance(other, HandSample):
            return NotImplemented
        return self.gesture is other.gesture and self.pointer == other.pointer

    def __repr__(self):
        p = self.pointer
        return f"HandSample({self.gesture.value}, x={p.x:.3f}, y={p.y:.3f}, z={p.z:.3f})"


@dataclass(frozen=True)
class Card:
    """Immutable major-arcana entry. Identity is the card id."""
    id: int
    name: str
    image: str = field(compare=False)
    meaning_up: str = field(compare=False)
    meaning_rev: str = field(compare=False)

    def meaning(self, orientation: CardOrientation) -> str:
        if orientation is CardOrientation.UPRIGHT:
            return self.meaning_up
        return self.meaning_rev


class OrbColors(NamedTuple):
    """Per-card palette for the draw gauge, as hex strings."""
    deep: str
    mid: str
    light: str
    highlight: str
    rim: str


@dataclass(frozen=True)
class DrawnCardRecord:
    card: Card
    orientation: CardOrientation
    timestamp: float

    @property
    def label(self) -> str:
        return f"{self.card.name} ({self.orientation.value})"


@dataclass
class ReadingResult:
    """Narrative interpretation of a three-card spread."""
    interpretation: str
    has_challenge_card: bool = False
    challenge_cards: List[str] = field(default_factory=list)
    energy_flow: EnergyFlow = EnergyFlow.HARMONIOUS
    degraded: bool = False


class CardPose:
    """Per-card render instruction for one visible carousel slot."""

    __slots__ = (
        "card", "slot", "position", "rotation_y", "opacity", "scale",
        "is_center", "is_grabbed", "load_face",
    )

    def __init__(self, card: Card, slot: int, position: Tuple[float, float, float],
                 rotation_y: float, opacity: float, scale: float = 1.0,
                 is_center: bool = False, is_grabbed: bool = False,
                 load_face: bool = False):
        self.card = card
        self.slot = slot
        self.position = position
        self.rotation_y = rotation_y
        self.opacity = opacity
        self.scale = scale
        self.is_center = is_center
        self.is_grabbed = is_grabbed
        self.load_face = load_face

    def __repr__(self):
        x, y, z = self.position
        return (f"CardPose({self.card.name!r}, slot={self.slot}, "
                f"pos=({x:.2f}, {y:.2f}, {z:.2f}), opacity={self.opacity:.2f})")


class SceneSnapshot:
    """Everything the renderer needs for one frame."""

    __slots__ = (
        "state", "hint_keys", "cursor", "cursor_color", "poses",
        "offset", "selected_card", "orientation", "lift_progress",
        "flip_progress", "transition_progress", "fill_level",
        "ashes_visible", "ashes_position", "ashes_card",
    )

    def __init__(self, state: SceneState):
        self.state = state
        self.hint_keys: Tuple[str, ...] = HINT_KEYS.get(state, ())
        self.cursor: Tuple[float, float] = (0.0, 0.0)
        self.cursor_color: str = DEFAULT_CURSOR_COLOR
        self.poses: List[CardPose] = []
        self.offset = 0.0
        self.selected_card: Optional[Card] = None
        self.orientation: Optional[CardOrientation] = None
        self.lift_progress = 0.0
        self.flip_progress = 0.0
        self.transition_progress = 0.0
        self.fill_level = 0.0
        self.ashes_visible = False
        self.ashes_position: Optional[Tuple[float, float, float]] = None
        self.ashes_card: Optional[Card] = None

    @property
    def center_pose(self) -> Optional[CardPose]:
        for pose in self.poses:
            if pose.is_center:
                return pose
        return None
