"""
Builds per-frame render instructions from the interaction session.

The renderer is a collaborator: it receives card poses, the hint keys, the
cursor and the dissolve effect placement, and never reads session state
directly.
"""

import math
import logging
from typing import Optional, Sequence, Tuple

from core.types import (
    SceneState, SceneSnapshot, CardPose, GestureType, Card,
    CURSOR_COLORS, DEFAULT_CURSOR_COLOR,
)
from modules.interaction import carousel
from modules.interaction.easing import ease_in_out_cubic

logger = logging.getLogger(__name__)


class SceneComposer:
    """Turns session numbers into carousel poses."""

    def __init__(self, config: Optional[dict] = None):
        config = config or {}
        self._spacing = config.get("card_spacing", carousel.DEFAULT_SPACING)
        self._visible_cards = config.get("visible_cards", carousel.DEFAULT_VISIBLE_CARDS)
        self._depth_spread = config.get("depth_spread", 3.0)
        self._edge_fade = config.get("edge_fade", 0.8)
        self._grab_dim = config.get("grab_dim_opacity", 0.3)
        self._transition_depth = config.get("transition_depth", 10.0)
        viewport = config.get("viewport", [16.0, 9.0])
        self._viewport = (float(viewport[0]), float(viewport[1]))
        self._cursor_smoothing = config.get("cursor_smoothing", 0.25)

    @property
    def viewport(self) -> Tuple[float, float]:
        return self._viewport

    def cursor_target(self, x: float, y: float) -> Tuple[float, float]:
        """Pointer in viewport units, origin at the screen center, y up."""
        vw, vh = self._viewport
        return ((x - 0.5) * vw, (0.5 - y) * vh)

    def smooth_cursor(self, current: Tuple[float, float], x: float, y: float) -> Tuple[float, float]:
        tx, ty = self.cursor_target(x, y)
        a = self._cursor_smoothing
        return (current[0] + (tx - current[0]) * a, current[1] + (ty - current[1]) * a)

    def center_position(self, session) -> Tuple[float, float, float]:
        """Where the center card is currently drawn."""
        x = carousel.slot_position(0, session.offset, self._spacing)
        z = -carousel.distance_factor(x, self._spacing, self._visible_cards) * self._depth_spread
        y = session.lift_progress if session.state.holds_card else 0.0
        return (x, y, z)

    def compose(self, session, deck: Sequence[Card], gesture: GestureType,
                cursor: Tuple[float, float]) -> SceneSnapshot:
        state = session.state
        snap = SceneSnapshot(state)
        snap.cursor = cursor
        snap.cursor_color = CURSOR_COLORS.get(gesture, DEFAULT_CURSOR_COLOR)
        snap.offset = session.offset
        snap.selected_card = session.selected_card
        snap.orientation = session.orientation
        snap.lift_progress = session.lift_progress
        snap.flip_progress = session.flip_progress
        snap.transition_progress = session.transition_progress
        snap.fill_level = session.fill_level
        snap.ashes_visible = session.ashes_visible
        if session.ashes_visible:
            snap.ashes_position = session.dissolve_position
            snap.ashes_card = session.dissolving_card

        slots = carousel.visible_slots(session.offset, len(deck),
                                       self._spacing, self._visible_cards)
        for slot, index, x in slots:
            snap.poses.append(self._pose(session, deck[index], slot, x))
        return snap

    def _pose(self, session, card: Card, slot: int, x: float) -> CardPose:
        state = session.state
        dist = carousel.distance_factor(x, self._spacing, self._visible_cards)
        z = -dist * self._depth_spread
        base_opacity = 1.0 - (dist ** 1.5) * self._edge_fade
        is_center = slot == 0

        y = session.lift_progress if is_center and state.holds_card else 0.0

        # Face down unless the center card is mid-flip
        rotation = math.pi
        if is_center and state is SceneState.FLIPPING:
            rotation = math.pi * (1.0 - ease_in_out_cubic(session.flip_progress))

        if is_center:
            opacity = base_opacity * session.cards_opacity
        elif state is SceneState.GRABBING:
            opacity = self._grab_dim * session.others_opacity
        else:
            opacity = base_opacity * session.others_opacity

        if state is SceneState.TRANSITION:
            z -= self._transition_depth * (1.0 - session.transition_progress)

        return CardPose(
            card=card,
            slot=slot,
            position=(x, y, z),
            rotation_y=rotation,
            opacity=opacity,
            is_center=is_center,
            is_grabbed=is_center and state in (SceneState.GRABBING, SceneState.LIFTING),
            load_face=is_center and state.holds_card,
        )
