"""
Card interaction state machine.

Consumes one HandSample per tick and walks a single card through the
draw cycle:

    BROWSING -> GRABBING -> LIFTING -> FLIPPING -> ASHES -> TRANSITION -> BROWSING

BROWSING and GRABBING are gesture driven. FLIPPING and TRANSITION are
time driven from elapsed time on the injected clock. The reveal hold and the
dissolve run on TimerQueue callbacks tagged with the session token, so a
callback scheduled before reset() never touches the new session.

The deck pool belongs to the host. The machine only asks for its length and
indexes into it through ``deck_provider``.
"""

import random
import logging
import time
from typing import Callable, Optional, Sequence

from core.types import (
    GestureType, SceneState, CardOrientation, SoundCue, HandSample, Card,
    SceneSnapshot,
)
from core.events import EventBus, Events
from modules.interaction import carousel
from modules.interaction.easing import ease_out_cubic, phase_progress
from modules.interaction.scene import SceneComposer
from modules.interaction.timers import TimerQueue

logger = logging.getLogger(__name__)

# Float slack for the lift threshold, so a 0.5 -> 0.4 move counts as 0.1
_LIFT_TOLERANCE = 1e-9


class InteractionSession:
    """Live state of one drawing session."""

    __slots__ = (
        "token", "state", "offset", "velocity",
        "selected_card", "selected_index", "orientation",
        "grab_start_y", "lift_amount", "lift_progress",
        "flip_progress", "transition_progress",
        "cards_opacity", "others_opacity", "fill_level",
        "phase_started", "confirming", "reveal_announced",
        "ashes_visible", "dissolving_card", "dissolving_orientation",
        "dissolve_position",
    )

    def __init__(self, token: int = 0, offset: float = 0.0, fill_level: float = 0.0):
        self.token = token
        self.state = SceneState.BROWSING
        self.offset = offset
        self.velocity = 0.0
        self.selected_card: Optional[Card] = None
        self.selected_index: Optional[int] = None
        self.orientation: Optional[CardOrientation] = None
        self.grab_start_y = 0.0
        self.lift_amount = 0.0
        self.lift_progress = 0.0
        self.flip_progress = 0.0
        self.transition_progress = 0.0
        self.cards_opacity = 1.0
        self.others_opacity = 1.0
        self.fill_level = fill_level
        self.phase_started = 0.0
        self.confirming = False
        self.reveal_announced = False
        self.ashes_visible = False
        self.dissolving_card: Optional[Card] = None
        self.dissolving_orientation: Optional[CardOrientation] = None
        self.dissolve_position = (0.0, 0.0, 0.0)

    def __repr__(self):
        card = self.selected_card.name if self.selected_card else None
        return (f"InteractionSession(token={self.token}, state={self.state.value}, "
                f"offset={self.offset:.2f}, card={card!r})")


class InteractionStateMachine:
    """Gesture-driven draw cycle for one card at a time."""

    def __init__(
        self,
        deck_provider: Callable[[], Sequence[Card]],
        on_card_confirmed: Optional[Callable[[Card, CardOrientation], None]] = None,
        config: Optional[dict] = None,
        clock: Optional[Callable[[], float]] = None,
        rng: Optional[random.Random] = None,
        event_bus: Optional[EventBus] = None,
        timers: Optional[TimerQueue] = None,
        drawn_count: Optional[Callable[[], int]] = None,
    ):
        config = config or {}
        if clock is None:
            clock = timers.clock if timers is not None else time.monotonic
        self._clock = clock
        self._timers = timers or TimerQueue(clock)
        self._bus = event_bus or EventBus()
        self._rng = rng or random.Random()
        self._deck_provider = deck_provider
        self._on_card_confirmed = on_card_confirmed
        self._drawn_count = drawn_count or (lambda: 0)
        self._composer = SceneComposer(config)

        # Carousel
        self._spacing = config.get("card_spacing", carousel.DEFAULT_SPACING)

        # Scrolling
        self._dead_zone = config.get("dead_zone", 0.1)
        self._scroll_gain = config.get("scroll_gain", 18.0)
        self._scroll_span = config.get("scroll_span", 0.3)
        self._browse_friction = config.get("browse_friction", 0.90)
        self._idle_friction = config.get("idle_friction", 0.92)
        self._min_velocity = config.get("min_velocity", 0.01)

        # Grab / lift
        self._lift_threshold = config.get("lift_threshold", 0.1)
        self._lift_multiplier = config.get("lift_multiplier", 3.5)

        # Phase timing (seconds)
        self._flip_duration = config.get("flip_duration", 0.8)
        self._fade_duration = config.get("others_fade_duration", 0.6)
        self._reveal_hold = config.get("reveal_hold", 1.0)
        self._ashes_duration = config.get("ashes_duration", 1.2)
        self._transition_duration = config.get("transition_duration", 0.8)
        self._fill_rate = config.get("fill_rate", 0.8)

        self._token = 0
        self._session = InteractionSession(self._token)
        self._pending = []
        self._last_sample = HandSample.empty()
        self._cursor = (0.0, 0.0)

    # =========================================================================
    # Public API
    # =========================================================================

    @property
    def session(self) -> InteractionSession:
        return self._session

    @property
    def state(self) -> SceneState:
        return self._session.state

    @property
    def token(self) -> int:
        return self._token

    @property
    def timers(self) -> TimerQueue:
        return self._timers

    def reset(self, keep_offset: bool = False):
        """Start a fresh session and void every pending phase timer."""
        for handle in self._pending:
            self._timers.cancel(handle)
        self._pending.clear()

        offset = self._session.offset if keep_offset else 0.0
        self._token += 1
        self._session = InteractionSession(self._token, offset=offset)
        logger.debug("Interaction session reset (token=%d)", self._token)
        self._bus.emit(Events.SESSION_RESET, token=self._token)

    def tick(self, sample: Optional[HandSample], dt: float) -> SceneSnapshot:
        """Advance the session by one frame.

        Args:
            sample: Latest hand sample, None when no sample is available
            dt: Seconds since the previous tick

        Returns:
            SceneSnapshot for the renderer
        """
        self._timers.run_due()

        sample = sample or HandSample.empty()
        self._last_sample = sample
        s = self._session
        deck = self._deck_provider()
        gesture = sample.gesture

        # Coast to a stop whenever the hand is not steering the carousel
        if s.state is not SceneState.BROWSING or gesture is GestureType.NONE:
            s.velocity *= self._idle_friction
            if abs(s.velocity) > self._min_velocity:
                s.offset += s.velocity * dt

        if s.state is SceneState.BROWSING:
            if len(deck) > 0 and gesture is not GestureType.NONE:
                self._browse(sample, dt, deck)
        elif s.state is SceneState.GRABBING:
            self._update_grab(sample)
        elif s.state is SceneState.LIFTING:
            self.confirm_selection()
        elif s.state is SceneState.FLIPPING:
            self._update_flip()
        elif s.state is SceneState.TRANSITION:
            self._update_transition()

        self._update_fill(dt)
        self._cursor = self._composer.smooth_cursor(
            self._cursor, sample.pointer.x, sample.pointer.y)
        return self.snapshot()

    def snapshot(self) -> SceneSnapshot:
        return self._composer.compose(
            self._session, self._deck_provider(), self._last_sample.gesture, self._cursor)

    def release(self) -> bool:
        """Drop the grabbed card without drawing it.

        Safe to call repeatedly; only acts while GRABBING.
        """
        s = self._session
        if s.state is not SceneState.GRABBING:
            return False
        card = s.selected_card
        s.selected_card = None
        s.selected_index = None
        s.orientation = None
        s.lift_amount = 0.0
        s.lift_progress = 0.0
        self._enter(SceneState.BROWSING)
        self._bus.emit(Events.GRAB_RELEASED, card=card)
        return True

    def confirm_selection(self) -> bool:
        """LIFTING entry action. Fires the card-confirmed callback at most once.

        Returns:
            True if this call confirmed the card, False if it was a no-op
        """
        s = self._session
        if s.state is not SceneState.LIFTING or s.selected_card is None or s.confirming:
            return False
        s.confirming = True

        card, orientation = s.selected_card, s.orientation
        s.flip_progress = 0.0
        s.others_opacity = 1.0
        self._enter(SceneState.FLIPPING)
        self._cue(SoundCue.FLIP)

        logger.info("Card confirmed: %s (%s)", card.name, orientation.value)
        self._bus.emit(Events.CARD_CONFIRMED, card=card, orientation=orientation)
        if self._on_card_confirmed is not None:
            self._on_card_confirmed(card, orientation)
        return True

    # =========================================================================
    # Gesture-driven phases
    # =========================================================================

    def _browse(self, sample: HandSample, dt: float, deck: Sequence[Card]):
        s = self._session
        x = sample.pointer.x
        left_edge = 0.5 - self._dead_zone
        right_edge = 0.5 + self._dead_zone

        if x < left_edge:
            s.velocity = -self._scroll_gain * min((left_edge - x) / self._scroll_span, 1.0)
        elif x > right_edge:
            s.velocity = self._scroll_gain * min((x - right_edge) / self._scroll_span, 1.0)
        else:
            s.velocity *= self._browse_friction

        s.offset += s.velocity * dt

        if sample.gesture is GestureType.PINCH:
            self._grab(sample, deck)

    def _grab(self, sample: HandSample, deck: Sequence[Card]):
        s = self._session
        index = carousel.centered_index(s.offset, len(deck), self._spacing)
        if index is None:
            return

        s.selected_card = deck[index]
        s.selected_index = index
        s.orientation = (CardOrientation.UPRIGHT if self._rng.random() < 0.5
                         else CardOrientation.REVERSED)
        s.grab_start_y = sample.pointer.y
        s.lift_amount = 0.0
        s.lift_progress = 0.0
        s.velocity = 0.0
        self._enter(SceneState.GRABBING)
        self._cue(SoundCue.GRAB)
        self._bus.emit(Events.CARD_GRABBED, card=s.selected_card, index=index)

    def _update_grab(self, sample: HandSample):
        s = self._session
        gesture = sample.gesture

        # Lost tracking is a release, never a frozen grab
        if gesture in (GestureType.OPEN, GestureType.NONE):
            self.release()
            return

        if gesture is not GestureType.PINCH:
            return

        # Screen y grows downward, so raising the hand lowers y
        s.lift_amount = max(0.0, s.grab_start_y - sample.pointer.y)
        s.lift_progress = s.lift_amount * self._lift_multiplier

        if s.lift_amount + _LIFT_TOLERANCE >= self._lift_threshold:
            self._enter(SceneState.LIFTING)
            self._cue(SoundCue.DRAW)
            self.confirm_selection()

    # =========================================================================
    # Time-driven phases
    # =========================================================================

    def _update_flip(self):
        s = self._session
        elapsed = self._clock() - s.phase_started
        s.flip_progress = phase_progress(elapsed, self._flip_duration)
        s.others_opacity = 1.0 - phase_progress(elapsed, self._fade_duration)

        if s.flip_progress >= 1.0 and not s.reveal_announced:
            s.reveal_announced = True
            self._bus.emit(Events.REVEAL_COMPLETE, card=s.selected_card,
                           orientation=s.orientation)
            self._schedule(self._reveal_hold, self._begin_ashes)

    def _begin_ashes(self):
        s = self._session
        if s.state is not SceneState.FLIPPING:
            return

        s.dissolve_position = self._composer.center_position(s)
        s.dissolving_card = s.selected_card
        s.dissolving_orientation = s.orientation
        s.selected_card = None
        s.selected_index = None
        s.ashes_visible = True
        s.cards_opacity = 0.0
        self._enter(SceneState.ASHES)
        self._cue(SoundCue.BURN)
        self._schedule(self._ashes_duration, self._begin_transition)

    def _begin_transition(self):
        s = self._session
        if s.state is not SceneState.ASHES:
            return

        s.ashes_visible = False
        s.transition_progress = 0.0
        s.others_opacity = 0.0
        self._enter(SceneState.TRANSITION)

    def _update_transition(self):
        s = self._session
        progress = phase_progress(self._clock() - s.phase_started, self._transition_duration)
        eased = ease_out_cubic(progress)
        s.transition_progress = eased
        s.cards_opacity = eased
        s.others_opacity = eased

        if progress >= 1.0:
            self._finish_cycle()

    def _finish_cycle(self):
        s = self._session
        card = s.dissolving_card
        s.selected_card = None
        s.selected_index = None
        s.orientation = None
        s.dissolving_card = None
        s.dissolving_orientation = None
        s.lift_amount = 0.0
        s.lift_progress = 0.0
        s.flip_progress = 0.0
        s.transition_progress = 0.0
        s.cards_opacity = 1.0
        s.others_opacity = 1.0
        s.confirming = False
        s.reveal_announced = False
        self._enter(SceneState.BROWSING)
        self._bus.emit(Events.CYCLE_COMPLETE, card=card)

    def _update_fill(self, dt: float):
        s = self._session
        drawn = self._drawn_count()
        if s.state is SceneState.ASHES:
            if s.fill_level < drawn:
                s.fill_level = min(s.fill_level + self._fill_rate * dt, float(drawn))
        elif drawn == 0 and s.fill_level != 0.0:
            s.fill_level = 0.0

    # =========================================================================
    # Helpers
    # =========================================================================

    def _enter(self, state: SceneState):
        s = self._session
        previous = s.state
        s.state = state
        s.phase_started = self._clock()
        logger.debug("Scene %s -> %s", previous.value, state.value)
        self._bus.emit(Events.STATE_CHANGED, previous=previous, state=state,
                       token=self._token)

    def _cue(self, cue: SoundCue):
        self._bus.emit(Events.SOUND_CUE, cue=cue)

    def _schedule(self, delay: float, action: Callable[[], None]):
        handle = self._timers.schedule(delay, self._run_if_current, self._token, action,
                                       name=action.__name__)
        self._pending.append(handle)
        # Keep the handle list from growing across long sessions
        if len(self._pending) > 16:
            self._pending = self._pending[-16:]

    def _run_if_current(self, token: int, action: Callable[[], None]):
        if token != self._token:
            logger.debug("Stale timer '%s' ignored (token %d, current %d)",
                         action.__name__, token, self._token)
            return
        action()
