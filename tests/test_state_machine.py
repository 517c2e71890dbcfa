"""
Tests for the Card Interaction State Machine
============================================
"""

import math
import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from core.types import (
    GestureType, HandSample, Pointer, SceneState, CardOrientation, SoundCue,
)
from core.events import Events
from modules.interaction.state_machine import InteractionStateMachine
from modules.reading.deck import MAJOR_ARCANA

DT = 1.0 / 60.0


class FixedRandom:
    """rng stub with a constant random() value."""

    def __init__(self, value: float):
        self.value = value

    def random(self) -> float:
        return self.value


def hand(gesture: GestureType, x: float = 0.5, y: float = 0.5) -> HandSample:
    return HandSample(gesture, Pointer(x, y, 0.0), timestamp=0.0)


def step(machine, clock, sample):
    clock.advance(DT)
    return machine.tick(sample, DT)


def run(machine, clock, sample, seconds: float):
    snap = None
    for _ in range(int(round(seconds / DT))):
        snap = step(machine, clock, sample)
    return snap


@pytest.fixture
def deck():
    return list(MAJOR_ARCANA)


@pytest.fixture
def confirmed():
    return []


@pytest.fixture
def machine(deck, confirmed, clock, bus):
    return InteractionStateMachine(
        deck_provider=lambda: deck,
        on_card_confirmed=lambda card, orientation: confirmed.append((card, orientation)),
        clock=clock,
        rng=FixedRandom(0.2),
        event_bus=bus,
    )


def collect(bus, event_name, key):
    seen = []
    bus.subscribe(event_name, lambda **kw: seen.append(kw.get(key)))
    return seen


def grab_and_lift(machine, clock):
    step(machine, clock, hand(GestureType.PINCH, y=0.5))
    return step(machine, clock, hand(GestureType.PINCH, y=0.35))


class TestBrowsing:
    """Test suite for carousel scrolling."""

    def test_starts_browsing(self, machine):
        assert machine.state is SceneState.BROWSING
        assert machine.session.selected_card is None

    def test_right_edge_scrolls_full_speed(self, machine, clock):
        run(machine, clock, hand(GestureType.OPEN, x=0.9), 1.0)
        assert machine.session.velocity == pytest.approx(18.0)
        assert machine.session.offset == pytest.approx(18.0, abs=1e-6)

    def test_left_edge_scrolls_backwards(self, machine, clock):
        run(machine, clock, hand(GestureType.OPEN, x=0.1), 1.0)
        assert machine.session.offset == pytest.approx(-18.0, abs=1e-6)

    def test_speed_scales_past_dead_zone(self, machine, clock):
        step(machine, clock, hand(GestureType.OPEN, x=0.75))
        assert machine.session.velocity == pytest.approx(9.0)

    def test_dead_zone_applies_browse_friction(self, machine, clock):
        step(machine, clock, hand(GestureType.OPEN, x=0.9))
        step(machine, clock, hand(GestureType.OPEN, x=0.5))
        assert machine.session.velocity == pytest.approx(18.0 * 0.9)

    def test_lost_hand_coasts_to_a_stop(self, machine, clock):
        step(machine, clock, hand(GestureType.OPEN, x=0.9))
        before = machine.session.offset
        step(machine, clock, hand(GestureType.NONE, x=0.9))
        assert machine.session.velocity == pytest.approx(18.0 * 0.92)
        assert machine.session.offset > before

        run(machine, clock, hand(GestureType.NONE), 10.0)
        settled = machine.session.offset
        step(machine, clock, hand(GestureType.NONE))
        assert machine.session.offset == settled

    def test_scrolled_offset_picks_wrapped_card(self, machine, clock, deck):
        run(machine, clock, hand(GestureType.OPEN, x=0.9), 1.0)
        snap = step(machine, clock, hand(GestureType.PINCH, x=0.5))
        # Offset ~18 after one browse-friction tick, nearest slot 18 / 3.2 -> 6
        assert machine.state is SceneState.GRABBING
        assert snap.selected_card == deck[6]


class TestGrab:
    """Test suite for grabbing and releasing."""

    def test_pinch_grabs_center_card(self, machine, clock, deck, bus):
        cues = collect(bus, Events.SOUND_CUE, "cue")
        step(machine, clock, hand(GestureType.PINCH, y=0.6))

        s = machine.session
        assert machine.state is SceneState.GRABBING
        assert s.selected_card == deck[0]
        assert s.selected_index == 0
        assert s.grab_start_y == 0.6
        assert s.lift_progress == 0.0
        assert s.velocity == 0.0
        assert cues == [SoundCue.GRAB]

    def test_orientation_comes_from_rng(self, deck, clock, bus):
        machine = InteractionStateMachine(lambda: deck, clock=clock,
                                          rng=FixedRandom(0.7), event_bus=bus)
        step(machine, clock, hand(GestureType.PINCH))
        assert machine.session.orientation is CardOrientation.REVERSED

    def test_empty_deck_cannot_grab(self, clock, bus):
        machine = InteractionStateMachine(lambda: [], clock=clock, event_bus=bus)
        grabbed = collect(bus, Events.CARD_GRABBED, "card")

        snap = step(machine, clock, hand(GestureType.PINCH))
        assert machine.state is SceneState.BROWSING
        assert snap.poses == []
        assert grabbed == []

    @pytest.mark.parametrize("gesture", [GestureType.OPEN, GestureType.NONE])
    def test_release_aborts_grab(self, machine, clock, gesture, bus):
        released = collect(bus, Events.GRAB_RELEASED, "card")
        step(machine, clock, hand(GestureType.PINCH))
        step(machine, clock, hand(gesture))

        s = machine.session
        assert machine.state is SceneState.BROWSING
        assert s.selected_card is None
        assert s.lift_progress == 0.0
        assert len(released) == 1
        assert machine.release() is False

    @pytest.mark.parametrize("gesture", [GestureType.FIST, GestureType.POINT])
    def test_other_gestures_hold_the_grab(self, machine, clock, gesture):
        step(machine, clock, hand(GestureType.PINCH, y=0.5))
        step(machine, clock, hand(GestureType.PINCH, y=0.45))
        step(machine, clock, hand(gesture, y=0.2))

        assert machine.state is SceneState.GRABBING
        assert machine.session.lift_progress == pytest.approx(0.05 * 3.5)

    def test_lowering_hand_is_not_negative_lift(self, machine, clock):
        step(machine, clock, hand(GestureType.PINCH, y=0.5))
        step(machine, clock, hand(GestureType.PINCH, y=0.7))
        assert machine.session.lift_amount == 0.0
        assert machine.state is SceneState.GRABBING


class TestLift:
    """Test suite for the lift threshold and confirmation."""

    def test_small_lift_keeps_grabbing(self, machine, clock, confirmed):
        step(machine, clock, hand(GestureType.PINCH, y=0.5))
        snap = step(machine, clock, hand(GestureType.PINCH, y=0.45))
        assert machine.state is SceneState.GRABBING
        assert snap.center_pose.position[1] == pytest.approx(0.175)
        assert confirmed == []

    def test_lift_confirms(self, machine, clock, confirmed, deck, bus):
        states = collect(bus, Events.STATE_CHANGED, "state")
        grab_and_lift(machine, clock)

        assert machine.state is SceneState.FLIPPING
        assert confirmed == [(deck[0], CardOrientation.UPRIGHT)]
        assert states == [SceneState.GRABBING, SceneState.LIFTING, SceneState.FLIPPING]

    def test_exact_threshold_confirms(self, machine, clock, confirmed):
        step(machine, clock, hand(GestureType.PINCH, y=0.5))
        step(machine, clock, hand(GestureType.PINCH, y=0.4))
        assert len(confirmed) == 1

    def test_confirm_fires_once(self, machine, clock, confirmed):
        grab_and_lift(machine, clock)
        run(machine, clock, hand(GestureType.PINCH, y=0.2), 0.5)

        assert len(confirmed) == 1
        assert machine.confirm_selection() is False

    def test_confirm_is_not_reentrant(self, deck, clock, bus):
        calls = []

        def on_confirm(card, orientation):
            calls.append(machine.confirm_selection())

        machine = InteractionStateMachine(lambda: deck, on_card_confirmed=on_confirm,
                                          clock=clock, rng=FixedRandom(0.2), event_bus=bus)
        grab_and_lift(machine, clock)
        assert calls == [False]

    def test_confirm_outside_lifting_is_noop(self, machine):
        assert machine.confirm_selection() is False


class TestCycle:
    """Test suite for the time-driven reveal, dissolve and transition."""

    def test_full_cycle_timeline(self, machine, clock, deck, bus):
        reveals = collect(bus, Events.REVEAL_COMPLETE, "card")
        cycles = collect(bus, Events.CYCLE_COMPLETE, "card")
        cues = collect(bus, Events.SOUND_CUE, "cue")
        idle = hand(GestureType.NONE)

        grab_and_lift(machine, clock)

        snap = run(machine, clock, idle, 0.9)
        assert machine.state is SceneState.FLIPPING
        assert snap.flip_progress == 1.0
        assert snap.center_pose.rotation_y == pytest.approx(0.0)
        assert reveals == [deck[0]]

        snap = run(machine, clock, idle, 1.0)
        assert machine.state is SceneState.ASHES
        assert snap.ashes_visible
        assert snap.ashes_card == deck[0]
        assert snap.selected_card is None
        assert snap.center_pose.opacity == 0.0

        run(machine, clock, idle, 1.2)
        assert machine.state is SceneState.TRANSITION

        snap = run(machine, clock, idle, 1.0)
        s = machine.session
        assert machine.state is SceneState.BROWSING
        assert s.selected_card is None
        assert s.dissolving_card is None
        assert s.lift_progress == 0.0
        assert s.flip_progress == 0.0
        assert s.cards_opacity == 1.0
        assert s.others_opacity == 1.0
        assert not snap.ashes_visible
        assert cycles == [deck[0]]
        assert cues == [SoundCue.GRAB, SoundCue.DRAW, SoundCue.FLIP, SoundCue.BURN]

    def test_flip_rotates_center_card(self, machine, clock):
        grab_and_lift(machine, clock)
        snap = run(machine, clock, hand(GestureType.NONE), 0.4)

        center = snap.center_pose
        assert 0.0 < center.rotation_y < math.pi
        assert center.load_face
        others = [p for p in snap.poses if not p.is_center]
        assert all(p.opacity < 0.5 for p in others)

    def test_transition_pushes_cards_back(self, machine, clock):
        grab_and_lift(machine, clock)
        run(machine, clock, hand(GestureType.NONE), 3.1)
        assert machine.state is SceneState.TRANSITION
        snap = machine.snapshot()
        assert snap.center_pose.position[2] < -1.0

    def test_fill_rises_while_burning(self, deck, clock, bus):
        machine = InteractionStateMachine(lambda: deck, clock=clock, rng=FixedRandom(0.2),
                                          event_bus=bus, drawn_count=lambda: 1)
        grab_and_lift(machine, clock)
        run(machine, clock, hand(GestureType.NONE), 0.9)
        assert machine.session.fill_level == 0.0

        run(machine, clock, hand(GestureType.NONE), 3.5)
        assert 0.9 < machine.session.fill_level <= 1.0

    def test_reset_voids_pending_timers(self, machine, clock, bus):
        grab_and_lift(machine, clock)
        run(machine, clock, hand(GestureType.NONE), 0.9)
        assert len(machine.timers) == 1

        token = machine.token
        states = collect(bus, Events.STATE_CHANGED, "state")
        machine.reset()
        run(machine, clock, hand(GestureType.NONE), 3.0)

        assert machine.token == token + 1
        assert machine.state is SceneState.BROWSING
        assert SceneState.ASHES not in states

    def test_stale_timer_is_ignored_after_reset(self, machine, clock, bus, monkeypatch):
        grab_and_lift(machine, clock)
        run(machine, clock, hand(GestureType.NONE), 0.9)
        assert len(machine.timers) == 1

        # Leave the old hold timer queued so only the session token stops it
        monkeypatch.setattr(machine.timers, "cancel", lambda handle: False)
        states = collect(bus, Events.STATE_CHANGED, "state")
        machine.reset()
        run(machine, clock, hand(GestureType.NONE), 3.0)

        assert len(machine.timers) == 0
        assert machine.state is SceneState.BROWSING
        assert states == []

    def test_reset_can_keep_offset(self, machine, clock):
        run(machine, clock, hand(GestureType.OPEN, x=0.9), 0.5)
        offset = machine.session.offset
        machine.reset(keep_offset=True)
        assert machine.session.offset == offset
        machine.reset()
        assert machine.session.offset == 0.0


class TestSnapshot:
    """Test suite for render instructions."""

    def test_browsing_poses(self, machine, clock, deck):
        snap = step(machine, clock, hand(GestureType.OPEN))
        assert len(snap.poses) == 7
        center = snap.center_pose
        assert center.card == deck[0]
        assert center.rotation_y == pytest.approx(math.pi)
        assert center.opacity == pytest.approx(1.0)

        edge = snap.poses[-1]
        assert edge.slot == 3
        assert edge.opacity == pytest.approx(0.2)
        assert edge.position[2] == pytest.approx(-3.0)

    def test_grab_dims_other_cards(self, machine, clock):
        snap = step(machine, clock, hand(GestureType.PINCH))
        assert snap.center_pose.is_grabbed
        assert all(p.opacity == pytest.approx(0.3) for p in snap.poses if not p.is_center)

    def test_hint_keys_and_cursor_color(self, machine, clock):
        snap = step(machine, clock, hand(GestureType.OPEN))
        assert snap.hint_keys == ("hints.open", "hints.pinch")
        assert snap.cursor_color == "#ffffff"

        snap = step(machine, clock, hand(GestureType.PINCH))
        assert snap.hint_keys == ("hints.lift",)
        assert snap.cursor_color == "#00ff88"

    def test_cursor_is_smoothed(self, machine, clock):
        snap = step(machine, clock, hand(GestureType.OPEN, x=1.0, y=0.0))
        # Target (8, 4.5) in a 16x9 viewport, 25% of the way there
        assert snap.cursor == pytest.approx((2.0, 1.125))
