"""
Core pipeline orchestrator for the tarot reading flow.

Owns everything around the interaction state machine that is not part of
the card cycle itself:

    hand source -> InteractionStateMachine -> SceneSnapshot
                         |
                  card confirmed
                         v
    draw history -> delayed pool removal -> (3 cards) -> narrative request

The reading flow is START -> DRAWING -> ANALYZING -> RESULT. The narrative
request runs on a worker thread; its future is polled on every tick so all
state changes still happen on the tick thread.
"""

import time
import random
import logging
from concurrent.futures import ThreadPoolExecutor, Future
from typing import Callable, List, Optional

from core.types import (
    GameState, InputMode, GestureType, HandSample, Card, CardOrientation,
    DrawnCardRecord, ReadingResult, SceneSnapshot, SoundCue,
)
from core.events import EventBus, Events
from modules.interaction.state_machine import InteractionStateMachine
from modules.interaction.timers import TimerQueue
from modules.reading.deck import DeckPool
from modules.reading.narrative import FAILURE_TEXT
from modules.utils.logger import ReadingLogger

logger = logging.getLogger(__name__)


class TickResult:
    """Result of a single pipeline iteration."""

    __slots__ = (
        "snapshot", "game_state", "mode", "sample", "records",
        "revealed", "reading", "dt", "tick_id",
    )

    def __init__(self, snapshot: SceneSnapshot, game_state: GameState, mode: InputMode):
        self.snapshot = snapshot
        self.game_state = game_state
        self.mode = mode
        self.sample: Optional[HandSample] = None
        self.records: List[DrawnCardRecord] = []
        self.revealed: Optional[DrawnCardRecord] = None
        self.reading: Optional[ReadingResult] = None
        self.dt = 0.0
        self.tick_id = 0


class TarotPipeline:
    """Hosts one reading: input selection, deck bookkeeping, and the narrative call.

    Args:
        hand_source: Camera-backed source with a read() -> HandSample
        pointer_source: Fallback source used when tracking is unavailable
        narrative: Object with interpret(records, language) -> ReadingResult
        tracker: Optional HandTrackingWorker started by open_input()
        deck: DeckPool; a shuffled major-arcana pool by default
        config: Dict with optional "interaction" and "session" sections
        clock: Monotonic seconds for ticks and timers
        wall_clock: Epoch seconds for draw record timestamps
    """

    def __init__(
        self,
        hand_source,
        pointer_source,
        narrative,
        tracker=None,
        deck: Optional[DeckPool] = None,
        config: Optional[dict] = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
        rng: Optional[random.Random] = None,
        event_bus: Optional[EventBus] = None,
        executor: Optional[ThreadPoolExecutor] = None,
        language: str = "en",
    ):
        config = config or {}
        session_cfg = config.get("session", {}) or {}
        self._removal_delay = session_cfg.get("removal_delay", 2.0)
        self._analysis_delay = session_cfg.get("analysis_delay", 4.0)
        self._spread_size = session_cfg.get("spread_size", 3)
        self._max_dt = session_cfg.get("max_dt", 0.1)

        self._hand_source = hand_source
        self._pointer_source = pointer_source
        self._narrative = narrative
        self._tracker = tracker
        self._clock = clock
        self._wall_clock = wall_clock
        self._rng = rng or random.Random()
        self._bus = event_bus or EventBus()
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="narrative")
        self._owns_executor = executor is None
        self._language = language

        self._deck = deck if deck is not None else DeckPool(rng=self._rng)
        self._timers = TimerQueue(clock)
        self._machine = InteractionStateMachine(
            deck_provider=lambda: self._deck,
            on_card_confirmed=self._on_card_confirmed,
            config=config.get("interaction", {}) or {},
            clock=clock,
            rng=self._rng,
            event_bus=self._bus,
            timers=self._timers,
            drawn_count=lambda: len(self._records),
        )
        self._reading_logger = ReadingLogger()

        # Flow state
        self._game_state = GameState.START
        self._mode = InputMode.CAMERA
        self._flow_token = 0
        self._records: List[DrawnCardRecord] = []
        self._history: List[DrawnCardRecord] = []
        self._revealed: Optional[DrawnCardRecord] = None
        self._reading: Optional[ReadingResult] = None
        self._reading_future: Optional[Future] = None
        self._reading_started = 0.0

        # Timing
        self._last_tick: Optional[float] = None
        self._tick_count = 0

    # =========================================================================
    # Input
    # =========================================================================

    def open_input(self) -> InputMode:
        """Start camera tracking, or fall back to pointer input if it is unavailable."""
        if self._tracker is not None and self._tracker.start():
            self._set_mode(InputMode.CAMERA)
        else:
            logger.warning("Hand tracking unavailable, switching to pointer input")
            self.use_pointer("tracking unavailable")
        return self._mode

    def use_pointer(self, reason: str = ""):
        """Switch to pointer input. Browsing keeps working indefinitely."""
        self._set_mode(InputMode.POINTER, reason)

    def use_camera(self) -> bool:
        if self._tracker is None or not self._tracker.is_running:
            return False
        self._set_mode(InputMode.CAMERA)
        return True

    def _set_mode(self, mode: InputMode, reason: str = ""):
        if mode is self._mode and self._tick_count > 0:
            return
        self._mode = mode
        logger.info("Input mode: %s%s", mode.value, f" ({reason})" if reason else "")
        self._bus.emit(Events.MODE_CHANGED, mode=mode, reason=reason)

    def _read_sample(self) -> HandSample:
        source = self._pointer_source if self._mode is InputMode.POINTER else self._hand_source
        return source.read()

    # =========================================================================
    # Reading flow
    # =========================================================================

    def start(self):
        """Begin a new reading with a freshly shuffled full deck."""
        self._new_flow()
        self._deck.reset()
        self._set_game_state(GameState.DRAWING)

    def restart(self):
        """Return to the start screen, discarding the current spread."""
        self._new_flow()
        self._set_game_state(GameState.START)

    def clear_history(self):
        """Forget past draws and put every card back in the pool."""
        self._history.clear()
        self._deck.reset()
        logger.info("Draw history cleared")

    def _new_flow(self):
        self._flow_token += 1
        self._timers.clear()
        self._machine.reset()
        self._records = []
        self._revealed = None
        self._reading = None
        if self._reading_future is not None:
            self._reading_future.cancel()
            self._reading_future = None

    def _set_game_state(self, state: GameState):
        previous = self._game_state
        self._game_state = state
        logger.info("Reading flow: %s -> %s", previous.value, state.value)
        self._bus.emit(Events.GAME_STATE_CHANGED, previous=previous, state=state)

    def _on_card_confirmed(self, card: Card, orientation: CardOrientation):
        if self._game_state is not GameState.DRAWING:
            logger.debug("Ignoring %s drawn outside the drawing phase", card.name)
            return
        if len(self._records) >= self._spread_size:
            logger.debug("Spread already complete, ignoring %s", card.name)
            return

        timestamp = self._wall_clock()
        if self._records and timestamp <= self._records[-1].timestamp:
            timestamp = self._records[-1].timestamp + 1e-6

        record = DrawnCardRecord(card, orientation, timestamp)
        self._records.append(record)
        self._history.append(record)
        self._revealed = record
        self._reading_logger.log_draw(card.name, orientation.value, len(self._records))

        # Leave the card in the pool until its flip has finished on screen
        self._schedule(self._removal_delay, self._remove_from_pool, card.id)
        self._schedule(self._analysis_delay, self._after_reveal, len(self._records))

    def _remove_from_pool(self, card_id: int):
        if self._deck.remove(card_id):
            self._deck.shuffle()
            self._bus.emit(Events.CARD_REMOVED, card_id=card_id, remaining=len(self._deck))

    def _after_reveal(self, draw_number: int):
        if self._revealed is not None and draw_number == len(self._records):
            self._revealed = None
        if draw_number >= self._spread_size and self._game_state is GameState.DRAWING:
            self._request_reading()

    def _request_reading(self):
        records = list(self._records[:self._spread_size])
        self._set_game_state(GameState.ANALYZING)
        self._reading_started = self._clock()
        self._bus.emit(Events.READING_REQUESTED, records=records, language=self._language)
        self._reading_future = self._executor.submit(self._narrative.interpret, records, self._language)

    def _poll_reading(self):
        future = self._reading_future
        if future is None or not future.done():
            return
        self._reading_future = None

        try:
            result = future.result()
        except Exception as e:
            logger.error("Narrative request crashed: %s", e)
            result = ReadingResult(FAILURE_TEXT.format(reason=str(e) or type(e).__name__),
                                   degraded=True)

        latency_ms = (self._clock() - self._reading_started) * 1000
        self._reading = result
        self._reading_logger.log_reading(result.energy_flow.value, result.challenge_cards,
                                         result.degraded, latency_ms)
        self._bus.emit(Events.SOUND_CUE, cue=SoundCue.RESULT)
        self._bus.emit(Events.READING_READY, result=result)
        self._set_game_state(GameState.RESULT)

    def _schedule(self, delay: float, action: Callable, *args):
        self._timers.schedule(delay, self._run_if_current, self._flow_token, action, args,
                              name=action.__name__)

    def _run_if_current(self, token: int, action: Callable, args: tuple):
        if token != self._flow_token:
            logger.debug("Stale flow timer '%s' ignored", action.__name__)
            return
        action(*args)

    # =========================================================================
    # Tick
    # =========================================================================

    def tick(self) -> TickResult:
        """Run one frame: timers, reading poll, input, then the state machine."""
        now = self._clock()
        dt = 0.0 if self._last_tick is None else min(max(now - self._last_tick, 0.0), self._max_dt)
        self._last_tick = now
        self._tick_count += 1

        self._timers.run_due(now)
        self._poll_reading()

        sample = self._read_sample()
        if self._game_state is GameState.DRAWING:
            feed = sample
        else:
            # The carousel only reacts to hands while drawing
            feed = HandSample(GestureType.NONE, sample.pointer, sample.timestamp)
        snapshot = self._machine.tick(feed, dt)

        result = TickResult(snapshot, self._game_state, self._mode)
        result.sample = sample
        result.records = list(self._records)
        result.revealed = self._revealed
        result.reading = self._reading
        result.dt = dt
        result.tick_id = self._tick_count
        return result

    def shutdown(self):
        if self._tracker is not None:
            self._tracker.stop()
        if self._owns_executor:
            self._executor.shutdown(wait=False)
        self._bus.emit(Events.SYSTEM_SHUTDOWN)

    # =========================================================================
    # Accessors
    # =========================================================================

    @property
    def game_state(self) -> GameState:
        return self._game_state

    @property
    def mode(self) -> InputMode:
        return self._mode

    @property
    def machine(self) -> InteractionStateMachine:
        return self._machine

    @property
    def deck(self) -> DeckPool:
        return self._deck

    @property
    def records(self) -> List[DrawnCardRecord]:
        return list(self._records)

    @property
    def history(self) -> List[DrawnCardRecord]:
        return list(self._history)

    @property
    def reading(self) -> Optional[ReadingResult]:
        return self._reading

    @property
    def reading_logger(self) -> ReadingLogger:
        return self._reading_logger

    @property
    def language(self) -> str:
        return self._language

    @language.setter
    def language(self, value: str):
        self._language = value
        logger.info("Reading language: %s", value)

    @property
    def tracker(self):
        return self._tracker
