"""
In-process event bus.

The interaction state machine and the pipeline announce what happened
(sound cues, card confirmed, flow changes); the app window, audio and logging
subscribe without the core importing any of them.

Usage:
    bus = EventBus()
    bus.subscribe(Events.SOUND_CUE, play_cue)
    bus.emit(Events.SOUND_CUE, cue=SoundCue.GRAB)
"""

import time
import logging
import threading
from collections import defaultdict, deque
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class EventBus:
    """Process-wide publish/subscribe hub.

    Listeners run synchronously on the emitting thread, highest priority
    first. A listener that raises is logged and skipped, the remaining
    listeners still run.
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            instance = super().__new__(cls)
            instance._lock = threading.Lock()
            instance._listeners = defaultdict(list)  # name -> [(priority, callback)]
            instance._history = deque(maxlen=100)
            cls._instance = instance
        return cls._instance

    def subscribe(self, event_name: str, callback: Callable, priority: int = 0) -> Callable:
        """Register ``callback(**payload)`` for an event. Returns the callback."""
        with self._lock:
            listeners = self._listeners[event_name]
            listeners.append((priority, callback))
            listeners.sort(key=lambda entry: -entry[0])
        logger.debug("'%s' <- %s", event_name, getattr(callback, "__name__", callback))
        return callback

    def unsubscribe(self, event_name: str, callback: Callable):
        with self._lock:
            self._listeners[event_name] = [
                entry for entry in self._listeners[event_name] if entry[1] is not callback
            ]

    def emit(self, event_name: str, **payload):
        with self._lock:
            listeners = list(self._listeners.get(event_name, ()))
            self._history.append((time.time(), event_name, tuple(payload)))

        for _, callback in listeners:
            try:
                callback(**payload)
            except Exception as e:
                logger.error("Listener %s failed on '%s': %s",
                             getattr(callback, "__name__", callback), event_name, e)

    def clear(self, event_name: Optional[str] = None):
        """Drop listeners for one event, or for all events."""
        with self._lock:
            if event_name is None:
                self._listeners.clear()
            else:
                self._listeners.pop(event_name, None)

    def get_history(self, last_n: int = 10) -> list:
        """Most recent (time, event name, payload keys) entries, oldest first."""
        with self._lock:
            return list(self._history)[-last_n:]

    def reset(self):
        """Forget listeners and history (for testing)."""
        with self._lock:
            self._listeners.clear()
            self._history.clear()


class Events:
    """Event names emitted by the core."""

    # Card cycle (InteractionStateMachine)
    STATE_CHANGED = "state_changed"
    CARD_GRABBED = "card_grabbed"
    GRAB_RELEASED = "grab_released"
    CARD_CONFIRMED = "card_confirmed"
    REVEAL_COMPLETE = "reveal_complete"
    CYCLE_COMPLETE = "cycle_complete"
    SESSION_RESET = "session_reset"
    SOUND_CUE = "sound_cue"

    # Reading flow (TarotPipeline)
    GAME_STATE_CHANGED = "game_state_changed"
    CARD_REMOVED = "card_removed"
    READING_REQUESTED = "reading_requested"
    READING_READY = "reading_ready"
    MODE_CHANGED = "mode_changed"

    # Tracking
    TRACKING_UNAVAILABLE = "tracking_unavailable"
    CAMERA_ERROR = "camera_error"

    # Application lifecycle
    SYSTEM_STARTED = "system_started"
    SYSTEM_SHUTDOWN = "system_shutdown"
