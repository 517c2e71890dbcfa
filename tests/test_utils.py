"""
Tests for Logging Helpers and the Event Bus
===========================================
"""

import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from core.events import EventBus, Events
from modules.utils.logger import ReadingLogger, log_timing, setup_logging


class TestEventBus:
    """Test suite for publish/subscribe dispatch."""

    def test_singleton(self, bus):
        assert EventBus() is bus

    def test_priority_order(self, bus):
        order = []
        bus.subscribe(Events.SOUND_CUE, lambda **kw: order.append("low"), priority=0)
        bus.subscribe(Events.SOUND_CUE, lambda **kw: order.append("high"), priority=5)
        bus.emit(Events.SOUND_CUE, cue=None)
        assert order == ["high", "low"]

    def test_failing_listener_is_isolated(self, bus):
        seen = []

        def broken(**kwargs):
            raise RuntimeError("listener bug")

        bus.subscribe(Events.CARD_CONFIRMED, broken, priority=1)
        bus.subscribe(Events.CARD_CONFIRMED, lambda **kw: seen.append(kw["card"]))
        bus.emit(Events.CARD_CONFIRMED, card="The Fool", orientation=None)
        assert seen == ["The Fool"]

    def test_unsubscribe_and_clear(self, bus):
        seen = []
        callback = bus.subscribe(Events.CYCLE_COMPLETE, lambda **kw: seen.append(1))
        bus.unsubscribe(Events.CYCLE_COMPLETE, callback)
        bus.emit(Events.CYCLE_COMPLETE)

        bus.subscribe(Events.CYCLE_COMPLETE, lambda **kw: seen.append(2))
        bus.clear()
        bus.emit(Events.CYCLE_COMPLETE)
        assert seen == []

    def test_history(self, bus):
        bus.emit(Events.CARD_REMOVED, card_id=3, remaining=21)
        _, name, keys = bus.get_history(1)[0]
        assert name == Events.CARD_REMOVED
        assert keys == ("card_id", "remaining")


class TestReadingLogger:
    """Test suite for the in-memory draw log."""

    def test_draws_and_readings(self):
        log = ReadingLogger()
        log.log_draw("The Fool", "Upright", 1)
        log.log_draw("Death", "Reversed", 2)
        log.log_reading("conflicting", ["Death (Reversed)"], degraded=False, latency_ms=120.0)

        assert log.total_draws == 2
        assert log.total_readings == 1
        assert [e["card"] for e in log.get_history()] == ["The Fool", "Death"]
        assert log.get_history(last_n=1)[0]["position"] == 2


class TestLoggingSetup:
    """Test suite for handler wiring."""

    def test_rotating_file(self, tmp_path):
        log_file = tmp_path / "logs" / "tarot.log"
        previous_level = logging.getLogger().level
        root = setup_logging("DEBUG", log_file=str(log_file), max_size_mb=1, backup_count=1)
        try:
            assert root.level == logging.DEBUG
            assert len(root.handlers) == 2
            logging.getLogger("tarot.test").debug("hello")
            for handler in root.handlers:
                handler.flush()
            assert "hello" in log_file.read_text(encoding="utf-8")
        finally:
            for handler in list(root.handlers):
                handler.close()
                root.removeHandler(handler)
            root.setLevel(previous_level)

    def test_log_timing_keeps_result_and_name(self):
        @log_timing
        def add(a, b):
            return a + b

        assert add(2, 3) == 5
        assert add.__name__ == "add"
