"""
Logging setup plus the reading event log.
"""

import os
import logging
import logging.handlers
import time
from functools import wraps

CONSOLE_FORMAT = "%(asctime)s  %(levelname)-5s  %(message)s"
FILE_FORMAT = "%(asctime)s [%(levelname)-7s] %(name)-32s | %(message)s"
DATE_FORMAT = "%H:%M:%S"


def setup_logging(level="INFO", log_file=None, max_size_mb=10, backup_count=3):
    """Route all loggers to the console and, optionally, a rotating file.

    The console shows INFO and above; the file gets everything down to DEBUG
    so timer and state traces are available after a session.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    for handler in list(root.handlers):
        root.removeHandler(handler)

    console = logging.StreamHandler()
    console.setLevel(logging.INFO)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    root.addHandler(console)

    if log_file:
        os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
        rotating = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=int(max_size_mb * 1024 * 1024),
            backupCount=backup_count,
            encoding="utf-8",
        )
        rotating.setLevel(logging.DEBUG)
        rotating.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
        root.addHandler(rotating)

    return root


class ReadingLogger:
    """Records confirmed draws and finished readings for the session."""

    def __init__(self):
        self.logger = logging.getLogger("reading_events")
        self._draw_history = []
        self._readings = []

    def log_draw(self, card_name, orientation, position):
        """Log a confirmed card draw."""
        entry = {
            "timestamp": time.time(),
            "card": card_name,
            "orientation": orientation,
            "position": position,
        }
        self._draw_history.append(entry)
        self.logger.info(
            "Draw %d: %-20s | %s",
            position, card_name, orientation,
        )

    def log_reading(self, energy_flow, challenge_cards, degraded=False, latency_ms=None):
        """Log a completed reading."""
        self._readings.append({
            "timestamp": time.time(),
            "energy_flow": energy_flow,
            "challenge_cards": list(challenge_cards),
            "degraded": degraded,
        })
        self.logger.info(
            "Reading: %-14s | Challenges: %s | Degraded: %s | Latency: %s",
            energy_flow,
            ", ".join(challenge_cards) or "none",
            degraded,
            f"{latency_ms:.0f}ms" if latency_ms else "N/A",
        )

    def get_history(self, last_n=None):
        """Get recent draw history."""
        if last_n:
            return self._draw_history[-last_n:]
        return self._draw_history.copy()

    @property
    def total_draws(self):
        return len(self._draw_history)

    @property
    def total_readings(self):
        return len(self._readings)


def log_timing(func):
    """Decorator to log function execution time."""
    logger = logging.getLogger(func.__module__)

    @wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        result = func(*args, **kwargs)
        elapsed = (time.perf_counter() - start) * 1000
        logger.debug("%s took %.2fms", func.__name__, elapsed)
        return result

    return wrapper
