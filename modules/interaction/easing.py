"""
Easing curves for the time-driven interaction phases.
"""


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def ease_in_out_cubic(t: float) -> float:
    t = clamp01(t)
    if t < 0.5:
        return 4.0 * t * t * t
    return 1.0 - ((-2.0 * t + 2.0) ** 3) / 2.0


def ease_out_cubic(t: float) -> float:
    t = clamp01(t)
    return 1.0 - (1.0 - t) ** 3


def phase_progress(elapsed: float, duration: float) -> float:
    """Linear 0..1 progress of a phase that started `elapsed` seconds ago."""
    if duration <= 0:
        return 1.0
    return clamp01(elapsed / duration)
