"""
Circadian shape primitives.

Time of day is mapped onto a phase angle in [0, 2*pi). Every primitive is
periodic over one day so setpoints wrap cleanly at midnight.
"""

import math

from physiodyn.core.constants import MINUTES_PER_DAY

TWO_PI = 2.0 * math.pi


def minute_to_phase(minute: float) -> float:
    return (minute / MINUTES_PER_DAY) * TWO_PI


def hour_to_phase(hour: float) -> float:
    return (hour / 24.0) * TWO_PI


def minutes_to_phase_width(minutes: float) -> float:
    return (minutes / MINUTES_PER_DAY) * TWO_PI


def width_to_concentration(width_minutes: float) -> float:
    """von Mises concentration for a bump roughly `width_minutes` wide."""
    width = minutes_to_phase_width(width_minutes)
    return 2.0 / (width * width)


def gaussian_phase(phase: float, center: float, concentration: float) -> float:
    """von Mises bump on the circle, 1.0 at `center`."""
    return math.exp(concentration * (math.cos(phase - center) - 1.0))


def window_phase(phase: float, start: float, end: float,
                 transition: float = minutes_to_phase_width(30)) -> float:
    """
    1.0 inside [start, end] with cosine fades at both edges, 0.0 outside.

    The window may wrap past midnight (end < start).
    """
    p = phase % TWO_PI
    s = start % TWO_PI
    e = end % TWO_PI

    wraps = e < s
    inside = (p >= s or p <= e) if wraps else (s <= p <= e)
    if not inside:
        return 0.0

    to_start = p + (TWO_PI - s) if (wraps and p < s) else p - s
    to_end = (TWO_PI - p) + e if (wraps and p > e) else e - p

    fade_in = 0.5 * (1.0 - math.cos(math.pi * to_start / transition)) if to_start < transition else 1.0
    fade_out = 0.5 * (1.0 - math.cos(math.pi * to_end / transition)) if to_end < transition else 1.0
    return fade_in * fade_out


def sigmoid_phase(phase: float, transition_at: float,
                  width: float = minutes_to_phase_width(45)) -> float:
    """Smooth 0 -> 1 step centred on `transition_at`, `width` wide."""
    diff = (phase - transition_at + math.pi) % TWO_PI - math.pi
    if diff < -width / 2.0:
        return 0.0
    if diff > width / 2.0:
        return 1.0
    return 0.5 * (1.0 + math.sin(math.pi * diff / width))
