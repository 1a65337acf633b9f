"""
Shared utility functions for physiodyn.
"""

import logging
import math

from physiodyn.core.constants import GAMMA_MAX, HILL_EPSILON, CONCENTRATION_RATIO_SATURATION

LOGGER = logging.getLogger(__name__)


def clamp(value: float, low: float, high: float) -> float:
    """
    Clamp value to the inclusive range [low, high].
    """
    if low > high:
        low, high = high, low
    return max(low, min(high, value))


def clamp01(value: float) -> float:
    """
    Clamp value to the inclusive range [0.0, 1.0].
    """
    return clamp(value, 0.0, 1.0)


def hill_function(c: float, c50: float, gamma: float) -> float:
    """
    Generic Hill/sigmoidal Emax function with numerical safeguards.

    Returns value between 0.0 and 1.0.

    Args:
        c: Concentration or activity value
        c50: Half-maximal effect concentration (EC50/IC50)
        gamma: Hill coefficient (steepness)

    Numerical safeguards:
        - c <= 0, c50 <= 0 or gamma <= 0: returns 0.0
        - gamma is capped at GAMMA_MAX
        - ratios above CONCENTRATION_RATIO_SATURATION return ~1.0
    """
    if c <= 0 or c50 <= 0 or gamma <= 0:
        return 0.0

    gamma = min(gamma, GAMMA_MAX)

    ratio = c / c50
    if ratio > CONCENTRATION_RATIO_SATURATION:
        return 1.0 - 1e-6

    ratio_g = ratio ** gamma
    return ratio_g / (1.0 + ratio_g + HILL_EPSILON)


def finite_or_zero(value: float, label: str = "") -> float:
    """
    Return value if it is a finite number, otherwise log and return 0.0.

    A single bad term (NaN/inf from a kernel or setpoint) must not poison a
    whole run, so it is counted as no contribution.
    """
    try:
        v = float(value)
    except (TypeError, ValueError):
        LOGGER.warning("Non-numeric contribution %r from %s treated as 0", value, label or "<unknown>")
        return 0.0
    if math.isfinite(v):
        return v
    LOGGER.warning("Non-finite contribution %s from %s treated as 0", v, label or "<unknown>")
    return 0.0
