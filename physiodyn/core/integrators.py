"""
Fixed-step ODE integration shared by the homeostasis sub-models.
"""

from typing import Any, Callable

import numpy as np

DerivativeFn = Callable[[np.ndarray, float, Any], np.ndarray]


def rk4_step(state, t: float, dt: float, derivative_fn: DerivativeFn, inputs: Any = None) -> np.ndarray:
    """
    Advance `state` by one classical 4th-order Runge-Kutta step.

    Args:
        state: Current state vector (sequence or ndarray). Not modified.
        t: Current time (minutes)
        dt: Step size (minutes)
        derivative_fn: f(state, t, inputs) -> d(state)/dt
        inputs: Input bundle, held fixed across the four stages

    Returns:
        New state vector (float ndarray).

    Every stage receives a fresh array built from the step-start snapshot, so
    a derivative function that mutates its argument cannot leak into the
    other stages.
    """
    y0 = np.array(state, dtype=float)
    if dt == 0.0:
        return y0

    k1 = np.asarray(derivative_fn(y0.copy(), t, inputs), dtype=float)
    k2 = np.asarray(derivative_fn(y0 + 0.5 * dt * k1, t + 0.5 * dt, inputs), dtype=float)
    k3 = np.asarray(derivative_fn(y0 + 0.5 * dt * k2, t + 0.5 * dt, inputs), dtype=float)
    k4 = np.asarray(derivative_fn(y0 + dt * k3, t + dt, inputs), dtype=float)

    return y0 + (dt / 6.0) * (k1 + 2.0 * k2 + 2.0 * k3 + k4)


def euler_step(state, t: float, dt: float, derivative_fn: DerivativeFn, inputs: Any = None) -> np.ndarray:
    """Forward Euler step with the same signature as rk4_step."""
    y0 = np.array(state, dtype=float)
    return y0 + dt * np.asarray(derivative_fn(y0.copy(), t, inputs), dtype=float)


def substep_plan(dt: float, internal_dt: float = 1.0):
    """
    Split an outer step into equal internal sub-steps.

    Returns (n_steps, h) with n_steps = max(1, round(dt / internal_dt)) and
    h = dt / n_steps, so the sub-steps always cover dt exactly even when dt
    is not a multiple of internal_dt.
    """
    if dt <= 0.0:
        return 0, 0.0
    n_steps = max(1, int(round(dt / internal_dt)))
    return n_steps, dt / n_steps
