import math

import numpy as np
import pytest

from physiodyn.core.integrators import euler_step, rk4_step, substep_plan


class TestRK4:

    def test_zero_derivative_is_identity(self):
        """A constant state stays exactly where it is."""
        state = [1.0, -2.5, 90.0]
        out = rk4_step(state, 0.0, 5.0, lambda y, t, u: np.zeros_like(y))
        np.testing.assert_array_equal(out, np.array(state))

    def test_exponential_decay_accuracy(self):
        """dy/dt = -k y over one step matches e^{-k dt} to 4th order."""
        k, dt = 0.1, 1.0
        out = rk4_step([1.0], 0.0, dt, lambda y, t, u: -k * y)
        assert abs(out[0] - math.exp(-k * dt)) < 1e-6, f"RK4 error too large: {out[0]}"

    def test_input_is_not_mutated(self):
        """Derivative functions that mutate their argument cannot leak into the caller's state."""
        state = np.array([1.0, 2.0])

        def greedy(y, t, u):
            y[0] = 1000.0
            return np.zeros_like(y)

        rk4_step(state, 0.0, 1.0, greedy)
        np.testing.assert_array_equal(state, [1.0, 2.0])

    def test_zero_dt_returns_copy(self):
        out = rk4_step([3.0], 0.0, 0.0, lambda y, t, u: np.ones_like(y))
        assert out[0] == 3.0

    def test_inputs_are_forwarded(self):
        out = rk4_step([0.0], 0.0, 2.0, lambda y, t, u: np.array([u]), inputs=1.5)
        assert abs(out[0] - 3.0) < 1e-12

    def test_euler_matches_first_order(self):
        out = euler_step([1.0], 0.0, 0.5, lambda y, t, u: -y)
        assert abs(out[0] - 0.5) < 1e-12


class TestSubstepPlan:

    @pytest.mark.parametrize("dt, expected_n", [(1.0, 1), (5.0, 5), (0.3, 1), (2.4, 2), (2.6, 3)])
    def test_substeps_cover_dt_exactly(self, dt, expected_n):
        """Non-integer steps are split into round(dt) equal sub-steps summing to dt."""
        n, h = substep_plan(dt, 1.0)
        assert n == expected_n, f"dt={dt}: expected {expected_n} sub-steps, got {n}"
        assert abs(n * h - dt) < 1e-12

    def test_non_positive_dt(self):
        assert substep_plan(0.0) == (0, 0.0)
        assert substep_plan(-1.0) == (0, 0.0)
