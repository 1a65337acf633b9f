"""
Process S: homeostatic sleep pressure (adenosine accumulation).

    awake:  dS/dt = (1 - S) * k_build * caffeine_block
    asleep: dS/dt = -S * k_decay

Caffeine blocks adenosine receptors, which slows the *perceived* build-up
only; clearance during sleep is unaffected.

Reference: Borbely. Hum Neurobiol. 1982; Daan et al. Am J Physiol. 1984.
"""

from dataclasses import dataclass
from functools import partial

import numpy as np

from physiodyn.core.integrators import rk4_step
from physiodyn.core.utils import clamp01
from .homeo_config import SleepConfig

SLEEP_CONFIG = SleepConfig()


@dataclass(frozen=True)
class SleepInputs:
    is_asleep: bool = False
    caffeine_level: float = 0.0   # relative adenosine-receptor blockade driver
    light_exposure: float = 0.0


def caffeine_block(caffeine_level: float, config: SleepConfig = SLEEP_CONFIG) -> float:
    """Multiplier (<= 1) on the wake accumulation rate."""
    level = max(0.0, caffeine_level)
    return 1.0 - config.caffeine_block_max * min(1.0, level / config.caffeine_saturation)


def sleep_pressure_derivative(s: float, inputs: SleepInputs, params,
                              config: SleepConfig = SLEEP_CONFIG) -> float:
    if inputs.is_asleep:
        return -s * params.sleep_pressure_decay
    return (1.0 - s) * params.sleep_pressure_build * caffeine_block(inputs.caffeine_level, config)


def _vector_derivative(state, t, inputs, params, config):
    return np.array([sleep_pressure_derivative(state[0], inputs, params, config)])


def step_sleep_pressure(s: float, dt: float, inputs: SleepInputs, params,
                        config: SleepConfig = SLEEP_CONFIG) -> float:
    fn = partial(_vector_derivative, params=params, config=config)
    return clamp01(float(rk4_step([s], 0.0, dt, fn, inputs)[0]))
