"""
Neurotransmitter vesicle pools and slow neuromodulator reserves.

Vesicle fullness V in [0, 1]:

    dV/dt = k_syn * precursor * (1 - V) - k_rel * firing * V

Firing is relative activity (1.0 = resting). At rest with the default
precursor availability the pool sits at 0.8, the level below which signal
output starts to fall (acute depletion / tachyphylaxis).
"""

from dataclasses import dataclass
from functools import partial

import numpy as np

from physiodyn.core.integrators import rk4_step
from physiodyn.core.utils import clamp
from .homeo_config import VesicleConfig

VESICLE_CONFIG = VesicleConfig()


@dataclass(frozen=True)
class VesicleInputs:
    firing_rate: float = 1.0
    precursor_availability: float = 0.8


def vesicle_pool_derivative(v: float, inputs: VesicleInputs, config: VesicleConfig = VESICLE_CONFIG) -> float:
    synthesis = config.k_synthesis * inputs.precursor_availability * (1.0 - v)
    release = config.k_release * inputs.firing_rate * v
    return synthesis - release


def _vector_vesicle(state, t, inputs, config):
    return np.array([vesicle_pool_derivative(state[0], inputs, config)])


def step_vesicle_pool(v: float, dt: float, inputs: VesicleInputs, config: VesicleConfig = VESICLE_CONFIG) -> float:
    fn = partial(_vector_vesicle, config=config)
    return clamp(float(rk4_step([v], 0.0, dt, fn, inputs)[0]), config.pool_min, config.pool_max)


def depletion_correction(pool: float, baseline: float, config: VesicleConfig = VESICLE_CONFIG) -> float:
    """
    Signal correction for a partly emptied vesicle pool.

    0 at or above `depletion_full`, -max_loss * baseline at or below
    `depletion_floor`, linear in between.
    """
    if pool >= config.depletion_full:
        return 0.0
    if pool <= config.depletion_floor:
        return -baseline * config.depletion_max_loss
    severity = 1.0 - (pool - config.depletion_floor) / (config.depletion_full - config.depletion_floor)
    return -baseline * config.depletion_max_loss * severity


# -----------------------------------------------------------------------------
# Slow reserves (Euler; rates are small relative to any practical dt)
# -----------------------------------------------------------------------------

def step_adrenaline_reserve(reserve: float, dt: float, stress: float, exercise: float,
                            config: VesicleConfig = VESICLE_CONFIG) -> float:
    load = max(0.0, stress) + 0.5 * max(0.0, exercise)
    recovery = config.adrenaline_recovery * (1.0 - reserve)
    depletion = config.adrenaline_depletion * load * reserve
    return clamp(reserve + (recovery - depletion) * dt, config.adrenaline_min, 1.0)


def step_gaba_pool(pool: float, dt: float, gaba_boost: float, config: VesicleConfig = VESICLE_CONFIG) -> float:
    recovery = 0.003 * (config.gaba_rest - pool)
    activity = 0.002 * gaba_boost * (1.0 - pool)
    return clamp(pool + (recovery + activity) * dt, 0.3, 1.0)


def step_glutamate_pool(pool: float, dt: float, stress: float, block: float,
                        config: VesicleConfig = VESICLE_CONFIG) -> float:
    recovery = 0.002 * (config.glutamate_rest - pool)
    excitation = 0.01 * max(0.0, stress) * (1.0 - pool)
    suppression = 0.005 * max(0.0, block) * pool
    return clamp(pool + (recovery + excitation - suppression) * dt, 0.3, 1.0)


def step_acetylcholine_tone(tone: float, dt: float, is_asleep: bool,
                            config: VesicleConfig = VESICLE_CONFIG) -> float:
    target = config.ach_rest * (0.8 if is_asleep else 1.0)
    return clamp(tone + 0.01 * (target - tone) * dt, 0.2, 1.0)


def step_bdnf_expression(level: float, dt: float, exercise: float, allostatic_load: float,
                         config: VesicleConfig = VESICLE_CONFIG) -> float:
    boost = 0.02 * max(0.0, exercise)
    suppression = 0.001 * allostatic_load
    recovery = 0.001 * (config.bdnf_rest - level)
    return clamp(level + (recovery + boost - suppression) * dt, 0.2, 1.0)


def gh_release_trigger(is_asleep: bool, exercise: float) -> float:
    if is_asleep:
        return 0.02
    if exercise > 0.6:
        return 0.015
    return 0.0


def step_gh_reserve(reserve: float, dt: float, trigger: float, config: VesicleConfig = VESICLE_CONFIG) -> float:
    recovery = 0.001 * (config.gh_rest - reserve)
    release = trigger * reserve
    return clamp(reserve + (recovery - release) * dt, 0.3, 1.0)
