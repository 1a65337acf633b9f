"""
Glucose-insulin minimal model (Bergman-style).

State vector: [G, X, I, glycogen]
    G        plasma glucose (mg/dL)
    X        remote insulin action (1/min)
    I        plasma insulin (uU/mL)
    glycogen hepatic glycogen fill (0..1)

    dG/dt = -p1 (G - Gb) - Si X G + Ra + HGO_glucagon + stress + release - exercise
    dX/dt = -p2 X + p3 Si max(0, I - Ib)
    dI/dt = -n I + S(G) + exogenous
    S(G)  = n Ib + gamma (G - Gb)                          G >= Gb
          = n Ib (G - G_floor) / (Gb - G_floor), >= 0      G <  Gb

S(Gb) balances clearance so that (Gb, 0, Ib) is an equilibrium of the unfed
model. Secretion is never negative; below basal it is suppressed toward
zero at G_floor rather than switched off.

Reference: Bergman et al. Am J Physiol. 1979; Bergman. Diabetes. 1989.
"""

from dataclasses import dataclass
from functools import partial

import numpy as np

from physiodyn.core.integrators import rk4_step
from physiodyn.core.utils import clamp
from .homeo_config import GlucoseInsulinConfig

GI_CONFIG = GlucoseInsulinConfig()


@dataclass(frozen=True)
class GlucoseInsulinInputs:
    glucose_appearance: float = 0.0   # mg/dL/min
    exercise_uptake: float = 0.0      # mg/dL/min
    stress_hormones: float = 0.0      # 0..1+
    exogenous_insulin: float = 0.0    # uU/mL/min


def insulin_secretion(g: float, params, config: GlucoseInsulinConfig = GI_CONFIG) -> float:
    """Pancreatic secretion (uU/mL/min), n*Ib at basal glucose and never negative."""
    gb = params.glucose_setpoint
    basal = config.n * config.basal_insulin
    if g >= gb:
        return basal + config.gamma * (g - gb)
    span = max(1e-9, gb - config.secretion_floor)
    return basal * clamp((g - config.secretion_floor) / span, 0.0, 1.0)


def glucose_insulin_derivatives(state, t: float, inputs: GlucoseInsulinInputs, params,
                                config: GlucoseInsulinConfig = GI_CONFIG) -> np.ndarray:
    g, x, i, glycogen = state
    gb = params.glucose_setpoint
    ib = config.basal_insulin
    si = params.insulin_sensitivity

    glucagon = max(0.0, (gb - g) / gb) * params.hepatic_glucose_output
    stress = config.stress_gain * inputs.stress_hormones

    release = 0.0
    if g < config.glycogen_release_threshold:
        release = (config.glycogen_release_gain * (config.glycogen_release_threshold - g)
                   / config.glycogen_release_threshold * glycogen)
    storage = 0.0
    if i > ib and g > config.glycogen_storage_threshold:
        storage = config.glycogen_storage_gain * (g - config.glycogen_storage_threshold) * (1.0 - glycogen)

    d_g = (-config.p1 * (g - gb) - x * g * si + inputs.glucose_appearance
           + glucagon + stress + release - inputs.exercise_uptake)
    d_x = -config.p2 * x + config.p3 * si * max(0.0, i - ib)
    d_i = -config.n * i + insulin_secretion(g, params, config) + inputs.exogenous_insulin
    d_glycogen = storage - release * config.glycogen_release_cost

    return np.array([d_g, d_x, d_i, d_glycogen])


def step_glucose_insulin(state, dt: float, inputs: GlucoseInsulinInputs, params,
                         config: GlucoseInsulinConfig = GI_CONFIG) -> np.ndarray:
    """One RK4 step followed by the physiological clamps."""
    fn = partial(glucose_insulin_derivatives, params=params, config=config)
    g, x, i, glycogen = rk4_step(state, 0.0, dt, fn, inputs)
    return np.array([
        clamp(g, config.glucose_min, config.glucose_max),
        max(0.0, x),
        clamp(i, config.insulin_min, config.insulin_max),
        clamp(glycogen, 0.0, 1.0),
    ])
